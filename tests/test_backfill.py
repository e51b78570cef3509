import os

os.environ.setdefault("DB_BACKEND", "sqlite")

import backfill
from core.models import BranchPreferences, Entry, LinkRole, MemoryBranchLink
from core.services.sharing_backfill import run_sharing_backfill


def _legacy_entry(db_session, author, branch) -> Entry:
    entry = Entry(branch_id=branch.id, author_id=author.id, text="Written before sharing existed")
    db_session.add(entry)
    db_session.commit()
    return entry


def test_backfill_creates_missing_rows(db_session, make_user, make_branch):
    owner = make_user("fern")
    branch = make_branch(owner, "Fern's branch")
    make_branch(owner, "Old branch", archived=True)
    entry = _legacy_entry(db_session, owner, branch)

    dry = run_sharing_backfill(db_session, dry_run=True)
    assert dry["origin_links"] == {"created": 1, "skipped": 0}
    assert dry["branch_preferences"] == {"created": 1, "skipped": 0}
    assert db_session.query(MemoryBranchLink).count() == 0

    result = run_sharing_backfill(db_session)
    assert result["origin_links"]["created"] == 1

    origin = db_session.query(MemoryBranchLink).filter_by(memory_id=entry.id).one()
    assert LinkRole(origin.role) == LinkRole.origin
    assert origin.branch_id == branch.id
    assert db_session.query(BranchPreferences).filter_by(branch_id=branch.id).count() == 1


def test_backfill_is_idempotent(db_session, family):
    first = run_sharing_backfill(db_session)
    second = run_sharing_backfill(db_session)

    assert first["origin_links"] == {"created": 0, "skipped": 1}
    assert second["branch_preferences"]["created"] == 0


def test_backfill_cli_dry_run(server_db, monkeypatch, capsys):
    monkeypatch.setattr(backfill, "init_db", lambda: None)

    assert backfill.main(["--dry-run"]) == 0
    assert '"dry_run": true' in capsys.readouterr().out

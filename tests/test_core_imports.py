import os

import pytest

os.environ.setdefault("DB_BACKEND", "sqlite")


def test_core_imports():
    import core.context  # noqa: F401
    import core.models  # noqa: F401
    import core.services.memory_approval  # noqa: F401
    import core.services.memory_sharing  # noqa: F401
    import app.main  # noqa: F401


def test_invalid_backend_is_rejected(monkeypatch):
    import core.config as config

    monkeypatch.setattr(config, "DB_BACKEND", "mysql")
    with pytest.raises(RuntimeError, match="DB_BACKEND"):
        config.validate_and_prepare_config()


def test_sqlite_url_is_derived(monkeypatch, tmp_path):
    import core.config as config

    monkeypatch.setattr(config, "DB_BACKEND", "sqlite")
    monkeypatch.setattr(config, "DATABASE_URL", None)
    monkeypatch.setattr(config, "SQLITE_PATH", str(tmp_path / "grove.db"))
    config.validate_and_prepare_config()
    assert config.DATABASE_URL == f"sqlite:///{tmp_path / 'grove.db'}"


def test_core_smoke_lifecycle(server_db, family):
    from core.services import memory_approval, memory_sharing

    memory_id = family["memory"].id
    branch_b = family["branch_b"]

    shared = memory_sharing.share_memory(memory_id, [branch_b.id], context=family["alice_ctx"])
    assert shared["results"][0]["action"] == "created"

    approved = memory_approval.approve_shared_memory(memory_id, branch_b.id, context=family["bob_ctx"])
    assert approved["link"]["visibility_status"] == "active"

    removed = memory_sharing.remove_memory_from_my_branch(memory_id, branch_b.id, context=family["bob_ctx"])
    assert removed["success"] is True

    view = memory_sharing.list_memory_links(memory_id, context=family["alice_ctx"])
    assert view["is_shared"] is False
    assert [link["visibility_status"] for link in view["links"]] == ["active", "removed_by_user"]


def test_limits_read_prefixed_env(monkeypatch):
    import core.config as config

    monkeypatch.setenv("FIREFLY_MAX_SHARE_TARGETS", "7")
    assert config._get_int("FIREFLY_MAX_SHARE_TARGETS", 50) == 7
    monkeypatch.setenv("FIREFLY_MAX_SHARE_TARGETS", "many")
    assert config._get_int("FIREFLY_MAX_SHARE_TARGETS", 50) == 50


def test_schema_revisions_report_head(server_db):
    from core.db import schema_revisions

    current, head = schema_revisions(server_db)
    assert current is None
    assert head == "0002_audit_events"

import os

os.environ.setdefault("DB_BACKEND", "sqlite")
os.environ.setdefault("AUTO_MIGRATE_ON_STARTUP", "false")

import pytest
from sqlalchemy.orm import sessionmaker

from core.context import context_for_user
from core.db import DB, build_engine
from core.models import Base, Branch, BranchPreferences, Entry, Grove, User
from core.services.memory_links import ensure_origin_link


@pytest.fixture
def server_db(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'fireflygrove.sqlite'}")
    Base.metadata.create_all(engine)
    previous_engine = DB.engine
    previous_session = DB.SessionLocal
    DB.engine = engine
    DB.SessionLocal = sessionmaker(bind=engine)
    try:
        yield engine
    finally:
        DB.engine = previous_engine
        DB.SessionLocal = previous_session
        engine.dispose()


@pytest.fixture
def db_session(server_db):
    session = DB.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db_session):
    def _make(name: str) -> User:
        user = User(email=f"{name}@example.com", name=name)
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def make_branch(db_session):
    def _make(owner: User, title: str, grove: Grove | None = None, requires_approval: bool | None = None,
              can_be_tagged: bool | None = None, archived: bool = False) -> Branch:
        branch = Branch(
            title=title,
            owner_id=owner.id,
            grove_id=grove.id if grove else None,
            archived=archived,
        )
        db_session.add(branch)
        db_session.commit()
        if requires_approval is not None or can_be_tagged is not None:
            db_session.add(
                BranchPreferences(
                    branch_id=branch.id,
                    can_be_tagged=True if can_be_tagged is None else can_be_tagged,
                    requires_tag_approval=bool(requires_approval),
                    visible_in_cross_shares=True,
                )
            )
            db_session.commit()
        return branch
    return _make


@pytest.fixture
def make_memory(db_session):
    def _make(author: User, branch: Branch, text: str = "Grandma's apple pie", visibility: str = "PRIVATE") -> Entry:
        entry = Entry(branch_id=branch.id, author_id=author.id, text=text, visibility=visibility)
        db_session.add(entry)
        db_session.commit()
        ensure_origin_link(db_session, entry.id, branch.id)
        return entry
    return _make


@pytest.fixture
def make_grove(db_session):
    def _make(owner: User, name: str = "Hartley Grove") -> Grove:
        grove = Grove(name=name, owner_id=owner.id)
        db_session.add(grove)
        db_session.commit()
        return grove
    return _make


@pytest.fixture
def family(make_user, make_branch, make_memory):
    """Alice writes memory M in branch A; Bob owns B which requires approval."""
    alice = make_user("alice")
    bob = make_user("bob")
    branch_a = make_branch(alice, "Alice's branch")
    branch_b = make_branch(bob, "Bob's branch", requires_approval=True)
    memory = make_memory(alice, branch_a)
    return {
        "alice": alice,
        "bob": bob,
        "branch_a": branch_a,
        "branch_b": branch_b,
        "memory": memory,
        "alice_ctx": context_for_user(alice.id),
        "bob_ctx": context_for_user(bob.id),
    }

"""
Firefly Grove Database Models
PostgreSQL (production) / SQLite (local + tests) schema
"""

from datetime import datetime
from enum import Enum as PyEnum
import uuid
from sqlalchemy import (
    Column, Integer, String, Text, Boolean,
    DateTime, ForeignKey, Index, UniqueConstraint, Enum, JSON, text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship, declarative_base

import core.config as config

DB_BACKEND = config.DB_BACKEND

JSON_TYPE = JSONB if DB_BACKEND == "postgres" else JSON
ID_TYPE = String(36)


def _uuid_default() -> str:
    return str(uuid.uuid4())


Base = declarative_base()

# =============================================================================
# Enums
# =============================================================================

class EntryVisibility(str, PyEnum):
    PRIVATE = "PRIVATE"
    SHARED = "SHARED"
    LEGACY = "LEGACY"


class EntryStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    WITHDRAWN = "WITHDRAWN"


class LinkRole(str, PyEnum):
    origin = "origin"
    shared = "shared"


class LinkStatus(str, PyEnum):
    active = "active"
    pending_approval = "pending_approval"
    removed_by_branch = "removed_by_branch"
    removed_by_user = "removed_by_user"


# Statuses that make a memory visible (or about to be) in a branch
LIVE_LINK_STATUSES = (LinkStatus.active, LinkStatus.pending_approval)


def _enum_column(enum_cls, name: str):
    return Enum(enum_cls, name=name, native_enum=False, length=32)


# =============================================================================
# People & Groves
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(ID_TYPE, primary_key=True, default=_uuid_default)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)


class Grove(Base):
    __tablename__ = "groves"

    id = Column(ID_TYPE, primary_key=True, default=_uuid_default)
    name = Column(String(200), nullable=False)
    owner_id = Column(ID_TYPE, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)


class Person(Base):
    __tablename__ = "persons"

    id = Column(ID_TYPE, primary_key=True, default=_uuid_default)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)


# =============================================================================
# Branches
# =============================================================================

class Branch(Base):
    __tablename__ = "branches"

    id = Column(ID_TYPE, primary_key=True, default=_uuid_default)
    title = Column(String(200), nullable=False)
    owner_id = Column(ID_TYPE, ForeignKey("users.id"), nullable=False)
    grove_id = Column(ID_TYPE, ForeignKey("groves.id"))
    person_id = Column(ID_TYPE, ForeignKey("persons.id"))
    is_legacy = Column(Boolean, default=False, nullable=False)  # memorial mode
    archived = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User")
    person = relationship("Person")
    preferences = relationship("BranchPreferences", back_populates="branch", uselist=False)

    __table_args__ = (
        Index("ix_branches_owner_id", "owner_id"),
        Index("ix_branches_grove_id", "grove_id"),
    )


class BranchPreferences(Base):
    __tablename__ = "branch_preferences"

    id = Column(ID_TYPE, primary_key=True, default=_uuid_default)
    branch_id = Column(ID_TYPE, ForeignKey("branches.id"), nullable=False, unique=True)
    can_be_tagged = Column(Boolean, default=True, nullable=False)
    requires_tag_approval = Column(Boolean, default=False, nullable=False)
    visible_in_cross_shares = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    branch = relationship("Branch", back_populates="preferences")


# =============================================================================
# Memories
# =============================================================================

class Entry(Base):
    __tablename__ = "entries"

    id = Column(ID_TYPE, primary_key=True, default=_uuid_default)
    branch_id = Column(ID_TYPE, ForeignKey("branches.id"), nullable=False)  # origin branch
    author_id = Column(ID_TYPE, ForeignKey("users.id"), nullable=False)
    text = Column(Text, nullable=False)
    media_url = Column(String(1000))
    audio_url = Column(String(1000))
    visibility = Column(
        _enum_column(EntryVisibility, "entry_visibility"),
        default=EntryVisibility.PRIVATE,
        nullable=False,
    )
    status = Column(
        _enum_column(EntryStatus, "entry_status"),
        default=EntryStatus.ACTIVE,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    branch = relationship("Branch")
    author = relationship("User")
    links = relationship("MemoryBranchLink", back_populates="memory")

    __table_args__ = (
        Index("ix_entries_branch_id", "branch_id"),
        Index("ix_entries_author_id", "author_id"),
    )


class MemoryBranchLink(Base):
    """Ties a memory to a branch. Rows are never deleted, only status-transitioned."""
    __tablename__ = "memory_branch_links"

    id = Column(ID_TYPE, primary_key=True, default=_uuid_default)
    memory_id = Column(ID_TYPE, ForeignKey("entries.id"), nullable=False)
    branch_id = Column(ID_TYPE, ForeignKey("branches.id"), nullable=False)
    role = Column(_enum_column(LinkRole, "link_role"), nullable=False)
    visibility_status = Column(
        _enum_column(LinkStatus, "link_status"),
        default=LinkStatus.active,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    memory = relationship("Entry", back_populates="links")
    branch = relationship("Branch")

    __table_args__ = (
        UniqueConstraint("memory_id", "branch_id", name="uq_memory_branch_links_memory_branch"),
        Index(
            "uq_memory_branch_links_origin",
            "memory_id",
            unique=True,
            sqlite_where=text("role = 'origin'"),
            postgresql_where=text("role = 'origin'"),
        ),
        Index("ix_memory_branch_links_branch_status", "branch_id", "visibility_status"),
    )


# =============================================================================
# Audit Events
# =============================================================================

class AuditEvent(Base):
    __tablename__ = "audit_events"

    event_id = Column(ID_TYPE, primary_key=True, default=_uuid_default)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    event_type = Column(String(100), nullable=False)
    event_version = Column(Integer, default=1, nullable=False)
    actor_type = Column(String(50), nullable=False)
    actor_id = Column(String(255))
    user_id = Column(String(255))
    target_type = Column(String(50), nullable=False)
    target_ids = Column(JSON_TYPE, nullable=False)
    count_affected = Column(Integer)
    reason = Column(Text)
    request_id = Column(String(255))
    metadata_ = Column("metadata", JSON_TYPE)

    __table_args__ = (
        Index("ix_audit_events_created_at", "created_at"),
        Index("ix_audit_events_event_type", "event_type"),
        Index("ix_audit_events_user_id", "user_id"),
    )


__all__ = [
    "Base",
    "EntryVisibility",
    "EntryStatus",
    "LinkRole",
    "LinkStatus",
    "LIVE_LINK_STATUSES",
    "User",
    "Grove",
    "Person",
    "Branch",
    "BranchPreferences",
    "Entry",
    "MemoryBranchLink",
    "AuditEvent",
]

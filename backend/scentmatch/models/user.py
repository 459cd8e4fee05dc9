"""
ScentMatch Backend — Account SQLAlchemy Models
================================================

What:  ORM models for users, login codes, sessions, and usage events.
Why:   The passwordless auth flow is entirely a sequence of reads and writes
       against these four tables.
How:   SQLAlchemy 2.0 typed mappings on the shared DeclarativeBase.

Table Design Rationale:
    - No plaintext contact data: users only carry SHA-256 digests of the
      normalized email and phone.
    - users.email_hash is UNIQUE: closes the duplicate-signup race at the
      storage layer (the losing INSERT fails with IntegrityError).
    - login_codes.consumed flips false → true exactly once, through a
      conditional UPDATE (see CredentialStore.mark_code_consumed).
    - sessions.token_hash: the cookie carries a random token; only its digest
      is stored, so a leaked table cannot be replayed as cookies.
    - Every child row cascades on user deletion (ON DELETE CASCADE).

Portable column types (Uuid, DateTime(timezone=True)) keep the models usable
on PostgreSQL in production and SQLite in the test suite.
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scentmatch.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    A registered account, identified only by hashed contact details.

    Lifecycle:
        1. Created by signup with email_hash + phone_hash
        2. Receives login codes on signup and on every login request
        3. Receives a session on every successful verify
        4. Deleting a user cascades to its codes, sessions, and usage events
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # 64 hex chars of SHA-256(normalize_email(email))
    email_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    # 64 hex chars of SHA-256(normalize_phone(phone)); not unique, shared phones are allowed
    phone_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    login_codes: Mapped[List["LoginCode"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sessions: Mapped[List["Session"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    usage_events: Mapped[List["UsageEvent"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, created_at='{self.created_at}')>"


class LoginCode(Base):
    """
    A one-time numeric code bound to a user.

    Usable at most once (consumed flag) and only before expires_at.
    Several unconsumed codes may be outstanding for the same user; verify
    picks the most recently created match.
    """

    __tablename__ = "login_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    consumed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    user: Mapped["User"] = relationship(back_populates="login_codes")

    __table_args__ = (
        Index("login_codes_user_id_idx", "user_id"),
        Index("login_codes_code_expires_at_idx", "code", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LoginCode(id={self.id}, user_id={self.user_id}, "
            f"consumed={self.consumed}, expires_at='{self.expires_at}')>"
        )


class Session(Base):
    """A verified login. The cookie holds the raw token; we keep its digest."""

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    user: Mapped["User"] = relationship(back_populates="sessions")

    __table_args__ = (
        Index("sessions_user_id_idx", "user_id"),
    )


class UsageEvent(Base):
    """Append-only audit row. Never updated after insert."""

    __tablename__ = "usage_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    user: Mapped["User"] = relationship(back_populates="usage_events")

    __table_args__ = (
        Index("usage_events_user_id_idx", "user_id"),
        Index("usage_events_created_at_idx", "created_at"),
        Index("usage_events_event_type_idx", "event_type"),
    )

    def __repr__(self) -> str:
        return f"<UsageEvent(user_id={self.user_id}, event_type='{self.event_type}')>"

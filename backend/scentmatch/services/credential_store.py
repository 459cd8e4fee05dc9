"""
ScentMatch Backend — Credential Store
=======================================

What:  Persistence operations the auth flow needs: users, login codes,
       sessions, and usage events.
Why:   Keeps SQL out of AuthService and is the one place where the two
       concurrency-critical guarantees live:
         1. duplicate signup  → unique index on users.email_hash
         2. double-spent code → conditional UPDATE ... WHERE consumed = false
How:   Wraps an injected AsyncSession. Driver errors are translated into
       application exceptions so that no SQL detail reaches the client.

Error translation:
    IntegrityError on users insert  → ConflictError (409)
    any other SQLAlchemyError        → DatabaseError (500, generic message)
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scentmatch.exceptions import ConflictError, DatabaseError
from scentmatch.models import LoginCode, Session, UsageEvent, User

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Database error during %s: %s", operation, str(e), exc_info=True)
        raise DatabaseError(context={"operation": operation, "error_type": type(e).__name__}) from e


class CredentialStore:
    """
    Storage contract consumed by AuthService.

    One instance per request, bound to that request's session. Nothing is
    committed until commit() is called; AuthService commits once per
    operation so the response only reports persisted state.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Users ─────────────────────────────────────────────────────────────

    async def find_user_by_email_hash(self, email_hash: str) -> Optional[User]:
        with _storage_errors("find_user_by_email_hash"):
            result = await self.session.execute(
                select(User).where(User.email_hash == email_hash)
            )
            return result.scalar_one_or_none()

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        with _storage_errors("get_user"):
            return await self.session.get(User, user_id)

    async def create_user(self, email_hash: str, phone_hash: str) -> User:
        """
        Insert a user and flush immediately.

        The flush makes the unique index fire here, inside the auth flow, so a
        concurrent signup that lost the race is reported as a conflict rather
        than surfacing later at commit time.
        """
        user = User(email_hash=email_hash, phone_hash=phone_hash)
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info("Signup conflict on email_hash %s...", email_hash[:8])
            raise ConflictError(
                message="Account with this email already exists",
                context={"constraint": "users.email_hash"},
            ) from e
        except SQLAlchemyError as e:
            logger.error("Database error during create_user: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "create_user"}) from e
        return user

    # ── Login codes ───────────────────────────────────────────────────────

    async def create_login_code(
        self, user_id: uuid.UUID, code: str, expires_at: datetime
    ) -> LoginCode:
        with _storage_errors("create_login_code"):
            login_code = LoginCode(user_id=user_id, code=code, expires_at=expires_at)
            self.session.add(login_code)
            await self.session.flush()
            return login_code

    async def find_latest_unconsumed_code(
        self, user_id: uuid.UUID, code: str
    ) -> Optional[LoginCode]:
        """Most recently created unconsumed code matching (user_id, code)."""
        with _storage_errors("find_latest_unconsumed_code"):
            result = await self.session.execute(
                select(LoginCode)
                .where(
                    LoginCode.user_id == user_id,
                    LoginCode.code == code,
                    LoginCode.consumed.is_(False),
                )
                .order_by(LoginCode.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def mark_code_consumed(self, code_id: uuid.UUID) -> bool:
        """
        Atomically flip consumed false → true.

        Returns:
            True if this call consumed the code, False if it was already
            consumed (a concurrent verify won the race).

        Why a conditional UPDATE (not load-modify-save):
            Two requests can both read consumed=false. Only one UPDATE can match
            `consumed = false`; on PostgreSQL the second blocks on the row lock
            and re-evaluates the predicate after the first commits.
        """
        with _storage_errors("mark_code_consumed"):
            result = await self.session.execute(
                update(LoginCode)
                .where(LoginCode.id == code_id, LoginCode.consumed.is_(False))
                .values(consumed=True)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # ── Sessions ──────────────────────────────────────────────────────────

    async def create_session(
        self, user_id: uuid.UUID, token_hash: str, expires_at: datetime
    ) -> Session:
        with _storage_errors("create_session"):
            session_row = Session(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
            self.session.add(session_row)
            await self.session.flush()
            return session_row

    async def find_session_by_token_hash(self, token_hash: str) -> Optional[Session]:
        with _storage_errors("find_session_by_token_hash"):
            result = await self.session.execute(
                select(Session).where(Session.token_hash == token_hash)
            )
            return result.scalar_one_or_none()

    async def delete_session(self, token_hash: str) -> bool:
        with _storage_errors("delete_session"):
            result = await self.session.execute(
                delete(Session).where(Session.token_hash == token_hash)
            )
            return result.rowcount > 0

    # ── Usage events ──────────────────────────────────────────────────────

    async def record_usage_event(self, user_id: uuid.UUID, event_type: str) -> UsageEvent:
        with _storage_errors("record_usage_event"):
            event = UsageEvent(user_id=user_id, event_type=event_type)
            self.session.add(event)
            await self.session.flush()
            return event

    # ── Transactions ──────────────────────────────────────────────────────

    async def commit(self) -> None:
        with _storage_errors("commit"):
            await self.session.commit()

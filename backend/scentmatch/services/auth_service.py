"""
ScentMatch Backend — Auth Service (Passwordless Login Orchestrator)
=====================================================================

What:  Signup, login, and verify for email/phone one-time-code authentication,
       plus session lookup and logout.
Why:   Keeps every auth rule in one HTTP-agnostic place that can be tested
       against a real (SQLite) store or a mocked one.
How:   Composes the identifier hasher, OTP generator, a Notifier, and a
       CredentialStore. All collaborators are passed in; nothing is global.

Flow:
    signup(email, phone) ──▶ user + code ──▶ notifier.send(phone, code)
    login(email)         ──▶ new code    ──▶ notifier.send(email, code)
    verify(user_id, code) ─▶ consume code ─▶ server-side session token

    The caller gets the raw session token once; only its SHA-256 digest is
    stored, and the cookie carries the token.

Failure semantics:
    Missing/blank/malformed inputs raise ValidationError before the store is
    touched. Storage failures surface as DatabaseError from the store.
    Nothing is retried: a retried signup hits the unique index and a retried
    verify finds the code consumed.
    Delivery runs after the commit. A notifier failure is logged and reported
    as IssuedCode.delivered=False instead of failing the request, because the
    account and code already exist; the client recovers by calling login.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from scentmatch.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from scentmatch.models import User
from scentmatch.services import otp
from scentmatch.services.credential_store import CredentialStore
from scentmatch.services.identifiers import hash_email, hash_identifier, hash_phone
from scentmatch.services.notifier import Notifier

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid or expired code"
EXPIRED_CODE_MESSAGE = "Code has expired. Please request a new one."

# Usage event types written by the auth flow
EVENT_SIGNUP = "signup"
EVENT_LOGIN_REQUESTED = "login_requested"
EVENT_LOGIN_VERIFIED = "login_verified"


@dataclass(frozen=True)
class IssuedCode:
    """A login code that was stored and handed to the notifier."""

    user_id: uuid.UUID
    code: str
    expires_at: datetime
    delivered: bool = True


@dataclass(frozen=True)
class IssuedSession:
    """A verified session. `token` is the only copy of the raw cookie value."""

    user_id: uuid.UUID
    token: str
    expires_at: datetime


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def parse_user_id(raw: Optional[str]) -> uuid.UUID:
    """Parse a client-supplied user id; malformed ids are a bad request."""
    if _is_blank(raw):
        raise ValidationError(message="User ID and code are required", field="userId")
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        raise ValidationError(message="User ID is not valid", field="userId")


class AuthService:
    """
    Business logic for the one-time-code login flow.

    Constructed per request (see routes/auth.py::get_auth_service) with a
    store bound to that request's session.

    Args:
        store:                Credential persistence for this request
        notifier:             Delivery channel for login codes
        clock:                Returns the current UTC time (overridable in tests)
        code_ttl_minutes:     Login code lifetime
        session_ttl:          Server-side session lifetime
    """

    def __init__(
        self,
        store: CredentialStore,
        notifier: Notifier,
        clock: Callable[[], datetime] = otp.utc_now,
        code_ttl_minutes: int = otp.DEFAULT_EXPIRY_MINUTES,
        session_ttl: timedelta = timedelta(days=30),
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.code_ttl_minutes = code_ttl_minutes
        self.session_ttl = session_ttl

    async def _issue_code(self, user_id: uuid.UUID) -> IssuedCode:
        code = otp.generate_code()
        expires_at = otp.compute_expiry(self.clock(), self.code_ttl_minutes)
        await self.store.create_login_code(user_id=user_id, code=code, expires_at=expires_at)
        return IssuedCode(user_id=user_id, code=code, expires_at=expires_at)

    async def _deliver(self, issued: IssuedCode, destination: str) -> IssuedCode:
        try:
            await self.notifier.send(destination, issued.code)
        except Exception as e:
            logger.error(
                "Login code delivery failed for user %s: %s",
                issued.user_id,
                str(e),
                exc_info=True,
            )
            return replace(issued, delivered=False)
        return issued

    async def signup(self, email: Optional[str], phone: Optional[str]) -> IssuedCode:
        """
        Create an account and its first login code.

        Raises:
            ValidationError: email or phone missing/blank (→ 400)
            ConflictError:   an account already uses this email (→ 409)
            DatabaseError:   storage failure (→ 500)
        """
        if _is_blank(email) or _is_blank(phone):
            raise ValidationError(message="Email and phone are required")

        email_hash = hash_email(email)
        phone_hash = hash_phone(phone)

        # Fast path for the common case; the unique index in create_user
        # still catches a concurrent signup that passes this check.
        if await self.store.find_user_by_email_hash(email_hash) is not None:
            raise ConflictError(message="Account with this email already exists")

        user = await self.store.create_user(email_hash=email_hash, phone_hash=phone_hash)
        issued = await self._issue_code(user.id)
        await self.store.record_usage_event(user.id, EVENT_SIGNUP)
        await self.store.commit()

        logger.info("User %s signed up; code expires at %s", user.id, issued.expires_at.isoformat())
        return await self._deliver(issued, phone)

    async def login(self, email: Optional[str]) -> IssuedCode:
        """
        Issue a fresh login code for an existing account.

        Earlier unconsumed codes stay valid until they expire.

        Raises:
            ValidationError: email missing/blank (→ 400)
            NotFoundError:   no account for this email (→ 404)
        """
        if _is_blank(email):
            raise ValidationError(message="Email is required", field="email")

        user = await self.store.find_user_by_email_hash(hash_email(email))
        if user is None:
            raise NotFoundError(resource="account", message="No account found with this email")

        issued = await self._issue_code(user.id)
        await self.store.record_usage_event(user.id, EVENT_LOGIN_REQUESTED)
        await self.store.commit()

        logger.info("Login code issued for user %s", user.id)
        return await self._deliver(issued, email)

    async def verify(self, user_id: Optional[str], code: Optional[str]) -> IssuedSession:
        """
        Exchange a valid login code for a session.

        Steps:
            1. Latest unconsumed code matching (user_id, code), else 401
            2. Expired → 401, code left untouched
            3. Conditional consume; losing a concurrent race → 401
            4. Create the server-side session

        Raises:
            ValidationError:   missing fields or malformed user id (→ 400)
            UnauthorizedError: wrong, unknown, expired, or consumed code (→ 401)
        """
        if _is_blank(user_id) or _is_blank(code):
            raise ValidationError(message="User ID and code are required")
        parsed_user_id = parse_user_id(user_id)
        code = code.strip()

        login_code = await self.store.find_latest_unconsumed_code(parsed_user_id, code)
        if login_code is None:
            raise UnauthorizedError(message=INVALID_CODE_MESSAGE)

        now = self.clock()
        if not otp.is_valid(login_code.expires_at, now):
            raise UnauthorizedError(
                message=EXPIRED_CODE_MESSAGE,
                context={"login_code_id": str(login_code.id)},
            )

        if not await self.store.mark_code_consumed(login_code.id):
            logger.warning("Login code %s was consumed concurrently", login_code.id)
            raise UnauthorizedError(message=INVALID_CODE_MESSAGE)

        token = secrets.token_urlsafe(32)
        expires_at = now + self.session_ttl
        await self.store.create_session(
            user_id=parsed_user_id,
            token_hash=hash_identifier(token),
            expires_at=expires_at,
        )
        await self.store.record_usage_event(parsed_user_id, EVENT_LOGIN_VERIFIED)
        await self.store.commit()

        logger.info("User %s verified a login code", parsed_user_id)
        return IssuedSession(user_id=parsed_user_id, token=token, expires_at=expires_at)

    async def resolve_session(self, token: Optional[str]) -> User:
        """
        Return the user behind a session cookie.

        Raises:
            UnauthorizedError: no cookie, unknown token, or expired session
        """
        if _is_blank(token):
            raise UnauthorizedError(message="Not authenticated")

        session_row = await self.store.find_session_by_token_hash(hash_identifier(token))
        if session_row is None or not otp.is_valid(session_row.expires_at, self.clock()):
            raise UnauthorizedError(message="Session is invalid or has expired")

        user = await self.store.get_user(session_row.user_id)
        if user is None:
            raise UnauthorizedError(message="Session is invalid or has expired")
        return user

    async def logout(self, token: Optional[str]) -> None:
        """Delete the session behind the cookie. Unknown tokens are ignored."""
        if _is_blank(token):
            return
        if await self.store.delete_session(hash_identifier(token)):
            await self.store.commit()

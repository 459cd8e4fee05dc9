"""
ScentMatch Backend — One-Time Login Codes
===========================================

What:  Generates 6-digit numeric codes and computes/checks their expiry.
Why:   The login code is the only credential in the passwordless flow, so it
       must come from a CSPRNG. `random` is predictable from its output;
       `secrets` is not.
How:   secrets.randbelow(10**6) gives a uniform value in [0, 999999], which
       is zero-padded to exactly six characters.

Time handling:
    All timestamps are timezone-aware UTC. Some drivers (SQLite) hand back
    naive datetimes for DateTime(timezone=True) columns; is_valid() treats a
    naive value as UTC so comparisons never raise.
"""

import secrets
from datetime import datetime, timedelta, timezone

CODE_LENGTH = 6
DEFAULT_EXPIRY_MINUTES = 5


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    """Uniformly random code in "000000"–"999999"."""
    return str(secrets.randbelow(10 ** CODE_LENGTH)).zfill(CODE_LENGTH)


def compute_expiry(now_utc: datetime, minutes: int = DEFAULT_EXPIRY_MINUTES) -> datetime:
    return now_utc + timedelta(minutes=minutes)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_valid(expiry: datetime, now_utc: datetime) -> bool:
    """True iff now_utc is strictly before expiry."""
    return _as_utc(now_utc) < _as_utc(expiry)

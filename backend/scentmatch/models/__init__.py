"""ORM models. Importing this package registers every table with Base.metadata."""

from scentmatch.models.perfume import NOTE_LEVELS, Note, Perfume, PerfumeNote
from scentmatch.models.user import LoginCode, Session, UsageEvent, User

__all__ = [
    "NOTE_LEVELS",
    "LoginCode",
    "Note",
    "Perfume",
    "PerfumeNote",
    "Session",
    "UsageEvent",
    "User",
]

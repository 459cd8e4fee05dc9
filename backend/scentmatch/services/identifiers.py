"""
ScentMatch Backend — Contact Identifier Hashing
=================================================

What:  Normalizes and one-way hashes email addresses and phone numbers.
Why:   Only digests are persisted. A leaked users table does not reveal who
       signed up, while lookups by email still work because the digest is
       deterministic.
How:   normalize → SHA-256 → 64 lowercase hex characters.

Normalization rules:
    email: "  A@Test.com " → "a@test.com"       (trim + lower-case)
    phone: "+1 (555) 123-4567" → "15551234567"  (digits only)

    Neither function validates syntax. A string with no digits normalizes to
    "" and still hashes; rejecting blank input is the caller's job.
"""

import hashlib
import re

# [^0-9] rather than \D: \D would keep non-ASCII Unicode digits
_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_email(raw: str) -> str:
    return raw.strip().lower()


def normalize_phone(raw: str) -> str:
    return _NON_DIGITS.sub("", raw)


def hash_identifier(normalized: str) -> str:
    """
    Deterministic, irreversible digest of an already-normalized identifier.

    Returns:
        64-character lowercase hexadecimal SHA-256 digest.
    """
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def hash_email(raw: str) -> str:
    return hash_identifier(normalize_email(raw))


def hash_phone(raw: str) -> str:
    return hash_identifier(normalize_phone(raw))

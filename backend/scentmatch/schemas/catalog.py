"""
ScentMatch Backend — Catalog Request/Response Schemas
=======================================================

What:  API contract for perfumes, scent notes, and their links.
Why:   Validates admin writes and controls exactly which columns are exposed.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from scentmatch.schemas.common import CamelModel

NoteLevel = Literal["top", "heart", "base"]


def _clean_tags(values: List[str]) -> List[str]:
    """Trim, lower-case, and de-duplicate tags while keeping first-seen order."""
    seen: List[str] = []
    for value in values:
        tag = value.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


# ── Notes ─────────────────────────────────────────────────────────────────


class NoteCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100, description="Unique note name, e.g. Bergamot")
    note_family: str = Field(min_length=1, max_length=50, description="Scent family, e.g. citrus")

    @field_validator("name", "note_family")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped


class NoteResponse(CamelModel):
    id: uuid.UUID
    name: str
    note_family: str
    created_at: datetime


class NoteListResponse(CamelModel):
    notes: List[NoteResponse]
    total_count: int


# ── Perfume ↔ note links ──────────────────────────────────────────────────


class PerfumeNoteLink(CamelModel):
    """A note to attach to a perfume, at a pyramid level."""

    note_id: uuid.UUID
    level: NoteLevel


class PerfumeNoteResponse(CamelModel):
    note_id: uuid.UUID
    name: str
    note_family: str
    note_level: str


# ── Perfumes ──────────────────────────────────────────────────────────────


class PerfumeBase(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    brand: str = Field(min_length=1, max_length=255)
    gender_marketing: str = Field(min_length=1, max_length=50)
    price_tier: str = Field(min_length=1, max_length=50)
    approximate_price: Optional[float] = Field(default=None, ge=0)
    release_year: Optional[int] = Field(default=None, ge=1700, le=2100)
    concentration: Optional[str] = Field(default=None, max_length=50)
    intensity_tag: str = Field(min_length=1, max_length=50)
    season_tags: List[str] = Field(default_factory=list)
    climate_tags: List[str] = Field(default_factory=list)
    source_id: Optional[str] = Field(default=None, max_length=255)

    @field_validator("season_tags", "climate_tags")
    @classmethod
    def normalize_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)


class PerfumeCreate(PerfumeBase):
    notes: List[PerfumeNoteLink] = Field(default_factory=list)


class PerfumeUpdate(CamelModel):
    """Partial update. Only fields present in the request body are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    brand: Optional[str] = Field(default=None, min_length=1, max_length=255)
    gender_marketing: Optional[str] = Field(default=None, min_length=1, max_length=50)
    price_tier: Optional[str] = Field(default=None, min_length=1, max_length=50)
    approximate_price: Optional[float] = Field(default=None, ge=0)
    release_year: Optional[int] = Field(default=None, ge=1700, le=2100)
    concentration: Optional[str] = Field(default=None, max_length=50)
    intensity_tag: Optional[str] = Field(default=None, min_length=1, max_length=50)
    season_tags: Optional[List[str]] = None
    climate_tags: Optional[List[str]] = None
    source_id: Optional[str] = Field(default=None, max_length=255)

    @field_validator("season_tags", "climate_tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _clean_tags(v)


class PerfumeResponse(PerfumeBase):
    id: uuid.UUID
    created_at: datetime
    notes: List[PerfumeNoteResponse] = Field(default_factory=list)


class PerfumeListResponse(CamelModel):
    perfumes: List[PerfumeResponse]
    total_count: int
    limit: int
    offset: int
    has_more: bool

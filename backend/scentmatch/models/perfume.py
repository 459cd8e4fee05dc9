"""
ScentMatch Backend — Catalog SQLAlchemy Models
================================================

What:  ORM models for perfumes, scent notes, and the tagged join between them.
Why:   These are the attributes a future recommendation engine would consume
       (price tier, intensity, seasons, climates, note pyramid).

Table Design Rationale:
    - notes.name is UNIQUE: "Bergamot" exists once and is shared by perfumes.
    - perfume_notes is an association object (not a bare secondary table)
      because each link carries its own note_level (top / heart / base).
    - note_level is unconstrained text in storage so imported datasets with
      other level names load; the API only accepts top / heart / base.
    - UNIQUE (perfume_id, note_id): a note appears at most once per perfume.
    - Deleting a perfume or a note cascades to its links.
    - season_tags / climate_tags are string lists: PostgreSQL ARRAY in
      production, JSON on other dialects.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scentmatch.database import Base

NOTE_LEVELS = ("top", "heart", "base")

TagList = JSON().with_variant(postgresql.ARRAY(String(50)), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Perfume(Base):
    """
    A fragrance in the catalog.

    Query Patterns:
        - Filter by brand / price tier / intensity → single-column indexes
        - Perfumes containing a note → join through perfume_notes
    """

    __tablename__ = "perfumes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[str] = mapped_column(String(255), nullable=False)

    # feminine | masculine | unisex
    gender_marketing: Mapped[str] = mapped_column(String(50), nullable=False)

    # e.g. budget | designer | niche
    price_tier: Mapped[str] = mapped_column(String(50), nullable=False)
    approximate_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    release_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # EdC | EDT | EDP | Parfum
    concentration: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # e.g. light | moderate | strong
    intensity_tag: Mapped[str] = mapped_column(String(50), nullable=False)

    season_tags: Mapped[List[str]] = mapped_column(TagList, nullable=False, default=list)
    climate_tags: Mapped[List[str]] = mapped_column(TagList, nullable=False, default=list)

    # Identifier in the external dataset this row was ingested from
    source_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    perfume_notes: Mapped[List["PerfumeNote"]] = relationship(
        back_populates="perfume",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("perfumes_brand_idx", "brand"),
        Index("perfumes_price_tier_idx", "price_tier"),
        Index("perfumes_intensity_tag_idx", "intensity_tag"),
    )

    def __repr__(self) -> str:
        return f"<Perfume(id={self.id}, name='{self.name}', brand='{self.brand}')>"


class Note(Base):
    """A single scent note (e.g. Bergamot) and the family it belongs to."""

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # citrus | floral | woody | green | gourmand | spicy | powdery | resinous ...
    note_family: Mapped[str] = mapped_column(String(50), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    perfume_notes: Mapped[List["PerfumeNote"]] = relationship(
        back_populates="note",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("notes_note_family_idx", "note_family"),
    )

    def __repr__(self) -> str:
        return f"<Note(name='{self.name}', family='{self.note_family}')>"


class PerfumeNote(Base):
    """Links one perfume to one note at a given pyramid level."""

    __tablename__ = "perfume_notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    perfume_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("perfumes.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    note_level: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    perfume: Mapped["Perfume"] = relationship(back_populates="perfume_notes")
    note: Mapped["Note"] = relationship(back_populates="perfume_notes")

    __table_args__ = (
        UniqueConstraint("perfume_id", "note_id", name="perfume_notes_perfume_id_note_id_key"),
        Index("perfume_notes_perfume_id_idx", "perfume_id"),
        Index("perfume_notes_note_id_idx", "note_id"),
        Index("perfume_notes_note_level_idx", "note_level"),
    )

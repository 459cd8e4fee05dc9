"""
ScentMatch Backend — Catalog Service
======================================

What:  CRUD for perfumes, scent notes, and the perfume ↔ note links.
Why:   Keeps query construction and constraint handling out of the routes.
How:   Stateless service; every method receives the request's AsyncSession.

Constraint handling:
    notes.name UNIQUE                     → ConflictError on duplicate name
    perfume_notes (perfume_id, note_id)   → ConflictError on duplicate link
    FK to a missing perfume/note          → NotFoundError (checked up front)
    anything else from SQLAlchemy         → DatabaseError (generic message)
"""

import logging
import uuid
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from scentmatch.exceptions import ConflictError, DatabaseError, NotFoundError
from scentmatch.models import NOTE_LEVELS, Note, Perfume, PerfumeNote
from scentmatch.schemas.catalog import (
    NoteCreate,
    NoteListResponse,
    NoteResponse,
    PerfumeCreate,
    PerfumeListResponse,
    PerfumeNoteLink,
    PerfumeNoteResponse,
    PerfumeResponse,
    PerfumeUpdate,
)

logger = logging.getLogger(__name__)

_LEVEL_ORDER = {level: index for index, level in enumerate(NOTE_LEVELS)}
_NULLABLE_PERFUME_FIELDS = {"approximate_price", "release_year", "concentration", "source_id"}

# Demo rows used by scripts/seed_catalog.py
DEMO_NOTES = [
    ("Bergamot", "citrus"),
    ("Cedar", "woody"),
    ("Sandalwood", "woody"),
]
DEMO_PERFUME = {
    "name": "Bleu de Chanel",
    "brand": "Chanel",
    "gender_marketing": "masculine",
    "price_tier": "niche",
    "approximate_price": 135.0,
    "release_year": 2010,
    "concentration": "EDP",
    "intensity_tag": "moderate",
    "season_tags": ["fall", "winter", "spring"],
    "climate_tags": ["cold", "mild"],
}
DEMO_PYRAMID = {"Bergamot": "top", "Cedar": "heart", "Sandalwood": "base"}


def _perfume_to_response(perfume: Perfume) -> PerfumeResponse:
    links = sorted(
        perfume.perfume_notes,
        key=lambda pn: (_LEVEL_ORDER.get(pn.note_level, len(NOTE_LEVELS)), pn.note.name),
    )
    return PerfumeResponse(
        id=perfume.id,
        name=perfume.name,
        brand=perfume.brand,
        gender_marketing=perfume.gender_marketing,
        price_tier=perfume.price_tier,
        approximate_price=perfume.approximate_price,
        release_year=perfume.release_year,
        concentration=perfume.concentration,
        intensity_tag=perfume.intensity_tag,
        season_tags=list(perfume.season_tags or []),
        climate_tags=list(perfume.climate_tags or []),
        source_id=perfume.source_id,
        created_at=perfume.created_at,
        notes=[
            PerfumeNoteResponse(
                note_id=pn.note_id,
                name=pn.note.name,
                note_family=pn.note.note_family,
                note_level=pn.note_level,
            )
            for pn in links
        ],
    )


def _has_tag(tags: Optional[Iterable[str]], wanted: str) -> bool:
    return wanted.strip().lower() in (tags or [])


class CatalogService:
    """
    Business logic layer for catalog operations.

    Error Handling Strategy:
        Application exceptions propagate unchanged. SQLAlchemy errors are
        logged with full detail and re-raised as DatabaseError.
    """

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _flush(self, db: AsyncSession, conflict_message: str) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError(message=conflict_message) from e

    async def _load_perfume(self, db: AsyncSession, perfume_id: uuid.UUID) -> Perfume:
        result = await db.execute(
            select(Perfume)
            .where(Perfume.id == perfume_id)
            .options(selectinload(Perfume.perfume_notes).selectinload(PerfumeNote.note))
            .execution_options(populate_existing=True)
        )
        perfume = result.scalar_one_or_none()
        if perfume is None:
            raise NotFoundError(resource="perfume", resource_id=str(perfume_id))
        return perfume

    async def _require_notes(self, db: AsyncSession, note_ids: List[uuid.UUID]) -> None:
        if not note_ids:
            return
        result = await db.execute(select(Note.id).where(Note.id.in_(note_ids)))
        found = set(result.scalars().all())
        missing = [str(note_id) for note_id in note_ids if note_id not in found]
        if missing:
            raise NotFoundError(resource="note", resource_id=missing[0])

    # ── Notes ─────────────────────────────────────────────────────────────

    async def create_note(self, db: AsyncSession, data: NoteCreate) -> NoteResponse:
        try:
            note = Note(name=data.name, note_family=data.note_family.lower())
            db.add(note)
            await self._flush(db, f"Note '{data.name}' already exists")
            logger.info("Created note %s (%s)", note.name, note.note_family)
            return NoteResponse.model_validate(note)
        except SQLAlchemyError as e:
            logger.error("Database error creating note: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "create_note"}) from e

    async def get_note(self, db: AsyncSession, note_id: uuid.UUID) -> NoteResponse:
        try:
            note = await db.get(Note, note_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise DatabaseError(context={"note_id": str(note_id)}) from e
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return NoteResponse.model_validate(note)

    async def list_notes(
        self, db: AsyncSession, family: Optional[str] = None
    ) -> NoteListResponse:
        try:
            query = select(Note).order_by(Note.name)
            if family:
                query = query.where(Note.note_family == family.strip().lower())
            result = await db.execute(query)
            notes = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing notes: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "list_notes"}) from e
        return NoteListResponse(
            notes=[NoteResponse.model_validate(note) for note in notes],
            total_count=len(notes),
        )

    async def delete_note(self, db: AsyncSession, note_id: uuid.UUID) -> None:
        try:
            note = await db.get(Note, note_id)
            if note is None:
                raise NotFoundError(resource="note", resource_id=str(note_id))
            await db.delete(note)
            await db.flush()
            logger.info("Deleted note %s", note_id)
        except SQLAlchemyError as e:
            logger.error("Database error deleting note %s: %s", note_id, str(e))
            raise DatabaseError(context={"note_id": str(note_id)}) from e

    # ── Perfumes ──────────────────────────────────────────────────────────

    async def create_perfume(self, db: AsyncSession, data: PerfumeCreate) -> PerfumeResponse:
        """
        Create a perfume and, optionally, its note pyramid in one unit of work.

        Raises:
            NotFoundError: a referenced note does not exist
            ConflictError: the same note is listed twice
        """
        try:
            await self._require_notes(db, [link.note_id for link in data.notes])

            perfume = Perfume(**data.model_dump(exclude={"notes"}))
            db.add(perfume)
            await db.flush()

            for link in data.notes:
                db.add(PerfumeNote(perfume_id=perfume.id, note_id=link.note_id, note_level=link.level))
            await self._flush(db, "A note can only be linked to a perfume once")

            logger.info("Created perfume %s by %s with %d notes", perfume.name, perfume.brand, len(data.notes))
            return _perfume_to_response(await self._load_perfume(db, perfume.id))
        except SQLAlchemyError as e:
            logger.error("Database error creating perfume: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "create_perfume"}) from e

    async def get_perfume(self, db: AsyncSession, perfume_id: uuid.UUID) -> PerfumeResponse:
        try:
            return _perfume_to_response(await self._load_perfume(db, perfume_id))
        except SQLAlchemyError as e:
            logger.error("Database error fetching perfume %s: %s", perfume_id, str(e))
            raise DatabaseError(context={"perfume_id": str(perfume_id)}) from e

    async def list_perfumes(
        self,
        db: AsyncSession,
        brand: Optional[str] = None,
        price_tier: Optional[str] = None,
        intensity_tag: Optional[str] = None,
        note_name: Optional[str] = None,
        season: Optional[str] = None,
        climate: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> PerfumeListResponse:
        """
        Filtered, offset-paginated perfume listing.

        brand / price tier / intensity / note are SQL predicates, and without
        a tag filter the page and total come from LIMIT/OFFSET and COUNT(*).
        Season and climate tags are stored as ARRAY on PostgreSQL but JSON
        elsewhere, so those two filters are applied to the fetched rows and
        the page is sliced afterwards.
        """
        conditions = []
        if brand:
            conditions.append(func.lower(Perfume.brand) == brand.strip().lower())
        if price_tier:
            conditions.append(Perfume.price_tier == price_tier)
        if intensity_tag:
            conditions.append(Perfume.intensity_tag == intensity_tag)
        if note_name:
            conditions.append(
                Perfume.perfume_notes.any(
                    PerfumeNote.note.has(func.lower(Note.name) == note_name.strip().lower())
                )
            )
        filter_tags = bool(season or climate)

        try:
            query = (
                select(Perfume)
                .where(*conditions)
                .options(selectinload(Perfume.perfume_notes).selectinload(PerfumeNote.note))
                .order_by(Perfume.brand, Perfume.name, Perfume.id)
            )
            if not filter_tags:
                total_count = await db.scalar(
                    select(func.count()).select_from(Perfume).where(*conditions)
                ) or 0
                query = query.limit(limit).offset(offset)

            result = await db.execute(query)
            perfumes = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing perfumes: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "list_perfumes"}) from e

        if filter_tags:
            if season:
                perfumes = [p for p in perfumes if _has_tag(p.season_tags, season)]
            if climate:
                perfumes = [p for p in perfumes if _has_tag(p.climate_tags, climate)]
            total_count = len(perfumes)
            page = perfumes[offset:offset + limit]
        else:
            page = perfumes

        return PerfumeListResponse(
            perfumes=[_perfume_to_response(p) for p in page],
            total_count=total_count,
            limit=limit,
            offset=offset,
            has_more=offset + len(page) < total_count,
        )

    async def update_perfume(
        self, db: AsyncSession, perfume_id: uuid.UUID, data: PerfumeUpdate
    ) -> PerfumeResponse:
        try:
            perfume = await self._load_perfume(db, perfume_id)
            # An explicit null only clears optional columns; it never blanks a required one
            changes = {
                field: value
                for field, value in data.model_dump(exclude_unset=True).items()
                if value is not None or field in _NULLABLE_PERFUME_FIELDS
            }
            for field, value in changes.items():
                setattr(perfume, field, value)
            await db.flush()
            logger.info("Updated perfume %s: %s", perfume_id, sorted(changes))
            return _perfume_to_response(await self._load_perfume(db, perfume_id))
        except SQLAlchemyError as e:
            logger.error("Database error updating perfume %s: %s", perfume_id, str(e))
            raise DatabaseError(context={"perfume_id": str(perfume_id)}) from e

    async def delete_perfume(self, db: AsyncSession, perfume_id: uuid.UUID) -> None:
        try:
            perfume = await db.get(Perfume, perfume_id)
            if perfume is None:
                raise NotFoundError(resource="perfume", resource_id=str(perfume_id))
            await db.delete(perfume)
            await db.flush()
            logger.info("Deleted perfume %s", perfume_id)
        except SQLAlchemyError as e:
            logger.error("Database error deleting perfume %s: %s", perfume_id, str(e))
            raise DatabaseError(context={"perfume_id": str(perfume_id)}) from e

    # ── Links ─────────────────────────────────────────────────────────────

    async def link_note(
        self, db: AsyncSession, perfume_id: uuid.UUID, link: PerfumeNoteLink
    ) -> PerfumeResponse:
        """
        Attach a note to a perfume at a pyramid level.

        Raises:
            NotFoundError: unknown perfume or note
            ConflictError: the note is already linked to this perfume
        """
        try:
            await self._load_perfume(db, perfume_id)
            await self._require_notes(db, [link.note_id])
            db.add(PerfumeNote(perfume_id=perfume_id, note_id=link.note_id, note_level=link.level))
            await self._flush(db, "Note is already linked to this perfume")
            return _perfume_to_response(await self._load_perfume(db, perfume_id))
        except SQLAlchemyError as e:
            logger.error("Database error linking note to perfume %s: %s", perfume_id, str(e))
            raise DatabaseError(context={"perfume_id": str(perfume_id)}) from e

    async def unlink_note(
        self, db: AsyncSession, perfume_id: uuid.UUID, note_id: uuid.UUID
    ) -> None:
        try:
            result = await db.execute(
                delete(PerfumeNote).where(
                    PerfumeNote.perfume_id == perfume_id,
                    PerfumeNote.note_id == note_id,
                )
            )
        except SQLAlchemyError as e:
            logger.error("Database error unlinking note from perfume %s: %s", perfume_id, str(e))
            raise DatabaseError(context={"perfume_id": str(perfume_id)}) from e
        if result.rowcount == 0:
            raise NotFoundError(
                resource="perfume note",
                message="This note is not linked to this perfume",
            )

    # ── Seed data ─────────────────────────────────────────────────────────

    async def seed_demo_catalog(self, db: AsyncSession) -> PerfumeResponse:
        """
        Insert the demo notes and perfume if they are not there yet.

        Idempotent: notes are matched by name, the perfume by (brand, name).
        """
        try:
            notes_by_name = {}
            for name, family in DEMO_NOTES:
                result = await db.execute(select(Note).where(Note.name == name))
                note = result.scalar_one_or_none()
                if note is None:
                    note = Note(name=name, note_family=family)
                    db.add(note)
                    await db.flush()
                    logger.info("Seeded note %s", name)
                notes_by_name[name] = note

            result = await db.execute(
                select(Perfume).where(
                    Perfume.brand == DEMO_PERFUME["brand"],
                    Perfume.name == DEMO_PERFUME["name"],
                )
            )
            perfume = result.scalar_one_or_none()
            if perfume is None:
                perfume = Perfume(**DEMO_PERFUME)
                db.add(perfume)
                await db.flush()
                for name, level in DEMO_PYRAMID.items():
                    db.add(PerfumeNote(perfume_id=perfume.id, note_id=notes_by_name[name].id, note_level=level))
                await db.flush()
                logger.info("Seeded perfume %s", perfume.name)

            return _perfume_to_response(await self._load_perfume(db, perfume.id))
        except SQLAlchemyError as e:
            logger.error("Database error seeding catalog: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "seed_demo_catalog"}) from e


catalog_service = CatalogService()

"""
ScentMatch Backend — Catalog Route Handlers
=============================================

What:  Read endpoints for perfumes and notes, plus admin-only writes.
Why:   Catalog rows are maintained by administrators and ingestion jobs; the
       public only reads them.
How:   Thin handlers over CatalogService. Writes depend on require_admin,
       which checks the X-Admin-Key header against ADMIN_API_KEY.

Route Inventory:
    GET    /notes                               list (optional ?family=)
    GET    /notes/{note_id}
    POST   /notes                               admin
    DELETE /notes/{note_id}                     admin
    GET    /perfumes                            filter + paginate
    GET    /perfumes/{perfume_id}
    POST   /perfumes                            admin
    PATCH  /perfumes/{perfume_id}               admin
    DELETE /perfumes/{perfume_id}               admin
    POST   /perfumes/{perfume_id}/notes         admin, link a note
    DELETE /perfumes/{perfume_id}/notes/{id}    admin, unlink a note
"""

import logging
import secrets
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from scentmatch.config import settings
from scentmatch.database import get_db_session
from scentmatch.exceptions import UnauthorizedError
from scentmatch.schemas.catalog import (
    NoteCreate,
    NoteListResponse,
    NoteResponse,
    PerfumeCreate,
    PerfumeListResponse,
    PerfumeNoteLink,
    PerfumeResponse,
    PerfumeUpdate,
)
from scentmatch.schemas.common import ErrorResponse
from scentmatch.services.catalog_service import catalog_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Catalog"])

ADMIN_RESPONSES = {401: {"description": "Admin key missing or wrong", "model": ErrorResponse}}


def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """
    Guard for catalog writes.

    With no ADMIN_API_KEY configured every write is refused.
    """
    expected = settings.admin_api_key
    if not expected or not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise UnauthorizedError(message="Admin credentials required")


# ── Notes ─────────────────────────────────────────────────────────────────

@router.get("/notes", response_model=NoteListResponse, summary="List scent notes")
async def list_notes(
    family: Optional[str] = Query(default=None, description="Only notes of this family"),
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    return await catalog_service.list_notes(db, family=family)


@router.get(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Get a scent note",
)
async def get_note(note_id: UUID, db: AsyncSession = Depends(get_db_session)) -> NoteResponse:
    return await catalog_service.get_note(db, note_id)


@router.post(
    "/notes",
    status_code=201,
    response_model=NoteResponse,
    dependencies=[Depends(require_admin)],
    responses={**ADMIN_RESPONSES, 409: {"description": "Duplicate name", "model": ErrorResponse}},
    summary="Create a scent note",
)
async def create_note(body: NoteCreate, db: AsyncSession = Depends(get_db_session)) -> NoteResponse:
    return await catalog_service.create_note(db, body)


@router.delete(
    "/notes/{note_id}",
    status_code=204,
    dependencies=[Depends(require_admin)],
    responses={**ADMIN_RESPONSES, 404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Delete a scent note and its perfume links",
)
async def delete_note(note_id: UUID, db: AsyncSession = Depends(get_db_session)) -> Response:
    await catalog_service.delete_note(db, note_id)
    return Response(status_code=204)


# ── Perfumes ──────────────────────────────────────────────────────────────

@router.get("/perfumes", response_model=PerfumeListResponse, summary="List perfumes")
async def list_perfumes(
    response: Response,
    brand: Optional[str] = Query(default=None),
    price_tier: Optional[str] = Query(default=None, alias="priceTier"),
    intensity: Optional[str] = Query(default=None, description="Intensity tag"),
    note: Optional[str] = Query(default=None, description="Contains this note (by name)"),
    season: Optional[str] = Query(default=None),
    climate: Optional[str] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db_session),
) -> PerfumeListResponse:
    result = await catalog_service.list_perfumes(
        db,
        brand=brand,
        price_tier=price_tier,
        intensity_tag=intensity,
        note_name=note,
        season=season,
        climate=climate,
        limit=limit,
        offset=offset,
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/perfumes/{perfume_id}",
    response_model=PerfumeResponse,
    responses={404: {"description": "Perfume not found", "model": ErrorResponse}},
    summary="Get a perfume with its notes",
)
async def get_perfume(perfume_id: UUID, db: AsyncSession = Depends(get_db_session)) -> PerfumeResponse:
    return await catalog_service.get_perfume(db, perfume_id)


@router.post(
    "/perfumes",
    status_code=201,
    response_model=PerfumeResponse,
    dependencies=[Depends(require_admin)],
    responses={
        **ADMIN_RESPONSES,
        404: {"description": "Referenced note not found", "model": ErrorResponse},
        409: {"description": "Note listed twice", "model": ErrorResponse},
    },
    summary="Create a perfume",
)
async def create_perfume(body: PerfumeCreate, db: AsyncSession = Depends(get_db_session)) -> PerfumeResponse:
    return await catalog_service.create_perfume(db, body)


@router.patch(
    "/perfumes/{perfume_id}",
    response_model=PerfumeResponse,
    dependencies=[Depends(require_admin)],
    responses={**ADMIN_RESPONSES, 404: {"description": "Perfume not found", "model": ErrorResponse}},
    summary="Update perfume attributes",
)
async def update_perfume(
    perfume_id: UUID,
    body: PerfumeUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> PerfumeResponse:
    return await catalog_service.update_perfume(db, perfume_id, body)


@router.delete(
    "/perfumes/{perfume_id}",
    status_code=204,
    dependencies=[Depends(require_admin)],
    responses={**ADMIN_RESPONSES, 404: {"description": "Perfume not found", "model": ErrorResponse}},
    summary="Delete a perfume and its note links",
)
async def delete_perfume(perfume_id: UUID, db: AsyncSession = Depends(get_db_session)) -> Response:
    await catalog_service.delete_perfume(db, perfume_id)
    return Response(status_code=204)


@router.post(
    "/perfumes/{perfume_id}/notes",
    status_code=201,
    response_model=PerfumeResponse,
    dependencies=[Depends(require_admin)],
    responses={
        **ADMIN_RESPONSES,
        404: {"description": "Perfume or note not found", "model": ErrorResponse},
        409: {"description": "Already linked", "model": ErrorResponse},
    },
    summary="Link a note to a perfume",
)
async def link_note(
    perfume_id: UUID,
    body: PerfumeNoteLink,
    db: AsyncSession = Depends(get_db_session),
) -> PerfumeResponse:
    return await catalog_service.link_note(db, perfume_id, body)


@router.delete(
    "/perfumes/{perfume_id}/notes/{note_id}",
    status_code=204,
    dependencies=[Depends(require_admin)],
    responses={**ADMIN_RESPONSES, 404: {"description": "Link not found", "model": ErrorResponse}},
    summary="Unlink a note from a perfume",
)
async def unlink_note(
    perfume_id: UUID,
    note_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await catalog_service.unlink_note(db, perfume_id, note_id)
    return Response(status_code=204)

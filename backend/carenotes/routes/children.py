"""
CareNotes Backend - Children & Organisations Routes
====================================================

What:  CRUD for looked-after children and registered care organisations,
       plus the per-organisation monitoring lists homes check daily.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.auth import get_current_actor
from carenotes.database import get_db_session
from carenotes.schemas.child import (
    ChildCreate,
    ChildResponse,
    ChildUpdate,
    OrganisationCreate,
    OrganisationResponse,
    OrganisationUpdate,
)
from carenotes.schemas.common import ErrorResponse
from carenotes.schemas.placement import PlacementResponse
from carenotes.services.child_service import child_service
from carenotes.services.organisation_service import organisation_service
from carenotes.services.placement_service import placement_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Children"], dependencies=[Depends(get_current_actor)])

NOT_FOUND = {404: {"description": "Not found", "model": ErrorResponse}}


# ── Children ──────────────────────────────────────────────────────────────

@router.post("/children", status_code=201, response_model=ChildResponse, summary="Register a child")
async def create_child(
    data: ChildCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await child_service.create_child(db, data, actor)


@router.get("/children", response_model=List[ChildResponse], summary="List children")
async def list_children(
    active_only: bool = Query(default=True),
    local_authority: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db_session),
):
    return await child_service.list_children(
        db, active_only=active_only, local_authority=local_authority, limit=limit, offset=offset
    )


@router.get("/children/{child_id}", response_model=ChildResponse, responses=NOT_FOUND)
async def get_child(child_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await child_service.get_child(db, child_id)


@router.patch("/children/{child_id}", response_model=ChildResponse, responses=NOT_FOUND)
async def update_child(
    child_id: UUID,
    data: ChildUpdate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await child_service.update_child(db, child_id, data, actor)


@router.get(
    "/children/{child_id}/placements",
    response_model=List[PlacementResponse],
    summary="Placement history for a child, newest first",
)
async def get_child_placements(child_id: UUID, db: AsyncSession = Depends(get_db_session)):
    await child_service.get_child(db, child_id)
    return await placement_service.get_placements_by_child(db, child_id)


# ── Organisations ─────────────────────────────────────────────────────────

@router.post(
    "/organisations",
    status_code=201,
    response_model=OrganisationResponse,
    tags=["Organisations"],
    summary="Register a care organisation",
)
async def create_organisation(
    data: OrganisationCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await organisation_service.create_organisation(db, data, actor)


@router.get("/organisations", response_model=List[OrganisationResponse], tags=["Organisations"])
async def list_organisations(
    active_only: bool = Query(default=True),
    db: AsyncSession = Depends(get_db_session),
):
    return await organisation_service.list_organisations(db, active_only=active_only)


@router.get(
    "/organisations/{organisation_id}",
    response_model=OrganisationResponse,
    responses=NOT_FOUND,
    tags=["Organisations"],
)
async def get_organisation(organisation_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await organisation_service.get_organisation(db, organisation_id)


@router.patch(
    "/organisations/{organisation_id}",
    response_model=OrganisationResponse,
    responses=NOT_FOUND,
    tags=["Organisations"],
)
async def update_organisation(
    organisation_id: UUID,
    data: OrganisationUpdate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await organisation_service.update_organisation(db, organisation_id, data, actor)


# ── Monitoring lists ──────────────────────────────────────────────────────

@router.get(
    "/organisations/{organisation_id}/placements/active",
    response_model=List[PlacementResponse],
    tags=["Organisations"],
)
async def get_active_placements(organisation_id: UUID, db: AsyncSession = Depends(get_db_session)):
    await organisation_service.get_organisation(db, organisation_id)
    return await placement_service.get_active_placements_by_organisation(db, organisation_id)


@router.get(
    "/organisations/{organisation_id}/placements/overdue-72-hour-reviews",
    response_model=List[PlacementResponse],
    tags=["Organisations"],
    summary="Active placements whose 72-hour review date has passed uncompleted",
)
async def get_overdue_72_hour_reviews(
    organisation_id: UUID, db: AsyncSession = Depends(get_db_session)
):
    await organisation_service.get_organisation(db, organisation_id)
    return await placement_service.get_overdue_72_hour_reviews(db, organisation_id)


@router.get(
    "/organisations/{organisation_id}/placements/overdue-reviews",
    response_model=List[PlacementResponse],
    tags=["Organisations"],
)
async def get_overdue_placement_reviews(
    organisation_id: UUID, db: AsyncSession = Depends(get_db_session)
):
    await organisation_service.get_organisation(db, organisation_id)
    return await placement_service.get_overdue_placement_reviews(db, organisation_id)


@router.get(
    "/organisations/{organisation_id}/placements/at-risk",
    response_model=List[PlacementResponse],
    tags=["Organisations"],
)
async def get_placements_at_risk(organisation_id: UUID, db: AsyncSession = Depends(get_db_session)):
    await organisation_service.get_organisation(db, organisation_id)
    return await placement_service.get_placements_at_risk(db, organisation_id)

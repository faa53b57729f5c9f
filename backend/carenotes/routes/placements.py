"""
CareNotes Backend - Placement Routes
=====================================

What:  Placement lifecycle, placement requests (with matching) and placement
       reviews.
How:   Thin handlers: parse the body, call PlacementService or
       MatchingService, let the global handlers format any CareNotesError.

Lifecycle endpoints:
    POST /api/placements                    → PENDING_ARRIVAL
    POST /api/placements/{id}/activate      PENDING_ARRIVAL → ACTIVE
    POST /api/placements/{id}/end           → ENDED
    POST /api/placements/{id}/breakdown     → BREAKDOWN
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.auth import get_current_actor
from carenotes.database import get_db_session
from carenotes.schemas.common import ErrorResponse
from carenotes.schemas.matching import MatchScore
from carenotes.schemas.placement import (
    PlacementBreakdown,
    PlacementCreate,
    PlacementEnd,
    PlacementRequestCreate,
    PlacementRequestMatch,
    PlacementRequestResponse,
    PlacementRequestStatusUpdate,
    PlacementResponse,
    PlacementReviewComplete,
    PlacementReviewCreate,
    PlacementReviewResponse,
    PlacementStatistics,
    PlacementUpdate,
)
from carenotes.services.matching_service import matching_service
from carenotes.services.placement_service import placement_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Placements"], dependencies=[Depends(get_current_actor)])

TRANSITION_ERRORS = {
    400: {"description": "Transition not allowed from the current status", "model": ErrorResponse},
    404: {"description": "Not found", "model": ErrorResponse},
}


# ── Placements ────────────────────────────────────────────────────────────

@router.post(
    "/placements",
    status_code=201,
    response_model=PlacementResponse,
    responses={
        400: {"description": "Organisation inactive or full", "model": ErrorResponse},
        404: {"description": "Child, organisation or request not found", "model": ErrorResponse},
        409: {"description": "Child already has an open placement", "model": ErrorResponse},
    },
    summary="Create a placement",
)
async def create_placement(
    data: PlacementCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    """
    Creates a PENDING_ARRIVAL placement, takes one of the organisation's
    places and, when placement_request_id is given, marks that request PLACED.
    """
    return await placement_service.create_placement(db, data, actor)


@router.get(
    "/placements/statistics/{organisation_id}",
    response_model=PlacementStatistics,
    summary="Placement statistics for an organisation",
)
async def get_placement_statistics(
    organisation_id: UUID, db: AsyncSession = Depends(get_db_session)
):
    return await placement_service.get_placement_statistics(db, organisation_id)


@router.get("/placements/{placement_id}", response_model=PlacementResponse)
async def get_placement(placement_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await placement_service.get_placement(db, placement_id)


@router.patch("/placements/{placement_id}", response_model=PlacementResponse)
async def update_placement(
    placement_id: UUID,
    data: PlacementUpdate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.update_placement(db, placement_id, data, actor)


@router.post(
    "/placements/{placement_id}/activate",
    response_model=PlacementResponse,
    responses=TRANSITION_ERRORS,
)
async def activate_placement(
    placement_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.activate_placement(db, placement_id, actor)


@router.post(
    "/placements/{placement_id}/end",
    response_model=PlacementResponse,
    responses=TRANSITION_ERRORS,
)
async def end_placement(
    placement_id: UUID,
    data: PlacementEnd,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.end_placement(db, placement_id, data, actor)


@router.post(
    "/placements/{placement_id}/breakdown",
    response_model=PlacementResponse,
    responses=TRANSITION_ERRORS,
)
async def mark_as_breakdown(
    placement_id: UUID,
    data: PlacementBreakdown,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.mark_as_breakdown(db, placement_id, data.reason, actor)


# ── Reviews ───────────────────────────────────────────────────────────────

@router.post(
    "/placements/{placement_id}/reviews",
    status_code=201,
    response_model=PlacementReviewResponse,
    tags=["Placement Reviews"],
)
async def create_placement_review(
    placement_id: UUID,
    data: PlacementReviewCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.create_placement_review(
        db, placement_id, data.review_type, data.scheduled_date, actor
    )


@router.get(
    "/placements/{placement_id}/reviews",
    response_model=List[PlacementReviewResponse],
    tags=["Placement Reviews"],
)
async def get_reviews_for_placement(placement_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await placement_service.get_reviews_for_placement(db, placement_id)


@router.post(
    "/placement-reviews/{review_id}/complete",
    response_model=PlacementReviewResponse,
    responses=TRANSITION_ERRORS,
    tags=["Placement Reviews"],
)
async def complete_placement_review(
    review_id: UUID,
    data: PlacementReviewComplete,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.complete_placement_review(db, review_id, data, actor)


# ── Placement requests ────────────────────────────────────────────────────

@router.post(
    "/placement-requests",
    status_code=201,
    response_model=PlacementRequestResponse,
    tags=["Placement Requests"],
)
async def create_placement_request(
    data: PlacementRequestCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.create_placement_request(db, data, actor)


@router.get(
    "/placement-requests/urgent",
    response_model=List[PlacementRequestResponse],
    tags=["Placement Requests"],
    summary="Open URGENT and EMERGENCY requests, soonest start first",
)
async def get_urgent_placement_requests(db: AsyncSession = Depends(get_db_session)):
    return await placement_service.get_urgent_placement_requests(db)


@router.get(
    "/placement-requests/overdue",
    response_model=List[PlacementRequestResponse],
    tags=["Placement Requests"],
    summary="Unplaced requests whose required start date has passed",
)
async def get_overdue_placement_requests(db: AsyncSession = Depends(get_db_session)):
    return await placement_service.get_overdue_placement_requests(db)


@router.get(
    "/placement-requests/{request_id}",
    response_model=PlacementRequestResponse,
    tags=["Placement Requests"],
)
async def get_placement_request(request_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await placement_service.get_placement_request(db, request_id)


@router.post(
    "/placement-requests/{request_id}/status",
    response_model=PlacementRequestResponse,
    tags=["Placement Requests"],
)
async def update_placement_request_status(
    request_id: UUID,
    data: PlacementRequestStatusUpdate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.update_placement_request_status(
        db, request_id, data.status, actor, data.reason
    )


@router.post(
    "/placement-requests/{request_id}/match",
    response_model=PlacementRequestResponse,
    responses={409: {"description": "Request already matched", "model": ErrorResponse}},
    tags=["Placement Requests"],
)
async def match_placement_request(
    request_id: UUID,
    data: PlacementRequestMatch,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await placement_service.match_placement_request(
        db, request_id, data.organisation_id, actor
    )


@router.get(
    "/placement-requests/{request_id}/suitable-placements",
    response_model=List[MatchScore],
    tags=["Placement Requests"],
    summary="Rank care organisations for a placement request",
    description=(
        "Scores every active organisation out of 100 across capacity, location, "
        "specialisms, age, gender, cultural needs, medical needs, behavioural risk, "
        "education and accessibility, best match first."
    ),
)
async def find_suitable_placements(
    request_id: UUID,
    min_percentage: float | None = Query(default=None, ge=0, le=100),
    limit: int | None = Query(default=None, ge=1, le=100),
    include_unsuitable: bool = Query(default=True),
    db: AsyncSession = Depends(get_db_session),
):
    return await matching_service.find_suitable_placements(
        db,
        request_id,
        min_percentage=min_percentage,
        limit=limit,
        include_unsuitable=include_unsuitable,
    )

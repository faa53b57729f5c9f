"""
CareNotes Backend - Placement Agreement Routes
===============================================

What:  Drafting, approval and termination of placement agreements.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.auth import get_current_actor
from carenotes.database import get_db_session
from carenotes.schemas.agreement import AgreementCreate, AgreementResponse, AgreementTerminate
from carenotes.schemas.common import ErrorResponse
from carenotes.services.agreement_service import agreement_service

router = APIRouter(prefix="/api", tags=["Agreements"], dependencies=[Depends(get_current_actor)])


@router.post(
    "/placements/{placement_id}/agreements",
    status_code=201,
    response_model=AgreementResponse,
    responses={409: {"description": "Placement already has a live agreement", "model": ErrorResponse}},
    summary="Draft a placement agreement",
)
async def create_agreement(
    placement_id: UUID,
    data: AgreementCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await agreement_service.create_agreement(db, placement_id, data, actor)


@router.get("/placements/{placement_id}/agreements", response_model=List[AgreementResponse])
async def get_agreements_for_placement(placement_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await agreement_service.get_agreements_for_placement(db, placement_id)


@router.get("/agreements/{agreement_id}", response_model=AgreementResponse)
async def get_agreement(agreement_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await agreement_service.get_agreement(db, agreement_id)


@router.post("/agreements/{agreement_id}/submit", response_model=AgreementResponse)
async def submit_for_approval(
    agreement_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await agreement_service.submit_for_approval(db, agreement_id, actor)


@router.post("/agreements/{agreement_id}/approve", response_model=AgreementResponse)
async def approve_agreement(
    agreement_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await agreement_service.approve_agreement(db, agreement_id, actor)


@router.post("/agreements/{agreement_id}/terminate", response_model=AgreementResponse)
async def terminate_agreement(
    agreement_id: UUID,
    data: AgreementTerminate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await agreement_service.terminate_agreement(db, agreement_id, data.reason, actor)

"""
CareNotes Backend - Medication Routes
======================================

What:  Prescribing for a child, Gillick competence assessments, side effect
       reports and the child's medication list with safety alerts.
Who:   Used by nurses and prescribers; residential staff report side effects.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.auth import get_current_actor
from carenotes.database import get_db_session
from carenotes.schemas.common import ErrorResponse
from carenotes.schemas.medication import (
    ChildMedications,
    DosingCheck,
    DosingCheckRequest,
    GillickAssessment,
    MedicationDiscontinue,
    MedicationPrescribe,
    MedicationResponse,
    SideEffectReport,
)
from carenotes.services.medication_service import medication_service

router = APIRouter(prefix="/api", tags=["Medication"], dependencies=[Depends(get_current_actor)])


@router.post(
    "/children/{child_id}/medications",
    status_code=201,
    response_model=MedicationResponse,
    responses={
        400: {"description": "Weight missing, dose too high or contraindicated", "model": ErrorResponse},
        403: {"description": "Consent not valid for the child's age", "model": ErrorResponse},
    },
    summary="Prescribe a medicine for a child",
)
async def prescribe_for_child(
    child_id: UUID,
    data: MedicationPrescribe,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await medication_service.prescribe_for_child(db, child_id, data, actor)


@router.get(
    "/children/{child_id}/medications",
    response_model=ChildMedications,
    summary="A child's medications, newest first, with safety alerts",
)
async def get_medications_for_child(child_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await medication_service.get_medications_for_child(db, child_id)


@router.post(
    "/children/{child_id}/medications/dosing-check",
    response_model=DosingCheck,
    summary="Check a proposed dose without prescribing",
)
async def check_dosing(
    child_id: UUID,
    data: DosingCheckRequest,
    db: AsyncSession = Depends(get_db_session),
):
    return await medication_service.check_dosing(
        db, child_id, data.medication_name, data.dosage, data.weight_kg
    )


@router.get("/medications/{medication_id}", response_model=MedicationResponse)
async def get_medication(medication_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await medication_service.get_medication(db, medication_id)


@router.post("/medications/{medication_id}/gillick-assessment", response_model=MedicationResponse)
async def conduct_gillick_assessment(
    medication_id: UUID,
    data: GillickAssessment,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await medication_service.conduct_gillick_assessment(db, medication_id, data, actor)


@router.post("/medications/{medication_id}/side-effects", response_model=MedicationResponse)
async def record_side_effect(
    medication_id: UUID,
    data: SideEffectReport,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await medication_service.record_side_effect(db, medication_id, data, actor)


@router.post("/medications/{medication_id}/discontinue", response_model=MedicationResponse)
async def discontinue_medication(
    medication_id: UUID,
    data: MedicationDiscontinue,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await medication_service.discontinue_medication(db, medication_id, data.reason, actor)

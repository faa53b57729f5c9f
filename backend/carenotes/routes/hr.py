"""
CareNotes Backend - HR Routes
==============================

What:  Employees, time-off requests and shift swaps under /api/hr.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.auth import get_current_actor
from carenotes.database import get_db_session
from carenotes.models.hr import RequestStatus
from carenotes.schemas.common import ErrorResponse
from carenotes.schemas.hr import (
    EmployeeCreate,
    EmployeeResponse,
    RequestDecision,
    ShiftSwapCreate,
    ShiftSwapResponse,
    TimeOffCreate,
    TimeOffResponse,
)
from carenotes.services.hr_service import hr_service

router = APIRouter(prefix="/api/hr", tags=["HR"], dependencies=[Depends(get_current_actor)])


# ── Employees ─────────────────────────────────────────────────────────────

@router.post(
    "/employees",
    status_code=201,
    response_model=EmployeeResponse,
    responses={409: {"description": "Employee number already in use", "model": ErrorResponse}},
)
async def create_employee(
    data: EmployeeCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await hr_service.create_employee(db, data, actor)


@router.get("/employees", response_model=List[EmployeeResponse])
async def list_employees(
    organisation_id: UUID | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
):
    return await hr_service.list_employees(db, organisation_id)


@router.get("/employees/{employee_id}", response_model=EmployeeResponse)
async def get_employee(employee_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await hr_service.get_employee(db, employee_id)


# ── Time off ──────────────────────────────────────────────────────────────

@router.post(
    "/time-off",
    status_code=201,
    response_model=TimeOffResponse,
    responses={409: {"description": "Overlaps approved leave", "model": ErrorResponse}},
)
async def request_time_off(
    data: TimeOffCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await hr_service.request_time_off(db, data, actor)


@router.get("/time-off", response_model=List[TimeOffResponse])
async def list_time_off(
    employee_id: UUID | None = Query(default=None),
    status: RequestStatus | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
):
    return await hr_service.list_time_off(db, employee_id, status)


@router.post("/time-off/{request_id}/approve", response_model=TimeOffResponse)
async def approve_time_off(
    request_id: UUID,
    data: RequestDecision,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await hr_service.approve_time_off(db, request_id, actor, data.notes)


@router.post("/time-off/{request_id}/reject", response_model=TimeOffResponse)
async def reject_time_off(
    request_id: UUID,
    data: RequestDecision,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await hr_service.reject_time_off(db, request_id, actor, data.notes)


# ── Shift swaps ───────────────────────────────────────────────────────────

@router.post("/shift-swaps", status_code=201, response_model=ShiftSwapResponse)
async def request_shift_swap(
    data: ShiftSwapCreate,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await hr_service.request_shift_swap(db, data, actor)


@router.get("/shift-swaps/{swap_id}", response_model=ShiftSwapResponse)
async def get_shift_swap(swap_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await hr_service.get_shift_swap(db, swap_id)


@router.post("/shift-swaps/{swap_id}/approve", response_model=ShiftSwapResponse)
async def approve_shift_swap(
    swap_id: UUID,
    data: RequestDecision,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await hr_service.approve_shift_swap(db, swap_id, actor, data.notes)


@router.post("/shift-swaps/{swap_id}/reject", response_model=ShiftSwapResponse)
async def reject_shift_swap(
    swap_id: UUID,
    data: RequestDecision,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await hr_service.reject_shift_swap(db, swap_id, actor, data.notes)


@router.post("/shift-swaps/{swap_id}/cancel", response_model=ShiftSwapResponse)
async def cancel_shift_swap(
    swap_id: UUID,
    data: RequestDecision,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await hr_service.cancel_shift_swap(db, swap_id, actor, data.notes)

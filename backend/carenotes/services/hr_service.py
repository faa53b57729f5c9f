"""
CareNotes Backend - HR Service
===============================

What:  Employees, time-off requests and shift swaps for a home's rota.
How:   Requests start PENDING and are decided once: APPROVED, REJECTED or
       (shift swaps only) CANCELLED by the requester.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.database import utcnow
from carenotes.exceptions import ConflictError, ValidationError
from carenotes.models.hr import EmployeeProfile, RequestStatus, ShiftSwap, TimeOffRequest
from carenotes.schemas.hr import EmployeeCreate, ShiftSwapCreate, TimeOffCreate
from carenotes.services.base import fetch_or_404, flush
from carenotes.services.organisation_service import organisation_service

logger = logging.getLogger(__name__)


def _decide(request, status: RequestStatus, actor: str, notes: Optional[str], kind: str) -> None:
    if request.status != RequestStatus.PENDING:
        raise ValidationError(
            f"{kind} has already been {request.status.value.lower()}", field="status"
        )
    request.status = status
    request.decided_by = actor
    request.decided_at = utcnow()
    request.decision_notes = notes
    request.updated_by = actor


class HRService:

    # ── Employees ─────────────────────────────────────────────────────────

    async def create_employee(
        self, db: AsyncSession, data: EmployeeCreate, actor: str
    ) -> EmployeeProfile:
        """
        Raises:
            NotFoundError: Organisation does not exist
            ConflictError: Employee number already in use
        """
        await organisation_service.get_organisation(db, data.organisation_id)
        employee = EmployeeProfile(**data.model_dump(), created_by=actor, updated_by=actor)
        db.add(employee)
        await flush(db, "create employee")
        logger.info("Employee %s created", employee.employee_number)
        return employee

    async def get_employee(self, db: AsyncSession, employee_id: UUID) -> EmployeeProfile:
        return await fetch_or_404(db, EmployeeProfile, employee_id, "employee")

    async def list_employees(
        self, db: AsyncSession, organisation_id: Optional[UUID] = None
    ) -> List[EmployeeProfile]:
        query = select(EmployeeProfile).where(EmployeeProfile.is_active.is_(True))
        if organisation_id:
            query = query.where(EmployeeProfile.organisation_id == organisation_id)
        result = await db.execute(query.order_by(EmployeeProfile.last_name, EmployeeProfile.first_name))
        return list(result.scalars().all())

    # ── Time off ──────────────────────────────────────────────────────────

    async def request_time_off(
        self, db: AsyncSession, data: TimeOffCreate, actor: str
    ) -> TimeOffRequest:
        """
        Raises:
            NotFoundError: Employee does not exist
            ValidationError: End date before start date
            ConflictError: Overlaps leave already approved for the employee
        """
        employee = await self.get_employee(db, data.employee_id)
        if data.end_date < data.start_date:
            raise ValidationError("End date cannot be before start date", field="end_date")

        overlapping = await db.scalar(
            select(TimeOffRequest).where(
                TimeOffRequest.employee_id == employee.id,
                TimeOffRequest.status == RequestStatus.APPROVED,
                TimeOffRequest.start_date <= data.end_date,
                TimeOffRequest.end_date >= data.start_date,
            )
        )
        if overlapping is not None:
            raise ConflictError(
                message=(
                    f"{employee.full_name} already has approved leave from "
                    f"{overlapping.start_date} to {overlapping.end_date}"
                ),
                context={"time_off_id": str(overlapping.id)},
            )

        request = TimeOffRequest(
            **data.model_dump(),
            status=RequestStatus.PENDING,
            created_by=actor,
            updated_by=actor,
        )
        db.add(request)
        await flush(db, "request time off")
        return request

    async def get_time_off(self, db: AsyncSession, request_id: UUID) -> TimeOffRequest:
        return await fetch_or_404(db, TimeOffRequest, request_id, "time off request")

    async def list_time_off(
        self,
        db: AsyncSession,
        employee_id: Optional[UUID] = None,
        status: Optional[RequestStatus] = None,
    ) -> List[TimeOffRequest]:
        query = select(TimeOffRequest)
        if employee_id:
            query = query.where(TimeOffRequest.employee_id == employee_id)
        if status:
            query = query.where(TimeOffRequest.status == status)
        result = await db.execute(query.order_by(TimeOffRequest.start_date))
        return list(result.scalars().all())

    async def approve_time_off(
        self, db: AsyncSession, request_id: UUID, actor: str, notes: Optional[str] = None
    ) -> TimeOffRequest:
        request = await self.get_time_off(db, request_id)
        _decide(request, RequestStatus.APPROVED, actor, notes, "Time off request")
        await flush(db, "approve time off")
        logger.info("Time off %s approved by %s", request_id, actor)
        return request

    async def reject_time_off(
        self, db: AsyncSession, request_id: UUID, actor: str, notes: Optional[str] = None
    ) -> TimeOffRequest:
        request = await self.get_time_off(db, request_id)
        _decide(request, RequestStatus.REJECTED, actor, notes, "Time off request")
        await flush(db, "reject time off")
        return request

    # ── Shift swaps ───────────────────────────────────────────────────────

    async def request_shift_swap(
        self, db: AsyncSession, data: ShiftSwapCreate, actor: str
    ) -> ShiftSwap:
        """
        Raises:
            NotFoundError: Either employee does not exist
            ValidationError: Shift ends before it starts, the employees are
                             the same person, or work for different homes
        """
        if data.shift_end <= data.shift_start:
            raise ValidationError("Shift must end after it starts", field="shift_end")
        if data.requester_id == data.target_employee_id:
            raise ValidationError(
                "An employee cannot swap a shift with themselves", field="target_employee_id"
            )

        requester = await self.get_employee(db, data.requester_id)
        target = await self.get_employee(db, data.target_employee_id)
        if requester.organisation_id != target.organisation_id:
            raise ValidationError(
                "Shift swaps are only possible within the same organisation",
                field="target_employee_id",
            )

        swap = ShiftSwap(
            **data.model_dump(),
            status=RequestStatus.PENDING,
            created_by=actor,
            updated_by=actor,
        )
        db.add(swap)
        await flush(db, "request shift swap")
        return swap

    async def get_shift_swap(self, db: AsyncSession, swap_id: UUID) -> ShiftSwap:
        return await fetch_or_404(db, ShiftSwap, swap_id, "shift swap")

    async def approve_shift_swap(
        self, db: AsyncSession, swap_id: UUID, actor: str, notes: Optional[str] = None
    ) -> ShiftSwap:
        swap = await self.get_shift_swap(db, swap_id)
        _decide(swap, RequestStatus.APPROVED, actor, notes, "Shift swap")
        await flush(db, "approve shift swap")
        return swap

    async def reject_shift_swap(
        self, db: AsyncSession, swap_id: UUID, actor: str, notes: Optional[str] = None
    ) -> ShiftSwap:
        swap = await self.get_shift_swap(db, swap_id)
        _decide(swap, RequestStatus.REJECTED, actor, notes, "Shift swap")
        await flush(db, "reject shift swap")
        return swap

    async def cancel_shift_swap(
        self, db: AsyncSession, swap_id: UUID, actor: str, notes: Optional[str] = None
    ) -> ShiftSwap:
        swap = await self.get_shift_swap(db, swap_id)
        _decide(swap, RequestStatus.CANCELLED, actor, notes, "Shift swap")
        await flush(db, "cancel shift swap")
        return swap


hr_service = HRService()

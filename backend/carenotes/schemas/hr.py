"""
CareNotes Backend - HR Schemas
===============================

What:  Request/response contracts for /api/hr.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from carenotes.models.hr import EmployeeRole, RequestStatus, TimeOffType


class EmployeeCreate(BaseModel):
    employee_number: str = Field(min_length=1, max_length=50)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=200)
    role: EmployeeRole
    organisation_id: uuid.UUID
    start_date: date


class EmployeeResponse(EmployeeCreate):
    id: uuid.UUID
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TimeOffCreate(BaseModel):
    employee_id: uuid.UUID
    time_off_type: TimeOffType
    start_date: date
    end_date: date
    reason: Optional[str] = None


class TimeOffResponse(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    time_off_type: TimeOffType
    start_date: date
    end_date: date
    days_requested: int
    reason: Optional[str] = None
    status: RequestStatus
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    decision_notes: Optional[str] = None

    model_config = {"from_attributes": True}


class ShiftSwapCreate(BaseModel):
    requester_id: uuid.UUID
    target_employee_id: uuid.UUID
    shift_start: datetime
    shift_end: datetime
    reason: Optional[str] = None


class ShiftSwapResponse(BaseModel):
    id: uuid.UUID
    requester_id: uuid.UUID
    target_employee_id: uuid.UUID
    shift_start: datetime
    shift_end: datetime
    reason: Optional[str] = None
    status: RequestStatus
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    decision_notes: Optional[str] = None

    model_config = {"from_attributes": True}


class RequestDecision(BaseModel):
    notes: Optional[str] = None

"""
CareNotes Backend - HR Models
==============================

What:  Staff records needed to run a home's rota: employees, time-off
       requests and shift swaps between two employees.
"""

import enum
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base
from carenotes.models._types import enum_column


class EmployeeRole(str, enum.Enum):
    CARE_WORKER = "CARE_WORKER"
    SENIOR_CARE_WORKER = "SENIOR_CARE_WORKER"
    KEY_WORKER = "KEY_WORKER"
    NURSE = "NURSE"
    DEPUTY_MANAGER = "DEPUTY_MANAGER"
    REGISTERED_MANAGER = "REGISTERED_MANAGER"
    ADMINISTRATOR = "ADMINISTRATOR"


class TimeOffType(str, enum.Enum):
    ANNUAL_LEAVE = "ANNUAL_LEAVE"
    SICK_LEAVE = "SICK_LEAVE"
    COMPASSIONATE_LEAVE = "COMPASSIONATE_LEAVE"
    TRAINING = "TRAINING"
    UNPAID_LEAVE = "UNPAID_LEAVE"


class RequestStatus(str, enum.Enum):
    """Shared by time-off requests and shift swaps."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class EmployeeProfile(AuditMixin, Base):
    __tablename__ = "employee_profiles"

    employee_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[EmployeeRole] = mapped_column(enum_column(EmployeeRole), nullable=False)
    organisation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("care_organisations.id"), nullable=False, index=True
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class TimeOffRequest(AuditMixin, Base):
    __tablename__ = "time_off_requests"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employee_profiles.id"), nullable=False, index=True
    )
    time_off_type: Mapped[TimeOffType] = mapped_column(enum_column(TimeOffType), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[RequestStatus] = mapped_column(
        enum_column(RequestStatus), nullable=False, default=RequestStatus.PENDING
    )
    decided_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def days_requested(self) -> int:
        return (self.end_date - self.start_date).days + 1


class ShiftSwap(AuditMixin, Base):
    __tablename__ = "shift_swaps"

    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employee_profiles.id"), nullable=False, index=True
    )
    target_employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employee_profiles.id"), nullable=False
    )
    shift_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    shift_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[RequestStatus] = mapped_column(
        enum_column(RequestStatus), nullable=False, default=RequestStatus.PENDING
    )
    decided_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

"""
CareNotes Backend - Placement Agreement Schemas
================================================

What:  Request/response contracts for /api/agreements.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from carenotes.models.agreement import AgreementStatus, FeeFrequency


class AdditionalFee(BaseModel):
    description: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(ge=0, decimal_places=2)
    frequency: FeeFrequency


class AgreementCreate(BaseModel):
    base_weekly_fee: Decimal = Field(ge=0, decimal_places=2)
    additional_fees: List[AdditionalFee] = Field(default_factory=list)
    start_date: date
    end_date: Optional[date] = None
    notice_period_days: int = Field(default=28, ge=0)
    terms: Optional[str] = None


class AgreementTerminate(BaseModel):
    reason: str = Field(min_length=1)


class AgreementResponse(BaseModel):
    id: uuid.UUID
    agreement_number: str
    placement_id: uuid.UUID
    status: AgreementStatus
    base_weekly_fee: Decimal
    additional_fees: List[AdditionalFee]
    total_weekly_cost: Decimal
    total_monthly_fees: Decimal
    total_one_off_fees: Decimal
    start_date: date
    end_date: Optional[date] = None
    notice_period_days: int
    terms: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    terminated_at: Optional[datetime] = None
    termination_reason: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}

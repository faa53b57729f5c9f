"""
CareNotes Backend - Placement Schemas
======================================

What:  Request/response contracts for placements, placement requests,
       placement reviews and the placement statistics report.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from carenotes.models.placement import PlacementEndReason, PlacementStatus
from carenotes.models.placement_request import PlacementRequestStatus, PlacementRequestUrgency
from carenotes.models.placement_review import PlacementReviewType, ReviewOutcome


# ══════════════════════════════════════════════════════════════════════════
# Placements
# ══════════════════════════════════════════════════════════════════════════


class PlacementCreate(BaseModel):
    child_id: uuid.UUID
    organisation_id: uuid.UUID
    placement_request_id: Optional[uuid.UUID] = None
    start_date: date
    expected_end_date: Optional[date] = None
    room_number: Optional[str] = Field(default=None, max_length=20)
    room_type: Optional[str] = Field(default=None, max_length=50)
    key_worker_id: Optional[str] = Field(default=None, max_length=100)
    key_worker_name: Optional[str] = Field(default=None, max_length=200)
    funding_authority: str = Field(min_length=1, max_length=200)
    weekly_rate: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    admission_notes: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.expected_end_date and self.expected_end_date < self.start_date:
            raise ValueError("expected_end_date cannot be before start_date")
        return self


class PlacementUpdate(BaseModel):
    expected_end_date: Optional[date] = None
    room_number: Optional[str] = Field(default=None, max_length=20)
    room_type: Optional[str] = Field(default=None, max_length=50)
    key_worker_id: Optional[str] = Field(default=None, max_length=100)
    key_worker_name: Optional[str] = Field(default=None, max_length=200)
    weekly_rate: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    placement_stability_score: Optional[int] = Field(default=None, ge=0, le=100)
    at_risk_of_breakdown: Optional[bool] = None
    breakdown_risk_factors: Optional[List[str]] = None
    admission_notes: Optional[str] = None


class PlacementEnd(BaseModel):
    end_date: date
    reason: PlacementEndReason
    notes: Optional[str] = None


class PlacementBreakdown(BaseModel):
    reason: str = Field(min_length=1)


class PlacementResponse(BaseModel):
    id: uuid.UUID
    placement_number: str
    child_id: uuid.UUID
    organisation_id: uuid.UUID
    placement_request_id: Optional[uuid.UUID] = None
    status: PlacementStatus
    start_date: date
    expected_end_date: Optional[date] = None
    end_date: Optional[date] = None
    end_reason: Optional[PlacementEndReason] = None
    end_notes: Optional[str] = None
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    key_worker_id: Optional[str] = None
    key_worker_name: Optional[str] = None
    funding_authority: str
    weekly_rate: Optional[Decimal] = None
    initial_72hr_review_date: date
    initial_72hr_review_completed: bool
    next_placement_review_date: Optional[date] = None
    last_placement_review_date: Optional[date] = None
    placement_stability_score: Optional[int] = None
    at_risk_of_breakdown: bool
    breakdown_risk_factors: List[str]
    created_at: datetime
    updated_at: datetime
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    model_config = {"from_attributes": True}


class PlacementStatistics(BaseModel):
    total_placements: int
    active_placements: int
    pending_arrival: int
    ended_placements: int
    breakdowns: int
    at_risk_placements: int
    average_duration_days: int = Field(description="Rounded mean over placements with an end date")
    breakdown_rate: float = Field(description="Breakdowns / (ended + breakdowns), percent, 1 dp")


# ══════════════════════════════════════════════════════════════════════════
# Placement requests
# ══════════════════════════════════════════════════════════════════════════


class MatchingCriteria(BaseModel):
    required_specialisms: List[str] = Field(default_factory=list)
    max_distance_km: Optional[float] = Field(default=None, gt=0)
    preferred_postcode: Optional[str] = Field(default=None, max_length=10)

    model_config = {"extra": "allow"}


class PlacementRequestCreate(BaseModel):
    child_id: uuid.UUID
    requesting_authority: str = Field(min_length=1, max_length=200)
    social_worker_name: str = Field(min_length=1, max_length=200)
    social_worker_email: str = Field(min_length=3, max_length=200)
    social_worker_phone: Optional[str] = Field(default=None, max_length=50)
    request_type: str = Field(default="LONG_TERM", max_length=50)
    required_start_date: date
    expected_duration_days: Optional[int] = Field(default=None, gt=0)
    urgency: PlacementRequestUrgency
    matching_criteria: MatchingCriteria = Field(default_factory=MatchingCriteria)


class PlacementRequestStatusUpdate(BaseModel):
    status: PlacementRequestStatus
    reason: Optional[str] = None


class PlacementRequestMatch(BaseModel):
    organisation_id: uuid.UUID


class PlacementRequestResponse(BaseModel):
    id: uuid.UUID
    child_id: uuid.UUID
    requesting_authority: str
    social_worker_name: str
    social_worker_email: str
    social_worker_phone: Optional[str] = None
    request_type: str
    request_date: datetime
    required_start_date: date
    expected_duration_days: Optional[int] = None
    urgency: PlacementRequestUrgency
    status: PlacementRequestStatus
    status_history: List[Dict[str, Any]]
    matching_criteria: Dict[str, Any]
    matched_organisation_id: Optional[uuid.UUID] = None
    matched_at: Optional[datetime] = None
    matched_by: Optional[str] = None
    placement_id: Optional[uuid.UUID] = None
    placed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ══════════════════════════════════════════════════════════════════════════
# Placement reviews
# ══════════════════════════════════════════════════════════════════════════


class PlacementReviewCreate(BaseModel):
    review_type: PlacementReviewType
    scheduled_date: date


class PlacementReviewComplete(BaseModel):
    outcome: ReviewOutcome
    child_attended: bool = False
    child_views: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    actions_agreed: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    next_review_date: Optional[date] = None


class PlacementReviewResponse(BaseModel):
    id: uuid.UUID
    placement_id: uuid.UUID
    child_id: uuid.UUID
    review_type: PlacementReviewType
    review_number: int
    scheduled_date: date
    completed: bool
    completed_date: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    outcome: Optional[ReviewOutcome] = None
    child_attended: bool
    child_views: Optional[str] = None
    attendees: List[str]
    actions_agreed: List[str]
    notes: Optional[str] = None
    next_review_date: Optional[date] = None

    model_config = {"from_attributes": True}

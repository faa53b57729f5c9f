"""
CareNotes Backend - Child & Organisation Schemas
=================================================

What:  Request/response contracts for /api/children and /api/organisations.
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from carenotes.models.child import Gender, Jurisdiction, RiskLevel


# ══════════════════════════════════════════════════════════════════════════
# Children
# ══════════════════════════════════════════════════════════════════════════


class ChildCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    date_of_birth: date
    gender: Gender
    religion: Optional[str] = Field(default=None, max_length=100)
    ethnicity: Optional[str] = Field(default=None, max_length=100)
    first_language: Optional[str] = Field(default=None, max_length=100)
    jurisdiction: Jurisdiction = Jurisdiction.ENGLAND
    local_authority: Optional[str] = Field(default=None, max_length=200)
    legal_status: Optional[str] = Field(default=None, max_length=100)
    behavioural_risk_level: RiskLevel = RiskLevel.LOW
    medical_needs: List[str] = Field(default_factory=list)
    education_needs: List[str] = Field(default_factory=list)
    accessibility_needs: List[str] = Field(default_factory=list)
    cultural_needs: List[str] = Field(default_factory=list)


class ChildUpdate(BaseModel):
    """Partial update: only fields present in the request body are applied."""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    religion: Optional[str] = None
    ethnicity: Optional[str] = None
    first_language: Optional[str] = None
    jurisdiction: Optional[Jurisdiction] = None
    local_authority: Optional[str] = None
    legal_status: Optional[str] = None
    behavioural_risk_level: Optional[RiskLevel] = None
    medical_needs: Optional[List[str]] = None
    education_needs: Optional[List[str]] = None
    accessibility_needs: Optional[List[str]] = None
    cultural_needs: Optional[List[str]] = None
    is_active: Optional[bool] = None


class ChildResponse(ChildCreate):
    id: uuid.UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ══════════════════════════════════════════════════════════════════════════
# Care organisations
# ══════════════════════════════════════════════════════════════════════════


class OrganisationBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    postcode: str = Field(min_length=2, max_length=10)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    registered_capacity: int = Field(ge=0)
    current_occupancy: int = Field(default=0, ge=0)
    min_age: int = Field(default=0, ge=0, le=25)
    max_age: int = Field(default=17, ge=0, le=25)
    accepted_genders: List[Gender] = Field(
        default_factory=list, description="Empty list accepts every gender"
    )
    specialisms: List[str] = Field(default_factory=list)
    cultural_provisions: List[str] = Field(default_factory=list)
    medical_capabilities: List[str] = Field(default_factory=list)
    education_provisions: List[str] = Field(default_factory=list)
    accessibility_features: List[str] = Field(default_factory=list)
    behavioural_capability: RiskLevel = RiskLevel.MEDIUM


class OrganisationCreate(OrganisationBase):
    @model_validator(mode="after")
    def check_ranges(self):
        if self.min_age > self.max_age:
            raise ValueError("min_age cannot be greater than max_age")
        if self.current_occupancy > self.registered_capacity:
            raise ValueError("current_occupancy cannot exceed registered_capacity")
        return self


class OrganisationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    postcode: Optional[str] = Field(default=None, min_length=2, max_length=10)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    registered_capacity: Optional[int] = Field(default=None, ge=0)
    min_age: Optional[int] = Field(default=None, ge=0, le=25)
    max_age: Optional[int] = Field(default=None, ge=0, le=25)
    accepted_genders: Optional[List[Gender]] = None
    specialisms: Optional[List[str]] = None
    cultural_provisions: Optional[List[str]] = None
    medical_capabilities: Optional[List[str]] = None
    education_provisions: Optional[List[str]] = None
    accessibility_features: Optional[List[str]] = None
    behavioural_capability: Optional[RiskLevel] = None
    is_active: Optional[bool] = None


class OrganisationResponse(OrganisationBase):
    id: uuid.UUID
    is_active: bool
    available_places: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

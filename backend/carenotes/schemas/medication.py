"""
CareNotes Backend - Medication Schemas
=======================================

What:  Request/response contracts for prescribing to a child, Gillick
       competence assessments, side effect reports and the consent and
       dosing checks that gate a prescription.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from carenotes.models.medication import (
    ConsentType,
    GillickResult,
    MedicationStatus,
    PatientType,
    SideEffectSeverity,
)


# ══════════════════════════════════════════════════════════════════════════
# Checks
# ══════════════════════════════════════════════════════════════════════════


class ConsentCheck(BaseModel):
    is_valid: bool
    consent_type: ConsentType
    reason: str
    requires_gillick_assessment: bool = False


class DosingCheck(BaseModel):
    is_valid: bool
    calculated_dose: Optional[str] = None
    max_daily_dose: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    contraindicated_for_age: bool = False


class DosingCheckRequest(BaseModel):
    medication_name: str = Field(min_length=1, max_length=200)
    dosage: str = Field(min_length=1, max_length=100, examples=["250mg"])
    weight_kg: Optional[Decimal] = Field(default=None, gt=0, le=250)


# ══════════════════════════════════════════════════════════════════════════
# Prescriptions
# ══════════════════════════════════════════════════════════════════════════


class MedicationPrescribe(BaseModel):
    medication_name: str = Field(min_length=1, max_length=200)
    generic_name: Optional[str] = Field(default=None, max_length=200)
    formulation: Optional[str] = Field(default=None, max_length=100)
    dosage: str = Field(min_length=1, max_length=100, examples=["250mg"])
    frequency: str = Field(min_length=1, max_length=100, examples=["Every 6 hours"])
    route: Optional[str] = Field(default=None, max_length=50)
    instructions: Optional[str] = None
    indication_reason: Optional[str] = None
    is_prn: bool = False
    prn_instructions: Optional[str] = None

    weight_kg: Optional[Decimal] = Field(
        default=None, gt=0, le=250, description="Required for anyone under 18"
    )
    height_cm: Optional[Decimal] = Field(default=None, gt=0, le=250)

    prescriber_name: str = Field(min_length=1, max_length=200)
    prescriber_gmc_number: Optional[str] = Field(default=None, max_length=20)

    consent_type: ConsentType
    consent_given_by: Optional[str] = Field(default=None, max_length=200)
    consent_document_ref: Optional[str] = Field(default=None, max_length=200)
    parental_authority_holder: Optional[str] = Field(default=None, max_length=200)


class GillickAssessment(BaseModel):
    result: GillickResult
    notes: str = Field(min_length=1, description="How understanding of the treatment was tested")


class MedicationDiscontinue(BaseModel):
    reason: str = Field(min_length=1)


class SideEffectReport(BaseModel):
    effect: str = Field(min_length=1)
    severity: SideEffectSeverity
    action_taken: str = Field(min_length=1)


class MedicationResponse(BaseModel):
    id: uuid.UUID
    child_id: uuid.UUID
    patient_type: PatientType
    patient_age_years: int
    patient_weight_kg: Optional[Decimal] = None
    patient_height_cm: Optional[Decimal] = None
    medication_name: str
    generic_name: Optional[str] = None
    formulation: Optional[str] = None
    dosage: str
    frequency: str
    route: Optional[str] = None
    instructions: Optional[str] = None
    indication_reason: Optional[str] = None
    is_prn: bool
    prn_instructions: Optional[str] = None
    prescriber_name: str
    prescriber_gmc_number: Optional[str] = None
    prescribed_date: date
    dosage_calculation: Optional[str] = None
    max_daily_dose: Optional[str] = None
    dosing_warnings: List[str]
    contraindicated_for_age: bool
    consent_type: ConsentType
    consent_given_by: Optional[str] = None
    consent_date: date
    consent_document_ref: Optional[str] = None
    parental_authority_holder: Optional[str] = None
    consent_valid: bool
    gillick_competence_required: bool
    gillick_result: Optional[GillickResult] = None
    gillick_assessed_by: Optional[str] = None
    gillick_assessed_at: Optional[datetime] = None
    gillick_assessment_notes: Optional[str] = None
    gillick_reassessment_due: Optional[date] = None
    status: MedicationStatus
    next_review_due: date
    discontinued_reason: Optional[str] = None
    side_effects_observed: List[dict]

    model_config = {"from_attributes": True}


class ChildMedications(BaseModel):
    medications: List[MedicationResponse]
    safety_alerts: List[str]

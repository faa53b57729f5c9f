"""
CareNotes Backend - Medication Models
======================================

What:  One row per medicine prescribed for a looked-after child, carrying
       the consent it was prescribed under, the dosing check made at the
       time and any Gillick competence assessment.
How:   The patient's age band, weight and height are copied onto the record
       so the dosing decision can be audited after the child has grown.
       Side effects are a JSON list of {"effect", "severity", "reported_by",
       "action_taken", "observed_at"}.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base
from carenotes.models._types import enum_column


class PatientType(str, enum.Enum):
    CHILD_0_2 = "CHILD_0_2"
    CHILD_2_12 = "CHILD_2_12"
    YOUNG_PERSON_12_16 = "YOUNG_PERSON_12_16"
    YOUNG_PERSON_16_18 = "YOUNG_PERSON_16_18"
    CARE_LEAVER_18_25 = "CARE_LEAVER_18_25"
    ADULT = "ADULT"

    @classmethod
    def for_age(cls, age: int) -> "PatientType":
        if age < 2:
            return cls.CHILD_0_2
        if age < 12:
            return cls.CHILD_2_12
        if age < 16:
            return cls.YOUNG_PERSON_12_16
        if age < 18:
            return cls.YOUNG_PERSON_16_18
        if age < 26:
            return cls.CARE_LEAVER_18_25
        return cls.ADULT

    @property
    def is_minor(self) -> bool:
        return self not in (PatientType.CARE_LEAVER_18_25, PatientType.ADULT)


class ConsentType(str, enum.Enum):
    SELF = "SELF"
    PARENTAL = "PARENTAL"
    GILLICK_COMPETENT = "GILLICK_COMPETENT"
    FRASER_GUIDELINES = "FRASER_GUIDELINES"
    COURT_ORDER = "COURT_ORDER"
    EMERGENCY = "EMERGENCY"


class GillickResult(str, enum.Enum):
    COMPETENT = "COMPETENT"
    NOT_COMPETENT = "NOT_COMPETENT"


class MedicationStatus(str, enum.Enum):
    AWAITING_CONSENT = "AWAITING_CONSENT"  # Gillick assessment outstanding
    PRESCRIBED = "PRESCRIBED"
    DISCONTINUED = "DISCONTINUED"


class SideEffectSeverity(str, enum.Enum):
    MILD = "MILD"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"


class MedicationRecord(AuditMixin, Base):
    __tablename__ = "medication_records"

    child_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("children.id"), nullable=False, index=True
    )
    patient_type: Mapped[PatientType] = mapped_column(enum_column(PatientType), nullable=False)
    patient_age_years: Mapped[int] = mapped_column(Integer, nullable=False)
    patient_weight_kg: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    patient_height_cm: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 1), nullable=True)

    medication_name: Mapped[str] = mapped_column(String(200), nullable=False)
    generic_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    formulation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    dosage: Mapped[str] = mapped_column(String(100), nullable=False)
    frequency: Mapped[str] = mapped_column(String(100), nullable=False)
    route: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    indication_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_prn: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prn_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    prescriber_name: Mapped[str] = mapped_column(String(200), nullable=False)
    prescriber_gmc_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    prescribed_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Dosing check at prescription time
    dosage_calculation: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    max_daily_dose: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    dosing_warnings: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    contraindicated_for_age: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    consent_type: Mapped[ConsentType] = mapped_column(enum_column(ConsentType), nullable=False)
    consent_given_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    consent_date: Mapped[date] = mapped_column(Date, nullable=False)
    consent_document_ref: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    parental_authority_holder: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    gillick_competence_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    gillick_result: Mapped[Optional[GillickResult]] = mapped_column(
        enum_column(GillickResult), nullable=True
    )
    gillick_assessed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gillick_assessed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    gillick_assessment_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gillick_reassessment_due: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    status: Mapped[MedicationStatus] = mapped_column(
        enum_column(MedicationStatus), nullable=False, default=MedicationStatus.PRESCRIBED
    )
    next_review_due: Mapped[date] = mapped_column(Date, nullable=False)
    discontinued_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    side_effects_observed: Mapped[List[dict]] = mapped_column(JSON, nullable=False, default=list)

    @property
    def consent_valid(self) -> bool:
        """Gillick consent only counts once the child has been assessed competent."""
        if self.gillick_competence_required:
            return self.gillick_result == GillickResult.COMPETENT
        return True

    def needs_gillick_assessment(self, on: date) -> bool:
        if not self.gillick_competence_required:
            return False
        if self.gillick_result is None:
            return True
        return self.gillick_reassessment_due is not None and self.gillick_reassessment_due <= on

    def is_overdue_for_review(self, on: date) -> bool:
        return self.status != MedicationStatus.DISCONTINUED and self.next_review_due <= on

    def __repr__(self) -> str:
        return f"<MedicationRecord(id={self.id}, medication='{self.medication_name}')>"

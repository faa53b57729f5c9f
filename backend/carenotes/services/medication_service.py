"""
CareNotes Backend - Medication Service
=======================================

What:  Prescribing for looked-after children: consent checked against the
       child's age, weight-based dose checks, Gillick competence
       assessments, side effect reports and per-child safety alerts.
Who:   Called by /api/children/{id}/medications and /api/medications routes.

Consent by age:
    under 12     parental, court order or emergency
    12 to 15     parental or Fraser guidelines; Gillick consent is accepted
                 but the prescription waits (AWAITING_CONSENT) until a
                 competence assessment finds the child competent
    16 and 17    self-consent (presumed competent)
    18 and over  self-consent

Dosing:
    Weight is required for anyone under 18. Paracetamol and ibuprofen are
    checked per kg of body weight; aspirin is refused under 16. Any other
    medicine is accepted with a warning to verify it by hand.
"""

import calendar
import logging
import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.config import settings
from carenotes.database import utcnow
from carenotes.exceptions import ConsentError, ValidationError
from carenotes.models.medication import (
    ConsentType,
    GillickResult,
    MedicationRecord,
    MedicationStatus,
    PatientType,
    SideEffectSeverity,
)
from carenotes.schemas.medication import (
    ChildMedications,
    ConsentCheck,
    DosingCheck,
    GillickAssessment,
    MedicationPrescribe,
    MedicationResponse,
    SideEffectReport,
)
from carenotes.services.base import fetch_or_404, flush
from carenotes.services.child_service import child_service

logger = logging.getLogger(__name__)

DOSE_MG = re.compile(r"(\d+(?:\.\d+)?)\s*mg", re.IGNORECASE)

# mg per kg: usual single dose, maximum single dose, maximum daily dose
WEIGHT_BASED_DOSES: Dict[str, Tuple[int, int, int]] = {
    "paracetamol": (15, 20, 60),
    "acetaminophen": (15, 20, 60),
    "ibuprofen": (10, 10, 30),
}
ASPIRIN_MIN_AGE = 16
YOUNG_INFANT_MONTHS = 3

_CONSENT_RULES: Dict[PatientType, Dict[ConsentType, str]] = {
    PatientType.CHILD_0_2: {
        ConsentType.PARENTAL: "Parental consent obtained for child under 12",
        ConsentType.COURT_ORDER: "Court order authorises medication for child",
        ConsentType.EMERGENCY: "Emergency medication given without consent",
    },
    PatientType.YOUNG_PERSON_12_16: {
        ConsentType.PARENTAL: "Parental consent obtained for young person 12-16",
        ConsentType.FRASER_GUIDELINES: "Fraser guidelines allow contraception for under 16s",
    },
    PatientType.YOUNG_PERSON_16_18: {
        ConsentType.SELF: "Young person 16-18 is presumed competent to consent",
    },
    PatientType.CARE_LEAVER_18_25: {
        ConsentType.SELF: "Patient is over 18 and can give self-consent",
    },
}
_CONSENT_RULES[PatientType.CHILD_2_12] = _CONSENT_RULES[PatientType.CHILD_0_2]
_CONSENT_RULES[PatientType.ADULT] = _CONSENT_RULES[PatientType.CARE_LEAVER_18_25]


def add_months(day: date, months: int) -> date:
    """Same day of the month, clamped to the month's last day."""
    month_index = day.month - 1 + months
    year, month = day.year + month_index // 12, month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def age_in_months(date_of_birth: date, on: date) -> int:
    months = (on.year - date_of_birth.year) * 12 + on.month - date_of_birth.month
    return months - 1 if on.day < date_of_birth.day else months


def validate_consent(patient_type: PatientType, consent_type: ConsentType) -> ConsentCheck:
    if patient_type == PatientType.YOUNG_PERSON_12_16 and consent_type == ConsentType.GILLICK_COMPETENT:
        return ConsentCheck(
            is_valid=False,
            consent_type=consent_type,
            reason="Gillick competence assessment required before the young person can self-consent",
            requires_gillick_assessment=True,
        )

    reason = _CONSENT_RULES[patient_type].get(consent_type)
    if reason is None:
        return ConsentCheck(
            is_valid=False,
            consent_type=consent_type,
            reason=f"{consent_type.value} consent is not valid for patient type {patient_type.value}",
        )
    return ConsentCheck(is_valid=True, consent_type=consent_type, reason=reason)


def _weight_based(
    drug: str,
    dosage: str,
    age_months: int,
    weight_kg: Decimal,
) -> DosingCheck:
    usual, max_single, max_daily = WEIGHT_BASED_DOSES[drug]
    weight = float(weight_kg)
    warnings: List[str] = []
    errors: List[str] = []

    if age_months < YOUNG_INFANT_MONTHS:
        if drug == "ibuprofen":
            return DosingCheck(
                is_valid=False,
                errors=["Ibuprofen is contraindicated in infants under 3 months"],
                warnings=warnings,
                contraindicated_for_age=True,
            )
        warnings.append(f"{drug.capitalize()} for infants under 3 months needs specialist advice")

    recommended_mg = weight * usual
    match = DOSE_MG.search(dosage)
    if match is None:
        errors.append(f"Dosage '{dosage}' does not state a dose in mg")
    else:
        proposed_mg = float(match.group(1))
        if proposed_mg > weight * max_single:
            errors.append(
                f"Proposed dose ({proposed_mg:g}mg) exceeds maximum single dose "
                f"({weight * max_single:g}mg = {weight:g}kg × {max_single}mg/kg)"
            )
        if proposed_mg < recommended_mg * 0.5:
            warnings.append(
                f"Proposed dose ({proposed_mg:g}mg) is below recommended dose "
                f"({recommended_mg:g}mg = {weight:g}kg × {usual}mg/kg)"
            )

    return DosingCheck(
        is_valid=not errors,
        calculated_dose=f"{recommended_mg:g}mg ({weight:g}kg × {usual}mg/kg)",
        max_daily_dose=f"{weight * max_daily:g}mg ({weight:g}kg × {max_daily}mg/kg)",
        warnings=warnings,
        errors=errors,
    )


def validate_dosing(
    medication_name: str,
    dosage: str,
    patient_type: PatientType,
    age_years: int,
    age_months: int,
    weight_kg: Optional[Decimal],
) -> DosingCheck:
    if patient_type.is_minor and not weight_kg:
        return DosingCheck(
            is_valid=False, errors=["Weight is required for paediatric dosing calculations"]
        )

    name = medication_name.lower()

    if "aspirin" in name and age_years < ASPIRIN_MIN_AGE:
        return DosingCheck(
            is_valid=False,
            errors=["Aspirin is contraindicated in children under 16 (Reye's syndrome risk)"],
            contraindicated_for_age=True,
        )

    drug = next((d for d in WEIGHT_BASED_DOSES if d in name), None)
    if drug is not None and weight_kg:
        return _weight_based(drug, dosage, age_months, weight_kg)

    return DosingCheck(
        is_valid=True,
        calculated_dose=dosage,
        max_daily_dose="Verify against the BNF for Children",
        warnings=[f"Dosing for {medication_name} must be verified by hand against the BNF for Children"],
    )


class MedicationService:

    async def get_medication(self, db: AsyncSession, medication_id: UUID) -> MedicationRecord:
        return await fetch_or_404(db, MedicationRecord, medication_id, "medication record")

    async def check_dosing(
        self,
        db: AsyncSession,
        child_id: UUID,
        medication_name: str,
        dosage: str,
        weight_kg: Optional[Decimal],
    ) -> DosingCheck:
        """Runs the dose check for a child without prescribing anything."""
        child = await child_service.get_child(db, child_id)
        today = date.today()
        age = child.age_on(today)
        return validate_dosing(
            medication_name,
            dosage,
            PatientType.for_age(age),
            age,
            age_in_months(child.date_of_birth, today),
            weight_kg,
        )

    async def prescribe_for_child(
        self,
        db: AsyncSession,
        child_id: UUID,
        data: MedicationPrescribe,
        actor: str,
    ) -> MedicationRecord:
        """
        Records a prescription once consent and dosing have been checked.

        Raises:
            NotFoundError: Child does not exist
            ConsentError: Consent type does not cover a child of this age
            ValidationError: Weight missing, dose too high, or contraindicated for age
        """
        child = await child_service.get_child(db, child_id)
        today = date.today()
        age = child.age_on(today)
        patient_type = PatientType.for_age(age)

        consent = validate_consent(patient_type, data.consent_type)
        if not consent.is_valid and not consent.requires_gillick_assessment:
            raise ConsentError(
                f"Invalid consent: {consent.reason}",
                context={"patient_type": patient_type.value, "consent_type": data.consent_type.value},
            )

        dosing = validate_dosing(
            data.medication_name,
            data.dosage,
            patient_type,
            age,
            age_in_months(child.date_of_birth, today),
            data.weight_kg,
        )
        if not dosing.is_valid:
            raise ValidationError(
                f"Invalid dosing: {'; '.join(dosing.errors)}",
                field="dosage",
                context={
                    "errors": dosing.errors,
                    "contraindicated_for_age": dosing.contraindicated_for_age,
                },
            )

        record = MedicationRecord(
            child_id=child.id,
            patient_type=patient_type,
            patient_age_years=age,
            patient_weight_kg=data.weight_kg,
            patient_height_cm=data.height_cm,
            medication_name=data.medication_name,
            generic_name=data.generic_name,
            formulation=data.formulation,
            dosage=data.dosage,
            frequency=data.frequency,
            route=data.route,
            instructions=data.instructions,
            indication_reason=data.indication_reason,
            is_prn=data.is_prn,
            prn_instructions=data.prn_instructions,
            prescriber_name=data.prescriber_name,
            prescriber_gmc_number=data.prescriber_gmc_number,
            prescribed_date=today,
            dosage_calculation=dosing.calculated_dose,
            max_daily_dose=dosing.max_daily_dose,
            dosing_warnings=dosing.warnings,
            contraindicated_for_age=dosing.contraindicated_for_age,
            consent_type=data.consent_type,
            consent_given_by=data.consent_given_by,
            consent_date=today,
            consent_document_ref=data.consent_document_ref,
            parental_authority_holder=data.parental_authority_holder,
            gillick_competence_required=consent.requires_gillick_assessment,
            status=(
                MedicationStatus.AWAITING_CONSENT
                if consent.requires_gillick_assessment else MedicationStatus.PRESCRIBED
            ),
            next_review_due=today + timedelta(days=settings.medication_review_days),
            side_effects_observed=[],
            created_by=actor,
            updated_by=actor,
        )
        db.add(record)
        await flush(db, "prescribe medication")
        logger.info(
            "%s prescribed for child %s (%s, consent %s)",
            data.medication_name, child_id, patient_type.value, data.consent_type.value,
        )
        return record

    async def conduct_gillick_assessment(
        self,
        db: AsyncSession,
        medication_id: UUID,
        data: GillickAssessment,
        actor: str,
    ) -> MedicationRecord:
        """
        A COMPETENT finding lets the child consent for themselves and releases
        a prescription waiting on the assessment. Either way a reassessment is
        due after settings.gillick_reassessment_months.
        """
        record = await self.get_medication(db, medication_id)
        if record.status == MedicationStatus.DISCONTINUED:
            raise ValidationError("Medication has been discontinued", field="status")

        today = date.today()
        record.gillick_result = data.result
        record.gillick_assessed_by = actor
        record.gillick_assessed_at = utcnow()
        record.gillick_assessment_notes = data.notes
        record.gillick_reassessment_due = add_months(today, settings.gillick_reassessment_months)

        if data.result == GillickResult.COMPETENT:
            record.consent_type = ConsentType.GILLICK_COMPETENT
            record.consent_date = today
            record.gillick_competence_required = True
            if record.status == MedicationStatus.AWAITING_CONSENT:
                record.status = MedicationStatus.PRESCRIBED
        elif record.status == MedicationStatus.AWAITING_CONSENT:
            logger.warning(
                "Child not Gillick competent for %s (%s); parental consent needed",
                record.medication_name, record.id,
            )

        record.updated_by = actor
        await flush(db, "record Gillick assessment")
        return record

    async def get_medications_for_child(
        self, db: AsyncSession, child_id: UUID
    ) -> ChildMedications:
        await child_service.get_child(db, child_id)
        result = await db.execute(
            select(MedicationRecord)
            .where(MedicationRecord.child_id == child_id)
            .order_by(MedicationRecord.prescribed_date.desc(), MedicationRecord.created_at.desc())
        )
        records = list(result.scalars().all())

        today = date.today()
        alerts: List[str] = []
        for record in records:
            if record.status == MedicationStatus.DISCONTINUED:
                continue
            if not record.consent_valid:
                alerts.append(f"{record.medication_name}: invalid or missing consent")
            if record.needs_gillick_assessment(today):
                alerts.append(f"{record.medication_name}: Gillick competence assessment required")
            if record.is_overdue_for_review(today):
                alerts.append(f"{record.medication_name}: medication review overdue")
            if record.contraindicated_for_age:
                alerts.append(f"{record.medication_name}: contraindicated for patient age")

        return ChildMedications(
            medications=[MedicationResponse.model_validate(r) for r in records],
            safety_alerts=alerts,
        )

    async def record_side_effect(
        self,
        db: AsyncSession,
        medication_id: UUID,
        data: SideEffectReport,
        actor: str,
    ) -> MedicationRecord:
        """A severe side effect brings the medication review forward to today."""
        record = await self.get_medication(db, medication_id)
        record.side_effects_observed = [
            *record.side_effects_observed,
            {
                "effect": data.effect,
                "severity": data.severity.value,
                "reported_by": actor,
                "action_taken": data.action_taken,
                "observed_at": utcnow().isoformat(),
            },
        ]
        if data.severity == SideEffectSeverity.SEVERE:
            record.next_review_due = date.today()
            logger.warning(
                "Severe side effect on %s for child %s: review due now",
                record.medication_name, record.child_id,
            )
        record.updated_by = actor
        await flush(db, "record side effect")
        return record

    async def discontinue_medication(
        self,
        db: AsyncSession,
        medication_id: UUID,
        reason: str,
        actor: str,
    ) -> MedicationRecord:
        record = await self.get_medication(db, medication_id)
        if record.status == MedicationStatus.DISCONTINUED:
            raise ValidationError("Medication has already been discontinued", field="status")
        record.status = MedicationStatus.DISCONTINUED
        record.discontinued_reason = reason
        record.updated_by = actor
        await flush(db, "discontinue medication")
        logger.info("Medication %s discontinued by %s", medication_id, actor)
        return record


medication_service = MedicationService()

"""
CareNotes Backend - Placement Agreement Service
================================================

What:  Commercial terms for a placement.
How:   DRAFT → PENDING_APPROVAL → ACTIVE, and any non-terminated agreement
       may be TERMINATED. A placement holds at most one agreement that is
       not TERMINATED.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.database import utcnow
from carenotes.exceptions import ConflictError, ValidationError
from carenotes.models.agreement import AgreementStatus, PlacementAgreement
from carenotes.schemas.agreement import AgreementCreate
from carenotes.services.base import fetch_or_404, flush, next_sequence_number
from carenotes.services.placement_service import placement_service

logger = logging.getLogger(__name__)


class AgreementService:

    async def create_agreement(
        self,
        db: AsyncSession,
        placement_id: UUID,
        data: AgreementCreate,
        actor: str,
    ) -> PlacementAgreement:
        """
        Drafts an agreement numbered PA-YYYY-NNNN (year of the start date).

        Raises:
            NotFoundError: Placement does not exist
            ConflictError: Placement already has a live agreement
            ValidationError: End date before start date
        """
        placement = await placement_service.get_placement(db, placement_id)

        if data.end_date and data.end_date < data.start_date:
            raise ValidationError("End date cannot be before start date", field="end_date")

        live = await db.scalar(
            select(PlacementAgreement).where(
                PlacementAgreement.placement_id == placement.id,
                PlacementAgreement.status != AgreementStatus.TERMINATED,
            )
        )
        if live is not None:
            raise ConflictError(
                message=f"Placement already has agreement {live.agreement_number}",
                context={"agreement_id": str(live.id), "status": live.status.value},
            )

        agreement = PlacementAgreement(
            agreement_number=await next_sequence_number(
                db, PlacementAgreement.agreement_number, "PA", data.start_date.year
            ),
            placement_id=placement.id,
            status=AgreementStatus.DRAFT,
            base_weekly_fee=data.base_weekly_fee,
            additional_fees=[fee.model_dump(mode="json") for fee in data.additional_fees],
            start_date=data.start_date,
            end_date=data.end_date,
            notice_period_days=data.notice_period_days,
            terms=data.terms,
            created_by=actor,
            updated_by=actor,
        )
        db.add(agreement)
        await flush(db, "create placement agreement")
        logger.info(
            "Agreement %s drafted for placement %s (weekly cost %s)",
            agreement.agreement_number, placement.placement_number, agreement.total_weekly_cost,
        )
        return agreement

    async def get_agreement(self, db: AsyncSession, agreement_id: UUID) -> PlacementAgreement:
        return await fetch_or_404(db, PlacementAgreement, agreement_id, "agreement")

    async def get_agreements_for_placement(
        self, db: AsyncSession, placement_id: UUID
    ) -> List[PlacementAgreement]:
        await placement_service.get_placement(db, placement_id)
        result = await db.execute(
            select(PlacementAgreement)
            .where(PlacementAgreement.placement_id == placement_id)
            .order_by(PlacementAgreement.created_at.desc())
        )
        return list(result.scalars().all())

    async def submit_for_approval(
        self, db: AsyncSession, agreement_id: UUID, actor: str
    ) -> PlacementAgreement:
        agreement = await self.get_agreement(db, agreement_id)
        if agreement.status != AgreementStatus.DRAFT:
            raise ValidationError(
                f"Only draft agreements can be submitted (status is {agreement.status.value})",
                field="status",
            )
        agreement.status = AgreementStatus.PENDING_APPROVAL
        agreement.submitted_at = utcnow()
        agreement.updated_by = actor
        await flush(db, "submit agreement")
        return agreement

    async def approve_agreement(
        self, db: AsyncSession, agreement_id: UUID, actor: str
    ) -> PlacementAgreement:
        agreement = await self.get_agreement(db, agreement_id)
        if agreement.status != AgreementStatus.PENDING_APPROVAL:
            raise ValidationError(
                f"Cannot approve agreement with status {agreement.status.value}",
                field="status",
            )
        agreement.status = AgreementStatus.ACTIVE
        agreement.approved_at = utcnow()
        agreement.approved_by = actor
        agreement.updated_by = actor
        await flush(db, "approve agreement")
        logger.info("Agreement %s approved by %s", agreement.agreement_number, actor)
        return agreement

    async def terminate_agreement(
        self, db: AsyncSession, agreement_id: UUID, reason: str, actor: str
    ) -> PlacementAgreement:
        agreement = await self.get_agreement(db, agreement_id)
        if agreement.status == AgreementStatus.TERMINATED:
            raise ValidationError("Agreement is already terminated", field="status")
        agreement.status = AgreementStatus.TERMINATED
        agreement.terminated_at = utcnow()
        agreement.termination_reason = reason
        agreement.updated_by = actor
        await flush(db, "terminate agreement")
        logger.info("Agreement %s terminated: %s", agreement.agreement_number, reason)
        return agreement


agreement_service = AgreementService()

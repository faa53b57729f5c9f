"""
CareNotes Backend - Placement Service
======================================

What:  Placement lifecycle, placement requests, statutory reviews and
       per-organisation placement statistics.
How:   Stateless service; every method receives the request's AsyncSession
       and flushes (the commit happens in get_db_session). Occupancy on the
       care organisation moves with the placement lifecycle:

           create_placement      +1
           end_placement         -1
           mark_as_breakdown     -1

Error mapping:
    missing child / placement / request / review   → NotFoundError (404)
    child already placed, request already matched  → ConflictError (409)
    invalid transition, bad dates, no free place   → ValidationError (400)
"""

import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.database import utcnow
from carenotes.exceptions import ConflictError, ValidationError
from carenotes.models.placement import (
    OPEN_PLACEMENT_STATUSES,
    Placement,
    PlacementEndReason,
    PlacementStatus,
)
from carenotes.models.placement_request import (
    PlacementRequest,
    PlacementRequestStatus,
    PlacementRequestUrgency,
)
from carenotes.models.placement_review import (
    CONTINUING_OUTCOMES,
    PlacementReview,
    PlacementReviewType,
)
from carenotes.schemas.placement import (
    PlacementCreate,
    PlacementEnd,
    PlacementRequestCreate,
    PlacementReviewComplete,
    PlacementStatistics,
    PlacementUpdate,
)
from carenotes.services.base import fetch_or_404, flush, next_sequence_number
from carenotes.services.child_service import child_service
from carenotes.services.organisation_service import organisation_service

logger = logging.getLogger(__name__)

INITIAL_REVIEW_DELAY = timedelta(hours=72)
FIRST_PLACEMENT_REVIEW_DELAY = timedelta(days=28)

URGENT_LEVELS = (PlacementRequestUrgency.URGENT, PlacementRequestUrgency.EMERGENCY)
URGENT_OPEN_STATUSES = (
    PlacementRequestStatus.PENDING,
    PlacementRequestStatus.UNDER_REVIEW,
    PlacementRequestStatus.APPROVED,
)
CLOSED_REQUEST_STATUSES = (
    PlacementRequestStatus.PLACED,
    PlacementRequestStatus.CANCELLED,
    PlacementRequestStatus.WITHDRAWN,
)
UNMATCHABLE_REQUEST_STATUSES = (
    PlacementRequestStatus.PLACED,
    PlacementRequestStatus.REJECTED,
    PlacementRequestStatus.CANCELLED,
    PlacementRequestStatus.WITHDRAWN,
)


def _round_half_up(value: float, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


class PlacementService:
    """
    Business logic for placements.

    Responsibilities:
        - Lifecycle: create → activate → end | breakdown
        - Monitoring lists: overdue reviews, placements at risk
        - Placement requests: create, status history, matching
        - Reviews: scheduling and completion (feeds back into review dates)
        - Statistics per organisation
    """

    # ── Placements ────────────────────────────────────────────────────────

    async def create_placement(
        self,
        db: AsyncSession,
        data: PlacementCreate,
        actor: str,
    ) -> Placement:
        """
        Places a child with a care organisation.

        Workflow:
            1. Child must exist and must not already hold an open placement
            2. Organisation must exist, be active and have a free place
            3. Placement starts PENDING_ARRIVAL with its review dates set
            4. Organisation occupancy +1
            5. A linked placement request moves to PLACED

        Raises:
            NotFoundError: Child, organisation or linked request missing
            ConflictError: Child already has a PENDING_ARRIVAL/ACTIVE placement
            ValidationError: Organisation inactive or full
        """
        await child_service.get_child(db, data.child_id)

        existing = await db.scalar(
            select(Placement).where(
                Placement.child_id == data.child_id,
                Placement.status.in_(OPEN_PLACEMENT_STATUSES),
            )
        )
        if existing is not None:
            raise ConflictError(
                message=f"Child already has an active placement (ID: {existing.id})",
                context={"placement_id": str(existing.id)},
            )

        organisation = await organisation_service.get_organisation(db, data.organisation_id)
        if not organisation.is_active:
            raise ValidationError(
                f"Organisation '{organisation.name}' is not accepting placements",
                field="organisation_id",
            )
        if organisation.available_places <= 0:
            raise ValidationError(
                f"Organisation '{organisation.name}' has no available places",
                field="organisation_id",
                context={
                    "registered_capacity": organisation.registered_capacity,
                    "current_occupancy": organisation.current_occupancy,
                },
            )

        request: Optional[PlacementRequest] = None
        if data.placement_request_id:
            request = await self.get_placement_request(db, data.placement_request_id)

        placement = Placement(
            **data.model_dump(),
            placement_number=await next_sequence_number(
                db, Placement.placement_number, "PL", data.start_date.year
            ),
            status=PlacementStatus.PENDING_ARRIVAL,
            initial_72hr_review_date=data.start_date + INITIAL_REVIEW_DELAY,
            next_placement_review_date=data.start_date + FIRST_PLACEMENT_REVIEW_DELAY,
            created_by=actor,
            updated_by=actor,
        )
        db.add(placement)
        organisation_service.adjust_occupancy(organisation, +1)
        await flush(db, "create placement")

        if request is not None:
            request.add_status_change(
                PlacementRequestStatus.PLACED, actor, f"Placement {placement.placement_number} created"
            )
            request.placement_id = placement.id
            request.placed_at = utcnow()
            request.updated_by = actor
            await flush(db, "link placement request")

        logger.info(
            "Placement %s created: child=%s organisation=%s",
            placement.placement_number, data.child_id, data.organisation_id,
        )
        return placement

    async def get_placement(self, db: AsyncSession, placement_id: UUID) -> Placement:
        return await fetch_or_404(db, Placement, placement_id, "placement")

    async def update_placement(
        self,
        db: AsyncSession,
        placement_id: UUID,
        data: PlacementUpdate,
        actor: str,
    ) -> Placement:
        placement = await self.get_placement(db, placement_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(placement, field, value)
        placement.updated_by = actor
        await flush(db, "update placement")
        return placement

    async def activate_placement(self, db: AsyncSession, placement_id: UUID, actor: str) -> Placement:
        """Child has arrived: PENDING_ARRIVAL → ACTIVE."""
        placement = await self.get_placement(db, placement_id)
        if placement.status != PlacementStatus.PENDING_ARRIVAL:
            raise ValidationError(
                f"Cannot activate placement with status {placement.status.value}",
                field="status",
            )
        placement.status = PlacementStatus.ACTIVE
        placement.updated_by = actor
        await flush(db, "activate placement")
        logger.info("Placement %s activated by %s", placement.placement_number, actor)
        return placement

    async def end_placement(
        self,
        db: AsyncSession,
        placement_id: UUID,
        data: PlacementEnd,
        actor: str,
    ) -> Placement:
        placement = await self.get_placement(db, placement_id)
        if placement.status in (PlacementStatus.ENDED, PlacementStatus.BREAKDOWN):
            raise ValidationError("Placement has already ended", field="status")
        if data.end_date < placement.start_date:
            raise ValidationError("End date cannot be before start date", field="end_date")

        placement.end_date = data.end_date
        placement.end_reason = data.reason
        placement.end_notes = data.notes
        placement.status = PlacementStatus.ENDED
        placement.updated_by = actor
        await self._release_place(db, placement)
        await flush(db, "end placement")
        logger.info("Placement %s ended (%s)", placement.placement_number, data.reason.value)
        return placement

    async def mark_as_breakdown(
        self,
        db: AsyncSession,
        placement_id: UUID,
        reason: str,
        actor: str,
    ) -> Placement:
        placement = await self.get_placement(db, placement_id)
        if placement.status in (PlacementStatus.ENDED, PlacementStatus.BREAKDOWN):
            raise ValidationError("Placement has already ended", field="status")

        placement.status = PlacementStatus.BREAKDOWN
        placement.end_date = max(date.today(), placement.start_date)
        placement.end_reason = PlacementEndReason.PLACEMENT_BREAKDOWN
        placement.end_notes = reason
        placement.updated_by = actor
        await self._release_place(db, placement)
        await flush(db, "record placement breakdown")
        logger.warning("Placement %s broke down: %s", placement.placement_number, reason)
        return placement

    async def _release_place(self, db: AsyncSession, placement: Placement) -> None:
        organisation = await organisation_service.get_organisation(db, placement.organisation_id)
        organisation_service.adjust_occupancy(organisation, -1)

    # ── Monitoring ────────────────────────────────────────────────────────

    async def _list(self, db: AsyncSession, query) -> List[Placement]:
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_placements_by_child(self, db: AsyncSession, child_id: UUID) -> List[Placement]:
        return await self._list(
            db,
            select(Placement)
            .where(Placement.child_id == child_id)
            .order_by(Placement.start_date.desc()),
        )

    async def get_active_placements_by_organisation(
        self, db: AsyncSession, organisation_id: UUID
    ) -> List[Placement]:
        return await self._list(
            db,
            select(Placement)
            .where(
                Placement.organisation_id == organisation_id,
                Placement.status == PlacementStatus.ACTIVE,
            )
            .order_by(Placement.start_date),
        )

    async def get_overdue_72_hour_reviews(
        self, db: AsyncSession, organisation_id: UUID, today: Optional[date] = None
    ) -> List[Placement]:
        today = today or date.today()
        return await self._list(
            db,
            select(Placement)
            .where(
                Placement.organisation_id == organisation_id,
                Placement.status == PlacementStatus.ACTIVE,
                Placement.initial_72hr_review_completed.is_(False),
                Placement.initial_72hr_review_date <= today,
            )
            .order_by(Placement.initial_72hr_review_date),
        )

    async def get_overdue_placement_reviews(
        self, db: AsyncSession, organisation_id: UUID, today: Optional[date] = None
    ) -> List[Placement]:
        today = today or date.today()
        return await self._list(
            db,
            select(Placement)
            .where(
                Placement.organisation_id == organisation_id,
                Placement.status == PlacementStatus.ACTIVE,
                Placement.next_placement_review_date <= today,
            )
            .order_by(Placement.next_placement_review_date),
        )

    async def get_placements_at_risk(
        self, db: AsyncSession, organisation_id: UUID
    ) -> List[Placement]:
        return await self._list(
            db,
            select(Placement).where(
                Placement.organisation_id == organisation_id,
                Placement.status == PlacementStatus.ACTIVE,
                Placement.at_risk_of_breakdown.is_(True),
            ),
        )

    async def get_placement_statistics(
        self, db: AsyncSession, organisation_id: UUID
    ) -> PlacementStatistics:
        """
        Aggregates one organisation's placements.

        average_duration_days covers placements with an end date only;
        breakdown_rate = breakdowns / (ended + breakdowns) x 100, one decimal.
        """
        await organisation_service.get_organisation(db, organisation_id)
        placements = await self._list(
            db, select(Placement).where(Placement.organisation_id == organisation_id)
        )

        def count(status: PlacementStatus) -> int:
            return sum(1 for p in placements if p.status == status)

        ended = count(PlacementStatus.ENDED)
        breakdowns = count(PlacementStatus.BREAKDOWN)

        finished = [p for p in placements if p.end_date is not None]
        average = (
            sum(p.get_duration_days() for p in finished) / len(finished) if finished else 0
        )
        total_ended = ended + breakdowns
        rate = breakdowns / total_ended * 100 if total_ended else 0

        return PlacementStatistics(
            total_placements=len(placements),
            active_placements=count(PlacementStatus.ACTIVE),
            pending_arrival=count(PlacementStatus.PENDING_ARRIVAL),
            ended_placements=ended,
            breakdowns=breakdowns,
            at_risk_placements=sum(1 for p in placements if p.at_risk_of_breakdown),
            average_duration_days=int(_round_half_up(average)),
            breakdown_rate=float(_round_half_up(rate, 1)),
        )

    # ── Placement requests ────────────────────────────────────────────────

    async def create_placement_request(
        self,
        db: AsyncSession,
        data: PlacementRequestCreate,
        actor: str,
    ) -> PlacementRequest:
        await child_service.get_child(db, data.child_id)
        fields = data.model_dump(exclude={"matching_criteria"})
        request = PlacementRequest(
            **fields,
            matching_criteria=data.matching_criteria.model_dump(mode="json"),
            status_history=[],
            created_by=actor,
            updated_by=actor,
        )
        request.add_status_change(PlacementRequestStatus.PENDING, actor, "Request created")
        db.add(request)
        await flush(db, "create placement request")
        logger.info(
            "Placement request %s created (%s) for child %s",
            request.id, data.urgency.value, data.child_id,
        )
        return request

    async def get_placement_request(self, db: AsyncSession, request_id: UUID) -> PlacementRequest:
        return await fetch_or_404(db, PlacementRequest, request_id, "placement request")

    async def update_placement_request_status(
        self,
        db: AsyncSession,
        request_id: UUID,
        status: PlacementRequestStatus,
        actor: str,
        reason: Optional[str] = None,
    ) -> PlacementRequest:
        request = await self.get_placement_request(db, request_id)
        request.add_status_change(status, actor, reason)
        request.updated_by = actor
        await flush(db, "update placement request status")
        return request

    async def match_placement_request(
        self,
        db: AsyncSession,
        request_id: UUID,
        organisation_id: UUID,
        actor: str,
    ) -> PlacementRequest:
        request = await self.get_placement_request(db, request_id)
        if request.status == PlacementRequestStatus.MATCHED:
            raise ConflictError(
                message="Placement request already matched",
                context={"matched_organisation_id": str(request.matched_organisation_id)},
            )
        if request.status in UNMATCHABLE_REQUEST_STATUSES:
            raise ValidationError(
                f"Cannot match a placement request with status {request.status.value}",
                field="status",
            )
        organisation = await organisation_service.get_organisation(db, organisation_id)

        request.matched_organisation_id = organisation.id
        request.matched_at = utcnow()
        request.matched_by = actor
        request.add_status_change(
            PlacementRequestStatus.MATCHED, actor, f"Matched with {organisation.name}"
        )
        request.updated_by = actor
        await flush(db, "match placement request")
        logger.info("Placement request %s matched with %s", request_id, organisation.name)
        return request

    async def get_urgent_placement_requests(self, db: AsyncSession) -> List[PlacementRequest]:
        result = await db.execute(
            select(PlacementRequest)
            .where(
                PlacementRequest.urgency.in_(URGENT_LEVELS),
                PlacementRequest.status.in_(URGENT_OPEN_STATUSES),
            )
            .order_by(PlacementRequest.required_start_date)
        )
        return list(result.scalars().all())

    async def get_overdue_placement_requests(
        self, db: AsyncSession, today: Optional[date] = None
    ) -> List[PlacementRequest]:
        today = today or date.today()
        result = await db.execute(
            select(PlacementRequest)
            .where(
                PlacementRequest.required_start_date < today,
                PlacementRequest.status.not_in(CLOSED_REQUEST_STATUSES),
            )
            .order_by(PlacementRequest.required_start_date)
        )
        return list(result.scalars().all())

    # ── Reviews ───────────────────────────────────────────────────────────

    async def create_placement_review(
        self,
        db: AsyncSession,
        placement_id: UUID,
        review_type: PlacementReviewType,
        scheduled_date: date,
        actor: str,
    ) -> PlacementReview:
        placement = await self.get_placement(db, placement_id)
        existing = await db.scalar(
            select(func.count())
            .select_from(PlacementReview)
            .where(PlacementReview.placement_id == placement_id)
        )
        review = PlacementReview(
            placement_id=placement.id,
            child_id=placement.child_id,
            review_type=review_type,
            review_number=(existing or 0) + 1,
            scheduled_date=scheduled_date,
            completed=False,
            attendees=[],
            actions_agreed=[],
            created_by=actor,
            updated_by=actor,
        )
        db.add(review)
        await flush(db, "create placement review")
        return review

    async def get_reviews_for_placement(
        self, db: AsyncSession, placement_id: UUID
    ) -> List[PlacementReview]:
        await self.get_placement(db, placement_id)
        result = await db.execute(
            select(PlacementReview)
            .where(PlacementReview.placement_id == placement_id)
            .order_by(PlacementReview.review_number)
        )
        return list(result.scalars().all())

    async def complete_placement_review(
        self,
        db: AsyncSession,
        review_id: UUID,
        data: PlacementReviewComplete,
        actor: str,
    ) -> PlacementReview:
        """
        Records the review outcome and feeds it back into the placement.

        - outcome continues the placement and next_review_date given →
          placement next/last review dates move on
        - INITIAL_72_HOUR review → placement's 72-hour review is complete
        """
        review = await fetch_or_404(db, PlacementReview, review_id, "placement review")
        if review.completed:
            raise ValidationError("Review has already been completed", field="completed")

        for field, value in data.model_dump().items():
            setattr(review, field, value)
        review.completed = True
        review.completed_date = utcnow()
        review.reviewed_by = actor
        review.updated_by = actor

        placement = await self.get_placement(db, review.placement_id)
        if review.review_type == PlacementReviewType.INITIAL_72_HOUR:
            placement.initial_72hr_review_completed = True
            placement.updated_by = actor
        if data.outcome in CONTINUING_OUTCOMES and data.next_review_date:
            placement.next_placement_review_date = data.next_review_date
            placement.last_placement_review_date = date.today()
            placement.updated_by = actor

        await flush(db, "complete placement review")
        logger.info(
            "Review %d for placement %s completed: %s",
            review.review_number, placement.placement_number, data.outcome.value,
        )
        return review


placement_service = PlacementService()

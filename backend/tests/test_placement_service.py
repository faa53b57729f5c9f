"""
CareNotes Backend - Placement Service Tests
============================================

What:  Placement lifecycle, occupancy, monitoring lists, placement requests,
       reviews and statistics, against the in-memory database.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest

from carenotes.exceptions import ConflictError, NotFoundError, ValidationError
from carenotes.models.placement import PlacementEndReason, PlacementStatus
from carenotes.models.placement_request import PlacementRequestStatus, PlacementRequestUrgency
from carenotes.models.placement_review import PlacementReviewType, ReviewOutcome
from carenotes.schemas.placement import (
    PlacementCreate,
    PlacementEnd,
    PlacementRequestCreate,
    PlacementReviewComplete,
    PlacementUpdate,
)
from carenotes.services.placement_service import placement_service

TEST_ACTOR = "test.manager"

START = date(2025, 3, 10)


def _placement_data(child, organisation, **overrides) -> PlacementCreate:
    fields = {
        "child_id": child.id,
        "organisation_id": organisation.id,
        "start_date": START,
        "funding_authority": "Leeds City Council",
        "weekly_rate": Decimal("4250.00"),
    }
    fields.update(overrides)
    return PlacementCreate(**fields)


def _request_data(child, **overrides) -> PlacementRequestCreate:
    fields = {
        "child_id": child.id,
        "requesting_authority": "Leeds City Council",
        "social_worker_name": "Jo Brennan",
        "social_worker_email": "jo.brennan@leeds.gov.uk",
        "required_start_date": START,
        "urgency": PlacementRequestUrgency.URGENT,
    }
    fields.update(overrides)
    return PlacementRequestCreate(**fields)


class TestPlacementLifecycle:

    @pytest.mark.asyncio
    async def test_create_placement(self, db_session, make_child, make_organisation):
        """New placements wait for arrival, get review dates and take a place."""
        child = await make_child()
        organisation = await make_organisation(current_occupancy=1)

        placement = await placement_service.create_placement(
            db_session, _placement_data(child, organisation), TEST_ACTOR
        )

        assert placement.status == PlacementStatus.PENDING_ARRIVAL
        assert placement.placement_number == "PL-2025-0001"
        assert placement.initial_72hr_review_date == START + timedelta(days=3)
        assert placement.next_placement_review_date == START + timedelta(days=28)
        assert placement.created_by == TEST_ACTOR
        assert organisation.current_occupancy == 2

    @pytest.mark.asyncio
    async def test_placement_numbers_increment(self, db_session, make_child, make_organisation):
        """Numbers run PL-YYYY-0001, 0002 ... within a year."""
        organisation = await make_organisation()
        first = await placement_service.create_placement(
            db_session, _placement_data(await make_child(), organisation), TEST_ACTOR
        )
        second = await placement_service.create_placement(
            db_session, _placement_data(await make_child(first_name="Kai"), organisation), TEST_ACTOR
        )

        assert first.placement_number == "PL-2025-0001"
        assert second.placement_number == "PL-2025-0002"

    @pytest.mark.asyncio
    async def test_child_with_open_placement_conflicts(self, db_session, make_child, make_organisation):
        """A child can only hold one PENDING_ARRIVAL or ACTIVE placement."""
        child = await make_child()
        organisation = await make_organisation()
        await placement_service.create_placement(
            db_session, _placement_data(child, organisation), TEST_ACTOR
        )

        with pytest.raises(ConflictError, match="already has an active placement"):
            await placement_service.create_placement(
                db_session, _placement_data(child, organisation), TEST_ACTOR
            )

    @pytest.mark.asyncio
    async def test_full_organisation_rejected(self, db_session, make_child, make_organisation):
        """No free place means no placement."""
        child = await make_child()
        organisation = await make_organisation(current_occupancy=4)

        with pytest.raises(ValidationError, match="no available places"):
            await placement_service.create_placement(
                db_session, _placement_data(child, organisation), TEST_ACTOR
            )

    @pytest.mark.asyncio
    async def test_inactive_organisation_rejected(self, db_session, make_child, make_organisation):
        child = await make_child()
        organisation = await make_organisation(is_active=False)

        with pytest.raises(ValidationError, match="not accepting placements"):
            await placement_service.create_placement(
                db_session, _placement_data(child, organisation), TEST_ACTOR
            )

    @pytest.mark.asyncio
    async def test_unknown_child(self, db_session, make_organisation):
        organisation = await make_organisation()
        data = PlacementCreate(
            child_id=uuid.uuid4(),
            organisation_id=organisation.id,
            start_date=START,
            funding_authority="Leeds City Council",
        )

        with pytest.raises(NotFoundError):
            await placement_service.create_placement(db_session, data, TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_activate_then_end(self, db_session, make_child, make_organisation):
        """PENDING_ARRIVAL → ACTIVE → ENDED gives the place back."""
        child = await make_child()
        organisation = await make_organisation(current_occupancy=0)
        placement = await placement_service.create_placement(
            db_session, _placement_data(child, organisation), TEST_ACTOR
        )

        await placement_service.activate_placement(db_session, placement.id, TEST_ACTOR)
        assert placement.status == PlacementStatus.ACTIVE

        ended = await placement_service.end_placement(
            db_session,
            placement.id,
            PlacementEnd(end_date=START + timedelta(days=90), reason=PlacementEndReason.RETURNED_HOME),
            TEST_ACTOR,
        )

        assert ended.status == PlacementStatus.ENDED
        assert ended.end_reason == PlacementEndReason.RETURNED_HOME
        assert ended.get_duration_days() == 90
        assert organisation.current_occupancy == 0

    @pytest.mark.asyncio
    async def test_activate_twice_rejected(self, db_session, make_child, make_organisation):
        placement = await placement_service.create_placement(
            db_session, _placement_data(await make_child(), await make_organisation()), TEST_ACTOR
        )
        await placement_service.activate_placement(db_session, placement.id, TEST_ACTOR)

        with pytest.raises(ValidationError, match="Cannot activate"):
            await placement_service.activate_placement(db_session, placement.id, TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, db_session, make_child, make_organisation):
        placement = await placement_service.create_placement(
            db_session, _placement_data(await make_child(), await make_organisation()), TEST_ACTOR
        )

        with pytest.raises(ValidationError, match="before start date"):
            await placement_service.end_placement(
                db_session,
                placement.id,
                PlacementEnd(end_date=START - timedelta(days=1), reason=PlacementEndReason.OTHER),
                TEST_ACTOR,
            )

    @pytest.mark.asyncio
    async def test_breakdown(self, db_session, make_child, make_organisation):
        """A breakdown ends the placement with the breakdown reason and frees the place."""
        organisation = await make_organisation(current_occupancy=0)
        placement = await placement_service.create_placement(
            db_session, _placement_data(await make_child(), organisation), TEST_ACTOR
        )
        await placement_service.activate_placement(db_session, placement.id, TEST_ACTOR)

        broken = await placement_service.mark_as_breakdown(
            db_session, placement.id, "Repeated missing episodes", TEST_ACTOR
        )

        assert broken.status == PlacementStatus.BREAKDOWN
        assert broken.end_reason == PlacementEndReason.PLACEMENT_BREAKDOWN
        assert broken.end_notes == "Repeated missing episodes"
        assert broken.end_date >= broken.start_date
        assert organisation.current_occupancy == 0

        with pytest.raises(ValidationError, match="already ended"):
            await placement_service.mark_as_breakdown(db_session, placement.id, "again", TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_update_placement(self, db_session, make_child, make_organisation):
        """Only fields present in the update are applied."""
        placement = await placement_service.create_placement(
            db_session, _placement_data(await make_child(), await make_organisation()), TEST_ACTOR
        )

        updated = await placement_service.update_placement(
            db_session,
            placement.id,
            PlacementUpdate(at_risk_of_breakdown=True, breakdown_risk_factors=["school exclusion"]),
            "deputy.manager",
        )

        assert updated.at_risk_of_breakdown is True
        assert updated.breakdown_risk_factors == ["school exclusion"]
        assert updated.weekly_rate == Decimal("4250.00")
        assert updated.updated_by == "deputy.manager"


class TestMonitoring:

    async def _active_placement(self, db_session, child, organisation, start=START):
        placement = await placement_service.create_placement(
            db_session, _placement_data(child, organisation, start_date=start), TEST_ACTOR
        )
        await placement_service.activate_placement(db_session, placement.id, TEST_ACTOR)
        return placement

    @pytest.mark.asyncio
    async def test_overdue_72_hour_reviews(self, db_session, make_child, make_organisation):
        """Active placements past their 72-hour review date without it done."""
        organisation = await make_organisation(current_occupancy=0)
        placement = await self._active_placement(db_session, await make_child(), organisation)

        before = await placement_service.get_overdue_72_hour_reviews(
            db_session, organisation.id, today=START + timedelta(days=2)
        )
        after = await placement_service.get_overdue_72_hour_reviews(
            db_session, organisation.id, today=START + timedelta(days=3)
        )

        assert before == []
        assert [p.id for p in after] == [placement.id]

    @pytest.mark.asyncio
    async def test_overdue_placement_reviews(self, db_session, make_child, make_organisation):
        organisation = await make_organisation(current_occupancy=0)
        placement = await self._active_placement(db_session, await make_child(), organisation)

        overdue = await placement_service.get_overdue_placement_reviews(
            db_session, organisation.id, today=START + timedelta(days=30)
        )

        assert [p.id for p in overdue] == [placement.id]

    @pytest.mark.asyncio
    async def test_at_risk_and_active_lists(self, db_session, make_child, make_organisation):
        organisation = await make_organisation(current_occupancy=0)
        settled = await self._active_placement(db_session, await make_child(), organisation)
        fragile = await self._active_placement(
            db_session, await make_child(first_name="Kai"), organisation, start=START + timedelta(days=1)
        )
        await placement_service.update_placement(
            db_session, fragile.id, PlacementUpdate(at_risk_of_breakdown=True), TEST_ACTOR
        )

        active = await placement_service.get_active_placements_by_organisation(db_session, organisation.id)
        at_risk = await placement_service.get_placements_at_risk(db_session, organisation.id)

        assert [p.id for p in active] == [settled.id, fragile.id]
        assert [p.id for p in at_risk] == [fragile.id]

    @pytest.mark.asyncio
    async def test_statistics(self, db_session, make_child, make_organisation):
        """Breakdown rate is breakdowns over all finished placements, one decimal."""
        organisation = await make_organisation(registered_capacity=6, current_occupancy=0)
        ended = await self._active_placement(db_session, await make_child(), organisation)
        await placement_service.end_placement(
            db_session,
            ended.id,
            PlacementEnd(end_date=START + timedelta(days=100), reason=PlacementEndReason.PLANNED_END),
            TEST_ACTOR,
        )
        broken = await self._active_placement(db_session, await make_child(first_name="Kai"), organisation)
        await placement_service.mark_as_breakdown(db_session, broken.id, "Assault on staff", TEST_ACTOR)
        third = await self._active_placement(db_session, await make_child(first_name="Lena"), organisation)
        await placement_service.end_placement(
            db_session,
            third.id,
            PlacementEnd(end_date=START + timedelta(days=50), reason=PlacementEndReason.LEAVING_CARE),
            TEST_ACTOR,
        )
        await self._active_placement(db_session, await make_child(first_name="Sam"), organisation)

        stats = await placement_service.get_placement_statistics(db_session, organisation.id)

        assert stats.total_placements == 4
        assert stats.active_placements == 1
        assert stats.ended_placements == 2
        assert stats.breakdowns == 1
        assert stats.breakdown_rate == 33.3

    @pytest.mark.asyncio
    async def test_statistics_empty(self, db_session, make_organisation):
        """No placements: zero averages, no division errors."""
        organisation = await make_organisation()

        stats = await placement_service.get_placement_statistics(db_session, organisation.id)

        assert stats.total_placements == 0
        assert stats.average_duration_days == 0
        assert stats.breakdown_rate == 0.0


class TestPlacementRequests:

    @pytest.mark.asyncio
    async def test_create_request_records_history(self, db_session, make_child):
        request = await placement_service.create_placement_request(
            db_session, _request_data(await make_child()), TEST_ACTOR
        )

        assert request.status == PlacementRequestStatus.PENDING
        assert len(request.status_history) == 1
        assert request.status_history[0]["status"] == "PENDING"
        assert request.status_history[0]["changed_by"] == TEST_ACTOR

    @pytest.mark.asyncio
    async def test_status_change_appends_history(self, db_session, make_child):
        request = await placement_service.create_placement_request(
            db_session, _request_data(await make_child()), TEST_ACTOR
        )

        await placement_service.update_placement_request_status(
            db_session, request.id, PlacementRequestStatus.UNDER_REVIEW, TEST_ACTOR, "Panel on Friday"
        )

        assert request.status == PlacementRequestStatus.UNDER_REVIEW
        assert [entry["status"] for entry in request.status_history] == ["PENDING", "UNDER_REVIEW"]
        assert request.status_history[-1]["reason"] == "Panel on Friday"

    @pytest.mark.asyncio
    async def test_match_request(self, db_session, make_child, make_organisation):
        """Matching records the organisation once; a second match conflicts."""
        organisation = await make_organisation()
        request = await placement_service.create_placement_request(
            db_session, _request_data(await make_child()), TEST_ACTOR
        )

        matched = await placement_service.match_placement_request(
            db_session, request.id, organisation.id, TEST_ACTOR
        )

        assert matched.status == PlacementRequestStatus.MATCHED
        assert matched.matched_organisation_id == organisation.id
        assert matched.matched_by == TEST_ACTOR

        with pytest.raises(ConflictError, match="already matched"):
            await placement_service.match_placement_request(
                db_session, request.id, organisation.id, TEST_ACTOR
            )

    @pytest.mark.asyncio
    async def test_cancelled_request_cannot_match(self, db_session, make_child, make_organisation):
        organisation = await make_organisation()
        request = await placement_service.create_placement_request(
            db_session, _request_data(await make_child()), TEST_ACTOR
        )
        await placement_service.update_placement_request_status(
            db_session, request.id, PlacementRequestStatus.CANCELLED, TEST_ACTOR
        )

        with pytest.raises(ValidationError, match="Cannot match"):
            await placement_service.match_placement_request(
                db_session, request.id, organisation.id, TEST_ACTOR
            )

    @pytest.mark.asyncio
    async def test_placement_marks_request_placed(self, db_session, make_child, make_organisation):
        """Creating a placement from a request closes the request."""
        child = await make_child()
        organisation = await make_organisation()
        request = await placement_service.create_placement_request(
            db_session, _request_data(child), TEST_ACTOR
        )

        placement = await placement_service.create_placement(
            db_session,
            _placement_data(child, organisation, placement_request_id=request.id),
            TEST_ACTOR,
        )

        assert request.status == PlacementRequestStatus.PLACED
        assert request.placement_id == placement.id
        assert request.placed_at is not None

    @pytest.mark.asyncio
    async def test_urgent_and_overdue_lists(self, db_session, make_child):
        """Urgent lists open URGENT/EMERGENCY requests; overdue lists unplaced past start."""
        urgent = await placement_service.create_placement_request(
            db_session, _request_data(await make_child()), TEST_ACTOR
        )
        routine = await placement_service.create_placement_request(
            db_session,
            _request_data(
                await make_child(first_name="Kai"),
                urgency=PlacementRequestUrgency.ROUTINE,
                required_start_date=START + timedelta(days=60),
            ),
            TEST_ACTOR,
        )

        urgent_list = await placement_service.get_urgent_placement_requests(db_session)
        overdue = await placement_service.get_overdue_placement_requests(
            db_session, today=START + timedelta(days=1)
        )

        assert [r.id for r in urgent_list] == [urgent.id]
        assert [r.id for r in overdue] == [urgent.id]
        assert routine.id not in [r.id for r in overdue]


class TestPlacementReviews:

    @pytest.mark.asyncio
    async def test_reviews_numbered_in_order(self, db_session, make_child, make_organisation):
        placement = await placement_service.create_placement(
            db_session, _placement_data(await make_child(), await make_organisation()), TEST_ACTOR
        )

        first = await placement_service.create_placement_review(
            db_session, placement.id, PlacementReviewType.INITIAL_72_HOUR, START + timedelta(days=3), TEST_ACTOR
        )
        second = await placement_service.create_placement_review(
            db_session, placement.id, PlacementReviewType.TWENTY_EIGHT_DAY, START + timedelta(days=28), TEST_ACTOR
        )

        reviews = await placement_service.get_reviews_for_placement(db_session, placement.id)
        assert (first.review_number, second.review_number) == (1, 2)
        assert [r.id for r in reviews] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_completing_72_hour_review(self, db_session, make_child, make_organisation):
        """Completing the initial review ticks it off and moves the next review date."""
        placement = await placement_service.create_placement(
            db_session, _placement_data(await make_child(), await make_organisation()), TEST_ACTOR
        )
        review = await placement_service.create_placement_review(
            db_session, placement.id, PlacementReviewType.INITIAL_72_HOUR, START + timedelta(days=3), TEST_ACTOR
        )
        next_review = START + timedelta(days=90)

        completed = await placement_service.complete_placement_review(
            db_session,
            review.id,
            PlacementReviewComplete(
                outcome=ReviewOutcome.PLACEMENT_CONTINUES,
                child_attended=True,
                attendees=["Jo Brennan", "Amara Okafor"],
                next_review_date=next_review,
            ),
            TEST_ACTOR,
        )

        assert completed.completed is True
        assert completed.reviewed_by == TEST_ACTOR
        assert placement.initial_72hr_review_completed is True
        assert placement.next_placement_review_date == next_review
        assert placement.last_placement_review_date == date.today()

    @pytest.mark.asyncio
    async def test_ending_outcome_keeps_review_date(self, db_session, make_child, make_organisation):
        """PLACEMENT_TO_END does not schedule another review."""
        placement = await placement_service.create_placement(
            db_session, _placement_data(await make_child(), await make_organisation()), TEST_ACTOR
        )
        original = placement.next_placement_review_date
        review = await placement_service.create_placement_review(
            db_session, placement.id, PlacementReviewType.AD_HOC, START + timedelta(days=10), TEST_ACTOR
        )

        await placement_service.complete_placement_review(
            db_session,
            review.id,
            PlacementReviewComplete(
                outcome=ReviewOutcome.PLACEMENT_TO_END,
                next_review_date=START + timedelta(days=40),
            ),
            TEST_ACTOR,
        )

        assert placement.next_placement_review_date == original
        with pytest.raises(ValidationError, match="already been completed"):
            await placement_service.complete_placement_review(
                db_session,
                review.id,
                PlacementReviewComplete(outcome=ReviewOutcome.PLACEMENT_TO_END),
                TEST_ACTOR,
            )

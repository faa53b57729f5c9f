"""
CareNotes Backend - Placement Agreement Tests
==============================================

What:  Fee totals, numbering and the DRAFT → PENDING_APPROVAL → ACTIVE →
       TERMINATED workflow.
"""

from datetime import date
from decimal import Decimal

import pytest

from carenotes.exceptions import ConflictError, ValidationError
from carenotes.models.agreement import AgreementStatus, FeeFrequency
from carenotes.schemas.agreement import AdditionalFee, AgreementCreate
from carenotes.schemas.placement import PlacementCreate
from carenotes.services.agreement_service import agreement_service
from carenotes.services.placement_service import placement_service

TEST_ACTOR = "test.manager"


@pytest.fixture
def placement_factory(db_session, make_child, make_organisation):
    async def _make():
        child = await make_child()
        organisation = await make_organisation()
        return await placement_service.create_placement(
            db_session,
            PlacementCreate(
                child_id=child.id,
                organisation_id=organisation.id,
                start_date=date(2025, 4, 1),
                funding_authority="Bradford Council",
            ),
            TEST_ACTOR,
        )

    return _make


def _agreement(**overrides) -> AgreementCreate:
    fields = {
        "base_weekly_fee": Decimal("3800.00"),
        "additional_fees": [
            AdditionalFee(description="1:1 staffing", amount=Decimal("650.00"), frequency=FeeFrequency.WEEKLY),
            AdditionalFee(description="Therapy", amount=Decimal("120.50"), frequency=FeeFrequency.WEEKLY),
            AdditionalFee(description="Education", amount=Decimal("900.00"), frequency=FeeFrequency.MONTHLY),
            AdditionalFee(description="Setup", amount=Decimal("250.00"), frequency=FeeFrequency.ONE_OFF),
        ],
        "start_date": date(2025, 4, 1),
    }
    fields.update(overrides)
    return AgreementCreate(**fields)


class TestAgreementFees:

    @pytest.mark.asyncio
    async def test_total_weekly_cost(self, db_session, placement_factory):
        """Weekly cost is the base fee plus WEEKLY fees only."""
        placement = await placement_factory()

        agreement = await agreement_service.create_agreement(
            db_session, placement.id, _agreement(), TEST_ACTOR
        )

        assert agreement.total_weekly_cost == Decimal("4570.50")
        assert agreement.total_monthly_fees == Decimal("900.00")
        assert agreement.total_one_off_fees == Decimal("250.00")

    @pytest.mark.asyncio
    async def test_no_additional_fees(self, db_session, placement_factory):
        placement = await placement_factory()

        agreement = await agreement_service.create_agreement(
            db_session, placement.id, _agreement(additional_fees=[]), TEST_ACTOR
        )

        assert agreement.total_weekly_cost == Decimal("3800.00")
        assert agreement.total_monthly_fees == Decimal("0.00")


class TestAgreementWorkflow:

    @pytest.mark.asyncio
    async def test_draft_submit_approve(self, db_session, placement_factory):
        placement = await placement_factory()
        agreement = await agreement_service.create_agreement(
            db_session, placement.id, _agreement(), TEST_ACTOR
        )
        assert agreement.status == AgreementStatus.DRAFT
        assert agreement.agreement_number == "PA-2025-0001"

        await agreement_service.submit_for_approval(db_session, agreement.id, TEST_ACTOR)
        assert agreement.status == AgreementStatus.PENDING_APPROVAL
        assert agreement.submitted_at is not None

        await agreement_service.approve_agreement(db_session, agreement.id, "registered.manager")
        assert agreement.status == AgreementStatus.ACTIVE
        assert agreement.approved_by == "registered.manager"

    @pytest.mark.asyncio
    async def test_approve_requires_submission(self, db_session, placement_factory):
        """A DRAFT cannot be approved directly."""
        placement = await placement_factory()
        agreement = await agreement_service.create_agreement(
            db_session, placement.id, _agreement(), TEST_ACTOR
        )

        with pytest.raises(ValidationError, match="Cannot approve"):
            await agreement_service.approve_agreement(db_session, agreement.id, TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_second_live_agreement_conflicts(self, db_session, placement_factory):
        """Only one non-terminated agreement per placement."""
        placement = await placement_factory()
        await agreement_service.create_agreement(db_session, placement.id, _agreement(), TEST_ACTOR)

        with pytest.raises(ConflictError, match="already has agreement"):
            await agreement_service.create_agreement(db_session, placement.id, _agreement(), TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_terminated_agreement_can_be_replaced(self, db_session, placement_factory):
        """After termination a new agreement may be drafted and is numbered next."""
        placement = await placement_factory()
        first = await agreement_service.create_agreement(
            db_session, placement.id, _agreement(), TEST_ACTOR
        )
        await agreement_service.terminate_agreement(db_session, first.id, "Fees renegotiated", TEST_ACTOR)

        second = await agreement_service.create_agreement(
            db_session, placement.id, _agreement(base_weekly_fee=Decimal("4000.00")), TEST_ACTOR
        )

        assert first.status == AgreementStatus.TERMINATED
        assert first.termination_reason == "Fees renegotiated"
        assert second.agreement_number == "PA-2025-0002"
        agreements = await agreement_service.get_agreements_for_placement(db_session, placement.id)
        assert {a.id for a in agreements} == {first.id, second.id}

    @pytest.mark.asyncio
    async def test_terminate_twice_rejected(self, db_session, placement_factory):
        placement = await placement_factory()
        agreement = await agreement_service.create_agreement(
            db_session, placement.id, _agreement(), TEST_ACTOR
        )
        await agreement_service.terminate_agreement(db_session, agreement.id, "Ended", TEST_ACTOR)

        with pytest.raises(ValidationError, match="already terminated"):
            await agreement_service.terminate_agreement(db_session, agreement.id, "Again", TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, db_session, placement_factory):
        placement = await placement_factory()

        with pytest.raises(ValidationError, match="before start date"):
            await agreement_service.create_agreement(
                db_session, placement.id, _agreement(end_date=date(2025, 3, 1)), TEST_ACTOR
            )

"""
CareNotes Backend - Child Finance Tests
========================================

What:  Pocket money disbursement and its follow-up actions, allowance
       approval and receipts, savings deposits, withdrawals and interest,
       and the finance reports.

Test Strategy:
    - Real service calls against the in-memory database
    - Receipt uploads go through FileService with libmagic mocked, files
      land in a temporary storage root
"""

import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from carenotes.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from carenotes.models.allowance import (
    AgeBand,
    AllowanceType,
    ApprovalStatus,
    DisbursementMethod,
    DisbursementStatus,
    ReceiptStatus,
    SavingsAccountStatus,
    SavingsAccountType,
    SavingsTransactionType,
    WithdrawalStatus,
)
from carenotes.models.child import Jurisdiction
from carenotes.schemas.allowance import (
    AllowanceRequest,
    PocketMoneyDisburse,
    SavingsAccountOpen,
    SavingsDeposit,
)
from carenotes.services import allowance_service as allowance_module
from carenotes.services.allowance_service import (
    allowance_service,
    expected_pocket_money,
    iso_week_start,
    quarter_bounds,
    quarter_of,
)
from carenotes.services.file_service import FileService

TEST_ACTOR = "test.manager"


def _disburse(week=10, year=2025, **overrides) -> PocketMoneyDisburse:
    return PocketMoneyDisburse(
        week_number=week, year=year, method=DisbursementMethod.CASH, **overrides
    )


class TestCalendarHelpers:

    def test_iso_week_start(self):
        """ISO week 1 of 2025 starts on Monday 30 December 2024."""
        assert iso_week_start(2025, 1) == date(2024, 12, 30)
        assert iso_week_start(2025, 10) == date(2025, 3, 3)

    def test_week_53_only_in_long_years(self):
        """2026 has 53 ISO weeks; 2025 does not."""
        assert iso_week_start(2026, 53) == date(2026, 12, 28)
        with pytest.raises(ValidationError, match="does not exist"):
            iso_week_start(2025, 53)

    def test_quarters(self):
        assert quarter_of(date(2025, 1, 1)) == 1
        assert quarter_of(date(2025, 6, 30)) == 2
        assert quarter_of(date(2025, 12, 31)) == 4
        assert quarter_bounds(2024, 1) == (date(2024, 1, 1), date(2024, 3, 31))
        assert quarter_bounds(2025, 4) == (date(2025, 10, 1), date(2025, 12, 31))

    def test_invalid_quarter(self):
        with pytest.raises(ValidationError, match="between 1 and 4"):
            quarter_bounds(2025, 5)

    def test_expected_amounts(self):
        """Rates depend on jurisdiction and age band."""
        assert expected_pocket_money(Jurisdiction.ENGLAND, 12) == Decimal("10.00")
        assert expected_pocket_money(Jurisdiction.SCOTLAND, 12) == Decimal("10.50")
        assert expected_pocket_money(Jurisdiction.ENGLAND, 4) == Decimal("2.00")
        assert expected_pocket_money(Jurisdiction.IRELAND, 17) == Decimal("17.50")

    def test_rates_table(self):
        rates = allowance_service.get_pocket_money_rates(Jurisdiction.WALES)

        assert rates.jurisdiction == Jurisdiction.WALES
        assert list(rates.weekly_rates) == ["0-4", "5-7", "8-10", "11-15", "16-17"]


class TestPocketMoney:

    @pytest.mark.asyncio
    async def test_disburse_expected_amount(self, db_session, make_child):
        """Without a partial amount the child gets the full rate for their band."""
        child = await make_child()

        tx = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(), TEST_ACTOR
        )

        assert tx.status == DisbursementStatus.DISBURSED
        assert tx.week_start_date == date(2025, 3, 3)
        assert tx.week_end_date == date(2025, 3, 9)
        assert tx.age_band == AgeBand.AGE_11_15
        assert tx.expected_amount == Decimal("10.00")
        assert tx.disbursed_amount == Decimal("10.00")
        assert tx.has_variance is False
        assert tx.disbursed_by == TEST_ACTOR

    @pytest.mark.asyncio
    async def test_age_band_uses_week_start(self, db_session, make_child):
        """A child whose birthday falls mid-week is banded by their age on the Monday."""
        child = await make_child(date_of_birth=date(2009, 3, 5))

        tx = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(), TEST_ACTOR
        )

        assert tx.age_band == AgeBand.AGE_11_15

    @pytest.mark.asyncio
    async def test_partial_amount_records_variance(self, db_session, make_child):
        child = await make_child()

        tx = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(partial_amount=Decimal("6.00")), TEST_ACTOR
        )

        assert tx.disbursed_amount == Decimal("6.00")
        assert tx.has_variance is True
        assert "expected 10.00" in tx.variance_reason

    @pytest.mark.asyncio
    async def test_jurisdiction_override(self, db_session, make_child):
        child = await make_child()

        tx = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(jurisdiction=Jurisdiction.SCOTLAND), TEST_ACTOR
        )

        assert tx.jurisdiction == Jurisdiction.SCOTLAND
        assert tx.expected_amount == Decimal("10.50")

    @pytest.mark.asyncio
    async def test_duplicate_week_conflicts(self, db_session, make_child):
        """One transaction per child per ISO week."""
        child = await make_child()
        first = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(), TEST_ACTOR
        )

        with pytest.raises(ConflictError) as exc_info:
            await allowance_service.disburse_weekly_pocket_money(
                db_session, child.id, _disburse(), TEST_ACTOR
            )

        assert exc_info.value.context["transaction_id"] == str(first.id)

    @pytest.mark.asyncio
    async def test_same_week_other_year_allowed(self, db_session, make_child):
        child = await make_child()
        await allowance_service.disburse_weekly_pocket_money(db_session, child.id, _disburse(), TEST_ACTOR)

        tx = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(year=2026), TEST_ACTOR
        )

        assert tx.year == 2026

    @pytest.mark.asyncio
    async def test_savings_cannot_exceed_amount(self, db_session, make_child):
        child = await make_child()

        with pytest.raises(ValidationError, match="cannot exceed"):
            await allowance_service.disburse_weekly_pocket_money(
                db_session, child.id, _disburse(savings_amount=Decimal("12.00")), TEST_ACTOR
            )

    @pytest.mark.asyncio
    async def test_unknown_child(self, db_session):
        with pytest.raises(NotFoundError):
            await allowance_service.disburse_weekly_pocket_money(
                db_session, uuid.uuid4(), _disburse(), TEST_ACTOR
            )

    @pytest.mark.asyncio
    async def test_confirm_receipt(self, db_session, make_child):
        """Once the child signs for it, the week can no longer be withheld."""
        child = await make_child()
        tx = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(), TEST_ACTOR
        )

        await allowance_service.confirm_pocket_money_receipt(
            db_session, tx.id, "A. Okafor", "Thanks", TEST_ACTOR
        )

        assert tx.receipt_confirmed is True
        assert tx.child_signature == "A. Okafor"
        with pytest.raises(ValidationError, match="already confirmed receipt"):
            await allowance_service.withhold_pocket_money(db_session, tx.id, "Sanction", TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_refuse_withhold_defer(self, db_session, make_child):
        child = await make_child()
        refused, withheld, deferred = [
            await allowance_service.disburse_weekly_pocket_money(
                db_session, child.id, _disburse(week=week), TEST_ACTOR
            )
            for week in (10, 11, 12)
        ]

        await allowance_service.record_pocket_money_refusal(db_session, refused.id, "Did not want it", TEST_ACTOR)
        await allowance_service.withhold_pocket_money(db_session, withheld.id, "Damage repair", "deputy.manager")
        await allowance_service.defer_pocket_money(
            db_session, deferred.id, "Away on trip", date(2025, 3, 24), TEST_ACTOR
        )

        assert refused.status == DisbursementStatus.REFUSED
        assert refused.refusal_reason == "Did not want it"
        assert withheld.status == DisbursementStatus.WITHHELD
        assert withheld.withheld_authorised_by == "deputy.manager"
        assert deferred.status == DisbursementStatus.DEFERRED
        assert deferred.deferred_until == date(2025, 3, 24)

    @pytest.mark.asyncio
    async def test_confirm_requires_disbursed(self, db_session, make_child):
        child = await make_child()
        tx = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(), TEST_ACTOR
        )
        await allowance_service.record_pocket_money_refusal(db_session, tx.id, "No", TEST_ACTOR)

        with pytest.raises(ValidationError, match="status REFUSED"):
            await allowance_service.confirm_pocket_money_receipt(db_session, tx.id, "A", None, TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_defer_before_week_rejected(self, db_session, make_child):
        child = await make_child()
        tx = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(), TEST_ACTOR
        )

        with pytest.raises(ValidationError, match="before the start of the week"):
            await allowance_service.defer_pocket_money(db_session, tx.id, "x", date(2025, 3, 1), TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_transactions_newest_week_first(self, db_session, make_child):
        child = await make_child()
        for week in (3, 9, 5):
            await allowance_service.disburse_weekly_pocket_money(
                db_session, child.id, _disburse(week=week), TEST_ACTOR
            )

        transactions = await allowance_service.get_pocket_money_transactions(db_session, child.id, year=2025)

        assert [t.week_number for t in transactions] == [9, 5, 3]


class TestAllowances:

    def _request(self, **overrides) -> AllowanceRequest:
        fields = {
            "allowance_type": AllowanceType.CLOTHING,
            "amount": Decimal("45.00"),
            "item_description": "School shoes",
            "purchase_date": date(2025, 2, 14),
        }
        fields.update(overrides)
        return AllowanceRequest(**fields)

    @pytest.mark.asyncio
    async def test_request_defaults(self, db_session, make_child):
        """Category defaults to the allowance type; quarter follows the purchase date."""
        child = await make_child()

        expenditure = await allowance_service.request_allowance_expenditure(
            db_session, child.id, self._request(), TEST_ACTOR
        )

        assert expenditure.category == "CLOTHING"
        assert (expenditure.year, expenditure.quarter) == (2025, 1)
        assert expenditure.approval_status == ApprovalStatus.PENDING
        assert expenditure.receipt_status == ReceiptStatus.PENDING

    @pytest.mark.asyncio
    async def test_budget_tracking(self, db_session, make_child):
        """spent_to_date counts approved spend of the same type in the same year."""
        child = await make_child()
        first = await allowance_service.request_allowance_expenditure(
            db_session, child.id, self._request(amount=Decimal("120.00")), TEST_ACTOR
        )
        await allowance_service.approve_allowance_expenditure(db_session, first.id, TEST_ACTOR)

        second = await allowance_service.request_allowance_expenditure(
            db_session,
            child.id,
            self._request(amount=Decimal("100.00"), budget_amount=Decimal("200.00")),
            TEST_ACTOR,
        )

        assert second.spent_to_date == Decimal("120.00")
        assert second.exceeds_budget is True

    @pytest.mark.asyncio
    async def test_approve_then_reject_rejected(self, db_session, make_child):
        child = await make_child()
        expenditure = await allowance_service.request_allowance_expenditure(
            db_session, child.id, self._request(), TEST_ACTOR
        )

        await allowance_service.approve_allowance_expenditure(db_session, expenditure.id, TEST_ACTOR, "OK")

        assert expenditure.approval_status == ApprovalStatus.APPROVED
        assert expenditure.approved_by == TEST_ACTOR
        with pytest.raises(ValidationError, match="already been approved"):
            await allowance_service.reject_allowance_expenditure(db_session, expenditure.id, "No", TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_receipt_upload_and_verify(self, db_session, make_child, temp_storage, sample_png_bytes):
        """Upload stores the file and marks UPLOADED; verification needs an upload first."""
        child = await make_child()
        expenditure = await allowance_service.request_allowance_expenditure(
            db_session, child.id, self._request(), TEST_ACTOR
        )
        storage = FileService(storage_root=temp_storage)

        with pytest.raises(ValidationError, match="status PENDING"):
            await allowance_service.verify_receipt(db_session, expenditure.id, TEST_ACTOR)

        with patch.object(allowance_module, "file_service", storage), \
                patch("carenotes.services.file_service.magic.from_buffer", return_value="image/png"):
            await allowance_service.upload_receipt(
                db_session, expenditure.id, "receipt.png", sample_png_bytes, TEST_ACTOR
            )

        assert expenditure.receipt_status == ReceiptStatus.UPLOADED
        assert expenditure.receipt_path.startswith("receipts/")
        assert (storage.storage_root / expenditure.receipt_path).exists()

        await allowance_service.verify_receipt(db_session, expenditure.id, "finance.officer")
        assert expenditure.receipt_status == ReceiptStatus.VERIFIED
        assert expenditure.receipt_verified_by == "finance.officer"

    @pytest.mark.asyncio
    async def test_filters(self, db_session, make_child):
        child = await make_child()
        await allowance_service.request_allowance_expenditure(
            db_session, child.id, self._request(), TEST_ACTOR
        )
        await allowance_service.request_allowance_expenditure(
            db_session,
            child.id,
            self._request(allowance_type=AllowanceType.FESTIVAL, purchase_date=date(2025, 10, 20)),
            TEST_ACTOR,
        )

        festival = await allowance_service.get_allowance_expenditures(
            db_session, child.id, allowance_type=AllowanceType.FESTIVAL
        )
        q1 = await allowance_service.get_allowance_expenditures(db_session, child.id, year=2025, quarter=1)

        assert [e.allowance_type for e in festival] == [AllowanceType.FESTIVAL]
        assert [e.allowance_type for e in q1] == [AllowanceType.CLOTHING]

    @pytest.mark.asyncio
    async def test_reupload_replaces_previous_file(self, db_session, make_child, temp_storage, sample_png_bytes):
        """Only the latest receipt is kept on disk."""
        child = await make_child()
        expenditure = await allowance_service.request_allowance_expenditure(
            db_session, child.id, self._request(), TEST_ACTOR
        )
        storage = FileService(storage_root=temp_storage)

        with patch.object(allowance_module, "file_service", storage), \
                patch("carenotes.services.file_service.magic.from_buffer", return_value="image/png"):
            await allowance_service.upload_receipt(
                db_session, expenditure.id, "first.png", sample_png_bytes, TEST_ACTOR
            )
            first_path = expenditure.receipt_path
            await allowance_service.upload_receipt(
                db_session, expenditure.id, "second.png", sample_png_bytes, TEST_ACTOR
            )

        assert expenditure.receipt_path != first_path
        assert not (storage.storage_root / first_path).exists()
        assert (storage.storage_root / expenditure.receipt_path).exists()

    @pytest.mark.asyncio
    async def test_failed_commit_removes_new_file(self, db_session, make_child, temp_storage, sample_png_bytes):
        """If the row cannot be saved, the stored file is deleted again."""
        child = await make_child()
        expenditure = await allowance_service.request_allowance_expenditure(
            db_session, child.id, self._request(), TEST_ACTOR
        )
        storage = FileService(storage_root=temp_storage)

        with patch.object(allowance_module, "file_service", storage), \
                patch("carenotes.services.file_service.magic.from_buffer", return_value="image/png"), \
                patch.object(allowance_module, "commit", side_effect=DatabaseError()):
            with pytest.raises(DatabaseError):
                await allowance_service.upload_receipt(
                    db_session, expenditure.id, "receipt.png", sample_png_bytes, TEST_ACTOR
                )

        assert list((storage.storage_root / "receipts").rglob("*.png")) == []


class TestSavings:

    async def _account(self, db_session, child, **overrides):
        fields = {"account_type": SavingsAccountType.INTERNAL_POCKET_MONEY, "account_name": "Pocket money pot"}
        fields.update(overrides)
        return await allowance_service.open_savings_account(
            db_session, child.id, SavingsAccountOpen(**fields), TEST_ACTOR
        )

    @pytest.mark.asyncio
    async def test_open_account(self, db_session, make_child):
        child = await make_child()

        account = await self._account(db_session, child)

        assert account.current_balance == Decimal("0.00")
        assert account.high_value_threshold == Decimal("50.00")
        assert account.opened_date == date.today()

    @pytest.mark.asyncio
    async def test_one_active_account_per_type(self, db_session, make_child):
        child = await make_child()
        await self._account(db_session, child)

        with pytest.raises(ConflictError, match="already has an active"):
            await self._account(db_session, child, account_name="Second pot")

        other = await self._account(db_session, child, account_type=SavingsAccountType.TRUST_ACCOUNT)
        assert other.account_type == SavingsAccountType.TRUST_ACCOUNT

    @pytest.mark.asyncio
    async def test_deposit_updates_balance_and_goal(self, db_session, make_child):
        child = await make_child()
        account = await self._account(db_session, child, savings_goal_amount=Decimal("30.00"))

        first = await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("20.00"), description="Birthday money"), TEST_ACTOR
        )
        assert account.savings_goal_achieved is False
        await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("15.00"), description="Pocket money"), TEST_ACTOR
        )

        assert (first.balance_before, first.balance_after) == (Decimal("0.00"), Decimal("20.00"))
        assert account.current_balance == Decimal("35.00")
        assert account.total_deposits == Decimal("35.00")
        assert account.savings_goal_achieved is True
        assert account.savings_goal_progress == 100.0

    @pytest.mark.asyncio
    async def test_deposit_with_unknown_pocket_money_link(self, db_session, make_child):
        child = await make_child()
        account = await self._account(db_session, child)

        with pytest.raises(NotFoundError):
            await allowance_service.deposit_to_savings(
                db_session,
                account.id,
                SavingsDeposit(
                    amount=Decimal("5.00"),
                    description="Saved",
                    linked_pocket_money_transaction_id=uuid.uuid4(),
                ),
                TEST_ACTOR,
            )

    @pytest.mark.asyncio
    async def test_withdrawal_flow(self, db_session, make_child):
        """Requests leave the balance alone; approval deducts it."""
        child = await make_child()
        account = await self._account(db_session, child)
        await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("100.00"), description="Gift"), TEST_ACTOR
        )

        request = await allowance_service.request_savings_withdrawal(
            db_session, account.id, Decimal("80.00"), "Bike", TEST_ACTOR
        )

        assert request.withdrawal_status == WithdrawalStatus.PENDING
        assert request.requires_manager_approval is True
        assert account.current_balance == Decimal("100.00")
        assert account.pending_withdrawals == 1

        approved = await allowance_service.approve_savings_withdrawal(
            db_session, request.id, "registered.manager"
        )

        assert approved.withdrawal_status == WithdrawalStatus.COMPLETED
        assert approved.balance_after == Decimal("20.00")
        assert account.current_balance == Decimal("20.00")
        assert account.total_withdrawals == Decimal("80.00")
        assert account.pending_withdrawals == 0

    @pytest.mark.asyncio
    async def test_small_withdrawal_needs_no_manager(self, db_session, make_child):
        child = await make_child()
        account = await self._account(db_session, child)
        await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("60.00"), description="Gift"), TEST_ACTOR
        )

        request = await allowance_service.request_savings_withdrawal(
            db_session, account.id, Decimal("50.00"), "Cinema", TEST_ACTOR
        )

        assert request.requires_manager_approval is False

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, db_session, make_child):
        child = await make_child()
        account = await self._account(db_session, child)
        await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("10.00"), description="Saved"), TEST_ACTOR
        )

        with pytest.raises(ValidationError, match="Insufficient funds. Available: £10.00"):
            await allowance_service.request_savings_withdrawal(
                db_session, account.id, Decimal("10.01"), "Game", TEST_ACTOR
            )

    @pytest.mark.asyncio
    async def test_reject_withdrawal(self, db_session, make_child):
        child = await make_child()
        account = await self._account(db_session, child)
        await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("40.00"), description="Saved"), TEST_ACTOR
        )
        request = await allowance_service.request_savings_withdrawal(
            db_session, account.id, Decimal("40.00"), "Phone", TEST_ACTOR
        )

        rejected = await allowance_service.reject_savings_withdrawal(
            db_session, request.id, TEST_ACTOR, "Discuss with social worker"
        )

        assert rejected.withdrawal_status == WithdrawalStatus.REJECTED
        assert account.current_balance == Decimal("40.00")
        assert account.pending_withdrawals == 0
        with pytest.raises(ValidationError, match="not a pending withdrawal"):
            await allowance_service.approve_savings_withdrawal(db_session, request.id, TEST_ACTOR)

    @pytest.mark.asyncio
    async def test_monthly_interest(self, db_session, make_child):
        """Rate / 12 of the balance, half-up to the penny; no rate or no balance earns nothing."""
        child = await make_child()
        earning = await self._account(db_session, child, interest_rate=Decimal("6.00"))
        small = await self._account(
            db_session, child, account_type=SavingsAccountType.TRUST_ACCOUNT, interest_rate=Decimal("3.00")
        )
        flat = await self._account(db_session, child, account_type=SavingsAccountType.INTERNAL_ALLOWANCE)
        empty = await self._account(
            db_session, child, account_type=SavingsAccountType.EXTERNAL_BANK_ACCOUNT, interest_rate=Decimal("5.00")
        )
        for account, amount in ((earning, "100.00"), (small, "10.00"), (flat, "100.00")):
            await allowance_service.deposit_to_savings(
                db_session, account.id, SavingsDeposit(amount=Decimal(amount), description="Saved"), TEST_ACTOR
            )

        run = await allowance_service.apply_monthly_interest(db_session, "finance.officer")

        assert run.accounts_credited == 2
        assert run.total_interest == Decimal("0.53")
        assert earning.current_balance == Decimal("100.50")
        assert earning.total_deposits == Decimal("100.50")
        assert small.current_balance == Decimal("10.03")
        assert flat.current_balance == Decimal("100.00")
        assert empty.current_balance == Decimal("0.00")

        [interest] = await allowance_service.get_savings_transactions(
            db_session, earning.id, SavingsTransactionType.INTEREST
        )
        assert interest.amount == Decimal("0.50")
        assert (interest.balance_before, interest.balance_after) == (Decimal("100.00"), Decimal("100.50"))
        assert interest.description.startswith("Monthly interest")
        assert interest.created_by == "finance.officer"

    @pytest.mark.asyncio
    async def test_closed_accounts_earn_no_interest(self, db_session, make_child):
        child = await make_child()
        account = await self._account(db_session, child, interest_rate=Decimal("12.00"))
        await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("50.00"), description="Saved"), TEST_ACTOR
        )
        account.status = SavingsAccountStatus.CLOSED

        run = await allowance_service.apply_monthly_interest(db_session, TEST_ACTOR)

        assert run.accounts_credited == 0
        assert run.total_interest == Decimal("0.00")
        assert account.current_balance == Decimal("50.00")


class TestQuarterlySummary:

    @pytest.mark.asyncio
    async def test_pocket_money_and_allowances(self, db_session, make_child):
        """Only DISBURSED weeks count as money paid; approved spend is grouped by category."""
        child = await make_child()
        paid = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(week=2), TEST_ACTOR
        )
        refused = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(week=3), TEST_ACTOR
        )
        await allowance_service.record_pocket_money_refusal(db_session, refused.id, "No", TEST_ACTOR)
        # Week 1 of 2025 starts in December 2024, outside Q1
        await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(week=1), TEST_ACTOR
        )

        for category, amount in (("Uniform", "30.00"), ("Uniform", "15.50"), ("Coat", "40.00")):
            expenditure = await allowance_service.request_allowance_expenditure(
                db_session,
                child.id,
                AllowanceRequest(
                    allowance_type=AllowanceType.CLOTHING,
                    category=category,
                    amount=Decimal(amount),
                    item_description=category,
                    purchase_date=date(2025, 2, 1),
                ),
                TEST_ACTOR,
            )
            await allowance_service.approve_allowance_expenditure(db_session, expenditure.id, TEST_ACTOR)

        summary = await allowance_service.get_quarterly_summary(db_session, child.id, 2025, 1)

        assert summary.pocket_money.disbursed == paid.disbursed_amount
        assert summary.pocket_money.refused == 1
        assert summary.allowances.total == Decimal("85.50")
        assert summary.allowances.by_category == {"Uniform": Decimal("45.50"), "Coat": Decimal("40.00")}

    @pytest.mark.asyncio
    async def test_savings_movement(self, db_session, make_child):
        """Deposits and completed withdrawals in the quarter; balance across active accounts."""
        child = await make_child()
        account = await allowance_service.open_savings_account(
            db_session,
            child.id,
            SavingsAccountOpen(account_type=SavingsAccountType.INTERNAL_ALLOWANCE, account_name="Pot"),
            TEST_ACTOR,
        )
        await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("25.00"), description="Saved"), TEST_ACTOR
        )
        done = await allowance_service.request_savings_withdrawal(
            db_session, account.id, Decimal("5.00"), "Snacks", TEST_ACTOR
        )
        await allowance_service.approve_savings_withdrawal(db_session, done.id, TEST_ACTOR)
        await allowance_service.request_savings_withdrawal(
            db_session, account.id, Decimal("3.00"), "Pending", TEST_ACTOR
        )
        today = date.today()

        summary = await allowance_service.get_quarterly_summary(
            db_session, child.id, today.year, quarter_of(today)
        )

        assert summary.savings.deposits == Decimal("25.00")
        assert summary.savings.withdrawals == Decimal("5.00")
        assert summary.savings.balance == Decimal("20.00")


class TestFinanceReports:

    async def _spend(self, db_session, child, approve=True, **overrides):
        fields = {
            "allowance_type": AllowanceType.CLOTHING,
            "amount": Decimal("30.00"),
            "item_description": "Jeans",
            "purchase_date": date(2025, 3, 1),
        }
        fields.update(overrides)
        expenditure = await allowance_service.request_allowance_expenditure(
            db_session, child.id, AllowanceRequest(**fields), TEST_ACTOR
        )
        if approve:
            await allowance_service.approve_allowance_expenditure(db_session, expenditure.id, TEST_ACTOR)
        return expenditure

    @pytest.mark.asyncio
    async def test_budget_vs_actual(self, db_session, make_child):
        """Budget comes from the earliest budgeted spend; only approved spend in the year counts."""
        child = await make_child()
        await self._spend(
            db_session, child, amount=Decimal("120.00"), budget_amount=Decimal("200.00"),
            purchase_date=date(2025, 1, 10),
        )
        await self._spend(db_session, child, purchase_date=date(2025, 6, 2))
        await self._spend(db_session, child, approve=False, amount=Decimal("500.00"))
        await self._spend(db_session, child, purchase_date=date(2024, 12, 20))

        report = await allowance_service.get_budget_vs_actual(db_session, child.id, 2025)

        clothing = report.categories["CLOTHING"]
        assert clothing.budget == Decimal("200.00")
        assert clothing.spent == Decimal("150.00")
        assert clothing.remaining == Decimal("50.00")
        assert clothing.percentage_used == 75.0
        assert set(report.categories) == {t.value for t in AllowanceType}
        birthday = report.categories["BIRTHDAY"]
        assert (birthday.budget, birthday.spent, birthday.percentage_used) == (Decimal("0.00"), Decimal("0.00"), 0.0)

    @pytest.mark.asyncio
    async def test_budget_vs_actual_unknown_child(self, db_session):
        with pytest.raises(NotFoundError):
            await allowance_service.get_budget_vs_actual(db_session, uuid.uuid4(), 2025)

    @pytest.mark.asyncio
    async def test_iro_dashboard(self, db_session, make_child):
        child = await make_child()
        pending = await self._spend(db_session, child, approve=False)
        no_receipt = await self._spend(db_session, child)
        overrun = await self._spend(
            db_session, child, approve=False, allowance_type=AllowanceType.HOBBIES,
            amount=Decimal("45.00"), budget_amount=Decimal("40.00"),
        )
        variance = await allowance_service.disburse_weekly_pocket_money(
            db_session, child.id, _disburse(partial_amount=Decimal("6.00")), TEST_ACTOR
        )
        await allowance_service.disburse_weekly_pocket_money(db_session, child.id, _disburse(week=11), TEST_ACTOR)
        account = await allowance_service.open_savings_account(
            db_session,
            child.id,
            SavingsAccountOpen(account_type=SavingsAccountType.INTERNAL_POCKET_MONEY, account_name="Pot"),
            TEST_ACTOR,
        )
        await allowance_service.deposit_to_savings(
            db_session, account.id, SavingsDeposit(amount=Decimal("20.00"), description="Saved"), TEST_ACTOR
        )
        withdrawal = await allowance_service.request_savings_withdrawal(
            db_session, account.id, Decimal("5.00"), "Comic", TEST_ACTOR
        )

        dashboard = await allowance_service.get_iro_dashboard(db_session)

        assert {e.id for e in dashboard.pending_approvals} == {pending.id, overrun.id}
        assert [e.id for e in dashboard.missing_receipts] == [no_receipt.id]
        assert [e.id for e in dashboard.budget_overruns] == [overrun.id]
        assert [t.id for t in dashboard.pending_withdrawals] == [withdrawal.id]
        assert [t.id for t in dashboard.variance_alerts] == [variance.id]

    @pytest.mark.asyncio
    async def test_iro_dashboard_caps_each_list(self, db_session, make_child):
        child = await make_child()
        for _ in range(3):
            await self._spend(db_session, child, approve=False)

        with patch.object(allowance_module, "DASHBOARD_LIMIT", 2):
            dashboard = await allowance_service.get_iro_dashboard(db_session)

        assert len(dashboard.pending_approvals) == 2

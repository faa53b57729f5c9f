"""
CareNotes Backend - Child Finance Service
==========================================

What:  Pocket money, allowance expenditure, savings accounts, monthly
       interest and finance reporting for looked-after children.
Who:   Called by /api/children/{id}/pocket-money|allowances|savings-accounts
       and the /api/pocket-money, /api/allowances, /api/savings-accounts routes.

Pocket money:
    One transaction per child per ISO week; a second disbursement for the
    same (child, week, year) is a ConflictError. The expected amount comes
    from POCKET_MONEY_RATES for the jurisdiction and the child's age band
    on the Monday of that week.

Savings withdrawals:
    Requested (PENDING) → approved (COMPLETED) or rejected (REJECTED).
    Requests above the account's high-value threshold are flagged as needing
    manager approval. The balance only moves on approval.
"""

import calendar
import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.config import settings
from carenotes.database import utcnow
from carenotes.exceptions import (
    CareNotesError,
    ConflictError,
    FileStorageError,
    ValidationError,
)
from carenotes.models.allowance import (
    POCKET_MONEY_RATES,
    AgeBand,
    AllowanceExpenditure,
    AllowanceType,
    ApprovalStatus,
    ChildSavingsAccount,
    DisbursementStatus,
    PocketMoneyTransaction,
    ReceiptStatus,
    SavingsAccountStatus,
    SavingsTransaction,
    SavingsTransactionType,
    WithdrawalStatus,
)
from carenotes.models.child import Jurisdiction
from carenotes.schemas.allowance import (
    AllowanceRequest,
    AllowanceResponse,
    AllowanceSummary,
    BudgetVsActual,
    CategoryBudget,
    InterestRun,
    IRODashboard,
    PocketMoneyDisburse,
    PocketMoneyRates,
    PocketMoneyResponse,
    PocketMoneySummary,
    QuarterlySummary,
    SavingsAccountOpen,
    SavingsDeposit,
    SavingsSummary,
    SavingsTransactionResponse,
)
from carenotes.services.base import commit, fetch_or_404, flush
from carenotes.services.child_service import child_service
from carenotes.services.file_service import file_service

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
DASHBOARD_LIMIT = 50
CREDITS = (SavingsTransactionType.DEPOSIT, SavingsTransactionType.INTEREST)


def iso_week_start(year: int, week_number: int) -> date:
    """Monday of the ISO 8601 week."""
    try:
        return date.fromisocalendar(year, week_number, 1)
    except ValueError as e:
        raise ValidationError(
            f"Week {week_number} does not exist in {year}",
            field="week_number",
        ) from e


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def quarter_bounds(year: int, quarter: int) -> tuple:
    if quarter not in (1, 2, 3, 4):
        raise ValidationError("Quarter must be between 1 and 4", field="quarter")
    first_month = 3 * quarter - 2
    last_month = first_month + 2
    return (
        date(year, first_month, 1),
        date(year, last_month, calendar.monthrange(year, last_month)[1]),
    )


def expected_pocket_money(jurisdiction: Jurisdiction, age: int) -> Decimal:
    return POCKET_MONEY_RATES[jurisdiction][AgeBand.for_age(age)]


class AllowanceService:
    """
    Business logic for a child's money.

    Responsibilities:
        - Weekly pocket money: disburse, confirm, refuse, withhold, defer
        - Allowance expenditure: request, approve/reject, receipts
        - Savings accounts: open, deposit, withdrawal requests and approval,
          monthly interest
        - Reporting: quarterly summary, budget vs actual, IRO dashboard, rate tables
    """

    # ── Pocket money ──────────────────────────────────────────────────────

    def get_pocket_money_rates(self, jurisdiction: Jurisdiction) -> PocketMoneyRates:
        return PocketMoneyRates(
            jurisdiction=jurisdiction,
            weekly_rates={band.value: rate for band, rate in POCKET_MONEY_RATES[jurisdiction].items()},
        )

    async def disburse_weekly_pocket_money(
        self,
        db: AsyncSession,
        child_id: UUID,
        data: PocketMoneyDisburse,
        actor: str,
    ) -> PocketMoneyTransaction:
        """
        Records one week's pocket money for a child.

        Raises:
            NotFoundError: Child does not exist
            ConflictError: Already recorded for this (child, week, year)
            ValidationError: Week does not exist, or savings exceed the disbursed amount
        """
        child = await child_service.get_child(db, child_id)

        existing = await db.scalar(
            select(PocketMoneyTransaction).where(
                PocketMoneyTransaction.child_id == child_id,
                PocketMoneyTransaction.week_number == data.week_number,
                PocketMoneyTransaction.year == data.year,
            )
        )
        if existing is not None:
            raise ConflictError(
                message=(
                    f"Pocket money already disbursed for child {child_id} "
                    f"in week {data.week_number}/{data.year}"
                ),
                context={"transaction_id": str(existing.id)},
            )

        week_start = iso_week_start(data.year, data.week_number)
        jurisdiction = data.jurisdiction or child.jurisdiction
        age = child.age_on(week_start)
        expected = expected_pocket_money(jurisdiction, age)
        disbursed = data.partial_amount or expected

        savings = data.savings_amount or ZERO
        if savings > disbursed:
            raise ValidationError(
                "Savings amount cannot exceed disbursed amount", field="savings_amount"
            )

        transaction = PocketMoneyTransaction(
            child_id=child.id,
            week_number=data.week_number,
            year=data.year,
            week_start_date=week_start,
            week_end_date=week_start + timedelta(days=6),
            jurisdiction=jurisdiction,
            age_band=AgeBand.for_age(age),
            expected_amount=expected,
            disbursed_amount=disbursed,
            method=data.method,
            status=DisbursementStatus.DISBURSED,
            disbursed_at=utcnow(),
            disbursed_by=actor,
            has_variance=disbursed != expected,
            variance_reason=(
                f"Disbursed {disbursed} against expected {expected}"
                if disbursed != expected else None
            ),
            transferred_to_savings=savings,
            notes=data.notes,
            created_by=actor,
            updated_by=actor,
        )
        db.add(transaction)
        await flush(db, "disburse pocket money")
        logger.info(
            "Pocket money %s disbursed to child %s for week %d/%d",
            disbursed, child_id, data.week_number, data.year,
        )
        return transaction

    async def get_pocket_money_transaction(
        self, db: AsyncSession, transaction_id: UUID
    ) -> PocketMoneyTransaction:
        return await fetch_or_404(db, PocketMoneyTransaction, transaction_id, "pocket money transaction")

    async def _open_pocket_money(
        self, db: AsyncSession, transaction_id: UUID, action: str
    ) -> PocketMoneyTransaction:
        transaction = await self.get_pocket_money_transaction(db, transaction_id)
        if transaction.receipt_confirmed:
            raise ValidationError(
                f"Cannot {action}: the child has already confirmed receipt",
                field="receipt_confirmed",
            )
        return transaction

    async def confirm_pocket_money_receipt(
        self,
        db: AsyncSession,
        transaction_id: UUID,
        child_signature: str,
        child_comment: Optional[str],
        actor: str,
    ) -> PocketMoneyTransaction:
        transaction = await self._open_pocket_money(db, transaction_id, "confirm receipt")
        if transaction.status != DisbursementStatus.DISBURSED:
            raise ValidationError(
                f"Cannot confirm receipt of pocket money with status {transaction.status.value}",
                field="status",
            )
        transaction.receipt_confirmed = True
        transaction.child_signature = child_signature
        transaction.child_comment = child_comment
        transaction.updated_by = actor
        await flush(db, "confirm pocket money receipt")
        return transaction

    async def record_pocket_money_refusal(
        self, db: AsyncSession, transaction_id: UUID, reason: str, actor: str
    ) -> PocketMoneyTransaction:
        transaction = await self._open_pocket_money(db, transaction_id, "record refusal")
        transaction.status = DisbursementStatus.REFUSED
        transaction.refusal_reason = reason
        transaction.updated_by = actor
        await flush(db, "record pocket money refusal")
        return transaction

    async def withhold_pocket_money(
        self, db: AsyncSession, transaction_id: UUID, reason: str, actor: str
    ) -> PocketMoneyTransaction:
        transaction = await self._open_pocket_money(db, transaction_id, "withhold pocket money")
        transaction.status = DisbursementStatus.WITHHELD
        transaction.withheld_reason = reason
        transaction.withheld_authorised_by = actor
        transaction.updated_by = actor
        await flush(db, "withhold pocket money")
        logger.warning("Pocket money %s withheld by %s: %s", transaction_id, actor, reason)
        return transaction

    async def defer_pocket_money(
        self,
        db: AsyncSession,
        transaction_id: UUID,
        reason: str,
        defer_until: date,
        actor: str,
    ) -> PocketMoneyTransaction:
        transaction = await self._open_pocket_money(db, transaction_id, "defer pocket money")
        if defer_until < transaction.week_start_date:
            raise ValidationError(
                "Cannot defer to a date before the start of the week", field="defer_until"
            )
        transaction.status = DisbursementStatus.DEFERRED
        transaction.deferral_reason = reason
        transaction.deferred_until = defer_until
        transaction.updated_by = actor
        await flush(db, "defer pocket money")
        return transaction

    async def get_pocket_money_transactions(
        self,
        db: AsyncSession,
        child_id: UUID,
        year: Optional[int] = None,
        status: Optional[DisbursementStatus] = None,
    ) -> List[PocketMoneyTransaction]:
        query = select(PocketMoneyTransaction).where(PocketMoneyTransaction.child_id == child_id)
        if year:
            query = query.where(PocketMoneyTransaction.year == year)
        if status:
            query = query.where(PocketMoneyTransaction.status == status)
        query = query.order_by(
            PocketMoneyTransaction.year.desc(), PocketMoneyTransaction.week_number.desc()
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    # ── Allowances ────────────────────────────────────────────────────────

    async def _approved_spend(
        self,
        db: AsyncSession,
        child_id: UUID,
        allowance_type: AllowanceType,
        year: int,
    ) -> Decimal:
        result = await db.execute(
            select(AllowanceExpenditure.amount).where(
                AllowanceExpenditure.child_id == child_id,
                AllowanceExpenditure.allowance_type == allowance_type,
                AllowanceExpenditure.approval_status == ApprovalStatus.APPROVED,
                AllowanceExpenditure.year == year,
            )
        )
        return sum(result.scalars().all(), ZERO)

    async def request_allowance_expenditure(
        self,
        db: AsyncSession,
        child_id: UUID,
        data: AllowanceRequest,
        actor: str,
    ) -> AllowanceExpenditure:
        """
        Records a planned purchase awaiting approval.

        With a budget_amount, spent_to_date is the year's approved spend for
        the same allowance type, and exceeds_budget flags when this purchase
        would take the total over budget.
        """
        await child_service.get_child(db, child_id)

        year = data.purchase_date.year
        expenditure = AllowanceExpenditure(
            child_id=child_id,
            allowance_type=data.allowance_type,
            category=data.category or data.allowance_type.value,
            amount=data.amount,
            item_description=data.item_description,
            vendor=data.vendor,
            purchase_date=data.purchase_date,
            year=year,
            quarter=quarter_of(data.purchase_date),
            approval_status=ApprovalStatus.PENDING,
            receipt_status=ReceiptStatus.PENDING,
            is_cultural_need=data.is_cultural_need,
            is_religious_need=data.is_religious_need,
            child_chose_item=data.child_chose_item,
            created_by=actor,
            updated_by=actor,
        )

        if data.budget_amount:
            spent = await self._approved_spend(db, child_id, data.allowance_type, year)
            expenditure.budget_amount = data.budget_amount
            expenditure.spent_to_date = spent
            expenditure.exceeds_budget = spent + data.amount > data.budget_amount

        db.add(expenditure)
        await flush(db, "request allowance expenditure")
        if expenditure.exceeds_budget:
            logger.warning(
                "Allowance request %s for child %s exceeds %s budget",
                expenditure.id, child_id, data.allowance_type.value,
            )
        return expenditure

    async def get_allowance_expenditure(
        self, db: AsyncSession, expenditure_id: UUID
    ) -> AllowanceExpenditure:
        return await fetch_or_404(db, AllowanceExpenditure, expenditure_id, "allowance expenditure")

    async def _pending_expenditure(
        self, db: AsyncSession, expenditure_id: UUID
    ) -> AllowanceExpenditure:
        expenditure = await self.get_allowance_expenditure(db, expenditure_id)
        if expenditure.approval_status != ApprovalStatus.PENDING:
            raise ValidationError(
                f"Expenditure has already been {expenditure.approval_status.value.lower()}",
                field="approval_status",
            )
        return expenditure

    async def approve_allowance_expenditure(
        self,
        db: AsyncSession,
        expenditure_id: UUID,
        actor: str,
        notes: Optional[str] = None,
    ) -> AllowanceExpenditure:
        expenditure = await self._pending_expenditure(db, expenditure_id)
        expenditure.approval_status = ApprovalStatus.APPROVED
        expenditure.approved_by = actor
        expenditure.approved_at = utcnow()
        expenditure.approval_notes = notes
        expenditure.updated_by = actor
        await flush(db, "approve allowance expenditure")
        return expenditure

    async def reject_allowance_expenditure(
        self,
        db: AsyncSession,
        expenditure_id: UUID,
        reason: str,
        actor: str,
    ) -> AllowanceExpenditure:
        expenditure = await self._pending_expenditure(db, expenditure_id)
        expenditure.approval_status = ApprovalStatus.REJECTED
        expenditure.approved_by = actor
        expenditure.approved_at = utcnow()
        expenditure.rejection_reason = reason
        expenditure.updated_by = actor
        await flush(db, "reject allowance expenditure")
        return expenditure

    async def upload_receipt(
        self,
        db: AsyncSession,
        expenditure_id: UUID,
        filename: str,
        content: bytes,
        actor: str,
        content_length: Optional[int] = None,
    ) -> AllowanceExpenditure:
        """
        Validates and stores a receipt, then marks it UPLOADED.

        The row is committed here so receipt_path and the file on disk agree:
        if the commit fails the new file is removed; once it succeeds the
        receipt it replaced (an earlier UPLOADED or REJECTED one) is deleted.

        Raises:
            NotFoundError: Expenditure does not exist
            ValidationError: Receipt already verified, or bad file
            FileStorageError: Disk write failed
        """
        expenditure = await self.get_allowance_expenditure(db, expenditure_id)
        if expenditure.receipt_status == ReceiptStatus.VERIFIED:
            raise ValidationError("Receipt has already been verified", field="receipt_status")

        previous_path = expenditure.receipt_path
        absolute_path, relative_path = await file_service.validate_and_store(
            filename=filename, content=content, content_length=content_length
        )
        try:
            expenditure.receipt_path = relative_path
            expenditure.receipt_status = ReceiptStatus.UPLOADED
            expenditure.updated_by = actor
            await commit(db, "record receipt upload")
        except CareNotesError:
            await file_service.cleanup_file(absolute_path)
            raise

        if previous_path and previous_path != relative_path:
            try:
                await file_service.cleanup_file(str(file_service.resolve(previous_path)))
            except FileStorageError as e:
                logger.warning("Replaced receipt %s not removed: %s", previous_path, e.message)
            else:
                logger.info("Replaced receipt %s for expenditure %s", previous_path, expenditure_id)
        logger.info("Receipt uploaded for expenditure %s: %s", expenditure_id, relative_path)
        return expenditure

    async def verify_receipt(
        self, db: AsyncSession, expenditure_id: UUID, actor: str
    ) -> AllowanceExpenditure:
        expenditure = await self.get_allowance_expenditure(db, expenditure_id)
        if expenditure.receipt_status != ReceiptStatus.UPLOADED:
            raise ValidationError(
                f"Cannot verify a receipt with status {expenditure.receipt_status.value}",
                field="receipt_status",
            )
        expenditure.receipt_status = ReceiptStatus.VERIFIED
        expenditure.receipt_verified_by = actor
        expenditure.updated_by = actor
        await flush(db, "verify receipt")
        return expenditure

    async def get_allowance_expenditures(
        self,
        db: AsyncSession,
        child_id: UUID,
        allowance_type: Optional[AllowanceType] = None,
        approval_status: Optional[ApprovalStatus] = None,
        receipt_status: Optional[ReceiptStatus] = None,
        year: Optional[int] = None,
        quarter: Optional[int] = None,
    ) -> List[AllowanceExpenditure]:
        query = select(AllowanceExpenditure).where(AllowanceExpenditure.child_id == child_id)
        if allowance_type:
            query = query.where(AllowanceExpenditure.allowance_type == allowance_type)
        if approval_status:
            query = query.where(AllowanceExpenditure.approval_status == approval_status)
        if receipt_status:
            query = query.where(AllowanceExpenditure.receipt_status == receipt_status)
        if year:
            query = query.where(AllowanceExpenditure.year == year)
        if quarter:
            query = query.where(AllowanceExpenditure.quarter == quarter)
        result = await db.execute(query.order_by(AllowanceExpenditure.purchase_date.desc()))
        return list(result.scalars().all())

    # ── Savings ───────────────────────────────────────────────────────────

    async def open_savings_account(
        self,
        db: AsyncSession,
        child_id: UUID,
        data: SavingsAccountOpen,
        actor: str,
    ) -> ChildSavingsAccount:
        await child_service.get_child(db, child_id)

        existing = await db.scalar(
            select(ChildSavingsAccount).where(
                ChildSavingsAccount.child_id == child_id,
                ChildSavingsAccount.account_type == data.account_type,
                ChildSavingsAccount.status == SavingsAccountStatus.ACTIVE,
            )
        )
        if existing is not None:
            raise ConflictError(
                message=f"Child already has an active {data.account_type.value} account",
                context={"account_id": str(existing.id)},
            )

        account = ChildSavingsAccount(
            child_id=child_id,
            account_type=data.account_type,
            account_name=data.account_name,
            interest_rate=data.interest_rate,
            status=SavingsAccountStatus.ACTIVE,
            opened_date=date.today(),
            current_balance=ZERO,
            total_deposits=ZERO,
            total_withdrawals=ZERO,
            pending_withdrawals=0,
            high_value_threshold=settings.savings_high_value_threshold,
            savings_goal_amount=data.savings_goal_amount,
            savings_goal_description=data.savings_goal_description,
            savings_goal_achieved=False,
            created_by=actor,
            updated_by=actor,
        )
        db.add(account)
        await flush(db, "open savings account")
        logger.info("Savings account %s opened for child %s", account.id, child_id)
        return account

    async def get_savings_account(self, db: AsyncSession, account_id: UUID) -> ChildSavingsAccount:
        return await fetch_or_404(db, ChildSavingsAccount, account_id, "savings account")

    async def get_savings_accounts(
        self, db: AsyncSession, child_id: UUID
    ) -> List[ChildSavingsAccount]:
        result = await db.execute(
            select(ChildSavingsAccount)
            .where(ChildSavingsAccount.child_id == child_id)
            .order_by(ChildSavingsAccount.opened_date)
        )
        return list(result.scalars().all())

    async def _active_account(self, db: AsyncSession, account_id: UUID) -> ChildSavingsAccount:
        account = await self.get_savings_account(db, account_id)
        if account.status != SavingsAccountStatus.ACTIVE:
            raise ValidationError("Savings account is not active", field="status")
        return account

    async def deposit_to_savings(
        self,
        db: AsyncSession,
        account_id: UUID,
        data: SavingsDeposit,
        actor: str,
    ) -> SavingsTransaction:
        account = await self._active_account(db, account_id)
        if data.linked_pocket_money_transaction_id:
            await self.get_pocket_money_transaction(db, data.linked_pocket_money_transaction_id)

        balance_before = account.current_balance
        account.current_balance = balance_before + data.amount
        account.total_deposits = account.total_deposits + data.amount
        if account.savings_goal_amount and account.current_balance >= account.savings_goal_amount:
            account.savings_goal_achieved = True
        account.updated_by = actor

        transaction = SavingsTransaction(
            account_id=account.id,
            child_id=account.child_id,
            transaction_type=SavingsTransactionType.DEPOSIT,
            amount=data.amount,
            description=data.description,
            transaction_date=date.today(),
            balance_before=balance_before,
            balance_after=account.current_balance,
            requires_manager_approval=False,
            linked_pocket_money_transaction_id=data.linked_pocket_money_transaction_id,
            created_by=actor,
            updated_by=actor,
        )
        db.add(transaction)
        await flush(db, "deposit to savings")
        return transaction

    async def request_savings_withdrawal(
        self,
        db: AsyncSession,
        account_id: UUID,
        amount: Decimal,
        purpose: str,
        actor: str,
    ) -> SavingsTransaction:
        """
        Raises:
            ValidationError: Account not active, or amount exceeds the balance
        """
        account = await self._active_account(db, account_id)
        if amount > account.current_balance:
            raise ValidationError(
                f"Insufficient funds. Available: £{account.current_balance}",
                field="amount",
                context={"available": str(account.current_balance)},
            )

        requires_manager = amount > account.high_value_threshold
        account.pending_withdrawals += 1
        account.updated_by = actor

        transaction = SavingsTransaction(
            account_id=account.id,
            child_id=account.child_id,
            transaction_type=SavingsTransactionType.WITHDRAWAL,
            amount=amount,
            description=purpose,
            transaction_date=date.today(),
            balance_before=account.current_balance,
            balance_after=account.current_balance,
            withdrawal_status=WithdrawalStatus.PENDING,
            requires_manager_approval=requires_manager,
            created_by=actor,
            updated_by=actor,
        )
        db.add(transaction)
        await flush(db, "request savings withdrawal")
        if requires_manager:
            logger.info("Withdrawal %s of %s needs manager approval", transaction.id, amount)
        return transaction

    async def _pending_withdrawal(
        self, db: AsyncSession, transaction_id: UUID
    ) -> SavingsTransaction:
        transaction = await fetch_or_404(db, SavingsTransaction, transaction_id, "savings transaction")
        if (
            transaction.transaction_type != SavingsTransactionType.WITHDRAWAL
            or transaction.withdrawal_status != WithdrawalStatus.PENDING
        ):
            raise ValidationError("Transaction is not a pending withdrawal", field="withdrawal_status")
        return transaction

    async def approve_savings_withdrawal(
        self,
        db: AsyncSession,
        transaction_id: UUID,
        actor: str,
        notes: Optional[str] = None,
    ) -> SavingsTransaction:
        transaction = await self._pending_withdrawal(db, transaction_id)
        account = await self._active_account(db, transaction.account_id)
        if transaction.amount > account.current_balance:
            raise ValidationError(
                f"Insufficient funds. Available: £{account.current_balance}",
                field="amount",
            )

        transaction.balance_before = account.current_balance
        account.current_balance = account.current_balance - transaction.amount
        account.total_withdrawals = account.total_withdrawals + transaction.amount
        account.pending_withdrawals = max(account.pending_withdrawals - 1, 0)
        account.updated_by = actor

        transaction.withdrawal_status = WithdrawalStatus.COMPLETED
        transaction.balance_after = account.current_balance
        transaction.approved_by = actor
        transaction.approved_at = utcnow()
        transaction.approval_notes = notes
        transaction.updated_by = actor
        await flush(db, "approve savings withdrawal")
        logger.info("Withdrawal %s approved by %s", transaction_id, actor)
        return transaction

    async def reject_savings_withdrawal(
        self,
        db: AsyncSession,
        transaction_id: UUID,
        actor: str,
        notes: Optional[str] = None,
    ) -> SavingsTransaction:
        transaction = await self._pending_withdrawal(db, transaction_id)
        account = await self.get_savings_account(db, transaction.account_id)
        account.pending_withdrawals = max(account.pending_withdrawals - 1, 0)
        account.updated_by = actor

        transaction.withdrawal_status = WithdrawalStatus.REJECTED
        transaction.approved_by = actor
        transaction.approved_at = utcnow()
        transaction.approval_notes = notes
        transaction.updated_by = actor
        await flush(db, "reject savings withdrawal")
        return transaction

    async def get_savings_transactions(
        self,
        db: AsyncSession,
        account_id: UUID,
        transaction_type: Optional[SavingsTransactionType] = None,
    ) -> List[SavingsTransaction]:
        await self.get_savings_account(db, account_id)
        query = select(SavingsTransaction).where(SavingsTransaction.account_id == account_id)
        if transaction_type:
            query = query.where(SavingsTransaction.transaction_type == transaction_type)
        query = query.order_by(
            SavingsTransaction.transaction_date.desc(), SavingsTransaction.created_at.desc()
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def apply_monthly_interest(self, db: AsyncSession, actor: str) -> InterestRun:
        """
        Credit one month's interest to every active account with a rate.

        Interest is balance × rate / 12, rounded half-up to the penny.
        Accounts whose interest rounds to nothing get no transaction.
        """
        accounts = (
            await db.execute(
                select(ChildSavingsAccount).where(
                    ChildSavingsAccount.status == SavingsAccountStatus.ACTIVE,
                    ChildSavingsAccount.interest_rate > 0,
                )
            )
        ).scalars().all()

        credited = 0
        total = ZERO
        for account in accounts:
            interest = (account.current_balance * account.interest_rate / 100 / 12).quantize(
                CENT, rounding=ROUND_HALF_UP
            )
            if interest <= 0:
                continue

            balance_before = account.current_balance
            account.current_balance = balance_before + interest
            account.total_deposits = account.total_deposits + interest
            if account.savings_goal_amount and account.current_balance >= account.savings_goal_amount:
                account.savings_goal_achieved = True
            account.updated_by = actor

            db.add(
                SavingsTransaction(
                    account_id=account.id,
                    child_id=account.child_id,
                    transaction_type=SavingsTransactionType.INTEREST,
                    amount=interest,
                    description=f"Monthly interest ({account.interest_rate}% p.a.)",
                    transaction_date=date.today(),
                    balance_before=balance_before,
                    balance_after=account.current_balance,
                    requires_manager_approval=False,
                    created_by=actor,
                    updated_by=actor,
                )
            )
            credited += 1
            total += interest

        await flush(db, "apply monthly interest")
        logger.info("Monthly interest of %s credited to %d accounts by %s", total, credited, actor)
        return InterestRun(accounts_credited=credited, total_interest=total)

    # ── Reporting ─────────────────────────────────────────────────────────

    async def get_quarterly_summary(
        self,
        db: AsyncSession,
        child_id: UUID,
        year: int,
        quarter: int,
    ) -> QuarterlySummary:
        """
        Pocket money (weeks starting in the quarter), approved allowance spend
        by category, and savings movement in the quarter with the current
        balance across active accounts.
        """
        await child_service.get_child(db, child_id)
        start, end = quarter_bounds(year, quarter)

        pocket = (
            await db.execute(
                select(PocketMoneyTransaction).where(
                    PocketMoneyTransaction.child_id == child_id,
                    PocketMoneyTransaction.week_start_date.between(start, end),
                )
            )
        ).scalars().all()

        def count(status: DisbursementStatus) -> int:
            return sum(1 for t in pocket if t.status == status)

        pocket_money = PocketMoneySummary(
            disbursed=sum(
                (t.disbursed_amount or ZERO for t in pocket if t.status == DisbursementStatus.DISBURSED),
                ZERO,
            ),
            refused=count(DisbursementStatus.REFUSED),
            withheld=count(DisbursementStatus.WITHHELD),
            deferred=count(DisbursementStatus.DEFERRED),
        )

        approved = await self.get_allowance_expenditures(
            db, child_id, approval_status=ApprovalStatus.APPROVED, year=year, quarter=quarter
        )
        by_category: Dict[str, Decimal] = {}
        for expenditure in approved:
            by_category[expenditure.category] = (
                by_category.get(expenditure.category, ZERO) + expenditure.amount
            )
        allowances = AllowanceSummary(
            total=sum((e.amount for e in approved), ZERO), by_category=by_category
        )

        movements = (
            await db.execute(
                select(SavingsTransaction).where(
                    SavingsTransaction.child_id == child_id,
                    SavingsTransaction.transaction_date.between(start, end),
                )
            )
        ).scalars().all()
        accounts = await self.get_savings_accounts(db, child_id)
        savings = SavingsSummary(
            deposits=sum(
                (t.amount for t in movements if t.transaction_type in CREDITS),
                ZERO,
            ),
            withdrawals=sum(
                (
                    t.amount for t in movements
                    if t.transaction_type == SavingsTransactionType.WITHDRAWAL
                    and t.withdrawal_status == WithdrawalStatus.COMPLETED
                ),
                ZERO,
            ),
            balance=sum(
                (a.current_balance for a in accounts if a.status == SavingsAccountStatus.ACTIVE),
                ZERO,
            ),
        )

        return QuarterlySummary(
            child_id=child_id,
            year=year,
            quarter=quarter,
            pocket_money=pocket_money,
            allowances=allowances,
            savings=savings,
        )

    async def get_budget_vs_actual(
        self, db: AsyncSession, child_id: UUID, year: int
    ) -> BudgetVsActual:
        """
        Approved spend against budget for every allowance type in the year.

        The budget for a type is the one set on its earliest approved
        expenditure that carries a budget; types without one report 0.
        """
        await child_service.get_child(db, child_id)
        approved = await self.get_allowance_expenditures(
            db, child_id, approval_status=ApprovalStatus.APPROVED, year=year
        )

        categories: Dict[str, CategoryBudget] = {}
        for allowance_type in AllowanceType:
            spends = sorted(
                (e for e in approved if e.allowance_type == allowance_type),
                key=lambda e: e.purchase_date,
            )
            budget = next((e.budget_amount for e in spends if e.budget_amount), ZERO)
            spent = sum((e.amount for e in spends), ZERO)
            categories[allowance_type.value] = CategoryBudget(
                budget=budget,
                spent=spent,
                remaining=budget - spent,
                percentage_used=round(float(spent / budget * 100), 1) if budget else 0.0,
            )

        return BudgetVsActual(child_id=child_id, year=year, categories=categories)

    async def get_iro_dashboard(self, db: AsyncSession) -> IRODashboard:
        """Open finance items across all children, oldest first, DASHBOARD_LIMIT per list."""

        async def oldest(schema, model, *conditions) -> list:
            result = await db.execute(
                select(model).where(*conditions).order_by(model.created_at).limit(DASHBOARD_LIMIT)
            )
            return [schema.model_validate(row) for row in result.scalars().all()]

        return IRODashboard(
            pending_approvals=await oldest(
                AllowanceResponse,
                AllowanceExpenditure,
                AllowanceExpenditure.approval_status == ApprovalStatus.PENDING,
            ),
            missing_receipts=await oldest(
                AllowanceResponse,
                AllowanceExpenditure,
                AllowanceExpenditure.approval_status == ApprovalStatus.APPROVED,
                AllowanceExpenditure.receipt_status.in_(
                    [ReceiptStatus.PENDING, ReceiptStatus.REJECTED]
                ),
            ),
            budget_overruns=await oldest(
                AllowanceResponse,
                AllowanceExpenditure,
                AllowanceExpenditure.exceeds_budget.is_(True),
            ),
            pending_withdrawals=await oldest(
                SavingsTransactionResponse,
                SavingsTransaction,
                SavingsTransaction.transaction_type == SavingsTransactionType.WITHDRAWAL,
                SavingsTransaction.withdrawal_status == WithdrawalStatus.PENDING,
            ),
            variance_alerts=await oldest(
                PocketMoneyResponse,
                PocketMoneyTransaction,
                PocketMoneyTransaction.has_variance.is_(True),
            ),
        )


allowance_service = AllowanceService()

"""
CareNotes Backend - Child Finance Models
=========================================

What:  ORM models for a looked-after child's money:
           pocket_money_transactions   one row per child per ISO week
           allowance_expenditures      clothing, birthday, festival ... spends
           child_savings_accounts      internal or external savings
           savings_transactions        deposits, withdrawals and interest
How:   Money is Numeric(10, 2) / Decimal throughout. Weekly pocket money
       amounts come from POCKET_MONEY_RATES, keyed by jurisdiction and age band.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base
from carenotes.models._types import enum_column
from carenotes.models.child import Jurisdiction


# ── Pocket Money ──────────────────────────────────────────────────────────
class AgeBand(str, enum.Enum):
    AGE_0_4 = "0-4"
    AGE_5_7 = "5-7"
    AGE_8_10 = "8-10"
    AGE_11_15 = "11-15"
    AGE_16_17 = "16-17"

    @classmethod
    def for_age(cls, age: int) -> "AgeBand":
        if age <= 4:
            return cls.AGE_0_4
        if age <= 7:
            return cls.AGE_5_7
        if age <= 10:
            return cls.AGE_8_10
        if age <= 15:
            return cls.AGE_11_15
        return cls.AGE_16_17


def _rates(*amounts: str) -> Dict[AgeBand, Decimal]:
    return {band: Decimal(amount) for band, amount in zip(AgeBand, amounts)}


# Weekly minimums in GBP (EUR for Ireland), youngest band first
POCKET_MONEY_RATES: Dict[Jurisdiction, Dict[AgeBand, Decimal]] = {
    Jurisdiction.ENGLAND: _rates("2.00", "5.00", "7.50", "10.00", "15.00"),
    Jurisdiction.SCOTLAND: _rates("2.00", "5.00", "7.50", "10.50", "15.50"),
    Jurisdiction.WALES: _rates("2.00", "5.00", "7.50", "10.00", "15.00"),
    Jurisdiction.NORTHERN_IRELAND: _rates("2.00", "4.50", "7.00", "9.50", "14.50"),
    Jurisdiction.IRELAND: _rates("2.50", "5.50", "8.00", "12.00", "17.50"),
    Jurisdiction.JERSEY: _rates("2.50", "5.50", "8.00", "11.00", "16.00"),
    Jurisdiction.GUERNSEY: _rates("2.50", "5.50", "8.00", "11.00", "16.00"),
    Jurisdiction.ISLE_OF_MAN: _rates("2.00", "5.00", "7.50", "10.00", "15.00"),
}


class DisbursementMethod(str, enum.Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    PREPAID_CARD = "PREPAID_CARD"
    SAVINGS = "SAVINGS"


class DisbursementStatus(str, enum.Enum):
    PENDING = "PENDING"
    DISBURSED = "DISBURSED"
    REFUSED = "REFUSED"
    WITHHELD = "WITHHELD"
    DEFERRED = "DEFERRED"


class PocketMoneyTransaction(AuditMixin, Base):
    __tablename__ = "pocket_money_transactions"

    child_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("children.id"), nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_end_date: Mapped[date] = mapped_column(Date, nullable=False)

    jurisdiction: Mapped[Jurisdiction] = mapped_column(enum_column(Jurisdiction), nullable=False)
    age_band: Mapped[AgeBand] = mapped_column(enum_column(AgeBand), nullable=False)

    expected_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    disbursed_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    method: Mapped[Optional[DisbursementMethod]] = mapped_column(
        enum_column(DisbursementMethod), nullable=True
    )
    status: Mapped[DisbursementStatus] = mapped_column(
        enum_column(DisbursementStatus), nullable=False, default=DisbursementStatus.PENDING
    )
    disbursed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    disbursed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    has_variance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    variance_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    receipt_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    child_signature: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    child_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    refusal_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    withheld_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    withheld_authorised_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    deferral_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deferred_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    transferred_to_savings: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("child_id", "week_number", "year", name="uq_pocket_money_child_week"),
    )


# ── Allowances ────────────────────────────────────────────────────────────
class AllowanceType(str, enum.Enum):
    CLOTHING = "CLOTHING"
    BIRTHDAY = "BIRTHDAY"
    FESTIVAL = "FESTIVAL"
    EDUCATION = "EDUCATION"
    HOLIDAY = "HOLIDAY"
    HOBBIES = "HOBBIES"
    CULTURAL = "CULTURAL"
    RELIGIOUS = "RELIGIOUS"
    OTHER = "OTHER"


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReceiptStatus(str, enum.Enum):
    PENDING = "PENDING"
    UPLOADED = "UPLOADED"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class AllowanceExpenditure(AuditMixin, Base):
    __tablename__ = "allowance_expenditures"

    child_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("children.id"), nullable=False)
    allowance_type: Mapped[AllowanceType] = mapped_column(
        enum_column(AllowanceType), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    item_description: Mapped[str] = mapped_column(Text, nullable=False)
    vendor: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    quarter: Mapped[int] = mapped_column(Integer, nullable=False)

    approval_status: Mapped[ApprovalStatus] = mapped_column(
        enum_column(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING
    )
    approved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    receipt_status: Mapped[ReceiptStatus] = mapped_column(
        enum_column(ReceiptStatus), nullable=False, default=ReceiptStatus.PENDING
    )
    receipt_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    receipt_verified_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    budget_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    spent_to_date: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    exceeds_budget: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_cultural_need: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_religious_need: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    child_chose_item: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_allowance_child_year_quarter", "child_id", "year", "quarter"),
    )


# ── Savings ───────────────────────────────────────────────────────────────
class SavingsAccountType(str, enum.Enum):
    INTERNAL_POCKET_MONEY = "INTERNAL_POCKET_MONEY"
    INTERNAL_ALLOWANCE = "INTERNAL_ALLOWANCE"
    EXTERNAL_BANK_ACCOUNT = "EXTERNAL_BANK_ACCOUNT"
    TRUST_ACCOUNT = "TRUST_ACCOUNT"


class SavingsAccountStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class SavingsTransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    INTEREST = "INTEREST"


class WithdrawalStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class ChildSavingsAccount(AuditMixin, Base):
    __tablename__ = "child_savings_accounts"

    child_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("children.id"), nullable=False, index=True
    )
    account_type: Mapped[SavingsAccountType] = mapped_column(
        enum_column(SavingsAccountType), nullable=False
    )
    account_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[SavingsAccountStatus] = mapped_column(
        enum_column(SavingsAccountStatus), nullable=False, default=SavingsAccountStatus.ACTIVE
    )
    opened_date: Mapped[date] = mapped_column(Date, nullable=False)
    closed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    total_deposits: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    total_withdrawals: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    pending_withdrawals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Withdrawals above this need a manager to approve them
    high_value_threshold: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Percent per annum, paid monthly by apply_monthly_interest
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0.00")
    )

    savings_goal_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    savings_goal_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    savings_goal_achieved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def savings_goal_progress(self) -> float:
        if not self.savings_goal_amount:
            return 0.0
        progress = self.current_balance / self.savings_goal_amount * 100
        return float(min(progress, Decimal("100")))


class SavingsTransaction(AuditMixin, Base):
    __tablename__ = "savings_transactions"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("child_savings_accounts.id"), nullable=False, index=True
    )
    child_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("children.id"), nullable=False)
    transaction_type: Mapped[SavingsTransactionType] = mapped_column(
        enum_column(SavingsTransactionType), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    withdrawal_status: Mapped[Optional[WithdrawalStatus]] = mapped_column(
        enum_column(WithdrawalStatus), nullable=True
    )
    requires_manager_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    linked_pocket_money_transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("pocket_money_transactions.id"), nullable=True
    )

"""
CareNotes Backend - Child Finance Schemas
==========================================

What:  Request/response contracts for pocket money, allowance expenditure,
       savings accounts and the quarterly finance summary.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

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


# ══════════════════════════════════════════════════════════════════════════
# Pocket money
# ══════════════════════════════════════════════════════════════════════════


class PocketMoneyDisburse(BaseModel):
    week_number: int = Field(ge=1, le=53, description="ISO 8601 week number")
    year: int = Field(ge=2000, le=2100)
    jurisdiction: Optional[Jurisdiction] = Field(
        default=None, description="Defaults to the child's jurisdiction"
    )
    method: DisbursementMethod
    partial_amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    savings_amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    notes: Optional[str] = None


class PocketMoneyReceipt(BaseModel):
    child_signature: str = Field(min_length=1, max_length=200)
    child_comment: Optional[str] = None


class PocketMoneyReason(BaseModel):
    reason: str = Field(min_length=1)


class PocketMoneyDefer(BaseModel):
    reason: str = Field(min_length=1)
    defer_until: date


class PocketMoneyResponse(BaseModel):
    id: uuid.UUID
    child_id: uuid.UUID
    week_number: int
    year: int
    week_start_date: date
    week_end_date: date
    jurisdiction: Jurisdiction
    age_band: AgeBand
    expected_amount: Decimal
    disbursed_amount: Optional[Decimal] = None
    method: Optional[DisbursementMethod] = None
    status: DisbursementStatus
    disbursed_at: Optional[datetime] = None
    disbursed_by: Optional[str] = None
    has_variance: bool
    variance_reason: Optional[str] = None
    receipt_confirmed: bool
    child_signature: Optional[str] = None
    child_comment: Optional[str] = None
    refusal_reason: Optional[str] = None
    withheld_reason: Optional[str] = None
    withheld_authorised_by: Optional[str] = None
    deferral_reason: Optional[str] = None
    deferred_until: Optional[date] = None
    transferred_to_savings: Decimal
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class PocketMoneyRates(BaseModel):
    jurisdiction: Jurisdiction
    weekly_rates: Dict[str, Decimal] = Field(description="Age band -> weekly amount")


# ══════════════════════════════════════════════════════════════════════════
# Allowances
# ══════════════════════════════════════════════════════════════════════════


class AllowanceRequest(BaseModel):
    allowance_type: AllowanceType
    category: Optional[str] = Field(
        default=None, max_length=100, description="Defaults to the allowance type"
    )
    amount: Decimal = Field(gt=0, decimal_places=2)
    item_description: str = Field(min_length=1)
    vendor: Optional[str] = Field(default=None, max_length=200)
    purchase_date: date
    budget_amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    is_cultural_need: bool = False
    is_religious_need: bool = False
    child_chose_item: bool = False


class AllowanceDecision(BaseModel):
    notes: Optional[str] = None


class AllowanceRejection(BaseModel):
    reason: str = Field(min_length=1)


class AllowanceResponse(BaseModel):
    id: uuid.UUID
    child_id: uuid.UUID
    allowance_type: AllowanceType
    category: str
    amount: Decimal
    item_description: str
    vendor: Optional[str] = None
    purchase_date: date
    year: int
    quarter: int
    approval_status: ApprovalStatus
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    receipt_status: ReceiptStatus
    receipt_path: Optional[str] = None
    receipt_verified_by: Optional[str] = None
    budget_amount: Optional[Decimal] = None
    spent_to_date: Optional[Decimal] = None
    exceeds_budget: bool
    is_cultural_need: bool
    is_religious_need: bool
    child_chose_item: bool

    model_config = {"from_attributes": True}


# ══════════════════════════════════════════════════════════════════════════
# Savings
# ══════════════════════════════════════════════════════════════════════════


class SavingsAccountOpen(BaseModel):
    account_type: SavingsAccountType
    account_name: str = Field(min_length=1, max_length=200)
    interest_rate: Decimal = Field(
        default=Decimal("0.00"), ge=0, le=25, decimal_places=2, description="Percent per annum"
    )
    savings_goal_amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    savings_goal_description: Optional[str] = None


class SavingsDeposit(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    description: str = Field(min_length=1)
    linked_pocket_money_transaction_id: Optional[uuid.UUID] = None


class SavingsWithdrawalRequest(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    purpose: str = Field(min_length=1)


class SavingsAccountResponse(BaseModel):
    id: uuid.UUID
    child_id: uuid.UUID
    account_type: SavingsAccountType
    account_name: str
    status: SavingsAccountStatus
    opened_date: date
    closed_date: Optional[date] = None
    current_balance: Decimal
    total_deposits: Decimal
    total_withdrawals: Decimal
    pending_withdrawals: int
    high_value_threshold: Decimal
    interest_rate: Decimal
    savings_goal_amount: Optional[Decimal] = None
    savings_goal_description: Optional[str] = None
    savings_goal_achieved: bool
    savings_goal_progress: float

    model_config = {"from_attributes": True}


class SavingsTransactionResponse(BaseModel):
    id: uuid.UUID
    account_id: uuid.UUID
    child_id: uuid.UUID
    transaction_type: SavingsTransactionType
    amount: Decimal
    description: str
    transaction_date: date
    balance_before: Decimal
    balance_after: Decimal
    withdrawal_status: Optional[WithdrawalStatus] = None
    requires_manager_approval: bool
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    linked_pocket_money_transaction_id: Optional[uuid.UUID] = None

    model_config = {"from_attributes": True}


# ══════════════════════════════════════════════════════════════════════════
# Reporting
# ══════════════════════════════════════════════════════════════════════════


class PocketMoneySummary(BaseModel):
    disbursed: Decimal
    refused: int
    withheld: int
    deferred: int


class AllowanceSummary(BaseModel):
    total: Decimal
    by_category: Dict[str, Decimal]


class SavingsSummary(BaseModel):
    deposits: Decimal
    withdrawals: Decimal
    balance: Decimal


class QuarterlySummary(BaseModel):
    child_id: uuid.UUID
    year: int
    quarter: int = Field(ge=1, le=4)
    pocket_money: PocketMoneySummary
    allowances: AllowanceSummary
    savings: SavingsSummary


class InterestRun(BaseModel):
    accounts_credited: int
    total_interest: Decimal


class CategoryBudget(BaseModel):
    budget: Decimal
    spent: Decimal
    remaining: Decimal
    percentage_used: float


class BudgetVsActual(BaseModel):
    child_id: uuid.UUID
    year: int
    categories: Dict[str, CategoryBudget]


class IRODashboard(BaseModel):
    """Items an Independent Reviewing Officer needs to look at, capped per list."""

    pending_approvals: List[AllowanceResponse]
    missing_receipts: List[AllowanceResponse]
    budget_overruns: List[AllowanceResponse]
    pending_withdrawals: List[SavingsTransactionResponse]
    variance_alerts: List[PocketMoneyResponse]

"""
CareNotes Backend - Child Finance Routes
=========================================

What:  Pocket money, allowance expenditure (with receipt upload), savings
       accounts with monthly interest, and finance reporting.
Who:   Used by residential staff recording money handed to a child, and by
       managers approving spend and withdrawals.

Receipt upload:
    POST /api/allowances/{id}/receipt takes multipart form data. Files are
    checked for extension, size and real content type (PNG, JPEG or PDF)
    before they are written to disk.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.auth import get_current_actor
from carenotes.database import get_db_session
from carenotes.models.allowance import (
    AllowanceType,
    ApprovalStatus,
    DisbursementStatus,
    ReceiptStatus,
    SavingsTransactionType,
)
from carenotes.models.child import Jurisdiction
from carenotes.schemas.allowance import (
    AllowanceDecision,
    AllowanceRejection,
    AllowanceRequest,
    AllowanceResponse,
    BudgetVsActual,
    InterestRun,
    IRODashboard,
    PocketMoneyDefer,
    PocketMoneyDisburse,
    PocketMoneyRates,
    PocketMoneyReason,
    PocketMoneyReceipt,
    PocketMoneyResponse,
    QuarterlySummary,
    SavingsAccountOpen,
    SavingsAccountResponse,
    SavingsDeposit,
    SavingsTransactionResponse,
    SavingsWithdrawalRequest,
)
from carenotes.schemas.common import ErrorResponse
from carenotes.schemas.hr import RequestDecision
from carenotes.services.allowance_service import allowance_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Child Finance"], dependencies=[Depends(get_current_actor)])


# ── Pocket money ──────────────────────────────────────────────────────────

@router.get(
    "/pocket-money/rates/{jurisdiction}",
    response_model=PocketMoneyRates,
    summary="Weekly pocket money rates by age band",
)
async def get_pocket_money_rates(jurisdiction: Jurisdiction):
    return allowance_service.get_pocket_money_rates(jurisdiction)


@router.post(
    "/children/{child_id}/pocket-money",
    status_code=201,
    response_model=PocketMoneyResponse,
    responses={
        400: {"description": "Unknown ISO week or savings above amount", "model": ErrorResponse},
        409: {"description": "Already disbursed for this week", "model": ErrorResponse},
    },
    summary="Disburse a week's pocket money",
)
async def disburse_pocket_money(
    child_id: UUID,
    data: PocketMoneyDisburse,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.disburse_weekly_pocket_money(db, child_id, data, actor)


@router.get("/children/{child_id}/pocket-money", response_model=List[PocketMoneyResponse])
async def get_pocket_money_transactions(
    child_id: UUID,
    year: int | None = Query(default=None),
    status: DisbursementStatus | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
):
    return await allowance_service.get_pocket_money_transactions(db, child_id, year, status)


@router.post("/pocket-money/{transaction_id}/confirm", response_model=PocketMoneyResponse)
async def confirm_pocket_money_receipt(
    transaction_id: UUID,
    data: PocketMoneyReceipt,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.confirm_pocket_money_receipt(
        db, transaction_id, data.child_signature, data.child_comment, actor
    )


@router.post("/pocket-money/{transaction_id}/refuse", response_model=PocketMoneyResponse)
async def record_pocket_money_refusal(
    transaction_id: UUID,
    data: PocketMoneyReason,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.record_pocket_money_refusal(db, transaction_id, data.reason, actor)


@router.post("/pocket-money/{transaction_id}/withhold", response_model=PocketMoneyResponse)
async def withhold_pocket_money(
    transaction_id: UUID,
    data: PocketMoneyReason,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.withhold_pocket_money(db, transaction_id, data.reason, actor)


@router.post("/pocket-money/{transaction_id}/defer", response_model=PocketMoneyResponse)
async def defer_pocket_money(
    transaction_id: UUID,
    data: PocketMoneyDefer,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.defer_pocket_money(
        db, transaction_id, data.reason, data.defer_until, actor
    )


# ── Allowances ────────────────────────────────────────────────────────────

@router.post(
    "/children/{child_id}/allowances",
    status_code=201,
    response_model=AllowanceResponse,
    summary="Request allowance expenditure",
)
async def request_allowance_expenditure(
    child_id: UUID,
    data: AllowanceRequest,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.request_allowance_expenditure(db, child_id, data, actor)


@router.get("/children/{child_id}/allowances", response_model=List[AllowanceResponse])
async def get_allowance_expenditures(
    child_id: UUID,
    allowance_type: AllowanceType | None = Query(default=None),
    approval_status: ApprovalStatus | None = Query(default=None),
    receipt_status: ReceiptStatus | None = Query(default=None),
    year: int | None = Query(default=None),
    quarter: int | None = Query(default=None, ge=1, le=4),
    db: AsyncSession = Depends(get_db_session),
):
    return await allowance_service.get_allowance_expenditures(
        db,
        child_id,
        allowance_type=allowance_type,
        approval_status=approval_status,
        receipt_status=receipt_status,
        year=year,
        quarter=quarter,
    )


@router.post("/allowances/{expenditure_id}/approve", response_model=AllowanceResponse)
async def approve_allowance_expenditure(
    expenditure_id: UUID,
    data: AllowanceDecision,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.approve_allowance_expenditure(db, expenditure_id, actor, data.notes)


@router.post("/allowances/{expenditure_id}/reject", response_model=AllowanceResponse)
async def reject_allowance_expenditure(
    expenditure_id: UUID,
    data: AllowanceRejection,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.reject_allowance_expenditure(db, expenditure_id, data.reason, actor)


@router.post(
    "/allowances/{expenditure_id}/receipt",
    response_model=AllowanceResponse,
    responses={400: {"description": "Invalid file type or size", "model": ErrorResponse}},
    summary="Upload a receipt (PNG, JPEG or PDF)",
)
async def upload_receipt(
    expenditure_id: UUID,
    file: UploadFile = File(..., description="Receipt image or PDF"),
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    content = await file.read()
    logger.info(
        "Received receipt for expenditure %s: filename=%s, size=%d bytes",
        expenditure_id, file.filename or "unknown", len(content),
    )
    try:
        return await allowance_service.upload_receipt(
            db,
            expenditure_id,
            filename=file.filename or "receipt.jpg",
            content=content,
            actor=actor,
            content_length=file.size,
        )
    finally:
        await file.close()


@router.post("/allowances/{expenditure_id}/verify-receipt", response_model=AllowanceResponse)
async def verify_receipt(
    expenditure_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.verify_receipt(db, expenditure_id, actor)


# ── Savings ───────────────────────────────────────────────────────────────

@router.post(
    "/children/{child_id}/savings-accounts",
    status_code=201,
    response_model=SavingsAccountResponse,
    responses={409: {"description": "Active account of this type exists", "model": ErrorResponse}},
)
async def open_savings_account(
    child_id: UUID,
    data: SavingsAccountOpen,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.open_savings_account(db, child_id, data, actor)


@router.get("/children/{child_id}/savings-accounts", response_model=List[SavingsAccountResponse])
async def get_savings_accounts(child_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await allowance_service.get_savings_accounts(db, child_id)


@router.get("/savings-accounts/{account_id}", response_model=SavingsAccountResponse)
async def get_savings_account(account_id: UUID, db: AsyncSession = Depends(get_db_session)):
    return await allowance_service.get_savings_account(db, account_id)


@router.post(
    "/savings-accounts/{account_id}/deposits",
    status_code=201,
    response_model=SavingsTransactionResponse,
)
async def deposit_to_savings(
    account_id: UUID,
    data: SavingsDeposit,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.deposit_to_savings(db, account_id, data, actor)


@router.post(
    "/savings-accounts/{account_id}/withdrawals",
    status_code=201,
    response_model=SavingsTransactionResponse,
    responses={400: {"description": "Insufficient funds", "model": ErrorResponse}},
)
async def request_savings_withdrawal(
    account_id: UUID,
    data: SavingsWithdrawalRequest,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.request_savings_withdrawal(
        db, account_id, data.amount, data.purpose, actor
    )


@router.post(
    "/savings-accounts/withdrawals/{transaction_id}/approve",
    response_model=SavingsTransactionResponse,
)
async def approve_savings_withdrawal(
    transaction_id: UUID,
    data: RequestDecision,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.approve_savings_withdrawal(db, transaction_id, actor, data.notes)


@router.post(
    "/savings-accounts/withdrawals/{transaction_id}/reject",
    response_model=SavingsTransactionResponse,
)
async def reject_savings_withdrawal(
    transaction_id: UUID,
    data: RequestDecision,
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.reject_savings_withdrawal(db, transaction_id, actor, data.notes)


@router.get(
    "/savings-accounts/{account_id}/transactions",
    response_model=List[SavingsTransactionResponse],
)
async def get_savings_transactions(
    account_id: UUID,
    transaction_type: SavingsTransactionType | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
):
    return await allowance_service.get_savings_transactions(db, account_id, transaction_type)


@router.post(
    "/savings-accounts/apply-interest",
    response_model=InterestRun,
    summary="Credit a month of interest to every active account with a rate",
)
async def apply_monthly_interest(
    db: AsyncSession = Depends(get_db_session),
    actor: str = Depends(get_current_actor),
):
    return await allowance_service.apply_monthly_interest(db, actor)


# ── Reporting ─────────────────────────────────────────────────────────────

@router.get(
    "/children/{child_id}/finance-summary",
    response_model=QuarterlySummary,
    summary="Quarterly pocket money, allowance and savings summary",
)
async def get_quarterly_summary(
    child_id: UUID,
    year: int = Query(..., ge=2000, le=2100),
    quarter: int = Query(..., ge=1, le=4),
    db: AsyncSession = Depends(get_db_session),
):
    return await allowance_service.get_quarterly_summary(db, child_id, year, quarter)


@router.get(
    "/children/{child_id}/budget-vs-actual",
    response_model=BudgetVsActual,
    summary="Approved allowance spend against budget per allowance type",
)
async def get_budget_vs_actual(
    child_id: UUID,
    year: int = Query(..., ge=2000, le=2100),
    db: AsyncSession = Depends(get_db_session),
):
    return await allowance_service.get_budget_vs_actual(db, child_id, year)


@router.get(
    "/finance/iro-dashboard",
    response_model=IRODashboard,
    summary="Outstanding approvals, receipts, overruns, withdrawals and variances",
)
async def get_iro_dashboard(db: AsyncSession = Depends(get_db_session)):
    return await allowance_service.get_iro_dashboard(db)

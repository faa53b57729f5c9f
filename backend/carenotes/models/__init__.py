"""SQLAlchemy ORM models. Importing this package registers every table on Base.metadata."""

from carenotes.models.agreement import AgreementStatus, FeeFrequency, PlacementAgreement
from carenotes.models.allowance import (
    POCKET_MONEY_RATES,
    AgeBand,
    AllowanceExpenditure,
    AllowanceType,
    ApprovalStatus,
    ChildSavingsAccount,
    DisbursementMethod,
    DisbursementStatus,
    PocketMoneyTransaction,
    ReceiptStatus,
    SavingsAccountStatus,
    SavingsAccountType,
    SavingsTransaction,
    SavingsTransactionType,
    WithdrawalStatus,
)
from carenotes.models.child import Child, Gender, Jurisdiction, RiskLevel
from carenotes.models.hr import (
    EmployeeProfile,
    EmployeeRole,
    RequestStatus,
    ShiftSwap,
    TimeOffRequest,
    TimeOffType,
)
from carenotes.models.medication import (
    ConsentType,
    GillickResult,
    MedicationRecord,
    MedicationStatus,
    PatientType,
    SideEffectSeverity,
)
from carenotes.models.organisation import CareOrganisation
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
    ReviewOutcome,
)

__all__ = [
    "AgeBand",
    "AgreementStatus",
    "AllowanceExpenditure",
    "AllowanceType",
    "ApprovalStatus",
    "CONTINUING_OUTCOMES",
    "CareOrganisation",
    "Child",
    "ChildSavingsAccount",
    "ConsentType",
    "DisbursementMethod",
    "DisbursementStatus",
    "EmployeeProfile",
    "EmployeeRole",
    "FeeFrequency",
    "Gender",
    "GillickResult",
    "Jurisdiction",
    "MedicationRecord",
    "MedicationStatus",
    "OPEN_PLACEMENT_STATUSES",
    "POCKET_MONEY_RATES",
    "PatientType",
    "Placement",
    "PlacementAgreement",
    "PlacementEndReason",
    "PlacementRequest",
    "PlacementRequestStatus",
    "PlacementRequestUrgency",
    "PlacementReview",
    "PlacementReviewType",
    "PlacementStatus",
    "PocketMoneyTransaction",
    "ReceiptStatus",
    "RequestStatus",
    "ReviewOutcome",
    "RiskLevel",
    "SavingsAccountStatus",
    "SavingsAccountType",
    "SavingsTransaction",
    "SavingsTransactionType",
    "ShiftSwap",
    "SideEffectSeverity",
    "TimeOffRequest",
    "TimeOffType",
    "WithdrawalStatus",
]

"""
CareNotes Backend - Placement Agreement Model
==============================================

What:  ORM model for `placement_agreements`: the commercial terms between the
       funding authority and the care organisation for one placement.

additional_fees is a JSON list of {"description", "amount", "frequency"};
amounts are stored as strings so Decimal precision survives the JSON round trip.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base
from carenotes.models._types import enum_column


class AgreementStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    TERMINATED = "TERMINATED"


class FeeFrequency(str, enum.Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    ONE_OFF = "ONE_OFF"


class PlacementAgreement(AuditMixin, Base):
    __tablename__ = "placement_agreements"

    # PA-YYYY-NNNN
    agreement_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    placement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("placements.id"), nullable=False, index=True
    )

    status: Mapped[AgreementStatus] = mapped_column(
        enum_column(AgreementStatus), nullable=False, default=AgreementStatus.DRAFT
    )

    base_weekly_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    additional_fees: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notice_period_days: Mapped[int] = mapped_column(nullable=False, default=28)
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    terminated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    termination_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def _fees_total(self, frequency: FeeFrequency) -> Decimal:
        return sum(
            (
                Decimal(str(fee["amount"]))
                for fee in self.additional_fees or []
                if fee.get("frequency") == frequency.value
            ),
            Decimal("0.00"),
        )

    @property
    def total_weekly_cost(self) -> Decimal:
        """Base weekly fee plus every additional fee charged weekly."""
        return self.base_weekly_fee + self._fees_total(FeeFrequency.WEEKLY)

    @property
    def total_monthly_fees(self) -> Decimal:
        return self._fees_total(FeeFrequency.MONTHLY)

    @property
    def total_one_off_fees(self) -> Decimal:
        return self._fees_total(FeeFrequency.ONE_OFF)

    def __repr__(self) -> str:
        return (
            f"<PlacementAgreement(number='{self.agreement_number}', "
            f"status='{self.status.value}')>"
        )

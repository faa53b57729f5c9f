"""
CareNotes Backend - Placement Model
====================================

What:  ORM model for `placements`: a child living at a care organisation for
       a bounded period.
How:   Status lifecycle enforced by PlacementService:

           PENDING_ARRIVAL ──activate──▶ ACTIVE ──end──────▶ ENDED
                 │                         │
                 └─────────breakdown───────┴──breakdown───▶ BREAKDOWN

Statutory review dates:
    initial_72hr_review_date   start date + 72 hours (3 days)
    next_placement_review_date start date + 28 days, then whatever the last
                               completed review set
"""

import enum
import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base
from carenotes.models._types import enum_column


class PlacementStatus(str, enum.Enum):
    PENDING_ARRIVAL = "PENDING_ARRIVAL"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    BREAKDOWN = "BREAKDOWN"


# A child may hold at most one placement in these states
OPEN_PLACEMENT_STATUSES = (PlacementStatus.PENDING_ARRIVAL, PlacementStatus.ACTIVE)


class PlacementEndReason(str, enum.Enum):
    PLANNED_END = "PLANNED_END"
    RETURNED_HOME = "RETURNED_HOME"
    ADOPTION = "ADOPTION"
    SPECIAL_GUARDIANSHIP = "SPECIAL_GUARDIANSHIP"
    MOVED_TO_ANOTHER_PLACEMENT = "MOVED_TO_ANOTHER_PLACEMENT"
    LEAVING_CARE = "LEAVING_CARE"
    PLACEMENT_BREAKDOWN = "PLACEMENT_BREAKDOWN"
    OTHER = "OTHER"


class Placement(AuditMixin, Base):
    __tablename__ = "placements"

    # PL-YYYY-NNNN
    placement_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    child_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("children.id"), nullable=False)
    organisation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("care_organisations.id"), nullable=False
    )
    placement_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("placement_requests.id"), nullable=True
    )

    status: Mapped[PlacementStatus] = mapped_column(
        enum_column(PlacementStatus), nullable=False, default=PlacementStatus.PENDING_ARRIVAL
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_reason: Mapped[Optional[PlacementEndReason]] = mapped_column(
        enum_column(PlacementEndReason), nullable=True
    )
    end_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    room_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    room_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    key_worker_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    key_worker_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    funding_authority: Mapped[str] = mapped_column(String(200), nullable=False)
    weekly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    admission_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    initial_72hr_review_date: Mapped[date] = mapped_column(Date, nullable=False)
    initial_72hr_review_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    next_placement_review_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_placement_review_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    placement_stability_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    at_risk_of_breakdown: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    breakdown_risk_factors: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("idx_placements_child_status", "child_id", "status"),
        Index("idx_placements_org_status", "organisation_id", "status"),
    )

    def get_duration_days(self, today: Optional[date] = None) -> int:
        """Days from start to end date (or to today for open placements)."""
        until = self.end_date or today or date.today()
        return max((until - self.start_date).days, 0)

    def is_72_hour_review_overdue(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return (
            self.status == PlacementStatus.ACTIVE
            and not self.initial_72hr_review_completed
            and self.initial_72hr_review_date <= today
        )

    def is_placement_review_overdue(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return (
            self.status == PlacementStatus.ACTIVE
            and self.next_placement_review_date is not None
            and self.next_placement_review_date <= today
        )

    def __repr__(self) -> str:
        return (
            f"<Placement(id={self.id}, number='{self.placement_number}', "
            f"status='{self.status.value}')>"
        )

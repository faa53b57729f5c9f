"""
CareNotes Backend - Placement Request Model
============================================

What:  ORM model for `placement_requests`: a local authority asking for a
       placement for a child, and the criteria the matching scorer uses.

matching_criteria keys read by the scorer:
    required_specialisms   list of specialism codes the home must offer
    max_distance_km        location score is 0 beyond this distance
    preferred_postcode     origin for distance estimates (home area, school)

status_history is an append-only list of
    {"status", "changed_at", "changed_by", "reason"}
"""

import enum
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base, utcnow
from carenotes.models._types import enum_column


class PlacementRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    MATCHED = "MATCHED"
    PLACED = "PLACED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    WITHDRAWN = "WITHDRAWN"


class PlacementRequestUrgency(str, enum.Enum):
    ROUTINE = "ROUTINE"
    PLANNED = "PLANNED"
    URGENT = "URGENT"
    EMERGENCY = "EMERGENCY"


class PlacementRequest(AuditMixin, Base):
    __tablename__ = "placement_requests"

    child_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("children.id"), nullable=False)

    requesting_authority: Mapped[str] = mapped_column(String(200), nullable=False)
    social_worker_name: Mapped[str] = mapped_column(String(200), nullable=False)
    social_worker_email: Mapped[str] = mapped_column(String(200), nullable=False)
    social_worker_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    request_type: Mapped[str] = mapped_column(String(50), nullable=False, default="LONG_TERM")
    request_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    required_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_duration_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    urgency: Mapped[PlacementRequestUrgency] = mapped_column(
        enum_column(PlacementRequestUrgency), nullable=False
    )
    status: Mapped[PlacementRequestStatus] = mapped_column(
        enum_column(PlacementRequestStatus),
        nullable=False,
        default=PlacementRequestStatus.PENDING,
    )
    status_history: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    matching_criteria: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    matched_organisation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("care_organisations.id"), nullable=True
    )
    matched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    matched_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Set when a placement is created from this request; no FK because
    # placements already reference requests
    placement_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    placed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_placement_requests_status_urgency", "status", "urgency"),
    )

    def add_status_change(
        self,
        status: PlacementRequestStatus,
        changed_by: str,
        reason: Optional[str] = None,
    ) -> None:
        """Sets the status and appends an entry to the status history."""
        self.status = status
        entry = {
            "status": status.value,
            "changed_at": utcnow().isoformat(),
            "changed_by": changed_by,
        }
        if reason:
            entry["reason"] = reason
        # New list so SQLAlchemy sees the JSON column as modified
        self.status_history = [*(self.status_history or []), entry]

    def __repr__(self) -> str:
        return f"<PlacementRequest(id={self.id}, status='{self.status.value}')>"

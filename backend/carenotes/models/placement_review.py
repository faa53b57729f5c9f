"""
CareNotes Backend - Placement Review Model
===========================================

What:  ORM model for `placement_reviews`: statutory reviews of a placement
       (72-hour, 28-day, 3-month, 6-month cycle, or ad hoc).
"""

import enum
import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base
from carenotes.models._types import enum_column


class PlacementReviewType(str, enum.Enum):
    INITIAL_72_HOUR = "INITIAL_72_HOUR"
    TWENTY_EIGHT_DAY = "TWENTY_EIGHT_DAY"
    THREE_MONTH = "THREE_MONTH"
    SIX_MONTH = "SIX_MONTH"
    AD_HOC = "AD_HOC"


class ReviewOutcome(str, enum.Enum):
    PLACEMENT_CONTINUES = "PLACEMENT_CONTINUES"
    PLACEMENT_CONTINUES_WITH_CHANGES = "PLACEMENT_CONTINUES_WITH_CHANGES"
    PLACEMENT_TO_END = "PLACEMENT_TO_END"


CONTINUING_OUTCOMES = (
    ReviewOutcome.PLACEMENT_CONTINUES,
    ReviewOutcome.PLACEMENT_CONTINUES_WITH_CHANGES,
)


class PlacementReview(AuditMixin, Base):
    __tablename__ = "placement_reviews"

    placement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("placements.id"), nullable=False, index=True
    )
    child_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("children.id"), nullable=False)

    review_type: Mapped[PlacementReviewType] = mapped_column(
        enum_column(PlacementReviewType), nullable=False
    )
    review_number: Mapped[int] = mapped_column(Integer, nullable=False)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)

    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    outcome: Mapped[Optional[ReviewOutcome]] = mapped_column(
        enum_column(ReviewOutcome), nullable=True
    )
    child_attended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    child_views: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attendees: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    actions_agreed: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    next_review_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

"""
CareNotes Backend - Care Organisation Model
============================================

What:  ORM model for `care_organisations`: a registered children's home or
       residential setting that can receive placements.
Who:   Used by OrganisationService, PlacementService (occupancy) and the
       matching scorer (every capability column is a matching criterion).
"""

from typing import List, Optional

from sqlalchemy import JSON, Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base
from carenotes.models._types import enum_column
from carenotes.models.child import RiskLevel


class CareOrganisation(AuditMixin, Base):
    __tablename__ = "care_organisations"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    postcode: Mapped[str] = mapped_column(String(10), nullable=False)

    # Optional cached coordinates; when present the geocoder skips the lookup
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    registered_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_occupancy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    min_age: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_age: Mapped[int] = mapped_column(Integer, nullable=False, default=17)

    # Empty list means the home accepts any gender
    accepted_genders: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    specialisms: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    cultural_provisions: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    medical_capabilities: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    education_provisions: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    accessibility_features: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    behavioural_capability: Mapped[RiskLevel] = mapped_column(
        enum_column(RiskLevel), nullable=False, default=RiskLevel.MEDIUM
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def available_places(self) -> int:
        return max(self.registered_capacity - self.current_occupancy, 0)

    def __repr__(self) -> str:
        return (
            f"<CareOrganisation(id={self.id}, name='{self.name}', "
            f"occupancy={self.current_occupancy}/{self.registered_capacity})>"
        )

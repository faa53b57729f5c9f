"""
CareNotes Backend - Child Model
================================

What:  ORM model for the `children` table: a looked-after child and the
       needs that placement matching compares against care organisations.
How:   Flat row with JSON list columns for each family of needs.
Who:   Used by ChildService, PlacementService, the matching scorer and the
       child finance service.

Needs columns:
    medical_needs        e.g. ["epilepsy", "diabetes_type_1"]
    education_needs      e.g. ["sen_support", "on_site_school"]
    accessibility_needs  e.g. ["wheelchair_access", "ground_floor_bedroom"]
    cultural_needs       e.g. ["halal_diet", "bsl_signing"]
    religion / first_language are matched as cultural needs too.
"""

import enum
from datetime import date
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from carenotes.database import AuditMixin, Base
from carenotes.models._types import enum_column


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    NON_BINARY = "NON_BINARY"
    OTHER = "OTHER"


class Jurisdiction(str, enum.Enum):
    """British Isles jurisdictions with their own looked-after children rules."""

    ENGLAND = "ENGLAND"
    SCOTLAND = "SCOTLAND"
    WALES = "WALES"
    NORTHERN_IRELAND = "NORTHERN_IRELAND"
    IRELAND = "IRELAND"
    JERSEY = "JERSEY"
    GUERNSEY = "GUERNSEY"
    ISLE_OF_MAN = "ISLE_OF_MAN"


class RiskLevel(str, enum.Enum):
    """
    Behavioural risk tiers, lowest first.

    Used both for a child's assessed risk and for the highest tier a care
    organisation is registered and staffed to manage.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"

    @property
    def rank(self) -> int:
        return list(RiskLevel).index(self)


class Child(AuditMixin, Base):
    __tablename__ = "children"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[Gender] = mapped_column(enum_column(Gender), nullable=False)

    religion: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    ethnicity: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    first_language: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    jurisdiction: Mapped[Jurisdiction] = mapped_column(
        enum_column(Jurisdiction), nullable=False, default=Jurisdiction.ENGLAND
    )
    local_authority: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    legal_status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    behavioural_risk_level: Mapped[RiskLevel] = mapped_column(
        enum_column(RiskLevel), nullable=False, default=RiskLevel.LOW
    )
    medical_needs: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    education_needs: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    accessibility_needs: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    cultural_needs: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_children_last_name", "last_name"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def age_on(self, on: date) -> int:
        """Whole years of age on the given date."""
        dob = self.date_of_birth
        had_birthday = (on.month, on.day) >= (dob.month, dob.day)
        return on.year - dob.year - (0 if had_birthday else 1)

    def __repr__(self) -> str:
        return f"<Child(id={self.id}, name='{self.full_name}')>"

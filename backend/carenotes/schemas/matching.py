"""
CareNotes Backend - Placement Matching Schemas
===============================================

What:  The scored result of comparing one placement request against one care
       organisation. Returned by GET /api/placement-requests/{id}/suitable-placements.
"""

import enum
import uuid
from typing import List

from pydantic import BaseModel, Field


class Suitability(str, enum.Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    ADEQUATE = "ADEQUATE"
    POOR = "POOR"
    UNSUITABLE = "UNSUITABLE"


class CriterionScore(BaseModel):
    criterion: str
    score: float = Field(ge=0)
    max_score: float = Field(gt=0)


class MatchScore(BaseModel):
    organisation_id: uuid.UUID
    organisation_name: str
    scores: List[CriterionScore] = Field(description="One entry per criterion, in scoring order")
    raw_score: float
    max_score: float
    percentage: float = Field(description="raw_score / max_score x 100, one decimal place")
    suitability: Suitability
    estimated_distance_km: float
    recommendations: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)

    def score_for(self, criterion: str) -> float:
        for entry in self.scores:
            if entry.criterion == criterion:
                return entry.score
        raise KeyError(criterion)

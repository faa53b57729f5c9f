"""
CareNotes Backend - Placement Matching Service
===============================================

What:  Scores every active care organisation against a placement request and
       returns them best first.
How:   score_organisation() is a pure function over (child, request,
       organisation, distance). MatchingService loads the rows, asks the
       geocoder for distances, scores, filters and sorts. Nothing is written.

Scoring (maximum 100):

    criterion       cap   rule
    ─────────────   ───   ──────────────────────────────────────────────────
    capacity         15   0 places → 0, 1 → 8, 2 → 12, 3+ → 15
    location         15   ≤10 km 15, ≤25 12, ≤50 9, ≤100 5, else 0;
                          0 beyond the request's max_distance_km
    specialisms      15   share of required specialisms offered
    age              10   child's age within [min_age, max_age] → 10, else 0
    gender            5   accepted_genders empty or includes the child → 5
    cultural         10   share of religion / first language / cultural needs provided
    medical          10   share of medical needs covered
    behavioural      10   capability tier vs risk tier: ≥ → 10, 1 short 5, 2 short 2, 3 short 0
    educational       5   share of education needs provided
    accessibility     5   share of accessibility needs met

    "share" criteria score full marks when nothing is required.

Suitability from the percentage: ≥90 EXCELLENT, ≥75 GOOD, ≥60 ADEQUATE,
≥40 POOR, else UNSUITABLE. An age mismatch or a full organisation is always
UNSUITABLE whatever the percentage.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.models.child import Child
from carenotes.models.organisation import CareOrganisation
from carenotes.models.placement_request import PlacementRequest
from carenotes.schemas.matching import CriterionScore, MatchScore, Suitability
from carenotes.services.child_service import child_service
from carenotes.services.geocoding_service import geocoding_service
from carenotes.services.placement_service import placement_service

logger = logging.getLogger(__name__)

CAPS = {
    "capacity": 15,
    "location": 15,
    "specialisms": 15,
    "age": 10,
    "gender": 5,
    "cultural": 10,
    "medical": 10,
    "behavioural": 10,
    "educational": 5,
    "accessibility": 5,
}
MAX_SCORE = sum(CAPS.values())

# (places available, score); 3 or more scores the cap
CAPACITY_SCORES = {0: 0, 1: 8, 2: 12}

# (max distance km, score), first match wins
DISTANCE_BANDS = ((10, 15), (25, 12), (50, 9), (100, 5))

# Tiers by which the organisation's capability falls short of the child's risk
BEHAVIOURAL_SHORTFALL_SCORES = {0: 10, 1: 5, 2: 2}

SUITABILITY_THRESHOLDS = (
    (90, Suitability.EXCELLENT),
    (75, Suitability.GOOD),
    (60, Suitability.ADEQUATE),
    (40, Suitability.POOR),
)


def _normalise(items: Iterable[Optional[str]]) -> List[str]:
    return [item.strip().lower() for item in items or [] if item and item.strip()]


def _coverage(
    required: Iterable[Optional[str]],
    offered: Iterable[Optional[str]],
) -> Tuple[float, List[str]]:
    """Fraction of required items offered (1.0 when nothing is required) and the missing items."""
    needed = list(dict.fromkeys(_normalise(required)))
    if not needed:
        return 1.0, []
    available = set(_normalise(offered))
    missing = [item for item in needed if item not in available]
    return (len(needed) - len(missing)) / len(needed), missing


def capacity_score(available_places: int) -> int:
    return CAPACITY_SCORES.get(max(available_places, 0), CAPS["capacity"])


def location_score(distance_km: float, max_distance_km: Optional[float] = None) -> int:
    if max_distance_km is not None and distance_km > max_distance_km:
        return 0
    for limit, score in DISTANCE_BANDS:
        if distance_km <= limit:
            return score
    return 0


def behavioural_score(child: Child, organisation: CareOrganisation) -> int:
    shortfall = child.behavioural_risk_level.rank - organisation.behavioural_capability.rank
    return BEHAVIOURAL_SHORTFALL_SCORES.get(max(shortfall, 0), 0)


def suitability_for(percentage: float) -> Suitability:
    for threshold, suitability in SUITABILITY_THRESHOLDS:
        if percentage >= threshold:
            return suitability
    return Suitability.UNSUITABLE


def score_organisation(
    child: Child,
    request: PlacementRequest,
    organisation: CareOrganisation,
    distance_km: float,
    on_date: Optional[date] = None,
) -> MatchScore:
    """
    Scores one organisation for one request. Pure: no I/O, no mutation.

    Args:
        on_date: Date the child's age is taken on (defaults to the request's
                 required start date)
    """
    criteria = request.matching_criteria or {}
    on_date = on_date or request.required_start_date
    recommendations: List[str] = []
    concerns: List[str] = []
    scores: List[CriterionScore] = []

    def add(criterion: str, score: float) -> None:
        scores.append(
            CriterionScore(criterion=criterion, score=round(score, 2), max_score=CAPS[criterion])
        )

    # ── Capacity ──────────────────────────────────────────────────────────
    places = organisation.available_places
    add("capacity", capacity_score(places))
    if places == 0:
        concerns.append("No available places")
    elif places == 1:
        concerns.append("Only one place available")
    else:
        recommendations.append(f"{places} places available")

    # ── Location ──────────────────────────────────────────────────────────
    max_distance = criteria.get("max_distance_km")
    add("location", location_score(distance_km, max_distance))
    if max_distance is not None and distance_km > max_distance:
        concerns.append(
            f"Estimated {distance_km:.1f} km away, beyond the {max_distance:g} km limit"
        )
    elif distance_km <= 25:
        recommendations.append(f"Close to the preferred area ({distance_km:.1f} km)")

    # ── Specialisms ───────────────────────────────────────────────────────
    share, missing = _coverage(criteria.get("required_specialisms") or [], organisation.specialisms)
    add("specialisms", share * CAPS["specialisms"])
    if missing:
        concerns.append(f"Missing specialisms: {', '.join(missing)}")
    elif criteria.get("required_specialisms"):
        recommendations.append("Offers every required specialism")

    # ── Age ───────────────────────────────────────────────────────────────
    age = child.age_on(on_date)
    age_ok = organisation.min_age <= age <= organisation.max_age
    add("age", CAPS["age"] if age_ok else 0)
    if not age_ok:
        concerns.append(
            f"Child aged {age} is outside the registered age range "
            f"{organisation.min_age}-{organisation.max_age}"
        )

    # ── Gender ────────────────────────────────────────────────────────────
    accepted = _normalise(organisation.accepted_genders or [])
    gender_ok = not accepted or child.gender.value.lower() in accepted
    add("gender", CAPS["gender"] if gender_ok else 0)
    if not gender_ok:
        concerns.append(f"Does not accept {child.gender.value.lower()} residents")

    # ── Cultural / religious ──────────────────────────────────────────────
    cultural_needs = [child.religion, child.first_language, *(child.cultural_needs or [])]
    share, missing = _coverage(cultural_needs, organisation.cultural_provisions)
    add("cultural", share * CAPS["cultural"])
    if missing:
        concerns.append(f"Cultural or religious needs not provided for: {', '.join(missing)}")
    elif _normalise(cultural_needs):
        recommendations.append("Meets cultural and religious needs")

    # ── Medical ───────────────────────────────────────────────────────────
    share, missing = _coverage(child.medical_needs or [], organisation.medical_capabilities)
    add("medical", share * CAPS["medical"])
    if missing:
        concerns.append(f"Medical needs not covered: {', '.join(missing)}")

    # ── Behavioural risk ──────────────────────────────────────────────────
    behaviour = behavioural_score(child, organisation)
    add("behavioural", behaviour)
    if behaviour < CAPS["behavioural"]:
        concerns.append(
            f"Registered for {organisation.behavioural_capability.value} risk, "
            f"child assessed {child.behavioural_risk_level.value}"
        )

    # ── Educational ───────────────────────────────────────────────────────
    share, missing = _coverage(child.education_needs or [], organisation.education_provisions)
    add("educational", share * CAPS["educational"])
    if missing:
        concerns.append(f"Education needs not provided: {', '.join(missing)}")

    # ── Accessibility ─────────────────────────────────────────────────────
    share, missing = _coverage(child.accessibility_needs or [], organisation.accessibility_features)
    add("accessibility", share * CAPS["accessibility"])
    if missing:
        concerns.append(f"Accessibility needs not met: {', '.join(missing)}")

    raw = round(sum(entry.score for entry in scores), 2)
    percentage = round(raw / MAX_SCORE * 100, 1)
    suitability = suitability_for(percentage)
    if not age_ok or places == 0:
        suitability = Suitability.UNSUITABLE

    return MatchScore(
        organisation_id=organisation.id,
        organisation_name=organisation.name,
        scores=scores,
        raw_score=raw,
        max_score=MAX_SCORE,
        percentage=percentage,
        suitability=suitability,
        estimated_distance_km=distance_km,
        recommendations=recommendations,
        concerns=concerns,
    )


def rank_matches(matches: Iterable[MatchScore]) -> List[MatchScore]:
    """Best first; equal percentages fall back to organisation name."""
    return sorted(matches, key=lambda m: (-m.percentage, m.organisation_name.lower()))


class MatchingService:

    async def find_suitable_placements(
        self,
        db: AsyncSession,
        request_id: UUID,
        min_percentage: Optional[float] = None,
        limit: Optional[int] = None,
        include_unsuitable: bool = True,
    ) -> List[MatchScore]:
        """
        Ranks active care organisations for a placement request.

        Raises:
            NotFoundError: Request (or its child) does not exist
        """
        request = await placement_service.get_placement_request(db, request_id)
        child = await child_service.get_child(db, request.child_id)

        result = await db.execute(
            select(CareOrganisation).where(CareOrganisation.is_active.is_(True))
        )
        organisations = list(result.scalars().all())
        origin = (request.matching_criteria or {}).get("preferred_postcode")

        matches = []
        for organisation in organisations:
            distance = await geocoding_service.distance_km(origin, organisation)
            matches.append(score_organisation(child, request, organisation, distance))

        if not include_unsuitable:
            matches = [m for m in matches if m.suitability != Suitability.UNSUITABLE]
        if min_percentage is not None:
            matches = [m for m in matches if m.percentage >= min_percentage]

        ranked = rank_matches(matches)
        if limit is not None:
            ranked = ranked[:limit]

        logger.info(
            "Matched request %s against %d organisations (%d returned)",
            request_id, len(organisations), len(ranked),
        )
        return ranked


matching_service = MatchingService()

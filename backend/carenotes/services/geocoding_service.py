"""
CareNotes Backend - Postcode Geocoding Service
===============================================

What:  Estimates the distance between a placement request's preferred
       postcode and a care organisation, for the matcher's location score.
How:   Resolves UK postcodes through the postcodes.io lookup API
       (GET {base_url}/postcodes/{postcode}) and applies the haversine formula.
Who:   Called by MatchingService for every candidate organisation.
When:  Only when GEOCODING_ENABLED=true. Otherwise, and on any lookup
       failure, the distance is the configured default estimate (50 km).

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transport errors
       and 5xx / 429 responses
    2. Circuit breaker so a dead lookup API costs nothing after N failures
    3. In-process cache of resolved postcodes
    4. Any failure degrades to the default distance, never to an error
"""

import logging
import math
import time
from typing import Dict, Optional, Tuple

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from carenotes.config import settings
from carenotes.exceptions import CircuitBreakerOpenError, GeocodingError
from carenotes.models.organisation import CareOrganisation

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088

Coordinates = Tuple[float, float]


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance in kilometres between two (lat, lon) pairs."""
    lat1, lon1 = map(math.radians, origin)
    lat2, lon2 = map(math.radians, destination)
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def normalise_postcode(postcode: str) -> str:
    return "".join(postcode.split()).upper()


# ══════════════════════════════════════════════════════════════════════════
# Lookup Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Tracks the health of the postcode lookup API.

        closed     lookups go through; consecutive failures are counted
        open       threshold reached; lookups are refused until
                   recovery_timeout seconds after the circuit opened
        half_open  one trial lookup; success closes, failure reopens

    The last failure reason and the counts are kept for /health, so an
    operator can see why matching has fallen back to the default distance.
    Single-process state, shared by the async workers of one uvicorn process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.state = self.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self.last_failure_reason: Optional[str] = None
        self.rejected_lookups = 0

    def seconds_until_retry(self, now: Optional[float] = None) -> int:
        if self.state != self.OPEN or self.opened_at is None:
            return 0
        remaining = self.recovery_timeout - ((now or time.time()) - self.opened_at)
        return max(int(math.ceil(remaining)), 0)

    def can_execute(self) -> bool:
        """
        Raises:
            CircuitBreakerOpenError: Open and still inside the recovery window
        """
        if self.state != self.OPEN:
            return True

        remaining = self.seconds_until_retry()
        if remaining > 0:
            self.rejected_lookups += 1
            raise CircuitBreakerOpenError(recovery_time=remaining)

        logger.info("Postcode lookup circuit half-open; sending a trial lookup")
        self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state != self.CLOSED:
            logger.info("Postcode lookup circuit closed; lookups recovered")
        self.state = self.CLOSED
        self.failure_count = 0
        self.opened_at = None

    def record_failure(self, reason: str = "lookup failed") -> None:
        self.failure_count += 1
        self.last_failure_reason = reason

        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != self.OPEN:
                logger.warning(
                    "Postcode lookup circuit opened after %d consecutive failures (%s)",
                    self.failure_count, reason,
                )
            self.state = self.OPEN
            self.opened_at = time.time()

    def snapshot(self) -> Dict[str, object]:
        """Circuit details for the health endpoint."""
        return {
            "state": self.state,
            "consecutive_failures": self.failure_count,
            "last_failure": self.last_failure_reason,
            "retry_in_seconds": self.seconds_until_retry(),
            "rejected_lookups": self.rejected_lookups,
        }


class _TransientLookupError(Exception):
    """5xx / 429 from the lookup API; worth retrying."""


class _MalformedLookupResponse(Exception):
    """A 2xx reply whose body is not the expected postcodes.io JSON."""


# ══════════════════════════════════════════════════════════════════════════
# Geocoding Service
# ══════════════════════════════════════════════════════════════════════════

class GeocodingService:
    """
    Postcode → coordinates → distance.

    Error Handling Chain:
        lookup fails → tenacity retries (N attempts with backoff)
        → all retries fail → circuit breaker failure recorded
        → threshold reached → later lookups rejected instantly
        → distance_km() catches everything and returns the default estimate
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.enabled = settings.geocoding_enabled
        self.default_distance_km = settings.default_distance_km
        self._transport = transport
        self._cache: Dict[str, Coordinates] = {}
        self.fallbacks = 0
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    @property
    def status(self) -> str:
        """disabled | circuit_open | available (reported by /health)."""
        if not self.enabled:
            return "disabled"
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return "circuit_open"
        return "available"

    def health_details(self) -> Dict[str, object]:
        """Circuit snapshot plus how often matching fell back to the default distance."""
        return {**self.circuit_breaker.snapshot(), "distance_fallbacks": self.fallbacks}

    async def distance_km(
        self,
        origin_postcode: Optional[str],
        organisation: CareOrganisation,
    ) -> float:
        """
        Distance from origin_postcode to the organisation, in km.

        Uses the organisation's stored coordinates when present, otherwise
        looks up its postcode. Never raises: every failure returns the
        default estimate.
        """
        if not self.enabled or not origin_postcode:
            return self.default_distance_km

        try:
            origin = await self.lookup(origin_postcode)
            if organisation.latitude is not None and organisation.longitude is not None:
                destination = (organisation.latitude, organisation.longitude)
            else:
                destination = await self.lookup(organisation.postcode)
        except CircuitBreakerOpenError:
            logger.info("Geocoder circuit open; using default distance estimate")
            self.fallbacks += 1
            return self.default_distance_km
        except GeocodingError as e:
            logger.warning("Geocoding failed (%s); using default distance estimate", e.message)
            self.fallbacks += 1
            return self.default_distance_km

        return round(haversine_km(origin, destination), 1)

    async def lookup(self, postcode: str) -> Coordinates:
        """
        Resolves a postcode to (latitude, longitude).

        Raises:
            CircuitBreakerOpenError: Circuit is open
            GeocodingError: Unknown postcode, unreadable reply, or the API
                            failed after all retries
        """
        key = normalise_postcode(postcode)
        if key in self._cache:
            return self._cache[key]

        self.circuit_breaker.can_execute()

        try:
            coordinates = await self._fetch_with_retry(key)
        except GeocodingError:
            # Unknown postcode: the API itself is healthy
            self.circuit_breaker.record_success()
            raise
        except (httpx.HTTPError, _TransientLookupError, _MalformedLookupResponse) as e:
            reason = f"{type(e).__name__}: {e}"
            self.circuit_breaker.record_failure(reason)
            logger.error("Postcode lookup for %s failed: %s", key, reason)
            raise GeocodingError(
                message="Postcode lookup service unavailable",
                context={"postcode": key, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        self._cache[key] = coordinates
        return coordinates

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, _TransientLookupError)),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _fetch_with_retry(self, postcode: str) -> Coordinates:
        start_time = time.time()
        async with httpx.AsyncClient(
            base_url=settings.geocoding_base_url,
            timeout=settings.geocoding_timeout,
            transport=self._transport,
        ) as client:
            response = await client.get(f"/postcodes/{postcode}")

        duration_ms = (time.time() - start_time) * 1000
        if response.status_code == 404:
            raise GeocodingError(
                message=f"Unknown postcode '{postcode}'", context={"postcode": postcode}
            )
        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(
                "Postcode lookup returned %d after %.0fms", response.status_code, duration_ms
            )
            raise _TransientLookupError(f"HTTP {response.status_code}")
        response.raise_for_status()

        coordinates = parse_lookup_body(response, postcode)
        logger.debug("Resolved %s in %.0fms", postcode, duration_ms)
        return coordinates


def parse_lookup_body(response: httpx.Response, postcode: str) -> Coordinates:
    """
    Extracts (latitude, longitude) from a postcodes.io reply.

    Raises:
        _MalformedLookupResponse: Body is not JSON, or not shaped like
                                  {"result": {"latitude": .., "longitude": ..}}
        GeocodingError: Postcode exists but has no coordinates (e.g. a PO box)
    """
    try:
        body = response.json()
    except ValueError as e:
        content_type = response.headers.get("content-type", "unknown")
        raise _MalformedLookupResponse(f"non-JSON body ({content_type})") from e

    if not isinstance(body, dict):
        raise _MalformedLookupResponse(f"JSON {type(body).__name__} instead of an object")
    result = body.get("result")
    if not isinstance(result, dict):
        raise _MalformedLookupResponse("reply has no result object")

    latitude, longitude = result.get("latitude"), result.get("longitude")
    if latitude is None or longitude is None:
        raise GeocodingError(
            message=f"Postcode '{postcode}' has no coordinates",
            context={"postcode": postcode},
        )
    try:
        return float(latitude), float(longitude)
    except (TypeError, ValueError) as e:
        raise _MalformedLookupResponse(f"non-numeric coordinates {latitude!r}, {longitude!r}") from e


geocoding_service = GeocodingService()

"""
CareNotes Backend - Shared Pydantic Schemas
============================================

What:  Response models shared by every router: the error envelope and the
       health check payload.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "validation_error", "not_found")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {
            "error": "conflict",
            "message": "Pocket money already disbursed for child ... in week 12/2024",
            "details": {"transaction_id": "3f2b9c1e-..."},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and load balancer health checks."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    geocoder: str = Field(
        description="Postcode lookup: disabled, available, circuit_open"
    )
    geocoder_circuit: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Circuit state, consecutive failures, last failure and fallback count",
    )
    uptime_seconds: float = Field(description="Seconds since service started")

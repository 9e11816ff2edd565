"""
DisasterHub Backend — Shared Pydantic Schemas
===============================================

What:  Base model and response shapes shared by every resource.
How:   `APIModel` renders snake_case attributes as camelCase on the wire
       (isActive, reportedBy, createdAt) and accepts either form on input.
"""

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base for every request/response schema of the public API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def field_errors(raw_errors: Sequence[Dict[str, Any]], skip_prefix: int = 0) -> List[Dict[str, str]]:
    """
    Convert Pydantic/FastAPI error dicts into the API's field error list.

    `loc` tuples are joined with dots ("location.coordinates.lat"); the first
    `skip_prefix` entries (e.g. "body", "query") are dropped.
    """
    result = []
    for err in raw_errors:
        loc = [str(part) for part in err.get("loc", ())][skip_prefix:]
        result.append({
            "field": ".".join(loc) or "request",
            "message": err.get("msg", "Invalid value"),
        })
    return result


class MessageResponse(APIModel):
    message: str = Field(description="Human-readable result of the operation")


class CountResponse(APIModel):
    count: int = Field(ge=0)


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "forbidden",
            "message": "Not authorized to update this disaster",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    realtime: str = Field(description="Realtime channel: enabled, disabled")
    realtime_subscribers: int = Field(description="Open realtime connections")
    uptime_seconds: float = Field(description="Seconds since service started")

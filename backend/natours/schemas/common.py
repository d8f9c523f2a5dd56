"""
Natours Backend — Shared Schema Building Blocks
=================================================

What:  The camelCase base model, GeoJSON point schemas, embedded user
       summaries and the response envelope models.
Why:   The public API speaks camelCase (`ratingsAverage`, `maxGroupSize`)
       while Python attributes stay snake_case; one base class does the
       translation for every resource.

Envelope contract:
    success → {"status": "success", "results"?: n, "data": {...}}
    failure → {"status": "fail" | "error", "message": "..."}
"""

import uuid
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for every API schema.

    - alias_generator=to_camel: `max_group_size` is exposed as `maxGroupSize`
    - populate_by_name: internal callers may still pass snake_case names
    - from_attributes: response schemas are built straight from ORM rows
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


class GeoPoint(CamelModel):
    """GeoJSON Point; coordinates are [longitude, latitude]."""

    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(min_length=2, max_length=2)
    address: Optional[str] = None
    description: Optional[str] = None

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v: List[float]) -> List[float]:
        lng, lat = v
        if not -180 <= lng <= 180:
            raise ValueError(f"Longitude {lng} must be between -180 and 180")
        if not -90 <= lat <= 90:
            raise ValueError(f"Latitude {lat} must be between -90 and 90")
        return v


class TourLocation(GeoPoint):
    """A stop on the tour itinerary."""

    day: Optional[int] = Field(default=None, ge=0)


class UserSummary(CamelModel):
    """Author as embedded in review documents."""

    id: uuid.UUID
    name: str
    photo: Optional[str] = None


class GuideSummary(UserSummary):
    """Guide as embedded in tour documents."""

    email: str
    role: str


# ══════════════════════════════════════════════════════════════════════════
# Envelope models (OpenAPI documentation of the wire format)
# ══════════════════════════════════════════════════════════════════════════


class SuccessEnvelope(BaseModel):
    status: Literal["success"] = "success"
    results: Optional[int] = Field(default=None, description="Number of documents in data")
    data: Any = Field(description="Payload, keyed by resource name")


class ErrorEnvelope(BaseModel):
    """
    What:  Uniform failure body for every route.

    Fields:
        status:  "fail" for client errors (4xx), "error" for server errors (5xx)
        message: Human-readable description; generic for unexpected errors
                 outside development
        error / stack: development only
    """

    status: Literal["fail", "error"]
    message: str
    error: Optional[dict] = None
    stack: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")

"""
Natours Backend — Tour Schemas
================================

What:  Create / update / response contracts for tours.
Why:   The create schema IS the tour's validation rule set: every row is
       validated against it before it is written (on update, against the
       merged document).
"""

import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import Field, computed_field, field_validator, model_validator

from natours.schemas.common import CamelModel, GeoPoint, GuideSummary, TourLocation

DIFFICULTIES = ("easy", "medium", "difficult")


def _check_difficulty(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in DIFFICULTIES:
        raise ValueError("Difficulty is either: easy, medium, difficult")
    return v


def _to_utc(dates: Optional[List[datetime]]) -> Optional[List[datetime]]:
    # Naive dates are taken as UTC; aware ones are converted
    if dates is None:
        return dates
    return [
        d.astimezone(timezone.utc) if d.tzinfo else d.replace(tzinfo=timezone.utc)
        for d in dates
    ]


def _guide_ids(v: Any) -> Any:
    # Accepts both raw ids and loaded User rows (merged-document validation)
    if isinstance(v, list):
        return [getattr(item, "id", item) for item in v]
    return v


class TourCreate(CamelModel):
    name: str = Field(min_length=10, max_length=40)
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0)
    difficulty: str
    ratings_average: float = Field(default=4.5, ge=1, le=5)
    ratings_quantity: int = Field(default=0, ge=0)
    price: float = Field(gt=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: str = Field(min_length=1)
    description: Optional[str] = None
    image_cover: str = Field(min_length=1)
    images: List[str] = Field(default_factory=list)
    start_dates: List[datetime] = Field(default_factory=list)
    secret_tour: bool = False
    start_location: Optional[GeoPoint] = None
    locations: List[TourLocation] = Field(default_factory=list)
    guides: List[uuid.UUID] = Field(default_factory=list)

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v: str) -> str:
        return _check_difficulty(v)

    @field_validator("guides", mode="before")
    @classmethod
    def coerce_guides(cls, v: Any) -> Any:
        return _guide_ids(v)

    @field_validator("start_dates")
    @classmethod
    def normalize_start_dates(cls, v: List[datetime]) -> List[datetime]:
        return _to_utc(v)

    @field_validator("ratings_average")
    @classmethod
    def round_rating(cls, v: float) -> float:
        return round(v, 1)

    @model_validator(mode="after")
    def discount_below_price(self) -> "TourCreate":
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(
                f"Discount price ({self.price_discount:g}) should be below regular price"
            )
        return self


class TourUpdate(CamelModel):
    """Partial update; only fields present in the body are applied."""

    name: Optional[str] = Field(default=None, min_length=10, max_length=40)
    duration: Optional[int] = Field(default=None, gt=0)
    max_group_size: Optional[int] = Field(default=None, gt=0)
    difficulty: Optional[str] = None
    ratings_average: Optional[float] = Field(default=None, ge=1, le=5)
    ratings_quantity: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, gt=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    image_cover: Optional[str] = Field(default=None, min_length=1)
    images: Optional[List[str]] = None
    start_dates: Optional[List[datetime]] = None
    secret_tour: Optional[bool] = None
    start_location: Optional[GeoPoint] = None
    locations: Optional[List[TourLocation]] = None
    guides: Optional[List[uuid.UUID]] = None

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v: Optional[str]) -> Optional[str]:
        return _check_difficulty(v)

    @field_validator("start_dates")
    @classmethod
    def normalize_start_dates(cls, v: Optional[List[datetime]]) -> Optional[List[datetime]]:
        return _to_utc(v)


class TourResponse(CamelModel):
    id: uuid.UUID
    name: str
    slug: Optional[str] = None
    duration: int
    max_group_size: int
    difficulty: str
    ratings_average: float
    ratings_quantity: int
    price: float
    price_discount: Optional[float] = None
    summary: str
    description: Optional[str] = None
    image_cover: str
    images: List[str] = Field(default_factory=list)
    start_dates: List[datetime] = Field(default_factory=list)
    secret_tour: bool = False
    start_location: Optional[GeoPoint] = None
    locations: List[TourLocation] = Field(default_factory=list)
    guides: List[GuideSummary] = Field(default_factory=list)
    created_at: datetime

    @field_validator("start_dates")
    @classmethod
    def normalize_start_dates(cls, v: List[datetime]) -> List[datetime]:
        return _to_utc(v)

    @computed_field(alias="durationWeeks")
    @property
    def duration_weeks(self) -> float:
        return self.duration / 7

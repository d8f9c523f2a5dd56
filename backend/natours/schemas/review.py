"""
Natours Backend — Review Schemas
==================================

What:  Create / update / response contracts for reviews.
How:   The parent references are exposed as `tour` and `user` on the wire
       and stored as `tour_id` / `user_id`.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from natours.schemas.common import CamelModel, UserSummary


class ReviewCreate(CamelModel):
    review: str = Field(min_length=1)
    rating: float = Field(ge=1, le=5)
    tour_id: uuid.UUID = Field(alias="tour")
    user_id: uuid.UUID = Field(alias="user")


class ReviewUpdate(CamelModel):
    review: Optional[str] = Field(default=None, min_length=1)
    rating: Optional[float] = Field(default=None, ge=1, le=5)


class ReviewResponse(CamelModel):
    id: uuid.UUID
    review: str
    rating: float
    created_at: datetime
    tour_id: uuid.UUID = Field(serialization_alias="tour")
    user: UserSummary

"""
Natours Backend — Resource Descriptors
========================================

What:  One immutable `Resource` per API resource (tour, user, review) binding
       the ORM model, its create/update/response schemas, the public field
       names and the per-resource hooks.
Why:   The handler factory and the query translator are generic; everything
       they need to know about a concrete resource is read from here.
How:   Public (camelCase) field names are derived from the response schema;
       the subset that maps onto real columns is what clients may filter and
       sort by. Descriptors are built at import time and never mutated.

Default filters:
    Tours marked `secretTour` and users marked inactive are hidden from every
    read, including reads by id. Writes go through the same filters, so a
    hidden row cannot be updated or deleted through the API either.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel
from sqlalchemy import delete, func, inspect as sa_inspect, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql import ColumnElement, Select

from natours.config import settings
from natours.database import Base
from natours.exceptions import CastError, ValidationError
from natours.models import Review, Tour, TourStartDate, User
from natours.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from natours.schemas.tour import TourCreate, TourResponse, TourUpdate
from natours.schemas.user import UserCreate, UserResponse, UserUpdate

logger = logging.getLogger(__name__)

AssignHook = Callable[[AsyncSession, Any, Dict[str, Any]], Awaitable[None]]
WriteHook = Callable[[AsyncSession, Any], Awaitable[None]]


async def assign_columns(session: AsyncSession, obj: Any, values: Dict[str, Any]) -> None:
    """Default write hook: copy validated values onto the row."""
    for name, value in values.items():
        setattr(obj, name, value)


def parse_id(raw: str) -> uuid.UUID:
    """Document ids are UUIDs; anything else is a cast error (400)."""
    try:
        return uuid.UUID(str(raw))
    except (TypeError, ValueError):
        raise CastError("id", raw)


@dataclass(frozen=True)
class Resource:
    """
    Declarative description of one API resource.

    Attributes:
        name:                singular name used in messages ("No tour found...")
        plural:              collection name, used for routing and logs
        model:               SQLAlchemy mapped class
        create_schema:       full validation rule set (also used for merged updates)
        update_schema:       partial-update schema (all fields optional)
        response_schema:     document shape returned to clients
        default_filters:     criteria applied to every read and write by id
        pollution_whitelist: query keys allowed to repeat (→ IN filter)
        assign:              copies validated values onto a row
        after_write:         runs after a flushed create/update/delete
        before_delete:       runs before the row is deleted, while its
                             dependents are still readable
    """

    name: str
    plural: str
    model: Type[Base]
    create_schema: Type[BaseModel]
    update_schema: Type[BaseModel]
    response_schema: Type[BaseModel]
    default_filters: Tuple[Callable[[], ColumnElement], ...] = ()
    pollution_whitelist: frozenset = field(default_factory=frozenset)
    assign: AssignHook = assign_columns
    after_write: Optional[WriteHook] = None
    before_delete: Optional[WriteHook] = None

    # ── Public field names ────────────────────────────────────────────────
    @cached_property
    def fields(self) -> Dict[str, str]:
        """Public (wire) name → response schema attribute name."""
        names = {}
        for name, info in self.response_schema.model_fields.items():
            names[info.serialization_alias or info.alias or name] = name
        for name, info in self.response_schema.model_computed_fields.items():
            names[info.alias or name] = name
        return names

    @cached_property
    def columns(self) -> Dict[str, InstrumentedAttribute]:
        """Public names that map onto a real column: filterable and sortable."""
        column_keys = {attr.key for attr in sa_inspect(self.model).column_attrs}
        return {
            public: getattr(self.model, attr)
            for public, attr in self.fields.items()
            if attr in column_keys
        }

    # ── Statements ────────────────────────────────────────────────────────
    def criteria(self) -> list:
        return [make() for make in self.default_filters]

    def select(self) -> Select:
        return select(self.model).where(*self.criteria())

    def select_by_id(self, doc_id: uuid.UUID) -> Select:
        return self.select().where(self.model.id == doc_id)

    # ── Documents ─────────────────────────────────────────────────────────
    def to_document(self, obj: Any) -> Dict[str, Any]:
        """Serialize a row to its JSON document (all public fields)."""
        return self.response_schema.model_validate(obj).model_dump(mode="json", by_alias=True)

    def snapshot(self, obj: Any) -> Dict[str, Any]:
        """Current row expressed in create-schema terms, for merged validation."""
        return {name: getattr(obj, name) for name in self.create_schema.model_fields}

    async def reload(self, session: AsyncSession, doc_id: uuid.UUID) -> Any:
        """Re-read a row after a write so defaults and eager relations are current."""
        return await session.get(self.model, doc_id, populate_existing=True)


# ══════════════════════════════════════════════════════════════════════════
# Tours
# ══════════════════════════════════════════════════════════════════════════

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    return _SLUG_STRIP.sub("-", value.lower()).strip("-")


async def assign_tour(session: AsyncSession, tour: Tour, values: Dict[str, Any]) -> None:
    """
    Tour write hook.

    Unpacks the document-shaped fields into their relational storage:
    guide ids → User rows, start dates → child rows, the GeoJSON start
    location → flat lat/lng columns. The slug follows the name.
    """
    values = dict(values)

    if "guides" in values:
        guide_ids = list(dict.fromkeys(values.pop("guides") or []))
        guides = []
        if guide_ids:
            result = await session.scalars(
                select(User).where(User.id.in_(guide_ids), User.active.is_(True))
            )
            guides = list(result.all())
        if len(guides) != len(guide_ids):
            found = {g.id for g in guides}
            missing = [str(g) for g in guide_ids if g not in found]
            raise ValidationError(
                f"Invalid input data. guides: no user found with id(s) {', '.join(missing)}",
                field="guides",
            )
        tour.guides = guides

    if "start_dates" in values:
        tour.start_date_rows = [
            TourStartDate(start_date=start) for start in values.pop("start_dates") or []
        ]

    if "start_location" in values:
        location = values.pop("start_location")
        if location is None:
            tour.start_location_lng = tour.start_location_lat = None
            tour.start_location_address = tour.start_location_description = None
        else:
            tour.start_location_lng, tour.start_location_lat = location["coordinates"]
            tour.start_location_address = location.get("address")
            tour.start_location_description = location.get("description")

    if "name" in values:
        tour.slug = slugify(values["name"])

    await assign_columns(session, tour, values)


TOURS = Resource(
    name="tour",
    plural="tours",
    model=Tour,
    create_schema=TourCreate,
    update_schema=TourUpdate,
    response_schema=TourResponse,
    default_filters=(lambda: Tour.secret_tour.is_(False),),
    pollution_whitelist=settings.hpp_whitelist_set,
    assign=assign_tour,
)


# ══════════════════════════════════════════════════════════════════════════
# Ratings
# ══════════════════════════════════════════════════════════════════════════


async def refresh_ratings(session: AsyncSession, tour_id: uuid.UUID) -> None:
    """
    Recompute one tour's ratings_quantity / ratings_average from its reviews.

    A tour without reviews falls back to the defaults (0 ratings, 4.5 average).
    """
    quantity, average = (
        await session.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(
                Review.tour_id == tour_id
            )
        )
    ).one()

    await session.execute(
        update(Tour)
        .where(Tour.id == tour_id)
        .values(
            ratings_quantity=quantity,
            ratings_average=round(float(average), 1) if quantity else 4.5,
        )
    )
    logger.debug("Tour %s ratings refreshed: %d reviews", tour_id, quantity)


async def refresh_tour_ratings(session: AsyncSession, review: Review) -> None:
    """Review write hook: refresh the reviewed tour."""
    await refresh_ratings(session, review.tour_id)


# ══════════════════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════════════════


async def delete_user_reviews(session: AsyncSession, user: User) -> None:
    """
    User delete hook.

    The user's reviews are removed explicitly rather than left to the
    foreign-key cascade, so every tour they rated can be refreshed.
    """
    tour_ids = (
        await session.scalars(select(Review.tour_id).where(Review.user_id == user.id))
    ).all()
    if not tour_ids:
        return

    await session.execute(delete(Review).where(Review.user_id == user.id))
    for tour_id in dict.fromkeys(tour_ids):
        await refresh_ratings(session, tour_id)


USERS = Resource(
    name="user",
    plural="users",
    model=User,
    create_schema=UserCreate,
    update_schema=UserUpdate,
    response_schema=UserResponse,
    default_filters=(lambda: User.active.is_(True),),
    before_delete=delete_user_reviews,
)


# ══════════════════════════════════════════════════════════════════════════
# Reviews
# ══════════════════════════════════════════════════════════════════════════

REVIEWS = Resource(
    name="review",
    plural="reviews",
    model=Review,
    create_schema=ReviewCreate,
    update_schema=ReviewUpdate,
    response_schema=ReviewResponse,
    after_write=refresh_tour_ratings,
)

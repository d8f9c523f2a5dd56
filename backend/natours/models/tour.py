"""
Natours Backend — Tour SQLAlchemy Models
==========================================

What:  ORM models for `tours`, `tour_start_dates` and the `tour_guides` association.
Why:   Tours are the central resource: listed, filtered, aggregated and geo-searched.
How:   Nested data is split by how it is queried:
       - start dates get their own table (one row per date) so the monthly
         plan can group dates in SQL;
       - the start location is flattened into lat/lng columns so the geo
         queries can use them in arithmetic;
       - images and the day-by-day locations stay JSON (read back whole).

Table Design Rationale:
    - name UNIQUE: a duplicate name is a client error (400), not a crash
    - ratings_* columns are denormalized from reviews (see natours.resources)
    - secret_tour: hidden from every read, including aggregations
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from natours.database import Base
from natours.models.user import User, utcnow


# Tour ↔ guide (user) many-to-many
tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_id", Uuid, ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class TourStartDate(Base):
    """One scheduled departure of a tour."""

    __tablename__ = "tour_start_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_tour_start_dates_start_date", "start_date"),
    )


class Tour(Base):
    """A bookable tour."""

    __tablename__ = "tours"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    slug: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    ratings_average: Mapped[float] = mapped_column(Float, nullable=False, default=4.5)
    ratings_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    price_discount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    secret_tour: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ── Start location (GeoJSON Point, flattened) ─────────────────────────
    start_location_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    start_location_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    start_location_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_location_description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # [{type: "Point", coordinates: [lng, lat], address, description, day}, ...]
    locations: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── Relationships ─────────────────────────────────────────────────────
    # Guides and start dates are part of every tour document, so they are
    # always loaded alongside the tour (selectin = one extra IN query).
    start_date_rows: Mapped[List[TourStartDate]] = relationship(
        TourStartDate,
        cascade="all, delete-orphan",
        order_by=TourStartDate.start_date,
        lazy="selectin",
    )
    guides: Mapped[List[User]] = relationship(User, secondary=tour_guides, lazy="selectin")

    # Reviews are only loaded on request (get-one population); touching
    # them otherwise is a bug, hence lazy="raise".
    reviews: Mapped[List["Review"]] = relationship(  # noqa: F821
        "Review",
        back_populates="tour",
        lazy="raise",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_tours_price_ratings", "price", "ratings_average"),
    )

    __mapper_args__ = {"version_id_col": version}

    # ── Document views ────────────────────────────────────────────────────
    @property
    def start_dates(self) -> List[datetime]:
        return [row.start_date for row in self.start_date_rows]

    @property
    def start_location(self) -> Optional[Dict[str, Any]]:
        if self.start_location_lat is None or self.start_location_lng is None:
            return None
        return {
            "type": "Point",
            "coordinates": [self.start_location_lng, self.start_location_lat],
            "address": self.start_location_address,
            "description": self.start_location_description,
        }

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, name='{self.name}', difficulty='{self.difficulty}')>"

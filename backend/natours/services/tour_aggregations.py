"""
Natours Backend — Tour Aggregations
=====================================

What:  The read-only tour analytics: difficulty statistics, the monthly
       departure plan, and the two geo queries (tours within a radius,
       distances from a point).
Why:   These are the only endpoints whose result is not a list of stored
       documents; each one is a single grouped or computed SELECT.
How:   Everything is expressed in SQL so the database does the grouping:
       - stats:   GROUP BY upper(difficulty) over well-rated tours
       - monthly: GROUP BY month over the tour_start_dates rows of one year
       - geo:     great-circle (haversine) distance on the start location
Who:   Called by natours.routes.tours.

All queries apply the tour default filters (secret tours never show up).

Geo units:
    unit "mi" uses miles; every other unit value is treated as kilometres.
    Earth radius: 3963.2 mi / 6378.1 km.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from sqlalchemy import Float, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from natours.exceptions import ValidationError
from natours.models import Tour, TourStartDate
from natours.resources import TOURS

logger = logging.getLogger(__name__)

EARTH_RADIUS_MI = 3963.2
EARTH_RADIUS_KM = 6378.1
EARTH_RADIUS_M = 6378100

# metres → unit
DISTANCE_MULTIPLIER = {"mi": 0.000621371, "km": 0.001}

LATLNG_FORMAT_MESSAGE = "Please provide latitude and longitude in the format lat,lng."

TOP_RATED_THRESHOLD = 4.5


# ══════════════════════════════════════════════════════════════════════════
# Tour statistics
# ══════════════════════════════════════════════════════════════════════════


async def tour_stats(session: AsyncSession) -> List[Dict[str, Any]]:
    """
    Per-difficulty rollup of tours rated 4.5 or better.

    One entry per difficulty (upper-cased), sorted by average price
    ascending.
    """
    tier = func.upper(Tour.difficulty)
    avg_price = func.avg(Tour.price).label("avg_price")
    statement = (
        select(
            tier.label("difficulty"),
            func.count(Tour.id).label("num_tours"),
            func.sum(Tour.ratings_quantity).label("num_ratings"),
            func.avg(Tour.ratings_average).label("avg_rating"),
            avg_price,
            func.min(Tour.price).label("min_price"),
            func.max(Tour.price).label("max_price"),
        )
        .where(Tour.ratings_average >= TOP_RATED_THRESHOLD, *TOURS.criteria())
        .group_by(tier)
        .order_by(avg_price.asc())
    )
    rows = (await session.execute(statement)).all()
    return [
        {
            "difficulty": row.difficulty,
            "numTours": row.num_tours,
            "numRatings": int(row.num_ratings or 0),
            "avgRating": float(row.avg_rating),
            "avgPrice": float(row.avg_price),
            "minPrice": float(row.min_price),
            "maxPrice": float(row.max_price),
        }
        for row in rows
    ]


# ══════════════════════════════════════════════════════════════════════════
# Monthly plan
# ══════════════════════════════════════════════════════════════════════════


def parse_year(raw: str) -> int:
    try:
        year = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid year: {raw}.", field="year")
    if not 1 <= year <= 9998:
        raise ValidationError(f"Invalid year: {raw}.", field="year")
    return year


async def monthly_plan(session: AsyncSession, year: int) -> List[Dict[str, Any]]:
    """
    Departures per calendar month of `year`.

    Every start date of every visible tour counts once. Months are
    ordered by number of departures (busiest first), at most 12 entries.
    Months without departures are omitted.

    Returns:
        [{"month": 7, "numTourStarts": 3, "tours": ["The Sea Explorer", ...]}, ...]
    """
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    month = extract("month", TourStartDate.start_date)

    window = (
        TourStartDate.start_date >= start,
        TourStartDate.start_date < end,
        *TOURS.criteria(),
    )

    num_starts = func.count(TourStartDate.id).label("num_tour_starts")
    counts = (
        await session.execute(
            select(month.label("month"), num_starts)
            .join(Tour, Tour.id == TourStartDate.tour_id)
            .where(*window)
            .group_by(month)
            .order_by(num_starts.desc(), month.asc())
            .limit(12)
        )
    ).all()

    names = (
        await session.execute(
            select(month.label("month"), Tour.name)
            .join(Tour, Tour.id == TourStartDate.tour_id)
            .where(*window)
            .order_by(TourStartDate.start_date.asc())
        )
    ).all()
    tours_by_month: Dict[int, List[str]] = defaultdict(list)
    for row in names:
        tours_by_month[int(row.month)].append(row.name)

    return [
        {
            "month": int(row.month),
            "numTourStarts": row.num_tour_starts,
            "tours": tours_by_month[int(row.month)],
        }
        for row in counts
    ]


# ══════════════════════════════════════════════════════════════════════════
# Geo queries
# ══════════════════════════════════════════════════════════════════════════


def parse_center(latlng: str) -> Tuple[float, float]:
    """
    Parse "lat,lng" into floats.

    Raises:
        ValidationError: not exactly two finite numbers, or out of range
    """
    parts = latlng.split(",")
    if len(parts) != 2:
        raise ValidationError(LATLNG_FORMAT_MESSAGE, field="latlng")
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValidationError(LATLNG_FORMAT_MESSAGE, field="latlng")
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValidationError(LATLNG_FORMAT_MESSAGE, field="latlng")
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(LATLNG_FORMAT_MESSAGE, field="latlng")
    return lat, lng


def parse_distance(raw: str) -> float:
    try:
        distance = float(raw)
    except ValueError:
        raise ValidationError(f"Invalid distance: {raw}.", field="distance")
    if not math.isfinite(distance) or distance < 0:
        raise ValidationError(f"Invalid distance: {raw}.", field="distance")
    return distance


def angular_distance(lat: float, lng: float) -> ColumnElement:
    """
    Central angle (radians) between (lat, lng) and each tour's start location.

    Haversine: 2·asin(√(sin²(Δφ/2) + cos φ1 · cos φ2 · sin²(Δλ/2)))
    """
    lat1 = func.radians(Tour.start_location_lat, type_=Float)
    lat2 = math.radians(lat)
    dlat = func.radians(Tour.start_location_lat - lat, type_=Float)
    dlng = func.radians(Tour.start_location_lng - lng, type_=Float)

    sin_dlat = func.sin(dlat / 2, type_=Float)
    sin_dlng = func.sin(dlng / 2, type_=Float)
    inner = (
        sin_dlat * sin_dlat
        + func.cos(lat1, type_=Float) * math.cos(lat2) * sin_dlng * sin_dlng
    )
    return 2 * func.asin(func.sqrt(inner, type_=Float), type_=Float)


def _located() -> Tuple[ColumnElement, ...]:
    return (
        Tour.start_location_lat.is_not(None),
        Tour.start_location_lng.is_not(None),
        *TOURS.criteria(),
    )


async def tours_within(
    session: AsyncSession, distance: float, lat: float, lng: float, unit: str
) -> List[Dict[str, Any]]:
    """Tours whose start location lies within `distance` units of (lat, lng)."""
    radius = distance / (EARTH_RADIUS_MI if unit == "mi" else EARTH_RADIUS_KM)
    statement = (
        TOURS.select()
        .where(*_located(), angular_distance(lat, lng) <= radius)
        .order_by(Tour.id)
    )
    tours = (await session.scalars(statement)).all()
    logger.debug("tours_within %s%s of (%s, %s): %d", distance, unit, lat, lng, len(tours))
    return [TOURS.to_document(tour) for tour in tours]


async def distances(
    session: AsyncSession, lat: float, lng: float, unit: str
) -> List[Dict[str, Any]]:
    """Every located tour with its distance from (lat, lng), nearest first."""
    multiplier = DISTANCE_MULTIPLIER["mi" if unit == "mi" else "km"]
    distance = (angular_distance(lat, lng) * EARTH_RADIUS_M * multiplier).label("distance")
    statement = (
        select(Tour.id, Tour.name, distance)
        .where(*_located())
        .order_by(distance.asc(), Tour.id)
    )
    rows = (await session.execute(statement)).all()
    return [
        {"id": str(row.id), "name": row.name, "distance": float(row.distance)}
        for row in rows
    ]

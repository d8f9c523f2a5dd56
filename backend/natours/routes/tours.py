"""
Natours Backend — Tour Routes
===============================

What:  /api/v1/tours: CRUD, the top-5-cheap alias, statistics, the monthly
       plan and the two geo endpoints.
How:   CRUD endpoints come from the handler factory; the analytics endpoints
       delegate to natours.services.tour_aggregations.

Route order matters: the fixed paths (/top-5-cheap, /tour-stats, ...) are
registered before /{id} so they are never captured as an id.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from natours.database import get_db_session
from natours.resources import REVIEWS, TOURS
from natours.schemas.common import ErrorEnvelope, SuccessEnvelope
from natours.services import handler_factory as factory
from natours.services import tour_aggregations as aggregations

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tours", tags=["Tours"])

RESPONSES = {
    200: {"description": "Success envelope", "model": SuccessEnvelope},
    400: {"description": "Invalid input", "model": ErrorEnvelope},
    404: {"description": "Not found", "model": ErrorEnvelope},
}

# Best-rated, cheapest five; forced onto the request's query parameters
TOP_FIVE_CHEAP = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
}


router.add_api_route(
    "/top-5-cheap",
    factory.get_all(TOURS, preset=TOP_FIVE_CHEAP),
    methods=["GET"],
    summary="Five best-rated, cheapest tours",
)


@router.get("/tour-stats", responses=RESPONSES, summary="Statistics per difficulty")
@factory.catch_async
async def get_tour_stats(session: AsyncSession = Depends(get_db_session)):
    """Per-difficulty rollup over tours rated 4.5 and above."""
    stats = await aggregations.tour_stats(session)
    return factory.success(stats)


@router.get("/monthly-plan/{year}", responses=RESPONSES, summary="Departures per month")
@factory.catch_async
async def get_monthly_plan(year: str, session: AsyncSession = Depends(get_db_session)):
    """Number of tour departures (and tour names) per month of `year`."""
    plan = await aggregations.monthly_plan(session, aggregations.parse_year(year))
    return factory.success(plan)


@router.get(
    "/tours-within/{distance}/center/{latlng}/unit/{unit}",
    responses=RESPONSES,
    summary="Tours starting within a radius",
)
@factory.catch_async
async def get_tours_within(
    distance: str,
    latlng: str,
    unit: str,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Tours whose start location lies within `distance` of `latlng`.

    Example: /tours-within/400/center/34.111745,-118.113491/unit/mi
    """
    lat, lng = aggregations.parse_center(latlng)
    radius = aggregations.parse_distance(distance)
    tours = await aggregations.tours_within(session, radius, lat, lng, unit)
    return factory.success(tours, results=len(tours))


@router.get(
    "/distances/{latlng}/unit/{unit}",
    responses=RESPONSES,
    summary="Distance from a point to every tour",
)
@factory.catch_async
async def get_distances(latlng: str, unit: str, session: AsyncSession = Depends(get_db_session)):
    lat, lng = aggregations.parse_center(latlng)
    result = await aggregations.distances(session, lat, lng, unit)
    return factory.success(result)


# ── CRUD ──────────────────────────────────────────────────────────────────
router.add_api_route(
    "",
    factory.get_all(TOURS),
    methods=["GET"],
    responses=RESPONSES,
    summary="List tours (filter, sort, fields, page, limit)",
)
router.add_api_route(
    "",
    factory.create_one(TOURS),
    methods=["POST"],
    status_code=201,
    responses=RESPONSES,
    summary="Create a tour",
)
router.add_api_route(
    "/{id}",
    factory.get_one(TOURS, populate=factory.Populate("reviews", REVIEWS)),
    methods=["GET"],
    responses=RESPONSES,
    summary="Get a tour with its reviews",
)
router.add_api_route(
    "/{id}",
    factory.update_one(TOURS),
    methods=["PATCH"],
    responses=RESPONSES,
    summary="Update a tour",
)
router.add_api_route(
    "/{id}",
    factory.delete_one(TOURS),
    methods=["DELETE"],
    status_code=204,
    responses=RESPONSES,
    summary="Delete a tour",
)

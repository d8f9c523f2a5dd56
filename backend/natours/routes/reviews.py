"""
Natours Backend — Review Routes
=================================

What:  /api/v1/reviews CRUD plus the nested /api/v1/tours/{tour_id}/reviews
       list/create routes.
How:   Nested routes reuse the same factory endpoints with a Parent
       reference: listing is restricted to the tour in the path, and a
       create without a `tour` in the body takes the tour from the path.

Every review write recomputes the reviewed tour's ratingsAverage and
ratingsQuantity (natours.resources.refresh_tour_ratings).
"""

from fastapi import APIRouter

from natours.resources import REVIEWS
from natours.schemas.common import ErrorEnvelope, SuccessEnvelope
from natours.services import handler_factory as factory

RESPONSES = {
    200: {"description": "Success envelope", "model": SuccessEnvelope},
    400: {"description": "Invalid input", "model": ErrorEnvelope},
    404: {"description": "Not found", "model": ErrorEnvelope},
}

TOUR_PARENT = factory.Parent(path_param="tour_id", attribute="tour_id", body_key="tour")

router = APIRouter(prefix="/api/v1/reviews", tags=["Reviews"])
nested_router = APIRouter(prefix="/api/v1/tours/{tour_id}/reviews", tags=["Reviews"])

for _router, parent in ((router, None), (nested_router, TOUR_PARENT)):
    _router.add_api_route(
        "", factory.get_all(REVIEWS, parent=parent), methods=["GET"],
        responses=RESPONSES, summary="List reviews",
    )
    _router.add_api_route(
        "", factory.create_one(REVIEWS, parent=parent), methods=["POST"], status_code=201,
        responses=RESPONSES, summary="Create a review",
    )

router.add_api_route(
    "/{id}", factory.get_one(REVIEWS), methods=["GET"], responses=RESPONSES, summary="Get a review",
)
router.add_api_route(
    "/{id}", factory.update_one(REVIEWS), methods=["PATCH"], responses=RESPONSES, summary="Update a review",
)
router.add_api_route(
    "/{id}", factory.delete_one(REVIEWS), methods=["DELETE"], status_code=204,
    responses=RESPONSES, summary="Delete a review",
)

"""
Natours Backend — User Routes
===============================

What:  /api/v1/users CRUD. Inactive users are invisible to every endpoint.
"""

from fastapi import APIRouter

from natours.resources import USERS
from natours.schemas.common import ErrorEnvelope, SuccessEnvelope
from natours.services import handler_factory as factory

router = APIRouter(prefix="/api/v1/users", tags=["Users"])

RESPONSES = {
    200: {"description": "Success envelope", "model": SuccessEnvelope},
    400: {"description": "Invalid input", "model": ErrorEnvelope},
    404: {"description": "Not found", "model": ErrorEnvelope},
}

router.add_api_route(
    "", factory.get_all(USERS), methods=["GET"], responses=RESPONSES, summary="List users",
)
router.add_api_route(
    "", factory.create_one(USERS), methods=["POST"], status_code=201,
    responses=RESPONSES, summary="Create a user",
)
router.add_api_route(
    "/{id}", factory.get_one(USERS), methods=["GET"], responses=RESPONSES, summary="Get a user",
)
router.add_api_route(
    "/{id}", factory.update_one(USERS), methods=["PATCH"], responses=RESPONSES, summary="Update a user",
)
router.add_api_route(
    "/{id}", factory.delete_one(USERS), methods=["DELETE"], status_code=204,
    responses=RESPONSES, summary="Delete a user",
)

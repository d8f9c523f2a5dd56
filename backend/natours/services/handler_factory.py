"""
Natours Backend — Generic CRUD Handler Factory
================================================

What:  Builds the five standard endpoint functions (get_all, get_one,
       create_one, update_one, delete_one) for any Resource.
Why:   Tours, users and reviews share exactly the same CRUD behavior; only
       the model, the schemas and a few hooks differ (see natours.resources).
How:   Each factory returns an async FastAPI endpoint wrapped by
       catch_async(), so that every failure inside (cast errors, constraint
       violations, pydantic errors, bugs) is normalized into an AppError
       and rendered by the global handlers.

Write path (create / update):
    sanitize → validate → assign → flush → after_write hook → reload → 201/200

    Updates validate twice: first the patch against the update schema
    (types, per-field rules), then the merged document (current row + patch)
    against the create schema, so cross-field rules such as
    "priceDiscount < price" hold for the stored document.

Response envelope:
    {"status": "success", "results": n, "data": {"data": [...]}}   get_all
    {"status": "success", "data": {"data": {...}}}                 get_one / create / update
    204, empty body                                                delete

Delete path:
    fetch → before_delete hook → delete → flush → after_write hook → 204
"""

import functools
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Body, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from natours.database import get_db_session
from natours.error_handlers import normalize_error
from natours.exceptions import AppError, NotFoundError
from natours.resources import Resource, parse_id
from natours.services.query_translator import build_query, parse_query
from natours.services.sanitizer import sanitize_payload

logger = logging.getLogger(__name__)

Endpoint = Callable[..., Awaitable[Any]]


def catch_async(handler: Endpoint) -> Endpoint:
    """
    Route every failure of `handler` through the error normalizer.

    AppErrors pass through untouched; anything else is classified by
    normalize_error() and re-raised as an AppError chained to the original.
    """

    @functools.wraps(handler)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await handler(*args, **kwargs)
        except AppError:
            raise
        except Exception as exc:
            raise normalize_error(exc) from exc

    return wrapper


@dataclass(frozen=True)
class Parent:
    """
    Parent reference of a nested route, e.g. /tours/{tour_id}/reviews.

    Attributes:
        path_param: name of the parent id in the URL path
        attribute:  child model attribute holding the parent id
        body_key:   body key a client would use for the parent id
    """

    path_param: str
    attribute: str
    body_key: str


@dataclass(frozen=True)
class Populate:
    """A relationship eagerly loaded by get_one and embedded in the document."""

    relationship: str
    resource: Resource


def success(data: Any, results: Optional[int] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": "success"}
    if results is not None:
        body["results"] = results
    body["data"] = {"data": data}
    return body


def _parent_id(request: Request, parent: Optional[Parent]) -> Optional[uuid.UUID]:
    if parent is None or parent.path_param not in request.path_params:
        return None
    return parse_id(request.path_params[parent.path_param])


async def _fetch(session: AsyncSession, resource: Resource, doc_id: uuid.UUID, options=()):
    obj = await session.scalar(resource.select_by_id(doc_id).options(*options))
    if obj is None:
        raise NotFoundError(resource.name, str(doc_id))
    return obj


async def _finish_write(session: AsyncSession, resource: Resource, obj: Any) -> Dict[str, Any]:
    await session.flush()
    if resource.after_write is not None:
        await resource.after_write(session, obj)
    obj = await resource.reload(session, obj.id)
    return resource.to_document(obj)


# ══════════════════════════════════════════════════════════════════════════
# Factories
# ══════════════════════════════════════════════════════════════════════════


def get_all(
    resource: Resource,
    parent: Optional[Parent] = None,
    preset: Optional[Dict[str, str]] = None,
) -> Endpoint:
    """
    List endpoint.

    Args:
        resource: what to list
        parent:   restricts the list to one parent (nested routes)
        preset:   query parameters forced onto every request (aliases such
                  as /top-5-cheap); they override the client's values
    """

    @catch_async
    async def handler(request: Request, session: AsyncSession = Depends(get_db_session)):
        items = list(request.query_params.multi_items())
        if preset:
            items = [(k, v) for k, v in items if k not in preset] + list(preset.items())

        descriptor = parse_query(items, whitelist=resource.pollution_whitelist)

        criteria = []
        parent_id = _parent_id(request, parent)
        if parent_id is not None:
            criteria.append(getattr(resource.model, parent.attribute) == parent_id)

        documents = await build_query(resource, descriptor, criteria).execute(session)
        return success(documents, results=len(documents))

    handler.__name__ = f"get_all_{resource.plural}"
    return handler


def get_one(resource: Resource, populate: Optional[Populate] = None) -> Endpoint:
    """Fetch by id; 404 when the id matches no visible document."""

    @catch_async
    async def handler(id: str, session: AsyncSession = Depends(get_db_session)):
        doc_id = parse_id(id)
        options = []
        if populate is not None:
            options.append(selectinload(getattr(resource.model, populate.relationship)))
        obj = await _fetch(session, resource, doc_id, options)

        document = resource.to_document(obj)
        if populate is not None:
            related = getattr(obj, populate.relationship)
            document[populate.relationship] = [
                populate.resource.to_document(item) for item in related
            ]
        return success(document)

    handler.__name__ = f"get_{resource.name}"
    return handler


def create_one(resource: Resource, parent: Optional[Parent] = None) -> Endpoint:
    """Validate and insert one document; 201 with the stored document."""

    @catch_async
    async def handler(
        request: Request,
        response: Response,
        payload: Dict[str, Any] = Body(...),
        session: AsyncSession = Depends(get_db_session),
    ):
        payload = sanitize_payload(payload)
        parent_id = _parent_id(request, parent)
        if parent_id is not None and not payload.get(parent.body_key):
            payload[parent.body_key] = str(parent_id)

        values = resource.create_schema.model_validate(payload).model_dump()

        obj = resource.model()
        await resource.assign(session, obj, values)
        session.add(obj)
        document = await _finish_write(session, resource, obj)

        logger.info("Created %s %s", resource.name, obj.id)
        response.status_code = 201
        return success(document)

    handler.__name__ = f"create_{resource.name}"
    return handler


def update_one(resource: Resource) -> Endpoint:
    """Apply a partial update; fields absent from the body stay unchanged."""

    @catch_async
    async def handler(
        id: str,
        payload: Dict[str, Any] = Body(...),
        session: AsyncSession = Depends(get_db_session),
    ):
        doc_id = parse_id(id)
        obj = await _fetch(session, resource, doc_id)

        patch = resource.update_schema.model_validate(sanitize_payload(payload))
        changes = patch.model_dump(exclude_unset=True)

        merged = {**resource.snapshot(obj), **changes}
        validated = resource.create_schema.model_validate(merged)
        values = validated.model_dump(include=set(changes))

        await resource.assign(session, obj, values)
        document = await _finish_write(session, resource, obj)

        logger.info("Updated %s %s (%s)", resource.name, doc_id, ", ".join(sorted(values)))
        return success(document)

    handler.__name__ = f"update_{resource.name}"
    return handler


def delete_one(resource: Resource) -> Endpoint:
    """Delete by id; 204 with no body."""

    @catch_async
    async def handler(id: str, session: AsyncSession = Depends(get_db_session)):
        doc_id = parse_id(id)
        obj = await _fetch(session, resource, doc_id)

        if resource.before_delete is not None:
            await resource.before_delete(session, obj)
        await session.delete(obj)
        await session.flush()
        if resource.after_write is not None:
            await resource.after_write(session, obj)

        logger.info("Deleted %s %s", resource.name, doc_id)
        return Response(status_code=204)

    handler.__name__ = f"delete_{resource.name}"
    return handler

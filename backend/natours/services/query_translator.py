"""
Natours Backend — Query Translator
====================================

What:  Turns a request's query string into a structured QueryDescriptor and
       then into a lazy, executable SELECT over a resource.
Why:   Every list endpoint supports the same filtering, sorting, field
       limiting and pagination vocabulary; keeping it in one place keeps the
       route handlers to a single line.
How:   Two steps.
       1. parse_query(): pure parsing of (key, value) pairs; no database,
          no schema knowledge. Keys are parsed one by one by a small typed
          grammar: `field` or `field[op]`, op ∈ gte|gt|lte|lt.
       2. build_query(): resolves public field names against a Resource,
          coerces raw strings to the column types and composes the
          SQLAlchemy Select. Nothing runs until ResourceQuery.execute().

Query string vocabulary:
    ?difficulty=easy                    equality
    ?price[lt]=1500&duration[gte]=5     comparisons (every key parsed alone)
    ?duration=5&duration=9              whitelisted key repeated → IN (5, 9)
    ?sort=-ratingsAverage,price         ordered sort keys, "-" = descending
    ?fields=name,price                  allow-list projection (id always kept)
    ?fields=-description                exclusion projection
    ?page=2&limit=10                    1-indexed pages; skip = (page-1)*limit

Pagination:
    A page past the end returns an empty list. It is never an error.
"""

import logging
import re
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Select

from natours.config import settings
from natours.exceptions import CastError, ValidationError
from natours.resources import Resource

logger = logging.getLogger(__name__)

RESERVED_KEYS = frozenset({"page", "sort", "limit", "fields"})
DEFAULT_SORT = "-createdAt"

_KEY_PATTERN = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)(?:\[(?P<op>[A-Za-z]*)\])?$")


class Operator(str, Enum):
    EQ = "eq"
    GTE = "gte"
    GT = "gt"
    LTE = "lte"
    LT = "lt"
    IN = "in"


# Operators a client may spell in brackets: price[gte]=...
BRACKET_OPERATORS = {op.value: op for op in (Operator.GTE, Operator.GT, Operator.LTE, Operator.LT)}


@dataclass(frozen=True)
class FilterCondition:
    """One node of the filter: `field <operator> value` (value still raw)."""

    field: str
    operator: Operator
    value: Any


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Projection:
    """
    Which public fields a document keeps.

    Exactly one mode is active: an allow-list (`include`, id always kept)
    or an exclusion list (`exclude`). The default keeps every field.
    """

    include: FrozenSet[str] = frozenset()
    exclude: FrozenSet[str] = frozenset()

    def apply(self, document: Dict[str, Any]) -> Dict[str, Any]:
        if self.include:
            keep = self.include | {"id"}
            return {k: v for k, v in document.items() if k in keep}
        return {k: v for k, v in document.items() if k not in self.exclude}

    @property
    def names(self) -> FrozenSet[str]:
        return self.include or self.exclude


@dataclass(frozen=True)
class QueryDescriptor:
    filters: Tuple[FilterCondition, ...] = ()
    sort: Tuple[SortKey, ...] = ()
    projection: Projection = field(default_factory=Projection)
    page: int = 1
    limit: int = 100

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


# ══════════════════════════════════════════════════════════════════════════
# Step 1: parsing
# ══════════════════════════════════════════════════════════════════════════


def collapse_params(
    items: Iterable[Tuple[str, str]],
    whitelist: FrozenSet[str] = frozenset(),
) -> "OrderedDict[str, List[str]]":
    """
    Resolve repeated query keys (HTTP parameter pollution).

    Non-whitelisted keys keep only their last value; whitelisted plain
    field keys keep every value. Key order of first appearance is kept.
    """
    collapsed: "OrderedDict[str, List[str]]" = OrderedDict()
    for key, value in items:
        if key in whitelist and key in collapsed:
            collapsed[key].append(value)
        else:
            collapsed[key] = [value]
    return collapsed


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value > 0 else default


def _split_list(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_filter_key(key: str) -> Tuple[str, Operator]:
    """
    Parse one filter key.

    `price` → (price, EQ); `price[gte]` → (price, GTE). Anything else,
    including unknown operators such as `price[ne]`, is rejected.
    """
    match = _KEY_PATTERN.match(key)
    if not match:
        raise ValidationError(f"Invalid query parameter '{key}'.", field=key)
    op = match.group("op")
    if op is None:
        return match.group("field"), Operator.EQ
    if op not in BRACKET_OPERATORS:
        raise ValidationError(
            f"Invalid filter operator '{op}' in '{key}'. "
            f"Use one of: {', '.join(BRACKET_OPERATORS)}.",
            field=key,
        )
    return match.group("field"), BRACKET_OPERATORS[op]


def parse_query(
    items: Iterable[Tuple[str, str]],
    whitelist: FrozenSet[str] = frozenset(),
    default_limit: Optional[int] = None,
) -> QueryDescriptor:
    """
    Parse raw query-string pairs into a QueryDescriptor.

    Args:
        items:         (key, value) pairs in request order, e.g.
                       request.query_params.multi_items()
        whitelist:     keys allowed to repeat (see collapse_params)
        default_limit: page size when `limit` is absent or invalid

    Raises:
        ValidationError: malformed filter key or mixed projection modes
    """
    params = collapse_params(items, whitelist)
    last = {key: values[-1] for key, values in params.items()}

    filters: List[FilterCondition] = []
    for key, values in params.items():
        if key in RESERVED_KEYS:
            continue
        name, operator = parse_filter_key(key)
        if operator is Operator.EQ and len(values) > 1:
            filters.append(FilterCondition(name, Operator.IN, tuple(values)))
        else:
            filters.append(FilterCondition(name, operator, values[-1]))

    sort_spec = last.get("sort") or DEFAULT_SORT
    sort = tuple(
        SortKey(part[1:], True) if part.startswith("-") else SortKey(part, False)
        for part in _split_list(sort_spec)
    )

    projection = Projection()
    if last.get("fields"):
        requested = _split_list(last["fields"])
        excluded = {f[1:] for f in requested if f.startswith("-")}
        included = {f for f in requested if not f.startswith("-")}
        if excluded and included:
            raise ValidationError(
                "Cannot mix included and excluded fields in 'fields'.", field="fields"
            )
        if included:
            projection = Projection(include=frozenset(included), exclude=frozenset())
        elif excluded:
            projection = Projection(exclude=frozenset(excluded))

    limit_default = default_limit or settings.default_page_limit
    return QueryDescriptor(
        filters=tuple(filters),
        sort=sort,
        projection=projection,
        page=_positive_int(last.get("page"), 1),
        limit=_positive_int(last.get("limit"), limit_default),
    )


# ══════════════════════════════════════════════════════════════════════════
# Step 2: building the SELECT
# ══════════════════════════════════════════════════════════════════════════


def coerce_value(column: Any, public_name: str, raw: str) -> Any:
    """
    Convert a raw query-string value to the column's Python type.

    Raises:
        ValidationError: the column cannot be filtered on (e.g. JSON)
        CastError:       the value does not fit the column type
    """
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        raise ValidationError(f"Cannot filter on field '{public_name}'.", field=public_name)

    try:
        if python_type is bool:
            lowered = raw.strip().lower()
            if lowered in ("true", "1"):
                return True
            if lowered in ("false", "0"):
                return False
            raise ValueError(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw)
        if python_type is uuid.UUID:
            return uuid.UUID(raw)
        return python_type(raw)
    except (TypeError, ValueError):
        raise CastError(public_name, raw)


def _condition(column: Any, operator: Operator, value: Any) -> ColumnElement:
    if operator is Operator.EQ:
        return column == value
    if operator is Operator.IN:
        return column.in_(value)
    if operator is Operator.GTE:
        return column >= value
    if operator is Operator.GT:
        return column > value
    if operator is Operator.LTE:
        return column <= value
    return column < value


def _resolve(resource: Resource, name: str, purpose: str) -> Any:
    try:
        return resource.columns[name]
    except KeyError:
        raise ValidationError(f"Invalid {purpose} field '{name}'.", field=name)


@dataclass
class ResourceQuery:
    """
    An executable, not-yet-executed query over one resource.

    Attributes:
        resource:   the resource being listed
        statement:  the composed SELECT (filters, order, offset, limit)
        projection: applied to every document on the way out
    """

    resource: Resource
    statement: Select
    projection: Projection

    async def execute(self, session: AsyncSession) -> List[Dict[str, Any]]:
        result = await session.scalars(self.statement)
        return [
            self.projection.apply(self.resource.to_document(row))
            for row in result.all()
        ]


def build_query(
    resource: Resource,
    descriptor: QueryDescriptor,
    extra_criteria: Sequence[ColumnElement] = (),
) -> ResourceQuery:
    """
    Compose the SELECT for a descriptor.

    Args:
        resource:       target resource; its default filters always apply
        descriptor:     parsed query
        extra_criteria: additional WHERE clauses (e.g. the parent id of a
                        nested route)
    """
    statement = resource.select().where(*extra_criteria)

    for condition in descriptor.filters:
        column = _resolve(resource, condition.field, "filter")
        if condition.operator is Operator.IN:
            value = tuple(coerce_value(column, condition.field, v) for v in condition.value)
        else:
            value = coerce_value(column, condition.field, condition.value)
        statement = statement.where(_condition(column, condition.operator, value))

    order_by = []
    for key in descriptor.sort:
        column = _resolve(resource, key.field, "sort")
        order_by.append(column.desc() if key.descending else column.asc())
    # Stable pages when sort keys tie
    order_by.append(resource.model.id.asc())
    statement = statement.order_by(*order_by)

    unknown = descriptor.projection.names - set(resource.fields)
    if unknown:
        raise ValidationError(
            f"Invalid field(s) in 'fields': {', '.join(sorted(unknown))}.", field="fields"
        )

    statement = statement.offset(descriptor.skip).limit(descriptor.limit)
    logger.debug(
        "Built %s query: %d filter(s), page=%d limit=%d",
        resource.plural,
        len(descriptor.filters),
        descriptor.page,
        descriptor.limit,
    )
    return ResourceQuery(resource=resource, statement=statement, projection=descriptor.projection)

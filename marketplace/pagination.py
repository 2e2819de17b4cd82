"""
Cursor (keyset) pagination shared by every list endpoint.

A cursor is ``base64(json({"value": <sort value>, "createdAt": ..., "id": ...}))``
built from the last row of the previous page.  The next page is selected
with a strict inequality on the sort column, so the cursor row itself is
never repeated.  ``createdAt``/``id`` ride along as the tiebreak of the
ordering ``sort_col, created_at DESC, id DESC``; a token carrying only
``value`` is still honoured with the plain inequality.

Decoding never raises: a malformed token degrades to ``{"value": None}``,
which applies no predicate (first-page behaviour) unless
``settings.CURSOR_STRICT`` is enabled.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Select, and_, asc, desc, or_
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.config import settings
from marketplace.exceptions import ValidationError

logger = logging.getLogger(__name__)

SORT_ORDERS = ("ASC", "DESC")

# Integer cursor values must fit a BIGINT bind parameter.
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


@dataclass
class CursorPage:
    items: list
    has_next_page: bool
    has_previous_page: bool
    limit: int
    next_cursor: str | None = None
    previous_cursor: str | None = None
    extra: dict = field(default_factory=dict)

    @property
    def meta(self) -> dict:
        """Envelope ``meta`` block; absent cursors are omitted, not nulled."""
        meta = {
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
            "limit": self.limit,
        }
        if self.next_cursor is not None:
            meta["nextCursor"] = self.next_cursor
        if self.previous_cursor is not None:
            meta["previousCursor"] = self.previous_cursor
        meta.update(self.extra)
        return meta


# ---------------------------------------------------------------------------
# Cursor codec
# ---------------------------------------------------------------------------

def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "value"):  # Enum members
        return value.value
    raise TypeError(f"Cannot encode {type(value).__name__} in a cursor")


def encode_cursor(value: Any, *, created_at: datetime | None = None, row_id: int | None = None) -> str:
    payload: dict[str, Any] = {"value": value}
    if created_at is not None and row_id is not None:
        payload["createdAt"] = created_at
        payload["id"] = row_id
    raw = json.dumps(payload, default=_json_default, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def _reject_constant(name: str):
    raise ValueError(f"non-finite number {name} in cursor")


def decode_cursor(cursor: str) -> dict:
    """
    Return the decoded cursor payload, or ``{"value": None}`` when *cursor*
    is not valid base64-encoded JSON object with a ``value`` key.
    """
    try:
        raw = base64.b64decode(cursor.encode("ascii"), validate=True)
        data = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except (binascii.Error, ValueError, UnicodeError) as exc:
        logger.debug("Undecodable cursor %r: %s", cursor, exc)
        return {"value": None}
    if not isinstance(data, dict) or "value" not in data:
        logger.debug("Cursor %r has no value key", cursor)
        return {"value": None}
    return data


# ---------------------------------------------------------------------------
# Sort resolution
# ---------------------------------------------------------------------------

def resolve_sort_column(model, sortable: dict[str, str], sort_by: str):
    """
    Map the public *sort_by* name to a column on *model* via the
    entity's allow-list.  Anything else is a validation error; user input
    is never used as an attribute name directly.
    """
    attr = sortable.get(sort_by)
    if attr is None:
        allowed = ", ".join(sorted(sortable))
        raise ValidationError(
            f'Cannot sort by "{sort_by}". Allowed fields: {allowed}',
            errors=[{"field": "sortBy", "message": f"must be one of: {allowed}"}],
        )
    return attr, getattr(model, attr)


def normalise_sort_order(sort_order: str | None) -> str:
    order = (sort_order or "ASC").upper()
    if order not in SORT_ORDERS:
        raise ValidationError(
            f'Invalid sort order "{sort_order}"',
            errors=[{"field": "sortOrder", "message": "must be ASC or DESC"}],
        )
    return order


def _coerce(column, raw: Any):
    """Convert a JSON-decoded cursor value back to *column*'s Python type."""
    if raw is None:
        return None
    python_type = column.type.python_type
    if python_type is datetime:
        return datetime.fromisoformat(raw) if isinstance(raw, str) else None
    if python_type is date:
        return date.fromisoformat(raw) if isinstance(raw, str) else None
    if python_type is Decimal:
        value = Decimal(str(raw))
        return value if value.is_finite() else None
    if python_type is bool:
        return raw if isinstance(raw, bool) else None
    if python_type is int:
        if isinstance(raw, bool):
            return None
        value = int(raw)
        return value if _INT64_MIN <= value <= _INT64_MAX else None
    return python_type(raw)


def _cursor_predicate(model, column, sort_order: str, decoded: dict):
    value = _coerce(column, decoded.get("value"))
    if value is None:
        return None

    after = column > value if sort_order == "ASC" else column < value

    created_raw = decoded.get("createdAt")
    row_id = decoded.get("id")
    if created_raw is None or not isinstance(row_id, int) or isinstance(row_id, bool):
        return after
    if not _INT64_MIN <= row_id <= _INT64_MAX:
        return None

    created_at = _coerce(model.created_at, created_raw)
    if created_at is None:
        return after
    # Tiebreak ordering is created_at DESC, id DESC in both directions.
    tie = and_(
        column == value,
        or_(
            model.created_at < created_at,
            and_(model.created_at == created_at, model.id < row_id),
        ),
    )
    return or_(after, tie)


# ---------------------------------------------------------------------------
# Query execution
# ---------------------------------------------------------------------------

async def paginate(
    db: AsyncSession,
    stmt: Select,
    *,
    model,
    sortable: dict[str, str],
    cursor: str | None = None,
    limit: int | None = None,
    sort_by: str,
    sort_order: str = "ASC",
    unique: bool = False,
) -> CursorPage:
    """
    Apply cursor, ordering and ``limit + 1`` to *stmt* (which already
    carries every filter predicate) and return one page.

    ``hasPreviousPage`` is reported as "a cursor was supplied", not
    computed by a lookbehind query.
    """
    limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    attr, column = resolve_sort_column(model, sortable, sort_by)
    sort_order = normalise_sort_order(sort_order)

    if cursor:
        decoded = decode_cursor(cursor)
        try:
            predicate = _cursor_predicate(model, column, sort_order, decoded)
        except (TypeError, ValueError, OverflowError, InvalidOperation) as exc:
            logger.debug("Cursor value does not fit %s: %s", attr, exc)
            predicate = None
        if predicate is None:
            if settings.CURSOR_STRICT:
                raise ValidationError(
                    "Invalid pagination cursor",
                    errors=[{"field": "cursor", "message": "is not a valid cursor"}],
                )
            logger.debug("Ignoring unusable cursor; serving first page")
        else:
            stmt = stmt.where(predicate)

    direction = asc if sort_order == "ASC" else desc
    stmt = stmt.order_by(direction(column), desc(model.created_at), desc(model.id)).limit(limit + 1)

    result = await db.execute(stmt)
    if unique:
        result = result.unique()
    rows = list(result.scalars().all())

    has_next_page = len(rows) > limit
    if has_next_page:
        rows = rows[:limit]

    next_cursor = None
    if has_next_page and rows:
        last = rows[-1]
        next_cursor = encode_cursor(getattr(last, attr), created_at=last.created_at, row_id=last.id)

    return CursorPage(
        items=rows,
        has_next_page=has_next_page,
        has_previous_page=bool(cursor),
        limit=limit,
        next_cursor=next_cursor,
        previous_cursor=cursor or None,
    )


# ---------------------------------------------------------------------------
# Filter helpers
# ---------------------------------------------------------------------------

def search_clause(columns, term: str):
    """
    Case-insensitive substring match of *term* against any of *columns*.
    LIKE wildcards in the user's term are matched literally.
    """
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))

"""
Slug helpers shared by every aggregate that carries a human-chosen,
unique ``slug`` column.

The pre-check in ``ensure_slug_available`` gives fast, friendly feedback,
but it is a read-then-write: two concurrent requests can both pass it.
``flush_or_conflict`` is the backstop, turning the database unique-index
violation into the same ``ConflictError``.
"""
import logging
import re
import unicodedata

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.exceptions import ConflictError

logger = logging.getLogger(__name__)

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


def slugify(text: str, max_length: int = 180) -> str:
    """
    Return a URL-safe, lowercase slug derived from *text*.

    Accented letters are folded to ASCII and anything else outside
    ``[a-z0-9]`` is dropped, so the result always matches ``SLUG_PATTERN``
    or is empty.  Long results are cut to *max_length*.
    """
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    text = _SLUG_DASH_RE.sub("-", text).strip("-")
    return text[:max_length].rstrip("-")


async def slug_exists(db: AsyncSession, model, slug: str, exclude_id: int | None = None) -> bool:
    """
    True when any row of *model*, soft-deleted ones included, already uses
    *slug*.  *exclude_id* leaves the row being updated out of the check.
    """
    condition = model.slug == slug
    if exclude_id is not None:
        condition = condition & (model.id != exclude_id)
    return bool((await db.execute(select(exists().where(condition)))).scalar())


async def ensure_slug_available(
    db: AsyncSession, model, slug: str, label: str, exclude_id: int | None = None
) -> None:
    if await slug_exists(db, model, slug, exclude_id):
        logger.info("%s slug %r already taken", label, slug)
        raise ConflictError(f"{label} slug already exists")


GENERIC_CONFLICT = "Request conflicts with existing records"

# SQLSTATE 23505 is unique_violation on PostgreSQL.
_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate:
        return sqlstate == _UNIQUE_VIOLATION
    return "unique" in str(exc.orig).lower()


async def flush_or_conflict(db: AsyncSession, message: str) -> None:
    """
    Flush pending changes.  A unique-constraint violation becomes a 409
    with *message*; any other integrity failure (foreign key, not null)
    becomes a 409 with a generic message.
    """
    try:
        await db.flush()
    except IntegrityError as exc:
        if is_unique_violation(exc):
            logger.warning("Unique violation on flush, reporting conflict: %s", exc.orig)
            raise ConflictError(message) from exc
        logger.warning("Integrity error on flush: %s", exc.orig)
        raise ConflictError(GENERIC_CONFLICT) from exc

"""
Catalog service: business logic for the Service aggregate.

Design notes
------------
- Reads exclude soft-deleted rows (``deleted_at IS NOT NULL``).  The row
  stays in storage and keeps reserving its slug.
- List and detail reads go through the cache-aside pattern (Redis, then
  DB).  List keys hash every query dimension, cursor included.
- The many-to-one ``category`` is loaded with ``joinedload``; relationships
  are ``lazy="noload"`` so nothing is fetched implicitly.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from marketplace.cache import cache
from marketplace.config import settings
from marketplace.exceptions import NotFoundError, ValidationError
from marketplace.models import Service, ServiceCategory, ServiceStatus, utcnow
from marketplace.pagination import paginate, search_clause
from marketplace.schemas import ServiceCreate, ServiceUpdate
from marketplace.services.slugs import ensure_slug_available, flush_or_conflict, slugify

logger = logging.getLogger(__name__)

# Public sortBy name -> model attribute.  Only non-null columns qualify,
# keyset comparisons against NULL never match.
SORTABLE_FIELDS: dict[str, str] = {
    "order": "order",
    "name": "name",
    "slug": "slug",
    "createdAt": "created_at",
}
DEFAULT_SORT = "order"

_NULLABLE_FIELDS = frozenset({"short_description", "description"})
_SLUG_CONFLICT = "Service slug already exists"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _iso(value):
    return value.isoformat() if value else None


def _category_summary(category: ServiceCategory | None) -> dict | None:
    if category is None or category.deleted_at is not None:
        return None
    return {"id": category.id, "name": category.name, "slug": category.slug}


def service_to_dict(service: Service) -> dict:
    """Serialise a Service ORM instance to a plain camelCase dict."""
    return {
        "id": service.id,
        "name": service.name,
        "slug": service.slug,
        "shortDescription": service.short_description,
        "description": service.description,
        "status": service.status.value,
        "order": service.order,
        "isFeatured": service.is_featured,
        "categoryId": service.category_id,
        "category": _category_summary(service.category),
        "createdAt": _iso(service.created_at),
        "updatedAt": _iso(service.updated_at),
    }


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------

async def _get_live_service(db: AsyncSession, service_id: int) -> Service:
    q = (
        select(Service)
        .where(Service.id == service_id, Service.deleted_at.is_(None))
        .options(joinedload(Service.category))
    )
    service = (await db.execute(q)).scalar_one_or_none()
    if service is None:
        raise NotFoundError(f'Service with ID "{service_id}" not found')
    return service


async def _get_live_category(db: AsyncSession, category_id: int) -> ServiceCategory:
    q = select(ServiceCategory).where(
        ServiceCategory.id == category_id, ServiceCategory.deleted_at.is_(None)
    )
    category = (await db.execute(q)).scalar_one_or_none()
    if category is None:
        raise NotFoundError(f'Service category with ID "{category_id}" not found')
    return category


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_services(
    db: AsyncSession,
    cursor: str | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str = "ASC",
    search: str | None = None,
    status: ServiceStatus | None = None,
    category_id: int | None = None,
    category_slug: str | None = None,
    is_featured: bool | None = None,
) -> dict:
    """
    Return one cursor page of live services as ``{"items", "meta"}``.

    Every filter is an independent AND predicate.
    """
    sort_by = sort_by or DEFAULT_SORT
    status_value = status.value if status else None
    cache_key = cache.list_key(
        "services",
        cursor=cursor,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        status=status_value,
        category_id=category_id,
        category_slug=category_slug,
        is_featured=is_featured,
    )
    cached = await cache.get(cache_key)
    if cached:
        return cached

    stmt = (
        select(Service)
        .where(Service.deleted_at.is_(None))
        .options(joinedload(Service.category))
    )
    if search:
        stmt = stmt.where(
            search_clause([Service.name, Service.short_description, Service.description], search)
        )
    if status is not None:
        stmt = stmt.where(Service.status == status)
    if category_id is not None:
        stmt = stmt.where(Service.category_id == category_id)
    if category_slug:
        stmt = stmt.join(ServiceCategory, Service.category_id == ServiceCategory.id).where(
            ServiceCategory.slug == category_slug,
            ServiceCategory.deleted_at.is_(None),
        )
    if is_featured is not None:
        stmt = stmt.where(Service.is_featured.is_(is_featured))

    page = await paginate(
        db,
        stmt,
        model=Service,
        sortable=SORTABLE_FIELDS,
        cursor=cursor,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    response = {"items": [service_to_dict(s) for s in page.items], "meta": page.meta}
    await cache.set(cache_key, response, ttl=settings.CACHE_TTL_LIST)
    return response


async def get_service(db: AsyncSession, service_id: int) -> dict:
    """Return the detail dict for a live service, or raise NotFoundError."""
    cache_key = f"services:detail:{service_id}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    data = service_to_dict(await _get_live_service(db, service_id))
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def get_service_by_slug(db: AsyncSession, slug: str) -> dict:
    cache_key = f"services:slug:{slug}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    q = (
        select(Service)
        .where(Service.slug == slug, Service.deleted_at.is_(None))
        .options(joinedload(Service.category))
    )
    service = (await db.execute(q)).scalar_one_or_none()
    if service is None:
        raise NotFoundError(f'Service with slug "{slug}" not found')

    data = service_to_dict(service)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def create_service(db: AsyncSession, data: ServiceCreate) -> dict:
    """
    Create a service.  The slug defaults to ``slugify(name)``; an existing
    slug (soft-deleted rows included) is a ConflictError and nothing is
    written.
    """
    slug = data.slug or slugify(data.name)
    if not slug:
        raise ValidationError("Cannot derive a slug from the service name; provide one explicitly")
    await ensure_slug_available(db, Service, slug, "Service")

    category = None
    if data.category_id is not None:
        category = await _get_live_category(db, data.category_id)

    service = Service(
        name=data.name,
        slug=slug,
        short_description=data.short_description,
        description=data.description,
        status=data.status,
        order=data.order,
        is_featured=data.is_featured,
        category_id=data.category_id,
    )
    service.category = category
    db.add(service)
    await flush_or_conflict(db, _SLUG_CONFLICT)

    logger.info("Created service id=%s slug=%s", service.id, service.slug)
    await cache.invalidate_service()
    return service_to_dict(service)


async def update_service(db: AsyncSession, service_id: int, data: ServiceUpdate) -> dict:
    """
    Partially update a live service.

    Only fields explicitly set in the payload are modified.  The slug is
    re-checked only when it actually changes, and the row itself is
    excluded from that check.
    """
    service = await _get_live_service(db, service_id)
    update_data = data.model_dump(exclude_unset=True)

    # All lookups happen before any attribute is touched so that autoflush
    # never runs a half-applied update.
    new_slug = update_data.pop("slug", None)
    if new_slug is not None and new_slug != service.slug:
        await ensure_slug_available(db, Service, new_slug, "Service", exclude_id=service.id)
    else:
        new_slug = None

    category_changed = False
    category = None
    if "category_id" in update_data:
        category_id = update_data.pop("category_id")
        if category_id != service.category_id:
            category_changed = True
            if category_id is not None:
                category = await _get_live_category(db, category_id)

    if new_slug is not None:
        service.slug = new_slug
    if category_changed:
        service.category = category
        service.category_id = category.id if category is not None else None

    for field, value in update_data.items():
        if value is None and field not in _NULLABLE_FIELDS:
            continue
        setattr(service, field, value)

    await flush_or_conflict(db, _SLUG_CONFLICT)
    logger.info("Updated service id=%s", service.id)
    await cache.invalidate_service(service.id)
    return service_to_dict(service)


async def delete_service(db: AsyncSession, service_id: int) -> bool:
    """
    Soft-delete the service identified by *service_id*.

    Returns True on success, False when there is no live service with
    that id.  The row is kept; only ``deleted_at`` is set.
    """
    q = select(Service).where(Service.id == service_id, Service.deleted_at.is_(None))
    service = (await db.execute(q)).scalar_one_or_none()
    if service is None:
        return False

    service.deleted_at = utcnow()
    await db.flush()
    logger.info("Soft-deleted service id=%s", service_id)
    await cache.invalidate_service(service_id)
    return True

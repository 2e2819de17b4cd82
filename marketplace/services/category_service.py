"""
Category service: the ServiceCategory tree.

Categories form a self-referential hierarchy through ``parent_id``.  A
write that would make a category its own ancestor is rejected before it
reaches the database.  Deletion is soft, like services.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.cache import cache
from marketplace.config import settings
from marketplace.exceptions import NotFoundError, ValidationError
from marketplace.models import ServiceCategory, utcnow
from marketplace.pagination import paginate, search_clause
from marketplace.schemas import CategoryCreate, CategoryUpdate
from marketplace.services import catalog_service
from marketplace.services.slugs import ensure_slug_available, flush_or_conflict, slugify

logger = logging.getLogger(__name__)

SORTABLE_FIELDS: dict[str, str] = {
    "order": "order",
    "name": "name",
    "slug": "slug",
    "createdAt": "created_at",
}
DEFAULT_SORT = "order"

_NULLABLE_FIELDS = frozenset({"description"})
_SLUG_CONFLICT = "Service category slug already exists"

# Deeper trees than this are treated as corrupt rather than walked forever.
_MAX_DEPTH = 64


def category_to_dict(category: ServiceCategory, children: list[ServiceCategory] | None = None) -> dict:
    data = {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "order": category.order,
        "isActive": category.is_active,
        "parentId": category.parent_id,
        "createdAt": category.created_at.isoformat() if category.created_at else None,
        "updatedAt": category.updated_at.isoformat() if category.updated_at else None,
    }
    if children is not None:
        data["children"] = [category_to_dict(c) for c in children]
    return data


async def _get_live_category(db: AsyncSession, category_id: int) -> ServiceCategory:
    q = select(ServiceCategory).where(
        ServiceCategory.id == category_id, ServiceCategory.deleted_at.is_(None)
    )
    category = (await db.execute(q)).scalar_one_or_none()
    if category is None:
        raise NotFoundError(f'Service category with ID "{category_id}" not found')
    return category


async def _live_children(db: AsyncSession, category_id: int) -> list[ServiceCategory]:
    q = (
        select(ServiceCategory)
        .where(ServiceCategory.parent_id == category_id, ServiceCategory.deleted_at.is_(None))
        .order_by(ServiceCategory.order, ServiceCategory.id)
    )
    return list((await db.execute(q)).scalars().all())


async def _check_parent(db: AsyncSession, parent_id: int, category_id: int | None = None) -> None:
    """
    Verify *parent_id* exists and, for an existing category, that it is
    not the category itself or one of its descendants.
    """
    if category_id is not None and parent_id == category_id:
        raise ValidationError("A category cannot be its own parent")

    current = await _get_live_category(db, parent_id)
    for _ in range(_MAX_DEPTH):
        if current.parent_id is None:
            return
        if category_id is not None and current.parent_id == category_id:
            raise ValidationError("A category cannot be moved under one of its descendants")
        parent = (
            await db.execute(select(ServiceCategory).where(ServiceCategory.id == current.parent_id))
        ).scalar_one_or_none()
        if parent is None:
            return
        current = parent
    raise ValidationError("Category hierarchy is too deep")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_categories(
    db: AsyncSession,
    cursor: str | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str = "ASC",
    search: str | None = None,
    is_active: bool | None = None,
    parent_id: int | None = None,
) -> dict:
    sort_by = sort_by or DEFAULT_SORT
    cache_key = cache.list_key(
        "categories",
        cursor=cursor,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        is_active=is_active,
        parent_id=parent_id,
    )
    cached = await cache.get(cache_key)
    if cached:
        return cached

    stmt = select(ServiceCategory).where(ServiceCategory.deleted_at.is_(None))
    if search:
        stmt = stmt.where(search_clause([ServiceCategory.name, ServiceCategory.description], search))
    if is_active is not None:
        stmt = stmt.where(ServiceCategory.is_active.is_(is_active))
    if parent_id is not None:
        stmt = stmt.where(ServiceCategory.parent_id == parent_id)

    page = await paginate(
        db,
        stmt,
        model=ServiceCategory,
        sortable=SORTABLE_FIELDS,
        cursor=cursor,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    response = {"items": [category_to_dict(c) for c in page.items], "meta": page.meta}
    await cache.set(cache_key, response, ttl=settings.CACHE_TTL_LIST)
    return response


async def get_category(db: AsyncSession, category_id: int) -> dict:
    """Return a live category with its live children."""
    cache_key = f"categories:detail:{category_id}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    category = await _get_live_category(db, category_id)
    data = category_to_dict(category, await _live_children(db, category.id))
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def get_category_by_slug(db: AsyncSession, slug: str) -> dict:
    cache_key = f"categories:slug:{slug}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    q = select(ServiceCategory).where(
        ServiceCategory.slug == slug, ServiceCategory.deleted_at.is_(None)
    )
    category = (await db.execute(q)).scalar_one_or_none()
    if category is None:
        raise NotFoundError(f'Service category with slug "{slug}" not found')

    data = category_to_dict(category, await _live_children(db, category.id))
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def get_category_services(db: AsyncSession, category_id: int, **page_kwargs) -> dict:
    """Cursor page of the live services filed under a live category."""
    await _get_live_category(db, category_id)
    return await catalog_service.get_services(db, category_id=category_id, **page_kwargs)


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    slug = data.slug or slugify(data.name)
    if not slug:
        raise ValidationError("Cannot derive a slug from the category name; provide one explicitly")
    await ensure_slug_available(db, ServiceCategory, slug, "Service category")
    if data.parent_id is not None:
        await _check_parent(db, data.parent_id)

    category = ServiceCategory(
        name=data.name,
        slug=slug,
        description=data.description,
        order=data.order,
        is_active=data.is_active,
        parent_id=data.parent_id,
    )
    db.add(category)
    await flush_or_conflict(db, _SLUG_CONFLICT)

    logger.info("Created category id=%s slug=%s", category.id, category.slug)
    await cache.invalidate_category()
    return category_to_dict(category, [])


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> dict:
    category = await _get_live_category(db, category_id)
    update_data = data.model_dump(exclude_unset=True)

    new_slug = update_data.pop("slug", None)
    if new_slug is not None and new_slug != category.slug:
        await ensure_slug_available(
            db, ServiceCategory, new_slug, "Service category", exclude_id=category.id
        )
        update_data["slug"] = new_slug

    if "parent_id" in update_data:
        parent_id = update_data["parent_id"]
        if parent_id is not None and parent_id != category.parent_id:
            await _check_parent(db, parent_id, category.id)

    for field, value in update_data.items():
        if value is None and field not in _NULLABLE_FIELDS and field != "parent_id":
            continue
        setattr(category, field, value)

    await flush_or_conflict(db, _SLUG_CONFLICT)
    logger.info("Updated category id=%s", category.id)
    await cache.invalidate_category()
    return category_to_dict(category, await _live_children(db, category.id))


async def delete_category(db: AsyncSession, category_id: int) -> bool:
    """
    Soft-delete a category.  Returns False when there is no live category
    with that id.  Children and services keep their reference.
    """
    q = select(ServiceCategory).where(
        ServiceCategory.id == category_id, ServiceCategory.deleted_at.is_(None)
    )
    category = (await db.execute(q)).scalar_one_or_none()
    if category is None:
        return False

    category.deleted_at = utcnow()
    await db.flush()
    logger.info("Soft-deleted category id=%s", category_id)
    await cache.invalidate_category()
    return True

"""
Seller service: seller profiles bound one-to-one to a user account.

``total_sales``, ``total_revenue`` and ``average_rating`` are projections
written by the order and review pipelines.  They are serialised here but
never recomputed or accepted from clients.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.config import settings
from marketplace.exceptions import ConflictError, NotFoundError, ValidationError
from marketplace.models import Seller, SellerStatus, User
from marketplace.pagination import paginate, search_clause
from marketplace.schemas import SellerCreate, SellerStatusUpdate, SellerUpdate
from marketplace.services.slugs import ensure_slug_available, flush_or_conflict, slugify

logger = logging.getLogger(__name__)

SORTABLE_FIELDS: dict[str, str] = {
    "createdAt": "created_at",
    "storeName": "store_name",
    "commissionRate": "commission_rate",
    "totalSales": "total_sales",
    "totalRevenue": "total_revenue",
    "averageRating": "average_rating",
}
DEFAULT_SORT = "createdAt"

# Allowed status moves; anything else is a conflict.
STATUS_TRANSITIONS: dict[SellerStatus, frozenset[SellerStatus]] = {
    SellerStatus.PENDING_REVIEW: frozenset({SellerStatus.APPROVED, SellerStatus.REJECTED}),
    SellerStatus.APPROVED: frozenset({SellerStatus.SUSPENDED}),
    SellerStatus.SUSPENDED: frozenset({SellerStatus.APPROVED}),
    SellerStatus.REJECTED: frozenset(),
}

_SLUG_CONFLICT = "Seller slug already exists"


def seller_to_dict(seller: Seller) -> dict:
    return {
        "id": seller.id,
        "userId": seller.user_id,
        "storeName": seller.store_name,
        "slug": seller.slug,
        "status": seller.status.value,
        "commissionRate": seller.commission_rate,
        "totalSales": seller.total_sales,
        "totalRevenue": seller.total_revenue,
        "averageRating": seller.average_rating,
        "createdAt": seller.created_at.isoformat() if seller.created_at else None,
        "updatedAt": seller.updated_at.isoformat() if seller.updated_at else None,
    }


async def get_seller_model(db: AsyncSession, seller_id: int) -> Seller:
    """Return the Seller ORM row or raise NotFoundError."""
    seller = (await db.execute(select(Seller).where(Seller.id == seller_id))).scalar_one_or_none()
    if seller is None:
        raise NotFoundError(f'Seller with ID "{seller_id}" not found')
    return seller


async def get_sellers(
    db: AsyncSession,
    cursor: str | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str = "ASC",
    search: str | None = None,
    status: SellerStatus | None = None,
) -> dict:
    stmt = select(Seller)
    if search:
        stmt = stmt.where(search_clause([Seller.store_name, Seller.slug], search))
    if status is not None:
        stmt = stmt.where(Seller.status == status)

    page = await paginate(
        db,
        stmt,
        model=Seller,
        sortable=SORTABLE_FIELDS,
        cursor=cursor,
        limit=limit,
        sort_by=sort_by or DEFAULT_SORT,
        sort_order=sort_order,
    )
    return {"items": [seller_to_dict(s) for s in page.items], "meta": page.meta}


async def get_seller(db: AsyncSession, seller_id: int) -> dict:
    return seller_to_dict(await get_seller_model(db, seller_id))


async def get_seller_by_slug(db: AsyncSession, slug: str) -> dict:
    seller = (await db.execute(select(Seller).where(Seller.slug == slug))).scalar_one_or_none()
    if seller is None:
        raise NotFoundError(f'Seller with slug "{slug}" not found')
    return seller_to_dict(seller)


async def create_seller(db: AsyncSession, data: SellerCreate) -> dict:
    """
    Open a seller profile for an existing user.  A user may own at most
    one seller profile; new sellers start in ``pending_review``.
    """
    user = (await db.execute(select(User).where(User.id == data.user_id))).scalar_one_or_none()
    if user is None:
        raise NotFoundError(f'User with ID "{data.user_id}" not found')

    existing = await db.execute(select(Seller.id).where(Seller.user_id == data.user_id))
    if existing.first() is not None:
        raise ConflictError("User already has a seller profile")

    slug = data.slug or slugify(data.store_name)
    if not slug:
        raise ValidationError("Cannot derive a slug from the store name; provide one explicitly")
    await ensure_slug_available(db, Seller, slug, "Seller")

    seller = Seller(
        user_id=data.user_id,
        store_name=data.store_name,
        slug=slug,
        status=SellerStatus.PENDING_REVIEW,
        commission_rate=(
            data.commission_rate
            if data.commission_rate is not None
            else settings.DEFAULT_COMMISSION_RATE
        ),
    )
    db.add(seller)
    await flush_or_conflict(db, "Seller slug or user already taken")

    logger.info("Created seller id=%s for user_id=%s", seller.id, seller.user_id)
    return seller_to_dict(seller)


async def update_seller(db: AsyncSession, seller_id: int, data: SellerUpdate) -> dict:
    seller = await get_seller_model(db, seller_id)
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)

    new_slug = update_data.get("slug")
    if new_slug is not None and new_slug != seller.slug:
        await ensure_slug_available(db, Seller, new_slug, "Seller", exclude_id=seller.id)

    for field, value in update_data.items():
        setattr(seller, field, value)

    await flush_or_conflict(db, _SLUG_CONFLICT)
    if "commission_rate" in update_data:
        logger.info("Seller id=%s commission rate set to %s%%", seller.id, seller.commission_rate)
    return seller_to_dict(seller)


async def change_status(db: AsyncSession, seller_id: int, data: SellerStatusUpdate) -> dict:
    """Move a seller along its review lifecycle, rejecting illegal moves."""
    seller = await get_seller_model(db, seller_id)
    target = data.status
    if target == seller.status:
        return seller_to_dict(seller)
    if target not in STATUS_TRANSITIONS[seller.status]:
        raise ConflictError(
            f'Cannot change seller status from "{seller.status.value}" to "{target.value}"'
        )

    previous = seller.status
    seller.status = target
    await db.flush()
    logger.info("Seller id=%s status %s -> %s", seller.id, previous.value, target.value)
    return seller_to_dict(seller)

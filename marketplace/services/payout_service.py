"""
Payout service: seller payouts and the platform commission split.

A payout is immutable once created except for its status, which moves
along ``pending -> processing -> completed | failed``.  ``failed`` carries
a required reason and is terminal; there is no retry path.  Failing a
payout is an ordinary status write, not an exception.

Money is ``Decimal`` end to end and rounded to cents with ROUND_HALF_UP.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.exceptions import ConflictError, NotFoundError
from marketplace.models import Payout, PayoutStatus, SellerStatus, utcnow
from marketplace.pagination import paginate
from marketplace.schemas import PayoutCreate
from marketplace.services.seller_service import get_seller_model

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

SORTABLE_FIELDS: dict[str, str] = {
    "createdAt": "created_at",
    "periodStart": "period_start",
    "periodEnd": "period_end",
    "amount": "amount",
    "netAmount": "net_amount",
}
DEFAULT_SORT = "createdAt"

STATUS_TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.PROCESSING}),
    PayoutStatus.PROCESSING: frozenset({PayoutStatus.COMPLETED, PayoutStatus.FAILED}),
    PayoutStatus.COMPLETED: frozenset(),
    PayoutStatus.FAILED: frozenset(),
}


def compute_commission(amount: Decimal, commission_rate: Decimal) -> tuple[Decimal, Decimal]:
    """
    Split a gross *amount* into ``(platform_fee, net_amount)``.

    The fee is ``amount * rate / 100`` rounded half-up to cents; the net
    is whatever remains, so ``platform_fee + net_amount == amount`` holds
    exactly.
    """
    amount = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    platform_fee = (amount * Decimal(commission_rate) / Decimal(100)).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    return platform_fee, amount - platform_fee


def payout_to_dict(payout: Payout) -> dict:
    return {
        "id": payout.id,
        "sellerId": payout.seller_id,
        "periodStart": payout.period_start.isoformat(),
        "periodEnd": payout.period_end.isoformat(),
        "amount": payout.amount,
        "platformFee": payout.platform_fee,
        "netAmount": payout.net_amount,
        "commissionRate": payout.commission_rate,
        "itemCount": payout.item_count,
        "status": payout.status.value,
        "failureReason": payout.failure_reason,
        "processedAt": payout.processed_at.isoformat() if payout.processed_at else None,
        "createdAt": payout.created_at.isoformat() if payout.created_at else None,
        "updatedAt": payout.updated_at.isoformat() if payout.updated_at else None,
    }


async def _get_payout_model(db: AsyncSession, payout_id: int) -> Payout:
    payout = (await db.execute(select(Payout).where(Payout.id == payout_id))).scalar_one_or_none()
    if payout is None:
        raise NotFoundError(f'Payout with ID "{payout_id}" not found')
    return payout


def _check_transition(payout: Payout, target: PayoutStatus) -> None:
    if target not in STATUS_TRANSITIONS[payout.status]:
        raise ConflictError(
            f'Cannot move payout from "{payout.status.value}" to "{target.value}"'
        )


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_payouts(
    db: AsyncSession,
    cursor: str | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str = "ASC",
    seller_id: int | None = None,
    status: PayoutStatus | None = None,
) -> dict:
    stmt = select(Payout)
    if seller_id is not None:
        stmt = stmt.where(Payout.seller_id == seller_id)
    if status is not None:
        stmt = stmt.where(Payout.status == status)

    page = await paginate(
        db,
        stmt,
        model=Payout,
        sortable=SORTABLE_FIELDS,
        cursor=cursor,
        limit=limit,
        sort_by=sort_by or DEFAULT_SORT,
        sort_order=sort_order,
    )
    return {"items": [payout_to_dict(p) for p in page.items], "meta": page.meta}


async def get_payout(db: AsyncSession, payout_id: int) -> dict:
    return payout_to_dict(await _get_payout_model(db, payout_id))


async def create_payout(db: AsyncSession, data: PayoutCreate) -> dict:
    """
    Record a pending payout for an approved seller, snapshotting the
    seller's current commission rate.
    """
    seller = await get_seller_model(db, data.seller_id)
    if seller.status != SellerStatus.APPROVED:
        raise ConflictError(
            f'Seller "{seller.id}" is {seller.status.value} and cannot receive payouts'
        )

    platform_fee, net_amount = compute_commission(data.amount, seller.commission_rate)
    payout = Payout(
        seller_id=seller.id,
        period_start=data.period_start,
        period_end=data.period_end,
        amount=data.amount,
        platform_fee=platform_fee,
        net_amount=net_amount,
        commission_rate=seller.commission_rate,
        item_count=data.item_count,
        status=PayoutStatus.PENDING,
    )
    db.add(payout)
    await db.flush()

    logger.info(
        "Created payout id=%s seller_id=%s amount=%s fee=%s net=%s",
        payout.id, seller.id, payout.amount, platform_fee, net_amount,
    )
    return payout_to_dict(payout)


async def start_processing(db: AsyncSession, payout_id: int) -> dict:
    payout = await _get_payout_model(db, payout_id)
    _check_transition(payout, PayoutStatus.PROCESSING)
    payout.status = PayoutStatus.PROCESSING
    await db.flush()
    logger.info("Payout id=%s processing", payout.id)
    return payout_to_dict(payout)


async def complete_payout(db: AsyncSession, payout_id: int) -> dict:
    payout = await _get_payout_model(db, payout_id)
    _check_transition(payout, PayoutStatus.COMPLETED)
    payout.status = PayoutStatus.COMPLETED
    payout.processed_at = utcnow()
    await db.flush()
    logger.info("Payout id=%s completed", payout.id)
    return payout_to_dict(payout)


async def fail_payout(db: AsyncSession, payout_id: int, failure_reason: str) -> dict:
    """
    Mark a processing payout as failed.  The outcome is reported through
    the returned status; callers check it rather than catching anything.
    """
    payout = await _get_payout_model(db, payout_id)
    _check_transition(payout, PayoutStatus.FAILED)
    payout.status = PayoutStatus.FAILED
    payout.failure_reason = failure_reason
    payout.processed_at = utcnow()
    await db.flush()
    logger.warning("Payout id=%s failed: %s", payout.id, failure_reason)
    return payout_to_dict(payout)


async def get_seller_summary(db: AsyncSession, seller_id: int) -> dict:
    """Count and net total per payout status for one seller."""
    await get_seller_model(db, seller_id)
    q = (
        select(Payout.status, func.count(Payout.id), func.coalesce(func.sum(Payout.net_amount), 0))
        .where(Payout.seller_id == seller_id)
        .group_by(Payout.status)
    )
    rows = {status: (count, total) for status, count, total in (await db.execute(q)).all()}

    summary: dict = {"sellerId": seller_id}
    for status in PayoutStatus:
        count, total = rows.get(status, (0, 0))
        summary[status.value] = {
            "count": count,
            "netAmount": Decimal(str(total)).quantize(CENT, rounding=ROUND_HALF_UP),
        }
    return summary

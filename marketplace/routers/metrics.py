from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.cache import cache
from marketplace.database import get_db
from marketplace.models import Payout, PayoutStatus, Seller, Service, ServiceCategory
from marketplace.responses import envelope

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


@router.get("")
async def get_metrics(db: AsyncSession = Depends(get_db)):

    total_services = (await db.execute(
        select(func.count()).select_from(Service).where(Service.deleted_at.is_(None))
    )).scalar_one()

    total_categories = (await db.execute(
        select(func.count()).select_from(ServiceCategory).where(ServiceCategory.deleted_at.is_(None))
    )).scalar_one()

    total_sellers = (await db.execute(select(func.count()).select_from(Seller))).scalar_one()

    total_payouts = (await db.execute(select(func.count()).select_from(Payout))).scalar_one()

    pending_net = (await db.execute(
        select(func.coalesce(func.sum(Payout.net_amount), 0)).where(Payout.status == PayoutStatus.PENDING)
    )).scalar_one()

    return envelope(
        {
            "totalServices": total_services,
            "totalCategories": total_categories,
            "totalSellers": total_sellers,
            "totalPayouts": total_payouts,
            "pendingPayoutNetAmount": round(float(pending_net), 2),
            "cacheInfo": cache.stats,
        },
        "Metrics retrieved successfully",
    )

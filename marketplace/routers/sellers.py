from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.dependencies import CursorPaginationParams
from marketplace.models import SellerStatus
from marketplace.responses import envelope
from marketplace.schemas import SellerCreate, SellerStatusUpdate, SellerUpdate
from marketplace.services import payout_service, seller_service

router = APIRouter(prefix="/api/v1/sellers", tags=["sellers"])


@router.get("")
async def list_sellers(
    pagination: CursorPaginationParams = Depends(),
    search: str | None = Query(None, max_length=200),
    status: SellerStatus | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    page = await seller_service.get_sellers(db, **pagination.as_kwargs(), search=search, status=status)
    return envelope(page["items"], "Sellers retrieved successfully", page["meta"])


@router.get("/slug/{slug}")
async def get_seller_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    return envelope(await seller_service.get_seller_by_slug(db, slug), "Seller retrieved successfully")


@router.get("/{seller_id}")
async def get_seller(seller_id: int, db: AsyncSession = Depends(get_db)):
    return envelope(await seller_service.get_seller(db, seller_id), "Seller retrieved successfully")


@router.get("/{seller_id}/payouts/summary")
async def get_payout_summary(seller_id: int, db: AsyncSession = Depends(get_db)):
    summary = await payout_service.get_seller_summary(db, seller_id)
    return envelope(summary, "Payout summary retrieved successfully")


@router.post("", status_code=201)
async def create_seller(data: SellerCreate, db: AsyncSession = Depends(get_db)):
    return envelope(await seller_service.create_seller(db, data), "Seller created successfully")


@router.patch("/{seller_id}")
async def update_seller(seller_id: int, data: SellerUpdate, db: AsyncSession = Depends(get_db)):
    seller = await seller_service.update_seller(db, seller_id, data)
    return envelope(seller, "Seller updated successfully")


@router.post("/{seller_id}/status")
async def change_seller_status(seller_id: int, data: SellerStatusUpdate, db: AsyncSession = Depends(get_db)):
    seller = await seller_service.change_status(db, seller_id, data)
    return envelope(seller, "Seller status updated successfully")

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.dependencies import CursorPaginationParams
from marketplace.models import PayoutStatus
from marketplace.responses import envelope
from marketplace.schemas import PayoutCreate, PayoutFail
from marketplace.services import payout_service

router = APIRouter(prefix="/api/v1/payouts", tags=["payouts"])


@router.get("")
async def list_payouts(
    pagination: CursorPaginationParams = Depends(),
    seller_id: int | None = Query(None, alias="sellerId"),
    status: PayoutStatus | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    page = await payout_service.get_payouts(
        db, **pagination.as_kwargs(), seller_id=seller_id, status=status
    )
    return envelope(page["items"], "Payouts retrieved successfully", page["meta"])


@router.get("/{payout_id}")
async def get_payout(payout_id: int, db: AsyncSession = Depends(get_db)):
    return envelope(await payout_service.get_payout(db, payout_id), "Payout retrieved successfully")


@router.post("", status_code=201)
async def create_payout(data: PayoutCreate, db: AsyncSession = Depends(get_db)):
    return envelope(await payout_service.create_payout(db, data), "Payout created successfully")


@router.post("/{payout_id}/process")
async def process_payout(payout_id: int, db: AsyncSession = Depends(get_db)):
    payout = await payout_service.start_processing(db, payout_id)
    return envelope(payout, "Payout processing started")


@router.post("/{payout_id}/complete")
async def complete_payout(payout_id: int, db: AsyncSession = Depends(get_db)):
    payout = await payout_service.complete_payout(db, payout_id)
    return envelope(payout, "Payout completed")


@router.post("/{payout_id}/fail")
async def fail_payout(payout_id: int, data: PayoutFail, db: AsyncSession = Depends(get_db)):
    payout = await payout_service.fail_payout(db, payout_id, data.failure_reason)
    return envelope(payout, "Payout marked as failed")

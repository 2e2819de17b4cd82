from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.responses import envelope
from marketplace.schemas import UserCreate
from marketplace.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("")
async def list_users(db: AsyncSession = Depends(get_db)):
    return envelope(await user_service.get_users(db), "Users retrieved successfully")


@router.get("/{user_id}")
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return envelope(await user_service.get_user(db, user_id), "User retrieved successfully")


@router.post("", status_code=201)
async def create_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    return envelope(await user_service.create_user(db, data), "User created successfully")

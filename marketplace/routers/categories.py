from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.dependencies import CursorPaginationParams
from marketplace.exceptions import NotFoundError
from marketplace.responses import envelope
from marketplace.schemas import CategoryCreate, CategoryUpdate
from marketplace.services import category_service

# Registered before the services router so "/services/categories" is not
# captured by "/services/{service_id}".
router = APIRouter(prefix="/api/v1/services/categories", tags=["categories"])


@router.get("")
async def list_categories(
    pagination: CursorPaginationParams = Depends(),
    search: str | None = Query(None, max_length=200),
    is_active: bool | None = Query(None, alias="isActive"),
    parent_id: int | None = Query(None, alias="parentId"),
    db: AsyncSession = Depends(get_db),
):
    page = await category_service.get_categories(
        db, **pagination.as_kwargs(), search=search, is_active=is_active, parent_id=parent_id
    )
    return envelope(page["items"], "Service categories retrieved successfully", page["meta"])


@router.get("/slug/{slug}")
async def get_category_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    category = await category_service.get_category_by_slug(db, slug)
    return envelope(category, "Service category retrieved successfully")


@router.get("/{category_id}")
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    category = await category_service.get_category(db, category_id)
    return envelope(category, "Service category retrieved successfully")


@router.get("/{category_id}/services")
async def list_category_services(
    category_id: int,
    pagination: CursorPaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    page = await category_service.get_category_services(db, category_id, **pagination.as_kwargs())
    return envelope(page["items"], "Services retrieved successfully", page["meta"])


@router.post("", status_code=201)
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    category = await category_service.create_category(db, data)
    return envelope(category, "Service category created successfully")


@router.patch("/{category_id}")
async def update_category(category_id: int, data: CategoryUpdate, db: AsyncSession = Depends(get_db)):
    category = await category_service.update_category(db, category_id, data)
    return envelope(category, "Service category updated successfully")


@router.delete("/{category_id}")
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    deleted = await category_service.delete_category(db, category_id)
    if not deleted:
        raise NotFoundError(f'Service category with ID "{category_id}" not found')
    return envelope(None, "Service category deleted successfully")

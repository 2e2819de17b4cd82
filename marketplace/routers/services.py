from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.dependencies import CursorPaginationParams
from marketplace.exceptions import NotFoundError
from marketplace.models import ServiceStatus
from marketplace.responses import envelope
from marketplace.schemas import ServiceCreate, ServiceUpdate
from marketplace.services import catalog_service

router = APIRouter(prefix="/api/v1/services", tags=["services"])


@router.get("")
async def list_services(
    pagination: CursorPaginationParams = Depends(),
    search: str | None = Query(None, max_length=200, description="Match name or descriptions."),
    status: ServiceStatus | None = Query(None),
    category_id: int | None = Query(None, alias="categoryId"),
    category_slug: str | None = Query(None, alias="categorySlug"),
    is_featured: bool | None = Query(None, alias="isFeatured"),
    db: AsyncSession = Depends(get_db),
):
    page = await catalog_service.get_services(
        db,
        **pagination.as_kwargs(),
        search=search,
        status=status,
        category_id=category_id,
        category_slug=category_slug,
        is_featured=is_featured,
    )
    return envelope(page["items"], "Services retrieved successfully", page["meta"])


@router.get("/slug/{slug}")
async def get_service_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    service = await catalog_service.get_service_by_slug(db, slug)
    return envelope(service, "Service retrieved successfully")


@router.get("/{service_id}")
async def get_service(service_id: int, db: AsyncSession = Depends(get_db)):
    service = await catalog_service.get_service(db, service_id)
    return envelope(service, "Service retrieved successfully")


@router.post("", status_code=201)
async def create_service(data: ServiceCreate, db: AsyncSession = Depends(get_db)):
    service = await catalog_service.create_service(db, data)
    return envelope(service, "Service created successfully")


@router.patch("/{service_id}")
async def update_service(service_id: int, data: ServiceUpdate, db: AsyncSession = Depends(get_db)):
    service = await catalog_service.update_service(db, service_id, data)
    return envelope(service, "Service updated successfully")


@router.delete("/{service_id}")
async def delete_service(service_id: int, db: AsyncSession = Depends(get_db)):
    deleted = await catalog_service.delete_service(db, service_id)
    if not deleted:
        raise NotFoundError(f'Service with ID "{service_id}" not found')
    return envelope(None, "Service deleted successfully")

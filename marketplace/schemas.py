from datetime import date
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator
from pydantic.alias_generators import to_camel

from marketplace.models import SellerStatus, ServiceStatus
from marketplace.services.slugs import SLUG_PATTERN

Slug = Annotated[str, StringConstraints(max_length=180, pattern=SLUG_PATTERN)]
Percentage = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]
Money = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


class RequestModel(BaseModel):
    """Request bodies are camelCase on the wire; snake_case is accepted too."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


# --- User ---

class UserCreate(RequestModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: str | None = Field(None, max_length=150)


# --- Service category ---

class CategoryCreate(RequestModel):
    name: str = Field(min_length=1, max_length=150)
    slug: Slug | None = None  # derived from name when omitted
    description: str | None = None
    order: int = Field(0, ge=0)
    is_active: bool = True
    parent_id: int | None = None


class CategoryUpdate(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=150)
    slug: Slug | None = None
    description: str | None = None
    order: int | None = Field(None, ge=0)
    is_active: bool | None = None
    parent_id: int | None = None


# --- Service ---

class ServiceCreate(RequestModel):
    name: str = Field(min_length=1, max_length=200)
    slug: Slug | None = None  # derived from name when omitted
    short_description: str | None = Field(None, max_length=500)
    description: str | None = None
    status: ServiceStatus = ServiceStatus.DRAFT
    order: int = Field(0, ge=0)
    is_featured: bool = False
    category_id: int | None = None


class ServiceUpdate(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    slug: Slug | None = None
    short_description: str | None = Field(None, max_length=500)
    description: str | None = None
    status: ServiceStatus | None = None
    order: int | None = Field(None, ge=0)
    is_featured: bool | None = None
    category_id: int | None = None


# --- Seller ---

class SellerCreate(RequestModel):
    user_id: int
    store_name: str = Field(min_length=1, max_length=150)
    slug: Slug | None = None  # derived from store_name when omitted
    commission_rate: Percentage | None = None


class SellerUpdate(RequestModel):
    store_name: str | None = Field(None, min_length=1, max_length=150)
    slug: Slug | None = None
    commission_rate: Percentage | None = None


class SellerStatusUpdate(RequestModel):
    status: SellerStatus


# --- Payout ---

class PayoutCreate(RequestModel):
    seller_id: int
    period_start: date
    period_end: date
    amount: Money
    item_count: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _check_period(self):
        if self.period_end < self.period_start:
            raise ValueError("periodEnd must not be before periodStart")
        return self


class PayoutFail(RequestModel):
    failure_reason: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]

from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    # Stored as plain strings so new values only need an additive migration.
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class ServiceStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"


class SellerStatus(str, enum.Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TimestampMixin:
    # Python-side default keeps microsecond precision on every backend, which
    # the (created_at, id) pagination tiebreak relies on.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)

    seller: Mapped[Optional["Seller"]] = relationship(
        "Seller", back_populates="user", uselist=False, lazy="noload"
    )


# ---------------------------------------------------------------------------
# ServiceCategory
# ---------------------------------------------------------------------------
class ServiceCategory(TimestampMixin, Base):
    __tablename__ = "service_categories"

    __table_args__ = (
        Index("ix_service_categories_parent_id_order", "parent_id", "order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    slug: Mapped[str] = mapped_column(String(180), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("service_categories.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships: lazy="noload", services choose the loading strategy explicitly
    parent: Mapped[Optional["ServiceCategory"]] = relationship(
        "ServiceCategory", remote_side="ServiceCategory.id", back_populates="children", lazy="noload"
    )
    children: Mapped[List["ServiceCategory"]] = relationship(
        "ServiceCategory", back_populates="parent", lazy="noload"
    )
    services: Mapped[List["Service"]] = relationship(
        "Service", back_populates="category", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class Service(TimestampMixin, Base):
    __tablename__ = "services"

    __table_args__ = (
        # Default catalogue listing: live services by display order
        Index("ix_services_deleted_at_order", "deleted_at", "order"),
        Index("ix_services_status_category_id", "status", "category_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(220), unique=True, nullable=False, index=True)
    short_description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ServiceStatus] = mapped_column(
        _enum_column(ServiceStatus), default=ServiceStatus.DRAFT, nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("service_categories.id", ondelete="SET NULL"), nullable=True, index=True
    )

    category: Mapped[Optional["ServiceCategory"]] = relationship(
        "ServiceCategory", back_populates="services", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Seller
# ---------------------------------------------------------------------------
class Seller(TimestampMixin, Base):
    __tablename__ = "sellers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    store_name: Mapped[str] = mapped_column(String(150), nullable=False)
    slug: Mapped[str] = mapped_column(String(180), unique=True, nullable=False, index=True)
    status: Mapped[SellerStatus] = mapped_column(
        _enum_column(SellerStatus), default=SellerStatus.PENDING_REVIEW, nullable=False, index=True
    )
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("20.00"), nullable=False
    )

    # Aggregate projections maintained by the order pipeline, read-only here.
    total_sales: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    average_rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), default=Decimal("0.00"), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="seller", lazy="noload")
    payouts: Mapped[List["Payout"]] = relationship("Payout", back_populates="seller", lazy="noload")


# ---------------------------------------------------------------------------
# Payout
# ---------------------------------------------------------------------------
class Payout(TimestampMixin, Base):
    __tablename__ = "payouts"

    __table_args__ = (
        Index("ix_payouts_seller_id_created_at", "seller_id", "created_at"),
        Index("ix_payouts_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    seller_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    item_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[PayoutStatus] = mapped_column(
        _enum_column(PayoutStatus), default=PayoutStatus.PENDING, nullable=False
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    seller: Mapped["Seller"] = relationship("Seller", back_populates="payouts", lazy="noload")

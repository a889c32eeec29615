"""iiko integration models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin


class IikoSettings(Base, TimestampMixin):
    """Connection settings for the iiko Server API.

    Only the first row is canonical; saving settings overwrites it.
    ``password_hash`` is the SHA-1 hex digest iiko expects on login,
    it is not a secure credential store.
    """

    __tablename__ = "iiko_settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    server_url: Mapped[str] = mapped_column(String(500), nullable=False)
    login: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class IikoSale(Base):
    """One dish sold in one order, as imported from an iiko OLAP report.

    ``amount`` is NET revenue (gross minus discount).
    ``open_time`` is the local time of the sale as reported by iiko.
    """

    __tablename__ = "iiko_sales"

    id: Mapped[int] = mapped_column(primary_key=True)
    dish_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    dish_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    dish_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    dish_category: Mapped[str] = mapped_column(
        String(255), nullable=False, default="", index=True
    )
    dish_category_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    dish_group: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    dish_group_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    discount_sum: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    order_num: Mapped[str] = mapped_column(String(100), nullable=False, default="", index=True)
    open_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    department_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    department_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

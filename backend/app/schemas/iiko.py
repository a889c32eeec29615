"""iiko integration schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class IikoSettingsUpdate(BaseModel):
    """Payload for saving iiko connection settings."""

    server_url: str = Field(..., max_length=500)
    login: str = Field(..., max_length=255)
    password: str = Field(..., max_length=255)

    @field_validator("server_url", "login")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()


class IikoSettingsResponse(BaseModel):
    """Connection settings as shown to the client (never the password hash)."""

    id: int
    server_url: str
    login: str
    is_active: bool
    last_sync_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str


class SyncRequest(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class ReportSummaryResponse(BaseModel):
    total_amount: float
    total_quantity: float
    total_discount: float
    total_gross: float


class SyncResponse(BaseModel):
    success: bool
    items_imported: int
    summary: ReportSummaryResponse


class IikoSaleResponse(BaseModel):
    """Imported iiko sale line."""

    id: int
    dish_id: str
    dish_name: str
    dish_code: Optional[str] = None
    dish_category: str
    dish_category_id: Optional[str] = None
    dish_group: Optional[str] = None
    dish_group_id: Optional[str] = None
    quantity: float
    amount: float
    discount_sum: float
    order_num: str
    open_time: datetime
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    imported_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CategoryBreakdownResponse(BaseModel):
    category: str
    amount: float
    quantity: float
    order_count: int
    average_check: float

    model_config = {"from_attributes": True}


class DayBreakdownResponse(BaseModel):
    date: str
    amount: float

    model_config = {"from_attributes": True}


class HourBreakdownResponse(BaseModel):
    hour: int
    amount: float

    model_config = {"from_attributes": True}


class SalesSummaryResponse(BaseModel):
    total_amount: float
    total_quantity: float
    total_discount: float
    order_count: int


class SalesListResponse(BaseModel):
    sales: List[IikoSaleResponse]
    summary: SalesSummaryResponse
    by_category: List[CategoryBreakdownResponse]


class RevenueResponse(BaseModel):
    """Revenue dashboard data for a date range."""

    total_revenue: float
    total_quantity: float
    total_discount: float
    order_count: int
    average_check: float
    by_category: List[CategoryBreakdownResponse]
    by_day: List[DayBreakdownResponse]
    by_hour: List[HourBreakdownResponse]

    model_config = {"from_attributes": True}


class TopItemResponse(BaseModel):
    dish_id: str
    dish_name: str
    category: str
    quantity: float
    amount: float

    model_config = {"from_attributes": True}


class DepartmentResponse(BaseModel):
    id: str
    name: str

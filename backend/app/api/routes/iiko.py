"""iiko POS integration routes."""

import logging
from dataclasses import asdict
from datetime import date
from typing import Annotated, Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.rate_limit import limiter
from app.db.session import DbSession
from app.schemas.iiko import (
    ConnectionTestResponse,
    DepartmentResponse,
    IikoSaleResponse,
    IikoSettingsResponse,
    IikoSettingsUpdate,
    RevenueResponse,
    SalesListResponse,
    SalesSummaryResponse,
    SyncRequest,
    SyncResponse,
    TopItemResponse,
)
from app.services.iiko import (
    AuthenticationError,
    ConfigurationError,
    DateRangeError,
    IikoError,
    IikoSyncService,
    ReportFilter,
    UpstreamRequestError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_sync_service(db: DbSession) -> IikoSyncService:
    """Per-request sync service; each request gets its own iiko session."""
    return IikoSyncService(db)


SyncService = Annotated[IikoSyncService, Depends(get_sync_service)]


def _http_error(e: IikoError) -> HTTPException:
    """Map integration errors onto HTTP status codes, keeping the upstream message."""
    if isinstance(e, (DateRangeError, ConfigurationError)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, (AuthenticationError, UpstreamRequestError)):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        # persistence failures and anything unexpected
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(e))


def _report_filter(date_from: date, date_to: date, department_id: Optional[str] = None) -> ReportFilter:
    try:
        return ReportFilter(date_from, date_to, department_id)
    except DateRangeError as e:
        raise _http_error(e)


# ============== Settings ==============

@router.get("/settings", response_model=Optional[IikoSettingsResponse])
def get_iiko_settings(service: SyncService):
    """Get the active iiko connection settings (without the password hash)."""
    return service.get_settings()


@router.post("/settings", response_model=IikoSettingsResponse)
def save_iiko_settings(service: SyncService, payload: IikoSettingsUpdate):
    """Save iiko connection settings. The password is stored as its SHA-1 hash."""
    try:
        return service.save_settings(payload.server_url, payload.login, payload.password)
    except IikoError as e:
        raise _http_error(e)


@router.post("/test-connection", response_model=ConnectionTestResponse)
async def test_iiko_connection(service: SyncService):
    """Log in to the iiko server and release the session straight away."""
    try:
        result = await service.test_connection()
    except ConfigurationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": str(e)},
        )
    return ConnectionTestResponse(success=result.success, message=result.message)


# ============== Sync ==============

@router.post("/sync", response_model=SyncResponse)
@limiter.limit(settings.iiko_sync_rate_limit)
async def sync_iiko_sales(request: Request, service: SyncService, payload: SyncRequest):
    """
    Import sales from iiko for a date range.

    All previously imported sales in [date_from, date_to] are replaced, so
    re-running a sync for the same range is safe. Do not run overlapping
    syncs concurrently.
    """
    try:
        result = await service.sync(payload.date_from, payload.date_to)
    except IikoError as e:
        raise _http_error(e)

    return SyncResponse(
        success=True,
        items_imported=result.items_imported,
        summary=asdict(result.summary),
    )


# ============== Imported sales ==============

@router.get("/sales", response_model=SalesListResponse)
def list_iiko_sales(
    service: SyncService,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    category: Optional[str] = Query(None),
    group_by: Optional[str] = Query(None, pattern="^category$"),
):
    """List imported sales with totals, optionally grouped by category."""
    listing = service.list_sales(date_from, date_to, category, group_by)
    return SalesListResponse(
        sales=[IikoSaleResponse.model_validate(s) for s in listing.sales],
        summary=SalesSummaryResponse(
            total_amount=listing.total_amount,
            total_quantity=listing.total_quantity,
            total_discount=listing.total_discount,
            order_count=listing.order_count,
        ),
        by_category=[asdict(c) for c in listing.by_category],
    )


@router.get("/revenue", response_model=RevenueResponse)
def get_iiko_revenue(
    service: SyncService,
    date_from: date = Query(...),
    date_to: date = Query(...),
):
    """Revenue dashboard: totals, average check, by category, day and hour."""
    try:
        summary = service.get_revenue(date_from, date_to)
    except IikoError as e:
        raise _http_error(e)
    return RevenueResponse.model_validate(asdict(summary))


@router.get("/top-items", response_model=List[TopItemResponse])
def get_iiko_top_items(
    service: SyncService,
    date_from: date = Query(...),
    date_to: date = Query(...),
    limit: int = Query(10, ge=1, le=100),
):
    """Best-selling dishes by net revenue."""
    try:
        items = service.get_top_items(date_from, date_to, limit)
    except IikoError as e:
        raise _http_error(e)
    return [TopItemResponse.model_validate(asdict(i)) for i in items]


# ============== Diagnostics ==============

@router.get("/departments", response_model=List[DepartmentResponse])
async def list_iiko_departments(service: SyncService):
    """Departments (restaurants) known to the iiko server."""
    try:
        return await service.get_departments()
    except IikoError as e:
        raise _http_error(e)


@router.get("/debug/olap")
async def debug_olap_report(
    service: SyncService,
    date_from: date = Query(...),
    date_to: date = Query(...),
    department_id: Optional[str] = Query(None),
) -> Any:
    """Exact OLAP request body and iiko response, for troubleshooting."""
    report_filter = _report_filter(date_from, date_to, department_id)
    try:
        return await service.get_raw_olap_report(report_filter)
    except IikoError as e:
        raise _http_error(e)


@router.get("/debug/daily-report")
async def debug_daily_report(
    service: SyncService,
    date_from: date = Query(...),
    date_to: date = Query(...),
) -> Any:
    """Daily report preset (amounts already after discount), for cross-checking."""
    report_filter = _report_filter(date_from, date_to)
    try:
        report = await service.get_daily_report(report_filter)
    except IikoError as e:
        raise _http_error(e)
    return asdict(report)


@router.get("/debug/orders")
async def debug_orders(
    service: SyncService,
    date_from: date = Query(...),
    date_to: date = Query(...),
) -> Any:
    """Closed sales sessions (or the closed order list on older servers)."""
    report_filter = _report_filter(date_from, date_to)
    try:
        return await service.get_orders(report_filter)
    except IikoError as e:
        raise _http_error(e)


@router.get("/debug/close-sessions")
async def debug_close_sessions(
    service: SyncService,
    date_from: date = Query(...),
    date_to: date = Query(...),
) -> Any:
    """Cash register close-session documents."""
    report_filter = _report_filter(date_from, date_to)
    try:
        return await service.get_close_session_data(report_filter)
    except IikoError as e:
        raise _http_error(e)


@router.get("/debug/sales-by-department")
async def debug_sales_by_department(
    service: SyncService,
    date_from: date = Query(...),
    date_to: date = Query(...),
) -> Any:
    """Legacy sales report endpoint, raw."""
    report_filter = _report_filter(date_from, date_to)
    try:
        return await service.get_sales_by_department(report_filter)
    except IikoError as e:
        raise _http_error(e)

"""iiko sales sync and revenue queries.

A sync replaces every imported sale in the requested date range with a
fresh OLAP snapshot (delete-then-insert), which makes re-running a sync for
the same range idempotent. Two syncs of overlapping ranges running at the
same time can interleave their deletes and inserts; callers must serialize
them.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.iiko import IikoSale, IikoSettings
from app.services.iiko import aggregator
from app.services.iiko.client import IikoClient, normalize_server_url
from app.services.iiko.exceptions import (
    ConfigurationError,
    DateRangeError,
    IikoError,
    PersistenceError,
)
from app.services.iiko.normalizer import (
    DailyReport,
    ReportFormat,
    ReportSummary,
    SalesLineItem,
    extract_olap_rows,
    parse_report,
)
from app.services.iiko.report_requests import ReportFilter, build_olap_request

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncState(str, Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    REPLACING = "replacing"
    LOGGING_OUT = "logging_out"
    FAILED = "failed"


@dataclass
class SyncResult:
    items_imported: int
    summary: ReportSummary


@dataclass
class ConnectionTestResult:
    success: bool
    message: str


@dataclass
class SalesListing:
    sales: List[IikoSale]
    total_amount: Any
    total_quantity: Any
    total_discount: Any
    order_count: int
    by_category: List[aggregator.CategoryBreakdown] = field(default_factory=list)


def hash_password(raw_password: str) -> str:
    """iiko expects the SHA-1 hex digest of the password on login."""
    return hashlib.sha1(raw_password.encode("utf-8")).hexdigest()


def day_bounds(date_from: date, date_to: date) -> tuple[datetime, datetime]:
    """Inclusive range covering both days completely."""
    return datetime.combine(date_from, time.min), datetime.combine(date_to, time.max)


class IikoSyncService:
    """Orchestrates iiko syncs and answers revenue queries."""

    def __init__(self, db: Session, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.db = db
        self._transport = transport
        self.state = SyncState.IDLE

    def _set_state(self, state: SyncState) -> None:
        logger.debug(f"iiko sync: {self.state.value} -> {state.value}")
        self.state = state

    def _client(self, config: IikoSettings) -> IikoClient:
        return IikoClient(
            config.server_url,
            config.login,
            config.password_hash,
            transport=self._transport,
        )

    # ============== Settings ==============

    def get_settings(self) -> Optional[IikoSettings]:
        return (
            self.db.query(IikoSettings)
            .filter(IikoSettings.is_active == True)  # noqa: E712
            .order_by(IikoSettings.id)
            .first()
        )

    def require_settings(self) -> IikoSettings:
        config = self.get_settings()
        if config is None:
            raise ConfigurationError("iiko settings not configured")
        return config

    def save_settings(self, server_url: str, login: str, raw_password: str) -> IikoSettings:
        """Create or overwrite the single settings row and activate it."""
        server_url = normalize_server_url(server_url)
        login = (login or "").strip()
        if not server_url or not login or not raw_password:
            raise ConfigurationError("Server URL, login and password are required")

        config = self.db.query(IikoSettings).order_by(IikoSettings.id).first()
        if config is None:
            config = IikoSettings(server_url=server_url, login=login)
            self.db.add(config)

        config.server_url = server_url
        config.login = login
        config.password_hash = hash_password(raw_password)
        config.is_active = True
        self.db.commit()
        self.db.refresh(config)

        logger.info(f"iiko settings saved for {server_url} (login '{login}')")
        return config

    async def test_connection(self) -> ConnectionTestResult:
        """Log in and straight back out. Connection problems never raise."""
        config = self.require_settings()
        async with self._client(config) as client:
            try:
                async with client.sessions.session():
                    pass
            except IikoError as e:
                return ConnectionTestResult(success=False, message=str(e))
        return ConnectionTestResult(success=True, message="Successfully connected to iiko server")

    # ============== Sync ==============

    async def sync(self, date_from: Optional[date], date_to: Optional[date]) -> SyncResult:
        """Replace imported sales in [date_from, date_to] with a fresh snapshot."""
        self.state = SyncState.IDLE
        try:
            if not date_from or not date_to:
                raise DateRangeError("Date range is required")
            report_filter = ReportFilter(date_from, date_to)
            config = self.require_settings()

            async with self._client(config) as client:
                try:
                    self._set_state(SyncState.AUTHENTICATING)
                    await client.sessions.authenticate()

                    self._set_state(SyncState.FETCHING)
                    payload = await client.fetch_raw_olap(report_filter)

                    self._set_state(SyncState.NORMALIZING)
                    report = parse_report(payload, ReportFormat.OLAP)

                    self._set_state(SyncState.REPLACING)
                    imported = self._replace_range(report_filter, report.items, config)
                finally:
                    self._set_state(SyncState.LOGGING_OUT)
                    await client.sessions.logout()
        except Exception as e:
            logger.error(f"iiko sync {date_from}..{date_to} failed in state {self.state.value}: {e}")
            self._set_state(SyncState.FAILED)
            self._set_state(SyncState.IDLE)
            raise

        self._set_state(SyncState.IDLE)
        logger.info(f"iiko sync {date_from}..{date_to}: {imported} items imported")
        return SyncResult(items_imported=imported, summary=report.summary)

    def _replace_range(
        self,
        report_filter: ReportFilter,
        items: List[SalesLineItem],
        config: IikoSettings,
    ) -> int:
        start, end = day_bounds(report_filter.date_from, report_filter.date_to)

        try:
            deleted = (
                self.db.query(IikoSale)
                .filter(IikoSale.open_time >= start, IikoSale.open_time <= end)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to clear imported iiko sales", str(e)) from e
        logger.debug(f"iiko sync: removed {deleted} sales in {start}..{end}")

        # A failure below leaves the range empty; re-running the sync restores it.
        # Rows the range delete cannot reach are not stored.
        rows = []
        undated = outside = 0
        for item in items:
            if item.open_time is None:
                undated += 1
            elif not start <= item.open_time <= end:
                outside += 1
            else:
                rows.append(self._to_row(item))
        if undated or outside:
            logger.warning(
                f"iiko sync: skipped {undated + outside} rows "
                f"({undated} without a sale time, {outside} outside {start.date()}..{end.date()})"
            )

        try:
            if rows:
                self.db.add_all(rows)
            config.last_sync_at = datetime.now(timezone.utc)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to store iiko sales", str(e)) from e

        return len(rows)

    @staticmethod
    def _to_row(item: SalesLineItem) -> IikoSale:
        return IikoSale(
            dish_id=item.dish_id,
            dish_name=item.dish_name,
            dish_code=item.dish_code or None,
            dish_category=item.dish_category,
            dish_category_id=item.dish_category_id or None,
            dish_group=item.dish_group or None,
            dish_group_id=item.dish_group_id or None,
            quantity=item.quantity,
            amount=item.amount,
            discount_sum=item.discount_sum,
            order_num=item.order_num,
            open_time=item.open_time,
            department_id=item.department_id or None,
            department_name=item.department_name or None,
        )

    # ============== Queries over imported sales ==============

    def _sales_query(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[str] = None,
    ):
        query = self.db.query(IikoSale)
        if date_from and date_to:
            start, end = day_bounds(date_from, date_to)
            query = query.filter(IikoSale.open_time >= start, IikoSale.open_time <= end)
        if category is not None:
            query = query.filter(IikoSale.dish_category == category)
        return query

    def _range_sales(self, date_from: Optional[date], date_to: Optional[date]) -> List[IikoSale]:
        if not date_from or not date_to:
            raise DateRangeError("Date range is required")
        ReportFilter(date_from, date_to)
        return self._sales_query(date_from, date_to).all()

    def get_revenue(self, date_from: date, date_to: date) -> aggregator.RevenueSummary:
        return aggregator.summarize(self._range_sales(date_from, date_to))

    def get_top_items(self, date_from: date, date_to: date, limit: int = 10) -> List[aggregator.TopItem]:
        return aggregator.top_items(self._range_sales(date_from, date_to), limit)

    def list_sales(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[str] = None,
        group_by: Optional[str] = None,
    ) -> SalesListing:
        sales = (
            self._sales_query(date_from, date_to, category)
            .order_by(IikoSale.open_time.desc())
            .all()
        )
        summary = aggregator.summarize(sales)
        return SalesListing(
            sales=[] if group_by else sales,
            total_amount=summary.total_revenue,
            total_quantity=summary.total_quantity,
            total_discount=summary.total_discount,
            order_count=summary.order_count,
            by_category=summary.by_category if group_by == "category" else [],
        )

    # ============== Diagnostics ==============

    async def _in_session(self, call: Callable[[IikoClient], Awaitable[T]]) -> T:
        config = self.require_settings()
        async with self._client(config) as client:
            async with client.sessions.session():
                return await call(client)

    async def get_departments(self) -> List[Dict[str, str]]:
        return await self._in_session(lambda client: client.fetch_departments())

    async def get_raw_olap_report(self, report_filter: ReportFilter) -> Dict[str, Any]:
        async def call(client: IikoClient) -> Dict[str, Any]:
            payload = await client.fetch_raw_olap(report_filter)
            return {
                "request_body": build_olap_request(report_filter),
                "response": payload,
                "row_count": len(extract_olap_rows(payload)),
            }

        return await self._in_session(call)

    async def get_daily_report(self, report_filter: ReportFilter) -> DailyReport:
        return await self._in_session(lambda client: client.fetch_daily_report(report_filter))

    async def get_orders(self, report_filter: ReportFilter) -> Any:
        return await self._in_session(lambda client: client.fetch_orders(report_filter))

    async def get_close_session_data(self, report_filter: ReportFilter) -> Any:
        return await self._in_session(lambda client: client.fetch_close_sessions(report_filter))

    async def get_sales_by_department(self, report_filter: ReportFilter) -> Any:
        return await self._in_session(lambda client: client.fetch_sales_by_department(report_filter))

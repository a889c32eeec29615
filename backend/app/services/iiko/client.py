"""iiko Server API client."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.services.iiko.exceptions import UpstreamRequestError, extract_error_detail
from app.services.iiko.normalizer import (
    DailyReport,
    ParsedReport,
    ReportFormat,
    parse_departments,
    parse_report,
)
from app.services.iiko.report_requests import (
    ReportFilter,
    build_close_session_params,
    build_daily_report_params,
    build_olap_request,
    build_orders_params,
    build_sales_params,
    build_sessions_params,
)
from app.services.iiko.session import IikoSessionManager

logger = logging.getLogger(__name__)

OLAP_PATH = "/resto/api/v2/reports/olap"
DAILY_REPORT_PATH = "/resto/service/reports/report.jspx"
DEPARTMENTS_PATH = "/resto/api/corporation/departments"
SESSIONS_PATH = "/resto/api/v2/events/sessions"
ORDERS_PATH = "/resto/api/orders"
DOCUMENTS_PATH = "/resto/api/v2/documents/getDocumentsByType"
SALES_PATH = "/resto/api/reports/sales"


def normalize_server_url(server_url: str) -> str:
    return (server_url or "").strip().rstrip("/")


class IikoClient:
    """HTTP client bound to one iiko server and one set of credentials.

    Owns the underlying ``httpx.AsyncClient`` and the session manager, so
    it should be used as an async context manager::

        async with IikoClient(url, login, password_hash) as client:
            async with client.sessions.session():
                report = await client.fetch_sales_report(report_filter)
    """

    def __init__(
        self,
        server_url: str,
        login: str,
        password_hash: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        report_timeout: Optional[float] = None,
    ):
        self.server_url = normalize_server_url(server_url)
        self._http = httpx.AsyncClient(base_url=self.server_url, transport=transport)
        self._report_timeout = report_timeout or settings.iiko_report_timeout
        self.sessions = IikoSessionManager(self._http, login, password_hash)

    async def __aenter__(self) -> "IikoClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        what: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        token = await self.sessions.authenticate()
        query = {"key": token, **(params or {})}
        try:
            response = await self._http.request(
                method,
                path,
                params=query,
                json=json_body,
                headers=headers,
                timeout=self._report_timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"iiko {what} timed out: {e}")
            raise UpstreamRequestError(f"Failed to fetch {what} from iiko", "request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"iiko {what} failed: {e}")
            raise UpstreamRequestError(
                f"Failed to fetch {what} from iiko", str(e) or type(e).__name__
            ) from e

        if response.is_error:
            detail = extract_error_detail(response)
            logger.error(f"iiko {what} failed: {response.status_code} - {detail}")
            raise UpstreamRequestError(
                f"Failed to fetch {what} from iiko", detail, status_code=response.status_code
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamRequestError(
                f"Failed to fetch {what} from iiko",
                f"malformed JSON: {response.text[:200]}",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _decode_lenient(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    # ============== Sales (canonical sync path) ==============

    async def fetch_raw_olap(self, report_filter: ReportFilter) -> Dict[str, Any]:
        """Send the OLAP SALES request and return the decoded JSON body."""
        body = build_olap_request(report_filter)
        response = await self._request("POST", OLAP_PATH, "sales report", json_body=body)
        return self._decode(response, "sales report")

    async def fetch_sales_report(self, report_filter: ReportFilter) -> ParsedReport:
        payload = await self.fetch_raw_olap(report_filter)
        return parse_report(payload, ReportFormat.OLAP)

    # ============== Diagnostics ==============

    async def fetch_daily_report(self, report_filter: ReportFilter) -> DailyReport:
        token = await self.sessions.authenticate()
        params = build_daily_report_params(report_filter, settings.iiko_daily_report_preset_id)
        response = await self._request(
            "GET",
            DAILY_REPORT_PATH,
            "daily report",
            params=params,
            headers={"Cookie": f"key={token}"},
        )
        logger.info(f"iiko daily report: {len(response.text)} chars")
        return parse_report(
            response.text, ReportFormat.DAILY_XML, top_limit=settings.iiko_top_items_cap
        )

    async def fetch_departments(self) -> List[Dict[str, str]]:
        response = await self._request("GET", DEPARTMENTS_PATH, "departments")
        return parse_departments(self._decode_lenient(response))

    async def fetch_orders(self, report_filter: ReportFilter) -> Any:
        """Closed sales sessions, falling back to the plain order list."""
        try:
            response = await self._request(
                "GET", SESSIONS_PATH, "sessions", params=build_sessions_params(report_filter)
            )
        except UpstreamRequestError as e:
            logger.info(f"iiko sessions endpoint failed ({e}), trying orders endpoint")
            response = await self._request(
                "GET", ORDERS_PATH, "orders", params=build_orders_params(report_filter)
            )
        return parse_report(self._decode_lenient(response), ReportFormat.PASSTHROUGH)

    async def fetch_close_sessions(self, report_filter: ReportFilter) -> Any:
        response = await self._request(
            "GET", DOCUMENTS_PATH, "close session documents",
            params=build_close_session_params(report_filter),
        )
        return parse_report(self._decode_lenient(response), ReportFormat.PASSTHROUGH)

    async def fetch_sales_by_department(self, report_filter: ReportFilter) -> Any:
        response = await self._request(
            "GET", SALES_PATH, "sales by department", params=build_sales_params(report_filter)
        )
        return parse_report(self._decode_lenient(response), ReportFormat.PASSTHROUGH)

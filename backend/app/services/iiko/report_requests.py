"""Request shaping for iiko Server reports.

Pure functions, no I/O. Each builder turns a ``ReportFilter`` into the body
or query parameters one iiko endpoint expects.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

from app.services.iiko.exceptions import DateRangeError

OLAP_GROUP_BY_FIELDS = [
    "Department.Id",
    "Department",
    "DishId",
    "DishName",
    "DishCode",
    "DishCategory",
    "DishCategory.Id",
    "DishGroup",
    "DishGroup.Id",
    "OpenTime",
    "OrderNum",
]

OLAP_AGGREGATE_FIELDS = [
    "DishAmountInt",
    "DishDiscountSumInt",
    "DishSumInt",
]


@dataclass(frozen=True)
class ReportFilter:
    """Inclusive date range with an optional department restriction."""

    date_from: date
    date_to: date
    department_id: Optional[str] = None

    def __post_init__(self):
        if self.date_from is None or self.date_to is None:
            raise DateRangeError("Date range is required")
        if self.date_from > self.date_to:
            raise DateRangeError(
                "Invalid date range",
                f"date_from {self.date_from.isoformat()} is after date_to {self.date_to.isoformat()}",
            )


def format_report_date(value: date) -> str:
    """iiko's legacy report endpoints want DD.MM.YYYY."""
    return value.strftime("%d.%m.%Y")


def build_olap_request(report_filter: ReportFilter) -> Dict[str, Any]:
    """Body for ``POST /resto/api/v2/reports/olap`` (SALES pivot)."""
    filters: Dict[str, Any] = {
        "OpenDate.Typed": {
            "filterType": "DateRange",
            "periodType": "CUSTOM",
            "from": report_filter.date_from.isoformat(),
            "to": report_filter.date_to.isoformat(),
            "includeLow": True,
            "includeHigh": True,
        },
    }
    if report_filter.department_id:
        filters["Department.Id"] = {
            "filterType": "IncludeValues",
            "values": [report_filter.department_id],
        }

    return {
        "reportType": "SALES",
        "buildSummary": "true",
        "groupByRowFields": list(OLAP_GROUP_BY_FIELDS),
        "groupByColFields": [],
        "aggregateFields": list(OLAP_AGGREGATE_FIELDS),
        "filters": filters,
    }


def build_daily_report_params(report_filter: ReportFilter, preset_id: str) -> Dict[str, str]:
    """Query for ``GET /resto/service/reports/report.jspx`` (saved preset)."""
    return {
        "dateFrom": format_report_date(report_filter.date_from),
        "dateTo": format_report_date(report_filter.date_to),
        "presetId": preset_id,
    }


def build_sessions_params(report_filter: ReportFilter) -> Dict[str, str]:
    """Query for ``GET /resto/api/v2/events/sessions``."""
    return {
        "from": f"{report_filter.date_from.isoformat()}T00:00:00",
        "to": f"{report_filter.date_to.isoformat()}T23:59:59",
    }


def build_orders_params(report_filter: ReportFilter, closed_only: bool = True) -> Dict[str, str]:
    """Query for ``GET /resto/api/orders``."""
    params = {
        "dateFrom": report_filter.date_from.isoformat(),
        "dateTo": report_filter.date_to.isoformat(),
    }
    if closed_only:
        params["status"] = "CLOSED"
    return params


def build_close_session_params(report_filter: ReportFilter) -> Dict[str, str]:
    """Query for ``GET /resto/api/v2/documents/getDocumentsByType``."""
    return {
        "type": "CloseSession",
        "from": report_filter.date_from.isoformat(),
        "to": report_filter.date_to.isoformat(),
    }


def build_sales_params(report_filter: ReportFilter) -> Dict[str, str]:
    """Query for ``GET /resto/api/reports/sales``."""
    return {
        "dateFrom": report_filter.date_from.isoformat(),
        "dateTo": report_filter.date_to.isoformat(),
    }

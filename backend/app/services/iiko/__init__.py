# iiko POS integration module

from app.services.iiko.exceptions import (
    IikoError,
    DateRangeError,
    ConfigurationError,
    AuthenticationError,
    UpstreamRequestError,
    PersistenceError,
)
from app.services.iiko.session import IikoSessionManager
from app.services.iiko.report_requests import ReportFilter, build_olap_request
from app.services.iiko.normalizer import (
    ReportFormat,
    SalesLineItem,
    ReportSummary,
    ParsedReport,
    DailyReport,
    parse_report,
)
from app.services.iiko.client import IikoClient
from app.services.iiko.sync_service import (
    IikoSyncService,
    SyncState,
    SyncResult,
    ConnectionTestResult,
)

__all__ = [
    "IikoError",
    "DateRangeError",
    "ConfigurationError",
    "AuthenticationError",
    "UpstreamRequestError",
    "PersistenceError",
    "IikoSessionManager",
    "ReportFilter",
    "build_olap_request",
    "ReportFormat",
    "SalesLineItem",
    "ReportSummary",
    "ParsedReport",
    "DailyReport",
    "parse_report",
    "IikoClient",
    "IikoSyncService",
    "SyncState",
    "SyncResult",
    "ConnectionTestResult",
]

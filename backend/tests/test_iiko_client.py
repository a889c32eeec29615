"""Tests for the iiko HTTP client and error helpers."""

import pytest
from datetime import date

import httpx

from app.services.iiko.client import IikoClient, normalize_server_url
from app.services.iiko.exceptions import UpstreamRequestError, extract_error_detail
from app.services.iiko.report_requests import ReportFilter
from iiko_fakes import IIKO_TOKEN, IIKO_URL, olap_row

OLAP = "/resto/api/v2/reports/olap"


def make_client(server) -> IikoClient:
    return IikoClient(IIKO_URL + "/", "api-user", "hash123", transport=server.transport)


class TestHelpers:
    def test_normalize_server_url(self):
        assert normalize_server_url("  https://iiko.example.com/// ") == "https://iiko.example.com"
        assert normalize_server_url(None) == ""

    @pytest.mark.parametrize("response, expected", [
        (httpx.Response(500, json={"message": "boom"}), "boom"),
        (httpx.Response(500, json={"errorDescription": "bad filter"}), "bad filter"),
        (httpx.Response(502, text="Bad gateway"), "Bad gateway"),
        (httpx.Response(504, text=""), "HTTP 504"),
    ])
    def test_extract_error_detail(self, response, expected):
        assert extract_error_detail(response) == expected

    def test_extract_error_detail_truncates(self):
        response = httpx.Response(500, text="x" * 2000)
        assert len(extract_error_detail(response)) == 500


class TestIikoClient:
    """Report fetching over one session."""

    @pytest.mark.asyncio
    async def test_fetch_sales_report(self, iiko_server):
        iiko_server.json_route(OLAP, {"data": [olap_row(gross=300, discount=30)]})

        async with make_client(iiko_server) as client:
            async with client.sessions.session():
                report = await client.fetch_sales_report(ReportFilter(date(2024, 3, 1), date(2024, 3, 1)))

        assert len(report.items) == 1
        assert report.items[0].amount == 270
        assert iiko_server.requests_to(OLAP)[0].url.params["key"] == IIKO_TOKEN

    @pytest.mark.asyncio
    async def test_requests_share_one_token(self, iiko_server):
        iiko_server.json_route(OLAP, {"data": []})
        report_filter = ReportFilter(date(2024, 3, 1), date(2024, 3, 1))

        async with make_client(iiko_server) as client:
            await client.fetch_raw_olap(report_filter)
            await client.fetch_raw_olap(report_filter)
            await client.sessions.logout()

        assert iiko_server.calls["/resto/api/auth"] == 1
        assert iiko_server.calls[OLAP] == 2

    @pytest.mark.asyncio
    async def test_network_error(self, iiko_server):
        def unreachable(request):
            raise httpx.ConnectError("network down", request=request)

        iiko_server.route(OLAP, unreachable)

        async with make_client(iiko_server) as client:
            with pytest.raises(UpstreamRequestError) as exc_info:
                await client.fetch_raw_olap(ReportFilter(date(2024, 3, 1), date(2024, 3, 1)))

        assert exc_info.value.status_code is None
        assert "network down" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, iiko_server):
        def slow(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        iiko_server.route(OLAP, slow)

        async with make_client(iiko_server) as client:
            with pytest.raises(UpstreamRequestError) as exc_info:
                await client.fetch_raw_olap(ReportFilter(date(2024, 3, 1), date(2024, 3, 1)))

        assert exc_info.value.detail == "request timed out"

    @pytest.mark.asyncio
    async def test_departments_from_xml(self, iiko_server):
        iiko_server.route(
            "/resto/api/corporation/departments",
            httpx.Response(
                200,
                text="<corporateItemDtoes><corporateItemDto><id>1</id><name>Main</name>"
                     "</corporateItemDto></corporateItemDtoes>",
                headers={"Content-Type": "application/xml"},
            ),
        )

        async with make_client(iiko_server) as client:
            departments = await client.fetch_departments()

        assert departments == [{"id": "1", "name": "Main"}]

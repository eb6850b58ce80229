"""
Tests for the optional revenue (Stripe) and case (Supabase) sources.
"""

import httpx
import pytest

from adsuggest.services.case_metrics_service import CaseMetricsService
from adsuggest.services.revenue_service import RevenueService


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.mark.anyio
async def test_revenue_sums_succeeded_charges_in_dollars():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/charges"):
            return httpx.Response(200, json={"data": [
                {"amount": 4900, "status": "succeeded"},
                {"amount": 4900, "status": "succeeded"},
                {"amount": 4900, "status": "failed"},
            ]})
        return httpx.Response(200, json={"data": [{"amount": 4900}]})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    revenue = await RevenueService("sk_test", http_client=http).fetch_revenue("2026-02-01", "2026-02-07")

    assert revenue.revenue == pytest.approx(98.0)
    assert revenue.transactions == 2
    assert revenue.refunds == 1
    assert revenue.refund_amount == pytest.approx(49.0)
    assert seen[0].headers["authorization"] == "Bearer sk_test"
    assert seen[0].url.params["created[gte]"] == "1769904000"
    await http.aclose()


@pytest.mark.anyio
async def test_revenue_http_error_propagates():
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(401, json={})))
    with pytest.raises(httpx.HTTPStatusError):
        await RevenueService("sk_bad", http_client=http).fetch_revenue("2026-02-01", "2026-02-07")
    await http.aclose()


@pytest.mark.anyio
async def test_case_metrics_exclude_test_emails():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/v1/dmhoa_cases"
        assert request.headers["apikey"] == "service-key"
        return httpx.Response(200, json=[
            {"id": 1, "email": "owner@example.com", "unlocked": True},
            {"id": 2, "payload": {"email": "Tester@Example.com"}, "unlocked": True},
            {"id": 3, "payload": '{"email": "neighbor@example.com"}', "unlocked": False},
            {"id": 4, "payload": "not json", "unlocked": False},
        ])

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    service = CaseMetricsService(
        "https://proj.supabase.co/",
        "service-key",
        excluded_emails=["tester@example.com"],
        http_client=http,
    )
    cases = await service.fetch_case_metrics("2026-02-01", "2026-02-07")

    assert cases.total_cases == 3
    assert cases.unlocked_cases == 1
    assert cases.conversion_rate == pytest.approx(100 / 3)
    await http.aclose()

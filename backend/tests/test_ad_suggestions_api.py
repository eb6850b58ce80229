"""
Tests for the submit/poll HTTP endpoints.
"""

import asyncio
from datetime import datetime

import pytest
from httpx import AsyncClient, ASGITransport

from adsuggest.config import ConfigurationError
from adsuggest.main import app
from adsuggest.routers.ad_suggestions import get_job_service
from adsuggest.schemas import Job, JobStatus
from adsuggest.services.job_service import JobService
from adsuggest.services.job_store import JobStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


class IdleRunner:
    """Leaves the job processing; the test writes terminal states itself."""

    def __init__(self):
        self.requests = []

    async def run(self, job_id, request):
        self.requests.append(request)


@pytest.fixture
def store():
    return JobStore()


@pytest.fixture
def runner():
    return IdleRunner()


@pytest.fixture
def client_factory(store, runner):
    def make(factory=None):
        service = JobService(store, factory or (lambda request: runner))
        app.dependency_overrides[get_job_service] = lambda: service
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    yield make
    app.dependency_overrides.clear()


async def _finish(store: JobStore, job_id: str, **fields):
    now = datetime(2026, 2, 1, 12, 5, 0)
    await store.put(Job(id=job_id, created_at=now, updated_at=now, **fields))


@pytest.mark.anyio
async def test_submit_returns_202_with_job_id(client_factory, runner):
    async with client_factory() as client:
        response = await client.post("/api/ad-suggestions", json={"period": "month", "campaignName": "Spring Push"})
    assert response.status_code == 202
    data = response.json()
    assert data["status"] == "processing"
    assert data["jobId"].startswith("job_")
    assert data["message"]
    await asyncio.sleep(0)
    assert runner.requests[0].period == "month"
    assert runner.requests[0].campaign_name == "Spring Push"


@pytest.mark.anyio
async def test_submit_without_body_uses_defaults(client_factory, runner):
    async with client_factory() as client:
        response = await client.post("/api/ad-suggestions")
    assert response.status_code == 202
    await asyncio.sleep(0)
    assert runner.requests[0].period == "week"


@pytest.mark.anyio
async def test_submit_with_missing_configuration_returns_503(client_factory, store):
    def factory(request):
        raise ConfigurationError("Google Ads not configured. Add the GOOGLE_ADS_* credentials.")

    async with client_factory(factory) as client:
        response = await client.post("/api/ad-suggestions", json={})
    assert response.status_code == 503
    assert response.json() == {
        "status": "error",
        "error": "Google Ads not configured. Add the GOOGLE_ADS_* credentials.",
    }
    assert store._jobs == {}


@pytest.mark.anyio
async def test_poll_processing_returns_202(client_factory):
    async with client_factory() as client:
        job_id = (await client.post("/api/ad-suggestions", json={})).json()["jobId"]
        response = await client.get(f"/api/ad-suggestions/{job_id}")
    assert response.status_code == 202
    assert response.json() == {"status": "processing", "jobId": job_id}


@pytest.mark.anyio
async def test_poll_complete_returns_result(client_factory, store):
    async with client_factory() as client:
        job_id = (await client.post("/api/ad-suggestions", json={})).json()["jobId"]
        await _finish(store, job_id, status=JobStatus.COMPLETE, result={"performanceSummary": "ok", "stats": {}})
        response = await client.get(f"/api/ad-suggestions/{job_id}")
    assert response.status_code == 200
    assert response.json() == {"status": "complete", "result": {"performanceSummary": "ok", "stats": {}}}


@pytest.mark.anyio
async def test_poll_error_returns_200_with_message(client_factory, store):
    async with client_factory() as client:
        job_id = (await client.post("/api/ad-suggestions", json={})).json()["jobId"]
        await _finish(store, job_id, status=JobStatus.ERROR, error="Failed to parse AI response")
        response = await client.get("/api/ad-suggestions", params={"jobId": job_id})
    assert response.status_code == 200
    assert response.json() == {"status": "error", "error": "Failed to parse AI response"}


@pytest.mark.anyio
async def test_poll_unknown_job_returns_404(client_factory):
    async with client_factory() as client:
        response = await client.get("/api/ad-suggestions/job_0_unknown")
    assert response.status_code == 404
    assert response.json() == {"status": "not_found", "jobId": "job_0_unknown"}


@pytest.mark.anyio
async def test_poll_by_query_requires_job_id(client_factory):
    async with client_factory() as client:
        response = await client.get("/api/ad-suggestions")
    assert response.status_code == 400


@pytest.mark.anyio
async def test_invalid_period_is_rejected(client_factory):
    async with client_factory() as client:
        response = await client.post("/api/ad-suggestions", json={"period": "decade"})
    assert response.status_code == 422

"""
Tests for job submission and polling through the job service.
"""

import asyncio
import re

import pytest

from adsuggest.config import ConfigurationError
from adsuggest.schemas import (
    AdSuggestionsRequest,
    CompleteSnapshot,
    ErrorSnapshot,
    Job,
    JobStatus,
    ProcessingSnapshot,
)
from adsuggest.services.job_service import JobService
from adsuggest.services.job_store import JobStore
from adsuggest.utils import utcnow


@pytest.fixture
def anyio_backend():
    return "asyncio"


class GatedRunner:
    """Finishes the job only when the test releases it."""

    def __init__(self, store: JobStore, status=JobStatus.COMPLETE):
        self.store = store
        self.status = status
        self.release = asyncio.Event()
        self.started = asyncio.Event()

    async def run(self, job_id, request):
        self.started.set()
        await self.release.wait()
        now = utcnow()
        existing = await self.store.get(job_id)
        job = Job(
            id=job_id,
            status=self.status,
            result={"performanceSummary": "done"} if self.status is JobStatus.COMPLETE else None,
            error="AI analysis failed. Please try again." if self.status is JobStatus.ERROR else None,
            created_at=existing.created_at,
            updated_at=now,
        )
        await self.store.put(job)
        return job


@pytest.mark.anyio
async def test_submit_returns_immediately_with_processing_job():
    store = JobStore()
    runner = GatedRunner(store)
    service = JobService(store, lambda request: runner)

    job_id = await service.submit(AdSuggestionsRequest())

    assert re.fullmatch(r"job_\d+_[0-9a-z]{9}", job_id)
    snapshot = await service.poll(job_id)
    assert isinstance(snapshot, ProcessingSnapshot)
    assert snapshot.job_id == job_id
    assert job_id in service.tasks

    runner.release.set()
    await service.tasks[job_id]
    snapshot = await service.poll(job_id)
    assert isinstance(snapshot, CompleteSnapshot)
    assert snapshot.result == {"performanceSummary": "done"}


@pytest.mark.anyio
async def test_finished_task_is_forgotten():
    store = JobStore()
    runner = GatedRunner(store, status=JobStatus.ERROR)
    service = JobService(store, lambda request: runner)

    job_id = await service.submit(AdSuggestionsRequest())
    task = service.tasks[job_id]
    runner.release.set()
    await task
    await asyncio.sleep(0)  # let the done-callback run

    assert job_id not in service.tasks
    snapshot = await service.poll(job_id)
    assert isinstance(snapshot, ErrorSnapshot)
    assert snapshot.error == "AI analysis failed. Please try again."


@pytest.mark.anyio
async def test_configuration_error_creates_no_job():
    store = JobStore()

    def factory(request):
        raise ConfigurationError("ANTHROPIC_API_KEY not configured.")

    service = JobService(store, factory)
    with pytest.raises(ConfigurationError):
        await service.submit(AdSuggestionsRequest())
    assert service.tasks == {}
    assert store._jobs == {}


@pytest.mark.anyio
async def test_poll_unknown_job():
    service = JobService(JobStore(), lambda request: None)
    assert await service.poll("job_0_doesnotexist") is None


@pytest.mark.anyio
async def test_each_submission_gets_its_own_job():
    store = JobStore()
    runners = []

    def factory(request):
        runner = GatedRunner(store)
        runners.append(runner)
        return runner

    service = JobService(store, factory)
    first = await service.submit(AdSuggestionsRequest())
    second = await service.submit(AdSuggestionsRequest(period="month"))
    assert first != second

    for runner in runners:
        runner.release.set()
    await service.drain(timeout=1)
    assert isinstance(await service.poll(first), CompleteSnapshot)
    assert isinstance(await service.poll(second), CompleteSnapshot)

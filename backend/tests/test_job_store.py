"""
Tests for the two-tier job store.
"""

from datetime import datetime
from typing import Optional

import pytest

from adsuggest.schemas import Job, JobStatus
from adsuggest.services.job_store import JobStateError, JobStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _job(job_id="job_1_abc", status=JobStatus.PROCESSING, **kwargs) -> Job:
    now = datetime(2026, 2, 1, 12, 0, 0)
    return Job(id=job_id, status=status, created_at=now, updated_at=now, **kwargs)


class FakeBackend:
    """Dict-backed durable tier that can be told to fail."""

    def __init__(self, fail_writes=False, fail_reads=False):
        self.rows: dict[str, Job] = {}
        self.fail_writes = fail_writes
        self.fail_reads = fail_reads
        self.fetches = 0

    async def upsert(self, job: Job) -> None:
        if self.fail_writes:
            raise ConnectionError("database unreachable")
        self.rows[job.id] = job

    async def fetch(self, job_id: str) -> Optional[Job]:
        self.fetches += 1
        if self.fail_reads:
            raise ConnectionError("database unreachable")
        return self.rows.get(job_id)


@pytest.mark.anyio
async def test_put_then_get_in_process():
    store = JobStore()
    await store.put(_job())
    job = await store.get("job_1_abc")
    assert job.status is JobStatus.PROCESSING


@pytest.mark.anyio
async def test_unknown_job_is_none():
    assert await JobStore().get("job_missing") is None
    assert await JobStore(FakeBackend()).get("job_missing") is None


@pytest.mark.anyio
async def test_writes_are_mirrored_to_backend():
    backend = FakeBackend()
    store = JobStore(backend)
    await store.put(_job())
    await store.put(_job(status=JobStatus.COMPLETE, result={"performanceSummary": "ok"}))
    assert backend.rows["job_1_abc"].status is JobStatus.COMPLETE


@pytest.mark.anyio
async def test_failed_durable_write_keeps_in_process_copy():
    store = JobStore(FakeBackend(fail_writes=True))
    await store.put(_job())
    job = await store.get("job_1_abc")
    assert job is not None
    assert job.status is JobStatus.PROCESSING


@pytest.mark.anyio
async def test_in_process_read_skips_backend():
    backend = FakeBackend()
    store = JobStore(backend)
    await store.put(_job())
    await store.get("job_1_abc")
    assert backend.fetches == 0


@pytest.mark.anyio
async def test_other_process_job_found_in_backend():
    backend = FakeBackend()
    backend.rows["job_2_xyz"] = _job("job_2_xyz", status=JobStatus.ERROR, error="Failed to parse AI response")
    store = JobStore(backend)

    job = await store.get("job_2_xyz")
    assert job.status is JobStatus.ERROR
    assert job.error == "Failed to parse AI response"

    # Terminal hits are cached locally
    await store.get("job_2_xyz")
    assert backend.fetches == 1


@pytest.mark.anyio
async def test_processing_backend_hit_is_not_cached():
    backend = FakeBackend()
    backend.rows["job_3_def"] = _job("job_3_def")
    store = JobStore(backend)

    assert (await store.get("job_3_def")).status is JobStatus.PROCESSING
    backend.rows["job_3_def"] = _job("job_3_def", status=JobStatus.COMPLETE, result={})
    assert (await store.get("job_3_def")).status is JobStatus.COMPLETE


@pytest.mark.anyio
async def test_failed_durable_read_is_treated_as_missing():
    store = JobStore(FakeBackend(fail_reads=True))
    assert await store.get("job_1_abc") is None


@pytest.mark.anyio
async def test_terminal_job_cannot_be_overwritten():
    store = JobStore()
    await store.put(_job())
    await store.put(_job(status=JobStatus.ERROR, error="AI analysis failed. Please try again."))
    with pytest.raises(JobStateError):
        await store.put(_job(status=JobStatus.COMPLETE, result={}))
    job = await store.get("job_1_abc")
    assert job.status is JobStatus.ERROR


def test_snapshot_shapes():
    assert _job().snapshot().to_dict() == {"status": "processing", "jobId": "job_1_abc"}
    complete = _job(status=JobStatus.COMPLETE, result={"stats": {}}).snapshot()
    assert complete.to_dict() == {"status": "complete", "result": {"stats": {}}}
    error = _job(status=JobStatus.ERROR, error="boom").snapshot()
    assert error.to_dict() == {"status": "error", "error": "boom"}

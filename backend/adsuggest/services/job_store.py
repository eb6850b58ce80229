"""
Job Store — Two-tier storage for analysis jobs.

The in-process map is authoritative while the process is alive and serves
same-process polls without touching the database. Every write is mirrored to
a durable backend (upsert by job id) so a poll that lands on another process,
or arrives after a cold start, still finds the job. Durable failures are
logged and never fail the caller; the in-process copy stays authoritative.
"""

import asyncio
import logging
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adsuggest.schemas import Job, JobStatus

logger = logging.getLogger(__name__)


class JobStateError(Exception):
    """Raised when something tries to overwrite a terminal job."""


class JobBackend(Protocol):
    async def upsert(self, job: Job) -> None: ...

    async def fetch(self, job_id: str) -> Optional[Job]: ...


class SqlJobBackend:
    """Durable tier over the `analysis_jobs` table (PostgreSQL upsert)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def upsert(self, job: Job) -> None:
        from adsuggest.models import AnalysisJob

        values = {
            "id": job.id,
            "status": job.status.value,
            "result": job.result,
            "error": job.error,
            "created_at": job.created_at,
            "updated_at": job.updated_at,
        }
        stmt = pg_insert(AnalysisJob).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AnalysisJob.id],
            set_={
                "status": stmt.excluded.status,
                "result": stmt.excluded.result,
                "error": stmt.excluded.error,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def fetch(self, job_id: str) -> Optional[Job]:
        from adsuggest.models import AnalysisJob

        async with self.session_factory() as session:
            result = await session.execute(select(AnalysisJob).where(AnalysisJob.id == job_id))
            row = result.scalar_one_or_none()
        if row is None:
            return None
        return Job(
            id=row.id,
            status=JobStatus(row.status),
            result=row.result,
            error=row.error,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class JobStore:
    """
    Constructed once per process (see main.lifespan) and passed explicitly
    to whoever needs it. The lock only guards the dict, never I/O.
    """

    def __init__(self, backend: Optional[JobBackend] = None):
        self.backend = backend
        self._jobs: dict[str, Job] = {}
        self._lock = asyncio.Lock()

    async def put(self, job: Job) -> None:
        async with self._lock:
            current = self._jobs.get(job.id)
            if current is not None and current.status.is_terminal:
                raise JobStateError(
                    f"Job {job.id} is already {current.status.value}; refusing to write {job.status.value}"
                )
            self._jobs[job.id] = job

        if self.backend is None:
            return
        try:
            await self.backend.upsert(job)
        except Exception as e:
            logger.warning(f"[{job.id}] Durable job write failed (in-process copy kept): {e}")

    async def get(self, job_id: str) -> Optional[Job]:
        async with self._lock:
            job = self._jobs.get(job_id)
        if job is not None or self.backend is None:
            return job

        try:
            job = await self.backend.fetch(job_id)
        except Exception as e:
            logger.warning(f"[{job_id}] Durable job read failed: {e}")
            return None
        if job is None or not job.status.is_terminal:
            # Another process owns a processing job; don't pin a stale copy here
            return job

        async with self._lock:
            return self._jobs.setdefault(job_id, job)

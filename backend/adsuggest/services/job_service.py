"""
Job Service — Submit/poll facade over the job store and the runner.

submit() records a processing job, schedules the runner as a background
task and returns the job id right away. poll() reads a snapshot.
"""

import asyncio
import logging
from functools import partial
from typing import Callable, Optional

from adsuggest.schemas import AdSuggestionsRequest, Job, JobSnapshot, JobStatus
from adsuggest.services.job_runner import JobRunner
from adsuggest.services.job_store import JobStore
from adsuggest.utils import generate_job_id, utcnow

logger = logging.getLogger(__name__)

RunnerFactory = Callable[[AdSuggestionsRequest], JobRunner]


class JobService:
    def __init__(self, store: JobStore, runner_factory: RunnerFactory):
        self.store = store
        self.runner_factory = runner_factory
        self.tasks: dict[str, asyncio.Task] = {}

    async def submit(self, request: AdSuggestionsRequest) -> str:
        """
        Raises ConfigurationError before any record exists when a required
        collaborator is missing.
        """
        runner = self.runner_factory(request)

        job_id = generate_job_id()
        now = utcnow()
        await self.store.put(Job(id=job_id, status=JobStatus.PROCESSING, created_at=now, updated_at=now))

        task = asyncio.create_task(runner.run(job_id, request), name=f"ad-suggestions:{job_id}")
        self.tasks[job_id] = task
        task.add_done_callback(partial(self._on_task_done, job_id))
        logger.info(f"[{job_id}] Analysis job submitted (period={request.period})")
        return job_id

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        self.tasks.pop(job_id, None)
        if task.cancelled():
            logger.warning(f"[{job_id}] Analysis task was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[{job_id}] Analysis task crashed: {exc}", exc_info=exc)

    async def poll(self, job_id: str) -> Optional[JobSnapshot]:
        job = await self.store.get(job_id)
        if job is None:
            return None
        return job.snapshot()

    async def drain(self, timeout: float = 10.0) -> None:
        """Give in-flight jobs a chance to finish on shutdown."""
        pending = list(self.tasks.values())
        if not pending:
            return
        logger.info(f"Waiting for {len(pending)} in-flight analysis job(s)...")
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning(f"{len(still_running)} analysis job(s) still running at shutdown")

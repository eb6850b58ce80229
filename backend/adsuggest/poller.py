"""
Client side of the submit/poll protocol.

JobPoller asks for a job's status on a fixed interval until it sees a
terminal state, hits its attempt ceiling, or is cancelled. At most one poll
is active per poller; starting a new one cancels the old one, and a
cancelled poll never reports an outcome.

SuggestionsClient talks to the HTTP API with httpx and drives a JobPoller.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from adsuggest.schemas import (
    AdSuggestionsRequest,
    CompleteSnapshot,
    ErrorSnapshot,
    JobSnapshot,
    PollOutcome,
    job_snapshot_adapter,
)

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Analysis timed out after 3 minutes. Please try again."
POLL_FAILED = "Polling failed"

StatusFetcher = Callable[[str], Awaitable[Optional[JobSnapshot]]]


class JobPoller:
    def __init__(self, fetch_status: StatusFetcher, interval: float = 2.0, max_attempts: int = 90):
        self.fetch_status = fetch_status
        self.interval = interval
        self.max_attempts = max_attempts
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        job_id: str,
        on_result: Optional[Callable[[PollOutcome], None]] = None,
    ) -> "asyncio.Task[PollOutcome]":
        """Begin polling `job_id`. Any poll already in progress is cancelled first."""
        self.cancel()
        self._task = asyncio.create_task(self._poll(job_id, on_result), name=f"poll:{job_id}")
        return self._task

    def cancel(self) -> None:
        if self.active:
            self._task.cancel()
        self._task = None

    async def _poll(self, job_id: str, on_result) -> PollOutcome:
        attempts = 0
        while True:
            await asyncio.sleep(self.interval)
            attempts += 1
            if attempts > self.max_attempts:
                logger.warning(f"[{job_id}] Gave up polling after {self.max_attempts} attempts")
                outcome = PollOutcome(status="timeout", error=TIMEOUT_MESSAGE)
                break

            try:
                snapshot = await self.fetch_status(job_id)
            except Exception as e:
                logger.error(f"[{job_id}] Status poll failed: {e}")
                outcome = PollOutcome(status="error", error=POLL_FAILED)
                break

            if isinstance(snapshot, CompleteSnapshot):
                outcome = PollOutcome(status="complete", result=snapshot.result)
                break
            if isinstance(snapshot, ErrorSnapshot):
                outcome = PollOutcome(status="error", error=snapshot.error)
                break
            # processing, or not visible yet on this instance

        if on_result is not None:
            on_result(outcome)
        return outcome


class SuggestionsClientError(Exception):
    """The server refused to start an analysis job."""


class SuggestionsClient:
    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        interval: float = 2.0,
        max_attempts: int = 90,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=30)
        self.poller = JobPoller(self.fetch_status, interval=interval, max_attempts=max_attempts)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/ad-suggestions"

    async def submit(self, request: Optional[AdSuggestionsRequest] = None) -> str:
        body = (request or AdSuggestionsRequest()).model_dump(by_alias=True, exclude_none=True)
        response = await self._http.post(self.endpoint, json=body)
        data = response.json()
        if response.status_code != 202 or not data.get("jobId"):
            raise SuggestionsClientError(data.get("error") or f"Unexpected response: HTTP {response.status_code}")
        return data["jobId"]

    async def fetch_status(self, job_id: str) -> Optional[JobSnapshot]:
        response = await self._http.get(f"{self.endpoint}/{job_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return job_snapshot_adapter.validate_python(response.json())

    async def analyze(self, request: Optional[AdSuggestionsRequest] = None) -> PollOutcome:
        """Submit a job and wait for its outcome. A refused submission is an error outcome."""
        try:
            job_id = await self.submit(request)
        except (SuggestionsClientError, httpx.HTTPError, ValueError) as e:
            logger.error(f"Analysis submission failed: {e}")
            return PollOutcome(status="error", error=str(e) or "Failed to start analysis")
        logger.info(f"[{job_id}] Submitted, polling every {self.poller.interval}s")
        return await self.poller.start(job_id)

    async def aclose(self) -> None:
        self.poller.cancel()
        if self._owns_http:
            await self._http.aclose()

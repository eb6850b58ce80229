"""
Job Runner — Executes one ad-suggestions analysis end to end.

    processing ──▶ complete
              └──▶ error

1. Fetch ad metrics, revenue and case metrics concurrently. A failed fetch
   becomes an `Unavailable` marker instead of failing the job.
2. Merge negative keywords and classify search terms (pure, inline).
3. Render the prompt and call the LLM once.
4. Parse the reply. A parse failure is terminal; the client must resubmit.
5. Merge classification into the suggestions and write the terminal record.

No retries. The runner cannot be aborted once started.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Union

from adsuggest.config import Settings
from adsuggest.schemas import (
    AdMetrics,
    AdSuggestionsRequest,
    CaseMetrics,
    Job,
    JobStatus,
    RevenueMetrics,
    Unavailable,
)
from adsuggest.services.ai_service import (
    SYSTEM_PROMPT,
    AIResponseError,
    build_suggestions_prompt,
    create_ai_service,
    parse_suggestions,
)
from adsuggest.services.case_metrics_service import CaseMetricsService
from adsuggest.services.classification_service import ClassificationVocabulary, classify_search_terms
from adsuggest.services.google_ads_service import create_google_ads_service
from adsuggest.services.job_store import JobStore
from adsuggest.services.negative_keywords import merge_negative_keywords
from adsuggest.services.revenue_service import RevenueService
from adsuggest.utils import resolve_date_range, utcnow

logger = logging.getLogger(__name__)

LLM_FAILED = "AI analysis failed. Please try again."
PARSE_FAILED = "Failed to parse AI response"
UNEXPECTED_FAILURE = "Analysis failed unexpectedly. Please try again."

Fetcher = Callable[[str, str], Awaitable]


class LLM(Protocol):
    async def complete(self, prompt: str, system_prompt: str = SYSTEM_PROMPT) -> str: ...


@dataclass
class DataSources:
    """Metric fetchers, each `(start, end) -> record`. None means not configured."""
    ad_metrics: Optional[Fetcher] = None
    revenue: Optional[Fetcher] = None
    cases: Optional[Fetcher] = None


async def _fetch(source: str, fetcher: Optional[Fetcher], start: str, end: str):
    if fetcher is None:
        return Unavailable(source=source, reason="not configured")
    return await fetcher(start, end)


def _availability(value) -> str:
    if isinstance(value, Unavailable):
        return f"unavailable: {value.reason}"
    return "ok"


class JobRunner:
    def __init__(
        self,
        store: JobStore,
        sources: DataSources,
        llm: LLM,
        vocabulary: ClassificationVocabulary,
        min_report_date: str = "2026-01-01",
    ):
        self.store = store
        self.sources = sources
        self.llm = llm
        self.vocabulary = vocabulary
        self.min_report_date = min_report_date

    async def run(self, job_id: str, request: AdSuggestionsRequest) -> Job:
        """Run the job and write exactly one terminal record. Never raises for job failures."""
        try:
            return await self._execute(job_id, request)
        except Exception:
            logger.exception(f"[{job_id}] Unexpected failure in analysis job")
            return await self._finish(job_id, JobStatus.ERROR, error=UNEXPECTED_FAILURE)

    async def gather_inputs(
        self, job_id: str, start: str, end: str
    ) -> tuple[Union[AdMetrics, Unavailable], Union[RevenueMetrics, Unavailable], Union[CaseMetrics, Unavailable]]:
        names = ("google_ads", "revenue", "cases")
        results = await asyncio.gather(
            _fetch("google_ads", self.sources.ad_metrics, start, end),
            _fetch("revenue", self.sources.revenue, start, end),
            _fetch("cases", self.sources.cases, start, end),
            return_exceptions=True,
        )
        inputs = []
        for name, value in zip(names, results):
            if isinstance(value, Exception):
                logger.warning(f"[{job_id}] {name} fetch failed, continuing without it: {value}")
                value = Unavailable(source=name, reason="fetch failed")
            elif isinstance(value, BaseException):
                raise value
            inputs.append(value)
        return tuple(inputs)

    async def _execute(self, job_id: str, request: AdSuggestionsRequest) -> Job:
        start, end = resolve_date_range(
            request.period, self.min_report_date, request.start_date, request.end_date
        )
        logger.info(f"[{job_id}] Gathering inputs for {start} → {end}")
        ad_metrics, revenue, cases = await self.gather_inputs(job_id, start, end)

        if isinstance(ad_metrics, Unavailable):
            negatives, match_set = [], frozenset()
            search_terms, keywords = ad_metrics, []
        else:
            negatives, match_set = merge_negative_keywords(
                ad_metrics.campaign_negatives, ad_metrics.account_negatives
            )
            search_terms, keywords = ad_metrics.search_terms, ad_metrics.keywords
        classification = classify_search_terms(search_terms, keywords, match_set, self.vocabulary)
        logger.info(
            f"[{job_id}] Classified {classification.stats.total_search_terms} search terms: "
            f"{classification.stats.confirmed_gaps} gaps, {classification.stats.confirmed_waste} waste, "
            f"{classification.stats.already_negated} already negated"
        )

        prompt = build_suggestions_prompt(ad_metrics, revenue, cases, classification, negatives, request.period)
        logger.info(f"[{job_id}] Calling LLM...")
        try:
            response_text = await self.llm.complete(prompt, SYSTEM_PROMPT)
        except Exception as e:
            logger.error(f"[{job_id}] LLM call failed: {e}")
            return await self._finish(job_id, JobStatus.ERROR, error=LLM_FAILED)
        logger.info(f"[{job_id}] LLM responded")

        try:
            suggestions = parse_suggestions(response_text)
        except AIResponseError as e:
            logger.error(f"[{job_id}] {e}; raw response: {(response_text or '')[:1000]}")
            return await self._finish(job_id, JobStatus.ERROR, error=PARSE_FAILED)

        campaign_name = None if isinstance(ad_metrics, Unavailable) else ad_metrics.campaign.name
        result = {
            **suggestions.to_dict(),
            "searchTermAnalysis": classification.to_dict(),
            "stats": classification.stats.to_dict(),
            "negativeKeywords": [n.to_dict() for n in negatives],
            "dataSources": {
                "googleAds": _availability(ad_metrics),
                "revenue": _availability(revenue),
                "cases": _availability(cases),
            },
            "generatedAt": utcnow().isoformat() + "Z",
            "campaignAnalyzed": campaign_name or request.campaign_name,
            "period": request.period,
            "dateRange": {"startDate": start, "endDate": end},
        }
        job = await self._finish(job_id, JobStatus.COMPLETE, result=result)
        logger.info(f"[{job_id}] Job complete")
        return job

    async def _finish(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[dict] = None,
        error: Optional[str] = None,
    ) -> Job:
        existing = await self.store.get(job_id)
        now = utcnow()
        job = Job(
            id=job_id,
            status=status,
            result=result,
            error=error,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        await self.store.put(job)
        return job


def create_job_runner(store: JobStore, request: AdSuggestionsRequest, settings: Settings) -> JobRunner:
    """
    Wire a runner from settings. Raises ConfigurationError when the LLM or
    Google Ads credentials are missing; revenue and case metrics are optional.
    """
    llm = create_ai_service(config=settings)
    google_ads = create_google_ads_service(settings, request.campaign_name)

    sources = DataSources(ad_metrics=google_ads.fetch_ad_metrics)
    if settings.stripe_secret_key:
        sources.revenue = RevenueService(settings.stripe_secret_key).fetch_revenue
    if settings.supabase_url and settings.supabase_service_role_key:
        sources.cases = CaseMetricsService(
            settings.supabase_url,
            settings.supabase_service_role_key,
            excluded_emails=settings.test_email_list,
        ).fetch_case_metrics

    return JobRunner(
        store=store,
        sources=sources,
        llm=llm,
        vocabulary=ClassificationVocabulary.from_settings(settings),
        min_report_date=settings.min_report_date,
    )

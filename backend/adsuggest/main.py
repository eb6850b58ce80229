"""
Ad Suggestions — FastAPI Backend
Runs search-term analysis jobs against Google Ads data and an LLM in the
background. Clients submit a job and poll for the result.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from adsuggest.config import get_settings
from adsuggest.database import async_session, init_db, check_db_connection
from adsuggest.routers import ad_suggestions
from adsuggest.services.job_runner import create_job_runner
from adsuggest.services.job_service import JobService
from adsuggest.services.job_store import JobStore, SqlJobBackend

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


def build_job_service() -> JobService:
    backend = SqlJobBackend(async_session) if settings.durable_job_store else None
    store = JobStore(backend)

    def runner_factory(request):
        return create_job_runner(store, request, settings)

    return JobService(store, runner_factory)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Ad Suggestions backend...")
    if settings.durable_job_store:
        try:
            await init_db()
            logger.info("Database initialized — analysis_jobs table ready.")
        except Exception as e:
            logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
            # Still serve; jobs stay visible in-process and /api/health reports degraded
    app.state.job_service = build_job_service()
    yield
    logger.info("Shutting down...")
    await app.state.job_service.drain()


app = FastAPI(
    title="Ad Suggestions",
    description="Search term classification and AI ad suggestions for Google Ads",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ad_suggestions.router, prefix="/api/ad-suggestions", tags=["Ad Suggestions"])


@app.get("/api/health")
async def health_check():
    if not settings.durable_job_store:
        return {"status": "healthy", "service": "Ad Suggestions", "database": "disabled"}
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "Ad Suggestions",
        "database": "connected" if db_ok else "disconnected",
    }

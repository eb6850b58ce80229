"""
Ad Suggestions Router — Submit an analysis job, then poll it by id.

    POST /api/ad-suggestions            → 202 {status: processing, jobId}
    GET  /api/ad-suggestions/{job_id}   → 202 processing | 200 complete/error | 404
    GET  /api/ad-suggestions?jobId=...  → same as above
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from adsuggest.config import ConfigurationError
from adsuggest.schemas import AdSuggestionsRequest, ProcessingSnapshot
from adsuggest.services.job_service import JobService
from adsuggest.utils import safe_error_detail

logger = logging.getLogger(__name__)

router = APIRouter()


def get_job_service(request: Request) -> JobService:
    return request.app.state.job_service


async def _status_response(job_service: JobService, job_id: str) -> JSONResponse:
    snapshot = await job_service.poll(job_id)
    if snapshot is None:
        return JSONResponse(status_code=404, content={"status": "not_found", "jobId": job_id})
    status_code = 202 if isinstance(snapshot, ProcessingSnapshot) else 200
    return JSONResponse(status_code=status_code, content=snapshot.to_dict())


@router.post("")
async def submit_analysis(
    payload: Optional[AdSuggestionsRequest] = Body(None),
    job_service: JobService = Depends(get_job_service),
):
    """Start an analysis job. Returns immediately; the job runs in the background."""
    try:
        job_id = await job_service.submit(payload or AdSuggestionsRequest())
    except ConfigurationError as e:
        logger.error(f"Analysis not started: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "error": str(e)})
    except Exception as e:
        raise HTTPException(status_code=500, detail=safe_error_detail(e, "Failed to start analysis. Please try again."))
    return JSONResponse(
        status_code=202,
        content={
            "status": "processing",
            "jobId": job_id,
            "message": "Analysis started. Poll for results.",
        },
    )


@router.get("")
async def get_analysis_by_query(
    job_id: Optional[str] = Query(None, alias="jobId"),
    job_service: JobService = Depends(get_job_service),
):
    if not job_id:
        return JSONResponse(status_code=400, content={"status": "error", "error": "jobId is required"})
    return await _status_response(job_service, job_id)


@router.get("/{job_id}")
async def get_analysis(job_id: str, job_service: JobService = Depends(get_job_service)):
    return await _status_response(job_service, job_id)

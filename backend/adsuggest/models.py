"""
Ad Suggestions — Database Models
Only analysis jobs are persisted; everything else is recomputed per job.
"""

from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from adsuggest.database import Base
from adsuggest.schemas import JobStatus


def _utcnow() -> datetime:
    """Naive UTC now, matching TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════
#  ANALYSIS JOBS — Durable tier of the job store (upsert by id)
# ══════════════════════════════════════════════════════════════════════

class AnalysisJob(Base):
    """
    One ad-suggestions analysis job. Written at submission (processing) and
    once more when the runner finishes (complete / error). Retention is left
    to the database; nothing here deletes rows.
    """
    __tablename__ = "analysis_jobs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=JobStatus.PROCESSING.value)
    result: Mapped[dict] = mapped_column(JSON, nullable=True)
    error: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_analysis_jobs_status", "status"),
        Index("ix_analysis_jobs_created_at", "created_at"),
    )

"""
Typed records shared by the collaborators, the classification engine, the
job runner and the poller. Wire format is camelCase; Python attributes are
snake_case. Money values stay unrounded in memory and are rounded to cents
only when serialized.
"""

import enum
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_serializer
from pydantic.alias_generators import to_camel


def _cents(value: float) -> float:
    return round(value or 0.0, 2)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class JobStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


# ── Data source records ───────────────────────────────────────────────

class SearchTermRecord(CamelModel):
    term: str = Field(validation_alias=AliasChoices("term", "searchTerm", "search_term"))
    clicks: int = 0
    impressions: int = 0
    spend: float = 0.0
    conversions: float = 0.0
    ctr: float = 0.0
    status: Optional[str] = None
    campaign_name: Optional[str] = None
    ad_group_name: Optional[str] = None


class KeywordRecord(CamelModel):
    text: str = Field(validation_alias=AliasChoices("text", "keyword"))
    match_type: str = Field("BROAD", validation_alias=AliasChoices("matchType", "match_type"))
    status: str = "ENABLED"
    quality_score: Optional[int] = Field(None, validation_alias=AliasChoices("qualityScore", "quality_score"))
    clicks: int = 0
    impressions: int = 0
    spend: float = 0.0
    conversions: float = 0.0
    ctr: float = 0.0
    cpc: float = 0.0
    cost_per_conversion: float = Field(0.0, validation_alias=AliasChoices("costPerConversion", "cost_per_conversion"))
    search_impression_share: Optional[float] = Field(
        None, validation_alias=AliasChoices("searchImpressionShare", "search_impression_share")
    )


class NegativeKeywordRecord(CamelModel):
    keyword: Optional[str] = None
    match_type: str = Field("BROAD", validation_alias=AliasChoices("matchType", "match_type"))
    scope: Literal["campaign", "account"] = "campaign"
    campaign_name: Optional[str] = Field(None, validation_alias=AliasChoices("campaignName", "campaign_name"))


class AdCopyRecord(CamelModel):
    headlines: list[str] = []
    descriptions: list[str] = []
    status: str = "ENABLED"
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    spend: float = 0.0


class CampaignMetrics(CamelModel):
    name: str = "Unknown"
    spend: float = 0.0
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    cpc: float = 0.0
    conversions: float = 0.0
    cost_per_conversion: Optional[float] = None


class AdMetrics(CamelModel):
    campaign: CampaignMetrics = CampaignMetrics()
    keywords: list[KeywordRecord] = []
    search_terms: list[SearchTermRecord] = []
    campaign_negatives: list[NegativeKeywordRecord] = []
    account_negatives: list[NegativeKeywordRecord] = []
    ads: list[AdCopyRecord] = []


class RevenueMetrics(CamelModel):
    revenue: float = 0.0
    transactions: int = 0
    refunds: int = 0
    refund_amount: float = 0.0


class CaseMetrics(CamelModel):
    total_cases: int = 0
    unlocked_cases: int = 0

    @property
    def conversion_rate(self) -> float:
        if not self.total_cases:
            return 0.0
        return self.unlocked_cases / self.total_cases * 100


class Unavailable(CamelModel):
    """Marker passed downstream in place of a data source that failed to load."""
    source: str
    reason: str


# ── Classification ────────────────────────────────────────────────────

class Opportunity(CamelModel):
    term: str
    clicks: int
    impressions: int
    spend: float
    conversions: float
    ctr: float
    actual_cpc: float
    intent: Literal["high", "medium"]

    @field_serializer("spend", "actual_cpc")
    def round_money(self, value: float) -> float:
        return _cents(value)


class WasteTerm(CamelModel):
    term: str
    clicks: int
    impressions: int
    spend: float
    ctr: float
    matched_intent: str

    @field_serializer("spend")
    def round_money(self, value: float) -> float:
        return _cents(value)


class CoveredWaste(CamelModel):
    term: str
    clicks: int
    spend: float
    negated_by: str

    @field_serializer("spend")
    def round_money(self, value: float) -> float:
        return _cents(value)


class ClassificationStats(CamelModel):
    total_search_terms: int = 0
    confirmed_gaps: int = 0
    confirmed_waste: int = 0
    total_wasted_on_wrong_intent: float = 0.0
    already_negated: int = 0
    already_negated_spend: float = 0.0

    @field_serializer("total_wasted_on_wrong_intent", "already_negated_spend")
    def round_money(self, value: float) -> float:
        return _cents(value)


class ClassificationResult(CamelModel):
    opportunities: list[Opportunity] = []
    waste_terms: list[WasteTerm] = []
    already_covered: list[CoveredWaste] = []
    stats: ClassificationStats = ClassificationStats()


# ── LLM suggestions ───────────────────────────────────────────────────

class AdSuggestions(CamelModel):
    """Shape the LLM is asked to return. Unknown keys are dropped."""
    performance_summary: str = ""
    negative_keyword_suggestions: list[dict] = []
    keyword_suggestions: list[dict] = []
    ad_copy_suggestions: list[dict] = []
    general_recommendations: list[dict] = []


# ── Requests & jobs ───────────────────────────────────────────────────

class AdSuggestionsRequest(CamelModel):
    period: Literal["today", "week", "month", "all"] = "week"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    campaign_name: Optional[str] = None
    customer_id: Optional[str] = None


class Job(CamelModel):
    id: str
    status: JobStatus = JobStatus.PROCESSING
    result: Optional[dict] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def snapshot(self) -> "JobSnapshot":
        if self.status is JobStatus.COMPLETE:
            return CompleteSnapshot(result=self.result or {})
        if self.status is JobStatus.ERROR:
            return ErrorSnapshot(error=self.error or "Unknown error")
        return ProcessingSnapshot(job_id=self.id)


class ProcessingSnapshot(CamelModel):
    status: Literal["processing"] = "processing"
    job_id: Optional[str] = None


class CompleteSnapshot(CamelModel):
    status: Literal["complete"] = "complete"
    result: dict


class ErrorSnapshot(CamelModel):
    status: Literal["error"] = "error"
    error: str


JobSnapshot = Annotated[
    Union[ProcessingSnapshot, CompleteSnapshot, ErrorSnapshot],
    Field(discriminator="status"),
]
job_snapshot_adapter = TypeAdapter(JobSnapshot)


class PollOutcome(CamelModel):
    """Terminal value emitted by the client poller."""
    status: Literal["complete", "error", "timeout"]
    result: Optional[dict] = None
    error: Optional[str] = None

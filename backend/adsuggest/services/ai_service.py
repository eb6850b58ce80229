"""
AI Service — Multi-provider LLM (Anthropic Claude, OpenAI GPT) for ad suggestions.
Holds the system prompt, renders the analysis prompt from campaign data and
the search term classification, and parses the structured reply.
"""

import json
import logging
import re
from typing import Optional, Union
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic
from pydantic import ValidationError
from adsuggest.config import ConfigurationError, Settings, get_settings
from adsuggest.schemas import (
    AdCopyRecord,
    AdMetrics,
    AdSuggestions,
    CaseMetrics,
    ClassificationResult,
    KeywordRecord,
    NegativeKeywordRecord,
    RevenueMetrics,
    SearchTermRecord,
    Unavailable,
)

logger = logging.getLogger(__name__)
settings = get_settings()

SYSTEM_PROMPT = """You are a Google Ads optimization expert. Your role is to analyze campaign data and provide actionable suggestions.

CRITICAL BUSINESS MODEL CONSTRAINTS — READ BEFORE MAKING ANY RECOMMENDATIONS:

The product is a $49 self-service SaaS tool that generates HOA violation response letters with AI.
It is NOT a law firm, NOT a legal referral service, and NOT a consultation service.
The target customer is a homeowner who wants to handle their own HOA dispute without hiring an attorney.

WRONG-INTENT TRAFFIC (never recommend targeting these):
- Searches for lawyers, attorneys, law firms, legal advice, free consultations, pro bono help, lawsuits, or "near me"
- These users want human legal representation and will not convert at $49

RIGHT-INTENT TRAFFIC (recommend targeting these):
- Searches about responding to HOA notices themselves
- Searches about HOA violation letters, dispute letters, response letters, fines and appeals
- Searches showing the user wants to take action themselves

AD COPY CONSTRAINTS:
- Never suggest copy that implies legal representation, phone consultations or human advisors
- The disclaimer "Not legal advice" must remain
- Emphasize fast, affordable, self-serve, AI-generated letters at $49

NEGATIVE KEYWORD LOGIC:
- A search term with zero conversions and attorney/lawyer intent is a NEGATIVE keyword candidate, never an ADD candidate, regardless of CTR
- High CTR on wrong-intent terms means the ad attracts the wrong audience
- Terms listed as ALREADY NEGATED are blocked; do not suggest them again

CONVERSION BASELINE:
- This is an early-stage campaign with very few conversions
- Be conservative with "this keyword is working" claims
- Eliminate wrong-intent traffic first"""

RESPONSE_FORMAT = """{
  "performanceSummary": "2-3 sentences: what share of traffic is wrong-intent, and whether current keywords match self-serve customers",
  "negativeKeywordSuggestions": [
    {"keyword": "keyword to add as negative", "rationale": "why it attracts wrong-intent traffic", "priority": "high|medium|low"}
  ],
  "keywordSuggestions": [
    {"action": "add|pause|modify", "keyword": "self-serve intent keyword", "matchType": "EXACT|PHRASE|BROAD", "rationale": "why", "priority": "high|medium|low"}
  ],
  "adCopySuggestions": [
    {"type": "headline|description", "current": "current text or null", "suggested": "new text", "rationale": "why", "priority": "high|medium|low"}
  ],
  "generalRecommendations": [
    {"recommendation": "specific action", "category": "budget|targeting|bidding|creative|landing_page", "priority": "high|medium|low", "expectedImpact": "expected result"}
  ]
}"""


class AIResponseError(ValueError):
    """The model replied, but not with the JSON we asked for."""


def _parse_model_id(model_id: Optional[str]) -> tuple[str, str]:
    """Parse 'provider:model' into (provider, model). Fallback to OpenAI config."""
    if model_id and ":" in model_id:
        p, m = model_id.split(":", 1)
        return (p.strip().lower(), m.strip())
    return ("openai", settings.openai_model)


class AIService:
    """Multi-provider LLM client: one prompt in, text out."""

    def __init__(
        self,
        model_id: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        max_tokens: int = 4096,
    ):
        self.provider, self.model = _parse_model_id(model_id or settings.default_llm_id)
        self.max_tokens = max_tokens
        self._openai_client: Optional[AsyncOpenAI] = None
        self._anthropic_client: Optional[AsyncAnthropic] = None

        if self.provider == "openai":
            if not openai_api_key:
                raise ConfigurationError("OPENAI_API_KEY not configured. Add it to enable AI-powered suggestions.")
            self._openai_client = AsyncOpenAI(api_key=openai_api_key)
        elif self.provider == "anthropic":
            if not anthropic_api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY not configured. Add it to enable AI-powered suggestions.")
            self._anthropic_client = AsyncAnthropic(api_key=anthropic_api_key)
        else:
            raise ConfigurationError(f"Unknown AI provider: {self.provider}")

    async def complete(self, prompt: str, system_prompt: str = SYSTEM_PROMPT) -> str:
        """Call the configured provider once. Errors propagate to the caller."""
        if self.provider == "openai":
            response = await self._openai_client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.2,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
            return response.choices[0].message.content or ""

        response = await self._anthropic_client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": prompt}],
        )
        if response.content and response.content[0].type == "text":
            return response.content[0].text
        return ""


def create_ai_service(model_id: Optional[str] = None, config: Optional[Settings] = None) -> AIService:
    """Factory using keys from the environment. Raises ConfigurationError if absent."""
    config = config or settings
    return AIService(
        model_id=model_id or config.default_llm_id,
        openai_api_key=config.openai_api_key,
        anthropic_api_key=config.anthropic_api_key,
        max_tokens=config.llm_max_tokens,
    )


# ── Response parsing ──────────────────────────────────────────────────

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?")


def parse_suggestions(text: str) -> AdSuggestions:
    """Strip markdown code fences and validate the JSON reply."""
    cleaned = _FENCE_RE.sub("", text or "").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AIResponseError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AIResponseError(f"Expected a JSON object, got {type(data).__name__}")
    try:
        return AdSuggestions.model_validate(data)
    except ValidationError as e:
        raise AIResponseError(f"Response does not match the suggestions schema: {e}") from e


# ── Prompt rendering ──────────────────────────────────────────────────

def _money(value: Optional[float]) -> str:
    return f"${value or 0:,.2f}"


def format_keywords_table(keywords: list[KeywordRecord]) -> str:
    if not keywords:
        return "No keyword data available."
    rows = [
        "| Keyword | Match | QS | Clicks | Impr | CTR | CPC | Conv | Cost/Conv | Impr Share |",
        "|---------|-------|----|--------|------|-----|-----|------|-----------|------------|",
    ]
    for k in keywords:
        qs = k.quality_score if k.quality_score is not None else "N/A"
        share = f"{k.search_impression_share * 100:.1f}%" if k.search_impression_share is not None else "N/A"
        cost_per_conv = _money(k.cost_per_conversion) if k.cost_per_conversion > 0 else "N/A"
        rows.append(
            f"| {k.text} | {k.match_type} | {qs} | {k.clicks} | {k.impressions} | {k.ctr:.2f}% "
            f"| {_money(k.cpc)} | {k.conversions:g} | {cost_per_conv} | {share} |"
        )
    return "\n".join(rows)


def format_search_terms_table(search_terms: list[SearchTermRecord]) -> str:
    if not search_terms:
        return "No search term data available."
    rows = [
        "| Search Term | Status | Clicks | Impressions | CTR | Conversions | Spend |",
        "|-------------|--------|--------|-------------|-----|-------------|-------|",
    ]
    for st in search_terms:
        rows.append(
            f"| {st.term} | {st.status or 'N/A'} | {st.clicks} | {st.impressions} | {st.ctr:.2f}% "
            f"| {st.conversions:g} | {_money(st.spend)} |"
        )
    return "\n".join(rows)


def format_ad_copy(ads: list[AdCopyRecord]) -> str:
    if not ads:
        return "No ad copy data available."
    blocks = []
    for i, ad in enumerate(ads, start=1):
        headlines = "\n".join(f"  {j}. {h}" for j, h in enumerate(ad.headlines, start=1))
        descriptions = "\n".join(f"  {j}. {d}" for j, d in enumerate(ad.descriptions, start=1))
        blocks.append(
            f"Ad {i} ({ad.status}):\nHeadlines:\n{headlines}\nDescriptions:\n{descriptions}\n"
            f"Performance: {ad.clicks} clicks, {ad.impressions} impressions, {ad.ctr:.2f}% CTR, {_money(ad.spend)} spend"
        )
    return "\n\n".join(blocks)


def format_classification(result: ClassificationResult, negatives: list[NegativeKeywordRecord]) -> str:
    stats = result.stats
    parts = [
        f"Search terms analyzed: {stats.total_search_terms}",
        f"Confirmed gaps (traffic without a keyword): {stats.confirmed_gaps}",
        f"Confirmed wrong-intent waste: {stats.confirmed_waste} terms, {_money(stats.total_wasted_on_wrong_intent)} wasted",
        f"Already negated: {stats.already_negated} terms, {_money(stats.already_negated_spend)} historical spend",
    ]

    if result.opportunities:
        parts.append("\n### Opportunities (promote to keywords)")
        for o in result.opportunities:
            parts.append(
                f"  - \"{o.term}\" [{o.intent} intent] {o.clicks} clicks, {_money(o.spend)} spend, "
                f"CPC {_money(o.actual_cpc)}, {o.conversions:g} conv"
            )

    if result.waste_terms:
        parts.append("\n### Wrong-Intent Waste (NOT yet negated, candidates for negatives)")
        for w in result.waste_terms:
            parts.append(
                f"  - \"{w.term}\" matched \"{w.matched_intent}\": {w.clicks} clicks, {_money(w.spend)} spend, 0 conv"
            )

    if result.already_covered:
        parts.append("\n### ALREADY NEGATED (do not suggest again)")
        for c in result.already_covered:
            parts.append(f"  - \"{c.term}\" blocked by \"{c.negated_by}\" ({_money(c.spend)} spent before)")

    if negatives:
        parts.append(f"\n### Existing Negative Keywords ({len(negatives)})")
        for n in negatives:
            parts.append(f"  - {n.keyword} [{n.match_type}, {n.scope}]")

    return "\n".join(parts)


def build_suggestions_prompt(
    ad_metrics: Union[AdMetrics, Unavailable],
    revenue: Union[RevenueMetrics, Unavailable],
    cases: Union[CaseMetrics, Unavailable],
    classification: ClassificationResult,
    negatives: list[NegativeKeywordRecord],
    period: str,
) -> str:
    """Render the user prompt. Unavailable sources are named, not hidden."""
    parts = ["Analyze this Google Ads campaign data and provide optimization suggestions.\n"]

    if isinstance(ad_metrics, Unavailable):
        parts.append(f"## Campaign: Unknown\n## Period: {period}\n")
        parts.append(f"Google Ads data unavailable ({ad_metrics.reason}). Base suggestions on the remaining context.")
        keywords, search_terms, ads = [], [], []
    else:
        c = ad_metrics.campaign
        parts.append(f"## Campaign: {c.name}\n## Period: {period}\n")
        parts.append("## Performance Metrics:")
        parts.append(f"- Total Spend: {_money(c.spend)}")
        parts.append(f"- Total Clicks: {c.clicks}")
        parts.append(f"- Total Impressions: {c.impressions}")
        parts.append(f"- CTR: {c.ctr:.2f}%")
        parts.append(f"- Average CPC: {_money(c.cpc)}")
        parts.append(f"- Conversions: {c.conversions:g}")
        parts.append(
            f"- Cost per Conversion: {_money(c.cost_per_conversion) if c.cost_per_conversion else 'N/A'}"
        )
        keywords, search_terms, ads = ad_metrics.keywords, ad_metrics.search_terms, ad_metrics.ads

    if isinstance(revenue, Unavailable):
        parts.append(f"\n## Revenue: unavailable ({revenue.reason})")
    else:
        parts.append("\n## Revenue:")
        parts.append(
            f"- Revenue: {_money(revenue.revenue)} from {revenue.transactions} transactions "
            f"({revenue.refunds} refunds, {_money(revenue.refund_amount)})"
        )

    if isinstance(cases, Unavailable):
        parts.append(f"\n## Cases: unavailable ({cases.reason})")
    else:
        parts.append("\n## Cases:")
        parts.append(
            f"- {cases.total_cases} cases started, {cases.unlocked_cases} paid "
            f"({cases.conversion_rate:.1f}% case-to-purchase)"
        )

    parts.append(f"\n## Current Keywords (with Quality Score, Impression Share):\n{format_keywords_table(keywords)}")
    parts.append(f"\n## Search Terms (actual searches triggering your ads):\n{format_search_terms_table(search_terms)}")
    parts.append(f"\n## Search Term Classification:\n{format_classification(classification, negatives)}")
    parts.append(f"\n## Current Ad Copy:\n{format_ad_copy(ads)}")

    parts.append(
        "\nBased on this data, provide optimization suggestions in the following JSON format "
        f"(respond ONLY with valid JSON):\n{RESPONSE_FORMAT}"
    )
    parts.append(
        "\nIMPORTANT ANALYSIS RULES:\n"
        "1. Every wrong-intent waste term above is a negative keyword candidate\n"
        "2. Never suggest a term from the ALREADY NEGATED list\n"
        "3. Opportunities with high intent are the best candidates to add as keywords\n"
        "4. Ad copy must never imply human help, phone calls, or legal representation\n"
        "\nProvide 3-5 suggestions in each category."
    )
    return "\n".join(parts)

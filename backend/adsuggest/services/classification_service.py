"""
Search Term Classification — Partitions a search term report into
targeting opportunities, new wasted spend, and waste already blocked by a
negative keyword.

Pure and synchronous: identical inputs always give identical output, so it
runs inline inside the job runner. Rounding happens on serialization only.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from adsuggest.config import DEFAULT_HIGH_INTENT_TERMS, DEFAULT_WRONG_INTENT_TERMS, Settings
from adsuggest.schemas import (
    ClassificationResult,
    ClassificationStats,
    CoveredWaste,
    KeywordRecord,
    Opportunity,
    SearchTermRecord,
    WasteTerm,
)
from adsuggest.services.negative_keywords import find_covering_negative

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationVocabulary:
    """Configurable word lists and thresholds for one business model."""
    wrong_intent: tuple[str, ...]
    high_intent: tuple[str, ...]
    waste_spend_threshold: float = 2.00
    max_opportunities: int = 20
    max_waste_terms: int = 15

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClassificationVocabulary":
        return cls(
            wrong_intent=tuple(t.lower() for t in settings.wrong_intent_list),
            high_intent=tuple(t.lower() for t in settings.high_intent_list),
            waste_spend_threshold=settings.waste_spend_threshold,
            max_opportunities=settings.max_opportunities,
            max_waste_terms=settings.max_waste_terms,
        )

    def wrong_intent_match(self, term: str) -> Optional[str]:
        """First wrong-intent phrase contained in the term, if any."""
        lowered = term.lower()
        for phrase in self.wrong_intent:
            if phrase and phrase in lowered:
                return phrase
        return None

    def intent_score(self, term: str) -> str:
        lowered = term.lower()
        matches = sum(1 for phrase in self.high_intent if phrase and phrase in lowered)
        return "high" if matches >= 2 else "medium"


def _coerce_search_term(record) -> SearchTermRecord:
    if isinstance(record, SearchTermRecord):
        return record
    if isinstance(record, Mapping):
        return SearchTermRecord.model_validate(record)
    raise TypeError(f"Cannot interpret search term record of type {type(record).__name__}")


def _keyword_text(record) -> str:
    if isinstance(record, KeywordRecord):
        return record.text
    if isinstance(record, Mapping):
        return record.get("text") or record.get("keyword") or ""
    if isinstance(record, str):
        return record
    raise TypeError(f"Cannot interpret keyword record of type {type(record).__name__}")


def classify_search_terms(
    search_terms,
    keywords: Optional[Iterable] = None,
    negative_match_set: Iterable[str] = frozenset(),
    vocabulary: Optional[ClassificationVocabulary] = None,
) -> ClassificationResult:
    """
    Classify one search term report.

    Algorithm:
    - Opportunities: clicks >= 1, not wrong-intent, not already a keyword.
      Sorted by clicks (desc), capped, each with actual CPC and intent.
    - Waste candidates: clicks >= 1, zero conversions, spend over the
      threshold, wrong-intent. Candidates covered by a negative keyword go
      to `already_covered`; the rest to `waste_terms` (spend desc, capped).
    - Stats: wasted total counts new waste only.

    `search_terms` that is not a list (None, an Unavailable marker) gives an
    empty result.
    """
    vocabulary = vocabulary or DEFAULT_VOCABULARY
    if not isinstance(search_terms, Sequence) or isinstance(search_terms, (str, bytes)):
        if search_terms is not None:
            logger.info(f"No usable search terms ({type(search_terms).__name__}); returning empty classification")
        return ClassificationResult()

    records = [_coerce_search_term(r) for r in search_terms]
    existing = {_keyword_text(k).strip().lower() for k in (keywords or [])}
    existing.discard("")
    negatives = frozenset(negative_match_set or ())

    opportunities: list[Opportunity] = []
    waste: list[WasteTerm] = []
    covered: list[CoveredWaste] = []

    for st in records:
        if st.clicks < 1:
            continue
        wrong_intent = vocabulary.wrong_intent_match(st.term)

        if wrong_intent is None:
            if st.term.strip().lower() not in existing:
                opportunities.append(Opportunity(
                    term=st.term,
                    clicks=st.clicks,
                    impressions=st.impressions,
                    spend=st.spend,
                    conversions=st.conversions,
                    ctr=st.ctr,
                    actual_cpc=st.spend / st.clicks if st.clicks else 0.0,
                    intent=vocabulary.intent_score(st.term),
                ))
            continue

        if st.conversions != 0 or st.spend <= vocabulary.waste_spend_threshold:
            continue

        negated_by = find_covering_negative(st.term, negatives)
        if negated_by is not None:
            covered.append(CoveredWaste(
                term=st.term,
                clicks=st.clicks,
                spend=st.spend,
                negated_by=negated_by,
            ))
        else:
            waste.append(WasteTerm(
                term=st.term,
                clicks=st.clicks,
                impressions=st.impressions,
                spend=st.spend,
                ctr=st.ctr,
                matched_intent=wrong_intent,
            ))

    opportunities.sort(key=lambda o: o.clicks, reverse=True)
    opportunities = opportunities[:vocabulary.max_opportunities]
    waste.sort(key=lambda w: w.spend, reverse=True)
    waste = waste[:vocabulary.max_waste_terms]

    stats = ClassificationStats(
        total_search_terms=len(records),
        confirmed_gaps=len(opportunities),
        confirmed_waste=len(waste),
        total_wasted_on_wrong_intent=sum(w.spend for w in waste),
        already_negated=len(covered),
        already_negated_spend=sum(c.spend for c in covered),
    )
    return ClassificationResult(
        opportunities=opportunities,
        waste_terms=waste,
        already_covered=covered,
        stats=stats,
    )


DEFAULT_VOCABULARY = ClassificationVocabulary(
    wrong_intent=tuple(t.strip() for t in DEFAULT_WRONG_INTENT_TERMS.split(",") if t.strip()),
    high_intent=tuple(t.strip() for t in DEFAULT_HIGH_INTENT_TERMS.split(",") if t.strip()),
)

"""
Negative Keyword Normalizer — Merges campaign-level and account-level
negative keywords into one list for reporting and one set for matching.
"""

from typing import Iterable, Mapping, Optional, Union

from adsuggest.schemas import NegativeKeywordRecord

NegativeInput = Union[NegativeKeywordRecord, Mapping]


def _coerce(record: NegativeInput, scope: str) -> Optional[NegativeKeywordRecord]:
    if isinstance(record, NegativeKeywordRecord):
        rec = record
    else:
        rec = NegativeKeywordRecord.model_validate({"scope": scope, **dict(record)})
    if not rec.keyword or not rec.keyword.strip():
        return None
    if rec.scope != scope:
        rec = rec.model_copy(update={"scope": scope})
    return rec


def merge_negative_keywords(
    campaign_negatives: Optional[Iterable[NegativeInput]],
    account_negatives: Optional[Iterable[NegativeInput]],
) -> tuple[list[NegativeKeywordRecord], frozenset[str]]:
    """
    Returns (detailed, match_set). `detailed` keeps original casing, match
    type and scope, campaign negatives first. `match_set` holds the
    lower-cased, trimmed keyword strings used by the classifier.
    """
    detailed: list[NegativeKeywordRecord] = []
    for scope, records in (("campaign", campaign_negatives), ("account", account_negatives)):
        for record in records or []:
            rec = _coerce(record, scope)
            if rec is not None:
                detailed.append(rec)

    match_set = frozenset(rec.keyword.strip().lower() for rec in detailed)
    return detailed, match_set


def find_covering_negative(term: str, match_set: Iterable[str]) -> Optional[str]:
    """
    Return the negative keyword that covers `term`, or None.
    Exact match wins; otherwise the first negative (alphabetically) that is
    contained in the term, so "attorney" covers "hoa attorney near me".
    """
    normalized = term.strip().lower()
    if not normalized:
        return None
    if normalized in match_set:
        return normalized
    for negative in sorted(match_set):
        if negative and negative in normalized:
            return negative
    return None

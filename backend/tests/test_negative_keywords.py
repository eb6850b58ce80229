"""
Tests for merging campaign and account negative keywords.
"""

from adsuggest.schemas import NegativeKeywordRecord
from adsuggest.services.negative_keywords import find_covering_negative, merge_negative_keywords


def test_merge_keeps_detail_and_builds_match_set():
    detailed, match_set = merge_negative_keywords(
        [{"keyword": "Attorney", "matchType": "PHRASE", "campaignName": "DMHOA Initial Test"}],
        [{"keyword": " Free Template ", "matchType": "EXACT"}],
    )
    assert [n.keyword for n in detailed] == ["Attorney", " Free Template "]
    assert detailed[0].scope == "campaign"
    assert detailed[0].match_type == "PHRASE"
    assert detailed[0].campaign_name == "DMHOA Initial Test"
    assert detailed[1].scope == "account"
    assert match_set == frozenset({"attorney", "free template"})


def test_merge_drops_blank_keywords():
    detailed, match_set = merge_negative_keywords(
        [{"keyword": ""}, {"keyword": "   "}, {"matchType": "BROAD"}],
        [NegativeKeywordRecord(keyword="lawyer", scope="account")],
    )
    assert len(detailed) == 1
    assert match_set == frozenset({"lawyer"})


def test_merge_forces_scope_from_source():
    detailed, _ = merge_negative_keywords(
        [NegativeKeywordRecord(keyword="lawyer", scope="account")],
        None,
    )
    assert detailed[0].scope == "campaign"


def test_merge_handles_missing_inputs():
    detailed, match_set = merge_negative_keywords(None, None)
    assert detailed == []
    assert match_set == frozenset()


def test_merge_collapses_duplicates_in_match_set_only():
    detailed, match_set = merge_negative_keywords(
        [{"keyword": "Lawyer"}],
        [{"keyword": "lawyer"}],
    )
    assert len(detailed) == 2
    assert match_set == frozenset({"lawyer"})


def test_covering_negative_exact_match():
    assert find_covering_negative("HOA Lawyer ", {"hoa lawyer", "lawyer"}) == "hoa lawyer"


def test_covering_negative_substring_match():
    assert find_covering_negative("hoa attorney help", {"attorney"}) == "attorney"


def test_covering_negative_is_deterministic():
    # Both cover the term; the alphabetically first one is reported
    assert find_covering_negative("free hoa lawyer near me", {"near me", "lawyer"}) == "lawyer"


def test_covering_negative_none():
    assert find_covering_negative("diy hoa response letter", {"attorney"}) is None
    assert find_covering_negative("", {"attorney"}) is None

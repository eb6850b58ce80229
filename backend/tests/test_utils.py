"""
Tests for job ids and reporting date ranges.
"""

import re
from datetime import date

from adsuggest.utils import generate_job_id, resolve_date_range

TODAY = date(2026, 3, 31)
FLOOR = "2026-01-01"


def test_job_ids_are_unique_and_well_formed():
    ids = {generate_job_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(re.fullmatch(r"job_\d{13}_[0-9a-z]{9}", i) for i in ids)


def test_period_today():
    assert resolve_date_range("today", FLOOR, today=TODAY) == ("2026-03-31", "2026-03-31")


def test_period_week():
    assert resolve_date_range("week", FLOOR, today=TODAY) == ("2026-03-24", "2026-03-31")


def test_period_month_caps_day():
    assert resolve_date_range("month", FLOOR, today=TODAY) == ("2026-02-28", "2026-03-31")


def test_period_all_starts_at_floor():
    assert resolve_date_range("all", FLOOR, today=TODAY) == (FLOOR, "2026-03-31")


def test_start_never_before_floor():
    assert resolve_date_range("week", FLOOR, today=date(2026, 1, 3)) == (FLOOR, "2026-01-03")
    assert resolve_date_range("month", FLOOR, today=date(2026, 1, 15)) == (FLOOR, "2026-01-15")


def test_explicit_dates_win():
    assert resolve_date_range("week", FLOOR, "2026-02-01", "2026-02-14", today=TODAY) == ("2026-02-01", "2026-02-14")

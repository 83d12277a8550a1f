"""Tests for UTC datetime helpers."""
from datetime import UTC, datetime

from src.hs_common.datetime_utils import hours_ago, start_of_month, utc_now


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo is not None


def test_hours_ago() -> None:
    now = datetime(2024, 5, 4, 12, 0, tzinfo=UTC)
    assert hours_ago(72, now) == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def test_start_of_month() -> None:
    now = datetime(2024, 5, 17, 15, 42, 9, 123, tzinfo=UTC)
    assert start_of_month(now) == datetime(2024, 5, 1, tzinfo=UTC)

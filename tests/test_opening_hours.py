from __future__ import annotations

from datetime import datetime, timedelta, timezone

from helpers import make_candidate
from models import NearbyCandidate, OpeningPeriod
from services.opening_hours import current_week_minutes, filter_by_closing_time, remaining_open_minutes

JST = timezone(timedelta(hours=9))
# 2026-10-18 is a Sunday
SUNDAY_NOON = datetime(2026, 10, 18, 12, 0, tzinfo=JST)


def _closing_at(day: int, hour: int, minute: int) -> OpeningPeriod:
    return OpeningPeriod(0, 10, 0, day, hour, minute)


def _filter(candidate, now=SUNDAY_NOON, distance=50):
    return filter_by_closing_time([NearbyCandidate(candidate, distance)], now)


def test_current_week_minutes_sunday_is_day_zero() -> None:
    assert current_week_minutes(SUNDAY_NOON) == 720
    assert current_week_minutes(datetime(2026, 10, 17, 23, 0, tzinfo=JST)) == 6 * 1440 + 23 * 60


def test_current_week_minutes_converts_to_utc_plus_nine() -> None:
    utc = datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc)
    assert current_week_minutes(utc) == 720


def test_naive_datetime_taken_as_local_time() -> None:
    assert current_week_minutes(datetime(2026, 10, 18, 12, 0)) == 720


def test_open_now_false_is_always_excluded() -> None:
    c = make_candidate("a", open_now=False)
    assert remaining_open_minutes(c, 720) is None
    assert _filter(c) == []
    assert _filter(make_candidate("b", open_now=None)) == []


def test_no_periods_means_always_open() -> None:
    out = _filter(make_candidate("a", periods=()))
    assert out[0].remaining_open_minutes == 1440


def test_period_without_close_is_always_open() -> None:
    c = make_candidate("a", periods=[OpeningPeriod(0, 0, 0)])
    assert remaining_open_minutes(c, 720) == 1440


def test_non_chain_boundary_54_excluded_55_included() -> None:
    at_54 = make_candidate("a", "個人酒場", periods=[_closing_at(0, 12, 54)])
    at_55 = make_candidate("b", "個人酒場", periods=[_closing_at(0, 12, 55)])
    assert _filter(at_54) == []
    assert [v.remaining_open_minutes for v in _filter(at_55)] == [55]


def test_chain_boundary_29_excluded_30_included() -> None:
    at_29 = make_candidate("a", "すき家 堺店", periods=[_closing_at(0, 12, 29)])
    at_30 = make_candidate("b", "すき家 堺店", periods=[_closing_at(0, 12, 30)])
    assert _filter(at_29) == []
    assert [v.remaining_open_minutes for v in _filter(at_30)] == [30]


def test_chain_with_35_minutes_included_but_not_as_independent() -> None:
    chain = make_candidate("a", "すき家", periods=[_closing_at(0, 12, 35)])
    independent = make_candidate("b", "すきやき処", periods=[_closing_at(0, 12, 35)])
    assert [v.candidate.id for v in _filter(chain)] == ["a"]
    assert _filter(independent) == []


def test_wraparound_saturday_to_sunday() -> None:
    period = OpeningPeriod(6, 23, 0, 0, 1, 0)
    c = make_candidate("a", periods=[period])
    sunday_0030 = current_week_minutes(datetime(2026, 10, 18, 0, 30, tzinfo=JST))
    assert sunday_0030 == 30
    assert remaining_open_minutes(c, sunday_0030) == 30
    # Saturday 23:30 -> 90 minutes left across the week boundary
    assert remaining_open_minutes(c, 6 * 1440 + 23 * 60 + 30) == 90
    # Saturday 22:00 is before opening
    assert remaining_open_minutes(c, 6 * 1440 + 22 * 60) is None


def test_first_matching_period_wins() -> None:
    periods = [OpeningPeriod(0, 11, 0, 0, 14, 0), OpeningPeriod(0, 17, 0, 0, 23, 0)]
    c = make_candidate("a", periods=periods)
    assert remaining_open_minutes(c, 12 * 60) == 120
    assert remaining_open_minutes(c, 18 * 60) == 300


def test_open_now_without_matching_period_is_dropped() -> None:
    c = make_candidate("a", periods=[OpeningPeriod(1, 11, 0, 1, 14, 0)])  # Monday only
    assert _filter(c) == []


def test_remaining_is_clamped_and_distance_carried() -> None:
    # open since Sunday 10:00 until Tuesday 03:00
    c = make_candidate("a", periods=[OpeningPeriod(0, 10, 0, 2, 3, 0)])
    out = _filter(c, distance=321)
    assert out[0].remaining_open_minutes == 1440
    assert out[0].distance_m == 321


def test_scenario_same_point_no_periods() -> None:
    c = make_candidate("a", periods=())
    out = _filter(c, distance=0)
    assert out[0].remaining_open_minutes == 1440
    assert out[0].distance_m == 0

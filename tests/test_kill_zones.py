"""Tests for kill zones, sessions and confirmation candles."""

from datetime import datetime, timedelta, timezone

import pytest

from smctrader.analysis.confirmation import (
    body_ratio,
    check_confirmation,
    has_close_confirmation,
    has_engulfing_confirmation,
    has_rejection_wick,
    has_strong_confirmation,
)
from smctrader.analysis.kill_zones import (
    get_active_kill_zone,
    get_active_kill_zones,
    get_current_session,
    get_kill_zone_bonus,
    get_minutes_until_next_kill_zone,
    is_hour_in_range,
    is_in_kill_zone,
    should_avoid_trading,
)
from smctrader.analysis.models import Candle


def _at(hour, minute=0, day=5):
    # 2025-03-05 is a Wednesday
    return datetime(2025, 3, day, hour, minute, tzinfo=timezone.utc)


def _make_candle(o, h, l, c):
    return Candle(time=_at(8), open=o, high=h, low=l, close=c)


# ── Kill zones ───────────────────────────────────────────────────────────


class TestKillZones:
    def test_hour_range_end_exclusive(self):
        assert is_hour_in_range(7, 7, 10)
        assert not is_hour_in_range(10, 7, 10)

    def test_hour_range_wraps_midnight(self):
        assert is_hour_in_range(23, 22, 2)
        assert is_hour_in_range(1, 22, 2)
        assert not is_hour_in_range(3, 22, 2)

    def test_london_open(self):
        assert is_in_kill_zone(_at(8, 30))
        assert get_active_kill_zone(_at(8, 30)).type == "LONDON_OPEN"
        assert get_kill_zone_bonus(_at(8, 30)) == pytest.approx(0.15)

    def test_overlap_has_priority(self):
        assert get_active_kill_zone(_at(13)).type == "LONDON_NY_OVERLAP"
        assert get_kill_zone_bonus(_at(13)) == pytest.approx(0.2)
        names = {z.type for z in get_active_kill_zones(_at(13))}
        assert names == {"NY_OPEN", "LONDON_NY_OVERLAP"}

    def test_outside_default_zones(self):
        assert not is_in_kill_zone(_at(11))
        assert not is_in_kill_zone(_at(3))
        assert get_kill_zone_bonus(_at(20)) == 0.0

    def test_asian_zone_only_when_selected(self):
        assert not is_in_kill_zone(_at(3))
        assert is_in_kill_zone(_at(3), ("ASIAN",))
        assert get_kill_zone_bonus(_at(3)) == pytest.approx(0.05)

    def test_non_utc_timestamps_are_converted(self):
        plus_two = timezone(timedelta(hours=2))
        # 10:30 at UTC+2 is 08:30 UTC
        assert is_in_kill_zone(datetime(2025, 3, 5, 10, 30, tzinfo=plus_two))


class TestSessions:
    @pytest.mark.parametrize(
        "hour,session",
        [(3, "ASIAN"), (9, "LONDON"), (13, "OVERLAP"), (18, "NEW_YORK"), (22, "OFF_HOURS")],
    )
    def test_current_session(self, hour, session):
        assert get_current_session(_at(hour)) == session

    def test_avoid_weekends_and_off_hours(self):
        assert should_avoid_trading(_at(10, day=8))  # Saturday
        assert should_avoid_trading(_at(22))
        assert not should_avoid_trading(_at(10))

    def test_minutes_until_next_kill_zone(self):
        assert get_minutes_until_next_kill_zone(_at(6, 30)) == 30
        assert get_minutes_until_next_kill_zone(_at(10)) == 120
        assert get_minutes_until_next_kill_zone(_at(23)) == 8 * 60


# ── Confirmation ─────────────────────────────────────────────────────────


class TestConfirmation:
    def test_body_ratio_zero_range(self):
        assert body_ratio(_make_candle(100, 100, 100, 100)) == 0.0

    def test_close_and_strong(self):
        medium = _make_candle(100, 101, 99.5, 100.6)  # body 0.6 of 1.5 range = 0.4
        assert has_close_confirmation(medium, "BUY")
        assert not has_strong_confirmation(medium, "BUY")
        assert not has_close_confirmation(medium, "SELL")

    def test_engulfing(self):
        prev = _make_candle(100.5, 100.7, 99.8, 100.0)
        current = _make_candle(99.9, 101.0, 99.8, 100.8)
        assert has_engulfing_confirmation(current, prev, "BUY")
        assert not has_engulfing_confirmation(current, prev, "SELL")

    def test_check_confirmation_dispatch(self):
        bearish = _make_candle(101, 101.2, 99.9, 100)
        assert check_confirmation("none", bearish, None, "BUY")
        assert not check_confirmation("close", bearish, None, "BUY")
        assert check_confirmation("strong", bearish, None, "SELL")
        assert not check_confirmation("engulf", bearish, None, "SELL")

    def test_rejection_wick(self):
        hammer = _make_candle(100.0, 100.2, 98.0, 100.2)
        assert has_rejection_wick(hammer, "BUY")
        assert not has_rejection_wick(hammer, "SELL")

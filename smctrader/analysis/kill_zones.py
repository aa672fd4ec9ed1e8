"""Kill zones — pure functions of a UTC timestamp.

Kill zones are the windows of elevated institutional activity.  Hours are
inclusive start, exclusive end:

    LONDON_OPEN        07:00–10:00  boost 0.15
    NY_OPEN            12:00–15:00  boost 0.15
    LONDON_NY_OVERLAP  12:00–16:00  boost 0.20  (highest priority)
    ASIAN              00:00–07:00  boost 0.05

Sessions are a coarser, non-overlapping partition of the day used to
decide whether to stand aside.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Literal, Optional

KillZoneType = Literal["LONDON_OPEN", "NY_OPEN", "LONDON_NY_OVERLAP", "ASIAN"]
Session = Literal["ASIAN", "LONDON", "OVERLAP", "NEW_YORK", "OFF_HOURS"]


@dataclass(frozen=True)
class KillZone:
    type: KillZoneType
    start_hour: int
    end_hour: int
    confidence_boost: float
    description: str


KILL_ZONES: dict[str, KillZone] = {
    "LONDON_OPEN": KillZone("LONDON_OPEN", 7, 10, 0.15, "London Open (07:00-10:00 UTC)"),
    "NY_OPEN": KillZone("NY_OPEN", 12, 15, 0.15, "New York Open (12:00-15:00 UTC)"),
    "LONDON_NY_OVERLAP": KillZone(
        "LONDON_NY_OVERLAP", 12, 16, 0.2, "London/NY Overlap (12:00-16:00 UTC)"
    ),
    "ASIAN": KillZone("ASIAN", 0, 7, 0.05, "Asian Session (00:00-07:00 UTC)"),
}

DEFAULT_KILL_ZONES: tuple[str, ...] = ("LONDON_OPEN", "NY_OPEN", "LONDON_NY_OVERLAP")

# Priority order for the single active zone
_PRIORITY = ("LONDON_NY_OVERLAP", "LONDON_OPEN", "NY_OPEN", "ASIAN")

# Checked in this order; OVERLAP first as the most specific band
_SESSIONS: tuple[tuple[Session, int, int], ...] = (
    ("OVERLAP", 12, 16),
    ("ASIAN", 0, 7),
    ("LONDON", 7, 12),
    ("NEW_YORK", 16, 21),
)

_SESSION_DESCRIPTIONS = {
    "ASIAN": "Asian Session (Low Volatility)",
    "LONDON": "London Session",
    "NEW_YORK": "New York Session",
    "OVERLAP": "London/NY Overlap (High Volatility)",
    "OFF_HOURS": "Off-Hours (Low Liquidity)",
}


def to_utc(time: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if time.tzinfo is None:
        return time
    return time.astimezone(timezone.utc)


def is_hour_in_range(hour: int, start: int, end: int) -> bool:
    """Inclusive start, exclusive end; ranges may wrap past midnight."""
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


def is_in_kill_zone(time: datetime, zones: Iterable[str] = DEFAULT_KILL_ZONES) -> bool:
    hour = to_utc(time).hour
    return any(
        is_hour_in_range(hour, KILL_ZONES[z].start_hour, KILL_ZONES[z].end_hour)
        for z in zones
    )


def get_active_kill_zone(time: datetime) -> Optional[KillZone]:
    """Highest-priority kill zone containing *time*, or ``None``."""
    hour = to_utc(time).hour
    for name in _PRIORITY:
        zone = KILL_ZONES[name]
        if is_hour_in_range(hour, zone.start_hour, zone.end_hour):
            return zone
    return None


def get_active_kill_zones(time: datetime) -> list[KillZone]:
    """Every kill zone containing *time*; the windows overlap."""
    hour = to_utc(time).hour
    return [
        z for z in KILL_ZONES.values()
        if is_hour_in_range(hour, z.start_hour, z.end_hour)
    ]


def get_kill_zone_bonus(time: datetime) -> float:
    zone = get_active_kill_zone(time)
    return zone.confidence_boost if zone else 0.0


def is_high_probability_time(time: datetime) -> bool:
    return is_in_kill_zone(time, DEFAULT_KILL_ZONES)


# ── Sessions ─────────────────────────────────────────────────────────────


def get_current_session(time: datetime) -> Session:
    hour = to_utc(time).hour
    for session, start, end in _SESSIONS:
        if is_hour_in_range(hour, start, end):
            return session
    return "OFF_HOURS"


def should_avoid_trading(time: datetime) -> bool:
    """Weekends and off-hours are avoided."""
    utc = to_utc(time)
    if utc.weekday() >= 5:
        return True
    return get_current_session(utc) == "OFF_HOURS"


def get_session_description(time: datetime) -> str:
    zone = get_active_kill_zone(time)
    if zone:
        return zone.description
    return _SESSION_DESCRIPTIONS[get_current_session(time)]


def get_minutes_until_next_kill_zone(time: datetime) -> int:
    """Minutes until the next London or New York open."""
    utc = to_utc(time)
    now = utc.hour * 60 + utc.minute
    starts = (
        KILL_ZONES["LONDON_OPEN"].start_hour * 60,
        KILL_ZONES["NY_OPEN"].start_hour * 60,
    )
    for start in starts:
        if start > now:
            return start - now
    return 24 * 60 - now + starts[0]

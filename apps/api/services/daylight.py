"""
Daylight and contextual slot classification.

Only slots a rider could actually use get scored, plus exactly one slot per
day on the dark side of the sport's session window (before sunrise for surf,
after sunset for wind) so the model can reason about "is it too dark already".
"""
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from core.config import settings
from services.criteria import field
from services.sports import ContextualSide, get_sport
from services.sun import SunTimes, get_sun_times

logger = logging.getLogger(__name__)

# Local-clock window used when a spot has no coordinates (inclusive hours).
FALLBACK_FIRST_HOUR = 9
FALLBACK_LAST_HOUR = 18


def ms_to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)


def spot_timezone(spot: Any) -> ZoneInfo:
    name = field(spot, "timezone") or settings.DEFAULT_SPOT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r} for spot {field(spot, 'name')}, using UTC")
        return ZoneInfo("UTC")


def _has_coordinates(spot: Any) -> bool:
    return field(spot, "latitude") is not None and field(spot, "longitude") is not None


def sun_times_for(timestamp_ms: int, spot: Any) -> Optional[SunTimes]:
    """
    Sun times for the slot's calendar date in the spot's timezone, or None
    when the spot has no coordinates.
    """
    if not _has_coordinates(spot):
        return None
    tz = spot_timezone(spot)
    local_date = ms_to_datetime(timestamp_ms).astimezone(tz).date()
    return get_sun_times(field(spot, "latitude"), field(spot, "longitude"), local_date, tz)


def is_daylight(timestamp_ms: int, spot: Any) -> bool:
    sun = sun_times_for(timestamp_ms, spot)
    if sun is None:
        local = ms_to_datetime(timestamp_ms).astimezone(spot_timezone(spot))
        return FALLBACK_FIRST_HOUR <= local.hour <= FALLBACK_LAST_HOUR
    if sun.polar_day:
        return True
    if sun.polar_night:
        return False
    return sun.sunrise_ms <= timestamp_ms <= sun.sunset_ms


def _slot_timestamp(slot: Any) -> int:
    if isinstance(slot, int):
        return slot
    return field(slot, "timestamp")


def is_contextual(timestamp_ms: int, spot: Any, sport: str, all_slots: Iterable[Any]) -> bool:
    """
    True if this slot is the single dark-side slot kept for temporal context.

    Surf-class: latest slot strictly before sunrise. Wind-class: earliest slot
    strictly after sunset. Spots without coordinates have none.
    """
    sun = sun_times_for(timestamp_ms, spot)
    if sun is None or sun.sunrise is None or sun.sunset is None:
        return False

    timestamps = [_slot_timestamp(s) for s in all_slots]
    if get_sport(sport).contextual_side is ContextualSide.BEFORE_SUNRISE:
        before = [ts for ts in timestamps if ts < sun.sunrise_ms]
        return bool(before) and max(before) == timestamp_ms

    after = [ts for ts in timestamps if ts > sun.sunset_ms]
    return bool(after) and min(after) == timestamp_ms

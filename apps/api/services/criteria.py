"""
Condition criteria matching for forecast slots.

Pure functions over slot/config objects. Both ORM rows and plain dicts are
accepted so the same checks run on stored slots and on scraper payloads.
"""
from typing import Any, Iterable, Optional

EPIC_MIN_SPEED_KN = 20.0
EPIC_MAX_GUST_SPREAD_KN = 10.0


def field(obj: Any, name: str, default: Any = None) -> Any:
    """Read `name` from an ORM row, dataclass or dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def is_direction_in_range(direction: Optional[float], range_from: Optional[float], range_to: Optional[float]) -> bool:
    """
    Inclusive angular range test in degrees.

    `range_from > range_to` is a wrap-around range crossing 0° (315 -> 45
    accepts 350 and 10). A missing bound disables the filter.
    """
    if range_from is None or range_to is None:
        return True
    if direction is None:
        return False
    direction = direction % 360
    if range_from <= range_to:
        return range_from <= direction <= range_to
    return direction >= range_from or direction <= range_to


def matches_wingfoil_criteria(slot: Any, config: Any) -> bool:
    """Wind strong enough, gusts high enough, blowing from a usable direction."""
    speed_ok = field(slot, "speed", 0) >= field(config, "min_speed", 0)
    gust_ok = field(slot, "gust", 0) >= field(config, "min_gust", 0)
    direction_ok = is_direction_in_range(
        field(slot, "direction"),
        field(config, "direction_from"),
        field(config, "direction_to"),
    )
    return speed_ok and gust_ok and direction_ok


def matches_surfing_criteria(slot: Any, config: Any) -> bool:
    """Swell within size bounds, long enough period, right direction and tide."""
    wave_height = field(slot, "wave_height", 0)
    has_swell = wave_height >= field(config, "min_swell_height", 0)
    max_swell = field(config, "max_swell_height")
    under_max = wave_height <= max_swell if max_swell else True
    has_period = field(slot, "wave_period", 0) >= field(config, "min_period", 0)

    swell_from = field(config, "swell_direction_from")
    swell_to = field(config, "swell_direction_to")
    if swell_from is not None and swell_to is not None and field(slot, "wave_direction") is None:
        direction_ok = True  # no wave direction in this scrape
    else:
        direction_ok = is_direction_in_range(field(slot, "wave_direction"), swell_from, swell_to)

    tide_ok = True
    optimal_tide = field(config, "optimal_tide")
    slot_tide = field(slot, "tide_type")
    if optimal_tide in ("high", "low") and slot_tide:
        tide_ok = slot_tide == optimal_tide

    return has_swell and under_max and has_period and direction_ok and tide_ok


def is_epic_conditions(slot: Any) -> bool:
    """Strong (>= 20 kn) and steady (gust spread <= 10 kn) wind."""
    speed = field(slot, "speed", 0)
    gust = field(slot, "gust", 0)
    return speed >= EPIC_MIN_SPEED_KN and (gust - speed) <= EPIC_MAX_GUST_SPREAD_KN


def find_ideal_slot(matching_slots: Iterable[Any], sport: str) -> Optional[Any]:
    """Best slot among those already matching criteria; first one wins ties."""
    from services.sports import get_sport

    slots = list(matching_slots)
    if not slots:
        return None
    key = get_sport(sport).ideal_key
    best = slots[0]
    for slot in slots[1:]:
        if key(slot) > key(best):
            best = slot
    return best

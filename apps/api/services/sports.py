"""
Sport variants.

Every sport the platform scores belongs to one of two classes that differ in
which criteria apply, what "best slot" means, and which side of the day the
contextual slot sits on. Adding a sport means registering one entry in
SPORTS; nothing else branches on sport strings.
"""
from enum import Enum
from typing import Any, Dict, Tuple

from core.exceptions import UnknownSportError
from services.criteria import field, matches_surfing_criteria, matches_wingfoil_criteria


class ContextualSide(str, Enum):
    BEFORE_SUNRISE = "before_sunrise"
    AFTER_SUNSET = "after_sunset"


class SportVariant:
    """Behaviour shared by one class of sports."""

    contextual_side: ContextualSide

    def __init__(self, tag: str):
        self.tag = tag

    def matches_criteria(self, slot: Any, config: Any) -> bool:
        raise NotImplementedError

    def ideal_key(self, slot: Any) -> float:
        raise NotImplementedError

    def describe_spot(self, spot_name: str, config: Any) -> str:
        """Spot characteristics text seeded into the spot+sport prompt layer."""
        return (
            f"This is {spot_name}. "
            f"Evaluate conditions for {self.tag} at this spot based on general best practices."
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.tag!r})"


class WindSport(SportVariant):
    """Wind-driven sport: sessions run into the evening, so context follows sunset."""

    contextual_side = ContextualSide.AFTER_SUNSET

    def matches_criteria(self, slot: Any, config: Any) -> bool:
        if config is None:
            return True
        return matches_wingfoil_criteria(slot, config)

    def ideal_key(self, slot: Any) -> float:
        return field(slot, "speed", 0)

    def describe_spot(self, spot_name: str, config: Any) -> str:
        parts = [f"This is {spot_name}. For {self.tag} at this spot: "]
        if field(config, "min_speed"):
            parts.append(f"Minimum wind speed required is {field(config, 'min_speed'):g} knots. ")
        if field(config, "min_gust"):
            parts.append(f"Minimum gust speed required is {field(config, 'min_gust'):g} knots. ")
        if field(config, "direction_from") is not None and field(config, "direction_to") is not None:
            parts.append(
                f"Optimal wind directions are from {field(config, 'direction_from'):g}° "
                f"to {field(config, 'direction_to'):g}° (wrapping through 0° if needed). "
            )
        parts.append("Consider wind consistency - steady wind is preferred over gusty conditions. ")
        parts.append("Higher wind speeds (15-25 knots) are ideal, but consistency and direction matter more than peak speed.")
        return "".join(parts)


class SurfSport(SportVariant):
    """Swell-driven sport: dawn sessions matter, so context precedes sunrise."""

    contextual_side = ContextualSide.BEFORE_SUNRISE

    def matches_criteria(self, slot: Any, config: Any) -> bool:
        if config is None:
            return True
        return matches_surfing_criteria(slot, config)

    def ideal_key(self, slot: Any) -> float:
        return field(slot, "wave_height", 0) * field(slot, "wave_period", 0)

    def describe_spot(self, spot_name: str, config: Any) -> str:
        parts = [f"This is {spot_name}. For {self.tag} at this spot: "]
        if field(config, "min_swell_height"):
            parts.append(f"Minimum swell height is {field(config, 'min_swell_height'):g}m. ")
        if field(config, "max_swell_height"):
            parts.append(
                f"Maximum swell height is {field(config, 'max_swell_height'):g}m "
                "(larger swells may be too powerful). "
            )
        if field(config, "min_period"):
            parts.append(
                f"Minimum wave period is {field(config, 'min_period'):g} seconds "
                "(longer periods indicate better quality swells). "
            )
        if field(config, "swell_direction_from") is not None and field(config, "swell_direction_to") is not None:
            parts.append(
                f"Optimal swell directions are from {field(config, 'swell_direction_from'):g}° "
                f"to {field(config, 'swell_direction_to'):g}°. "
            )
        optimal_tide = field(config, "optimal_tide")
        if optimal_tide == "high":
            parts.append("High tide is optimal for this spot. ")
        elif optimal_tide == "low":
            parts.append("Low tide is optimal for this spot. ")
        elif optimal_tide:
            parts.append("Both high and low tide can work at this spot. ")
        parts.append("Consider wave quality, consistency, and safety when scoring.")
        return "".join(parts)


SPORTS: Dict[str, SportVariant] = {
    "wingfoil": WindSport("wingfoil"),
    "kitesurfing": WindSport("kitesurfing"),
    "surfing": SurfSport("surfing"),
}

SUPPORTED_SPORTS: Tuple[str, ...] = tuple(SPORTS)


def get_sport(tag: str) -> SportVariant:
    try:
        return SPORTS[(tag or "").lower()]
    except KeyError:
        raise UnknownSportError(tag)

"""
Tide extremum to forecast slot matching.

Each stored tide event is a genuine high or low. A slot window either contains
one (attributed to exactly that slot through a shared `used_tide_times` set and
a half-open [start, end) window) or sits between two, in which case only the
direction of the tide is reported.
"""
from dataclasses import dataclass, field as dc_field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union
from uuid import UUID
from zoneinfo import ZoneInfo
import logging

from sqlalchemy.orm import Session

from core.config import settings
from services.criteria import field

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000


@dataclass(frozen=True)
class ExactTide:
    """A tide extremum that falls inside the slot window."""
    time: int
    type: str
    height: float
    time_str: str
    is_exact_time: bool = dc_field(default=True, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_exact_time": True,
            "time": self.time,
            "type": self.type,
            "height": self.height,
            "time_str": self.time_str,
        }


@dataclass(frozen=True)
class TideTrend:
    """No extremum inside the window: only the direction the tide is moving."""
    is_rising: bool
    is_exact_time: bool = dc_field(default=False, init=False)

    @property
    def is_falling(self) -> bool:
        return not self.is_rising

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_exact_time": False,
            "is_rising": self.is_rising,
            "is_falling": self.is_falling,
        }


TideResult = Union[ExactTide, TideTrend]


def format_tide_time(time_ms: int, tz: Optional[ZoneInfo] = None) -> str:
    tz = tz or ZoneInfo(settings.DEFAULT_SPOT_TIMEZONE)
    return datetime.fromtimestamp(time_ms / 1000.0, tz=timezone.utc).astimezone(tz).strftime("%H:%M")


def _more_extreme(a: Any, b: Any) -> Any:
    if field(a, "type") == "high":
        return b if field(b, "height") > field(a, "height") else a
    return b if field(b, "height") < field(a, "height") else a


def genuine_extrema(sorted_events: Sequence[Any]) -> List[Any]:
    """
    Collapse runs of adjacent same-type events to their most extreme member.

    Two neighbouring "high" rows cannot both be peaks; the lower one is a
    shoulder of the real peak. With fewer than two rows nothing can disprove an
    extremum, so everything is kept.
    """
    if len(sorted_events) < 2:
        return list(sorted_events)
    result: List[Any] = []
    for event in sorted_events:
        if result and field(result[-1], "type") == field(event, "type"):
            result[-1] = _more_extreme(result[-1], event)
        else:
            result.append(event)
    return result


def find_tide_for_slot(
    slot_start: int,
    slot_end: Optional[int],
    sorted_tide_events: Sequence[Any],
    used_tide_times: Set[int],
    tz: Optional[ZoneInfo] = None,
) -> Optional[TideResult]:
    """
    Match tide events to one slot window.

    Args:
        slot_start: window start, epoch ms (inclusive)
        slot_end: window end, epoch ms (exclusive); defaults to start + slot duration
        sorted_tide_events: events ascending by time (ORM rows or dicts)
        used_tide_times: times already attributed to earlier slots; updated in place
        tz: zone for `time_str`

    Returns:
        ExactTide, TideTrend, or None when there are no events on either side.
    """
    if slot_end is None:
        slot_end = slot_start + settings.DEFAULT_SLOT_DURATION_H * HOUR_MS

    events = genuine_extrema(sorted_tide_events)

    for event in events:
        event_time = field(event, "time")
        if slot_start <= event_time < slot_end and event_time not in used_tide_times:
            used_tide_times.add(event_time)
            return ExactTide(
                time=event_time,
                type=field(event, "type"),
                height=field(event, "height"),
                time_str=format_tide_time(event_time, tz),
            )

    tide_before = next((e for e in reversed(events) if field(e, "time") <= slot_start), None)
    tide_after = next((e for e in events if field(e, "time") >= slot_end), None)

    if tide_before is not None and tide_after is not None:
        return TideTrend(is_rising=field(tide_after, "height") > field(tide_before, "height"))
    if tide_before is not None:
        # After a low the water comes in; after a high it goes out.
        return TideTrend(is_rising=field(tide_before, "type") == "low")
    if tide_after is not None:
        return TideTrend(is_rising=field(tide_after, "type") == "high")
    return None


def match_tides_to_slots(
    slot_timestamps: Sequence[int],
    sorted_tide_events: Sequence[Any],
    tz: Optional[ZoneInfo] = None,
) -> Dict[int, Optional[TideResult]]:
    """Run the matcher over consecutive slots of one spot with a shared used set."""
    used: Set[int] = set()
    ordered = sorted(slot_timestamps)
    results: Dict[int, Optional[TideResult]] = {}
    for i, start in enumerate(ordered):
        end = ordered[i + 1] if i + 1 < len(ordered) else None
        results[start] = find_tide_for_slot(start, end, sorted_tide_events, used, tz)
    return results


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def get_sorted_tide_events(db: Session, spot_id: UUID) -> List[Any]:
    from models import TideEvent

    return (
        db.query(TideEvent)
        .filter(TideEvent.spot_id == spot_id)
        .order_by(TideEvent.time.asc())
        .all()
    )


def replace_tide_events(db: Session, spot_id: UUID, events: Iterable[Dict[str, Any]]) -> int:
    """Replace the spot's whole tide set. Caller commits."""
    from models import TideEvent

    deleted = (
        db.query(TideEvent)
        .filter(TideEvent.spot_id == spot_id)
        .delete(synchronize_session=False)
    )
    count = 0
    for event in events:
        db.add(TideEvent(
            spot_id=spot_id,
            time=int(event["time"]),
            type=event["type"],
            height=float(event["height"]),
        ))
        count += 1
    db.flush()
    logger.info(f"Replaced tide events for spot {spot_id}: removed {deleted}, stored {count}")
    return count

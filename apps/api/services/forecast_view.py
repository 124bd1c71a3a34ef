"""
Forecast read model for one spot and sport.

Assembles what a forecast page shows per slot: conditions, the effective
score for the viewer, the matched tide, and the criteria / epic / ideal flags.
Tides are matched here, at read time, against the spot's stored extrema.
"""
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import ForecastSlot, Spot, SpotConfig
from services.condition_scores import get_condition_scores
from services.criteria import find_ideal_slot, is_epic_conditions
from services.daylight import is_daylight, spot_timezone
from services.forecast_ingestion import SLOT_FIELDS, get_current_forecast_slots
from services.sports import get_sport
from services.tides import get_sorted_tide_events, match_tides_to_slots

logger = logging.getLogger(__name__)


def _score_dict(score: Any) -> Optional[Dict[str, Any]]:
    if score is None:
        return None
    return {
        "id": score.id,
        "score": score.score,
        "reasoning": score.reasoning,
        "factors": score.factors,
        "model": score.model,
        "scored_at": score.scored_at,
        "is_personalized": score.user_id is not None,
    }


def build_forecast_view(
    db: Session,
    spot_id: UUID,
    sport: str,
    user_id: Optional[str] = None,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Current forecast for a spot, one entry per slot, ascending by time.

    Raises NotFoundError for an unknown spot and UnknownSportError for an
    unregistered sport.
    """
    spot = db.get(Spot, spot_id)
    if spot is None:
        raise NotFoundError("Spot", str(spot_id))
    variant = get_sport(sport)

    slots: List[ForecastSlot] = get_current_forecast_slots(db, spot_id, now=now)
    config = (
        db.query(SpotConfig)
        .filter(SpotConfig.spot_id == spot_id, SpotConfig.sport == variant.tag)
        .first()
    )
    scores = {s.timestamp: s for s in get_condition_scores(db, spot_id, sport=variant.tag, user_id=user_id)}
    tz = spot_timezone(spot)
    tides = match_tides_to_slots([s.timestamp for s in slots], get_sorted_tide_events(db, spot_id), tz)

    ideal = find_ideal_slot([s for s in slots if variant.matches_criteria(s, config)], variant.tag)
    ideal_timestamp = ideal.timestamp if ideal is not None else None

    entries = []
    for slot in slots:
        tide = tides.get(slot.timestamp)
        entry = {field_name: getattr(slot, field_name) for field_name in SLOT_FIELDS}
        entry.update({
            "id": slot.id,
            "scrape_timestamp": slot.scrape_timestamp,
            "is_daylight": is_daylight(slot.timestamp, spot),
            "matches_criteria": variant.matches_criteria(slot, config),
            "is_epic": is_epic_conditions(slot),
            "is_ideal": slot.timestamp == ideal_timestamp,
            "tide": tide.to_dict() if tide is not None else None,
            "score": _score_dict(scores.get(slot.timestamp)),
        })
        entries.append(entry)

    return {
        "spot_id": spot.id,
        "spot_name": spot.name,
        "sport": variant.tag,
        "timezone": str(tz),
        "slots": entries,
    }

"""
Forecast scrape ingestion.

Every scrape is kept as its own generation of slots (keyed by
scrape_timestamp). A scrape that fails validation is still recorded with its
error and its slots are stored, but it never becomes the current generation
and nothing is queued for scoring.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.config import settings
from models import ForecastSlot, Scrape, Spot, now_ms
from services.daylight import spot_timezone

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000

SLOT_FIELDS = (
    "timestamp",
    "speed",
    "gust",
    "direction",
    "wave_height",
    "wave_period",
    "wave_direction",
    "tide_height",
    "tide_type",
    "tide_time",
)


@dataclass(frozen=True)
class ScrapeValidation:
    is_valid: bool
    error_message: Optional[str] = None


def validate_scrape(slots: Sequence[Dict[str, Any]], now: Optional[int] = None) -> ScrapeValidation:
    """Enough slots, some in the future, and at least a day of future coverage."""
    now = now if now is not None else now_ms()

    if len(slots) < settings.SCRAPE_MIN_SLOTS:
        return ScrapeValidation(False, f"Insufficient slots: {len(slots)} < {settings.SCRAPE_MIN_SLOTS}")

    timestamps = [int(s["timestamp"]) for s in slots]
    if not any(ts > now for ts in timestamps):
        return ScrapeValidation(False, "No future forecast data found")

    if max(timestamps) < now + settings.SCRAPE_MIN_FUTURE_HOURS * HOUR_MS:
        return ScrapeValidation(False, "Insufficient future forecast coverage")

    return ScrapeValidation(True)


def save_forecast_slots(
    db: Session,
    spot_id: UUID,
    scrape_timestamp: int,
    slots: Sequence[Dict[str, Any]],
    now: Optional[int] = None,
    enqueue: bool = True,
) -> Dict[str, Any]:
    """
    Record a scrape and its slots, then queue scoring for a valid scrape.

    Commits before enqueueing so workers always see the new rows.
    """
    validation = validate_scrape(slots, now=now)

    scrape = Scrape(
        spot_id=spot_id,
        scrape_timestamp=scrape_timestamp,
        is_successful=validation.is_valid,
        slots_count=len(slots),
        error_message=validation.error_message,
    )
    db.add(scrape)

    rows = [
        ForecastSlot(spot_id=spot_id, scrape_timestamp=scrape_timestamp, **{k: s.get(k) for k in SLOT_FIELDS})
        for s in slots
    ]
    db.add_all(rows)
    db.commit()

    if validation.is_valid:
        logger.info(f"Stored scrape for spot {spot_id}: {len(rows)} slots")
        if enqueue and rows:
            from tasks.scoring_tasks import enqueue_scoring_jobs

            enqueue_scoring_jobs(spot_id, scrape_timestamp, [row.id for row in rows])
    else:
        logger.warning(f"Scrape for spot {spot_id} failed validation: {validation.error_message}")

    return {
        "scrape_id": scrape.id,
        "is_successful": validation.is_valid,
        "error_message": validation.error_message,
        "slots_count": len(rows),
    }


def _latest_generation(db: Session, spot_id: UUID) -> Optional[int]:
    successful = (
        db.query(Scrape.scrape_timestamp)
        .filter(Scrape.spot_id == spot_id, Scrape.is_successful.is_(True))
        .order_by(Scrape.scrape_timestamp.desc())
        .first()
    )
    if successful:
        return successful[0]
    # No successful scrape yet: fall back to the newest stored slots.
    newest = (
        db.query(ForecastSlot.scrape_timestamp)
        .filter(ForecastSlot.spot_id == spot_id)
        .order_by(ForecastSlot.scrape_timestamp.desc())
        .first()
    )
    return newest[0] if newest else None


def get_current_forecast_slots(db: Session, spot_id: UUID, now: Optional[int] = None) -> List[ForecastSlot]:
    """
    Slots of the current generation, ascending by timestamp.

    Earlier hours of today drop out of newer scrapes, so today's slots from
    older generations fill in any timestamps the latest one lacks.
    """
    target = _latest_generation(db, spot_id)
    if target is None:
        return []

    current = (
        db.query(ForecastSlot)
        .filter(ForecastSlot.spot_id == spot_id, ForecastSlot.scrape_timestamp == target)
        .all()
    )
    by_timestamp: Dict[int, ForecastSlot] = {slot.timestamp: slot for slot in current}

    spot = db.get(Spot, spot_id)
    tz = spot_timezone(spot) if spot is not None else timezone.utc
    now = now if now is not None else now_ms()
    today = datetime.fromtimestamp(now / 1000.0, tz=timezone.utc).astimezone(tz).date()
    day_start = int(datetime(today.year, today.month, today.day, tzinfo=tz).timestamp() * 1000)
    tomorrow = today + timedelta(days=1)
    day_end = int(datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=tz).timestamp() * 1000)

    older = (
        db.query(ForecastSlot)
        .filter(
            ForecastSlot.spot_id == spot_id,
            ForecastSlot.scrape_timestamp < target,
            ForecastSlot.timestamp >= day_start,
            ForecastSlot.timestamp < day_end,
        )
        .order_by(ForecastSlot.scrape_timestamp.asc())
        .all()
    )
    fill: Dict[int, ForecastSlot] = {}
    for slot in older:
        if slot.timestamp not in by_timestamp:
            fill[slot.timestamp] = slot
    by_timestamp.update(fill)

    return [by_timestamp[ts] for ts in sorted(by_timestamp)]

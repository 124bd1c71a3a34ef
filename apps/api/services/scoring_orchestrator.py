"""
Scoring orchestration.

Turns a scrape into an ordered work list of (slot, sport) pairs and feeds it
through the scorer one pair at a time. Only daylight slots plus each sport's
single contextual slot are scored. A failed pair is counted and skipped; it
never aborts the run.
"""
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import UnknownSportError
from core.logging import scoring_fields
from models import ConditionScore, ForecastSlot, ScoringPrompt, Spot
from services.daylight import is_contextual, is_daylight
from services.sports import get_sport

logger = logging.getLogger(__name__)

WorkItem = Tuple[ForecastSlot, str, bool]


def _empty_summary() -> Dict[str, int]:
    return {"success_count": 0, "failure_count": 0, "total": 0}


def _spot_sports(spot: Spot, only: Optional[Iterable[str]] = None) -> List[str]:
    wanted = set(only) if only else None
    sports = []
    for sport in spot.sports or []:
        if wanted is not None and sport not in wanted:
            continue
        try:
            get_sport(sport)
        except UnknownSportError:
            logger.warning(f"Spot {spot.id} lists unknown sport {sport!r}, skipping")
            continue
        sports.append(sport)
    return sports


def _load_slots(db: Session, spot_id: UUID, scrape_timestamp: int, slot_ids: Optional[Sequence[UUID]]) -> Tuple[List[ForecastSlot], List[ForecastSlot]]:
    """(slots to consider in input order, all slots of the scrape)."""
    scrape_slots = (
        db.query(ForecastSlot)
        .filter(ForecastSlot.spot_id == spot_id, ForecastSlot.scrape_timestamp == scrape_timestamp)
        .order_by(ForecastSlot.timestamp.asc())
        .all()
    )
    if slot_ids is None:
        return scrape_slots, scrape_slots

    by_id = {slot.id: slot for slot in scrape_slots}
    missing = [sid for sid in slot_ids if sid not in by_id]
    if missing:
        extra = db.query(ForecastSlot).filter(ForecastSlot.id.in_(missing)).all()
        by_id.update({slot.id: slot for slot in extra})
    return [by_id[sid] for sid in slot_ids if sid in by_id], scrape_slots


def build_work_list(
    spot: Spot,
    slots: Sequence[ForecastSlot],
    all_slots: Sequence[ForecastSlot],
    sports: Sequence[str],
) -> List[WorkItem]:
    """
    Pairs to score, slot order then sport order.

    Each item is (slot, sport, is_contextual). Daylight is computed once per
    slot; contextuality per (slot, sport).
    """
    timestamps = [slot.timestamp for slot in all_slots]
    work: List[WorkItem] = []
    for slot in slots:
        daylight = is_daylight(slot.timestamp, spot)
        for sport in sports:
            contextual = is_contextual(slot.timestamp, spot, sport, timestamps)
            if daylight or contextual:
                work.append((slot, sport, contextual and not daylight))
    return work


def _run(
    db: Session,
    work: Sequence[Tuple[ForecastSlot, str, bool, Optional[str]]],
    scorer: Any,
    spot_id: UUID,
    sleep: Callable[[float], None],
    delay: float,
) -> Dict[str, int]:
    summary = _empty_summary()
    summary["total"] = len(work)
    for index, (slot, sport, contextual, user_id) in enumerate(work):
        try:
            result = scorer.score_single_slot(slot.id, sport, spot_id, user_id=user_id, is_contextual=contextual)
        except Exception as e:
            db.rollback()
            logger.error(
                f"Scoring crashed for slot {slot.id} ({sport}), continuing: {e}",
                exc_info=True,
                extra=scoring_fields(spot_id, sport, slot.id, user_id),
            )
            result = None
        if result is None:
            summary["failure_count"] += 1
        else:
            summary["success_count"] += 1
        if index < len(work) - 1 and delay > 0:
            sleep(delay)
    return summary


def _default_scorer(db: Session, sleep: Callable[[float], None]) -> Any:
    from services.llm_scoring import ConditionScorer

    return ConditionScorer(db, sleep=sleep)


def score_forecast_slots(
    db: Session,
    spot_id: UUID,
    scrape_timestamp: int,
    slot_ids: Optional[Sequence[UUID]] = None,
    scorer: Any = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, int]:
    """
    System-score a scrape's daylight and contextual slots.

    Returns {"success_count", "failure_count", "total"}.
    """
    spot = db.get(Spot, spot_id)
    if spot is None:
        logger.warning(f"Spot {spot_id} not found, nothing to score")
        return _empty_summary()

    slots, all_slots = _load_slots(db, spot_id, scrape_timestamp, slot_ids)
    work = [
        (slot, sport, contextual, None)
        for slot, sport, contextual in build_work_list(spot, slots, all_slots, _spot_sports(spot))
    ]
    logger.info(f"Scoring {len(work)} (slot, sport) pairs for spot {spot.name}")

    summary = _run(
        db, work, scorer or _default_scorer(db, sleep), spot_id, sleep, settings.SCORING_INTER_CALL_DELAY_S
    )
    logger.info(
        f"System scoring done for spot {spot.name}: "
        f"{summary['success_count']}/{summary['total']} succeeded, {summary['failure_count']} failed",
        extra=scoring_fields(spot_id, scrape_timestamp=scrape_timestamp, **summary),
    )
    return summary


def personalized_users(db: Session, spot_id: UUID, sport: str) -> List[str]:
    """Users with an active personalized prompt for the spot and sport."""
    rows = (
        db.query(ScoringPrompt.user_id)
        .filter(
            ScoringPrompt.spot_id == spot_id,
            ScoringPrompt.sport == sport,
            ScoringPrompt.user_id.isnot(None),
            ScoringPrompt.is_active.is_(True),
        )
        .distinct()
        .all()
    )
    return sorted(row[0] for row in rows)


def score_personalized_slots(
    db: Session,
    spot_id: UUID,
    scrape_timestamp: int,
    slot_ids: Optional[Sequence[UUID]] = None,
    scorer: Any = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, int]:
    """Same candidates as the system run, scored once per personalized user."""
    spot = db.get(Spot, spot_id)
    if spot is None:
        logger.warning(f"Spot {spot_id} not found, nothing to score")
        return _empty_summary()

    slots, all_slots = _load_slots(db, spot_id, scrape_timestamp, slot_ids)
    sports = _spot_sports(spot)
    users_by_sport = {sport: personalized_users(db, spot_id, sport) for sport in sports}
    if not any(users_by_sport.values()):
        logger.info(f"No personalized prompts for spot {spot.name}")
        return _empty_summary()

    work = [
        (slot, sport, contextual, user_id)
        for slot, sport, contextual in build_work_list(spot, slots, all_slots, sports)
        for user_id in users_by_sport[sport]
    ]
    logger.info(f"Personalized scoring: {len(work)} (slot, sport, user) items for spot {spot.name}")

    summary = _run(
        db, work, scorer or _default_scorer(db, sleep), spot_id, sleep, settings.SCORING_INTER_CALL_DELAY_S
    )
    logger.info(
        f"Personalized scoring done for spot {spot.name}: "
        f"{summary['success_count']}/{summary['total']} succeeded, {summary['failure_count']} failed",
        extra=scoring_fields(spot_id, scrape_timestamp=scrape_timestamp, **summary),
    )
    return summary


def score_unscored_slots(
    db: Session,
    spot_ids: Optional[Sequence[UUID]] = None,
    sports: Optional[Sequence[str]] = None,
    start: Optional[int] = None,
    end: Optional[int] = None,
    scorer: Any = None,
    sleep: Callable[[float], None] = time.sleep,
    now: Optional[int] = None,
) -> Dict[str, int]:
    """
    Backfill: system-score current-generation candidates that have no live
    system score. Optional filters narrow spots, sports and the [start, end]
    timestamp range.
    """
    from services.forecast_ingestion import get_current_forecast_slots

    query = db.query(Spot)
    if spot_ids:
        query = query.filter(Spot.id.in_(list(spot_ids)))
    spots = query.order_by(Spot.name.asc()).all()

    scorer = scorer or _default_scorer(db, sleep)
    totals = _empty_summary()
    for spot in spots:
        slots = get_current_forecast_slots(db, spot.id, now=now)
        candidates = [
            s for s in slots
            if (start is None or s.timestamp >= start) and (end is None or s.timestamp <= end)
        ]
        if not candidates:
            continue

        scored = {
            (row.slot_id, row.sport)
            for row in db.query(ConditionScore.slot_id, ConditionScore.sport)
            .filter(
                ConditionScore.slot_id.in_([s.id for s in candidates]),
                ConditionScore.user_id.is_(None),
            )
            .all()
        }
        work = [
            (slot, sport, contextual, None)
            for slot, sport, contextual in build_work_list(spot, candidates, slots, _spot_sports(spot, sports))
            if (slot.id, sport) not in scored
        ]
        if not work:
            continue

        logger.info(f"Backfilling {len(work)} unscored pairs for spot {spot.name}")
        summary = _run(db, work, scorer, spot.id, sleep, settings.SCORING_INTER_CALL_DELAY_S)
        for key in totals:
            totals[key] += summary[key]

    return totals

"""
Condition score persistence and reconciliation.

A (slot, sport) pair has at most one live system score (user_id NULL). Writing
a new system score archives the old row into ScoreHistory and patches the live
row in place, so its id stays stable for anything that referenced it.
Personalized scores are inserted alongside and never touched by system writes.
"""
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import ConditionScore, ScoreHistory, ScoringLog, now_ms

logger = logging.getLogger(__name__)

# One retry is enough: after a lost insert race the winner's row exists and
# the second pass takes the replace path.
MAX_WRITE_ATTEMPTS = 2


def _live_system_score(db: Session, slot_id: UUID, sport: str) -> Optional[ConditionScore]:
    return (
        db.query(ConditionScore)
        .filter(
            ConditionScore.slot_id == slot_id,
            ConditionScore.sport == sport,
            ConditionScore.user_id.is_(None),
        )
        .with_for_update()
        .first()
    )


def _archive(db: Session, existing: ConditionScore, prompts: Any, replaced_at: int) -> ScoreHistory:
    history = ScoreHistory(
        score_id=existing.id,
        slot_id=existing.slot_id,
        spot_id=existing.spot_id,
        timestamp=existing.timestamp,
        sport=existing.sport,
        score=existing.score,
        reasoning=existing.reasoning,
        factors=existing.factors,
        model=existing.model,
        scored_at=existing.scored_at,
        system_sport_prompt_id=getattr(prompts, "system_sport_prompt_id", None),
        scoring_prompt_id=getattr(prompts, "scoring_prompt_id", None),
        system_prompt=getattr(prompts, "system_prompt", None),
        spot_prompt=getattr(prompts, "spot_prompt", None),
        temporal_prompt=getattr(prompts, "temporal_prompt", None),
        replaced_at=replaced_at,
    )
    db.add(history)
    return history


def save_condition_score(
    db: Session,
    *,
    slot_id: UUID,
    spot_id: UUID,
    timestamp: int,
    sport: str,
    score: int,
    reasoning: str,
    factors: Optional[Dict[str, Any]],
    model: str,
    scored_at: int,
    user_id: Optional[str] = None,
    prompts: Any = None,
) -> UUID:
    """
    Persist a score and return its id.

    `prompts` is the ResolvedPrompts used for this call; its ids and texts tag
    the archived row when a system score is replaced. Commits on success.
    """
    values = dict(score=score, reasoning=reasoning, factors=factors, model=model, scored_at=scored_at)

    if user_id is not None:
        row = ConditionScore(
            slot_id=slot_id, spot_id=spot_id, timestamp=timestamp, sport=sport, user_id=user_id, **values
        )
        db.add(row)
        db.commit()
        return row.id

    attempt = 0
    while True:
        attempt += 1
        try:
            existing = _live_system_score(db, slot_id, sport)
            if existing is not None:
                _archive(db, existing, prompts, replaced_at=now_ms())
                for key, value in values.items():
                    setattr(existing, key, value)
                db.commit()
                logger.debug(f"Replaced system score {existing.id} for slot {slot_id} ({sport})")
                return existing.id

            row = ConditionScore(
                slot_id=slot_id, spot_id=spot_id, timestamp=timestamp, sport=sport, user_id=None, **values
            )
            db.add(row)
            db.commit()
            return row.id
        except IntegrityError:
            db.rollback()
            if attempt >= MAX_WRITE_ATTEMPTS:
                raise
            logger.info(f"Concurrent system score insert for slot {slot_id} ({sport}), retrying as replace")


def get_condition_scores(
    db: Session,
    spot_id: UUID,
    sport: Optional[str] = None,
    user_id: Optional[str] = None,
) -> List[ConditionScore]:
    """
    Effective scores for a spot, one per slot timestamp (per sport when no
    `sport` is given), ascending by timestamp.

    Keyed by timestamp rather than slot id so a score survives a re-scrape
    that produced new slot rows for the same time. Per key the most recently
    created system score is the base; a personalized score for `user_id`
    replaces it.
    """
    query = db.query(ConditionScore).filter(ConditionScore.spot_id == spot_id)
    if sport:
        query = query.filter(ConditionScore.sport == sport)

    system_rows = (
        query.filter(ConditionScore.user_id.is_(None))
        .order_by(ConditionScore.created_at.asc())
        .all()
    )
    effective: Dict[Tuple[str, int], ConditionScore] = {}
    for row in system_rows:
        effective[(row.sport, row.timestamp)] = row

    if user_id is not None:
        personal_rows = (
            query.filter(ConditionScore.user_id == user_id)
            .order_by(ConditionScore.created_at.asc())
            .all()
        )
        for row in personal_rows:
            effective[(row.sport, row.timestamp)] = row

    return sorted(effective.values(), key=lambda row: (row.timestamp, row.sport))


def get_score_history(db: Session, score_id: UUID) -> List[ScoreHistory]:
    return (
        db.query(ScoreHistory)
        .filter(ScoreHistory.score_id == score_id)
        .order_by(ScoreHistory.replaced_at.asc())
        .all()
    )


def get_scoring_log(db: Session, score_id: UUID) -> Optional[ScoringLog]:
    """Latest provenance record for a score."""
    return (
        db.query(ScoringLog)
        .filter(ScoringLog.score_id == score_id)
        .order_by(ScoringLog.scored_at.desc())
        .first()
    )

"""
Conditions API

Scrape and tide ingestion plus the read side of the scoring pipeline:
effective scores, the assembled forecast, and per-score provenance.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from core.database import get_db
from core.exceptions import NotFoundError, UnknownSportError, ValidationError
from models import Spot
from schemas import (
    ConditionScoreResponse,
    ForecastResponse,
    ScoringLogResponse,
    ScrapeCreate,
    ScrapeResult,
    TideReplace,
    TideReplaceResult,
    UnscoredScoringQueued,
    UnscoredScoringRequest,
)
from services.condition_scores import get_condition_scores, get_scoring_log
from services.forecast_ingestion import save_forecast_slots
from services.forecast_view import build_forecast_view
from services.sports import SUPPORTED_SPORTS, get_sport
from services.tides import replace_tide_events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["conditions"])


def _get_spot_or_404(db: Session, spot_id: UUID) -> Spot:
    spot = db.get(Spot, spot_id)
    if spot is None:
        raise NotFoundError("Spot", str(spot_id))
    return spot


def _check_sport(sport: Optional[str]) -> Optional[str]:
    if sport is None:
        return None
    try:
        return get_sport(sport).tag
    except UnknownSportError:
        raise ValidationError(
            f"Unknown sport '{sport}'. Supported: {', '.join(SUPPORTED_SPORTS)}", field="sport"
        )


@router.post("/spots/{spot_id}/scrapes", response_model=ScrapeResult, status_code=status.HTTP_201_CREATED)
def ingest_scrape(spot_id: UUID, payload: ScrapeCreate, db: Session = Depends(get_db)):
    """
    Store a scrape. Valid scrapes are queued for scoring; invalid ones are
    recorded with their error and not scored.
    """
    _get_spot_or_404(db, spot_id)
    result = save_forecast_slots(
        db,
        spot_id,
        payload.scrape_timestamp,
        [slot.model_dump() for slot in payload.slots],
    )
    return ScrapeResult(**result)


@router.put("/spots/{spot_id}/tides", response_model=TideReplaceResult)
def put_tides(spot_id: UUID, payload: TideReplace, db: Session = Depends(get_db)):
    """Replace the spot's tide extrema."""
    _get_spot_or_404(db, spot_id)
    stored = replace_tide_events(db, spot_id, [event.model_dump() for event in payload.events])
    return TideReplaceResult(spot_id=spot_id, stored=stored)


@router.get("/spots/{spot_id}/scores", response_model=List[ConditionScoreResponse])
def list_scores(
    spot_id: UUID,
    sport: Optional[str] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Effective scores, one per slot time."""
    _get_spot_or_404(db, spot_id)
    return get_condition_scores(db, spot_id, sport=_check_sport(sport), user_id=user_id)


@router.get("/spots/{spot_id}/forecast", response_model=ForecastResponse)
def get_forecast(
    spot_id: UUID,
    sport: str = Query(...),
    user_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    return build_forecast_view(db, spot_id, _check_sport(sport), user_id=user_id)


@router.get("/scores/{score_id}/log", response_model=ScoringLogResponse)
def get_score_log(score_id: UUID, db: Session = Depends(get_db)):
    log = get_scoring_log(db, score_id)
    if log is None:
        raise NotFoundError("Scoring log", str(score_id))
    return log


@router.post(
    "/admin/scoring/unscored",
    response_model=UnscoredScoringQueued,
    status_code=status.HTTP_202_ACCEPTED,
)
def trigger_unscored_scoring(payload: UnscoredScoringRequest):
    """Queue a backfill of system scores for current slots that have none."""
    from tasks.scoring_tasks import score_unscored_slots_task

    for sport in payload.sports or []:
        _check_sport(sport)

    result = score_unscored_slots_task.delay(
        spot_ids=[str(s) for s in payload.spot_ids] if payload.spot_ids else None,
        sports=payload.sports,
        start=payload.start,
        end=payload.end,
    )
    logger.info(f"Queued unscored-slot backfill task {result.id}")
    return UnscoredScoringQueued(task_id=result.id)

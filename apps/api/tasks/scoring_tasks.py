"""
Condition scoring tasks.

A valid scrape enqueues two jobs: system scoring right away at high priority,
then personalized scoring after a short countdown at lower priority. Each job
walks its whole work list in this worker process; per-pair failures are
tallied in the returned summary rather than failing the task.
"""
from typing import Dict, List, Optional, Sequence
from uuid import UUID
import logging

from celery import Task
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db_sync
from tasks import celery_app
from services import scoring_orchestrator

logger = logging.getLogger(__name__)

SYSTEM_PRIORITY = 9
PERSONALIZED_PRIORITY = 3


def _uuid_list(values: Optional[Sequence[str]]) -> Optional[List[UUID]]:
    if values is None:
        return None
    return [UUID(str(v)) for v in values]


@celery_app.task(name="tasks.score_forecast_slots", bind=True)
def score_forecast_slots_task(
    self: Task, spot_id: str, scrape_timestamp: int, slot_ids: Optional[List[str]] = None
) -> Dict:
    """System-score one scrape's candidate slots."""
    db: Session = get_db_sync()
    try:
        summary = scoring_orchestrator.score_forecast_slots(
            db, UUID(spot_id), scrape_timestamp, _uuid_list(slot_ids)
        )
        return {"status": "success", "spot_id": spot_id, **summary}
    except Exception as e:
        logger.error(f"System scoring task failed for spot {spot_id}: {e}", exc_info=True)
        raise
    finally:
        db.close()


@celery_app.task(name="tasks.score_personalized_slots", bind=True)
def score_personalized_slots_task(
    self: Task, spot_id: str, scrape_timestamp: int, slot_ids: Optional[List[str]] = None
) -> Dict:
    """Score the same candidates for every user with a personalized prompt."""
    db: Session = get_db_sync()
    try:
        summary = scoring_orchestrator.score_personalized_slots(
            db, UUID(spot_id), scrape_timestamp, _uuid_list(slot_ids)
        )
        return {"status": "success", "spot_id": spot_id, **summary}
    except Exception as e:
        logger.error(f"Personalized scoring task failed for spot {spot_id}: {e}", exc_info=True)
        raise
    finally:
        db.close()


@celery_app.task(name="tasks.score_unscored_slots")
def score_unscored_slots_task(
    spot_ids: Optional[List[str]] = None,
    sports: Optional[List[str]] = None,
    start: Optional[int] = None,
    end: Optional[int] = None,
) -> Dict:
    """Backfill system scores for current slots that have none."""
    db: Session = get_db_sync()
    try:
        summary = scoring_orchestrator.score_unscored_slots(
            db, spot_ids=_uuid_list(spot_ids), sports=sports, start=start, end=end
        )
        return {"status": "success", **summary}
    except Exception as e:
        logger.error(f"Unscored-slot backfill failed: {e}", exc_info=True)
        raise
    finally:
        db.close()


def enqueue_scoring_jobs(spot_id: UUID, scrape_timestamp: int, slot_ids: Sequence[UUID]) -> Dict[str, str]:
    """Queue system then personalized scoring for a freshly stored scrape."""
    args = [str(spot_id), scrape_timestamp, [str(sid) for sid in slot_ids]]
    system = score_forecast_slots_task.apply_async(args=args, countdown=0, priority=SYSTEM_PRIORITY)
    personalized = score_personalized_slots_task.apply_async(
        args=args,
        countdown=settings.PERSONALIZED_SCORING_DELAY_S,
        priority=PERSONALIZED_PRIORITY,
    )
    logger.info(
        f"Queued scoring for spot {spot_id}: {len(slot_ids)} slots",
        extra={"extra_fields": {"system_task_id": system.id, "personalized_task_id": personalized.id}},
    )
    return {"system_task_id": system.id, "personalized_task_id": personalized.id}

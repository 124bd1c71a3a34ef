"""
Scoring task tests.

Celery is never contacted: apply_async is patched and task bodies are called
directly with the orchestrator patched out.
"""
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest


class TestEnqueueScoringJobs:

    def test_system_first_then_personalized(self):
        from tasks import scoring_tasks

        spot_id = uuid4()
        slot_ids = [uuid4(), uuid4()]
        with patch.object(scoring_tasks.score_forecast_slots_task, "apply_async") as system, \
                patch.object(scoring_tasks.score_personalized_slots_task, "apply_async") as personalized:
            system.return_value.id = "sys-1"
            personalized.return_value.id = "pers-1"
            result = scoring_tasks.enqueue_scoring_jobs(spot_id, 1234, slot_ids)

        expected_args = [str(spot_id), 1234, [str(s) for s in slot_ids]]
        system.assert_called_once_with(args=expected_args, countdown=0, priority=9)
        personalized.assert_called_once_with(args=expected_args, countdown=10, priority=3)
        assert result == {"system_task_id": "sys-1", "personalized_task_id": "pers-1"}


class TestTaskBodies:

    def test_system_task_returns_summary_and_closes_session(self):
        from tasks import scoring_tasks

        db = MagicMock()
        summary = {"success_count": 3, "failure_count": 1, "total": 4}
        spot_id = uuid4()
        slot_id = uuid4()
        with patch.object(scoring_tasks, "get_db_sync", return_value=db), \
                patch.object(scoring_tasks.scoring_orchestrator, "score_forecast_slots", return_value=summary) as run:
            result = scoring_tasks.score_forecast_slots_task.run(str(spot_id), 99, [str(slot_id)])

        run.assert_called_once_with(db, spot_id, 99, [slot_id])
        assert result == {"status": "success", "spot_id": str(spot_id), **summary}
        db.close.assert_called_once()

    def test_failure_is_reraised_and_session_closed(self):
        from tasks import scoring_tasks

        db = MagicMock()
        with patch.object(scoring_tasks, "get_db_sync", return_value=db), \
                patch.object(
                    scoring_tasks.scoring_orchestrator, "score_personalized_slots", side_effect=RuntimeError("db down")
                ):
            with pytest.raises(RuntimeError):
                scoring_tasks.score_personalized_slots_task.run(str(uuid4()), 99)

        db.close.assert_called_once()

    def test_unscored_task_passes_filters(self):
        from tasks import scoring_tasks

        db = MagicMock()
        spot_id = uuid4()
        summary = {"success_count": 0, "failure_count": 0, "total": 0}
        with patch.object(scoring_tasks, "get_db_sync", return_value=db), \
                patch.object(scoring_tasks.scoring_orchestrator, "score_unscored_slots", return_value=summary) as run:
            result = scoring_tasks.score_unscored_slots_task.run(
                spot_ids=[str(spot_id)], sports=["surfing"], start=1, end=2
            )

        run.assert_called_once_with(db, spot_ids=[spot_id], sports=["surfing"], start=1, end=2)
        assert result["status"] == "success"

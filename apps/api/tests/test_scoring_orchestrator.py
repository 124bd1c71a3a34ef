"""
Scoring orchestrator tests.

The scorer is a MagicMock; only work-list selection, ordering, pacing and
tallying are under test here.
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from models import ConditionScore, ScoringPrompt
from services.scoring_orchestrator import (
    personalized_users,
    score_forecast_slots,
    score_personalized_slots,
    score_unscored_slots,
)
from services.sun import SunTimes
from scoring_helpers import add_slots, ms

LISBON = ZoneInfo("Europe/Lisbon")
# March 10th: Lisbon is on UTC+0
MIDNIGHT = datetime(2025, 3, 10, 0, 0, tzinfo=LISBON)


@pytest.fixture(autouse=True)
def pinned_sun(monkeypatch):
    """Sunrise 07:12, sunset 18:47 local."""
    def fake_sun_times(latitude, longitude, day, tz):
        return SunTimes(
            sunrise=datetime(day.year, day.month, day.day, 7, 12, tzinfo=LISBON).astimezone(timezone.utc),
            sunset=datetime(day.year, day.month, day.day, 18, 47, tzinfo=LISBON).astimezone(timezone.utc),
        )

    monkeypatch.setattr("services.daylight.get_sun_times", fake_sun_times)


@pytest.fixture
def day_slots(db_session, spot):
    return add_slots(db_session, spot, MIDNIGHT, 20, scrape_timestamp=ms(MIDNIGHT))


def recording_scorer(fail_on=()):
    """Fake scorer that records calls and fails for the given (hour, sport) pairs."""
    calls = []

    def score_single_slot(slot_id, sport, spot_id, user_id=None, is_contextual=False):
        calls.append((slot_id, sport, user_id, is_contextual))
        return None if (slot_id, sport) in fail_on else {"score": 50, "reasoning": "ok", "factors": None}

    scorer = MagicMock()
    scorer.score_single_slot.side_effect = score_single_slot
    scorer.calls = calls
    return scorer


def hour_of(slots, slot_id):
    slot = next(s for s in slots if s.id == slot_id)
    return datetime.fromtimestamp(slot.timestamp / 1000, tz=LISBON).hour


class TestScoreForecastSlots:

    def test_work_list_selection_and_order(self, db_session, spot, day_slots):
        scorer = recording_scorer()
        sleeps = []
        summary = score_forecast_slots(
            db_session, spot.id, ms(MIDNIGHT), [s.id for s in day_slots], scorer=scorer, sleep=sleeps.append
        )

        pairs = [(hour_of(day_slots, sid), sport, ctx) for sid, sport, _, ctx in scorer.calls]
        expected = [(7, "surfing", True)]
        for hour in range(8, 19):
            expected += [(hour, "wingfoil", False), (hour, "surfing", False)]
        expected.append((19, "wingfoil", True))

        assert pairs == expected
        assert summary == {"success_count": 24, "failure_count": 0, "total": 24}
        assert sleeps == [0.1] * 23

    def test_failures_are_tallied_not_fatal(self, db_session, spot, day_slots):
        fail_on = {(day_slots[8].id, "wingfoil"), (day_slots[12].id, "surfing")}
        scorer = recording_scorer(fail_on=fail_on)
        summary = score_forecast_slots(
            db_session, spot.id, ms(MIDNIGHT), [s.id for s in day_slots], scorer=scorer, sleep=lambda s: None
        )
        assert summary == {"success_count": 22, "failure_count": 2, "total": 24}
        assert len(scorer.calls) == 24

    def test_exception_from_one_pair_does_not_stop_the_run(self, db_session, spot, day_slots):
        calls = []

        def score_single_slot(slot_id, sport, spot_id, user_id=None, is_contextual=False):
            calls.append(slot_id)
            if len(calls) == 1:
                raise RuntimeError("db went away")
            return {"score": 50, "reasoning": "ok", "factors": None}

        scorer = MagicMock()
        scorer.score_single_slot.side_effect = score_single_slot
        summary = score_forecast_slots(
            db_session, spot.id, ms(MIDNIGHT), [s.id for s in day_slots], scorer=scorer, sleep=lambda s: None
        )

        assert len(calls) == 24
        assert summary == {"success_count": 23, "failure_count": 1, "total": 24}

    def test_input_slot_order_is_kept(self, db_session, spot, day_slots):
        scorer = recording_scorer()
        ids = [day_slots[10].id, day_slots[9].id]
        score_forecast_slots(db_session, spot.id, ms(MIDNIGHT), ids, scorer=scorer, sleep=lambda s: None)
        assert [hour_of(day_slots, sid) for sid, *_ in scorer.calls] == [10, 10, 9, 9]

    def test_unknown_sport_on_spot_is_skipped(self, db_session, spot, day_slots):
        spot.sports = ["wingfoil", "parasailing"]
        db_session.commit()
        scorer = recording_scorer()
        summary = score_forecast_slots(
            db_session, spot.id, ms(MIDNIGHT), [day_slots[10].id], scorer=scorer, sleep=lambda s: None
        )
        assert summary["total"] == 1
        assert scorer.calls[0][1] == "wingfoil"

    def test_spot_without_coordinates_uses_clock_window(self, db_session, spot_without_coordinates):
        slots = add_slots(db_session, spot_without_coordinates, MIDNIGHT, 24, scrape_timestamp=1)
        scorer = recording_scorer()
        summary = score_forecast_slots(
            db_session, spot_without_coordinates.id, 1, [s.id for s in slots], scorer=scorer, sleep=lambda s: None
        )
        # 09:00-18:00 inclusive, wingfoil only, no contextual slot
        assert summary["total"] == 10
        assert not any(ctx for *_, ctx in scorer.calls)

    def test_missing_spot(self, db_session):
        from uuid import uuid4

        scorer = recording_scorer()
        assert score_forecast_slots(db_session, uuid4(), 0, [], scorer=scorer) == {
            "success_count": 0, "failure_count": 0, "total": 0,
        }


class TestScorePersonalizedSlots:

    def test_one_pass_per_active_user(self, db_session, spot, day_slots):
        db_session.add_all([
            ScoringPrompt(spot_id=spot.id, sport="wingfoil", user_id="u1", spot_prompt="mine"),
            ScoringPrompt(spot_id=spot.id, sport="wingfoil", user_id="u2", spot_prompt="off", is_active=False),
            ScoringPrompt(spot_id=spot.id, sport="wingfoil", spot_prompt="system"),
        ])
        db_session.commit()

        assert personalized_users(db_session, spot.id, "wingfoil") == ["u1"]

        scorer = recording_scorer()
        summary = score_personalized_slots(
            db_session, spot.id, ms(MIDNIGHT), [s.id for s in day_slots], scorer=scorer, sleep=lambda s: None
        )
        # 11 daylight slots + the 19:00 contextual slot, wingfoil only
        assert summary["total"] == 12
        assert {(sport, user) for _, sport, user, _ in scorer.calls} == {("wingfoil", "u1")}

    def test_nothing_to_do_without_personalized_prompts(self, db_session, spot, day_slots):
        scorer = recording_scorer()
        summary = score_personalized_slots(
            db_session, spot.id, ms(MIDNIGHT), [s.id for s in day_slots], scorer=scorer
        )
        assert summary["total"] == 0
        scorer.score_single_slot.assert_not_called()


class TestScoreUnscoredSlots:

    def test_only_pairs_without_a_live_system_score(self, db_session, spot, day_slots):
        from models import Scrape

        db_session.add(Scrape(
            spot_id=spot.id, scrape_timestamp=ms(MIDNIGHT), is_successful=True, slots_count=20
        ))
        db_session.add(ConditionScore(
            slot_id=day_slots[10].id, spot_id=spot.id, timestamp=day_slots[10].timestamp,
            sport="wingfoil", score=60, reasoning="done", model="m", scored_at=1,
        ))
        db_session.commit()

        scorer = recording_scorer()
        summary = score_unscored_slots(
            db_session,
            sports=["wingfoil"],
            start=day_slots[9].timestamp,
            end=day_slots[11].timestamp,
            scorer=scorer,
            sleep=lambda s: None,
            now=ms(MIDNIGHT),
        )
        assert summary["total"] == 2
        assert sorted(hour_of(day_slots, sid) for sid, *_ in scorer.calls) == [9, 11]

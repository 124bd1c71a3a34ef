"""
Daylight and contextual slot classification tests.

The pinned scenario fixes sunrise/sunset so the selection rules can be
checked against exact clock times; the real-sun scenario runs the full
date lookup against astral.
"""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from services.daylight import is_contextual, is_daylight
from services.sun import SunTimes, get_sun_times
from scoring_helpers import ms

LISBON = ZoneInfo("Europe/Lisbon")
SPOT = {"name": "Guincho", "latitude": 38.70, "longitude": -9.42, "timezone": "Europe/Lisbon"}
NO_COORDS = {"name": "Lagoa", "timezone": "Europe/Lisbon"}


def local_ms(hour, minute=0, day=10):
    # March 10th: Lisbon is on UTC+0
    return ms(datetime(2025, 3, day, hour, minute, tzinfo=LISBON))


@pytest.fixture
def pinned_sun(monkeypatch):
    """Sunrise 07:12, sunset 18:47 local, whatever the date."""
    def fake_sun_times(latitude, longitude, day, tz):
        return SunTimes(
            sunrise=datetime(day.year, day.month, day.day, 7, 12, tzinfo=LISBON).astimezone(timezone.utc),
            sunset=datetime(day.year, day.month, day.day, 18, 47, tzinfo=LISBON).astimezone(timezone.utc),
        )

    monkeypatch.setattr("services.daylight.get_sun_times", fake_sun_times)


class TestScenario:
    """Twenty hourly slots 00:00-19:00 local."""

    slots = [local_ms(h) for h in range(20)]

    def test_daylight_slots(self, pinned_sun):
        daylight_hours = [h for h in range(20) if is_daylight(local_ms(h), SPOT)]
        assert daylight_hours == list(range(8, 19))

    def test_surf_contextual_slot_is_last_before_sunrise(self, pinned_sun):
        contextual = [h for h in range(20) if is_contextual(local_ms(h), SPOT, "surfing", self.slots)]
        # 07:00 is still before the 07:12 sunrise
        assert contextual == [7]

    def test_wind_contextual_slot_is_first_after_sunset(self, pinned_sun):
        contextual = [h for h in range(20) if is_contextual(local_ms(h), SPOT, "wingfoil", self.slots)]
        assert contextual == [19]

    def test_wind_has_no_contextual_slot_when_scrape_ends_before_sunset(self, pinned_sun):
        slots = [local_ms(h) for h in range(18)]
        assert not any(is_contextual(ts, SPOT, "wingfoil", slots) for ts in slots)

    def test_accepts_slot_objects(self, pinned_sun):
        slot_dicts = [{"timestamp": ts} for ts in self.slots]
        assert is_contextual(local_ms(7), SPOT, "surfing", slot_dicts)


class TestWithoutCoordinates:

    def test_local_clock_window(self):
        assert not is_daylight(local_ms(8, 59), NO_COORDS)
        assert is_daylight(local_ms(9), NO_COORDS)
        assert is_daylight(local_ms(18, 30), NO_COORDS)
        assert not is_daylight(local_ms(19), NO_COORDS)

    def test_window_follows_spot_timezone(self):
        # 09:30 in Lisbon summer time is 08:30 UTC
        summer = ms(datetime(2025, 7, 1, 9, 30, tzinfo=LISBON))
        assert is_daylight(summer, NO_COORDS)

    def test_never_contextual(self):
        slots = [local_ms(h) for h in range(24)]
        assert not any(is_contextual(ts, NO_COORDS, "surfing", slots) for ts in slots)


class TestSunTimes:

    def test_lisbon_midsummer(self):
        sun = get_sun_times(38.70, -9.42, date(2025, 6, 21), LISBON)
        # Roughly 06:13 and 21:06 local (UTC+1)
        assert datetime(2025, 6, 21, 5, 0, tzinfo=timezone.utc) < sun.sunrise < datetime(2025, 6, 21, 5, 30, tzinfo=timezone.utc)
        assert datetime(2025, 6, 21, 19, 50, tzinfo=timezone.utc) < sun.sunset < datetime(2025, 6, 21, 20, 20, tzinfo=timezone.utc)
        assert sun.sunrise_ms < sun.sunset_ms

    def test_events_fall_on_the_requested_local_date(self):
        sun = get_sun_times(38.70, -9.42, date(2024, 3, 10), LISBON)
        assert sun.sunrise.astimezone(LISBON).date() == date(2024, 3, 10)
        assert sun.sunset.astimezone(LISBON).date() == date(2024, 3, 10)

    def test_polar_day_and_night(self):
        svalbard = ZoneInfo("Arctic/Longyearbyen")
        summer = get_sun_times(78.2, 15.6, date(2025, 6, 21), svalbard)
        winter = get_sun_times(78.2, 15.6, date(2025, 12, 21), svalbard)

        assert summer.polar_day and summer.sunrise is None
        assert winter.polar_night and winter.sunset is None

    def test_polar_day_is_daylight_and_has_no_contextual_slot(self):
        spot = {"latitude": 78.2, "longitude": 15.6, "timezone": "Arctic/Longyearbyen"}
        midnight = ms(datetime(2025, 6, 21, 0, tzinfo=timezone.utc))
        assert is_daylight(midnight, spot)
        assert not is_contextual(midnight, spot, "wingfoil", [midnight])


class TestRealSunScenario:
    """
    Twenty hourly slots 00:00-19:00 on 2024-03-10 at Guincho with computed sun
    times (sunrise about 06:57, sunset about 18:40 local, UTC+0).
    """

    slots = [ms(datetime(2024, 3, 10, h, tzinfo=LISBON)) for h in range(20)]

    def hours(self, predicate):
        return [h for h, ts in enumerate(self.slots) if predicate(ts)]

    def test_daylight_slots(self):
        assert self.hours(lambda ts: is_daylight(ts, SPOT)) == list(range(7, 19))

    def test_surf_contextual_slot(self):
        assert self.hours(lambda ts: is_contextual(ts, SPOT, "surfing", self.slots)) == [6]

    def test_midnight_is_not_after_sunset(self):
        # The 00:00 slot belongs to March 10th, whose sunset is still ahead
        assert self.hours(lambda ts: is_contextual(ts, SPOT, "wingfoil", self.slots)) == [19]

    def test_summer_small_hours_use_the_same_day(self):
        # Lisbon is UTC+1 in June; 00:00 and 01:00 local must still map to June 1st
        slots = [ms(datetime(2024, 6, 1, h, tzinfo=LISBON)) for h in range(24)]
        wind = [h for h, ts in enumerate(slots) if is_contextual(ts, SPOT, "kitesurfing", slots)]
        assert len(wind) == 1
        assert wind[0] >= 21

"""
Sunrise / sunset lookup.

Thin wrapper over astral: sun events for one calendar date in the spot's own
timezone, returned as UTC datetimes.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Optional

from astral import Observer
from astral.sun import elevation, sunrise, sunset


@dataclass(frozen=True)
class SunTimes:
    """Sun events for one local day. Both None during polar day/night."""
    sunrise: Optional[datetime]
    sunset: Optional[datetime]
    polar_day: bool = False
    polar_night: bool = False

    @property
    def sunrise_ms(self) -> Optional[int]:
        return int(self.sunrise.timestamp() * 1000) if self.sunrise else None

    @property
    def sunset_ms(self) -> Optional[int]:
        return int(self.sunset.timestamp() * 1000) if self.sunset else None


def get_sun_times(latitude: float, longitude: float, day: date, tz: tzinfo = timezone.utc) -> SunTimes:
    """Sunrise and sunset (UTC datetimes) for calendar `day` as observed in `tz`."""
    observer = Observer(latitude=latitude, longitude=longitude)
    try:
        rise = sunrise(observer, date=day, tzinfo=tz)
        set_ = sunset(observer, date=day, tzinfo=tz)
    except ValueError:
        # astral raises when the sun never crosses the horizon that day
        noon = datetime(day.year, day.month, day.day, 12, tzinfo=tz)
        if elevation(observer, noon) > 0:
            return SunTimes(sunrise=None, sunset=None, polar_day=True)
        return SunTimes(sunrise=None, sunset=None, polar_night=True)

    return SunTimes(sunrise=rise.astimezone(timezone.utc), sunset=set_.astimezone(timezone.utc))

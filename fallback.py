"""Placeholder ephemeris used when Swiss Ephemeris is unavailable."""

from datetime import datetime
from typing import Callable, List, Optional, Sequence

import pytz

from ephemeris import EphemerisProvider, T
from natal import RawHouses, RawPosition

UNIX_EPOCH_JD = 2440587.5


class PlaceholderEphemeris(EphemerisProvider):
    """Every body at 0° Aries with zero speed, and no houses.

    Must never raise: it is the last resort of the orchestrator.
    """

    name = 'fallback'

    def set_ephemeris_path(self, path: Optional[str]) -> None:
        pass

    def with_location(self, longitude: float, latitude: float,
                      fn: Callable[[], T], altitude: float = 0.0) -> T:
        return fn()

    def julian_day(self, moment_utc: datetime) -> float:
        if moment_utc.tzinfo is None:
            moment_utc = moment_utc.replace(tzinfo=pytz.UTC)
        return UNIX_EPOCH_JD + moment_utc.timestamp() / 86400.0

    def resolve_bodies(self, julian_day: float, longitude: float, latitude: float,
                       bodies: Sequence[str]) -> List[RawPosition]:
        return [RawPosition(name=name, longitude=0.0, speed=0.0) for name in bodies]

    def resolve_houses(self, julian_day: float, latitude: float, longitude: float,
                       system: str) -> Optional[RawHouses]:
        return None

"""Ephemeris providers consumed by the chart orchestrator."""

import logging
import os
import threading
from datetime import datetime
from typing import Callable, List, Optional, Sequence, TypeVar

import swisseph as swe

from exceptions import ProviderError
from natal import ChartConfig, RawHouses, RawPosition

logger = logging.getLogger(__name__)

T = TypeVar('T')


def list_ephemeris_files(path: Optional[str]) -> List[str]:
    """Names of the ``.se1`` files in *path*; empty when the directory is missing."""
    if not path or not os.path.isdir(path):
        return []
    try:
        return sorted(f for f in os.listdir(path) if f.endswith('.se1'))
    except OSError as exc:
        logger.warning("Cannot read ephemeris path %s: %s", path, exc)
        return []


def has_asteroid_files(path: Optional[str]) -> bool:
    """Chiron is only computable with a ``seas_*.se1`` file at hand."""
    return any(f.startswith('seas_') for f in list_ephemeris_files(path))


class EphemerisProvider:
    """Contract shared by the Swiss Ephemeris provider and its fallback.

    Raw values are only meaningful inside :meth:`with_location`: the
    topocentric location is set on entry and must not be relied upon after
    the callable returns.
    """

    name = 'provider'

    def set_ephemeris_path(self, path: Optional[str]) -> None:
        raise NotImplementedError

    def with_location(self, longitude: float, latitude: float,
                      fn: Callable[[], T], altitude: float = 0.0) -> T:
        raise NotImplementedError

    def julian_day(self, moment_utc: datetime) -> float:
        raise NotImplementedError

    def resolve_bodies(self, julian_day: float, longitude: float, latitude: float,
                       bodies: Sequence[str]) -> List[RawPosition]:
        raise NotImplementedError

    def resolve_houses(self, julian_day: float, latitude: float, longitude: float,
                       system: str) -> Optional[RawHouses]:
        raise NotImplementedError


class SwissEphemeris(EphemerisProvider):
    """Swiss Ephemeris through pyswisseph.

    The C library keeps the ephemeris path and the topocentric location in
    process-global state, so every request runs under one process-wide lock.
    """

    name = 'swisseph'

    BODY_IDS = {
        'Sun': swe.SUN,
        'Moon': swe.MOON,
        'Mercury': swe.MERCURY,
        'Venus': swe.VENUS,
        'Mars': swe.MARS,
        'Jupiter': swe.JUPITER,
        'Saturn': swe.SATURN,
        'Uranus': swe.URANUS,
        'Neptune': swe.NEPTUNE,
        'Pluto': swe.PLUTO,
        'Mean Node': swe.MEAN_NODE,
        'True Node': swe.TRUE_NODE,
        'Chiron': swe.CHIRON,
        ChartConfig.LILITH: swe.MEAN_APOG,
    }

    _lock = threading.Lock()

    def __init__(self, ephemeris_path: Optional[str] = None):
        self._use_moshier = True
        self.set_ephemeris_path(ephemeris_path)

    def set_ephemeris_path(self, path: Optional[str]) -> None:
        self._use_moshier = True

        if not path:
            logger.info("No ephemeris path configured, using Moshier ephemeris")
            return

        files = list_ephemeris_files(path)
        if files:
            with self._lock:
                swe.set_ephe_path(path)
            self._use_moshier = False
            logger.info("Using Swiss Ephemeris files from %s (%s)", path, ", ".join(files))
        else:
            logger.info("No .se1 files in %s, using Moshier ephemeris", path)

    def with_location(self, longitude: float, latitude: float,
                      fn: Callable[[], T], altitude: float = 0.0) -> T:
        with self._lock:
            swe.set_topo(longitude, latitude, altitude)
            return fn()

    def julian_day(self, moment_utc: datetime) -> float:
        dt = moment_utc
        hour_decimal = dt.hour + dt.minute / 60.0 + dt.second / 3600.0 + dt.microsecond / 3600000000.0
        return swe.julday(dt.year, dt.month, dt.day, hour_decimal)

    def _get_calc_flags(self) -> int:
        flags = swe.FLG_MOSEPH if self._use_moshier else swe.FLG_SWIEPH
        return flags | swe.FLG_SPEED | swe.FLG_TOPOCTR

    def resolve_bodies(self, julian_day: float, longitude: float, latitude: float,
                       bodies: Sequence[str]) -> List[RawPosition]:
        """Compute each body; a failing body is reported, not defaulted.

        The observer location comes from the enclosing :meth:`with_location`.
        """
        flags = self._get_calc_flags()
        results = []

        for name in bodies:
            body_id = self.BODY_IDS.get(name)
            if body_id is None:
                results.append(RawPosition(name=name, error=f"Unknown body: {name}"))
                continue
            try:
                values, _ = swe.calc_ut(julian_day, body_id, flags)
            except swe.Error as exc:
                logger.warning("Swiss Ephemeris failed for %s at JD %.5f: %s", name, julian_day, exc)
                results.append(RawPosition(name=name, error=str(exc)))
                continue
            results.append(RawPosition(name=name, longitude=values[0], speed=values[3]))

        return results

    def resolve_houses(self, julian_day: float, latitude: float, longitude: float,
                       system: str) -> Optional[RawHouses]:
        code = ChartConfig.HOUSE_SYSTEMS.get(system)
        if code is None:
            raise ProviderError(f"Unknown house system: {system}")
        try:
            cusps, ascmc = swe.houses_ex(julian_day, latitude, longitude, code)
        except swe.Error as exc:
            logger.warning("%s houses unavailable at latitude %.4f: %s", system, latitude, exc)
            return None
        return RawHouses(ascendant=ascmc[0], mc=ascmc[1], cusps=tuple(cusps[:12]))

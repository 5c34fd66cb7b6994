"""
Pytest configuration for the Natal Wheel API suite.

- Puts the repository root on sys.path so the flat modules import without
  an install.
- Registers Hypothesis profiles for local dev and CI.
- Provides scripted ephemeris providers for orchestrator and API tests.
"""

import os
import sys

import pytest
from hypothesis import settings, HealthCheck

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from natal import RawHouses, RawPosition  # noqa: E402


settings.register_profile(
    "dev",
    settings(deadline=None, max_examples=100, suppress_health_check=[HealthCheck.too_slow]),
)
settings.register_profile(
    "ci",
    settings(deadline=None, max_examples=300, suppress_health_check=[HealthCheck.too_slow]),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


PLACIDUS_CUSPS = (
    100.0, 125.5, 152.25, 183.0, 218.0, 251.75,
    280.0, 305.5, 332.25, 3.0, 38.0, 71.75,
)


class ScriptedEphemeris:
    """Provider returning fixed longitudes; records every call it receives."""

    def __init__(self, name="scripted", longitudes=None, speeds=None,
                 houses=None, errors=None, raise_on_bodies=None):
        self.name = name
        self.longitudes = longitudes or {}
        self.speeds = speeds or {}
        self.houses = houses
        self.errors = errors or {}
        self.raise_on_bodies = raise_on_bodies
        self.calls = []
        self.location = None

    def set_ephemeris_path(self, path):
        self.calls.append(("set_ephemeris_path", path))

    def with_location(self, longitude, latitude, fn, altitude=0.0):
        self.calls.append(("with_location", longitude, latitude))
        self.location = (longitude, latitude)
        try:
            return fn()
        finally:
            self.location = None

    def julian_day(self, moment_utc):
        self.calls.append(("julian_day", moment_utc))
        return 2451545.0

    def resolve_bodies(self, julian_day, longitude, latitude, bodies):
        assert self.location is not None, "resolve_bodies called outside with_location"
        self.calls.append(("resolve_bodies", tuple(bodies)))
        if self.raise_on_bodies is not None:
            raise self.raise_on_bodies
        return [
            RawPosition(name=name, error=self.errors[name]) if name in self.errors
            else RawPosition(name=name,
                             longitude=self.longitudes.get(name, 0.0),
                             speed=self.speeds.get(name, 1.0))
            for name in bodies
        ]

    def resolve_houses(self, julian_day, latitude, longitude, system):
        assert self.location is not None, "resolve_houses called outside with_location"
        self.calls.append(("resolve_houses", system))
        if isinstance(self.houses, Exception):
            raise self.houses
        return self.houses


@pytest.fixture
def placidus_houses():
    return RawHouses(ascendant=PLACIDUS_CUSPS[0], mc=PLACIDUS_CUSPS[9], cusps=PLACIDUS_CUSPS)


@pytest.fixture
def scripted():
    return ScriptedEphemeris

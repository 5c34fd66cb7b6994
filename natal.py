"""
Natal chart derivation engine.

Turns raw ephemeris output (body longitude and speed, house cusp longitudes)
into zodiac signs, elements, retrograde flags, house placements and aspects,
and composes one chart per request from an ephemeris provider and its
placeholder fallback.

Nothing here talks to Swiss Ephemeris directly: providers are passed in and
only reached through their ``with_location`` scope.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytz

from exceptions import (
    FallbackExhaustedError,
    InvalidCoordinatesError,
    InvalidDateTimeError,
    InvalidTimezoneError,
    ProviderError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AspectDefinition:
    """Definition of a major aspect."""
    angle: float
    name: str
    symbol: str


@dataclass(frozen=True)
class RawPosition:
    """Longitude and speed of one body as returned by an ephemeris provider.

    ``error`` is set instead of the numbers when the provider could not
    compute the body.
    """
    name: str
    longitude: float = 0.0
    speed: float = 0.0
    error: Optional[str] = None


@dataclass(frozen=True)
class RawHouses:
    """Ascendant, MC and the 12 cusps as returned by an ephemeris provider."""
    ascendant: float
    mc: float
    cusps: Tuple[float, ...]


class ChartConfig:
    """Shared configuration for chart calculations."""

    DEFAULT_ORB = 8.0
    MAX_ORB = 30.0
    MC_EPSILON = 1e-6

    BODY_NAMES = (
        'Sun', 'Moon', 'Mercury', 'Venus', 'Mars', 'Jupiter', 'Saturn',
        'Uranus', 'Neptune', 'Pluto', 'Mean Node', 'True Node', 'Chiron',
    )
    LILITH = 'Lilith'

    GLYPHS = {
        'Sun': '☉',
        'Moon': '☾',
        'Mercury': '☿',
        'Venus': '♀',
        'Mars': '♂',
        'Jupiter': '♃',
        'Saturn': '♄',
        'Uranus': '♅',
        'Neptune': '♆',
        'Pluto': '♇',
        'Mean Node': '☊',
        'True Node': '☋',
        'Chiron': '⚷',
        'Lilith': '⚸',
    }

    # Only systems whose tenth cusp is the MC
    HOUSE_SYSTEMS = {
        'Placidus': b'P',
        'Koch': b'K',
        'Equal (MC)': b'D',
        'Campanus': b'C',
        'Regiomontanus': b'R',
        'Porphyry': b'O',
        'Alcabitius': b'B',
        'Topocentric': b'T',
    }

    HOUSE_LABELS = ('Asc', 'II', 'III', 'IC', 'V', 'VI',
                    'Desc', 'VIII', 'IX', 'MC', 'XI', 'XII')

    ELEMENTS = ('Fire', 'Earth', 'Air', 'Water')

    SIGNS = [
        {'name': 'Aries', 'symbol': '♈', 'element': 'Fire'},
        {'name': 'Taurus', 'symbol': '♉', 'element': 'Earth'},
        {'name': 'Gemini', 'symbol': '♊', 'element': 'Air'},
        {'name': 'Cancer', 'symbol': '♋', 'element': 'Water'},
        {'name': 'Leo', 'symbol': '♌', 'element': 'Fire'},
        {'name': 'Virgo', 'symbol': '♍', 'element': 'Earth'},
        {'name': 'Libra', 'symbol': '♎', 'element': 'Air'},
        {'name': 'Scorpio', 'symbol': '♏', 'element': 'Water'},
        {'name': 'Sagittarius', 'symbol': '♐', 'element': 'Fire'},
        {'name': 'Capricorn', 'symbol': '♑', 'element': 'Earth'},
        {'name': 'Aquarius', 'symbol': '♒', 'element': 'Air'},
        {'name': 'Pisces', 'symbol': '♓', 'element': 'Water'},
    ]

    # Evaluation order: the first match ends the search for a pair
    ASPECTS = (
        AspectDefinition(0, 'Conjunction', '☌'),
        AspectDefinition(180, 'Opposition', '☍'),
        AspectDefinition(120, 'Trine', '△'),
        AspectDefinition(90, 'Square', '□'),
        AspectDefinition(60, 'Sextile', '⚹'),
    )


_ELEMENT_BY_SIGN = {sign['name']: sign['element'] for sign in ChartConfig.SIGNS}


def normalize_degrees(deg: float) -> float:
    """Normalize degrees to the 0-360 range."""
    if not math.isfinite(deg):
        raise ValueError(f"Cannot normalize non-finite angle: {deg}")
    return ((deg % 360) + 360) % 360


def angular_distance(pos1: float, pos2: float) -> float:
    """
    Calculate the shortest angular distance between two positions.
    Always returns a positive value 0-180.
    """
    diff = abs(normalize_degrees(pos1) - normalize_degrees(pos2))
    return 360 - diff if diff > 180 else diff


def sign_of(longitude: float) -> str:
    """Zodiac sign of an ecliptic longitude; 30° boundaries open the next sign."""
    return ChartConfig.SIGNS[int(normalize_degrees(longitude) // 30)]['name']


def element_of(sign: str) -> str:
    return _ELEMENT_BY_SIGN[sign]


def format_dms(longitude: float) -> str:
    """Format the position inside the current sign as ``D°MM'SS"``."""
    pos = normalize_degrees(longitude) % 30
    deg = math.floor(pos)
    min_float = (pos - deg) * 60
    minutes = math.floor(min_float)
    seconds = math.floor((min_float - minutes) * 60 + 0.5)
    if seconds == 60:
        seconds = 0
        minutes += 1
    if minutes == 60:
        minutes = 0
        deg += 1
    if deg == 30:
        # Rounding must not push a position into the next sign
        return "29°59'59\""
    return f"{deg}°{minutes:02d}'{seconds:02d}\""


def parse_timezone(timezone: Optional[Union[str, pytz.tzinfo.BaseTzInfo]]):
    if timezone is None:
        return None
    if isinstance(timezone, str):
        try:
            return pytz.timezone(timezone)
        except pytz.exceptions.UnknownTimeZoneError:
            raise InvalidTimezoneError(f"Unknown timezone: {timezone}")
    return timezone


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 date/time string."""
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise InvalidDateTimeError(f"Invalid date: {value!r}, expected ISO 8601")


def to_utc(dt: datetime, timezone=None) -> datetime:
    """Convert a datetime to UTC; naive values are read in ``timezone`` or UTC."""
    if dt.tzinfo is not None:
        return dt.astimezone(pytz.UTC)
    tz = parse_timezone(timezone)
    if tz is not None:
        try:
            local_dt = tz.localize(dt, is_dst=None)
        except pytz.exceptions.AmbiguousTimeError:
            local_dt = tz.localize(dt, is_dst=False)
        except pytz.exceptions.NonExistentTimeError:
            local_dt = tz.localize(dt, is_dst=True)
        return local_dt.astimezone(pytz.UTC)
    return dt.replace(tzinfo=pytz.UTC)


@dataclass(frozen=True)
class BodyPosition:
    name: str
    longitude: float
    speed: float
    sign: str
    element: str
    retrograde: bool
    house: Optional[int] = None


@dataclass(frozen=True)
class HouseCusp:
    name: str
    number: int
    longitude: float
    sign: str


@dataclass(frozen=True)
class Houses:
    """The 12 cusps of one house system.

    The angles are the cusps themselves (Asc = I, IC = IV, Desc = VII,
    MC = X), never separately computed values.
    """
    system: str
    cusps: Tuple[HouseCusp, ...]

    @property
    def ascendant(self) -> HouseCusp:
        return self.cusps[0]

    @property
    def ic(self) -> HouseCusp:
        return self.cusps[3]

    @property
    def descendant(self) -> HouseCusp:
        return self.cusps[6]

    @property
    def mc(self) -> HouseCusp:
        return self.cusps[9]


@dataclass(frozen=True)
class Aspect:
    body_a: str
    body_b: str
    kind: str
    symbol: str
    exact_angle: float
    orb: float


@dataclass(frozen=True)
class ChartResult:
    """Complete chart for one request. Never mutated after assembly."""
    moment_utc: datetime
    julian_day: float
    latitude: float
    longitude: float
    house_system: str
    orb: float
    source: str
    bodies: Tuple[BodyPosition, ...]
    houses: Optional[Houses]
    aspects: Tuple[Aspect, ...]
    element_tally: Dict[str, int] = field(default_factory=dict)


def make_position(name: str, longitude: float, speed: float,
                  house: Optional[int] = None) -> BodyPosition:
    longitude = normalize_degrees(longitude)
    sign = sign_of(longitude)
    return BodyPosition(
        name=name,
        longitude=longitude,
        speed=speed,
        sign=sign,
        element=element_of(sign),
        retrograde=speed < 0,
        house=house,
    )


def resolve_positions(bodies: Sequence[str],
                      raw: Sequence[RawPosition]) -> List[BodyPosition]:
    """
    Build one BodyPosition per requested body, in the requested order.

    Every body the provider failed on (error, missing record, non-finite
    value) is collected; if any failed a single ProviderError names them all.
    """
    by_name = {record.name: record for record in raw}
    failed: List[Tuple[str, str]] = []
    positions = []

    for name in bodies:
        record = by_name.get(name)
        if record is None:
            failed.append((name, 'missing from provider output'))
        elif record.error is not None:
            failed.append((name, record.error))
        elif not (math.isfinite(record.longitude) and math.isfinite(record.speed)):
            failed.append((name, 'non-finite longitude or speed'))
        else:
            positions.append(make_position(name, record.longitude, record.speed))

    if failed:
        detail = '; '.join(f"{name}: {reason}" for name, reason in failed)
        raise ProviderError(
            f"Ephemeris failed for {len(failed)} of {len(bodies)} bodies ({detail})",
            bodies=[name for name, _ in failed],
        )
    return positions


def derive_houses(raw: Optional[RawHouses], system: str = 'Placidus') -> Optional[Houses]:
    """
    Label the provider's cusps Asc, II ... XII starting at the Ascendant.

    Returns None when the provider produced no houses. A cusp list that is
    not 12 long, non-finite values, or an MC that disagrees with cusp X
    raise ProviderError.
    """
    if raw is None:
        return None

    cusps = tuple(raw.cusps)
    if len(cusps) != 12:
        raise ProviderError(f"Expected 12 house cusps, got {len(cusps)}")
    if not all(math.isfinite(value) for value in (raw.ascendant, raw.mc) + cusps):
        raise ProviderError("Non-finite value in house cusps")

    drift = angular_distance(raw.mc, cusps[9])
    if drift > ChartConfig.MC_EPSILON:
        raise ProviderError(
            f"MC {raw.mc:.6f} disagrees with cusp X {cusps[9]:.6f} by {drift:.6f}°"
        )

    records = []
    for i, (label, cusp) in enumerate(zip(ChartConfig.HOUSE_LABELS, cusps)):
        longitude = normalize_degrees(cusp)
        records.append(HouseCusp(name=label, number=i + 1,
                                 longitude=longitude, sign=sign_of(longitude)))
    return Houses(system=system, cusps=tuple(records))


def house_of(longitude: float, houses: Houses) -> int:
    """1-based house containing ``longitude``."""
    longitude = normalize_degrees(longitude)
    cusps = houses.cusps

    for i in range(12):
        cusp_start = cusps[i].longitude
        cusp_end = cusps[(i + 1) % 12].longitude

        if cusp_start < cusp_end:
            if cusp_start <= longitude < cusp_end:
                return i + 1
        elif cusp_start > cusp_end:  # House spans 0°
            if longitude >= cusp_start or longitude < cusp_end:
                return i + 1
    return 1


def iter_pairs(positions: Sequence[BodyPosition]):
    """Yield every unordered pair once, outer index before inner index."""
    for i, first in enumerate(positions):
        for second in positions[i + 1:]:
            yield first, second


def detect_aspects(positions: Sequence[BodyPosition],
                   orb: float = ChartConfig.DEFAULT_ORB) -> List[Aspect]:
    """
    Find the major aspects between all body pairs.

    A pair yields at most one aspect: the first definition in
    ``ChartConfig.ASPECTS`` within ``orb``. The result is sorted by orb;
    the sort is stable so equal orbs keep pair discovery order.
    """
    aspects = []

    for first, second in iter_pairs(positions):
        sep = angular_distance(first.longitude, second.longitude)

        for aspect_def in ChartConfig.ASPECTS:
            diff = abs(sep - aspect_def.angle)
            if diff <= orb:
                aspects.append(Aspect(
                    body_a=first.name,
                    body_b=second.name,
                    kind=aspect_def.name,
                    symbol=aspect_def.symbol,
                    exact_angle=aspect_def.angle,
                    orb=diff,
                ))
                break

    aspects.sort(key=lambda a: a.orb)
    return aspects


def tally_elements(positions: Sequence[BodyPosition]) -> Dict[str, int]:
    tally = {element: 0 for element in ChartConfig.ELEMENTS}
    for position in positions:
        tally[element_of(position.sign)] += 1
    return tally


class ChartOrchestrator:
    """Calculate natal charts against an ephemeris provider and its fallback.

    Holds no per-request state; one instance serves every request. The
    primary provider gets exactly one attempt; on any failure the whole body
    set is taken from the fallback so real and placeholder positions are
    never mixed in one chart.
    """

    def __init__(self,
                 provider,
                 fallback,
                 bodies: Sequence[str] = ChartConfig.BODY_NAMES,
                 house_system: str = 'Placidus',
                 orb: float = ChartConfig.DEFAULT_ORB):
        if house_system not in ChartConfig.HOUSE_SYSTEMS:
            raise ValueError(f"Unknown house system: {house_system}")
        if not 0 < orb <= ChartConfig.MAX_ORB:
            raise ValueError(f"Orb must be in (0, {ChartConfig.MAX_ORB:g}], got {orb}")

        self.provider = provider
        self.fallback = fallback
        self.bodies = tuple(bodies)
        self.house_system = house_system
        self.orb = orb

    def calculate(self, moment: datetime, longitude: float, latitude: float) -> ChartResult:
        self._validate_location(longitude, latitude)
        moment_utc = to_utc(moment)

        try:
            julian_day, positions, raw_houses = self._resolve(
                self.provider, moment_utc, longitude, latitude)
            source = self.provider.name
        except Exception as exc:
            logger.warning("Ephemeris provider %r failed, using %r: %s",
                           self.provider.name, self.fallback.name, exc)
            try:
                julian_day, positions, raw_houses = self._resolve(
                    self.fallback, moment_utc, longitude, latitude)
            except Exception as fallback_exc:
                logger.error("Fallback provider %r failed: %s",
                             self.fallback.name, fallback_exc)
                raise FallbackExhaustedError("Calculation failed") from fallback_exc
            source = self.fallback.name

        houses = self._derive_houses(raw_houses)
        if houses is not None:
            positions = [replace(p, house=house_of(p.longitude, houses)) for p in positions]

        return ChartResult(
            moment_utc=moment_utc,
            julian_day=julian_day,
            latitude=latitude,
            longitude=longitude,
            house_system=self.house_system,
            orb=self.orb,
            source=source,
            bodies=tuple(positions),
            houses=houses,
            aspects=tuple(detect_aspects(positions, self.orb)),
            element_tally=tally_elements(positions),
        )

    async def acalculate(self, moment: datetime, longitude: float, latitude: float) -> ChartResult:
        """Run :meth:`calculate` in a worker thread."""
        return await asyncio.to_thread(self.calculate, moment, longitude, latitude)

    @staticmethod
    def _validate_location(longitude: float, latitude: float) -> None:
        if not (math.isfinite(longitude) and math.isfinite(latitude)):
            raise InvalidCoordinatesError("Coordinates must be finite numbers")
        if not -90 <= latitude <= 90:
            raise InvalidCoordinatesError("Latitude must be between -90 and 90")
        if not -180 <= longitude <= 180:
            raise InvalidCoordinatesError("Longitude must be between -180 and 180")

    def _resolve(self, provider, moment_utc: datetime, longitude: float, latitude: float):
        def compute():
            julian_day = provider.julian_day(moment_utc)
            raw_bodies = provider.resolve_bodies(julian_day, longitude, latitude, self.bodies)
            try:
                raw_houses = provider.resolve_houses(
                    julian_day, latitude, longitude, self.house_system)
            except ProviderError as exc:
                logger.warning("House calculation failed on %r: %s", provider.name, exc)
                raw_houses = None
            return julian_day, raw_bodies, raw_houses

        julian_day, raw_bodies, raw_houses = provider.with_location(longitude, latitude, compute)
        return julian_day, resolve_positions(self.bodies, raw_bodies), raw_houses

    def _derive_houses(self, raw_houses: Optional[RawHouses]) -> Optional[Houses]:
        try:
            houses = derive_houses(raw_houses, self.house_system)
        except ProviderError as exc:
            logger.warning("Dropping houses from chart: %s", exc)
            return None
        if houses is None:
            logger.info("No houses available for this chart")
        return houses


def format_chart_text(result: ChartResult) -> str:
    lines = []
    lines.append("=" * 60)
    lines.append("NATAL CHART")
    lines.append("=" * 60)
    lines.append(f"Date (UTC):     {result.moment_utc.strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(f"Location:       {abs(result.latitude):.4f}°{'N' if result.latitude >= 0 else 'S'}, "
                 f"{abs(result.longitude):.4f}°{'E' if result.longitude >= 0 else 'W'}")
    lines.append(f"Ephemeris:      {result.source}")
    lines.append("")

    lines.append("PLANETARY POSITIONS")
    lines.append("-" * 60)
    lines.append(f"{'Planet':<14} {'Sign':<12} {'Element':<8} {'Position':<12} {'House'}")
    lines.append("-" * 60)
    for p in result.bodies:
        retro = " ℞" if p.retrograde else ""
        house = p.house if p.house is not None else '-'
        name = f"{ChartConfig.GLYPHS.get(p.name, ' ')} {p.name}"
        lines.append(f"{name:<14} {p.sign:<12} {p.element:<8} {format_dms(p.longitude) + retro:<12} {house}")

    lines.append("")
    lines.append("HOUSE CUSPS")
    lines.append("-" * 60)
    if result.houses is None:
        lines.append("Houses unavailable")
    else:
        for cusp in result.houses.cusps:
            lines.append(f"{cusp.name:<14} {cusp.sign:<12} {format_dms(cusp.longitude)}")

    lines.append("")
    lines.append("ASPECTS")
    lines.append("-" * 60)
    if not result.aspects:
        lines.append(f"No major aspects found within {result.orb:g}° orb.")
    for a in result.aspects:
        lines.append(f"{a.body_a:<12} {a.kind:<12} {a.body_b:<12} {a.orb:.1f}°")

    lines.append("")
    lines.append("ELEMENTS")
    lines.append("-" * 60)
    lines.append("  ".join(f"{element}: {count}" for element, count in result.element_tally.items()))

    return "\n".join(lines)

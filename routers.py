"""API routers for the Natal Wheel API."""

import logging
from datetime import datetime
from functools import lru_cache

from fastapi import APIRouter, Depends

from cities import CITIES, find_city
from ephemeris import SwissEphemeris, has_asteroid_files
from exceptions import ChartCalculationError, InputError
from fallback import PlaceholderEphemeris
from models import (
    ChartRequest,
    CityChartRequest,
    ChartResponse,
    MetadataResponse,
    PlanetData,
    HousesData,
    HouseCuspData,
    AspectData,
    ErrorResponse,
    CityData,
    CitiesResponse,
    AspectDefinitionResponse,
    ConfigAspectsResponse,
    ConfigHouseSystemsResponse,
)
from natal import ChartConfig, ChartOrchestrator, ChartResult, format_dms, to_utc
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


def build_orchestrator(settings: Settings) -> ChartOrchestrator:
    """Wire the Swiss Ephemeris provider and its fallback from settings."""
    if 'Chiron' in settings.bodies and not has_asteroid_files(settings.ephemeris_path):
        logger.warning(
            "Chiron requested but no seas_*.se1 file in %s; every chart will use the fallback",
            settings.ephemeris_path,
        )
    return ChartOrchestrator(
        provider=SwissEphemeris(settings.ephemeris_path),
        fallback=PlaceholderEphemeris(),
        bodies=settings.bodies,
        house_system=settings.house_system,
        orb=settings.orb,
    )


@lru_cache
def get_orchestrator() -> ChartOrchestrator:
    """Process-wide orchestrator built from settings."""
    return build_orchestrator(get_settings())


# Helper Functions
def _chart_to_response(result: ChartResult) -> ChartResponse:
    """Convert a ChartResult to the JSON response model."""
    houses = None
    if result.houses is not None:
        houses = HousesData(
            system=result.houses.system,
            ascendant=result.houses.ascendant.longitude,
            mc=result.houses.mc.longitude,
            ic=result.houses.ic.longitude,
            descendant=result.houses.descendant.longitude,
            houses=[
                HouseCuspData(
                    name=cusp.name,
                    number=cusp.number,
                    longitude=cusp.longitude,
                    sign=cusp.sign,
                    formatted=format_dms(cusp.longitude)
                )
                for cusp in result.houses.cusps
            ]
        )

    return ChartResponse(
        metadata=MetadataResponse(
            date_utc=result.moment_utc.isoformat(),
            julian_day=result.julian_day,
            latitude=result.latitude,
            longitude=result.longitude,
            house_system=result.house_system,
            orb=result.orb,
            source=result.source
        ),
        planets=[
            PlanetData(
                name=body.name,
                glyph=ChartConfig.GLYPHS.get(body.name, ''),
                longitude=body.longitude,
                speed=body.speed,
                sign=body.sign,
                element=body.element,
                retrograde=body.retrograde,
                house=body.house,
                formatted=format_dms(body.longitude)
            )
            for body in result.bodies
        ],
        houses=houses,
        aspects=[
            AspectData(
                planet1=aspect.body_a,
                planet2=aspect.body_b,
                aspect=aspect.kind,
                symbol=aspect.symbol,
                angle=aspect.exact_angle,
                orb=round(aspect.orb, 4)
            )
            for aspect in result.aspects
        ],
        element_counts=dict(result.element_tally)
    )


async def _calculate(orchestrator: ChartOrchestrator, moment: datetime,
                     longitude: float, latitude: float) -> ChartResponse:
    try:
        result = await orchestrator.acalculate(moment, longitude, latitude)
    except (InputError, ChartCalculationError):
        raise
    except Exception as e:
        logger.exception("Unexpected error while calculating chart")
        raise ChartCalculationError(f"Chart calculation failed: {e}") from e
    return _chart_to_response(result)


_ERROR_RESPONSES = {
    422: {"model": ErrorResponse, "description": "Validation error - invalid input parameters"},
    500: {"model": ErrorResponse, "description": "Calculation failed"}
}


# Chart Endpoints
@router.post(
    "/calculate",
    response_model=ChartResponse,
    summary="Calculate Natal Chart",
    description="""
    Calculate a natal chart for a timestamp and coordinates:
    - Body positions with sign, element, retrograde flag and house
    - House cusps (Asc, II ... XII) with the IC, Desc and MC angles
    - Major aspects within the configured orb, tightest first
    - Element counts
    """,
    responses=_ERROR_RESPONSES
)
async def calculate_chart(request: ChartRequest,
                          orchestrator: ChartOrchestrator = Depends(get_orchestrator)):
    """Calculate a chart at explicit coordinates."""
    moment = to_utc(request.date, request.timezone)
    return await _calculate(orchestrator, moment, request.longitude, request.latitude)


@router.post(
    "/calculate/city",
    response_model=ChartResponse,
    summary="Calculate Natal Chart For A City",
    description="Calculate a natal chart for a date, time and a city from the built-in gazetteer.",
    responses={
        404: {"model": ErrorResponse, "description": "Unknown city"},
        **_ERROR_RESPONSES
    }
)
async def calculate_city_chart(request: CityChartRequest,
                               orchestrator: ChartOrchestrator = Depends(get_orchestrator)):
    """Calculate a chart for a gazetteer city."""
    city = find_city(request.city)
    moment = to_utc(datetime.combine(request.date, request.time), request.timezone)
    return await _calculate(orchestrator, moment, city.longitude, city.latitude)


# Reference Endpoints
@router.get(
    "/cities",
    response_model=CitiesResponse,
    summary="List Gazetteer Cities"
)
async def list_cities():
    return CitiesResponse(
        cities=[CityData(name=c.name, latitude=c.latitude, longitude=c.longitude) for c in CITIES]
    )


@router.get(
    "/config/aspects",
    response_model=ConfigAspectsResponse,
    summary="List Aspect Definitions",
    description="Aspect definitions in evaluation order, with the configured orb."
)
async def get_aspects(orchestrator: ChartOrchestrator = Depends(get_orchestrator)):
    return ConfigAspectsResponse(
        orb=orchestrator.orb,
        aspects=[
            AspectDefinitionResponse(name=asp.name, symbol=asp.symbol, angle=asp.angle)
            for asp in ChartConfig.ASPECTS
        ]
    )


@router.get(
    "/config/house-systems",
    response_model=ConfigHouseSystemsResponse,
    summary="List Available House Systems"
)
async def get_house_systems(orchestrator: ChartOrchestrator = Depends(get_orchestrator)):
    return ConfigHouseSystemsResponse(
        house_systems=list(ChartConfig.HOUSE_SYSTEMS.keys()),
        active=orchestrator.house_system
    )

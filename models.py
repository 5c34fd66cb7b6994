"""Pydantic models for Natal Wheel API request/response validation."""

from datetime import date as date_type, datetime, time as time_type
from typing import Optional

import pytz
from pydantic import BaseModel, Field, field_validator
from pydantic import ConfigDict


def _validate_timezone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        pytz.timezone(v)
        return v
    except pytz.exceptions.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone: {v}")


# Request Models
class ChartRequest(BaseModel):
    """Request model for a chart at explicit coordinates."""

    date: datetime = Field(
        ...,
        description="Birth date and time in ISO 8601 format",
        examples=["1990-10-30T14:10:00Z"]
    )
    longitude: float = Field(
        ...,
        ge=-180,
        le=180,
        description="Longitude in decimal degrees, East positive (-180 to 180)"
    )
    latitude: float = Field(
        ...,
        ge=-90,
        le=90,
        description="Latitude in decimal degrees, North positive (-90 to 90)"
    )
    timezone: Optional[str] = Field(
        None,
        description="IANA timezone for a date without offset. If not provided, assumes UTC."
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Validate timezone string."""
        return _validate_timezone(v)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{
                "date": "1990-10-30T14:10:00Z",
                "longitude": 36.2304,
                "latitude": 49.9935
            }]
        }
    )


class CityChartRequest(BaseModel):
    """Request model for a chart at a gazetteer city."""

    date: date_type = Field(
        ...,
        description="Birth date (YYYY-MM-DD)"
    )
    time: time_type = Field(
        ...,
        description="Birth time (HH:MM)"
    )
    city: str = Field(
        ...,
        min_length=1,
        description="City name, e.g. 'Kharkiv, Ukraine' or 'KHARKIV'"
    )
    timezone: Optional[str] = Field(
        None,
        description="IANA timezone for date and time. If not provided, assumes UTC."
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Validate timezone string."""
        return _validate_timezone(v)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{
                "date": "1990-10-30",
                "time": "14:10",
                "city": "Kharkiv, Ukraine"
            }]
        }
    )


# Response Models
class MetadataResponse(BaseModel):
    """Metadata for a chart."""
    date_utc: str
    julian_day: float
    latitude: float
    longitude: float
    house_system: str
    orb: float
    source: str


class PlanetData(BaseModel):
    """Body position data."""
    name: str
    glyph: str
    longitude: float
    speed: float
    sign: str
    element: str
    retrograde: bool
    house: Optional[int] = None
    formatted: str


class HouseCuspData(BaseModel):
    """Information about a house cusp."""
    name: str
    number: int
    longitude: float
    sign: str
    formatted: str


class HousesData(BaseModel):
    """House system data."""
    system: str
    ascendant: float
    mc: float
    ic: float
    descendant: float
    houses: list[HouseCuspData]


class AspectData(BaseModel):
    """Aspect between two bodies."""
    planet1: str
    planet2: str
    aspect: str
    symbol: str
    angle: float
    orb: float


class ChartResponse(BaseModel):
    """Complete chart response."""
    model_config = ConfigDict(populate_by_name=True)

    metadata: MetadataResponse
    planets: list[PlanetData]
    houses: Optional[HousesData] = None
    aspects: list[AspectData]
    element_counts: dict[str, int] = Field(..., alias="elementCounts")


class ErrorResponse(BaseModel):
    """Error body returned by every exception handler."""
    error: str
    message: str
    detail: Optional[list | dict] = None


class CityData(BaseModel):
    name: str
    latitude: float
    longitude: float


class CitiesResponse(BaseModel):
    cities: list[CityData]


class AspectDefinitionResponse(BaseModel):
    """Aspect definition."""
    name: str
    symbol: str
    angle: float


class ConfigAspectsResponse(BaseModel):
    """Configuration response for aspects, in evaluation order."""
    orb: float
    aspects: list[AspectDefinitionResponse]


class ConfigHouseSystemsResponse(BaseModel):
    """Configuration response for house systems."""
    house_systems: list[str]
    active: str

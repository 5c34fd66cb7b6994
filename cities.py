"""Static gazetteer for the city-based chart request."""

from dataclasses import dataclass

from exceptions import UnknownCityError


@dataclass(frozen=True)
class City:
    name: str
    latitude: float
    longitude: float


CITIES = (
    City('New York, USA', 40.7128, -74.006),
    City('London, UK', 51.5074, -0.1278),
    City('Paris, France', 48.8566, 2.3522),
    City('Tokyo, Japan', 35.6762, 139.6503),
    City('Sydney, Australia', -33.8688, 151.2093),
    City('Kharkiv, Ukraine', 49.9935, 36.2304),
    City('Kyiv, Ukraine', 50.4501, 30.5234),
    City('Odessa, Ukraine', 46.4825, 30.7233),
    City('Moscow, Russia', 55.7558, 37.6176),
    City('Beijing, China', 39.9042, 116.4074),
    City('Delhi, India', 28.7041, 77.1025),
    City('Rio de Janeiro, Brazil', -22.9068, -43.1729),
    City('Cape Town, South Africa', -33.9249, 18.4241),
    City('Toronto, Canada', 43.6532, -79.3832),
    City('Mexico City, Mexico', 19.4326, -99.1332),
)


def find_city(name: str) -> City:
    """Look up a city by full name or by the part before the comma, ignoring case."""
    key = name.strip().upper()
    for city in CITIES:
        full = city.name.upper()
        if key == full or key == full.split(',')[0].strip():
            return city
    raise UnknownCityError(f"Unknown city: {name}")

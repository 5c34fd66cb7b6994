"""Custom exceptions for the Natal Wheel API."""


class NatalChartAPIException(Exception):
    """Base exception for all API errors."""
    pass


class InputError(NatalChartAPIException):
    """Raised when a chart request is rejected before any ephemeris call."""
    pass


class InvalidDateTimeError(InputError):
    """Raised when datetime is invalid."""
    pass


class InvalidCoordinatesError(InputError):
    """Raised when coordinates are invalid."""
    pass


class InvalidTimezoneError(InputError):
    """Raised when timezone is invalid."""
    pass


class UnknownCityError(InputError):
    """Raised when a city name is not in the gazetteer."""
    pass


class ProviderError(NatalChartAPIException):
    """Raised when the ephemeris collaborator fails or returns malformed data."""

    def __init__(self, message: str, bodies: tuple = ()):
        super().__init__(message)
        self.bodies = tuple(bodies)


class ChartCalculationError(NatalChartAPIException):
    """Raised when chart calculation fails."""
    pass


class FallbackExhaustedError(ChartCalculationError):
    """Raised when both the ephemeris and its fallback failed."""
    pass

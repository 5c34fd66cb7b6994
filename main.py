import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from exceptions import (
    InputError,
    ChartCalculationError,
    UnknownCityError,
)
from routers import router
from settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Natal chart calculation API using Swiss Ephemeris",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, error: str, message: str, detail=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "detail": detail
        }
    )


# Exception Handlers
@app.exception_handler(UnknownCityError)
async def unknown_city_handler(request: Request, exc: UnknownCityError):
    """Handle city names missing from the gazetteer."""
    return _error(404, "UnknownCityError", str(exc))


@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError):
    """Handle invalid coordinates, datetimes and timezones."""
    return _error(422, type(exc).__name__, str(exc))


@app.exception_handler(ChartCalculationError)
async def chart_calculation_error_handler(request: Request, exc: ChartCalculationError):
    """Handle chart calculation errors without leaking provider detail."""
    logger.error("Chart calculation failed on %s: %s", request.url.path, exc,
                 exc_info=exc.__cause__ is not None)
    return _error(500, "ChartCalculationError", "Calculation failed")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    errors = exc.errors()
    fields = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in errors
    )
    return _error(422, "ValidationError", f"Request validation failed: {fields}",
                  [{"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                   for err in errors])


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other unexpected exceptions."""
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return _error(500, "InternalServerError", "Calculation failed")


# Include API router
app.include_router(router, prefix=settings.api_prefix, tags=["API"])


# Root endpoints
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}

"""Application settings loaded from the environment and an optional .env file."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ephemeris import has_asteroid_files
from natal import ChartConfig

DEFAULT_EPHEMERIS_DIR = "ephe"


class Settings(BaseSettings):
    """Runtime configuration, read from ``NATAL_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NATAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Natal Wheel API"
    api_prefix: str = "/api"
    # Target of download_ephe.py; Moshier is used while it holds no .se1 files
    ephemeris_path: Optional[str] = DEFAULT_EPHEMERIS_DIR
    house_system: str = "Placidus"
    # Aspect windows around 0/60/90/120/180 stay disjoint only up to 30 degrees
    orb: float = Field(default=ChartConfig.DEFAULT_ORB, gt=0, le=ChartConfig.MAX_ORB)
    # None: include Chiron only when a seas_*.se1 file is in ephemeris_path
    include_chiron: Optional[bool] = None
    include_lilith: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    @field_validator('house_system')
    @classmethod
    def validate_house_system(cls, v: str) -> str:
        """Validate house system name."""
        if v not in ChartConfig.HOUSE_SYSTEMS:
            raise ValueError(f"Unknown house system: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def chiron_enabled(self) -> bool:
        if self.include_chiron is None:
            return has_asteroid_files(self.ephemeris_path)
        return self.include_chiron

    @property
    def bodies(self) -> tuple[str, ...]:
        bodies = ChartConfig.BODY_NAMES
        if not self.chiron_enabled:
            bodies = tuple(name for name in bodies if name != 'Chiron')
        if self.include_lilith:
            bodies += (ChartConfig.LILITH,)
        return bodies


@lru_cache
def get_settings() -> Settings:
    return Settings()

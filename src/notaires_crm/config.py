"""Application configuration and settings management."""

from pathlib import Path
from typing import Any

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="NCRM_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Notaires CRM Sync API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the service.")
    data_root: Path = Field(default=Path("data"), description="Root directory for local cache files.")

    # Spreadsheet proxy
    sheets_api_base_url: str = Field(
        default="https://notaires.cleon.app/api",
        description="Base URL of the spreadsheet proxy API exposing /sheets.",
    )
    sheets_timeout_seconds: float = Field(default=30.0, gt=0.0)
    sheets_max_retries: int = Field(default=3, ge=0)
    sheets_backoff_seconds: float = Field(default=1.0, ge=0.0)
    records_sheet: str = Field(default="Notaires", description="Sheet holding one record per row.")
    zones_sheet: str = Field(default="VillesInteret", description="Sheet holding the interest zones.")
    first_data_row: int = Field(default=2, ge=1, description="First row below the header line.")

    # Write queue and resync
    drain_interval_seconds: float = Field(default=5.0, gt=0.0)
    max_write_attempts: int = Field(default=3, ge=1)
    resync_interval_seconds: float = Field(default=300.0, gt=0.0)
    resync_enabled: bool = True
    load_on_startup: bool = True

    # Geocoding
    geocoding_api_url: str = Field(default="https://api-adresse.data.gouv.fr/search/")
    geocoding_timeout_seconds: float = Field(default=30.0, gt=0.0)
    geocoding_max_retries: int = Field(default=3, ge=0)
    geocoding_retry_delay_seconds: float = Field(default=2.0, ge=0.0)
    geocoding_request_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum delay between two requests to the address API.",
    )
    geocoding_cache_ttl_days: int = Field(default=30, ge=0)
    geocoding_cache_file: Path = Field(default=Path("data/geocoding_cache.json"))

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "https://notaires.cleon.app",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", "geocoding_cache_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @property
    def records_range(self) -> str:
        """Open-ended A1 range covering every record row."""
        return f"{self.records_sheet}!A{self.first_data_row}:T"

    @property
    def zones_range(self) -> str:
        return f"{self.zones_sheet}!A{self.first_data_row}:G"


settings = Settings()

"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DRIVELESS_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "DriveLess Route API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied by create_app.")
    data_root: Path = Field(default=Path("data"), description="Root directory for local JSON storage.")
    storage_backend: Literal["memory", "file", "supabase"] = Field(
        default="file",
        description="Where saved routes and statistics collections live.",
    )

    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    osrm_timeout_seconds: float = Field(default=30.0, gt=0.0)
    directions_max_retries: int = Field(
        default=0,
        ge=0,
        description="Extra attempts the directions client makes on transient failures.",
    )
    directions_backoff_seconds: float = Field(default=1.0, ge=0.0)
    matrix_haversine_fallback: bool = Field(
        default=True,
        description="Build the cost matrix from great-circle distance when OSRM is unavailable.",
    )
    fallback_average_speed_kmh: float = Field(default=40.0, gt=0.0)

    units: Literal["imperial", "metric"] = "imperial"
    max_waypoints: int = Field(default=25, ge=1, description="Maximum stops accepted in one request.")
    optimizer_max_stops: int = Field(default=25, ge=1)
    optimizer_max_swap_passes: int = Field(default=50, ge=0)
    optimizer_cache_size: int = Field(default=128, ge=0)

    dedup_similarity_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Interior-stop overlap ratio a saved route must exceed to count as similar.",
    )
    dedup_coordinate_precision: int = Field(
        default=3,
        ge=0,
        description="Decimal places kept when a stop is identified by coordinates only.",
    )
    auto_save_routes: bool = True
    max_saved_routes: int = Field(default=50, ge=0, description="0 keeps every saved route.")

    admin_max_attempts: int = Field(default=3, ge=1)
    admin_retry_delay_seconds: float = Field(default=0.5, ge=0.0)
    health_error_threshold: int = Field(default=10, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    supabase_jwt_secret: Optional[str] = Field(
        default=None,
        description="Secret used to verify Supabase-issued access tokens.",
    )
    saved_routes_table: str = "saved_routes"
    users_table: str = "users"
    errors_table: str = "errors"
    analytics_table: str = "analytics"
    admins_table: str = "admins"

    @field_validator("data_root", mode="before")
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
            # Try JSON first
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


settings = Settings()

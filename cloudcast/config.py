"""
Cloudcast Configuration.

Pydantic Settings v2 — loads from .env, environment variables.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "Cloudcast"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # ── API ───────────────────────────────────────────────────────────────
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000"],
        alias="CORS_ORIGINS",
    )

    # ── Geometry ──────────────────────────────────────────────────────────
    bounds_padding_km: float = Field(default=15.0, alias="BOUNDS_PADDING_KM")
    regeneration_move_km: float = Field(default=0.1, alias="REGENERATION_MOVE_KM")

    # ── Readings ──────────────────────────────────────────────────────────
    pressure_window_minutes: int = Field(
        default=60, alias="PRESSURE_WINDOW_MINUTES",
        description="Weather history span the pressure-drop rate is measured over",
    )

    # ── Fusion ────────────────────────────────────────────────────────────
    weight_rainfall: float = Field(default=0.5, alias="FUSION_WEIGHT_RAINFALL")
    weight_pressure: float = Field(default=0.3, alias="FUSION_WEIGHT_PRESSURE")
    weight_humidity: float = Field(default=0.2, alias="FUSION_WEIGHT_HUMIDITY")
    weight_ground: float = Field(default=0.4, alias="FUSION_WEIGHT_GROUND")
    weight_aerial: float = Field(default=0.6, alias="FUSION_WEIGHT_AERIAL")
    aerial_staleness_minutes: float = Field(
        default=10.0, alias="AERIAL_STALENESS_MINUTES",
        description="Aerial readings older than this are excluded from the blend",
    )

    # ── Propagation ───────────────────────────────────────────────────────
    propagation_max_hops: int = Field(default=4, alias="PROPAGATION_MAX_HOPS")
    propagation_min_probability: float = Field(
        default=1.0, alias="PROPAGATION_MIN_PROBABILITY",
    )
    propagation_trigger_probability: float = Field(
        default=50.0, alias="PROPAGATION_TRIGGER_PROBABILITY",
        description="Sectors at or above this probability seed a cascade",
    )
    max_event_delay_minutes: float = Field(default=360.0, alias="MAX_EVENT_DELAY_MINUTES")

    # ── Forecast tick ─────────────────────────────────────────────────────
    reading_freshness_minutes: float = Field(default=15.0, alias="READING_FRESHNESS_MINUTES")
    history_window_minutes: int = Field(default=60, alias="HISTORY_WINDOW_MINUTES")
    forecast_tick_seconds: int = Field(default=60, alias="FORECAST_TICK_SECONDS")
    regeneration_check_minutes: int = Field(default=5, alias="REGENERATION_CHECK_MINUTES")
    scheduler_enabled: bool = Field(
        default=True, alias="SCHEDULER_ENABLED",
        description="Run the tick and regeneration jobs inside the API process",
    )

    # ── Alerting ──────────────────────────────────────────────────────────
    alert_cooldown_minutes: int = Field(default=30, alias="ALERT_COOLDOWN_MINUTES")

    # ── Operational ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")


settings = Settings()

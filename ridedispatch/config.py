"""Configuration management for the ride dispatch engine."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # State Configuration
    state_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Where rides and driver profiles live"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    ride_ttl: int = Field(default=86400, description="Ride retention in Redis in seconds")

    # Dispatch Protocol
    dispatch_initial_radius_km: float = Field(
        default=5.0, gt=0, description="Search radius for the first dispatch phase"
    )
    dispatch_expanded_radius_km: float = Field(
        default=7.0, gt=0, description="Search radius after escalation"
    )
    dispatch_phase_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Time each phase waits for an acceptance"
    )
    dispatch_batch_size: int = Field(
        default=3, ge=1, description="Drivers notified per dispatch phase"
    )

    # Candidate Scoring
    scoring_weight_distance: float = Field(default=0.6, ge=0)
    scoring_weight_rating: float = Field(default=0.2, ge=0)
    scoring_weight_completion: float = Field(default=0.1, ge=0)
    scoring_weight_comfort: float = Field(default=0.1, ge=0)
    scoring_default_rating: float = Field(
        default=4.5, ge=0, le=5, description="Rating used when none is known"
    )
    scoring_default_completion_rate: float = Field(
        default=0.85, ge=0, le=1, description="Completion rate for drivers without history"
    )
    scoring_max_candidates: int = Field(
        default=10, ge=1, description="Max candidates returned by a ranking"
    )
    scoring_comfort: dict[str, float] = Field(
        default={"premium": 1.0, "comfort": 0.8, "compact": 0.6},
        description="Rider-perceived vehicle quality per class, in [0, 1]",
    )

    # Nearby Driver Lookup
    nearby_radius_km: float = Field(default=10.0, gt=0)
    nearby_limit: int = Field(default=5, ge=1)

    # Presence Housekeeping
    presence_inactivity_seconds: int = Field(
        default=300, description="Idle time before a presence entry is swept"
    )
    presence_sweep_interval_seconds: int = Field(
        default=60, description="Interval between presence sweeps"
    )

    # Fares
    fare_base: dict[str, float] = Field(
        default={"compact": 30.0, "comfort": 45.0, "premium": 80.0},
        description="Flat base fare per vehicle class",
    )
    fare_per_km: float = Field(default=0.0, ge=0, description="Distance component of the fare")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

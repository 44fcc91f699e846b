"""
Configuration settings for the course graph engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Published FSRS-4.5 default parameter set (w0..w16).
FSRS_DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4872,
    1.4003,
    3.7145,
    13.8206,
    5.1618,
    1.2298,
    0.8975,
    0.031,
    1.6474,
    0.1367,
    1.0461,
    2.1072,
    0.0793,
    0.3246,
    1.587,
    0.2272,
    2.8755,
)

DEFAULT_DB_PATH = Path.home() / ".course_engine" / "state.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_DB_PATH}",
        description="SQLAlchemy connection string for course and progress state",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # FSRS Settings (for spaced repetition)
    # ========================================
    fsrs_weights: list[float] = Field(
        default_factory=lambda: list(FSRS_DEFAULT_WEIGHTS),
        description="FSRS model parameters w0..w16",
    )
    fsrs_desired_retention: float = Field(
        default=0.85,
        description="Retrievability at which a card becomes due again",
    )
    fsrs_minimum_interval_minutes: float = Field(
        default=1.0,
        description="Shortest interval the scheduler may produce",
    )
    fsrs_maximum_interval_days: float = Field(
        default=36500.0,
        description="Longest interval the scheduler may produce",
    )
    fsrs_first_exposure_minutes: list[float] = Field(
        default_factory=lambda: [1.0, 5.0, 10.0, 30.0],
        description="Interval after the first review, indexed by rating Again..Easy",
    )
    fsrs_lapse_ceiling: float = Field(
        default=0.95,
        description="Largest fraction of its stability a card keeps after a lapse",
    )

    # ========================================
    # Course Gating
    # ========================================
    mastery_freshness_hours: float = Field(
        default=0.0,
        description="A card counts towards mastery only if it is not due within this window",
    )
    allow_empty_nodes: bool = Field(
        default=False,
        description="Accept graph nodes that have no cards in the deck",
    )

    @field_validator("fsrs_weights")
    @classmethod
    def _check_weights(cls, value: list[float]) -> list[float]:
        if len(value) != len(FSRS_DEFAULT_WEIGHTS):
            raise ValueError(f"expected {len(FSRS_DEFAULT_WEIGHTS)} FSRS weights, got {len(value)}")
        return value

    @field_validator("fsrs_first_exposure_minutes")
    @classmethod
    def _check_first_exposure(cls, value: list[float]) -> list[float]:
        if len(value) != 4:
            raise ValueError("expected one first-exposure interval per rating (4 values)")
        return value

    @field_validator("fsrs_lapse_ceiling")
    @classmethod
    def _check_lapse_ceiling(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ValueError("lapse ceiling must be strictly between 0 and 1")
        return value

    @field_validator("fsrs_desired_retention")
    @classmethod
    def _check_retention(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ValueError("desired retention must be strictly between 0 and 1")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

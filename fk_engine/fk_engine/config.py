"""Engine configuration loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Engine settings loaded from environment variables with FKGRAPH_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="FKGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    debug: bool = False
    log_level: str = "WARNING"
    structured_logging: bool = False

    # Metadata source
    database_url: str = "sqlite+aiosqlite:///:memory:"
    metadata_cache_ttl_seconds: float = 300.0

    # Cycle detection safety valves
    max_cycle_length: int = 12
    max_cycles: int = 500

    # Cascade simulation
    max_cascade_depth: int = 10
    blast_radius_threshold: int = 100

    # Force-directed layout
    force_iterations: int = 150
    force_seed: int = 42
    force_convergence_threshold: float = 0.5

    # Node geometry (pixels)
    node_width: float = 250.0
    node_min_height: float = 150.0
    node_header_height: float = 60.0
    column_row_height: float = 24.0
    node_spacing: float = 80.0
    layer_spacing: float = 100.0
    layout_margin: float = 20.0

    @field_validator(
        "max_cycle_length",
        "max_cycles",
        "max_cascade_depth",
        "blast_radius_threshold",
        "force_iterations",
    )
    @classmethod
    def _positive_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("limits must be >= 1")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level '{v}'")
        return level


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded settings: max_cycle_length=%d max_cascade_depth=%d",
            settings.max_cycle_length,
            settings.max_cascade_depth,
        )

    return settings

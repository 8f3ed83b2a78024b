"""Operation timing and log formatting."""

from __future__ import annotations

from fk_engine.telemetry.log_format import JSONFormatter, configure_logging
from fk_engine.telemetry.profiling import ProfileCollector, ProfileResult, profile_operation

__all__ = [
    "JSONFormatter",
    "ProfileCollector",
    "ProfileResult",
    "configure_logging",
    "profile_operation",
]

"""Log formatting and handler setup.

With ``FKGRAPH_STRUCTURED_LOGGING=true`` every record is emitted as a
single-line JSON object::

    {
        "timestamp": "2026-05-15T12:34:56.789012+00:00",
        "level": "WARNING",
        "logger": "fk_engine.graph.builder",
        "message": "Dropping foreign key ...",
        "context": { ... },          // present when passed via extra={"context": ...}
        "exc_info": "Traceback ..."  // present only on exceptions
    }

Otherwise a plain text handler is installed.
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from fk_engine.config import Settings

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context is not None:
            payload["context"] = context

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(settings: Settings, *, level: str | None = None) -> None:
    """Replace the root handlers according to *settings*.

    *level* overrides ``settings.log_level`` (the CLI uses it for
    ``--verbose``).
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    handler = logging.StreamHandler()
    if settings.structured_logging:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel((level or settings.log_level).upper())

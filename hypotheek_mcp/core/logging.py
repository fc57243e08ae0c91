"""Logging setup.

All modules log through the standard library (``logging.getLogger``).
Output goes to stderr so the MCP stdio transport keeps stdout to itself.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger from a level name such as ``"debug"``."""
    numeric = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logging.basicConfig(level=numeric, handlers=[handler], force=True)


class CorrelationAdapter(logging.LoggerAdapter):
    """Append ``correlation_id`` to every record logged through it.

    The id is exposed as ``record.correlation_id`` and appended to the
    message so it survives plain-text formatters.
    """

    def __init__(self, logger: logging.Logger, correlation_id: str | None = None) -> None:
        super().__init__(logger, {"correlation_id": correlation_id})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        correlation_id = self.extra.get("correlation_id") if self.extra else None
        extra = dict(kwargs.get("extra") or {})
        extra["correlation_id"] = correlation_id
        kwargs["extra"] = extra
        if correlation_id:
            msg = f"{msg} [correlation_id={correlation_id}]"
        return msg, kwargs

"""
Logging setup for City Predictor.

The host application (or a CLI command) calls ``configure_logging(config)``
exactly once, before constructing a ``CityPredictor``.  Library modules only
ever do ``logger = logging.getLogger(__name__)``; they never attach handlers.

Output
------
Every record goes to stdout and, when ``log_file`` is set, to that file as
well.  With ``json_format = true`` each line is one JSON object, with
timestamps in UTC down to the millisecond, matching the simulation log::

    {"ts": "2026-02-24T15:00:00.125Z", "level": "INFO",
     "logger": "city_predictor.ml.registry", "msg": "Model committed  domain=traffic"}

Fields passed through ``extra={...}`` are merged into the object.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from city_predictor.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s.%(msecs)03dZ %(levelname)-7s %(name)s | %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers held at WARNING regardless of the configured level.
QUIET_LOGGERS = ("torch",)

# Attributes every LogRecord carries; anything else came from ``extra=``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class _JsonFormatter(logging.Formatter):
    """One JSON object per record: ``ts``, ``level``, ``logger``, ``msg`` plus extras."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        payload.update(
            (key, val)
            for key, val in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        )
        return json.dumps(payload, default=str)


def _text_formatter() -> logging.Formatter:
    formatter = logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)
    formatter.converter = _utc_timetuple
    return formatter


def _utc_timetuple(seconds: float | None):
    return datetime.fromtimestamp(seconds or 0, tz=timezone.utc).timetuple()


def _attach(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: "LoggingConfig") -> None:
    """Install stdout (and optional file) handlers on the root logger.

    Replaces any handlers configured earlier, so calling it again with a
    different ``LoggingConfig`` takes effect immediately.

    Args:
        config: ``AppConfig.logging``.
    """
    level = logging.getLevelName(config.level)
    formatter = _JsonFormatter() if config.json_format else _text_formatter()

    handlers = [_attach(logging.StreamHandler(sys.stdout), level, formatter)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _attach(logging.FileHandler(log_path, encoding="utf-8"), level, formatter)
        )

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

"""Logging setup and phase timing for maintenance runs.

Plain text by default; JSON lines for log aggregation when requested.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional

__all__ = [
    "JSONFormatter",
    "PhaseTimer",
    "setup_logging",
    "timed_phase",
]

# Attributes every LogRecord has; anything else arrived through extra=
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


class JSONFormatter(logging.Formatter):
    """Render log records as one JSON object per line.

    Example output:
        {"timestamp": "2025-01-15T10:30:00.123Z", "level": "INFO",
         "logger": "warehouse.lib.loader", "message": "Loaded 3 rows into silver.products",
         "extra": {"layer": "cleansed", "table": "products"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)


@dataclass
class PhaseTimer:
    """Wall-clock timer for one named phase."""

    name: str
    start_time: float = field(default_factory=time.perf_counter)
    end_time: Optional[float] = None

    def stop(self) -> float:
        self.end_time = time.perf_counter()
        return self.duration

    @property
    def duration(self) -> float:
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time


@contextmanager
def timed_phase(
    logger: logging.Logger,
    name: str,
    **context: Any,
) -> Generator[PhaseTimer, None, None]:
    """Log the start and duration of a phase.

    The duration is logged on success only; failures are reported by the
    caller together with the error.
    """
    timer = PhaseTimer(name=name)
    logger.info(">>> %s", name, extra=context)
    yield timer
    timer.stop()
    logger.info(
        ">>> %s finished in %.2f seconds",
        name,
        timer.duration,
        extra={**context, "duration_seconds": round(timer.duration, 3)},
    )


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger for a maintenance run.

    Args:
        verbose: Enable debug-level logging (includes every rendered SQL statement)
        json_format: Use JSON output format (for log aggregation)
        log_file: Optional file path to write logs to
    """
    level = logging.DEBUG if verbose else logging.INFO

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # sqlglot parser warnings from ibis are noise at INFO
    logging.getLogger("sqlglot").setLevel(logging.WARNING)

"""Contract for runtime telemetry and structured logging sinks."""

from __future__ import annotations

import logging
from typing import Protocol

from rich.logging import RichHandler


class Telemetry(Protocol):
    """Reports session events and their payloads."""

    def emit(self, event_name: str, payload: dict) -> None:
        """Publish telemetry event to the configured sink."""


class LoggingTelemetry:
    """Telemetry sink writing every session event to a debug logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("speech_studio.telemetry")

    def emit(self, event_name: str, payload: dict) -> None:
        self._logger.debug(event_name, extra={"payload": {key: str(value) for key, value in payload.items()}})


def configure_logging(level: str = "INFO") -> None:
    """Route ``speech_studio`` loggers through a rich console handler."""
    root = logging.getLogger("speech_studio")
    root.setLevel(level.upper())
    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.addHandler(RichHandler(rich_tracebacks=True, show_path=False))

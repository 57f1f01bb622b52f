"""Reporting sink: risk events go to the log stream."""

import logging
from collections.abc import Iterable

from vaults_monitor.constants import LOG_FORMAT, LOG_LEVELS
from vaults_monitor.errors import ConfigurationError
from vaults_monitor.models import RiskEvent

_LEVELS = {"warn": logging.WARNING, "info": logging.INFO}


def configure_logging(level: str = "INFO") -> None:
    """Configure process-wide logging."""
    level_up = level.upper()
    if level_up not in LOG_LEVELS:
        raise ConfigurationError(f"log level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    logging.basicConfig(level=level_up, format=LOG_FORMAT, force=True)


class LogReporter:
    """Emits `RiskEvent`s through a `logging.Logger`, keeping the structured fields on the record."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("vaults_monitor.events")

    def report(self, events: Iterable[RiskEvent]) -> int:
        """Emit every event; returns how many were emitted."""
        n = 0
        for event in events:
            self.logger.log(
                _LEVELS[event.level],
                event.message,
                event.display_fields(),
                extra={"event_kind": event.kind, "event_fields": event.fields},
            )
            n += 1
        return n

"""
Ledger Event Logger

DESIGN DECISION: Every balance change is logged as a structured event.
This provides:
1. Traceability of what a session did to which account
2. Correlation of all postings made by one recurrence run
3. Loud, visible records when a compensation had to run

The logger writes to the local structured log only; events are never
persisted.
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_ledger.models.events import LedgerEvent, LedgerEventSeverity


_SHARED_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog on top of the standard library logger.

    Args:
        level: Minimum level name (DEBUG, INFO, ...)
        log_format: "json" for machine-readable lines, "console" for humans
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_format == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


def get_logger(name: Optional[str] = None):
    return structlog.get_logger(name)


class LedgerEventLogger:
    """
    Central ledger event logging service.

    Components receive one instance from the application factory. Tests
    can pass their own to capture events.
    """

    def __init__(self, name: str = "expense_ledger"):
        self._logger = structlog.get_logger(name)

    def log(self, event: LedgerEvent) -> None:
        """Log a ledger event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity == LedgerEventSeverity.ERROR:
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == LedgerEventSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == LedgerEventSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g., a recurrence run).
    Pass it through all subsequent operations.
    """
    return uuid4()

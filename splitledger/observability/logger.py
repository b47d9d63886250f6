"""
Ledger Event Logger

DESIGN DECISION: Ledger arithmetic never logs inline. Components hand a
finished LedgerEvent to this logger, which:
1. Always writes it to the structured local log (structlog, JSON)
2. Optionally forwards it to an event sink
3. Never raises into the caller - a failing sink cannot fail a write

This keeps tracing a side-channel rather than a control-flow dependency.
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

from splitledger.models.events import LedgerEvent, LedgerEventBuilder, LedgerEventSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class EventSinkInterface(ABC):
    """Destination for emitted ledger events."""

    @abstractmethod
    async def append_event(self, event: LedgerEvent) -> bool:
        """
        Accept one event.

        Returns:
            True if the event was accepted
        """
        pass


class RecordingEventSink(EventSinkInterface):
    """Keeps events in memory, in emission order."""

    def __init__(self):
        self.events: list[LedgerEvent] = []

    async def append_event(self, event: LedgerEvent) -> bool:
        self.events.append(event)
        return True

    def of_type(self, event_type) -> list[LedgerEvent]:
        return [e for e in self.events if e.event_type == event_type]


class LedgerEventLogger:
    """
    Central event emission service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The configured sink, if any
    """

    def __init__(
        self,
        sink: Optional[EventSinkInterface] = None,
    ):
        """
        Initialize event logger.

        Args:
            sink: Destination for events.
                  If None, only logs locally.
        """
        self._sink = sink
        self._logger = structlog.get_logger("splitledger")

    async def log(self, event: LedgerEvent) -> bool:
        """
        Emit a ledger event.

        Always logs locally. Forwards to the sink if available.

        Returns True if the sink accepted it (or no sink is configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == LedgerEventSeverity.ERROR:
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == LedgerEventSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == LedgerEventSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)

        if self._sink:
            try:
                return await self._sink.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "event_sink_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log a system error."""
        await self.log(LedgerEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        ))

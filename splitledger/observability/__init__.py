"""Ledger event emission package."""

from splitledger.observability.logger import (
    EventSinkInterface,
    LedgerEventLogger,
    RecordingEventSink,
)

__all__ = ["EventSinkInterface", "LedgerEventLogger", "RecordingEventSink"]

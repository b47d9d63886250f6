"""Shared fixtures: a small directory, an empty ledger, and the service over it."""

from decimal import Decimal

import pytest

from splitledger.config import LedgerSettings
from splitledger.models.ledger import Group, Participant
from splitledger.observability import LedgerEventLogger, RecordingEventSink
from splitledger.orchestrator import LedgerService
from splitledger.services.storage import InMemoryDirectory, InMemoryLedgerStorage


@pytest.fixture
def settings():
    return LedgerSettings(
        tolerance=Decimal("0.01"),
        activity_scan_window=50,
        activity_limit=20,
        enforce_group_settlement_bound=False,
        trace_balances=False,
    )


@pytest.fixture
def directory():
    """U, A and B share group "g"; C is only in group "h" with U."""
    return InMemoryDirectory(
        participants=[
            Participant(id="u", name="Uma", email="uma@example.com"),
            Participant(id="a", name="Arjun"),
            Participant(id="b", name="Bea"),
            Participant(id="c", name="Chen"),
        ],
        groups=[
            Group(id="g", name="Flat", members=frozenset({"u", "a", "b"})),
            Group(id="h", name="Trip", description="Goa", members=frozenset({"u", "c"})),
        ],
    )


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def sink():
    return RecordingEventSink()


@pytest.fixture
def service(storage, directory, sink, settings):
    return LedgerService(storage, directory, LedgerEventLogger(sink), settings)

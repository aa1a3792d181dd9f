"""
Runs feature — run-state persistence and per-run events.

Public API:
    from features.runs import InMemoryRunStateStore, PostgresRunStateStore, RunEventSink
    from features.runs.db import RunDatabase
"""

from features.runs.events import RunEventSink
from features.runs.store import (
    InMemoryRunStateStore,
    PostgresRunStateStore,
    RunStateStore,
    open_store,
)

__all__ = [
    "InMemoryRunStateStore",
    "PostgresRunStateStore",
    "RunStateStore",
    "RunEventSink",
    "open_store",
]

"""Persisted node state (the resolved meter id)."""

from boundary_meter.state.store import (
    METER_ID_KEY,
    InMemoryStateStore,
    JsonFileStateStore,
    StateStore,
)

__all__ = [
    "METER_ID_KEY",
    "InMemoryStateStore",
    "JsonFileStateStore",
    "StateStore",
]

"""Remote store contract and adapters."""

from envzip.remote.base import (
    EventCallback,
    EventKind,
    RemoteEvent,
    RemoteStore,
    Unsubscribe,
    document_id,
    snapshot,
)
from envzip.remote.memory import InMemoryRemoteStore

__all__ = [
    "EventCallback",
    "EventKind",
    "RemoteEvent",
    "RemoteStore",
    "Unsubscribe",
    "document_id",
    "snapshot",
    "InMemoryRemoteStore",
]

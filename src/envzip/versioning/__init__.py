"""Version history and rollback of entries."""

from envzip.versioning.ledger import VersionLedger
from envzip.versioning.models import ChangeType, FieldChange, VersionRecord
from envzip.versioning.store import (
    InMemoryVersionStore,
    JsonVersionStore,
    VersionStore,
)

__all__ = [
    "ChangeType",
    "FieldChange",
    "InMemoryVersionStore",
    "JsonVersionStore",
    "VersionLedger",
    "VersionRecord",
    "VersionStore",
]

"""Synchronisation of a local ``.env`` file with a remote project stage.

Architecture
------------
Each pass is a **three-way reconciliation**: the local snapshot and the
remote snapshot are compared key by key against the last-synced
baseline persisted by ``SyncState``.  Values are opaque strings, so a
key changed on both sides is a conflict resolved by picking a side
(remote wins by default) and always reported.

Modules:

- ``reconcile``    -- ``ReconciliationEngine``: pure three-way diff and
  write-set derivation.
- ``resolver``     -- Conflict policies (remote-wins, local-wins,
  newest-wins).
- ``engine``       -- ``SyncEngine``: one full pass with I/O.
- ``orchestrator`` -- ``SyncOrchestrator``: watches both sides, at most
  one pass in flight.
- ``state``        -- ``SyncState``: load/save JSON baseline files.
- ``models``       -- Data contracts (``MergeResult``, ``SyncReport``...).
- ``reporter``     -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from envzip.entries import EntryService
    from envzip.local_store import LocalStore
    from envzip.sync import SyncEngine, SyncState, format_sync_report

    engine = SyncEngine(
        local=LocalStore(".env"),
        remote=remote_store,
        entries=EntryService(remote_store, ledger, session),
        state_store=SyncState(Path(".envzip")),
    )

    preview = engine.run(dry_run=True)
    print(format_sync_report(preview))

    report = engine.run()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .models import (
    Conflict,
    KeyChange,
    MergeResult,
    SyncAction,
    SyncReport,
    SyncStatus,
)
from .orchestrator import SyncOrchestrator
from .reconcile import ReconciliationEngine
from .reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .resolver import create_resolver
from .state import SyncState

__all__ = [
    "Conflict",
    "KeyChange",
    "MergeResult",
    "ReconciliationEngine",
    "SyncAction",
    "SyncEngine",
    "SyncOrchestrator",
    "SyncReport",
    "SyncState",
    "SyncStatus",
    "create_resolver",
    "format_dry_run_preview",
    "format_sync_report",
    "report_to_json",
]

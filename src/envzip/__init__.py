"""EnvZip: keep a local ``.env`` file in sync with a shared remote store.

The package is organised leaf-first:

- ``codec`` / ``local_store`` -- the local ``KEY=VALUE`` file.
- ``remote`` -- the remote store protocol and its adapters.
- ``entries`` -- the entry mutation path (remote write + version record).
- ``sync`` -- reconciliation, sync state, the engine and the watcher.
- ``versioning`` -- the append-only version ledger and rollback.
"""

__version__ = "0.3.0"

"""Wiring of stores, ledger and engines for one configured project stage.

Both the CLI and the MCP server build an ``EnvZipContext`` once at
startup and pass it to their command or tool handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from envzip.config import Config, load_config
from envzip.config_loader import discover_config_files, load_hierarchical_config
from envzip.config_schema import (
    LoggingConfig,
    SyncSettings,
    UnifiedConfig,
    build_config,
)
from envzip.entries import EntryService
from envzip.local_store import LocalStore
from envzip.remote.base import RemoteStore
from envzip.remote.http import HttpRemoteStore, HttpVersionStore
from envzip.sync.engine import SyncEngine
from envzip.sync.reconcile import ReconciliationEngine
from envzip.sync.resolver import create_resolver
from envzip.sync.state import SyncState
from envzip.versioning.ledger import VersionLedger
from envzip.versioning.rollback import RollbackEngine
from envzip.versioning.store import JsonVersionStore, VersionStore

logger = logging.getLogger(__name__)

VERSIONS_FILENAME = "versions.json"


@dataclass
class EnvZipContext:
    """Everything a command needs to act on one project stage."""

    config: Config
    settings: SyncSettings
    local: LocalStore
    remote: RemoteStore
    ledger: VersionLedger
    entries: EntryService
    engine: SyncEngine
    rollback: RollbackEngine


def logging_settings() -> LoggingConfig:
    """The YAML ``logging`` section, or its defaults when no file exists."""
    if not discover_config_files():
        return LoggingConfig()
    return build_config(load_hierarchical_config()).logging


def load_settings(
    overrides: dict[str, Any] | None = None,
) -> tuple[Config, UnifiedConfig]:
    """Resolve configuration from every source.

    Loads ``.env`` first so its values are visible to both the env-var
    lookups and the YAML ``${VAR}`` interpolation.

    Args:
        overrides: CLI values (api_key, project_key, local_env_path,
            stage, remote_endpoint, insecure, debug, config_file).

    Returns:
        The validated ``Config`` and the YAML ``UnifiedConfig``.

    Raises:
        ConfigError: If a required setting is missing or invalid.
    """
    load_dotenv()
    unified = (
        build_config(load_hierarchical_config())
        if discover_config_files()
        else UnifiedConfig()
    )
    opts = overrides or {}
    config_file = opts.get("config_file")
    config = load_config(
        api_key=opts.get("api_key"),
        project_key=opts.get("project_key"),
        local_env_path=opts.get("local_env_path"),
        stage=opts.get("stage"),
        remote_endpoint=opts.get("remote_endpoint"),
        insecure=opts.get("insecure", False),
        debug=opts.get("debug", False),
        config_file=Path(config_file) if config_file else None,
        yaml_fallbacks=unified.remote.fallbacks(),
    )
    return config, unified


def build_context(
    config: Config,
    settings: SyncSettings | None = None,
    remote: RemoteStore | None = None,
    version_store: VersionStore | None = None,
) -> EnvZipContext:
    """Assemble stores and engines for *config*.

    Args:
        config: Validated connection settings.
        settings: Sync behaviour; defaults apply when omitted.
        remote: Remote store to use instead of the HTTP adapter.
        version_store: Version store to use instead of the one selected
            by ``settings.history_backend``.
    """
    settings = settings or SyncSettings()
    state_dir = Path(settings.state_dir)

    if remote is None:
        remote = HttpRemoteStore(
            config, poll_interval=settings.remote_poll_interval
        )
    if version_store is None:
        if settings.history_backend == "local":
            version_store = JsonVersionStore(state_dir / VERSIONS_FILENAME)
        else:
            version_store = HttpVersionStore(config)

    local = LocalStore(config.local_env_path)
    ledger = VersionLedger(version_store)
    entries = EntryService(remote, ledger, config.session())
    engine = SyncEngine(
        local=local,
        remote=remote,
        entries=entries,
        state_store=SyncState(state_dir),
        reconciler=ReconciliationEngine(
            create_resolver(settings.conflict_strategy)
        ),
    )
    logger.debug(
        "Context ready for %s/%s (conflicts: %s, history: %s)",
        config.project_key,
        config.stage,
        settings.conflict_strategy,
        settings.history_backend,
    )
    return EnvZipContext(
        config=config,
        settings=settings,
        local=local,
        remote=remote,
        ledger=ledger,
        entries=entries,
        engine=engine,
        rollback=RollbackEngine(entries),
    )

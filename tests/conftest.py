"""Shared pytest fixtures for envzip tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from envzip.config import Config
from envzip.config_schema import SyncSettings
from envzip.context import build_context
from envzip.entries import EntryService
from envzip.local_store import LocalStore
from envzip.models import Session, Stage
from envzip.remote.memory import InMemoryRemoteStore
from envzip.sync.engine import SyncEngine
from envzip.sync.state import SyncState
from envzip.versioning.ledger import VersionLedger
from envzip.versioning.store import InMemoryVersionStore


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live EnvZip backend",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live EnvZip backend"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        # --run-live given: do not skip live tests
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class TickingClock:
    """Deterministic clock: every call is one second after the last."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def mock_config(tmp_path):
    """A valid Config pointing at a .env file under tmp_path."""
    return Config(
        api_key="test-key",
        project_key="proj",
        local_env_path=str(tmp_path / ".env"),
        stage="development",
        remote_endpoint="https://api.example.com/v1",
        author="tester",
    )


@pytest.fixture
def session():
    return Session(author="tester", project_id="proj", stage=Stage.DEVELOPMENT)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def remote(clock):
    return InMemoryRemoteStore(clock=clock)


@pytest.fixture
def version_store():
    return InMemoryVersionStore()


@pytest.fixture
def ledger(version_store, clock):
    return VersionLedger(version_store, clock=clock)


@pytest.fixture
def entries(remote, ledger, session):
    return EntryService(remote, ledger, session)


@pytest.fixture
def env_path(tmp_path) -> Path:
    return tmp_path / ".env"


@pytest.fixture
def local(env_path):
    return LocalStore(env_path)


@pytest.fixture
def state_store(tmp_path):
    return SyncState(tmp_path / ".envzip")


@pytest.fixture
def engine(local, remote, entries, state_store):
    return SyncEngine(
        local=local, remote=remote, entries=entries, state_store=state_store
    )


@pytest.fixture
def env_ctx(mock_config, tmp_path, clock):
    """A full EnvZipContext wired to in-memory stores."""
    return build_context(
        mock_config,
        SyncSettings(state_dir=str(tmp_path / ".envzip")),
        remote=InMemoryRemoteStore(clock=clock),
        version_store=InMemoryVersionStore(),
    )

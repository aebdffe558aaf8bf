"""Tests for envzip.context -- settings resolution and store wiring."""

from unittest.mock import patch

import pytest

from envzip.config_schema import LoggingConfig, SyncSettings
from envzip.context import build_context, load_settings, logging_settings
from envzip.errors import ConfigError
from envzip.remote.http import HttpRemoteStore, HttpVersionStore
from envzip.remote.memory import InMemoryRemoteStore
from envzip.sync.resolver import LocalWinsResolver
from envzip.versioning.store import InMemoryVersionStore, JsonVersionStore


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    for var in (
        "ENVZIP_CONFIG",
        "ENVZIP_API_KEY",
        "ENVZIP_PROJECT_KEY",
        "ENVZIP_LOCAL_ENV_PATH",
        "ENVZIP_STAGE",
        "ENVZIP_ENDPOINT",
        "ENVZIP_AUTHOR",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setattr("envzip.config.getpass.getuser", lambda: "tester")
    # load_dotenv() would read the .env under test into os.environ
    monkeypatch.setattr("envzip.context.load_dotenv", lambda: False)
    return tmp_path


def _write_yaml(root, text):
    path = root / ".envzip" / "config.yml"
    path.parent.mkdir(exist_ok=True)
    path.write_text(text)
    return path


# -------------------------------------------------------------------------
# load_settings()
# -------------------------------------------------------------------------


class TestLoadSettings:
    def test_overrides_only(self):
        config, unified = load_settings(
            {
                "api_key": "k",
                "project_key": "proj",
                "local_env_path": ".env",
                "stage": "staging",
            }
        )
        assert config.project_key == "proj"
        assert config.stage == "staging"
        assert unified.sync.conflict_strategy == "remote-wins"

    def test_yaml_remote_section_is_fallback(self, isolated):
        _write_yaml(
            isolated,
            "remote:\n"
            "  api_key: yaml-key\n"
            "  project_key: yaml-proj\n"
            "  local_env_path: .env\n"
            "  stage: production\n"
            "sync:\n"
            "  conflict_strategy: local-wins\n",
        )
        config, unified = load_settings({"project_key": "cli-proj"})
        assert config.api_key == "yaml-key"
        assert config.project_key == "cli-proj"
        assert unified.sync.conflict_strategy == "local-wins"

    def test_config_file_override(self, isolated):
        other = isolated / "team.config"
        other.write_text(
            "api_key=k\nproject_key=team\nlocal_env_path=.env\nstage=staging\n"
        )
        config, _ = load_settings({"config_file": str(other)})
        assert config.project_key == "team"

    def test_missing_settings_raise(self):
        with pytest.raises(ConfigError):
            load_settings()

    def test_dotenv_loaded_first(self):
        with patch("envzip.context.load_dotenv") as mock_dotenv:
            with pytest.raises(ConfigError):
                load_settings()
        mock_dotenv.assert_called_once_with()


class TestLoggingSettings:
    def test_defaults_without_yaml(self):
        assert logging_settings() == LoggingConfig()

    def test_reads_logging_section(self, isolated):
        _write_yaml(isolated, "logging:\n  level: DEBUG\n  file: envzip.log\n")
        cfg = logging_settings()
        assert cfg.level == "DEBUG"
        assert cfg.file == "envzip.log"


# -------------------------------------------------------------------------
# build_context()
# -------------------------------------------------------------------------


class TestBuildContext:
    def test_injected_stores_are_used(self, mock_config):
        remote = InMemoryRemoteStore()
        store = InMemoryVersionStore()
        ctx = build_context(mock_config, remote=remote, version_store=store)

        assert ctx.remote is remote
        assert ctx.ledger._store is store
        assert ctx.entries.session.author == "tester"
        assert str(ctx.local.path) == mock_config.local_env_path
        assert ctx.engine.project_id == "proj"
        assert ctx.settings == SyncSettings()

    def test_http_stores_by_default(self, mock_config):
        ctx = build_context(mock_config)
        assert isinstance(ctx.remote, HttpRemoteStore)
        assert isinstance(ctx.ledger._store, HttpVersionStore)

    def test_local_history_backend(self, mock_config, isolated):
        settings = SyncSettings(history_backend="local", state_dir="state")
        ctx = build_context(
            mock_config, settings, remote=InMemoryRemoteStore()
        )
        assert isinstance(ctx.ledger._store, JsonVersionStore)
        assert str(ctx.ledger._store._path) == "state/versions.json"

    def test_conflict_strategy_selects_resolver(self, mock_config):
        settings = SyncSettings(conflict_strategy="local-wins")
        ctx = build_context(
            mock_config,
            settings,
            remote=InMemoryRemoteStore(),
            version_store=InMemoryVersionStore(),
        )
        assert isinstance(ctx.engine.reconciler.resolver, LocalWinsResolver)

    def test_end_to_end_sync(self, mock_config):
        remote = InMemoryRemoteStore()
        ctx = build_context(
            mock_config, remote=remote, version_store=InMemoryVersionStore()
        )
        ctx.local.ensure_exists()
        with open(mock_config.local_env_path, "a") as f:
            f.write("API_URL=https://example.com\n")

        report = ctx.engine.run()

        assert report.success
        assert [e.key for e in remote.list("proj", "development")] == [
            "API_URL"
        ]
        (record,) = ctx.ledger.history("proj_development_API_URL")
        assert record.author == "tester"

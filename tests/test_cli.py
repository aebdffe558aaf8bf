"""Tests for envzip.cli -- argument parsing, commands and exit codes.

Commands run against an in-memory remote: ``make_context`` is patched
to return a context built around InMemoryRemoteStore.
"""

import json

import pytest

from envzip import cli
from envzip.config_schema import LoggingConfig
from envzip.errors import ConfigError

ENTITY = "proj_development_A"


@pytest.fixture(autouse=True)
def quiet(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli, "logging_settings", LoggingConfig)


@pytest.fixture
def ctx(env_ctx, monkeypatch):
    monkeypatch.setattr(cli, "make_context", lambda args: env_ctx)
    return env_ctx


def _write_env(ctx, text):
    ctx.local.path.write_text(text)


def _remote_values(ctx):
    return {e.key: e.value for e in ctx.remote.list("proj", "development")}


# -------------------------------------------------------------------------
# init
# -------------------------------------------------------------------------


class TestInit:
    def test_writes_config_and_env(self, tmp_path, capsys):
        code = cli.main(
            [
                "init",
                "--api-key",
                "KEY",
                "--project-key",
                "myapp",
                "--stage",
                "staging",
                "--env-file",
                "app.env",
            ]
        )

        assert code == 0
        config_text = (tmp_path / "envzip.config").read_text()
        assert "api_key=KEY" in config_text
        assert "project_key=myapp" in config_text
        assert "stage=staging" in config_text
        assert "local_env_path=app.env" in config_text
        assert (tmp_path / "app.env").read_text() == "# Environment variables\n"
        out = capsys.readouterr().out
        assert "Wrote envzip.config" in out
        assert "Created app.env" in out

    def test_existing_env_file_untouched(self, tmp_path, capsys):
        (tmp_path / ".env").write_text("KEEP=1\n")
        code = cli.main(["init", "--api-key", "K", "--project-key", "p"])

        assert code == 0
        assert (tmp_path / ".env").read_text() == "KEEP=1\n"
        assert "stage=development" in (tmp_path / "envzip.config").read_text()
        assert "Created" not in capsys.readouterr().out

    def test_missing_required_options(self, tmp_path, capsys):
        code = cli.main(["init", "--api-key", "K"])

        assert code == 1
        assert "--project-key" in capsys.readouterr().err
        assert not (tmp_path / "envzip.config").exists()

    def test_with_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.delenv("ENVZIP_CONFIG", raising=False)
        code = cli.main(
            ["init", "--api-key", "K", "--project-key", "p", "--with-yaml"]
        )
        assert code == 0
        assert (tmp_path / ".envzip" / "config.yml").exists()

    def test_unknown_stage_rejected_by_parser(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["init", "--stage", "qa"])
        assert exc_info.value.code == 2


# -------------------------------------------------------------------------
# push / pull / sync
# -------------------------------------------------------------------------


class TestSyncCommands:
    def test_push(self, ctx, capsys):
        _write_env(ctx, "A=1\nB=two words\n")

        assert cli.main(["push"]) == 0

        assert _remote_values(ctx) == {"A": "1", "B": "two words"}
        assert "2 pushed" in capsys.readouterr().out

    def test_pull_writes_local_file(self, ctx):
        ctx.entries.create("A", "remote")

        assert cli.main(["pull"]) == 0

        assert ctx.local.path.read_text() == "A=remote\n"

    def test_dry_run_writes_nothing(self, ctx, capsys):
        _write_env(ctx, "A=1\n")

        assert cli.main(["sync", "--dry-run"]) == 0

        assert _remote_values(ctx) == {}
        assert capsys.readouterr().out.startswith("DRY RUN")

    def test_json_output(self, ctx, capsys):
        _write_env(ctx, "A=1\n")

        assert cli.main(["sync", "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["counts"]["pushed"] == 1
        assert data["applied"][0]["key"] == "A"

    def test_failed_key_exits_nonzero(self, ctx, monkeypatch):
        _write_env(ctx, "A=1\n")

        def _refuse(data):
            raise ValueError("rejected")

        monkeypatch.setattr(ctx.remote, "create", _refuse)

        assert cli.main(["push"]) == 1


# -------------------------------------------------------------------------
# status
# -------------------------------------------------------------------------


class TestStatus:
    def test_pending_push(self, ctx, capsys):
        _write_env(ctx, "A=1\n")

        assert cli.main(["status"]) == 0

        out = capsys.readouterr().out
        assert "Pending push:" in out
        assert _remote_values(ctx) == {}

    def test_json_in_sync(self, ctx, capsys):
        _write_env(ctx, "A=1\n")
        cli.main(["sync"])
        capsys.readouterr()

        assert cli.main(["status", "--json"]) == 0

        assert json.loads(capsys.readouterr().out)["in_sync"] is True


# -------------------------------------------------------------------------
# history / rollback
# -------------------------------------------------------------------------


def _two_versions(ctx):
    _write_env(ctx, "A=1\n")
    cli.main(["sync"])
    _write_env(ctx, "A=2\n")
    cli.main(["sync"])
    return ctx.ledger.history(ENTITY)


class TestHistory:
    def test_key_history(self, ctx, capsys):
        _two_versions(ctx)
        capsys.readouterr()

        assert cli.main(["history", "A"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith(f"v2 modified {ENTITY} by tester")
        assert "  value: '1' -> '2'" in lines

    def test_limit(self, ctx, capsys):
        _two_versions(ctx)
        capsys.readouterr()

        assert cli.main(["history", "--limit", "1", "--json"]) == 0

        (record,) = json.loads(capsys.readouterr().out)
        assert record["entity_id"] == ENTITY

    def test_empty(self, ctx, capsys):
        assert cli.main(["history"]) == 0
        assert "No history." in capsys.readouterr().out


class TestRollback:
    def test_rollback_entity(self, ctx, capsys):
        v2, v1 = _two_versions(ctx)
        capsys.readouterr()

        assert cli.main(["rollback", v1.id]) == 0

        assert _remote_values(ctx) == {"A": "1"}
        assert "Rolled back A (now '1')" in capsys.readouterr().out

    def test_rollback_field(self, ctx, capsys):
        v2, _ = _two_versions(ctx)
        capsys.readouterr()

        assert cli.main(["rollback", v2.id, "--field", "value", "--json"]) == 0

        out = capsys.readouterr().out
        assert json.loads(out)["value"] == "1"
        assert ctx.ledger.history(ENTITY)[0].message == (
            "Rollback value from version 2"
        )

    def test_unknown_version(self, ctx, capsys):
        assert cli.main(["rollback", "nope"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_stage_field_not_accepted(self, ctx, capsys):
        v2, _ = _two_versions(ctx)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["rollback", v2.id, "--field", "stage"])

        assert exc_info.value.code == 2
        assert "invalid choice" in capsys.readouterr().err


# -------------------------------------------------------------------------
# Error handling
# -------------------------------------------------------------------------


class TestErrors:
    def test_config_error_exit_code(self, monkeypatch, capsys):
        def _fail(args):
            raise ConfigError("Missing required setting: api_key")

        monkeypatch.setattr(cli, "make_context", _fail)

        assert cli.main(["status"]) == 1
        assert "Error: Missing required setting: api_key" in (
            capsys.readouterr().err
        )

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.main([])

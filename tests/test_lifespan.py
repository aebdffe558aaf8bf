"""Tests for envzip.mcp.lifespan -- server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Resolves config (with optional CLI overrides)
- Builds the EnvZipContext and checks the remote store answers
- Initializes concurrency semaphore
- Fails fast on config errors or an unreachable remote
- Prints status messages to stderr
"""

from unittest.mock import MagicMock, patch

import pytest

from envzip.config_schema import RemoteConfig, UnifiedConfig
from envzip.errors import ConfigError, RemoteUnavailableError
from envzip.mcp.lifespan import server_lifespan

# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------


def _make_unified(max_parallel: int = 2) -> UnifiedConfig:
    return UnifiedConfig(
        remote=RemoteConfig(max_parallel_requests=max_parallel)
    )


def _patches(config, unified, ctx, run_sync_result=None, run_sync_error=None):
    run_sync = patch(
        "envzip.mcp.lifespan.run_sync",
        return_value=run_sync_result if run_sync_result is not None else [],
        side_effect=run_sync_error,
    )
    return (
        patch(
            "envzip.mcp.lifespan.load_settings",
            return_value=(config, unified),
        ),
        patch("envzip.mcp.lifespan.build_context", return_value=ctx),
        run_sync,
        patch("envzip.mcp.lifespan.init_semaphore"),
        patch("envzip.mcp.lifespan._stderr_print"),
    )


# -------------------------------------------------------------------------
# server_lifespan() -- successful startup
# -------------------------------------------------------------------------


class TestServerLifespanSuccess:
    """Tests for the happy path through server_lifespan()."""

    async def test_successful_startup(self, mock_config):
        ctx = MagicMock()
        unified = _make_unified(5)
        p_load, p_build, p_run, p_sem, p_print = _patches(
            mock_config, unified, ctx
        )

        with (
            p_load,
            p_build as mock_build,
            p_run as mock_run_sync,
            p_sem as mock_init_sem,
            p_print,
        ):
            async with server_lifespan() as state:
                assert state["ctx"] is ctx
                mock_build.assert_called_once_with(mock_config, unified.sync)
                mock_run_sync.assert_called_once_with(
                    ctx.remote.list, "proj", "development"
                )
                mock_init_sem.assert_called_once_with(5)

    async def test_overrides_passed_to_load_settings(self, mock_config):
        overrides = {"stage": "staging"}
        p_load, p_build, p_run, p_sem, p_print = _patches(
            mock_config, _make_unified(), MagicMock()
        )

        with p_load as mock_load, p_build, p_run, p_sem, p_print:
            async with server_lifespan(config_overrides=overrides):
                mock_load.assert_called_once_with(overrides)

    async def test_reports_remote_count(self, mock_config):
        p_load, p_build, p_run, p_sem, p_print = _patches(
            mock_config, _make_unified(), MagicMock(), run_sync_result=[1, 2, 3]
        )

        with p_load, p_build, p_run, p_sem, p_print as mock_print:
            async with server_lifespan():
                pass

        printed = " ".join(c.args[0] for c in mock_print.call_args_list)
        assert "Remote variables: 3" in printed
        assert "shutting down" in printed


# -------------------------------------------------------------------------
# server_lifespan() -- failures
# -------------------------------------------------------------------------


class TestServerLifespanFailures:
    async def test_config_error_raises_runtime_error(self):
        with (
            patch(
                "envzip.mcp.lifespan.load_settings",
                side_effect=ConfigError("Missing required setting: api_key"),
            ),
            patch("envzip.mcp.lifespan.build_context") as mock_build,
            patch("envzip.mcp.lifespan._stderr_print"),
        ):
            with pytest.raises(RuntimeError, match="Configuration error"):
                async with server_lifespan():
                    pass
            mock_build.assert_not_called()

    async def test_unreachable_remote_raises_runtime_error(self, mock_config):
        p_load, p_build, p_run, p_sem, p_print = _patches(
            mock_config,
            _make_unified(),
            MagicMock(),
            run_sync_error=RemoteUnavailableError("Cannot reach remote"),
        )

        with p_load, p_build, p_run, p_sem as mock_init_sem, p_print:
            with pytest.raises(RuntimeError, match="Remote store check failed"):
                async with server_lifespan():
                    pass
            mock_init_sem.assert_not_called()

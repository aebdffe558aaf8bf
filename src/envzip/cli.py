"""Command line interface for envzip.

Commands:
    envzip init              write envzip.config and create the .env file
    envzip pull              take remote changes into the local file
    envzip push              send local changes to the remote store
    envzip sync              reconcile both directions
    envzip watch             keep syncing on local or remote changes
    envzip status            compare local and remote without writing
    envzip history [KEY]     show version history
    envzip rollback VERSION  restore an entry (or one field) to a version

Exit code is 0 on success and 1 on any reported failure.
"""

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from pathlib import Path

from . import __version__
from .config import CONFIG_FILENAME, write_config_file
from .config_loader import ensure_config
from .context import (
    EnvZipContext,
    build_context,
    load_settings,
    logging_settings,
)
from .core.async_utils import run_sync
from .errors import EnvZipError
from .local_store import LocalStore
from .logger import setup_logging
from .models import Stage
from .sync.models import SyncReport
from .sync.orchestrator import SyncOrchestrator
from .sync.reporter import (
    format_dry_run_preview,
    format_history,
    format_status,
    format_sync_report,
    history_to_json,
    report_to_json,
    status_to_json,
)
from .versioning.rollback import RESTORABLE_FIELDS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _overrides(args: argparse.Namespace) -> dict:
    """CLI values that take precedence over every other config source."""
    return {
        "api_key": args.api_key,
        "project_key": args.project_key,
        "local_env_path": args.env_file,
        "stage": args.stage,
        "remote_endpoint": args.endpoint,
        "insecure": args.insecure,
        "debug": args.debug,
        "config_file": args.config_file,
    }


def make_context(args: argparse.Namespace) -> EnvZipContext:
    """Load configuration and assemble the stores for a command."""
    config, unified = load_settings(_overrides(args))
    return build_context(config, unified.sync)


def _emit(args: argparse.Namespace, text: str, data) -> None:
    if args.json:
        print(json.dumps(data, indent=2, default=str))
    else:
        print(text)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace) -> int:
    """Write ``envzip.config`` from the given options and create the .env file."""
    config_path = Path(args.config_file or CONFIG_FILENAME)
    env_file = args.env_file or ".env"
    values = {
        "api_key": args.api_key or "",
        "project_key": args.project_key or "",
        "local_env_path": env_file,
        "stage": args.stage or Stage.DEVELOPMENT.value,
    }
    missing = [k for k in ("api_key", "project_key") if not values[k]]
    if missing:
        print(
            "Error: init needs " + " and ".join(f"--{m.replace('_', '-')}" for m in missing),
            file=sys.stderr,
        )
        return 1
    if values["stage"] not in [s.value for s in Stage]:
        print(f"Error: unknown stage '{values['stage']}'", file=sys.stderr)
        return 1
    if args.endpoint:
        values["remote_endpoint"] = args.endpoint

    write_config_file(config_path, values)
    print(f"Wrote {config_path}")
    if LocalStore(env_file).ensure_exists():
        print(f"Created {env_file}")
    if args.with_yaml:
        print(f"YAML config: {ensure_config()}")
    return 0


def _run_sync(args: argparse.Namespace, direction: str) -> int:
    ctx = make_context(args)
    report = ctx.engine.run(dry_run=args.dry_run, direction=direction)
    if args.dry_run:
        text = format_dry_run_preview(report)
    else:
        text = format_sync_report(report)
    _emit(args, text, report_to_json(report))
    return 0 if report.success else 1


def cmd_pull(args: argparse.Namespace) -> int:
    return _run_sync(args, "pull")


def cmd_push(args: argparse.Namespace) -> int:
    return _run_sync(args, "push")


def cmd_sync(args: argparse.Namespace) -> int:
    return _run_sync(args, "bidirectional")


def cmd_status(args: argparse.Namespace) -> int:
    ctx = make_context(args)
    status = ctx.engine.status()
    _emit(args, format_status(status), status_to_json(status))
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    ctx = make_context(args)
    limit = args.limit or ctx.settings.history_limit
    if args.key:
        records = ctx.ledger.history(ctx.entries.entity_id(args.key))[:limit]
    elif args.all_stages:
        records = ctx.ledger.history_for_container(
            ctx.config.project_key, limit
        )
    else:
        records = ctx.ledger.history_for_stage(
            ctx.config.project_key, ctx.config.stage, limit
        )
    _emit(args, format_history(records), history_to_json(records))
    return 0


def cmd_rollback(args: argparse.Namespace) -> int:
    ctx = make_context(args)
    if args.field:
        entry = ctx.rollback.rollback_field(args.version_id, args.field)
    else:
        entry = ctx.rollback.rollback_entity(args.version_id)
    for warning in ctx.entries.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    _emit(
        args,
        f"Rolled back {entry.key} (now {entry.value!r})",
        entry.model_dump(mode="json"),
    )
    return 0


async def _watch(ctx: EnvZipContext, dashboard: bool) -> None:
    loop = asyncio.get_running_loop()

    async def _show(report: SyncReport) -> None:
        print(format_sync_report(report), flush=True)
        if dashboard:
            # status() hits the remote; keep it off the event loop
            status = await run_sync(ctx.engine.status)
            print("", flush=True)
            print(format_status(status), flush=True)
            print("-" * 60, flush=True)

    orchestrator = SyncOrchestrator(
        ctx.engine,
        poll_interval=ctx.settings.poll_interval,
        on_report=lambda report: loop.create_task(_show(report)),
    )

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(
                sig, lambda: asyncio.ensure_future(orchestrator.stop())
            )

    await orchestrator.start()
    print(
        f"Watching {ctx.local.path} <-> {ctx.config.project_key}/"
        f"{ctx.config.stage}. Press Ctrl+C to stop.",
        file=sys.stderr,
    )
    await orchestrator.wait()


def cmd_watch(args: argparse.Namespace) -> int:
    ctx = make_context(args)
    ctx.local.ensure_exists()
    asyncio.run(_watch(ctx, args.dashboard))
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envzip",
        description="Keep a local .env file in sync with a shared EnvZip project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  envzip init --api-key KEY --project-key myapp --stage development
  envzip sync --dry-run
  envzip watch --dashboard
  envzip history DATABASE_URL
  envzip rollback 3f2a9c --field value
        """,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--api-key", help="API key (overrides ENVZIP_API_KEY)")
    common.add_argument(
        "--project-key", help="Project key (overrides ENVZIP_PROJECT_KEY)"
    )
    common.add_argument(
        "--env-file", help="Local .env path (overrides ENVZIP_LOCAL_ENV_PATH)"
    )
    common.add_argument(
        "--stage",
        choices=[s.value for s in Stage],
        help="Environment stage (overrides ENVZIP_STAGE)",
    )
    common.add_argument("--endpoint", help="Remote API endpoint URL")
    common.add_argument(
        "--config-file", help=f"Path to the config file (default: {CONFIG_FILENAME})"
    )
    common.add_argument(
        "--insecure", action="store_true", help="Skip SSL verification"
    )
    common.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    common.add_argument(
        "--log-file", help="Also write logs to this file"
    )
    common.add_argument(
        "--json", action="store_true", help="Print machine-readable JSON"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", parents=[common], help="Create envzip.config and .env")
    p.add_argument(
        "--with-yaml",
        action="store_true",
        help="Also write a starter .envzip/config.yml",
    )
    p.set_defaults(func=cmd_init)

    for name, func, text in (
        ("pull", cmd_pull, "Take remote changes into the local file"),
        ("push", cmd_push, "Send local changes to the remote store"),
        ("sync", cmd_sync, "Reconcile both directions"),
    ):
        p = sub.add_parser(name, parents=[common], help=text)
        p.add_argument(
            "--dry-run", action="store_true", help="Preview without writing"
        )
        p.set_defaults(func=func)

    p = sub.add_parser(
        "watch", parents=[common], help="Sync on every local or remote change"
    )
    p.add_argument(
        "--dashboard",
        action="store_true",
        help="Print the full status after every pass",
    )
    p.set_defaults(func=cmd_watch)

    p = sub.add_parser("status", parents=[common], help="Show pending changes")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("history", parents=[common], help="Show version history")
    p.add_argument("key", nargs="?", help="Only this variable")
    p.add_argument("--limit", type=int, help="Maximum number of records")
    p.add_argument(
        "--all-stages",
        action="store_true",
        help="Include every stage of the project",
    )
    p.set_defaults(func=cmd_history)

    p = sub.add_parser("rollback", parents=[common], help="Restore a version")
    p.add_argument("version_id", help="Version id (see 'envzip history')")
    p.add_argument(
        "--field", choices=RESTORABLE_FIELDS, help="Only restore this field"
    )
    p.set_defaults(func=cmd_rollback)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return its exit code."""
    args = build_parser().parse_args(argv)
    try:
        log_cfg = logging_settings()
        setup_logging(
            mode="cli",
            debug=args.debug,
            log_file=args.log_file or log_cfg.file,
            level=log_cfg.level,
        )
        return args.func(args)
    except EnvZipError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()

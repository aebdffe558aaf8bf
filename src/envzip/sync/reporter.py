"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_report`` -- full post-sync summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by action.
- ``format_status`` -- side-by-side status of local and remote.
- ``format_history`` -- version history listing.
- ``report_to_json`` / ``status_to_json`` / ``history_to_json`` --
  structured dicts for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from envzip.versioning.models import VersionRecord

    from .models import Conflict, KeyChange, SyncReport, SyncStatus


def _show(value: str | None) -> str:
    return "(deleted)" if value is None else repr(value)


def _change_line(change: KeyChange) -> str:
    if change.is_delete:
        return f"  {change.key} (delete)"
    return f"  {change.key} = {_show(change.value)}"


def _conflict_line(conflict: Conflict) -> str:
    return (
        f"  {conflict.key}: local {_show(conflict.local_value)}, "
        f"remote {_show(conflict.remote_value)} -> kept "
        f"{conflict.resolution.value}"
    )


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one key.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report for {report.project_id}/{report.stage}"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"{len(report.pulled)} pulled, {len(report.pushed)} pushed, "
        f"{len(report.conflicts)} conflicts, {len(report.errors)} errors, "
        f"{report.result.unchanged} unchanged"
    )
    lines.append("")

    if report.pulled:
        lines.append("Pulled from remote:")
        lines.extend(_change_line(c) for c in report.pulled)
        lines.append("")

    if report.pushed:
        lines.append("Pushed to remote:")
        lines.extend(_change_line(c) for c in report.pushed)
        lines.append("")

    if report.conflicts:
        lines.append("Conflicts:")
        lines.extend(_conflict_line(c) for c in report.conflicts)
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for f in report.errors:
            lines.append(f"  {f.key} ({f.action.value}): {f.error}")
        lines.append("")

    if report.skipped:
        lines.append(
            f"Skipped: {len(report.skipped)} keys (direction={report.direction})"
        )
        lines.append("")

    if report.warnings:
        lines.append("Warnings:")
        lines.extend(f"  {w}" for w in report.warnings)
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by action type.

    Args:
        report: A dry-run sync report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Project: {report.project_id}  Stage: {report.stage}")
    lines.append("")

    for label, changes in (("PULL", report.pulled), ("PUSH", report.pushed)):
        if not changes:
            continue
        lines.append(f"[{label}]")
        lines.extend(_change_line(c) for c in changes)
        lines.append("")

    if report.conflicts:
        lines.append("[CONFLICT]")
        lines.extend(_conflict_line(c) for c in report.conflicts)
        lines.append("")

    if report.result.unchanged:
        lines.append(f"Unchanged: {report.result.unchanged} keys")
        lines.append("")

    if report.result.is_empty:
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Status and history
# ------------------------------------------------------------------


def format_status(status: SyncStatus) -> str:
    """Format a ``SyncStatus`` as human-readable text."""
    lines = [
        f"Project: {status.project_id}",
        f"Stage:   {status.stage}",
        f"File:    {status.local_path}",
        f"Local variables:  {status.local_count}",
        f"Remote variables: {status.remote_count}",
        f"Last sync: {status.last_sync or 'never'}",
        "",
    ]
    if status.in_sync:
        lines.append("In sync.")
        return "\n".join(lines)

    pending_pull = [c for c in status.pending if c.action.value == "pull"]
    pending_push = [c for c in status.pending if c.action.value == "push"]
    if pending_pull:
        lines.append("Pending pull:")
        lines.extend(_change_line(c) for c in pending_pull)
    if pending_push:
        lines.append("Pending push:")
        lines.extend(_change_line(c) for c in pending_push)
    if status.conflicts:
        lines.append("Conflicts:")
        lines.extend(_conflict_line(c) for c in status.conflicts)
    return "\n".join(lines).rstrip()


def format_history(records: list[VersionRecord]) -> str:
    """Format version records, one block per record."""
    if not records:
        return "No history."
    lines: list[str] = []
    for record in records:
        header = (
            f"v{record.version_number} {record.change_type.value} "
            f"{record.entity_id} by {record.author} at "
            f"{record.created_at.isoformat()}  [{record.id}]"
        )
        lines.append(header)
        if record.message:
            lines.append(f"  {record.message}")
        for change in record.changes:
            if change.change_type.value == "modified":
                lines.append(
                    f"  {change.field}: {_show(change.old_value)} -> "
                    f"{_show(change.new_value)}"
                )
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The sync report.

    Returns:
        Dict with project info, counts and per-key details.
    """
    return {
        "project_id": report.project_id,
        "stage": report.stage,
        "direction": report.direction,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "pulled": len(report.pulled),
            "pushed": len(report.pushed),
            "conflicts": len(report.conflicts),
            "errors": len(report.errors),
            "unchanged": report.result.unchanged,
            "skipped": len(report.skipped),
        },
        "applied": [
            c.model_dump(mode="json") for c in report.result.applied
        ],
        "conflicts": [c.model_dump(mode="json") for c in report.conflicts],
        "failed": [f.model_dump(mode="json") for f in report.errors],
        "skipped": list(report.skipped),
        "warnings": list(report.warnings),
    }


def status_to_json(status: SyncStatus) -> dict:
    """Convert a ``SyncStatus`` to a JSON-ready dict."""
    data = status.model_dump(mode="json")
    data["in_sync"] = status.in_sync
    return data


def history_to_json(records: list[VersionRecord]) -> list[dict]:
    """Convert version records to JSON-ready dicts."""
    return [r.model_dump(mode="json") for r in records]

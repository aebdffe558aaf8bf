"""Sync state persistence layer.

Manages the JSON state files that hold the last-synced baseline in the
``.envzip/`` directory.  Each {project, stage} pair gets its own state
file (``sync_{project}_{stage}.json``) containing the baseline snapshot,
the local file hash at the last pass and a timestamp.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Content hashing** -- ``content_hash()`` normalises content (BOM,
  line-endings, trailing whitespace) before SHA-256 so hashes are stable
  across platforms.
* **Dict-based state** -- state is a plain ``dict`` rather than a Pydantic
  model so callers can mutate it freely during a sync run and persist once
  at the end, after both sides have been written.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".envzip"


class SyncState:
    """Load, save, and query sync state for a project stage.

    Args:
        state_dir: Path to the directory where state files are stored
            (typically ``.envzip/``).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, project_id: str, stage: str) -> dict:
        """Load sync state from disk.

        Args:
            project_id: Project key (used in the filename).
            stage: Stage name (used in the filename).

        Returns:
            The state dict.  If the file does not exist, or cannot be
            decoded, an empty state with ``version=1`` is returned.
        """
        path = self._state_path(project_id, stage)
        empty = {
            "version": 1,
            "last_sync": None,
            "project": project_id,
            "stage": stage,
            "local_hash": None,
            "baseline": {},
        }
        if not path.exists():
            return empty
        try:
            with open(path, encoding="utf-8") as fh:
                return json.load(fh)
        except json.JSONDecodeError as exc:
            logger.warning(
                "Ignoring unreadable sync state %s (%s); next sync starts "
                "from an empty baseline",
                path,
                exc,
            )
            return empty

    def save(self, project_id: str, stage: str, state: dict) -> None:
        """Persist sync state to disk atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates ``state_dir`` if it does not exist.

        The ``last_sync`` field is set to the current UTC ISO 8601 timestamp
        before writing.

        Args:
            project_id: Project key.
            stage: Stage name.
            state: The state dict to persist.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        target = self._state_path(project_id, stage)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, target)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Baseline helpers
    # ------------------------------------------------------------------

    @staticmethod
    def baseline(state: dict) -> dict[str, str]:
        """Return a copy of the last-synced snapshot held in *state*."""
        return dict(state.get("baseline", {}))

    @staticmethod
    def set_baseline(state: dict, snapshot: Mapping[str, str]) -> None:
        """Replace the baseline in *state*.  Mutates *state* in place."""
        state["baseline"] = dict(sorted(snapshot.items()))

    # ------------------------------------------------------------------
    # Content hashing
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(content: str) -> str:
        """Compute a normalised SHA-256 hex digest of *content*.

        Normalisation steps (applied in order):

        1. Strip BOM (``\\ufeff``).
        2. Replace ``\\r\\n`` with ``\\n``.
        3. Right-strip each line.
        4. Strip trailing empty lines.

        The result is encoded as UTF-8 before hashing.
        """
        text = content.lstrip("\ufeff")
        text = text.replace("\r\n", "\n")
        lines = [line.rstrip() for line in text.split("\n")]
        while lines and lines[-1] == "":
            lines.pop()
        normalised = "\n".join(lines)
        return hashlib.sha256(normalised.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _state_path(self, project_id: str, stage: str) -> Path:
        """Return the path to the state file for a project stage."""
        return self._state_dir / f"sync_{project_id}_{stage}.json"

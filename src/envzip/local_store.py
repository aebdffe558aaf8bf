"""Local ``.env`` file store.

``LocalStore`` is the only component that writes the local file.  It
exposes the file as a plain ``dict[str, str]`` snapshot and writes
changes back through the comment-preserving codec.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from envzip import codec
from envzip.file_handler import read_file_with_encoding, write_file

logger = logging.getLogger(__name__)

DEFAULT_HEADER = "# Environment variables\n"


class LocalStore:
    """Read and write a local ``KEY=VALUE`` file.

    Args:
        path: Path to the ``.env`` file.  It need not exist yet; a
            missing file reads as empty.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read_text(self) -> str:
        """Return the raw file content, or ``""`` when the file is missing."""
        if not self.path.exists():
            return ""
        content, encoding = read_file_with_encoding(self.path)
        if encoding != "utf-8":
            logger.warning(
                "%s is not UTF-8 (detected %s); it will be rewritten as UTF-8",
                self.path,
                encoding,
            )
        return content

    def read(self) -> dict[str, str]:
        """Return the current local snapshot."""
        return codec.parse(self.read_text())

    def write(
        self,
        updates: Mapping[str, str],
        removals: Iterable[str] = (),
    ) -> dict[str, str]:
        """Merge *updates* and *removals* into the file.

        The existing layout is preserved (see ``codec.serialize``).  The
        file always ends with a newline.  Nothing is written when there
        is nothing to change.

        Returns:
            The snapshot after the write.
        """
        removals = list(removals)
        existing = self.read_text()
        if not updates and not removals:
            return codec.parse(existing)

        content = codec.serialize(existing, updates, removals)
        if content and not content.endswith("\n"):
            content += "\n"
        write_file(self.path, content)
        logger.debug(
            "Wrote %s (%d updated, %d removed)",
            self.path,
            len(updates),
            len(removals),
        )
        return codec.parse(content)

    def ensure_exists(self, header: str = DEFAULT_HEADER) -> bool:
        """Create the file with *header* if it does not exist.

        Returns:
            ``True`` if the file was created.
        """
        if self.path.exists():
            return False
        write_file(self.path, header)
        logger.info("Created %s", self.path)
        return True

    def modified_at(self) -> datetime | None:
        """Return the file mtime as an aware UTC datetime."""
        if not self.path.exists():
            return None
        return datetime.fromtimestamp(
            self.path.stat().st_mtime, tz=timezone.utc
        )

    def content_hash(self) -> str | None:
        """SHA-256 of the raw file bytes, or ``None`` when missing.

        Used by the watcher to tell a real edit from a touch.
        """
        if not self.path.exists():
            return None
        return hashlib.sha256(self.path.read_bytes()).hexdigest()

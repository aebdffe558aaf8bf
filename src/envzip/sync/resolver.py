"""Conflict resolution policies for the reconciliation engine.

Values are opaque strings, so no content merge is attempted; a policy
only picks a side.  Every policy still reports the conflict.

- ``RemoteWinsResolver``: Always keeps the remote value (default).
- ``LocalWinsResolver``: Always keeps the local value.
- ``NewestWinsResolver``: Keeps the side modified most recently, falling
  back to remote when either timestamp is unknown.

The ``create_resolver()`` factory maps config strategy strings to resolver
instances.
"""

from __future__ import annotations

import logging
from typing import Protocol

from envzip.sync.models import ConflictInfo, Resolution

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = "remote-wins"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, conflict: ConflictInfo) -> Resolution:
        """Pick the side whose value is kept.

        Args:
            conflict: Details about the conflicting key.

        Returns:
            ``Resolution.LOCAL`` or ``Resolution.REMOTE``.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


class RemoteWinsResolver:
    """Always resolve conflicts in favour of the remote value."""

    def resolve(self, conflict: ConflictInfo) -> Resolution:
        """Always return ``Resolution.REMOTE``."""
        return Resolution.REMOTE


class LocalWinsResolver:
    """Always resolve conflicts in favour of the local value."""

    def resolve(self, conflict: ConflictInfo) -> Resolution:
        """Always return ``Resolution.LOCAL``."""
        return Resolution.LOCAL


class NewestWinsResolver:
    """Resolve conflicts by comparing modification times.

    The local side is timed by the ``.env`` file's mtime, the remote
    side by the entry's ``last_modified_at``.  Ties and missing
    timestamps go to the remote side.
    """

    def resolve(self, conflict: ConflictInfo) -> Resolution:
        local_ts = conflict.local_modified_at
        remote_ts = conflict.remote_modified_at
        if local_ts is None or remote_ts is None:
            logger.debug(
                "No timestamps for %s, falling back to remote", conflict.key
            )
            return Resolution.REMOTE
        if local_ts > remote_ts:
            return Resolution.LOCAL
        return Resolution.REMOTE


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "remote-wins": RemoteWinsResolver,
    "local-wins": LocalWinsResolver,
    "newest-wins": NewestWinsResolver,
}


def create_resolver(strategy: str = DEFAULT_STRATEGY) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: One of ``"remote-wins"``, ``"local-wins"``,
            ``"newest-wins"``.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]

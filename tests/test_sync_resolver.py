"""Tests for sync conflict resolver strategies."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from envzip.sync.models import ConflictInfo, Resolution
from envzip.sync.resolver import (
    LocalWinsResolver,
    NewestWinsResolver,
    RemoteWinsResolver,
    create_resolver,
)

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_conflict(
    *,
    local_at: datetime | None = None,
    remote_at: datetime | None = None,
) -> ConflictInfo:
    """Build a minimal ConflictInfo for testing."""
    return ConflictInfo(
        key="DATABASE_URL",
        local_value="postgres://local",
        remote_value="postgres://remote",
        base_value="postgres://old",
        local_modified_at=local_at,
        remote_modified_at=remote_at,
    )


# ---------------------------------------------------------------------------
# Fixed-side resolvers
# ---------------------------------------------------------------------------


class TestFixedResolvers:
    def test_remote_wins(self) -> None:
        assert RemoteWinsResolver().resolve(_make_conflict()) == Resolution.REMOTE

    def test_local_wins(self) -> None:
        assert LocalWinsResolver().resolve(_make_conflict()) == Resolution.LOCAL


# ---------------------------------------------------------------------------
# NewestWinsResolver
# ---------------------------------------------------------------------------


class TestNewestWinsResolver:
    def test_newer_local_wins(self) -> None:
        conflict = _make_conflict(
            local_at=T0 + timedelta(seconds=1), remote_at=T0
        )
        assert NewestWinsResolver().resolve(conflict) == Resolution.LOCAL

    def test_newer_remote_wins(self) -> None:
        conflict = _make_conflict(
            local_at=T0, remote_at=T0 + timedelta(seconds=1)
        )
        assert NewestWinsResolver().resolve(conflict) == Resolution.REMOTE

    def test_tie_goes_to_remote(self) -> None:
        conflict = _make_conflict(local_at=T0, remote_at=T0)
        assert NewestWinsResolver().resolve(conflict) == Resolution.REMOTE

    @pytest.mark.parametrize(
        "local_at, remote_at", [(None, T0), (T0, None), (None, None)]
    )
    def test_missing_timestamp_goes_to_remote(self, local_at, remote_at):
        conflict = _make_conflict(local_at=local_at, remote_at=remote_at)
        assert NewestWinsResolver().resolve(conflict) == Resolution.REMOTE


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCreateResolver:
    def test_default_is_remote_wins(self) -> None:
        assert isinstance(create_resolver(), RemoteWinsResolver)

    @pytest.mark.parametrize(
        "strategy, cls",
        [
            ("remote-wins", RemoteWinsResolver),
            ("local-wins", LocalWinsResolver),
            ("newest-wins", NewestWinsResolver),
        ],
    )
    def test_known_strategies(self, strategy, cls) -> None:
        assert isinstance(create_resolver(strategy), cls)

    def test_unknown_strategy_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            create_resolver("merge")

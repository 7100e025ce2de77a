"""Durable storage contract for start/end snapshots."""

from __future__ import annotations

from typing import Optional, Protocol

from models.leaderboard import Snapshot, SnapshotLabel


class SnapshotStore(Protocol):
    async def load(self, label: SnapshotLabel) -> Optional[Snapshot]:
        """Return the persisted snapshot for ``label`` or ``None`` when absent."""

    async def save(self, snapshot: Snapshot) -> None:
        """Persist ``snapshot``; an existing snapshot for the label is never replaced."""

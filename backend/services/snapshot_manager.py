import asyncio
from typing import Callable, Optional, Sequence

from interfaces.snapshot_store import SnapshotStore
from models.leaderboard import Participant, Snapshot, SnapshotLabel
from utils.logger import snapshot_logger as logger
from utils.utcnow import utcnow


class SnapshotManager:
    """Captures each labelled snapshot at most once.

    The first request for a label consults the store so a restart never
    re-captures. Check-and-set happens under a per-label lock. Persisting is
    fail-soft: the in-memory copy keeps serving reads even if the store
    rejected it.
    """

    def __init__(self, store: SnapshotStore, clock: Callable = utcnow):
        self._store = store
        self._clock = clock
        self._snapshots: dict[SnapshotLabel, Snapshot] = {}
        self._checked: set[SnapshotLabel] = set()
        self._locks = {label: asyncio.Lock() for label in SnapshotLabel}

    @property
    def store(self) -> SnapshotStore:
        return self._store

    async def restore(self) -> None:
        """Load every label present in durable storage."""
        for label in SnapshotLabel:
            async with self._locks[label]:
                await self._load_into_memory(label)

    async def _load_into_memory(self, label: SnapshotLabel) -> bool:
        """Returns False when the store could not be read."""
        if label in self._checked:
            return True
        try:
            existing = await self._store.load(label)
        except Exception as e:
            logger.error("Failed to read persisted snapshot", label=label.value, error=str(e))
            return False
        self._checked.add(label)
        if existing is not None:
            self._snapshots[label] = existing
            logger.info(
                "Restored snapshot",
                label=label.value,
                participants=len(existing.participants),
                captured_at=existing.captured_at.isoformat(),
            )
        return True

    async def capture_if_needed(self, label: SnapshotLabel, participants: Sequence[Participant]) -> bool:
        """Capture ``participants`` under ``label`` unless a snapshot already exists.

        Returns True only when this call captured a new snapshot.
        """
        async with self._locks[label]:
            if label in self._snapshots:
                return False
            if not await self._load_into_memory(label):
                # Unknown durable state; capturing now could shadow an existing snapshot.
                return False
            if label in self._snapshots:
                return False

            snapshot = Snapshot(
                label=label,
                captured_at=self._clock(),
                participants=tuple(p.model_copy(deep=True) for p in participants),
            )
            self._snapshots[label] = snapshot
            logger.info("Captured snapshot", label=label.value, participants=len(snapshot.participants))

            try:
                await self._store.save(snapshot)
            except Exception as e:
                logger.error("Failed to persist snapshot", label=label.value, error=str(e))
            return True

    def get(self, label: SnapshotLabel) -> Optional[Snapshot]:
        return self._snapshots.get(label)

    def has(self, label: SnapshotLabel) -> bool:
        return label in self._snapshots

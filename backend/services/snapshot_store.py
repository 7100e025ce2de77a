"""Snapshot persistence backends.

Each label is stored independently, so ``start`` and ``end`` can each be
present or absent. Stores never replace an existing snapshot.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from interfaces.snapshot_store import SnapshotStore
from models.database import LeaderboardSnapshotRecord, create_engine, create_session_factory, init_database
from models.leaderboard import Participant, Snapshot, SnapshotLabel
from services.errors import ConfigurationError, SnapshotStoreError
from utils.logger import snapshot_logger as logger


class MemorySnapshotStore:
    """Process-local store used when persistence is disabled"""

    def __init__(self):
        self._snapshots: dict[SnapshotLabel, Snapshot] = {}

    async def load(self, label: SnapshotLabel) -> Optional[Snapshot]:
        return self._snapshots.get(label)

    async def save(self, snapshot: Snapshot) -> None:
        self._snapshots.setdefault(snapshot.label, snapshot)


class FileSnapshotStore:
    """One JSON document per label (``<directory>/<label>.json``)"""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, label: SnapshotLabel) -> Path:
        return self.directory / f"{label.value}.json"

    async def load(self, label: SnapshotLabel) -> Optional[Snapshot]:
        return await asyncio.to_thread(self._load_sync, label)

    async def save(self, snapshot: Snapshot) -> None:
        await asyncio.to_thread(self._save_sync, snapshot)

    def _load_sync(self, label: SnapshotLabel) -> Optional[Snapshot]:
        path = self.path_for(label)
        if not path.exists():
            return None
        try:
            return Snapshot.model_validate_json(path.read_bytes())
        except (OSError, ValidationError, ValueError) as e:
            raise SnapshotStoreError(f"Unreadable snapshot file {path}: {e}") from e

    def _save_sync(self, snapshot: Snapshot) -> None:
        path = self.path_for(snapshot.label)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            if path.exists():
                logger.warning("Snapshot file already exists, keeping it", label=snapshot.label.value, path=str(path))
                return
            # Write to a sibling temp file and rename so readers never see a partial document.
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{snapshot.label.value}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(snapshot.model_dump_json(indent=2))
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise SnapshotStoreError(f"Failed to write snapshot file {path}: {e}") from e


class DatabaseSnapshotStore:
    """Snapshots in the ``leaderboard_snapshots`` table, label as primary key"""

    def __init__(self, session_factory, engine=None):
        self._session_factory = session_factory
        self._engine = engine
        self._ready = engine is None

    @classmethod
    def from_url(cls, database_url: str) -> "DatabaseSnapshotStore":
        engine = create_engine(database_url)
        return cls(create_session_factory(engine), engine=engine)

    async def _ensure_schema(self) -> None:
        if not self._ready:
            await init_database(self._engine)
            self._ready = True

    async def load(self, label: SnapshotLabel) -> Optional[Snapshot]:
        try:
            await self._ensure_schema()
            async with self._session_factory() as session:
                record = await session.get(LeaderboardSnapshotRecord, label.value)
                if record is None:
                    return None
                return Snapshot(
                    label=label,
                    captured_at=record.captured_at,
                    participants=tuple(Participant.model_validate(p) for p in record.participants_json or []),
                )
        except (SQLAlchemyError, ValidationError) as e:
            raise SnapshotStoreError(f"Failed to load snapshot '{label.value}': {e}") from e

    async def save(self, snapshot: Snapshot) -> None:
        try:
            await self._ensure_schema()
            async with self._session_factory() as session:
                existing = await session.get(LeaderboardSnapshotRecord, snapshot.label.value)
                if existing is not None:
                    logger.warning("Snapshot row already exists, keeping it", label=snapshot.label.value)
                    return
                session.add(
                    LeaderboardSnapshotRecord(
                        label=snapshot.label.value,
                        captured_at=snapshot.captured_at,
                        participants_json=[p.model_dump(mode="json") for p in snapshot.participants],
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise SnapshotStoreError(f"Failed to save snapshot '{snapshot.label.value}': {e}") from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()


def build_snapshot_store(settings) -> SnapshotStore:
    if not settings.SNAPSHOTS_ENABLED:
        return MemorySnapshotStore()
    backend = settings.SNAPSHOT_BACKEND
    if backend == "file":
        return FileSnapshotStore(settings.SNAPSHOT_DIR)
    if backend == "database":
        return DatabaseSnapshotStore.from_url(settings.DATABASE_URL)
    raise ConfigurationError(f"Unknown snapshot backend '{backend}' (expected 'file' or 'database')")

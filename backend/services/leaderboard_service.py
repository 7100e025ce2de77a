"""Owning service for the leaderboard.

Runs the periodic refresh pipeline in a background task, holds the
published board, and exposes read accessors for the API layer.

Refresh cycle, in order:
1. compute the competition status (never lower than the published one)
2. resync verified identities (fail-soft)
3. abort when there are no verified identities
4. abort while the competition has not started
5. after the end, optionally stop re-ranking once the end snapshot exists
6. fetch platform data for verified parties only
7. rank with the configured strategy
8. partition blacklisted participants out of the public list
9. assign positions within each partition
10. keep the previous participants when the strategy returned nothing
11. publish the new board
12. capture the start/end snapshot matching the status
"""

import asyncio
import time
from datetime import datetime
from typing import Callable, Mapping, Optional

from interfaces.data_sources import IdentitySource, PartyDataSource
from models.leaderboard import (
    Board,
    BoardMetadata,
    CompetitionStatus,
    CompetitionWindow,
    Snapshot,
    SnapshotLabel,
)
from models.platform import Party
from services.board_state import BoardState
from services.competition_clock import competition_status, later_status
from services.data_node import DataNodeClient
from services.errors import ConfigurationError
from services.ranking import assign_positions, partition_blacklisted
from services.snapshot_manager import SnapshotManager
from services.snapshot_store import build_snapshot_store
from services.strategies import BaseRankingStrategy, resolve_strategy
from services.verifier import VerificationClient, load_excluded_parties
from utils.logger import refresh_logger as logger
from utils.retry import RetryConfig
from utils.utcnow import utcnow

_SNAPSHOT_LABEL_FOR_STATUS = {
    CompetitionStatus.ACTIVE: SnapshotLabel.START,
    CompetitionStatus.ENDED: SnapshotLabel.END,
}


class LeaderboardService:
    def __init__(
        self,
        window: CompetitionWindow,
        strategy: BaseRankingStrategy,
        params: Mapping[str, str],
        metadata: BoardMetadata,
        verifier: IdentitySource,
        data_source: PartyDataSource,
        snapshots: SnapshotManager,
        poll_interval: float = 60.0,
        step_timeout: Optional[float] = None,
        refresh_after_end: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.window = window
        self.strategy = strategy
        self.params = dict(params)
        self.metadata = metadata
        self.poll_interval = poll_interval
        self.step_timeout = step_timeout
        self.refresh_after_end = refresh_after_end
        self._verifier = verifier
        self._data_source = data_source
        self._snapshots = snapshots
        self._clock = clock

        self._state = BoardState(Board(metadata=metadata))
        self._refresh_lock = asyncio.Lock()
        self._stopping = asyncio.Event()
        self._running = False
        self._task: Optional[asyncio.Task] = None

        self.last_error: Optional[str] = None
        self.last_refresh_at: Optional[datetime] = None
        self.refresh_count = 0

    # ==================== READ ACCESS ====================

    def board(self) -> Board:
        return self._state.current()

    def status(self) -> CompetitionStatus:
        return self._state.current().status

    def snapshot(self, label: SnapshotLabel) -> Optional[Snapshot]:
        return self._snapshots.get(label)

    def snapshot_board(self, label: SnapshotLabel) -> Optional[Board]:
        """The snapshot presented as a board, with current metadata and status."""
        snapshot = self._snapshots.get(label)
        if snapshot is None:
            return None
        current = self._state.current()
        return Board(
            metadata=current.metadata,
            last_update=snapshot.captured_at,
            status=current.status,
            participants=snapshot.participants,
        )

    # ==================== LIFECYCLE ====================

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Restore persisted snapshots and start the refresh loop (idempotent)."""
        if self._running:
            return
        await self._snapshots.restore()
        self._running = True
        self._stopping.clear()
        self._task = asyncio.create_task(self._run_loop(), name="leaderboard-refresh")
        logger.info(
            "Leaderboard refresh started",
            algorithm=self.strategy.key,
            interval_seconds=self.poll_interval,
            start=self.window.start.isoformat(),
            end=self.window.end.isoformat(),
        )

    async def stop(self, grace_seconds: float = 10.0) -> None:
        """Stop scheduling refreshes, let an in-flight cycle finish within ``grace_seconds``."""
        self._running = False
        self._stopping.set()
        task = self._task
        self._task = None
        if task is not None and not task.done():
            done, _ = await asyncio.wait({task}, timeout=max(grace_seconds, 0))
            if not done:
                logger.warning("Refresh still running after grace period, cancelling", grace_seconds=grace_seconds)
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        await self._verifier.close()
        await self._data_source.close()
        close_store = getattr(self._snapshots.store, "close", None)
        if close_store is not None:
            await close_store()
        logger.info("Leaderboard refresh stopped")

    async def _run_loop(self) -> None:
        while not self._stopping.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    # ==================== REFRESH PIPELINE ====================

    async def refresh(self) -> bool:
        """Run one refresh cycle. Never raises; returns True when a new ranking was published."""
        if self._refresh_lock.locked():
            logger.warning("Refresh already in progress, skipping")
            return False

        async with self._refresh_lock:
            started = time.monotonic()
            log = logger.with_context(cycle=self.refresh_count + 1, algorithm=self.strategy.key)
            try:
                published = await self._refresh_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.last_error = f"{type(e).__name__}: {e}"
                log.exception("Leaderboard refresh failed", error=str(e), elapsed_ms=self._elapsed_ms(started))
                return False

            self.refresh_count += 1
            self.last_refresh_at = self._clock()
            if published:
                self.last_error = None
            board = self._state.current()
            log.info(
                "Leaderboard refresh complete",
                status=board.status.value,
                published=published,
                participants=len(board.participants),
                excluded=len(board.excluded),
                elapsed_ms=self._elapsed_ms(started),
            )
            return published

    async def _refresh_cycle(self) -> bool:
        now = self._clock()
        previous = self._state.current()
        status = later_status(previous.status, competition_status(now, self.window))

        identities = await self._resync_identities()
        if not identities:
            logger.warning("No verified identities, skipping ranking")
            self._publish_status(previous, status, now)
            return False

        if status == CompetitionStatus.NOT_STARTED:
            logger.info("Competition not started yet", start=self.window.start.isoformat())
            self._publish_status(previous, status, now)
            return False

        if (
            status == CompetitionStatus.ENDED
            and not self.refresh_after_end
            and self._snapshots.has(SnapshotLabel.END)
        ):
            logger.debug("Competition ended and end snapshot exists, board frozen")
            self._publish_status(previous, status, now)
            return False

        parties = await self._fetch_parties([identity.party_id for identity in identities])
        ranked = self.strategy.rank(identities, parties, self.window, self.params, now)

        public, excluded = partition_blacklisted(ranked)
        if ranked:
            participants = tuple(assign_positions(public))
            excluded_participants = tuple(assign_positions(excluded))
        else:
            logger.warning("Strategy returned no participants, keeping previous board")
            participants = previous.participants
            excluded_participants = previous.excluded

        board = Board(
            metadata=self.metadata,
            last_update=now,
            status=status,
            participants=participants,
            excluded=excluded_participants,
        )
        self._state.publish(board)

        label = _SNAPSHOT_LABEL_FOR_STATUS.get(status)
        if label is not None:
            await self._snapshots.capture_if_needed(label, board.participants)
        return True

    async def _resync_identities(self):
        try:
            if self.step_timeout:
                return await asyncio.wait_for(self._verifier.resync(), timeout=self.step_timeout)
            return await self._verifier.resync()
        except asyncio.TimeoutError:
            logger.warning("Verifier resync timed out, keeping previous identities", timeout=self.step_timeout)
            return self._verifier.identities()

    async def _fetch_parties(self, party_ids: list[str]) -> dict[str, Party]:
        query = self.strategy.query
        if not query:
            return {}
        fetch = self._data_source.fetch_parties(query, self.strategy.variables(self.params), party_ids)
        parties = await (asyncio.wait_for(fetch, timeout=self.step_timeout) if self.step_timeout else fetch)
        allowed = set(party_ids)
        return {party.id: party for party in parties if party.id in allowed}

    def _publish_status(self, previous: Board, status: CompetitionStatus, now: datetime) -> None:
        if previous.status == status and previous.last_update is not None:
            return
        self._state.publish(previous.model_copy(update={"status": status, "last_update": now}))

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)


def build_leaderboard_service(settings) -> LeaderboardService:
    """Wire the service from settings; raises ``ConfigurationError`` on invalid configuration."""
    if settings.COMPETITION_START_TIME is None or settings.COMPETITION_END_TIME is None:
        raise ConfigurationError("COMPETITION_START_TIME and COMPETITION_END_TIME are required")
    if settings.COMPETITION_END_TIME < settings.COMPETITION_START_TIME:
        raise ConfigurationError("COMPETITION_END_TIME must not be before COMPETITION_START_TIME")

    strategy = resolve_strategy(settings.ALGORITHM, settings.ALGORITHM_CONFIG)
    retry_config = RetryConfig.from_settings(settings)
    excluded_parties = (
        load_excluded_parties(settings.EXCLUDED_PARTIES_FILE) if settings.EXCLUDED_PARTIES_FILE else frozenset()
    )
    verifier = VerificationClient(
        settings.SOCIAL_URL,
        blacklist=settings.BLACKLIST,
        excluded_parties=excluded_parties,
        timeout=settings.API_TIMEOUT_SECONDS,
        retry_config=retry_config,
    )
    data_source = DataNodeClient(
        settings.DATA_NODE_GRAPHQL_URL,
        timeout=settings.API_TIMEOUT_SECONDS,
        retry_config=retry_config,
    )
    # Bound each external step by the worst case of the retried requests.
    step_timeout = settings.API_TIMEOUT_SECONDS * max(1, settings.MAX_RETRY_ATTEMPTS) + 10 * settings.RETRY_BASE_DELAY

    return LeaderboardService(
        window=CompetitionWindow(start=settings.COMPETITION_START_TIME, end=settings.COMPETITION_END_TIME),
        strategy=strategy,
        params=settings.ALGORITHM_CONFIG,
        metadata=BoardMetadata.from_settings(settings),
        verifier=verifier,
        data_source=data_source,
        snapshots=SnapshotManager(build_snapshot_store(settings)),
        poll_interval=settings.POLL_INTERVAL_SECONDS,
        step_timeout=step_timeout,
        refresh_after_end=settings.REFRESH_AFTER_END,
    )

from sqlalchemy import Column, String, DateTime, JSON, event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from pathlib import Path
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()

_SQLITE_ASYNC_PREFIX = "sqlite+aiosqlite:///"


# ==================== LEADERBOARD SNAPSHOTS ====================


class LeaderboardSnapshotRecord(Base):
    """Persisted start/end snapshot, one row per label"""

    __tablename__ = "leaderboard_snapshots"

    label = Column(String, primary_key=True)
    captured_at = Column(DateTime(timezone=True), nullable=False)
    participants_json = Column(JSON, nullable=False)


# ==================== DATABASE SETUP ====================


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite for concurrent readers (WAL mode, busy timeout)."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


def create_engine(database_url: str) -> AsyncEngine:
    engine_kw: dict = {"echo": False}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        engine_kw["connect_args"] = {"timeout": 30}
        path_part = database_url[len(_SQLITE_ASYNC_PREFIX):] if database_url.startswith(_SQLITE_ASYNC_PREFIX) else ""
        if path_part and path_part != ":memory:":
            Path(path_part).parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(database_url, **engine_kw)
    if is_sqlite and ":memory:" not in database_url:
        event.listens_for(engine.sync_engine, "connect")(_set_sqlite_pragma)
    return engine


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_database(engine: AsyncEngine) -> None:
    """Create the snapshot table if it does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Snapshot database ready")

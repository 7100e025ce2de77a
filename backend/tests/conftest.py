"""Shared fixtures for leaderboard tests."""

import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import pytest
from datetime import datetime, timezone
from typing import Optional

from models.leaderboard import (
    BoardMetadata,
    CompetitionWindow,
    Participant,
    VerifiedIdentity,
)
from models.platform import Party


START = datetime(2024, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 1, 8, tzinfo=timezone.utc)


class FakeClock:
    """Settable wall clock for pipeline tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeVerifier:
    """In-memory identity source mirroring VerificationClient's fail-soft resync."""

    def __init__(self, identities=(), fail: bool = False):
        self._identities: tuple[VerifiedIdentity, ...] = ()
        self.next_identities = tuple(identities)
        self.fail = fail
        self.delay = 0.0
        self.resync_calls = 0
        self.closed = False

    async def resync(self):
        self.resync_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.fail:
            self._identities = self.next_identities
        return self._identities

    def identities(self):
        return self._identities

    async def close(self):
        self.closed = True


class FakeDataSource:
    """Returns canned parties and records every call."""

    def __init__(self, parties=(), error: Optional[Exception] = None):
        self.parties = list(parties)
        self.error = error
        self.calls: list[tuple] = []
        self.closed = False

    async def fetch_parties(self, query, variables, party_ids):
        self.calls.append((query, variables, tuple(party_ids)))
        if self.error is not None:
            raise self.error
        return list(self.parties)

    async def close(self):
        self.closed = True


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def window():
    return CompetitionWindow(start=START, end=END)


@pytest.fixture
def metadata():
    return BoardMetadata(
        version=2,
        base="BTC",
        quote="USD",
        asset="tUSDC",
        description="Test competition",
        default_display="Balance",
        default_sort="desc",
        headers=("Balance",),
    )


@pytest.fixture
def identities():
    return (
        VerifiedIdentity(party_id="0xAL1CE", handle="Alice", handle_id=1),
        VerifiedIdentity(party_id="0xB0B", handle="bob", handle_id=2),
        VerifiedIdentity(party_id="0xEVE", handle="eve", handle_id=3, is_blacklisted=True),
    )


@pytest.fixture
def make_participant():
    def _make(pid: str, handle: Optional[str] = None, score: float = 0.0, blacklisted: bool = False, **kwargs):
        return Participant(
            id=pid,
            handle=handle,
            data=(str(score),),
            sort_value=score,
            is_blacklisted=blacklisted,
            **kwargs,
        )

    return _make


@pytest.fixture
def balance_party():
    """Factory for a party holding ``raw`` units of tUSDC in its general account."""

    def _make(party_id: str, raw: str) -> Party:
        return Party.from_graphql(
            {
                "id": party_id,
                "accountsConnection": {
                    "edges": [
                        {
                            "node": {
                                "asset": {"id": "asset-1", "symbol": "tUSDC", "decimals": 5},
                                "balance": raw,
                                "type": "ACCOUNT_TYPE_GENERAL",
                            }
                        }
                    ]
                },
            }
        )

    return _make


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock(datetime(2023, 12, 31, tzinfo=timezone.utc))


@pytest.fixture
def verifier(identities):
    return FakeVerifier(identities)


@pytest.fixture
def data_source():
    return FakeDataSource()

"""External collaborator contracts for the refresh pipeline.

The pipeline depends on these protocols rather than on the HTTP clients so
tests and alternative backends can stand in for the verification service and
the data node.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from models.leaderboard import VerifiedIdentity
from models.platform import Party


class IdentitySource(Protocol):
    """Cache of verified identities refreshed once per cycle."""

    async def resync(self) -> tuple[VerifiedIdentity, ...]:
        """Refetch identities; keep and return the previous set on failure."""

    def identities(self) -> tuple[VerifiedIdentity, ...]:
        """Current immutable identity set."""

    async def close(self) -> None:
        """Release network resources."""


class PartyDataSource(Protocol):
    """Read-only access to platform party records."""

    async def fetch_parties(
        self,
        query: str,
        variables: Optional[dict[str, Any]],
        party_ids: Sequence[str],
    ) -> list[Party]:
        """Run ``query`` and return parties restricted to ``party_ids``."""

    async def close(self) -> None:
        """Release network resources."""

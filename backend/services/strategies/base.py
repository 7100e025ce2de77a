from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from models.leaderboard import CompetitionWindow, Participant, VerifiedIdentity
from models.platform import Party
from utils.parsing import safe_int, split_list


class BaseRankingStrategy(ABC):
    """Base class for leaderboard ranking algorithms.

    A strategy turns the verified identities plus the platform data fetched
    with its ``query`` into an ordered participant list. It must not perform
    I/O of its own; the refresh pipeline runs the query and hands over the
    parties keyed by party id (only verified parties are ever present).

    Each subclass documents its ordering. Ties keep the order in which the
    strategy produced the rows, which is verified-identity order unless
    stated otherwise.
    """

    key: str = ""
    name: str = ""
    description: str = ""
    required_params: tuple[str, ...] = ()
    # GraphQL text; None when the strategy needs no platform data.
    query: Optional[str] = None

    def variables(self, params: Mapping[str, str]) -> dict[str, Any]:
        """GraphQL variables for ``query``"""
        return {}

    @abstractmethod
    def rank(
        self,
        identities: Sequence[VerifiedIdentity],
        parties: Mapping[str, Party],
        window: CompetitionWindow,
        params: Mapping[str, str],
        now: datetime,
    ) -> list[Participant]:
        """Return participants ordered best first"""

    @staticmethod
    def participant_for(
        identity: VerifiedIdentity,
        data: Sequence[str],
        sort_value: float,
        now: Optional[datetime],
    ) -> Participant:
        return Participant(
            id=identity.party_id,
            handle=identity.handle or None,
            handle_id=identity.handle_id,
            data=tuple(data),
            sort_value=sort_value,
            created_at=now,
            updated_at=now,
            is_blacklisted=identity.is_blacklisted,
        )

    @staticmethod
    def sort_descending(participants: Sequence[Participant]) -> list[Participant]:
        """Highest ``sort_value`` first; ``sorted`` is stable even with ``reverse=True``."""
        return sorted(participants, key=lambda p: p.sort_value, reverse=True)

    @staticmethod
    def int_param(params: Mapping[str, str], name: str, default: int) -> int:
        raw = params.get(name)
        if raw is None or str(raw).strip() == "":
            return default
        return safe_int(raw, name)

    @staticmethod
    def list_param(params: Mapping[str, str], name: str, default: Sequence[str] = ()) -> list[str]:
        values = split_list(params.get(name))
        return values or list(default)

    @staticmethod
    def format_amount(value: float, decimal_places: int) -> str:
        return f"{value:.{max(decimal_places, 0)}f}"

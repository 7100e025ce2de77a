from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.utcnow import ensure_utc, parse_timestamp


class CompetitionStatus(str, Enum):
    """Board lifecycle, ordered loading < notStarted < active < ended."""

    LOADING = "loading"
    NOT_STARTED = "notStarted"
    ACTIVE = "active"
    ENDED = "ended"

    @property
    def order(self) -> int:
        return _STATUS_ORDER[self]


_STATUS_ORDER = {
    CompetitionStatus.LOADING: 0,
    CompetitionStatus.NOT_STARTED: 1,
    CompetitionStatus.ACTIVE: 2,
    CompetitionStatus.ENDED: 3,
}


class SnapshotLabel(str, Enum):
    START = "start"
    END = "end"


class CompetitionWindow(BaseModel):
    """Start/end bounds of the competition, immutable for the process lifetime"""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end", mode="after")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class VerifiedIdentity(BaseModel):
    """A party mapped to a social handle by the verification service"""

    model_config = ConfigDict(frozen=True)

    party_id: str
    handle: str = ""
    handle_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_blacklisted: bool = False

    @classmethod
    def from_verifier_response(cls, data: dict) -> "VerifiedIdentity":
        """Parse one entry of the verification service's party list"""
        raw_id = data.get("twitter_user_id", data.get("user_id"))
        try:
            handle_id = int(raw_id) if raw_id not in (None, "") else None
        except (TypeError, ValueError, OverflowError):
            handle_id = None

        return cls(
            party_id=str(data.get("party_id") or "").strip(),
            handle=str(data.get("twitter_handle") or data.get("handle") or "").strip(),
            handle_id=handle_id,
            created_at=parse_timestamp(data.get("created")),
            updated_at=parse_timestamp(data.get("last_modified")),
            # Left to field coercion so "false" and "0" parse as False
            is_blacklisted=data.get("is_blacklisted") or False,
        )


class Participant(BaseModel):
    """One ranked row of the board.

    ``sort_value`` is the strategy's raw comparison key and ``position`` is
    assigned after partitioning; neither identifies the participant.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    handle: Optional[str] = None
    handle_id: Optional[int] = None
    position: int = 0
    data: tuple[str, ...] = ()
    sort_value: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_blacklisted: bool = False

    def public_dict(self) -> dict[str, Any]:
        """Fields exposed by the read API (the comparison key stays internal)."""
        return {
            "position": self.position,
            "id": self.id,
            "handle": self.handle,
            "handle_id": self.handle_id,
            "data": list(self.data),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class BoardMetadata(BaseModel):
    """Display fields copied verbatim from configuration"""

    model_config = ConfigDict(frozen=True)

    version: int = 1
    base: str = ""
    quote: str = ""
    asset: str = ""
    description: str = ""
    default_display: str = ""
    default_sort: str = ""
    headers: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Any) -> "BoardMetadata":
        return cls(
            version=settings.LEADERBOARD_VERSION,
            base=settings.BASE_ASSET,
            quote=settings.QUOTE_ASSET,
            asset=settings.ASSET,
            description=settings.DESCRIPTION,
            default_display=settings.DEFAULT_DISPLAY,
            default_sort=settings.DEFAULT_SORT,
            headers=tuple(settings.HEADERS),
        )


class Board(BaseModel):
    """The published leaderboard. Replaced wholesale, never mutated."""

    model_config = ConfigDict(frozen=True)

    metadata: BoardMetadata = Field(default_factory=BoardMetadata)
    last_update: Optional[datetime] = None
    status: CompetitionStatus = CompetitionStatus.LOADING
    participants: tuple[Participant, ...] = ()
    excluded: tuple[Participant, ...] = ()


class Snapshot(BaseModel):
    """Point-in-time copy of the public participants at competition start or end"""

    model_config = ConfigDict(frozen=True)

    label: SnapshotLabel
    captured_at: datetime
    participants: tuple[Participant, ...] = ()

    @field_validator("captured_at", mode="after")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

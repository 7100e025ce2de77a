from .leaderboard import (
    Board,
    BoardMetadata,
    CompetitionStatus,
    CompetitionWindow,
    Participant,
    Snapshot,
    SnapshotLabel,
    VerifiedIdentity,
)
from .platform import (
    Account,
    Asset,
    LiquidityProvision,
    Party,
    Position,
    Transfer,
    Vote,
)

__all__ = [
    "Board",
    "BoardMetadata",
    "CompetitionStatus",
    "CompetitionWindow",
    "Participant",
    "Snapshot",
    "SnapshotLabel",
    "VerifiedIdentity",
    "Account",
    "Asset",
    "LiquidityProvision",
    "Party",
    "Position",
    "Transfer",
    "Vote",
]

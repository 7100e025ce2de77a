from datetime import datetime

from models.leaderboard import CompetitionStatus, CompetitionWindow
from utils.utcnow import ensure_utc


def competition_status(now: datetime, window: CompetitionWindow) -> CompetitionStatus:
    """Lifecycle status of ``window`` at ``now``.

    ``now < start`` is notStarted, ``start <= now < end`` is active and
    ``now >= end`` is ended, so a window with ``start == end`` goes straight
    to ended once reached. ``loading`` is never returned here; it only
    describes a board that has not been refreshed yet.
    """
    now = ensure_utc(now)
    if now < window.start:
        return CompetitionStatus.NOT_STARTED
    if now < window.end:
        return CompetitionStatus.ACTIVE
    return CompetitionStatus.ENDED


def later_status(previous: CompetitionStatus, current: CompetitionStatus) -> CompetitionStatus:
    """The further-advanced of two statuses; a published status never regresses."""
    return current if current.order >= previous.order else previous

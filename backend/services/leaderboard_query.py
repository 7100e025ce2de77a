"""Read-side views over a published board: search, pagination and rendering.

Nothing here mutates the board and nothing raises on client input; bad
pagination values are clamped.
"""

import csv
import io
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from models.leaderboard import Board, Participant
from utils.logger import api_logger
from utils.utcnow import to_iso_z


@dataclass(frozen=True)
class LeaderboardView:
    board: Board
    participants: tuple[Participant, ...]
    total: int


def parse_query_int(raw: Optional[str], name: str = "param") -> Optional[int]:
    """Parse an integer query parameter; malformed values count as unspecified."""
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError:
        api_logger.warning("Could not parse query string param to int", param=name, value=raw[:64])
        return None


def search(participants: Sequence[Participant], query: Optional[str]) -> list[Participant]:
    """Case-insensitive substring match on id or handle; an empty query matches everything."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(participants)
    return [
        p for p in participants
        if needle in p.id.lower() or (p.handle is not None and needle in p.handle.lower())
    ]


def paginate(items: Sequence[Participant], skip: Optional[int], size: Optional[int]) -> list[Participant]:
    """Slice ``items[skip:skip+size]`` with clamping.

    ``skip`` clamps to ``[0, len]``. A missing or non-positive ``size`` means
    everything after ``skip``.
    """
    total = len(items)
    start = min(max(skip or 0, 0), total)
    if size is None or size <= 0:
        end = total
    else:
        end = min(start + size, total)
    return list(items[start:end])


def view(
    board: Board,
    query: Optional[str] = None,
    skip: Optional[int] = None,
    size: Optional[int] = None,
    want_excluded: bool = False,
) -> LeaderboardView:
    source = board.excluded if want_excluded else board.participants
    matched = search(source, query)
    return LeaderboardView(board=board, participants=tuple(paginate(matched, skip, size)), total=len(matched))


def render_json(result: LeaderboardView) -> dict[str, Any]:
    board = result.board
    meta = board.metadata
    participants = []
    for participant in result.participants:
        row = participant.public_dict()
        row["created_at"] = to_iso_z(participant.created_at)
        row["updated_at"] = to_iso_z(participant.updated_at)
        participants.append(row)

    return {
        "version": meta.version,
        "base": meta.base,
        "quote": meta.quote,
        "asset": meta.asset,
        "description": meta.description,
        "default_display": meta.default_display,
        "default_sort": meta.default_sort,
        "headers": list(meta.headers),
        "last_update": to_iso_z(board.last_update),
        "status": board.status.value,
        "total": result.total,
        "participants": participants,
    }


def render_csv(result: LeaderboardView) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["position", "id", "handle", *result.board.metadata.headers])
    for participant in result.participants:
        writer.writerow([participant.position, participant.id, participant.handle or "", *participant.data])
    return buffer.getvalue()

"""
Leaderboard API Routes

Read-only views over the published board and the start/end snapshots.
Query parameters are never rejected: malformed integers fall back to their
defaults and out-of-range values are clamped.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response

from models.leaderboard import Board, SnapshotLabel
from services.leaderboard_query import parse_query_int, render_csv, render_json, view
from services.leaderboard_service import LeaderboardService
from utils.logger import get_logger

logger = get_logger(__name__)

leaderboard_router = APIRouter()

CSV_MEDIA_TYPE = "text/csv"


def get_leaderboard_service(request: Request) -> LeaderboardService:
    service = getattr(request.app.state, "leaderboard", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Leaderboard service not started")
    return service


def _render(
    board: Board,
    q: Optional[str],
    skip: Optional[str],
    size: Optional[str],
    type_: Optional[str],
    blacklisted: Optional[str],
) -> Response:
    result = view(
        board,
        query=q,
        skip=parse_query_int(skip, "skip"),
        size=parse_query_int(size, "size"),
        want_excluded=(blacklisted or "").strip().lower() == "true",
    )
    if (type_ or "").strip().lower() == "csv":
        return Response(content=render_csv(result), media_type=CSV_MEDIA_TYPE)
    return JSONResponse(content=render_json(result))


@leaderboard_router.get("/leaderboard")
async def get_leaderboard(
    request: Request,
    q: Optional[str] = Query(None, description="Case-insensitive substring of party id or handle"),
    skip: Optional[str] = Query(None, description="Rows to skip"),
    size: Optional[str] = Query(None, description="Page size; missing or non-positive returns everything"),
    type: Optional[str] = Query(None, description="json (default) or csv"),
    blacklisted: Optional[str] = Query(None, description="true to list excluded participants"),
):
    """Current leaderboard page"""
    service = get_leaderboard_service(request)
    return _render(service.board(), q, skip, size, type, blacklisted)


@leaderboard_router.get("/leaderboard/snapshots/{label}")
async def get_leaderboard_snapshot(
    request: Request,
    label: str,
    q: Optional[str] = Query(None),
    skip: Optional[str] = Query(None),
    size: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
):
    """Leaderboard as captured when the competition started or ended"""
    try:
        snapshot_label = SnapshotLabel(label.strip().lower())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown snapshot '{label}'")

    service = get_leaderboard_service(request)
    board = service.snapshot_board(snapshot_label)
    if board is None:
        raise HTTPException(status_code=404, detail=f"Snapshot '{snapshot_label.value}' not captured yet")
    return _render(board, q, skip, size, type, None)

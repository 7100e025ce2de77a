from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
import traceback

from config import settings
from api import leaderboard_router
from services.config_validator import config_validator
from services.errors import ConfigurationError
from services.leaderboard_service import build_leaderboard_service
from utils.logger import setup_logging, get_logger
from utils.utcnow import to_iso_z

# Setup logging
setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON, log_file=settings.LOG_FILE)
logger = get_logger("main")

_INDEX_HTML = """<!DOCTYPE html>
<html>
<head><title>Leaderboard</title></head>
<body>
<h1>Competition leaderboard</h1>
<ul>
<li><a href="/leaderboard">Leaderboard (JSON)</a></li>
<li><a href="/leaderboard?type=csv">Leaderboard (CSV)</a></li>
<li><a href="/leaderboard?blacklisted=true">Excluded participants</a></li>
<li><a href="/leaderboard/snapshots/start">Start snapshot</a></li>
<li><a href="/leaderboard/snapshots/end">End snapshot</a></li>
<li><a href="/status">Status</a></li>
</ul>
</body>
</html>
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting leaderboard service...")

    validation = config_validator.validate_all(settings)
    if not validation.valid:
        raise ConfigurationError("Invalid configuration: " + "; ".join(validation.errors))

    service = build_leaderboard_service(settings)
    await service.start()
    app.state.leaderboard = service
    logger.info("Leaderboard service ready", algorithm=settings.ALGORITHM)

    try:
        yield
    finally:
        logger.info("Shutting down...")
        await service.stop(grace_seconds=settings.GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS)
        app.state.leaderboard = None
        logger.info("Shutdown complete")


app = FastAPI(
    title="Leaderboard",
    description="Competition leaderboard with periodic refresh and start/end snapshots",
    version="1.0.0",
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        traceback=traceback.format_exc(),
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(leaderboard_router, tags=["Leaderboard"])


@app.get("/", response_class=HTMLResponse)
async def index():
    return _INDEX_HTML


@app.get("/status")
async def status():
    """Liveness probe, independent of the board"""
    return {"success": True}


@app.get("/health")
async def health_check(request: Request):
    """Refresh loop health for operators"""
    service = getattr(request.app.state, "leaderboard", None)
    if service is None:
        return {"status": "starting"}
    board = service.board()
    return {
        "status": "ok" if service.running else "stopped",
        "competition_status": board.status.value,
        "last_update": to_iso_z(board.last_update),
        "last_refresh_at": to_iso_z(service.last_refresh_at),
        "refresh_count": service.refresh_count,
        "last_error": service.last_error,
        "participants": len(board.participants),
        "excluded": len(board.excluded),
    }


if __name__ == "__main__":
    import os
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=port,
        # Single worker: the refresh loop holds the board in process memory.
        timeout_keep_alive=30,
    )

from .routes_leaderboard import leaderboard_router

__all__ = ["leaderboard_router"]

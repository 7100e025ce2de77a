from .base import BaseRankingStrategy
from .registry import STRATEGIES, get_strategy, list_strategy_keys, resolve_strategy

__all__ = [
    "BaseRankingStrategy",
    "STRATEGIES",
    "get_strategy",
    "list_strategy_keys",
    "resolve_strategy",
]

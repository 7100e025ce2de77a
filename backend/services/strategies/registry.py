from typing import Mapping

from services.errors import MissingAlgorithmParameterError, UnknownStrategyError
from services.strategies.asset_balance import AssetBalanceStrategy
from services.strategies.base import BaseRankingStrategy
from services.strategies.deposit_withdrawal_count import DepositWithdrawalCountStrategy
from services.strategies.governance_votes import GovernanceVotesStrategy
from services.strategies.liquidity_share import LiquidityShareStrategy
from services.strategies.positions_pnl import PositionsPnlStrategy
from services.strategies.social_registration import SocialRegistrationStrategy


STRATEGIES: dict[str, BaseRankingStrategy] = {
    SocialRegistrationStrategy.key: SocialRegistrationStrategy(),
    AssetBalanceStrategy.key: AssetBalanceStrategy(),
    PositionsPnlStrategy.key: PositionsPnlStrategy(),
    GovernanceVotesStrategy.key: GovernanceVotesStrategy(),
    LiquidityShareStrategy.key: LiquidityShareStrategy(),
    DepositWithdrawalCountStrategy.key: DepositWithdrawalCountStrategy(),
}


def list_strategy_keys() -> list[str]:
    return sorted(STRATEGIES.keys())


def get_strategy(strategy_key: str) -> BaseRankingStrategy:
    key = str(strategy_key or "").strip().lower()
    strategy = STRATEGIES.get(key)
    if strategy is None:
        raise UnknownStrategyError(key, list_strategy_keys())
    return strategy


def resolve_strategy(strategy_key: str, params: Mapping[str, str]) -> BaseRankingStrategy:
    """Look up a strategy and check its required parameters are configured."""
    strategy = get_strategy(strategy_key)
    missing = [name for name in strategy.required_params if not str(params.get(name) or "").strip()]
    if missing:
        raise MissingAlgorithmParameterError(strategy.key, missing)
    return strategy

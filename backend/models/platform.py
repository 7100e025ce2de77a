from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from utils.parsing import safe_float, safe_int
from utils.utcnow import parse_timestamp


def connection_nodes(raw: Any) -> list[dict]:
    """Flatten a GraphQL connection (``{edges: [{node: ...}]}``) or plain list into nodes."""
    if raw is None:
        return []
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, dict)]
    if isinstance(raw, dict):
        edges = raw.get("edges") or []
        nodes = []
        for edge in edges:
            if not isinstance(edge, dict):
                continue
            node = edge.get("node")
            if isinstance(node, dict):
                nodes.append(node)
        return nodes
    return []


def _field(data: dict, *names: str) -> Any:
    """First present value among a plain list field and its ``...Connection`` form."""
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return None


def _nested_id(data: dict, key: str) -> str:
    value = data.get(key)
    if isinstance(value, dict):
        return str(value.get("id") or "")
    return str(value or "")


class Asset(BaseModel):
    id: str = ""
    symbol: str = ""
    decimals: int = 0

    @classmethod
    def from_graphql(cls, data: Optional[dict]) -> "Asset":
        data = data or {}
        return cls(
            id=str(data.get("id") or ""),
            symbol=str(data.get("symbol") or ""),
            decimals=safe_int(data.get("decimals"), "asset.decimals"),
        )

    def matches(self, asset: str) -> bool:
        """Assets are referenced either by id or by symbol in algorithm parameters."""
        return bool(asset) and asset in (self.id, self.symbol)


class Account(BaseModel):
    type: str = ""
    balance: float = 0.0
    asset: Asset = Asset()
    market_id: str = ""


class Position(BaseModel):
    market_id: str = ""
    open_volume: float = 0.0
    realised_pnl: float = 0.0
    unrealised_pnl: float = 0.0


class Vote(BaseModel):
    proposal_id: str = ""
    value: str = ""
    cast_at: Optional[datetime] = None


class Transfer(BaseModel):
    """A deposit or a withdrawal"""

    amount: float = 0.0
    status: str = ""
    asset: Asset = Asset()
    created_at: Optional[datetime] = None

    @property
    def finalized(self) -> bool:
        return self.status.upper().endswith("FINALIZED")


class LiquidityProvision(BaseModel):
    market_id: str = ""
    commitment_amount: float = 0.0
    fee: float = 0.0
    status: str = ""

    @property
    def active(self) -> bool:
        return self.status.upper().endswith("ACTIVE")


class Party(BaseModel):
    """A platform account with whatever related records the strategy's query selected"""

    id: str
    accounts: list[Account] = []
    positions: list[Position] = []
    votes: list[Vote] = []
    deposits: list[Transfer] = []
    withdrawals: list[Transfer] = []
    liquidity_provisions: list[LiquidityProvision] = []

    @classmethod
    def from_graphql(cls, node: dict) -> "Party":
        """Parse a party node, accepting plain lists and ``...Connection`` edges alike"""
        accounts = [
            Account(
                type=str(acc.get("type") or ""),
                balance=safe_float(acc.get("balance"), "account.balance"),
                asset=Asset.from_graphql(acc.get("asset")),
                market_id=_nested_id(acc, "market"),
            )
            for acc in connection_nodes(_field(node, "accounts", "accountsConnection"))
        ]

        positions = [
            Position(
                market_id=_nested_id(pos, "market"),
                open_volume=safe_float(pos.get("openVolume"), "position.openVolume"),
                realised_pnl=safe_float(pos.get("realisedPNL"), "position.realisedPNL"),
                unrealised_pnl=safe_float(pos.get("unrealisedPNL"), "position.unrealisedPNL"),
            )
            for pos in connection_nodes(_field(node, "positions", "positionsConnection"))
        ]

        votes = []
        for item in connection_nodes(_field(node, "votes", "votesConnection")):
            vote = item.get("vote") if isinstance(item.get("vote"), dict) else item
            votes.append(
                Vote(
                    proposal_id=str(item.get("proposalId") or ""),
                    value=str(vote.get("value") or ""),
                    cast_at=parse_timestamp(vote.get("datetime")),
                )
            )

        def transfers(*names: str) -> list[Transfer]:
            return [
                Transfer(
                    amount=safe_float(t.get("amount"), "transfer.amount"),
                    status=str(t.get("status") or ""),
                    asset=Asset.from_graphql(t.get("asset")),
                    created_at=parse_timestamp(t.get("createdTimestamp") or t.get("createdAt")),
                )
                for t in connection_nodes(_field(node, *names))
            ]

        provisions = [
            LiquidityProvision(
                market_id=_nested_id(lp, "market"),
                commitment_amount=safe_float(lp.get("commitmentAmount"), "lp.commitmentAmount"),
                fee=safe_float(lp.get("fee"), "lp.fee"),
                status=str(lp.get("status") or ""),
            )
            for lp in connection_nodes(
                _field(node, "liquidityProvisions", "liquidityProvisionsConnection")
            )
        ]

        return cls(
            id=str(node.get("id") or ""),
            accounts=accounts,
            positions=positions,
            votes=votes,
            deposits=transfers("deposits", "depositsConnection"),
            withdrawals=transfers("withdrawals", "withdrawalsConnection"),
            liquidity_provisions=provisions,
        )

    def balance(self, asset: str, decimals: int, *account_types: str) -> float:
        """Sum of the asset's balances over ``account_types``, scaled down by ``10**decimals``."""
        total = sum(
            acc.balance
            for acc in self.accounts
            if acc.asset.matches(asset) and (not account_types or acc.type in account_types)
        )
        if total == 0:
            return 0.0
        return total / float(10**decimals)

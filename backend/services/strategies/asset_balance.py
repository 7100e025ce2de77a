from datetime import datetime
from typing import Any, Mapping, Sequence

from models.leaderboard import CompetitionWindow, Participant, VerifiedIdentity
from models.platform import Party
from services.strategies.base import BaseRankingStrategy


class AssetBalanceStrategy(BaseRankingStrategy):
    """Ranks by account balance in one asset.

    Params: ``asset`` (id or symbol), ``decimalPlaces`` (default 5),
    ``accountTypes`` (comma list, default ``ACCOUNT_TYPE_GENERAL``).
    Every verified party is ranked; a party unknown to the data node has a
    zero balance. Ordering: highest balance first.
    """

    key = "asset_balance"
    name = "Asset balance"
    description = "Balance of the configured asset across the selected account types"
    required_params = ("asset",)
    query = """query ($assetId: ID) {
  partiesConnection {
    edges {
      node {
        id
        accountsConnection(assetId: $assetId) {
          edges {
            node {
              asset { id symbol decimals }
              balance
              type
            }
          }
        }
      }
    }
  }
}"""

    def variables(self, params: Mapping[str, str]) -> dict[str, Any]:
        return {"assetId": params.get("asset", "")}

    def rank(
        self,
        identities: Sequence[VerifiedIdentity],
        parties: Mapping[str, Party],
        window: CompetitionWindow,
        params: Mapping[str, str],
        now: datetime,
    ) -> list[Participant]:
        asset = params.get("asset", "")
        decimal_places = self.int_param(params, "decimalPlaces", 5)
        account_types = self.list_param(params, "accountTypes", ("ACCOUNT_TYPE_GENERAL",))

        participants = []
        for identity in identities:
            party = parties.get(identity.party_id)
            balance = party.balance(asset, decimal_places, *account_types) if party else 0.0
            participants.append(
                self.participant_for(identity, [self.format_amount(balance, decimal_places)], balance, now)
            )
        return self.sort_descending(participants)

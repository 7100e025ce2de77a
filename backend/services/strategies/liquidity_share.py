from datetime import datetime
from typing import Mapping, Sequence

from models.leaderboard import CompetitionWindow, Participant, VerifiedIdentity
from models.platform import Party
from services.strategies.base import BaseRankingStrategy


class LiquidityShareStrategy(BaseRankingStrategy):
    """Share of the verified parties' active liquidity commitment in one market.

    Param: ``marketId``. Parties without an active commitment there are
    omitted. Ordering: largest share first.
    """

    key = "liquidity_share"
    name = "Liquidity share"
    description = "Percentage of committed liquidity in the competition market"
    required_params = ("marketId",)
    query = """query {
  partiesConnection {
    edges {
      node {
        id
        liquidityProvisionsConnection {
          edges {
            node {
              market { id }
              commitmentAmount
              fee
              status
            }
          }
        }
      }
    }
  }
}"""

    def rank(
        self,
        identities: Sequence[VerifiedIdentity],
        parties: Mapping[str, Party],
        window: CompetitionWindow,
        params: Mapping[str, str],
        now: datetime,
    ) -> list[Participant]:
        market_id = params.get("marketId", "")
        commitments: list[tuple[VerifiedIdentity, float]] = []
        for identity in identities:
            party = parties.get(identity.party_id)
            if party is None:
                continue
            committed = sum(
                lp.commitment_amount
                for lp in party.liquidity_provisions
                if lp.market_id == market_id and lp.active
            )
            if committed > 0:
                commitments.append((identity, committed))

        total = sum(amount for _, amount in commitments)
        participants = []
        for identity, amount in commitments:
            share = amount / total * 100.0 if total else 0.0
            participants.append(self.participant_for(identity, [f"{share:.2f}%"], share, now))
        return self.sort_descending(participants)

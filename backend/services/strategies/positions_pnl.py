from datetime import datetime
from typing import Mapping, Sequence

from models.leaderboard import CompetitionWindow, Participant, VerifiedIdentity
from models.platform import Party
from services.strategies.base import BaseRankingStrategy


class PositionsPnlStrategy(BaseRankingStrategy):
    """Ranks by realised plus unrealised PnL over a set of markets.

    Params: ``marketIds`` (comma list), ``decimalPlaces`` (default 5) used to
    scale raw PnL. Parties with no volume and no PnL in those markets are
    omitted. Ordering: highest PnL first.
    """

    key = "positions_pnl"
    name = "Positions PnL"
    description = "Realised and unrealised profit and loss on the competition markets"
    required_params = ("marketIds",)
    query = """query {
  partiesConnection {
    edges {
      node {
        id
        positionsConnection {
          edges {
            node {
              market { id }
              openVolume
              realisedPNL
              unrealisedPNL
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
        market_ids = set(self.list_param(params, "marketIds"))
        decimal_places = self.int_param(params, "decimalPlaces", 5)
        scale = float(10**decimal_places)

        participants = []
        for identity in identities:
            party = parties.get(identity.party_id)
            if party is None:
                continue
            realised = unrealised = volume = 0.0
            for position in party.positions:
                if position.market_id not in market_ids:
                    continue
                realised += position.realised_pnl
                unrealised += position.unrealised_pnl
                volume += position.open_volume
            if realised == 0 and unrealised == 0 and volume == 0:
                continue
            pnl = (realised + unrealised) / scale
            participants.append(
                self.participant_for(identity, [self.format_amount(pnl, decimal_places)], pnl, now)
            )
        return self.sort_descending(participants)

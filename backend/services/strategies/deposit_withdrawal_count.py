from datetime import datetime
from typing import Mapping, Sequence

from models.leaderboard import CompetitionWindow, Participant, VerifiedIdentity
from models.platform import Party, Transfer
from services.strategies.base import BaseRankingStrategy
from utils.parsing import safe_float


class DepositWithdrawalCountStrategy(BaseRankingStrategy):
    """Counts finalized deposits and withdrawals of one asset during the competition.

    Params: ``asset`` (id or symbol), ``minAmount`` (raw units, default 0).
    Parties with neither are omitted. Data is ``[deposits, withdrawals]``.
    Ordering: highest combined count first.
    """

    key = "deposit_withdrawal_count"
    name = "Deposits and withdrawals"
    description = "Finalized deposits and withdrawals made during the competition"
    required_params = ("asset",)
    query = """query {
  partiesConnection {
    edges {
      node {
        id
        depositsConnection {
          edges {
            node { amount status asset { id symbol decimals } createdTimestamp }
          }
        }
        withdrawalsConnection {
          edges {
            node { amount status asset { id symbol decimals } createdTimestamp }
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
        asset = params.get("asset", "")
        min_amount = safe_float(params.get("minAmount"), "minAmount")

        def counted(transfers: list[Transfer]) -> int:
            return sum(
                1
                for t in transfers
                if t.finalized
                and t.asset.matches(asset)
                and t.amount >= min_amount
                and t.created_at is not None
                and window.start <= t.created_at < window.end
            )

        participants = []
        for identity in identities:
            party = parties.get(identity.party_id)
            if party is None:
                continue
            deposits = counted(party.deposits)
            withdrawals = counted(party.withdrawals)
            if deposits == 0 and withdrawals == 0:
                continue
            participants.append(
                self.participant_for(identity, [str(deposits), str(withdrawals)], float(deposits + withdrawals), now)
            )
        return self.sort_descending(participants)

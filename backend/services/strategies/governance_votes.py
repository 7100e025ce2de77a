from datetime import datetime
from typing import Mapping, Sequence

from models.leaderboard import CompetitionWindow, Participant, VerifiedIdentity
from models.platform import Party
from services.strategies.base import BaseRankingStrategy


class GovernanceVotesStrategy(BaseRankingStrategy):
    """Counts governance votes cast strictly inside the competition window.

    Every verified party is ranked, including those with no votes.
    Ordering: most votes first.
    """

    key = "governance_votes"
    name = "Governance votes"
    description = "Number of governance votes cast during the competition"
    query = """query {
  partiesConnection {
    edges {
      node {
        id
        votesConnection {
          edges {
            node {
              proposalId
              vote { value datetime }
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
        participants = []
        for identity in identities:
            party = parties.get(identity.party_id)
            votes = 0
            if party is not None:
                votes = sum(
                    1
                    for vote in party.votes
                    if vote.cast_at is not None and window.start < vote.cast_at < window.end
                )
            participants.append(self.participant_for(identity, [str(votes)], float(votes), now))
        return self.sort_descending(participants)

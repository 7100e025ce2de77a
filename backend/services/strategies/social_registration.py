from datetime import datetime
from typing import Mapping, Sequence

from models.leaderboard import CompetitionWindow, Participant, VerifiedIdentity
from models.platform import Party
from services.strategies.base import BaseRankingStrategy


class SocialRegistrationStrategy(BaseRankingStrategy):
    """Lists everyone who registered a social handle.

    One row per distinct handle (case-insensitive, first registration wins).
    Ordering: reverse verifier order, so the newest registration is first.
    """

    key = "social_registration"
    name = "Social registration"
    description = "Parties that registered a verified social handle"

    def rank(
        self,
        identities: Sequence[VerifiedIdentity],
        parties: Mapping[str, Party],
        window: CompetitionWindow,
        params: Mapping[str, str],
        now: datetime,
    ) -> list[Participant]:
        seen: set[str] = set()
        participants: list[Participant] = []
        for identity in identities:
            handle = identity.handle.lower()
            if handle in seen:
                continue
            seen.add(handle)
            participant = self.participant_for(identity, ["Registered"], float(len(participants) + 1), now)
            participants.append(
                participant.model_copy(
                    update={
                        "created_at": identity.created_at or now,
                        "updated_at": identity.updated_at or now,
                    }
                )
            )
        return self.sort_descending(participants)

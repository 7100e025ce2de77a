from typing import Iterable, Sequence

from models.leaderboard import Participant


def partition_blacklisted(
    participants: Iterable[Participant],
) -> tuple[list[Participant], list[Participant]]:
    """Split ranked participants into (public, excluded), keeping strategy order in each."""
    public: list[Participant] = []
    excluded: list[Participant] = []
    for participant in participants:
        (excluded if participant.is_blacklisted else public).append(participant)
    return public, excluded


def assign_positions(participants: Sequence[Participant]) -> list[Participant]:
    """Dense 1-based positions in list order; recomputed from scratch on every call."""
    return [
        participant if participant.position == index else participant.model_copy(update={"position": index})
        for index, participant in enumerate(participants, start=1)
    ]

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from services.ranking import assign_positions, partition_blacklisted


class TestPartitionBlacklisted:
    def test_is_a_true_partition(self, make_participant):
        ranked = [
            make_participant("a", score=5),
            make_participant("b", score=4, blacklisted=True),
            make_participant("c", score=3),
            make_participant("d", score=2, blacklisted=True),
        ]

        public, excluded = partition_blacklisted(ranked)

        assert [p.id for p in public] == ["a", "c"]
        assert [p.id for p in excluded] == ["b", "d"]
        assert {p.id for p in public} | {p.id for p in excluded} == {p.id for p in ranked}
        assert not ({p.id for p in public} & {p.id for p in excluded})

    def test_empty_input(self):
        assert partition_blacklisted([]) == ([], [])


class TestAssignPositions:
    def test_dense_one_based(self, make_participant):
        positioned = assign_positions([make_participant(pid) for pid in "xyz"])
        assert [p.position for p in positioned] == [1, 2, 3]

    def test_idempotent(self, make_participant):
        once = assign_positions([make_participant(pid) for pid in "xyz"])
        twice = assign_positions(once)
        assert [(p.id, p.position) for p in twice] == [(p.id, p.position) for p in once]

    def test_recomputes_after_removal(self, make_participant):
        positioned = assign_positions([make_participant(pid) for pid in "wxyz"])
        remaining = [p for p in positioned if p.id != "x"]

        assert [p.position for p in assign_positions(remaining)] == [1, 2, 3]

    def test_ties_keep_strategy_order(self, make_participant):
        tied = [make_participant("first", score=1.0), make_participant("second", score=1.0)]
        positioned = assign_positions(tied)
        assert [(p.id, p.position) for p in positioned] == [("first", 1), ("second", 2)]

    def test_positions_contiguous_per_partition(self, make_participant):
        ranked = [make_participant(str(i), blacklisted=i % 3 == 0) for i in range(10)]
        public, excluded = partition_blacklisted(ranked)

        assert [p.position for p in assign_positions(public)] == list(range(1, len(public) + 1))
        assert [p.position for p in assign_positions(excluded)] == list(range(1, len(excluded) + 1))

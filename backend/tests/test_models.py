"""Tests for Pydantic models: VerifiedIdentity, Participant, Board, Snapshot, Party."""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from models.leaderboard import (
    Board,
    CompetitionStatus,
    CompetitionWindow,
    Participant,
    Snapshot,
    SnapshotLabel,
    VerifiedIdentity,
)
from models.platform import Party, connection_nodes
from utils.utcnow import parse_timestamp, to_iso_z


# ============================================================================
# VerifiedIdentity.from_verifier_response
# ============================================================================


class TestVerifiedIdentity:
    def test_full_entry(self):
        identity = VerifiedIdentity.from_verifier_response(
            {
                "party_id": "p1",
                "twitter_handle": "alice",
                "twitter_user_id": "42",
                "created": 1704067200,
                "last_modified": "2024-01-02T00:00:00Z",
                "is_blacklisted": True,
            }
        )
        assert identity.party_id == "p1"
        assert identity.handle == "alice"
        assert identity.handle_id == 42
        assert identity.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert identity.updated_at == datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert identity.is_blacklisted is True

    def test_missing_optional_fields(self):
        identity = VerifiedIdentity.from_verifier_response({"party_id": "p2", "twitter_user_id": "x"})
        assert identity.handle == ""
        assert identity.handle_id is None
        assert identity.created_at is None
        assert identity.is_blacklisted is False

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("false", False),
            ("False", False),
            ("0", False),
            (0, False),
            (None, False),
            ("true", True),
            ("1", True),
            (True, True),
        ],
    )
    def test_blacklist_flag_strings(self, raw, expected):
        identity = VerifiedIdentity.from_verifier_response({"party_id": "p1", "is_blacklisted": raw})
        assert identity.is_blacklisted is expected

    def test_out_of_range_numbers_default_to_empty(self):
        identity = VerifiedIdentity.from_verifier_response(
            {"party_id": "p1", "twitter_user_id": float("inf"), "created": float("inf"), "last_modified": 10**40}
        )
        assert identity.party_id == "p1"
        assert identity.handle_id is None
        assert identity.created_at is None
        assert identity.updated_at is None

    def test_is_immutable(self):
        identity = VerifiedIdentity(party_id="p")
        with pytest.raises(ValidationError):
            identity.handle = "changed"


# ============================================================================
# Board / Snapshot
# ============================================================================


class TestBoard:
    def test_default_board_is_loading(self):
        board = Board()
        assert board.status == CompetitionStatus.LOADING
        assert board.participants == () and board.excluded == ()

    def test_participant_public_dict_hides_internal_fields(self):
        row = Participant(id="p", sort_value=3.0, is_blacklisted=True, data=("3",)).public_dict()
        assert "sort_value" not in row
        assert "is_blacklisted" not in row
        assert row["data"] == ["3"]

    def test_snapshot_json_round_trip(self):
        snapshot = Snapshot(
            label=SnapshotLabel.END,
            captured_at=datetime(2024, 1, 8),
            participants=(Participant(id="p", position=1, data=("1",), sort_value=1.0),),
        )
        restored = Snapshot.model_validate_json(snapshot.model_dump_json())
        assert restored == snapshot
        assert restored.captured_at.tzinfo is not None

    def test_window_normalises_to_utc(self):
        window = CompetitionWindow(start=datetime(2024, 1, 1), end="2024-01-02T02:00:00+02:00")
        assert window.start.tzinfo is not None
        assert window.end == datetime(2024, 1, 2, tzinfo=timezone.utc)


# ============================================================================
# Party.from_graphql
# ============================================================================


class TestParty:
    def test_balance_scales_and_filters(self):
        party = Party.from_graphql(
            {
                "id": "p",
                "accounts": [
                    {"type": "ACCOUNT_TYPE_GENERAL", "balance": "150000", "asset": {"id": "a1", "symbol": "tDAI"}},
                    {"type": "ACCOUNT_TYPE_GENERAL", "balance": "50000", "asset": {"id": "a2", "symbol": "tEURO"}},
                    {"type": "ACCOUNT_TYPE_MARGIN", "balance": "100000", "asset": {"id": "a1", "symbol": "tDAI"}},
                ],
            }
        )
        assert party.balance("tDAI", 5, "ACCOUNT_TYPE_GENERAL") == pytest.approx(1.5)
        assert party.balance("a1", 5, "ACCOUNT_TYPE_GENERAL", "ACCOUNT_TYPE_MARGIN") == pytest.approx(2.5)
        assert party.balance("tDAI", 5) == pytest.approx(2.5)
        assert party.balance("missing", 5) == 0.0

    def test_out_of_range_timestamps_only_blank_that_field(self):
        party = Party.from_graphql(
            {
                "id": "p1",
                "deposits": [
                    {"amount": "5", "status": "STATUS_FINALIZED", "createdTimestamp": float("inf")},
                    {"amount": "7", "status": "STATUS_FINALIZED", "createdTimestamp": 1704067200},
                ],
                "votes": [{"proposalId": "prop-1", "vote": {"value": "VALUE_YES", "datetime": float("-inf")}}],
            }
        )
        assert [d.amount for d in party.deposits] == [5.0, 7.0]
        assert party.deposits[0].created_at is None
        assert party.deposits[1].created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert party.votes[0].proposal_id == "prop-1"
        assert party.votes[0].cast_at is None

    def test_connection_nodes_skips_garbage(self):
        assert connection_nodes({"edges": [{"node": {"id": 1}}, {"node": None}, "x"]}) == [{"id": 1}]
        assert connection_nodes(None) == []
        assert connection_nodes([{"id": 2}, 3]) == [{"id": 2}]


# ============================================================================
# Timestamp helpers
# ============================================================================


class TestTimestamps:
    @pytest.mark.parametrize(
        "raw",
        [
            "2024-01-01T00:00:00Z",
            "2024-01-01T00:00:00.123456789Z",
            1704067200,
            "1704067200",
            1704067200000000000,
        ],
    )
    def test_parse_formats(self, raw):
        parsed = parse_timestamp(raw)
        assert parsed.replace(microsecond=0) == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_unparseable(self):
        assert parse_timestamp("soon") is None
        assert parse_timestamp(None) is None

    @pytest.mark.parametrize("raw", [float("inf"), float("-inf"), float("nan"), 10**40, "9" * 40])
    def test_out_of_range_numbers(self, raw):
        assert parse_timestamp(raw) is None

    def test_to_iso_z(self):
        assert to_iso_z(datetime(2024, 1, 1, 12, 30, 5, 999)) == "2024-01-01T12:30:05Z"
        assert to_iso_z(None) is None

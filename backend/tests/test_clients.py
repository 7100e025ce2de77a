"""Tests for the verification and data node HTTP clients."""

import sys
import json
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import httpx
import pytest

from services.data_node import DataNodeClient, extract_party_nodes
from services.errors import ConfigurationError, DataSourceError, VerificationError
from services.verifier import VerificationClient, load_excluded_parties
from utils.retry import RetryConfig

SOCIAL_URL = "https://verifier.test/list"
GRAPHQL_URL = "https://datanode.test/query"
NO_RETRY = RetryConfig(max_attempts=1)


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


VERIFIER_PAYLOAD = [
    {
        "party_id": "p1",
        "twitter_handle": "alice",
        "twitter_user_id": 111,
        "created": 1704067200,
        "last_modified": 1704153600,
        "is_blacklisted": False,
    },
    {"party_id": "p2", "twitter_handle": "bot", "twitter_user_id": 222, "is_blacklisted": False},
    {"party_id": "p3", "twitter_handle": "flagged", "twitter_user_id": 333, "is_blacklisted": True},
    {"party_id": "p1", "twitter_handle": "alice-dupe", "twitter_user_id": 999},
    {"party_id": "", "twitter_handle": "nobody"},
]


# ============================================================================
# VerificationClient
# ============================================================================


class TestVerificationClient:
    @pytest.mark.asyncio
    async def test_parses_and_applies_blacklist(self):
        http = _client(lambda request: httpx.Response(200, json=VERIFIER_PAYLOAD))
        client = VerificationClient(SOCIAL_URL, blacklist=["222"], retry_config=NO_RETRY, http_client=http)

        identities = await client.resync()

        assert [i.party_id for i in identities] == ["p1", "p2", "p3"]
        by_id = client.by_party_id()
        assert by_id["p1"].handle == "alice"
        assert by_id["p1"].handle_id == 111
        assert by_id["p1"].created_at.isoformat() == "2024-01-01T00:00:00+00:00"
        assert by_id["p1"].is_blacklisted is False
        assert by_id["p2"].is_blacklisted is True
        assert by_id["p3"].is_blacklisted is True
        await http.aclose()

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_does_not_break_resync(self):
        body = (
            '[{"party_id": "p1", "twitter_handle": "alice", "twitter_user_id": 111, "created": 1e400},'
            ' {"party_id": "p2", "twitter_handle": "bob", "twitter_user_id": 222, "is_blacklisted": "false"}]'
        )
        http = _client(
            lambda request: httpx.Response(200, content=body, headers={"Content-Type": "application/json"})
        )
        client = VerificationClient(SOCIAL_URL, retry_config=NO_RETRY, http_client=http)

        identities = await client.resync()

        assert [i.party_id for i in identities] == ["p1", "p2"]
        assert identities[0].created_at is None
        assert identities[1].is_blacklisted is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_excluded_parties_are_blacklisted_by_party_id(self):
        http = _client(lambda request: httpx.Response(200, json=VERIFIER_PAYLOAD))
        client = VerificationClient(
            SOCIAL_URL, excluded_parties=["p1"], retry_config=NO_RETRY, http_client=http
        )

        await client.resync()

        by_id = client.by_party_id()
        assert by_id["p1"].is_blacklisted is True
        assert by_id["p2"].is_blacklisted is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_failed_resync_keeps_previous_identities(self):
        responses = iter([httpx.Response(200, json=VERIFIER_PAYLOAD), httpx.Response(500)])
        http = _client(lambda request: next(responses))
        client = VerificationClient(SOCIAL_URL, retry_config=NO_RETRY, http_client=http)

        first = await client.resync()
        second = await client.resync()

        assert second is first
        assert client.identities() is first
        await http.aclose()

    @pytest.mark.asyncio
    async def test_non_list_payload_raises(self):
        http = _client(lambda request: httpx.Response(200, json={"error": "nope"}))
        client = VerificationClient(SOCIAL_URL, retry_config=NO_RETRY, http_client=http)

        with pytest.raises(VerificationError):
            await client.fetch_identities()
        await http.aclose()

    @pytest.mark.asyncio
    async def test_undecodable_payload_raises(self):
        http = _client(lambda request: httpx.Response(200, content=b"<html>"))
        client = VerificationClient(SOCIAL_URL, retry_config=NO_RETRY, http_client=http)

        with pytest.raises(VerificationError):
            await client.fetch_identities()
        await http.aclose()

    @pytest.mark.asyncio
    async def test_retries_transient_status(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json=VERIFIER_PAYLOAD[:1])

        http = _client(handler)
        client = VerificationClient(
            SOCIAL_URL,
            retry_config=RetryConfig(max_attempts=2, base_delay=0, jitter=False),
            http_client=http,
        )

        identities = await client.resync()

        assert len(calls) == 2
        assert [i.party_id for i in identities] == ["p1"]
        await http.aclose()


# ============================================================================
# DataNodeClient
# ============================================================================


class TestDataNodeClient:
    @pytest.mark.asyncio
    async def test_posts_query_with_no_cache_header(self):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"parties": [{"id": "p1"}, {"id": "p9"}]}})

        http = _client(handler)
        client = DataNodeClient(GRAPHQL_URL, retry_config=NO_RETRY, http_client=http)

        parties = await client.fetch_parties("query { parties { id } }", {"assetId": "a"}, ["p1", "p2"])

        assert [p.id for p in parties] == ["p1"]
        assert seen["headers"]["cache-control"] == "no-cache"
        assert seen["body"] == {"query": "query { parties { id } }", "variables": {"assetId": "a"}}
        await http.aclose()

    @pytest.mark.asyncio
    async def test_parses_connection_shape(self):
        payload = {
            "data": {
                "partiesConnection": {
                    "edges": [
                        {
                            "node": {
                                "id": "p1",
                                "accountsConnection": {
                                    "edges": [
                                        {
                                            "node": {
                                                "type": "ACCOUNT_TYPE_GENERAL",
                                                "balance": "12",
                                                "asset": {"id": "a1", "symbol": "tUSDC", "decimals": "5"},
                                            }
                                        }
                                    ]
                                },
                            }
                        }
                    ]
                }
            }
        }
        http = _client(lambda request: httpx.Response(200, json=payload))
        client = DataNodeClient(GRAPHQL_URL, retry_config=NO_RETRY, http_client=http)

        parties = await client.fetch_parties("q", None, ["p1"])

        assert parties[0].accounts[0].balance == 12.0
        assert parties[0].accounts[0].asset.decimals == 5
        await http.aclose()

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        http = _client(lambda request: httpx.Response(200, json={"errors": [{"message": "bad field"}]}))
        client = DataNodeClient(GRAPHQL_URL, retry_config=NO_RETRY, http_client=http)

        with pytest.raises(DataSourceError, match="bad field"):
            await client.query("q")
        await http.aclose()

    @pytest.mark.asyncio
    async def test_http_failure_raises(self):
        http = _client(lambda request: httpx.Response(400))
        client = DataNodeClient(GRAPHQL_URL, retry_config=NO_RETRY, http_client=http)

        with pytest.raises(DataSourceError):
            await client.query("q")
        await http.aclose()


def test_extract_party_nodes_handles_both_shapes():
    assert extract_party_nodes({"parties": [{"id": "a"}]}) == [{"id": "a"}]
    assert extract_party_nodes({"partiesConnection": {"edges": [{"node": {"id": "b"}}]}}) == [{"id": "b"}]
    assert extract_party_nodes({}) == []


def test_malformed_numeric_field_defaults_to_zero():
    from models.platform import Party

    party = Party.from_graphql(
        {"id": "p", "positions": [{"market": {"id": "m"}, "openVolume": "n/a", "realisedPNL": "5"}]}
    )
    assert party.positions[0].open_volume == 0.0
    assert party.positions[0].realised_pnl == 5.0


def test_load_excluded_parties_skips_headers_and_blanks(tmp_path):
    path = tmp_path / "excluded.csv"
    path.write_text("Party,Description\n0xHOUSE,market maker\n\n0xBOT\n 0xHOUSE ,duplicate\n")

    assert load_excluded_parties(path) == frozenset({"0xHOUSE", "0xBOT"})


def test_load_excluded_parties_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_excluded_parties(tmp_path / "missing.csv")

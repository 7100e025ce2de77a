from typing import Any, Optional, Sequence

import httpx

from models.platform import Party, connection_nodes
from services.errors import DataSourceError
from utils.logger import data_node_logger as logger
from utils.retry import RetryableClient, RetryConfig


def extract_party_nodes(data: dict) -> list[dict]:
    """Party nodes from either ``parties: [...]`` or ``partiesConnection.edges[].node``"""
    if data.get("parties") is not None:
        return connection_nodes(data["parties"])
    if data.get("partiesConnection") is not None:
        return connection_nodes(data["partiesConnection"])
    return []


class DataNodeClient:
    """GraphQL client for the platform's data node"""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._client = RetryableClient(self._http, retry_config)

    async def query(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict:
        """Run a GraphQL query and return its ``data`` member"""
        body = {"query": query, "variables": variables or {}}
        try:
            response = await self._client.post(
                self.url,
                json=body,
                headers={"Cache-Control": "no-cache"},
            )
        except httpx.HTTPError as e:
            raise DataSourceError(f"GraphQL request to {self.url} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise DataSourceError("GraphQL response was not valid JSON") from e
        if not isinstance(payload, dict):
            raise DataSourceError("GraphQL response was not an object")

        errors = payload.get("errors")
        if errors:
            messages = [
                str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors
            ]
            raise DataSourceError(f"GraphQL errors: {'; '.join(messages)}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise DataSourceError("GraphQL response has no data")
        return data

    async def fetch_parties(
        self,
        query: str,
        variables: Optional[dict[str, Any]],
        party_ids: Sequence[str],
    ) -> list[Party]:
        """Parties returned by ``query``, restricted to ``party_ids``"""
        data = await self.query(query, variables)
        wanted = set(party_ids)
        parties: list[Party] = []
        for node in extract_party_nodes(data):
            party_id = str(node.get("id") or "")
            if party_id not in wanted:
                continue
            parties.append(Party.from_graphql(node))
        logger.debug("Fetched parties", returned=len(parties), verified=len(wanted))
        return parties

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

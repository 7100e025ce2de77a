import csv
from pathlib import Path
from typing import Iterable, Optional

import httpx
from pydantic import ValidationError

from models.leaderboard import VerifiedIdentity
from services.errors import ConfigurationError, VerificationError
from utils.logger import verifier_logger as logger
from utils.retry import RetryableClient, RetryConfig

# Header cells written by the tooling that produces exclusion files
_EXCLUSION_HEADERS = {"party", "description"}


def load_excluded_parties(path: str | Path) -> frozenset[str]:
    """Party ids listed in the first column of an exclusion CSV.

    Blank lines and header rows are skipped; any further columns (such as a
    description) are ignored.
    """
    try:
        with open(path, "r", encoding="utf-8", newline="") as handle:
            rows = list(csv.reader(handle))
    except OSError as e:
        raise ConfigurationError(f"Cannot read excluded parties file {path}: {e}") from e

    parties = set()
    for row in rows:
        cells = [cell.strip() for cell in row]
        if not cells or not cells[0]:
            continue
        if cells[0].lower() in _EXCLUSION_HEADERS or (len(cells) > 1 and cells[1].lower() == "description"):
            continue
        parties.add(cells[0])
    logger.info("Loaded excluded parties", path=str(path), count=len(parties))
    return frozenset(parties)


class VerificationClient:
    """Client for the social verification service.

    Keeps the last successfully fetched identity set as an immutable tuple.
    ``resync()`` swaps it wholesale on success and leaves it untouched on
    failure, so a verifier outage serves stale-but-valid identities.

    ``blacklist`` holds numeric social ids and ``excluded_parties`` holds
    party ids; a match on either marks the identity as blacklisted.
    """

    def __init__(
        self,
        url: str,
        blacklist: Iterable[str] = (),
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        excluded_parties: Iterable[str] = (),
    ):
        self.url = url
        self.blacklist = frozenset(str(item).strip() for item in blacklist if str(item).strip())
        self.excluded_parties = frozenset(str(item).strip() for item in excluded_parties if str(item).strip())
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._client = RetryableClient(self._http, retry_config)
        self._identities: tuple[VerifiedIdentity, ...] = ()

    def identities(self) -> tuple[VerifiedIdentity, ...]:
        return self._identities

    def by_party_id(self) -> dict[str, VerifiedIdentity]:
        return {identity.party_id: identity for identity in self._identities}

    async def fetch_identities(self) -> tuple[VerifiedIdentity, ...]:
        """Fetch and normalise the verified party list; raises ``VerificationError``"""
        try:
            response = await self._client.get(self.url)
        except httpx.HTTPStatusError as e:
            raise VerificationError(
                f"wrong status code returned from verifier service: {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise VerificationError(f"verifier service unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise VerificationError("unable to decode the mapping returned from verifier service") from e
        if not isinstance(payload, list):
            raise VerificationError(
                f"verifier service returned {type(payload).__name__}, expected a list"
            )

        identities: list[VerifiedIdentity] = []
        seen: set[str] = set()
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            try:
                identity = VerifiedIdentity.from_verifier_response(entry)
            except (ValidationError, TypeError, OverflowError) as e:
                logger.debug("Skipping malformed verifier entry", error=str(e))
                continue
            if not identity.party_id or identity.party_id in seen:
                continue
            seen.add(identity.party_id)
            identities.append(self._apply_blacklist(identity))
        return tuple(identities)

    def _apply_blacklist(self, identity: VerifiedIdentity) -> VerifiedIdentity:
        if identity.is_blacklisted:
            return identity
        listed = identity.handle_id is not None and str(identity.handle_id) in self.blacklist
        if not listed and identity.party_id not in self.excluded_parties:
            return identity
        logger.info("Found blacklisted user", handle=identity.handle, handle_id=identity.handle_id)
        return identity.model_copy(update={"is_blacklisted": True})

    async def resync(self) -> tuple[VerifiedIdentity, ...]:
        """Refresh the cached identities; on failure keep (and return) the previous set."""
        previous = self._identities
        found = 0
        try:
            identities = await self.fetch_identities()
        except VerificationError as e:
            logger.error("Failed to sync verified parties", error=str(e))
        else:
            self._identities = identities
            found = len(identities)
        logger.info("Verified parties synced", found=found, previous=len(previous))
        return self._identities

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

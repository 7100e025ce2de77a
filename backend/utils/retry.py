import asyncio
import random
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from utils.logger import get_logger

logger = get_logger("retry")

RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    asyncio.TimeoutError,
)

RETRYABLE_STATUS_CODES: tuple[int, ...] = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    ``max_attempts`` counts the first try, so ``1`` disables retries.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryConfig":
        return cls(
            max_attempts=max(1, int(settings.MAX_RETRY_ATTEMPTS)),
            base_delay=max(0.0, float(settings.RETRY_BASE_DELAY)),
        )


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay with exponential backoff and optional jitter"""
    delay = min(config.base_delay * (config.exponential_base**attempt), config.max_delay)
    if config.jitter:
        delay = delay * (0.5 + random.random())
    return delay


def is_retryable_error(error: BaseException) -> bool:
    """Check if an error should be retried"""
    if isinstance(error, RETRYABLE_EXCEPTIONS):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return False


def _retry_after_seconds(error: BaseException) -> Optional[float]:
    if not isinstance(error, httpx.HTTPStatusError) or error.response.status_code != 429:
        return None
    raw = error.response.headers.get("Retry-After")
    try:
        return float(raw) if raw else None
    except ValueError:
        return None


class RetryableClient:
    """HTTP client wrapper with automatic retry.

    Non-2xx responses are raised as ``httpx.HTTPStatusError``; only transport
    failures and the status codes in ``RETRYABLE_STATUS_CODES`` are retried.
    """

    def __init__(self, client: httpx.AsyncClient, config: Optional[RetryConfig] = None):
        self.client = client
        self.config = config or RetryConfig()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        attempts = max(1, self.config.max_attempts)
        last_error: Optional[BaseException] = None
        for attempt in range(attempts):
            try:
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except Exception as e:
                last_error = e
                if not is_retryable_error(e) or attempt >= attempts - 1:
                    raise

                delay = calculate_delay(attempt, self.config)
                retry_after = _retry_after_seconds(e)
                if retry_after is not None:
                    delay = max(delay, min(retry_after, self.config.max_delay))

                logger.warning(
                    "Retrying HTTP request",
                    method=method,
                    url=url,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    delay=round(delay, 3),
                    error=str(e) or type(e).__name__,
                )
                await asyncio.sleep(delay)
        raise last_error

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def aclose(self) -> None:
        await self.client.aclose()

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from metafeed.core.logging import get_logger
from metafeed.services.errors import TransportFailure

logger = get_logger()

DEFAULT_FETCH_TIMEOUT_S = 10.0
DEFAULT_USER_AGENT = "metafeed/0.1"


class FeedFetcher:
    """
    Async HTTP client for source feeds.

    One attempt per URL, bounded by a per-request timeout. Concurrency is
    capped by a semaphore; the aggregator sizes it to the number of sources.
    """

    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
        max_concurrency: int = 5,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.max_concurrency = max(1, max_concurrency)
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._sem = asyncio.Semaphore(self.max_concurrency)

    async def __aenter__(self) -> "FeedFetcher":
        self._client = httpx.AsyncClient(
            timeout=self.timeout_s,
            headers={
                "User-Agent": self.user_agent,
                "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
            },
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()

    async def fetch(self, url: str) -> bytes:
        """
        Fetch raw document bytes.

        Raises:
            TransportFailure: on timeout, connection error or HTTP error status
        """
        if self._client is None:
            raise RuntimeError("FeedFetcher client not initialized")
        try:
            async with self._sem:
                response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise TransportFailure(f"timeout after {self.timeout_s}s", url=url) from exc
        except httpx.HTTPStatusError as exc:
            raise TransportFailure(f"HTTP {exc.response.status_code}", url=url) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportFailure(str(exc) or exc.__class__.__name__, url=url) from exc

        logger.debug(
            "metafeed_fetch_ok",
            url=url,
            status=response.status_code,
            size=len(response.content),
        )
        return response.content

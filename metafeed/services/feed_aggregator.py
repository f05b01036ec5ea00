from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple, Union

from dateutil import parser as dateparser

from metafeed.core.logging import get_logger
from metafeed.core.request_id import with_source_url
from metafeed.models.feed import ChannelInfo, FeedItem, MergedFeed, SourceResult
from metafeed.models.feed_sources import FeedSource
from metafeed.services.errors import MalformedDocument, TransportFailure, UnsupportedFormat
from metafeed.services.feed_fetcher import DEFAULT_FETCH_TIMEOUT_S, DEFAULT_USER_AGENT, FeedFetcher
from metafeed.services.feed_parser import parse_feed

logger = get_logger()

SourceLike = Union[FeedSource, str]

_SOURCE_ERRORS = (TransportFailure, MalformedDocument, UnsupportedFormat)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


def _as_source(value: SourceLike) -> FeedSource:
    if isinstance(value, FeedSource):
        return value
    return FeedSource(name=value, url=value)


# -------- Dates & ordering ---------------------------------------------------

def parse_publication_date(value: str) -> Optional[datetime]:
    """
    Best-effort parse of a feed date: RFC 2822 (RSS) first, then anything
    dateutil understands (ISO 8601 from Atom, sloppy variants). Naive
    values are taken as UTC. Returns None when nothing fits.
    """
    value = (value or "").strip()
    if not value:
        return None

    parsed: Optional[datetime] = None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        parsed = None

    if parsed is None:
        try:
            parsed = dateparser.parse(value)
        except (ValueError, OverflowError):
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    # dateutil accepts offsets of a day or more that datetime cannot apply.
    try:
        parsed.timestamp()
    except (ValueError, OverflowError):
        return None
    return parsed


def _sort_key(item: FeedItem) -> Tuple[bool, float]:
    # Undated items rank below every dated one, whatever the year.
    parsed = parse_publication_date(item.publication_date)
    if parsed is None:
        return (False, 0.0)
    return (True, parsed.timestamp())


def sort_items(items: Iterable[FeedItem]) -> List[FeedItem]:
    """Newest first. Stable: equal or unparsable dates keep insertion order."""
    return sorted(items, key=_sort_key, reverse=True)


# -------- Per-source processing ----------------------------------------------

async def process_source(fetcher: Fetcher, source: FeedSource) -> SourceResult:
    with with_source_url(source.url):
        try:
            raw = await fetcher.fetch(source.url)
            feed = parse_feed(raw, base_url=source.url)
        except _SOURCE_ERRORS as exc:
            logger.warning(
                "metafeed_source_failed",
                source=source.name,
                error_kind=exc.__class__.__name__,
                error=str(exc),
            )
            return SourceResult(
                url=source.url,
                error=str(exc),
                error_kind=exc.__class__.__name__,
            )

        logger.info(
            "metafeed_source_parsed",
            source=source.name,
            format=feed.format.value,
            items=len(feed.items),
        )
        return SourceResult(url=source.url, feed=feed)


def merge_results(results: Sequence[SourceResult]) -> MergedFeed:
    """
    Fold per-source results, in source order, into one merged feed.
    Channel info comes from the first successful source only.
    """
    channel: Optional[ChannelInfo] = None
    items: List[FeedItem] = []
    for result in results:
        if result.feed is None:
            continue
        if channel is None:
            channel = result.feed.channel
        items.extend(result.feed.items)

    return MergedFeed(
        channel=channel or ChannelInfo(),
        items=sort_items(items),
        sources=list(results),
    )


async def aggregate(sources: Sequence[SourceLike], fetcher: Fetcher) -> MergedFeed:
    """
    Fetch and parse every source concurrently, then merge and sort.

    Source-local failures (transport, malformed XML, unsupported format)
    are logged and skipped; a cycle where every source fails still returns
    a valid, empty MergedFeed.
    """
    resolved = [_as_source(s) for s in sources]
    # gather keeps source order regardless of completion order
    results = await asyncio.gather(*(process_source(fetcher, s) for s in resolved))
    merged = merge_results(results)

    logger.info(
        "metafeed_aggregate_summary",
        total_sources=len(resolved),
        failed_sources=len(merged.failed_sources),
        total_items=merged.total_items,
    )
    return merged


async def aggregate_all_sources(
    sources: Sequence[SourceLike],
    *,
    timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
    user_agent: str = DEFAULT_USER_AGENT,
) -> MergedFeed:
    """Run one aggregation cycle with a fetcher pool sized to the source list."""
    if not sources:
        logger.info("metafeed_no_sources_configured")
        return MergedFeed()

    async with FeedFetcher(
        timeout_s=timeout_s,
        max_concurrency=len(sources),
        user_agent=user_agent,
    ) as fetcher:
        return await aggregate(sources, fetcher)

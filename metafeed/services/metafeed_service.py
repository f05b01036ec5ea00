from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from metafeed.core.config import Settings, get_settings
from metafeed.core.logging import get_logger
from metafeed.models.feed_sources import FeedSource, get_all_feed_sources
from metafeed.services.cache_gate import CacheGate, CacheResult
from metafeed.services.feed_aggregator import aggregate_all_sources
from metafeed.services.feed_serializer import SiteInfo, serialize_feed

logger = get_logger()

_gates: Dict[Tuple[str, int], CacheGate] = {}


def site_info_from_settings(settings: Settings) -> SiteInfo:
    return SiteInfo(
        title=settings.SITE_TITLE,
        description=settings.SITE_DESCRIPTION,
        link=settings.SITE_LINK,
    )


def get_cache_gate(settings: Settings) -> CacheGate:
    """One gate per artifact, so its refresh lock is shared by all callers."""
    key = (str(Path(settings.CACHE_FILE).resolve()), settings.CACHE_TTL_SECONDS)
    gate = _gates.get(key)
    if gate is None:
        gate = CacheGate(settings.CACHE_FILE, ttl_seconds=settings.CACHE_TTL_SECONDS)
        _gates[key] = gate
    return gate


def clear_cache_gates() -> None:
    """Drop memoized gates (useful for tests)."""
    _gates.clear()


async def build_metafeed(
    settings: Optional[Settings] = None,
    sources: Optional[Sequence[FeedSource]] = None,
) -> str:
    """One full aggregation cycle: fetch, parse, merge, sort, serialize."""
    settings = settings or get_settings()
    if sources is None:
        sources = get_all_feed_sources(settings.FEED_SOURCES_FILE)

    merged = await aggregate_all_sources(
        sources,
        timeout_s=settings.FETCH_TIMEOUT_S,
        user_agent=settings.USER_AGENT,
    )
    if not merged.items:
        logger.warning(
            "metafeed_empty_result",
            total_sources=len(sources),
            failed_sources=len(merged.failed_sources),
        )
    return serialize_feed(
        merged,
        settings.MAX_OUTPUT_ITEMS,
        site=site_info_from_settings(settings),
        stylesheet_href=settings.STYLESHEET_HREF or None,
    )


async def render_metafeed(
    settings: Optional[Settings] = None,
    *,
    force: bool = False,
) -> CacheResult:
    """
    Serve the combined feed through the cache gate.

    Raises:
        CacheWriteError: a fresh document was built but could not be persisted
    """
    settings = settings or get_settings()
    gate = get_cache_gate(settings)
    if force:
        gate.invalidate()

    async def _refresh() -> str:
        return await build_metafeed(settings)

    return await gate.get_or_refresh(_refresh)

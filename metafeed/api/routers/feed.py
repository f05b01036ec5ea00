from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, Response

from metafeed.core.config import Settings, get_settings
from metafeed.core.logging import get_logger
from metafeed.services.errors import CacheWriteError
from metafeed.services.feed_serializer import RSS_CONTENT_TYPE
from metafeed.services.metafeed_service import render_metafeed

logger = get_logger()

router = APIRouter(tags=["feed"])


@router.get("/", response_class=Response)
@router.get("/feed.xml", response_class=Response)
async def get_metafeed(settings: Settings = Depends(get_settings)) -> Response:
    """
    Combined RSS feed of all configured sources, served from the cache
    artifact while it is younger than the TTL.
    """
    try:
        result = await render_metafeed(settings)
    except CacheWriteError as exc:
        logger.error("metafeed_request_failed", error=str(exc))
        return PlainTextResponse(f"Feed Aggregation Error: {exc}", status_code=500)

    return Response(
        content=result.body,
        media_type=RSS_CONTENT_TYPE,
        headers={"X-Cache": "HIT" if result.hit else "MISS"},
    )

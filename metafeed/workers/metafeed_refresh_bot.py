from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from metafeed.core.config import get_settings
from metafeed.core.logging import configure_logging, get_logger
from metafeed.core.request_id import with_run_id
from metafeed.services.errors import CacheWriteError
from metafeed.services.metafeed_service import render_metafeed

configure_logging(service_name="worker", level=get_settings().LOG_LEVEL)
logger = get_logger().bind(worker="metafeed_refresh_bot")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MetafeedRefreshBot: rebuild the combined feed cache.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Rebuild even if the cache artifact is younger than the TTL.",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Write the resulting RSS document to stdout.",
    )
    return parser.parse_args(argv)


async def run_refresh(force: bool, to_stdout: bool) -> int:
    settings = get_settings()
    try:
        result = await render_metafeed(settings, force=force)
    except CacheWriteError as exc:
        logger.error("metafeed_refresh_bot_failed", error=str(exc))
        return 1

    logger.info(
        "metafeed_refresh_bot_finished",
        cache_file=settings.CACHE_FILE,
        cache_hit=result.hit,
        size=len(result.body),
    )
    if to_stdout:
        sys.stdout.buffer.write(result.body)
        sys.stdout.flush()
    return 0


async def main_async(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    with with_run_id():
        return await run_refresh(force=args.force, to_stdout=args.stdout)


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()

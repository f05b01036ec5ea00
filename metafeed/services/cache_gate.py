from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from metafeed.core.logging import get_logger
from metafeed.services.errors import CacheWriteError

logger = get_logger()

DEFAULT_CACHE_TTL_SECONDS = 2 * 60 * 60

Refresh = Callable[[], Awaitable[str]]


@dataclass(frozen=True)
class CacheResult:
    body: bytes
    hit: bool


class CacheGate:
    """
    Time-based file cache in front of the aggregation pipeline.

    The artifact is fresh while its mtime is not older than ``now - ttl``.
    Writes go to a temp file in the same directory and are renamed into
    place, so readers never see a partial document.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = asyncio.Lock()

    def _mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except (FileNotFoundError, NotADirectoryError):
            return None

    def is_fresh(self) -> bool:
        mtime = self._mtime()
        if mtime is None:
            return False
        return mtime >= self._clock() - self.ttl_seconds

    def read(self) -> Optional[bytes]:
        try:
            return self.path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            return None

    def write(self, body: bytes) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=str(self.path.parent),
            )
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(body)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, self.path)
            except BaseException:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            logger.error("metafeed_cache_write_failed", path=str(self.path), error=str(exc))
            raise CacheWriteError(f"cannot write cache artifact {self.path}: {exc}") from exc

    def invalidate(self) -> None:
        with contextlib.suppress(FileNotFoundError, NotADirectoryError):
            self.path.unlink()

    def _cached(self) -> Optional[CacheResult]:
        if not self.is_fresh():
            return None
        body = self.read()
        if body is None:
            return None
        logger.info("metafeed_cache_hit", path=str(self.path), size=len(body))
        return CacheResult(body=body, hit=True)

    async def get_or_refresh(self, refresh: Refresh) -> CacheResult:
        """
        Serve the artifact when fresh; otherwise run ``refresh`` once,
        persist its output and return it.

        Raises:
            CacheWriteError: the fresh output could not be persisted
        """
        cached = self._cached()
        if cached is not None:
            return cached

        async with self._lock:
            # Another request may have refreshed while we waited.
            cached = self._cached()
            if cached is not None:
                return cached

            logger.info(
                "metafeed_cache_miss",
                path=str(self.path),
                ttl_seconds=self.ttl_seconds,
                exists=self.path.exists(),
            )
            body = (await refresh()).encode("utf-8")
            self.write(body)
            return CacheResult(body=body, hit=False)

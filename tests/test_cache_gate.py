from __future__ import annotations

import asyncio
import os

import pytest

from metafeed.services.cache_gate import CacheGate
from metafeed.services.errors import CacheWriteError

WRITTEN_AT = 1_700_000_000.0
HOUR = 60 * 60


def _write_artifact(path, body: bytes = b"<rss>cached</rss>") -> None:
    path.write_bytes(body)
    os.utime(path, (WRITTEN_AT, WRITTEN_AT))


class CountingRefresh:
    def __init__(self, body: str = "<rss>fresh</rss>", delay: float = 0):
        self.body = body
        self.delay = delay
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return self.body


@pytest.mark.asyncio
async def test_hit_one_hour_after_write(tmp_path):
    path = tmp_path / "cache.xml"
    _write_artifact(path)
    refresh = CountingRefresh()
    gate = CacheGate(path, ttl_seconds=2 * HOUR, clock=lambda: WRITTEN_AT + HOUR)

    result = await gate.get_or_refresh(refresh)

    assert result.hit is True
    assert result.body == b"<rss>cached</rss>"
    assert refresh.calls == 0


@pytest.mark.asyncio
async def test_miss_three_hours_after_write_rewrites_artifact(tmp_path):
    path = tmp_path / "cache.xml"
    _write_artifact(path)
    refresh = CountingRefresh()
    gate = CacheGate(path, ttl_seconds=2 * HOUR, clock=lambda: WRITTEN_AT + 3 * HOUR)

    result = await gate.get_or_refresh(refresh)

    assert result.hit is False
    assert result.body == b"<rss>fresh</rss>"
    assert refresh.calls == 1
    assert path.read_bytes() == b"<rss>fresh</rss>"


@pytest.mark.asyncio
async def test_missing_artifact_is_a_miss(tmp_path):
    path = tmp_path / "nested" / "cache.xml"
    refresh = CountingRefresh()
    gate = CacheGate(path)

    result = await gate.get_or_refresh(refresh)

    assert result.hit is False
    assert path.read_bytes() == b"<rss>fresh</rss>"
    # nothing but the artifact is left behind
    assert [p.name for p in path.parent.iterdir()] == ["cache.xml"]


@pytest.mark.asyncio
async def test_concurrent_misses_refresh_once(tmp_path):
    gate = CacheGate(tmp_path / "cache.xml")
    refresh = CountingRefresh(delay=0.05)

    first, second = await asyncio.gather(
        gate.get_or_refresh(refresh),
        gate.get_or_refresh(refresh),
    )

    assert refresh.calls == 1
    assert first.body == second.body == b"<rss>fresh</rss>"
    assert sorted([first.hit, second.hit]) == [False, True]


@pytest.mark.asyncio
async def test_write_failure_surfaces_as_cache_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    gate = CacheGate(blocker / "cache.xml")

    with pytest.raises(CacheWriteError):
        await gate.get_or_refresh(CountingRefresh())


def test_is_fresh_and_invalidate(tmp_path):
    path = tmp_path / "cache.xml"
    gate = CacheGate(path, ttl_seconds=2 * HOUR, clock=lambda: WRITTEN_AT + HOUR)
    assert gate.is_fresh() is False

    _write_artifact(path)
    assert gate.is_fresh() is True

    gate.invalidate()
    assert not path.exists()
    gate.invalidate()  # idempotent

from __future__ import annotations

import pytest

from metafeed.services.cache_gate import CacheResult
from metafeed.services.errors import CacheWriteError
from metafeed.workers import metafeed_refresh_bot


@pytest.mark.asyncio
async def test_refresh_bot_force_and_stdout(monkeypatch, capsysbinary):
    seen: dict = {}

    async def fake_render(settings, *, force=False):
        seen["force"] = force
        return CacheResult(body=b"<rss/>", hit=False)

    monkeypatch.setattr(metafeed_refresh_bot, "render_metafeed", fake_render)

    exit_code = await metafeed_refresh_bot.main_async(["--force", "--stdout"])

    assert exit_code == 0
    assert seen["force"] is True
    assert capsysbinary.readouterr().out == b"<rss/>"


@pytest.mark.asyncio
async def test_refresh_bot_reports_cache_failure(monkeypatch):
    async def failing_render(settings, *, force=False):
        raise CacheWriteError("disk full")

    monkeypatch.setattr(metafeed_refresh_bot, "render_metafeed", failing_render)

    assert await metafeed_refresh_bot.main_async([]) == 1

from __future__ import annotations

import asyncio
import logging

import pytest

from metafeed.core import logging as metafeed_logging
from metafeed.core.request_id import (
    clear_request_id,
    log_context,
    set_request_id,
    with_run_id,
    with_source_url,
)


def test_log_context_is_empty_by_default():
    assert log_context() == {}


def test_run_id_is_generated_and_restored():
    with with_run_id() as outer:
        assert len(outer) == 32
        with with_run_id("inner-run"):
            assert log_context()["run_id"] == "inner-run"
        assert log_context()["run_id"] == outer
    assert "run_id" not in log_context()


def test_request_id_and_source_are_merged_into_events():
    set_request_id("req-1")
    try:
        with with_source_url("https://one.example/rss"):
            event = metafeed_logging._add_log_context(None, "info", {"event": "x", "request_id": "explicit"})
    finally:
        clear_request_id()

    # explicit keys win over bound context
    assert event == {"event": "x", "request_id": "explicit", "source_url": "https://one.example/rss"}


@pytest.mark.asyncio
async def test_source_url_is_task_local():
    seen = {}

    async def worker(url: str) -> None:
        with with_source_url(url):
            await asyncio.sleep(0)
            seen[url] = log_context()["source_url"]

    await asyncio.gather(worker("https://a.example/"), worker("https://b.example/"))

    assert seen == {"https://a.example/": "https://a.example/", "https://b.example/": "https://b.example/"}
    assert "source_url" not in log_context()


def test_stamp_processor_adds_ts_level_and_service():
    event = metafeed_logging._stamp("worker")(None, "WARNING", {"event": "x"})

    assert event["level"] == "warning"
    assert event["service"] == "worker"
    assert event["ts"].endswith("+00:00")


@pytest.mark.parametrize(
    "level, expected",
    [(logging.DEBUG, logging.DEBUG), ("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("bogus", logging.INFO)],
)
def test_resolve_level(level, expected):
    assert metafeed_logging._resolve_level(level) == expected

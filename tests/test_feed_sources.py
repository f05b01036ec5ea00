import textwrap
from pathlib import Path

import pytest

from metafeed.models.feed_sources import (
    FEED_SOURCES_YML,
    clear_feed_sources_cache,
    get_all_feed_sources,
)


def _write_config(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


@pytest.fixture(autouse=True)
def _reset_cache():
    clear_feed_sources_cache()
    yield
    clear_feed_sources_cache()


def test_feed_sources_happy_path_keeps_order(tmp_path):
    cfg = tmp_path / "feed_sources.yml"
    _write_config(
        cfg,
        """
        version: 1
        sources:
          - name: "Second alphabetically"
            url: "https://b.example/rss"
          - "https://a.example/feed"
        """,
    )

    sources = get_all_feed_sources(path=cfg)

    assert [s.url for s in sources] == ["https://b.example/rss", "https://a.example/feed"]
    assert sources[0].name == "Second alphabetically"
    # bare URL entries use the URL as name
    assert sources[1].name == "https://a.example/feed"


def test_feed_sources_skips_invalid_entries(tmp_path):
    cfg = tmp_path / "feed_sources.yml"
    _write_config(
        cfg,
        """
        sources:
          - name: "Missing Url"
          - name: "Not http"
            url: "ftp://example.com/rss"
          - name: "Broken host"
            url: "http://[::1/rss"
          - 42
          - url: "https://ok.example/rss"
        """,
    )

    sources = get_all_feed_sources(path=cfg)
    assert [s.url for s in sources] == ["https://ok.example/rss"]


def test_feed_sources_missing_file_returns_empty(tmp_path):
    assert get_all_feed_sources(path=tmp_path / "nope.yml") == []


def test_feed_sources_invalid_yaml_returns_empty(tmp_path):
    cfg = tmp_path / "feed_sources.yml"
    cfg.write_text("sources: [unclosed", encoding="utf-8")
    assert get_all_feed_sources(path=cfg) == []


def test_bundled_config_loads():
    sources = get_all_feed_sources()
    assert FEED_SOURCES_YML.exists()
    assert len(sources) == 5
    assert all(s.url.startswith("https://") for s in sources)

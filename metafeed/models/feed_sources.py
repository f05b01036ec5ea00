"""
Feed sources registry loader.

Parses configs/feed_sources.yml into an ordered list of FeedSource objects.
Order matters: the first source that parses successfully supplies the
channel info of the merged feed.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import yaml

from metafeed.core.logging import get_logger

logger = get_logger()

THIS_FILE = Path(__file__).resolve()
PACKAGE_DIR = THIS_FILE.parent.parent  # metafeed/
REPO_ROOT = PACKAGE_DIR.parent
FEED_SOURCES_YML = REPO_ROOT / "configs" / "feed_sources.yml"


@dataclass(frozen=True)
class FeedSource:
    """Single RSS/Atom source."""

    name: str
    url: str


def load_feed_sources_config(path: Optional[Path] = None) -> Dict[str, object]:
    """
    Load raw YAML config.

    Returns empty dict if file is missing or invalid; an empty source list
    still produces a (degenerate) merged feed.
    """
    cfg_path = Path(path) if path else FEED_SOURCES_YML
    try:
        text = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.error("feed_sources_config_not_found", path=str(cfg_path))
        return {}
    except OSError as exc:
        logger.error("feed_sources_config_read_error", path=str(cfg_path), error=str(exc))
        return {}

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        logger.error("feed_sources_config_parse_error", path=str(cfg_path), error=str(exc))
        return {}

    if not isinstance(data, dict):
        logger.error(
            "feed_sources_config_invalid_root",
            path=str(cfg_path),
            root_type=type(data).__name__,
        )
        return {}

    return data


def _validate_source(raw: object, index: int) -> Optional[FeedSource]:
    # Entries are either a bare URL string or a mapping with url/name.
    if isinstance(raw, str):
        raw = {"url": raw}
    if not isinstance(raw, dict):
        logger.warning(
            "feed_source_invalid_entry_type",
            index=index,
            value_type=type(raw).__name__,
        )
        return None

    url = raw.get("url")
    if not isinstance(url, str) or not url.strip().startswith(("http://", "https://")):
        logger.warning("feed_source_invalid_url", index=index, url=url)
        return None
    url = url.strip()
    try:
        httpx.URL(url)
    except httpx.InvalidURL as exc:
        logger.warning("feed_source_invalid_url", index=index, url=url, error=str(exc))
        return None

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        name = url
    return FeedSource(name=name.strip(), url=url)


@lru_cache(maxsize=8)
def _load_sources_from_path(path_str: str) -> List[FeedSource]:
    cfg_path = Path(path_str)
    cfg = load_feed_sources_config(cfg_path)
    raw_sources = cfg.get("sources", [])

    if not isinstance(raw_sources, list):
        logger.error(
            "feed_sources_invalid_sources_type",
            actual_type=type(raw_sources).__name__,
            path=str(cfg_path),
        )
        return []

    result: List[FeedSource] = []
    for idx, raw in enumerate(raw_sources):
        parsed = _validate_source(raw, idx)
        if parsed:
            result.append(parsed)

    logger.info("feed_sources_loaded", path=str(cfg_path), total=len(result))
    return result


def get_all_feed_sources(path: Optional[Path | str] = None) -> List[FeedSource]:
    """
    Public accessor for all valid feed sources, in configured order.

    Accepts optional path (useful for tests). Results are cached per-path.
    """
    cfg_path = Path(path) if path else FEED_SOURCES_YML
    return list(_load_sources_from_path(str(cfg_path.resolve())))


def clear_feed_sources_cache() -> None:
    """Reset LRU cache (useful for tests)."""
    _load_sources_from_path.cache_clear()

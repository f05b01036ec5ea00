from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class FeedFormat(str, Enum):
    RSS = "rss"
    ATOM = "atom"
    UNSUPPORTED = "unsupported"


class FeedItem(BaseModel):
    """
    One normalized entry, regardless of the source format.
    Every field is always present (possibly empty) so rendering never
    branches on missing keys. Values are plain text; escaping happens
    only at serialization time.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    link: str = ""
    description: str = ""
    publication_date: str = ""
    guid: str = ""


class ChannelInfo(BaseModel):
    """Feed-level metadata of a single source."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: str = ""
    link: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.description or self.link)


class ParsedFeed(BaseModel):
    """Result of parsing one source document: RSS or Atom, never both."""

    model_config = ConfigDict(frozen=True)

    format: FeedFormat
    channel: ChannelInfo
    items: Tuple[FeedItem, ...] = ()


class SourceResult(BaseModel):
    """Outcome of fetching and parsing one configured source."""

    model_config = ConfigDict(frozen=True)

    url: str
    feed: Optional[ParsedFeed] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.feed is not None


class MergedFeed(BaseModel):
    """
    Aggregate of one cycle: channel info of the first source that parsed,
    plus every item of every successful source, newest first.
    """

    channel: ChannelInfo = Field(default_factory=ChannelInfo)
    items: List[FeedItem] = Field(default_factory=list)
    sources: List[SourceResult] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def failed_sources(self) -> List[SourceResult]:
        return [s for s in self.sources if not s.ok]

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import List, Optional

from metafeed.models.feed import FeedItem, MergedFeed

RSS_CONTENT_TYPE = "application/rss+xml; charset=utf-8"


@dataclass(frozen=True)
class SiteInfo:
    """The combined feed's own identity, independent of any source."""

    title: str
    description: str
    link: str


def _esc(value: str) -> str:
    # Values are stored unescaped; this is the only escaping pass.
    return escape(value or "", quote=True)


def _render_item(item: FeedItem) -> List[str]:
    return [
        "<item>",
        f"  <title>{_esc(item.title)}</title>",
        f"  <link>{_esc(item.link)}</link>",
        f"  <description>{_esc(item.description)}</description>",
        f"  <pubDate>{_esc(item.publication_date)}</pubDate>",
        f"  <guid>{_esc(item.guid)}</guid>",
        "</item>",
    ]


def serialize_feed(
    merged: MergedFeed,
    max_items: int,
    *,
    site: SiteInfo,
    stylesheet_href: Optional[str] = None,
) -> str:
    """
    Render the merged feed as an RSS 2.0 document.

    Takes at most ``max_items`` from the front of the already sorted item
    list; never re-orders. Output depends only on the arguments.
    """
    lines: List[str] = ['<?xml version="1.0" encoding="UTF-8"?>']
    if stylesheet_href:
        lines.append(f'<?xml-stylesheet href="{_esc(stylesheet_href)}" type="text/xsl"?>')
    lines.append('<rss version="2.0">')
    lines.append("<channel>")
    lines.append(f"<title>{_esc(site.title)}</title>")
    lines.append(f"<description>{_esc(site.description)}</description>")
    lines.append(f"<link>{_esc(site.link)}</link>")

    for item in merged.items[: max(0, max_items)]:
        lines.extend(_render_item(item))

    lines.append("</channel>")
    lines.append("</rss>")
    return "\n".join(lines)

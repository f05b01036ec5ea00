from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Callable, Iterator, List, Optional, Sequence
from urllib.parse import urljoin

from lxml import etree

from metafeed.models.feed import ChannelInfo, FeedFormat, FeedItem, ParsedFeed
from metafeed.services.errors import MalformedDocument, UnsupportedFormat

ATOM_NS = "http://www.w3.org/2005/Atom"
ATOM_03_NS = "http://purl.org/atom/ns#"
RSS_10_NS = "http://purl.org/rss/1.0/"
RSS_090_NS = "http://my.netscape.com/rdf/simple/0.9/"
USERLAND_NS = "http://backend.userland.com/rss2"

# Plain RSS fields live in no namespace (2.0) or one of the RDF-era ones.
# Anything else (atom:link, media:title, dc:date, ...) is an extension and
# must never shadow them.
_RSS_NAMESPACES: Sequence[Optional[str]] = (None, RSS_10_NS, RSS_090_NS, USERLAND_NS)
_ATOM_NAMESPACES: Sequence[Optional[str]] = (ATOM_NS, ATOM_03_NS, None)


Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _make_parser() -> etree.XMLParser:
    # No DTD entity expansion and no network access for untrusted documents.
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        huge_tree=False,
        recover=False,
    )


# -------- Element helpers ----------------------------------------------------

def _qname(el: etree._Element) -> tuple[Optional[str], Optional[str]]:
    # Comments and processing instructions have a callable tag.
    if not isinstance(el.tag, str):
        return None, None
    q = etree.QName(el)
    return q.namespace, q.localname


def _children(
    el: Optional[etree._Element],
    name: str,
    namespaces: Sequence[Optional[str]],
) -> Iterator[etree._Element]:
    if el is None:
        return
    for child in el:
        ns, local = _qname(child)
        if local == name and ns in namespaces:
            yield child


def _child(
    el: Optional[etree._Element],
    name: str,
    namespaces: Sequence[Optional[str]],
) -> Optional[etree._Element]:
    return next(_children(el, name, namespaces), None)


def _text(el: Optional[etree._Element]) -> str:
    """
    Text content of an element. Child markup (Atom type="xhtml", or
    unescaped HTML that happens to be well-formed) is kept as markup.
    """
    if el is None:
        return ""
    if not any(isinstance(child.tag, str) for child in el):
        return str(el.xpath("string()"))
    parts = [el.text or ""]
    for child in el:
        parts.append(etree.tostring(child, encoding="unicode", with_tail=True))
    return "".join(parts)


def _child_text(
    el: Optional[etree._Element],
    name: str,
    namespaces: Sequence[Optional[str]],
) -> str:
    return _text(_child(el, name, namespaces))


# -------- Format detection ---------------------------------------------------

def load_document(raw: bytes, *, base_url: Optional[str] = None) -> etree._Element:
    """Parse raw bytes into an XML tree; raises MalformedDocument."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    if not raw or not raw.strip():
        raise MalformedDocument("empty document")
    try:
        return etree.fromstring(raw, _make_parser(), base_url=base_url)
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise MalformedDocument(str(exc)) from exc


def detect_format(root: etree._Element) -> FeedFormat:
    """
    Decide once, at the top, which extractor applies:
      - a channel element under the root -> RSS
      - the Atom namespace declared, or a root named "feed" -> Atom
      - anything else -> unsupported
    """
    if _child(root, "channel", _RSS_NAMESPACES) is not None:
        return FeedFormat.RSS
    _, local = _qname(root)
    declared = set((root.nsmap or {}).values())
    if ATOM_NS in declared or ATOM_03_NS in declared or local == "feed":
        return FeedFormat.ATOM
    return FeedFormat.UNSUPPORTED


# -------- RSS ----------------------------------------------------------------

def _parse_rss(root: etree._Element, now: Clock) -> ParsedFeed:
    channel = _child(root, "channel", _RSS_NAMESPACES)
    info = ChannelInfo(
        title=_child_text(channel, "title", _RSS_NAMESPACES),
        description=_child_text(channel, "description", _RSS_NAMESPACES),
        link=_child_text(channel, "link", _RSS_NAMESPACES),
    )

    # RSS 2.0 nests items in the channel, RSS 1.0 puts them next to it.
    entries = [
        *_children(channel, "item", _RSS_NAMESPACES),
        *_children(root, "item", _RSS_NAMESPACES),
    ]

    items: List[FeedItem] = []
    for entry in entries:
        pub_date = _child_text(entry, "pubDate", _RSS_NAMESPACES)
        if not pub_date.strip():
            pub_date = format_datetime(now())
        items.append(
            FeedItem(
                title=_child_text(entry, "title", _RSS_NAMESPACES),
                link=_child_text(entry, "link", _RSS_NAMESPACES),
                description=_child_text(entry, "description", _RSS_NAMESPACES),
                publication_date=pub_date,
                guid=_child_text(entry, "guid", _RSS_NAMESPACES),
            )
        )
    return ParsedFeed(format=FeedFormat.RSS, channel=info, items=tuple(items))


# -------- Atom ---------------------------------------------------------------

def _href(link_el: etree._Element) -> str:
    href = (link_el.get("href") or "").strip()
    base = link_el.base
    if href and base:
        return urljoin(base, href)
    return href


def resolve_atom_link(entry: etree._Element) -> str:
    """First link in document order whose rel is absent or "alternate"."""
    for link_el in _children(entry, "link", _ATOM_NAMESPACES):
        rel = link_el.get("rel")
        if rel is None or rel == "alternate":
            return _href(link_el)
    return ""


def resolve_atom_description(entry: etree._Element) -> str:
    # A present content element wins even when it is empty.
    content = _child(entry, "content", _ATOM_NAMESPACES)
    if content is not None:
        return _text(content)
    return _child_text(entry, "summary", _ATOM_NAMESPACES)


def resolve_atom_date(entry: etree._Element) -> str:
    for tag in ("published", "updated"):
        value = _child_text(entry, tag, _ATOM_NAMESPACES)
        if value.strip():
            return value
    return ""


def _parse_atom(root: etree._Element) -> ParsedFeed:
    feed_link = _child(root, "link", _ATOM_NAMESPACES)
    info = ChannelInfo(
        title=_child_text(root, "title", _ATOM_NAMESPACES),
        description=_child_text(root, "subtitle", _ATOM_NAMESPACES),
        link=_href(feed_link) if feed_link is not None else "",
    )

    items: List[FeedItem] = []
    for entry in _children(root, "entry", _ATOM_NAMESPACES):
        items.append(
            FeedItem(
                title=_child_text(entry, "title", _ATOM_NAMESPACES),
                link=resolve_atom_link(entry),
                description=resolve_atom_description(entry),
                publication_date=resolve_atom_date(entry),
                guid=_child_text(entry, "id", _ATOM_NAMESPACES),
            )
        )
    return ParsedFeed(format=FeedFormat.ATOM, channel=info, items=tuple(items))


# -------- Public API ---------------------------------------------------------

def parse_feed(
    raw: bytes,
    *,
    base_url: Optional[str] = None,
    now: Optional[Clock] = None,
) -> ParsedFeed:
    """
    Parse one source document into channel info plus normalized items.

    Raises:
        MalformedDocument: the bytes are not well-formed XML
        UnsupportedFormat: well-formed, but neither RSS nor Atom
    """
    root = load_document(raw, base_url=base_url)
    feed_format = detect_format(root)
    if feed_format is FeedFormat.RSS:
        return _parse_rss(root, now or _utcnow)
    if feed_format is FeedFormat.ATOM:
        return _parse_atom(root)
    _, local = _qname(root)
    raise UnsupportedFormat(f"unsupported root element <{local}>")

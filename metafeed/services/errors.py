from __future__ import annotations


class FeedError(Exception):
    """Base class for metafeed failures."""


class TransportFailure(FeedError):
    """
    A source could not be fetched: connection error, timeout or an
    HTTP error status. Source-local; the aggregator skips the source.
    """

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class MalformedDocument(FeedError):
    """The fetched bytes are not well-formed XML."""


class UnsupportedFormat(FeedError):
    """Well-formed XML that is neither an RSS channel nor an Atom feed."""


class CacheWriteError(FeedError):
    """
    The cache artifact could not be written. This is the only failure
    that reaches the caller of the pipeline.
    """

"""Error taxonomy for feed ingestion."""


class FeedReaderError(Exception):
    """Base class for all feed ingestion errors."""


class InvalidUrlError(FeedReaderError):
    """The supplied URL is not an absolute http(s) URL."""


class FetchFailed(FeedReaderError):
    """No usable document could be retrieved.

    Timeouts, connection errors, redirect loops and non-200 responses all
    collapse into this single error.
    """

    def __init__(self, url: str, message: str = "Failed to fetch feed"):
        super().__init__(f"{message}: {url}")
        self.url = url


class ParseFailed(FeedReaderError):
    """The document is not a valid RSS/Atom feed."""


class NoFeedsFound(FeedReaderError):
    """An HTML page advertised no feed links."""


class FeedNotFound(FeedReaderError):
    """A referenced feed is not stored."""


class EntryNotFound(FeedReaderError):
    """A referenced entry is not stored."""


class DuplicateEntry(FeedReaderError):
    """The store already holds an entry with the same (feed_id, entry_id)."""

    def __init__(self, feed_id: str, entry_id: str):
        super().__init__(f"Entry {entry_id!r} already stored for feed {feed_id}")
        self.feed_id = feed_id
        self.entry_id = entry_id

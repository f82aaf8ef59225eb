"""Data models for the feed reader."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass
class Feed:
    """A stored RSS/Atom source, unique by URL."""

    feed_id: str
    title: str
    url: str
    icon_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class FeedOption:
    """A feed candidate advertised by an HTML page."""

    title: str | None
    url: str


@dataclass
class FeedSummary:
    """Feed-level metadata."""

    title: str
    icon_url: str | None = None


@dataclass
class ParsedFeedEntry:
    """A single normalized feed item."""

    entry_id: str
    title: str
    url: str
    published: datetime
    author: str | None = None
    summary: str | None = None


@dataclass
class ParsedFeed:
    """Feed metadata together with its normalized entries."""

    title: str
    icon_url: str | None = None
    entries: list[ParsedFeedEntry] = field(default_factory=list)


@dataclass
class Entry:
    """A stored entry, scoped to one feed."""

    feed_id: str
    entry_id: str
    title: str
    url: str
    published: datetime
    author: str | None = None
    summary: str | None = None
    created_at: datetime | None = None


@dataclass
class FetchedDocument:
    """A successfully fetched HTTP response body."""

    url: str
    final_url: str
    status_code: int
    content_type: str
    content: bytes

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()


@dataclass
class ReconcileResult:
    """Counts reported by one reconciliation pass."""

    new_entries: int
    total_entries: int


@dataclass
class FeedFailure:
    """A feed that could not be reconciled during a batch."""

    feed_id: str
    feed_url: str
    error: str


@dataclass
class BatchSummary:
    """Aggregate result of reconciling many feeds."""

    feeds_processed: int = 0
    succeeded: int = 0
    total_entries: int = 0
    new_entries: int = 0
    failures: list[FeedFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "feeds_processed": self.feeds_processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "total_entries": self.total_entries,
            "new_entries": self.new_entries,
            "errors": [
                {"feed_id": f.feed_id, "feed_url": f.feed_url, "error": f.error}
                for f in self.failures
            ],
        }


class FailureKind(str, Enum):
    """Why a URL could not be resolved to a feed."""

    FETCH_FAILED = "fetch_failed"
    PARSE_FAILED = "parse_failed"
    NO_FEEDS_FOUND = "no_feeds_found"


# Resolution outcomes. Exactly one of these is returned by FeedResolver.resolve.


@dataclass
class InvalidUrl:
    """The URL was rejected before any network call."""

    url: str


@dataclass
class ExistingFeed:
    """The URL already belongs to a stored feed."""

    feed: Feed


@dataclass
class NewFeed:
    """The URL points straight at a parseable feed; the caller persists it."""

    title: str
    icon_url: str | None
    url: str


@dataclass
class SingleOptionResolved(NewFeed):
    """An HTML page advertised one feed, which resolved to a parseable feed."""

    option: FeedOption | None = None


@dataclass
class AmbiguousOptions:
    """An HTML page advertised several feeds; the caller must choose one."""

    options: list[FeedOption]


@dataclass
class Unresolvable:
    """No feed could be obtained from the URL."""

    url: str
    reason: FailureKind
    message: str = ""


ResolveOutcome = (
    InvalidUrl | ExistingFeed | NewFeed | AmbiguousOptions | Unresolvable
)

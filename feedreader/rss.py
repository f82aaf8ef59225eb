"""RSS/Atom feed parsing and entry normalization."""

import xml.sax
from datetime import UTC, datetime

import feedparser
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .errors import ParseFailed
from .logging_config import create_execution_logger
from .models import FeedSummary, ParsedFeed, ParsedFeedEntry

DEFAULT_TITLE = "Untitled"


class FeedParser:
    """Parses RSS/Atom documents into feed summaries and normalized entries."""

    def __init__(self, execution_id: str | None = None):
        """Initialize FeedParser.

        Args:
            execution_id: Execution ID for logging context
        """
        self.logger = create_execution_logger("feed_parser", execution_id)

    def parse_feed_summary(self, document: bytes | str) -> FeedSummary:
        """Parse feed-level metadata.

        Args:
            document: Raw RSS/Atom document

        Returns:
            Feed title and icon URL

        Raises:
            ParseFailed: If the document is not a valid RSS/Atom feed
        """
        feed = self._parse(document)
        return FeedSummary(
            title=self._feed_title(feed), icon_url=self._feed_icon(feed)
        )

    def parse_feed_with_entries(self, document: bytes | str) -> ParsedFeed:
        """Parse feed-level metadata and every entry.

        Args:
            document: Raw RSS/Atom document

        Returns:
            Feed title, icon URL and normalized entries

        Raises:
            ParseFailed: If the document is not a valid RSS/Atom feed
        """
        feed = self._parse(document)
        fetched_at = datetime.now(UTC)

        entries = [
            self.normalize_entry(raw_entry, fetched_at)
            for raw_entry in feed.get("entries") or []
        ]

        self.logger.info(
            "Parsed feed",
            feed_version=feed.get("version"),
            entries_count=len(entries),
        )
        return ParsedFeed(
            title=self._feed_title(feed),
            icon_url=self._feed_icon(feed),
            entries=entries,
        )

    def _parse(self, document: bytes | str):
        # feedparser treats str arguments as URLs or file paths, bytes as content
        if isinstance(document, str):
            document = document.encode("utf-8")

        feed = feedparser.parse(document)
        exception = feed.get("bozo_exception")

        if not feed.get("version"):
            self.logger.warning(
                "Document is not an RSS/Atom feed",
                bozo_exception=str(exception) if exception else None,
            )
            raise ParseFailed("Document is not an RSS/Atom feed")

        # Not well-formed XML, even if the loose parser recovered entries
        if isinstance(exception, xml.sax.SAXException):
            self.logger.warning(
                f"Malformed feed document: {exception}",
                bozo_exception=str(exception),
            )
            raise ParseFailed(f"Malformed feed document: {exception}")

        if feed.get("bozo"):
            self.logger.debug(
                f"Feed parsed with warnings: {exception}",
                bozo_exception=str(exception),
            )
        return feed

    def _feed_title(self, feed) -> str:
        return feed.feed.get("title") or DEFAULT_TITLE

    def _feed_icon(self, feed) -> str | None:
        image = feed.feed.get("image") or {}
        return image.get("href") or image.get("url") or feed.feed.get("logo") or None

    def normalize_entry(
        self, raw_entry, fetched_at: datetime | None = None
    ) -> ParsedFeedEntry:
        """Normalize a raw feedparser entry.

        The entry id is the document's guid/id, else the link, else "".
        Entries without a usable date are stamped with ``fetched_at``.

        Args:
            raw_entry: Raw feed entry from feedparser
            fetched_at: Fallback publication time, defaults to now

        Returns:
            Normalized ParsedFeedEntry
        """
        link = getattr(raw_entry, "link", None) or ""
        entry_id = getattr(raw_entry, "id", None) or link or ""

        return ParsedFeedEntry(
            entry_id=entry_id,
            title=getattr(raw_entry, "title", None) or DEFAULT_TITLE,
            url=link,
            published=self._published(raw_entry, fetched_at),
            author=getattr(raw_entry, "author", None) or None,
            summary=self._summary(raw_entry),
        )

    def _published(self, raw_entry, fetched_at: datetime | None) -> datetime:
        for name in ("published", "updated"):
            value = getattr(raw_entry, name, None)
            if not value or not isinstance(value, str):
                continue
            try:
                published = date_parser.parse(value)
            except (ValueError, OverflowError):
                self.logger.debug(f"Unparseable {name} date: {value}")
                continue
            if published.tzinfo is None:
                published = published.replace(tzinfo=UTC)
            return published

        return fetched_at or datetime.now(UTC)

    def _summary(self, raw_entry) -> str | None:
        content = None
        raw_content = getattr(raw_entry, "content", None)
        if isinstance(raw_content, list) and raw_content:
            content = raw_content[0].get("value") or None

        summary = getattr(raw_entry, "summary", None) or None
        if not isinstance(summary, str):
            summary = None

        snippet = self.clean_html_content(content or summary)
        return snippet or content or summary

    def clean_html_content(self, content: str | None) -> str:
        """Remove HTML tags from content and normalize whitespace.

        Args:
            content: Raw content that may contain HTML

        Returns:
            Plain text with single spaces between words
        """
        if not content:
            return ""

        if "<" in content or ">" in content:
            soup = BeautifulSoup(content, "html.parser")
            for tag in soup(["script", "style"]):
                tag.decompose()
            content = soup.get_text(separator=" ")

        return " ".join(content.split())

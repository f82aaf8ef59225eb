"""Shared fixtures: in-memory store, scripted fetcher and sample documents."""

import uuid
from datetime import UTC, datetime

import pytest

from feedreader.errors import DuplicateEntry, FetchFailed, InvalidUrlError
from feedreader.fetcher import is_valid_url
from feedreader.models import Entry, Feed, FetchedDocument

RSS_CONTENT_TYPE = "application/rss+xml; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


def rss_document(items, title="Example Feed", image_url=None) -> bytes:
    """Build an RSS 2.0 document from (guid, link, title) tuples."""
    image = ""
    if image_url:
        image = (
            f"<image><url>{image_url}</url><title>{title}</title>"
            "<link>https://example.com/</link></image>"
        )

    rendered = []
    for guid, link, item_title in items:
        parts = [f"<title>{item_title}</title>"]
        if link:
            parts.append(f"<link>{link}</link>")
        if guid:
            parts.append(f'<guid isPermaLink="false">{guid}</guid>')
        parts.append("<pubDate>Mon, 01 Jan 2024 10:00:00 GMT</pubDate>")
        parts.append(f"<description>About {item_title}</description>")
        rendered.append("<item>" + "".join(parts) + "</item>")

    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel>'
        f"<title>{title}</title><link>https://example.com/</link>"
        "<description>Example</description>"
        f"{image}{''.join(rendered)}"
        "</channel></rss>"
    ).encode("utf-8")


def html_page(*links: str) -> bytes:
    return (
        "<!DOCTYPE html><html><head><title>Example</title>"
        + "".join(links)
        + "</head><body><p>Hello</p></body></html>"
    ).encode("utf-8")


class InMemoryFeedStore:
    """Dictionary-backed stand-in for FeedStore."""

    def __init__(self):
        self.feeds: dict[str, Feed] = {}
        self.entries: dict[tuple[str, str], Entry] = {}
        self.calls: list[str] = []

    def find_feed_by_url(self, url):
        self.calls.append("find_feed_by_url")
        return self.feeds.get(url)

    def find_feed_by_id(self, feed_id):
        self.calls.append("find_feed_by_id")
        return next((f for f in self.feeds.values() if f.feed_id == feed_id), None)

    def create_feed(self, title, url, icon_url=None):
        self.calls.append("create_feed")
        if url in self.feeds:
            return self.feeds[url]
        now = datetime.now(UTC)
        feed = Feed(uuid.uuid4().hex, title, url, icon_url, now, now)
        self.feeds[url] = feed
        return feed

    def list_feeds(self):
        return list(self.feeds.values())

    def find_entry_by_entry_id(self, entry_id):
        self.calls.append("find_entry_by_entry_id")
        return next(
            (e for (_, eid), e in self.entries.items() if eid == entry_id), None
        )

    def find_entry(self, feed_id, entry_id):
        self.calls.append("find_entry")
        return self.entries.get((feed_id, entry_id))

    def create_entry(self, feed_id, entry_id, title, url, author, published, summary):
        self.calls.append("create_entry")
        if (feed_id, entry_id) in self.entries:
            raise DuplicateEntry(feed_id, entry_id)
        entry = Entry(
            feed_id, entry_id, title, url, published, author, summary, datetime.now(UTC)
        )
        self.entries[(feed_id, entry_id)] = entry
        return entry

    def entries_for(self, feed_id):
        return [e for (fid, _), e in self.entries.items() if fid == feed_id]


class ScriptedFetcher:
    """Serves canned documents by URL; unknown URLs fail like a timeout.

    Non-http(s) URLs are rejected the way DocumentFetcher rejects them.
    """

    def __init__(self, documents=None):
        self.documents = dict(documents or {})
        self.requested: list[str] = []

    def serve(self, url, content, content_type=RSS_CONTENT_TYPE):
        self.documents[url] = (content, content_type)

    def fetch(self, url):
        if not is_valid_url(url):
            raise InvalidUrlError(url)
        self.requested.append(url)
        if url not in self.documents:
            raise FetchFailed(url)
        content, content_type = self.documents[url]
        return FetchedDocument(url, url, 200, content_type, content)


@pytest.fixture
def store():
    return InMemoryFeedStore()


@pytest.fixture
def fetcher():
    return ScriptedFetcher()

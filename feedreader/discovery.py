"""Discovery of RSS/Atom feed links advertised by HTML pages."""

from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .errors import NoFeedsFound
from .models import FeedOption

FEED_LINK_TYPES = {"application/rss+xml", "application/atom+xml"}


def find_feeds_in_html(base_url: str, html: str | bytes) -> list[FeedOption]:
    """Find feed links in an HTML document.

    Every ``<link>`` whose ``type`` is an RSS or Atom media type becomes a
    FeedOption, in document order and without deduplication. Links without
    an ``href`` are skipped. Relative hrefs are resolved against
    ``base_url`` with standard relative-reference resolution, so
    ``/feed.xml`` on ``https://example.com/blog`` becomes
    ``https://example.com/feed.xml`` and ``../feed.xml`` is resolved too.

    Args:
        base_url: URL the HTML was fetched from
        html: HTML document, possibly malformed

    Returns:
        Discovered feed options, possibly empty
    """
    soup = BeautifulSoup(html, "html.parser")

    options = []
    for link in soup.find_all("link"):
        link_type = (link.get("type") or "").strip().lower()
        if link_type not in FEED_LINK_TYPES:
            continue

        href = (link.get("href") or "").strip()
        if not href:
            continue

        options.append(
            FeedOption(title=link.get("title") or None, url=urljoin(base_url, href))
        )

    return options


def require_feeds_in_html(base_url: str, html: str | bytes) -> list[FeedOption]:
    """Like find_feeds_in_html, but a page without feed links is an error.

    Raises:
        NoFeedsFound: If the page advertises no feeds
    """
    options = find_feeds_in_html(base_url, html)
    if not options:
        raise NoFeedsFound(f"Page does not advertise any feeds: {base_url}")
    return options

"""HTTP document fetcher."""

from urllib.parse import urlparse

import requests

from .config import FetchConfig
from .errors import FetchFailed, InvalidUrlError
from .logging_config import create_execution_logger
from .models import FetchedDocument


def is_valid_url(url: str) -> bool:
    """Return True for absolute http(s) URLs with a host."""
    if not isinstance(url, str) or not url or any(c.isspace() for c in url):
        return False
    try:
        parsed = urlparse(url)
        # Accessing port validates it
        parsed.port
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


class DocumentFetcher:
    """Retrieves documents over HTTP with a bounded timeout and redirect count."""

    def __init__(
        self, config: FetchConfig | None = None, execution_id: str | None = None
    ):
        """Initialize the fetcher.

        Args:
            config: Timeout, redirect and User-Agent settings
            execution_id: Execution ID for logging context
        """
        self.config = config or FetchConfig()
        self.logger = create_execution_logger("fetcher", execution_id)
        self.session = requests.Session()
        self.session.max_redirects = self.config.max_redirects
        self.session.headers.update({"User-Agent": self.config.user_agent})

    def fetch(self, url: str) -> FetchedDocument:
        """Fetch a URL.

        Args:
            url: Absolute http(s) URL

        Returns:
            The fetched document

        Raises:
            InvalidUrlError: If the URL is not an absolute http(s) URL
            FetchFailed: On any network error, timeout, redirect overflow or
                a final status other than 200
        """
        if not is_valid_url(url):
            raise InvalidUrlError(f"Not an absolute http(s) URL: {url!r}")

        self.logger.debug("Fetching document", feed_url=url)
        try:
            response = self.session.get(url, timeout=self.config.timeout)
        except requests.RequestException as e:
            self.logger.warning(
                f"Failed to fetch {url}: {e}", feed_url=url, error=str(e)
            )
            raise FetchFailed(url) from e

        if response.status_code != 200:
            self.logger.warning(
                f"Unexpected status {response.status_code} for {url}",
                feed_url=url,
                status_code=response.status_code,
            )
            raise FetchFailed(url)

        self.logger.info(
            "Document fetched",
            feed_url=url,
            final_url=response.url,
            content_length=len(response.content),
        )
        return FetchedDocument(
            url=url,
            final_url=response.url or url,
            status_code=response.status_code,
            content_type=response.headers.get("Content-Type", ""),
            content=response.content,
        )

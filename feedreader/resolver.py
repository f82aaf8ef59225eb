"""Resolution of user-supplied URLs to subscribable feeds."""

from dataclasses import dataclass
from enum import Enum

from .discovery import require_feeds_in_html
from .errors import FetchFailed, InvalidUrlError, NoFeedsFound, ParseFailed
from .fetcher import DocumentFetcher, is_valid_url
from .logging_config import create_execution_logger
from .models import (
    AmbiguousOptions,
    ExistingFeed,
    FailureKind,
    Feed,
    FeedOption,
    FetchedDocument,
    InvalidUrl,
    NewFeed,
    ResolveOutcome,
    SingleOptionResolved,
    Unresolvable,
)
from .rss import FeedParser


class ResolveState(Enum):
    START = "start"
    FETCHED = "fetched"
    HTML_BRANCH = "html_branch"
    FEED_BRANCH = "feed_branch"


@dataclass
class _Resolution:
    url: str
    document: FetchedDocument | None = None
    option: FeedOption | None = None


class FeedResolver:
    """Turns a URL into a feed, a list of feed candidates, or a failure.

    Resolution runs as a small state machine. Each step either moves to the
    next ResolveState or returns a terminal outcome:

    * START: look the URL up in the store, otherwise fetch it.
    * FETCHED: HTML pages go to HTML_BRANCH, anything else to FEED_BRANCH.
      A URL taken from a discovered link always goes to FEED_BRANCH.
    * HTML_BRANCH: discover feed links; one link restarts at START with that
      link, several are returned for the caller to choose from.
    * FEED_BRANCH: parse the document as RSS/Atom.

    Failures are returned as outcomes and never retried.
    """

    def __init__(
        self,
        store,
        fetcher: DocumentFetcher | None = None,
        parser: FeedParser | None = None,
        execution_id: str | None = None,
    ):
        """Initialize the resolver.

        Args:
            store: Feed persistence (``find_feed_by_url``, ``create_feed``)
            fetcher: Document fetcher
            parser: Feed parser
            execution_id: Execution ID for logging context
        """
        self.store = store
        self.fetcher = fetcher or DocumentFetcher(execution_id=execution_id)
        self.parser = parser or FeedParser(execution_id=execution_id)
        self.logger = create_execution_logger("resolver", execution_id)
        self._steps = {
            ResolveState.START: self._start,
            ResolveState.FETCHED: self._fetched,
            ResolveState.HTML_BRANCH: self._html_branch,
            ResolveState.FEED_BRANCH: self._feed_branch,
        }

    def resolve(self, url: str) -> ResolveOutcome:
        """Resolve a user-supplied URL without persisting anything."""
        if not is_valid_url(url):
            self.logger.info("Rejected invalid URL", feed_url=url)
            return InvalidUrl(url)

        resolution = _Resolution(url=url)
        state = ResolveState.START
        while True:
            self.logger.debug(f"Resolution step {state.value}", feed_url=resolution.url)
            result = self._steps[state](resolution)
            if not isinstance(result, ResolveState):
                self.logger.info(
                    f"Resolved {url} to {type(result).__name__}", feed_url=url
                )
                return result
            state = result

    def subscribe(self, url: str) -> tuple[ResolveOutcome, Feed | None]:
        """Resolve a URL and persist a newly found feed.

        Returns:
            The resolution outcome and the stored feed, if there is one
        """
        outcome = self.resolve(url)
        if isinstance(outcome, ExistingFeed):
            return outcome, outcome.feed
        if isinstance(outcome, NewFeed):
            feed = self.store.create_feed(outcome.title, outcome.url, outcome.icon_url)
            return outcome, feed
        return outcome, None

    def _start(self, resolution: _Resolution):
        existing = self.store.find_feed_by_url(resolution.url)
        if existing:
            return ExistingFeed(existing)

        try:
            resolution.document = self.fetcher.fetch(resolution.url)
        except (FetchFailed, InvalidUrlError) as e:
            # Discovered links may use schemes such as feed: or javascript:
            return Unresolvable(resolution.url, FailureKind.FETCH_FAILED, str(e))
        return ResolveState.FETCHED

    def _fetched(self, resolution: _Resolution):
        if resolution.document.is_html and resolution.option is None:
            return ResolveState.HTML_BRANCH
        return ResolveState.FEED_BRANCH

    def _html_branch(self, resolution: _Resolution):
        # Relative links resolve against the page after redirects
        document = resolution.document
        try:
            options = require_feeds_in_html(document.final_url, document.content)
        except NoFeedsFound as e:
            return Unresolvable(resolution.url, FailureKind.NO_FEEDS_FOUND, str(e))

        options = _distinct_options(options)
        if len(options) > 1:
            return AmbiguousOptions(options)

        resolution.option = options[0]
        resolution.url = options[0].url
        resolution.document = None
        return ResolveState.START

    def _feed_branch(self, resolution: _Resolution):
        try:
            summary = self.parser.parse_feed_summary(resolution.document.content)
        except ParseFailed as e:
            return Unresolvable(resolution.url, FailureKind.PARSE_FAILED, str(e))

        if resolution.option is not None:
            return SingleOptionResolved(
                title=summary.title,
                icon_url=summary.icon_url,
                url=resolution.url,
                option=resolution.option,
            )
        return NewFeed(
            title=summary.title, icon_url=summary.icon_url, url=resolution.url
        )


def _distinct_options(options: list[FeedOption]) -> list[FeedOption]:
    """Drop repeated URLs, keeping the first occurrence."""
    seen = set()
    distinct = []
    for option in options:
        if option.url in seen:
            continue
        seen.add(option.url)
        distinct.append(option)
    return distinct

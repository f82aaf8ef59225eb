"""Merging of freshly fetched feed entries into storage."""

from .errors import DuplicateEntry, FeedNotFound, FeedReaderError
from .fetcher import DocumentFetcher
from .logging_config import create_execution_logger
from .models import BatchSummary, Feed, FeedFailure, ParsedFeedEntry, ReconcileResult
from .rss import FeedParser


class EntryReconciler:
    """Fetches a feed and inserts the entries the store has not seen.

    Entries are append-only: existing entries are never updated or deleted,
    and feed title/icon are never refreshed.
    """

    def __init__(
        self,
        store,
        fetcher: DocumentFetcher | None = None,
        parser: FeedParser | None = None,
        lookup_scope: str = "feed",
        execution_id: str | None = None,
    ):
        """Initialize the reconciler.

        Args:
            store: Feed/entry persistence
            fetcher: Document fetcher
            parser: Feed parser
            lookup_scope: ``"feed"`` checks for existing entries by
                (feed_id, entry_id); ``"global"`` checks by entry_id across
                all feeds, so an identifier used by another feed suppresses
                the insert
            execution_id: Execution ID for logging context
        """
        if lookup_scope not in ("feed", "global"):
            raise ValueError(f"Unknown entry lookup scope: {lookup_scope!r}")

        self.store = store
        self.fetcher = fetcher or DocumentFetcher(execution_id=execution_id)
        self.parser = parser or FeedParser(execution_id=execution_id)
        self.lookup_scope = lookup_scope
        self.logger = create_execution_logger("reconciler", execution_id)

    def fetch_entries(self, feed_id: str) -> ReconcileResult:
        """Reconcile a stored feed by id.

        Raises:
            FeedNotFound: If no feed has this id
        """
        feed = self.store.find_feed_by_id(feed_id)
        if feed is None:
            raise FeedNotFound(f"Feed not found: {feed_id}")
        return self.reconcile(feed)

    def reconcile(self, feed: Feed) -> ReconcileResult:
        """Fetch a feed and store its new entries.

        Args:
            feed: A stored feed

        Returns:
            Number of entries in the document and number newly stored

        Raises:
            FetchFailed: If the feed document could not be fetched
            ParseFailed: If the document is not a valid feed
        """
        document = self.fetcher.fetch(feed.url)
        parsed = self.parser.parse_feed_with_entries(document.content)

        new_entries = 0
        for entry in parsed.entries:
            if self._store_if_new(feed, entry):
                new_entries += 1

        result = ReconcileResult(
            new_entries=new_entries, total_entries=len(parsed.entries)
        )
        self.logger.log_feed_reconciled(
            feed.feed_id, feed.url, result.total_entries, result.new_entries
        )
        return result

    def reconcile_all(self, feeds: list[Feed]) -> BatchSummary:
        """Reconcile feeds one at a time.

        A failing feed is recorded and does not stop the remaining feeds.
        """
        summary = BatchSummary()
        self.logger.log_execution_start(feed_count=len(feeds))

        for feed in feeds:
            summary.feeds_processed += 1
            try:
                result = self.reconcile(feed)
            except FeedReaderError as e:
                self.logger.log_feed_failed(feed.feed_id, feed.url, str(e))
                summary.failures.append(FeedFailure(feed.feed_id, feed.url, str(e)))
                continue
            except Exception as e:
                message = f"{type(e).__name__}: {e}"
                self.logger.log_feed_failed(feed.feed_id, feed.url, message)
                summary.failures.append(FeedFailure(feed.feed_id, feed.url, message))
                continue

            summary.succeeded += 1
            summary.total_entries += result.total_entries
            summary.new_entries += result.new_entries

        self.logger.log_execution_end(
            success=not summary.failures, metrics=summary.to_dict()
        )
        return summary

    def _store_if_new(self, feed: Feed, entry: ParsedFeedEntry) -> bool:
        if not entry.entry_id:
            self.logger.info(
                f"Skipping entry without identifier: {entry.title}",
                feed_id=feed.feed_id,
                feed_url=feed.url,
                entry_url=entry.url,
            )
            return False

        if self._exists(feed, entry.entry_id):
            return False

        try:
            self.store.create_entry(
                feed.feed_id,
                entry.entry_id,
                entry.title,
                entry.url,
                entry.author,
                entry.published,
                entry.summary,
            )
        except DuplicateEntry:
            # Stored by a concurrent reconciliation of the same feed
            self.logger.info(
                "Entry stored concurrently",
                feed_id=feed.feed_id,
                entry_id=entry.entry_id,
            )
            return False
        return True

    def _exists(self, feed: Feed, entry_id: str) -> bool:
        if self.lookup_scope == "global":
            return self.store.find_entry_by_entry_id(entry_id) is not None
        return self.store.find_entry(feed.feed_id, entry_id) is not None

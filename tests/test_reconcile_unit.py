"""Unit tests for entry reconciliation."""

import logging
from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from conftest import rss_document
from feedreader.errors import FeedNotFound, FetchFailed, ParseFailed
from feedreader.models import ReconcileResult
from feedreader.reconcile import EntryReconciler

FEED_URL = "https://example.com/feed.xml"


def items(*ids):
    return [(i, f"https://example.com/{i}", f"Post {i}") for i in ids]


class TestEntryReconcilerUnit:
    """Unit tests for EntryReconciler.reconcile."""

    def test_first_pass_inserts_every_entry(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        fetcher.serve(FEED_URL, rss_document(items("a", "b", "c")))
        reconciler = EntryReconciler(store, fetcher=fetcher)

        result = reconciler.reconcile(feed)

        assert result == ReconcileResult(new_entries=3, total_entries=3)
        stored = {e.entry_id: e for e in store.entries_for(feed.feed_id)}
        assert set(stored) == {"a", "b", "c"}
        assert stored["a"].title == "Post a"
        assert stored["a"].url == "https://example.com/a"
        assert stored["a"].summary == "About Post a"
        assert stored["a"].published == datetime(2024, 1, 1, 10, 0, tzinfo=UTC)

    def test_second_pass_on_unchanged_document_adds_nothing(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        fetcher.serve(FEED_URL, rss_document(items("a", "b")))
        reconciler = EntryReconciler(store, fetcher=fetcher)

        first = reconciler.reconcile(feed)
        second = reconciler.reconcile(feed)

        assert first == ReconcileResult(new_entries=2, total_entries=2)
        assert second == ReconcileResult(new_entries=0, total_entries=2)
        assert len(store.entries_for(feed.feed_id)) == 2

    def test_only_unseen_entries_are_inserted(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        reconciler = EntryReconciler(store, fetcher=fetcher)
        fetcher.serve(FEED_URL, rss_document(items("a", "b")))
        reconciler.reconcile(feed)

        fetcher.serve(FEED_URL, rss_document(items("a", "b", "c", "d", "e")))
        result = reconciler.reconcile(feed)

        assert result == ReconcileResult(new_entries=3, total_entries=5)
        assert len(store.entries_for(feed.feed_id)) == 5

    def test_existing_entries_are_never_updated(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        reconciler = EntryReconciler(store, fetcher=fetcher)
        fetcher.serve(FEED_URL, rss_document([("a", "https://example.com/a", "Old")]))
        reconciler.reconcile(feed)

        fetcher.serve(FEED_URL, rss_document([("a", "https://example.com/a", "New")]))
        reconciler.reconcile(feed)

        assert store.entries[(feed.feed_id, "a")].title == "Old"

    def test_feed_metadata_is_not_refreshed(self, store, fetcher):
        feed = store.create_feed("Original", FEED_URL)
        fetcher.serve(FEED_URL, rss_document(items("a"), title="Renamed"))

        EntryReconciler(store, fetcher=fetcher).reconcile(feed)

        assert store.feeds[FEED_URL].title == "Original"

    def test_fetch_failure_propagates(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        reconciler = EntryReconciler(store, fetcher=fetcher)

        with pytest.raises(FetchFailed):
            reconciler.reconcile(feed)
        assert "create_entry" not in store.calls

    def test_parse_failure_propagates(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        fetcher.serve(FEED_URL, b"<html><body>gone</body></html>", "text/html")
        reconciler = EntryReconciler(store, fetcher=fetcher)

        with pytest.raises(ParseFailed):
            reconciler.reconcile(feed)
        assert "create_entry" not in store.calls

    def test_entries_without_identifier_are_counted_not_stored(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        fetcher.serve(FEED_URL, rss_document([(None, None, "Bare"), ("a", None, "A")]))

        result = EntryReconciler(store, fetcher=fetcher).reconcile(feed)

        assert result == ReconcileResult(new_entries=1, total_entries=2)

    def test_skipped_entries_are_logged(self, store, fetcher, caplog):
        feed = store.create_feed("Example", FEED_URL)
        fetcher.serve(FEED_URL, rss_document([(None, None, "Bare")]))

        with caplog.at_level(logging.INFO, logger="feedreader.reconciler"):
            EntryReconciler(store, fetcher=fetcher).reconcile(feed)

        skipped = [r for r in caplog.records if "without identifier" in r.getMessage()]
        assert len(skipped) == 1
        assert skipped[0].levelno == logging.INFO
        assert skipped[0].feed_url == FEED_URL
        assert skipped[0].feed_id == feed.feed_id

    def test_concurrent_insert_is_treated_as_existing(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        fetcher.serve(FEED_URL, rss_document(items("a", "b")))
        # Another worker stores "a" between the existence check and the insert
        store.find_entry = Mock(return_value=None)
        store.create_entry(feed.feed_id, "a", "A", "", None, datetime.now(UTC), None)

        result = EntryReconciler(store, fetcher=fetcher).reconcile(feed)

        assert result == ReconcileResult(new_entries=1, total_entries=2)

    def test_feed_scope_allows_identifier_reuse_across_feeds(self, store, fetcher):
        first = store.create_feed("First", "https://one.example/feed")
        second = store.create_feed("Second", "https://two.example/feed")
        fetcher.serve(first.url, rss_document(items("1", "2")))
        fetcher.serve(second.url, rss_document(items("1", "2")))
        reconciler = EntryReconciler(store, fetcher=fetcher)

        reconciler.reconcile(first)
        result = reconciler.reconcile(second)

        assert result.new_entries == 2
        assert "find_entry_by_entry_id" not in store.calls

    def test_global_scope_suppresses_identifier_reuse_across_feeds(self, store, fetcher):
        first = store.create_feed("First", "https://one.example/feed")
        second = store.create_feed("Second", "https://two.example/feed")
        fetcher.serve(first.url, rss_document(items("1", "2")))
        fetcher.serve(second.url, rss_document(items("1", "2", "3")))
        reconciler = EntryReconciler(store, fetcher=fetcher, lookup_scope="global")

        reconciler.reconcile(first)
        result = reconciler.reconcile(second)

        assert result == ReconcileResult(new_entries=1, total_entries=3)
        assert "find_entry" not in store.calls

    def test_unknown_lookup_scope_rejected(self, store):
        with pytest.raises(ValueError):
            EntryReconciler(store, fetcher=Mock(), lookup_scope="everywhere")

    def test_fetch_entries_by_feed_id(self, store, fetcher):
        feed = store.create_feed("Example", FEED_URL)
        fetcher.serve(FEED_URL, rss_document(items("a")))

        result = EntryReconciler(store, fetcher=fetcher).fetch_entries(feed.feed_id)

        assert result == ReconcileResult(new_entries=1, total_entries=1)

    def test_fetch_entries_unknown_feed(self, store, fetcher):
        with pytest.raises(FeedNotFound):
            EntryReconciler(store, fetcher=fetcher).fetch_entries("missing")


class TestReconcileAllUnit:
    """Unit tests for EntryReconciler.reconcile_all."""

    def test_failures_do_not_stop_the_batch(self, store, fetcher):
        good = store.create_feed("Good", "https://good.example/feed")
        down = store.create_feed("Down", "https://down.example/feed")
        broken = store.create_feed("Broken", "https://broken.example/feed")
        late = store.create_feed("Late", "https://late.example/feed")
        fetcher.serve(good.url, rss_document(items("a", "b")))
        fetcher.serve(broken.url, b"not xml", "text/plain")
        fetcher.serve(late.url, rss_document(items("c")))
        reconciler = EntryReconciler(store, fetcher=fetcher)

        summary = reconciler.reconcile_all([good, down, broken, late])

        assert summary.feeds_processed == 4
        assert summary.succeeded == 2
        assert summary.failed == 2
        assert summary.total_entries == 3
        assert summary.new_entries == 3
        assert [f.feed_url for f in summary.failures] == [down.url, broken.url]
        assert fetcher.requested == [good.url, down.url, broken.url, late.url]

    def test_unexpected_errors_are_isolated(self, store, fetcher):
        first = store.create_feed("First", "https://one.example/feed")
        second = store.create_feed("Second", "https://two.example/feed")
        fetcher.serve(first.url, rss_document(items("a")))
        fetcher.serve(second.url, rss_document(items("b")))
        store.create_entry = Mock(side_effect=[RuntimeError("store offline"), None])

        summary = EntryReconciler(store, fetcher=fetcher).reconcile_all([first, second])

        assert summary.succeeded == 1
        assert summary.failures[0].feed_id == first.feed_id
        assert "store offline" in summary.failures[0].error

    def test_summary_serialization(self, store, fetcher):
        feed = store.create_feed("Down", "https://down.example/feed")

        summary = EntryReconciler(store, fetcher=fetcher).reconcile_all([feed])

        data = summary.to_dict()
        assert data["feeds_processed"] == 1
        assert data["failed"] == 1
        assert data["errors"][0]["feed_url"] == "https://down.example/feed"

    def test_empty_batch(self, store, fetcher):
        summary = EntryReconciler(store, fetcher=fetcher).reconcile_all([])

        assert summary.feeds_processed == 0
        assert summary.failures == []

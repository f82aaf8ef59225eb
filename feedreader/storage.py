"""DynamoDB persistence for feeds and entries."""

import uuid
from datetime import UTC, datetime

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from .config import StorageConfig
from .errors import DuplicateEntry, EntryNotFound
from .logging_config import create_execution_logger
from .models import Entry, Feed

FEED_ID_INDEX = "feed_id-index"
ENTRY_ID_INDEX = "entry_id-index"


class FeedStore:
    """Stores feeds and entries in two DynamoDB tables.

    The feeds table is keyed by ``url`` so a URL maps to at most one feed.
    The entries table is keyed by ``feed_id`` (partition) and ``entry_id``
    (sort), which enforces per-feed uniqueness of entry identifiers.
    """

    def __init__(
        self, config: StorageConfig | None = None, execution_id: str | None = None
    ):
        """Initialize the store.

        Args:
            config: Table names and AWS region
            execution_id: Execution ID for logging context
        """
        self.config = config or StorageConfig()
        self.logger = create_execution_logger("feed_store", execution_id)
        self.dynamodb = boto3.resource("dynamodb", region_name=self.config.region)
        self.feeds_table = self.dynamodb.Table(self.config.feeds_table)
        self.entries_table = self.dynamodb.Table(self.config.entries_table)

        self.logger.info(
            "FeedStore initialized",
            feeds_table=self.config.feeds_table,
            entries_table=self.config.entries_table,
            aws_region=self.config.region,
        )

    # Feeds

    def find_feed_by_url(self, url: str) -> Feed | None:
        response = self.feeds_table.get_item(Key={"url": url})
        item = response.get("Item")
        return _feed_from_item(item) if item else None

    def find_feed_by_id(self, feed_id: str) -> Feed | None:
        response = self.feeds_table.query(
            IndexName=FEED_ID_INDEX,
            KeyConditionExpression=Key("feed_id").eq(feed_id),
            Limit=1,
        )
        items = response.get("Items") or []
        return _feed_from_item(items[0]) if items else None

    def create_feed(self, title: str, url: str, icon_url: str | None = None) -> Feed:
        """Create a feed for a URL.

        If another writer stored the same URL first, the stored feed is
        returned instead.
        """
        now = datetime.now(UTC)
        feed = Feed(
            feed_id=uuid.uuid4().hex,
            title=title,
            url=url,
            icon_url=icon_url,
            created_at=now,
            updated_at=now,
        )
        try:
            self.feeds_table.put_item(
                Item=_feed_to_item(feed),
                ConditionExpression=Attr("url").not_exists(),
            )
        except ClientError as e:
            if not _is_conditional_check_failure(e):
                self.logger.error(
                    f"Error creating feed {url}: {e}", feed_url=url, error=str(e)
                )
                raise
            self.logger.info("Feed already stored", feed_url=url)
            existing = self.find_feed_by_url(url)
            if existing is None:
                raise
            return existing

        self.logger.info("Created feed", feed_id=feed.feed_id, feed_url=url)
        return feed

    def list_feeds(self) -> list[Feed]:
        """Return every stored feed, oldest first."""
        items = []
        kwargs = {}
        while True:
            response = self.feeds_table.scan(**kwargs)
            items.extend(response.get("Items") or [])
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key

        epoch = datetime.min.replace(tzinfo=UTC)
        feeds = [_feed_from_item(item) for item in items]
        return sorted(feeds, key=lambda f: (f.created_at or epoch, f.feed_id))

    # Entries

    def find_entry_by_entry_id(self, entry_id: str) -> Entry | None:
        """Find an entry with this identifier in any feed."""
        response = self.entries_table.query(
            IndexName=ENTRY_ID_INDEX,
            KeyConditionExpression=Key("entry_id").eq(entry_id),
            Limit=1,
        )
        items = response.get("Items") or []
        return _entry_from_item(items[0]) if items else None

    def find_entry(self, feed_id: str, entry_id: str) -> Entry | None:
        """Find an entry with this identifier in one feed."""
        response = self.entries_table.get_item(
            Key={"feed_id": feed_id, "entry_id": entry_id}
        )
        item = response.get("Item")
        return _entry_from_item(item) if item else None

    def get_entry(self, feed_id: str, entry_id: str) -> Entry:
        entry = self.find_entry(feed_id, entry_id)
        if entry is None:
            raise EntryNotFound(f"Entry {entry_id!r} not found in feed {feed_id}")
        return entry

    def create_entry(
        self,
        feed_id: str,
        entry_id: str,
        title: str,
        url: str,
        author: str | None,
        published: datetime,
        summary: str | None,
    ) -> Entry:
        """Insert an entry.

        Raises:
            DuplicateEntry: If the feed already holds this entry_id
        """
        entry = Entry(
            feed_id=feed_id,
            entry_id=entry_id,
            title=title,
            url=url,
            published=published,
            author=author,
            summary=summary,
            created_at=datetime.now(UTC),
        )
        try:
            self.entries_table.put_item(
                Item=_entry_to_item(entry),
                ConditionExpression=Attr("entry_id").not_exists(),
            )
        except ClientError as e:
            if _is_conditional_check_failure(e):
                raise DuplicateEntry(feed_id, entry_id) from e
            self.logger.error(
                f"Error storing entry {entry_id}: {e}",
                feed_id=feed_id,
                entry_id=entry_id,
                error=str(e),
            )
            raise

        self.logger.debug("Stored entry", feed_id=feed_id, entry_id=entry_id)
        return entry


def _is_conditional_check_failure(error: ClientError) -> bool:
    code = error.response.get("Error", {}).get("Code")
    return code == "ConditionalCheckFailedException"


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _feed_to_item(feed: Feed) -> dict:
    return {
        "url": feed.url,
        "feed_id": feed.feed_id,
        "title": feed.title,
        "icon_url": feed.icon_url,
        "created_at": _to_iso(feed.created_at),
        "updated_at": _to_iso(feed.updated_at),
    }


def _feed_from_item(item: dict) -> Feed:
    return Feed(
        feed_id=item["feed_id"],
        title=item.get("title") or "",
        url=item["url"],
        icon_url=item.get("icon_url"),
        created_at=_from_iso(item.get("created_at")),
        updated_at=_from_iso(item.get("updated_at")),
    )


def _entry_to_item(entry: Entry) -> dict:
    return {
        "feed_id": entry.feed_id,
        "entry_id": entry.entry_id,
        "title": entry.title,
        "url": entry.url,
        "author": entry.author,
        "published": _to_iso(entry.published),
        "summary": entry.summary,
        "created_at": _to_iso(entry.created_at),
    }


def _entry_from_item(item: dict) -> Entry:
    return Entry(
        feed_id=item["feed_id"],
        entry_id=item["entry_id"],
        title=item.get("title") or "",
        url=item.get("url") or "",
        published=_from_iso(item.get("published")),
        author=item.get("author"),
        summary=item.get("summary"),
        created_at=_from_iso(item.get("created_at")),
    )

"""Configuration management for the feed reader."""

import os
from dataclasses import dataclass

ENTRY_LOOKUP_SCOPES = ("feed", "global")


@dataclass
class FetchConfig:
    """Configuration for outbound HTTP fetches."""

    timeout: float = 10.0
    max_redirects: int = 5
    user_agent: str = "FeedReader/1.0 (+RSS/Atom feed reader)"


@dataclass
class StorageConfig:
    """Configuration for the DynamoDB tables."""

    feeds_table: str = "feedreader-feeds"
    entries_table: str = "feedreader-entries"
    region: str = "us-east-1"


class Config:
    """Main configuration manager."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.feeds_table = os.getenv("FEEDS_TABLE", "feedreader-feeds")
        self.entries_table = os.getenv("ENTRIES_TABLE", "feedreader-entries")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.fetch_timeout = _read_number("FETCH_TIMEOUT", 10.0, float)
        self.fetch_max_redirects = _read_number("FETCH_MAX_REDIRECTS", 5, int)
        self.fetch_user_agent = os.getenv(
            "FETCH_USER_AGENT", FetchConfig.user_agent
        )
        self.entry_lookup_scope = os.getenv("ENTRY_LOOKUP_SCOPE", "feed").lower()
        self.metrics_namespace = os.getenv("METRICS_NAMESPACE", "FeedReader")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        if self.entry_lookup_scope not in ENTRY_LOOKUP_SCOPES:
            raise ValueError(
                f"ENTRY_LOOKUP_SCOPE must be one of {ENTRY_LOOKUP_SCOPES}, "
                f"got {self.entry_lookup_scope!r}"
            )

    def get_fetch_config(self) -> FetchConfig:
        """Get HTTP fetch configuration."""
        return FetchConfig(
            timeout=self.fetch_timeout,
            max_redirects=self.fetch_max_redirects,
            user_agent=self.fetch_user_agent,
        )

    def get_storage_config(self) -> StorageConfig:
        """Get DynamoDB storage configuration."""
        return StorageConfig(
            feeds_table=self.feeds_table,
            entries_table=self.entries_table,
            region=self.aws_region,
        )


def _read_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value

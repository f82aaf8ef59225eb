"""Feed ingestion backend: feed discovery, parsing and entry reconciliation."""

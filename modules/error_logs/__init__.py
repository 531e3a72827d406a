"""Error report ingestion: queue, drain worker, cache-aside reads."""

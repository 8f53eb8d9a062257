"""Source ingestion into the staging store.

This package discovers JSON and JSONL sources, parses them into
records, applies file-level deduplication, and commits staging batches.
"""

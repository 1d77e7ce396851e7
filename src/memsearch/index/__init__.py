"""Indexing, storage and retrieval."""

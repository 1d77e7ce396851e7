"""Content-addressed embedding cache."""

from __future__ import annotations

import json
import sqlite3
import time
from typing import Dict, Iterable, List, Mapping, Sequence

from memsearch.embedding.base import parse_embedding
from memsearch.index.storage import EMBEDDING_CACHE_TABLE

LOOKUP_BATCH_SIZE = 400


class EmbeddingCache:
    """Maps ``(provider, model, provider_key, content hash)`` to a stored vector.

    Rows are only ever inserted or overwritten by an upsert on the full key;
    the key already encodes content identity, so entries never go stale.
    """

    def __init__(self, conn: sqlite3.Connection, *, table: str = EMBEDDING_CACHE_TABLE) -> None:
        self._conn = conn
        self.table = table

    def lookup(
        self,
        hashes: Iterable[str],
        *,
        provider: str,
        model: str,
        provider_key: str,
    ) -> Dict[str, List[float]]:
        """Return cached vectors for the hashes that have a non-empty entry."""
        unique = list(dict.fromkeys(h for h in hashes if h))
        found: Dict[str, List[float]] = {}

        for start in range(0, len(unique), LOOKUP_BATCH_SIZE):
            batch = unique[start : start + LOOKUP_BATCH_SIZE]
            placeholders = ", ".join("?" for _ in batch)
            rows = self._conn.execute(
                f"""
                SELECT hash, embedding FROM {self.table}
                WHERE provider = ? AND model = ? AND provider_key = ? AND hash IN ({placeholders})
                """,
                (provider, model, provider_key, *batch),
            ).fetchall()
            for row in rows:
                vector = parse_embedding(row[1])
                if vector:
                    found[row[0]] = vector
        return found

    def store(
        self,
        entries: Sequence[Mapping[str, object]],
        *,
        provider: str,
        model: str,
        provider_key: str,
    ) -> None:
        """Upsert ``{"hash": ..., "embedding": [...]}`` entries; last write wins."""
        if not entries:
            return
        now = int(time.time() * 1000)
        rows = []
        for entry in entries:
            vector = list(entry.get("embedding") or [])  # type: ignore[call-overload]
            rows.append(
                (provider, model, provider_key, entry["hash"], json.dumps(vector), len(vector), now)
            )
        try:
            self._conn.executemany(
                f"""
                INSERT INTO {self.table} (provider, model, provider_key, hash, embedding, dims, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(provider, model, provider_key, hash) DO UPDATE SET
                    embedding=excluded.embedding,
                    dims=excluded.dims,
                    updated_at=excluded.updated_at
                """,
                rows,
            )
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def count(self) -> int:
        row = self._conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()
        return int(row[0]) if row else 0

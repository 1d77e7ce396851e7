"""SQLite + FTS5 persistence for memory chunks."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence

from memsearch.models import IndexMeta, MemoryChunk, MemoryFileEntry

LOGGER = logging.getLogger(__name__)

META_KEY = "memory_index_meta_v1"
FTS_TABLE = "chunks_fts"
EMBEDDING_CACHE_TABLE = "embedding_cache"
SOURCE_MEMORY = "memory"


class SQLiteMemoryStore:
    """Persistence layer for memory files, chunks, sync metadata and cached vectors."""

    def __init__(self, db_path: Path, *, fts_enabled: bool = True) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self.fts_enabled = fts_enabled
        self.fts_available = False
        self.fts_error: str | None = None
        self._closed = False
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS files (
                    path TEXT PRIMARY KEY,
                    source TEXT NOT NULL DEFAULT 'memory',
                    hash TEXT NOT NULL,
                    mtime REAL NOT NULL,
                    size INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id TEXT PRIMARY KEY,
                    path TEXT NOT NULL,
                    source TEXT NOT NULL DEFAULT 'memory',
                    start_line INTEGER NOT NULL,
                    end_line INTEGER NOT NULL,
                    hash TEXT NOT NULL,
                    model TEXT NOT NULL,
                    text TEXT NOT NULL,
                    embedding TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_chunks_path ON chunks(path)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_chunks_source ON chunks(source)")
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {EMBEDDING_CACHE_TABLE} (
                    provider TEXT NOT NULL,
                    model TEXT NOT NULL,
                    provider_key TEXT NOT NULL,
                    hash TEXT NOT NULL,
                    embedding TEXT NOT NULL,
                    dims INTEGER,
                    updated_at INTEGER NOT NULL,
                    PRIMARY KEY (provider, model, provider_key, hash)
                )
                """
            )
            conn.execute(
                f"""CREATE INDEX IF NOT EXISTS idx_embedding_cache_updated_at
                    ON {EMBEDDING_CACHE_TABLE}(updated_at)
                """
            )

        if not self.fts_enabled:
            return
        try:
            self._create_fts_table()
            self.fts_available = True
        except sqlite3.Error as exc:
            self.fts_available = False
            self.fts_error = str(exc)
            LOGGER.warning("FTS unavailable: %s", exc)

    def _create_fts_table(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                f"""
                CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
                    text,
                    id UNINDEXED,
                    path UNINDEXED,
                    source UNINDEXED,
                    model UNINDEXED,
                    start_line UNINDEXED,
                    end_line UNINDEXED
                )
                """
            )

    @property
    def keyword_search_available(self) -> bool:
        return self.fts_enabled and self.fts_available

    # -- sync metadata -------------------------------------------------

    def read_meta(self) -> IndexMeta | None:
        row = self._conn.execute("SELECT value FROM meta WHERE key = ?", (META_KEY,)).fetchone()
        if row is None or not row["value"]:
            return None
        try:
            return IndexMeta.from_dict(json.loads(row["value"]))
        except (ValueError, TypeError, KeyError) as exc:
            LOGGER.debug("Ignoring unreadable index metadata: %s", exc)
            return None

    def write_meta(self, meta: IndexMeta) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO meta (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                (META_KEY, json.dumps(meta.to_dict())),
            )

    # -- files and chunks ----------------------------------------------

    def reset(self) -> None:
        """Delete every file, chunk and full-text row. The embedding cache is kept."""
        with self.transaction() as conn:
            conn.execute("DELETE FROM files")
            conn.execute("DELETE FROM chunks")
            if self.keyword_search_available:
                conn.execute(f"DELETE FROM {FTS_TABLE}")

    def get_file_hash(self, path: str, source: str = SOURCE_MEMORY) -> str | None:
        row = self._conn.execute(
            "SELECT hash FROM files WHERE path = ? AND source = ?", (path, source)
        ).fetchone()
        return row["hash"] if row else None

    def list_file_paths(self, source: str = SOURCE_MEMORY) -> List[str]:
        rows = self._conn.execute("SELECT path FROM files WHERE source = ?", (source,))
        return [row["path"] for row in rows]

    def replace_file(
        self,
        entry: MemoryFileEntry,
        chunks: Sequence[MemoryChunk],
        embeddings: Sequence[Sequence[float]],
        *,
        model: str,
        chunk_ids: Sequence[str],
        source: str = SOURCE_MEMORY,
    ) -> None:
        """Atomically swap all chunk and full-text rows of one file and upsert its record."""
        if not (len(chunks) == len(embeddings) == len(chunk_ids)):
            raise ValueError("Embeddings and chunks length mismatch")

        now = int(time.time() * 1000)
        with self.transaction() as conn:
            if self.keyword_search_available:
                conn.execute(
                    f"DELETE FROM {FTS_TABLE} WHERE path = ? AND source = ? AND model = ?",
                    (entry.path, source, model),
                )
            conn.execute("DELETE FROM chunks WHERE path = ? AND source = ?", (entry.path, source))

            for chunk, vector, chunk_id in zip(chunks, embeddings, chunk_ids):
                conn.execute(
                    """
                    INSERT INTO chunks (id, path, source, start_line, end_line, hash, model, text, embedding, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        hash=excluded.hash,
                        model=excluded.model,
                        text=excluded.text,
                        embedding=excluded.embedding,
                        updated_at=excluded.updated_at
                    """,
                    (
                        chunk_id,
                        entry.path,
                        source,
                        chunk.start_line,
                        chunk.end_line,
                        chunk.hash,
                        model,
                        chunk.text,
                        json.dumps(list(vector)),
                        now,
                    ),
                )
                if self.keyword_search_available:
                    conn.execute(
                        f"""
                        INSERT INTO {FTS_TABLE} (text, id, path, source, model, start_line, end_line)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (chunk.text, chunk_id, entry.path, source, model, chunk.start_line, chunk.end_line),
                    )

            conn.execute(
                """
                INSERT INTO files (path, source, hash, mtime, size) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    source=excluded.source,
                    hash=excluded.hash,
                    mtime=excluded.mtime,
                    size=excluded.size
                """,
                (entry.path, source, entry.hash, entry.mtime, entry.size),
            )

    def remove_file(self, path: str, source: str = SOURCE_MEMORY) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM files WHERE path = ? AND source = ?", (path, source))
            conn.execute("DELETE FROM chunks WHERE path = ? AND source = ?", (path, source))
            if self.keyword_search_available:
                conn.execute(
                    f"DELETE FROM {FTS_TABLE} WHERE path = ? AND source = ?", (path, source)
                )

    def list_chunks(self, model: str, source: str = SOURCE_MEMORY) -> List[sqlite3.Row]:
        return self._conn.execute(
            """
            SELECT id, path, start_line, end_line, text, embedding, source
            FROM chunks
            WHERE model = ? AND source = ?
            ORDER BY path, start_line, id
            """,
            (model, source),
        ).fetchall()

    def match_chunks(
        self, fts_query: str, *, model: str, limit: int, source: str = SOURCE_MEMORY
    ) -> List[sqlite3.Row]:
        """Full-text match ordered by BM25 rank (lower is better)."""
        return self._conn.execute(
            f"""
            SELECT id, path, source, start_line, end_line, text,
                   bm25({FTS_TABLE}) AS rank
            FROM {FTS_TABLE}
            WHERE {FTS_TABLE} MATCH ? AND model = ? AND source = ?
            ORDER BY rank ASC
            LIMIT ?
            """,
            (fts_query, model, source, limit),
        ).fetchall()

    def count_files(self, source: str = SOURCE_MEMORY) -> int:
        row = self._conn.execute("SELECT COUNT(*) AS c FROM files WHERE source = ?", (source,)).fetchone()
        return int(row["c"]) if row else 0

    def count_chunks(self, source: str = SOURCE_MEMORY) -> int:
        row = self._conn.execute("SELECT COUNT(*) AS c FROM chunks WHERE source = ?", (source,)).fetchone()
        return int(row["c"]) if row else 0

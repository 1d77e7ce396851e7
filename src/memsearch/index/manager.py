"""Memory index orchestration: sync files into the store and answer hybrid queries."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Sequence

from memsearch.config import MemoryConfig
from memsearch.embedding.base import EmbeddingProvider, is_zero_vector
from memsearch.embedding.factory import EmbeddingProviderResult, create_embedding_provider
from memsearch.errors import IndexClosedError
from memsearch.index.cache import EmbeddingCache
from memsearch.index.hybrid import merge_hybrid_results
from memsearch.index.search import search_keyword, search_vector
from memsearch.index.storage import SOURCE_MEMORY, SQLiteMemoryStore
from memsearch.models import (
    IndexMeta,
    IndexStatus,
    MemoryChunk,
    MemoryFileEntry,
    MemorySearchResult,
    SearchCandidate,
    SyncStats,
)
from memsearch.utils.files import build_file_entry, list_memory_files, resolve_memory_path
from memsearch.utils.text import chunk_markdown, estimate_tokens, hash_text

LOGGER = logging.getLogger(__name__)

EMBEDDING_BATCH_MAX_TOKENS = 8000
MAX_CANDIDATES = 200
CANDIDATE_MULTIPLIER = 3


def compute_provider_key(provider: EmbeddingProvider) -> str:
    return hash_text(json.dumps({"provider": provider.id, "model": provider.model}))


def chunk_id(path: str, chunk: MemoryChunk, model: str) -> str:
    return hash_text(
        f"{SOURCE_MEMORY}:{path}:{chunk.start_line}:{chunk.end_line}:{chunk.hash}:{model}"
    )


def build_embedding_batches(
    chunks: Sequence[MemoryChunk], *, max_tokens: int = EMBEDDING_BATCH_MAX_TOKENS
) -> List[List[MemoryChunk]]:
    """Group chunks so each provider call stays under ``max_tokens``.

    A chunk larger than the budget on its own becomes a single-item batch.
    """
    batches: List[List[MemoryChunk]] = []
    current: List[MemoryChunk] = []
    current_tokens = 0

    for chunk in chunks:
        estimate = estimate_tokens(chunk.text)
        if current and current_tokens + estimate > max_tokens:
            batches.append(current)
            current = []
            current_tokens = 0
        if not current and estimate > max_tokens:
            batches.append([chunk])
            continue
        current.append(chunk)
        current_tokens += estimate

    if current:
        batches.append(current)
    return batches


class MemoryIndex:
    """Hybrid search index over a workspace's MEMORY.md and memory/ notes.

    Calls on one instance are serialized with an internal lock; the SQLite
    connection is opened once and closed exactly once by :meth:`close`.
    """

    def __init__(
        self,
        config: MemoryConfig,
        provider: EmbeddingProvider | EmbeddingProviderResult,
        *,
        logger: logging.Logger | None = None,
        fts_enabled: bool = True,
    ) -> None:
        self.config = config
        self.log = logger or LOGGER
        if isinstance(provider, EmbeddingProviderResult):
            self.provider = provider.provider
            self.requested_provider = provider.requested_provider
            self.fallback_from = provider.fallback_from
            self.fallback_reason = provider.fallback_reason
        else:
            self.provider = provider
            self.requested_provider = config.embedding_provider
            self.fallback_from = None
            self.fallback_reason = None
        self.provider_key = compute_provider_key(self.provider)
        self.db_path = config.resolve_db_path()
        self.store = SQLiteMemoryStore(self.db_path, fts_enabled=fts_enabled)
        self.cache = EmbeddingCache(self.store.connection)
        self._lock = threading.RLock()

    @classmethod
    def create(cls, config: MemoryConfig, *, logger: logging.Logger | None = None) -> "MemoryIndex":
        """Resolve the embedding provider from ``config`` and open the index."""
        return cls(config, create_embedding_provider(config), logger=logger)

    def __enter__(self) -> "MemoryIndex":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self.store.closed:
            raise IndexClosedError("Memory index is closed")

    def _current_meta(self) -> IndexMeta:
        return IndexMeta(
            model=self.provider.model,
            provider=self.provider.id,
            provider_key=self.provider_key,
            chunk_tokens=self.config.chunk_tokens,
            chunk_overlap=self.config.chunk_overlap,
        )

    # -- sync ----------------------------------------------------------

    def sync(self, *, force: bool = False) -> SyncStats:
        """Bring the index in line with the memory files on disk.

        Any change of provider, model or chunking settings since the last
        successful sync triggers a full rebuild. Metadata is only written
        once every file has been processed; an error leaves it untouched.
        """
        with self._lock:
            self._ensure_open()
            current = self._current_meta()
            stored = self.store.read_meta()
            needs_full_reindex = force or stored is None or stored != current
            if needs_full_reindex:
                self.log.info(
                    "memory sync: full reindex (force=%s, previous=%s)",
                    force,
                    stored.to_dict() if stored else None,
                )
                self.store.reset()

            stats = SyncStats(full_reindex=needs_full_reindex)
            self._sync_memory_files(stats, needs_full_reindex=needs_full_reindex)
            self.store.write_meta(current)
            self.log.info(
                "memory sync: %d indexed, %d unchanged, %d removed (%d embedded, %d cached)",
                stats.indexed,
                stats.skipped,
                stats.removed,
                stats.embedded,
                stats.cached,
            )
            return stats

    def _sync_memory_files(self, stats: SyncStats, *, needs_full_reindex: bool) -> None:
        workspace = self.config.workspace_dir
        entries = [build_file_entry(path, workspace) for path in list_memory_files(workspace)]
        self.log.debug(
            "memory sync: indexing files (files=%d, full=%s)", len(entries), needs_full_reindex
        )

        previous_paths = set(self.store.list_file_paths())
        active_paths = {entry.path for entry in entries}

        for entry in entries:
            if not needs_full_reindex and self.store.get_file_hash(entry.path) == entry.hash:
                stats.skipped += 1
                continue
            self._index_file(entry, stats)
            stats.indexed += 1

        for stale in sorted(previous_paths - active_paths):
            self.log.debug("memory sync: removing stale file %s", stale)
            self.store.remove_file(stale)
            stats.removed += 1

    def _index_file(self, entry: MemoryFileEntry, stats: SyncStats) -> None:
        content = entry.abs_path.read_text(encoding="utf-8", errors="replace")
        chunks = [
            chunk
            for chunk in chunk_markdown(
                content, tokens=self.config.chunk_tokens, overlap=self.config.chunk_overlap
            )
            if chunk.text.strip()
        ]
        embeddings = self._embed_chunks(chunks, stats)
        model = self.provider.model
        self.store.replace_file(
            entry,
            chunks,
            embeddings,
            model=model,
            chunk_ids=[chunk_id(entry.path, chunk, model) for chunk in chunks],
        )

    def _embed_chunks(self, chunks: Sequence[MemoryChunk], stats: SyncStats) -> List[List[float]]:
        """Return one vector per chunk, reusing cached vectors by content hash."""
        if not chunks:
            return []

        identity = {
            "provider": self.provider.id,
            "model": self.provider.model,
            "provider_key": self.provider_key,
        }
        cached = self.cache.lookup((chunk.hash for chunk in chunks), **identity)
        embeddings: List[List[float]] = [[] for _ in chunks]
        missing: List[int] = []

        for index, chunk in enumerate(chunks):
            hit = cached.get(chunk.hash)
            if hit:
                embeddings[index] = hit
                stats.cached += 1
            else:
                missing.append(index)

        if not missing:
            return embeddings

        to_cache: List[Dict[str, Any]] = []
        cursor = 0
        for batch in build_embedding_batches([chunks[i] for i in missing]):
            vectors = self.provider.embed_batch([chunk.text for chunk in batch])
            for offset, chunk in enumerate(batch):
                vector = list(vectors[offset]) if offset < len(vectors) else []
                embeddings[missing[cursor + offset]] = vector
                to_cache.append({"hash": chunk.hash, "embedding": vector})
            cursor += len(batch)
            stats.embedded += len(batch)

        self.cache.store(to_cache, **identity)
        return embeddings

    # -- search --------------------------------------------------------

    def search(
        self,
        query: str,
        *,
        max_results: int | None = None,
        min_score: float | None = None,
    ) -> List[MemorySearchResult]:
        cleaned = query.strip()
        if not cleaned:
            return []

        with self._lock:
            self._ensure_open()
            min_score = self.config.min_score if min_score is None else min_score
            max_results = self.config.max_results if max_results is None else max_results
            candidates = min(MAX_CANDIDATES, max(1, int(max_results * CANDIDATE_MULTIPLIER)))
            model = self.provider.model

            keyword_available = self.store.keyword_search_available
            keyword_results = (
                search_keyword(self.store, cleaned, model=model, limit=candidates)
                if keyword_available
                else []
            )

            query_vec = self.provider.embed_query(cleaned)
            if is_zero_vector(query_vec):
                self.log.debug("memory search: empty query vector, keyword-only ranking")
                return self._finalize(keyword_results, min_score, max_results)

            vector_results = search_vector(self.store, query_vec, model=model, limit=candidates)
            if not keyword_available:
                return self._finalize(vector_results, min_score, max_results)

            merged = merge_hybrid_results(
                vector_results,
                keyword_results,
                vector_weight=self.config.vector_weight,
                text_weight=self.config.text_weight,
            )
            return self._finalize(merged, min_score, max_results)

    @staticmethod
    def _finalize(
        ranked: Sequence[SearchCandidate], min_score: float, max_results: int
    ) -> List[MemorySearchResult]:
        results = [
            MemorySearchResult(
                path=entry.path,
                start_line=entry.start_line,
                end_line=entry.end_line,
                score=entry.score,
                snippet=entry.snippet,
            )
            for entry in ranked
            if entry.score >= min_score
        ]
        return results[: max(0, max_results)]

    # -- misc ----------------------------------------------------------

    def read_file(
        self, path: str, *, from_line: int | None = None, lines: int | None = None
    ) -> Dict[str, str]:
        """Read a memory file, or a 1-based window of ``lines`` lines from ``from_line``."""
        rel_path, abs_path = resolve_memory_path(self.config.workspace_dir, path)
        with self._lock:
            self._ensure_open()
            content = abs_path.read_text(encoding="utf-8", errors="replace")
        if not from_line and not lines:
            return {"text": content, "path": rel_path}

        all_lines = content.split("\n")
        start = max(1, from_line or 1)
        count = max(1, lines or len(all_lines))
        window = all_lines[start - 1 : start - 1 + count]
        return {"text": "\n".join(window), "path": rel_path}

    def status(self) -> IndexStatus:
        with self._lock:
            self._ensure_open()
            fts: Dict[str, Any] = {
                "enabled": self.store.fts_enabled,
                "available": self.store.fts_available,
            }
            if self.store.fts_error:
                fts["error"] = self.store.fts_error
            fallback = None
            if self.fallback_reason:
                fallback = {"from": self.fallback_from or "local", "reason": self.fallback_reason}
            return IndexStatus(
                files=self.store.count_files(),
                chunks=self.store.count_chunks(),
                workspace_dir=Path(self.config.workspace_dir),
                db_path=self.db_path,
                provider=self.provider.id,
                model=self.provider.model,
                fts=fts,
                fallback=fallback,
            )

    def close(self) -> None:
        with self._lock:
            self.store.close()

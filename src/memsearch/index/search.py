"""Vector and keyword scoring over stored chunks."""

from __future__ import annotations

import math
import re
from typing import List, Sequence

import numpy as np

from memsearch.embedding.base import parse_embedding
from memsearch.index.storage import SQLiteMemoryStore
from memsearch.models import SearchCandidate
from memsearch.utils.text import truncate_snippet

SNIPPET_MAX_CHARS = 700

_TOKEN_RE = re.compile(r"\w+")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity over the shared prefix of two vectors.

    Empty or zero-magnitude inputs yield 0.0.
    """
    if len(a) == 0 or len(b) == 0:
        return 0.0
    size = min(len(a), len(b))
    left = np.asarray(a[:size], dtype="float64")
    right = np.asarray(b[:size], dtype="float64")
    norm = float(np.linalg.norm(left) * np.linalg.norm(right))
    if norm == 0.0:
        return 0.0
    return float(np.dot(left, right) / norm)


def rank_by_similarity(
    query_vec: Sequence[float],
    candidates: Sequence[SearchCandidate],
    vectors: Sequence[Sequence[float]],
    *,
    limit: int,
) -> List[SearchCandidate]:
    """Score candidates against the query and keep the ``limit`` best.

    Candidates without a usable vector are dropped rather than scored 0.
    Ties keep their input order.
    """
    if limit <= 0 or len(query_vec) == 0:
        return []
    query = np.asarray(query_vec, dtype="float64")
    if not np.any(query):
        return []

    scored: List[SearchCandidate] = []
    for candidate, vector in zip(candidates, vectors):
        if len(vector) == 0 or not any(vector):
            continue
        score = cosine_similarity(query, vector)
        if not math.isfinite(score):
            continue
        candidate.score = score
        candidate.vector_score = score
        scored.append(candidate)

    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[:limit]


def search_vector(
    store: SQLiteMemoryStore,
    query_vec: Sequence[float],
    *,
    model: str,
    limit: int,
    snippet_max_chars: int = SNIPPET_MAX_CHARS,
) -> List[SearchCandidate]:
    """Brute-force cosine search over every chunk embedded with ``model``."""
    if len(query_vec) == 0 or limit <= 0:
        return []

    rows = store.list_chunks(model)
    candidates = [
        SearchCandidate(
            id=row["id"],
            path=row["path"],
            start_line=row["start_line"],
            end_line=row["end_line"],
            source=row["source"],
            snippet=truncate_snippet(row["text"], snippet_max_chars),
        )
        for row in rows
    ]
    vectors = [parse_embedding(row["embedding"]) for row in rows]
    return rank_by_similarity(query_vec, candidates, vectors, limit=limit)


def build_fts_query(raw: str) -> str | None:
    """Quote each word token and AND-join them; None when there are no tokens."""
    tokens = _TOKEN_RE.findall(raw)
    if not tokens:
        return None
    return " AND ".join(f'"{token}"' for token in tokens)


def bm25_rank_to_score(rank: float) -> float:
    """Map a BM25 rank (lower is better) onto ``(0, 1]``, higher is better."""
    normalized = max(0.0, rank) if math.isfinite(rank) else 999.0
    return 1.0 / (1.0 + normalized)


def search_keyword(
    store: SQLiteMemoryStore,
    query: str,
    *,
    model: str,
    limit: int,
    snippet_max_chars: int = SNIPPET_MAX_CHARS,
) -> List[SearchCandidate]:
    if limit <= 0 or not store.keyword_search_available:
        return []
    fts_query = build_fts_query(query)
    if not fts_query:
        return []

    results: List[SearchCandidate] = []
    for row in store.match_chunks(fts_query, model=model, limit=limit):
        text_score = bm25_rank_to_score(float(row["rank"]))
        results.append(
            SearchCandidate(
                id=row["id"],
                path=row["path"],
                start_line=int(row["start_line"]),
                end_line=int(row["end_line"]),
                source=row["source"],
                snippet=truncate_snippet(row["text"], snippet_max_chars),
                score=text_score,
                text_score=text_score,
            )
        )
    return results

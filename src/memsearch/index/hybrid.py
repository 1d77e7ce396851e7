"""Weighted fusion of vector and keyword result lists."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from memsearch.models import SearchCandidate

LOGGER = logging.getLogger(__name__)


def merge_hybrid_results(
    vector: Sequence[SearchCandidate],
    keyword: Sequence[SearchCandidate],
    *,
    vector_weight: float,
    text_weight: float,
) -> List[SearchCandidate]:
    """Union both lists by chunk id and rank by weighted score.

    A side that did not find a candidate contributes zero; weights are used
    as given, without renormalisation. On overlap the keyword snippet wins.
    The result is sorted by score, highest first, and is neither thresholded
    nor truncated.
    """
    by_id: Dict[str, SearchCandidate] = {}

    for item in vector:
        by_id[item.id] = SearchCandidate(
            id=item.id,
            path=item.path,
            start_line=item.start_line,
            end_line=item.end_line,
            source=item.source,
            snippet=item.snippet,
            vector_score=item.vector_score if item.vector_score is not None else item.score,
            text_score=0.0,
        )

    for item in keyword:
        text_score = item.text_score if item.text_score is not None else item.score
        existing = by_id.get(item.id)
        if existing is None:
            by_id[item.id] = SearchCandidate(
                id=item.id,
                path=item.path,
                start_line=item.start_line,
                end_line=item.end_line,
                source=item.source,
                snippet=item.snippet,
                vector_score=0.0,
                text_score=text_score,
            )
            continue
        if (existing.path, existing.start_line, existing.end_line) != (
            item.path,
            item.start_line,
            item.end_line,
        ):
            LOGGER.warning(
                "Chunk %s has inconsistent metadata: %s:%d-%d vs %s:%d-%d",
                item.id,
                existing.path,
                existing.start_line,
                existing.end_line,
                item.path,
                item.start_line,
                item.end_line,
            )
        existing.text_score = text_score
        if item.snippet:
            existing.snippet = item.snippet

    merged = list(by_id.values())
    for entry in merged:
        entry.score = vector_weight * (entry.vector_score or 0.0) + text_weight * (
            entry.text_score or 0.0
        )
    merged.sort(key=lambda entry: entry.score, reverse=True)
    return merged

"""Embedding provider interface and vector helpers."""

from __future__ import annotations

import json
import math
from typing import List, Protocol, Sequence, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Capability interface implemented by every embedding backend.

    ``id`` and ``model`` identify the embedding space and are used as
    cache and index metadata keys.
    """

    id: str
    model: str

    def embed_query(self, text: str) -> List[float]:
        ...

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Return one vector per input text, in input order."""
        ...


def parse_embedding(raw: str | None) -> List[float]:
    """Decode a stored JSON vector; anything malformed decodes to ``[]``."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(value, list):
        return []
    vector: List[float] = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            return []
        if not math.isfinite(item):
            return []
        vector.append(float(item))
    return vector


def is_zero_vector(vector: Sequence[float]) -> bool:
    return not any(value != 0 for value in vector)

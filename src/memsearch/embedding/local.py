"""Local embedding provider backed by sentence-transformers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from memsearch.config import DEFAULT_LOCAL_MODEL

logger = logging.getLogger(__name__)


def detect_device() -> str | None:
    """Pick the best torch device available.

    Returns:
        "cuda" for NVIDIA GPUs, "mps" for Apple Silicon, or None to let
        sentence-transformers choose the CPU.
    """
    try:
        import torch

        if torch.cuda.is_available():
            logger.debug(f"CUDA GPU detected: {torch.cuda.get_device_name(0)}")
            return "cuda"
        if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            logger.debug("Apple MPS GPU detected")
            return "mps"
        logger.debug("No GPU detected, will use CPU")
        return None
    except ImportError:
        logger.debug("PyTorch not available for GPU detection")
        return None


@dataclass(slots=True)
class LocalEmbeddingConfig:
    model_name: str = DEFAULT_LOCAL_MODEL
    cache_dir: Path | None = None
    batch_size: int = 16
    normalize: bool = True
    device: str | None = None


class LocalEmbeddingProvider:
    """Thin wrapper around `SentenceTransformer` for query and chunk embeddings."""

    id = "local"

    def __init__(self, config: LocalEmbeddingConfig | None = None) -> None:
        self.config = config or LocalEmbeddingConfig()
        if self.config.device is None:
            self.config.device = detect_device()
        self.model = self.config.model_name
        self._model = SentenceTransformer(
            self.config.model_name,
            device=self.config.device,
            cache_folder=str(self.config.cache_dir) if self.config.cache_dir else None,
        )
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            f"Loaded local embedding model {self.model} "
            f"(dimension: {self.dimension}, device: {self.config.device or 'cpu'})"
        )

    def _encode(self, texts: Sequence[str]) -> np.ndarray:
        embeddings = self._model.encode(
            list(texts),
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return np.asarray(embeddings, dtype="float32")

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        return [vector.tolist() for vector in self._encode(texts)]

    def embed_query(self, text: str) -> List[float]:
        return self._encode([text])[0].tolist()

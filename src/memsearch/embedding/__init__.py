"""Embedding providers."""

from memsearch.embedding.base import EmbeddingProvider, is_zero_vector, parse_embedding
from memsearch.embedding.factory import EmbeddingProviderResult, create_embedding_provider

__all__ = [
    "EmbeddingProvider",
    "EmbeddingProviderResult",
    "create_embedding_provider",
    "is_zero_vector",
    "parse_embedding",
]

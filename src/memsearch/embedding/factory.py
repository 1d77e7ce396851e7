"""Embedding provider selection with local-first fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from memsearch.config import MemoryConfig
from memsearch.embedding.base import EmbeddingProvider
from memsearch.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmbeddingProviderResult:
    provider: EmbeddingProvider
    requested_provider: str
    fallback_from: str | None = None
    fallback_reason: str | None = None


def _create_local_provider(config: MemoryConfig) -> EmbeddingProvider:
    try:
        from memsearch.embedding.local import LocalEmbeddingConfig, LocalEmbeddingProvider
    except ImportError as exc:
        raise ConfigurationError(
            "sentence-transformers is not available. "
            f"Install it with \"python -m pip install sentence-transformers\". ({exc})"
        ) from exc
    return LocalEmbeddingProvider(
        LocalEmbeddingConfig(model_name=config.local_model, cache_dir=config.model_cache_dir)
    )


def _create_openai_provider(config: MemoryConfig) -> EmbeddingProvider:
    from memsearch.embedding.openai import OpenAIEmbeddingProvider

    if not config.openai_api_key:
        raise ConfigurationError("OpenAI API key required for openai embedding provider")
    return OpenAIEmbeddingProvider(
        config.openai_api_key,
        model=config.openai_model,
        base_url=config.openai_base_url,
    )


def create_embedding_provider(config: MemoryConfig) -> EmbeddingProviderResult:
    """Construct the configured provider.

    ``auto`` tries the local model first and falls back to OpenAI when an API
    key is configured, recording why the fallback happened.
    """
    requested = config.embedding_provider

    if requested == "local":
        return EmbeddingProviderResult(_create_local_provider(config), requested)
    if requested == "openai":
        return EmbeddingProviderResult(_create_openai_provider(config), requested)

    try:
        return EmbeddingProviderResult(_create_local_provider(config), "auto")
    except Exception as local_exc:
        reason = str(local_exc)
        logger.warning(f"Local embeddings unavailable: {reason}")

        if not config.openai_api_key:
            raise ConfigurationError(
                f"Local embeddings unavailable: {reason}\n"
                "To use local embeddings, install sentence-transformers.\n"
                "Alternatively, provide an OpenAI API key for remote embeddings."
            ) from local_exc

        try:
            provider = _create_openai_provider(config)
        except Exception as openai_exc:
            raise ConfigurationError(
                f"Local embeddings failed: {reason}\nOpenAI fallback failed: {openai_exc}"
            ) from openai_exc
        return EmbeddingProviderResult(
            provider, "auto", fallback_from="local", fallback_reason=reason
        )

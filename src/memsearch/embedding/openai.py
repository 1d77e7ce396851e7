"""Remote embedding provider speaking the OpenAI embeddings API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import requests

from memsearch.config import DEFAULT_OPENAI_BASE_URL, DEFAULT_OPENAI_MODEL
from memsearch.errors import ConfigurationError, EmbeddingProviderError

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    id = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        if not api_key:
            raise ConfigurationError("OpenAI API key is required")
        self.model = (model or "").strip() or DEFAULT_OPENAI_MODEL
        self.base_url = ((base_url or "").strip() or DEFAULT_OPENAI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    @property
    def url(self) -> str:
        return f"{self.base_url}/embeddings"

    def _embed(self, inputs: Sequence[str]) -> List[List[float]]:
        if not inputs:
            return []
        payload = {"model": self.model, "input": list(inputs)}
        try:
            response = requests.post(self.url, headers=self.headers, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise EmbeddingProviderError(f"OpenAI embeddings request failed: {exc}") from exc

        if not response.ok:
            raise EmbeddingProviderError(
                f"OpenAI embeddings failed: {response.status_code} {response.text}"
            )

        data: List[Dict[str, Any]] = response.json().get("data") or []
        logger.debug("openai embeddings: %d inputs, %d vectors", len(inputs), len(data))
        return [list(entry.get("embedding") or []) for entry in data]

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return self._embed(texts)

    def embed_query(self, text: str) -> List[float]:
        vectors = self._embed([text])
        return vectors[0] if vectors else []

"""Shared fixtures for memsearch tests."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import List, Sequence

import numpy as np
import pytest

from memsearch.config import MemoryConfig
from memsearch.errors import EmbeddingProviderError
from memsearch.index.manager import MemoryIndex

MEMORY_MD = """# Authentication

Use JWT tokens for user authentication.
Tokens expire after 24 hours.
Store refresh tokens securely.

# Database

PostgreSQL is the primary database.
Redis is used for caching session data.
Use connection pooling for efficiency.

# API Design

REST endpoints follow standard conventions.
Use proper HTTP status codes.
Always validate input data.
"""

DEPLOYMENT_MD = """# Deployment

Use Docker containers for deployment.
Kubernetes manages orchestration.
CI/CD pipeline runs on every push.
"""


class MockEmbeddingProvider:
    """Deterministic provider: each text maps to a unit vector seeded by its hash."""

    def __init__(self, dims: int = 64, *, model: str = "mock-model", provider_id: str = "mock") -> None:
        self.id = provider_id
        self.model = model
        self.dims = dims
        self.batch_calls: List[List[str]] = []
        self.query_calls: List[str] = []
        self.fail = False
        self.zero_queries = False

    def _vector(self, text: str) -> List[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:4], "big")
        vec = np.random.RandomState(seed).uniform(-1.0, 1.0, self.dims)
        return (vec / np.linalg.norm(vec)).tolist()

    def embed_query(self, text: str) -> List[float]:
        self.query_calls.append(text)
        if self.fail:
            raise EmbeddingProviderError("mock provider offline")
        if self.zero_queries:
            return [0.0] * self.dims
        return self._vector(text)

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.batch_calls.append(list(texts))
        if self.fail:
            raise EmbeddingProviderError("mock provider offline")
        return [self._vector(text) for text in texts]


@pytest.fixture
def mock_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace with MEMORY.md and memory/deployment.md."""
    root = tmp_path / "workspace"
    root.mkdir()
    (root / "MEMORY.md").write_text(MEMORY_MD, encoding="utf-8")
    (root / "memory").mkdir()
    (root / "memory" / "deployment.md").write_text(DEPLOYMENT_MD, encoding="utf-8")
    return root


@pytest.fixture
def config(workspace: Path) -> MemoryConfig:
    return MemoryConfig(workspace_dir=workspace, embedding_provider="local")


@pytest.fixture
def memory_index(config: MemoryConfig, mock_provider: MockEmbeddingProvider):
    index = MemoryIndex(config, mock_provider)
    yield index
    index.close()

"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from memsearch.errors import ConfigurationError

ProviderChoice = Literal["local", "openai", "auto"]

PROVIDER_CHOICES = ("local", "openai", "auto")
DEFAULT_DB_NAME = ".memory.sqlite"
DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_OPENAI_MODEL = "text-embedding-3-small"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"


def _get_default_cache_dir() -> Path:
    return Path.home() / ".cache" / "memory-search"


@dataclass(slots=True)
class MemoryConfig:
    workspace_dir: Path
    db_path: Path | None = None
    embedding_provider: ProviderChoice = "auto"
    openai_api_key: str | None = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    local_model: str = DEFAULT_LOCAL_MODEL
    model_cache_dir: Path | None = None
    chunk_tokens: int = 400
    chunk_overlap: int = 80
    max_results: int = 6
    min_score: float = 0.35
    vector_weight: float = 0.7
    text_weight: float = 0.3

    def __post_init__(self) -> None:
        self.workspace_dir = Path(self.workspace_dir)
        if self.model_cache_dir is None:
            self.model_cache_dir = _get_default_cache_dir()
        if self.embedding_provider not in PROVIDER_CHOICES:
            raise ConfigurationError(
                f"Unknown embedding provider '{self.embedding_provider}'; "
                f"expected one of {', '.join(PROVIDER_CHOICES)}"
            )
        if self.chunk_tokens <= 0:
            raise ConfigurationError("chunk_tokens must be positive")
        if self.chunk_overlap < 0:
            raise ConfigurationError("chunk_overlap must not be negative")
        if self.vector_weight < 0 or self.text_weight < 0:
            raise ConfigurationError("search weights must not be negative")

    def resolve_db_path(self) -> Path:
        if self.db_path is None:
            return self.workspace_dir / DEFAULT_DB_NAME
        if Path(self.db_path).is_absolute():
            return Path(self.db_path)
        return self.workspace_dir / self.db_path

    @classmethod
    def from_env(cls, workspace_dir: Path | None = None, **overrides: Any) -> "MemoryConfig":
        """Build a config from ``CLAUDE_PROJECT_DIR``, ``OPENAI_API_KEY`` and friends.

        Explicit keyword overrides win over environment values.
        """
        workspace = workspace_dir or Path(os.environ.get("CLAUDE_PROJECT_DIR") or Path.cwd())
        api_key = os.environ.get("OPENAI_API_KEY") or None
        provider = os.environ.get("MEMORY_SEARCH_PROVIDER") or ("openai" if api_key else "auto")
        values: dict[str, Any] = {
            "embedding_provider": provider,
            "openai_api_key": api_key,
        }
        db_env = os.environ.get("MEMORY_SEARCH_DB")
        if db_env:
            values["db_path"] = Path(db_env)
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(workspace_dir=Path(workspace), **values)

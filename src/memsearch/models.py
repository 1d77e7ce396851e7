"""Core memsearch data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class MemoryChunk:
    """Contiguous 1-based, inclusive line range of a memory file."""

    start_line: int
    end_line: int
    text: str
    hash: str


@dataclass(slots=True)
class MemoryFileEntry:
    """Metadata describing an eligible memory file on disk."""

    path: str
    abs_path: Path
    hash: str
    mtime: float
    size: int


@dataclass(slots=True)
class IndexMeta:
    """Settings of the last successful sync."""

    model: str
    provider: str
    provider_key: str
    chunk_tokens: int
    chunk_overlap: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "provider": self.provider,
            "providerKey": self.provider_key,
            "chunkTokens": self.chunk_tokens,
            "chunkOverlap": self.chunk_overlap,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexMeta":
        return cls(
            model=str(data["model"]),
            provider=str(data["provider"]),
            provider_key=str(data["providerKey"]),
            chunk_tokens=int(data["chunkTokens"]),
            chunk_overlap=int(data["chunkOverlap"]),
        )


@dataclass(slots=True)
class SearchCandidate:
    """Ranked hit from one retrieval side, before or after merging."""

    id: str
    path: str
    start_line: int
    end_line: int
    source: str
    snippet: str
    score: float = 0.0
    vector_score: Optional[float] = None
    text_score: Optional[float] = None


@dataclass(slots=True)
class MemorySearchResult:
    path: str
    start_line: int
    end_line: int
    score: float
    snippet: str


@dataclass(slots=True)
class SyncStats:
    """Outcome of a single sync pass."""

    full_reindex: bool = False
    indexed: int = 0
    skipped: int = 0
    removed: int = 0
    embedded: int = 0
    cached: int = 0


@dataclass(slots=True)
class IndexStatus:
    files: int
    chunks: int
    workspace_dir: Path
    db_path: Path
    provider: str
    model: str
    fts: Dict[str, Any] = field(default_factory=dict)
    fallback: Optional[Dict[str, Any]] = None

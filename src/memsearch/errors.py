"""Exception hierarchy for memsearch."""

from __future__ import annotations


class MemorySearchError(Exception):
    """Base class for every error raised by memsearch."""


class ConfigurationError(MemorySearchError, ValueError):
    """Invalid configuration or missing credentials."""


class EmbeddingProviderError(MemorySearchError, RuntimeError):
    """An embedding provider failed to produce vectors."""


class InvalidMemoryPathError(MemorySearchError, ValueError):
    """A requested path is outside the workspace or not a memory file."""

    def __init__(self, reason: str, path: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.path = path


class IndexClosedError(MemorySearchError):
    """Operation attempted on a closed index."""

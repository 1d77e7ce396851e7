"""Hybrid vector + keyword search over markdown memory notes."""

from memsearch.config import MemoryConfig
from memsearch.index.manager import MemoryIndex
from memsearch.models import MemorySearchResult

__all__ = ["MemoryConfig", "MemoryIndex", "MemorySearchResult"]
__version__ = "0.1.0"

"""Text helpers including line-aware markdown chunking."""

from __future__ import annotations

import hashlib
from typing import List, Tuple

from memsearch.models import MemoryChunk

# Approximate characters per token, shared by chunk sizing and embedding batching.
CHARS_PER_TOKEN = 4


def hash_text(text: str) -> str:
    """Return the SHA256 hex digest of UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def estimate_tokens(text: str) -> int:
    if not text:
        return 0
    return -(-len(text) // CHARS_PER_TOKEN)


def truncate_snippet(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


def chunk_markdown(text: str, *, tokens: int = 400, overlap: int = 80) -> List[MemoryChunk]:
    """Split markdown into overlapping, line-bounded chunks.

    Lines are accumulated until the character budget (``tokens * CHARS_PER_TOKEN``)
    would be exceeded. The next window starts ``overlap`` tokens worth of lines
    earlier. Lines longer than the budget are sliced into budget-sized segments
    that keep their original line number.

    Empty input yields a single empty chunk covering line 1.
    """
    max_chars = max(1, tokens * CHARS_PER_TOKEN)
    overlap_chars = min(max(0, overlap * CHARS_PER_TOKEN), max_chars - 1)

    chunks: List[MemoryChunk] = []
    current: List[Tuple[str, int]] = []
    current_chars = 0

    def flush() -> None:
        if not current:
            return
        body = "\n".join(segment for segment, _ in current)
        chunks.append(
            MemoryChunk(
                start_line=current[0][1],
                end_line=current[-1][1],
                text=body,
                hash=hash_text(body),
            )
        )

    def carry_overlap() -> List[Tuple[str, int]]:
        if overlap_chars <= 0:
            return []
        kept: List[Tuple[str, int]] = []
        acc = 0
        for segment, line_no in reversed(current):
            acc += len(segment) + 1
            kept.insert(0, (segment, line_no))
            if acc >= overlap_chars:
                break
        return kept

    for index, line in enumerate(text.split("\n")):
        line_no = index + 1
        if line:
            segments = [line[start : start + max_chars] for start in range(0, len(line), max_chars)]
        else:
            segments = [""]

        for segment in segments:
            size = len(segment) + 1
            if current and current_chars + size > max_chars:
                flush()
                current = carry_overlap()
                current_chars = sum(len(s) + 1 for s, _ in current)
                # Drop carried lines until the incoming segment fits.
                while current and current_chars + size > max_chars:
                    dropped, _ = current.pop(0)
                    current_chars -= len(dropped) + 1
            current.append((segment, line_no))
            current_chars += size

    flush()
    return chunks

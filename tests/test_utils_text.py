"""Tests for text utilities."""

from __future__ import annotations

import pytest

from memsearch.utils.text import (
    CHARS_PER_TOKEN,
    chunk_markdown,
    estimate_tokens,
    hash_text,
    truncate_snippet,
)


class TestChunkMarkdown:
    """Test line-aware markdown chunking."""

    def test_empty_content(self) -> None:
        """Empty input yields a single empty chunk on line 1."""
        chunks = chunk_markdown("", tokens=400, overlap=80)

        assert len(chunks) == 1
        assert chunks[0].text == ""
        assert chunks[0].start_line == 1
        assert chunks[0].end_line == 1

    def test_short_content_single_chunk(self) -> None:
        """Should keep small documents in one chunk with correct line numbers."""
        chunks = chunk_markdown("line 1\nline 2\nline 3", tokens=100, overlap=0)

        assert len(chunks) == 1
        assert chunks[0].start_line == 1
        assert chunks[0].end_line == 3
        assert chunks[0].text == "line 1\nline 2\nline 3"
        assert chunks[0].hash == hash_text(chunks[0].text)

    def test_splits_overly_long_lines(self) -> None:
        """A line longer than the budget is sliced into budget-sized pieces."""
        tokens = 400
        max_chars = tokens * CHARS_PER_TOKEN
        content = "a" * (max_chars * 3 + 25)

        chunks = chunk_markdown(content, tokens=tokens, overlap=0)

        assert len(chunks) == 4
        assert all(len(chunk.text) <= max_chars for chunk in chunks)
        assert all(chunk.start_line == chunk.end_line == 1 for chunk in chunks)
        assert "".join(chunk.text for chunk in chunks) == content

    def test_long_line_with_overlap_stays_within_budget(self) -> None:
        tokens = 10
        max_chars = tokens * CHARS_PER_TOKEN
        content = "short\n" + "b" * (max_chars * 2) + "\ntail"

        chunks = chunk_markdown(content, tokens=tokens, overlap=5)

        assert all(len(chunk.text) <= max_chars for chunk in chunks)
        covered = set()
        for chunk in chunks:
            covered.update(range(chunk.start_line, chunk.end_line + 1))
        assert covered == {1, 2, 3}

    def test_small_budget_is_not_padded(self) -> None:
        """The character budget is exactly tokens * CHARS_PER_TOKEN."""
        content = "\n".join(f"line {i}" for i in range(10))

        chunks = chunk_markdown(content, tokens=2, overlap=0)

        assert all(len(chunk.text) <= 2 * CHARS_PER_TOKEN for chunk in chunks)
        assert chunks[0].text == "line 0"
        assert chunks[-1].end_line == 10

    def test_overlap_repeats_trailing_lines(self) -> None:
        """Consecutive chunks share lines when overlap is requested."""
        lines = "\n".join(f"Line {i + 1}" for i in range(20))

        chunks = chunk_markdown(lines, tokens=10, overlap=2)

        assert len(chunks) > 1
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_line <= previous.end_line
            assert current.start_line > previous.start_line

    def test_no_overlap_partitions_lines(self) -> None:
        lines = "\n".join(f"Line {i + 1}" for i in range(20))

        chunks = chunk_markdown(lines, tokens=10, overlap=0)

        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_line == previous.end_line + 1
        assert chunks[0].start_line == 1
        assert chunks[-1].end_line == 20

    def test_covers_every_line(self) -> None:
        text = "\n".join(f"# Heading {i}\n\nbody text for section {i}" for i in range(30))
        total_lines = len(text.split("\n"))

        chunks = chunk_markdown(text, tokens=12, overlap=3)

        covered = set()
        for chunk in chunks:
            covered.update(range(chunk.start_line, chunk.end_line + 1))
        assert covered == set(range(1, total_lines + 1))

    def test_overlap_not_smaller_than_budget_still_terminates(self) -> None:
        lines = "\n".join(f"Line {i + 1}" for i in range(50))

        chunks = chunk_markdown(lines, tokens=10, overlap=50)

        assert chunks[-1].end_line == 50
        assert len(chunks) < 100

    def test_deterministic(self) -> None:
        text = "alpha\nbeta\ngamma\n" * 40
        assert chunk_markdown(text, tokens=20, overlap=4) == chunk_markdown(
            text, tokens=20, overlap=4
        )


class TestHashText:
    def test_consistent(self) -> None:
        assert hash_text("hello world") == hash_text("hello world")

    def test_fixed_length_hex(self) -> None:
        digest = hash_text("hello world")
        assert len(digest) == 64
        assert len(hash_text("")) == 64
        int(digest, 16)

    def test_different_inputs(self) -> None:
        assert hash_text("hello") != hash_text("world")


class TestHelpers:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [("", 0), ("abc", 1), ("abcd", 1), ("abcde", 2)],
    )
    def test_estimate_tokens(self, text: str, expected: int) -> None:
        assert estimate_tokens(text) == expected

    def test_truncate_under_limit(self) -> None:
        assert truncate_snippet("hello", 10) == "hello"

    def test_truncate_to_limit(self) -> None:
        assert truncate_snippet("hello world", 5) == "hello"

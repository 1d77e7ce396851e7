"""Tests for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from memsearch.cli import _setup_logging, app
from memsearch.errors import ConfigurationError
from memsearch.index.manager import MemoryIndex

runner = CliRunner()


@pytest.fixture
def patched_create(mock_provider, workspace: Path):
    """Route MemoryIndex.create through the deterministic mock provider."""
    (workspace / "memory" / "exact.md").write_text("Exact phrase only")

    def _create(config, **_kwargs):
        return MemoryIndex(config, mock_provider)

    with patch("memsearch.cli.MemoryIndex") as mock_cls:
        mock_cls.create.side_effect = _create
        yield mock_cls


class TestSetupLogging:
    """Tests for _setup_logging helper."""

    def test_setup_logging_verbose(self) -> None:
        """Verbose mode sets DEBUG level."""
        with patch("memsearch.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        """Normal mode only shows warnings."""
        with patch("memsearch.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.WARNING


class TestSyncCommand:
    def test_sync(self, patched_create: MagicMock, workspace: Path) -> None:
        result = runner.invoke(app, ["sync", "-w", str(workspace)])

        assert result.exit_code == 0
        assert "Files: 3" in result.output
        assert "Provider: mock" in result.output
        assert "Done." in result.output

    def test_sync_force(self, patched_create: MagicMock, workspace: Path) -> None:
        runner.invoke(app, ["sync", "-w", str(workspace)])
        result = runner.invoke(app, ["sync", "--force", "-w", str(workspace)])

        assert result.exit_code == 0
        assert "Chunks: 3" in result.output

    def test_sync_error_exits_nonzero(self, workspace: Path) -> None:
        with patch("memsearch.cli.MemoryIndex") as mock_cls:
            mock_cls.create.side_effect = ConfigurationError("no provider available")
            result = runner.invoke(app, ["sync", "-w", str(workspace)])

        assert result.exit_code == 1
        assert "no provider available" in result.output

    def test_sync_passes_options_to_config(self, workspace: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "custom" / "index.sqlite"
        with patch("memsearch.cli.MemoryIndex") as mock_cls:
            memory = mock_cls.create.return_value.__enter__.return_value
            memory.status.return_value = MagicMock(
                files=0, chunks=0, provider="openai", model="m", fallback=None
            )
            result = runner.invoke(
                app,
                ["sync", "-w", str(workspace), "--db", str(db_path), "--provider", "openai"],
            )

        assert result.exit_code == 0
        config = mock_cls.create.call_args[0][0]
        assert config.workspace_dir == workspace
        assert config.resolve_db_path() == db_path
        assert config.embedding_provider == "openai"
        memory.sync.assert_called_once_with(force=False)


class TestSearchCommand:
    def test_search_prints_markdown(self, patched_create: MagicMock, workspace: Path) -> None:
        result = runner.invoke(
            app, ["search", "Exact phrase only", "-w", str(workspace), "--min-score=0.5"]
        )

        assert result.exit_code == 0
        assert '## Memory Search: "Exact phrase only"' in result.output
        assert "### 1. memory/exact.md (lines 1-1) - 100% match" in result.output
        assert "Exact phrase only\n```" in result.output

    def test_search_no_results(self, patched_create: MagicMock, workspace: Path) -> None:
        result = runner.invoke(
            app, ["search", "zebra", "-w", str(workspace), "--min-score=1.5"]
        )

        assert result.exit_code == 0
        assert '## No results found for: "zebra"' in result.output

    def test_search_blank_query(self, workspace: Path) -> None:
        result = runner.invoke(app, ["search", "   ", "-w", str(workspace)])

        assert result.exit_code == 1
        assert "Usage" in result.output

    def test_search_no_sync(self, workspace: Path) -> None:
        with patch("memsearch.cli.MemoryIndex") as mock_cls:
            memory = mock_cls.create.return_value.__enter__.return_value
            memory.search.return_value = []
            result = runner.invoke(app, ["search", "query", "--no-sync", "-w", str(workspace)])

        assert result.exit_code == 0
        memory.sync.assert_not_called()
        memory.search.assert_called_once_with("query", max_results=6, min_score=0.3)


class TestStatusCommand:
    def test_status(self, patched_create: MagicMock, workspace: Path) -> None:
        runner.invoke(app, ["sync", "-w", str(workspace)])

        result = runner.invoke(app, ["status", "-w", str(workspace)])

        assert result.exit_code == 0
        assert "Files: 3" in result.output
        assert "Provider: mock (mock-model)" in result.output
        assert "Full-text search:" in result.output


class TestReadCommand:
    def test_read_window(self, patched_create: MagicMock, workspace: Path) -> None:
        result = runner.invoke(
            app, ["read", "MEMORY.md", "--from", "1", "--lines", "1", "-w", str(workspace)]
        )

        assert result.exit_code == 0
        assert result.output.strip() == "# Authentication"

    def test_read_rejects_outside_path(self, patched_create: MagicMock, workspace: Path) -> None:
        result = runner.invoke(app, ["read", "src/app.py", "-w", str(workspace)])

        assert result.exit_code == 1
        assert "Error reading memory file" in result.output

    def test_read_missing_file(self, patched_create: MagicMock, workspace: Path) -> None:
        result = runner.invoke(app, ["read", "memory/nope.md", "-w", str(workspace)])

        assert result.exit_code == 1


class TestWarmupCommand:
    def test_warmup_uses_local_provider(self, workspace: Path) -> None:
        with patch("memsearch.cli.MemoryIndex") as mock_cls:
            result = runner.invoke(app, ["warmup", "-w", str(workspace)])

        assert result.exit_code == 0
        assert "Model is ready" in result.output
        assert mock_cls.create.call_args[0][0].embedding_provider == "local"

    def test_warmup_failure(self, workspace: Path) -> None:
        with patch("memsearch.cli.MemoryIndex") as mock_cls:
            mock_cls.create.side_effect = ConfigurationError("sentence-transformers is not available")
            result = runner.invoke(app, ["warmup", "-w", str(workspace)])

        assert result.exit_code == 1
        assert "sentence-transformers" in result.output


class TestInjectCommand:
    def test_inject_outputs_context(self, patched_create: MagicMock, workspace: Path) -> None:
        payload = json.dumps({"user_message": "Exact phrase only"})

        result = runner.invoke(app, ["inject", "-w", str(workspace)], input=payload)

        assert result.exit_code == 0
        context = json.loads(result.output)["additionalContext"]
        assert context.startswith("## Relevant Memory\n\n")
        assert "**memory/exact.md** (lines 1-1):\nExact phrase only" in context

    @pytest.mark.parametrize("stdin", ["", "not json", json.dumps({"user_message": "  "})])
    def test_inject_is_silent_on_bad_input(self, workspace: Path, stdin: str) -> None:
        with patch("memsearch.cli.MemoryIndex") as mock_cls:
            result = runner.invoke(app, ["inject", "-w", str(workspace)], input=stdin)

        assert result.exit_code == 0
        assert result.output == ""
        mock_cls.create.assert_not_called()

    def test_inject_is_silent_on_errors(self, workspace: Path) -> None:
        with patch("memsearch.cli.MemoryIndex") as mock_cls:
            mock_cls.create.side_effect = RuntimeError("boom")
            result = runner.invoke(
                app, ["inject", "-w", str(workspace)], input=json.dumps({"user_message": "hi"})
            )

        assert result.exit_code == 0
        assert result.output == ""

    def test_inject_truncates_query(self, workspace: Path) -> None:
        with patch("memsearch.cli.MemoryIndex") as mock_cls:
            memory = mock_cls.create.return_value.__enter__.return_value
            memory.search.return_value = []
            runner.invoke(
                app, ["inject", "-w", str(workspace)], input=json.dumps({"user_message": "q" * 500})
            )

        query = memory.search.call_args[0][0]
        assert query == "q" * 200
        assert memory.search.call_args.kwargs == {"max_results": 3, "min_score": 0.4}

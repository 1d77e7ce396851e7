"""Command line interface for memsearch."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from memsearch.config import MemoryConfig
from memsearch.errors import MemorySearchError
from memsearch.index.manager import MemoryIndex

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(help="memsearch - hybrid search over MEMORY.md and memory/ notes")

INJECT_QUERY_MAX_CHARS = 200


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _build_config(workspace: Optional[Path], db: Optional[Path], provider: Optional[str]) -> MemoryConfig:
    return MemoryConfig.from_env(workspace, db_path=db, embedding_provider=provider)


def _fail(action: str, exc: Exception) -> NoReturn:
    err_console.print(f"[red]Error {action}: {escape(str(exc))}[/red]")
    raise typer.Exit(code=1)


WorkspaceOption = typer.Option(
    None,
    "--workspace",
    "-w",
    envvar="CLAUDE_PROJECT_DIR",
    help="Directory containing MEMORY.md and/or memory/ (default: cwd)",
)
DbOption = typer.Option(None, "--db", help="SQLite database path")
ProviderOption = typer.Option(None, "--provider", help="Embedding provider: local, openai or auto")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command()
def sync(
    force: bool = typer.Option(False, "--force", help="Re-index all files even if unchanged"),
    workspace: Optional[Path] = WorkspaceOption,
    db: Optional[Path] = DbOption,
    provider: Optional[str] = ProviderOption,
    verbose: bool = VerboseOption,
) -> None:
    """Sync the memory index with files on disk."""
    _setup_logging(verbose)
    try:
        config = _build_config(workspace, db, provider)
        console.print(f"Syncing memory index for: [bold]{config.workspace_dir}[/bold]")
        with MemoryIndex.create(config) as memory:
            memory.sync(force=force)
            status = memory.status()
    except MemorySearchError as exc:
        _fail("syncing memory", exc)

    console.print("\nIndex synced:")
    console.print(f"  Files: {status.files}")
    console.print(f"  Chunks: {status.chunks}")
    console.print(f"  Provider: {status.provider}")
    console.print(f"  Model: {status.model}")
    if status.fallback:
        console.print(f"  Fallback: {status.fallback['from']} -> {status.provider}")
        console.print(f"  Reason: {escape(str(status.fallback.get('reason')))}")
    console.print("\nDone.")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    max_results: int = typer.Option(6, "--max-results", "-n", help="Number of results to display"),
    min_score: float = typer.Option(0.3, "--min-score", help="Minimum combined score"),
    no_sync: bool = typer.Option(False, "--no-sync", help="Skip syncing before searching"),
    workspace: Optional[Path] = WorkspaceOption,
    db: Optional[Path] = DbOption,
    provider: Optional[str] = ProviderOption,
    verbose: bool = VerboseOption,
) -> None:
    """Search memory files and print markdown-formatted matches."""
    _setup_logging(verbose)
    if not query.strip():
        err_console.print('Usage: memsearch search "your query"')
        raise typer.Exit(code=1)

    try:
        with MemoryIndex.create(_build_config(workspace, db, provider)) as memory:
            if not no_sync:
                memory.sync()
            results = memory.search(query, max_results=max_results, min_score=min_score)
    except MemorySearchError as exc:
        _fail("searching memory", exc)

    if not results:
        console.print(f'## No results found for: "{query}"', markup=False)
        console.print("\nTry a different query or check that MEMORY.md / memory/ files exist.")
        return

    console.print(f'## Memory Search: "{query}"\n', markup=False)
    console.print(f"Found {len(results)} result(s):\n", markup=False)
    for position, result in enumerate(results, start=1):
        pct = round(result.score * 100)
        console.print(
            f"### {position}. {result.path} (lines {result.start_line}-{result.end_line}) - {pct}% match",
            markup=False,
        )
        console.print(f"```\n{result.snippet}\n```\n", markup=False, highlight=False)


@app.command()
def status(
    workspace: Optional[Path] = WorkspaceOption,
    db: Optional[Path] = DbOption,
    provider: Optional[str] = ProviderOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show index counts and provider information."""
    _setup_logging(verbose)
    try:
        with MemoryIndex.create(_build_config(workspace, db, provider)) as memory:
            info = memory.status()
    except MemorySearchError as exc:
        _fail("reading status", exc)

    console.print(f"Workspace: {info.workspace_dir}")
    console.print(f"Database: {info.db_path}")
    console.print(f"Files: {info.files}")
    console.print(f"Chunks: {info.chunks}")
    console.print(f"Provider: {info.provider} ({info.model})")
    fts_state = "available" if info.fts.get("available") else "unavailable"
    console.print(f"Full-text search: {fts_state}")
    if info.fts.get("error"):
        console.print(f"  [yellow]{escape(str(info.fts['error']))}[/yellow]")
    if info.fallback:
        console.print(f"Fallback: {info.fallback['from']} ({escape(str(info.fallback.get('reason')))})")


@app.command()
def read(
    path: str = typer.Argument(..., help="MEMORY.md, memory.md or a path under memory/"),
    from_line: Optional[int] = typer.Option(None, "--from", help="1-based first line"),
    lines: Optional[int] = typer.Option(None, "--lines", help="Number of lines to read"),
    workspace: Optional[Path] = WorkspaceOption,
    db: Optional[Path] = DbOption,
    provider: Optional[str] = ProviderOption,
) -> None:
    """Print a memory file or a line window of it."""
    try:
        with MemoryIndex.create(_build_config(workspace, db, provider)) as memory:
            result = memory.read_file(path, from_line=from_line, lines=lines)
    except (MemorySearchError, OSError) as exc:
        _fail("reading memory file", exc)
    console.print(result["text"], markup=False, highlight=False)


@app.command()
def warmup(
    workspace: Optional[Path] = WorkspaceOption,
    verbose: bool = VerboseOption,
) -> None:
    """Pre-download the local embedding model."""
    _setup_logging(verbose)
    console.print("Warming up local embedding model...")
    try:
        config = MemoryConfig.from_env(workspace, embedding_provider="local")
        with MemoryIndex.create(config):
            pass
    except MemorySearchError as exc:
        _fail("loading local model", exc)
    console.print("Done! Model is ready for use.")


@app.command()
def inject(
    max_results: int = typer.Option(3, "--max-results", "-n"),
    min_score: float = typer.Option(0.4, "--min-score"),
    workspace: Optional[Path] = WorkspaceOption,
) -> None:
    """Editor hook: read {"user_message": ...} from stdin, print relevant memory as JSON.

    Never fails: any error exits silently with status 0 so the editor is not blocked.
    """
    try:
        payload = json.loads(sys.stdin.read() or "{}")
        query = str(payload.get("user_message") or "")[:INJECT_QUERY_MAX_CHARS]
        if not query.strip():
            return
        with MemoryIndex.create(MemoryConfig.from_env(workspace)) as memory:
            memory.sync()
            results = memory.search(query, max_results=max_results, min_score=min_score)
    except Exception as exc:
        logging.getLogger(__name__).debug("context injection skipped: %s", exc)
        return

    if not results:
        return
    context = "\n\n".join(
        f"**{r.path}** (lines {r.start_line}-{r.end_line}):\n{r.snippet}" for r in results
    )
    typer.echo(json.dumps({"additionalContext": f"## Relevant Memory\n\n{context}"}))


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    import uvicorn

    from memsearch.web.app import app as web_app

    console.print(f"Starting memory search API on http://{host}:{port}")
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")


def main() -> None:
    app()


if __name__ == "__main__":
    main()

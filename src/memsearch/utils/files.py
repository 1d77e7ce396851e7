"""Utility helpers for discovering and validating memory files."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Iterator, List

from memsearch.errors import InvalidMemoryPathError
from memsearch.models import MemoryFileEntry

ROOT_MEMORY_FILES = ("MEMORY.md", "memory.md")
MEMORY_DIR = "memory"


def normalize_rel_path(value: str) -> str:
    """Strip leading ``./``, ``../`` and slashes and use forward slashes."""
    normalized = value.strip().replace("\\", "/")
    while True:
        if normalized.startswith("./"):
            normalized = normalized[2:]
        elif normalized.startswith("../"):
            normalized = normalized[3:]
        elif normalized.startswith("/"):
            normalized = normalized[1:]
        else:
            return normalized


def is_memory_path(rel_path: str) -> bool:
    normalized = normalize_rel_path(rel_path)
    if not normalized:
        return False
    if normalized in ROOT_MEMORY_FILES:
        return True
    return normalized.startswith(f"{MEMORY_DIR}/")


def _iter_markdown(directory: Path) -> Iterator[Path]:
    for child in sorted(directory.iterdir()):
        if child.is_symlink():
            continue
        if child.is_dir():
            yield from _iter_markdown(child)
        elif child.is_file() and child.suffix == ".md":
            yield child


def list_memory_files(workspace_dir: Path) -> List[Path]:
    """Return eligible memory files: root MEMORY.md/memory.md plus memory/**/*.md."""
    workspace = Path(workspace_dir)
    found: List[Path] = []
    seen: set[Path] = set()

    for name in ROOT_MEMORY_FILES:
        candidate = workspace / name
        if candidate.is_file() and not candidate.is_symlink():
            # Case-insensitive filesystems report both names for one file.
            key = candidate.resolve()
            if key not in seen:
                seen.add(key)
                found.append(candidate)

    memory_dir = workspace / MEMORY_DIR
    if memory_dir.is_dir() and not memory_dir.is_symlink():
        for path in _iter_markdown(memory_dir):
            key = path.resolve()
            if key not in seen:
                seen.add(key)
                found.append(path)
    return found


def compute_sha256(path: Path) -> str:
    """Compute SHA256 hash for a file."""
    sha = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            sha.update(chunk)
    return sha.hexdigest()


def build_file_entry(path: Path, workspace_dir: Path) -> MemoryFileEntry:
    stat = path.stat()
    rel_path = Path(os.path.relpath(path, workspace_dir)).as_posix()
    return MemoryFileEntry(
        path=rel_path,
        abs_path=path,
        hash=compute_sha256(path),
        mtime=stat.st_mtime,
        size=stat.st_size,
    )


def resolve_memory_path(workspace_dir: Path, candidate: str) -> tuple[str, Path]:
    """Validate a requested memory path and resolve it inside the workspace.

    Raises:
        InvalidMemoryPathError: if the path is not a memory file or escapes
            the workspace. No filesystem access happens before validation.
    """
    rel_path = normalize_rel_path(candidate)
    if not rel_path or not is_memory_path(rel_path):
        raise InvalidMemoryPathError(
            "Invalid path: must be MEMORY.md, memory.md, or under memory/", candidate
        )
    if any(part == ".." for part in rel_path.split("/")):
        raise InvalidMemoryPathError("Path escapes workspace", candidate)

    root = Path(os.path.abspath(workspace_dir))
    abs_path = Path(os.path.abspath(root / rel_path))
    if root != abs_path and root not in abs_path.parents:
        raise InvalidMemoryPathError("Path escapes workspace", candidate)
    return rel_path, abs_path

"""Filesystem scanning for codebase ingestion."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from agent_memory.parser.file_types import language_for_path
from agent_memory.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ScannedItem:
    """A file or directory found under the project root.

    Attributes:
        path: Absolute path (symlinks resolved)
        name: Project-relative posix path, "." for the root
        type: "file" or "directory"
        size_bytes: Size reported by stat
        modified_at: ISO-8601 UTC modification time
        language: Parser language for recognised source files
    """
    path: Path
    name: str
    type: str
    size_bytes: int
    modified_at: str
    language: str | None = None

    @property
    def parent_name(self) -> str | None:
        if self.name == ".":
            return None
        parent = os.path.dirname(self.name)
        return parent or "."


def relative_name(path: Path, project_root: Path) -> str:
    relative = Path(os.path.relpath(path, project_root)).as_posix()
    return "." if relative in ("", ".") else relative


def _stat_item(path: Path, name: str, item_type: str) -> ScannedItem:
    stats = path.stat()
    return ScannedItem(
        path=path,
        name=name,
        type=item_type,
        size_bytes=stats.st_size,
        modified_at=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc).isoformat(),
        language=language_for_path(path) if item_type == "file" else None,
    )


def scan_directory(
    directory: Path | str,
    project_root: Path | str,
    excluded_dirs: Iterable[str] = (),
) -> list[ScannedItem]:
    """Walk `directory` and return every file and directory below it.

    The walk skips excluded directory names and dot-directories, does not
    descend into symlinked directories, and drops symlinked files whose
    target lies outside `project_root`. Entries are ordered directories first,
    then by lowercase name, like a depth-first listing.

    The returned list starts with `directory` itself.

    Raises:
        FileNotFoundError: If `directory` does not exist
        ValueError: If `directory` is not a directory or lies outside `project_root`
    """
    root = Path(project_root).resolve()
    start = Path(directory).resolve()
    if not start.exists():
        raise FileNotFoundError(f"Directory does not exist: {start}")
    if not start.is_dir():
        raise ValueError(f"Not a directory: {start}")
    if not start.is_relative_to(root):
        raise ValueError(f"Directory path ({start}) must be within the project root path ({root}).")

    excluded = frozenset(excluded_dirs)
    items = [_stat_item(start, relative_name(start, root), "directory")]
    _scan(start, root, excluded, items)
    return items


def _scan(dir_path: Path, root: Path, excluded: frozenset[str], items: list[ScannedItem]) -> None:
    try:
        entries = sorted(dir_path.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
    except PermissionError as e:
        logger.warning(f"Permission denied accessing {dir_path}: {e}")
        return
    except OSError as e:
        logger.warning(f"Error accessing directory {dir_path}: {e}")
        return

    for entry in entries:
        if entry.is_dir():
            if entry.name in excluded or entry.name.startswith("."):
                continue
            if entry.is_symlink():
                logger.debug(f"Not following symlinked directory {entry}")
                continue
            items.append(_stat_item(entry, relative_name(entry, root), "directory"))
            _scan(entry, root, excluded, items)
        elif entry.is_file():
            if entry.is_symlink():
                target = entry.resolve()
                if not target.is_relative_to(root):
                    logger.warning(f"Skipping symlink {entry} pointing outside project root")
                    continue
            items.append(_stat_item(entry, relative_name(entry, root), "file"))

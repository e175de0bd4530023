"""
Import specifier resolution.

Relative specifiers are resolved against the importing file's directory with
`Path.resolve()`, which follows symlinks, and the final location is checked
against the project root. Bare specifiers (packages, modules) are returned
unchanged.
"""

from __future__ import annotations

from pathlib import Path

from agent_memory.parser.exceptions import ParseError, PathEscapeError


def is_local_specifier(specifier: str) -> bool:
    return specifier.startswith(".") or specifier.startswith("/")


def is_within_root(path: str | Path, project_root: str | Path) -> bool:
    return Path(path).resolve().is_relative_to(Path(project_root).resolve())


def resolve_import_path(
    specifier: str,
    importing_file: str | Path,
    project_root: str | Path | None = None,
    language: str | None = None,
) -> str:
    """Resolve an import specifier written in `importing_file`.

    Raises:
        ParseError: If the specifier contains a NUL byte
        PathEscapeError: If a local specifier resolves outside `project_root`
    """
    if "\0" in specifier:
        raise ParseError("Invalid import path", language=language, file_path=str(importing_file))
    if not is_local_specifier(specifier):
        return specifier

    base_dir = Path(importing_file).resolve().parent
    resolved = (base_dir / specifier).resolve()
    if project_root is not None and not is_within_root(resolved, project_root):
        raise PathEscapeError(
            specifier,
            file_path=str(importing_file),
            project_root=str(project_root),
            language=language,
        )
    return resolved.as_posix()

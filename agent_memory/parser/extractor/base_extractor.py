"""
Base language parser interface and traversal helpers.

This module provides:
  - ParseOptions: Switches that change what a parse emits (part of the cache key)
  - VisitContext: Immutable context threaded through the recursive AST walk
  - ParseState: Per-call accumulators (imports, entities, calls, complexity)
  - LanguageParser: Abstract base class for every language parser
  - TreeSitterLanguageParser: Base for parsers walking a tree-sitter syntax tree

Every parse builds a fresh `ParseState`; nothing mutable is kept on the parser
instance besides the injected cache, so one parser can serve many files.
Content is handled as `bytes` while walking because tree-sitter reports byte
offsets.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING

from agent_memory.parser.cache import InMemoryParserCache, ParserCache, build_cache_key
from agent_memory.parser.exceptions import ParseError
from agent_memory.parser.import_resolution import resolve_import_path
from agent_memory.parser.models import (
    CallInfo,
    ExtractedCodeEntity,
    ExtractedImport,
    ParseResult,
)
from agent_memory.parser.tree_sitter_parser import grammar_for_path, parse_source

if TYPE_CHECKING:
    from tree_sitter import Node


@dataclass(frozen=True)
class ParseOptions:
    include_decorators: bool = False
    calculate_complexity: bool = False

    def cache_token(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)


@dataclass(frozen=True)
class VisitContext:
    """Context for one node of the walk.

    Attributes:
        full_name_prefix: Project-relative path (or language module path)
        file_path: Absolute path of the file being parsed
        project_root: Root used for relative paths and import checks
        class_name: Name of the enclosing class, if any
        is_exported: Whether the enclosing declaration is exported
        scope_id: Node id of the innermost enclosing function scope
        parent: Parent syntax node of the node being visited
        grand_parent: Parent of `parent`
    """
    full_name_prefix: str
    file_path: Path
    project_root: Path | None = None
    class_name: str | None = None
    is_exported: bool = False
    scope_id: int | None = None
    parent: "Node | None" = None
    grand_parent: "Node | None" = None

    def descend(self, node: "Node") -> VisitContext:
        return replace(self, parent=node, grand_parent=self.parent)


@dataclass
class ParseState:
    content: bytes
    options: ParseOptions
    imports: list[ExtractedImport] = field(default_factory=list)
    entities: list[tuple[int | None, ExtractedCodeEntity]] = field(default_factory=list)
    calls: dict[int, list[CallInfo]] = field(default_factory=dict)
    complexity: dict[int, int] = field(default_factory=dict)

    def add_entity(self, entity: ExtractedCodeEntity, scope_id: int | None = None) -> None:
        self.entities.append((scope_id, entity))

    def add_call(self, scope_id: int | None, call: CallInfo) -> None:
        if scope_id is None:
            return
        self.calls.setdefault(scope_id, []).append(call)

    def bump_complexity(self, scope_id: int | None) -> None:
        if scope_id is None:
            return
        self.complexity[scope_id] = self.complexity.get(scope_id, 1) + 1

    def finalize(self) -> list[ExtractedCodeEntity]:
        """Attach per-scope calls and complexity to their entities."""
        result: list[ExtractedCodeEntity] = []
        for scope_id, entity in self.entities:
            if scope_id is not None:
                entity.calls = list(self.calls.get(scope_id, []))
                if self.options.calculate_complexity:
                    entity.complexity = self.complexity.get(scope_id, 1)
            result.append(entity)
        return result


class LanguageParser(ABC):
    """Abstract interface for language-specific parsers.

    Subclasses must implement:
      - language (property): Return the language identifier
      - _perform_full_parse(): Produce imports and entities for one file

    The base class provides caching, error wrapping and path helpers.
    """

    def __init__(self, cache: ParserCache | None = None):
        self.cache = cache if cache is not None else InMemoryParserCache()

    @property
    @abstractmethod
    def language(self) -> str:
        """Return the language identifier (e.g., 'python', 'typescript')."""
        pass

    def parse_imports(
        self,
        file_path: str | Path,
        content: str,
        project_root: str | Path | None = None,
    ) -> list[ExtractedImport]:
        """Extract imports from a file.

        Raises:
            ParseError: If the file cannot be parsed
            PathEscapeError: If a relative import leaves `project_root`
        """
        return self.parse(file_path, content, project_root).imports

    def parse_code_entities(
        self,
        file_path: str | Path,
        content: str,
        project_root: str | Path | None,
        options: ParseOptions | None = None,
    ) -> list[ExtractedCodeEntity]:
        """Extract declarations from a file.

        Raises:
            ParseError: If the file cannot be parsed
        """
        return self.parse(file_path, content, project_root, options).entities

    def parse(
        self,
        file_path: str | Path,
        content: str,
        project_root: str | Path | None = None,
        options: ParseOptions | None = None,
    ) -> ParseResult:
        options = options or ParseOptions()
        key = build_cache_key(file_path, content, project_root, options.cache_token())
        cached = self.cache.get(key)
        if cached is not None:
            return cached.copy()

        path = Path(file_path).resolve()
        root = Path(project_root).resolve() if project_root is not None else None
        try:
            result = self._perform_full_parse(path, content, root, options)
        except ParseError:
            raise
        except RecursionError as e:
            raise ParseError(
                "Syntax tree too deep to traverse",
                language=self.language,
                file_path=str(file_path),
            ) from e
        except Exception as e:
            raise ParseError(
                f"Failed to parse file: {e}",
                language=self.language,
                file_path=str(file_path),
            ) from e

        self.cache.set(key, result)
        return result.copy()

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    @abstractmethod
    def _perform_full_parse(
        self,
        file_path: Path,
        content: str,
        project_root: Path | None,
        options: ParseOptions,
    ) -> ParseResult:
        pass

    def _relative_path(self, file_path: Path, project_root: Path | None) -> str:
        if project_root is None:
            return file_path.as_posix()
        return Path(os.path.relpath(file_path, project_root)).as_posix()

    def _containing_directory(self, relative_path: str) -> str:
        return os.path.dirname(relative_path) or "."

    def _resolve_specifier(self, specifier: str, ctx: VisitContext) -> str:
        return resolve_import_path(specifier, ctx.file_path, ctx.project_root, self.language)


class TreeSitterLanguageParser(LanguageParser):
    """Base for parsers that walk a tree-sitter syntax tree.

    Subclasses implement `_initial_context` and `_visit_node`. The walk is a
    single recursive descent; `_visit_node` returns the context its children
    should see.
    """

    # Default maximum recursion depth for AST traversal
    DEFAULT_MAX_DEPTH: int = 400

    @abstractmethod
    def _initial_context(
        self,
        file_path: Path,
        project_root: Path | None,
    ) -> VisitContext:
        pass

    @abstractmethod
    def _visit_node(self, node: "Node", ctx: VisitContext, state: ParseState) -> VisitContext:
        pass

    def _grammar(self, file_path: Path) -> str:
        return grammar_for_path(file_path, self.language)

    def _new_state(self, content: bytes, options: ParseOptions) -> ParseState:
        return ParseState(content=content, options=options)

    def _perform_full_parse(
        self,
        file_path: Path,
        content: str,
        project_root: Path | None,
        options: ParseOptions,
    ) -> ParseResult:
        content_bytes = content.encode("utf-8")
        tree = parse_source(content_bytes, self._grammar(file_path), str(file_path))
        state = self._new_state(content_bytes, options)
        self._walk(tree.root_node, self._initial_context(file_path, project_root), state, depth=0)
        return ParseResult(imports=state.imports, entities=state.finalize())

    def _walk(self, node: "Node", ctx: VisitContext, state: ParseState, depth: int) -> None:
        depth += 1
        if depth > self.DEFAULT_MAX_DEPTH:
            raise ParseError(
                f"Recursion depth exceeded: {depth} > {self.DEFAULT_MAX_DEPTH}",
                language=self.language,
                file_path=str(ctx.file_path),
            )
        child_ctx = self._visit_node(node, ctx, state).descend(node)
        for child in node.named_children:
            self._walk(child, child_ctx, state, depth)

    def _extract_text(self, content: bytes, node: "Node | None") -> str:
        if node is None:
            return ""
        return content[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def _line_span(self, node: "Node") -> tuple[int, int]:
        return node.start_point[0] + 1, node.end_point[0] + 1

    def _signature(self, content: bytes, node: "Node", body: "Node | None") -> str:
        """Declaration text up to the body, or the first line when bodiless."""
        if body is None:
            return self._extract_text(content, node).split("\n", 1)[0].strip()
        text = content[node.start_byte:body.start_byte].decode("utf-8", errors="replace")
        return text.strip().rstrip("{").strip()

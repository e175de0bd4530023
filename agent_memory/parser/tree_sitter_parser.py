"""
Tree-sitter-based source parsing.

Maps file types to tree-sitter grammars from `tree_sitter_language_pack` and
turns source bytes into a syntax tree, raising `ParseError` when the grammar
reports syntax errors.
"""

from pathlib import Path

from tree_sitter import Node, Tree
from tree_sitter_language_pack import get_parser as get_ts_parser

from agent_memory.parser.exceptions import ParseError
from agent_memory.parser.file_types import FileTypes

FILE_TYPE_TO_GRAMMAR = {
    FileTypes.PYTHON: "python",
    FileTypes.JAVASCRIPT: "javascript",
    FileTypes.TYPESCRIPT: "typescript",
    FileTypes.TSX: "tsx",
    FileTypes.PHP: "php",
}


def support_file(file: Path) -> bool:
    """Check if the file has a tree-sitter grammar."""
    return FileTypes.from_path(file) in FILE_TYPE_TO_GRAMMAR


def grammar_for_path(file: Path, default: str) -> str:
    return FILE_TYPE_TO_GRAMMAR.get(FileTypes.from_path(file), default)


def find_syntax_error(root: Node) -> Node | None:
    """Return the first ERROR or MISSING node below `root`, if any."""
    if not root.has_error:
        return None
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        stack.extend(
            child for child in reversed(node.children) if child.has_error or child.is_missing
        )
    return None


def parse_source(content: bytes, grammar: str, file_path: str | None = None) -> Tree:
    """Parse `content` with the named grammar.

    Raises:
        ParseError: If the grammar is unavailable or the source has syntax errors
    """
    try:
        tree = get_ts_parser(grammar).parse(content)
    except Exception as e:
        raise ParseError(f"Failed to parse source: {e}", language=grammar, file_path=file_path) from e

    error_node = find_syntax_error(tree.root_node)
    if error_node is not None:
        line, column = error_node.start_point
        raise ParseError(
            f"Syntax error at line {line + 1}, column {column + 1}",
            language=grammar,
            file_path=file_path,
        )
    return tree

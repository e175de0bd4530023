"""
Language Parser Module

Language-specific parsers that turn source files into language-neutral
`ExtractedImport` and `ExtractedCodeEntity` records.

Public API:
  - get_language_parser(language, cache=None): Parser instance for a language
  - get_supported_languages(): Languages with parser support
  - register_parser(language, parser_class): Add or replace a parser

Usage:
    from agent_memory.parser.extractor import get_language_parser

    parser = get_language_parser("typescript")
    entities = parser.parse_code_entities(path, content, project_root)

Adding a new language:
    1. Create a new file: `{language}_extractor.py`
    2. Implement a class that extends LanguageParser
    3. Register it in _PARSERS below
"""

from agent_memory.parser.cache import ParserCache
from agent_memory.parser.exceptions import UnsupportedLanguageError
from agent_memory.parser.extractor.base_extractor import (
    LanguageParser,
    ParseOptions,
    TreeSitterLanguageParser,
)
from agent_memory.parser.extractor.jsonl_extractor import JsonlParser
from agent_memory.parser.extractor.php_extractor import PhpParser
from agent_memory.parser.extractor.python_extractor import PythonParser
from agent_memory.parser.extractor.typescript_extractor import (
    JavaScriptParser,
    TypeScriptParser,
)


# Registry of language-specific parsers
# Maps language identifier -> parser class
_PARSERS: dict[str, type[LanguageParser]] = {
    "typescript": TypeScriptParser,
    "javascript": JavaScriptParser,
    "python": PythonParser,
    "php": PhpParser,
    "jsonl": JsonlParser,
}


def get_language_parser(language: str, cache: ParserCache | None = None) -> LanguageParser:
    """Get a parser for the given language.

    Raises:
        UnsupportedLanguageError: If no parser is registered for `language`
    """
    parser_class = _PARSERS.get(language.lower())
    if parser_class is None:
        raise UnsupportedLanguageError(language, get_supported_languages())
    return parser_class(cache=cache)


def get_supported_languages() -> list[str]:
    return list(_PARSERS.keys())


def register_parser(language: str, parser_class: type[LanguageParser]) -> None:
    """Register a parser class for a language (lowercased)."""
    _PARSERS[language.lower()] = parser_class


__all__ = [
    "get_language_parser",
    "get_supported_languages",
    "register_parser",
    "LanguageParser",
    "TreeSitterLanguageParser",
    "ParseOptions",
    "TypeScriptParser",
    "JavaScriptParser",
    "PythonParser",
    "PhpParser",
    "JsonlParser",
]

"""
Parse result caches.

A cache is injected into each parser instance. Keys combine the file path, a
SHA-256 of the content, the project root and the parse options, so an edit
that keeps the mtime still misses.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path

from agent_memory.parser.models import ParseResult


def content_hash(content: str | bytes) -> str:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def build_cache_key(
    file_path: str | Path,
    content: str | bytes,
    project_root: str | Path | None,
    options_token: str,
) -> str:
    return f"{Path(file_path).as_posix()}:{content_hash(content)}:{project_root or ''}:{options_token}"


class ParserCache(ABC):
    """Storage for parse results keyed by `build_cache_key`."""

    @abstractmethod
    def get(self, key: str) -> ParseResult | None:
        pass

    @abstractmethod
    def set(self, key: str, value: ParseResult) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def stats(self) -> dict[str, int]:
        pass


class InMemoryParserCache(ParserCache):
    """Bounded LRU cache held in process memory."""

    def __init__(self, max_entries: int = 256):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, ParseResult] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> ParseResult | None:
        value = self._entries.get(key)
        if value is None:
            self._misses += 1
            return None
        self._entries.move_to_end(key)
        self._hits += 1
        return value

    def set(self, key: str, value: ParseResult) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "hits": self._hits,
            "misses": self._misses,
        }


class NullParserCache(ParserCache):
    """Cache that never stores anything."""

    def get(self, key: str) -> ParseResult | None:
        return None

    def set(self, key: str, value: ParseResult) -> None:
        return None

    def clear(self) -> None:
        return None

    def stats(self) -> dict[str, int]:
        return {"size": 0, "max_entries": 0, "hits": 0, "misses": 0}

"""Tests for parser lookup, caching and import resolution helpers."""

from pathlib import Path

import pytest

from agent_memory.parser.cache import InMemoryParserCache, build_cache_key
from agent_memory.parser.exceptions import ParseError, PathEscapeError, UnsupportedLanguageError
from agent_memory.parser.extractor import get_language_parser, get_supported_languages
from agent_memory.parser.file_types import language_for_path
from agent_memory.parser.import_resolution import resolve_import_path


class TestParserRegistry:
    def test_supported_languages(self):
        assert set(get_supported_languages()) >= {"typescript", "javascript", "python", "php", "jsonl"}

    def test_lookup_is_case_insensitive(self):
        assert get_language_parser("TypeScript").language == "typescript"

    def test_unknown_language(self):
        with pytest.raises(UnsupportedLanguageError) as exc_info:
            get_language_parser("cobol")
        assert exc_info.value.language == "cobol"

    @pytest.mark.parametrize(
        "file_name, language",
        [
            ("a.ts", "typescript"),
            ("a.tsx", "typescript"),
            ("a.mjs", "javascript"),
            ("a.py", "python"),
            ("a.php", "php"),
            ("a.ndjson", "jsonl"),
            ("README", None),
        ],
    )
    def test_language_for_path(self, file_name, language):
        assert language_for_path(Path(file_name)) == language


class TestParserCache:
    def test_second_parse_hits_cache(self, tmp_path: Path):
        cache = InMemoryParserCache(max_entries=4)
        parser = get_language_parser("python", cache=cache)
        source = "def f():\n    pass\n"

        first = parser.parse_code_entities(tmp_path / "m.py", source, tmp_path)
        second = parser.parse_code_entities(tmp_path / "m.py", source, tmp_path)

        assert [e.full_name for e in first] == [e.full_name for e in second]
        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 1

    def test_changed_content_misses(self, tmp_path: Path):
        key_a = build_cache_key(tmp_path / "m.py", "a = 1", tmp_path, "{}")
        key_b = build_cache_key(tmp_path / "m.py", "a = 2", tmp_path, "{}")
        assert key_a != key_b

    def test_lru_eviction(self):
        from agent_memory.parser.models import ParseResult

        cache = InMemoryParserCache(max_entries=2)
        cache.set("a", ParseResult())
        cache.set("b", ParseResult())
        cache.get("a")
        cache.set("c", ParseResult())

        assert cache.get("b") is None
        assert cache.get("a") is not None
        assert cache.stats()["size"] == 2

    def test_rejects_empty_cache(self):
        with pytest.raises(ValueError):
            InMemoryParserCache(max_entries=0)

    def test_clear_resets_entries_and_counters(self, tmp_path: Path):
        cache = InMemoryParserCache(max_entries=4)
        parser = get_language_parser("python", cache=cache)
        parser.parse_code_entities(tmp_path / "m.py", "x = 1\n", tmp_path)
        parser.parse_code_entities(tmp_path / "m.py", "x = 1\n", tmp_path)

        assert parser.get_cache_stats()["hits"] == 1
        parser.clear_cache()

        assert parser.get_cache_stats() == {"size": 0, "max_entries": 4, "hits": 0, "misses": 0}

    def test_null_cache_never_stores(self):
        from agent_memory.parser.cache import NullParserCache
        from agent_memory.parser.models import ParseResult

        cache = NullParserCache()
        cache.set("a", ParseResult())

        assert cache.get("a") is None
        assert cache.stats() == {"size": 0, "max_entries": 0, "hits": 0, "misses": 0}


class TestImportResolution:
    def test_bare_specifier_unchanged(self, tmp_path: Path):
        assert resolve_import_path("lodash", tmp_path / "a.ts", tmp_path) == "lodash"

    def test_relative_specifier_resolved(self, tmp_path: Path):
        resolved = resolve_import_path("./lib/util", tmp_path / "src" / "a.ts", tmp_path)
        assert resolved == (tmp_path / "src" / "lib" / "util").resolve().as_posix()

    def test_escape_is_rejected(self, tmp_path: Path):
        with pytest.raises(PathEscapeError) as exc_info:
            resolve_import_path("../../etc/passwd", tmp_path / "a.ts", tmp_path)
        assert exc_info.value.specifier == "../../etc/passwd"

    def test_nul_byte_is_rejected(self, tmp_path: Path):
        with pytest.raises(ParseError):
            resolve_import_path("./a\0b", tmp_path / "a.ts", tmp_path)

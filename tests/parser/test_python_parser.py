"""Unit tests for the Python parser."""

from pathlib import Path

import pytest

from agent_memory.parser.extractor import ParseOptions, get_language_parser

SOURCE = '''import os
from .b import helper


class Service(Base):
    """Does things."""

    def run(self, x: int = 1) -> str:
        helper()
        self.stop()


def _private():
    pass
'''


@pytest.fixture
def py_parser():
    return get_language_parser("python")


class TestPythonEntities:
    def test_class_with_bases_and_docstring(self, py_parser, tmp_path: Path):
        entities = py_parser.parse_code_entities(tmp_path / "pkg" / "a.py", SOURCE, tmp_path)

        service = next(e for e in entities if e.name == "Service")
        assert service.type == "class"
        assert service.full_name == "pkg.a.Service"
        assert service.docstring == "Does things."
        assert service.parent_class == "Base"
        assert service.implemented_interfaces == ["Base"]

    def test_method_parameters_and_calls(self, py_parser, tmp_path: Path):
        entities = py_parser.parse_code_entities(tmp_path / "pkg" / "a.py", SOURCE, tmp_path)

        run = next(e for e in entities if e.name == "run")
        assert run.type == "method"
        assert run.full_name == "pkg.a.Service.run"
        assert run.parent_class == "Service"
        assert run.return_type == "str"
        assert [p.name for p in run.parameters] == ["self", "x"]
        assert run.parameters[1].type == "int"
        assert run.parameters[1].default_value == "1"

        calls = {call.name: call for call in run.calls}
        assert calls["helper"].type == "function"
        assert calls["stop"].type == "method"
        assert calls["stop"].callee == "self.stop"

    def test_private_function_not_exported(self, py_parser, tmp_path: Path):
        entities = py_parser.parse_code_entities(tmp_path / "pkg" / "a.py", SOURCE, tmp_path)

        private = next(e for e in entities if e.name == "_private")
        assert private.type == "function"
        assert private.is_exported is False


class TestPythonImports:
    def test_absolute_and_relative_imports(self, py_parser, tmp_path: Path):
        imports = py_parser.parse_imports(tmp_path / "pkg" / "a.py", SOURCE, tmp_path)

        module_import = next(i for i in imports if i.type == "module")
        assert module_import.target_path == "os"

        relative = next(i for i in imports if i.type == "file")
        assert relative.target_path == (tmp_path / "pkg" / "b").resolve().as_posix()
        assert relative.original_specifier == ".b"
        assert relative.imported_symbols == ["helper"]

    def test_from_dot_import_name(self, py_parser, tmp_path: Path):
        (extracted,) = py_parser.parse_imports(tmp_path / "pkg" / "a.py", "from . import b\n", tmp_path)

        assert extracted.type == "file"
        assert extracted.target_path == (tmp_path / "pkg" / "b").resolve().as_posix()


DECORATED = '''import functools


@staticmethod
@functools.cache
def check(a, b):
    if a and b:
        return 1
    for item in a:
        pass
    return 0


class Service:
    def run(self):
        def helper():
            return 1
        return helper()
'''


class TestPythonParseOptions:
    def test_options_off_by_default(self, py_parser, tmp_path: Path):
        entities = py_parser.parse_code_entities(tmp_path / "pkg" / "d.py", DECORATED, tmp_path)

        check = next(e for e in entities if e.name == "check")
        assert check.complexity is None
        assert check.decorators is None

    def test_complexity(self, py_parser, tmp_path: Path):
        options = ParseOptions(calculate_complexity=True)

        entities = py_parser.parse_code_entities(tmp_path / "pkg" / "d.py", DECORATED, tmp_path, options)

        complexity = {e.name: e.complexity for e in entities if e.type in ("function", "method")}
        assert complexity == {"check": 4, "run": 1, "helper": 1}

    def test_decorators(self, py_parser, tmp_path: Path):
        options = ParseOptions(include_decorators=True)

        entities = py_parser.parse_code_entities(tmp_path / "pkg" / "d.py", DECORATED, tmp_path, options)

        check = next(e for e in entities if e.name == "check")
        assert check.decorators == ["staticmethod", "functools.cache"]

    def test_nested_function_keeps_enclosing_qualifier(self, py_parser, tmp_path: Path):
        entities = py_parser.parse_code_entities(tmp_path / "pkg" / "d.py", DECORATED, tmp_path)

        helper = next(e for e in entities if e.name == "helper")
        assert helper.type == "function"
        assert helper.full_name == "pkg.d.Service.run.helper"
        assert helper.parent_class is None

"""
Unit tests for the TypeScript / JavaScript parser.

Covers import extraction (static, re-export, dynamic, require), entity
extraction with class membership and calls, and project-root escapes.
"""

from pathlib import Path

import pytest

from agent_memory.parser.exceptions import ParseError, PathEscapeError
from agent_memory.parser.extractor import ParseOptions, get_language_parser


@pytest.fixture
def ts_parser():
    return get_language_parser("typescript")


def by_name(entities, name):
    return next(entity for entity in entities if entity.name == name)


class TestTypeScriptEntities:
    """Entity extraction from TypeScript sources."""

    def test_exported_class_with_method_call(self, ts_parser, tmp_path: Path):
        source = "export class Foo { bar() { baz(); } }"

        entities = ts_parser.parse_code_entities(tmp_path / "a.ts", source, tmp_path)

        foo = by_name(entities, "Foo")
        assert foo.type == "class"
        assert foo.full_name == "a.ts::Foo"
        assert foo.is_exported is True

        bar = by_name(entities, "bar")
        assert bar.type == "method"
        assert bar.full_name == "a.ts::Foo::bar"
        assert bar.parent_class == "Foo"
        assert [call.name for call in bar.calls] == ["baz"]

    def test_function_parameters_and_return_type(self, ts_parser, tmp_path: Path):
        source = "export function greet(name: string, times = 2): string { return name; }\n"

        entities = ts_parser.parse_code_entities(tmp_path / "greet.ts", source, tmp_path)

        greet = by_name(entities, "greet")
        assert greet.type == "function"
        assert greet.is_exported is True
        assert greet.return_type == "string"
        assert [p.name for p in greet.parameters] == ["name", "times"]
        assert greet.parameters[0].type == "string"
        assert greet.parameters[1].optional is True
        assert greet.parameters[1].default_value == "2"

    def test_arrow_function_named_from_declarator(self, ts_parser, tmp_path: Path):
        source = "const double = (x: number) => x * 2;\n"

        entities = ts_parser.parse_code_entities(tmp_path / "math.ts", source, tmp_path)

        double = by_name(entities, "double")
        assert double.type == "function"
        assert double.full_name == "math.ts::double"
        assert not any(entity.type == "variable" and entity.name == "double" for entity in entities)

    def test_interface_and_implements(self, ts_parser, tmp_path: Path):
        source = (
            "interface Shape { area(): number; }\n"
            "class Square extends Base implements Shape { area() { return 1; } }\n"
        )

        entities = ts_parser.parse_code_entities(tmp_path / "shapes.ts", source, tmp_path)

        assert by_name(entities, "Shape").type == "interface"
        square = by_name(entities, "Square")
        assert square.extended_classes == ["Base"]
        assert square.implemented_interfaces == ["Shape"]

    def test_jsdoc_becomes_docstring(self, ts_parser, tmp_path: Path):
        source = "/**\n * Adds numbers.\n * @param a first\n */\nfunction add(a: number) { return a; }\n"

        entities = ts_parser.parse_code_entities(tmp_path / "add.ts", source, tmp_path)

        add = by_name(entities, "add")
        assert add.docstring == "Adds numbers."
        assert add.doc_block.tags[0].tag == "param"

    def test_to_dict_uses_camel_case(self, ts_parser, tmp_path: Path):
        entities = ts_parser.parse_code_entities(tmp_path / "a.ts", "export class Foo {}", tmp_path)

        data = by_name(entities, "Foo").to_dict()

        assert data["fullName"] == "a.ts::Foo"
        assert data["isExported"] is True
        assert "parentClass" not in data

    def test_syntax_error_raises_parse_error(self, ts_parser, tmp_path: Path):
        with pytest.raises(ParseError):
            ts_parser.parse_code_entities(tmp_path / "broken.ts", "class {{{", tmp_path)


class TestTypeScriptImports:
    """Import extraction from TypeScript and JavaScript sources."""

    def test_local_and_package_imports(self, ts_parser, tmp_path: Path):
        source = "import { a } from './b';\nimport React from 'react';\n"

        imports = ts_parser.parse_imports(tmp_path / "a.ts", source, tmp_path)

        local, package = imports
        assert local.type == "file"
        assert local.target_path == (tmp_path / "b").resolve().as_posix()
        assert local.imported_symbols == ["a"]
        assert local.original_specifier == "./b"
        assert package.type == "module"
        assert package.target_path == "react"
        assert package.imported_symbols == ["default"]

    def test_type_only_and_namespace_imports(self, ts_parser, tmp_path: Path):
        source = "import type { Props } from './types';\nimport * as path from 'path';\n"

        type_import, namespace_import = ts_parser.parse_imports(tmp_path / "a.ts", source, tmp_path)

        assert type_import.is_type_only_import is True
        assert namespace_import.is_namespace_import is True
        assert namespace_import.imported_symbols == ["* as path"]

    def test_reexport(self, ts_parser, tmp_path: Path):
        source = "export { foo as bar } from './foo';\n"

        (reexport,) = ts_parser.parse_imports(tmp_path / "index.ts", source, tmp_path)

        assert reexport.is_re_export is True
        assert reexport.imported_symbols == ["bar"]

    def test_dynamic_import_and_require(self, tmp_path: Path):
        js_parser = get_language_parser("javascript")
        source = "const c = require('./c');\nasync function load() { return import('./d'); }\n"

        imports = js_parser.parse_imports(tmp_path / "main.js", source, tmp_path)

        required = next(i for i in imports if i.original_specifier == "./c")
        dynamic = next(i for i in imports if i.original_specifier == "./d")
        assert required.is_dynamic_import is False
        assert dynamic.is_dynamic_import is True

    def test_import_escaping_project_root_is_rejected(self, ts_parser, tmp_path: Path):
        project_root = tmp_path / "project"
        source = "import secret from '../../outside';\n"

        with pytest.raises(PathEscapeError):
            ts_parser.parse_imports(project_root / "src" / "a.ts", source, project_root)

    def test_without_project_root_relative_imports_resolve(self, ts_parser, tmp_path: Path):
        source = "import x from '../shared/x';\n"

        (extracted,) = ts_parser.parse_imports(tmp_path / "app" / "a.ts", source)

        assert extracted.target_path == (tmp_path / "shared" / "x").resolve().as_posix()


class TestTypeScriptParseOptions:
    SOURCE = """@Injectable()
class Handler {
  @Get('/items')
  @Auth()
  check(a: number[], b: boolean): number {
    if (a.length && b) {
      return 1;
    }
    for (const item of a) {
      log(item);
    }
    return b ? 1 : 0;
  }
}
"""

    def test_methods_report_class_export_status(self, ts_parser, tmp_path: Path):
        source = "export class Foo { bar() {} }\nclass Hidden { baz() {} }\n"

        entities = ts_parser.parse_code_entities(tmp_path / "a.ts", source, tmp_path)

        assert by_name(entities, "bar").is_exported is True
        assert by_name(entities, "baz").is_exported is False
        assert by_name(entities, "bar").to_dict()["isExported"] is True

    def test_options_off_by_default(self, ts_parser, tmp_path: Path):
        entities = ts_parser.parse_code_entities(tmp_path / "h.ts", self.SOURCE, tmp_path)

        check = by_name(entities, "check")
        assert check.complexity is None
        assert check.decorators is None

    def test_complexity_counts_branches_and_logical_operators(self, ts_parser, tmp_path: Path):
        options = ParseOptions(calculate_complexity=True)

        entities = ts_parser.parse_code_entities(tmp_path / "h.ts", self.SOURCE, tmp_path, options)

        # if, &&, for-of and the ternary on top of the base path
        assert by_name(entities, "check").complexity == 5

    def test_decorators_on_class_and_method(self, ts_parser, tmp_path: Path):
        options = ParseOptions(include_decorators=True)

        entities = ts_parser.parse_code_entities(tmp_path / "h.ts", self.SOURCE, tmp_path, options)

        assert by_name(entities, "Handler").decorators == ["Injectable()"]
        assert by_name(entities, "check").decorators == ["Get('/items')", "Auth()"]

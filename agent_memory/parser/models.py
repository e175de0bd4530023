"""
Language-neutral parser output.

Every language parser produces `ExtractedImport` and `ExtractedCodeEntity`
records. `to_dict()` renders them in the camelCase JSON shape consumed by
ingestion and any external tooling; keys whose value is None are omitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any


def _snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    return value


class _CamelCaseSerializable:
    """Mixin rendering dataclass fields as a camelCase dict."""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            data[_snake_to_camel(f.name)] = _serialize(value)
        return data


@dataclass
class ParameterInfo(_CamelCaseSerializable):
    name: str
    type: str | None = None
    optional: bool = False
    rest: bool = False
    default_value: str | None = None


@dataclass
class CallInfo(_CamelCaseSerializable):
    """A call or `new` expression attributed to its enclosing scope."""
    name: str
    callee: str
    is_new: bool = False
    type: str | None = None


@dataclass
class GenericTypeInfo(_CamelCaseSerializable):
    name: str
    constraint: str | None = None
    default: str | None = None


@dataclass
class DocBlockTag(_CamelCaseSerializable):
    tag: str
    type: str | None = None
    name: str | None = None
    description: str = ""


@dataclass
class DocBlock(_CamelCaseSerializable):
    summary: str = ""
    description: str = ""
    tags: list[DocBlockTag] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n\n".join(part for part in (self.summary, self.description) if part)


@dataclass
class ExtractedImport(_CamelCaseSerializable):
    """An import, re-export, include or dynamic import found in a file.

    Attributes:
        type: 'file' for same-project paths, 'module' for bare specifiers
        target_path: Resolved absolute path for local files, else the specifier
        original_import_string: Source text of the import statement
        imported_symbols: Imported names; empty for side-effect imports
    """
    type: str
    target_path: str
    original_import_string: str
    imported_symbols: list[str] = field(default_factory=list)
    is_dynamic_import: bool = False
    is_type_only_import: bool = False
    is_namespace_import: bool | None = None
    is_re_export: bool | None = None
    import_kind: str | None = None
    original_specifier: str | None = None
    start_line: int = 0
    end_line: int = 0


@dataclass
class ExtractedCodeEntity(_CamelCaseSerializable):
    """A declaration found in a file, normalised across languages.

    `full_name` is path qualified and becomes the graph node name when the
    entity is ingested.
    """
    type: str
    name: str
    full_name: str
    start_line: int
    end_line: int
    file_path: str
    containing_directory: str
    signature: str = ""
    is_exported: bool = False
    docstring: str | None = None
    doc_block: DocBlock | None = None
    parent_class: str | None = None
    namespace: str | None = None
    is_async: bool | None = None
    is_static: bool | None = None
    is_abstract: bool | None = None
    is_final: bool | None = None
    is_readonly: bool | None = None
    is_const: bool | None = None
    access_modifier: str | None = None
    type_annotation: str | None = None
    parameters: list[ParameterInfo] | None = None
    return_type: str | None = None
    calls: list[CallInfo] = field(default_factory=list)
    implemented_interfaces: list[str] | None = None
    extended_classes: list[str] | None = None
    extended_interfaces: list[str] | None = None
    generic_types: list[GenericTypeInfo] | None = None
    members: list[str] | None = None
    decorators: list[str] | None = None
    complexity: int | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class ParseResult:
    imports: list[ExtractedImport] = field(default_factory=list)
    entities: list[ExtractedCodeEntity] = field(default_factory=list)

    def copy(self) -> ParseResult:
        return ParseResult(imports=list(self.imports), entities=list(self.entities))

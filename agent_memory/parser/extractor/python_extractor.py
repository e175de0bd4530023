"""
Python parser using Tree-sitter.

Extracts:
  - imports (`import a as b`, `from m import x`, wildcard and relative imports)
  - classes (bases become `parentClass` / `implementedInterfaces`)
  - functions and methods (async, parameters, return type, decorators, calls)
  - module and class level assignments (variables and properties)
  - control flow statements (`if`, `for`, `while`, `try`, `with`)

Full names are dotted module paths: `pkg.module.Class.method`.

Python's Tree-sitter grammar reference:
  https://github.com/tree-sitter/tree-sitter-python/blob/master/grammar.js
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from agent_memory.parser.extractor.base_extractor import (
    ParseState,
    TreeSitterLanguageParser,
    VisitContext,
)
from agent_memory.parser.models import (
    CallInfo,
    ExtractedCodeEntity,
    ExtractedImport,
    ParameterInfo,
)

if TYPE_CHECKING:
    from tree_sitter import Node


CONTROL_FLOW_KEYWORDS = {
    "if_statement": "if",
    "for_statement": "for",
    "while_statement": "while",
    "try_statement": "try",
    "with_statement": "with",
}

COMPLEXITY_NODE_TYPES = frozenset({
    "if_statement",
    "elif_clause",
    "for_statement",
    "while_statement",
    "except_clause",
    "conditional_expression",
    "boolean_operator",
    "for_in_clause",
    "case_clause",
})


class PythonParser(TreeSitterLanguageParser):
    """Python-specific parser.

    Tree-sitter node types used:
      - class_definition / function_definition / decorated_definition
      - import_statement / import_from_statement / relative_import
      - expression_statement > assignment
      - call (function: identifier | attribute)
    """

    @property
    def language(self) -> str:
        return "python"

    def _initial_context(self, file_path: Path, project_root: Path | None) -> VisitContext:
        relative = self._relative_path(file_path, project_root)
        module = relative[:-3] if relative.endswith(".py") else relative
        return VisitContext(
            full_name_prefix=module.replace("/", "."),
            file_path=file_path,
            project_root=project_root,
        )

    def _visit_node(self, node: Node, ctx: VisitContext, state: ParseState) -> VisitContext:
        if node.type == "function_definition":
            ctx = replace(ctx, scope_id=node.id)

        if state.options.calculate_complexity and node.type in COMPLEXITY_NODE_TYPES:
            state.bump_complexity(ctx.scope_id)

        match node.type:
            case "import_statement":
                state.imports.extend(self._process_import(node, ctx, state.content))
            case "import_from_statement":
                state.imports.extend(self._process_from_import(node, ctx, state.content))
            case "call":
                self._collect_call(node, ctx, state)
            case "class_definition":
                return self._process_class(node, ctx, state)
            case "function_definition":
                function = self._process_function(node, ctx, state)
                # Nested definitions are qualified by the enclosing function
                return replace(ctx, full_name_prefix=function.full_name, class_name=None)
            case "assignment":
                self._process_assignment(node, ctx, state)
            case _ if node.type in CONTROL_FLOW_KEYWORDS:
                keyword = CONTROL_FLOW_KEYWORDS[node.type]
                self._create_entity(
                    node, ctx, state, "control_flow", f"{keyword}_{node.start_point[0] + 1}",
                    signature=self._extract_text(state.content, node).split("\n", 1)[0].strip(),
                    is_exported=False,
                )
        return ctx

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def _process_import(self, node: Node, ctx: VisitContext, content: bytes) -> list[ExtractedImport]:
        records: list[ExtractedImport] = []
        for name_node in node.children_by_field_name("name"):
            module, alias = self._import_name(name_node, content)
            records.append(self._new_import(node, content, "module", module, [alias or module]))
        return records

    def _process_from_import(self, node: Node, ctx: VisitContext, content: bytes) -> list[ExtractedImport]:
        module_node = node.child_by_field_name("module_name")
        if module_node is None:
            return []
        module_text = self._extract_text(content, module_node)

        names: list[tuple[str, str | None]] = [
            self._import_name(name_node, content) for name_node in node.children_by_field_name("name")
        ]
        if any(child.type == "wildcard_import" for child in node.named_children):
            names = [("*", None)]

        records: list[ExtractedImport] = []
        for name, alias in names:
            symbol = alias or name
            if module_node.type == "relative_import":
                specifier = self._relative_specifier(module_text, name)
                records.append(self._new_import(
                    node, content, "file", self._resolve_specifier(specifier, ctx), [symbol],
                    original_specifier=module_text,
                ))
            else:
                records.append(self._new_import(node, content, "module", module_text, [symbol]))
        return records

    def _relative_specifier(self, module_text: str, imported_name: str) -> str:
        """Turn `..pkg.mod` into `../pkg/mod` (or `./name` for `from . import name`)."""
        dots = len(module_text) - len(module_text.lstrip("."))
        module_part = module_text[dots:]
        prefix = "./" if dots == 1 else "../" * (dots - 1)
        if not module_part and imported_name != "*":
            module_part = imported_name
        return prefix + module_part.replace(".", "/") if module_part else prefix.rstrip("/") or "."

    def _import_name(self, node: Node, content: bytes) -> tuple[str, str | None]:
        if node.type == "aliased_import":
            name = self._extract_text(content, node.child_by_field_name("name"))
            alias = self._extract_text(content, node.child_by_field_name("alias"))
            return name, alias or None
        return self._extract_text(content, node), None

    def _new_import(
        self,
        node: Node,
        content: bytes,
        import_type: str,
        target: str,
        symbols: list[str],
        **extra,
    ) -> ExtractedImport:
        start_line, end_line = self._line_span(node)
        return ExtractedImport(
            type=import_type,
            target_path=target,
            original_import_string=self._extract_text(content, node),
            imported_symbols=symbols,
            start_line=start_line,
            end_line=end_line,
            **extra,
        )

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def _create_entity(
        self,
        node: Node,
        ctx: VisitContext,
        state: ParseState,
        entity_type: str,
        name: str,
        scope: bool = False,
        **extra,
    ) -> ExtractedCodeEntity:
        parts = [ctx.full_name_prefix, ctx.class_name, name]
        relative = self._relative_path(ctx.file_path, ctx.project_root)
        start_line, end_line = self._line_span(node)
        extra.setdefault("signature", self._get_signature(node, state.content))
        entity = ExtractedCodeEntity(
            type=entity_type,
            name=name,
            full_name=".".join(part for part in parts if part),
            start_line=start_line,
            end_line=end_line,
            file_path=relative,
            containing_directory=self._containing_directory(relative),
            **extra,
        )
        state.add_entity(entity, node.id if scope else None)
        return entity

    def _process_class(self, node: Node, ctx: VisitContext, state: ParseState) -> VisitContext:
        content = state.content
        name = self._extract_text(content, node.child_by_field_name("name"))
        bases: list[str] = []
        superclasses = node.child_by_field_name("superclasses")
        if superclasses is not None:
            bases = [
                self._extract_text(content, arg)
                for arg in superclasses.named_children
                if arg.type not in ("keyword_argument", "comment")
            ]

        self._create_entity(
            node, ctx, state, "class", name,
            is_exported=not name.startswith("_"),
            docstring=self._get_docstring(node, content),
            parent_class=bases[0] if bases else None,
            implemented_interfaces=bases,
            decorators=self._decorators(node, state),
        )
        class_name = f"{ctx.class_name}.{name}" if ctx.class_name else name
        return replace(ctx, class_name=class_name)

    def _process_function(self, node: Node, ctx: VisitContext, state: ParseState) -> ExtractedCodeEntity:
        content = state.content
        name = self._extract_text(content, node.child_by_field_name("name"))
        return_type = node.child_by_field_name("return_type")
        return self._create_entity(
            node, ctx, state, "method" if ctx.class_name else "function", name,
            scope=True,
            is_exported=not name.startswith("_"),
            docstring=self._get_docstring(node, content),
            parent_class=ctx.class_name,
            is_async=True if any(child.type == "async" for child in node.children) else None,
            parameters=self._parameters(node.child_by_field_name("parameters"), content),
            return_type=self._extract_text(content, return_type) if return_type is not None else None,
            decorators=self._decorators(node, state),
        )

    def _process_assignment(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        # Only module and class level bindings; locals are not entities
        if ctx.scope_id is not None or ctx.parent is None or ctx.parent.type != "expression_statement":
            return
        left = node.child_by_field_name("left")
        if left is None or left.type != "identifier":
            return
        content = state.content
        name = self._extract_text(content, left)
        annotation = node.child_by_field_name("type")
        in_class = ctx.class_name is not None
        self._create_entity(
            node, ctx, state, "property" if in_class else "variable", name,
            is_exported=not name.startswith("_"),
            parent_class=ctx.class_name,
            type_annotation=self._extract_text(content, annotation) if annotation is not None else None,
            is_const=True if name.isupper() else None,
        )

    def _collect_call(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        function = node.child_by_field_name("function")
        if function is None or ctx.scope_id is None:
            return
        content = state.content
        if function.type == "identifier":
            name = self._extract_text(content, function)
            state.add_call(ctx.scope_id, CallInfo(name=name, callee=name, type="function"))
        elif function.type == "attribute":
            state.add_call(ctx.scope_id, CallInfo(
                name=self._extract_text(content, function.child_by_field_name("attribute")),
                callee=self._extract_text(content, function),
                type="method",
            ))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parameters(self, node: Node | None, content: bytes) -> list[ParameterInfo]:
        if node is None:
            return []
        params: list[ParameterInfo] = []
        for param in node.named_children:
            match param.type:
                case "identifier":
                    params.append(ParameterInfo(name=self._extract_text(content, param)))
                case "typed_parameter":
                    inner = param.named_children[0] if param.named_children else param
                    rest = inner.type in ("list_splat_pattern", "dictionary_splat_pattern")
                    params.append(ParameterInfo(
                        name=self._splat_name(inner, content),
                        type=self._extract_text(content, param.child_by_field_name("type")) or None,
                        rest=rest,
                    ))
                case "default_parameter" | "typed_default_parameter":
                    type_node = param.child_by_field_name("type")
                    params.append(ParameterInfo(
                        name=self._extract_text(content, param.child_by_field_name("name")),
                        type=self._extract_text(content, type_node) if type_node is not None else None,
                        optional=True,
                        default_value=self._extract_text(content, param.child_by_field_name("value")),
                    ))
                case "list_splat_pattern" | "dictionary_splat_pattern":
                    params.append(ParameterInfo(name=self._splat_name(param, content), rest=True))
        return params

    def _splat_name(self, node: Node, content: bytes) -> str:
        return self._extract_text(content, node).lstrip("*")

    def _decorators(self, node: Node, state: ParseState) -> list[str] | None:
        if not state.options.include_decorators:
            return None
        parent = node.parent
        if parent is None or parent.type != "decorated_definition":
            return None
        return [
            self._extract_text(state.content, child).lstrip("@").strip()
            for child in parent.named_children
            if child.type == "decorator"
        ]

    def _get_signature(self, node: Node, content: bytes) -> str:
        """Definition header up to the body, or the first line of the node."""
        body = node.child_by_field_name("body")
        if body is None:
            return self._extract_text(content, node).split("\n", 1)[0].strip()
        header = content[node.start_byte:body.start_byte].decode("utf-8", errors="replace")
        return " ".join(header.split()).rstrip(":").strip()

    def _get_docstring(self, node: Node, content: bytes) -> str | None:
        """Return the docstring of a class or function body, without quotes."""
        body = node.child_by_field_name("body")
        if body is None:
            return None
        for stmt in body.named_children:
            if stmt.type == "comment":
                continue
            if stmt.type == "expression_statement" and stmt.named_children:
                expr = stmt.named_children[0]
                if expr.type == "string":
                    docstring = self._extract_text(content, expr).lstrip("rRbBuUfF")
                    if docstring[:3] in ('"""', "'''"):
                        return docstring[3:-3].strip()
                    return docstring[1:-1].strip()
            # First non-string statement means no docstring
            break
        return None

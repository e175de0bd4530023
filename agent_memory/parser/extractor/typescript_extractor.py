"""
TypeScript / JavaScript parser using Tree-sitter.

Handles `.ts .tsx .mts .cts` with the TypeScript grammars and
`.js .jsx .mjs .cjs` with the JavaScript grammar. Extracts:
  - imports (static, type-only, namespace, side-effect), re-exports,
    dynamic `import()` and CommonJS `require()`
  - classes, functions, arrow/function expressions, methods, interfaces,
    type aliases, enums, variables and class properties
  - JSDoc blocks, decorators, calls and McCabe complexity per scope

Grammar references:
  https://github.com/tree-sitter/tree-sitter-typescript
  https://github.com/tree-sitter/tree-sitter-javascript
"""

from __future__ import annotations

import re
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from agent_memory.parser.extractor.base_extractor import (
    ParseState,
    TreeSitterLanguageParser,
    VisitContext,
)
from agent_memory.parser.import_resolution import is_local_specifier
from agent_memory.parser.models import (
    CallInfo,
    DocBlock,
    DocBlockTag,
    ExtractedCodeEntity,
    ExtractedImport,
    GenericTypeInfo,
    ParameterInfo,
)

if TYPE_CHECKING:
    from tree_sitter import Node


FUNCTION_SCOPE_TYPES = frozenset({
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
})

COMPLEXITY_NODE_TYPES = frozenset({
    "if_statement",
    "ternary_expression",
    "switch_case",
    "for_statement",
    "for_in_statement",
    "while_statement",
    "do_statement",
    "catch_clause",
})

LOGICAL_OPERATORS = frozenset({"&&", "||", "??"})

# Declarations whose leading JSDoc sits before the wrapper, not the node itself
DOC_WRAPPER_TYPES = frozenset({"export_statement", "lexical_declaration", "variable_declaration"})

JSDOC_TAG_RE = re.compile(r"^@(\w+)\s*(?:\{([^}]+)\})?\s*([$\w]+)?\s*(.*)")


class TypeScriptParser(TreeSitterLanguageParser):
    """Parser for TypeScript sources (and JavaScript through the subclass).

    Tree-sitter node types used:
      - import_statement / import_clause / named_imports / namespace_import
      - export_statement / export_clause / export_specifier
      - class_declaration / abstract_class_declaration / class / class_heritage
      - function_declaration / arrow_function / function_expression / method_definition
      - interface_declaration / type_alias_declaration / enum_declaration
      - variable_declarator / public_field_definition / field_definition
    """

    @property
    def language(self) -> str:
        return "typescript"

    def _initial_context(self, file_path: Path, project_root: Path | None) -> VisitContext:
        return VisitContext(
            full_name_prefix=self._relative_path(file_path, project_root),
            file_path=file_path,
            project_root=project_root,
        )

    def _visit_node(self, node: Node, ctx: VisitContext, state: ParseState) -> VisitContext:
        if node.type in FUNCTION_SCOPE_TYPES:
            ctx = replace(ctx, scope_id=node.id)

        if state.options.calculate_complexity:
            self._count_complexity(node, ctx, state)
        self._collect_call(node, ctx, state)

        match node.type:
            case "import_statement":
                state.imports.extend(self._process_import(node, ctx, state.content))
            case "export_statement":
                reexport = self._process_reexport(node, ctx, state.content)
                if reexport is not None:
                    state.imports.append(reexport)
                return replace(ctx, is_exported=True)
            case "call_expression":
                dynamic = self._process_dynamic_import(node, ctx, state.content)
                if dynamic is not None:
                    state.imports.append(dynamic)
            case "class_declaration" | "abstract_class_declaration" | "class":
                return self._process_class(node, ctx, state)
            case "function_declaration" | "generator_function_declaration":
                self._process_function_declaration(node, ctx, state)
                return replace(ctx, is_exported=False)
            case "arrow_function" | "function_expression" | "function" | "generator_function":
                self._process_function_expression(node, ctx, state)
                return replace(ctx, is_exported=False)
            case "method_definition":
                self._process_method(node, ctx, state)
                return replace(ctx, is_exported=False)
            case "interface_declaration":
                self._process_interface(node, ctx, state)
            case "type_alias_declaration":
                self._process_type_alias(node, ctx, state)
            case "enum_declaration":
                self._process_enum(node, ctx, state)
            case "variable_declarator":
                self._process_variable_declarator(node, ctx, state)
            case "public_field_definition" | "field_definition":
                self._process_property(node, ctx, state)
        return ctx

    # ------------------------------------------------------------------
    # Calls and complexity
    # ------------------------------------------------------------------

    def _collect_call(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        if ctx.scope_id is None:
            return
        if node.type == "call_expression":
            function = node.child_by_field_name("function")
            if function is None or function.type == "import":
                return
            callee = self._identifier_name(function, state.content)
            if callee:
                state.add_call(
                    ctx.scope_id,
                    CallInfo(name=callee.split(".")[-1], callee=callee, is_new=False),
                )
        elif node.type == "new_expression":
            callee = self._identifier_name(node.child_by_field_name("constructor"), state.content)
            if callee:
                state.add_call(ctx.scope_id, CallInfo(name=callee, callee=callee, is_new=True))

    def _count_complexity(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        if node.type in COMPLEXITY_NODE_TYPES:
            state.bump_complexity(ctx.scope_id)
        elif node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type in LOGICAL_OPERATORS:
                state.bump_complexity(ctx.scope_id)

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def _string_value(self, node: Node | None, content: bytes) -> str | None:
        if node is None or node.type not in ("string", "template_string"):
            return None
        text = self._extract_text(content, node)
        if node.type == "template_string" and "${" in text:
            return None
        return text[1:-1]

    def _import_type(self, specifier: str) -> str:
        return "file" if is_local_specifier(specifier) else "module"

    def _new_import(
        self,
        node: Node,
        ctx: VisitContext,
        content: bytes,
        specifier: str,
        symbols: list[str],
        **extra,
    ) -> ExtractedImport:
        start_line, end_line = self._line_span(node)
        return ExtractedImport(
            type=self._import_type(specifier),
            target_path=self._resolve_specifier(specifier, ctx),
            original_import_string=self._extract_text(content, node),
            imported_symbols=symbols,
            original_specifier=specifier,
            start_line=start_line,
            end_line=end_line,
            **extra,
        )

    def _process_import(self, node: Node, ctx: VisitContext, content: bytes) -> list[ExtractedImport]:
        specifier = self._string_value(node.child_by_field_name("source"), content)
        if specifier is None:
            return []

        type_only = any(child.type == "type" for child in node.children)
        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if clause is None:
            return [self._new_import(node, ctx, content, specifier, [], is_type_only_import=type_only)]

        records: list[ExtractedImport] = []
        for part in clause.named_children:
            if part.type == "identifier":
                records.append(self._new_import(
                    node, ctx, content, specifier, ["default"],
                    is_type_only_import=type_only,
                ))
            elif part.type == "namespace_import":
                alias = next((c for c in part.named_children if c.type == "identifier"), None)
                records.append(self._new_import(
                    node, ctx, content, specifier,
                    [f"* as {self._extract_text(content, alias)}"],
                    is_type_only_import=type_only,
                    is_namespace_import=True,
                ))
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name = self._extract_text(content, spec.child_by_field_name("name"))
                    spec_type_only = type_only or any(c.type == "type" for c in spec.children)
                    records.append(self._new_import(
                        node, ctx, content, specifier, [name],
                        is_type_only_import=spec_type_only,
                    ))
        return records

    def _process_reexport(self, node: Node, ctx: VisitContext, content: bytes) -> ExtractedImport | None:
        specifier = self._string_value(node.child_by_field_name("source"), content)
        if specifier is None:
            return None

        symbols: list[str] = []
        type_only = any(child.type == "type" for child in node.children)
        clause = next((c for c in node.named_children if c.type == "export_clause"), None)
        if clause is None:
            symbols = ["*"]
        else:
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                alias = spec.child_by_field_name("alias")
                exported = alias if alias is not None else spec.child_by_field_name("name")
                symbols.append(self._extract_text(content, exported))

        return self._new_import(
            node, ctx, content, specifier, symbols,
            is_type_only_import=type_only,
            is_re_export=True,
            import_kind="type" if type_only else "value",
        )

    def _process_dynamic_import(self, node: Node, ctx: VisitContext, content: bytes) -> ExtractedImport | None:
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is None or arguments is None or not arguments.named_children:
            return None

        is_dynamic = function.type == "import"
        is_require = function.type == "identifier" and self._extract_text(content, function) == "require"
        if not (is_dynamic or is_require):
            return None

        specifier = self._string_value(arguments.named_children[0], content)
        if specifier is None:
            return None
        return self._new_import(
            node, ctx, content, specifier, [],
            is_dynamic_import=is_dynamic,
            import_kind="value",
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
        body: Node | None = None,
        signature: str | None = None,
        scope: bool = False,
        **extra,
    ) -> ExtractedCodeEntity:
        prefix = ctx.full_name_prefix
        class_part = f"::{ctx.class_name}" if ctx.class_name else ""
        start_line, end_line = self._line_span(node)
        doc_block = self._find_doc_block(node, state.content)
        if state.options.include_decorators:
            decorators = self._decorators(node, state.content)
            if decorators:
                extra["decorators"] = decorators

        entity = ExtractedCodeEntity(
            type=entity_type,
            name=name,
            full_name=f"{prefix}{class_part}::{name}",
            start_line=start_line,
            end_line=end_line,
            file_path=prefix,
            containing_directory=self._containing_directory(prefix),
            signature=signature if signature is not None else self._signature(state.content, node, body),
            doc_block=doc_block,
            docstring=doc_block.text or None if doc_block else None,
            **extra,
        )
        state.add_entity(entity, node.id if scope else None)
        return entity

    def _process_class(self, node: Node, ctx: VisitContext, state: ParseState) -> VisitContext:
        content = state.content
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            name = self._extract_text(content, name_node)
        else:
            (line, col), (end_line, end_col) = node.start_point, node.end_point
            name = f"AnonymousClass_{line + 1}_{col}_{end_line + 1}_{end_col}"

        extended: list[str] = []
        implemented: list[str] = []
        heritage = next((c for c in node.named_children if c.type == "class_heritage"), None)
        if heritage is not None:
            for clause in heritage.named_children:
                if clause.type == "extends_clause":
                    extended.extend(
                        self._extract_text(content, c)
                        for c in clause.named_children
                        if c.type != "type_arguments"
                    )
                elif clause.type == "implements_clause":
                    implemented.extend(self._extract_text(content, c) for c in clause.named_children)
                else:
                    # JavaScript grammar puts the superclass expression directly here
                    extended.append(self._extract_text(content, clause))

        self._create_entity(
            node, ctx, state, "class", name,
            body=node.child_by_field_name("body"),
            is_exported=ctx.is_exported,
            is_abstract=node.type == "abstract_class_declaration" or None,
            extended_classes=extended,
            implemented_interfaces=implemented,
            generic_types=self._generic_types(node, content),
        )
        # Members report the export status of their class
        return replace(ctx, class_name=name)

    def _process_function_declaration(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        self._create_function_entity(node, ctx, state, "function", self._extract_text(state.content, name_node))

    def _process_function_expression(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        name = self._function_expression_name(node, ctx, state.content)
        if name:
            self._create_function_entity(node, ctx, state, "function", name)

    def _create_function_entity(
        self,
        node: Node,
        ctx: VisitContext,
        state: ParseState,
        entity_type: str,
        name: str,
        **extra,
    ) -> None:
        content = state.content
        body = node.child_by_field_name("body")
        signature = None
        if node.type == "arrow_function":
            arrow = next((c for c in node.children if c.type == "=>"), None)
            if arrow is not None:
                signature = content[node.start_byte:arrow.end_byte].decode("utf-8", errors="replace").strip()
        self._create_entity(
            node, ctx, state, entity_type, name,
            body=body,
            signature=signature,
            scope=True,
            is_exported=extra.pop("is_exported", ctx.is_exported),
            is_async=self._has_token(node, "async"),
            parameters=self._parameters(node, content),
            return_type=self._type_annotation(node.child_by_field_name("return_type"), content),
            generic_types=self._generic_types(node, content),
            **extra,
        )

    def _function_expression_name(self, node: Node, ctx: VisitContext, content: bytes) -> str | None:
        """Name an anonymous function from where it appears."""
        name_node = node.child_by_field_name("name")
        if name_node is not None and node.type != "arrow_function":
            return self._extract_text(content, name_node)

        parent, grand_parent = ctx.parent, ctx.grand_parent
        if parent is None:
            return None

        match parent.type:
            case "variable_declarator":
                target = parent.child_by_field_name("name")
                if target is not None and target.type == "identifier":
                    return self._extract_text(content, target)
            case "pair":
                return self._property_key_name(parent.child_by_field_name("key"), content)
            case "public_field_definition" | "field_definition":
                key = parent.child_by_field_name("name") or parent.child_by_field_name("property")
                return self._property_key_name(key, content)
            case "array":
                if grand_parent is not None and grand_parent.type == "variable_declarator":
                    target = grand_parent.child_by_field_name("name")
                    if target is not None and target.type == "identifier":
                        index = self._child_index(parent, node)
                        return f"{self._extract_text(content, target)}[{index}]"
            case "arguments":
                if grand_parent is not None and grand_parent.type == "call_expression":
                    callee = self._identifier_name(grand_parent.child_by_field_name("function"), content)
                    return f"{callee or 'anonymous'}_arg{self._child_index(parent, node)}"
            case "assignment_expression":
                left = parent.child_by_field_name("left")
                if left is not None and left.type in ("identifier", "member_expression"):
                    return self._identifier_name(left, content) or None
        return None

    def _process_method(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        name = self._property_key_name(node.child_by_field_name("name"), state.content)
        if not name:
            return
        self._create_function_entity(
            node, ctx, state, "method", name,
            parent_class=ctx.class_name,
            is_static=self._has_token(node, "static"),
            access_modifier=self._accessibility(node, state.content),
        )

    def _process_interface(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        content = state.content
        extended: list[str] = []
        for clause in node.named_children:
            if clause.type == "extends_type_clause":
                extended.extend(self._extract_text(content, c) for c in clause.named_children)
        self._create_entity(
            node, ctx, state, "interface",
            self._extract_text(content, node.child_by_field_name("name")),
            body=node.child_by_field_name("body"),
            is_exported=ctx.is_exported,
            extended_interfaces=extended,
            generic_types=self._generic_types(node, content),
        )

    def _process_type_alias(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        content = state.content
        self._create_entity(
            node, ctx, state, "type_alias",
            self._extract_text(content, node.child_by_field_name("name")),
            is_exported=ctx.is_exported,
            type_annotation=self._extract_text(content, node.child_by_field_name("value")) or None,
            generic_types=self._generic_types(node, content),
        )

    def _process_enum(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        content = state.content
        members: list[str] = []
        body = node.child_by_field_name("body")
        if body is not None:
            for member in body.named_children:
                if member.type == "enum_assignment":
                    members.append(self._property_key_name(member.child_by_field_name("name"), content))
                elif member.type in ("property_identifier", "string"):
                    members.append(self._property_key_name(member, content))
        self._create_entity(
            node, ctx, state, "enum",
            self._extract_text(content, node.child_by_field_name("name")),
            body=body,
            is_exported=ctx.is_exported,
            members=members,
            is_const=self._has_token(node, "const"),
        )

    def _process_variable_declarator(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        declaration = ctx.parent
        if declaration is None or declaration.type not in ("lexical_declaration", "variable_declaration"):
            return
        value = node.child_by_field_name("value")
        if value is not None and value.type in ("arrow_function", "function_expression", "function"):
            return

        content = state.content
        kind_node = declaration.child_by_field_name("kind")
        kind = self._extract_text(content, kind_node) if kind_node is not None else "var"
        type_annotation = self._type_annotation(node.child_by_field_name("type"), content)
        for name in self._pattern_names(node.child_by_field_name("name"), content):
            self._create_entity(
                node, ctx, state, "variable", name,
                is_exported=ctx.is_exported,
                is_const=kind == "const",
                type_annotation=type_annotation,
            )

    def _process_property(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        content = state.content
        key = node.child_by_field_name("name") or node.child_by_field_name("property")
        name = self._property_key_name(key, content)
        if not name:
            return
        self._create_entity(
            node, ctx, state, "property", name,
            parent_class=ctx.class_name,
            is_static=self._has_token(node, "static"),
            is_readonly=self._has_token(node, "readonly"),
            access_modifier=self._accessibility(node, content),
            type_annotation=self._type_annotation(node.child_by_field_name("type"), content),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _identifier_name(self, node: Node | None, content: bytes) -> str:
        if node is None:
            return ""
        match node.type:
            case (
                "identifier"
                | "property_identifier"
                | "private_property_identifier"
                | "type_identifier"
                | "shorthand_property_identifier"
                | "statement_identifier"
                | "this"
                | "super"
                | "nested_identifier"
                | "number"
            ):
                return self._extract_text(content, node)
            case "string":
                return self._extract_text(content, node)[1:-1]
            case "member_expression":
                obj = self._identifier_name(node.child_by_field_name("object"), content)
                prop = self._identifier_name(node.child_by_field_name("property"), content)
                return f"{obj}.{prop}" if obj and prop else prop or obj
            case "call_expression":
                return self._identifier_name(node.child_by_field_name("function"), content)
            case "parenthesized_expression" | "non_null_expression":
                inner = node.named_children[0] if node.named_children else None
                return self._identifier_name(inner, content)
            case _:
                return ""

    def _property_key_name(self, node: Node | None, content: bytes) -> str:
        if node is None:
            return ""
        if node.type == "computed_property_name":
            inner = self._extract_text(content, node)
            return inner if inner.startswith("[") else f"[{inner}]"
        return self._identifier_name(node, content)

    def _pattern_names(self, node: Node | None, content: bytes) -> list[str]:
        """Identifiers bound by a declarator name, including destructuring."""
        if node is None:
            return []
        match node.type:
            case "identifier" | "shorthand_property_identifier_pattern":
                return [self._extract_text(content, node)]
            case "pair_pattern":
                return self._pattern_names(node.child_by_field_name("value"), content)
            case "object_assignment_pattern" | "assignment_pattern":
                return self._pattern_names(node.child_by_field_name("left"), content)
            case "object_pattern" | "array_pattern" | "rest_pattern":
                names: list[str] = []
                for child in node.named_children:
                    names.extend(self._pattern_names(child, content))
                return names
            case _:
                return []

    def _child_index(self, parent: Node, node: Node) -> int:
        siblings = [c for c in parent.named_children if c.type != "comment"]
        for index, sibling in enumerate(siblings):
            if sibling.id == node.id:
                return index
        return 0

    def _has_token(self, node: Node, token: str) -> bool | None:
        return True if any(child.type == token for child in node.children) else None

    def _accessibility(self, node: Node, content: bytes) -> str | None:
        modifier = next((c for c in node.children if c.type == "accessibility_modifier"), None)
        return self._extract_text(content, modifier) if modifier is not None else None

    def _type_annotation(self, node: Node | None, content: bytes) -> str | None:
        if node is None:
            return None
        return self._extract_text(content, node).lstrip(":").strip() or None

    def _parameters(self, node: Node, content: bytes) -> list[ParameterInfo]:
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            # Single bare arrow parameter: `x => x * 2`
            single = node.child_by_field_name("parameter")
            return [ParameterInfo(name=self._extract_text(content, single))] if single is not None else []

        params: list[ParameterInfo] = []
        for param in params_node.named_children:
            match param.type:
                case "required_parameter" | "optional_parameter":
                    pattern = param.child_by_field_name("pattern")
                    value = param.child_by_field_name("value")
                    rest = pattern is not None and pattern.type == "rest_pattern"
                    if rest and pattern.named_children:
                        pattern = pattern.named_children[0]
                    params.append(ParameterInfo(
                        name=self._extract_text(content, pattern),
                        type=self._type_annotation(param.child_by_field_name("type"), content),
                        optional=param.type == "optional_parameter" or value is not None,
                        rest=rest,
                        default_value=self._extract_text(content, value) if value is not None else None,
                    ))
                case "identifier" | "object_pattern" | "array_pattern":
                    params.append(ParameterInfo(name=self._extract_text(content, param)))
                case "assignment_pattern":
                    params.append(ParameterInfo(
                        name=self._extract_text(content, param.child_by_field_name("left")),
                        optional=True,
                        default_value=self._extract_text(content, param.child_by_field_name("right")),
                    ))
                case "rest_pattern":
                    inner = param.named_children[0] if param.named_children else param
                    params.append(ParameterInfo(name=self._extract_text(content, inner), rest=True))
        return params

    def _generic_types(self, node: Node, content: bytes) -> list[GenericTypeInfo] | None:
        type_params = node.child_by_field_name("type_parameters")
        if type_params is None:
            return None
        generics: list[GenericTypeInfo] = []
        for param in type_params.named_children:
            if param.type != "type_parameter":
                continue
            constraint = param.child_by_field_name("constraint")
            default = param.child_by_field_name("value")
            generics.append(GenericTypeInfo(
                name=self._extract_text(content, param.child_by_field_name("name")),
                constraint=self._strip_keyword(self._extract_text(content, constraint), "extends") if constraint else None,
                default=self._extract_text(content, default).lstrip("=").strip() if default else None,
            ))
        return generics

    def _strip_keyword(self, text: str, keyword: str) -> str:
        text = text.strip()
        return text[len(keyword):].strip() if text.startswith(keyword) else text

    def _decorators(self, node: Node, content: bytes) -> list[str]:
        holders = [node]
        if node.parent is not None and node.parent.type == "export_statement":
            holders.append(node.parent)
        decorators: list[str] = []
        for holder in holders:
            for child in holder.children:
                if child.type == "decorator":
                    decorators.append(self._extract_text(content, child).lstrip("@").strip())
        # Method decorators are siblings inside the class body
        sibling = node.prev_named_sibling
        while sibling is not None and sibling.type == "decorator":
            decorators.insert(0, self._extract_text(content, sibling).lstrip("@").strip())
            sibling = sibling.prev_named_sibling
        return decorators

    def _find_doc_block(self, node: Node, content: bytes) -> DocBlock | None:
        candidate: Node | None = node
        while candidate is not None:
            sibling = candidate.prev_named_sibling
            while sibling is not None and sibling.type == "decorator":
                sibling = sibling.prev_named_sibling
            if sibling is not None:
                if sibling.type != "comment":
                    return None
                text = self._extract_text(content, sibling)
                if text.startswith("/**"):
                    return self._parse_jsdoc(text)
                return None
            parent = candidate.parent
            if parent is None or parent.type not in DOC_WRAPPER_TYPES:
                return None
            candidate = parent
        return None

    def _parse_jsdoc(self, comment: str) -> DocBlock:
        body = comment[3:]
        if body.endswith("*/"):
            body = body[:-2]
        lines = [re.sub(r"^\s*\*\s?", "", line).rstrip() for line in body.split("\n")]

        text_lines: list[str] = []
        tags: list[DocBlockTag] = []
        for line in lines:
            stripped = line.strip()
            match = JSDOC_TAG_RE.match(stripped)
            if match:
                tags.append(DocBlockTag(
                    tag=match.group(1),
                    type=match.group(2),
                    name=match.group(3),
                    description=match.group(4).strip(),
                ))
            elif tags and stripped:
                tags[-1].description = f"{tags[-1].description} {stripped}".strip()
            elif not tags:
                text_lines.append(stripped)

        paragraphs = "\n".join(text_lines).strip().split("\n\n", 1)
        summary = " ".join(paragraphs[0].split())
        description = paragraphs[1].strip() if len(paragraphs) > 1 else ""
        return DocBlock(summary=summary, description=description, tags=tags)


class JavaScriptParser(TypeScriptParser):
    """Parser for JavaScript sources; grammar chosen by file extension."""

    @property
    def language(self) -> str:
        return "javascript"

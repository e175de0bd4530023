"""
PHP parser using Tree-sitter.

Extracts:
  - `use` statements (class, function and const imports, grouped uses)
  - `include` / `require` (`_once`) with literal paths as file imports
  - classes, interfaces, traits, enums, functions, methods, properties,
    constants and closures, with namespaces resolved to fully-qualified names

Full names are `relative/path.php::Namespace\\Class[::member]`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING

from agent_memory.parser.extractor.base_extractor import (
    ParseOptions,
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


FUNCTION_SCOPE_TYPES = frozenset({
    "function_definition",
    "method_declaration",
    "anonymous_function",
    "anonymous_function_creation_expression",
    "arrow_function",
})

COMPLEXITY_NODE_TYPES = frozenset({
    "if_statement",
    "else_if_clause",
    "for_statement",
    "foreach_statement",
    "while_statement",
    "do_statement",
    "case_statement",
    "catch_clause",
    "conditional_expression",
})

LOGICAL_OPERATORS = frozenset({"&&", "||", "??", "and", "or"})

INCLUDE_TYPES = frozenset({
    "include_expression",
    "include_once_expression",
    "require_expression",
    "require_once_expression",
})

CLASS_LIKE_TYPES = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "trait_declaration": "trait",
    "enum_declaration": "enum",
}

SPECIAL_CLASS_NAMES = frozenset({"self", "static", "parent"})


@dataclass
class PhpNamespaceResolver:
    """Tracks the current namespace and `use` aliases while walking a file."""

    namespace: str = ""
    class_aliases: dict[str, str] = field(default_factory=dict)
    function_aliases: dict[str, str] = field(default_factory=dict)
    const_aliases: dict[str, str] = field(default_factory=dict)

    def enter_namespace(self, namespace: str) -> None:
        self.namespace = namespace.strip("\\")
        self.class_aliases.clear()
        self.function_aliases.clear()
        self.const_aliases.clear()

    def add_use(self, fqn: str, alias: str | None = None, kind: str = "class") -> str:
        fqn = fqn.strip("\\")
        alias = alias or fqn.rsplit("\\", 1)[-1]
        match kind:
            case "function":
                self.function_aliases[alias] = fqn
            case "const":
                self.const_aliases[alias] = fqn
            case _:
                self.class_aliases[alias] = fqn
        return alias

    def qualify(self, name: str) -> str:
        """Fully-qualified name for a declaration in the current namespace."""
        return f"{self.namespace}\\{name}" if self.namespace else name

    def resolve_class(self, name: str) -> str:
        if name.startswith("\\"):
            return name[1:]
        if name.lower() in SPECIAL_CLASS_NAMES:
            return name
        first, _, rest = name.partition("\\")
        if first.lower() == "namespace" and rest:
            return self.qualify(rest)
        if first in self.class_aliases:
            resolved = self.class_aliases[first]
            return f"{resolved}\\{rest}" if rest else resolved
        return self.qualify(name)

    def resolve_function(self, name: str) -> str:
        if name.startswith("\\"):
            return name[1:]
        if "\\" in name:
            return self.resolve_class(name)
        return self.function_aliases.get(name, name)


@dataclass
class PhpParseState(ParseState):
    resolver: PhpNamespaceResolver = field(default_factory=PhpNamespaceResolver)


class PhpParser(TreeSitterLanguageParser):
    """PHP-specific parser.

    Tree-sitter node types used:
      - namespace_definition / namespace_use_declaration / namespace_use_clause
      - class_declaration / interface_declaration / trait_declaration / enum_declaration
      - function_definition / method_declaration / property_declaration / const_declaration
      - anonymous_function / arrow_function
      - include_expression / require_expression (and `_once` forms)
    """

    @property
    def language(self) -> str:
        return "php"

    def _new_state(self, content: bytes, options: ParseOptions) -> ParseState:
        return PhpParseState(content=content, options=options)

    def _initial_context(self, file_path: Path, project_root: Path | None) -> VisitContext:
        return VisitContext(
            full_name_prefix=self._relative_path(file_path, project_root),
            file_path=file_path,
            project_root=project_root,
        )

    def _visit_node(self, node: Node, ctx: VisitContext, state: PhpParseState) -> VisitContext:
        if node.type in FUNCTION_SCOPE_TYPES:
            ctx = replace(ctx, scope_id=node.id)

        if state.options.calculate_complexity:
            self._count_complexity(node, ctx, state)
        self._collect_call(node, ctx, state)

        match node.type:
            case "namespace_definition":
                name = node.child_by_field_name("name")
                state.resolver.enter_namespace(self._extract_text(state.content, name) if name else "")
            case "namespace_use_declaration":
                state.imports.extend(self._process_use(node, state))
            case _ if node.type in INCLUDE_TYPES:
                include = self._process_include(node, ctx, state.content)
                if include is not None:
                    state.imports.append(include)
            case _ if node.type in CLASS_LIKE_TYPES:
                return self._process_class_like(node, ctx, state)
            case "function_definition":
                self._process_function(node, ctx, state)
            case "anonymous_function" | "anonymous_function_creation_expression" | "arrow_function":
                self._process_closure(node, ctx, state)
            case "method_declaration":
                self._process_method(node, ctx, state)
            case "property_declaration":
                self._process_property(node, ctx, state)
            case "const_declaration":
                self._process_constant(node, ctx, state)
        return ctx

    # ------------------------------------------------------------------
    # Calls and complexity
    # ------------------------------------------------------------------

    def _collect_call(self, node: Node, ctx: VisitContext, state: PhpParseState) -> None:
        if ctx.scope_id is None:
            return
        content = state.content
        match node.type:
            case "function_call_expression":
                function = node.child_by_field_name("function")
                if function is None or function.type not in ("name", "qualified_name"):
                    return
                callee = self._extract_text(content, function)
                resolved = state.resolver.resolve_function(callee)
                state.add_call(ctx.scope_id, CallInfo(
                    name=resolved.rsplit("\\", 1)[-1], callee=resolved, type="function",
                ))
            case "member_call_expression" | "nullsafe_member_call_expression":
                name = self._extract_text(content, node.child_by_field_name("name"))
                obj = self._extract_text(content, node.child_by_field_name("object"))
                arrow = "?->" if node.type.startswith("nullsafe") else "->"
                if name:
                    state.add_call(ctx.scope_id, CallInfo(name=name, callee=f"{obj}{arrow}{name}", type="method"))
            case "scoped_call_expression":
                name = self._extract_text(content, node.child_by_field_name("name"))
                scope = self._extract_text(content, node.child_by_field_name("scope"))
                if name:
                    scope = state.resolver.resolve_class(scope) if scope else scope
                    state.add_call(ctx.scope_id, CallInfo(name=name, callee=f"{scope}::{name}", type="method"))
            case "object_creation_expression":
                class_node = next(
                    (c for c in node.named_children if c.type in ("name", "qualified_name")), None
                )
                if class_node is not None:
                    resolved = state.resolver.resolve_class(self._extract_text(content, class_node))
                    state.add_call(ctx.scope_id, CallInfo(name=resolved, callee=resolved, is_new=True))

    def _count_complexity(self, node: Node, ctx: VisitContext, state: ParseState) -> None:
        if node.type in COMPLEXITY_NODE_TYPES:
            state.bump_complexity(ctx.scope_id)
        elif node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type.lower() in LOGICAL_OPERATORS:
                state.bump_complexity(ctx.scope_id)

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def _process_use(self, node: Node, state: PhpParseState) -> list[ExtractedImport]:
        content = state.content
        kind = "class"
        for child in node.children:
            if child.type in ("function", "const"):
                kind = child.type

        prefix = ""
        clauses: list[Node] = []
        for child in node.named_children:
            if child.type == "namespace_use_clause":
                clauses.append(child)
            elif child.type in ("namespace_name", "namespace_name_as_prefix"):
                prefix = self._extract_text(content, child).strip("\\")
            elif child.type == "namespace_use_group":
                clauses.extend(
                    c for c in child.named_children
                    if c.type in ("namespace_use_clause", "namespace_use_group_clause")
                )

        records: list[ExtractedImport] = []
        start_line, end_line = self._line_span(node)
        for clause in clauses:
            name, alias = self._use_clause_parts(clause, content)
            if not name:
                continue
            fqn = f"{prefix}\\{name}" if prefix else name
            clause_kind = kind
            for child in clause.children:
                if child.type in ("function", "const"):
                    clause_kind = child.type
            local_name = state.resolver.add_use(fqn, alias, clause_kind)
            records.append(ExtractedImport(
                type="module",
                target_path=fqn.strip("\\"),
                original_import_string=self._extract_text(content, node),
                imported_symbols=[local_name],
                import_kind=clause_kind,
                start_line=start_line,
                end_line=end_line,
            ))
        return records

    def _use_clause_parts(self, clause: Node, content: bytes) -> tuple[str, str | None]:
        alias_node = clause.child_by_field_name("alias")
        name = ""
        alias = self._extract_text(content, alias_node) if alias_node is not None else None
        for child in clause.named_children:
            if alias_node is not None and child.id == alias_node.id:
                continue
            if child.type in ("name", "qualified_name", "namespace_name") and not name:
                name = self._extract_text(content, child)
            elif child.type == "namespace_aliasing_clause":
                alias_name = next((c for c in child.named_children if c.type == "name"), None)
                alias = self._extract_text(content, alias_name) if alias_name is not None else alias
        return name, alias

    def _process_include(self, node: Node, ctx: VisitContext, content: bytes) -> ExtractedImport | None:
        literal = next((c for c in node.named_children if c.type in ("string", "encapsed_string")), None)
        if literal is None or any(c.type in ("variable_name", "expression") for c in literal.named_children):
            return None
        path = self._extract_text(content, literal)[1:-1]
        if not path:
            return None
        specifier = path if path.startswith((".", "/")) else f"./{path}"
        start_line, end_line = self._line_span(node)
        return ExtractedImport(
            type="file",
            target_path=self._resolve_specifier(specifier, ctx),
            original_import_string=self._extract_text(content, node),
            imported_symbols=[],
            is_dynamic_import=True,
            original_specifier=path,
            start_line=start_line,
            end_line=end_line,
        )

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def _create_entity(
        self,
        node: Node,
        ctx: VisitContext,
        state: PhpParseState,
        entity_type: str,
        name: str,
        qualified: str,
        scope: bool = False,
        **extra,
    ) -> ExtractedCodeEntity:
        relative = ctx.full_name_prefix
        start_line, end_line = self._line_span(node)
        if state.options.include_decorators:
            attributes = self._attributes(node, state.content)
            if attributes:
                extra["decorators"] = attributes
        entity = ExtractedCodeEntity(
            type=entity_type,
            name=name,
            full_name=f"{relative}::{qualified}",
            start_line=start_line,
            end_line=end_line,
            file_path=relative,
            containing_directory=self._containing_directory(relative),
            signature=self._signature(state.content, node, node.child_by_field_name("body")),
            docstring=self._doc_comment(node, state.content),
            namespace=state.resolver.namespace or None,
            **extra,
        )
        state.add_entity(entity, node.id if scope else None)
        return entity

    def _process_class_like(self, node: Node, ctx: VisitContext, state: PhpParseState) -> VisitContext:
        content = state.content
        resolver = state.resolver
        name = self._extract_text(content, node.child_by_field_name("name"))
        fqn = resolver.qualify(name)

        extended: list[str] = []
        implemented: list[str] = []
        for child in node.named_children:
            if child.type == "base_clause":
                extended = [resolver.resolve_class(self._extract_text(content, c)) for c in child.named_children]
            elif child.type == "class_interface_clause":
                implemented = [resolver.resolve_class(self._extract_text(content, c)) for c in child.named_children]

        entity_type = CLASS_LIKE_TYPES[node.type]
        members: list[str] | None = None
        if entity_type == "enum":
            body = node.child_by_field_name("body")
            members = [
                self._extract_text(content, case.child_by_field_name("name"))
                for case in (body.named_children if body is not None else [])
                if case.type == "enum_case"
            ]

        is_interface = entity_type == "interface"
        self._create_entity(
            node, ctx, state, entity_type, name, fqn,
            is_exported=True,
            parent_class=extended[0] if extended and not is_interface else None,
            extended_classes=extended if not is_interface else None,
            extended_interfaces=extended if is_interface else None,
            implemented_interfaces=implemented,
            is_abstract=self._has_child(node, "abstract_modifier"),
            is_final=self._has_child(node, "final_modifier"),
            members=members,
        )
        return replace(ctx, class_name=fqn)

    def _process_function(self, node: Node, ctx: VisitContext, state: PhpParseState) -> None:
        content = state.content
        name = self._extract_text(content, node.child_by_field_name("name"))
        self._create_entity(
            node, ctx, state, "function", name, state.resolver.qualify(name),
            scope=True,
            is_exported=True,
            parameters=self._parameters(node, content),
            return_type=self._return_type(node, content),
        )

    def _process_closure(self, node: Node, ctx: VisitContext, state: PhpParseState) -> None:
        name = f"closure_{node.start_point[0] + 1}"
        qualified = f"{ctx.class_name}::{name}" if ctx.class_name else state.resolver.qualify(name)
        self._create_entity(
            node, ctx, state, "function", name, qualified,
            scope=True,
            is_exported=False,
            is_static=self._has_token(node, "static"),
            parameters=self._parameters(node, state.content),
            return_type=self._return_type(node, state.content),
        )

    def _process_method(self, node: Node, ctx: VisitContext, state: PhpParseState) -> None:
        content = state.content
        name = self._extract_text(content, node.child_by_field_name("name"))
        class_fqn = ctx.class_name or ""
        self._create_entity(
            node, ctx, state, "method", name, f"{class_fqn}::{name}",
            scope=True,
            parent_class=class_fqn.rsplit("\\", 1)[-1] or None,
            access_modifier=self._visibility(node, content),
            is_static=self._has_child(node, "static_modifier"),
            is_abstract=self._has_child(node, "abstract_modifier"),
            is_final=self._has_child(node, "final_modifier"),
            parameters=self._parameters(node, content),
            return_type=self._return_type(node, content),
        )

    def _process_property(self, node: Node, ctx: VisitContext, state: PhpParseState) -> None:
        content = state.content
        class_fqn = ctx.class_name or ""
        type_node = node.child_by_field_name("type")
        for element in node.named_children:
            if element.type != "property_element":
                continue
            variable = self._first_descendant(element, "variable_name")
            if variable is None:
                continue
            name = self._extract_text(content, variable).lstrip("$")
            self._create_entity(
                element, ctx, state, "property", name, f"{class_fqn}::${name}",
                parent_class=class_fqn.rsplit("\\", 1)[-1] or None,
                access_modifier=self._visibility(node, content),
                is_static=self._has_child(node, "static_modifier"),
                is_readonly=self._has_child(node, "readonly_modifier"),
                type_annotation=self._extract_text(content, type_node) if type_node is not None else None,
            )

    def _process_constant(self, node: Node, ctx: VisitContext, state: PhpParseState) -> None:
        content = state.content
        for element in node.named_children:
            if element.type != "const_element":
                continue
            name_node = next((c for c in element.named_children if c.type == "name"), None)
            if name_node is None:
                continue
            name = self._extract_text(content, name_node)
            if ctx.class_name:
                qualified = f"{ctx.class_name}::{name}"
                parent = ctx.class_name.rsplit("\\", 1)[-1]
            else:
                qualified = state.resolver.qualify(name)
                parent = None
            self._create_entity(
                element, ctx, state, "variable", name, qualified,
                is_exported=True,
                is_const=True,
                parent_class=parent,
                access_modifier=self._visibility(node, content),
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parameters(self, node: Node, content: bytes) -> list[ParameterInfo]:
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return []
        params: list[ParameterInfo] = []
        for param in params_node.named_children:
            if param.type not in ("simple_parameter", "variadic_parameter", "property_promotion_parameter"):
                continue
            name_node = param.child_by_field_name("name") or self._first_descendant(param, "variable_name")
            type_node = param.child_by_field_name("type")
            default = param.child_by_field_name("default_value")
            params.append(ParameterInfo(
                name=self._extract_text(content, name_node).lstrip("$"),
                type=self._extract_text(content, type_node) if type_node is not None else None,
                optional=default is not None,
                rest=param.type == "variadic_parameter",
                default_value=self._extract_text(content, default) if default is not None else None,
            ))
        return params

    def _return_type(self, node: Node, content: bytes) -> str | None:
        return_type = node.child_by_field_name("return_type")
        if return_type is None:
            return None
        return self._extract_text(content, return_type).lstrip(":").strip() or None

    def _visibility(self, node: Node, content: bytes) -> str | None:
        modifier = next((c for c in node.named_children if c.type == "visibility_modifier"), None)
        return self._extract_text(content, modifier) if modifier is not None else None

    def _has_child(self, node: Node, child_type: str) -> bool | None:
        return True if any(c.type == child_type for c in node.children) else None

    def _has_token(self, node: Node, token: str) -> bool | None:
        return True if any(c.type == token for c in node.children) else None

    def _first_descendant(self, node: Node, node_type: str) -> Node | None:
        stack = list(reversed(node.named_children))
        while stack:
            current = stack.pop()
            if current.type == node_type:
                return current
            stack.extend(reversed(current.named_children))
        return None

    def _attributes(self, node: Node, content: bytes) -> list[str]:
        attributes: list[str] = []
        for child in node.named_children:
            if child.type != "attribute_list":
                continue
            for group in child.named_children:
                for attribute in group.named_children:
                    if attribute.type == "attribute":
                        attributes.append(self._extract_text(content, attribute))
        return attributes

    def _doc_comment(self, node: Node, content: bytes) -> str | None:
        sibling = node.prev_named_sibling
        if sibling is None or sibling.type != "comment":
            return None
        text = self._extract_text(content, sibling).strip()
        if text.startswith("/*"):
            text = text[3:] if text.startswith("/**") else text[2:]
            if text.endswith("*/"):
                text = text[:-2]
            lines = [line.strip().lstrip("*").strip() for line in text.split("\n")]
        else:
            lines = [text.lstrip("/#").strip()]
        return "\n".join(line for line in lines if line) or None

"""
Mermaid diagram generation for knowledge graphs.

Three modes, chosen from `MermaidOptions`:
  - natural-language: nodes returned by the NL query engine
  - query: keyword search seeds expanded by bounded traversal
  - overview: most connected nodes plus entry-point files

Every mode applies the relation filters, then truncates to
`max_nodes` / `max_edges`. Empty results and failures render a placeholder
diagram instead of raising.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Optional

from agent_memory.graph.graph_types import GraphRelation
from agent_memory.models.schemas.kg import MermaidOptions
from agent_memory.services.kg.exceptions import KnowledgeGraphError
from agent_memory.utils.logging import get_logger

if TYPE_CHECKING:
    from agent_memory.services.kg.knowledge_graph_manager import KnowledgeGraphManager

logger = get_logger(__name__)

NODE_STYLES = {
    "file": "fill:#e1f5fe,stroke:#0277bd,stroke-width:2px,color:#000",
    "directory": "fill:#f3e5f5,stroke:#7b1fa2,stroke-width:2px,color:#000",
    "function": "fill:#e8f5e8,stroke:#2e7d32,stroke-width:2px,color:#000",
    "class": "fill:#fff3e0,stroke:#ef6c00,stroke-width:2px,color:#000",
    "interface": "fill:#fce4ec,stroke:#c2185b,stroke-width:2px,color:#000",
    "module": "fill:#e0f2f1,stroke:#00695c,stroke-width:2px,color:#000",
    "variable": "fill:#f1f8e9,stroke:#558b2f,stroke-width:2px,color:#000",
}
DEFAULT_NODE_STYLE = "fill:#f5f5f5,stroke:#424242,stroke-width:2px,color:#000"

NODE_ICONS = {
    "file": "📄",
    "directory": "📁",
    "function": "⚡",
    "class": "🏗️",
    "interface": "📋",
    "module": "📦",
    "variable": "💾",
}
DEFAULT_NODE_ICON = "⭕"

# (open, close) bracket pairs
NODE_SHAPES = {
    "file": ("[", "]"),
    "directory": ("(", ")"),
    "function": ("(", ")"),
    "class": ("[", "]"),
    "interface": ("{", "}"),
    "module": ("[", "]"),
    "variable": ("((", "))"),
}
DEFAULT_NODE_SHAPE = ("[", "]")

RELATION_LABELS = {
    "imports_file": "imports",
    "imports_module": "imports",
    "calls_function": "calls",
    "calls_method": "calls",
    "extends_class": "extends",
    "implements_interface": "implements",
    "uses_class": "uses",
    "defines_function": "defines",
    "contains_file": "contains",
    "contains_item": "contains",
}

RELATION_ARROWS = {
    "imports": "-.->",
    "calls": "-->",
    "extends": "==>",
    "implements": "==>",
    "uses": "-->",
    "defines": "-->",
    "contains": "-->",
}
DEFAULT_ARROW = "-->"

OVERVIEW_TITLE = "Overview: High-connectivity nodes and entry points"
ENTRY_POINT_TYPES = ["file", "module"]
ENTRY_POINT_FRAGMENTS = ["index", "main", "app"]
MAX_SEED_NODES = 5
MAX_EXPANSION_DEPTH = 2

LEGEND = """
    subgraph Legend["🗂️ Legend"]
        direction LR
        L1["📄 File"]
        L2["⚡ Function"]
        L3["🏗️ Class"]
        L4["📦 Module"]

        style L1 fill:#e1f5fe,stroke:#0277bd
        style L2 fill:#e8f5e8,stroke:#2e7d32
        style L3 fill:#fff3e0,stroke:#ef6c00
        style L4 fill:#e0f2f1,stroke:#00695c
    end
"""


def sanitize_node_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_]", "_", name)[:50]


def escape_label(text: str) -> str:
    return text.replace('"', "#quot;").replace("\n", " ")


def display_name(full_name: str) -> str:
    """Shorten long paths to their last two segments and long names to 30 chars."""
    if "/" in full_name:
        parts = full_name.split("/")
        if len(parts) > 2:
            return f".../{'/'.join(parts[-2:])}"
    return full_name[:27] + "..." if len(full_name) > 30 else full_name


def simplify_relation_type(relation_type: str) -> str:
    return RELATION_LABELS.get(relation_type, relation_type)


def directory_of(name: str) -> str:
    return name.rsplit("/", 1)[0] if "/" in name else "."


def empty_graph(layout_direction: str, message: str) -> str:
    return (
        f"graph {layout_direction}\n"
        f'    empty["{escape_label(message)}"]\n'
        "    style empty fill:#ffebee,stroke:#c62828,stroke-width:2px"
    )


def render_mermaid(
    nodes: list[dict[str, Any]],
    relations: list[GraphRelation],
    layout_direction: str = "TD",
    include_legend: bool = True,
    group_by_directory: bool = False,
    query: Optional[str] = None,
) -> str:
    """Render nodes (`node_id`/`name`/`entityType` dicts) and relations as Mermaid."""
    lines = [f"graph {layout_direction}"]
    if query:
        lines.append(f"    %% Query: {query.replace(chr(10), ' ')}")

    node_ids = {node["node_id"]: f"n{index}_{sanitize_node_name(node['name'])}" for index, node in enumerate(nodes)}

    def declaration(node: dict[str, Any]) -> str:
        entity_type = node["entityType"]
        open_bracket, close_bracket = NODE_SHAPES.get(entity_type, DEFAULT_NODE_SHAPE)
        icon = NODE_ICONS.get(entity_type, DEFAULT_NODE_ICON)
        label = escape_label(f"{icon} {display_name(node['name'])}")
        return f'{node_ids[node["node_id"]]}{open_bracket}"{label}"{close_bracket}'

    if group_by_directory:
        groups: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for node in nodes:
            groups[directory_of(node["name"])].append(node)
        for directory, members in groups.items():
            label = "Root" if directory == "." else directory
            lines.append(f'    subgraph dir_{sanitize_node_name(directory)}["📁 {escape_label(label)}"]')
            lines.extend(f"        {declaration(node)}" for node in members)
            lines.append("    end")
    else:
        lines.extend(f"    {declaration(node)}" for node in nodes)

    for node in nodes:
        style = NODE_STYLES.get(node["entityType"], DEFAULT_NODE_STYLE)
        lines.append(f"    style {node_ids[node['node_id']]} {style}")

    rendered_relations = 0
    for relation in relations:
        from_id = node_ids.get(relation.from_node_id)
        to_id = node_ids.get(relation.to_node_id)
        if from_id is None or to_id is None:
            continue
        label = simplify_relation_type(relation.relation_type)
        arrow = RELATION_ARROWS.get(label, DEFAULT_ARROW)
        lines.append(f'    {from_id} {arrow}|"{escape_label(label)}"| {to_id}')
        rendered_relations += 1

    diagram = "\n".join(lines) + "\n"
    if include_legend:
        diagram += LEGEND
    diagram += f"\n    %% Generated: {len(nodes)} nodes, {rendered_relations} relations\n"
    return diagram


class MermaidGraphGenerator:
    def __init__(self, manager: KnowledgeGraphManager):
        self.manager = manager

    async def generate(self, agent_id: str, options: MermaidOptions) -> str:
        direction = options.layout_direction
        try:
            if options.natural_language_query:
                nodes, relations = await self._natural_language_selection(agent_id, options)
                title = options.natural_language_query
            elif options.query:
                nodes, relations = await self._query_selection(agent_id, options)
                if not nodes:
                    return empty_graph(direction, f"No nodes found for query: '{options.query}'")
                title = options.query
            else:
                nodes, relations = await self._overview_selection(agent_id, options)
                if not nodes:
                    return empty_graph(direction, "Graph is empty")
                title = OVERVIEW_TITLE

            relations = self._apply_filters(nodes, relations, options)
            nodes = nodes[: options.max_nodes]
            kept = {node["node_id"] for node in nodes}
            relations = [
                relation for relation in relations
                if relation.from_node_id in kept and relation.to_node_id in kept
            ][: options.max_edges]

            if not nodes:
                return empty_graph(direction, "No nodes found matching criteria")

            logger.info(f"Generating Mermaid graph: {len(nodes)} nodes, {len(relations)} relations")
            return render_mermaid(
                nodes,
                relations,
                layout_direction=direction,
                include_legend=options.include_legend,
                group_by_directory=options.group_by_directory,
                query=title,
            )
        except KnowledgeGraphError as e:
            logger.error(f"Mermaid generation failed for agent_id={agent_id}: {e}", exc_info=True)
            return empty_graph(direction, f"Error: {e.message}")

    async def _natural_language_selection(
        self,
        agent_id: str,
        options: MermaidOptions,
    ) -> tuple[list[dict[str, Any]], list[GraphRelation]]:
        answer = await self.manager.query_natural_language(agent_id, options.natural_language_query)
        nodes = [item for item in answer["results"] if "node_id" in item]
        relations = await self.manager.relations_between(agent_id, {node["node_id"] for node in nodes})
        return nodes, relations

    async def _query_selection(
        self,
        agent_id: str,
        options: MermaidOptions,
    ) -> tuple[list[dict[str, Any]], list[GraphRelation]]:
        seeds = await self.manager.search_nodes(agent_id, options.query)
        if not seeds:
            return [], []

        expanded: dict[str, dict[str, Any]] = {}
        for seed in seeds[: max(1, options.max_nodes // 2)]:
            expanded[seed["node_id"]] = seed

        depth = min(options.depth, MAX_EXPANSION_DEPTH)
        for seed in list(expanded.values())[:MAX_SEED_NODES]:
            traversal = await self.manager.traverse_graph(agent_id, seed["name"], [], depth)
            for node in traversal["nodes"]:
                if len(expanded) >= options.max_nodes:
                    break
                expanded.setdefault(node["node_id"], node)

        nodes = list(expanded.values())
        relations = await self.manager.relations_between(agent_id, set(expanded))
        return nodes, relations

    async def _overview_selection(
        self,
        agent_id: str,
        options: MermaidOptions,
    ) -> tuple[list[dict[str, Any]], list[GraphRelation]]:
        hubs = await self.manager.top_connected_nodes(agent_id, max(1, int(options.max_nodes * 0.7)))
        entry_points = await self.manager.find_nodes(
            agent_id,
            ENTRY_POINT_TYPES,
            ENTRY_POINT_FRAGMENTS,
            max(1, int(options.max_nodes * 0.3)),
        )

        selected: dict[str, dict[str, Any]] = {}
        for node in hubs + entry_points:
            selected.setdefault(node["node_id"], node)
        nodes = list(selected.values())[: options.max_nodes]

        relations = await self.manager.relations_between(agent_id, {node["node_id"] for node in nodes})
        return nodes, relations

    @staticmethod
    def _apply_filters(
        nodes: list[dict[str, Any]],
        relations: list[GraphRelation],
        options: MermaidOptions,
    ) -> list[GraphRelation]:
        if options.exclude_relation_types:
            excluded_types = set(options.exclude_relation_types)
            relations = [r for r in relations if r.relation_type not in excluded_types]

        if options.exclude_imports:
            excluded_targets = set(options.exclude_imports)
            names = {node["node_id"]: node["name"] for node in nodes}
            relations = [
                r for r in relations
                if "import" not in r.relation_type or names.get(r.to_node_id) not in excluded_targets
            ]
        return relations

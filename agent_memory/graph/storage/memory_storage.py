"""In-process graph storage backed by dictionaries."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

from agent_memory.graph.graph_types import GraphNode, GraphRelation
from agent_memory.graph.storage.base import NODE_UPDATABLE_FIELDS, GraphStorage
from agent_memory.graph.storage.exceptions import StorageError


class InMemoryGraphStorage(GraphStorage):
    """Dictionary-backed storage; one asyncio lock serialises mutations.

    Reads return copies so callers cannot mutate stored state.
    """

    def __init__(self):
        self._nodes: dict[str, dict[str, GraphNode]] = defaultdict(dict)
        self._relations: dict[str, dict[str, GraphRelation]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def insert_nodes(self, agent_id: str, nodes: list[GraphNode]) -> None:
        async with self._lock:
            store = self._nodes[agent_id]
            for node in nodes:
                if node.id in store:
                    raise StorageError(f"Duplicate node id {node.id}", "insert_nodes", agent_id)
            for node in nodes:
                stored = node.copy()
                stored.agent_id = agent_id
                store[node.id] = stored

    async def insert_relations(self, agent_id: str, relations: list[GraphRelation]) -> None:
        async with self._lock:
            nodes = self._nodes[agent_id]
            store = self._relations[agent_id]
            for relation in relations:
                if relation.from_node_id not in nodes or relation.to_node_id not in nodes:
                    raise StorageError(
                        f"Relation {relation.id} references a missing node",
                        "insert_relations",
                        agent_id,
                    )
            for relation in relations:
                stored = relation.copy()
                stored.agent_id = agent_id
                store[relation.id] = stored

    async def get_nodes_by_name(self, agent_id: str, names: list[str]) -> list[GraphNode]:
        wanted = set(names)
        return [
            node.copy() for node in self._ordered_nodes(agent_id) if node.name in wanted
        ]

    async def get_nodes_by_ids(self, agent_id: str, node_ids: list[str]) -> list[GraphNode]:
        store = self._nodes.get(agent_id, {})
        return [store[node_id].copy() for node_id in node_ids if node_id in store]

    async def update_node(
        self,
        agent_id: str,
        node_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        unknown = set(fields) - NODE_UPDATABLE_FIELDS
        if unknown:
            raise StorageError(f"Cannot update fields {sorted(unknown)}", "update_node", agent_id)
        async with self._lock:
            node = self._nodes.get(agent_id, {}).get(node_id)
            if node is None:
                return False
            if expected_version is not None and node.version != expected_version:
                return False
            for key, value in fields.items():
                setattr(node, key, list(value) if key == "observations" else value)
            return True

    async def delete_node(self, agent_id: str, node_id: str) -> bool:
        async with self._lock:
            if self._nodes.get(agent_id, {}).pop(node_id, None) is None:
                return False
            relations = self._relations.get(agent_id, {})
            for relation_id in [
                rid for rid, rel in relations.items()
                if node_id in (rel.from_node_id, rel.to_node_id)
            ]:
                del relations[relation_id]
            return True

    async def delete_relation(self, agent_id: str, relation_id: str) -> bool:
        async with self._lock:
            return self._relations.get(agent_id, {}).pop(relation_id, None) is not None

    async def get_all_nodes(self, agent_id: str) -> list[GraphNode]:
        return [node.copy() for node in self._ordered_nodes(agent_id)]

    async def get_all_relations(self, agent_id: str) -> list[GraphRelation]:
        return [relation.copy() for relation in self._ordered_relations(agent_id)]

    async def find_relations(
        self,
        agent_id: str,
        from_node_id: str,
        to_node_id: str,
        relation_type: str | None = None,
    ) -> list[GraphRelation]:
        return [
            relation.copy()
            for relation in self._ordered_relations(agent_id)
            if relation.from_node_id == from_node_id
            and relation.to_node_id == to_node_id
            and (relation_type is None or relation.relation_type == relation_type)
        ]

    async def get_incident_relations(
        self,
        agent_id: str,
        node_ids: set[str],
        relation_types: list[str],
    ) -> list[GraphRelation]:
        types = set(relation_types)
        return [
            relation.copy()
            for relation in self._ordered_relations(agent_id)
            if (relation.from_node_id in node_ids or relation.to_node_id in node_ids)
            and (not types or relation.relation_type in types)
        ]

    async def search_nodes(
        self,
        agent_id: str,
        term: str,
        entity_type: str | None = None,
        observations_only: bool = False,
        limit: int = 100,
    ) -> list[GraphNode]:
        needle = term.lower()
        matches: list[GraphNode] = []
        for node in self._ordered_nodes(agent_id):
            if entity_type is not None and node.entity_type != entity_type:
                continue
            in_observations = any(needle in obs.lower() for obs in node.observations)
            in_fields = needle in node.name.lower() or needle in node.entity_type.lower()
            if not needle or in_observations or (in_fields and not observations_only):
                matches.append(node.copy())
                if len(matches) >= limit:
                    break
        return matches

    async def rank_nodes_by_degree(self, agent_id: str, limit: int) -> list[tuple[GraphNode, int]]:
        degree: dict[str, int] = defaultdict(int)
        for relation in self._ordered_relations(agent_id):
            degree[relation.from_node_id] += 1
            degree[relation.to_node_id] += 1
        store = self._nodes.get(agent_id, {})
        ranked = sorted(
            ((store[node_id], count) for node_id, count in degree.items() if node_id in store),
            key=lambda item: (-item[1], item[0].name),
        )
        return [(node.copy(), count) for node, count in ranked[:limit]]

    async def find_nodes(
        self,
        agent_id: str,
        entity_types: list[str],
        name_fragments: list[str],
        limit: int,
    ) -> list[GraphNode]:
        types = set(entity_types)
        fragments = [fragment.lower() for fragment in name_fragments]
        matches: list[GraphNode] = []
        for node in self._ordered_nodes(agent_id):
            if types and node.entity_type not in types:
                continue
            if fragments and not any(fragment in node.name.lower() for fragment in fragments):
                continue
            matches.append(node.copy())
            if len(matches) >= limit:
                break
        return matches

    def _ordered_nodes(self, agent_id: str) -> list[GraphNode]:
        return sorted(self._nodes.get(agent_id, {}).values(), key=lambda n: n.timestamp)

    def _ordered_relations(self, agent_id: str) -> list[GraphRelation]:
        return sorted(self._relations.get(agent_id, {}).values(), key=lambda r: r.timestamp)

"""
Graph storage contract.

Every operation takes the agent id and never reads or writes another agent's
data. Name lookups are exact and case-sensitive; names are not unique, so
callers take the first match (oldest node first).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from agent_memory.graph.graph_types import GraphNode, GraphRelation, TraversalResult

NODE_UPDATABLE_FIELDS = frozenset({"name", "entity_type", "observations", "timestamp", "version"})


class GraphStorage(ABC):
    """Abstract base class for graph persistence backends.

    Subclasses implement the primitive reads and writes; breadth-first
    traversal is implemented here on top of `get_incident_relations` so every
    backend shares the same visiting rules.
    """

    @abstractmethod
    async def insert_nodes(self, agent_id: str, nodes: list[GraphNode]) -> None:
        pass

    @abstractmethod
    async def insert_relations(self, agent_id: str, relations: list[GraphRelation]) -> None:
        pass

    @abstractmethod
    async def get_nodes_by_name(self, agent_id: str, names: list[str]) -> list[GraphNode]:
        """Exact-name lookup; misses are silently dropped."""
        pass

    @abstractmethod
    async def get_nodes_by_ids(self, agent_id: str, node_ids: list[str]) -> list[GraphNode]:
        """Nodes for the given ids, in the order of `node_ids`."""
        pass

    async def get_node_by_id(self, agent_id: str, node_id: str) -> GraphNode | None:
        nodes = await self.get_nodes_by_ids(agent_id, [node_id])
        return nodes[0] if nodes else None

    @abstractmethod
    async def update_node(
        self,
        agent_id: str,
        node_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        """Apply `fields` to a node.

        When `expected_version` is given the update only happens if the stored
        version still matches (compare-and-swap).

        Returns:
            True if a node was updated
        """
        pass

    @abstractmethod
    async def delete_node(self, agent_id: str, node_id: str) -> bool:
        """Delete a node together with its incident relations."""
        pass

    @abstractmethod
    async def delete_relation(self, agent_id: str, relation_id: str) -> bool:
        pass

    @abstractmethod
    async def get_all_nodes(self, agent_id: str) -> list[GraphNode]:
        pass

    @abstractmethod
    async def get_all_relations(self, agent_id: str) -> list[GraphRelation]:
        pass

    @abstractmethod
    async def find_relations(
        self,
        agent_id: str,
        from_node_id: str,
        to_node_id: str,
        relation_type: str | None = None,
    ) -> list[GraphRelation]:
        pass

    @abstractmethod
    async def get_incident_relations(
        self,
        agent_id: str,
        node_ids: set[str],
        relation_types: list[str],
    ) -> list[GraphRelation]:
        """Relations touching any of `node_ids` in either direction.

        An empty `relation_types` list means all types.
        """
        pass

    @abstractmethod
    async def search_nodes(
        self,
        agent_id: str,
        term: str,
        entity_type: str | None = None,
        observations_only: bool = False,
        limit: int = 100,
    ) -> list[GraphNode]:
        """Case-insensitive substring search over name, entity type and observations."""
        pass

    @abstractmethod
    async def rank_nodes_by_degree(self, agent_id: str, limit: int) -> list[tuple[GraphNode, int]]:
        """Connected nodes ordered by relation count, highest first."""
        pass

    @abstractmethod
    async def find_nodes(
        self,
        agent_id: str,
        entity_types: list[str],
        name_fragments: list[str],
        limit: int,
    ) -> list[GraphNode]:
        """Nodes of the given types whose name contains any fragment (case-insensitive)."""
        pass

    async def close(self) -> None:
        return None

    async def traverse_graph(
        self,
        agent_id: str,
        start_node_id: str,
        relation_types: list[str] | None = None,
        max_depth: int = 1,
    ) -> TraversalResult:
        """Breadth-first expansion from `start_node_id` following edges both ways.

        Depth 0 returns only the start node. Each node and relation appears
        at most once, so cycles terminate.
        """
        start = await self.get_node_by_id(agent_id, start_node_id)
        if start is None:
            return TraversalResult()

        types = list(relation_types or [])
        visited: set[str] = {start.id}
        seen_relations: set[str] = set()
        result = TraversalResult(nodes=[start])
        frontier: set[str] = {start.id}

        for _ in range(max(0, max_depth)):
            if not frontier:
                break
            discovered: list[str] = []
            for relation in await self.get_incident_relations(agent_id, frontier, types):
                if relation.id in seen_relations:
                    continue
                seen_relations.add(relation.id)
                result.relations.append(relation)
                for endpoint in (relation.from_node_id, relation.to_node_id):
                    if endpoint not in visited:
                        visited.add(endpoint)
                        discovered.append(endpoint)
            result.nodes.extend(await self.get_nodes_by_ids(agent_id, discovered))
            frontier = set(discovered)

        return result

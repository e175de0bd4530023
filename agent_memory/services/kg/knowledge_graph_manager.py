"""
Knowledge Graph Manager

Orchestrates the entity/relation lifecycle on top of a `GraphStorage`
backend. Entities are addressed by name; when several nodes share a name the
oldest one is used.

Batch operations never fail as a whole for a missing entity: each item gets
its own result dict with `success` and, on failure, an `error` message.
Storage faults are wrapped into `KnowledgeGraphError`.
"""

from __future__ import annotations

import asyncio
import re
import weakref
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Optional, TypeVar

from pydantic import BaseModel

from agent_memory.core.config import Settings, settings as default_settings
from agent_memory.graph.graph_types import GraphNode, GraphRelation, new_id, now_ms
from agent_memory.graph.storage import GraphStorage, StorageError
from agent_memory.models.schemas.kg import (
    EntityInput,
    MermaidOptions,
    ObservationDeletion,
    ObservationInput,
    RelationInput,
)
from agent_memory.services.kg.exceptions import KnowledgeGraphError
from agent_memory.services.kg.mermaid import MermaidGraphGenerator
from agent_memory.services.kg.nl_query import NaturalLanguageQueryEngine
from agent_memory.services.kg.relation_inference import RelationInferenceService
from agent_memory.services.llm import BaseLLMClient
from agent_memory.utils.logging import get_logger

logger = get_logger(__name__)

ENTITY_TYPE_PATTERN = re.compile(r"entityType:(\w+)")
OBSERVATION_PATTERN = re.compile(r"obs:(.+)")

# Retries for the version compare-and-swap on observation updates
MAX_UPDATE_ATTEMPTS = 5

InputModel = TypeVar("InputModel", bound=BaseModel)


def _coerce(model: type[InputModel], items: Iterable[Any]) -> list[InputModel]:
    return [item if isinstance(item, model) else model.model_validate(item) for item in items]


class KnowledgeGraphManager:
    """Entity and relation operations for per-agent knowledge graphs.

    Args:
        storage: Graph persistence backend
        llm_client: Optional AI client; without it NL queries fall back to
            keyword search and relation inference is unavailable
        app_settings: Settings carrying limits and AI policy constants
    """

    def __init__(
        self,
        storage: GraphStorage,
        llm_client: Optional[BaseLLMClient] = None,
        app_settings: Optional[Settings] = None,
    ):
        self.storage = storage
        self.llm_client = llm_client
        self.settings = app_settings or default_settings
        self._node_locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()

        self.nl_query_engine = NaturalLanguageQueryEngine(self, llm_client, self.settings)
        self.relation_inference = RelationInferenceService(self, llm_client, self.settings)
        self.mermaid_generator = MermaidGraphGenerator(self)

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    async def create_entities(
        self,
        agent_id: str,
        entities: Iterable[EntityInput | dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Create one node per entity; names are not checked for collisions."""
        inputs = _coerce(EntityInput, entities)
        timestamp = now_ms()
        nodes = [
            GraphNode(
                id=new_id(),
                agent_id=agent_id,
                name=entity.name,
                entity_type=entity.entity_type,
                observations=list(entity.observations),
                timestamp=timestamp,
                version=1,
            )
            for entity in inputs
        ]

        with self._storage_operation("create_entities", agent_id):
            await self.storage.insert_nodes(agent_id, nodes)

        logger.info(f"Created {len(nodes)} entities for agent_id={agent_id}")
        return [
            {"node_id": node.id, "name": node.name, "entityType": node.entity_type, "success": True}
            for node in nodes
        ]

    async def delete_entities(self, agent_id: str, entity_names: Iterable[str]) -> list[dict[str, Any]]:
        """Delete entities by name. Incident relations are removed with them."""
        results: list[dict[str, Any]] = []
        with self._storage_operation("delete_entities", agent_id):
            for name in entity_names:
                node = await self._first_node(agent_id, name)
                if node is None:
                    results.append({"success": False, "entityName": name, "error": f"Entity '{name}' not found"})
                    continue
                deleted = await self.storage.delete_node(agent_id, node.id)
                results.append({"success": deleted, "entityName": name, "deleted": deleted})
        return results

    async def open_nodes(self, agent_id: str, names: Iterable[str]) -> list[dict[str, Any]]:
        with self._storage_operation("open_nodes", agent_id):
            nodes = await self.storage.get_nodes_by_name(agent_id, list(names))
        return [node.to_dict() for node in nodes]

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    async def add_observations(
        self,
        agent_id: str,
        observations: Iterable[ObservationInput | dict[str, Any]],
    ) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        for item in _coerce(ObservationInput, observations):
            contents = list(item.contents)
            updated = await self._update_observations(
                "add_observations",
                agent_id,
                item.entity_name,
                lambda current: current + contents,
            )
            if updated is None:
                results.append(self._missing_entity(item.entity_name))
                continue
            results.append({"success": True, "entityName": item.entity_name, "addedCount": len(contents)})
        return results

    async def delete_observations(
        self,
        agent_id: str,
        deletions: Iterable[ObservationDeletion | dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Remove observations, comparing case-insensitively."""
        results: list[dict[str, Any]] = []
        for item in _coerce(ObservationDeletion, deletions):
            to_remove = {obs.lower() for obs in item.observations}
            updated = await self._update_observations(
                "delete_observations",
                agent_id,
                item.entity_name,
                lambda current: [obs for obs in current if obs.lower() not in to_remove],
            )
            if updated is None:
                results.append(self._missing_entity(item.entity_name))
                continue
            before, after = updated
            results.append(
                {"success": True, "entityName": item.entity_name, "deletedCount": len(before) - len(after)}
            )
        return results

    async def add_observations_by_id(self, agent_id: str, node_id: str, contents: Sequence[str]) -> bool:
        """Append observations to one node addressed by id; False if it does not exist."""
        contents = list(contents)
        with self._storage_operation("add_observations", agent_id):
            updated = await self._update_node_observations(
                "add_observations",
                agent_id,
                node_id,
                lambda current: current + contents,
            )
        return updated is not None

    async def _update_observations(
        self,
        operation: str,
        agent_id: str,
        entity_name: str,
        transform: Callable[[list[str]], list[str]],
    ) -> tuple[list[str], list[str]] | None:
        """Read-modify-write of a named node's observations.

        Returns:
            (observations before, observations after), or None if the entity
            does not exist
        """
        with self._storage_operation(operation, agent_id):
            node = await self._first_node(agent_id, entity_name)
            if node is None:
                return None
            return await self._update_node_observations(operation, agent_id, node.id, transform)

    async def _update_node_observations(
        self,
        operation: str,
        agent_id: str,
        node_id: str,
        transform: Callable[[list[str]], list[str]],
    ) -> tuple[list[str], list[str]] | None:
        """Compare-and-swap loop on the node's `version`, bumping it by one."""
        async with self._node_lock(agent_id, node_id):
            for _ in range(MAX_UPDATE_ATTEMPTS):
                current = await self.storage.get_node_by_id(agent_id, node_id)
                if current is None:
                    return None
                new_observations = transform(list(current.observations))
                updated = await self.storage.update_node(
                    agent_id,
                    current.id,
                    {"observations": new_observations, "version": current.version + 1},
                    expected_version=current.version,
                )
                if updated:
                    return current.observations, new_observations
                logger.debug(f"Version conflict on node {current.id}, retrying {operation}")

        raise KnowledgeGraphError(
            f"Concurrent modification of node '{node_id}' could not be resolved",
            operation,
            agent_id,
        )

    def _node_lock(self, agent_id: str, node_id: str) -> asyncio.Lock:
        # Weak values: an entry is dropped once no task holds or awaits its lock.
        lock = self._node_locks.get((agent_id, node_id))
        if lock is None:
            lock = asyncio.Lock()
            self._node_locks[(agent_id, node_id)] = lock
        return lock

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    async def create_relations(
        self,
        agent_id: str,
        relations: Iterable[RelationInput | dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Create relations between named entities; each item succeeds or fails alone."""
        results: list[dict[str, Any]] = []
        with self._storage_operation("create_relations", agent_id):
            for item in _coerce(RelationInput, relations):
                summary = {"from": item.from_name, "to": item.to_name, "type": item.relation_type}
                from_node = await self._first_node(agent_id, item.from_name)
                if from_node is None:
                    results.append(
                        {"success": False, **summary, "error": f"From entity '{item.from_name}' not found"}
                    )
                    continue
                to_node = await self._first_node(agent_id, item.to_name)
                if to_node is None:
                    results.append(
                        {"success": False, **summary, "error": f"To entity '{item.to_name}' not found"}
                    )
                    continue

                relation = GraphRelation(
                    id=new_id(),
                    agent_id=agent_id,
                    from_node_id=from_node.id,
                    to_node_id=to_node.id,
                    relation_type=item.relation_type,
                    timestamp=now_ms(),
                    version=1,
                )
                await self.storage.insert_relations(agent_id, [relation])
                results.append({"success": True, "relation_id": relation.id, **summary})

        created = sum(1 for result in results if result["success"])
        logger.info(f"Created {created}/{len(results)} relations for agent_id={agent_id}")
        return results

    async def delete_relations(
        self,
        agent_id: str,
        relations: Iterable[RelationInput | dict[str, Any]],
    ) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        with self._storage_operation("delete_relations", agent_id):
            for item in _coerce(RelationInput, relations):
                summary = {"from": item.from_name, "to": item.to_name, "type": item.relation_type}
                from_node = await self._first_node(agent_id, item.from_name)
                to_node = await self._first_node(agent_id, item.to_name)
                if from_node is None or to_node is None:
                    results.append({"success": False, **summary, "error": "One or both entities not found"})
                    continue

                matches = await self.storage.find_relations(
                    agent_id, from_node.id, to_node.id, item.relation_type
                )
                if not matches:
                    results.append({"success": False, **summary, "error": "Relation not found"})
                    continue

                deleted = await self.storage.delete_relation(agent_id, matches[0].id)
                results.append({"success": deleted, **summary, "deleted": deleted})
        return results

    async def create_relations_by_id(
        self,
        agent_id: str,
        relations: Iterable[tuple[str, str, str]],
    ) -> int:
        """Insert (from_node_id, to_node_id, relationType) edges whose endpoints are already resolved."""
        timestamp = now_ms()
        edges = [
            GraphRelation(
                id=new_id(),
                agent_id=agent_id,
                from_node_id=from_id,
                to_node_id=to_id,
                relation_type=relation_type,
                timestamp=timestamp,
                version=1,
            )
            for from_id, to_id, relation_type in relations
        ]
        if edges:
            with self._storage_operation("create_relations", agent_id):
                await self.storage.insert_relations(agent_id, edges)
        logger.info(f"Created {len(edges)} relations by node id for agent_id={agent_id}")
        return len(edges)

    async def relation_keys(self, agent_id: str) -> set[tuple[str, str, str]]:
        """Every (from_node_id, to_node_id, relationType) of the agent's graph."""
        with self._storage_operation("relation_keys", agent_id):
            relations = await self.storage.get_all_relations(agent_id)
        return {(r.from_node_id, r.to_node_id, r.relation_type) for r in relations}

    async def get_existing_relation(
        self,
        agent_id: str,
        from_name: str,
        to_name: str,
        relation_type: str,
    ) -> dict[str, Any] | None:
        """The relation matching the triple, or None."""
        with self._storage_operation("get_existing_relation", agent_id):
            from_node = await self._first_node(agent_id, from_name)
            to_node = await self._first_node(agent_id, to_name)
            if from_node is None or to_node is None:
                return None
            matches = await self.storage.find_relations(agent_id, from_node.id, to_node.id, relation_type)
        if not matches:
            return None
        return matches[0].to_dict({from_node.id: from_node.name, to_node.id: to_node.name})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_graph(self, agent_id: str) -> dict[str, list[dict[str, Any]]]:
        with self._storage_operation("read_graph", agent_id):
            nodes = await self.storage.get_all_nodes(agent_id)
            relations = await self.storage.get_all_relations(agent_id)
        names = {node.id: node.name for node in nodes}
        return {
            "nodes": [node.to_dict() for node in nodes],
            "relations": [relation.to_dict(names) for relation in relations],
        }

    async def search_nodes(self, agent_id: str, query: str) -> list[dict[str, Any]]:
        """Search nodes with the `entityType:<type>` and `obs:<text>` prefixes.

        Without a recognised prefix the query is a case-insensitive substring
        match over name, entity type and observations. A query that is empty
        once prefixes are removed, with no entity type, returns every node.
        """
        entity_type: str | None = None
        search_term = query

        type_match = ENTITY_TYPE_PATTERN.search(query)
        if type_match:
            entity_type = type_match.group(1)
            search_term = ENTITY_TYPE_PATTERN.sub("", query).strip()

        obs_match = OBSERVATION_PATTERN.search(search_term)
        observations_only = obs_match is not None
        if obs_match:
            search_term = obs_match.group(1).strip()

        search_term = search_term.strip()
        with self._storage_operation("search_nodes", agent_id):
            if not search_term and entity_type is None:
                nodes = await self.storage.get_all_nodes(agent_id)
            else:
                nodes = await self.storage.search_nodes(
                    agent_id,
                    search_term,
                    entity_type=entity_type,
                    observations_only=observations_only,
                    limit=self.settings.KG_SEARCH_LIMIT,
                )
        return [node.to_dict() for node in nodes]

    async def traverse_graph(
        self,
        agent_id: str,
        start_node_name: str,
        relation_types: Optional[list[str]] = None,
        depth: int = 1,
    ) -> dict[str, list[dict[str, Any]]]:
        """Breadth-first neighbourhood of a named node.

        An unknown start name yields empty lists rather than an error.
        """
        with self._storage_operation("traverse_graph", agent_id):
            start = await self._first_node(agent_id, start_node_name)
            if start is None:
                return {"nodes": [], "relations": []}
            result = await self.storage.traverse_graph(agent_id, start.id, relation_types or [], depth)

        names = {node.id: node.name for node in result.nodes}
        return {
            "nodes": [node.to_dict() for node in result.nodes],
            "relations": [relation.to_dict(names) for relation in result.relations],
        }

    async def top_connected_nodes(self, agent_id: str, limit: int) -> list[dict[str, Any]]:
        """Most connected nodes, each with a `connections` count."""
        with self._storage_operation("top_connected_nodes", agent_id):
            ranked = await self.storage.rank_nodes_by_degree(agent_id, limit)
        return [{**node.to_dict(), "connections": degree} for node, degree in ranked]

    async def find_nodes(
        self,
        agent_id: str,
        entity_types: list[str],
        name_fragments: list[str],
        limit: int,
    ) -> list[dict[str, Any]]:
        with self._storage_operation("find_nodes", agent_id):
            nodes = await self.storage.find_nodes(agent_id, entity_types, name_fragments, limit)
        return [node.to_dict() for node in nodes]

    async def relations_between(self, agent_id: str, node_ids: set[str]) -> list[GraphRelation]:
        """Relations whose endpoints are both in `node_ids`."""
        if not node_ids:
            return []
        with self._storage_operation("relations_between", agent_id):
            incident = await self.storage.get_incident_relations(agent_id, node_ids, [])
        return [
            relation for relation in incident
            if relation.from_node_id in node_ids and relation.to_node_id in node_ids
        ]

    # ------------------------------------------------------------------
    # AI-assisted operations and visualisation
    # ------------------------------------------------------------------

    async def query_natural_language(self, agent_id: str, query: str) -> dict[str, Any]:
        return await self.nl_query_engine.query(agent_id, query)

    async def infer_relations(
        self,
        agent_id: str,
        entity_names: Optional[list[str]] = None,
        context: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self.relation_inference.infer(agent_id, entity_names, context)

    async def generate_mermaid_graph(
        self,
        agent_id: str,
        options: MermaidOptions | dict[str, Any] | None = None,
    ) -> str:
        if options is None:
            options = MermaidOptions()
        elif not isinstance(options, MermaidOptions):
            options = MermaidOptions.model_validate(options)
        return await self.mermaid_generator.generate(agent_id, options)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _first_node(self, agent_id: str, name: str) -> GraphNode | None:
        nodes = await self.storage.get_nodes_by_name(agent_id, [name])
        return nodes[0] if nodes else None

    @staticmethod
    def _missing_entity(name: str) -> dict[str, Any]:
        return {"success": False, "entityName": name, "error": f"Entity '{name}' not found"}

    @contextmanager
    def _storage_operation(self, operation: str, agent_id: str) -> Iterator[None]:
        try:
            yield
        except StorageError as e:
            logger.error(f"{operation} failed for agent_id={agent_id}: {e}", exc_info=True)
            raise KnowledgeGraphError(
                f"Failed to {operation.replace('_', ' ')}: {e.message}",
                operation,
                agent_id,
            ) from e

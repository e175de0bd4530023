"""Neo4j graph storage.

Nodes are stored as `(:KGNode)` and relations as `[:KG_RELATION]` with the
relation type held in a property. Every node and relation carries the
`agent_id` it belongs to and every query filters on it.
"""

from __future__ import annotations

from typing import Any

from neo4j import AsyncDriver
from neo4j.exceptions import DriverError, Neo4jError

from agent_memory.graph.graph_types import GraphNode, GraphRelation
from agent_memory.graph.storage.base import NODE_UPDATABLE_FIELDS, GraphStorage
from agent_memory.graph.storage.exceptions import StorageError
from agent_memory.utils.logging import get_logger

logger = get_logger(__name__)

RELATION_RETURN = (
    "RETURN r {.*} AS rel, a.node_id AS from_id, b.node_id AS to_id "
    "ORDER BY r.timestamp, r.relation_id"
)


def _node_from_record(props: dict[str, Any]) -> GraphNode:
    return GraphNode(
        id=props["node_id"],
        agent_id=props["agent_id"],
        name=props["name"],
        entity_type=props["entity_type"],
        observations=list(props.get("observations") or []),
        timestamp=props.get("timestamp", 0),
        version=props.get("version", 1),
    )


def _relation_from_record(record: dict[str, Any]) -> GraphRelation:
    props = record["rel"]
    return GraphRelation(
        id=props["relation_id"],
        agent_id=props["agent_id"],
        from_node_id=record["from_id"],
        to_node_id=record["to_id"],
        relation_type=props["relation_type"],
        timestamp=props.get("timestamp", 0),
        version=props.get("version", 1),
    )


async def init_database(driver: AsyncDriver, database: str = "neo4j") -> None:
    """Create constraints and indexes for agent memory nodes.

    All statements are idempotent (IF NOT EXISTS).

    Creates:
        - Uniqueness constraint on (:KGNode {agent_id, node_id})
        - Index on (:KGNode {agent_id, name}) for name lookups
        - Index on [:KG_RELATION {agent_id}] for agent-scoped relation scans
    """
    logger.info("Initializing Neo4j database schema for KGNode")

    async with driver.session(database=database) as session:
        await session.run(
            """
            CREATE CONSTRAINT kg_node_unique IF NOT EXISTS
            FOR (n:KGNode)
            REQUIRE (n.agent_id, n.node_id) IS UNIQUE
            """
        )
        await session.run(
            """
            CREATE INDEX kg_node_agent_name IF NOT EXISTS
            FOR (n:KGNode)
            ON (n.agent_id, n.name)
            """
        )
        await session.run(
            """
            CREATE INDEX kg_relation_agent IF NOT EXISTS
            FOR ()-[r:KG_RELATION]-()
            ON (r.agent_id)
            """
        )

    logger.info("Neo4j database schema initialization complete")


class Neo4jGraphStorage(GraphStorage):
    """Graph storage on a Neo4j database through the async driver.

    Attributes:
        driver: Neo4j AsyncDriver instance
        database: Name of the Neo4j database (default: "neo4j")
    """

    def __init__(self, driver: AsyncDriver, database: str = "neo4j"):
        self.driver = driver
        self.database = database
        logger.debug(f"Neo4jGraphStorage initialized with database={database}")

    async def cypher_query(self, agent_id: str, query: str, **params: Any) -> list[dict[str, Any]]:
        """Run a read or write query with `$agent_id` bound.

        Raises:
            StorageError: If the driver or database reports a failure
        """
        return await self._run("cypher_query", agent_id, query, params)

    async def _run(
        self,
        operation: str,
        agent_id: str,
        query: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        parameters = {**(params or {}), "agent_id": agent_id}
        try:
            async with self.driver.session(database=self.database) as session:
                result = await session.run(query, parameters)
                return await result.data()
        except (Neo4jError, DriverError) as e:
            logger.error(f"Neo4j {operation} failed for agent_id={agent_id}: {e}", exc_info=True)
            raise StorageError(f"Neo4j {operation} failed: {e}", operation, agent_id) from e

    async def insert_nodes(self, agent_id: str, nodes: list[GraphNode]) -> None:
        if not nodes:
            return
        batch = [
            {
                "node_id": node.id,
                "name": node.name,
                "entity_type": node.entity_type,
                "observations": list(node.observations),
                "timestamp": node.timestamp,
                "version": node.version,
            }
            for node in nodes
        ]
        await self._run(
            "insert_nodes",
            agent_id,
            """
            UNWIND $nodes AS node
            CREATE (n:KGNode {
                node_id: node.node_id,
                agent_id: $agent_id,
                name: node.name,
                entity_type: node.entity_type,
                observations: node.observations,
                timestamp: node.timestamp,
                version: node.version
            })
            """,
            {"nodes": batch},
        )
        logger.debug(f"Inserted {len(nodes)} nodes for agent_id={agent_id}")

    async def insert_relations(self, agent_id: str, relations: list[GraphRelation]) -> None:
        if not relations:
            return
        batch = [
            {
                "relation_id": relation.id,
                "from_node_id": relation.from_node_id,
                "to_node_id": relation.to_node_id,
                "relation_type": relation.relation_type,
                "timestamp": relation.timestamp,
                "version": relation.version,
            }
            for relation in relations
        ]
        records = await self._run(
            "insert_relations",
            agent_id,
            """
            UNWIND $relations AS rel
            MATCH (a:KGNode {agent_id: $agent_id, node_id: rel.from_node_id})
            MATCH (b:KGNode {agent_id: $agent_id, node_id: rel.to_node_id})
            CREATE (a)-[r:KG_RELATION {
                relation_id: rel.relation_id,
                agent_id: $agent_id,
                relation_type: rel.relation_type,
                timestamp: rel.timestamp,
                version: rel.version
            }]->(b)
            RETURN count(r) AS created
            """,
            {"relations": batch},
        )
        created = records[0]["created"] if records else 0
        if created != len(relations):
            raise StorageError(
                f"Created {created} of {len(relations)} relations; missing endpoint nodes",
                "insert_relations",
                agent_id,
            )

    async def get_nodes_by_name(self, agent_id: str, names: list[str]) -> list[GraphNode]:
        if not names:
            return []
        records = await self._run(
            "get_nodes_by_name",
            agent_id,
            """
            MATCH (n:KGNode {agent_id: $agent_id})
            WHERE n.name IN $names
            RETURN n {.*} AS node
            ORDER BY n.timestamp, n.node_id
            """,
            {"names": list(names)},
        )
        return [_node_from_record(record["node"]) for record in records]

    async def get_nodes_by_ids(self, agent_id: str, node_ids: list[str]) -> list[GraphNode]:
        if not node_ids:
            return []
        records = await self._run(
            "get_nodes_by_ids",
            agent_id,
            """
            MATCH (n:KGNode {agent_id: $agent_id})
            WHERE n.node_id IN $node_ids
            RETURN n {.*} AS node
            """,
            {"node_ids": list(node_ids)},
        )
        by_id = {record["node"]["node_id"]: _node_from_record(record["node"]) for record in records}
        return [by_id[node_id] for node_id in node_ids if node_id in by_id]

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
        records = await self._run(
            "update_node",
            agent_id,
            """
            MATCH (n:KGNode {agent_id: $agent_id, node_id: $node_id})
            WHERE $expected_version IS NULL OR n.version = $expected_version
            SET n += $fields
            RETURN count(n) AS updated
            """,
            {"node_id": node_id, "fields": dict(fields), "expected_version": expected_version},
        )
        return bool(records and records[0]["updated"])

    async def delete_node(self, agent_id: str, node_id: str) -> bool:
        records = await self._run(
            "delete_node",
            agent_id,
            """
            MATCH (n:KGNode {agent_id: $agent_id, node_id: $node_id})
            DETACH DELETE n
            RETURN count(*) AS deleted
            """,
            {"node_id": node_id},
        )
        return bool(records and records[0]["deleted"])

    async def delete_relation(self, agent_id: str, relation_id: str) -> bool:
        records = await self._run(
            "delete_relation",
            agent_id,
            """
            MATCH (:KGNode {agent_id: $agent_id})-[r:KG_RELATION {relation_id: $relation_id}]->()
            DELETE r
            RETURN count(*) AS deleted
            """,
            {"relation_id": relation_id},
        )
        return bool(records and records[0]["deleted"])

    async def get_all_nodes(self, agent_id: str) -> list[GraphNode]:
        records = await self._run(
            "get_all_nodes",
            agent_id,
            """
            MATCH (n:KGNode {agent_id: $agent_id})
            RETURN n {.*} AS node
            ORDER BY n.timestamp, n.node_id
            """,
        )
        return [_node_from_record(record["node"]) for record in records]

    async def get_all_relations(self, agent_id: str) -> list[GraphRelation]:
        records = await self._run(
            "get_all_relations",
            agent_id,
            f"""
            MATCH (a:KGNode {{agent_id: $agent_id}})-[r:KG_RELATION]->(b:KGNode {{agent_id: $agent_id}})
            {RELATION_RETURN}
            """,
        )
        return [_relation_from_record(record) for record in records]

    async def find_relations(
        self,
        agent_id: str,
        from_node_id: str,
        to_node_id: str,
        relation_type: str | None = None,
    ) -> list[GraphRelation]:
        records = await self._run(
            "find_relations",
            agent_id,
            f"""
            MATCH (a:KGNode {{agent_id: $agent_id, node_id: $from_node_id}})
                  -[r:KG_RELATION]->
                  (b:KGNode {{agent_id: $agent_id, node_id: $to_node_id}})
            WHERE $relation_type IS NULL OR r.relation_type = $relation_type
            {RELATION_RETURN}
            """,
            {"from_node_id": from_node_id, "to_node_id": to_node_id, "relation_type": relation_type},
        )
        return [_relation_from_record(record) for record in records]

    async def get_incident_relations(
        self,
        agent_id: str,
        node_ids: set[str],
        relation_types: list[str],
    ) -> list[GraphRelation]:
        if not node_ids:
            return []
        records = await self._run(
            "get_incident_relations",
            agent_id,
            f"""
            MATCH (a:KGNode {{agent_id: $agent_id}})-[r:KG_RELATION]->(b:KGNode {{agent_id: $agent_id}})
            WHERE (a.node_id IN $node_ids OR b.node_id IN $node_ids)
              AND (size($relation_types) = 0 OR r.relation_type IN $relation_types)
            {RELATION_RETURN}
            """,
            {"node_ids": sorted(node_ids), "relation_types": list(relation_types)},
        )
        return [_relation_from_record(record) for record in records]

    async def search_nodes(
        self,
        agent_id: str,
        term: str,
        entity_type: str | None = None,
        observations_only: bool = False,
        limit: int = 100,
    ) -> list[GraphNode]:
        records = await self._run(
            "search_nodes",
            agent_id,
            """
            MATCH (n:KGNode {agent_id: $agent_id})
            WHERE ($entity_type IS NULL OR n.entity_type = $entity_type)
              AND (
                $term = ''
                OR any(obs IN n.observations WHERE toLower(obs) CONTAINS $term)
                OR (NOT $observations_only AND (
                    toLower(n.name) CONTAINS $term OR toLower(n.entity_type) CONTAINS $term
                ))
              )
            RETURN n {.*} AS node
            ORDER BY n.timestamp, n.node_id
            LIMIT $limit
            """,
            {
                "term": term.lower(),
                "entity_type": entity_type,
                "observations_only": observations_only,
                "limit": limit,
            },
        )
        return [_node_from_record(record["node"]) for record in records]

    async def rank_nodes_by_degree(self, agent_id: str, limit: int) -> list[tuple[GraphNode, int]]:
        records = await self.cypher_query(
            agent_id,
            """
            MATCH (n:KGNode {agent_id: $agent_id})-[r:KG_RELATION]-(:KGNode {agent_id: $agent_id})
            WITH n, count(r) AS degree
            RETURN n {.*} AS node, degree
            ORDER BY degree DESC, n.name
            LIMIT $limit
            """,
            limit=limit,
        )
        return [(_node_from_record(record["node"]), record["degree"]) for record in records]

    async def find_nodes(
        self,
        agent_id: str,
        entity_types: list[str],
        name_fragments: list[str],
        limit: int,
    ) -> list[GraphNode]:
        records = await self.cypher_query(
            agent_id,
            """
            MATCH (n:KGNode {agent_id: $agent_id})
            WHERE (size($entity_types) = 0 OR n.entity_type IN $entity_types)
              AND (size($fragments) = 0 OR any(f IN $fragments WHERE toLower(n.name) CONTAINS f))
            RETURN n {.*} AS node
            ORDER BY n.timestamp, n.node_id
            LIMIT $limit
            """,
            entity_types=list(entity_types),
            fragments=[fragment.lower() for fragment in name_fragments],
            limit=limit,
        )
        return [_node_from_record(record["node"]) for record in records]

    async def close(self) -> None:
        await self.driver.close()

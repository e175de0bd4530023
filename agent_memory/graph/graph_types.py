"""
Graph data model shared by storage backends and the knowledge graph manager.

Nodes and relations are scoped by `agent_id`. Relations reference nodes by
id; conversion to the name-based dict shape happens at the manager layer.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class GraphNode:
    """A graph vertex: a file, directory, code entity or free-form concept."""
    id: str
    agent_id: str
    name: str
    entity_type: str
    observations: list[str] = field(default_factory=list)
    timestamp: int = 0
    version: int = 1

    def copy(self) -> GraphNode:
        return GraphNode(
            id=self.id,
            agent_id=self.agent_id,
            name=self.name,
            entity_type=self.entity_type,
            observations=list(self.observations),
            timestamp=self.timestamp,
            version=self.version,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.id,
            "name": self.name,
            "entityType": self.entity_type,
            "observations": list(self.observations),
        }


@dataclass
class GraphRelation:
    """A typed, directed edge between two nodes of the same agent."""
    id: str
    agent_id: str
    from_node_id: str
    to_node_id: str
    relation_type: str
    timestamp: int = 0
    version: int = 1

    def copy(self) -> GraphRelation:
        return GraphRelation(
            id=self.id,
            agent_id=self.agent_id,
            from_node_id=self.from_node_id,
            to_node_id=self.to_node_id,
            relation_type=self.relation_type,
            timestamp=self.timestamp,
            version=self.version,
        )

    def to_dict(self, names: dict[str, str] | None = None) -> dict[str, Any]:
        """Render with endpoint names when known, else node ids."""
        names = names or {}
        return {
            "relation_id": self.id,
            "from": names.get(self.from_node_id, self.from_node_id),
            "to": names.get(self.to_node_id, self.to_node_id),
            "relationType": self.relation_type,
        }


@dataclass
class TraversalResult:
    nodes: list[GraphNode] = field(default_factory=list)
    relations: list[GraphRelation] = field(default_factory=list)

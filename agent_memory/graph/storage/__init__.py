"""
Graph Storage Module

Public API:
  - GraphStorage: Abstract storage contract
  - InMemoryGraphStorage / Neo4jGraphStorage: Backends
  - create_graph_storage(settings): Backend selected by `GRAPH_BACKEND`
  - StorageError: Raised on persistence failures
"""

from agent_memory.core.config import Settings, settings as default_settings
from agent_memory.graph.storage.base import GraphStorage
from agent_memory.graph.storage.exceptions import StorageError
from agent_memory.graph.storage.memory_storage import InMemoryGraphStorage
from agent_memory.graph.storage.neo4j_storage import Neo4jGraphStorage, init_database


def create_graph_storage(app_settings: Settings | None = None) -> GraphStorage:
    """Build the storage backend named by `GRAPH_BACKEND`.

    Raises:
        ValueError: If the backend name is not recognised
    """
    app_settings = app_settings or default_settings
    match app_settings.GRAPH_BACKEND.lower():
        case "memory":
            return InMemoryGraphStorage()
        case "neo4j":
            from agent_memory.core.neo4j import get_neo4j_driver

            return Neo4jGraphStorage(get_neo4j_driver(app_settings), database=app_settings.NEO4J_DATABASE)
        case other:
            raise ValueError(f"Unknown GRAPH_BACKEND: {other}")


__all__ = [
    "GraphStorage",
    "InMemoryGraphStorage",
    "Neo4jGraphStorage",
    "StorageError",
    "create_graph_storage",
    "init_database",
]

"""Wiring of storage, AI client and manager from settings."""

from __future__ import annotations

from typing import Optional

from agent_memory.core.config import Settings, settings as default_settings
from agent_memory.graph.storage import Neo4jGraphStorage, create_graph_storage, init_database
from agent_memory.services.kg.knowledge_graph_manager import KnowledgeGraphManager
from agent_memory.services.llm import create_llm_client
from agent_memory.utils.logging import get_logger

logger = get_logger(__name__)


async def create_knowledge_graph_manager(app_settings: Optional[Settings] = None) -> KnowledgeGraphManager:
    """Build a manager on the configured backend and AI provider.

    The Neo4j backend gets its constraints and indexes created before use.
    Without a usable AI client, natural-language queries fall back to search.

    Raises:
        ValueError: If the backend or provider name is unknown, or Neo4j is unconfigured
        StorageError: If the Neo4j schema cannot be initialised
    """
    app_settings = app_settings or default_settings
    storage = create_graph_storage(app_settings)
    if isinstance(storage, Neo4jGraphStorage):
        await init_database(storage.driver, database=app_settings.NEO4J_DATABASE)

    llm_client = create_llm_client(app_settings)
    logger.info(
        f"Knowledge graph manager ready: backend={app_settings.GRAPH_BACKEND}, "
        f"ai={llm_client.provider_name if llm_client else 'disabled'}"
    )
    return KnowledgeGraphManager(storage, llm_client=llm_client, app_settings=app_settings)

"""
Global test configuration and fixtures for agent memory tests.

Provides an in-memory graph, a manager wired to it and a mocked LLM client.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from agent_memory.core.config import Settings
from agent_memory.graph.storage import InMemoryGraphStorage
from agent_memory.services.kg import KnowledgeGraphManager


@pytest.fixture
def test_settings() -> Settings:
    """Settings with AI disabled and default limits."""
    return Settings(LLM_PROVIDER="none", GRAPH_BACKEND="memory")


@pytest.fixture
def agent_id() -> str:
    return "agent-test"


@pytest.fixture
def storage() -> InMemoryGraphStorage:
    return InMemoryGraphStorage()


@pytest.fixture
def manager(storage, test_settings) -> KnowledgeGraphManager:
    """Manager without an AI client."""
    return KnowledgeGraphManager(storage, llm_client=None, app_settings=test_settings)


@pytest.fixture
def mock_llm_client():
    """Create a mock LLM client."""
    client = Mock()
    client.provider_name = "mock"
    client.model = "mock-model"
    client.generate_completion = AsyncMock()
    return client


@pytest.fixture
def ai_manager(storage, test_settings, mock_llm_client) -> KnowledgeGraphManager:
    """Manager whose AI client is `mock_llm_client`."""
    return KnowledgeGraphManager(storage, llm_client=mock_llm_client, app_settings=test_settings)

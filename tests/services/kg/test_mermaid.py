"""
Unit tests for Mermaid diagram generation.
"""

from unittest.mock import AsyncMock

import pytest

from agent_memory.graph.storage import StorageError
from agent_memory.models.schemas.kg import MermaidOptions
from agent_memory.services.kg.mermaid import display_name, escape_label, sanitize_node_name


async def seed(manager, agent_id):
    await manager.create_entities(agent_id, [
        {"name": "src/auth.ts", "entityType": "file", "observations": []},
        {"name": "AuthService", "entityType": "class", "observations": []},
        {"name": "src/db.ts", "entityType": "file", "observations": []},
    ])
    await manager.create_relations(agent_id, [
        {"from": "src/auth.ts", "to": "AuthService", "relationType": "contains_item"},
        {"from": "src/auth.ts", "to": "src/db.ts", "relationType": "imports_file"},
    ])


class TestHelpers:
    def test_sanitize_node_name(self):
        assert sanitize_node_name("src/a-b.ts") == "src_a_b_ts"
        assert len(sanitize_node_name("x" * 80)) == 50

    def test_escape_label(self):
        assert escape_label('say "hi"\nok') == "say #quot;hi#quot; ok"

    def test_display_name(self):
        assert display_name("a/b/c/d.ts") == ".../c/d.ts"
        assert display_name("src/a.ts") == "src/a.ts"
        assert display_name("VeryLongIdentifierNameThatKeepsGoing") == "VeryLongIdentifierNameThatK..."


class TestMermaidGeneration:
    @pytest.mark.asyncio
    async def test_empty_graph(self, manager, agent_id):
        diagram = await manager.generate_mermaid_graph(agent_id)

        assert diagram.startswith("graph TD\n")
        assert 'empty["Graph is empty"]' in diagram

    @pytest.mark.asyncio
    async def test_query_without_matches(self, manager, agent_id):
        await seed(manager, agent_id)

        diagram = await manager.generate_mermaid_graph(agent_id, {"query": "payments", "layoutDirection": "lr"})

        assert diagram.startswith("graph LR\n")
        assert "No nodes found for query: 'payments'" in diagram

    @pytest.mark.asyncio
    async def test_query_renders_nodes_and_edges(self, manager, agent_id):
        await seed(manager, agent_id)

        diagram = await manager.generate_mermaid_graph(agent_id, MermaidOptions(query="auth"))

        assert "%% Query: auth" in diagram
        assert '["📄 src/auth.ts"]' in diagram
        assert '["🏗️ AuthService"]' in diagram
        assert '-->|"contains"|' in diagram
        assert '-.->|"imports"|' in diagram
        assert "subgraph Legend" in diagram
        assert diagram.rstrip().endswith("%% Generated: 3 nodes, 2 relations")

    @pytest.mark.asyncio
    async def test_overview_without_legend(self, manager, agent_id):
        await seed(manager, agent_id)

        diagram = await manager.generate_mermaid_graph(agent_id, {"includeLegend": False})

        assert "%% Query: Overview: High-connectivity nodes and entry points" in diagram
        assert "Legend" not in diagram
        assert "%% Generated: 3 nodes, 2 relations" in diagram

    @pytest.mark.asyncio
    async def test_group_by_directory(self, manager, agent_id):
        await seed(manager, agent_id)

        diagram = await manager.generate_mermaid_graph(agent_id, {"groupByDirectory": True, "includeLegend": False})

        assert 'subgraph dir_src["📁 src"]' in diagram
        assert 'subgraph dir__["📁 Root"]' in diagram

    @pytest.mark.asyncio
    async def test_excluded_relation_types(self, manager, agent_id):
        await seed(manager, agent_id)

        diagram = await manager.generate_mermaid_graph(agent_id, {"excludeRelationTypes": ["imports_file"]})

        assert "imports" not in diagram.split("subgraph Legend")[0]
        assert "%% Generated: 3 nodes, 1 relations" in diagram

    @pytest.mark.asyncio
    async def test_excluded_import_targets(self, manager, agent_id):
        await seed(manager, agent_id)

        diagram = await manager.generate_mermaid_graph(agent_id, {"excludeImports": ["src/db.ts"]})

        assert "%% Generated: 3 nodes, 1 relations" in diagram

    @pytest.mark.asyncio
    async def test_max_nodes_truncates(self, manager, agent_id):
        await seed(manager, agent_id)

        diagram = await manager.generate_mermaid_graph(agent_id, {"maxNodes": 1})

        assert "%% Generated: 1 nodes, 0 relations" in diagram

    @pytest.mark.asyncio
    async def test_natural_language_selection(self, manager, agent_id):
        await seed(manager, agent_id)

        diagram = await manager.generate_mermaid_graph(agent_id, {"natural_language_query": "db"})

        assert "%% Query: db" in diagram
        assert "%% Generated: 1 nodes, 0 relations" in diagram

    @pytest.mark.asyncio
    async def test_storage_failure_renders_error(self, manager, storage, agent_id):
        storage.rank_nodes_by_degree = AsyncMock(side_effect=StorageError("connection lost"))

        diagram = await manager.generate_mermaid_graph(agent_id)

        assert 'empty["Error: Failed to top connected nodes: connection lost"]' in diagram

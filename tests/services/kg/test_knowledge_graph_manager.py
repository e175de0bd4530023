"""
Unit tests for KnowledgeGraphManager on the in-memory backend.

Covers entity / observation / relation CRUD, search syntax, traversal and
storage error wrapping.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from agent_memory.graph.storage import InMemoryGraphStorage, StorageError
from agent_memory.services.kg import KnowledgeGraphError, KnowledgeGraphManager


async def seed(manager: KnowledgeGraphManager, agent_id: str) -> None:
    await manager.create_entities(agent_id, [
        {"name": "src/auth.ts", "entityType": "file", "observations": ["handles auth tokens"]},
        {"name": "AuthService", "entityType": "class", "observations": ["auth entry point"]},
        {"name": "src/db.ts", "entityType": "file", "observations": ["database access"]},
    ])
    await manager.create_relations(agent_id, [
        {"from": "src/auth.ts", "to": "AuthService", "relationType": "contains"},
        {"from": "AuthService", "to": "src/db.ts", "relationType": "uses"},
    ])


class TestEntities:
    @pytest.mark.asyncio
    async def test_create_entities_returns_ids(self, manager, agent_id):
        results = await manager.create_entities(agent_id, [{"name": "A", "entityType": "concept"}])

        (result,) = results
        assert result["success"] is True
        assert result["name"] == "A"
        assert result["entityType"] == "concept"
        assert result["node_id"]

    @pytest.mark.asyncio
    async def test_open_nodes_by_name(self, manager, agent_id):
        await seed(manager, agent_id)

        nodes = await manager.open_nodes(agent_id, ["AuthService", "missing"])

        assert [node["name"] for node in nodes] == ["AuthService"]
        assert nodes[0]["observations"] == ["auth entry point"]

    @pytest.mark.asyncio
    async def test_delete_entities_removes_incident_relations(self, manager, agent_id):
        await seed(manager, agent_id)

        results = await manager.delete_entities(agent_id, ["AuthService", "Ghost"])

        assert results[0] == {"success": True, "entityName": "AuthService", "deleted": True}
        assert results[1] == {"success": False, "entityName": "Ghost", "error": "Entity 'Ghost' not found"}
        graph = await manager.read_graph(agent_id)
        assert graph["relations"] == []
        assert sorted(node["name"] for node in graph["nodes"]) == ["src/auth.ts", "src/db.ts"]

    @pytest.mark.asyncio
    async def test_agents_do_not_see_each_other(self, manager, agent_id):
        await seed(manager, agent_id)

        graph = await manager.read_graph("other-agent")

        assert graph == {"nodes": [], "relations": []}


class TestObservations:
    @pytest.mark.asyncio
    async def test_add_then_delete_bumps_version_twice(self, manager, storage, agent_id):
        await manager.create_entities(agent_id, [{"name": "A", "entityType": "concept", "observations": ["one"]}])

        added = await manager.add_observations(agent_id, [{"entityName": "A", "contents": ["two", "three"]}])
        deleted = await manager.delete_observations(agent_id, [{"entityName": "A", "observations": ["TWO"]}])

        assert added == [{"success": True, "entityName": "A", "addedCount": 2}]
        assert deleted == [{"success": True, "entityName": "A", "deletedCount": 1}]
        (node,) = await storage.get_nodes_by_name(agent_id, ["A"])
        assert node.observations == ["one", "three"]
        assert node.version == 3

    @pytest.mark.asyncio
    async def test_missing_entity_reported_per_item(self, manager, agent_id):
        await manager.create_entities(agent_id, [{"name": "A", "entityType": "concept"}])

        results = await manager.add_observations(agent_id, [
            {"entityName": "Nope", "contents": ["x"]},
            {"entityName": "A", "contents": ["y"]},
        ])

        assert results[0] == {"success": False, "entityName": "Nope", "error": "Entity 'Nope' not found"}
        assert results[1]["success"] is True

    @pytest.mark.asyncio
    async def test_concurrent_additions_are_not_lost(self, manager, storage, agent_id):
        await manager.create_entities(agent_id, [{"name": "A", "entityType": "concept"}])

        await asyncio.gather(*[
            manager.add_observations(agent_id, [{"entityName": "A", "contents": [f"obs-{i}"]}])
            for i in range(10)
        ])

        (node,) = await storage.get_nodes_by_name(agent_id, ["A"])
        assert sorted(node.observations) == sorted(f"obs-{i}" for i in range(10))
        assert node.version == 11

    @pytest.mark.asyncio
    async def test_version_conflicts_exhaust_retries(self, test_settings, agent_id):
        storage = InMemoryGraphStorage()
        manager = KnowledgeGraphManager(storage, app_settings=test_settings)
        await manager.create_entities(agent_id, [{"name": "A", "entityType": "concept"}])
        storage.update_node = AsyncMock(return_value=False)

        with pytest.raises(KnowledgeGraphError):
            await manager.add_observations(agent_id, [{"entityName": "A", "contents": ["x"]}])

    @pytest.mark.asyncio
    async def test_node_locks_released_after_updates(self, manager, agent_id):
        await manager.create_entities(agent_id, [{"name": "A", "entityType": "concept"}])

        await asyncio.gather(*[
            manager.add_observations(agent_id, [{"entityName": "A", "contents": [f"obs-{i}"]}])
            for i in range(5)
        ])

        assert len(manager._node_locks) == 0

    @pytest.mark.asyncio
    async def test_add_observations_by_id(self, manager, storage, agent_id):
        created = await manager.create_entities(agent_id, [
            {"name": "models", "entityType": "directory"},
            {"name": "models", "entityType": "module"},
        ])
        module_id = created[1]["node_id"]

        assert await manager.add_observations_by_id(agent_id, module_id, ["type: module"]) is True
        assert await manager.add_observations_by_id(agent_id, "missing", ["x"]) is False

        by_type = {node.entity_type: node.observations for node in await storage.get_nodes_by_name(agent_id, ["models"])}
        assert by_type == {"directory": [], "module": ["type: module"]}


class TestRelations:
    @pytest.mark.asyncio
    async def test_partial_success(self, manager, agent_id):
        await manager.create_entities(agent_id, [
            {"name": "A", "entityType": "concept"},
            {"name": "B", "entityType": "concept"},
        ])

        results = await manager.create_relations(agent_id, [
            {"from": "A", "to": "B", "relationType": "uses"},
            {"from": "X", "to": "B", "relationType": "uses"},
            {"from": "A", "to": "Y", "relationType": "uses"},
        ])

        assert results[0]["success"] is True
        assert results[0]["relation_id"]
        assert (results[0]["from"], results[0]["to"], results[0]["type"]) == ("A", "B", "uses")
        assert results[1]["error"] == "From entity 'X' not found"
        assert results[2]["error"] == "To entity 'Y' not found"
        graph = await manager.read_graph(agent_id)
        assert [(r["from"], r["to"], r["relationType"]) for r in graph["relations"]] == [("A", "B", "uses")]

    @pytest.mark.asyncio
    async def test_create_relations_by_id_and_relation_keys(self, manager, agent_id):
        created = await manager.create_entities(agent_id, [
            {"name": "A", "entityType": "concept"},
            {"name": "B", "entityType": "concept"},
        ])
        a_id, b_id = created[0]["node_id"], created[1]["node_id"]

        count = await manager.create_relations_by_id(agent_id, [(a_id, b_id, "uses"), (b_id, a_id, "uses")])

        assert count == 2
        assert await manager.relation_keys(agent_id) == {(a_id, b_id, "uses"), (b_id, a_id, "uses")}
        assert await manager.create_relations_by_id(agent_id, []) == 0

    @pytest.mark.asyncio
    async def test_get_existing_relation(self, manager, agent_id):
        await seed(manager, agent_id)

        existing = await manager.get_existing_relation(agent_id, "AuthService", "src/db.ts", "uses")
        absent = await manager.get_existing_relation(agent_id, "AuthService", "src/db.ts", "calls")

        assert existing["from"] == "AuthService"
        assert existing["to"] == "src/db.ts"
        assert existing["relationType"] == "uses"
        assert absent is None

    @pytest.mark.asyncio
    async def test_delete_relations(self, manager, agent_id):
        await seed(manager, agent_id)

        results = await manager.delete_relations(agent_id, [
            {"from": "AuthService", "to": "src/db.ts", "relationType": "uses"},
            {"from": "AuthService", "to": "src/db.ts", "relationType": "uses"},
            {"from": "Ghost", "to": "src/db.ts", "relationType": "uses"},
        ])

        assert results[0]["success"] is True
        assert results[1]["error"] == "Relation not found"
        assert results[2]["error"] == "One or both entities not found"


class TestSearchAndTraversal:
    @pytest.mark.asyncio
    async def test_entity_type_prefix_filters(self, manager, agent_id):
        await seed(manager, agent_id)

        results = await manager.search_nodes(agent_id, "entityType:file auth")

        assert [node["name"] for node in results] == ["src/auth.ts"]

    @pytest.mark.asyncio
    async def test_observation_prefix_ignores_names(self, manager, agent_id):
        await seed(manager, agent_id)

        by_observation = await manager.search_nodes(agent_id, "obs:entry point")
        by_name_only = await manager.search_nodes(agent_id, "obs:AuthService")

        assert [node["name"] for node in by_observation] == ["AuthService"]
        assert by_name_only == []

    @pytest.mark.asyncio
    async def test_plain_search_is_case_insensitive(self, manager, agent_id):
        await seed(manager, agent_id)

        results = await manager.search_nodes(agent_id, "DATABASE")

        assert [node["name"] for node in results] == ["src/db.ts"]

    @pytest.mark.asyncio
    async def test_empty_query_returns_everything(self, manager, agent_id):
        await seed(manager, agent_id)

        assert len(await manager.search_nodes(agent_id, "")) == 3

    @pytest.mark.asyncio
    async def test_traverse_depth_zero(self, manager, agent_id):
        await seed(manager, agent_id)

        result = await manager.traverse_graph(agent_id, "AuthService", depth=0)

        assert [node["name"] for node in result["nodes"]] == ["AuthService"]
        assert result["relations"] == []

    @pytest.mark.asyncio
    async def test_traverse_follows_both_directions(self, manager, agent_id):
        await seed(manager, agent_id)

        result = await manager.traverse_graph(agent_id, "AuthService", depth=1)

        assert sorted(node["name"] for node in result["nodes"]) == ["AuthService", "src/auth.ts", "src/db.ts"]
        assert len(result["relations"]) == 2

    @pytest.mark.asyncio
    async def test_traverse_unknown_start(self, manager, agent_id):
        assert await manager.traverse_graph(agent_id, "Nope") == {"nodes": [], "relations": []}

    @pytest.mark.asyncio
    async def test_top_connected_nodes(self, manager, agent_id):
        await seed(manager, agent_id)

        (top,) = await manager.top_connected_nodes(agent_id, 1)

        assert top["name"] == "AuthService"
        assert top["connections"] == 2


class TestStorageFailures:
    @pytest.mark.asyncio
    async def test_storage_error_is_wrapped(self, test_settings, agent_id):
        storage = InMemoryGraphStorage()
        storage.get_all_nodes = AsyncMock(side_effect=StorageError("disk gone", "get_all_nodes", agent_id))
        manager = KnowledgeGraphManager(storage, app_settings=test_settings)

        with pytest.raises(KnowledgeGraphError) as exc_info:
            await manager.read_graph(agent_id)

        assert exc_info.value.operation == "read_graph"
        assert "Failed to read graph" in str(exc_info.value)

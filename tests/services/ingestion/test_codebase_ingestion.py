"""
Unit tests for CodebaseIngestionService.

Ingests a small on-disk project into an in-memory graph and checks the
structure pass, import linking, the deep entity pass and re-run idempotency.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from agent_memory.graph.storage import StorageError
from agent_memory.services.ingestion import CodebaseIngestionService
from agent_memory.services.kg.exceptions import KnowledgeGraphError

A_TS = """import { helper } from './b';
import React from 'react';

export class Widget {
  render() {
    return helper();
  }
}
"""

B_TS = """export function helper() {
  return format();
}

function format() {
  return 'x';
}
"""

C_PY = """import os


def main():
    return os.getcwd()
"""


@pytest.fixture
def project(tmp_path):
    (tmp_path / "a.ts").write_text(A_TS)
    (tmp_path / "b.ts").write_text(B_TS)
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "c.py").write_text(C_PY)
    return tmp_path


@pytest.fixture
def service(manager, test_settings):
    return CodebaseIngestionService(manager, app_settings=test_settings)


async def graph_snapshot(manager, agent_id):
    graph = await manager.read_graph(agent_id)
    nodes = {(node["name"], node["entityType"]): node for node in graph["nodes"]}
    relations = {(r["from"], r["to"], r["relationType"]) for r in graph["relations"]}
    return nodes, relations


class TestStructureIngestion:
    @pytest.mark.asyncio
    async def test_mirrors_tree_and_imports(self, service, manager, agent_id, project):
        report = await service.ingest_codebase_structure(agent_id, project)

        assert report.files_scanned == 3
        assert report.directories_scanned == 2
        assert report.nodes_created == 7
        assert report.relations_created == 7
        assert report.import_parse_failures == 0

        nodes, relations = await graph_snapshot(manager, agent_id)
        assert set(nodes) == {
            (".", "directory"),
            ("sub", "directory"),
            ("a.ts", "file"),
            ("b.ts", "file"),
            ("sub/c.py", "file"),
            ("react", "module"),
            ("os", "module"),
        }
        assert relations == {
            (".", "sub", "contains_item"),
            (".", "a.ts", "contains_item"),
            (".", "b.ts", "contains_item"),
            ("sub", "sub/c.py", "contains_item"),
            ("a.ts", "b.ts", "imports_file"),
            ("a.ts", "react", "imports_module"),
            ("sub/c.py", "os", "imports_module"),
        }

        a_ts = nodes[("a.ts", "file")]["observations"]
        assert f"absolute_path: {(project / 'a.ts').resolve().as_posix()}" in a_ts
        assert "type: file" in a_ts
        assert "language: typescript" in a_ts
        assert f"size_bytes: {len(A_TS.encode())}" in a_ts
        assert any(obs.startswith("modified_at: ") for obs in a_ts)
        assert nodes[("react", "module")]["observations"] == ["type: module"]

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, service, manager, agent_id, project):
        await service.ingest_codebase_structure(agent_id, project)

        report = await service.ingest_codebase_structure(agent_id, project)

        assert report.nodes_created == 0
        assert report.nodes_updated == 0
        assert report.relations_created == 0
        assert report.relations_skipped == 7
        assert len((await manager.read_graph(agent_id))["nodes"]) == 7

    @pytest.mark.asyncio
    async def test_without_import_parsing(self, service, manager, agent_id, project):
        report = await service.ingest_codebase_structure(agent_id, project, parse_imports=False)

        assert report.nodes_created == 5
        _, relations = await graph_snapshot(manager, agent_id)
        assert {relation_type for _, _, relation_type in relations} == {"contains_item"}

    @pytest.mark.asyncio
    async def test_module_import_targets_module_not_same_named_directory(self, service, storage, agent_id, tmp_path):
        (tmp_path / "models").mkdir()
        (tmp_path / "models" / "notes.txt").write_text("schema notes")
        (tmp_path / "app.py").write_text("import models\n")

        await service.ingest_codebase_structure(agent_id, tmp_path)

        ids = {(node.name, node.entity_type): node.id for node in await storage.get_all_nodes(agent_id)}
        assert ("models", "directory") in ids
        edges = [
            (relation.from_node_id, relation.to_node_id)
            for relation in await storage.get_all_relations(agent_id)
            if relation.relation_type == "imports_module"
        ]
        assert edges == [(ids[("app.py", "file")], ids[("models", "module")])]

    @pytest.mark.asyncio
    async def test_existing_relations_are_loaded_once_per_flush(self, service, manager, storage, agent_id, project):
        await service.ingest_codebase_structure(agent_id, project)
        storage.get_all_relations = AsyncMock(wraps=storage.get_all_relations)
        manager.get_existing_relation = AsyncMock()

        report = await service.ingest_codebase_structure(agent_id, project)

        assert report.relations_skipped == 7
        assert storage.get_all_relations.await_count == 1
        manager.get_existing_relation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_subdirectory_links_to_existing_parent(self, service, manager, agent_id, project):
        await manager.create_entities(agent_id, [{"name": ".", "entityType": "directory", "observations": []}])

        await service.ingest_codebase_structure(agent_id, project / "sub", project_root=project)

        _, relations = await graph_snapshot(manager, agent_id)
        assert (".", "sub", "contains_item") in relations
        assert ("sub", "sub/c.py", "contains_item") in relations

    @pytest.mark.asyncio
    async def test_unparsable_imports_are_counted(self, service, agent_id, project, monkeypatch):
        parser = service._parser("python")
        monkeypatch.setattr(parser, "parse_imports", Mock(side_effect=OSError("boom")))

        report = await service.ingest_codebase_structure(agent_id, project)

        assert report.import_parse_failures == 1
        assert report.errors == ["sub/c.py: boom"]
        assert "Files With Unparsable Imports: 1" in report.to_message()

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self, service, storage, agent_id, project):
        storage.insert_nodes = AsyncMock(side_effect=StorageError("write refused"))

        with pytest.raises(KnowledgeGraphError):
            await service.ingest_codebase_structure(agent_id, project)

    @pytest.mark.asyncio
    async def test_missing_directory(self, service, agent_id, tmp_path):
        with pytest.raises(FileNotFoundError):
            await service.ingest_codebase_structure(agent_id, tmp_path / "missing")


class TestEntityIngestion:
    @pytest.mark.asyncio
    async def test_deep_scan_records_entities(self, service, manager, agent_id, project):
        report = await service.ingest_codebase_structure(agent_id, project, perform_deep_entity_ingestion=True)

        entity_report = report.entity_report
        assert entity_report.total_files == 3
        assert entity_report.processed_files == 3
        assert entity_report.failed_files == 0
        assert "Deep Scan Results:" in report.to_message()

        nodes, relations = await graph_snapshot(manager, agent_id)
        assert ("a.ts::Widget", "class") in nodes
        assert ("a.ts::Widget::render", "method") in nodes
        assert ("b.ts::helper", "function") in nodes
        assert ("a.ts::Widget", "a.ts", "defined_in_file") in relations
        assert ("a.ts::Widget::render", "a.ts", "defined_in_file") in relations
        assert ("a.ts::Widget", "a.ts::Widget::render", "has_method") in relations
        assert ("b.ts::helper", "b.ts::format", "calls_function") in relations
        assert not any(relation_type.startswith("calls_") and source.startswith("a.ts")
                       for source, _, relation_type in relations)

        render = nodes[("a.ts::Widget::render", "method")]["observations"]
        assert "type: method" in render
        assert "defined_in_file_path: a.ts" in render
        assert "parent_class_full_name: a.ts::Widget" in render
        assert 'calls: ["helper"]' in render

        helper = nodes[("b.ts::helper", "function")]["observations"]
        assert "exported: yes" in helper
        assert "lines: 1-3" in helper

        file_observations = nodes[("b.ts", "file")]["observations"]
        assert any(obs.startswith("content_hash: ") for obs in file_observations)

    @pytest.mark.asyncio
    async def test_unchanged_files_are_skipped(self, service, agent_id, project):
        await service.ingest_codebase_structure(agent_id, project, perform_deep_entity_ingestion=True)

        report = await service.ingest_codebase_structure(agent_id, project, perform_deep_entity_ingestion=True)

        assert report.entity_report.skipped_unchanged == 3
        assert report.entity_report.processed_files == 0
        assert report.entity_report.entities_created == 0

    @pytest.mark.asyncio
    async def test_changed_file_is_reparsed(self, service, manager, agent_id, project):
        await service.ingest_file_entities(agent_id, [project / "b.ts"], project)
        (project / "b.ts").write_text(B_TS + "\nexport function extra() {}\n")

        report = await service.ingest_file_entities(agent_id, [project / "b.ts"], project)

        assert report.processed_files == 1
        assert report.entities_created == 1
        nodes, _ = await graph_snapshot(manager, agent_id)
        assert ("b.ts::extra", "function") in nodes
        hashes = [obs for obs in nodes[("b.ts", "file")]["observations"] if obs.startswith("content_hash: ")]
        assert len(hashes) == 2

    @pytest.mark.asyncio
    async def test_inheritance_within_file(self, service, manager, agent_id, tmp_path):
        (tmp_path / "shapes.ts").write_text(
            "interface Drawable { draw(): void; }\n"
            "class Shape {}\n"
            "export class Circle extends Shape implements Drawable {\n"
            "  draw() {}\n"
            "}\n"
        )

        report = await service.ingest_file_entities(agent_id, [tmp_path / "shapes.ts"], tmp_path)

        assert report.processed_files == 1
        _, relations = await graph_snapshot(manager, agent_id)
        assert ("shapes.ts::Circle", "shapes.ts::Shape", "extends_class") in relations
        assert ("shapes.ts::Circle", "shapes.ts::Drawable", "implements_interface") in relations

    @pytest.mark.asyncio
    async def test_unsupported_and_outside_files_fail(self, service, agent_id, tmp_path):
        (tmp_path / "root").mkdir()
        (tmp_path / "root" / "notes.txt").write_text("hello")
        (tmp_path / "elsewhere.ts").write_text("export const x = 1;")

        report = await service.ingest_file_entities(
            agent_id,
            [tmp_path / "root" / "notes.txt", tmp_path / "elsewhere.ts"],
            tmp_path / "root",
        )

        assert report.total_files == 2
        assert report.failed_files == 2
        assert report.processed_files == 0
        assert "Unsupported language" in report.errors[1]
        assert "outside project root" in report.errors[0]

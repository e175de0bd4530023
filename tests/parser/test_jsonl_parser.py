"""Unit tests for the JSON Lines parser."""

from pathlib import Path

from agent_memory.parser.extractor import get_language_parser


class TestJsonlParser:
    def test_entities_per_line_and_invalid_lines_skipped(self, tmp_path: Path):
        parser = get_language_parser("jsonl")
        content = "\n".join([
            '{"entityType": "function", "name": "load", "signature": "load()"}',
            "not json",
            '{"name": "retries", "value": 3}',
            '{"type": "event", "id": "evt-1", "message": "started"}',
            "[1, 2]",
        ])

        entities = parser.parse_code_entities(tmp_path / "data.jsonl", content, tmp_path)

        assert [entity.type for entity in entities] == ["function", "variable", "unknown"]
        load, retries, event = entities
        assert load.name == "load"
        assert load.signature == "load()"
        assert retries.full_name == "data.jsonl::retries"
        assert retries.signature == "retries: 3"
        assert event.name == "evt-1"
        assert event.signature == "started"

    def test_file_and_module_references_become_imports(self, tmp_path: Path):
        parser = get_language_parser("jsonl")
        content = '{"file_path": "src/app.ts", "module": "lodash"}\n'

        imports = parser.parse_imports(tmp_path / "refs.jsonl", content, tmp_path)

        assert [(i.type, i.target_path) for i in imports] == [
            ("file", "src/app.ts"),
            ("module", "lodash"),
        ]

"""
JSON Lines parser.

Each non-blank line is parsed as one JSON object. Lines that fail to parse
are skipped with a warning; they never fail the whole file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

from agent_memory.parser.extractor.base_extractor import LanguageParser, ParseOptions
from agent_memory.parser.models import ExtractedCodeEntity, ExtractedImport, ParseResult
from agent_memory.utils.logging import get_logger

logger = get_logger(__name__)

FILE_REFERENCE_KEYS = ("file_path", "filePath", "path", "absolute_path")
MODULE_REFERENCE_KEYS = ("module", "moduleName")
KNOWN_ENTITY_TYPES = frozenset({
    "class",
    "function",
    "method",
    "interface",
    "variable",
    "control_flow",
    "call_signature",
})
RECORD_TYPES = frozenset({"event", "log", "record"})
SIGNATURE_PREVIEW_LENGTH = 100


class JsonlParser(LanguageParser):
    """Parser for `.jsonl` / `.ndjson` data files."""

    @property
    def language(self) -> str:
        return "jsonl"

    def _perform_full_parse(
        self,
        file_path: Path,
        content: str,
        project_root: Path | None,
        options: ParseOptions,
    ) -> ParseResult:
        relative = self._relative_path(file_path, project_root)
        result = ParseResult()
        for line_number, raw_line, obj in self._iter_objects(file_path, content):
            result.imports.extend(self._imports_for(obj, raw_line, line_number))
            result.entities.append(self._entity_for(obj, relative, line_number))
        return result

    def _iter_objects(self, file_path: Path, content: str) -> Iterator[tuple[int, str, dict[str, Any]]]:
        lines = [line for line in content.split("\n") if line.strip()]
        for index, line in enumerate(lines, start=1):
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping invalid JSON at line {index} in {file_path}: {e}")
                continue
            if not isinstance(obj, dict):
                logger.warning(f"Skipping non-object JSON at line {index} in {file_path}")
                continue
            yield index, line, obj

    def _imports_for(self, obj: dict[str, Any], raw_line: str, line_number: int) -> list[ExtractedImport]:
        imports: list[ExtractedImport] = []
        for key in FILE_REFERENCE_KEYS:
            if isinstance(obj.get(key), str) and obj[key]:
                imports.append(ExtractedImport(
                    type="file",
                    target_path=obj[key],
                    original_import_string=raw_line,
                    start_line=line_number,
                    end_line=line_number,
                ))
        for key in MODULE_REFERENCE_KEYS:
            if isinstance(obj.get(key), str) and obj[key]:
                imports.append(ExtractedImport(
                    type="module",
                    target_path=obj[key],
                    original_import_string=raw_line,
                    start_line=line_number,
                    end_line=line_number,
                ))
        return imports

    def _entity_for(self, obj: dict[str, Any], relative: str, line_number: int) -> ExtractedCodeEntity:
        preview = json.dumps(obj)[:SIGNATURE_PREVIEW_LENGTH]
        entity_type = "unknown"
        name = f"json_object_line_{line_number}"
        signature = preview
        full_name = f"{relative}::line_{line_number}"

        if obj.get("entityType") in KNOWN_ENTITY_TYPES:
            entity_type = obj["entityType"]
            name = str(obj.get("name") or name)
            signature = str(obj.get("signature") or signature)
            full_name = str(obj.get("fullName") or full_name)
        elif obj.get("type") in RECORD_TYPES:
            name = str(obj.get("id") or obj.get("name") or name)
            signature = str(obj.get("message") or signature)
            full_name = f"{relative}::{name}"
        elif obj.get("name") and "value" in obj:
            entity_type = "variable"
            name = str(obj["name"])
            signature = f"{name}: {json.dumps(obj['value'])}"
            full_name = f"{relative}::{name}"
        elif obj.get("action") and obj.get("target"):
            entity_type = "control_flow"
            name = str(obj["action"])
            signature = f"{obj['action']} {obj['target']}"
            full_name = f"{relative}::{name}"

        return ExtractedCodeEntity(
            type=entity_type,
            name=name,
            full_name=full_name,
            start_line=line_number,
            end_line=line_number,
            file_path=relative,
            containing_directory=self._containing_directory(relative),
            signature=signature,
            is_exported=True,
            metadata={"originalJson": obj, **obj},
        )

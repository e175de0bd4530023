"""
Codebase ingestion into the knowledge graph.

`ingest_codebase_structure` mirrors a directory tree as `file` / `directory`
nodes joined by `contains_item`, then links files through their imports.
`ingest_file_entities` (the deep scan) parses individual files and records
their classes, functions and methods with `defined_in_file`, `has_method`,
`calls_*`, `extends_class` and `implements_interface` relations.

Both passes are idempotent: nodes are matched by (name, entityType), only
observations not already present are appended, and a relation is created
only when the same triple does not exist yet.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from agent_memory.core.config import Settings, settings as default_settings
from agent_memory.parser.cache import InMemoryParserCache, ParserCache
from agent_memory.parser.exceptions import ParseError, UnsupportedLanguageError
from agent_memory.parser.extractor import LanguageParser, get_language_parser, get_supported_languages
from agent_memory.parser.file_types import language_for_path
from agent_memory.parser.models import ExtractedCodeEntity, ExtractedImport
from agent_memory.services.ingestion.scanner import ScannedItem, relative_name, scan_directory
from agent_memory.services.ingestion.stats import EntityIngestionReport, IngestionReport
from agent_memory.services.kg.knowledge_graph_manager import KnowledgeGraphManager
from agent_memory.utils.logging import Logger, get_logger

logger = get_logger(__name__)

IMPORT_LANGUAGES = frozenset({"typescript", "javascript", "python", "php"})
SCRIPT_EXTENSIONS = (".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs")
CLASS_LIKE_TYPES = frozenset({"class", "interface", "trait", "enum"})
CALLABLE_TYPES = frozenset({"function", "method"})
MAX_DOCSTRING_OBSERVATION = 200


def _short_name(type_name: str) -> str:
    return type_name.rsplit("\\", 1)[-1].rsplit(".", 1)[-1]


def find_actual_file(base: Path) -> Path | None:
    """Map an import target to a file on disk.

    A `.js` specifier prefers a sibling `.ts` source. Otherwise the path is
    tried as-is, then with script extensions, then as a Python or PHP module.
    """
    if base.suffix == ".js":
        typescript_source = base.with_suffix(".ts")
        if typescript_source.is_file():
            return typescript_source
    if base.is_file():
        return base

    stem = base.with_suffix("") if base.suffix.lower() in SCRIPT_EXTENSIONS else base
    candidates = [Path(f"{stem}{extension}") for extension in SCRIPT_EXTENSIONS]
    candidates += [Path(f"{base}.py"), base / "__init__.py", Path(f"{base}.php")]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


NodeKey = tuple[str, str]


@dataclass
class _KnownNode:
    name: str
    entity_type: str
    observations: list[str]
    node_id: str | None = None
    pending: bool = False


@dataclass
class _Batch:
    """Graph writes collected during a pass and flushed together.

    Nodes are keyed by (name, entityType) so that a module and a directory
    sharing a name stay distinct.
    """
    entities: list[dict[str, Any]] = field(default_factory=list)
    observations: dict[NodeKey, list[str]] = field(default_factory=dict)
    relations: dict[tuple[NodeKey, NodeKey, str], None] = field(default_factory=dict)

    def add_relation(self, source: NodeKey, target: NodeKey, relation_type: str) -> None:
        self.relations.setdefault((source, target, relation_type), None)


class _NodeIndex:
    """Nodes already in the graph or staged for creation, keyed by (name, entityType)."""

    def __init__(self):
        self._nodes: dict[NodeKey, _KnownNode] = {}

    def __contains__(self, key: NodeKey) -> bool:
        return key in self._nodes

    def names(self) -> set[str]:
        return {name for name, _ in self._nodes}

    def node_id(self, key: NodeKey) -> str | None:
        node = self._nodes.get(key)
        return node.node_id if node is not None else None

    def load(self, nodes: Iterable[dict[str, Any]]) -> None:
        # Oldest first, so the first node seen per key wins.
        for node in nodes:
            key = (node["name"], node["entityType"])
            self._nodes.setdefault(
                key,
                _KnownNode(node["name"], node["entityType"], list(node["observations"]), node["node_id"]),
            )

    def has_observation(self, name: str, entity_type: str, observation: str) -> bool:
        node = self._nodes.get((name, entity_type))
        return node is not None and observation in node.observations

    def stage(self, batch: _Batch, name: str, entity_type: str, observations: Sequence[str]) -> None:
        """Stage a node, or the observations it is missing."""
        node = self._nodes.get((name, entity_type))
        if node is None:
            node = _KnownNode(name, entity_type, [], pending=True)
            self._nodes[(name, entity_type)] = node
            batch.entities.append({"name": name, "entityType": entity_type, "observations": node.observations})

        new = [observation for observation in observations if observation not in node.observations]
        if not new:
            return
        node.observations.extend(new)
        if not node.pending:
            batch.observations.setdefault((name, entity_type), []).extend(new)

    def mark_flushed(self, created: Iterable[dict[str, Any]]) -> None:
        for result in created:
            node = self._nodes.get((result["name"], result["entityType"]))
            if node is not None and node.node_id is None:
                node.node_id = result["node_id"]
        for node in self._nodes.values():
            node.pending = False


class CodebaseIngestionService:
    """Turns a codebase on disk into knowledge-graph nodes and relations."""

    def __init__(
        self,
        manager: KnowledgeGraphManager,
        app_settings: Optional[Settings] = None,
        parser_cache: Optional[ParserCache] = None,
    ):
        self.manager = manager
        self.settings = app_settings or default_settings
        self.parser_cache = parser_cache or InMemoryParserCache(max_entries=self.settings.PARSER_CACHE_MAX_ENTRIES)
        self._parsers: dict[str, LanguageParser] = {}

    async def ingest_codebase_structure(
        self,
        agent_id: str,
        directory: str | Path,
        project_root: str | Path | None = None,
        parse_imports: bool = True,
        perform_deep_entity_ingestion: bool = False,
    ) -> IngestionReport:
        """Scan `directory` and mirror it in the graph.

        Args:
            agent_id: Graph namespace to write into
            directory: Directory to scan
            project_root: Root that node names are relative to; defaults to `directory`
            parse_imports: Create `imports_file` / `imports_module` relations
            perform_deep_entity_ingestion: Also run `ingest_file_entities` on
                every scanned file with a parser

        Raises:
            FileNotFoundError: If `directory` does not exist
            ValueError: If `directory` is not a directory inside `project_root`
            KnowledgeGraphError: On storage faults
        """
        log = Logger(__name__, {"agent_id": agent_id})
        root = Path(project_root or directory).resolve()

        items = scan_directory(directory, root, self.settings.INGESTION_EXCLUDED_DIRS)
        files = [item for item in items if item.type == "file"]
        report = IngestionReport(
            directory=str(directory),
            files_scanned=len(files),
            directories_scanned=len(items) - len(files),
        )
        log.info(f"Scanned {report.files_scanned} files and {report.directories_scanned} directories under {root}")

        scanned_names = {item.name for item in items}
        parent_names = {item.parent_name for item in items if item.parent_name is not None}
        index = _NodeIndex()
        index.load(await self.manager.open_nodes(agent_id, sorted(scanned_names | parent_names)))

        batch = _Batch()
        for item in items:
            index.stage(batch, item.name, item.type, self._item_observations(item))
            parent = item.parent_name
            if parent is not None and (parent in scanned_names or (parent, "directory") in index):
                batch.add_relation((parent, "directory"), (item.name, item.type), "contains_item")

        if parse_imports:
            await self._stage_imports(agent_id, files, root, index, batch, report, log)

        created, updated = await self._flush_nodes(agent_id, batch, index)
        report.nodes_created += created
        report.nodes_updated += updated
        relations_created, relations_skipped = await self._flush_relations(agent_id, batch, index)
        report.relations_created += relations_created
        report.relations_skipped += relations_skipped

        if perform_deep_entity_ingestion:
            supported = set(get_supported_languages())
            parseable = [item.path for item in files if item.language in supported]
            report.entity_report = await self.ingest_file_entities(agent_id, parseable, root, _index=index)

        log.info(report.to_message())
        return report

    async def ingest_file_entities(
        self,
        agent_id: str,
        paths: Sequence[str | Path],
        project_root: str | Path | None = None,
        language: Optional[str] = None,
        _index: Optional[_NodeIndex] = None,
    ) -> EntityIngestionReport:
        """Parse files and record their code entities.

        A file whose `content_hash` observation matches its current content is
        skipped. Parse failures are counted per file and do not stop the run.

        Raises:
            KnowledgeGraphError: On storage faults
        """
        log = Logger(__name__, {"agent_id": agent_id})
        report = EntityIngestionReport(total_files=len(paths))

        targets: list[tuple[Path, Path, str]] = []
        for raw_path in paths:
            path = Path(raw_path).resolve()
            root = Path(project_root).resolve() if project_root else path.parent
            if not path.is_relative_to(root):
                report.failed_files += 1
                report.errors.append(f"{path}: outside project root {root}")
                continue
            targets.append((path, root, relative_name(path, root)))

        index = _index or _NodeIndex()
        missing = {name for _, _, name in targets} - index.names()
        if missing:
            index.load(await self.manager.open_nodes(agent_id, sorted(missing)))

        attempted: list[tuple[Path, str]] = []
        parsed: list[tuple[str, list[str], list[ExtractedCodeEntity]]] = []
        for path, root, name in targets:
            try:
                raw = path.read_bytes()
            except OSError as e:
                log.warning(f"Could not read {path}: {e}")
                report.failed_files += 1
                report.errors.append(f"{name}: {e}")
                continue

            hash_observation = f"content_hash: {hashlib.sha256(raw).hexdigest()}"
            if index.has_observation(name, "file", hash_observation):
                report.skipped_unchanged += 1
                continue

            attempted.append((path, name))
            file_language = language or language_for_path(path)
            try:
                if file_language is None:
                    raise UnsupportedLanguageError(path.suffix or path.name)
                entities = self._parser(file_language).parse_code_entities(
                    path, raw.decode("utf-8", errors="replace"), root
                )
            except (ParseError, UnsupportedLanguageError) as e:
                log.error(f"Entity extraction failed for {name}: {e}")
                report.failed_files += 1
                report.errors.append(f"{name}: {e}")
                continue
            parsed.append((name, [f"language: {file_language}", hash_observation], entities))

        entity_names = {entity.full_name for _, _, entities in parsed for entity in entities if entity.full_name}
        missing = entity_names - index.names()
        if missing:
            index.load(await self.manager.open_nodes(agent_id, sorted(missing)))

        batch = _Batch()
        for path, name in attempted:
            index.stage(batch, name, "file", [f"absolute_path: {path.as_posix()}", "type: file"])
        for name, file_observations, entities in parsed:
            index.stage(batch, name, "file", file_observations)
            self._stage_entities(entities, name, index, batch)
            report.processed_files += 1

        created, updated = await self._flush_nodes(agent_id, batch, index)
        report.entities_created += created
        report.entities_updated += updated
        relations_created, relations_skipped = await self._flush_relations(agent_id, batch, index)
        report.relations_created += relations_created
        report.relations_skipped += relations_skipped

        log.info(report.to_message())
        return report

    def _parser(self, language: str) -> LanguageParser:
        parser = self._parsers.get(language)
        if parser is None:
            parser = get_language_parser(language, cache=self.parser_cache)
            self._parsers[language] = parser
        return parser

    @staticmethod
    def _item_observations(item: ScannedItem) -> list[str]:
        observations = [
            f"absolute_path: {item.path.as_posix()}",
            f"type: {item.type}",
            f"size_bytes: {item.size_bytes}",
            f"modified_at: {item.modified_at}",
        ]
        if item.language:
            observations.append(f"language: {item.language}")
        return observations

    async def _stage_imports(
        self,
        agent_id: str,
        files: list[ScannedItem],
        root: Path,
        index: _NodeIndex,
        batch: _Batch,
        report: IngestionReport,
        log: Logger,
    ) -> None:
        path_to_name = {item.path.resolve(): item.name for item in files}
        module_names = set()

        for item in files:
            if item.language not in IMPORT_LANGUAGES:
                continue
            try:
                content = item.path.read_text(encoding="utf-8", errors="replace")
                imports = self._parser(item.language).parse_imports(item.path, content)
            except (ParseError, OSError) as e:
                log.warning(f"Import parsing failed for {item.name}: {e}")
                report.import_parse_failures += 1
                report.errors.append(f"{item.name}: {e}")
                continue

            for extracted in imports:
                target_name, relation_type = self._resolve_import(extracted, item, path_to_name)
                if not target_name or target_name == item.name:
                    continue
                if relation_type == "imports_module":
                    module_names.add(target_name)
                target_type = "module" if relation_type == "imports_module" else "file"
                batch.add_relation((item.name, "file"), (target_name, target_type), relation_type)

        new_modules = sorted(name for name in module_names if (name, "module") not in index)
        if new_modules:
            index.load(await self.manager.open_nodes(agent_id, new_modules))
        for name in sorted(module_names):
            index.stage(batch, name, "module", ["type: module"])

    @staticmethod
    def _resolve_import(
        extracted: ExtractedImport,
        item: ScannedItem,
        path_to_name: dict[Path, str],
    ) -> tuple[str, str]:
        if extracted.type == "file":
            candidate = Path(extracted.target_path)
            if not candidate.is_absolute():
                candidate = item.path.parent / candidate
            actual = find_actual_file(candidate)
            if actual is not None and actual.resolve() in path_to_name:
                return path_to_name[actual.resolve()], "imports_file"
            specifier = extracted.original_specifier
            # `from . import x` has a specifier of bare dots
            if specifier and specifier.strip("."):
                return specifier, "imports_module"
            return extracted.target_path, "imports_module"
        return extracted.target_path, "imports_module"

    def _stage_entities(
        self,
        entities: list[ExtractedCodeEntity],
        file_name: str,
        index: _NodeIndex,
        batch: _Batch,
    ) -> None:
        class_like = [entity for entity in entities if entity.type in CLASS_LIKE_TYPES]
        types_by_name: dict[str, ExtractedCodeEntity] = {}
        for entity in class_like:
            types_by_name.setdefault(entity.name, entity)
        callables: dict[str, ExtractedCodeEntity] = {}
        for entity in entities:
            if entity.type in CALLABLE_TYPES:
                callables.setdefault(entity.name, entity)

        for entity in entities:
            if not entity.full_name:
                continue
            key = (entity.full_name, entity.type)
            owner = self._owning_class(entity, class_like) if entity.type == "method" else None
            index.stage(batch, entity.full_name, entity.type, self._entity_observations(entity, file_name, owner))
            batch.add_relation(key, (file_name, "file"), "defined_in_file")

            if owner is not None:
                batch.add_relation((owner.full_name, owner.type), key, "has_method")

            for call in entity.calls:
                target = callables.get(call.name)
                if call.is_new or target is None or target.full_name == entity.full_name:
                    continue
                call_type = call.type or ("method" if "." in call.callee else "function")
                batch.add_relation(key, (target.full_name, target.type), f"calls_{call_type}")

            for base_name in entity.extended_classes or []:
                base = types_by_name.get(_short_name(base_name))
                if base is not None and base.full_name != entity.full_name:
                    batch.add_relation(key, (base.full_name, base.type), "extends_class")
            for interface_name in entity.implemented_interfaces or []:
                interface = types_by_name.get(_short_name(interface_name))
                if interface is None or interface.full_name == entity.full_name:
                    continue
                relation_type = "implements_interface" if interface.type in ("interface", "trait") else "extends_class"
                batch.add_relation(key, (interface.full_name, interface.type), relation_type)

    @staticmethod
    def _owning_class(
        method: ExtractedCodeEntity,
        class_like: list[ExtractedCodeEntity],
    ) -> ExtractedCodeEntity | None:
        """The class-like entity whose full name is the longest prefix of the method's."""
        owners = [
            candidate for candidate in class_like
            if method.full_name.startswith(f"{candidate.full_name}::")
            or method.full_name.startswith(f"{candidate.full_name}.")
        ]
        return max(owners, key=lambda candidate: len(candidate.full_name), default=None)

    @staticmethod
    def _entity_observations(
        entity: ExtractedCodeEntity,
        file_name: str,
        owner: ExtractedCodeEntity | None,
    ) -> list[str]:
        observations = [
            f"type: {entity.type}",
            f"signature: {entity.signature or 'N/A'}",
            f"lines: {entity.start_line}-{entity.end_line}",
            f"exported: {'yes' if entity.is_exported else 'no'}",
            f"defined_in_file_path: {file_name}",
        ]
        if entity.docstring:
            docstring = entity.docstring.strip().replace("\n", " ")
            if len(docstring) > MAX_DOCSTRING_OBSERVATION:
                docstring = docstring[:MAX_DOCSTRING_OBSERVATION] + "..."
            observations.append(f"docstring: {docstring}")
        if entity.parameters:
            observations.append(f"parameters: {json.dumps([p.to_dict() for p in entity.parameters])}")
        if entity.return_type:
            observations.append(f"return_type: {entity.return_type}")
        if owner is not None:
            observations.append(f"parent_class_full_name: {owner.full_name}")
        elif entity.parent_class:
            observations.append(f"parent_class: {entity.parent_class}")
        if entity.implemented_interfaces:
            observations.append(f"implements: {', '.join(entity.implemented_interfaces)}")
        if entity.calls:
            observations.append(f"calls: {json.dumps(sorted({call.name for call in entity.calls}))}")
        return observations

    async def _flush_nodes(self, agent_id: str, batch: _Batch, index: _NodeIndex) -> tuple[int, int]:
        created = updated = 0
        results: list[dict[str, Any]] = []
        if batch.entities:
            results = await self.manager.create_entities(agent_id, batch.entities)
            created = sum(1 for result in results if result["success"])
        index.mark_flushed(result for result in results if result["success"])

        for key, contents in batch.observations.items():
            node_id = index.node_id(key)
            if node_id is not None and await self.manager.add_observations_by_id(agent_id, node_id, contents):
                updated += 1

        batch.entities = []
        batch.observations = {}
        return created, updated

    async def _flush_relations(self, agent_id: str, batch: _Batch, index: _NodeIndex) -> tuple[int, int]:
        """Create staged relations between resolved node ids, skipping ones already present."""
        existing = await self.manager.relation_keys(agent_id) if batch.relations else set()
        pending: list[tuple[str, str, str]] = []
        skipped = 0
        for source, target, relation_type in batch.relations:
            from_id, to_id = index.node_id(source), index.node_id(target)
            if from_id is None or to_id is None:
                logger.debug(f"Unresolved endpoint for {relation_type}: {source} -> {target}")
                skipped += 1
                continue
            edge = (from_id, to_id, relation_type)
            if edge in existing:
                skipped += 1
                continue
            existing.add(edge)
            pending.append(edge)

        created = await self.manager.create_relations_by_id(agent_id, pending) if pending else 0
        batch.relations = {}
        return created, skipped

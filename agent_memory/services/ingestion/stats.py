from dataclasses import dataclass, field


@dataclass
class EntityIngestionReport:
    """Statistics collected while ingesting code entities.

    Attributes:
        total_files: Files requested for ingestion.
        processed_files: Files parsed and loaded.
        skipped_unchanged: Files skipped because their content hash was already recorded.
        failed_files: Files that failed to read or parse.
        entities_created: Entity nodes newly created.
        entities_updated: Nodes that received new observations.
        relations_created: Relations newly created.
        relations_skipped: Relations skipped because they already existed.
        errors: Error messages encountered during ingestion.
    """
    total_files: int = 0
    processed_files: int = 0
    skipped_unchanged: int = 0
    failed_files: int = 0
    entities_created: int = 0
    entities_updated: int = 0
    relations_created: int = 0
    relations_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_message(self) -> str:
        lines = [
            f"Code entity ingestion for {self.processed_files} of {self.total_files} file(s) complete.",
            f"- Code Entities Newly Created: {self.entities_created}",
            f"- Code Entities Updated (Observations): {self.entities_updated}",
            f"- Relations Created: {self.relations_created}",
            f"- Relations Skipped (Duplicates): {self.relations_skipped}",
        ]
        if self.skipped_unchanged:
            lines.append(f"- Files Skipped (Unchanged Hash): {self.skipped_unchanged}")
        if self.failed_files:
            lines.append(f"- Files Failed: {self.failed_files}")
        return "\n".join(lines)


@dataclass
class IngestionReport:
    """Statistics collected while ingesting a codebase structure.

    Attributes:
        directory: Directory that was scanned.
        files_scanned: Files found by the scanner.
        directories_scanned: Directories found by the scanner (including the start directory).
        nodes_created: File, directory and module nodes newly created.
        nodes_updated: Nodes that received new observations.
        relations_created: Relations newly created.
        relations_skipped: Relations skipped because they already existed.
        import_parse_failures: Files whose imports could not be parsed.
        errors: Error messages encountered during ingestion.
        entity_report: Deep entity ingestion results, when requested.
    """
    directory: str = ""
    files_scanned: int = 0
    directories_scanned: int = 0
    nodes_created: int = 0
    nodes_updated: int = 0
    relations_created: int = 0
    relations_skipped: int = 0
    import_parse_failures: int = 0
    errors: list[str] = field(default_factory=list)
    entity_report: EntityIngestionReport | None = None

    def to_message(self) -> str:
        lines = [
            f'Codebase structure ingestion for directory "{self.directory}" complete.',
            f"- Nodes Newly Created: {self.nodes_created}",
            f"- Nodes Updated (Observations): {self.nodes_updated}",
            f"- Relations Created: {self.relations_created}",
        ]
        if self.relations_skipped:
            lines.append(f"- Relations Skipped (Duplicates): {self.relations_skipped}")
        if self.import_parse_failures:
            lines.append(f"- Files With Unparsable Imports: {self.import_parse_failures}")
        message = "\n".join(lines)
        if self.entity_report is not None:
            message += f"\n\nDeep Scan Results:\n{self.entity_report.to_message()}"
        return message

from agent_memory.services.ingestion.codebase_ingestion import CodebaseIngestionService, find_actual_file
from agent_memory.services.ingestion.scanner import ScannedItem, scan_directory
from agent_memory.services.ingestion.stats import EntityIngestionReport, IngestionReport

__all__ = [
    "CodebaseIngestionService",
    "EntityIngestionReport",
    "IngestionReport",
    "ScannedItem",
    "find_actual_file",
    "scan_directory",
]

from pathlib import Path
import enum


class FileTypes(enum.StrEnum):
    """Enum of file types recognised during ingestion"""

    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    PHP = "php"
    JSONL = "jsonl"
    JSON = "json"
    HTML = "html"
    CSS = "css"
    MARKDOWN = "markdown"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_path(cls, path: Path):
        match path.suffix.lower():
            case ".py":
                return cls.PYTHON
            case ".js" | ".jsx" | ".mjs" | ".cjs":
                return cls.JAVASCRIPT
            case ".ts" | ".mts" | ".cts":
                return cls.TYPESCRIPT
            case ".tsx":
                return cls.TSX
            case ".php":
                return cls.PHP
            case ".jsonl" | ".ndjson":
                return cls.JSONL
            case ".json":
                return cls.JSON
            case ".html" | ".htm":
                return cls.HTML
            case ".css" | ".scss" | ".less":
                return cls.CSS
            case ".md" | ".markdown":
                return cls.MARKDOWN
            case _:
                return cls.UNKNOWN

    @property
    def language(self) -> str | None:
        """Language label used for observations and parser lookup."""
        if self is FileTypes.UNKNOWN:
            return None
        if self is FileTypes.TSX:
            return FileTypes.TYPESCRIPT.value
        return self.value


def language_for_path(path: Path) -> str | None:
    return FileTypes.from_path(path).language

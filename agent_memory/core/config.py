import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "agent-memory"

    env: str = "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Graph persistence: "memory" or "neo4j"
    GRAPH_BACKEND: str = os.getenv("GRAPH_BACKEND", "memory")
    NEO4J_URI: str = os.getenv("NEO4J_URI", "bolt://localhost:7687")
    NEO4J_USERNAME: str = os.getenv("NEO4J_USERNAME", "neo4j")
    NEO4J_PASSWORD: str = os.getenv("NEO4J_PASSWORD", "")
    NEO4J_DATABASE: str = os.getenv("NEO4J_DATABASE", "neo4j")

    # AI service: "gemini", "claude" or "none"
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "gemini")
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    CLAUDE_MODEL: str = os.getenv("CLAUDE_MODEL", "claude-3-5-sonnet-20241022")
    LLM_TIMEOUT_SECONDS: float = 60.0

    KG_SEARCH_LIMIT: int = 100
    KG_MAX_PROMPT_GRAPH_LENGTH: int = 150_000
    KG_MAX_NL_OPERATIONS: int = 4
    KG_INFERENCE_CONFIDENCE_THRESHOLD: float = 0.8
    KG_INFERENCE_RELATION_TYPES: list[str] = [
        "calls",
        "uses",
        "imports",
        "extends",
        "implements",
        "defined_in",
        "related_to_feature",
        "tests",
    ]

    PARSER_CACHE_MAX_ENTRIES: int = 256
    INGESTION_EXCLUDED_DIRS: list[str] = [
        "node_modules",
        ".git",
        ".vscode",
        "dist",
        "build",
        "coverage",
        "target",
        "out",
        "__pycache__",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()

"""Factory selecting the configured LLM provider."""
from enum import StrEnum
from typing import Optional

from agent_memory.core.config import Settings, settings as default_settings
from agent_memory.services.llm.base_client import BaseLLMClient
from agent_memory.utils.logging import get_logger

logger = get_logger(__name__)


class LLMProvider(StrEnum):
    GEMINI = "gemini"
    CLAUDE = "claude"
    NONE = "none"


def create_llm_client(app_settings: Optional[Settings] = None) -> Optional[BaseLLMClient]:
    """Build the client named by `LLM_PROVIDER`.

    Returns None when the provider is "none" or its API key is missing, in
    which case AI-backed operations use their deterministic fallbacks.

    Raises:
        ValueError: If the provider name is not recognised
    """
    app_settings = app_settings or default_settings
    try:
        provider = LLMProvider(app_settings.LLM_PROVIDER.lower())
    except ValueError as e:
        raise ValueError(f"Unknown LLM_PROVIDER: {app_settings.LLM_PROVIDER}") from e

    match provider:
        case LLMProvider.GEMINI:
            if not app_settings.GEMINI_API_KEY:
                logger.warning("GEMINI_API_KEY not set; AI features disabled")
                return None
            from agent_memory.services.llm.gemini_client import GeminiClient

            return GeminiClient(
                api_key=app_settings.GEMINI_API_KEY,
                model=app_settings.GEMINI_MODEL,
                timeout=app_settings.LLM_TIMEOUT_SECONDS,
            )
        case LLMProvider.CLAUDE:
            if not app_settings.ANTHROPIC_API_KEY:
                logger.warning("ANTHROPIC_API_KEY not set; AI features disabled")
                return None
            from agent_memory.services.llm.claude_client import ClaudeClient

            return ClaudeClient(
                api_key=app_settings.ANTHROPIC_API_KEY,
                model=app_settings.CLAUDE_MODEL,
                timeout=app_settings.LLM_TIMEOUT_SECONDS,
            )
        case LLMProvider.NONE:
            return None

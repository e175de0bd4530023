"""LLM service module for AI-assisted graph operations."""

from .base_client import BaseLLMClient
from .exceptions import LLMClientError, LLMResponseParseError
from .json_response import parse_llm_json, strip_code_fences
from .llm_factory import LLMProvider, create_llm_client

__all__ = [
    "BaseLLMClient",
    "LLMClientError",
    "LLMProvider",
    "LLMResponseParseError",
    "create_llm_client",
    "parse_llm_json",
    "strip_code_fences",
]

"""Helpers for decoding JSON returned by an LLM."""

import json
import re
from typing import Any

from agent_memory.services.llm.exceptions import LLMResponseParseError

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Return the body of the first Markdown code block, or the text itself."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_llm_json(text: str) -> Any:
    """Decode an LLM response as JSON.

    Accepts bare JSON, fenced JSON, or JSON surrounded by prose (the outermost
    object or array is extracted).

    Raises:
        LLMResponseParseError: If no JSON value can be decoded
    """
    body = strip_code_fences(text or "")
    if not body:
        raise LLMResponseParseError("Empty LLM response", text)

    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (body.find("{"), body.find("[")) if i != -1]
    if starts:
        start = min(starts)
        closer = "}" if body[start] == "{" else "]"
        end = body.rfind(closer)
        if end > start:
            try:
                return json.loads(body[start:end + 1])
            except json.JSONDecodeError as e:
                raise LLMResponseParseError(f"Invalid JSON in LLM response: {e}", text) from e

    raise LLMResponseParseError("No JSON found in LLM response", text)

"""Anthropic Claude API client."""
from typing import Any, Optional

from anthropic import AnthropicError, AsyncAnthropic

from agent_memory.services.llm.base_client import BaseLLMClient, Completion
from agent_memory.services.llm.exceptions import LLMClientError
from agent_memory.utils.logging import get_logger

logger = get_logger(__name__)


class ClaudeClient(BaseLLMClient):
    """Completions through the Anthropic messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        max_tokens: int = 8000,
        temperature: float = 0.0,
        timeout: float = 60
    ):
        super().__init__(api_key, model, max_tokens, temperature, timeout)
        self.client = AsyncAnthropic(api_key=api_key, timeout=timeout)

    @property
    def provider_name(self) -> str:
        return "claude"

    async def generate_completion(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> Completion:
        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
            "temperature": kwargs.get("temperature", self.temperature),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt

        try:
            response = await self.client.messages.create(**request)
        except AnthropicError as e:
            logger.error(f"Claude request failed for model {self.model}: {e}", exc_info=True)
            raise LLMClientError(f"Claude API error: {e}", self.provider_name) from e

        # Tool-use and thinking blocks carry no answer text.
        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        logger.debug(
            f"Claude completion: {response.usage.input_tokens} input / "
            f"{response.usage.output_tokens} output tokens, stop_reason={response.stop_reason}"
        )
        return {
            "content": text,
            "usage": {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
            "model": response.model,
            "stop_reason": response.stop_reason,
        }

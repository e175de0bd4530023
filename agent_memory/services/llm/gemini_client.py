"""Google Gemini API client."""
from typing import Optional

import google.generativeai as genai

from agent_memory.services.llm.base_client import BaseLLMClient, Completion
from agent_memory.services.llm.exceptions import LLMClientError
from agent_memory.utils.logging import get_logger

logger = get_logger(__name__)


class GeminiClient(BaseLLMClient):
    """Wrapper for `google.generativeai` text generation."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        max_tokens: int = 8192,
        temperature: float = 0.0,
        timeout: float = 60
    ):
        if not api_key:
            raise ValueError("Gemini API key cannot be empty.")
        super().__init__(api_key, model, max_tokens, temperature, timeout)
        genai.configure(api_key=api_key)
        self.gemini_model = genai.GenerativeModel(model)
        logger.info(f"GeminiClient initialized for model: {model}")

    @property
    def provider_name(self) -> str:
        return "gemini"

    async def generate_completion(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> Completion:
        """Generate completion with Gemini.

        Gemini takes a single prompt here, so the system prompt is prepended.
        """
        if system_prompt:
            prompt = f"{system_prompt}\n\n{prompt}"

        generation_config = genai.types.GenerationConfig(
            candidate_count=1,
            temperature=kwargs.get("temperature", self.temperature),
            max_output_tokens=kwargs.get("max_tokens", self.max_tokens),
        )

        try:
            response = await self.gemini_model.generate_content_async(
                prompt,
                generation_config=generation_config,
                request_options={"timeout": self.timeout},
            )
            text = "".join(part.text for part in response.parts)
        except Exception as e:
            logger.error(f"Gemini API error: {e}", exc_info=True)
            raise LLMClientError(f"Gemini API error: {e}", self.provider_name) from e

        usage = getattr(response, "usage_metadata", None)
        finish_reason = response.candidates[0].finish_reason if response.candidates else None
        return {
            "content": text,
            "usage": {
                "input_tokens": getattr(usage, "prompt_token_count", 0) or 0,
                "output_tokens": getattr(usage, "candidates_token_count", 0) or 0,
            },
            "model": self.model,
            "stop_reason": getattr(finish_reason, "name", str(finish_reason)),
        }

"""Provider-neutral interface for the AI clients used by graph operations."""
from abc import ABC, abstractmethod
from typing import Optional, TypedDict


class TokenUsage(TypedDict):
    input_tokens: int
    output_tokens: int


class Completion(TypedDict):
    """Normalised completion returned by every provider."""
    content: str
    usage: TokenUsage
    model: str
    stop_reason: Optional[str]


class BaseLLMClient(ABC):
    """A text-completion client for one provider and model.

    Graph services only call `generate_completion` and read `content`; the
    usage and stop reason are kept for logging.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 8000,
        temperature: float = 0.0,
        timeout: float = 60
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    @abstractmethod
    async def generate_completion(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> Completion:
        """Complete `prompt`; `max_tokens` and `temperature` may be overridden per call.

        Raises:
            LLMClientError: If the provider call fails
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Short provider label, e.g. 'gemini' or 'claude'."""

class LLMClientError(Exception):
    """Raised when a call to an LLM provider fails.

    Attributes:
        message: Explanation of the error
        provider: Provider name (e.g. 'gemini', 'claude')
    """

    def __init__(self, message: str, provider: str | None = None):
        self.message = message
        self.provider = provider
        full_message = f"{message} [provider={provider}]" if provider else message
        super().__init__(full_message)


class LLMResponseParseError(Exception):
    """Raised when an LLM response cannot be decoded as the expected JSON."""

    def __init__(self, message: str, raw_text: str = ""):
        self.message = message
        self.raw_text = raw_text
        super().__init__(message)

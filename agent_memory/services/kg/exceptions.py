from agent_memory.utils.errors import with_details


class KnowledgeGraphError(Exception):
    """Raised when a knowledge graph operation fails for infrastructure reasons.

    Missing entities are never reported through this exception; they produce
    `success: False` items in batch results instead.

    Attributes:
        message: Explanation of the error
        operation: Manager operation that failed (e.g. 'create_entities')
        agent_id: Agent whose graph was being accessed
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        agent_id: str | None = None,
    ):
        self.message = message
        self.operation = operation
        self.agent_id = agent_id
        super().__init__(with_details(message, operation=operation, agent_id=agent_id))


class AIServiceError(KnowledgeGraphError):
    """Raised when an AI-backed operation has no deterministic fallback."""
    pass

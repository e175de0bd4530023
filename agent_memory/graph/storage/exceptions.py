from agent_memory.utils.errors import with_details


class StorageError(Exception):
    """Raised when a graph persistence operation fails.

    Attributes:
        message: Explanation of the error
        operation: Storage operation that failed (e.g. 'insert_nodes')
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

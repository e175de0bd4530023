"""
Knowledge Graph Service Module

Public API:
  - KnowledgeGraphManager: Entity/relation lifecycle, search, traversal,
    natural-language queries, relation inference and Mermaid output
  - create_knowledge_graph_manager(settings): Manager wired from settings
  - KnowledgeGraphError / AIServiceError: Domain errors
"""

from agent_memory.services.kg.exceptions import AIServiceError, KnowledgeGraphError
from agent_memory.services.kg.kg_manager_factory import create_knowledge_graph_manager
from agent_memory.services.kg.knowledge_graph_manager import KnowledgeGraphManager
from agent_memory.services.kg.nl_query import GraphOperation, OperationKind, QueryAnalysis

__all__ = [
    "AIServiceError",
    "GraphOperation",
    "KnowledgeGraphError",
    "KnowledgeGraphManager",
    "OperationKind",
    "QueryAnalysis",
    "create_knowledge_graph_manager",
]

"""
Natural-language graph queries.

A question is answered in three steps:
  1. The AI client analyses the question against a bounded summary of the
     graph and returns a `QueryAnalysis` JSON object.
  2. `translate_analysis` turns the analysis into at most
     `KG_MAX_NL_OPERATIONS` concrete `GraphOperation`s.
  3. Each operation runs through its handler; every handler returns a list,
     and the combined results are deduplicated.

Without an AI client, or when the AI call, its JSON or one of the derived
operations fails, the query falls back to a plain `search_nodes` call with
`usedGemini: False`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agent_memory.core.config import Settings
from agent_memory.services.kg.prompts import NL_QUERY_SYSTEM_PROMPT, NL_QUERY_TRANSLATION_PROMPT
from agent_memory.services.llm import (
    BaseLLMClient,
    LLMClientError,
    LLMResponseParseError,
    parse_llm_json,
)
from agent_memory.utils.logging import get_logger

if TYPE_CHECKING:
    from agent_memory.services.kg.knowledge_graph_manager import KnowledgeGraphManager

logger = get_logger(__name__)

PROMPT_NODE_LIMIT = 50
PROMPT_RELATION_LIMIT = 50
PROMPT_OBSERVATIONS_PER_NODE = 2
PROMPT_OBSERVATION_LENGTH = 50
CONNECTIVITY_LIMIT = 20


class OperationKind(StrEnum):
    SEARCH_NODES = "search_nodes"
    OPEN_NODES = "open_nodes"
    GRAPH_TRAVERSAL = "graph_traversal"
    READ_GRAPH = "read_graph"
    FOCUS_EXPANSION = "focus_expansion"
    CONNECTIVITY_ANALYSIS = "connectivity_analysis"


@dataclass
class GraphOperation:
    operation: OperationKind
    args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"operation": self.operation.value, "args": dict(self.args)}


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class TraversalRules(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start_nodes: list[str] = Field(default_factory=list)

    @field_validator("start_nodes", mode="before")
    @classmethod
    def coerce_start_nodes(cls, v):
        return [str(item) for item in _as_list(v)]


class SearchOptimization(BaseModel):
    model_config = ConfigDict(extra="ignore")

    focus_nodes: list[str] = Field(default_factory=list)

    @field_validator("focus_nodes", mode="before")
    @classmethod
    def coerce_focus_nodes(cls, v):
        return [str(item) for item in _as_list(v)]


class QueryAnalysis(BaseModel):
    """Structured analysis of a question, as returned by the AI client.

    Every field is optional; missing or null values fall back to defaults.
    """
    model_config = ConfigDict(extra="ignore")

    query_intent: Optional[str] = None
    search_strategy: str = "hybrid"
    primary_entity_types: list[str] = Field(default_factory=list)
    semantic_keywords: list[str] = Field(default_factory=list)
    key_relation_types: list[str] = Field(default_factory=list)
    graph_traversal_rules: TraversalRules = Field(default_factory=TraversalRules)
    search_optimization: SearchOptimization = Field(default_factory=SearchOptimization)
    traversal_depth: Optional[int] = None
    operations: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("search_strategy", mode="before")
    @classmethod
    def default_strategy(cls, v):
        return str(v).lower() if v else "hybrid"

    @field_validator("primary_entity_types", "semantic_keywords", "key_relation_types", mode="before")
    @classmethod
    def coerce_string_lists(cls, v):
        return [str(item) for item in _as_list(v)]

    @field_validator("graph_traversal_rules", "search_optimization", mode="before")
    @classmethod
    def default_nested(cls, v):
        return v if isinstance(v, dict) else {}

    @field_validator("operations", mode="before")
    @classmethod
    def keep_object_operations(cls, v):
        return [item for item in _as_list(v) if isinstance(item, dict)]


def _explicit_operations(analysis: QueryAnalysis) -> list[GraphOperation]:
    operations: list[GraphOperation] = []
    for raw in analysis.operations:
        try:
            kind = OperationKind(raw.get("operation"))
        except ValueError:
            logger.warning(f"Dropping unknown graph operation: {raw.get('operation')!r}")
            continue
        args = raw.get("args")
        operations.append(GraphOperation(kind, dict(args) if isinstance(args, dict) else {}))
    return operations


def keyword_fallback(original_query: str) -> GraphOperation:
    terms = [term for term in re.split(r"[^a-zA-Z0-9_]", original_query.lower()) if len(term) > 2][:3]
    if terms:
        return GraphOperation(
            OperationKind.SEARCH_NODES,
            {"query": " ".join(terms), "strategy": "enhanced_fallback"},
        )
    return GraphOperation(
        OperationKind.SEARCH_NODES,
        {"query": original_query, "strategy": "basic_fallback"},
    )


def translate_analysis(
    analysis: QueryAnalysis,
    original_query: str,
    max_operations: int = 4,
) -> list[GraphOperation]:
    """Derive graph operations from an analysis.

    Strategies contribute in order: explicit operations, traversal from start
    nodes, entity-type filtered and general keyword searches, focus-node
    expansion, connectivity aggregation. With nothing derived, a keyword
    search over the original question is used.
    """
    strategy = analysis.search_strategy
    relation_types = analysis.key_relation_types
    depth = analysis.traversal_depth or 2

    operations = _explicit_operations(analysis)

    if strategy in ("traversal", "structural") and relation_types:
        for start_node in analysis.graph_traversal_rules.start_nodes[:2]:
            operations.append(
                GraphOperation(
                    OperationKind.GRAPH_TRAVERSAL,
                    {"start_node": start_node, "relation_types": relation_types, "depth": depth},
                )
            )

    if strategy in ("semantic", "hybrid") and analysis.semantic_keywords:
        terms = " ".join(analysis.semantic_keywords[:3])
        for entity_type in analysis.primary_entity_types[:2]:
            operations.append(
                GraphOperation(
                    OperationKind.SEARCH_NODES,
                    {"query": f"entityType:{entity_type} {terms}", "strategy": "semantic_filtered"},
                )
            )
        operations.append(
            GraphOperation(
                OperationKind.SEARCH_NODES,
                {"query": " ".join(analysis.semantic_keywords), "strategy": "semantic_general"},
            )
        )

    for focus_node in analysis.search_optimization.focus_nodes[:2]:
        operations.append(
            GraphOperation(
                OperationKind.FOCUS_EXPANSION,
                {
                    "focus_node": focus_node,
                    "relation_types": relation_types,
                    "expansion_depth": min(depth, 3),
                },
            )
        )

    if strategy == "aggregation":
        operations.append(
            GraphOperation(
                OperationKind.CONNECTIVITY_ANALYSIS,
                {"filter_entity_types": analysis.primary_entity_types},
            )
        )

    if not operations:
        logger.warning("No graph operations derived from analysis, using keyword fallback")
        operations.append(keyword_fallback(original_query))

    return operations[:max_operations]


def deduplicate_results(results: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep the first result per `node_id`, or per JSON identity for other shapes."""
    seen: set[str] = set()
    unique: list[dict[str, Any]] = []
    for item in results:
        key = item.get("node_id") or json.dumps(item, sort_keys=True, default=str)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


class NaturalLanguageQueryEngine:
    """Answers natural-language questions over one agent's graph."""

    def __init__(
        self,
        manager: KnowledgeGraphManager,
        llm_client: Optional[BaseLLMClient],
        app_settings: Settings,
    ):
        self.manager = manager
        self.llm_client = llm_client
        self.settings = app_settings

    async def query(self, agent_id: str, natural_language_query: str) -> dict[str, Any]:
        if self.llm_client is None:
            logger.warning("No AI client configured, using simple search")
            return await self._fallback(agent_id, natural_language_query)

        try:
            analysis = await self._analyse(agent_id, natural_language_query)
        except (LLMClientError, LLMResponseParseError, ValidationError) as e:
            logger.error(f"Natural language analysis failed: {e}", exc_info=True)
            return await self._fallback(agent_id, natural_language_query, error=str(e))

        operations = translate_analysis(
            analysis,
            natural_language_query,
            max_operations=self.settings.KG_MAX_NL_OPERATIONS,
        )
        labels = [f"{op.operation}({op.args.get('strategy', 'default')})" for op in operations]
        logger.info(f"Running {len(operations)} graph operations: {labels}")

        results: list[dict[str, Any]] = []
        try:
            for operation in operations:
                results.extend(await self.execute(agent_id, operation))
        except (ValueError, TypeError) as e:
            # Operation args come straight from the AI response.
            logger.error(f"Graph operations {labels} failed: {e}", exc_info=True)
            return await self._fallback(agent_id, natural_language_query, error=str(e))

        return {
            "metadata": {
                "originalQuery": natural_language_query,
                "translatedOperations": [op.to_dict() for op in operations],
                "usedGemini": True,
                "enhancedAnalysis": {
                    "queryIntent": analysis.query_intent,
                    "searchStrategy": analysis.search_strategy,
                },
            },
            "results": deduplicate_results(results),
        }

    async def _analyse(self, agent_id: str, natural_language_query: str) -> QueryAnalysis:
        graph_context = await self.prepare_graph_context(agent_id)
        prompt = NL_QUERY_TRANSLATION_PROMPT.format(
            natural_language_query=natural_language_query,
            graph_context=graph_context,
        )
        response = await self.llm_client.generate_completion(prompt, system_prompt=NL_QUERY_SYSTEM_PROMPT)
        payload = parse_llm_json(response.get("content", ""))
        if not isinstance(payload, dict):
            raise LLMResponseParseError("Expected a JSON object for query analysis", response.get("content", ""))
        return QueryAnalysis.model_validate(payload)

    async def _fallback(
        self,
        agent_id: str,
        natural_language_query: str,
        error: Optional[str] = None,
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "originalQuery": natural_language_query,
            "translatedOperations": [
                {"operation": OperationKind.SEARCH_NODES.value, "args": {"query": natural_language_query}}
            ],
            "usedGemini": False,
        }
        if error is not None:
            metadata["error"] = error
        results = await self.manager.search_nodes(agent_id, natural_language_query)
        return {"metadata": metadata, "results": results}

    async def prepare_graph_context(self, agent_id: str) -> str:
        """Bounded JSON rendering of the graph for the analysis prompt."""
        graph = await self.manager.read_graph(agent_id)
        nodes, relations = graph["nodes"], graph["relations"]
        if not nodes and not relations:
            return "Graph is empty"

        nodes_for_prompt = [
            {
                "name": node["name"],
                "entityType": node["entityType"],
                "observations": [
                    obs[:PROMPT_OBSERVATION_LENGTH]
                    for obs in node["observations"][:PROMPT_OBSERVATIONS_PER_NODE]
                ],
            }
            for node in nodes[:PROMPT_NODE_LIMIT]
        ]
        representation = json.dumps(
            {"nodes": nodes_for_prompt, "relations": relations[:PROMPT_RELATION_LIMIT]},
            indent=2,
        )
        if len(representation) > self.settings.KG_MAX_PROMPT_GRAPH_LENGTH:
            return f"Graph too large. Nodes: {len(nodes)}, Relations: {len(relations)}"
        return representation

    async def execute(self, agent_id: str, operation: GraphOperation) -> list[dict[str, Any]]:
        """Run one operation; every kind yields a flat list of result dicts."""
        args = operation.args
        match operation.operation:
            case OperationKind.SEARCH_NODES:
                return await self.manager.search_nodes(agent_id, str(args.get("query", "")))
            case OperationKind.OPEN_NODES:
                return await self.manager.open_nodes(agent_id, [str(name) for name in _as_list(args.get("names"))])
            case OperationKind.GRAPH_TRAVERSAL:
                traversal = await self.manager.traverse_graph(
                    agent_id,
                    str(args.get("start_node", "")),
                    [str(t) for t in _as_list(args.get("relation_types"))],
                    int(args.get("depth") or 2),
                )
                return traversal["nodes"] + traversal["relations"]
            case OperationKind.READ_GRAPH:
                graph = await self.manager.read_graph(agent_id)
                allowed = set(_as_list(args.get("filter_entity_types")))
                nodes = [node for node in graph["nodes"] if not allowed or node["entityType"] in allowed]
                return nodes + graph["relations"]
            case OperationKind.FOCUS_EXPANSION:
                return await self._focus_expansion(agent_id, args)
            case OperationKind.CONNECTIVITY_ANALYSIS:
                return await self._connectivity_analysis(agent_id, args)

    async def _focus_expansion(self, agent_id: str, args: dict[str, Any]) -> list[dict[str, Any]]:
        matches = await self.manager.search_nodes(agent_id, str(args.get("focus_node", "")))
        if not matches:
            return []
        start = matches[0]
        traversal = await self.manager.traverse_graph(
            agent_id,
            start["name"],
            [str(t) for t in _as_list(args.get("relation_types"))],
            int(args.get("expansion_depth") or 2),
        )
        nodes = traversal["nodes"]
        if not any(node["node_id"] == start["node_id"] for node in nodes):
            nodes = [start] + nodes
        return nodes + traversal["relations"]

    async def _connectivity_analysis(self, agent_id: str, args: dict[str, Any]) -> list[dict[str, Any]]:
        allowed = set(_as_list(args.get("filter_entity_types")))
        ranked = await self.manager.top_connected_nodes(agent_id, CONNECTIVITY_LIMIT)
        return [node for node in ranked if not allowed or node["entityType"] in allowed]

"""AI-assisted inference of missing relations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from agent_memory.core.config import Settings
from agent_memory.services.kg.exceptions import AIServiceError
from agent_memory.services.kg.prompts import RELATION_INFERENCE_PROMPT, RELATION_INFERENCE_SYSTEM_PROMPT
from agent_memory.services.llm import BaseLLMClient, LLMClientError, LLMResponseParseError, parse_llm_json
from agent_memory.utils.logging import get_logger

if TYPE_CHECKING:
    from agent_memory.services.kg.knowledge_graph_manager import KnowledgeGraphManager

logger = get_logger(__name__)

MAX_TARGET_NODES = 20
MAX_EXISTING_RELATIONS = 10
MAX_OBSERVATION_TEXT = 100


class RelationInferenceService:
    """Proposes relations between existing nodes and adds the confident ones.

    Proposals must name two existing nodes, use a relation type from
    `KG_INFERENCE_RELATION_TYPES` and not repeat an existing or already
    proposed triple. Proposals at or above
    `KG_INFERENCE_CONFIDENCE_THRESHOLD` are created right away (status
    `added` or `failed`); the rest are returned with status `proposed`.
    """

    def __init__(
        self,
        manager: KnowledgeGraphManager,
        llm_client: Optional[BaseLLMClient],
        app_settings: Settings,
    ):
        self.manager = manager
        self.llm_client = llm_client
        self.settings = app_settings

    async def infer(
        self,
        agent_id: str,
        entity_names: Optional[list[str]] = None,
        context: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Raises:
            AIServiceError: If the AI call itself fails
            KnowledgeGraphError: On storage faults
        """
        if self.llm_client is None:
            return {"message": "AI service not available for relation inference", "details": []}

        graph = await self.manager.read_graph(agent_id)
        nodes, relations = graph["nodes"], graph["relations"]

        targets = nodes
        if entity_names:
            wanted = set(entity_names)
            targets = [node for node in nodes if node["name"] in wanted]
        if not targets:
            return {"message": "No target nodes found for relation inference", "details": []}

        prompt = RELATION_INFERENCE_PROMPT.format(
            relation_types=", ".join(f"'{t}'" for t in self.settings.KG_INFERENCE_RELATION_TYPES),
            context=self._build_context(targets, relations, context),
        )

        try:
            response = await self.llm_client.generate_completion(prompt, system_prompt=RELATION_INFERENCE_SYSTEM_PROMPT)
        except LLMClientError as e:
            logger.error(f"Relation inference AI call failed for agent_id={agent_id}: {e}", exc_info=True)
            raise AIServiceError(f"Relation inference failed: {e.message}", "infer_relations", agent_id) from e

        try:
            proposals = parse_llm_json(response.get("content", ""))
        except LLMResponseParseError as e:
            logger.warning(f"Unparsable relation inference response: {e}")
            return {"message": "Invalid AI response format", "details": []}
        if not isinstance(proposals, list):
            return {"message": "Invalid AI response format", "details": []}

        valid = self._validate(proposals, nodes, relations)
        threshold = self.settings.KG_INFERENCE_CONFIDENCE_THRESHOLD
        confident = [proposal for proposal in valid if proposal["confidence"] >= threshold]

        added_count = 0
        created: set[tuple[str, str, str]] = set()
        if confident:
            results = await self.manager.create_relations(
                agent_id,
                [
                    {"from": p["from"], "to": p["to"], "relationType": p["relationType"]}
                    for p in confident
                ],
            )
            created = {(r["from"], r["to"], r["type"]) for r in results if r["success"]}
            added_count = len(created)

        for proposal in valid:
            if proposal["confidence"] >= threshold:
                triple = (proposal["from"], proposal["to"], proposal["relationType"])
                proposal["status"] = "added" if triple in created else "failed"
            else:
                proposal["status"] = "proposed"

        message = (
            f"Inferred {len(valid)} relations. "
            f"Added {added_count} high-confidence relations automatically."
        )
        logger.info(f"{message} agent_id={agent_id}")
        return {"message": message, "details": valid}

    def _build_context(
        self,
        targets: list[dict[str, Any]],
        relations: list[dict[str, Any]],
        user_context: Optional[str],
    ) -> str:
        lines = ["Target Nodes for Relation Inference:"]
        for node in targets[:MAX_TARGET_NODES]:
            observations = ", ".join(node["observations"])[:MAX_OBSERVATION_TEXT]
            lines.append(f"- Name: {node['name']}, Type: {node['entityType']}, Observations: {observations}")

        if relations:
            lines.append("")
            lines.append("Existing Relations:")
            for relation in relations[:MAX_EXISTING_RELATIONS]:
                lines.append(f"- {relation['from']} --({relation['relationType']})--> {relation['to']}")

        if user_context:
            lines.append("")
            lines.append(f"User Context: {user_context}")
        return "\n".join(lines)

    def _validate(
        self,
        proposals: list[Any],
        nodes: list[dict[str, Any]],
        relations: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        names = {node["name"] for node in nodes}
        vocabulary = set(self.settings.KG_INFERENCE_RELATION_TYPES)
        seen = {(r["from"], r["to"], r["relationType"]) for r in relations}

        valid: list[dict[str, Any]] = []
        for proposal in proposals:
            if not isinstance(proposal, dict):
                continue
            triple = (proposal.get("from"), proposal.get("to"), proposal.get("relationType"))
            if triple[0] not in names or triple[1] not in names or triple[2] not in vocabulary:
                continue
            if triple in seen:
                continue
            try:
                confidence = float(proposal.get("confidence", 0))
            except (TypeError, ValueError):
                continue
            seen.add(triple)
            valid.append(
                {
                    "from": triple[0],
                    "to": triple[1],
                    "relationType": triple[2],
                    "confidence": confidence,
                    "evidence": proposal.get("evidence", ""),
                }
            )
        return valid

"""
Unit tests for AI-assisted relation inference.
"""

import json

import pytest

from agent_memory.services.kg.exceptions import AIServiceError
from agent_memory.services.llm import LLMClientError


async def seed(manager, agent_id):
    await manager.create_entities(agent_id, [
        {"name": "AuthService", "entityType": "class", "observations": ["handles login"]},
        {"name": "src/db.ts", "entityType": "file", "observations": ["database access"]},
        {"name": "auth.test.ts", "entityType": "file", "observations": []},
    ])
    await manager.create_relations(agent_id, [
        {"from": "AuthService", "to": "src/db.ts", "relationType": "imports"},
    ])


class TestRelationInference:
    @pytest.mark.asyncio
    async def test_without_ai_client(self, manager, agent_id):
        result = await manager.infer_relations(agent_id)

        assert result == {"message": "AI service not available for relation inference", "details": []}

    @pytest.mark.asyncio
    async def test_no_target_nodes(self, ai_manager, mock_llm_client, agent_id):
        await seed(ai_manager, agent_id)

        result = await ai_manager.infer_relations(agent_id, entity_names=["Missing"])

        assert result["message"] == "No target nodes found for relation inference"
        mock_llm_client.generate_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confident_proposals_are_added(self, ai_manager, mock_llm_client, agent_id):
        await seed(ai_manager, agent_id)
        mock_llm_client.generate_completion.return_value = {
            "content": json.dumps([
                {"from": "AuthService", "to": "src/db.ts", "relationType": "uses", "confidence": 0.9, "evidence": "queries users"},
                {"from": "auth.test.ts", "to": "AuthService", "relationType": "tests", "confidence": 0.5},
                {"from": "AuthService", "to": "src/db.ts", "relationType": "imports", "confidence": 0.99},
                {"from": "Ghost", "to": "src/db.ts", "relationType": "uses", "confidence": 0.9},
                {"from": "AuthService", "to": "src/db.ts", "relationType": "owns", "confidence": 0.9},
                {"from": "AuthService", "to": "src/db.ts", "relationType": "uses", "confidence": 0.95},
                "not an object",
            ]),
        }

        result = await ai_manager.infer_relations(agent_id, context="auth feature")

        assert result["message"] == "Inferred 2 relations. Added 1 high-confidence relations automatically."
        assert [(d["from"], d["relationType"], d["status"]) for d in result["details"]] == [
            ("AuthService", "uses", "added"),
            ("auth.test.ts", "tests", "proposed"),
        ]
        assert result["details"][0]["evidence"] == "queries users"

        existing = await ai_manager.get_existing_relation(agent_id, "AuthService", "src/db.ts", "uses")
        assert existing is not None
        assert await ai_manager.get_existing_relation(agent_id, "auth.test.ts", "AuthService", "tests") is None

        prompt = mock_llm_client.generate_completion.call_args.args[0]
        assert "User Context: auth feature" in prompt
        assert "AuthService --(imports)--> src/db.ts" in prompt

    @pytest.mark.asyncio
    async def test_invalid_response_format(self, ai_manager, mock_llm_client, agent_id):
        await seed(ai_manager, agent_id)
        mock_llm_client.generate_completion.return_value = {"content": '{"from": "AuthService"}'}

        result = await ai_manager.infer_relations(agent_id)

        assert result == {"message": "Invalid AI response format", "details": []}

    @pytest.mark.asyncio
    async def test_ai_failure_raises(self, ai_manager, mock_llm_client, agent_id):
        await seed(ai_manager, agent_id)
        mock_llm_client.generate_completion.side_effect = LLMClientError("timeout", "mock")

        with pytest.raises(AIServiceError) as exc_info:
            await ai_manager.infer_relations(agent_id)

        assert "Relation inference failed: timeout" in str(exc_info.value)
        assert exc_info.value.operation == "infer_relations"

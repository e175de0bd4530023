"""Tests for decoding JSON out of LLM responses."""

import pytest

from agent_memory.services.llm import LLMResponseParseError, parse_llm_json, strip_code_fences


class TestStripCodeFences:
    def test_fenced_json_block(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self):
        assert strip_code_fences("Here:\n```\n[1, 2]\n```\nDone") == "[1, 2]"

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


class TestParseLLMJson:
    def test_bare_object(self):
        assert parse_llm_json('{"search_strategy": "semantic"}') == {"search_strategy": "semantic"}

    def test_fenced_array(self):
        assert parse_llm_json('```json\n[{"from": "A"}]\n```') == [{"from": "A"}]

    def test_object_surrounded_by_prose(self):
        text = 'Sure! The analysis is {"query_intent": "find callers"} as requested.'
        assert parse_llm_json(text) == {"query_intent": "find callers"}

    def test_empty_response(self):
        with pytest.raises(LLMResponseParseError, match="Empty LLM response"):
            parse_llm_json("")

    def test_no_json(self):
        with pytest.raises(LLMResponseParseError, match="No JSON found"):
            parse_llm_json("I am unable to answer.")

    def test_broken_json(self):
        with pytest.raises(LLMResponseParseError, match="Invalid JSON"):
            parse_llm_json('result: {"a": 1,, }')

"""Prompt templates for AI-assisted graph operations."""

NL_QUERY_SYSTEM_PROMPT = (
    "You translate questions about a software knowledge graph into a structured "
    "search plan. Respond with a single JSON object and nothing else."
)

NL_QUERY_TRANSLATION_PROMPT = """Analyze the question below against the knowledge graph and return a search plan.

Question: {natural_language_query}

Knowledge graph (truncated):
{graph_context}

Return JSON with these fields:
{{
  "query_intent": "short description of what the user wants",
  "search_strategy": "traversal | structural | semantic | hybrid | aggregation",
  "primary_entity_types": ["file", "class", "function", ...],
  "semantic_keywords": ["keyword", ...],
  "key_relation_types": ["imports_file", "calls_function", ...],
  "graph_traversal_rules": {{"start_nodes": ["exact node name", ...]}},
  "search_optimization": {{"focus_nodes": ["exact node name", ...]}},
  "traversal_depth": 2
}}

Use exact node names from the graph for start_nodes and focus_nodes. Omit fields you cannot fill."""

RELATION_INFERENCE_SYSTEM_PROMPT = (
    "You infer missing relationships in a software knowledge graph. "
    "Respond with a JSON array and nothing else."
)

RELATION_INFERENCE_PROMPT = """Analyze the provided nodes and infer NEW relationships between them.
Allowed relation types: {relation_types}.
Each proposed relation must NOT already exist and should have confidence 0.6-1.0.

Context:
{context}

Return a JSON array of proposed relations:
[{{"from": "NodeA", "to": "NodeB", "relationType": "calls", "confidence": 0.8, "evidence": "reason"}}]

If no relations can be inferred, return []."""

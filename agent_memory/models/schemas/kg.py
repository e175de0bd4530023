"""
Knowledge Graph Models

Pydantic schemas for the inputs of knowledge graph operations. Field aliases
keep the camelCase names used by external callers (`entityType`,
`relationType`, `from`).
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityInput(BaseModel):
    """Entity to create."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Entity name (e.g. file path or fully-qualified name)")
    entity_type: str = Field(..., alias="entityType", min_length=1, description="Entity type (file, class, ...)")
    observations: List[str] = Field(default_factory=list, description="Free-text annotations")


class RelationInput(BaseModel):
    """Relation between two entities, addressed by name."""
    model_config = ConfigDict(populate_by_name=True)

    from_name: str = Field(..., alias="from", min_length=1, description="Source entity name")
    to_name: str = Field(..., alias="to", min_length=1, description="Target entity name")
    relation_type: str = Field(..., alias="relationType", min_length=1, description="Relation type")


class ObservationInput(BaseModel):
    """Observations to append to an entity."""
    model_config = ConfigDict(populate_by_name=True)

    entity_name: str = Field(..., alias="entityName", description="Target entity name")
    contents: List[str] = Field(default_factory=list, description="Observations to add")


class ObservationDeletion(BaseModel):
    """Observations to remove from an entity (matched case-insensitively)."""
    model_config = ConfigDict(populate_by_name=True)

    entity_name: str = Field(..., alias="entityName", description="Target entity name")
    observations: List[str] = Field(default_factory=list, description="Observations to remove")


class MermaidOptions(BaseModel):
    """Options controlling Mermaid diagram generation.

    `natural_language_query` takes precedence over `query`; with neither the
    diagram is an overview of the most connected nodes.
    """
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = Field(None, description="Keyword query selecting seed nodes")
    natural_language_query: Optional[str] = Field(None, description="Question answered through the NL query engine")
    layout_direction: str = Field("TD", alias="layoutDirection", description="Mermaid layout (TD, LR, BT, RL)")
    include_legend: bool = Field(True, alias="includeLegend")
    group_by_directory: bool = Field(False, alias="groupByDirectory")
    max_nodes: int = Field(50, alias="maxNodes", ge=1)
    max_edges: int = Field(100, alias="maxEdges", ge=0)
    depth: int = Field(2, ge=0)
    exclude_relation_types: List[str] = Field(default_factory=list, alias="excludeRelationTypes")
    exclude_imports: List[str] = Field(default_factory=list, alias="excludeImports")

    @field_validator("layout_direction")
    @classmethod
    def validate_layout_direction(cls, v: str) -> str:
        direction = v.upper()
        if direction not in {"TD", "TB", "BT", "LR", "RL"}:
            raise ValueError(f"Unsupported layout direction: {v}")
        return direction

"""
Configuration classes for the EOL knowledge graph engine.

This module provides the option sets for graph building, graph analysis and
graph merging. Each option set is a Pydantic Settings class so defaults can be
overridden from environment variables, ``.env`` files, or a JSON/YAML file via
:meth:`KnowledgeGraphConfig.from_file`.

Example:
    Basic usage with default settings:

    >>> from eol.knowledge_graph.config import KnowledgeGraphConfig
    >>> config = KnowledgeGraphConfig()
    >>> print(config.build.min_implicit_similarity)
    0.7

    Per-call overrides:

    >>> options = config.build.model_copy(update={"max_implicit_relationships": 10})
    >>> graph = await builder.build_graph(query, options)
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

from .models import KnowledgeType


def _unit_interval(v: float) -> float:
    if not 0.0 <= v <= 1.0:
        raise ValueError(f"Value must be between 0 and 1, got {v}")
    return v


class GraphBuildOptions(BaseSettings):
    """Options controlling how a knowledge graph is built.

    Environment variables can be prefixed with KG_BUILD_ (e.g.,
    KG_BUILD_MIN_IMPLICIT_SIMILARITY=0.8).

    Attributes:
        name: Display name of the built graph.
        description: Optional graph description.
        project_ids: Projects to include. Only the first one is applied as a
            store filter.
        knowledge_types: Knowledge types to include. Only the first one is
            applied as a store filter.
        include_relationships: Whether to add explicit relationships.
        min_relationship_strength: Explicit relationships weaker than this are
            not retained.
        detect_implicit_relationships: Whether to infer similarity edges in
            addition to explicit ones.
        min_implicit_similarity: Minimum similarity score for an implicit edge.
        max_implicit_relationships: Cap on the number of implicit edges.
    """

    model_config = ConfigDict(env_prefix="KG_BUILD_")

    name: str = Field(default="Knowledge Graph")
    description: Optional[str] = Field(default=None)
    project_ids: List[str] = Field(default_factory=list)
    knowledge_types: List[KnowledgeType] = Field(default_factory=list)
    include_relationships: bool = Field(default=True)
    min_relationship_strength: float = Field(default=0.3)
    detect_implicit_relationships: bool = Field(default=True)
    min_implicit_similarity: float = Field(default=0.7)
    max_implicit_relationships: int = Field(default=100, ge=0)

    @field_validator("min_relationship_strength", "min_implicit_similarity")
    @classmethod
    def validate_threshold(cls, v):
        """Keep strength and similarity thresholds inside [0, 1]."""
        return _unit_interval(v)


class GraphAnalysisOptions(BaseSettings):
    """Options controlling graph analysis.

    Environment variables can be prefixed with KG_ANALYSIS_.

    Attributes:
        top_nodes_count: Number of top nodes reported per centrality kind.
        detect_communities: Whether to run label propagation.
        analyze_knowledge_flow: Whether to compute cross-project flow.
        generate_insights: Whether to render narrative insights.
        min_relationship_strength: Relationships below this strength are
            ignored by every calculation.
    """

    model_config = ConfigDict(env_prefix="KG_ANALYSIS_")

    top_nodes_count: int = Field(default=5, ge=0)
    detect_communities: bool = Field(default=True)
    analyze_knowledge_flow: bool = Field(default=True)
    generate_insights: bool = Field(default=True)
    min_relationship_strength: float = Field(default=0.3)

    @field_validator("min_relationship_strength")
    @classmethod
    def validate_threshold(cls, v):
        return _unit_interval(v)


class GraphMergeStrategy(Enum):
    """How conflicting nodes and relationships are resolved when merging graphs."""

    UNION = "union"
    INTERSECTION = "intersection"
    FIRST_PRIORITY = "first_priority"
    SECOND_PRIORITY = "second_priority"
    CUSTOM = "custom"


class GraphMergeOptions(BaseSettings):
    """Options controlling graph merging.

    Environment variables can be prefixed with KG_MERGE_ (e.g.,
    KG_MERGE_STRATEGY=intersection).
    """

    model_config = ConfigDict(env_prefix="KG_MERGE_")

    strategy: GraphMergeStrategy = Field(default=GraphMergeStrategy.UNION)
    merge_node_metadata: bool = Field(default=True)
    merge_relationship_metadata: bool = Field(default=True)
    min_relationship_strength: float = Field(default=0.3)
    create_cross_graph_relationships: bool = Field(default=True)
    min_cross_graph_similarity: float = Field(default=0.7)
    max_cross_graph_relationships: int = Field(default=100, ge=0)

    @field_validator("min_relationship_strength", "min_cross_graph_similarity")
    @classmethod
    def validate_threshold(cls, v):
        return _unit_interval(v)


class KnowledgeGraphConfig(BaseSettings):
    """Main configuration aggregating build, analysis and merge options.

    Nested option sets can also be given as JSON through KG_BUILD, KG_ANALYSIS
    and KG_MERGE.

    Example:
        File-based configuration:

        >>> # graph.yaml contains:
        >>> # build:
        >>> #   min_implicit_similarity: 0.6
        >>> # analysis:
        >>> #   top_nodes_count: 10
        >>> config = KnowledgeGraphConfig.from_file(Path("graph.yaml"))
        >>> config.analysis.top_nodes_count
        10
    """

    model_config = ConfigDict(env_prefix="KG_", env_file=".env", env_file_encoding="utf-8")

    build: GraphBuildOptions = Field(default_factory=GraphBuildOptions)
    analysis: GraphAnalysisOptions = Field(default_factory=GraphAnalysisOptions)
    merge: GraphMergeOptions = Field(default_factory=GraphMergeOptions)

    @classmethod
    def from_file(cls, config_path: Path) -> "KnowledgeGraphConfig":
        """Load configuration from a JSON or YAML file.

        Args:
            config_path: Path to the configuration file (.json, .yaml, or .yml).

        Returns:
            KnowledgeGraphConfig populated with values from the file.

        Raises:
            ValueError: If the file format is not supported.
            FileNotFoundError: If the configuration file doesn't exist.
        """
        import json

        import yaml

        if config_path.suffix == ".json":
            with open(config_path) as f:
                data = json.load(f)
        elif config_path.suffix in [".yaml", ".yml"]:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported config format: {config_path.suffix}")

        return cls.model_validate(data or {})

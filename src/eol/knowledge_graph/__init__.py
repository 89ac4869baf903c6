"""
EOL Knowledge Graph - cross-project knowledge graph construction and analysis.

This module builds typed, weighted graphs over reusable knowledge artifacts
harvested from multiple codebases and mines them for structure, centrality,
communities and cross-project knowledge flow.
"""

__version__ = "0.1.0"

from .analyzer import GraphAnalysisResult, KnowledgeGraphAnalyzer
from .builder import KnowledgeGraphBuilder
from .config import (
    GraphAnalysisOptions,
    GraphBuildOptions,
    GraphMergeOptions,
    GraphMergeStrategy,
    KnowledgeGraphConfig,
)
from .merger import GraphMergeResult, KnowledgeGraphMerger
from .models import (
    GraphNode,
    Knowledge,
    KnowledgeGraph,
    KnowledgeQuery,
    KnowledgeQueryResult,
    KnowledgeType,
    ProjectInfo,
    RelationDirection,
    Relationship,
    RelationType,
)

__all__ = [
    "GraphAnalysisOptions",
    "GraphAnalysisResult",
    "GraphBuildOptions",
    "GraphMergeOptions",
    "GraphMergeResult",
    "GraphMergeStrategy",
    "GraphNode",
    "Knowledge",
    "KnowledgeGraph",
    "KnowledgeGraphAnalyzer",
    "KnowledgeGraphBuilder",
    "KnowledgeGraphConfig",
    "KnowledgeGraphMerger",
    "KnowledgeQuery",
    "KnowledgeQueryResult",
    "KnowledgeType",
    "ProjectInfo",
    "RelationDirection",
    "RelationType",
    "Relationship",
]

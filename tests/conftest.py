"""Pytest configuration and fixtures for knowledge graph tests."""

import random
from typing import Callable

import pytest

from eol.knowledge_graph.analyzer import KnowledgeGraphAnalyzer
from eol.knowledge_graph.models import (
    GraphNode,
    Knowledge,
    KnowledgeGraph,
    KnowledgeType,
    ProjectInfo,
    RelationDirection,
    Relationship,
    RelationType,
)
from eol.knowledge_graph.stores import InMemoryKnowledgeStore, InMemoryProjectRegistry


@pytest.fixture
def make_knowledge() -> Callable[..., Knowledge]:
    """Factory for knowledge entities with sensible defaults."""

    def _make(
        id: str,
        type: KnowledgeType = KnowledgeType.CODE_PATTERN,
        content: str = "",
        source_project: str = "proj1",
        **kwargs,
    ) -> Knowledge:
        kwargs.setdefault("title", f"Knowledge {id}")
        return Knowledge(id=id, type=type, content=content, source_project=source_project, **kwargs)

    return _make


@pytest.fixture
def project_registry() -> InMemoryProjectRegistry:
    """Registry with two Python projects and one Go project."""
    return InMemoryProjectRegistry(
        [
            ProjectInfo(id="proj1", name="API", primary_language="python", languages=["python"]),
            ProjectInfo(
                id="proj2",
                name="Workers",
                primary_language="python",
                languages=["python", "sql"],
            ),
            ProjectInfo(id="proj3", name="Gateway", primary_language="go", languages=["go"]),
        ]
    )


@pytest.fixture
def knowledge_store() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore()


@pytest.fixture
def analyzer() -> KnowledgeGraphAnalyzer:
    """Analyzer with a pinned shuffle order."""
    return KnowledgeGraphAnalyzer(rng=random.Random(42))


@pytest.fixture
def graph_factory(make_knowledge) -> Callable[..., KnowledgeGraph]:
    """Build a graph from ``{node_id: project}`` and ``(source, target, strength)`` edges."""

    def _build(nodes, edges=(), name="Test Graph") -> KnowledgeGraph:
        graph = KnowledgeGraph(name=name)
        for node_id, project in nodes.items():
            graph.add_node(
                GraphNode.from_knowledge(make_knowledge(node_id, source_project=project))
            )
        for source_id, target_id, strength in edges:
            graph.add_relationship(
                Relationship.create(
                    source_id, target_id, RelationType.RELATED, strength, RelationDirection.BI
                )
            )
        return graph

    return _build

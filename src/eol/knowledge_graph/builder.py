"""Knowledge graph builder for cross-project knowledge transfer.

This module turns a queryable collection of knowledge entities into a typed
graph of nodes and weighted relationships. Explicit relationships come from the
entities' own metadata; implicit ones are inferred by pairwise similarity.

Build Process:
    1. Query the knowledge store and create one node per returned entity, with
       an importance score derived from usage counters
    2. Add explicit ``related`` (bidirectional, 0.8) and ``depends_on``
       (unidirectional, 0.9) relationships declared in ``relatedMemories`` and
       ``dependencies`` metadata
    3. Optionally add ``similar_to`` relationships between unconnected pairs
       whose similarity reaches the configured minimum, up to a cap

Example:
    Building a graph of one project's code patterns:

    >>> from eol.knowledge_graph.builder import KnowledgeGraphBuilder
    >>> from eol.knowledge_graph.config import GraphBuildOptions
    >>>
    >>> builder = KnowledgeGraphBuilder(knowledge_store, project_registry)
    >>> graph = await builder.build_graph(
    ...     KnowledgeQuery(tags=["cache"]),
    ...     GraphBuildOptions(name="Caching", min_implicit_similarity=0.6),
    ... )
    >>> print(f"{len(graph.nodes)} nodes, {len(graph.relationships)} relationships")
"""

import logging
from dataclasses import replace
from typing import List, Optional

from .config import GraphBuildOptions
from .models import (
    GraphNode,
    Knowledge,
    KnowledgeGraph,
    KnowledgeQuery,
    RelationDirection,
    Relationship,
    RelationType,
)
from .similarity import KnowledgeSimilarity
from .stores import KnowledgeStore, ProjectRegistry

logger = logging.getLogger(__name__)

BASE_IMPORTANCE = 0.5
RELATED_STRENGTH = 0.8
DEPENDENCY_STRENGTH = 0.9


class KnowledgeGraphBuilder:
    """Builds knowledge graphs from knowledge store query results.

    The builder holds no graph state between calls: every :meth:`build_graph`
    call returns a freshly allocated :class:`KnowledgeGraph`.

    Attributes:
        store: Knowledge store queried for entities.
        projects: Project registry used by similarity scoring.
        similarity: Scorer used for implicit relationship detection.
        options: Default build options, used when a call passes none.
    """

    def __init__(
        self,
        knowledge_store: KnowledgeStore,
        project_registry: Optional[ProjectRegistry] = None,
        options: Optional[GraphBuildOptions] = None,
    ):
        """Initialize the builder with its collaborators.

        Args:
            knowledge_store: Store answering ``query_knowledge``.
            project_registry: Registry answering ``get_project``. Without one,
                different projects always score as unrelated.
            options: Default build options.
        """
        self.store = knowledge_store
        self.projects = project_registry
        self.similarity = KnowledgeSimilarity(project_registry)
        self.options = options or GraphBuildOptions()

    async def build_graph(
        self,
        query: Optional[KnowledgeQuery] = None,
        options: Optional[GraphBuildOptions] = None,
    ) -> KnowledgeGraph:
        """Build a knowledge graph from the entities matching ``query``.

        When ``options.project_ids`` or ``options.knowledge_types`` are set,
        only the first entry of each narrows the store query.

        Args:
            query: Filter passed to the knowledge store. Not mutated.
            options: Build options; defaults to the builder's options.

        Returns:
            A new KnowledgeGraph.

        Raises:
            Any exception raised by the knowledge store, unchanged.
        """
        options = options or self.options
        query = replace(query) if query is not None else KnowledgeQuery()

        if options.project_ids:
            query.source_project = options.project_ids[0]
        if options.knowledge_types:
            query.type = options.knowledge_types[0]

        logger.info(f"Building knowledge graph '{options.name}'...")

        result = await self.store.query_knowledge(query)

        graph = KnowledgeGraph(
            name=options.name,
            description=options.description,
            metadata={
                "projects": list(options.project_ids),
                "knowledge_types": [t.value for t in options.knowledge_types],
                "query": query.to_dict(),
                "options": options.model_dump(mode="json"),
            },
        )

        for knowledge in result.knowledge:
            graph.add_node(self.create_node(knowledge))

        if options.include_relationships:
            self._add_explicit_relationships(graph, options.min_relationship_strength)

            if options.detect_implicit_relationships:
                await self._detect_implicit_relationships(
                    graph,
                    options.min_implicit_similarity,
                    options.max_implicit_relationships,
                )

        logger.info(
            f"Built knowledge graph with {len(graph.nodes)} nodes "
            f"and {len(graph.relationships)} relationships"
        )
        return graph

    def create_node(self, knowledge: Knowledge) -> GraphNode:
        return GraphNode.from_knowledge(knowledge, importance=self.calculate_importance(knowledge))

    @staticmethod
    def calculate_importance(knowledge: Knowledge) -> float:
        """Score how important a knowledge entity is, in [0, 1].

        Starts at 0.5 and adds up to 0.3 for accesses (saturating at 20), up
        to 0.3 for applications (saturating at 10) and up to 0.2 for applied
        projects (saturating at 5).
        """
        importance = BASE_IMPORTANCE
        importance += 0.3 * min(1.0, knowledge.access_count / 20)
        importance += 0.3 * min(1.0, knowledge.application_count / 10)
        importance += 0.2 * min(1.0, len(knowledge.applied_projects) / 5)
        return min(1.0, importance)

    def _add_explicit_relationships(self, graph: KnowledgeGraph, min_strength: float) -> None:
        """Add relationships declared in knowledge metadata.

        References to entities outside the graph are dropped.
        """
        for node_id in list(graph.nodes):
            metadata = graph.nodes[node_id].knowledge.metadata

            if RELATED_STRENGTH >= min_strength:
                for related_id in metadata.get("relatedMemories") or []:
                    if related_id in graph.nodes:
                        graph.add_relationship(
                            Relationship.create(
                                node_id,
                                related_id,
                                RelationType.RELATED,
                                RELATED_STRENGTH,
                                RelationDirection.BI,
                            )
                        )

            if DEPENDENCY_STRENGTH >= min_strength:
                for dependency_id in metadata.get("dependencies") or []:
                    if dependency_id in graph.nodes:
                        graph.add_relationship(
                            Relationship.create(
                                node_id,
                                dependency_id,
                                RelationType.DEPENDS_ON,
                                DEPENDENCY_STRENGTH,
                                RelationDirection.UNI,
                            )
                        )

    async def _detect_implicit_relationships(
        self, graph: KnowledgeGraph, min_similarity: float, max_relationships: int
    ) -> int:
        """Add ``similar_to`` relationships between similar, unconnected nodes.

        Pairs are visited in a stable double-loop order and any pair already
        joined by a relationship of any type is skipped. Detection stops once
        ``max_relationships`` edges have been created.

        Returns:
            Number of relationships created.
        """
        nodes: List[GraphNode] = list(graph.nodes.values())
        detected = 0

        for i, node1 in enumerate(nodes):
            if detected >= max_relationships:
                break
            for node2 in nodes[i + 1 :]:
                if detected >= max_relationships:
                    break
                if graph.find_relationship(node1.id, node2.id) is not None:
                    continue

                similarity = await self.similarity.score(node1.knowledge, node2.knowledge)
                if similarity >= min_similarity:
                    graph.add_relationship(
                        Relationship.create(
                            node1.id,
                            node2.id,
                            RelationType.SIMILAR_TO,
                            similarity,
                            RelationDirection.BI,
                        )
                    )
                    detected += 1

        logger.debug(f"Detected {detected} implicit relationships")
        return detected

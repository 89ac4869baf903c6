"""Merging of knowledge graphs built from different queries or projects.

Supported strategies:
    - UNION: keep every node and relationship of both graphs
    - INTERSECTION: keep only nodes and relationships present in both graphs
    - FIRST_PRIORITY / SECOND_PRIORITY: keep the priority graph, add the other
      graph's non-conflicting items and count conflicts
    - CUSTOM: delegate to a caller-supplied async merge function

In every strategy a relationship survives only when it meets the minimum
strength and both of its endpoints are in the merged graph. Optionally, new
``similar_to`` relationships are created between nodes of different projects.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .config import GraphMergeOptions, GraphMergeStrategy
from .models import GraphNode, KnowledgeGraph, Relationship, RelationDirection, RelationType
from .similarity import content_score

logger = logging.getLogger(__name__)

CustomMergeFunction = Callable[[KnowledgeGraph, KnowledgeGraph], Awaitable[KnowledgeGraph]]

RESERVED_NODE_KEYS = ("importance", "centrality", "community")


@dataclass
class GraphMergeStats:
    nodes_from_graph1: int = 0
    nodes_from_graph2: int = 0
    total_nodes: int = 0
    relationships_from_graph1: int = 0
    relationships_from_graph2: int = 0
    total_relationships: int = 0
    new_cross_graph_relationships: int = 0
    conflicts: int = 0
    conflict_resolution: str = ""


@dataclass
class GraphMergeResult:
    graph: KnowledgeGraph
    stats: GraphMergeStats
    notes: List[str] = field(default_factory=list)


class KnowledgeGraphMerger:
    """Merges two knowledge graphs into a new one.

    Input graphs are left untouched: merged nodes and relationships carry
    copies of the originals' metadata.

    Example:
        >>> merger = KnowledgeGraphMerger()
        >>> result = await merger.merge_graphs(
        ...     frontend_graph,
        ...     backend_graph,
        ...     GraphMergeOptions(strategy=GraphMergeStrategy.FIRST_PRIORITY),
        ... )
        >>> print(result.stats.conflicts, result.notes)
    """

    def __init__(
        self,
        options: Optional[GraphMergeOptions] = None,
        custom_merge_function: Optional[CustomMergeFunction] = None,
    ):
        self.options = options or GraphMergeOptions()
        self.custom_merge_function = custom_merge_function

    async def merge_graphs(
        self,
        graph1: KnowledgeGraph,
        graph2: KnowledgeGraph,
        options: Optional[GraphMergeOptions] = None,
    ) -> GraphMergeResult:
        """Merge two graphs according to ``options.strategy``.

        Raises:
            ValueError: If the strategy is CUSTOM without a merge function.
        """
        options = options or self.options

        if options.strategy == GraphMergeStrategy.CUSTOM:
            if self.custom_merge_function is None:
                raise ValueError("Custom merge strategy requires a custom merge function")
            merged = await self.custom_merge_function(graph1, graph2)
            return GraphMergeResult(
                graph=merged,
                stats=self._calculate_stats(graph1, graph2, merged),
                notes=["Used custom merge function"],
            )

        merged = KnowledgeGraph(
            name=f"Merged: {graph1.name} + {graph2.name}",
            description=f"Merged graph from {graph1.name} and {graph2.name}",
            metadata={
                "projects": _ordered_union(
                    graph1.metadata.get("projects", []), graph2.metadata.get("projects", [])
                ),
                "knowledge_types": _ordered_union(
                    graph1.metadata.get("knowledge_types", []),
                    graph2.metadata.get("knowledge_types", []),
                ),
                "parent_graphs": [graph1.id, graph2.id],
                "merge_strategy": options.strategy.value,
            },
        )

        notes: List[str] = []
        conflicts = 0

        if options.strategy == GraphMergeStrategy.UNION:
            self._apply_union(graph1, graph2, merged, options, notes)
            conflict_resolution = "Kept all nodes and relationships"
        elif options.strategy == GraphMergeStrategy.INTERSECTION:
            self._apply_intersection(graph1, graph2, merged, options, notes)
            conflict_resolution = "Kept only nodes and relationships present in both graphs"
        elif options.strategy == GraphMergeStrategy.FIRST_PRIORITY:
            conflicts = self._apply_priority(graph1, graph2, merged, options, True, notes)
            conflict_resolution = "Prioritized first graph in conflicts"
        elif options.strategy == GraphMergeStrategy.SECOND_PRIORITY:
            conflicts = self._apply_priority(graph1, graph2, merged, options, False, notes)
            conflict_resolution = "Prioritized second graph in conflicts"
        else:
            raise ValueError(f"Unsupported merge strategy: {options.strategy}")

        new_relationships = 0
        if options.create_cross_graph_relationships:
            new_relationships = self._create_cross_graph_relationships(
                merged,
                options.min_cross_graph_similarity,
                options.max_cross_graph_relationships,
                notes,
            )

        stats = self._calculate_stats(graph1, graph2, merged)
        stats.conflicts = conflicts
        stats.conflict_resolution = conflict_resolution
        stats.new_cross_graph_relationships = new_relationships

        logger.info(
            f"Merged '{graph1.name}' and '{graph2.name}' ({options.strategy.value}): "
            f"{stats.total_nodes} nodes, {stats.total_relationships} relationships, "
            f"{conflicts} conflicts"
        )
        return GraphMergeResult(graph=merged, stats=stats, notes=notes)

    def _apply_union(self, graph1, graph2, merged, options, notes) -> None:
        for node in graph1.nodes.values():
            merged.add_node(_clone_node(node))

        for node_id, node in graph2.nodes.items():
            if node_id not in merged.nodes:
                merged.add_node(_clone_node(node))
            elif options.merge_node_metadata:
                merged.add_node(merge_node_metadata(merged.nodes[node_id], node))
                notes.append(f"Merged metadata for node {node_id}")

        for rel in graph1.relationships.values():
            if _keeps(rel, merged, options):
                merged.add_relationship(_clone_relationship(rel))

        for rel_id, rel in graph2.relationships.items():
            if not _keeps(rel, merged, options):
                continue
            if rel_id not in merged.relationships:
                merged.add_relationship(_clone_relationship(rel))
            elif options.merge_relationship_metadata:
                merged.add_relationship(merge_relationship_metadata(merged.relationships[rel_id], rel))
                notes.append(f"Merged metadata for relationship {rel_id}")

        notes.append("Applied union strategy: kept all nodes and relationships from both graphs")

    def _apply_intersection(self, graph1, graph2, merged, options, notes) -> None:
        for node_id, node in graph1.nodes.items():
            if node_id not in graph2.nodes:
                continue
            if options.merge_node_metadata:
                merged.add_node(merge_node_metadata(node, graph2.nodes[node_id]))
            else:
                merged.add_node(_clone_node(node))

        for rel_id, rel in graph1.relationships.items():
            if rel_id not in graph2.relationships or not _keeps(rel, merged, options):
                continue
            if options.merge_relationship_metadata:
                merged.add_relationship(merge_relationship_metadata(rel, graph2.relationships[rel_id]))
            else:
                merged.add_relationship(_clone_relationship(rel))

        notes.append(
            "Applied intersection strategy: kept only nodes and relationships present in both graphs"
        )

    def _apply_priority(self, graph1, graph2, merged, options, first_priority, notes) -> int:
        priority, secondary = (graph1, graph2) if first_priority else (graph2, graph1)
        conflicts = 0

        for node in priority.nodes.values():
            merged.add_node(_clone_node(node))

        for node_id, node in secondary.nodes.items():
            if node_id not in merged.nodes:
                merged.add_node(_clone_node(node))
                continue
            conflicts += 1
            if options.merge_node_metadata:
                merged.add_node(merge_node_metadata(merged.nodes[node_id], node))
                notes.append(f"Merged metadata for conflicting node {node_id}")

        for rel in priority.relationships.values():
            if _keeps(rel, merged, options):
                merged.add_relationship(_clone_relationship(rel))

        for rel_id, rel in secondary.relationships.items():
            if not _keeps(rel, merged, options):
                continue
            if rel_id not in merged.relationships:
                merged.add_relationship(_clone_relationship(rel))
                continue
            conflicts += 1
            if options.merge_relationship_metadata:
                merged.add_relationship(merge_relationship_metadata(merged.relationships[rel_id], rel))
                notes.append(f"Merged metadata for conflicting relationship {rel_id}")

        which = "first" if first_priority else "second"
        notes.append(f"Applied {which} priority strategy: prioritized {which} graph in conflicts")
        return conflicts

    def _create_cross_graph_relationships(
        self, graph: KnowledgeGraph, min_similarity: float, max_relationships: int, notes: List[str]
    ) -> int:
        """Link similar nodes of different projects that are not yet connected."""
        nodes = list(graph.nodes.values())
        created = 0

        for i, node1 in enumerate(nodes):
            if created >= max_relationships:
                break
            for node2 in nodes[i + 1 :]:
                if created >= max_relationships:
                    break
                if node1.knowledge.source_project == node2.knowledge.source_project:
                    continue
                if graph.find_relationship(node1.id, node2.id) is not None:
                    continue

                similarity = content_score(node1.knowledge, node2.knowledge)
                if similarity >= min_similarity:
                    graph.add_relationship(
                        Relationship.create(
                            node1.id,
                            node2.id,
                            RelationType.SIMILAR_TO,
                            similarity,
                            RelationDirection.BI,
                            created_by="graph-merger",
                            is_cross_project=True,
                        )
                    )
                    created += 1

        if created > 0:
            notes.append(f"Created {created} cross-project relationships")
        return created

    @staticmethod
    def _calculate_stats(graph1, graph2, merged) -> GraphMergeStats:
        return GraphMergeStats(
            nodes_from_graph1=sum(1 for node_id in merged.nodes if node_id in graph1.nodes),
            nodes_from_graph2=sum(1 for node_id in merged.nodes if node_id in graph2.nodes),
            total_nodes=len(merged.nodes),
            relationships_from_graph1=sum(
                1 for rel_id in merged.relationships if rel_id in graph1.relationships
            ),
            relationships_from_graph2=sum(
                1 for rel_id in merged.relationships if rel_id in graph2.relationships
            ),
            total_relationships=len(merged.relationships),
        )


def merge_node_metadata(node1: GraphNode, node2: GraphNode) -> GraphNode:
    """Combine two copies of the same node, keeping the first node's knowledge.

    Importance and centrality take the higher value; communities combine as
    ``"c1+c2"``. Other keys follow :func:`_merge_extra_metadata`.
    """
    merged = _clone_node(node1)
    meta1, meta2 = node1.metadata, node2.metadata

    if meta2.get("importance", 0.0) > meta1.get("importance", 0.0):
        merged.metadata["importance"] = meta2["importance"]

    centrality2 = meta2.get("centrality")
    if centrality2 is not None and (
        meta1.get("centrality") is None or centrality2 > meta1["centrality"]
    ):
        merged.metadata["centrality"] = centrality2

    community2 = meta2.get("community")
    if community2 is not None:
        community1 = meta1.get("community")
        merged.metadata["community"] = (
            f"{community1}+{community2}" if community1 is not None else community2
        )

    _merge_extra_metadata(merged.metadata, meta2, RESERVED_NODE_KEYS)
    return merged


def merge_relationship_metadata(rel1: Relationship, rel2: Relationship) -> Relationship:
    """Combine two copies of the same relationship, keeping the stronger strength."""
    merged = _clone_relationship(rel1)
    merged.strength = max(rel1.strength, rel2.strength)

    if rel2.metadata.get("confidence", 0.0) > rel1.metadata.get("confidence", 0.0):
        merged.metadata["confidence"] = rel2.metadata["confidence"]

    _merge_extra_metadata(merged.metadata, rel2.metadata, ("confidence",))
    return merged


def _merge_extra_metadata(target: Dict[str, Any], source: Dict[str, Any], reserved) -> None:
    """Add missing keys, concatenate lists and shallow-merge dicts; else keep target's."""
    for key, value in source.items():
        if key in reserved:
            continue
        existing = target.get(key)
        if existing is None:
            target[key] = copy.copy(value)
        elif isinstance(existing, list) and isinstance(value, list):
            target[key] = existing + value
        elif isinstance(existing, dict) and isinstance(value, dict):
            target[key] = {**existing, **value}


def _keeps(rel: Relationship, merged: KnowledgeGraph, options: GraphMergeOptions) -> bool:
    return (
        rel.strength >= options.min_relationship_strength
        and rel.source_id in merged.nodes
        and rel.target_id in merged.nodes
    )


def _clone_node(node: GraphNode) -> GraphNode:
    return GraphNode(id=node.id, knowledge=node.knowledge, metadata=dict(node.metadata))


def _clone_relationship(rel: Relationship) -> Relationship:
    return Relationship(
        id=rel.id,
        source_id=rel.source_id,
        target_id=rel.target_id,
        type=rel.type,
        strength=rel.strength,
        direction=rel.direction,
        metadata=dict(rel.metadata),
    )


def _ordered_union(first: List[Any], second: List[Any]) -> List[Any]:
    return list(dict.fromkeys([*first, *second]))

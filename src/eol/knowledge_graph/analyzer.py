"""Knowledge graph analyzer for cross-project knowledge transfer.

Computes structural statistics, centrality rankings, community structure and
cross-project knowledge flow over a :class:`KnowledgeGraph`, then renders them
into narrative insights.

Every calculation first drops relationships weaker than
``options.min_relationship_strength`` and relationships whose endpoints are not
in the graph. Division by zero resolves to 0.

The heuristics are deliberately approximate and explainable:
    - betweenness and closeness centrality reuse the degree centrality values
    - communities come from label propagation over the filtered edges
    - modularity is the fraction of filtered edges inside one community

Label propagation visits nodes in a shuffled order, so repeated analyses of a
graph with several equally good labelings may disagree. Pass a seeded
``random.Random`` to pin the order.

Example:
    >>> from eol.knowledge_graph.analyzer import KnowledgeGraphAnalyzer
    >>> analyzer = KnowledgeGraphAnalyzer()
    >>> result = await analyzer.analyze_graph(graph)
    >>> print(f"Density: {result.stats.density:.3f}, components: {result.stats.component_count}")
    >>> for insight in result.insights:
    ...     print(f"- {insight}")
"""

import logging
import random
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import networkx as nx

from .config import GraphAnalysisOptions
from .insights import generate_insights
from .models import KnowledgeGraph, Relationship

logger = logging.getLogger(__name__)

MAX_LABEL_PROPAGATION_ITERATIONS = 10
FLOW_RATIO = 1.5


@dataclass
class GraphStats:
    """Basic graph statistics over the filtered edge set."""

    node_count: int = 0
    relationship_count: int = 0
    avg_node_degree: float = 0.0
    density: float = 0.0
    component_count: int = 0
    node_type_distribution: Dict[str, int] = field(default_factory=dict)
    relationship_type_distribution: Dict[str, int] = field(default_factory=dict)
    project_distribution: Dict[str, int] = field(default_factory=dict)


@dataclass
class NodeCentrality:
    node_id: str
    centrality: float


@dataclass
class CentralityResult:
    """Top nodes per centrality kind.

    Betweenness and closeness lists are computed from degree centrality and
    are therefore identical to the degree list.
    """

    top_degree_nodes: List[NodeCentrality] = field(default_factory=list)
    top_betweenness_nodes: List[NodeCentrality] = field(default_factory=list)
    top_closeness_nodes: List[NodeCentrality] = field(default_factory=list)


@dataclass
class CommunityResult:
    """Communities keyed by their label, plus the simplified modularity."""

    count: int = 0
    members: Dict[str, List[str]] = field(default_factory=dict)
    modularity: float = 0.0


@dataclass
class TransferPath:
    """Aggregated knowledge flow from one project to another."""

    source_project: str
    target_project: str
    knowledge_types: List[str] = field(default_factory=list)
    strength: float = 0.0
    count: int = 0


@dataclass
class KnowledgeFlowResult:
    source_projects: List[str] = field(default_factory=list)
    sink_projects: List[str] = field(default_factory=list)
    flowing_knowledge_types: List[str] = field(default_factory=list)
    transfer_paths: List[TransferPath] = field(default_factory=list)


@dataclass
class GraphAnalysisResult:
    """Complete analysis report. Recomputed on every analysis call."""

    stats: GraphStats
    centrality: CentralityResult
    communities: CommunityResult
    knowledge_flow: KnowledgeFlowResult
    insights: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class KnowledgeGraphAnalyzer:
    """Analyzes knowledge graphs to extract statistics, structure and insights.

    The analyzer never changes a graph's nodes or relationships. It does write
    ``centrality`` and ``community`` into node metadata as a convenience cache.

    Attributes:
        options: Default analysis options, used when a call passes none.
        rng: Random source for the label propagation visiting order.
    """

    def __init__(
        self,
        options: Optional[GraphAnalysisOptions] = None,
        rng: Optional[random.Random] = None,
    ):
        self.options = options or GraphAnalysisOptions()
        self.rng = rng or random.Random()

    async def analyze_graph(
        self, graph: KnowledgeGraph, options: Optional[GraphAnalysisOptions] = None
    ) -> GraphAnalysisResult:
        """Analyze a knowledge graph.

        Args:
            graph: Graph to analyze.
            options: Analysis options; defaults to the analyzer's options.

        Returns:
            GraphAnalysisResult with statistics, centrality, communities,
            knowledge flow and insights. Disabled stages yield empty blocks.
        """
        options = options or self.options
        min_strength = options.min_relationship_strength
        edges = list(graph.iter_relationships(min_strength))

        logger.info(
            f"Analyzing graph '{graph.name}' ({len(graph.nodes)} nodes, "
            f"{len(edges)} relationships at strength >= {min_strength})"
        )

        stats = self.calculate_stats(graph, edges)
        centrality = self.calculate_centrality(graph, edges, options.top_nodes_count)

        communities = (
            self.detect_communities(graph, edges) if options.detect_communities else CommunityResult()
        )

        knowledge_flow = (
            self.analyze_knowledge_flow(graph, edges)
            if options.analyze_knowledge_flow
            else KnowledgeFlowResult()
        )

        insights = (
            generate_insights(graph, stats, centrality, communities, knowledge_flow)
            if options.generate_insights
            else []
        )

        return GraphAnalysisResult(
            stats=stats,
            centrality=centrality,
            communities=communities,
            knowledge_flow=knowledge_flow,
            insights=insights,
        )

    def calculate_stats(self, graph: KnowledgeGraph, edges: List[Relationship]) -> GraphStats:
        """Compute size, degree, density, component count and distributions."""
        node_count = len(graph.nodes)
        relationship_count = len(edges)

        degrees = _degrees(graph, edges)
        avg_node_degree = sum(degrees.values()) / node_count if node_count > 0 else 0.0

        max_possible_edges = node_count * (node_count - 1) / 2
        density = relationship_count / max_possible_edges if max_possible_edges > 0 else 0.0

        return GraphStats(
            node_count=node_count,
            relationship_count=relationship_count,
            avg_node_degree=avg_node_degree,
            density=density,
            component_count=self.count_components(graph, edges),
            node_type_distribution=dict(
                Counter(node.knowledge.type.value for node in graph.nodes.values())
            ),
            relationship_type_distribution=dict(Counter(rel.type.value for rel in edges)),
            project_distribution=dict(
                Counter(node.knowledge.source_project for node in graph.nodes.values())
            ),
        )

    @staticmethod
    def count_components(graph: KnowledgeGraph, edges: List[Relationship]) -> int:
        """Count connected components, treating every relationship as undirected."""
        undirected = nx.Graph()
        undirected.add_nodes_from(graph.nodes)
        undirected.add_edges_from((rel.source_id, rel.target_id) for rel in edges)
        return nx.number_connected_components(undirected)

    def calculate_centrality(
        self, graph: KnowledgeGraph, edges: List[Relationship], top_count: int
    ) -> CentralityResult:
        """Compute degree centrality and rank the top nodes.

        Degree centrality is the filtered degree divided by ``n - 1``. The
        value is cached on each node's metadata.
        """
        node_count = len(graph.nodes)
        degrees = _degrees(graph, edges)

        degree_centrality: Dict[str, float] = {}
        for node_id, node in graph.nodes.items():
            value = degrees[node_id] / (node_count - 1) if node_count > 1 else 0.0
            degree_centrality[node_id] = value
            node.metadata["centrality"] = value

        # Betweenness and closeness are approximated by degree centrality
        betweenness = dict(degree_centrality)
        closeness = dict(degree_centrality)

        return CentralityResult(
            top_degree_nodes=_top_nodes(degree_centrality, top_count),
            top_betweenness_nodes=_top_nodes(betweenness, top_count),
            top_closeness_nodes=_top_nodes(closeness, top_count),
        )

    def detect_communities(self, graph: KnowledgeGraph, edges: List[Relationship]) -> CommunityResult:
        """Detect communities with label propagation.

        Every node starts with its own id as label. Each pass visits the nodes
        in shuffled order and moves a node to the most frequent label among
        its neighbors, only when that label is strictly more frequent than the
        node's current one. Stops after a pass without changes or after
        MAX_LABEL_PROPAGATION_ITERATIONS passes.
        """
        neighbors: Dict[str, List[str]] = {node_id: [] for node_id in graph.nodes}
        for rel in edges:
            neighbors[rel.source_id].append(rel.target_id)
            if rel.target_id != rel.source_id:
                neighbors[rel.target_id].append(rel.source_id)

        labels: Dict[str, str] = {node_id: node_id for node_id in graph.nodes}

        iteration = 0
        changed = True
        while changed and iteration < MAX_LABEL_PROPAGATION_ITERATIONS:
            changed = False
            iteration += 1

            order = list(graph.nodes)
            self.rng.shuffle(order)

            for node_id in order:
                label_counts = Counter(labels[n] for n in neighbors[node_id])
                if not label_counts:
                    continue

                current = labels[node_id]
                best_label, best_count = current, label_counts.get(current, 0)
                for label, count in label_counts.items():
                    if count > best_count:
                        best_label, best_count = label, count

                if best_label != current:
                    labels[node_id] = best_label
                    changed = True

        logger.debug(f"Label propagation finished after {iteration} iterations")

        members: Dict[str, List[str]] = defaultdict(list)
        for node_id, label in labels.items():
            members[label].append(node_id)
            graph.nodes[node_id].metadata["community"] = label

        return CommunityResult(
            count=len(members),
            members=dict(members),
            modularity=self.calculate_modularity(labels, edges),
        )

    @staticmethod
    def calculate_modularity(labels: Dict[str, str], edges: List[Relationship]) -> float:
        """Fraction of edges whose endpoints share a community (0 without edges)."""
        if not edges:
            return 0.0
        intra = sum(1 for rel in edges if labels.get(rel.source_id) == labels.get(rel.target_id))
        return intra / len(edges)

    def analyze_knowledge_flow(
        self, graph: KnowledgeGraph, edges: List[Relationship]
    ) -> KnowledgeFlowResult:
        """Aggregate cross-project relationships into sources, sinks and transfer paths.

        A project is a source when its outgoing cross-project edges exceed 1.5
        times its incoming ones, and a sink in the reverse case. Transfer paths
        carry the mean strength of their edges and are sorted strongest first.
        """
        outgoing: Dict[str, int] = {}
        incoming: Dict[str, int] = {}
        flowing_types: List[str] = []
        paths: Dict[Tuple[str, str], TransferPath] = {}
        strength_sums: Dict[Tuple[str, str], float] = defaultdict(float)

        for rel in edges:
            source_node = graph.nodes[rel.source_id]
            target_node = graph.nodes[rel.target_id]
            source_project = source_node.knowledge.source_project
            target_project = target_node.knowledge.source_project

            if source_project == target_project:
                continue

            outgoing[source_project] = outgoing.get(source_project, 0) + 1
            incoming[target_project] = incoming.get(target_project, 0) + 1

            knowledge_type = source_node.knowledge.type.value
            if knowledge_type not in flowing_types:
                flowing_types.append(knowledge_type)

            key = (source_project, target_project)
            path = paths.get(key)
            if path is None:
                path = paths[key] = TransferPath(source_project, target_project)
            if knowledge_type not in path.knowledge_types:
                path.knowledge_types.append(knowledge_type)
            strength_sums[key] += rel.strength
            path.count += 1

        source_projects: List[str] = []
        sink_projects: List[str] = []
        for project in dict.fromkeys([*outgoing, *incoming]):
            out_count = outgoing.get(project, 0)
            in_count = incoming.get(project, 0)
            if out_count > in_count * FLOW_RATIO:
                source_projects.append(project)
            elif in_count > out_count * FLOW_RATIO:
                sink_projects.append(project)

        for key, path in paths.items():
            path.strength = strength_sums[key] / path.count if path.count else 0.0

        transfer_paths = sorted(paths.values(), key=lambda p: p.strength, reverse=True)

        return KnowledgeFlowResult(
            source_projects=source_projects,
            sink_projects=sink_projects,
            flowing_knowledge_types=flowing_types,
            transfer_paths=transfer_paths,
        )


def _degrees(graph: KnowledgeGraph, edges: List[Relationship]) -> Dict[str, int]:
    """Filtered degree per node; each incident edge counts once, self-loops included."""
    degrees = {node_id: 0 for node_id in graph.nodes}
    for rel in edges:
        degrees[rel.source_id] += 1
        if rel.target_id != rel.source_id:
            degrees[rel.target_id] += 1
    return degrees


def _top_nodes(centrality: Dict[str, float], count: int) -> List[NodeCentrality]:
    ranked = sorted(centrality.items(), key=lambda item: item[1], reverse=True)
    return [NodeCentrality(node_id, value) for node_id, value in ranked[:count]]

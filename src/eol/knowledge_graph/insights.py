"""Narrative insights rendered from a graph analysis.

Rules fire independently and their strings are appended in a fixed order:
size, connectivity, dominant type, project spread, most central entity,
communities, knowledge flow, then recommendations.
"""

import math
from typing import TYPE_CHECKING, List

from .models import KnowledgeGraph

if TYPE_CHECKING:
    from .analyzer import CentralityResult, CommunityResult, GraphStats, KnowledgeFlowResult

WEAK_MODULARITY = 0.3


def _percent(part: int, total: int) -> int:
    """Percentage rounded half up; 0 when ``total`` is 0."""
    if total <= 0:
        return 0
    return math.floor(part / total * 100 + 0.5)


def generate_insights(
    graph: KnowledgeGraph,
    stats: "GraphStats",
    centrality: "CentralityResult",
    communities: "CommunityResult",
    knowledge_flow: "KnowledgeFlowResult",
) -> List[str]:
    """Build the ordered list of insight and recommendation strings."""
    insights: List[str] = [
        f"The knowledge graph contains {stats.node_count} knowledge entities "
        f"and {stats.relationship_count} relationships."
    ]

    if stats.component_count > 1:
        insights.append(
            f"The graph has {stats.component_count} disconnected components, "
            "suggesting some knowledge is isolated."
        )
    else:
        insights.append("The graph is fully connected, indicating good knowledge integration.")

    if stats.node_type_distribution:
        dominant_type, dominant_count = max(
            stats.node_type_distribution.items(), key=lambda item: item[1]
        )
        insights.append(
            f'The dominant knowledge type is "{dominant_type}" ({dominant_count} entities, '
            f"{_percent(dominant_count, stats.node_count)}% of total)."
        )

    project_count = len(stats.project_distribution)
    if project_count > 1:
        insights.append(
            f"Knowledge is distributed across {project_count} projects, "
            "with varying levels of contribution."
        )

    if centrality.top_degree_nodes:
        top_node = graph.nodes.get(centrality.top_degree_nodes[0].node_id)
        if top_node is not None:
            insights.append(
                f'The most central knowledge entity is "{top_node.knowledge.title}" '
                f'from project "{top_node.knowledge.source_project}".'
            )

    if communities.count > 1:
        insights.append(
            f"{communities.count} distinct knowledge communities were detected, "
            "suggesting natural groupings of related knowledge."
        )
        largest = max(communities.members.values(), key=len, default=None)
        if largest:
            insights.append(
                f"The largest knowledge community contains {len(largest)} entities "
                f"({_percent(len(largest), stats.node_count)}% of total)."
            )

    paths = knowledge_flow.transfer_paths
    if paths:
        insights.append(f"There are {len(paths)} knowledge transfer paths between projects.")

        if knowledge_flow.source_projects:
            insights.append(
                f"Projects {', '.join(knowledge_flow.source_projects)} are primary knowledge "
                "sources, contributing more than they receive."
            )

        if knowledge_flow.sink_projects:
            insights.append(
                f"Projects {', '.join(knowledge_flow.sink_projects)} are primary knowledge "
                "consumers, receiving more than they contribute."
            )

        strongest = paths[0]
        insights.append(
            f'The strongest knowledge transfer is from project "{strongest.source_project}" '
            f'to "{strongest.target_project}" with a strength of {strongest.strength:.2f}.'
        )
    else:
        insights.append("No significant cross-project knowledge transfer was detected.")

    # Recommendations
    if stats.component_count > 1:
        insights.append(
            "Recommendation: Consider creating connections between disconnected knowledge "
            "components to improve integration."
        )

    if not paths and project_count > 1:
        insights.append(
            "Recommendation: Establish cross-project knowledge sharing to leverage "
            "expertise across projects."
        )

    if communities.count > 1 and communities.modularity < WEAK_MODULARITY:
        insights.append(
            "Recommendation: The community structure is weak. Consider reorganizing "
            "knowledge to create more cohesive groups."
        )

    return insights

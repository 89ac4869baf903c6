"""Graph model for cross-project knowledge transfer.

This module defines the knowledge entities consumed from the knowledge store and
the in-memory graph built on top of them. A :class:`KnowledgeGraph` owns a set of
:class:`GraphNode` objects (one per knowledge entity) and a set of typed, weighted
:class:`Relationship` edges between them.

Invariants:
    - Node identity equals the wrapped knowledge id (1:1, no duplicates).
    - Every relationship's endpoints reference nodes of the same graph. Edges
      pointing at unknown nodes are refused by :meth:`KnowledgeGraph.add_relationship`.

Example:
    Creating a graph by hand:

    >>> from eol.knowledge_graph.models import (
    ...     GraphNode, Knowledge, KnowledgeGraph, KnowledgeType, Relationship, RelationType,
    ... )
    >>> graph = KnowledgeGraph(name="Caching patterns")
    >>> a = Knowledge(id="a", type=KnowledgeType.CODE_PATTERN, title="LRU", content="...",
    ...               source_project="proj1")
    >>> b = Knowledge(id="b", type=KnowledgeType.CODE_PATTERN, title="TTL", content="...",
    ...               source_project="proj2")
    >>> graph.add_node(GraphNode.from_knowledge(a, importance=0.5))
    >>> graph.add_node(GraphNode.from_knowledge(b, importance=0.5))
    >>> graph.add_relationship(Relationship.create("a", "b", RelationType.RELATED, 0.8))
    True
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import networkx as nx

logger = logging.getLogger(__name__)


class KnowledgeType(Enum):
    """Kinds of knowledge that can be transferred between projects.

    ``CUSTOM`` is the extension point for knowledge that does not fit the
    enumerated kinds.
    """

    CODE_PATTERN = "code_pattern"
    ARCHITECTURE = "architecture"
    BEST_PRACTICE = "best_practice"
    SOLUTION = "solution"
    ALGORITHM = "algorithm"
    CONFIGURATION = "configuration"
    DEPENDENCY = "dependency"
    CUSTOM = "custom"


class RelationType(Enum):
    """Types of relationships between knowledge nodes.

    Relationship Categories:
        Explicit: RELATED, DEPENDS_ON (declared in knowledge metadata)
        Inferred: SIMILAR_TO (implicit similarity detection)
        Curated: EXTENDS, IMPLEMENTS, CONTRADICTS, REPLACES
        Extension: CUSTOM
    """

    RELATED = "related"
    DEPENDS_ON = "depends_on"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    SIMILAR_TO = "similar_to"
    CONTRADICTS = "contradicts"
    REPLACES = "replaces"
    CUSTOM = "custom"


class RelationDirection(Enum):
    """Direction of a relationship."""

    UNI = "uni"
    BI = "bi"


@dataclass
class Knowledge:
    """A stored, reusable knowledge artifact harvested from a project.

    Knowledge entities are owned by the knowledge store; graphs only reference
    them. ``metadata`` may declare explicit links through ``relatedMemories`` and
    ``dependencies`` (lists of knowledge ids).

    Attributes:
        id: Unique identifier of the knowledge.
        type: KnowledgeType of the artifact.
        title: Short human-readable title.
        content: Body text (code, prose, configuration).
        source_project: Identifier of the owning project.
        description: Optional longer description.
        language: Programming language, if applicable.
        source_file_path: File the knowledge was extracted from, if any.
        tags: Categorization tags.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
        access_count: How many times the knowledge was accessed.
        application_count: How many times it was applied.
        created_by: Author of the knowledge.
        applied_projects: Projects where the knowledge has been applied.
        metadata: Free-form metadata.
    """

    id: str
    type: KnowledgeType
    title: str
    content: str
    source_project: str
    description: str = ""
    language: Optional[str] = None
    source_file_path: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    access_count: int = 0
    application_count: int = 0
    created_by: str = "system"
    applied_projects: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class KnowledgeQuery:
    """Filter passed through to the knowledge store.

    Attributes:
        search_term: Case-insensitive full-text term.
        type: Restrict to one knowledge type.
        tags: Tags that must all be present (AND semantics).
        source_project: Restrict to knowledge owned by this project.
        applied_project: Restrict to knowledge applied in this project.
        language: Restrict to one programming language.
        created_between: Inclusive (start, end) creation window.
        sort_by: One of created_at, updated_at, access_count, application_count.
        sort_direction: "asc" or "desc".
        limit: Maximum number of results.
        offset: Number of results to skip.
    """

    search_term: Optional[str] = None
    type: Optional[KnowledgeType] = None
    tags: Optional[List[str]] = None
    source_project: Optional[str] = None
    applied_project: Optional[str] = None
    language: Optional[str] = None
    created_between: Optional[Tuple[datetime, datetime]] = None
    sort_by: Optional[str] = None
    sort_direction: str = "asc"
    limit: Optional[int] = None
    offset: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the non-empty filters as a JSON-safe dictionary."""
        result: Dict[str, Any] = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if isinstance(value, KnowledgeType):
                value = value.value
            elif key == "created_between":
                value = [value[0].isoformat(), value[1].isoformat()]
            result[key] = value
        return result


@dataclass
class KnowledgeQueryResult:
    """Knowledge matching a query plus the pre-pagination match count."""

    knowledge: List[Knowledge]
    total_count: int


@dataclass
class ProjectInfo:
    """Project metadata as held by the project registry."""

    id: str
    name: str = ""
    primary_language: Optional[str] = None
    languages: List[str] = field(default_factory=list)
    frameworks: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)


@dataclass
class GraphNode:
    """Node wrapping exactly one knowledge entity.

    ``metadata`` always carries ``importance`` (0-1). After analysis it may also
    carry ``centrality`` and ``community``; those are a convenience cache that
    analysis is free to overwrite.
    """

    id: str
    knowledge: Knowledge
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_knowledge(cls, knowledge: Knowledge, importance: float = 0.5) -> "GraphNode":
        return cls(
            id=knowledge.id,
            knowledge=knowledge,
            metadata={"importance": importance, "created_at": knowledge.created_at},
        )

    @property
    def importance(self) -> float:
        return self.metadata.get("importance", 0.0)

    @property
    def centrality(self) -> Optional[float]:
        return self.metadata.get("centrality")

    @property
    def community(self) -> Optional[str]:
        return self.metadata.get("community")


@dataclass
class Relationship:
    """Typed, weighted link between two nodes.

    Attributes:
        id: Unique relationship identifier.
        source_id: Origin node id.
        target_id: Destination node id.
        type: RelationType of the link.
        strength: Weight in [0, 1].
        direction: UNI for directed links, BI for symmetric ones.
        metadata: ``created_at``, ``created_by`` and ``confidence`` plus extras.
    """

    id: str
    source_id: str
    target_id: str
    type: RelationType
    strength: float
    direction: RelationDirection = RelationDirection.BI
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        source_id: str,
        target_id: str,
        type: RelationType,
        strength: float,
        direction: RelationDirection = RelationDirection.BI,
        created_by: str = "system",
        **extra: Any,
    ) -> "Relationship":
        """Create a relationship with a fresh id and standard metadata.

        Confidence is recorded equal to the strength.
        """
        metadata = {
            "created_at": datetime.now(),
            "created_by": created_by,
            "confidence": strength,
        }
        metadata.update(extra)
        return cls(
            id=str(uuid.uuid4()),
            source_id=source_id,
            target_id=target_id,
            type=type,
            strength=strength,
            direction=direction,
            metadata=metadata,
        )

    def connects(self, node_id1: str, node_id2: str) -> bool:
        """Whether this relationship links the two nodes, in either direction."""
        return (self.source_id == node_id1 and self.target_id == node_id2) or (
            self.source_id == node_id2 and self.target_id == node_id1
        )

    def touches(self, node_id: str) -> bool:
        return self.source_id == node_id or self.target_id == node_id


@dataclass
class KnowledgeGraph:
    """Identified, named container of knowledge nodes and relationships.

    Each call to the builder produces a fresh graph; graphs never share node or
    relationship objects with one another unless explicitly cloned in.

    Example:
        Inspecting a built graph:

        >>> graph = await builder.build_graph(KnowledgeQuery(tags=["cache"]))
        >>> print(f"{len(graph.nodes)} nodes, {len(graph.relationships)} relationships")
        >>> for rel in graph.iter_relationships(min_strength=0.5):
        ...     print(rel.source_id, rel.type.value, rel.target_id)
    """

    name: str = "Knowledge Graph"
    description: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    relationships: Dict[str, Relationship] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        now = datetime.now()
        self.metadata.setdefault("created_at", now)
        self.metadata.setdefault("updated_at", now)
        self.metadata.setdefault("projects", [])
        self.metadata.setdefault("knowledge_types", [])

    def add_node(self, node: GraphNode) -> None:
        self.nodes[node.id] = node

    def add_relationship(self, relationship: Relationship) -> bool:
        """Add a relationship if both of its endpoints are in the graph.

        Returns:
            True if the relationship was added, False if it was skipped because
            an endpoint is missing.
        """
        if relationship.source_id not in self.nodes or relationship.target_id not in self.nodes:
            logger.debug(
                f"Skipping relationship {relationship.id}: "
                f"{relationship.source_id} -> {relationship.target_id} references a missing node"
            )
            return False

        self.relationships[relationship.id] = relationship
        return True

    def find_relationship(self, node_id1: str, node_id2: str) -> Optional[Relationship]:
        """Return the first relationship connecting the two nodes, in either direction."""
        for relationship in self.relationships.values():
            if relationship.connects(node_id1, node_id2):
                return relationship
        return None

    def iter_relationships(self, min_strength: float = 0.0) -> Iterator[Relationship]:
        """Yield relationships at or above ``min_strength`` whose endpoints both resolve.

        This is the filtered edge set every analysis works on.
        """
        for relationship in self.relationships.values():
            if relationship.strength < min_strength:
                continue
            if relationship.source_id not in self.nodes or relationship.target_id not in self.nodes:
                continue
            yield relationship

    def to_networkx(self, min_strength: float = 0.0) -> nx.MultiDiGraph:
        """Export the graph as a NetworkX MultiDiGraph.

        Edges are keyed by relationship id so parallel relationships of
        different types survive the conversion.
        """
        nx_graph = nx.MultiDiGraph(id=self.id, name=self.name)
        for node_id, node in self.nodes.items():
            nx_graph.add_node(
                node_id,
                title=node.knowledge.title,
                type=node.knowledge.type.value,
                project=node.knowledge.source_project,
                importance=node.importance,
            )
        for rel in self.iter_relationships(min_strength):
            nx_graph.add_edge(
                rel.source_id,
                rel.target_id,
                key=rel.id,
                type=rel.type.value,
                weight=rel.strength,
                direction=rel.direction.value,
            )
        return nx_graph

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the graph into a JSON-safe dictionary for downstream consumers."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "nodes": [
                {
                    "id": node.id,
                    "title": node.knowledge.title,
                    "type": node.knowledge.type.value,
                    "project": node.knowledge.source_project,
                    "tags": list(node.knowledge.tags),
                    "metadata": _json_safe(node.metadata),
                }
                for node in self.nodes.values()
            ],
            "relationships": [
                {
                    "id": rel.id,
                    "source": rel.source_id,
                    "target": rel.target_id,
                    "type": rel.type.value,
                    "strength": rel.strength,
                    "direction": rel.direction.value,
                    "metadata": _json_safe(rel.metadata),
                }
                for rel in self.iter_relationships()
            ],
            "metadata": _json_safe(self.metadata),
        }


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value

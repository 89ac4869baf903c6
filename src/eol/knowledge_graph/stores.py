"""Collaborator contracts for the knowledge store and the project registry.

The graph engine never owns knowledge or project metadata. It talks to two
collaborators through the protocols below. In-memory adapters are provided for
embedding the engine in tests, notebooks and small tools.
"""

import logging
from typing import Dict, List, Optional, Protocol

from .models import Knowledge, KnowledgeQuery, KnowledgeQueryResult, ProjectInfo

logger = logging.getLogger(__name__)

SORT_KEYS = ("created_at", "updated_at", "access_count", "application_count")


class KnowledgeStore(Protocol):
    """Anything that can answer knowledge queries."""

    async def query_knowledge(self, query: KnowledgeQuery) -> KnowledgeQueryResult: ...


class ProjectRegistry(Protocol):
    """Anything that can resolve a project id to its metadata."""

    async def get_project(self, project_id: str) -> Optional[ProjectInfo]: ...


class InMemoryKnowledgeStore:
    """Dictionary-backed knowledge store.

    Filters are applied in order: search term, type, tags (AND), source
    project, applied project, language, creation window. Results are then
    sorted and paginated; ``total_count`` reflects the match count before
    pagination.
    """

    def __init__(self, knowledge: Optional[List[Knowledge]] = None):
        self._knowledge: Dict[str, Knowledge] = {}
        for item in knowledge or []:
            self.add_knowledge(item)

    def add_knowledge(self, knowledge: Knowledge) -> Knowledge:
        self._knowledge[knowledge.id] = knowledge
        return knowledge

    async def get_knowledge(self, knowledge_id: str) -> Optional[Knowledge]:
        return self._knowledge.get(knowledge_id)

    async def query_knowledge(self, query: KnowledgeQuery) -> KnowledgeQueryResult:
        results = list(self._knowledge.values())

        if query.search_term:
            term = query.search_term.lower()
            results = [
                k
                for k in results
                if term in k.title.lower()
                or term in k.description.lower()
                or term in k.content.lower()
                or any(term in tag.lower() for tag in k.tags)
            ]

        if query.type:
            results = [k for k in results if k.type == query.type]

        if query.tags:
            results = [k for k in results if all(tag in k.tags for tag in query.tags)]

        if query.source_project:
            results = [k for k in results if k.source_project == query.source_project]

        if query.applied_project:
            results = [k for k in results if query.applied_project in k.applied_projects]

        if query.language:
            results = [k for k in results if k.language == query.language]

        if query.created_between:
            start, end = query.created_between
            results = [k for k in results if start <= k.created_at <= end]

        if query.sort_by:
            if query.sort_by not in SORT_KEYS:
                raise ValueError(f"Unsupported sort key: {query.sort_by}")
            results.sort(
                key=lambda k: getattr(k, query.sort_by),
                reverse=query.sort_direction == "desc",
            )

        total_count = len(results)

        if query.offset is not None:
            results = results[query.offset :]
        if query.limit is not None:
            results = results[: query.limit]

        logger.debug(f"Knowledge query matched {total_count} entities, returning {len(results)}")
        return KnowledgeQueryResult(knowledge=results, total_count=total_count)


class InMemoryProjectRegistry:
    """Dictionary-backed project registry."""

    def __init__(self, projects: Optional[List[ProjectInfo]] = None):
        self._projects: Dict[str, ProjectInfo] = {}
        for project in projects or []:
            self.register_project(project)

    def register_project(self, project: ProjectInfo) -> None:
        self._projects[project.id] = project

    async def get_project(self, project_id: str) -> Optional[ProjectInfo]:
        return self._projects.get(project_id)

"""Explainable similarity scoring between knowledge entities.

Similarity is the mean of the factors that could be evaluated for a pair:

    - type match: 1.0 for the same knowledge type, 0.2 otherwise
    - tag overlap: common tags / size of the larger tag list (only when both
      entities carry tags)
    - content: Jaccard similarity of the token sets of both contents
    - project relatedness: 0.8 for the same source project, 0.4 when the two
      projects share a language, 0.1 otherwise (including unresolvable projects)

All factors are symmetric, so ``score(a, b) == score(b, a)``.
"""

import logging
import re
from typing import Iterable, Optional, Set, Tuple

from .models import Knowledge, KnowledgeType
from .stores import ProjectRegistry

logger = logging.getLogger(__name__)

SAME_TYPE_SCORE = 1.0
DIFFERENT_TYPE_SCORE = 0.2
SAME_PROJECT_SCORE = 0.8
SHARED_LANGUAGE_SCORE = 0.4
UNRELATED_PROJECT_SCORE = 0.1

MIN_TOKEN_LENGTH = 4

_PUNCTUATION = re.compile(r"[^\w\s]")


def tokenize(text: str) -> Set[str]:
    """Lower-case, strip punctuation and keep whitespace tokens longer than 3 chars."""
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return {token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH}


def text_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity of the token sets of two texts (0 when both are empty)."""
    tokens1 = tokenize(text1)
    tokens2 = tokenize(text2)
    union = tokens1 | tokens2
    if not union:
        return 0.0
    return len(tokens1 & tokens2) / len(union)


def tag_similarity(tags1: Iterable[str], tags2: Iterable[str]) -> float:
    """Overlap of two tag lists relative to the larger one.

    This is intentionally not the union-based Jaccard ratio.
    """
    tags1 = set(tags1)
    tags2 = set(tags2)
    if not tags1 or not tags2:
        return 0.0
    return len(tags1 & tags2) / max(len(tags1), len(tags2))


def type_similarity(type1: KnowledgeType, type2: KnowledgeType) -> float:
    return SAME_TYPE_SCORE if type1 == type2 else DIFFERENT_TYPE_SCORE


def _intrinsic_factors(knowledge1: Knowledge, knowledge2: Knowledge) -> Tuple[float, int]:
    """Sum and count of the factors that need no project lookup."""
    total = type_similarity(knowledge1.type, knowledge2.type)
    factors = 1

    # Tag overlap only counts when both sides are tagged
    if knowledge1.tags and knowledge2.tags:
        total += tag_similarity(knowledge1.tags, knowledge2.tags)
        factors += 1

    total += text_similarity(knowledge1.content, knowledge2.content)
    factors += 1

    return total, factors


def content_score(knowledge1: Knowledge, knowledge2: Knowledge) -> float:
    """Three-factor similarity (type, tags, content) without project lookups."""
    total, factors = _intrinsic_factors(knowledge1, knowledge2)
    return total / factors


class KnowledgeSimilarity:
    """Four-factor similarity scorer backed by a project registry.

    Attributes:
        projects: Registry used to resolve the languages of owning projects.

    Example:
        >>> scorer = KnowledgeSimilarity(project_registry)
        >>> await scorer.score(knowledge_a, knowledge_b)
        0.61
    """

    def __init__(self, project_registry: Optional[ProjectRegistry] = None):
        self.projects = project_registry

    async def score(self, knowledge1: Knowledge, knowledge2: Knowledge) -> float:
        """Average of the type, tag, content and project factors."""
        similarity, factors = _intrinsic_factors(knowledge1, knowledge2)

        similarity += await self.project_relatedness(
            knowledge1.source_project, knowledge2.source_project
        )
        factors += 1

        return similarity / factors

    async def project_relatedness(self, project_id1: str, project_id2: str) -> float:
        """Score how related two owning projects are."""
        if project_id1 == project_id2:
            return SAME_PROJECT_SCORE

        if self.projects is None:
            return UNRELATED_PROJECT_SCORE

        project1 = await self.projects.get_project(project_id1)
        project2 = await self.projects.get_project(project_id2)

        if project1 is None or project2 is None:
            return UNRELATED_PROJECT_SCORE

        if set(project1.languages) & set(project2.languages):
            return SHARED_LANGUAGE_SCORE

        return UNRELATED_PROJECT_SCORE

"""Tests for the in-memory knowledge store and project registry."""

from datetime import datetime

import pytest

from eol.knowledge_graph.models import KnowledgeQuery, KnowledgeType, ProjectInfo
from eol.knowledge_graph.stores import InMemoryKnowledgeStore, InMemoryProjectRegistry


@pytest.fixture
def populated_store(make_knowledge):
    return InMemoryKnowledgeStore(
        [
            make_knowledge(
                "k1",
                title="LRU cache decorator",
                tags=["cache", "python"],
                language="python",
                access_count=5,
                created_at=datetime(2024, 1, 10),
            ),
            make_knowledge(
                "k2",
                type=KnowledgeType.SOLUTION,
                content="Retry uploads with exponential backoff",
                tags=["retry"],
                source_project="proj2",
                applied_projects=["proj1"],
                access_count=12,
                created_at=datetime(2024, 2, 10),
            ),
            make_knowledge(
                "k3",
                title="Cache warmup job",
                tags=["cache"],
                language="go",
                source_project="proj3",
                access_count=1,
                created_at=datetime(2024, 3, 10),
            ),
        ]
    )


def _ids(result):
    return [k.id for k in result.knowledge]


class TestInMemoryKnowledgeStore:
    """Test query filtering, sorting and pagination."""

    @pytest.mark.asyncio
    async def test_empty_query_returns_everything(self, populated_store):
        result = await populated_store.query_knowledge(KnowledgeQuery())

        assert _ids(result) == ["k1", "k2", "k3"]
        assert result.total_count == 3

    @pytest.mark.asyncio
    async def test_search_term_is_case_insensitive(self, populated_store):
        result = await populated_store.query_knowledge(KnowledgeQuery(search_term="CACHE"))

        assert _ids(result) == ["k1", "k3"]

    @pytest.mark.asyncio
    async def test_search_term_matches_content(self, populated_store):
        result = await populated_store.query_knowledge(KnowledgeQuery(search_term="backoff"))

        assert _ids(result) == ["k2"]

    @pytest.mark.asyncio
    async def test_tags_use_and_semantics(self, populated_store):
        result = await populated_store.query_knowledge(KnowledgeQuery(tags=["cache", "python"]))

        assert _ids(result) == ["k1"]

    @pytest.mark.asyncio
    async def test_scalar_filters(self, populated_store):
        store = populated_store

        assert _ids(await store.query_knowledge(KnowledgeQuery(type=KnowledgeType.SOLUTION))) == ["k2"]
        assert _ids(await store.query_knowledge(KnowledgeQuery(source_project="proj3"))) == ["k3"]
        assert _ids(await store.query_knowledge(KnowledgeQuery(applied_project="proj1"))) == ["k2"]
        assert _ids(await store.query_knowledge(KnowledgeQuery(language="go"))) == ["k3"]

    @pytest.mark.asyncio
    async def test_created_between_is_inclusive(self, populated_store):
        query = KnowledgeQuery(created_between=(datetime(2024, 1, 10), datetime(2024, 2, 10)))

        result = await populated_store.query_knowledge(query)

        assert _ids(result) == ["k1", "k2"]

    @pytest.mark.asyncio
    async def test_sort_descending(self, populated_store):
        query = KnowledgeQuery(sort_by="access_count", sort_direction="desc")

        result = await populated_store.query_knowledge(query)

        assert _ids(result) == ["k2", "k1", "k3"]

    @pytest.mark.asyncio
    async def test_unknown_sort_key(self, populated_store):
        with pytest.raises(ValueError, match="Unsupported sort key"):
            await populated_store.query_knowledge(KnowledgeQuery(sort_by="title"))

    @pytest.mark.asyncio
    async def test_pagination_keeps_total_count(self, populated_store):
        query = KnowledgeQuery(sort_by="created_at", offset=1, limit=1)

        result = await populated_store.query_knowledge(query)

        assert _ids(result) == ["k2"]
        assert result.total_count == 3

    @pytest.mark.asyncio
    async def test_get_knowledge(self, populated_store):
        assert (await populated_store.get_knowledge("k3")).title == "Cache warmup job"
        assert await populated_store.get_knowledge("missing") is None


class TestInMemoryProjectRegistry:
    """Test project lookups."""

    @pytest.mark.asyncio
    async def test_get_project(self):
        registry = InMemoryProjectRegistry([ProjectInfo(id="proj1", languages=["python"])])

        assert (await registry.get_project("proj1")).languages == ["python"]
        assert await registry.get_project("proj9") is None

    @pytest.mark.asyncio
    async def test_register_project_replaces(self):
        registry = InMemoryProjectRegistry()
        registry.register_project(ProjectInfo(id="proj1", languages=["python"]))
        registry.register_project(ProjectInfo(id="proj1", languages=["rust"]))

        assert (await registry.get_project("proj1")).languages == ["rust"]

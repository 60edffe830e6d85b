"""
Tests for the in-memory repository and paging helpers.
"""
import logging

import pytest

from content_discovery.exceptions import RecordNotFound, RepositoryMutationError
from content_discovery.records import DRAFT, PUBLISHED
from content_discovery.repository import InMemoryRepository, check_patch, fetch_all
from content_discovery.state import (
    DESC,
    CursorPagination,
    FilterState,
    Page,
    PagePagination,
    SortState,
)


def ids(records):
    return [record.id for record in records]


@pytest.fixture
def repository(tagged_posts):
    return InMemoryRepository(tagged_posts, name="posts", search_field="title_vi")


class TestCheckPatch:
    """Tests for patch validation."""

    def test_unknown_field(self):
        """Test fields outside the patch vocabulary are rejected."""
        with pytest.raises(RepositoryMutationError) as excinfo:
            check_patch("a", {"title": "x"})
        assert excinfo.value.record_id == "a"
        assert "title" in excinfo.value.reason

    def test_invalid_status(self):
        """Test unknown statuses are rejected."""
        with pytest.raises(RepositoryMutationError):
            check_patch("a", {"status": "archived"})

    def test_tags_must_be_a_collection(self):
        """Test a bare string is not accepted as a tag collection."""
        with pytest.raises(RepositoryMutationError):
            check_patch("a", {"add_tags": "ai"})


class TestInMemoryRepository:
    """Tests for InMemoryRepository."""

    @pytest.mark.asyncio
    async def test_list_everything(self, repository):
        """Test listing without arguments returns insertion order."""
        page = await repository.list()
        assert ids(page.records) == ["p1", "p2", "p3", "p4", "p5"]
        assert page.total == 5

    @pytest.mark.asyncio
    async def test_page_pagination(self, repository):
        """Test filtering, sorting and slicing."""
        page = await repository.list(
            FilterState.build(tag_set={"ai", "career"}),
            SortState("published_at"),
            PagePagination(page_index=1, page_size=3),
        )
        assert ids(page.records) == ["p1"]
        assert page.total == 4

    @pytest.mark.asyncio
    async def test_cursor_pagination_is_gap_free(self, make_post):
        """Test cursor pages cover the feed without overlap, even with equal timestamps."""
        records = [make_post(f"r{i}", days=i % 2) for i in range(7)]
        records.append(make_post("pin", pinned=True, days=-3))
        repository = InMemoryRepository(records)

        pagination = CursorPagination(page_size=3)
        while pagination.has_more:
            pagination = pagination.append(await repository.list(None, None, pagination))

        assert [len(page.records) for page in pagination.loaded_pages] == [3, 3, 2]
        assert ids(pagination.records()) == ["pin", "r1", "r3", "r5", "r0", "r2", "r4", "r6"]

    @pytest.mark.asyncio
    async def test_cursor_pagination_ignores_sort(self, repository):
        """Test cursor pages always use the feed order."""
        page = await repository.list(None, SortState("id", DESC), CursorPagination(page_size=2))
        assert ids(page.records) == ["p1", "p2"]
        assert page.next_cursor is not None

    @pytest.mark.asyncio
    async def test_mutate(self, repository):
        """Test a patch replaces the record."""
        await repository.mutate("p5", {"status": DRAFT, "published_at": None, "pinned": True})
        record = repository.get("p5")
        assert record.status == DRAFT
        assert record.published_at is None
        assert record.pinned

    @pytest.mark.asyncio
    async def test_mutate_tags(self, repository):
        """Test adding and removing tags."""
        await repository.mutate("p1", {"add_tags": ["career", "life"], "remove_tags": ["ai"]})
        assert repository.get("p1").tags == frozenset({"career", "life"})

    @pytest.mark.asyncio
    async def test_mutate_unknown_record(self, repository):
        """Test mutating a missing id raises RecordNotFound."""
        with pytest.raises(RecordNotFound) as excinfo:
            await repository.mutate("nope", {"status": PUBLISHED})
        assert excinfo.value.reason == "record not found"

    @pytest.mark.asyncio
    async def test_delete(self, repository):
        """Test deleting a record."""
        await repository.delete("p2")
        assert "p2" not in ids(repository.records)
        with pytest.raises(RecordNotFound):
            await repository.delete("p2")


class IgnoresPaging(InMemoryRepository):
    """Repository that returns every record for any page and no total."""

    async def list(self, filter_state=None, sort_state=None, pagination=None):
        return Page(self.records, total=None)


class TestFetchAll:
    """Tests for fetch_all()."""

    @pytest.mark.asyncio
    async def test_fetches_every_page(self, repository):
        """Test every record is loaded across several pages."""
        records = await fetch_all(repository, page_size=2)
        assert ids(records) == ["p1", "p2", "p3", "p4", "p5"]

    @pytest.mark.asyncio
    async def test_exact_multiple_of_page_size(self, make_post):
        """Test fetching stops when the last page is full."""
        repository = InMemoryRepository([make_post(str(i)) for i in range(4)])
        records = await fetch_all(repository, page_size=2)
        assert len(records) == 4

    @pytest.mark.asyncio
    async def test_filtered(self, repository):
        """Test filters are passed through."""
        records = await fetch_all(repository, FilterState.build(tag_set={"ai"}), page_size=10)
        assert ids(records) == ["p1", "p3"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [2, 3])
    async def test_repository_ignoring_pagination(self, make_post, caplog, count):
        """Test a repository repeating its first page is read once."""
        repository = IgnoresPaging([make_post(str(i)) for i in range(count)], name="legacy")
        with caplog.at_level(logging.WARNING, logger="content_discovery.repository"):
            records = await fetch_all(repository, page_size=2)
        assert len(records) == count
        assert "legacy ignored pagination at page 1" in caplog.text

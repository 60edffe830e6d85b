"""
Tests for DjangoRepository.

Repository methods are coroutines; the tests call them through
async_to_sync so that ORM queries run on the test thread.
"""
import uuid
from datetime import datetime, timezone

import pytest
from asgiref.sync import async_to_sync

from content_discovery import actions
from content_discovery.bulk import BulkActionCoordinator
from content_discovery.exceptions import RecordNotFound, RepositoryMutationError
from content_discovery.models import Photo, Post, Tag, Taxonomy
from content_discovery.orm import DjangoRepository
from content_discovery.records import DRAFT, PUBLISHED
from content_discovery.repository import fetch_all
from content_discovery.state import (
    ASC,
    DESC,
    CursorPagination,
    FilterState,
    PagePagination,
    SortState,
)

PUBLISHED_AT = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def ids(records):
    return [record.id for record in records]


@pytest.fixture
def repository():
    return DjangoRepository(Post)


@pytest.fixture
def posts(db):
    """Create posts with tags and taxonomy."""
    goal = Taxonomy.objects.create(type=Taxonomy.GOAL, slug="learn", name_vi="Học")
    ai = Tag.objects.create(slug="ai", name_vi="AI")
    career = Tag.objects.create(slug="career", name_vi="Sự nghiệp")

    django_post = Post.objects.create(
        title_vi="Học Django", content_vi="...", read_time=5, level="starter", goal=goal,
        published_at=datetime(2024, 1, 3, tzinfo=timezone.utc),
    )
    django_post.tags.add(ai)
    career_post = Post.objects.create(
        title_vi="Sự nghiệp", content_vi="...", read_time=2,
        published_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )
    career_post.tags.add(career)
    draft = Post.objects.create(title_vi="Bản nháp", content_vi="...", is_draft=True)
    draft.tags.add(ai)
    return {"django": django_post, "career": career_post, "draft": draft}


def list_page(repository, *args):
    return async_to_sync(repository.list)(*args)


class TestList:
    """Tests for DjangoRepository.list()."""

    def test_list_everything(self, repository, posts):
        """Test listing every post as records."""
        page = list_page(repository)
        assert page.total == 3
        assert set(ids(page.records)) == {str(p.pk) for p in posts.values()}

    def test_status_filter(self, repository, posts):
        """Test filtering by status."""
        page = list_page(repository, FilterState.build(status=DRAFT))
        assert ids(page.records) == [str(posts["draft"].pk)]

    def test_tag_filter_uses_or(self, repository, posts):
        """Test tags combine with OR without duplicating rows."""
        page = list_page(repository, FilterState.build(tag_set={"ai", "career"}))
        assert page.total == 3
        assert len(set(ids(page.records))) == 3

    def test_tag_and_status_filter(self, repository, posts):
        """Test categories combine with AND."""
        page = list_page(repository, FilterState.build(tag_set={"ai"}, status=PUBLISHED))
        assert ids(page.records) == [str(posts["django"].pk)]

    def test_level_and_taxonomy_filter(self, repository, posts):
        """Test level, goal and taxonomy filters."""
        goal_id = str(posts["django"].goal_id)
        for state in (
            FilterState.build(level="starter"),
            FilterState.build(goal_id=goal_id),
            FilterState.build(taxonomy_id=goal_id),
        ):
            assert ids(list_page(repository, state).records) == [str(posts["django"].pk)]

    def test_free_text_filter(self, repository, posts):
        """Test free text matches the model's search field."""
        page = list_page(repository, FilterState.build(free_text="django"))
        assert ids(page.records) == [str(posts["django"].pk)]

    def test_category_missing_on_model_matches_nothing(self, db):
        """Test photos never match a level filter."""
        Photo.objects.create(url="https://cdn.example.com/a.jpg")
        page = list_page(DjangoRepository(Photo), FilterState.build(level="starter"))
        assert page.records == ()

    def test_sort_nulls_last(self, repository, posts):
        """Test sorting with missing values last in both directions."""
        asc = list_page(repository, None, SortState("read_time", ASC))
        desc = list_page(repository, None, SortState("read_time", DESC))
        assert ids(asc.records) == [str(posts[k].pk) for k in ("career", "django", "draft")]
        assert ids(desc.records) == [str(posts[k].pk) for k in ("django", "career", "draft")]

    def test_sort_by_status(self, repository, posts):
        """Test drafts sort before published posts ascending."""
        page = list_page(repository, None, SortState("status", ASC))
        assert page.records[0].id == str(posts["draft"].pk)

    def test_unorderable_field_keeps_default_order(self, repository, posts):
        """Test sorting by a relation falls back to the default order."""
        page = list_page(repository, None, SortState("tags", ASC))
        assert page.total == 3

    def test_page_pagination(self, repository, posts):
        """Test offset pagination reports the filtered total."""
        page = list_page(repository, None, SortState("title_vi"), PagePagination(page_index=1, page_size=2))
        assert page.total == 3
        assert len(page.records) == 1

    def test_fetch_all(self, repository, posts):
        """Test loading every page."""
        records = async_to_sync(fetch_all)(repository, None, None, 2)
        assert len(records) == 3

    def test_cursor_pages_with_equal_timestamps(self, repository, db):
        """Test cursor pages are gap-free when publication dates tie."""
        created = [
            Post.objects.create(title_vi=f"Bài {i}", content_vi="...", published_at=PUBLISHED_AT)
            for i in range(5)
        ]
        pinned = Post.objects.create(title_vi="Ghim", content_vi="...", is_pinned=True,
                                     published_at=datetime(2020, 1, 1, tzinfo=timezone.utc))

        pagination = CursorPagination(page_size=2)
        while pagination.has_more:
            pagination = pagination.append(list_page(repository, None, None, pagination))

        expected = [str(pinned.pk)] + sorted(str(post.pk) for post in created)
        assert ids(pagination.records()) == expected
        assert len(pagination.loaded_pages) == 3


class TestMutate:
    """Tests for DjangoRepository.mutate() and delete()."""

    def test_publish(self, repository, posts):
        """Test publishing a draft."""
        draft = posts["draft"]
        async_to_sync(repository.mutate)(str(draft.pk), {"status": PUBLISHED, "published_at": PUBLISHED_AT})
        draft.refresh_from_db()
        assert not draft.is_draft
        assert draft.published_at == PUBLISHED_AT

    def test_flags(self, repository, posts):
        """Test pinning and featuring."""
        post = posts["career"]
        async_to_sync(repository.mutate)(str(post.pk), {"pinned": True, "featured": True})
        post.refresh_from_db()
        assert post.is_pinned
        assert post.is_featured

    def test_tags(self, repository, posts):
        """Test adding new and removing existing tags."""
        post = posts["django"]
        async_to_sync(repository.mutate)(str(post.pk), {"add_tags": ["python"], "remove_tags": ["ai"]})
        assert post.tag_slugs() == frozenset({"python"})
        assert Tag.objects.filter(slug="python").exists()

    def test_tags_on_model_without_tags(self, db):
        """Test tag patches fail for photos."""
        photo = Photo.objects.create(url="https://cdn.example.com/a.jpg")
        with pytest.raises(RepositoryMutationError):
            async_to_sync(DjangoRepository(Photo).mutate)(str(photo.pk), {"add_tags": ["x"]})

    def test_unknown_field(self, repository, posts):
        """Test unsupported patch fields fail."""
        with pytest.raises(RepositoryMutationError):
            async_to_sync(repository.mutate)(str(posts["django"].pk), {"title_vi": "x"})

    @pytest.mark.parametrize("record_id", ["not-a-uuid", str(uuid.uuid4())])
    def test_missing_record(self, repository, db, record_id):
        """Test unknown and malformed ids raise RecordNotFound."""
        with pytest.raises(RecordNotFound):
            async_to_sync(repository.mutate)(record_id, {"pinned": True})

    def test_delete(self, repository, posts):
        """Test deleting a post."""
        async_to_sync(repository.delete)(str(posts["draft"].pk))
        assert Post.objects.count() == 2

    def test_bulk_publish(self, repository, posts):
        """Test a bulk action over the ORM reports the missing id."""
        missing = str(uuid.uuid4())
        ids_ = [str(posts["draft"].pk), missing]
        result = async_to_sync(BulkActionCoordinator().run)(ids_, actions.publish(repository))

        assert result.succeeded == (str(posts["draft"].pk),)
        assert result.failed_ids == (missing,)
        assert Post.objects.filter(is_draft=True).count() == 0

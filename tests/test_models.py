"""
Tests for django-content-discovery models.
"""
import pytest

from content_discovery import records
from content_discovery.models import Insight, Photo, Post, Series, Tag, Taxonomy


@pytest.fixture
def goal(db):
    """Create a goal taxonomy entry."""
    return Taxonomy.objects.create(
        type=Taxonomy.GOAL,
        name_vi="Học AI",
        name_en="Learn AI",
    )


@pytest.fixture
def tag(db):
    """Create a test tag."""
    return Tag.objects.create(slug="ai", name_vi="Trí tuệ nhân tạo")


@pytest.fixture
def post(db, goal):
    """Create a published test post."""
    return Post.objects.create(
        title_vi="Xin chào",
        content_vi="Bài viết đầu tiên",
        goal=goal,
        level=records.STARTER,
    )


class TestTaxonomy:
    """Tests for Taxonomy model."""

    def test_slug_from_english_name(self, goal):
        """Test the slug is generated from the English name."""
        assert goal.slug == "learn-ai"
        assert str(goal) == "Goal: Học AI"

    def test_name_falls_back_to_vietnamese(self, db):
        """Test a missing English name falls back to Vietnamese."""
        outcome = Taxonomy.objects.create(type=Taxonomy.OUTCOME, slug="job", name_vi="Việc làm")
        assert outcome.name("en") == "Việc làm"
        assert outcome.name("vi") == "Việc làm"

    def test_post_count_only_counts_published(self, goal, post):
        """Test drafts are not counted."""
        Post.objects.create(title_vi="Nháp", content_vi="...", goal=goal, is_draft=True)
        assert goal.post_count == 1


class TestTag:
    """Tests for Tag model."""

    def test_create_tag(self, db):
        """Test creating a tag without a slug."""
        tag = Tag.objects.create(name_vi="Sự nghiệp", name_en="Career")
        assert tag.slug == "career"

    def test_tag_post_count(self, tag, post):
        """Test tag post count property."""
        post.tags.add(tag)
        assert tag.post_count == 1


class TestPost:
    """Tests for Post model."""

    def test_create_post(self, post):
        """Test creating a post sets slug and publication date."""
        assert post.slug == "xin-chao"
        assert post.is_published
        assert post.status == records.PUBLISHED
        assert post.published_at is not None
        assert post.created_at is not None

    def test_unique_slug(self, post):
        """Test posts with the same title get distinct slugs."""
        other = Post.objects.create(title_vi="Xin chào", content_vi="Bài khác")
        assert other.slug == "xin-chao-1"

    def test_draft_has_no_publication_date(self, db):
        """Test drafts are saved without published_at."""
        draft = Post.objects.create(title_vi="Nháp", content_vi="...", is_draft=True)
        assert draft.published_at is None
        assert draft.status == records.DRAFT

    def test_publish_and_unpublish(self, db):
        """Test publishing a draft and turning it back."""
        draft = Post.objects.create(title_vi="Nháp", content_vi="...", is_draft=True)

        draft.publish()
        draft.refresh_from_db()
        assert draft.is_published
        assert draft.published_at is not None

        draft.unpublish()
        draft.refresh_from_db()
        assert not draft.is_published
        assert draft.published_at is None

    def test_to_record(self, post, tag, goal):
        """Test converting a post to an immutable record."""
        post.tags.add(tag)
        record = post.to_record()

        assert isinstance(record, records.Post)
        assert record.id == str(post.pk)
        assert record.title_vi == "Xin chào"
        assert record.title_en is None
        assert record.tags == frozenset({"ai"})
        assert record.goal_id == str(goal.pk)
        assert record.taxonomy_refs == (str(goal.pk),)
        assert record.level == records.STARTER


class TestInsight:
    """Tests for Insight model."""

    def test_to_record_links_post(self, post):
        """Test the related post id is carried over."""
        insight = Insight.objects.create(content_vi="Một ý tưởng", related_post=post)
        record = insight.to_record()

        assert isinstance(record, records.Insight)
        assert record.related_post_id == str(post.pk)
        assert record.content_vi == "Một ý tưởng"


class TestSeries:
    """Tests for Series model."""

    def test_ordered_posts(self, db):
        """Test posts come back in series order without drafts."""
        first = Post.objects.create(title_vi="Một", content_vi="...")
        second = Post.objects.create(title_vi="Hai", content_vi="...")
        draft = Post.objects.create(title_vi="Ba", content_vi="...", is_draft=True)
        series = Series.objects.create(
            title_vi="Chuỗi bài",
            post_ids=[str(second.pk), str(draft.pk), str(first.pk)],
        )

        assert series.slug == "chuoi-bai"
        assert series.ordered_posts() == [second, first]
        assert series.to_record().post_ids == (str(second.pk), str(draft.pk), str(first.pk))


class TestPhoto:
    """Tests for Photo model."""

    def test_orientation_detection(self, db):
        """Test image orientation detection."""
        landscape = Photo.objects.create(url="https://cdn.example.com/l.jpg", width=1920, height=1080)
        portrait = Photo.objects.create(url="https://cdn.example.com/p.jpg", width=1080, height=1920)
        square = Photo.objects.create(url="https://cdn.example.com/s.jpg", width=1000, height=1000)
        unknown = Photo.objects.create(url="https://cdn.example.com/u.jpg")

        assert landscape.orientation == "landscape"
        assert portrait.orientation == "portrait"
        assert square.orientation == "square"
        assert unknown.orientation == "unknown"
        assert unknown.aspect_ratio is None

    def test_to_record(self, db):
        """Test blank fields become None on the record."""
        photo = Photo.objects.create(url="https://cdn.example.com/x.jpg", album="travel")
        record = photo.to_record()

        assert isinstance(record, records.Photo)
        assert record.caption_vi is None
        assert record.album == "travel"
        assert record.tags == frozenset()

"""
Shared fixtures for django-content-discovery tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from content_discovery.records import DRAFT, PUBLISHED, Insight, Photo, Post

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def at(days):
    """Return BASE_TIME shifted by a number of days."""
    return BASE_TIME + timedelta(days=days)


@pytest.fixture
def make_post():
    """Factory for Post records; ``days`` sets published_at relative to BASE_TIME."""

    def factory(id, title="", content="", *, days=0, draft=False, **fields):
        fields.setdefault("status", DRAFT if draft else PUBLISHED)
        fields.setdefault("published_at", None if draft else at(days))
        fields.setdefault("created_at", at(days))
        fields.setdefault("updated_at", at(days))
        return Post(
            id=id,
            title_vi=title or f"Bài viết {id}",
            content_vi=content or f"Nội dung {id}",
            **fields,
        )

    return factory


@pytest.fixture
def make_insight():
    """Factory for Insight records."""

    def factory(id, content="", *, days=0, **fields):
        fields.setdefault("status", PUBLISHED)
        fields.setdefault("published_at", at(days))
        return Insight(id=id, content_vi=content or f"Ghi chú {id}", **fields)

    return factory


@pytest.fixture
def make_photo():
    """Factory for Photo records."""

    def factory(id, caption=None, **fields):
        fields.setdefault("status", PUBLISHED)
        return Photo(id=id, url=f"https://cdn.example.com/{id}.jpg", caption_vi=caption, **fields)

    return factory


@pytest.fixture
def tagged_posts(make_post):
    """Five posts: two tagged ai, two tagged career, one untagged."""
    return [
        make_post("p1", tags={"ai"}, days=5),
        make_post("p2", tags={"career"}, days=4),
        make_post("p3", tags={"ai"}, days=3),
        make_post("p4", tags={"career"}, days=2),
        make_post("p5", days=1),
    ]

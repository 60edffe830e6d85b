"""
Models for django-content-discovery.

All models are importable from content_discovery.models:

    from content_discovery.models import Post, Insight, Series, Photo, Tag, Taxonomy
"""
from .taxonomy import Taxonomy, Tag
from .posts import ContentModel, Post, Insight, Series
from .media import Photo

__all__ = [
    # Taxonomy
    "Taxonomy",
    "Tag",
    # Content
    "ContentModel",
    "Post",
    "Insight",
    "Series",
    # Media
    "Photo",
]

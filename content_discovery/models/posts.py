"""
Post, Insight and Series models for django-content-discovery.
"""
import uuid

from django.db import models
from django.utils import timezone
from django.utils.text import slugify

from .. import records
from .taxonomy import Taxonomy


class ContentModel(models.Model):
    """
    Fields shared by every publishable content type.

    Subclasses set ``record_class`` and implement ``content_fields()`` so
    that ``to_record()`` can build the immutable record the engines use.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    is_draft = models.BooleanField(default=False)
    is_pinned = models.BooleanField(default=False)
    is_featured = models.BooleanField(default=False)
    published_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the item was published",
    )
    created_at = models.DateTimeField(db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    record_class = records.Record

    class Meta:
        abstract = True
        ordering = ["-is_pinned", "-published_at"]

    def save(self, *args, **kwargs):
        # Set created_at if not set
        if not self.created_at:
            self.created_at = timezone.now()

        # Set published_at when transitioning from draft
        if not self.is_draft and not self.published_at:
            self.published_at = timezone.now()

        super().save(*args, **kwargs)

    @property
    def status(self):
        return records.DRAFT if self.is_draft else records.PUBLISHED

    @property
    def is_published(self):
        return not self.is_draft

    def publish(self):
        """Publish the item immediately."""
        self.is_draft = False
        self.published_at = timezone.now()
        self.save(update_fields=["is_draft", "published_at", "updated_at"])

    def unpublish(self):
        """Turn the item back into a draft."""
        self.is_draft = True
        self.published_at = None
        self.save(update_fields=["is_draft", "published_at", "updated_at"])

    def tag_slugs(self):
        if not hasattr(self, "tags"):
            return frozenset()
        return frozenset(tag.slug for tag in self.tags.all())

    def content_fields(self):
        """Return the type-specific record fields."""
        return {}

    def to_record(self):
        """Return an immutable record snapshot of this item."""
        return self.record_class(
            id=str(self.pk),
            status=self.status,
            pinned=self.is_pinned,
            featured=self.is_featured,
            tags=self.tag_slugs(),
            created_at=self.created_at,
            updated_at=self.updated_at,
            published_at=self.published_at,
            **self.content_fields(),
        )


def unique_slug(model, text, pk=None):
    """Return a slug for text that no other row of model uses."""
    base_slug = slugify(text)[:255] or "item"
    slug = base_slug
    counter = 1
    while model.objects.filter(slug=slug).exclude(pk=pk).exists():
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug


class Post(ContentModel):
    """
    Blog post with Vietnamese content and an optional English translation.

    English fields left blank fall back to Vietnamese for display and search.
    """

    LEVEL_CHOICES = [(level, level.title()) for level in records.LEVELS]

    slug = models.SlugField(max_length=255, unique=True, blank=True)
    title_vi = models.CharField(max_length=255)
    title_en = models.CharField(max_length=255, blank=True)
    content_vi = models.TextField()
    content_en = models.TextField(blank=True)
    excerpt_vi = models.TextField(blank=True)
    excerpt_en = models.TextField(blank=True)
    cover_image = models.URLField(blank=True)
    read_time = models.PositiveIntegerField(null=True, blank=True, help_text="Minutes")
    level = models.CharField(max_length=20, choices=LEVEL_CHOICES, null=True, blank=True)

    # Taxonomy
    goal = models.ForeignKey(
        Taxonomy,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="goal_posts",
        limit_choices_to={"type": Taxonomy.GOAL},
    )
    outcome = models.ForeignKey(
        Taxonomy,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="outcome_posts",
        limit_choices_to={"type": Taxonomy.OUTCOME},
    )
    tags = models.ManyToManyField("content_discovery.Tag", related_name="posts", blank=True)

    record_class = records.Post
    search_field = "title_vi"

    class Meta(ContentModel.Meta):
        indexes = [
            models.Index(fields=["is_draft", "-published_at"]),
        ]

    def __str__(self):
        return self.title_vi

    def save(self, *args, **kwargs):
        # Auto-generate slug from title
        if not self.slug and self.title_vi:
            self.slug = unique_slug(Post, self.title_en or self.title_vi, self.pk)
        super().save(*args, **kwargs)

    def content_fields(self):
        return {
            "slug": self.slug,
            "title_vi": self.title_vi,
            "title_en": self.title_en or None,
            "content_vi": self.content_vi,
            "content_en": self.content_en or None,
            "excerpt_vi": self.excerpt_vi or None,
            "excerpt_en": self.excerpt_en or None,
            "goal_id": str(self.goal_id) if self.goal_id else None,
            "outcome_id": str(self.outcome_id) if self.outcome_id else None,
            "level": self.level or None,
            "read_time": self.read_time,
            "cover_image": self.cover_image or None,
        }


class Insight(ContentModel):
    """Short note, optionally linked to the post it came from."""

    content_vi = models.TextField()
    content_en = models.TextField(blank=True)
    related_post = models.ForeignKey(
        Post,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="insights",
    )
    tags = models.ManyToManyField("content_discovery.Tag", related_name="insights", blank=True)

    record_class = records.Insight
    search_field = "content_vi"

    def __str__(self):
        return f"{self.content_vi[:50]}..." if len(self.content_vi) > 50 else self.content_vi

    def content_fields(self):
        return {
            "content_vi": self.content_vi,
            "content_en": self.content_en or None,
            "related_post_id": str(self.related_post_id) if self.related_post_id else None,
        }


class Series(ContentModel):
    """Ordered collection of posts."""

    slug = models.SlugField(max_length=255, unique=True, blank=True)
    title_vi = models.CharField(max_length=255)
    title_en = models.CharField(max_length=255, blank=True)
    description_vi = models.TextField(blank=True)
    description_en = models.TextField(blank=True)
    post_ids = models.JSONField(default=list, blank=True, help_text="Post ids in reading order")
    cover_image = models.URLField(blank=True)

    record_class = records.Series
    search_field = "title_vi"

    class Meta(ContentModel.Meta):
        verbose_name_plural = "Series"

    def __str__(self):
        return self.title_vi

    def save(self, *args, **kwargs):
        if not self.slug and self.title_vi:
            self.slug = unique_slug(Series, self.title_en or self.title_vi, self.pk)
        super().save(*args, **kwargs)

    def ordered_posts(self):
        """Return the published posts of the series in reading order."""
        posts = {str(p.pk): p for p in Post.objects.filter(pk__in=self.post_ids, is_draft=False)}
        return [posts[pk] for pk in map(str, self.post_ids) if pk in posts]

    def content_fields(self):
        return {
            "slug": self.slug,
            "title_vi": self.title_vi,
            "title_en": self.title_en or None,
            "description_vi": self.description_vi or None,
            "description_en": self.description_en or None,
            "post_ids": tuple(self.post_ids),
            "cover_image": self.cover_image or None,
        }

"""
Taxonomy and Tag models for django-content-discovery.
"""
from django.db import models
from django.utils.text import slugify


class Taxonomy(models.Model):
    """
    Goal or outcome classification for posts.

    A post references at most one goal and one outcome.
    """

    GOAL = "goal"
    OUTCOME = "outcome"
    TYPE_CHOICES = [
        (GOAL, "Goal"),
        (OUTCOME, "Outcome"),
    ]

    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    slug = models.SlugField(max_length=100, unique=True)
    name_vi = models.CharField(max_length=100)
    name_en = models.CharField(max_length=100, blank=True)
    description_vi = models.TextField(blank=True)
    description_en = models.TextField(blank=True)
    icon = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=20, blank=True)
    sort_order = models.IntegerField(default=0, help_text="Display order within type")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["type", "sort_order", "name_vi"]
        verbose_name_plural = "Taxonomies"

    def __str__(self):
        return f"{self.get_type_display()}: {self.name_vi}"

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name_en or self.name_vi)[:100]
        super().save(*args, **kwargs)

    def name(self, lang):
        """Return the name in lang, falling back to Vietnamese."""
        return getattr(self, f"name_{lang}", "") or self.name_vi

    @property
    def post_count(self):
        """Return count of published posts classified under this entry."""
        related = self.goal_posts if self.type == self.GOAL else self.outcome_posts
        return related.filter(is_draft=False).count()


class Tag(models.Model):
    """
    Flat tag for posts and insights.

    Records refer to tags by slug.
    """

    slug = models.SlugField(max_length=100, unique=True)
    name_vi = models.CharField(max_length=100)
    name_en = models.CharField(max_length=100, blank=True)
    color = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["slug"]

    def __str__(self):
        return self.name_vi or self.slug

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name_en or self.name_vi)[:100]
        super().save(*args, **kwargs)

    @property
    def post_count(self):
        """Return count of published posts with this tag."""
        return self.posts.filter(is_draft=False).count()

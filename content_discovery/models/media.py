"""
Photo gallery model for django-content-discovery.

Files live in external storage; the model keeps their URLs and metadata.
"""
from django.db import models

from .. import records
from .posts import ContentModel


class Photo(ContentModel):
    """Gallery photo with a bilingual caption, grouped into albums."""

    url = models.URLField(max_length=500)
    thumbnail_url = models.URLField(max_length=500, blank=True)
    caption_vi = models.TextField(blank=True)
    caption_en = models.TextField(blank=True)
    album = models.CharField(max_length=100, blank=True, db_index=True)
    sort_order = models.IntegerField(default=0)
    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)

    # Capture date from EXIF
    taken_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Original date/time photo was taken",
    )

    record_class = records.Photo
    search_field = "caption_vi"

    class Meta(ContentModel.Meta):
        ordering = ["sort_order", "-taken_at"]

    def __str__(self):
        return self.caption_vi[:50] or self.url

    @property
    def aspect_ratio(self):
        """Return aspect ratio as float."""
        if self.width and self.height:
            return self.width / self.height
        return None

    @property
    def orientation(self):
        """Return orientation based on dimensions."""
        if not self.width or not self.height:
            return "unknown"
        if self.width > self.height:
            return "landscape"
        elif self.height > self.width:
            return "portrait"
        return "square"

    def content_fields(self):
        return {
            "url": self.url,
            "thumbnail_url": self.thumbnail_url or None,
            "caption_vi": self.caption_vi or None,
            "caption_en": self.caption_en or None,
            "album": self.album or None,
            "sort_order": self.sort_order,
            "taken_at": self.taken_at,
        }

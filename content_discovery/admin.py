"""
Django admin configuration for content_discovery.

Bulk actions run through BulkActionCoordinator: each selected row is
mutated independently and the admin reports how many succeeded and failed.
"""
from asgiref.sync import async_to_sync
from django.contrib import admin, messages

from . import actions
from .bulk import BulkActionCoordinator
from .models import Insight, Photo, Post, Series, Tag, Taxonomy
from .orm import DjangoRepository


@admin.register(Taxonomy)
class TaxonomyAdmin(admin.ModelAdmin):
    list_display = ["name_vi", "name_en", "type", "slug", "post_count", "sort_order"]
    list_filter = ["type"]
    search_fields = ["name_vi", "name_en", "slug"]
    prepopulated_fields = {"slug": ("name_en",)}
    list_editable = ["sort_order"]


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ["slug", "name_vi", "name_en", "post_count", "created_at"]
    search_fields = ["slug", "name_vi", "name_en"]
    readonly_fields = ["created_at"]


class BulkActionsMixin:
    """Publish/unpublish/pin/unpin/feature actions for ContentModel admins."""

    actions = [
        "publish_selected",
        "unpublish_selected",
        "pin_selected",
        "unpin_selected",
        "feature_selected",
    ]

    def run_bulk_action(self, request, queryset, factory, verb):
        """Run factory(repository) over the selected rows and report the outcome."""
        repository = DjangoRepository(self.model)
        ids = [str(pk) for pk in queryset.values_list("pk", flat=True)]
        result = async_to_sync(BulkActionCoordinator().run)(ids, factory(repository))

        opts = self.model._meta
        message = result.summary(verb, str(opts.verbose_name), str(opts.verbose_name_plural))
        for failure in result.failed:
            message += f"; {failure.id}: {failure.reason}"
        self.message_user(request, message, messages.SUCCESS if result.ok else messages.WARNING)
        return result

    @admin.action(description="Publish selected")
    def publish_selected(self, request, queryset):
        return self.run_bulk_action(request, queryset, actions.publish, "published")

    @admin.action(description="Unpublish selected")
    def unpublish_selected(self, request, queryset):
        return self.run_bulk_action(request, queryset, actions.unpublish, "unpublished")

    @admin.action(description="Pin selected")
    def pin_selected(self, request, queryset):
        return self.run_bulk_action(request, queryset, actions.pin, "pinned")

    @admin.action(description="Unpin selected")
    def unpin_selected(self, request, queryset):
        return self.run_bulk_action(request, queryset, actions.unpin, "unpinned")

    @admin.action(description="Feature selected")
    def feature_selected(self, request, queryset):
        return self.run_bulk_action(request, queryset, actions.feature, "featured")


@admin.register(Post)
class PostAdmin(BulkActionsMixin, admin.ModelAdmin):
    list_display = [
        "title_preview",
        "is_draft",
        "is_pinned",
        "is_featured",
        "level",
        "goal",
        "published_at",
    ]
    list_filter = ["is_draft", "is_pinned", "is_featured", "level", "goal", "outcome"]
    search_fields = ["title_vi", "title_en", "content_vi"]
    filter_horizontal = ["tags"]
    date_hierarchy = "created_at"
    readonly_fields = ["created_at", "updated_at", "published_at"]
    prepopulated_fields = {"slug": ("title_vi",)}

    fieldsets = (
        (None, {
            "fields": ("title_vi", "title_en", "slug", "content_vi", "content_en")
        }),
        ("Excerpt", {
            "fields": ("excerpt_vi", "excerpt_en", "cover_image", "read_time"),
            "classes": ("collapse",),
        }),
        ("Taxonomy", {
            "fields": ("goal", "outcome", "level", "tags")
        }),
        ("Status", {
            "fields": ("is_draft", "is_pinned", "is_featured", "published_at")
        }),
        ("Metadata", {
            "fields": ("created_at", "updated_at"),
            "classes": ("collapse",),
        }),
    )

    def title_preview(self, obj):
        """Truncated title for list display."""
        return obj.title_vi[:60] + "..." if len(obj.title_vi) > 60 else obj.title_vi

    title_preview.short_description = "Title"


@admin.register(Insight)
class InsightAdmin(BulkActionsMixin, admin.ModelAdmin):
    list_display = ["preview", "is_draft", "is_pinned", "related_post", "published_at"]
    list_filter = ["is_draft", "is_pinned"]
    search_fields = ["content_vi", "content_en"]
    raw_id_fields = ["related_post"]
    filter_horizontal = ["tags"]

    def preview(self, obj):
        return obj.content_vi[:50] + "..." if len(obj.content_vi) > 50 else obj.content_vi

    preview.short_description = "Insight"


@admin.register(Series)
class SeriesAdmin(BulkActionsMixin, admin.ModelAdmin):
    list_display = ["title_vi", "is_draft", "is_featured", "created_at"]
    list_filter = ["is_draft", "is_featured"]
    search_fields = ["title_vi", "title_en"]
    prepopulated_fields = {"slug": ("title_vi",)}


@admin.register(Photo)
class PhotoAdmin(BulkActionsMixin, admin.ModelAdmin):
    list_display = ["__str__", "album", "is_draft", "sort_order", "taken_at"]
    list_filter = ["album", "is_draft"]
    search_fields = ["caption_vi", "caption_en", "album"]
    list_editable = ["sort_order"]

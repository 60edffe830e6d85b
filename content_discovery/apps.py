"""Django app configuration for content_discovery."""
from django.apps import AppConfig


class ContentDiscoveryConfig(AppConfig):
    """Configuration for the content discovery app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "content_discovery"
    verbose_name = "Content Discovery"

    def ready(self):
        """Validate configured languages when the app registry is ready."""
        from .conf import check_languages
        check_languages()

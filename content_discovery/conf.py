"""
Configuration settings for django-content-discovery.

Override these in your Django settings.py:

    CONTENT_DISCOVERY = {
        'DEFAULT_LANGUAGE': 'vi',
        'DEBOUNCE_MS': 300,
        'ADMIN_PAGE_SIZE': 25,
        ...
    }
"""
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

DEFAULTS = {
    # Languages. The default language is canonical: every bilingual field
    # falls back to it when the requested language is empty.
    "DEFAULT_LANGUAGE": "vi",
    "LANGUAGES": ["vi", "en"],

    # Search
    "DEBOUNCE_MS": 300,
    "TITLE_WEIGHT": 3,
    "BODY_WEIGHT": 1,
    "MIN_QUERY_LENGTH": 1,
    "SEARCH_CHUNK_SIZE": 200,

    # Pagination
    "ADMIN_PAGE_SIZE": 10,
    "FEED_PAGE_SIZE": 10,
    "FETCH_ALL_PAGE_SIZE": 100,

    # Bulk actions
    "BULK_CONCURRENCY": None,
}


class ContentDiscoverySettings:
    """
    Lazy settings object that reads from Django settings.

    Access via: from content_discovery.conf import discovery_settings
    """

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid content_discovery setting: {name}")

        user_settings = getattr(settings, "CONTENT_DISCOVERY", {})
        return user_settings.get(name, DEFAULTS[name])

    @property
    def DEBOUNCE_SECONDS(self):
        """Return the debounce window in seconds."""
        return self.DEBOUNCE_MS / 1000.0


discovery_settings = ContentDiscoverySettings()


def resolve(value, name):
    """
    Return value unless it is None, in which case read the named setting.

    Engines call this at construction time so explicit keyword arguments
    always win over project settings.
    """
    if value is None:
        return getattr(discovery_settings, name)
    return value


def check_languages():
    """
    Ensure DEFAULT_LANGUAGE is one of LANGUAGES.

    Raises:
        ImproperlyConfigured: if the default language is not listed.
    """
    default = discovery_settings.DEFAULT_LANGUAGE
    if default not in discovery_settings.LANGUAGES:
        raise ImproperlyConfigured(
            f"CONTENT_DISCOVERY['DEFAULT_LANGUAGE'] ({default!r}) must be one of "
            f"CONTENT_DISCOVERY['LANGUAGES']"
        )

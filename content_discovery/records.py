"""
Content records as seen by the query engines.

Records are immutable snapshots of a content item. Every variant shares the
minimal interface the generic engines depend on (``id``, ``status``,
``updated_at``, ``published_at``, ``pinned``, ``tags``); type-specific fields
are only read by the domain filters and the search matcher.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import ClassVar, Optional

from .conf import resolve
from .exceptions import ValidationError

DRAFT = "draft"
PUBLISHED = "published"
STATUSES = (DRAFT, PUBLISHED)

STARTER = "starter"
BUILDER = "builder"
ADVANCED = "advanced"
LEVELS = (STARTER, BUILDER, ADVANCED)

# Filter value meaning "no constraint"
ALL = "all"


@dataclass(frozen=True)
class Record:
    """
    Base content record.

    ``tags`` holds tag slugs. ``pinned`` drives the public default ordering,
    ``featured`` is an independent highlight flag.
    """

    id: str
    status: str = DRAFT
    pinned: bool = False
    featured: bool = False
    tags: frozenset = field(default_factory=frozenset)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    kind: ClassVar[str] = "record"
    title_field: ClassVar[Optional[str]] = None
    body_field: ClassVar[Optional[str]] = None

    def __post_init__(self):
        if self.status not in STATUSES:
            raise ValidationError(f"Unknown status {self.status!r} for record {self.id!r}")
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "tags", frozenset(self.tags))

    @property
    def is_published(self):
        return self.status == PUBLISHED

    @property
    def taxonomy_refs(self):
        """Return the taxonomy ids this record is classified under."""
        return ()

    @classmethod
    def field_names(cls):
        """Return the names of all data fields of this variant."""
        return frozenset(f.name for f in fields(cls))


@dataclass(frozen=True)
class Post(Record):
    """Long-form article with bilingual title, content and excerpt."""

    slug: str = ""
    title_vi: str = ""
    title_en: Optional[str] = None
    content_vi: str = ""
    content_en: Optional[str] = None
    excerpt_vi: Optional[str] = None
    excerpt_en: Optional[str] = None
    goal_id: Optional[str] = None
    outcome_id: Optional[str] = None
    level: Optional[str] = None
    read_time: Optional[int] = None
    cover_image: Optional[str] = None

    kind: ClassVar[str] = "post"
    title_field: ClassVar[Optional[str]] = "title"
    body_field: ClassVar[Optional[str]] = "content"

    def __post_init__(self):
        super().__post_init__()
        if self.level is not None and self.level not in LEVELS:
            raise ValidationError(f"Unknown level {self.level!r} for post {self.id!r}")

    @property
    def taxonomy_refs(self):
        return tuple(ref for ref in (self.goal_id, self.outcome_id) if ref)


@dataclass(frozen=True)
class Insight(Record):
    """Short note, optionally linked to a post."""

    content_vi: str = ""
    content_en: Optional[str] = None
    related_post_id: Optional[str] = None

    kind: ClassVar[str] = "insight"
    body_field: ClassVar[Optional[str]] = "content"


@dataclass(frozen=True)
class Series(Record):
    """Ordered collection of posts."""

    slug: str = ""
    title_vi: str = ""
    title_en: Optional[str] = None
    description_vi: Optional[str] = None
    description_en: Optional[str] = None
    post_ids: tuple = ()
    cover_image: Optional[str] = None

    kind: ClassVar[str] = "series"
    title_field: ClassVar[Optional[str]] = "title"
    body_field: ClassVar[Optional[str]] = "description"

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "post_ids", tuple(str(pk) for pk in self.post_ids))


@dataclass(frozen=True)
class Photo(Record):
    """Gallery photo."""

    url: str = ""
    thumbnail_url: Optional[str] = None
    caption_vi: Optional[str] = None
    caption_en: Optional[str] = None
    album: Optional[str] = None
    sort_order: int = 0
    taken_at: Optional[datetime] = None

    kind: ClassVar[str] = "photo"
    title_field: ClassVar[Optional[str]] = "caption"


RECORD_TYPES = {cls.kind: cls for cls in (Post, Insight, Series, Photo)}


def _populated(value):
    return isinstance(value, str) and value.strip() != ""


def localized(record, name, lang, default_language=None):
    """
    Return the value of a bilingual field in the requested language.

    Looks up ``<name>_<lang>`` and falls back to ``<name>_<default_language>``
    when the requested one is missing or blank.

    Args:
        record: any Record
        name: field base name, e.g. "title"
        lang: requested language code
        default_language: canonical language (defaults to DEFAULT_LANGUAGE)

    Returns:
        The localized string, or "" when neither field is populated.
    """
    default_language = resolve(default_language, "DEFAULT_LANGUAGE")
    value = getattr(record, f"{name}_{lang}", None)
    if _populated(value):
        return value
    fallback = getattr(record, f"{name}_{default_language}", None)
    if _populated(fallback):
        return fallback
    return ""

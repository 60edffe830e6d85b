"""
View-session state for the query engines.

All state objects are immutable; engines replace them instead of mutating
them in place. Constructors that take user input validate it and raise
ValidationError, which the engines turn into a logged no-op.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import ClassVar, NamedTuple, Optional

from .exceptions import ValidationError
from .records import ALL, LEVELS, STATUSES

ASC = "asc"
DESC = "desc"
DIRECTIONS = (ASC, DESC)


@dataclass(frozen=True)
class SortState:
    """A single active sort key. Multi-column sorting is not supported."""

    key: str
    direction: str = ASC

    @classmethod
    def parse(cls, key, direction=ASC, allowed=None):
        """
        Build a SortState from untrusted input.

        Args:
            key: field name to sort by
            direction: "asc" or "desc"
            allowed: optional collection of sortable field names

        Raises:
            ValidationError: if the key or direction is malformed
        """
        if not isinstance(key, str) or not key.strip():
            raise ValidationError(f"Invalid sort key: {key!r}")
        if direction not in DIRECTIONS:
            raise ValidationError(f"Invalid sort direction: {direction!r}")
        if allowed is not None and key not in allowed:
            raise ValidationError(f"Field {key!r} is not sortable")
        return cls(key=key, direction=direction)


def _optional_choice(name, value, choices):
    if value is None or value == ALL:
        return None
    if value not in choices:
        raise ValidationError(f"Invalid {name}: {value!r}")
    return value


def _optional_id(name, value):
    if value is None or value == ALL or value == "":
        return None
    if not isinstance(value, (str, int)):
        raise ValidationError(f"Invalid {name}: {value!r}")
    return str(value)


def _tag_set(value):
    if value is None:
        return frozenset()
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ValidationError(f"tag_set must be a collection of tags, got {value!r}")
    tags = frozenset(value)
    if not all(isinstance(tag, str) for tag in tags):
        raise ValidationError(f"tag_set must only contain strings, got {value!r}")
    return tags


def _free_text(value):
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"free_text must be a string, got {value!r}")
    return value


_NORMALIZERS = {
    "status": lambda v: _optional_choice("status", v, STATUSES),
    "level": lambda v: _optional_choice("level", v, LEVELS),
    "tag_set": _tag_set,
    "taxonomy_id": lambda v: _optional_id("taxonomy_id", v),
    "goal_id": lambda v: _optional_id("goal_id", v),
    "outcome_id": lambda v: _optional_id("outcome_id", v),
    "free_text": _free_text,
}


@dataclass(frozen=True)
class FilterState:
    """
    Independent, optional filter constraints.

    ``None`` (or "all" on input) means no constraint for that category, and
    an empty ``tag_set`` means no tag filter, not "match nothing".
    ``taxonomy_id`` matches either taxonomy reference of a record, while
    ``goal_id`` and ``outcome_id`` match one specific reference.
    """

    status: Optional[str] = None
    level: Optional[str] = None
    tag_set: frozenset = field(default_factory=frozenset)
    taxonomy_id: Optional[str] = None
    goal_id: Optional[str] = None
    outcome_id: Optional[str] = None
    free_text: str = ""

    @classmethod
    def build(cls, **values):
        """Build a validated FilterState from keyword input."""
        return cls().merge(values)

    def merge(self, partial: Mapping) -> FilterState:
        """
        Return a copy with the given fields replaced.

        The whole patch is validated before anything is applied.

        Raises:
            ValidationError: on an unknown field or an invalid value
        """
        if not isinstance(partial, Mapping):
            raise ValidationError(f"Filter patch must be a mapping, got {partial!r}")
        changes = {}
        for name, value in partial.items():
            if name not in _NORMALIZERS:
                raise ValidationError(f"Unknown filter field: {name!r}")
            changes[name] = _NORMALIZERS[name](value)
        return replace(self, **changes)

    @property
    def is_empty(self):
        return self == FilterState()

    def active_categories(self):
        """Return the names of the constrained categories."""
        return [f.name for f in fields(self) if getattr(self, f.name)]


class Cursor(NamedTuple):
    """
    Position in the public feed ordering.

    The feed is ordered by ``(pinned desc, published_at desc, id asc)``
    with missing publication dates last; the id tie-break makes the
    order total so consecutive pages neither overlap nor leave gaps.
    """

    pinned: bool
    published_at: Optional[datetime]
    id: str

    @classmethod
    def from_record(cls, record):
        return cls(bool(record.pinned), record.published_at, record.id)

    @property
    def sort_key(self):
        published = self.published_at
        return (
            0 if self.pinned else 1,
            0 if published is not None else 1,
            -published.timestamp() if published is not None else 0.0,
            self.id,
        )


@dataclass(frozen=True)
class Page:
    """One page of records returned by a Repository."""

    records: tuple = ()
    total: Optional[int] = None
    next_cursor: Optional[Cursor] = None

    def __post_init__(self):
        object.__setattr__(self, "records", tuple(self.records))


@dataclass(frozen=True)
class PagePagination:
    """Offset pagination used by admin tables."""

    page_index: int = 0
    page_size: int = 10

    mode: ClassVar[str] = "page"

    def __post_init__(self):
        if self.page_size < 1:
            raise ValidationError(f"page_size must be positive, got {self.page_size}")
        if self.page_index < 0:
            raise ValidationError(f"page_index must not be negative, got {self.page_index}")

    @property
    def offset(self):
        return self.page_index * self.page_size

    def page_count(self, total):
        """Return the number of pages needed for total items (at least 1)."""
        return max(1, -(-total // self.page_size))


@dataclass(frozen=True)
class CursorPagination:
    """Infinite-scroll pagination: the pages loaded so far and where to resume."""

    page_size: int = 10
    loaded_pages: tuple = ()
    next_cursor: Optional[Cursor] = None

    mode: ClassVar[str] = "cursor"

    @property
    def has_more(self):
        return not self.loaded_pages or self.next_cursor is not None

    def append(self, page):
        """Return a copy with page appended and the cursor advanced."""
        return replace(
            self,
            loaded_pages=self.loaded_pages + (page,),
            next_cursor=page.next_cursor,
        )

    def records(self):
        """Return the loaded records, keeping the first occurrence of every id."""
        seen = set()
        merged = []
        for page in self.loaded_pages:
            for record in page.records:
                if record.id in seen:
                    continue
                seen.add(record.id)
                merged.append(record)
        return merged


@dataclass(frozen=True)
class BulkFailure:
    """A record whose bulk mutation failed, with a human-readable reason."""

    id: str
    reason: str


@dataclass(frozen=True)
class BulkActionResult:
    """
    Outcome of a bulk action.

    Every input id appears exactly once, in either ``succeeded`` or
    ``failed``.
    """

    succeeded: tuple = ()
    failed: tuple = ()

    @property
    def failed_ids(self):
        return tuple(failure.id for failure in self.failed)

    @property
    def total(self):
        return len(self.succeeded) + len(self.failed)

    @property
    def ok(self):
        return not self.failed

    def summary(self, verb="updated", noun="item", plural=None):
        """
        Render a short notification message.

        Example: ``"3 posts published, 1 failed"``
        """
        count = len(self.succeeded)
        if count != 1:
            noun = plural or f"{noun}s"
        message = f"{count} {noun} {verb}"
        if self.failed:
            message += f", {len(self.failed)} failed"
        return message

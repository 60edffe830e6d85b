"""
The persistence boundary.

The engines never talk to storage directly; they consume a Repository that
hands out pages of records and applies patches to single records. Failures
are reported with the typed errors from ``content_discovery.exceptions``.

Patch vocabulary understood by every Repository:

    status        "draft" or "published"
    published_at  datetime or None
    pinned        bool
    featured      bool
    add_tags      iterable of tag slugs to add
    remove_tags   iterable of tag slugs to remove
"""
import abc
import logging
from dataclasses import replace

from .conf import resolve
from .exceptions import RecordNotFound, RepositoryMutationError
from .filters import FilterPredicate
from .records import STATUSES
from .sorting import default_order_key, sort_records
from .state import Cursor, CursorPagination, FilterState, Page, PagePagination

logger = logging.getLogger(__name__)

PATCH_FIELDS = frozenset(
    ["status", "published_at", "pinned", "featured", "add_tags", "remove_tags"]
)


def check_patch(record_id, patch):
    """
    Validate a patch against the shared vocabulary.

    Raises:
        RepositoryMutationError: on unknown fields or invalid values
    """
    unknown = sorted(set(patch) - PATCH_FIELDS)
    if unknown:
        raise RepositoryMutationError(
            record_id, f"unsupported patch field(s): {', '.join(unknown)}"
        )
    if "status" in patch and patch["status"] not in STATUSES:
        raise RepositoryMutationError(record_id, f"invalid status {patch['status']!r}")
    for name in ("add_tags", "remove_tags"):
        if isinstance(patch.get(name), str):
            raise RepositoryMutationError(record_id, f"{name} must be a collection of tags")


class Repository(abc.ABC):
    """
    Abstract source of truth for one content type.

    ``name`` identifies the dataset; engines clear their selection when it
    changes. ``list`` must return the same page for the same arguments
    within a session. No read-your-own-write guarantee is assumed: callers
    re-fetch after mutating.
    """

    name = "records"

    @abc.abstractmethod
    async def list(self, filter_state=None, sort_state=None, pagination=None):
        """
        Return a Page of records.

        Args:
            filter_state: FilterState or None for no constraint
            sort_state: SortState or None for the repository's natural order
            pagination: PagePagination, CursorPagination or None for everything

        Raises:
            RepositoryFetchError: if the page cannot be produced
        """

    @abc.abstractmethod
    async def mutate(self, record_id, patch):
        """
        Apply a patch to one record.

        Raises:
            RecordNotFound: if the record does not exist
            RepositoryMutationError: if the patch cannot be applied
        """

    @abc.abstractmethod
    async def delete(self, record_id):
        """
        Delete one record.

        Raises:
            RecordNotFound: if the record does not exist
            RepositoryMutationError: if the record cannot be deleted
        """


def paginate(records, filter_state, sort_state, pagination, predicate):
    """
    Filter, order and slice a list of records into a Page.

    Cursor pagination always uses the feed order and ignores sort_state.
    """
    records = predicate.apply(records, filter_state or FilterState())
    total = len(records)

    if isinstance(pagination, CursorPagination):
        records = sorted(records, key=default_order_key)
        if pagination.next_cursor is not None:
            after = pagination.next_cursor.sort_key
            records = [r for r in records if default_order_key(r) > after]
        chunk = records[:pagination.page_size]
        next_cursor = None
        if len(records) > pagination.page_size:
            next_cursor = Cursor.from_record(chunk[-1])
        return Page(chunk, total=total, next_cursor=next_cursor)

    records = sort_records(records, sort_state)
    if isinstance(pagination, PagePagination):
        records = records[pagination.offset:pagination.offset + pagination.page_size]
    return Page(records, total=total)


class InMemoryRepository(Repository):
    """
    Repository over a list of records held in memory.

    Insertion order is the natural order. Useful for tests, previews and
    pre-rendered data.
    """

    def __init__(self, records=(), name="records", search_field=None):
        self.name = name
        self.predicate = FilterPredicate(search_field)
        self._records = {}
        for record in records:
            self._records[record.id] = record

    @property
    def records(self):
        return list(self._records.values())

    def get(self, record_id):
        try:
            return self._records[record_id]
        except KeyError:
            raise RecordNotFound(record_id) from None

    async def list(self, filter_state=None, sort_state=None, pagination=None):
        return paginate(self.records, filter_state, sort_state, pagination, self.predicate)

    async def mutate(self, record_id, patch):
        record = self.get(record_id)
        check_patch(record_id, patch)
        changes = {k: v for k, v in patch.items() if k not in ("add_tags", "remove_tags")}
        if "add_tags" in patch or "remove_tags" in patch:
            tags = set(record.tags)
            tags.update(patch.get("add_tags", ()))
            tags.difference_update(patch.get("remove_tags", ()))
            changes["tags"] = frozenset(tags)
        self._records[record_id] = replace(record, **changes)

    async def delete(self, record_id):
        self.get(record_id)
        del self._records[record_id]


async def fetch_all(repository, filter_state=None, sort_state=None, page_size=None):
    """
    Load every record of a repository, page by page.

    Stops when a page starts with the same record as the previous one, so
    a repository that ignores pagination is read once.

    Raises:
        RepositoryFetchError: propagated from the repository
    """
    page_size = resolve(page_size, "FETCH_ALL_PAGE_SIZE")
    records = []
    page_index = 0
    previous_first = None
    while True:
        pagination = PagePagination(page_index=page_index, page_size=page_size)
        page = await repository.list(filter_state, sort_state, pagination)
        if page.records and page.records[0].id == previous_first:
            logger.warning(
                "%s ignored pagination at page %d, stopping",
                getattr(repository, "name", repository), page_index,
            )
            break
        if page.records:
            previous_first = page.records[0].id
        records.extend(page.records)
        if not page.records or len(page.records) < page_size:
            break
        if page.total is not None and len(records) >= page.total:
            break
        page_index += 1
    return records

"""
Generic data grid for admin list views.

The grid holds one dataset in memory and derives the visible page by
filtering, then sorting, then paginating, always in that order. Selection is
kept by record id, so it survives re-sorting and re-filtering; it is cleared
only when the grid switches to a different dataset.

Misconfigured input (an unknown sort key, an invalid filter value) is logged
and ignored instead of raising, so a bad column definition cannot take down
a list view.
"""
import logging
from dataclasses import replace

from .bulk import BulkActionCoordinator
from .conf import resolve
from .exceptions import RepositoryFetchError, ValidationError
from .filters import FilterPredicate
from .repository import Repository, fetch_all
from .sorting import sort_records
from .state import ASC, DESC, FilterState, PagePagination, SortState

logger = logging.getLogger(__name__)

# select_all() scopes
VISIBLE = "visible"
ALL_MATCHING = "all_matching"

# visible_selection_state() values
NONE_SELECTED = "none"
SOME_SELECTED = "some"
ALL_SELECTED = "all"


class DataGridEngine:
    """
    Sort, filter, paginate and select over an in-memory dataset.

    Args:
        records: initial records
        repository: optional Repository used by reload() and after bulk actions
        dataset_key: identity of the dataset (defaults to repository.name)
        search_field: field matched by the free-text filter, e.g. "title_vi"
        page_size: rows per page (defaults to ADMIN_PAGE_SIZE)
        sortable_fields: optional whitelist of sortable field names
        coordinator: BulkActionCoordinator used by run_bulk_action()
    """

    def __init__(self, records=(), *, repository=None, dataset_key=None, search_field=None,
                 page_size=None, sortable_fields=None, coordinator=None):
        self.repository = repository
        self.dataset_key = dataset_key or (repository.name if repository is not None else None)
        self.predicate = FilterPredicate(search_field)
        self.sortable_fields = frozenset(sortable_fields) if sortable_fields is not None else None
        self.coordinator = coordinator or BulkActionCoordinator()

        self._filter = FilterState()
        self._sort = None
        self._pagination = PagePagination(page_size=resolve(page_size, "ADMIN_PAGE_SIZE"))
        self._selection = set()
        self._fetch_generation = 0
        self._dataset_generation = 0
        self._set_records(records)

    # ------------------------------------------------------------------
    # Dataset
    # ------------------------------------------------------------------

    def _set_records(self, records):
        self._records = list(records)
        self._ids = {record.id for record in self._records}
        self._filtered = None
        self._sorted = None

    @property
    def records(self):
        return list(self._records)

    def load(self, records):
        """
        Replace the records of the current dataset (e.g. after a re-fetch).

        Selection is kept, minus ids that no longer exist. A reload() still
        in flight is discarded when it completes.
        """
        self._fetch_generation += 1
        self._set_records(records)
        dropped = self._selection - self._ids
        if dropped:
            logger.debug("Dropping %d vanished ids from selection", len(dropped))
            self._selection -= dropped

    def switch_dataset(self, source, dataset_key=None):
        """
        Show a different dataset.

        Args:
            source: a Repository (records are then loaded with reload()) or
                an iterable of records
            dataset_key: identity of the new dataset

        Selection, filter, sort and page are reset.
        """
        if isinstance(source, Repository):
            self.repository = source
            records = ()
            dataset_key = dataset_key or source.name
        else:
            records = source
        logger.info("Switching grid dataset %s -> %s", self.dataset_key, dataset_key)
        self._fetch_generation += 1
        self._dataset_generation += 1
        self.dataset_key = dataset_key
        self._selection = set()
        self._filter = FilterState()
        self._sort = None
        self._pagination = replace(self._pagination, page_index=0)
        self._set_records(records)

    async def reload(self):
        """
        Re-fetch the whole dataset from the repository.

        A result that arrives after a newer reload(), load() or
        switch_dataset() is discarded.

        Returns:
            True if the fetched records were applied

        Raises:
            RepositoryFetchError: propagated unchanged
        """
        if self.repository is None:
            raise RuntimeError("DataGridEngine.reload() needs a repository")
        self._fetch_generation += 1
        generation = self._fetch_generation
        records = await fetch_all(self.repository)
        if generation != self._fetch_generation:
            logger.debug("Discarding stale reload of %s", self.dataset_key)
            return False
        self.load(records)
        return True

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    @property
    def sort_state(self):
        return self._sort

    def _allowed_sort_keys(self):
        if self.sortable_fields is not None:
            return self.sortable_fields
        if not self._records:
            return None
        allowed = set()
        for record_type in {type(record) for record in self._records}:
            allowed |= record_type.field_names()
        return allowed

    def set_sort(self, key, direction=ASC):
        """Sort by key; a malformed key or direction means no sort."""
        try:
            self._sort = SortState.parse(key, direction, self._allowed_sort_keys())
        except ValidationError as exc:
            logger.warning("Ignoring sort request: %s", exc)
            self._sort = None
        self._sorted = None

    def toggle_sort(self, key):
        """Cycle a column through ascending, descending and unsorted."""
        if self._sort is None or self._sort.key != key:
            self.set_sort(key, ASC)
        elif self._sort.direction == ASC:
            self.set_sort(key, DESC)
        else:
            self.clear_sort()

    def clear_sort(self):
        self._sort = None
        self._sorted = None

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    @property
    def filter_state(self):
        return self._filter

    def set_filter(self, partial=None, **changes):
        """
        Merge filter changes into the current filter.

        Accepts a mapping, keyword arguments, or both. An invalid patch is
        logged and ignored as a whole. Selection is not touched; the page
        index goes back to the first page.
        """
        patch = dict(partial or {})
        patch.update(changes)
        try:
            self._filter = self._filter.merge(patch)
        except ValidationError as exc:
            logger.warning("Ignoring filter change %r: %s", patch, exc)
            return
        self._filtered = None
        self._sorted = None
        self._pagination = replace(self._pagination, page_index=0)

    def reset_filter(self):
        self._filter = FilterState()
        self._filtered = None
        self._sorted = None
        self._pagination = replace(self._pagination, page_index=0)

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def rows(self):
        """Return all records passing the filter, in sort order."""
        if self._filtered is None:
            self._filtered = self.predicate.apply(self._records, self._filter)
        if self._sorted is None:
            self._sorted = sort_records(self._filtered, self._sort)
        return list(self._sorted)

    @property
    def total(self):
        """Number of records passing the filter."""
        return len(self.rows())

    @property
    def page_size(self):
        return self._pagination.page_size

    @property
    def page_count(self):
        return self._pagination.page_count(self.total)

    @property
    def page_index(self):
        """Current page index, clamped to the last available page."""
        return min(self._pagination.page_index, self.page_count - 1)

    def set_page(self, page_index):
        page_index = max(0, min(int(page_index), self.page_count - 1))
        self._pagination = replace(self._pagination, page_index=page_index)

    def next_page(self):
        self.set_page(self.page_index + 1)

    def previous_page(self):
        self.set_page(self.page_index - 1)

    def get_visible_page(self):
        """Return the records of the current page (filter, sort, paginate)."""
        start = self.page_index * self.page_size
        return self.rows()[start:start + self.page_size]

    def visible_ids(self):
        return [record.id for record in self.get_visible_page()]

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selection(self):
        return frozenset(self._selection)

    def is_selected(self, record_id):
        return str(record_id) in self._selection

    def toggle_select(self, record_id):
        record_id = str(record_id)
        if record_id in self._selection:
            self._selection.discard(record_id)
        elif record_id in self._ids:
            self._selection.add(record_id)
        else:
            logger.warning("Ignoring selection of unknown id %s", record_id)

    def select_all(self, scope=VISIBLE):
        """
        Add records to the selection.

        Args:
            scope: "visible" for the current page, "all_matching" for every
                record passing the filter
        """
        if scope == VISIBLE:
            self._selection.update(self.visible_ids())
        elif scope == ALL_MATCHING:
            self._selection.update(record.id for record in self.rows())
        else:
            logger.warning("Ignoring select_all with unknown scope %r", scope)

    def clear_selection(self):
        self._selection = set()

    def visible_selection_state(self):
        """Return "none", "some" or "all" for the current page's checkboxes."""
        visible = self.visible_ids()
        selected = sum(1 for record_id in visible if record_id in self._selection)
        if not visible or not selected:
            return NONE_SELECTED
        if selected == len(visible):
            return ALL_SELECTED
        return SOME_SELECTED

    def toggle_select_all_visible(self):
        """Header checkbox: select the page, or deselect it if fully selected."""
        if self.visible_selection_state() == ALL_SELECTED:
            self._selection.difference_update(self.visible_ids())
        else:
            self.select_all(VISIBLE)

    # ------------------------------------------------------------------
    # Bulk actions
    # ------------------------------------------------------------------

    async def run_bulk_action(self, action):
        """
        Run action over the current selection.

        Afterwards the selection is narrowed to the ids that failed, and the
        dataset is re-fetched when a repository is attached. Both steps are
        skipped if the grid switched datasets while the action ran.

        Returns:
            BulkActionResult

        Raises:
            RepositoryFetchError: if the re-fetch fails; the result of the
                action is attached as ``bulk_result``
        """
        generation = self._dataset_generation
        result = await self.coordinator.run(sorted(self._selection), action)
        if generation != self._dataset_generation:
            logger.info("Dataset changed during bulk action, keeping current view")
            return result

        self._selection = set(result.failed_ids)
        if self.repository is not None:
            try:
                await self.reload()
            except RepositoryFetchError as exc:
                logger.warning("Reload after bulk action failed: %s", exc)
                exc.bulk_result = result
                raise
        return result

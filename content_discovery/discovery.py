"""
Content discovery for public list pages.

Combines taxonomy filters, tag filters and bilingual search over the pages
loaded so far, and loads further pages on demand (infinite scroll).

Search queries are debounced. The engine moves through three phases:

    idle -> debouncing -> applying -> idle

A keystroke while debouncing restarts the window. A keystroke while
applying starts a new window; the older result is still computed but is
discarded when it completes, because only the most recently issued query
(highest sequence number) may be applied. Nothing in flight is ever
aborted, stale results are dropped at application time.

Everything runs on the caller's event loop; no threads are started.
"""
import asyncio
import logging
from collections import Counter

from .conf import discovery_settings, resolve
from .exceptions import ValidationError
from .filters import FilterPredicate
from .records import PUBLISHED
from .search import SearchMatcher
from .sorting import default_order_key
from .state import CursorPagination, FilterState

logger = logging.getLogger(__name__)

IDLE = "idle"
DEBOUNCING = "debouncing"
APPLYING = "applying"


def _log_task_error(task):
    """Log an exception raised by a search task nobody is awaiting."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Search task failed", exc_info=exc)


class ContentDiscoveryEngine:
    """
    Filter, search and page through published content.

    Args:
        records: records already available (e.g. pinned items)
        repository: optional Repository feeding load_more()
        lang: display/search language (defaults to DEFAULT_LANGUAGE)
        matcher: SearchMatcher to use
        debounce_ms: search debounce window (defaults to DEBOUNCE_MS)
        page_size: records per loaded page (defaults to FEED_PAGE_SIZE)
        chunk_size: records scored per event-loop turn (defaults to SEARCH_CHUNK_SIZE)
    """

    def __init__(self, records=(), *, repository=None, lang=None, matcher=None,
                 debounce_ms=None, page_size=None, chunk_size=None):
        self.repository = repository
        self.matcher = matcher or SearchMatcher()
        self.lang = lang or self.matcher.default_language
        self.debounce_seconds = resolve(debounce_ms, "DEBOUNCE_MS") / 1000.0
        self.chunk_size = max(1, resolve(chunk_size, "SEARCH_CHUNK_SIZE"))
        self.page_size = resolve(page_size, "FEED_PAGE_SIZE")
        self.source_filter = FilterState(status=PUBLISHED)
        self.predicate = FilterPredicate()

        self._filter = FilterState()
        self._pagination = CursorPagination(page_size=self.page_size)
        self._records = {}
        self._loading = False
        self._fetch_generation = 0

        self._query = ""
        self._pending_query = ""
        self._scores = None
        self._sequence = 0
        self._debounce_task = None
        self._apply_tasks = set()
        self._view = None

        self.applied_passes = 0
        self.stale_discards = 0

        self.add_records(records)

    # ------------------------------------------------------------------
    # Records and paging
    # ------------------------------------------------------------------

    @property
    def records(self):
        return list(self._records.values())

    def add_records(self, records):
        """Merge records into the dataset; the first copy of an id wins."""
        added = 0
        for record in records:
            if record.id not in self._records:
                self._records[record.id] = record
                added += 1
        if added:
            self._view = None
        return added

    @property
    def has_more(self):
        return self.repository is not None and self._pagination.has_more

    @property
    def is_loading(self):
        return self._loading

    async def load_more(self):
        """
        Fetch the next page from the repository.

        Does nothing while a page is already loading or when every page is
        loaded. A page that arrives after reset() is discarded.

        Returns:
            True if a page was merged

        Raises:
            RepositoryFetchError: propagated unchanged
        """
        if self.repository is None:
            raise RuntimeError("ContentDiscoveryEngine.load_more() needs a repository")
        if self._loading or not self._pagination.has_more:
            return False

        generation = self._fetch_generation
        self._loading = True
        try:
            page = await self.repository.list(self.source_filter, None, self._pagination)
        finally:
            if generation == self._fetch_generation:
                self._loading = False

        if generation != self._fetch_generation:
            logger.debug("Discarding page fetched before reset")
            return False

        self._pagination = self._pagination.append(page)
        added = self.add_records(page.records)
        logger.debug(
            "Merged page %d: %d records (%d new)",
            len(self._pagination.loaded_pages), len(page.records), added,
        )
        return True

    def reset(self, records=()):
        """
        Drop every loaded page, e.g. after the source data changed.

        Filters and the applied query are kept; pages in flight are ignored
        when they arrive.
        """
        self._fetch_generation += 1
        self._loading = False
        self._pagination = CursorPagination(page_size=self.page_size)
        self._records = {}
        self._view = None
        if self._scores is not None:
            self._scores = {}
        self.add_records(records)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    @property
    def filter_state(self):
        return self._filter

    def set_filter(self, partial=None, **changes):
        """Merge filter changes; an invalid patch is logged and ignored."""
        patch = dict(partial or {})
        patch.update(changes)
        try:
            self._filter = self._filter.merge(patch)
        except ValidationError as exc:
            logger.warning("Ignoring filter change %r: %s", patch, exc)
            return
        self._view = None

    def set_taxonomy(self, goal_id=None, outcome_id=None, level=None):
        """Set the goal, outcome and level filters (None clears one)."""
        self.set_filter(goal_id=goal_id, outcome_id=outcome_id, level=level)

    def toggle_tag(self, tag):
        tags = set(self._filter.tag_set)
        if tag in tags:
            tags.discard(tag)
        else:
            tags.add(tag)
        self.set_filter(tag_set=tags)

    def set_tags(self, tags):
        self.set_filter(tag_set=tags)

    def clear_filters(self):
        """Remove taxonomy and tag filters; the search query is kept."""
        self._filter = FilterState()
        self._view = None

    def available_tags(self):
        """Return tags of the loaded records, most used first, then by name."""
        counts = Counter()
        for record in self._records.values():
            counts.update(record.tags)
        return sorted(counts, key=lambda tag: (-counts[tag], tag))

    # ------------------------------------------------------------------
    # Language
    # ------------------------------------------------------------------

    def set_language(self, lang):
        if lang not in discovery_settings.LANGUAGES:
            logger.warning("Ignoring unsupported language %r", lang)
            return
        if lang == self.lang:
            return
        self.lang = lang
        self._scores = self._score_now(self._query, self.records, lang)
        self._view = None

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @property
    def query(self):
        """The query currently reflected by the visible records."""
        return self._query

    @property
    def pending_query(self):
        """The most recently issued query."""
        return self._pending_query

    @property
    def is_searching(self):
        return self._scores is not None

    @property
    def phase(self):
        if self._debounce_task is not None and not self._debounce_task.done():
            return DEBOUNCING
        if self._apply_tasks:
            return APPLYING
        return IDLE

    def set_search_query(self, query):
        """
        Issue a query, applied once no other query arrives for the debounce window.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._sequence += 1
        self._pending_query = query
        if self._debounce_task is not None:
            self._debounce_task.cancel()
        self._debounce_task = loop.create_task(self._debounce(self._sequence, query))
        self._debounce_task.add_done_callback(_log_task_error)
        logger.debug("Search %r scheduled (seq %d)", query, self._sequence)

    def apply_search_now(self, query):
        """Apply a query immediately, superseding anything pending or in flight."""
        self._sequence += 1
        self._pending_query = query
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None
        self._commit(self._sequence, query, self.lang, self._score_now(query, self.records, self.lang))

    def cancel_pending(self):
        """Cancel a query still waiting for its debounce window."""
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None

    async def wait_idle(self):
        """Wait until no query is debouncing or applying."""
        while True:
            tasks = [task for task in self._apply_tasks if not task.done()]
            if self._debounce_task is not None and not self._debounce_task.done():
                tasks.append(self._debounce_task)
            if not tasks:
                return
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    raise result

    async def _debounce(self, sequence, query):
        await asyncio.sleep(self.debounce_seconds)

        task = asyncio.current_task()
        if self._debounce_task is task:
            self._debounce_task = None
        self._apply_tasks.add(task)
        try:
            lang = self.lang
            scores = await self._score_records(query, self.records, lang)
            self._commit(sequence, query, lang, scores)
        finally:
            self._apply_tasks.discard(task)

    async def _score_records(self, query, records, lang):
        """Score records in chunks, yielding to the event loop between chunks."""
        if not self.matcher.is_active(query):
            return None
        tokens = self.matcher.tokens(query)
        scores = {}
        for start in range(0, len(records), self.chunk_size):
            for record in records[start:start + self.chunk_size]:
                scores[record.id] = self.matcher.match_tokens(record, tokens, lang)
            await asyncio.sleep(0)
        return scores

    def _score_now(self, query, records, lang):
        if not self.matcher.is_active(query):
            return None
        tokens = self.matcher.tokens(query)
        return {record.id: self.matcher.match_tokens(record, tokens, lang) for record in records}

    def _commit(self, sequence, query, lang, scores):
        if sequence != self._sequence:
            self.stale_discards += 1
            logger.debug("Discarding stale result for %r (seq %d, latest %d)",
                         query, sequence, self._sequence)
            return
        if lang != self.lang:
            scores = self._score_now(query, self.records, self.lang)
        self._query = query
        self._scores = scores
        self._view = None
        self.applied_passes += 1

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def _score_missing(self):
        missing = [record for record in self._records.values() if record.id not in self._scores]
        if missing:
            self._scores.update(self._score_now(self._query, missing, self.lang))

    def get_visible_records(self):
        """
        Return the records to render.

        With an active query: matching records, best score first. Without:
        every record passing the filters, pinned first, newest first.
        """
        if self._view is None:
            records = self.predicate.apply(self._records.values(), self._filter)
            if self._scores is None:
                self._view = sorted(records, key=default_order_key)
            else:
                self._score_missing()
                matches = [r for r in records if self._scores[r.id].is_match]
                self._view = sorted(
                    matches,
                    key=lambda r: (-self._scores[r.id].score, default_order_key(r)),
                )
        return list(self._view)

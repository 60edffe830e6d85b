"""
Repository implementation backed by the Django ORM.

ORM access is synchronous; the async Repository methods run it through
``asgiref.sync.sync_to_async`` so they can be awaited from the engines.
"""
import logging

from asgiref.sync import sync_to_async
from django.core.exceptions import FieldDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import F, Q

from .exceptions import RecordNotFound, RepositoryFetchError, RepositoryMutationError
from .models import Tag
from .records import DRAFT
from .repository import Repository, check_patch
from .state import DESC, Cursor, CursorPagination, FilterState, Page, PagePagination

logger = logging.getLogger(__name__)

# Record field name -> model field name, where they differ
FIELD_MAP = {
    "id": "pk",
    "pinned": "is_pinned",
    "featured": "is_featured",
}

FEED_ORDERING = [F("is_pinned").desc(), F("published_at").desc(nulls_last=True), "pk"]


def after_cursor(cursor):
    """
    Return a Q selecting rows strictly after cursor in the feed ordering.

    Feed ordering is (is_pinned desc, published_at desc nulls last, pk asc).
    """
    if cursor.published_at is None:
        later = Q(published_at__isnull=True, pk__gt=cursor.id)
    else:
        later = (
            Q(published_at__lt=cursor.published_at)
            | Q(published_at__isnull=True)
            | Q(published_at=cursor.published_at, pk__gt=cursor.id)
        )
    condition = Q(is_pinned=cursor.pinned) & later
    if cursor.pinned:
        condition |= Q(is_pinned=False)
    return condition


class DjangoRepository(Repository):
    """
    Repository over one ContentModel subclass.

    Args:
        model: Post, Insight, Series or Photo
        search_field: model field used by free-text filtering
            (defaults to the model's ``search_field``)
    """

    def __init__(self, model, search_field=None):
        self.model = model
        self.name = model._meta.model_name
        self.search_field = search_field or getattr(model, "search_field", None)

    def _has_field(self, name):
        try:
            self.model._meta.get_field(name)
        except FieldDoesNotExist:
            return False
        return True

    def _is_orderable(self, name):
        if name == "pk":
            return True
        try:
            field = self.model._meta.get_field(name)
        except FieldDoesNotExist:
            return False
        return field.concrete and not field.many_to_many

    def queryset(self):
        qs = self.model.objects.all()
        if self._has_field("tags"):
            qs = qs.prefetch_related("tags")
        return qs

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def filter_queryset(self, qs, filter_state):
        """Apply a FilterState; categories the model lacks match nothing."""
        if filter_state.status is not None:
            qs = qs.filter(is_draft=filter_state.status == DRAFT)

        if filter_state.level is not None:
            if not self._has_field("level"):
                return qs.none()
            qs = qs.filter(level=filter_state.level)

        if filter_state.tag_set:
            if not self._has_field("tags"):
                return qs.none()
            qs = qs.filter(tags__slug__in=filter_state.tag_set).distinct()

        if filter_state.taxonomy_id or filter_state.goal_id or filter_state.outcome_id:
            if not self._has_field("goal"):
                return qs.none()
            if filter_state.taxonomy_id is not None:
                qs = qs.filter(
                    Q(goal_id=filter_state.taxonomy_id) | Q(outcome_id=filter_state.taxonomy_id)
                )
            if filter_state.goal_id is not None:
                qs = qs.filter(goal_id=filter_state.goal_id)
            if filter_state.outcome_id is not None:
                qs = qs.filter(outcome_id=filter_state.outcome_id)

        text = filter_state.free_text.strip()
        if text:
            if not self.search_field:
                return qs.none()
            qs = qs.filter(**{f"{self.search_field}__icontains": text})

        return qs

    def order_queryset(self, qs, sort_state):
        """Order by sort_state with nulls last; unknown fields keep the default order."""
        if sort_state is None:
            return qs
        if sort_state.key == "status":
            # "draft" < "published"
            expression = F("is_draft").desc() if sort_state.direction != DESC else F("is_draft").asc()
            return qs.order_by(expression, "created_at", "pk")

        name = FIELD_MAP.get(sort_state.key, sort_state.key)
        if not self._is_orderable(name):
            logger.warning("Cannot order %s by %r, using default order", self.name, sort_state.key)
            return qs
        if sort_state.direction == DESC:
            expression = F(name).desc(nulls_last=True)
        else:
            expression = F(name).asc(nulls_last=True)
        return qs.order_by(expression, "created_at", "pk")

    def _list(self, filter_state, sort_state, pagination):
        qs = self.filter_queryset(self.queryset(), filter_state or FilterState())

        if isinstance(pagination, CursorPagination):
            total = qs.count()
            qs = qs.order_by(*FEED_ORDERING)
            if pagination.next_cursor is not None:
                qs = qs.filter(after_cursor(pagination.next_cursor))
            rows = [obj.to_record() for obj in qs[:pagination.page_size + 1]]
            chunk = rows[:pagination.page_size]
            next_cursor = None
            if len(rows) > pagination.page_size:
                next_cursor = Cursor.from_record(chunk[-1])
            return Page(chunk, total=total, next_cursor=next_cursor)

        qs = self.order_queryset(qs, sort_state)
        total = qs.count()
        if isinstance(pagination, PagePagination):
            qs = qs[pagination.offset:pagination.offset + pagination.page_size]
        return Page([obj.to_record() for obj in qs], total=total)

    async def list(self, filter_state=None, sort_state=None, pagination=None):
        try:
            return await sync_to_async(self._list)(filter_state, sort_state, pagination)
        except DatabaseError as exc:
            raise RepositoryFetchError(f"Could not list {self.name}: {exc}") from exc

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _get(self, record_id):
        try:
            return self.model.objects.get(pk=record_id)
        except (self.model.DoesNotExist, DjangoValidationError, ValueError):
            raise RecordNotFound(record_id) from None

    def _tags(self, slugs):
        tags = []
        for slug in slugs:
            tag, _ = Tag.objects.get_or_create(slug=slug, defaults={"name_vi": slug})
            tags.append(tag)
        return tags

    def _mutate(self, record_id, patch):
        check_patch(record_id, patch)
        if ("add_tags" in patch or "remove_tags" in patch) and not self._has_field("tags"):
            raise RepositoryMutationError(record_id, f"{self.name} has no tags")

        with transaction.atomic():
            obj = self._get(record_id)
            update_fields = []
            if "status" in patch:
                obj.is_draft = patch["status"] == DRAFT
                update_fields.append("is_draft")
            if "published_at" in patch:
                obj.published_at = patch["published_at"]
                update_fields.append("published_at")
            for name in ("pinned", "featured"):
                if name in patch:
                    setattr(obj, FIELD_MAP[name], bool(patch[name]))
                    update_fields.append(FIELD_MAP[name])
            if update_fields:
                obj.save(update_fields=update_fields + ["updated_at"])
            if patch.get("add_tags"):
                obj.tags.add(*self._tags(patch["add_tags"]))
            if patch.get("remove_tags"):
                obj.tags.remove(*obj.tags.filter(slug__in=patch["remove_tags"]))

    async def mutate(self, record_id, patch):
        try:
            await sync_to_async(self._mutate)(record_id, patch)
        except DatabaseError as exc:
            raise RepositoryMutationError(record_id, str(exc)) from exc

    def _delete(self, record_id):
        self._get(record_id).delete()

    async def delete(self, record_id):
        try:
            await sync_to_async(self._delete)(record_id)
        except DatabaseError as exc:
            raise RepositoryMutationError(record_id, str(exc)) from exc

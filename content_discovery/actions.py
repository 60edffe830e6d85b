"""
Standard bulk actions.

Each factory binds a repository and returns ``async def action(record_id)``
suitable for BulkActionCoordinator.run().
"""
from django.utils import timezone

from .records import DRAFT, PUBLISHED


def _named(name, action):
    action.__name__ = name
    return action


def patch_action(repository, patch, name="patch"):
    """Return an action applying the same patch to every record."""
    async def action(record_id):
        await repository.mutate(record_id, dict(patch))
    return _named(name, action)


def publish(repository):
    """Publish records, stamping published_at with the current time."""
    async def action(record_id):
        await repository.mutate(record_id, {"status": PUBLISHED, "published_at": timezone.now()})
    return _named("publish", action)


def unpublish(repository):
    return patch_action(repository, {"status": DRAFT, "published_at": None}, "unpublish")


def pin(repository):
    return patch_action(repository, {"pinned": True}, "pin")


def unpin(repository):
    return patch_action(repository, {"pinned": False}, "unpin")


def feature(repository):
    return patch_action(repository, {"featured": True}, "feature")


def unfeature(repository):
    return patch_action(repository, {"featured": False}, "unfeature")


def add_tags(repository, tags):
    if isinstance(tags, str):
        tags = [tags]
    return patch_action(repository, {"add_tags": frozenset(tags)}, "add_tags")


def remove_tags(repository, tags):
    if isinstance(tags, str):
        tags = [tags]
    return patch_action(repository, {"remove_tags": frozenset(tags)}, "remove_tags")


def delete(repository):
    async def action(record_id):
        await repository.delete(record_id)
    return _named("delete", action)

"""
Bulk actions over a set of record ids.

Every id is mutated concurrently and independently: one failure neither
blocks nor rolls back the others. The coordinator never touches local
record state; callers re-fetch from the repository afterwards.
"""
import asyncio
import logging

from .conf import resolve
from .exceptions import RepositoryMutationError
from .state import BulkActionResult, BulkFailure

logger = logging.getLogger(__name__)


def _unique(ids):
    seen = set()
    ordered = []
    for record_id in ids:
        record_id = str(record_id)
        if record_id not in seen:
            seen.add(record_id)
            ordered.append(record_id)
    return ordered


class BulkActionCoordinator:
    """
    Runs an async per-id action over many ids and partitions the outcome.

    Args:
        concurrency: maximum number of actions in flight at once;
            None (the default setting) means no limit
    """

    def __init__(self, concurrency=None):
        self.concurrency = resolve(concurrency, "BULK_CONCURRENCY")

    async def run(self, ids, action):
        """
        Apply action to every id.

        Args:
            ids: iterable of record ids (duplicates are run once)
            action: ``async def action(record_id) -> None``; a failure is
                signalled by raising, preferably RepositoryMutationError

        Returns:
            BulkActionResult partitioning the unique input ids, in input order
        """
        ids = _unique(ids)
        if not ids:
            return BulkActionResult()

        semaphore = asyncio.Semaphore(self.concurrency) if self.concurrency else None
        outcomes = await asyncio.gather(
            *(self._run_one(record_id, action, semaphore) for record_id in ids)
        )

        succeeded = []
        failed = []
        for record_id, reason in zip(ids, outcomes):
            if reason is None:
                succeeded.append(record_id)
            else:
                failed.append(BulkFailure(record_id, reason))

        result = BulkActionResult(succeeded=tuple(succeeded), failed=tuple(failed))
        logger.info(
            "Bulk action %s: %d succeeded, %d failed",
            getattr(action, "__name__", "action"),
            len(result.succeeded),
            len(result.failed),
        )
        return result

    async def _run_one(self, record_id, action, semaphore):
        """Run one action; return None on success or the failure reason."""
        try:
            if semaphore is None:
                await action(record_id)
            else:
                async with semaphore:
                    await action(record_id)
        except RepositoryMutationError as exc:
            logger.warning("Bulk action failed for %s: %s", record_id, exc.reason)
            return exc.reason
        except Exception as exc:
            logger.exception("Unexpected error in bulk action for %s", record_id)
            return f"{type(exc).__name__}: {exc}"
        return None

"""
Exceptions raised by content_discovery.

Errors that concern a single record (a filter mismatch, one failed bulk
mutation) are reported per item. Errors that concern a whole list (a failed
fetch) propagate to the caller.
"""


class ContentDiscoveryError(Exception):
    """Base class for all content_discovery errors."""


class ValidationError(ContentDiscoveryError, ValueError):
    """Malformed sort, filter or selection input."""


class RepositoryError(ContentDiscoveryError):
    """Base class for failures reported by a Repository."""


class RepositoryFetchError(RepositoryError):
    """
    Repository.list() could not produce a page.

    Attributes:
        bulk_result: BulkActionResult of the bulk action whose re-fetch
            failed, if any
    """

    bulk_result = None


class RepositoryMutationError(RepositoryError):
    """
    A mutation of a single record failed.

    Attributes:
        record_id: id of the record the mutation targeted
        reason: human-readable failure reason
    """

    def __init__(self, record_id, reason):
        super().__init__(f"{record_id}: {reason}")
        self.record_id = record_id
        self.reason = reason


class RecordNotFound(RepositoryMutationError):
    """The targeted record does not exist (anymore)."""

    def __init__(self, record_id):
        super().__init__(record_id, "record not found")

"""Errors raised by the live aggregation layer.

Referential gaps have no exception type: a dangling or cross-tenant foreign
key degrades to the sentinel display value instead of raising.
"""
from typing import Optional
from uuid import UUID


class AggregationError(Exception):
    """Base class. ``status_code`` is used by the API exception handler."""

    status_code: int = 400
    retryable: bool = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class MissingTenantError(AggregationError):
    status_code = 400

    def __init__(self, detail: str = "A business id is required for this request"):
        super().__init__(detail)


class PaginationSequenceError(AggregationError):
    """Requested page has no recorded cursor for its predecessor."""

    status_code = 409
    retryable = True

    def __init__(self, parent_id: UUID, page_number: int):
        super().__init__(
            f"Cursor for page {page_number - 1} of {parent_id} is not recorded; restart from page 1"
        )
        self.parent_id = parent_id
        self.page_number = page_number


class EmptySelectionError(AggregationError):
    status_code = 422

    def __init__(self, detail: str = "Select at least one row to export"):
        super().__init__(detail)


class TransientFetchError(AggregationError):
    """Store or network failure during a subscription or point read. Safe to retry."""

    status_code = 503
    retryable = True

    def __init__(self, detail: str, cause: Optional[BaseException] = None):
        super().__init__(detail)
        self.cause = cause

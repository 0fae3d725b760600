"""
Error types shared by the popularity engine, the record store and the routes.

- ValidationError: malformed request parameter, surfaced as 400
- NotFoundError: unknown order or comment on a write path, surfaced as 404
- StoreReadError: record-store query failed, surfaced as 500
- RecomputeTimeoutError: recomputation exceeded its time bound, surfaced as 500
- StoreWriteError: record-store write failed, surfaced as 500
"""


class StorefrontError(Exception):
    """Base class for errors raised by the storefront services."""


class ValidationError(StorefrontError):
    """A request parameter is outside its accepted range."""


class NotFoundError(StorefrontError):
    """The referenced record does not exist."""


class StoreReadError(StorefrontError):
    """A read query against the record store failed."""


class RecomputeTimeoutError(StoreReadError):
    """Popularity recomputation did not finish within its time bound."""


class StoreWriteError(StorefrontError):
    """A write against the record store failed."""

"""Domain exceptions raised by the catalog and progress store clients."""


class WatchtrackError(Exception):
    """Base class for Watchtrack failures."""

    def __init__(self, message: str, original_exception: Exception = None):
        super().__init__(message)
        self.original_exception = original_exception


class CatalogError(WatchtrackError):
    """The catalog service could not list seasons or episodes."""


class ProgressStoreError(WatchtrackError):
    """A progress read or write was rejected or never reached the server."""

    def __init__(
        self,
        message: str,
        original_exception: Exception = None,
        status_code: int | None = None,
    ):
        super().__init__(message, original_exception)
        self.status_code = status_code


class AuthenticationError(ProgressStoreError):
    """No valid session is available for a progress write."""

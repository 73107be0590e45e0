class StorageError(Exception):
    """Base class for all ref-store errors."""


class VcsError(StorageError, OSError):
    """
    A version-control or transport operation failed.

    Covers rejected pushes, missing remote refs and network faults alike.
    The retry loops treat these as transient.
    """


class RetryCountExceeded(StorageError, OSError):
    """
    A retry loop ran out of attempts.

    The last underlying error is available as ``__cause__``.
    """


class MalformedPayloadError(StorageError, ValueError):
    """The payload file could not be decoded into items."""

"""Application-level exception types.

Convention:
- ``SyncError`` subclasses classify failures met while mirroring a change.
  The reconciler turns ``TransientIOError`` and ``TranslationError`` into a
  ``failed`` outcome for the single event; ``AuthError`` and ``StorageError``
  propagate to the caller because no safe decision can be made without
  credentials or mapping state.
- ``InternalServerError``: for errors whose details must never reach clients.
  The global handler logs the full message at ERROR and returns a generic
  "Internal server error" (500) to the client.
- ``ValueError``: for validation errors that are safe to forward to clients.
"""

from __future__ import annotations


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients.

    The global exception handler in ``notesync/main.py`` catches this, logs
    the full message server-side, and returns HTTP 500 with a generic
    ``"Internal server error"`` detail.
    """


class SyncError(Exception):
    """Base class for errors raised while syncing a change."""


class TransientIOError(SyncError):
    """A remote API was unreachable, timed out, or rate-limited the request.

    Not retried inline: the next poll cycle or webhook delivery retries.
    """


class RemoteAPIError(TransientIOError):
    """A remote API rejected the request with a non-auth error status."""

    def __init__(self, service: str, status_code: int, message: str) -> None:
        super().__init__(f"{service} API error: {status_code} {message}")
        self.service = service
        self.status_code = status_code


class AuthError(SyncError):
    """Credentials for a remote API were missing, rejected, or could not be refreshed."""


class TranslationError(SyncError):
    """A document could not be mapped to the other side's shape."""


class StorageError(SyncError):
    """The mapping store could not be read or written."""

"""Exception types raised by sendreceive.

Convention:

- ``ConfigurationError`` -- the run cannot start (missing project folder,
  no include patterns, malformed repository address).  Also a
  ``ValueError`` so callers that validate input generically still catch it.
- ``BackendError`` and subclasses -- a version-control operation failed.
  The synchronizer decides whether that is fatal (commit, every pull
  failed) or only a warning (push, merge conflict).
- ``SyncAlreadyRunningError`` -- a second run was requested on a control
  model that is still busy.
"""

from __future__ import annotations


class SendReceiveError(Exception):
    """Base class for all sendreceive errors."""


class ConfigurationError(SendReceiveError, ValueError):
    """Raised when the project or address configuration is unusable."""


class SyncAlreadyRunningError(SendReceiveError, RuntimeError):
    """Raised when ``sync()`` is called while a run is in flight."""


class BackendError(SendReceiveError):
    """A backend VCS operation failed.

    Attributes:
        operation: Short name of the failed operation (``"commit"``,
            ``"pull"``, ...).
        detail: Backend output explaining the failure, if any.
    """

    def __init__(
        self, message: str, operation: str = "", detail: str = ""
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.detail = detail


class CommitError(BackendError):
    """The local commit could not be made."""


class MergeError(BackendError):
    """The merge could not be attempted at all (not a plain conflict)."""


class RemoteError(BackendError):
    """A remote repository could not be reached or refused the request."""


class PullError(RemoteError):
    """Pulling from a repository address failed."""


class PushError(RemoteError):
    """Pushing to a repository address failed."""

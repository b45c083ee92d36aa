"""Interface the synchronizer needs from a version-control backend.

Every operation is atomic from the synchronizer's point of view and
reports failure by raising a ``BackendError`` subclass.  The synchronizer
never retries a failed operation.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from pydantic import BaseModel

from sendreceive.sync.models import RepositoryAddress, Revision


class MergeResult(BaseModel):
    """Outcome of a three-way merge attempt.

    Attributes:
        success: The merge produced a working tree ready to commit.
        conflicts: Paths the backend could not merge.
    """

    success: bool
    conflicts: list[str] = []

    model_config = {"frozen": True}


class VcsBackend(Protocol):
    """Operations the synchronizer performs on a repository."""

    def ensure_repository(self) -> None:
        """Create the repository if it does not exist yet."""
        ...  # pragma: no cover

    def committed_paths(self) -> set[str]:
        """Paths currently under version control (POSIX, relative)."""
        ...  # pragma: no cover

    def stage(self, add: Iterable[str], remove: Iterable[str]) -> None:
        """Record additions/modifications and removals for the next commit.

        Removed paths leave version control; their working files are kept.
        """
        ...  # pragma: no cover

    def has_pending_changes(self) -> bool:
        ...  # pragma: no cover

    def commit(self, message: str) -> str:
        """Commit staged changes and return the new revision id.

        Raises:
            CommitError: If the commit could not be made.
        """
        ...  # pragma: no cover

    def current_head(self) -> Revision | None:
        """The working copy's revision, or ``None`` before the first commit."""
        ...  # pragma: no cover

    def current_branch(self) -> str:
        ...  # pragma: no cover

    def switch_branch(self, name: str) -> None:
        """Move the working copy onto branch *name*, creating it if needed."""
        ...  # pragma: no cover

    def pull(self, address: RepositoryAddress, branch: str) -> list[Revision]:
        """Fetch remote history.

        Returns:
            Remote heads of *branch* not already in local history; empty
            when there is nothing new.

        Raises:
            PullError: If the address cannot be reached or read.
        """
        ...  # pragma: no cover

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        ...  # pragma: no cover

    def update(self, revision: Revision) -> None:
        """Fast-forward the working copy to *revision*."""
        ...  # pragma: no cover

    def merge(self, revision: Revision) -> MergeResult:
        """Merge *revision* into the working copy without committing.

        Raises:
            MergeError: If the merge could not even be attempted.
        """
        ...  # pragma: no cover

    def commit_merge(self, message: str) -> str:
        """Commit a successful merge and return the new revision id."""
        ...  # pragma: no cover

    def rollback_to_revision(self, revision_id: str) -> None:
        """Discard an in-progress merge and restore *revision_id*."""
        ...  # pragma: no cover

    def push(self, address: RepositoryAddress, branch: str) -> None:
        """Send local history of *branch* to *address*.

        Raises:
            PushError: If the address refuses or cannot be reached.
        """
        ...  # pragma: no cover

    def list_open_branch_heads(self) -> list[Revision]:
        """Heads of every branch, local and fetched."""
        ...  # pragma: no cover

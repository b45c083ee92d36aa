"""Host extension points invoked during a send/receive run.

A host application supplies a ``SynchronizerAdjunct`` to react at four
points of the run.  The synchronizer calls them in this order, each at
most once:

1. ``prepare_for_initial_commit`` -- right before the local commit of
   pending changes.  Files edited here are part of that commit.
2. ``simple_update`` -- no merge was needed (remote history was simply
   applied, ``is_rollback=False``) or a merge failed and the working copy
   went back to its pre-merge state (``is_rollback=True``).
3. ``prepare_for_post_merge_commit`` -- after a merge, before its commit.
   Not called when nothing was merged.
4. ``check_repository_branches`` -- after a successful pull when the
   repository has more than one open branch head.

A merge is optional twice over: the host may not ask for one (an autosave
only commits), and even when asked, there may be nothing to merge.

``None`` as an adjunct behaves exactly like ``NullAdjunct``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from .models import Revision
from .progress import ProgressSink


@runtime_checkable
class SynchronizerAdjunct(Protocol):
    """Capability interface implemented by host applications."""

    @property
    def branch_name(self) -> str:
        """Branch the host wants its data committed on.

        Typically a data-model version label, so peers running different
        versions of the host keep separate branches.  Empty string means
        the repository's current branch.
        """
        ...  # pragma: no cover

    @property
    def was_updated(self) -> bool:
        """Whether the host changed anything during the run."""
        ...  # pragma: no cover

    def prepare_for_initial_commit(self, progress: ProgressSink) -> None:
        ...  # pragma: no cover

    def simple_update(
        self, progress: ProgressSink, is_rollback: bool
    ) -> None:
        ...  # pragma: no cover

    def prepare_for_post_merge_commit(self, progress: ProgressSink) -> None:
        ...  # pragma: no cover

    def check_repository_branches(
        self, branches: Iterable[Revision], progress: ProgressSink
    ) -> None:
        """Inspect every open branch head after a pull.

        Lets the host tell users that a colleague is on a newer (or older)
        data version than theirs.
        """
        ...  # pragma: no cover


class NullAdjunct:
    """Adjunct that does nothing at every hook."""

    branch_name = ""
    was_updated = False

    def prepare_for_initial_commit(self, progress: ProgressSink) -> None:
        pass

    def simple_update(
        self, progress: ProgressSink, is_rollback: bool
    ) -> None:
        pass

    def prepare_for_post_merge_commit(self, progress: ProgressSink) -> None:
        pass

    def check_repository_branches(
        self, branches: Iterable[Revision], progress: ProgressSink
    ) -> None:
        pass

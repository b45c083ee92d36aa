"""Send/receive orchestration.

The ``Synchronizer`` runs one send/receive:

1. Stage every tracked file (per the project's include/exclude patterns)
   and drop files that are no longer tracked.
2. If anything changed, call the adjunct's initial-commit hook and commit.
3. Pull from the first enabled address that answers; failures are
   warnings until every address has failed.
4. Apply new remote history: fast-forward when possible, otherwise merge.
   A failed merge is rolled back and reported as a warning.
5. Let the adjunct inspect open branch heads when there are several.
6. Push to the address that was pulled from; failures are warnings.

Cancellation is cooperative: ``cancel()`` sets a flag that is checked
between backend operations, never during one.  Commits made in step 2
are never undone; only an in-progress merge is rolled back.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from sendreceive.exceptions import (
    BackendError,
    ConfigurationError,
    MergeError,
    PullError,
    RemoteError,
)

from .adjunct import NullAdjunct, SynchronizerAdjunct
from .file_filter import FileFilter
from .models import (
    ProjectConfiguration,
    RepositoryAddress,
    Revision,
    SyncOptions,
    SyncResults,
)
from .progress import MultiProgress, ProgressSink, StringProgress
from .repositories import resolve_address

if TYPE_CHECKING:
    from sendreceive.vcs.backend import VcsBackend

logger = logging.getLogger(__name__)


class _Cancelled(Exception):
    """Raised at a checkpoint once cancellation has been requested."""


class _RunState:
    """Mutable bookkeeping for one run."""

    def __init__(self) -> None:
        self.started_at = datetime.now(timezone.utc).isoformat()
        self.warning = False
        self.address_used: str | None = None
        self.did_get_changes = False
        # Revision to restore while a merge is uncommitted
        self.merge_base: str | None = None


class Synchronizer:
    """Run send/receive for one project against a backend.

    A cancelled synchronizer stays cancelled; use a new instance per run.

    Args:
        config: The project folder and its file patterns.
        backend: Version-control backend for the repository.
        usb_mount_points: Where to look for USB copies of the project;
            ``None`` searches the platform's usual mount locations.
    """

    def __init__(
        self,
        config: ProjectConfiguration,
        backend: VcsBackend,
        usb_mount_points: Iterable[Path] | None = None,
    ) -> None:
        self.config = config
        self.backend = backend
        self.usb_mount_points = (
            list(usb_mount_points) if usb_mount_points is not None else None
        )
        self._filter = FileFilter.from_configuration(config)
        self._cancel_event = threading.Event()

    @classmethod
    def from_project_configuration(
        cls,
        config: ProjectConfiguration,
        backend: VcsBackend | None = None,
        user_name: str = "sendreceive",
        usb_mount_points: Iterable[Path] | None = None,
    ) -> Synchronizer:
        """Build a synchronizer, defaulting to a git backend at the repo root."""
        if backend is None:
            from sendreceive.vcs.git import GitBackend

            root = config.repository_root or config.folder_path
            backend = GitBackend(root, user_name=user_name)
        return cls(config, backend, usb_mount_points=usb_mount_points)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Ask a running ``run()`` to stop at its next checkpoint."""
        logger.info("Cancellation requested for %s", self.config.folder_path)
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def _checkpoint(self) -> None:
        if self._cancel_event.is_set():
            raise _Cancelled()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self,
        options: SyncOptions,
        adjunct: SynchronizerAdjunct | None = None,
        progress: ProgressSink | None = None,
    ) -> SyncResults:
        """Execute one send/receive.

        Args:
            options: Which addresses to use and which steps to perform.
            adjunct: Host hooks; ``None`` means no hooks.
            progress: Receives status text as the run advances.

        Returns:
            The terminal ``SyncResults``.  Errors are reported through
            ``error_encountered``, never raised.
        """
        adjunct = adjunct if adjunct is not None else NullAdjunct()
        log = StringProgress()
        out = MultiProgress(log, progress) if progress is not None else MultiProgress(log)
        state = _RunState()

        def finish(**outcome) -> SyncResults:
            return SyncResults(
                warning_encountered=state.warning,
                did_get_changes_from_others=state.did_get_changes,
                address_used=state.address_used,
                log=log.text,
                started_at=state.started_at,
                completed_at=datetime.now(timezone.utc).isoformat(),
                **outcome,
            )

        try:
            self._sequence(options, adjunct, out, state)
        except _Cancelled:
            self._abandon_merge_on_exit(state, out)
            out.write_message("Send/Receive cancelled.")
            logger.info("Send/Receive cancelled for %s", self.config.folder_path)
            return finish(cancelled=True)
        except ConfigurationError as exc:
            out.write_error(str(exc))
            logger.error("Send/Receive configuration error: %s", exc)
            return finish(error_encountered=exc)
        except BackendError as exc:
            self._abandon_merge_on_exit(state, out)
            out.write_error(_describe(exc))
            logger.error("Send/Receive failed: %s", _describe(exc))
            return finish(error_encountered=exc)
        except Exception as exc:
            self._abandon_merge_on_exit(state, out)
            logger.exception("Unexpected error during Send/Receive")
            out.write_error(f"Unexpected error: {exc}")
            return finish(error_encountered=exc)

        if adjunct.was_updated:
            logger.debug("Adjunct reported updates during the run")
        out.write_message("Send/Receive finished.")
        return finish(succeeded=True)

    # ------------------------------------------------------------------
    # Sequence
    # ------------------------------------------------------------------

    def _sequence(
        self,
        options: SyncOptions,
        adjunct: SynchronizerAdjunct,
        progress: ProgressSink,
        state: _RunState,
    ) -> None:
        self._validate(options)
        progress.set_percent(0)

        self._checkpoint()
        self.backend.ensure_repository()
        if adjunct.branch_name:
            self.backend.switch_branch(adjunct.branch_name)
        branch = self.backend.current_branch()

        self._commit_local_changes(options, adjunct, progress)
        progress.set_percent(20)

        if not options.wants_remote:
            return

        addresses = [a for a in options.repository_sources_to_try if a.enabled]
        if not addresses:
            progress.write_message("No repositories to synchronize with.")
            return

        hold_back: str | None = None
        if options.do_pull_from_others:
            address, new_heads = self._pull_from_first_available(
                addresses, branch, progress, state
            )
            state.address_used = address.alias
            progress.set_percent(50)

            if not new_heads:
                progress.write_message("No new changes from others.")
            elif options.do_merge_with_others:
                hold_back = self._apply_remote_head(
                    new_heads[0], options, adjunct, progress, state
                )
            else:
                progress.write_message(
                    "Received changes from others; merging was not requested."
                )

            self._check_branches(adjunct, progress)
            push_targets = [address]
        else:
            push_targets = addresses
        progress.set_percent(80)

        if options.do_send_to_others:
            if hold_back:
                progress.write_message(hold_back)
            else:
                self._push(push_targets, branch, progress, state)
        progress.set_percent(100)

    def _validate(self, options: SyncOptions) -> None:
        folder = self.config.folder_path
        if not folder.is_dir():
            raise ConfigurationError(f"Project folder does not exist: {folder}")
        if not self.config.include_patterns:
            raise ConfigurationError(
                "No include patterns are configured, so no files would be tracked"
            )
        root = self.config.repository_root or folder
        try:
            folder.resolve().relative_to(root.resolve())
        except ValueError:
            raise ConfigurationError(
                f"Project folder {folder} is not inside repository root {root}"
            ) from None

        seen: set[str] = set()
        for address in options.repository_sources_to_try:
            if not address.alias.strip() or not address.uri.strip():
                raise ConfigurationError(
                    f"Malformed repository address: {address.alias!r} -> {address.uri!r}"
                )
            if address.alias in seen:
                raise ConfigurationError(
                    f"Duplicate repository alias '{address.alias}'"
                )
            seen.add(address.alias)

    # ------------------------------------------------------------------
    # Local commit
    # ------------------------------------------------------------------

    def _commit_local_changes(
        self,
        options: SyncOptions,
        adjunct: SynchronizerAdjunct,
        progress: ProgressSink,
    ) -> None:
        self._checkpoint()
        progress.write_message("Checking for local changes...")
        self._stage_tracked()
        if not self.backend.has_pending_changes():
            progress.write_message("No local changes to commit.")
            return

        adjunct.prepare_for_initial_commit(progress)
        self._stage_tracked()
        self._checkpoint()
        revision_id = self.backend.commit(options.checkin_description)
        progress.write_message(f"Committed local changes ({revision_id[:12]}).")
        logger.info("Committed %s in %s", revision_id, self.config.folder_path)

    def _stage_tracked(self) -> None:
        prefix = self._repository_prefix()
        tracked = {
            prefix + p for p in self._filter.discover(self.config.folder_path)
        }
        committed = {
            p for p in self.backend.committed_paths() if p.startswith(prefix)
        }
        self.backend.stage(add=sorted(tracked), remove=sorted(committed - tracked))

    def _repository_prefix(self) -> str:
        root = self.config.repository_root or self.config.folder_path
        rel = self.config.folder_path.resolve().relative_to(root.resolve())
        prefix = rel.as_posix()
        return "" if prefix == "." else prefix + "/"

    # ------------------------------------------------------------------
    # Pull / merge
    # ------------------------------------------------------------------

    def _pull_from_first_available(
        self,
        addresses: list[RepositoryAddress],
        branch: str,
        progress: ProgressSink,
        state: _RunState,
    ) -> tuple[RepositoryAddress, list[Revision]]:
        last_error: RemoteError | None = None
        for address in addresses:
            self._checkpoint()
            progress.write_message(
                f"Pulling from {address.alias} ({address.display_uri})..."
            )
            try:
                target = resolve_address(
                    address, self.config.project_name, self.usb_mount_points
                )
                heads = self.backend.pull(target, branch)
            except RemoteError as exc:
                # A cancel that arrived while the pull was failing wins
                self._checkpoint()
                state.warning = True
                last_error = exc
                progress.write_warning(
                    f"Could not pull from {address.alias}: {_describe(exc)}"
                )
                logger.warning("Pull from %s failed: %s", address.alias, exc)
                continue

            self._checkpoint()
            return target, heads

        if last_error is None:
            raise PullError("No repository addresses to pull from", operation="pull")
        raise last_error

    def _apply_remote_head(
        self,
        head: Revision,
        options: SyncOptions,
        adjunct: SynchronizerAdjunct,
        progress: ProgressSink,
        state: _RunState,
    ) -> str | None:
        """Bring *head* into the working copy.

        Returns:
            ``None`` when the run may go on to push, otherwise the reason
            the push is held back.

        Raises:
            BackendError: If a failed merge could not be rolled back.
        """
        self._checkpoint()
        ours = self.backend.current_head()

        if ours is None or self.backend.is_ancestor(
            ours.revision_id, head.revision_id
        ):
            progress.write_message("Updating to changes from others...")
            try:
                self.backend.update(head)
            except MergeError as exc:
                state.warning = True
                progress.write_warning(
                    f"Could not apply changes from others: {_describe(exc)}"
                )
                return (
                    "Not sending changes because the changes from others "
                    "could not be applied."
                )
            state.did_get_changes = True
            adjunct.simple_update(progress, False)
            return None

        if self.backend.is_ancestor(head.revision_id, ours.revision_id):
            progress.write_message("Others have nothing new to merge.")
            return None

        progress.write_message("Merging changes from others...")
        state.merge_base = ours.revision_id
        conflicts: list[str] = []
        try:
            result = self.backend.merge(head)
            merged = result.success
            conflicts = list(result.conflicts)
        except MergeError as exc:
            merged = False
            logger.warning("Merge could not be attempted: %s", _describe(exc))
        self._checkpoint()

        if not merged:
            self._abandon_merge(state, progress)
            state.warning = True
            detail = f" Conflicting files: {', '.join(conflicts)}." if conflicts else ""
            progress.write_warning(
                "The merge failed and was rolled back; your changes are kept "
                f"and the changes from others remain in history.{detail}"
            )
            adjunct.simple_update(progress, True)
            return "Not sending changes because the merge was rolled back."

        adjunct.prepare_for_post_merge_commit(progress)
        self._stage_tracked()
        self._checkpoint()
        revision_id = self.backend.commit_merge(
            f"Merge: {options.checkin_description}"
        )
        state.merge_base = None
        state.did_get_changes = True
        progress.write_message(f"Merged changes from others ({revision_id[:12]}).")
        return None

    def _abandon_merge(self, state: _RunState, progress: ProgressSink) -> None:
        """Restore the pre-merge revision if a merge is in progress.

        Raises:
            BackendError: If the working copy could not be restored.
        """
        if state.merge_base is None:
            return
        base, state.merge_base = state.merge_base, None
        try:
            self.backend.rollback_to_revision(base)
        except BackendError as exc:
            raise BackendError(
                f"Rollback to {base[:12]} failed: {exc}",
                operation="rollback",
                detail=exc.detail,
            ) from exc
        progress.write_message(f"Rolled back to {base[:12]}.")

    def _abandon_merge_on_exit(
        self, state: _RunState, progress: ProgressSink
    ) -> None:
        # The run is already ending with its own outcome
        try:
            self._abandon_merge(state, progress)
        except BackendError as exc:
            state.warning = True
            logger.error("%s", _describe(exc))
            progress.write_error(_describe(exc))

    def _check_branches(
        self, adjunct: SynchronizerAdjunct, progress: ProgressSink
    ) -> None:
        heads = self.backend.list_open_branch_heads()
        if len(heads) > 1:
            adjunct.check_repository_branches(heads, progress)

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def _push(
        self,
        addresses: list[RepositoryAddress],
        branch: str,
        progress: ProgressSink,
        state: _RunState,
    ) -> None:
        for address in addresses:
            if address.read_only:
                progress.write_message(
                    f"Not sending to {address.alias}: it is read-only."
                )
                continue
            self._checkpoint()
            progress.write_message(f"Sending changes to {address.alias}...")
            try:
                target = resolve_address(
                    address, self.config.project_name, self.usb_mount_points
                )
                self.backend.push(target, branch)
            except RemoteError as exc:
                state.warning = True
                progress.write_warning(
                    f"Could not send to {address.alias}: {_describe(exc)}"
                )
                logger.warning("Push to %s failed: %s", address.alias, exc)
                continue
            progress.write_message(f"Sent changes to {address.alias}.")


def _describe(exc: BaseException) -> str:
    detail = getattr(exc, "detail", "")
    return f"{exc} ({detail})" if detail else str(exc)

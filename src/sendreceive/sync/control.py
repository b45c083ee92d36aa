"""Background execution of send/receive for interactive hosts.

``SyncControlModel`` is what a host UI talks to.  It owns the state
machine::

    IDLE -> RUNNING -> SUCCEEDED | CANCELLED | FAILED

and from any terminal state a new run may start.  ``sync()`` starts a
``Synchronizer`` on a worker thread and returns immediately with a
``Future`` that resolves to the run's ``SyncResults``.  Only one run is in
flight per model; a second ``sync()`` raises ``SyncAlreadyRunningError``.

Progress is broadcast to every registered display from the worker
thread.  When the run ends the model switches to its terminal state,
calls each completion listener once with the results, and only then
resolves the future.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from sendreceive.core.async_utils import run_sync
from sendreceive.exceptions import SyncAlreadyRunningError

from .adjunct import SynchronizerAdjunct
from .models import (
    ProjectConfiguration,
    RepositoryAddress,
    SyncOptions,
    SyncResults,
)
from .progress import MultiProgress, ProgressSink
from .repositories import KnownRepositories
from .synchronizer import Synchronizer

if TYPE_CHECKING:
    from sendreceive.vcs.backend import VcsBackend

logger = logging.getLogger(__name__)

CompletionListener = Callable[[SyncResults], None]


class SyncStatus(str, Enum):
    """State of a ``SyncControlModel``."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


class SyncControlModel:
    """Run send/receive in the background and report back.

    Args:
        config: The project to synchronize.
        repositories: Known addresses and the default selection.
        adjunct: Host hooks passed to every run.
        backend_factory: Builds the backend for a run; defaults to a git
            backend at the repository root.
        user_name: Commit author when the default backend is used.
        usb_mount_points: Forwarded to the ``Synchronizer``.
    """

    def __init__(
        self,
        config: ProjectConfiguration,
        repositories: KnownRepositories | None = None,
        adjunct: SynchronizerAdjunct | None = None,
        backend_factory: Callable[[ProjectConfiguration], VcsBackend] | None = None,
        user_name: str = "sendreceive",
        usb_mount_points: Iterable[Path] | None = None,
    ) -> None:
        self.config = config
        self.repositories = repositories or KnownRepositories()
        self.adjunct = adjunct
        self.sync_options = SyncOptions()
        self.last_results: SyncResults | None = None

        self._backend_factory = backend_factory
        self._user_name = user_name
        self._usb_mount_points = usb_mount_points
        self._progress = MultiProgress()
        self._listeners: list[CompletionListener] = []
        self._lock = threading.Lock()
        self._status = SyncStatus.IDLE
        self._synchronizer: Synchronizer | None = None
        self._future: Future[SyncResults] | None = None

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        with self._lock:
            return self._status

    @property
    def enable_send_receive(self) -> bool:
        """True when a new run may be started."""
        return self.status is not SyncStatus.RUNNING

    def add_progress_display(self, sink: ProgressSink) -> None:
        self._progress.add(sink)

    def remove_progress_display(self, sink: ProgressSink) -> None:
        self._progress.remove(sink)

    def add_completion_listener(self, listener: CompletionListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def get_repositories_to_list(self) -> list[RepositoryAddress]:
        """Addresses a selection UI should offer (USB drive first)."""
        return self.repositories.repositories_to_list()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def sync(self, use_targets_as_specified: bool = False) -> Future[SyncResults]:
        """Start a send/receive on a background thread.

        Args:
            use_targets_as_specified: Use ``sync_options`` addresses as
                they are.  Otherwise the project's default addresses
                replace them for this run.

        Returns:
            A future resolving to the run's ``SyncResults``.

        Raises:
            SyncAlreadyRunningError: If a run is already in flight.
        """
        synchronizer = self._make_synchronizer()
        with self._lock:
            if self._status is SyncStatus.RUNNING:
                raise SyncAlreadyRunningError(
                    f"Send/Receive is already running for {self.config.folder_path}"
                )
            options = self.sync_options.model_copy(deep=True)
            if not use_targets_as_specified:
                options.repository_sources_to_try = (
                    self.repositories.default_sync_addresses()
                )
            future: Future[SyncResults] = Future()
            future.set_running_or_notify_cancel()

            self._synchronizer = synchronizer
            self._future = future
            self._status = SyncStatus.RUNNING

        logger.info(
            "Starting Send/Receive for %s with %d address(es)",
            self.config.folder_path,
            len(options.repository_sources_to_try),
        )
        worker = threading.Thread(
            target=self._work,
            args=(synchronizer, options, future),
            name="send-receive",
            daemon=True,
        )
        worker.start()
        return future

    def cancel(self) -> bool:
        """Request cancellation of the running send/receive.

        Completion is still signalled once the run reaches a safe stopping
        point.

        Returns:
            ``True`` if a running run was asked to stop.
        """
        with self._lock:
            if self._status is not SyncStatus.RUNNING or self._synchronizer is None:
                logger.debug("Cancel ignored: no Send/Receive is running")
                return False
            synchronizer = self._synchronizer
        synchronizer.cancel()
        return True

    def wait(self, timeout: float | None = None) -> SyncResults | None:
        """Block until the current (or last) run finishes."""
        with self._lock:
            future = self._future
        if future is None:
            return None
        return future.result(timeout)

    async def sync_async(
        self, use_targets_as_specified: bool = False
    ) -> SyncResults:
        """Start a run and await its results from asyncio code."""
        future = self.sync(use_targets_as_specified)
        return await run_sync(future.result)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _make_synchronizer(self) -> Synchronizer:
        if self._backend_factory is None:
            return Synchronizer.from_project_configuration(
                self.config,
                user_name=self._user_name,
                usb_mount_points=self._usb_mount_points,
            )
        return Synchronizer(
            self.config,
            self._backend_factory(self.config),
            usb_mount_points=self._usb_mount_points,
        )

    def _work(
        self,
        synchronizer: Synchronizer,
        options: SyncOptions,
        future: Future[SyncResults],
    ) -> None:
        try:
            results = synchronizer.run(options, self.adjunct, self._progress)
        except Exception as exc:
            logger.exception("Send/Receive worker crashed")
            results = SyncResults(error_encountered=exc, log=str(exc))

        if results.succeeded:
            status = SyncStatus.SUCCEEDED
        elif results.cancelled:
            status = SyncStatus.CANCELLED
        else:
            status = SyncStatus.FAILED

        with self._lock:
            self.last_results = results
            self._status = status
            self._synchronizer = None
            listeners = list(self._listeners)

        logger.info("Send/Receive finished: %s", status.value)
        for listener in listeners:
            try:
                listener(results)
            except Exception:
                logger.exception("Completion listener %r failed", listener)
        future.set_result(results)

"""Send/receive engine.

Commits the tracked files of a project folder, pulls from the first
reachable repository address, merges what it received and pushes the
result back.

Modules:

- ``models``       -- ``ProjectConfiguration``, ``RepositoryAddress``,
  ``SyncOptions``, ``SyncResults``: core data contracts.
- ``file_filter``  -- include/exclude glob patterns deciding which files
  are tracked.
- ``repositories`` -- ``KnownRepositories``: the project's addresses and
  default selection, plus USB drive resolution.
- ``adjunct``      -- ``SynchronizerAdjunct``: hooks a host application
  plugs into the run.
- ``progress``     -- progress sinks (string, console, logging, fan-out).
- ``synchronizer`` -- ``Synchronizer``: one send/receive run.
- ``control``      -- ``SyncControlModel``: background runs with
  cancellation and completion listeners.
- ``reporter``     -- human-readable and JSON result formatting.

Usage example
-------------
::

    from pathlib import Path
    from sendreceive.sync import (
        KnownRepositories, ProjectConfiguration, RepositoryAddress,
        SyncControlModel, format_sync_results,
    )

    config = ProjectConfiguration(
        folder_path=Path("~/Dictionaries/tok").expanduser(),
        include_patterns=["*.lift", "pictures/**"],
        exclude_patterns=["*.wmv"],
    )
    repos = KnownRepositories(
        [RepositoryAddress(alias="shared", uri="/mnt/share/tok")],
        default_aliases=["shared"],
    )
    model = SyncControlModel(config, repos)
    results = model.sync().result()
    print(format_sync_results(results, config.project_name))
"""

from .adjunct import NullAdjunct, SynchronizerAdjunct
from .control import SyncControlModel, SyncStatus
from .file_filter import FileFilter, is_tracked, lift_project_patterns
from .models import (
    USB_KEY_URI,
    AddressKind,
    ProjectConfiguration,
    RepositoryAddress,
    Revision,
    SyncOptions,
    SyncResults,
)
from .progress import (
    ConsoleProgress,
    LoggingProgress,
    MultiProgress,
    NullProgress,
    ProgressSink,
    StringProgress,
)
from .reporter import format_sync_results, outcome_label, results_to_json
from .repositories import KnownRepositories, resolve_address, usb_key_address
from .synchronizer import Synchronizer

__all__ = [
    "USB_KEY_URI",
    "AddressKind",
    "ConsoleProgress",
    "FileFilter",
    "KnownRepositories",
    "LoggingProgress",
    "MultiProgress",
    "NullAdjunct",
    "NullProgress",
    "ProgressSink",
    "ProjectConfiguration",
    "RepositoryAddress",
    "Revision",
    "StringProgress",
    "SyncControlModel",
    "SyncOptions",
    "SyncResults",
    "SyncStatus",
    "Synchronizer",
    "SynchronizerAdjunct",
    "format_sync_results",
    "is_tracked",
    "lift_project_patterns",
    "outcome_label",
    "resolve_address",
    "results_to_json",
    "usb_key_address",
]

"""Pydantic models for the send/receive engine.

Defines the data contracts shared by the synchronizer, the control model
and host applications:

- ``ProjectConfiguration``: project folder plus include/exclude patterns.
- ``AddressKind`` / ``RepositoryAddress``: a remote endpoint.
- ``SyncOptions``: what one run should attempt.
- ``Revision``: a branch head reported by the backend.
- ``SyncResults``: the single authoritative outcome of a run.

Everything except ``SyncOptions`` is frozen.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path, PurePath
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, Field, model_validator

from sendreceive.exceptions import ConfigurationError

USB_KEY_URI = "UsbKey"


class ProjectConfiguration(BaseModel):
    """The project folder and which of its files take part in version control.

    Attributes:
        folder_path: Absolute path of the project folder.
        include_patterns: Ordered glob patterns for files to track.
        exclude_patterns: Ordered glob patterns that override includes.
        repository_root: Root of the backend repository.  Defaults to
            ``folder_path``.
    """

    folder_path: Path
    include_patterns: list[str] = []
    exclude_patterns: list[str] = []
    repository_root: Path | None = None

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("folder_path") is None:
            return data
        data = dict(data)
        folder = Path(data["folder_path"])
        for key in ("include_patterns", "exclude_patterns"):
            if data.get(key) is not None:
                data[key] = [
                    _relative_pattern(folder, p) for p in data[key]
                ]
        if data.get("repository_root") is None:
            data["repository_root"] = folder
        return data

    @property
    def project_name(self) -> str:
        """Base name of the project folder."""
        return self.folder_path.name


def _relative_pattern(folder: Path, pattern: str) -> str:
    """Re-express an absolute pattern inside *folder* as an anchored one."""
    if not os.path.isabs(pattern):
        return pattern
    try:
        rel = PurePath(pattern).relative_to(folder)
    except ValueError:
        return pattern
    return "/" + rel.as_posix()


class AddressKind(str, Enum):
    """How a repository address is reached."""

    HTTP = "http"
    SHARED_FOLDER = "shared_folder"
    DIRECTORY = "directory"
    USB = "usb"


class RepositoryAddress(BaseModel):
    """A remote copy of the repository.

    Attributes:
        alias: Display name, unique within a configured set.
        uri: URL, shared-folder path, local directory, or ``UsbKey``.
        read_only: Never push to this address.
        enabled: Skip this address entirely when ``False``.
    """

    alias: str
    uri: str
    read_only: bool = False
    enabled: bool = True

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls, alias: str, uri: str, read_only: bool = False
    ) -> RepositoryAddress:
        """Build an address, rejecting blank aliases and URIs.

        Raises:
            ConfigurationError: If *alias* or *uri* is empty.
        """
        if not alias or not alias.strip():
            raise ConfigurationError(
                "Repository alias cannot be empty"
            )
        if not uri or not uri.strip():
            raise ConfigurationError(
                f"Repository '{alias}' has an empty location"
            )
        return cls(alias=alias.strip(), uri=uri.strip(), read_only=read_only)

    @property
    def kind(self) -> AddressKind:
        """Classify the address by the shape of its URI."""
        uri = self.uri
        if uri == USB_KEY_URI:
            return AddressKind.USB
        if uri.lower().startswith(("http://", "https://")):
            return AddressKind.HTTP
        if uri.startswith(("//", "\\\\")):
            return AddressKind.SHARED_FOLDER
        return AddressKind.DIRECTORY

    @property
    def display_uri(self) -> str:
        """The URI with any embedded password replaced by ``***``."""
        if self.kind is not AddressKind.HTTP:
            return self.uri
        parts = urlsplit(self.uri)
        if parts.password is None:
            return self.uri
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        netloc = f"{parts.username}:***@{host}"
        return urlunsplit(
            (parts.scheme, netloc, parts.path, parts.query, parts.fragment)
        )


class SyncOptions(BaseModel):
    """What a single send/receive run should do.

    Attributes:
        repository_sources_to_try: Addresses to pull from, in try order.
        do_pull_from_others: Pull remote history.
        do_merge_with_others: Merge pulled history into the local branch.
        do_send_to_others: Push after committing/merging.
        checkin_description: Commit message for the local commit.
    """

    repository_sources_to_try: list[RepositoryAddress] = Field(
        default_factory=list
    )
    do_pull_from_others: bool = True
    do_merge_with_others: bool = True
    do_send_to_others: bool = True
    checkin_description: str = "[sendreceive] auto checkin"

    @classmethod
    def local_only(
        cls, checkin_description: str = "[sendreceive] auto checkin"
    ) -> SyncOptions:
        """Options for a commit that never talks to a remote."""
        return cls(
            do_pull_from_others=False,
            do_merge_with_others=False,
            do_send_to_others=False,
            checkin_description=checkin_description,
        )

    @property
    def wants_remote(self) -> bool:
        """True if any remote interaction was requested."""
        return self.do_pull_from_others or self.do_send_to_others


class Revision(BaseModel):
    """The head of a named branch in the backend.

    Attributes:
        branch: Branch name (remote heads are prefixed ``<alias>/``).
        revision_id: Backend revision identifier.
        summary: First line of the commit message.
    """

    branch: str
    revision_id: str
    summary: str = ""

    model_config = {"frozen": True}


class SyncResults(BaseModel):
    """Terminal outcome of one send/receive run.

    Attributes:
        succeeded: The run finished its sequence.
        cancelled: The caller cancelled the run.
        warning_encountered: Something non-fatal went wrong (a failed
            pull from one address, a push failure, a merge rollback).
        error_encountered: The fatal error, or ``None``.
        did_get_changes_from_others: Remote history was applied.
        address_used: Alias of the address that was pulled from.
        log: Every progress line written during the run.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run ended.
    """

    succeeded: bool = False
    cancelled: bool = False
    warning_encountered: bool = False
    error_encountered: BaseException | None = None
    did_get_changes_from_others: bool = False
    address_used: str | None = None
    log: str = ""
    started_at: str = ""
    completed_at: str | None = None

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @model_validator(mode="after")
    def _check_terminal_state(self) -> SyncResults:
        if self.succeeded and (
            self.cancelled or self.error_encountered is not None
        ):
            raise ValueError(
                "A succeeded run cannot also be cancelled or failed"
            )
        if self.cancelled and self.error_encountered is not None:
            raise ValueError("A cancelled run carries no error")
        return self

"""Unified configuration schema for sendreceive.

Defines Pydantic models for the YAML config structure with dedicated
sections for the project, its repositories, sync behaviour and logging,
plus adapters producing the engine's own types.

Usage:
    from sendreceive.config_schema import build_config, to_project_configuration

    raw = load_hierarchical_config()
    unified = build_config(raw)
    project = to_project_configuration(unified, overrides={"folder": "."})
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError
from .sync.file_filter import lift_project_patterns
from .sync.models import ProjectConfiguration, RepositoryAddress, SyncOptions
from .sync.repositories import KnownRepositories

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ProjectSection(BaseModel):
    """The project folder and its file patterns.

    All fields are optional so that env vars and CLI args can supply the
    folder at runtime instead.  ``preset: lift`` prepends the usual LIFT
    dictionary patterns to ``include`` and ``exclude``.
    """

    folder: str | None = Field(default=None, description="Project folder")
    include: list[str] = Field(
        default_factory=list, description="Glob patterns of tracked files"
    )
    exclude: list[str] = Field(
        default_factory=list, description="Glob patterns that override include"
    )
    repository_root: str | None = Field(
        default=None, description="Repository root (defaults to the folder)"
    )
    preset: Literal["lift"] | None = Field(
        default=None, description="Named pattern preset"
    )

    model_config = {"frozen": True}


class RepositoryEntry(BaseModel):
    """One configured repository address."""

    alias: str
    uri: str
    read_only: bool = False
    enabled: bool = True

    model_config = {"frozen": True}


class SyncSection(BaseModel):
    """Defaults for a send/receive run."""

    checkin_description: str = Field(
        default="[sendreceive] auto checkin",
        description="Commit message for local changes",
    )
    pull: bool = Field(default=True, description="Pull from others")
    merge: bool = Field(default=True, description="Merge pulled changes")
    push: bool = Field(default=True, description="Send to others")
    user_name: str = Field(default="sendreceive", description="Commit author")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid.
    """

    project: ProjectSection = Field(default_factory=ProjectSection)
    repositories: list[RepositoryEntry] = Field(default_factory=list)
    default_aliases: list[str] | None = None
    sync: SyncSection = Field(default_factory=SyncSection)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Raises:
        ConfigurationError: If a section has the wrong shape.
    """
    if not raw_data:
        return UnifiedConfig()

    try:
        return UnifiedConfig(**raw_data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


# ---------------------------------------------------------------------------
# Adapters: UnifiedConfig -> engine types
# ---------------------------------------------------------------------------


def to_project_configuration(
    unified: UnifiedConfig,
    overrides: dict | None = None,
) -> ProjectConfiguration:
    """Build the engine's ``ProjectConfiguration``.

    Override keys: ``folder``, ``include``, ``exclude``.  An override
    folder replaces the configured one; override patterns are appended to
    the configured ones.

    Raises:
        ConfigurationError: If no project folder is known.
    """
    overrides = overrides or {}
    section = unified.project

    folder = overrides.get("folder") or section.folder
    if not folder:
        raise ConfigurationError(
            "Project folder not found. Set SENDRECEIVE_FOLDER, pass --folder, "
            "or add 'project.folder' to the config file."
        )
    folder_path = Path(folder).expanduser().resolve()

    include: list[str] = []
    exclude: list[str] = []
    if section.preset == "lift":
        preset_include, preset_exclude = lift_project_patterns()
        include.extend(preset_include)
        exclude.extend(preset_exclude)
    include.extend(section.include)
    include.extend(overrides.get("include") or [])
    exclude.extend(section.exclude)
    exclude.extend(overrides.get("exclude") or [])

    root = (
        Path(section.repository_root).expanduser().resolve()
        if section.repository_root
        else None
    )
    return ProjectConfiguration(
        folder_path=folder_path,
        include_patterns=include,
        exclude_patterns=exclude,
        repository_root=root,
    )


def to_known_repositories(unified: UnifiedConfig) -> KnownRepositories:
    """Build ``KnownRepositories`` from the ``repositories`` section.

    Without ``default_aliases`` every enabled address is a default.
    """
    addresses = []
    for entry in unified.repositories:
        address = RepositoryAddress.create(
            entry.alias, entry.uri, read_only=entry.read_only
        )
        addresses.append(address.model_copy(update={"enabled": entry.enabled}))

    if unified.default_aliases is None:
        defaults = [a.alias for a in addresses if a.enabled]
    else:
        defaults = unified.default_aliases
    return KnownRepositories(addresses, default_aliases=defaults)


def to_sync_options(unified: UnifiedConfig) -> SyncOptions:
    """Default ``SyncOptions`` from the ``sync`` section (no addresses)."""
    section = unified.sync
    return SyncOptions(
        do_pull_from_others=section.pull,
        do_merge_with_others=section.merge,
        do_send_to_others=section.push,
        checkin_description=section.checkin_description,
    )

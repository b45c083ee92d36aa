"""Run settings for the command-line entry point.

Reads the project, repositories and run options from CLI args,
environment variables, .env files, and the YAML config.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    SENDRECEIVE_FOLDER: Project folder (optional, default: current directory
        when the config names none)
    SENDRECEIVE_USER: Commit author (optional, default: sendreceive)
    SENDRECEIVE_LOCAL_ONLY: Commit without pulling or pushing
        (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass, field

from .config_schema import (
    UnifiedConfig,
    to_known_repositories,
    to_project_configuration,
    to_sync_options,
)
from .exceptions import ConfigurationError
from .sync.models import ProjectConfiguration, RepositoryAddress, SyncOptions
from .sync.repositories import KnownRepositories

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    project: ProjectConfiguration
    repositories: KnownRepositories
    options: SyncOptions
    user_name: str = "sendreceive"
    local_only: bool = False
    log_level: str = "INFO"
    log_file: str | None = None
    cli_aliases: list[str] = field(default_factory=list)


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def parse_repo_argument(value: str) -> RepositoryAddress:
    """Parse an ``ALIAS=URI`` command-line value.

    Raises:
        ConfigurationError: If the value has no ``=`` or a blank side.
    """
    alias, sep, uri = value.partition("=")
    if not sep:
        raise ConfigurationError(
            f"Invalid repository '{value}': expected ALIAS=URI"
        )
    return RepositoryAddress.create(alias, uri)


def validate_settings(settings: Settings) -> None:
    """Check that a run could start with *settings*.

    Raises:
        ConfigurationError: If the project folder is missing or no include
            patterns are configured.
    """
    folder = settings.project.folder_path
    if not folder.is_dir():
        raise ConfigurationError(f"Project folder does not exist: {folder}")
    if not settings.project.include_patterns:
        raise ConfigurationError(
            "No include patterns configured. Add 'project.include' or "
            "'project.preset: lift' to the config file, or pass --include."
        )
    if not settings.local_only and not settings.repositories.default_sync_addresses():
        logger.info("No default repositories configured; only committing locally")


def load_settings(
    folder: str | None = None,
    repos: list[str] | None = None,
    local_only: bool = False,
    message: str | None = None,
    user: str | None = None,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
    unified: UnifiedConfig | None = None,
) -> Settings:
    """Resolve run settings with unified precedence.

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        folder: Project folder (CLI ``--folder``).
        repos: ``ALIAS=URI`` values (CLI ``--repo``).  When given, these
            addresses are added to the configured ones and become the
            only defaults for the run.
        local_only: Commit without pulling or pushing (CLI flag).
        message: Commit message override.
        user: Commit author override.
        include: Extra include patterns.
        exclude: Extra exclude patterns.
        unified: Parsed YAML config; ``None`` means zero-config.

    Returns:
        Validated ``Settings``.

    Raises:
        ConfigurationError: If the resulting settings are unusable.
    """
    unified = unified or UnifiedConfig()

    # --- Project folder: CLI > env > YAML > cwd ---
    final_folder = (
        folder
        or os.getenv("SENDRECEIVE_FOLDER")
        or unified.project.folder
        or os.getcwd()
    )
    project = to_project_configuration(
        unified,
        overrides={"folder": final_folder, "include": include, "exclude": exclude},
    )

    # --- Repositories: YAML entries, then CLI additions ---
    repositories = to_known_repositories(unified)
    cli_aliases: list[str] = []
    for value in repos or []:
        address = parse_repo_argument(value)
        repositories.add(address)
        cli_aliases.append(address.alias)
    if cli_aliases:
        repositories.set_default_aliases(cli_aliases)

    # --- Strings: CLI > env > YAML > default ---
    user_name = user or os.getenv("SENDRECEIVE_USER") or unified.sync.user_name

    options = to_sync_options(unified)
    if message:
        options.checkin_description = message

    # --- Boolean: CLI > env > YAML ---
    if local_only:
        final_local_only = True
    else:
        env_local_only = _get_bool_env("SENDRECEIVE_LOCAL_ONLY")
        if env_local_only is not None:
            final_local_only = env_local_only
        else:
            final_local_only = not options.wants_remote

    if final_local_only:
        options = SyncOptions.local_only(options.checkin_description)

    settings = Settings(
        project=project,
        repositories=repositories,
        options=options,
        user_name=user_name,
        local_only=final_local_only,
        log_level=unified.logging.level,
        log_file=unified.logging.file,
        cli_aliases=cli_aliases,
    )
    validate_settings(settings)
    return settings

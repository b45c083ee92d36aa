"""The set of repository addresses known for a project.

``KnownRepositories`` holds the configured addresses (aliases unique) and
which of them are used by default for a send/receive.  USB flash drives
are not configured per project: a single placeholder address stands for
"whichever mounted drive holds a copy of this project" and is resolved
to a concrete directory just before it is used.
"""

from __future__ import annotations

import logging
import os
import string
from collections.abc import Iterable
from pathlib import Path

from sendreceive.exceptions import ConfigurationError, PullError

from .models import USB_KEY_URI, AddressKind, RepositoryAddress

logger = logging.getLogger(__name__)

USB_ALIAS = "USB flash drive"


def usb_key_address() -> RepositoryAddress:
    """The placeholder address for a project copy on a USB flash drive."""
    return RepositoryAddress(alias=USB_ALIAS, uri=USB_KEY_URI)


class KnownRepositories:
    """Configured repository addresses for one project.

    Args:
        addresses: Known addresses; aliases must be unique.
        default_aliases: Aliases used when the caller does not pick
            addresses explicitly.

    Raises:
        ConfigurationError: On duplicate aliases or unknown default aliases.
    """

    def __init__(
        self,
        addresses: Iterable[RepositoryAddress] = (),
        default_aliases: Iterable[str] = (),
    ) -> None:
        self._addresses: list[RepositoryAddress] = []
        for address in addresses:
            self.add(address)
        self._default_aliases: list[str] = []
        self.set_default_aliases(default_aliases)

    @property
    def addresses(self) -> list[RepositoryAddress]:
        return list(self._addresses)

    @property
    def default_aliases(self) -> list[str]:
        return list(self._default_aliases)

    def add(self, address: RepositoryAddress) -> None:
        """Add *address*, rejecting a duplicate alias."""
        if self.get(address.alias) is not None:
            raise ConfigurationError(
                f"Duplicate repository alias '{address.alias}'"
            )
        self._addresses.append(address)

    def get(self, alias: str) -> RepositoryAddress | None:
        for address in self._addresses:
            if address.alias == alias:
                return address
        return None

    def set_default_aliases(self, aliases: Iterable[str]) -> None:
        aliases = list(aliases)
        unknown = [a for a in aliases if self.get(a) is None]
        if unknown:
            raise ConfigurationError(
                f"Default repository aliases not configured: {unknown}"
            )
        self._default_aliases = aliases

    def default_sync_addresses(self) -> list[RepositoryAddress]:
        """Known addresses whose alias is a default, in configured order."""
        return [
            a for a in self._addresses if a.alias in self._default_aliases
        ]

    def repositories_to_list(self) -> list[RepositoryAddress]:
        """Addresses to offer in a selection list: USB first, then known."""
        return [usb_key_address(), *self._addresses]


# ---------------------------------------------------------------------------
# USB resolution
# ---------------------------------------------------------------------------


def default_usb_mount_points() -> list[Path]:
    """Directories where removable drives are currently mounted."""
    if os.name == "nt":
        return [
            Path(f"{letter}:\\")
            for letter in string.ascii_uppercase[3:]
            if Path(f"{letter}:\\").exists()
        ]

    parents = [Path("/Volumes"), Path("/media")]
    user = os.environ.get("USER")
    if user:
        parents[1:1] = [Path("/run/media") / user, Path("/media") / user]

    mount_points: list[Path] = []
    for parent in parents:
        if not parent.is_dir():
            continue
        try:
            mount_points.extend(p for p in parent.iterdir() if p.is_dir())
        except OSError as exc:
            logger.debug("Cannot list %s: %s", parent, exc)
    return mount_points


def resolve_address(
    address: RepositoryAddress,
    project_name: str,
    mount_points: Iterable[Path] | None = None,
) -> RepositoryAddress:
    """Return *address* with a USB placeholder replaced by a real directory.

    Non-USB addresses are returned unchanged.

    Args:
        address: The address about to be used.
        project_name: Folder name of the project on the drive.
        mount_points: Drive mount points to search; defaults to
            ``default_usb_mount_points()``.

    Raises:
        PullError: If no mounted drive holds a copy of the project.
    """
    if address.kind is not AddressKind.USB:
        return address

    points = (
        list(mount_points)
        if mount_points is not None
        else default_usb_mount_points()
    )
    for point in points:
        candidate = point / project_name
        if candidate.is_dir():
            logger.debug("Resolved USB address to %s", candidate)
            return address.model_copy(update={"uri": str(candidate)})

    raise PullError(
        f"No USB flash drive holding '{project_name}' was found",
        operation="pull",
    )

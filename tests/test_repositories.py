"""Tests for the set of known repository addresses and USB resolution."""

from pathlib import Path

import pytest

from sendreceive.exceptions import ConfigurationError, PullError
from sendreceive.sync.models import USB_KEY_URI, RepositoryAddress
from sendreceive.sync.repositories import (
    USB_ALIAS,
    KnownRepositories,
    default_usb_mount_points,
    resolve_address,
    usb_key_address,
)


def _addr(alias: str, uri: str = "/x") -> RepositoryAddress:
    return RepositoryAddress(alias=alias, uri=uri)


class TestKnownRepositories:
    def test_duplicate_alias_rejected(self):
        repos = KnownRepositories([_addr("a")])

        with pytest.raises(ConfigurationError):
            repos.add(_addr("a", "/other"))

    def test_duplicate_alias_in_constructor(self):
        with pytest.raises(ConfigurationError):
            KnownRepositories([_addr("a"), _addr("a")])

    def test_unknown_default_alias(self):
        with pytest.raises(ConfigurationError):
            KnownRepositories([_addr("a")], default_aliases=["b"])

    def test_default_addresses_in_known_order(self):
        repos = KnownRepositories(
            [_addr("a"), _addr("b"), _addr("c")], default_aliases=["c", "a"]
        )

        assert [a.alias for a in repos.default_sync_addresses()] == ["a", "c"]

    def test_get(self):
        repos = KnownRepositories([_addr("a", "/a")])

        assert repos.get("a").uri == "/a"
        assert repos.get("missing") is None

    def test_repositories_to_list_starts_with_usb(self):
        assert KnownRepositories().repositories_to_list() == [usb_key_address()]

        listed = KnownRepositories([_addr("a")]).repositories_to_list()
        assert [a.alias for a in listed] == [USB_ALIAS, "a"]

    def test_addresses_returns_copy(self):
        repos = KnownRepositories([_addr("a")])

        repos.addresses.append(_addr("b"))

        assert len(repos.addresses) == 1


class TestResolveAddress:
    def test_non_usb_unchanged(self, tmp_path: Path):
        address = _addr("shared", "/mnt/share/tok")

        assert resolve_address(address, "tok", [tmp_path]) is address

    def test_first_mount_point_with_project(self, tmp_path: Path):
        first, second = tmp_path / "d1", tmp_path / "d2"
        first.mkdir()
        (second / "tok").mkdir(parents=True)

        resolved = resolve_address(usb_key_address(), "tok", [first, second])

        assert resolved.uri == str(second / "tok")
        assert resolved.alias == USB_ALIAS

    def test_no_drive(self, tmp_path: Path):
        with pytest.raises(PullError):
            resolve_address(usb_key_address(), "tok", [tmp_path])

    def test_placeholder_uri(self):
        assert usb_key_address().uri == USB_KEY_URI


class TestDefaultMountPoints:
    def test_returns_existing_directories(self):
        assert all(p.is_dir() for p in default_usb_mount_points())

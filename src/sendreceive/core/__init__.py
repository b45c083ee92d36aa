"""Helpers shared by the CLI and embedding hosts."""

from .async_utils import run_sync

__all__ = ["run_sync"]

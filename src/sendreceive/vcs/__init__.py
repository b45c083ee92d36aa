"""Version-control backends.

- ``backend`` -- ``VcsBackend`` protocol and ``MergeResult``.
- ``git``     -- ``GitBackend``: the protocol over the git CLI.
"""

from .backend import MergeResult, VcsBackend
from .git import GitBackend

__all__ = ["GitBackend", "MergeResult", "VcsBackend"]

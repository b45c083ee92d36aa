"""Git backend: drives the ``git`` command-line tool.

Remote history is fetched into ``refs/remotes/<alias>/*`` so every
address keeps its own view of the remote branches.  Merges are made with
``--no-commit`` so the host can adjust the merged files before the merge
commit, and a failed merge is undone with ``git merge --abort`` followed
by ``git reset --hard``.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Iterable
from pathlib import Path

from sendreceive.exceptions import (
    BackendError,
    CommitError,
    MergeError,
    PullError,
    PushError,
)
from sendreceive.sync.models import RepositoryAddress, Revision

from .backend import MergeResult

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"

# Paths per git invocation when staging
_CHUNK = 200

_UNSAFE_REF_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class GitBackend:
    """``VcsBackend`` implementation on top of the git CLI.

    Args:
        root: Working-tree root of the repository.
        user_name: Author name for commits.
        user_email: Author e-mail; defaults to ``<user_name>@localhost``.
    """

    def __init__(
        self,
        root: Path,
        user_name: str = "sendreceive",
        user_email: str | None = None,
    ) -> None:
        self.root = Path(root)
        self.user_name = user_name
        self.user_email = user_email or f"{user_name}@localhost"

    def _run(
        self, *args: str, check: bool = True
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command in the repository root."""
        env = dict(os.environ)
        # Never block on a credential prompt inside a background run
        env["GIT_TERMINAL_PROMPT"] = "0"
        logger.debug("git %s", " ".join(args))
        return subprocess.run(
            [
                "git",
                "-c",
                f"user.name={self.user_name}",
                "-c",
                f"user.email={self.user_email}",
                *args,
            ],
            cwd=self.root,
            check=check,
            capture_output=True,
            text=True,
            env=env,
        )

    # ------------------------------------------------------------------
    # Working copy
    # ------------------------------------------------------------------

    def ensure_repository(self) -> None:
        """Initialise a repository in ``root`` if there is none."""
        if (self.root / ".git").exists():
            return
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._run("init", "-q")
            self._run("symbolic-ref", "HEAD", f"refs/heads/{DEFAULT_BRANCH}")
        except (subprocess.CalledProcessError, FileNotFoundError, OSError) as exc:
            raise BackendError(
                f"Could not create a repository in {self.root}",
                operation="init",
                detail=_stderr(exc),
            ) from exc
        logger.info("Initialized git repository in %s", self.root)

    def committed_paths(self) -> set[str]:
        result = self._run("ls-files", "-z")
        return {p for p in result.stdout.split("\0") if p}

    def stage(self, add: Iterable[str], remove: Iterable[str]) -> None:
        try:
            for chunk in _chunks(list(remove)):
                self._run(
                    "rm", "--cached", "-q", "--ignore-unmatch", "--", *chunk
                )
            for chunk in _chunks(list(add)):
                self._run("add", "--", *chunk)
        except subprocess.CalledProcessError as exc:
            raise CommitError(
                "Could not stage changes", operation="stage", detail=_stderr(exc)
            ) from exc

    def has_pending_changes(self) -> bool:
        result = self._run("diff", "--cached", "--quiet", check=False)
        return result.returncode != 0

    def commit(self, message: str) -> str:
        try:
            self._run("commit", "-q", "-m", message)
        except (subprocess.CalledProcessError, FileNotFoundError) as exc:
            raise CommitError(
                "Local commit failed", operation="commit", detail=_stderr(exc)
            ) from exc
        head = self.current_head()
        if head is None:
            raise CommitError("Commit produced no revision", operation="commit")
        return head.revision_id

    def current_head(self) -> Revision | None:
        result = self._run("log", "-1", "--format=%H%x00%s", check=False)
        if result.returncode != 0 or not result.stdout.strip():
            return None
        revision_id, _, summary = result.stdout.strip().partition("\0")
        return Revision(
            branch=self.current_branch(),
            revision_id=revision_id,
            summary=summary,
        )

    def current_branch(self) -> str:
        result = self._run("symbolic-ref", "--short", "-q", "HEAD", check=False)
        return result.stdout.strip() or "HEAD"

    def switch_branch(self, name: str) -> None:
        if self.current_branch() == name:
            return
        try:
            if self.current_head() is None:
                self._run("symbolic-ref", "HEAD", f"refs/heads/{name}")
            elif self._ref_exists(f"refs/heads/{name}"):
                self._run("checkout", "-q", name)
            else:
                self._run("checkout", "-q", "-b", name)
        except subprocess.CalledProcessError as exc:
            raise CommitError(
                f"Could not switch to branch '{name}'",
                operation="branch",
                detail=_stderr(exc),
            ) from exc
        logger.info("Switched to branch %s", name)

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    def pull(self, address: RepositoryAddress, branch: str) -> list[Revision]:
        namespace = _ref_namespace(address.alias)
        try:
            self._run(
                "fetch",
                "--quiet",
                "--no-tags",
                address.uri,
                f"+refs/heads/*:refs/remotes/{namespace}/*",
            )
        except (subprocess.CalledProcessError, FileNotFoundError) as exc:
            raise PullError(
                f"Could not pull from '{address.alias}' "
                f"({address.display_uri})",
                operation="pull",
                detail=_stderr(exc),
            ) from exc

        remote_ref = f"refs/remotes/{namespace}/{branch}"
        remote_id = self._resolve(remote_ref)
        if remote_id is None:
            logger.info(
                "'%s' has no branch %s yet", address.alias, branch
            )
            return []

        head = self.current_head()
        if head is not None and self.is_ancestor(remote_id, head.revision_id):
            return []
        return [Revision(branch=f"{namespace}/{branch}", revision_id=remote_id)]

    def push(self, address: RepositoryAddress, branch: str) -> None:
        if self.current_head() is None:
            logger.info("Nothing to push to %s", address.alias)
            return
        try:
            self._run(
                "push", "--quiet", address.uri, f"HEAD:refs/heads/{branch}"
            )
        except (subprocess.CalledProcessError, FileNotFoundError) as exc:
            raise PushError(
                f"Could not push to '{address.alias}' "
                f"({address.display_uri})",
                operation="push",
                detail=_stderr(exc),
            ) from exc

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._run(
            "merge-base", "--is-ancestor", ancestor, descendant, check=False
        )
        return result.returncode == 0

    def update(self, revision: Revision) -> None:
        try:
            self._run("merge", "--ff-only", "-q", revision.revision_id)
        except subprocess.CalledProcessError as exc:
            raise MergeError(
                f"Could not update to {revision.revision_id[:12]}",
                operation="update",
                detail=_stderr(exc),
            ) from exc

    def merge(self, revision: Revision) -> MergeResult:
        result = self._run(
            "merge",
            "--no-ff",
            "--no-commit",
            "--allow-unrelated-histories",
            "-q",
            revision.revision_id,
            check=False,
        )
        if result.returncode == 0:
            return MergeResult(success=True)

        unmerged = self._run(
            "diff", "--name-only", "--diff-filter=U", check=False
        )
        conflicts = [p for p in unmerged.stdout.splitlines() if p]
        if not conflicts:
            raise MergeError(
                f"Could not merge {revision.revision_id[:12]}",
                operation="merge",
                detail=result.stderr.strip() or result.stdout.strip(),
            )
        return MergeResult(success=False, conflicts=conflicts)

    def commit_merge(self, message: str) -> str:
        return self.commit(message)

    def rollback_to_revision(self, revision_id: str) -> None:
        if (self.root / ".git" / "MERGE_HEAD").exists():
            self._run("merge", "--abort", check=False)
        try:
            self._run("reset", "--hard", "-q", revision_id)
        except subprocess.CalledProcessError as exc:
            raise BackendError(
                f"Could not roll back to {revision_id[:12]}",
                operation="rollback",
                detail=_stderr(exc),
            ) from exc

    def list_open_branch_heads(self) -> list[Revision]:
        """Branch heads that are not already contained in another head."""
        result = self._run(
            "for-each-ref",
            "--format=%(refname:short)%00%(objectname)%00%(subject)",
            "refs/heads",
            "refs/remotes",
        )
        by_id: dict[str, Revision] = {}
        for line in result.stdout.splitlines():
            name, revision_id, summary = (line.split("\0") + ["", ""])[:3]
            if not name or name.endswith("/HEAD"):
                continue
            by_id.setdefault(
                revision_id,
                Revision(branch=name, revision_id=revision_id, summary=summary),
            )

        ids = list(by_id)
        return [
            by_id[rev]
            for rev in ids
            if not any(
                other != rev and self.is_ancestor(rev, other) for other in ids
            )
        ]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _resolve(self, ref: str) -> str | None:
        result = self._run("rev-parse", "--verify", "-q", ref, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def _ref_exists(self, ref: str) -> bool:
        return self._resolve(ref) is not None


def _ref_namespace(alias: str) -> str:
    return _UNSAFE_REF_CHARS.sub("_", alias) or "remote"


def _chunks(paths: list[str]) -> Iterable[list[str]]:
    for start in range(0, len(paths), _CHUNK):
        yield paths[start : start + _CHUNK]


def _stderr(exc: BaseException) -> str:
    stderr = getattr(exc, "stderr", None)
    if stderr:
        return stderr.strip()
    return str(exc)

"""Shared pytest fixtures for sendreceive tests."""

from __future__ import annotations

import shutil
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

import pytest

from sendreceive.sync.models import (
    ProjectConfiguration,
    RepositoryAddress,
    Revision,
    SyncOptions,
)
from sendreceive.vcs.backend import MergeResult

GIT_AVAILABLE = shutil.which("git") is not None


def pytest_collection_modifyitems(config, items):
    """Skip tests marked ``git`` when no git executable is installed."""
    if GIT_AVAILABLE:
        return
    skip_git = pytest.mark.skip(reason="git executable not found on PATH")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeBackend:
    """In-memory ``VcsBackend`` recording every call.

    History is a map from revision id to the set of its ancestors
    (itself included).  Behaviour is steered by the public attributes:
    ``remote_heads`` / ``pull_errors`` / ``push_errors`` per alias,
    ``merge_result`` / ``merge_error`` / ``commit_error``, ``update_error``,
    ``rollback_error``, ``open_heads``,
    and the ``on_pull`` / ``on_merge`` callbacks.  Setting ``pull_gate``
    makes ``pull`` block until the event is set.
    """

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.committed: set[str] = set()
        self.index: set[str] = set()
        self.head: str | None = None
        self.branch = "main"
        self.history: dict[str, set[str]] = {}
        self.force_pending = False

        self.remote_heads: dict[str, list[Revision]] = {}
        self.pull_errors: dict[str, Exception] = {}
        self.push_errors: dict[str, Exception] = {}
        self.merge_result = MergeResult(success=True)
        self.merge_error: Exception | None = None
        self.commit_error: Exception | None = None
        self.update_error: Exception | None = None
        self.rollback_error: Exception | None = None
        self.open_heads: list[Revision] = []

        self.on_pull: Callable[[RepositoryAddress], None] | None = None
        self.on_merge: Callable[[Revision], None] | None = None
        self.pull_gate: threading.Event | None = None
        self.pull_started = threading.Event()
        self._merging: str | None = None
        self._counter = 0

    # -- test helpers -------------------------------------------------

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def seed_commit(self, paths: Iterable[str]) -> str:
        """Pretend *paths* are already committed; returns the revision."""
        self.index = set(paths)
        return self._new_commit()

    def add_remote_head(
        self, alias: str, revision_id: str, parents: Iterable[str] = ()
    ) -> Revision:
        ancestors = {revision_id}
        for parent in parents:
            ancestors |= self.history.get(parent, {parent})
        self.history[revision_id] = ancestors
        revision = Revision(branch=f"{alias}/main", revision_id=revision_id)
        self.remote_heads.setdefault(alias, []).append(revision)
        return revision

    def _new_commit(self, *extra_parents: str) -> str:
        self._counter += 1
        revision_id = f"r{self._counter}"
        ancestors = {revision_id}
        for parent in (self.head, *extra_parents):
            if parent is not None:
                ancestors |= self.history.get(parent, {parent})
        self.history[revision_id] = ancestors
        self.head = revision_id
        self.committed = set(self.index)
        self.force_pending = False
        return revision_id

    # -- VcsBackend ---------------------------------------------------

    def ensure_repository(self) -> None:
        self.calls.append(("ensure_repository",))

    def committed_paths(self) -> set[str]:
        return set(self.committed)

    def stage(self, add, remove) -> None:
        add, remove = list(add), list(remove)
        self.calls.append(("stage", add, remove))
        self.index = (self.index | set(add)) - set(remove)

    def has_pending_changes(self) -> bool:
        return self.force_pending or self.index != self.committed

    def commit(self, message: str) -> str:
        self.calls.append(("commit", message))
        if self.commit_error is not None:
            raise self.commit_error
        return self._new_commit()

    def current_head(self) -> Revision | None:
        if self.head is None:
            return None
        return Revision(branch=self.branch, revision_id=self.head)

    def current_branch(self) -> str:
        return self.branch

    def switch_branch(self, name: str) -> None:
        self.calls.append(("switch_branch", name))
        self.branch = name

    def pull(self, address: RepositoryAddress, branch: str) -> list[Revision]:
        self.calls.append(("pull", address.alias, address.uri, branch))
        self.pull_started.set()
        if self.pull_gate is not None:
            self.pull_gate.wait(10)
        if self.on_pull is not None:
            self.on_pull(address)
        if address.alias in self.pull_errors:
            raise self.pull_errors[address.alias]
        heads = self.remote_heads.get(address.alias, [])
        if self.head is None:
            return list(heads)
        return [h for h in heads if not self.is_ancestor(h.revision_id, self.head)]

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return ancestor in self.history.get(descendant, {descendant})

    def update(self, revision: Revision) -> None:
        self.calls.append(("update", revision.revision_id))
        if self.update_error is not None:
            raise self.update_error
        self.head = revision.revision_id

    def merge(self, revision: Revision) -> MergeResult:
        self.calls.append(("merge", revision.revision_id))
        if self.on_merge is not None:
            self.on_merge(revision)
        if self.merge_error is not None:
            raise self.merge_error
        self._merging = revision.revision_id
        return self.merge_result

    def commit_merge(self, message: str) -> str:
        self.calls.append(("commit_merge", message))
        return self._new_commit(self._merging)

    def rollback_to_revision(self, revision_id: str) -> None:
        self.calls.append(("rollback_to_revision", revision_id))
        if self.rollback_error is not None:
            raise self.rollback_error
        self.head = revision_id

    def push(self, address: RepositoryAddress, branch: str) -> None:
        self.calls.append(("push", address.alias, address.uri, branch))
        if address.alias in self.push_errors:
            raise self.push_errors[address.alias]

    def list_open_branch_heads(self) -> list[Revision]:
        return list(self.open_heads)


class RecordingAdjunct:
    """Adjunct that records each hook call in order."""

    def __init__(self, branch_name: str = "") -> None:
        self._branch_name = branch_name
        self.calls: list[tuple] = []

    @property
    def branch_name(self) -> str:
        return self._branch_name

    @property
    def was_updated(self) -> bool:
        return any(c[0] == "simple_update" for c in self.calls)

    def prepare_for_initial_commit(self, progress) -> None:
        self.calls.append(("prepare_for_initial_commit",))

    def simple_update(self, progress, is_rollback: bool) -> None:
        self.calls.append(("simple_update", is_rollback))

    def prepare_for_post_merge_commit(self, progress) -> None:
        self.calls.append(("prepare_for_post_merge_commit",))

    def check_repository_branches(self, branches, progress) -> None:
        self.calls.append(("check_repository_branches", list(branches)))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A small project folder with tracked and untracked files."""
    folder = tmp_path / "tok"
    (folder / "pictures").mkdir(parents=True)
    (folder / "tok.lift").write_text("<lift/>\n", encoding="utf-8")
    (folder / "pictures" / "dog.jpg").write_bytes(b"jpg")
    (folder / "interview.wmv").write_bytes(b"video")
    return folder


@pytest.fixture
def project_config(project_dir: Path) -> ProjectConfiguration:
    return ProjectConfiguration(
        folder_path=project_dir,
        include_patterns=["*.lift", "pictures/**"],
        exclude_patterns=["*.wmv"],
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def adjunct() -> RecordingAdjunct:
    return RecordingAdjunct()


@pytest.fixture
def shared_address() -> RepositoryAddress:
    return RepositoryAddress(alias="shared", uri="/mnt/share/tok")


@pytest.fixture
def remote_options(shared_address: RepositoryAddress) -> SyncOptions:
    return SyncOptions(repository_sources_to_try=[shared_address])


@pytest.fixture
def branch_adjunct() -> RecordingAdjunct:
    """Adjunct that keeps the project on its own branch."""
    return RecordingAdjunct(branch_name="lexicon-7")

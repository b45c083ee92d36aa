"""Send/receive against real git repositories.

Two working copies ("alice" and "bob") exchange changes through a bare
repository standing in for a shared folder.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from sendreceive.exceptions import PullError
from sendreceive.sync.models import ProjectConfiguration, RepositoryAddress, SyncOptions
from sendreceive.sync.synchronizer import Synchronizer
from sendreceive.vcs.git import DEFAULT_BRANCH, GitBackend

pytestmark = pytest.mark.git


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout


@pytest.fixture
def bare(tmp_path: Path) -> Path:
    path = tmp_path / "shared.git"
    path.mkdir()
    _git(path, "init", "--bare", "-q")
    return path


def _project(tmp_path: Path, name: str) -> ProjectConfiguration:
    folder = tmp_path / name / "tok"
    folder.mkdir(parents=True)
    return ProjectConfiguration(
        folder_path=folder,
        include_patterns=["*.lift"],
        exclude_patterns=["export/*.lift"],
    )


def _sync(config: ProjectConfiguration, bare: Path, adjunct=None, user: str = "alice"):
    options = SyncOptions(
        repository_sources_to_try=[RepositoryAddress(alias="shared", uri=str(bare))]
    )
    backend = GitBackend(config.folder_path, user_name=user)
    return Synchronizer(config, backend).run(options, adjunct)


class TestLocalCommit:
    def test_creates_repository_and_commits_tracked_files(self, tmp_path):
        config = _project(tmp_path, "alice")
        folder = config.folder_path
        (folder / "export").mkdir()
        (folder / "tok.lift").write_text("<lift/>\n", encoding="utf-8")
        (folder / "export" / "bad.lift").write_text("x\n", encoding="utf-8")
        (folder / "notes.txt").write_text("x\n", encoding="utf-8")

        backend = GitBackend(folder, user_name="alice")
        results = Synchronizer(config, backend).run(SyncOptions.local_only())

        assert results.succeeded
        assert _git(folder, "ls-files").split() == ["tok.lift"]
        assert backend.current_branch() == DEFAULT_BRANCH
        assert _git(folder, "log", "-1", "--format=%an").strip() == "alice"

    def test_second_run_without_changes_does_not_commit(self, tmp_path):
        config = _project(tmp_path, "alice")
        (config.folder_path / "tok.lift").write_text("<lift/>\n", encoding="utf-8")
        backend = GitBackend(config.folder_path)
        Synchronizer(config, backend).run(SyncOptions.local_only())
        first = backend.current_head()

        Synchronizer(config, backend).run(SyncOptions.local_only())

        assert backend.current_head() == first

    def test_deleted_file_is_removed(self, tmp_path):
        config = _project(tmp_path, "alice")
        (config.folder_path / "a.lift").write_text("a\n", encoding="utf-8")
        (config.folder_path / "b.lift").write_text("b\n", encoding="utf-8")
        backend = GitBackend(config.folder_path)
        Synchronizer(config, backend).run(SyncOptions.local_only())

        (config.folder_path / "b.lift").unlink()
        Synchronizer(config, backend).run(SyncOptions.local_only())

        assert backend.committed_paths() == {"a.lift"}


class TestExchange:
    def test_push_then_fast_forward(self, tmp_path, bare):
        alice = _project(tmp_path, "alice")
        bob = _project(tmp_path, "bob")
        (alice.folder_path / "tok.lift").write_text("alice\n", encoding="utf-8")

        first = _sync(alice, bare)
        second = _sync(bob, bare, user="bob")

        assert first.succeeded
        assert second.succeeded
        assert second.did_get_changes_from_others
        assert (bob.folder_path / "tok.lift").read_text(encoding="utf-8") == "alice\n"

    def test_merge_of_independent_changes(self, tmp_path, bare):
        alice = _project(tmp_path, "alice")
        bob = _project(tmp_path, "bob")
        (alice.folder_path / "one.lift").write_text("alice\n", encoding="utf-8")
        (bob.folder_path / "two.lift").write_text("bob\n", encoding="utf-8")

        _sync(alice, bare)
        results = _sync(bob, bare, user="bob")

        assert results.succeeded
        assert not results.warning_encountered
        assert results.did_get_changes_from_others
        assert (bob.folder_path / "one.lift").exists()
        pushed = _git(bare, "ls-tree", "-r", "--name-only", DEFAULT_BRANCH).split()
        assert pushed == ["one.lift", "two.lift"]

    def test_conflict_is_rolled_back(self, tmp_path, bare, adjunct):
        alice = _project(tmp_path, "alice")
        bob = _project(tmp_path, "bob")
        (alice.folder_path / "tok.lift").write_text("alice\n", encoding="utf-8")
        (bob.folder_path / "tok.lift").write_text("bob\n", encoding="utf-8")
        _sync(alice, bare)
        remote_before = _git(bare, "rev-parse", DEFAULT_BRANCH)

        results = _sync(bob, bare, adjunct=adjunct, user="bob")

        assert results.succeeded
        assert results.warning_encountered
        assert adjunct.calls.count(("simple_update", True)) == 1
        assert (bob.folder_path / "tok.lift").read_text(encoding="utf-8") == "bob\n"
        assert not (bob.folder_path / ".git" / "MERGE_HEAD").exists()
        assert _git(bob.folder_path, "status", "--porcelain").strip() == ""
        assert _git(bare, "rev-parse", DEFAULT_BRANCH) == remote_before

    def test_unreachable_remote(self, tmp_path):
        config = _project(tmp_path, "alice")
        (config.folder_path / "tok.lift").write_text("x\n", encoding="utf-8")

        results = _sync(config, tmp_path / "missing.git")

        assert not results.succeeded
        assert isinstance(results.error_encountered, PullError)
        assert _git(config.folder_path, "ls-files").split() == ["tok.lift"]


class TestBackendDetails:
    def test_switch_branch_before_first_commit(self, tmp_path):
        backend = GitBackend(tmp_path / "repo")
        backend.ensure_repository()

        backend.switch_branch("lexicon-7")

        assert backend.current_branch() == "lexicon-7"
        assert backend.current_head() is None

    def test_open_branch_heads_drop_contained_heads(self, tmp_path, bare):
        alice = _project(tmp_path, "alice")
        (alice.folder_path / "tok.lift").write_text("x\n", encoding="utf-8")
        _sync(alice, bare)
        backend = GitBackend(alice.folder_path)

        heads = backend.list_open_branch_heads()

        assert len(heads) == 1
        assert heads[0].revision_id == backend.current_head().revision_id

import os
import shlex
import shutil
from typing import Any

import git
from inline_snapshot import snapshot
import pytest
from pytest import CaptureFixture, MonkeyPatch
import yaml

from . import main
from .cache import GitCache
from .constants import GRAFT_CONFIG, GRAFT_NAME, USE_LOCAL_CACHE_VARIABLE
from .lock import FileSystemLock
from .manager import GraftManager
from .test_utils import add_commit, commit_all, new_upstream, normalize_message, write_file
from .typed_path import AbsDir, GitDir, RelDir
from .types import Commit


@pytest.fixture
def upstream(typed_tmp_path: AbsDir) -> tuple[str, Commit]:
    return new_upstream(typed_tmp_path.path, "lib", {"README": "readme\n", "src/a.py": "a = 1\n"})


@pytest.fixture
def host(local_git_repo: GitDir) -> GitDir:
    add_commit(local_git_repo, {"host.txt": "host\n"})
    return local_git_repo


def run(*args: str) -> int | str | None:
    with pytest.raises(SystemExit) as e:
        main.main(["-q", *args], prog_name=GRAFT_NAME)
    return e.value.code


def read_config(local: GitDir) -> Any:
    with open(local / GRAFT_CONFIG) as f:
        return yaml.safe_load(f)


def last_commit_message(local: GitDir) -> str:
    return str(git.Repo(os.fspath(local)).head.commit.message).strip()


def test_add_status_diff_remove(
    host: GitDir, upstream: tuple[str, Commit], capsys: CaptureFixture
) -> None:
    url, commit = upstream
    assert run("add", url, "vendor/lib") == 0
    assert read_config(host) == {
        "mirrors": {"vendor/lib": {"url": url, "branch": "master", "revision": commit.sha}}
    }
    assert (host.path / "vendor/lib/src/a.py").read_text() == "a = 1\n"
    assert last_commit_message(host) == f"Graft: Add mirror 'vendor/lib' at '{commit}'"
    repo = git.Repo(os.fspath(host))
    assert not repo.is_dirty(untracked_files=True)
    assert repo.remote("master/braid/vendor/lib").url == url

    assert run("status") == 0
    add_commit(url, {"README": "readme\n", "src/a.py": "a = 3\n"})
    assert run("status") == 1
    assert run("status", "vendor/lib/") == 1

    write_file(host, "vendor/lib/src/a.py", "a = 2\n")
    capsys.readouterr()
    assert run("diff") == 0
    out = capsys.readouterr().out
    assert "diff --git a/src/a.py b/src/a.py" in out
    assert "-a = 1" in out
    assert "+a = 2" in out
    assert "host.txt" not in out

    repo.git.checkout("--", "vendor/lib/src/a.py")
    assert run("remove", "vendor/lib") == 0
    assert not (host.path / "vendor").exists()
    assert read_config(host) == {"mirrors": {}}
    assert "master/braid/vendor/lib" not in [remote.name for remote in repo.remotes]
    assert last_commit_message(host) == "Graft: Remove mirror 'vendor/lib'"
    assert not repo.is_dirty(untracked_files=True)


def test_diff_passes_git_args(host: GitDir, upstream: tuple[str, Commit], capsys: CaptureFixture) -> None:
    url, _ = upstream
    assert run("add", url, "vendor/lib") == 0
    write_file(host, "vendor/lib/src/a.py", "a = 2\n")

    capsys.readouterr()
    assert run("diff", "--", "--stat") == 0
    out = capsys.readouterr().out
    assert "src/a.py | 2 +-" in out
    assert "1 file changed, 1 insertion(+), 1 deletion(-)" in out
    assert "diff --git" not in out

    assert run("diff", "vendor/lib", "--", "--stat", "--color") == 0
    out = capsys.readouterr().out
    assert "src/a.py | 2 \x1b[" in out
    assert "diff --git" not in out


def test_diff_unpinned_mirror_fetches_first(
    host: GitDir, upstream: tuple[str, Commit], capsys: CaptureFixture
) -> None:
    url, _ = upstream
    assert run("add", url, "vendor/lib") == 0
    # A configuration without a pinned revision, in a clone that never fetched the upstream.
    write_file(host, os.fspath(GRAFT_CONFIG), f"mirrors:\n  vendor/lib:\n    url: {url}\n    branch: master\n")
    commit_all(host, "Forget the revision")
    git.Repo(os.fspath(host)).git.remote("remove", "master/braid/vendor/lib")

    write_file(host, "vendor/lib/src/a.py", "a = 2\n")
    capsys.readouterr()
    assert run("diff") == 0
    out = capsys.readouterr().out
    assert "-a = 1" in out
    assert "+a = 2" in out


def test_add_file_from_tag(host: GitDir, upstream: tuple[str, Commit], capsys: CaptureFixture) -> None:
    url, commit = upstream
    git.Repo(url).create_tag("v1.0")
    add_commit(url, {"README": "newer\n", "src/a.py": "a = 1\n"})

    assert run("add", url, "--tag", "v1.0", "--path", "README") == 0
    assert read_config(host) == {
        "mirrors": {"README": {"url": url, "path": "README", "tag": "v1.0", "revision": commit.sha}}
    }
    assert (host.path / "README").read_text() == "readme\n"
    assert run("status") == 0

    write_file(host, "README", "changed\n")
    capsys.readouterr()
    assert run("diff", "README") == 0
    out = capsys.readouterr().out
    assert "-readme" in out
    assert "+changed" in out


def test_add_older_revision(host: GitDir, upstream: tuple[str, Commit]) -> None:
    url, commit = upstream
    add_commit(url, {"README": "newer\n"})

    assert run("add", url, "vendor/lib", "--revision", commit.sha[:7]) == 0
    assert read_config(host)["mirrors"]["vendor/lib"]["revision"] == commit.sha
    assert (host.path / "vendor/lib/src/a.py").read_text() == "a = 1\n"
    assert run("status") == 1


def test_keep_remote(host: GitDir, upstream: tuple[str, Commit]) -> None:
    url, _ = upstream
    assert run("add", url) == 0
    assert run("remove", "lib", "--keep-remote") == 0
    assert "master/braid/lib" in [remote.name for remote in git.Repo(os.fspath(host)).remotes]


def test_add_through_cache(
    host: GitDir, upstream: tuple[str, Commit], monkeypatch: MonkeyPatch
) -> None:
    url, commit = upstream
    monkeypatch.setenv(USE_LOCAL_CACHE_VARIABLE, "1")
    cached_url = os.fspath(GitCache.from_environment().path(url))

    assert run("add", url, "vendor/lib") == 0
    assert git.Repo(os.fspath(host)).remote("master/braid/vendor/lib").url == cached_url
    assert git.Repo(cached_url).commit("master").hexsha == commit.sha
    # The configuration records the upstream, not the cache.
    assert read_config(host)["mirrors"]["vendor/lib"]["url"] == url

    newer = add_commit(url, {"README": "newer\n"})
    assert run("status") == 1
    assert git.Repo(cached_url).commit("master").hexsha == newer.sha


def test_commit_holds_store_lock(host: GitDir, upstream: tuple[str, Commit], monkeypatch: MonkeyPatch) -> None:
    url, _ = upstream
    commit = GraftManager.commit
    messages: list[str] = []

    def commit_while_locked(self: GraftManager, message: str) -> None:
        with pytest.raises(OSError):
            FileSystemLock.open(self.config_file)
        messages.append(message)
        commit(self, message)

    monkeypatch.setattr(GraftManager, "commit", commit_while_locked)
    assert run("add", url, "vendor/lib") == 0
    assert run("remove", "vendor/lib") == 0
    assert len(messages) == 2


@pytest.mark.parametrize(
    "args, expected",
    [
        (
            # tag and branch
            "add UPSTREAM vendor/lib --tag v1.0 --branch master",
            snapshot("NoTagAndBranchError: can not specify both tag and branch configuration"),
        ),
        (
            # unknown mirror
            "remove vendor/lib",
            snapshot(
                "MirrorNotFoundError: mirror 'vendor/lib' does not exist; check '.grafts.yaml'."
            ),
        ),
        (
            # unknown mirror
            "status vendor/lib",
            snapshot(
                "MirrorNotFoundError: mirror 'vendor/lib' does not exist; check '.grafts.yaml'."
            ),
        ),
        (
            # unknown mirror
            "diff vendor/lib",
            snapshot(
                "MirrorNotFoundError: mirror 'vendor/lib' does not exist; check '.grafts.yaml'."
            ),
        ),
    ],
)
def test_main_errors(
    args: str,
    expected: str,
    host: GitDir,
    upstream: tuple[str, Commit],
    capsys: CaptureFixture,
) -> None:
    url, _ = upstream
    capsys.readouterr()
    assert run(*shlex.split(args.replace("UPSTREAM", url))) == 1
    out, _err = capsys.readouterr()
    assert normalize_message(out, git_dir=host, upstream=url) == expected
    assert not (host / GRAFT_CONFIG).exists()


def test_not_a_git_repository(host: GitDir, capsys: CaptureFixture) -> None:
    shutil.rmtree(host / RelDir(".git"))
    capsys.readouterr()
    assert run("status") == 1
    out, _err = capsys.readouterr()
    assert normalize_message(out, git_dir=host) == snapshot(
        "InvalidGitRepositoryError: 'GIT_DIR' is not a git repository, please run `git init` first."
    )


def test_local_changes(host: GitDir, upstream: tuple[str, Commit], capsys: CaptureFixture) -> None:
    url, _ = upstream
    write_file(host, "host.txt", "changed\n")
    capsys.readouterr()
    assert run("add", url, "vendor/lib") == 1
    out, _err = capsys.readouterr()
    assert normalize_message(out, git_dir=host) == snapshot(
        "LocalChangesError: 'GIT_DIR' has local changes; commit or stash them first."
    )
    assert not (host / GRAFT_CONFIG).exists()
    assert not (host.path / "vendor").exists()


def test_add_existing_mirror(host: GitDir, upstream: tuple[str, Commit], capsys: CaptureFixture) -> None:
    url, _ = upstream
    assert run("add", url, "vendor/lib") == 0
    config = read_config(host)
    capsys.readouterr()
    assert run("add", url, "vendor/lib/") == 1
    out, _err = capsys.readouterr()
    assert normalize_message(out) == snapshot("MirrorExistsError: mirror 'vendor/lib' already exists.")
    assert read_config(host) == config


def test_invalid_config(host: GitDir, capsys: CaptureFixture) -> None:
    write_file(host, os.fspath(GRAFT_CONFIG), "mirrors: [vendor/lib]\n")
    commit_all(host, "Add invalid config")
    capsys.readouterr()
    assert run("status") == 1
    out, _err = capsys.readouterr()
    assert normalize_message(out, git_dir=host) == snapshot(
        "Loading '.grafts.yaml' [failed]    YAMLError: Error while loading 'GIT_DIR/.grafts.yaml': an unexpected error occurred during parsing @ GIT_DIR/.grafts.yaml:1:10: expected mirrors mapping, got sequence."
    )


def test_unsupported_mirror_is_reported(host: GitDir, capsys: CaptureFixture) -> None:
    write_file(
        host,
        os.fspath(GRAFT_CONFIG),
        "mirrors:\n  vendor/svn:\n    url: svn://example.com/lib\n    type: svn\n",
    )
    commit_all(host, "Add legacy config")
    capsys.readouterr()
    assert run("status") == 0
    out, _err = capsys.readouterr()
    assert normalize_message(out) == snapshot(
        "'.grafts.yaml' uses features that are no longer supported:    - Mirror 'vendor/svn' is of a 'svn' repository, which is no longer supported.    The mirror will be removed from your configuration, leaving the data in the tree.    '.grafts.yaml' will be updated the next time a mirror is added or removed."
    )
    # Read-only commands leave the configuration as it was.
    assert "svn" in (host.path / ".grafts.yaml").read_text()

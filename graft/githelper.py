from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import functools
import os
from os import PathLike
from subprocess import PIPE, Popen
import tempfile
from typing import cast

import git
from git import Blob, GitCommandError, GitError, Tree
from git import Repo as GitRepo
from loguru import logger

from .logger import describe
from .typed_path import GitDir
from .utils import strict_not_none
from .vcs import BlobItem, TreeItem, UnknownRevisionError, UpstreamItem
from .version import satisfies


@dataclass
class GitVersionError(GitError):
    actual: str
    required: str

    def __str__(self) -> str:
        return f"git {self.required} or newer is required, but found git {self.actual}."


@dataclass
class MissingUpstreamPathError(GitError):
    revision: str
    remote_path: str

    def __str__(self) -> str:
        return f"{self.remote_path!r} could not be found at {self.revision[:7]}."


@dataclass
class IrregularUpstreamPathError(GitError):
    revision: str
    remote_path: str

    def __str__(self) -> str:
        return f"{self.remote_path!r} at {self.revision[:7]} is neither a file nor a directory."


@dataclass(frozen=True, slots=True, kw_only=True)
class ProcessResult:
    stdout: str
    stderr: str
    returncode: int
    args: Sequence[str]

    def log(self, level: str) -> None:
        logger.log(level, f"Running: {self.args}")
        logger.log(level, f"stdout:\n{self.stdout}")
        logger.log(level, f"stderr:\n{self.stderr}")
        logger.log(level, f"returncode = {self.returncode}")


@dataclass(frozen=True)
class GitHelper:
    local: GitDir

    @classmethod
    @functools.cache
    def repo(cls, local: GitDir) -> GitRepo:
        # Convert to string explicitly to gitpython-developers/GitPython#2085
        return GitRepo(os.fspath(local))

    @property
    def git_repo(self) -> GitRepo:
        return self.repo(self.local)

    def run_command(
        self,
        command: str,
        *args: str | PathLike,
        env: Mapping[str, str] | None = None,
        check: bool = False,
    ) -> ProcessResult:
        process_env = {key: value for key, value in os.environ.items() if not key.startswith("GIT_")}
        if env is not None:
            process_env.update(env)
        process = Popen(
            ["git", command, *args],
            cwd=self.local,
            env=process_env,
            stdout=PIPE,
            stderr=PIPE,
            text=False,
        )
        return self.wait(process, check=check)

    @classmethod
    def wait(cls, process: Popen, *, check: bool = False) -> ProcessResult:
        stdout, stderr = process.communicate()
        result = ProcessResult(
            stdout=strict_not_none(git.safe_decode(stdout)),
            stderr=strict_not_none(git.safe_decode(stderr)),
            returncode=process.returncode,
            args=tuple(cast(Sequence[str], process.args)),
        )
        if result.returncode == 0 or (result.returncode == 1 and not check):
            result.log(level="TRACE")
        else:
            result.log(level="DEBUG")
            raise GitCommandError(
                tuple(result.args),
                status=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    def rev_parse(self, ref: str) -> str:
        result = self.run_command("rev-parse", "--verify", "--quiet", ref)
        if result.returncode != 0:
            raise UnknownRevisionError(ref)
        return result.stdout.strip()

    def merge_base(self, a: str, b: str) -> str | None:
        result = self.run_command("merge-base", a, b)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def commits_touching(self, path: str) -> list[str]:
        return self.run_command("rev-list", "HEAD", "--", path, check=True).stdout.split()

    def commit_history(self, ref: str) -> list[tuple[str, str]]:
        head = self.rev_parse(ref)
        output = self.run_command("log", "--format=%H %T", head, "--", check=True).stdout
        history = []
        for line in output.splitlines():
            commit, tree = line.split()
            history.append((commit, tree))
        return history

    def tree_hash(self, path: str, commit: str) -> str | None:
        result = self.run_command("rev-parse", "--verify", "--quiet", f"{commit}:{path}")
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def fetch(self, remote: str, refspec: str) -> None:
        with describe(f"Fetching {refspec} from {remote}", level="DEBUG"):
            self.run_command("fetch", "--no-tags", remote, refspec, check=True)

    def diff(self, args: Sequence[str]) -> str:
        return self.run_command("diff", *args).stdout

    def remote_exists(self, name: str) -> bool:
        return name in self.run_command("remote", check=True).stdout.splitlines()

    def remote_url(self, name: str) -> str | None:
        result = self.run_command("config", "--get", f"remote.{name}.url")
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def add_remote(self, name: str, url: str) -> None:
        self.run_command("remote", "add", name, url, check=True)

    def remove_remote(self, name: str) -> None:
        self.run_command("remote", "remove", name, check=True)

    def version(self) -> str:
        # Eg "git version 2.39.3 (Apple Git-145)".
        return self.run_command("--version", check=True).stdout.split()[2]

    def require_version(self, required: str) -> None:
        actual = self.version()
        if not satisfies(actual, required):
            raise GitVersionError(actual, required)

    def get_tree_item(self, revision: str, remote_path: str | None) -> UpstreamItem:
        tree = self.git_repo.commit(revision).tree
        if remote_path is None:
            return TreeItem(tree.hexsha)
        try:
            item = tree / remote_path
        except KeyError:
            raise MissingUpstreamPathError(revision, remote_path) from None
        match item:
            case Blob():
                return BlobItem(item.hexsha, f"{item.mode:o}")
            case Tree():
                return TreeItem(item.hexsha)
        raise IrregularUpstreamPathError(revision, remote_path)

    def make_tree_with_item(self, path: str, item: UpstreamItem) -> str:
        with tempfile.TemporaryDirectory() as folder:
            # A missing index file is read as an empty index.
            env = {"GIT_INDEX_FILE": os.path.join(folder, "index")}
            self.add_item_to_index(item, path, update_worktree=False, env=env)
            return self.run_command("write-tree", env=env, check=True).stdout.strip()

    def add_item_to_index(
        self,
        item: UpstreamItem,
        path: str,
        *,
        update_worktree: bool,
        env: Mapping[str, str] | None = None,
    ) -> None:
        match item:
            case BlobItem(sha=sha, mode=mode):
                self.run_command(
                    "update-index", "--add", "--cacheinfo", f"{mode},{sha},{path}", env=env, check=True
                )
                if update_worktree:
                    self.run_command("checkout-index", "--force", "--", path, env=env, check=True)
            case TreeItem(sha=sha):
                update = ["-u"] if update_worktree else []
                self.run_command("read-tree", f"--prefix={path}/", *update, sha, env=env, check=True)

    def remove_path(self, path: str) -> None:
        self.run_command("rm", "-r", "--quiet", "--", path, check=True)

    def is_dirty(self) -> bool:
        return self.git_repo.is_dirty(untracked_files=False)

    def commit(self, message: str) -> str:
        self.run_command("commit", "--quiet", "-m", message, check=True)
        return self.rev_parse("HEAD")

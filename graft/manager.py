import abc
from collections.abc import Callable
from dataclasses import dataclass
import functools
import os

from yaml import YAMLError

from .cache import GitCache
from .constants import COMMIT_MESSAGE_PREFIX, GRAFT_CONFIG
from .githelper import GitHelper
from .lock import FileSystemLock
from .logger import describe
from .store import MirrorStore
from .typed_path import AbsFile, GitDir


@dataclass
class LocalChangesError(Exception):
    target: GitDir

    def __str__(self) -> str:
        return f"{self.target} has local changes; commit or stash them first."


@dataclass(frozen=True)
class GraftManager(abc.ABC):
    target: GitDir

    def _run[T](self, main: Callable[[], T], *, commit_message: Callable[[T], str] | None = None) -> T:
        """Run `main` while holding the store lock, then save and commit the store if `commit_message` is given."""
        existed = self.config_file.exists()
        lock = self.lock
        saved = False
        try:
            result = main()
            if commit_message is not None:
                lock.dump(self.store)
                saved = True
                self.commit(commit_message(result))
            return result
        finally:
            lock.release()
            if not existed and not saved:
                os.remove(self.config_file)

    @functools.cached_property
    def git(self) -> GitHelper:
        return GitHelper(self.target)

    @functools.cached_property
    def cache(self) -> GitCache:
        return GitCache.from_environment()

    @functools.cached_property
    def lock(self) -> FileSystemLock:
        return FileSystemLock.open(self.config_file)

    @property
    def config_file(self) -> AbsFile:
        return self.target / GRAFT_CONFIG

    @functools.cached_property
    def store(self) -> MirrorStore:
        try:
            return MirrorStore.load(self.lock, self.config_file, git=self.git, cache=self.cache)
        except YAMLError as e:
            raise YAMLError(
                f"Error while loading {self.config_file}: {str(e)[0].lower()}{str(e)[1:]}"
            ) from e

    def require_clean_worktree(self) -> None:
        if self.git.is_dirty():
            raise LocalChangesError(self.target)

    def commit(self, message: str) -> None:
        self.git.run_command("add", "--", os.fspath(GRAFT_CONFIG), check=True)
        with describe(f"Committing {message!r}", level="DEBUG"):
            self.git.commit(f"{COMMIT_MESSAGE_PREFIX} {message}")

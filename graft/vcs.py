from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from git import GitError


@dataclass
class UnknownRevisionError(GitError):
    revision: str

    def __str__(self) -> str:
        return f"unknown revision {self.revision!r}."


@dataclass(frozen=True, slots=True)
class BlobItem:
    """A single file in an upstream tree."""

    sha: str
    mode: str


@dataclass(frozen=True, slots=True)
class TreeItem:
    """A directory in an upstream tree."""

    sha: str


type UpstreamItem = BlobItem | TreeItem


class VersionControl(Protocol):
    """Queries and commands run against the host repository."""

    def rev_parse(self, ref: str) -> str:
        """Return the full object name for `ref` or raise `UnknownRevisionError`."""
        ...

    def merge_base(self, a: str, b: str) -> str | None: ...

    def commits_touching(self, path: str) -> list[str]:
        """Commits reachable from HEAD that change `path`, newest first."""
        ...

    def commit_history(self, ref: str) -> list[tuple[str, str]]:
        """(commit, root tree) pairs reachable from `ref` in log order.

        Raises `UnknownRevisionError` if `ref` does not resolve, such as a remote that was never fetched.
        """
        ...

    def tree_hash(self, path: str, commit: str) -> str | None: ...

    def fetch(self, remote: str, refspec: str) -> None: ...

    def diff(self, args: Sequence[str]) -> str: ...

    def remote_exists(self, name: str) -> bool: ...

    def remote_url(self, name: str) -> str | None: ...

    def add_remote(self, name: str, url: str) -> None: ...

    def remove_remote(self, name: str) -> None: ...

    def version(self) -> str: ...

    def get_tree_item(self, revision: str, remote_path: str | None) -> UpstreamItem: ...

    def make_tree_with_item(self, path: str, item: UpstreamItem) -> str: ...

    def add_item_to_index(self, item: UpstreamItem, path: str, *, update_worktree: bool) -> None: ...

    def remove_path(self, path: str) -> None: ...

    def is_dirty(self) -> bool: ...

    def commit(self, message: str) -> str: ...

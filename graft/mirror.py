from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
import os
import posixpath
from typing import Any, Final, Self

from loguru import logger

from .cache import GitCache
from .utils import repo_basename, strict_not_none, strip_trailing_slash
from .vcs import BlobItem, UnknownRevisionError, UpstreamItem, VersionControl

# Persisted in this order.
ATTRIBUTES: Final = ("url", "branch", "path", "tag", "revision")
LEGACY_ATTRIBUTES: Final = ("type", "lock", "squashed")

type BreakingChangeCallback = Callable[[str], None]


class MirrorError(Exception): ...


@dataclass
class UnknownTypeError(MirrorError):
    type: str

    def __str__(self) -> str:
        return f"unknown type: {self.type}"


class PathRequiredError(MirrorError):
    def __str__(self) -> str:
        return "path is required"


class NoTagAndBranchError(MirrorError):
    def __str__(self) -> str:
        return "can not specify both tag and branch configuration"


@dataclass
class RemoveMirrorDueToBreakingChange(MirrorError):
    path: str

    def __str__(self) -> str:
        return f"mirror {self.path!r} can no longer be represented and must be removed."


@dataclass
class MigrationNotPermittedError(MirrorError):
    path: str
    description: str

    def __str__(self) -> str:
        return (
            f"mirror {self.path!r} uses an unsupported feature, which can only be migrated "
            f"while loading the configuration:\n{self.description}"
        )


@dataclass
class LockedMirrorError(MirrorError):
    path: str

    def __str__(self) -> str:
        return (
            f"mirror {self.path!r} is locked, so it has no fetch ref-spec; "
            "use its pinned revision instead."
        )


@dataclass
class MissingBaseRevisionError(MirrorError):
    path: str

    def __str__(self) -> str:
        return f"unable to determine the upstream revision merged into {self.path!r}."


@dataclass(frozen=True, kw_only=True, slots=True)
class MirrorOptions:
    branch: str | None = None
    tag: str | None = None
    revision: str | None = None
    path: str | None = None
    remote_path: str | None = None


class Mirror:
    """A subdirectory (or single file) of the host repository copied from an upstream repository.

    `path` is the local path. The attribute `path` is the path inside the upstream
    repository and is exposed as `remote_path`. A mirror with neither a branch nor a tag
    is locked to its revision.
    """

    def __init__(
        self,
        path: str,
        attributes: Mapping[str, Any],
        *,
        git: VersionControl,
        cache: GitCache,
        on_breaking_change: BreakingChangeCallback | None = None,
    ) -> None:
        self._path = strip_trailing_slash(path)
        self.attributes: dict[str, Any] = dict(attributes)
        self.git = git
        self.cache = cache
        self._on_breaking_change = on_breaking_change
        self._migrate()

    def _migrate(self) -> None:
        type_ = self.attributes.pop("type", None)
        if type_ is not None and type_ != "git":
            self._notify(
                f"- Mirror {self.path!r} is of a {type_!r} repository, which is no longer supported.\n"
                "  The mirror will be removed from your configuration, leaving the data in the tree."
            )
            raise RemoveMirrorDueToBreakingChange(self.path) from UnknownTypeError(type_)

        # Locks from old configurations did not clear the branch or tag.
        if self.attributes.pop("lock", None):
            self.attributes["branch"] = None
            self.attributes["tag"] = None

        squashed = self.attributes.pop("squashed", None)
        if squashed is not None and squashed is not True:
            self._notify(
                f"- Mirror {self.path!r} is full-history, which is no longer supported.\n"
                "  It will be changed to squashed. Upstream history already imported will remain\n"
                "  in your project's history and will have no effect on graft."
            )

    def _notify(self, description: str) -> None:
        if self._on_breaking_change is None:
            raise MigrationNotPermittedError(self.path, description)
        self._on_breaking_change(description)

    @classmethod
    def new_from_options(
        cls, url: str, options: MirrorOptions, *, git: VersionControl, cache: GitCache
    ) -> Self:
        url = strip_trailing_slash(url)
        if options.tag is not None and options.branch is not None:
            raise NoTagAndBranchError()

        branch = options.branch
        if branch is None and options.tag is None:
            branch = "master"

        if options.path is not None:
            path = options.path
        elif options.remote_path is not None:
            path = posixpath.basename(strip_trailing_slash(options.remote_path))
        else:
            path = repo_basename(url)
        path = strip_trailing_slash(path)
        if not path:
            raise PathRequiredError()

        attributes = {
            "url": url,
            "branch": branch,
            "path": options.remote_path,
            "tag": options.tag,
            "revision": options.revision,
        }
        return cls(path, attributes, git=git, cache=cache)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mirror):
            return NotImplemented
        return self.path == other.path and self.attributes == other.attributes

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r}, {self.attributes!r})"

    @property
    def path(self) -> str:
        return self._path

    @property
    def url(self) -> str:
        return self.attributes.get("url")  # type: ignore [return-value]

    @url.setter
    def url(self, url: str) -> None:
        self.attributes["url"] = url

    @property
    def branch(self) -> str | None:
        return self.attributes.get("branch")

    @branch.setter
    def branch(self, branch: str | None) -> None:
        self.attributes["branch"] = branch

    @property
    def tag(self) -> str | None:
        return self.attributes.get("tag")

    @tag.setter
    def tag(self, tag: str | None) -> None:
        self.attributes["tag"] = tag

    @property
    def revision(self) -> str | None:
        return self.attributes.get("revision")

    @revision.setter
    def revision(self, revision: str | None) -> None:
        self.attributes["revision"] = revision

    @property
    def remote_path(self) -> str | None:
        return self.attributes.get("path")

    @remote_path.setter
    def remote_path(self, remote_path: str | None) -> None:
        self.attributes["path"] = remote_path

    @property
    def canonical_attributes(self) -> dict[str, Any]:
        return {
            key: self.attributes[key]
            for key in ATTRIBUTES
            if self.attributes.get(key) is not None
        }

    @property
    def locked(self) -> bool:
        return self.branch is None and self.tag is None

    @property
    def remote_name(self) -> str:
        # Git rejects ref components starting with a dot.
        return f"{self.branch or self.tag or 'revision'}/braid/{self.path}".replace("/.", "/_")

    @property
    def local_ref(self) -> str | None:
        if self.branch is not None:
            return f"{self.remote_name}/{self.branch}"
        if self.tag is not None:
            return f"tags/{self.tag}"
        return self.revision

    @property
    def remote_ref(self) -> str:
        if self.tag is not None:
            return f"+refs/tags/{self.tag}"
        if self.branch is not None:
            return f"+refs/heads/{self.branch}"
        raise LockedMirrorError(self.path)

    @property
    def tracking_refspec(self) -> str:
        if self.tag is not None:
            return f"{self.remote_ref}:refs/tags/{self.tag}"
        return f"{self.remote_ref}:refs/remotes/{self.local_ref}"

    @property
    def cached_url(self) -> str:
        return os.fspath(self.cache.path(self.url))

    @property
    def cached(self) -> bool:
        return self.git.remote_url(self.remote_name) == self.cached_url

    def setup_remote(self) -> None:
        url = self.cached_url if self.cache.enabled else self.url
        existing_url = self.git.remote_url(self.remote_name)
        if existing_url == url:
            return
        if existing_url is not None:
            logger.debug(f"Replacing remote {self.remote_name!r} ({existing_url} -> {url})")
            self.git.remove_remote(self.remote_name)
        self.git.add_remote(self.remote_name, url)

    def fetch(self) -> None:
        if self.cached:
            self.cache.fetch(self.url)
        if self.locked:
            if self.revision is None:
                raise MissingBaseRevisionError(self.path)
            self.git.fetch(self.remote_name, self.revision)
        else:
            self.git.fetch(self.remote_name, self.tracking_refspec)

    def fetch_base_revision_if_missing(self) -> None:
        try:
            base_revision = self.base_revision
            if base_revision is not None:
                # Without ^{commit}, a full hash resolves even if the object is absent.
                self.git.rev_parse(f"{base_revision}^{{commit}}")
        except UnknownRevisionError:
            base_revision = None
        if base_revision is None:
            self.fetch()

    @property
    def base_revision(self) -> str | None:
        if self.revision is not None:
            return self.git.rev_parse(self.revision)
        return self.inferred_revision()

    def inferred_revision(self) -> str | None:
        """Find the upstream commit whose tree matches the mirror in the most recent local commit.

        Only mirrors from configurations that predate recording the revision need this.
        """
        if self.local_ref is None:
            return None
        remote_history = self.git.commit_history(self.local_ref)
        for local_commit in self.git.commits_touching(self.path):
            local_tree = self.git.tree_hash(self.path, local_commit)
            if local_tree is None:
                continue
            for remote_commit, remote_tree in remote_history:
                if remote_tree == local_tree:
                    return remote_commit
        return None

    def merged(self, commit: str) -> bool:
        commit = self.git.rev_parse(commit)
        base_revision = self.base_revision
        return base_revision is not None and self.git.merge_base(commit, base_revision) == commit

    def upstream_item_for_revision(self, revision: str) -> UpstreamItem:
        return self.git.get_tree_item(revision, self.remote_path)

    def diff_args(self, user_args: Sequence[str] = ()) -> list[str]:
        base_revision = self.base_revision
        if base_revision is None:
            raise MissingBaseRevisionError(self.path)
        upstream_item = self.upstream_item_for_revision(base_revision)

        # Content outside the mirror is left out because --relative excludes it anyway.
        base_tree = self.git.make_tree_with_item(self.path, upstream_item)

        if isinstance(upstream_item, BlobItem):
            # --relative=a/b also matches a/bb, so limit a file mirror with a path argument.
            # The basenames imitate diffing the two blobs directly.
            return [
                f"--relative={self.path}",
                f"--src-prefix=a/{posixpath.basename(strict_not_none(self.remote_path))}",
                f"--dst-prefix=b/{posixpath.basename(self.path)}",
                base_tree,
                # Options must come before paths.
                *user_args,
                self.path,
            ]
        return [f"--relative={self.path}/", base_tree, *user_args]

    def diff(self, user_args: Sequence[str] = ()) -> str:
        """Diff the mirror (including uncommitted changes) against its base revision.

        The remote for this mirror must already be set up.
        """
        self.fetch_base_revision_if_missing()
        return self.git.diff(self.diff_args(user_args))

from dataclasses import dataclass
import os
import tempfile
from typing import Self

from git import Repo as GitRepo

from .constants import GRAFT_CACHE, LOCAL_CACHE_DIR_VARIABLE, TRUTHY_VALUES, USE_LOCAL_CACHE_VARIABLE
from .logger import describe
from .typed_path import AbsDir, RelDir, Upstream


@dataclass(frozen=True)
class GitCache:
    """Bare mirror clones of upstream repositories shared between host repositories."""

    root: AbsDir
    enabled: bool = True

    @classmethod
    def from_environment(cls) -> Self:
        enabled = os.environ.get(USE_LOCAL_CACHE_VARIABLE, "").strip().lower() in TRUTHY_VALUES
        root = os.environ.get(LOCAL_CACHE_DIR_VARIABLE)
        return cls(GRAFT_CACHE if not root else AbsDir(os.path.abspath(root)), enabled=enabled)

    def path(self, url: str) -> AbsDir:
        return self.root / RelDir(Upstream(url).hash)

    def fetch(self, url: str) -> None:
        local = self.path(url)
        if local.exists():
            with describe(f"Updating cache of {Upstream(url)}", level="DEBUG"):
                GitRepo(os.fspath(local)).remote().fetch(prune=True)
        else:
            self._clone(url, local)

    def _clone(self, url: str, local: AbsDir) -> None:
        self.root.path.mkdir(parents=True, exist_ok=True)
        with (
            describe(f"Caching {Upstream(url)} in {local}", level="DEBUG"),
            tempfile.TemporaryDirectory(dir=self.root) as staging,
        ):
            clone = os.path.join(staging, "clone")
            GitRepo.clone_from(url, clone, mirror=True)
            # Both paths are on the same filesystem, so the move is atomic.
            os.rename(clone, local)

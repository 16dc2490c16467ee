from dataclasses import dataclass

from .logger import describe
from .manager import GraftManager
from .mirror import Mirror


@dataclass(frozen=True)
class MirrorRemover(GraftManager):
    path: str
    keep_remote: bool = False

    def remove(self) -> None:
        self._run(self._remove, commit_message=lambda mirror: f"Remove mirror {mirror.path!r}")

    def _remove(self) -> Mirror:
        self.require_clean_worktree()
        mirror = self.store.get(self.path)
        with describe(f"Removing mirror {mirror.path!r}", level="INFO"):
            self.git.remove_path(mirror.path)
            if not self.keep_remote and self.git.remote_exists(mirror.remote_name):
                self.git.remove_remote(mirror.remote_name)
            self.store.remove(mirror)
        return mirror

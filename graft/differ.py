from collections.abc import Sequence
from dataclasses import dataclass, field

from .logger import describe
from .manager import GraftManager


@dataclass(frozen=True)
class MirrorDiffer(GraftManager):
    path: str | None = None
    git_args: Sequence[str] = field(default_factory=tuple)

    def diff(self) -> str:
        return self._run(self._diff)

    def _diff(self) -> str:
        diffs = []
        for mirror in self.store.select(self.path):
            with describe(f"Diffing {mirror.path!r}", level="DEBUG"):
                mirror.setup_remote()
                diffs.append(mirror.diff(self.git_args))
        return "".join(diffs)

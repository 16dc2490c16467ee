from dataclasses import dataclass

from loguru import logger

from .logger import describe
from .manager import GraftManager
from .mirror import Mirror
from .types import Commit, ExitCode


@dataclass(frozen=True)
class MirrorChecker(GraftManager):
    path: str | None = None

    def check(self) -> ExitCode:
        return self._run(self._check)

    def _check(self) -> ExitCode:
        up_to_date = all([self.up_to_date(mirror) for mirror in self.store.select(self.path)])
        if up_to_date:
            logger.info("All mirrors are up to date!")
        return int(not up_to_date)

    def up_to_date(self, mirror: Mirror) -> bool:
        with describe(f"Fetching {mirror.path!r}", level="DEBUG"):
            mirror.setup_remote()
            mirror.fetch()
        base_revision = mirror.base_revision
        current = "an unknown revision" if base_revision is None else str(Commit(base_revision))
        if mirror.locked:
            logger.info(f"{mirror.path!r} is locked at {current}.")
            return True
        latest = self.git.rev_parse(f"{mirror.local_ref}^{{commit}}")
        if mirror.merged(latest):
            return True
        logger.info(
            f"{mirror.path!r} is at {current}, but {mirror.branch or mirror.tag!r} is at {Commit(latest)}."
        )
        return False

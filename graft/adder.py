from dataclasses import dataclass

from .logger import describe
from .manager import GraftManager
from .mirror import Mirror, MirrorOptions
from .typed_path import Upstream
from .types import Commit
from .utils import strict_not_none


@dataclass(frozen=True)
class MirrorAdder(GraftManager):
    url: str
    options: MirrorOptions

    def add(self) -> Mirror:
        return self._run(
            self._add,
            commit_message=lambda mirror: (
                f"Add mirror {mirror.path!r} at {str(Commit(strict_not_none(mirror.revision)))!r}"
            ),
        )

    def _add(self) -> Mirror:
        self.require_clean_worktree()
        mirror = Mirror.new_from_options(self.url, self.options, git=self.git, cache=self.cache)
        self.store.add(mirror)
        with describe(f"Adding mirror {mirror.path!r} from {Upstream(mirror.url)}", level="INFO"):
            mirror.setup_remote()
            mirror.fetch()
            revision = mirror.revision or strict_not_none(mirror.local_ref)
            mirror.revision = self.git.rev_parse(f"{revision}^{{commit}}")
            item = mirror.upstream_item_for_revision(mirror.revision)
            self.git.add_item_to_index(item, mirror.path, update_worktree=True)
        return mirror

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Self

from loguru import logger
import yaml

from .cache import GitCache
from .config import GraftConfig
from .config_parser import Parser
from .constants import GRAFT_CONFIG
from .lock import FileSystemLock
from .logger import describe, report_breaking_changes
from .mirror import Mirror, MirrorError, RemoveMirrorDueToBreakingChange
from .typed_path import AbsFile
from .utils import strip_trailing_slash
from .vcs import VersionControl

if TYPE_CHECKING:
    from _typeshed import SupportsWrite


@dataclass
class MirrorExistsError(MirrorError):
    path: str

    def __str__(self) -> str:
        return f"mirror {self.path!r} already exists."


@dataclass
class MirrorNotFoundError(MirrorError):
    path: str

    def __str__(self) -> str:
        return f"mirror {self.path!r} does not exist; check {GRAFT_CONFIG}."


@dataclass
class MirrorStore:
    """The mirrors of a host repository, in the order they are persisted."""

    COMMENT: ClassVar[str] = "Managed by graft. Track this file in version control."
    mirrors: dict[str, Mirror] = field(default_factory=dict)
    breaking_changes: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: GraftConfig, *, git: VersionControl, cache: GitCache) -> Self:
        store = cls()
        for entry in config.mirrors:
            try:
                mirror = Mirror(
                    entry.path,
                    entry.attributes,
                    git=git,
                    cache=cache,
                    on_breaking_change=store.breaking_changes.append,
                )
            except RemoveMirrorDueToBreakingChange as e:
                logger.debug(e)
                continue
            store.mirrors[mirror.path] = mirror
        report_breaking_changes(store.breaking_changes)
        return store

    @classmethod
    def load(cls, lock: FileSystemLock, filepath: AbsFile, *, git: VersionControl, cache: GitCache) -> Self:
        with describe(f"Loading {GRAFT_CONFIG}", level="DEBUG"):
            config = Parser(filepath).parse(lock.read())
        return cls.from_config(config, git=git, cache=cache)

    def __iter__(self) -> Iterator[Mirror]:
        return iter(self.mirrors.values())

    def __len__(self) -> int:
        return len(self.mirrors)

    def get(self, path: str) -> Mirror:
        try:
            return self.mirrors[strip_trailing_slash(path)]
        except KeyError:
            raise MirrorNotFoundError(path) from None

    def select(self, path: str | None) -> list[Mirror]:
        return list(self) if path is None else [self.get(path)]

    def add(self, mirror: Mirror) -> None:
        if mirror.path in self.mirrors:
            raise MirrorExistsError(mirror.path)
        self.mirrors[mirror.path] = mirror

    def update(self, mirror: Mirror) -> None:
        self.get(mirror.path)
        self.mirrors[mirror.path] = mirror

    def remove(self, mirror: Mirror) -> None:
        self.get(mirror.path)
        del self.mirrors[mirror.path]

    @property
    def representation(self) -> dict[str, dict[str, dict[str, str | None]]]:
        return {"mirrors": {mirror.path: mirror.canonical_attributes for mirror in self}}

    def dump(self, f: SupportsWrite[str]) -> None:
        f.write(f"# {self.COMMENT}\n")
        f.write(yaml.safe_dump(self.representation, default_flow_style=False, sort_keys=False))

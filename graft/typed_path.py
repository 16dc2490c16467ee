from __future__ import annotations

from dataclasses import dataclass
import functools
import hashlib
import os.path
from pathlib import Path
from typing import Self, overload

from .utils import strip_trailing_slash


@dataclass(frozen=True, slots=True)
class TypedPath:
    """A path tagged with whether it is absolute and whether it names a file or a directory."""

    path: Path

    def __init__(self, path: Path | str | Self) -> None:
        if type(self) is TypedPath:
            raise TypeError()
        object.__setattr__(self, "path", Path(path))

    def exists(self) -> bool:
        return self.path.exists()

    def __fspath__(self) -> str:
        return self.path.__fspath__()

    def __str__(self) -> str:
        return repr(str(self.path))


@dataclass(frozen=True, slots=True, init=False)
class RelFile(TypedPath): ...


@dataclass(frozen=True, slots=True, init=False)
class AbsFile(TypedPath): ...


@dataclass(frozen=True, slots=True, init=False)
class RelDir(TypedPath): ...


@dataclass(frozen=True, slots=True, init=False)
class AbsDir(TypedPath):
    @overload
    def __truediv__(self, other: RelFile) -> AbsFile: ...
    @overload
    def __truediv__(self, other: RelDir) -> AbsDir: ...
    def __truediv__(self, other: object) -> TypedPath:
        # Joining anything but a relative path is a type error.
        if isinstance(other, RelFile):
            return AbsFile(self.path / other.path)
        if isinstance(other, RelDir):
            return AbsDir(self.path / other.path)
        return NotImplemented

    @classmethod
    def cwd(cls) -> Self:
        return cls(Path.cwd())


@dataclass(frozen=True, slots=True)
class GitDir(AbsDir):
    """The root of a git working tree; checked on construction unless `check=False`."""

    def __init__(self, root: AbsDir | Path | str, *, check: bool = True) -> None:
        AbsDir.__init__(self, root)
        if check:
            from .githelper import GitHelper

            GitHelper.repo(self)


@dataclass(frozen=True)
class Upstream:
    """The url (or local path) of an upstream repository."""

    url: str

    def __fspath__(self) -> str:
        return self.url

    def __str__(self) -> str:
        return repr(self.url)

    @property
    def canonical(self) -> str:
        if os.path.exists(self):
            # Distinguish common relative paths (eg ".").
            return os.path.realpath(self)
        return strip_trailing_slash(self.url)

    @functools.cached_property
    def hash(self) -> str:
        return hashlib.blake2b(
            bytes(self.canonical, encoding="utf-8", errors="ignore"), usedforsecurity=False
        ).hexdigest()

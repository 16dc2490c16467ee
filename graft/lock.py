from __future__ import annotations

from dataclasses import dataclass
import errno
import fcntl
from typing import TYPE_CHECKING, Protocol, Self

from .constants import GRAFT_NAME
from .typed_path import AbsFile
from .types import PyFile

if TYPE_CHECKING:
    from _typeshed import SupportsWrite


class WriteableState(Protocol):
    def dump(self, f: SupportsWrite[str]) -> None: ...


@dataclass(frozen=True)
class FileSystemLock:
    """An exclusive `flock` on a file that is read at the start and rewritten at the end."""

    file: PyFile

    def __del__(self) -> None:
        self.release()

    @classmethod
    def open(cls, filepath: AbsFile) -> Self:
        file = open(filepath, "a+")  # noqa: SIM115
        lock = cls.acquire_non_blocking(file)
        if lock is None:
            file.close()
            raise OSError(
                f"{filepath.path} is in use by another {GRAFT_NAME} process. Wait for it to finish then try again."
            )
        return lock

    @classmethod
    def acquire_non_blocking(cls, file: PyFile) -> Self | None:
        try:
            fcntl.flock(file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            if e.errno == errno.EWOULDBLOCK:
                return None
            raise e
        return cls(file)

    def release(self) -> None:
        self.file.close()

    def dump(self, state: WriteableState) -> None:
        self.file.seek(0)
        self.file.truncate()
        state.dump(self.file)
        self.file.flush()

    def read(self) -> PyFile:
        self.file.seek(0)
        return self.file

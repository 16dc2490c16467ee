from collections.abc import Callable, Iterable
from dataclasses import KW_ONLY, dataclass
import functools
import inspect
import sys
from types import TracebackType
from typing import ClassVar, Final, Literal

from loguru import logger

from .constants import DONE_SUFFIX, FAILURE_SUFFIX, GRAFT_CONFIG, LOADING_SUFFIX
from .utils import strict_cast

# From quietest to most verbose; -q and -v move one step from INFO.
LOG_LEVELS: Final = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "TRACE")


def _caller_depth() -> int:
    """Return the depth, relative to the logging call, of the first frame outside this file."""
    for depth, frameinfo in enumerate(inspect.stack()[1:]):
        if frameinfo.filename != __file__:
            return depth
    return 0


@dataclass(frozen=True, slots=True)
class describe:  # noqa: N801
    """Log `message` when a step starts and again with its outcome.

    Works as a context manager and as a decorator. Failures are logged at
    `error_level` and the exception propagates.
    """

    message: str
    _: KW_ONLY
    level: str = "TRACE"
    error_level: str = "ERROR"

    def _log(self, level: str, suffix: str) -> None:
        logger.opt(depth=_caller_depth()).log(level, f"{self.message} {suffix}")

    def __enter__(self) -> None:
        self._log(self.level, LOADING_SUFFIX)

    def __exit__(
        self,
        type_: type[BaseException] | None,
        value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if type_ is None:
            self._log(self.level, DONE_SUFFIX)
        else:
            self._log(self.error_level, FAILURE_SUFFIX)

    def __call__[**P, R](self, fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def logging_fn(*args: P.args, **kwargs: P.kwargs) -> R:
            with self:
                return fn(*args, **kwargs)

        return logging_fn


class ProgramState:
    type CommandName = Literal["add", "diff", "status", "remove"]
    command: ClassVar[CommandName]
    # Commands that rewrite the configuration.
    SAVING_COMMANDS: ClassVar[frozenset[str]] = frozenset({"add", "remove"})

    @classmethod
    def record_command[**P, R](cls, command: Callable[P, R]) -> Callable[P, R]:
        command_name = strict_cast(cls.CommandName, command.__name__)

        @functools.wraps(command)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            cls.command = command_name
            return command(*args, **kwargs)

        return wrapper

    @classmethod
    def saves_config(cls) -> bool:
        return getattr(cls, "command", None) in cls.SAVING_COMMANDS


def report_breaking_changes(descriptions: Iterable[str]) -> None:
    descriptions = list(descriptions)
    if not descriptions:
        return
    logger.warning(f"{GRAFT_CONFIG} uses features that are no longer supported:")
    for description in descriptions:
        logger.warning(description)
    if not ProgramState.saves_config():
        logger.warning(f"{GRAFT_CONFIG} will be updated the next time a mirror is added or removed.")


def log_level_name(quiet: int, verbose: int) -> str | int:
    index = LOG_LEVELS.index("INFO") + verbose - quiet
    if index < 0:
        return logger.level("CRITICAL").no
    if index >= len(LOG_LEVELS):
        return 0
    return LOG_LEVELS[index]


def setup_logger(quiet: int, verbose: int) -> None:
    logger.remove()
    logger.add(sys.stdout, level=log_level_name(quiet, verbose), format="<level>{message}</level>")

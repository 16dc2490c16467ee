from collections.abc import Generator
import os
from pathlib import Path
import sys

import git
from loguru import logger
import pytest
from pytest import FixtureRequest, LogCaptureFixture, MonkeyPatch

from .cache import GitCache
from .constants import LOCAL_CACHE_DIR_VARIABLE, USE_LOCAL_CACHE_VARIABLE
from .logger import ProgramState
from .test_utils import configure_identity
from .typed_path import AbsDir, GitDir, RelDir


@pytest.fixture
def typed_tmp_path(tmp_path: Path) -> AbsDir:
    return AbsDir(tmp_path)


@pytest.fixture
def local_git_repo(
    typed_tmp_path: AbsDir, request: FixtureRequest
) -> Generator[GitDir]:
    local = typed_tmp_path / RelDir("host")
    local.path.mkdir()
    configure_identity(git.Repo.init(os.fspath(local), initial_branch="master"))
    os.chdir(local)
    yield GitDir(local)
    os.chdir(request.config.invocation_params.dir)


@pytest.fixture
def cache(typed_tmp_path: AbsDir) -> GitCache:
    return GitCache(typed_tmp_path / RelDir("cache"), enabled=False)


@pytest.fixture(autouse=True)
def isolate_cache(typed_tmp_path: AbsDir, monkeypatch: MonkeyPatch) -> None:
    monkeypatch.delenv(USE_LOCAL_CACHE_VARIABLE, raising=False)
    monkeypatch.setenv(LOCAL_CACHE_DIR_VARIABLE, os.fspath(typed_tmp_path / RelDir("cache")))


@pytest.fixture(autouse=True)
def log_everything() -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="TRACE",
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{file.path}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    )


@pytest.fixture
def log_cleanly(caplog: LogCaptureFixture, log_level: str) -> None:
    logger.remove()
    logger.add(caplog.handler, level=log_level, colorize=False, format="{message}")


@pytest.fixture(autouse=True)
def set_mock_command() -> None:
    ProgramState.command = "test"  # type: ignore [assignment]

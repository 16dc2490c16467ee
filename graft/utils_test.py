from typing import Literal, Never, cast

import pytest

from .utils import repo_basename, strict_cast, strict_not_none, strip_trailing_slash


def test_not_none_none_only() -> None:
    with pytest.raises(TypeError):
        _: Never = strict_not_none(None)


def test_not_none_not_none() -> None:
    x: int = strict_not_none(cast(int | None, 5))
    assert x == 5


def test_not_none_is_none() -> None:
    with pytest.raises(TypeError):
        _: int = strict_not_none(cast(int | None, None))


type Command = Literal["add", "remove"]


def test_strict_cast() -> None:
    assert strict_cast(int, 3) == 3
    assert strict_cast(Command, "add") == "add"
    with pytest.raises(TypeError):
        strict_cast(str, 3)
    with pytest.raises(TypeError):
        strict_cast(Command, "status")


@pytest.mark.parametrize(
    "path, expected",
    [
        ("vendor/lib", "vendor/lib"),
        ("vendor/lib/", "vendor/lib"),
        # only one slash is removed
        ("vendor/lib//", "vendor/lib/"),
        ("", ""),
    ],
)
def test_strip_trailing_slash(path: str, expected: str) -> None:
    assert strip_trailing_slash(path) == expected


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://example.com/lib.git", "lib"),
        ("https://example.com/lib", "lib"),
        ("git@example.com:org/lib.git", "lib"),
        ("../lib.git", "lib"),
        ("https://example.com/lib.js", "lib.js"),
        ("https://example.com/lib.git.git", "lib.git"),
    ],
)
def test_repo_basename(url: str, expected: str) -> None:
    assert repo_basename(url) == expected

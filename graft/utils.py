import posixpath
import typing
from typing import Any, Literal, TypeAliasType, overload


def strict_not_none[T](not_none: T | None, /) -> T:
    if not_none is None:
        raise TypeError()
    return not_none


@overload
def strict_cast[T](type_: type[T], expr: Any, /) -> T: ...


@overload
def strict_cast(type_: object, expr: Any, /) -> Any: ...


def strict_cast(type_: object, expr: Any, /) -> Any:
    if isinstance(type_, TypeAliasType):
        return strict_cast(type_.__value__, expr)
    if typing.get_origin(type_) is Literal:
        if expr in typing.get_args(type_):
            return expr
        raise TypeError()
    if not isinstance(expr, type_):  # type: ignore
        raise TypeError()
    return expr


def strip_trailing_slash(path: str, /) -> str:
    """Remove a single trailing slash (`a/b/` -> `a/b`, `a//` -> `a/`)."""
    return path.removesuffix("/")


def repo_basename(url_or_path: str, /) -> str:
    name = posixpath.basename(url_or_path)
    if posixpath.splitext(name)[1] == ".git":
        return name.removesuffix(".git")
    return name

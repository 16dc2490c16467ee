from __future__ import annotations

from collections.abc import Callable, Collection
from dataclasses import dataclass, field
import difflib
import functools
import inspect
from typing import TYPE_CHECKING, Any, NoReturn, cast

import yaml
from yaml import MappingNode, Node, ScalarNode, SequenceNode, YAMLError
from yaml.constructor import SafeConstructor

from .config import GraftConfig, MirrorEntry
from .mirror import ATTRIBUTES, LEGACY_ATTRIBUTES
from .typed_path import AbsFile, RelFile
from .utils import strip_trailing_slash

if TYPE_CHECKING:
    from _typeshed import SupportsRead

NULL_TAG = "tag:yaml.org,2002:null"
BOOL_TAG = "tag:yaml.org,2002:bool"
SCALAR_NAMES = {
    NULL_TAG: "null",
    BOOL_TAG: "boolean",
    "tag:yaml.org,2002:int": "integer",
    "tag:yaml.org,2002:float": "float",
}
BOOLEAN_ATTRIBUTES = frozenset({"lock", "squashed"})


@dataclass(frozen=True, slots=True)
class Context:
    filename: RelFile | AbsFile
    node: Node


@dataclass
class ParserError(YAMLError):
    msg: str
    context: Context

    @property
    def position(self) -> str:
        position = str(self.context.filename.path)
        if self.context.node.start_mark is not None:
            position = f"{position}:{self.context.node.start_mark.line + 1}:{self.context.node.start_mark.column + 1}"
        return position

    def __str__(self) -> str:
        return f"An unexpected error occurred during parsing @ {self.position}: {self.msg}"


@dataclass
class Parser:
    filepath: AbsFile | RelFile
    _node: Node = field(
        init=False, repr=False, hash=False, compare=False, default=Node("", None, None, None)
    )
    _visited_paths: dict[str, Node] = field(
        init=False, repr=False, hash=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        self._wrap_methods()

    def _wrap_methods(self) -> None:
        for attr in dir(self):
            method = getattr(self, attr)
            if not attr.startswith("__") and inspect.ismethod(method):
                setattr(self, attr, self._context_wrap(method))

    def _context_wrap[**P, R](self, method: Callable[P, R]) -> Callable[P, R]:
        signature = inspect.signature(method, eval_str=False)

        @functools.wraps(method)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            binding = signature.bind(*args, **kwargs)
            node = binding.arguments.get("node")
            if node is None or node is self._node:
                return method(*args, **kwargs)
            previous_node = self._node
            self._node = node
            try:
                return method(*args, **kwargs)
            finally:
                self._node = previous_node

        return wrapper

    @property
    def context(self) -> Context:
        return Context(self.filepath, self._node)

    def fail(self, message: str, *, node: Node | None = None) -> NoReturn:
        raise ParserError(message, self.context if node is None else Context(self.filepath, node))

    def type_of(self, node: Node) -> str:
        match node:
            case ScalarNode(tag=tag) if tag in SCALAR_NAMES:
                return SCALAR_NAMES[tag]
            case ScalarNode(value=""):
                return "empty string"
            case ScalarNode():
                return "string"
            case SequenceNode():
                return "sequence"
            case MappingNode():
                return "mapping"
            case _:
                return "unknown"

    def parse_string_key[T: str](self, node: Node, options: Collection[T]) -> T:
        match node:
            case ScalarNode() if isinstance(key := node.value, str):
                if key in options:
                    return cast(T, key)
                suggestions = difflib.get_close_matches(key, possibilities=options, n=1)
                if suggestions:
                    [suggestion] = suggestions
                    message = f"invalid key {key!r}, did you mean {suggestion!r}?"
                else:
                    message = f"mapping key should be one of {list(options)!r}, got {key!r}."
                self.fail(message, node=node)
        return self.fail(f"expected a string as the key, got {self.type_of(node)}.", node=node)

    def parse_optional_string(self, node: Node) -> str | None:
        match node:
            case ScalarNode(tag=tag) if tag == NULL_TAG:
                return None
            case ScalarNode(tag=tag) if tag != BOOL_TAG:
                # Unquoted abbreviated revisions may be read as numbers.
                return node.value
        return self.fail(f"expected a string or null, got {self.type_of(node)}.")

    def parse_optional_bool(self, node: Node) -> bool | None:
        match node:
            case ScalarNode(tag=tag) if tag == NULL_TAG:
                return None
            case ScalarNode(tag=tag) if tag == BOOL_TAG:
                return SafeConstructor().construct_yaml_bool(node)
        return self.fail(f"expected a boolean, got {self.type_of(node)}.")

    def parse_attributes(self, node: Node) -> dict[str, Any]:
        attributes: dict[str, Any] = {}
        match node:
            case MappingNode():
                key_node: Node
                value_node: Node
                for key_node, value_node in node.value:
                    key = self.parse_string_key(key_node, options=ATTRIBUTES + LEGACY_ATTRIBUTES)
                    if key in attributes:
                        self.fail(f"duplicate key {key!r} in mapping.", node=key_node)
                    if key in BOOLEAN_ATTRIBUTES:
                        attributes[key] = self.parse_optional_bool(value_node)
                    else:
                        attributes[key] = self.parse_optional_string(value_node)
            case _:
                self.fail(f"expected attributes mapping, got {self.type_of(node)}.")
        if attributes.get("url") is None:
            self.fail("attributes mapping is missing the key 'url'.")
        return attributes

    def parse_mirror_path(self, node: Node) -> str:
        match node:
            case ScalarNode() if node.tag != NULL_TAG and node.value:
                path = strip_trailing_slash(node.value)
                if existing_node := self._visited_paths.get(path):
                    line_details = (
                        ""
                        if existing_node.start_mark is None
                        else f"; already used on line {existing_node.start_mark.line + 1}"
                    )
                    self.fail(f"duplicate mirror {path!r}{line_details}.", node=node)
                self._visited_paths[path] = node
                return path
        return self.fail(f"expected the mirror path as a string, got {self.type_of(node)}.", node=node)

    def parse_mirrors(self, node: Node) -> list[MirrorEntry]:
        match node:
            case MappingNode():
                return [
                    MirrorEntry(
                        path=self.parse_mirror_path(path_node),
                        attributes=self.parse_attributes(attributes_node),
                    )
                    for path_node, attributes_node in node.value
                ]
            case ScalarNode(tag=tag) if tag == NULL_TAG:
                return []
        return self.fail(f"expected mirrors mapping, got {self.type_of(node)}.")

    def parse_graft_config(self, node: Node) -> GraftConfig:
        mirrors = None
        match node:
            case MappingNode():
                key_node: Node
                value_node: Node
                for key_node, value_node in node.value:
                    self.parse_string_key(key_node, options=["mirrors"])
                    if mirrors is not None:
                        self.fail("duplicate key 'mirrors' in mapping.", node=key_node)
                    mirrors = self.parse_mirrors(value_node)
            case _:
                self.fail(f"expected graft mapping, got {self.type_of(node)}.")
        if mirrors is None:
            self.fail("graft mapping is missing the key 'mirrors'.")
        return GraftConfig(mirrors)

    def parse(self, f: SupportsRead[str]) -> GraftConfig:
        tree = yaml.compose(f, Loader=yaml.SafeLoader)
        if tree is None:
            return GraftConfig()
        return self.parse_graft_config(tree)

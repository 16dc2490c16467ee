from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, kw_only=True, slots=True)
class MirrorEntry:
    path: str
    attributes: dict[str, Any]


@dataclass(frozen=True, slots=True)
class GraftConfig:
    mirrors: list[MirrorEntry] = field(default_factory=list)

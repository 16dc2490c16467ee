"""Comparison of dotted tool versions such as `2.39.3` or `1.5.5.1.98.gf0ec4`."""

import itertools


def _component(value: str) -> int | str:
    return int(value) if value.isdecimal() else value


def satisfies(actual: str, required: str) -> bool:
    """Return whether `actual` is at least `required`.

    Components are compared pairwise; two numeric components compare as integers and
    anything else compares as strings. The first difference decides. If one version is
    a prefix of the other, the longer one is greater.
    """
    for actual_part, required_part in itertools.zip_longest(
        actual.split("."), required.split(".")
    ):
        if actual_part is None:
            return False
        if required_part is None:
            return True
        match _component(actual_part), _component(required_part):
            case int() as a, int() as r:
                if a != r:
                    return a > r
            case _ if actual_part != required_part:
                return actual_part > required_part
    return True

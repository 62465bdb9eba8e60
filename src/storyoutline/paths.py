"""Path grammar for the outline.

A path looks like ``/v1/a2/p3/c41``. Its depth determines the node type and its last
segment carries a one-letter prefix plus an ordinal (a global chapter index for chapters).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Union

NodeType = Literal["volume", "act", "plot_point", "chapter"]
ParentType = Literal["root", "volume", "act", "plot_point"]

ROOT = "/"

NODE_TYPES: tuple[NodeType, ...] = ("volume", "act", "plot_point", "chapter")

PREFIX_BY_TYPE: dict[str, str] = {
    "volume": "v",
    "act": "a",
    "plot_point": "p",
    "chapter": "c",
}

PARENT_TYPE_BY_TYPE: dict[str, ParentType] = {
    "volume": "root",
    "act": "volume",
    "plot_point": "act",
    "chapter": "plot_point",
}

_INDEX_REF_RE = re.compile(r"^c?(\d+)$")


def segments(path: str) -> list[str]:
    """Split a path into its non-empty segments."""

    return [p for p in path.split("/") if p]


def depth(path: str) -> int:
    """Return the number of segments; the root has depth 0."""

    return len(segments(path))


def classify(path: str) -> NodeType | None:
    """Classify a path by depth and the prefix of its last segment.

    Intermediate segments are not inspected.

    >>> classify("/v1/a1/p1/c7")
    'chapter'
    >>> classify("/v1/a1/p1/c7/x1") is None
    True
    """

    parts = segments(path)
    if not parts or len(parts) > len(NODE_TYPES):
        return None
    node_type = NODE_TYPES[len(parts) - 1]
    if parts[-1].startswith(PREFIX_BY_TYPE[node_type]):
        return node_type
    return None


def parent_path(path: str) -> str:
    """Strip the last segment. Volumes (and anything shallower) map to the root."""

    parts = segments(path)
    if len(parts) <= 1:
        return ROOT
    return "/" + "/".join(parts[:-1])


def child_path(parent: str, prefix: str, ordinal: int) -> str:
    """Build the path of a child under ``parent``."""

    if parent == ROOT:
        return f"/{prefix}{ordinal}"
    return f"{parent}/{prefix}{ordinal}"


def segment_ordinal(segment: str, prefix: str) -> int | None:
    """Return the integer after ``prefix`` in a segment, or None."""

    if not segment.startswith(prefix):
        return None
    digits = segment[len(prefix):]
    if not digits.isdigit():
        return None
    return int(digits)


def is_descendant(path: str, ancestor: str) -> bool:
    """True when ``path`` lies strictly below ``ancestor``."""

    if ancestor == ROOT:
        return path.startswith("/") and path != ROOT
    return path.startswith(ancestor + "/")


@dataclass(frozen=True)
class GlobalIndex:
    """Chapter addressed by its book-wide index."""

    index: int


@dataclass(frozen=True)
class PathReference:
    """Node addressed by its full path."""

    path: str


Reference = Union[GlobalIndex, PathReference]


def parse_reference(ref: str | int) -> Reference:
    """Parse a user supplied reference once.

    ``"51"`` and ``"c51"`` are global chapter indices; everything else is a path.
    """

    if isinstance(ref, int):
        return GlobalIndex(ref)
    text = ref.strip()
    match = _INDEX_REF_RE.match(text)
    if match:
        return GlobalIndex(int(match.group(1)))
    return PathReference(text)

"""storyoutline: a path-addressed store for volume → act → plot point → chapter outlines."""

from __future__ import annotations

from storyoutline.errors import (
    DuplicateChapterIndex,
    InvalidNodeType,
    InvalidPath,
    NotFound,
    OutlineError,
    ParentMissing,
    PersistenceFailure,
    TypeMismatch,
)
from storyoutline.paths import GlobalIndex, PathReference, classify, parse_reference
from storyoutline.store import Diagnostic, OutlineStore

__version__ = "0.1.0"

__all__ = [
    "Diagnostic",
    "DuplicateChapterIndex",
    "GlobalIndex",
    "InvalidNodeType",
    "InvalidPath",
    "NotFound",
    "OutlineError",
    "OutlineStore",
    "ParentMissing",
    "PathReference",
    "PersistenceFailure",
    "TypeMismatch",
    "classify",
    "parse_reference",
]

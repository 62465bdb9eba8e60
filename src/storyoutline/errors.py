"""Error taxonomy for the outline store.

Structural errors are raised internally and converted to null results at the
`OutlineStore` boundary. `PersistenceFailure` is the only one that escapes.
"""

from __future__ import annotations

from typing import Any


class OutlineError(Exception):
    """Base class for outline errors."""

    kind = "outline_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class InvalidPath(OutlineError):
    """Malformed or wrong-depth path."""

    kind = "invalid_path"


class NotFound(OutlineError):
    """Node absent or reference unresolvable."""

    kind = "not_found"


class ParentMissing(OutlineError):
    """Parent path does not exist."""

    kind = "parent_missing"


class TypeMismatch(OutlineError):
    """Node type does not fit the expected parent/child relation."""

    kind = "type_mismatch"


class InvalidNodeType(TypeMismatch):
    """Unknown node type or missing type-specific field."""

    kind = "invalid_node_type"


class DuplicateChapterIndex(OutlineError):
    """A chapter already occupies the computed path."""

    kind = "duplicate_chapter_index"


class PersistenceFailure(OutlineError):
    """Underlying storage read or write failed."""

    kind = "persistence_failure"


RECOVERABLE_ERRORS: tuple[type[OutlineError], ...] = (
    InvalidPath,
    NotFound,
    ParentMissing,
    TypeMismatch,
    DuplicateChapterIndex,
)

"""MemoryDocumentStore: keep the outline as an in-memory JSON snapshot."""

from __future__ import annotations

import copy
from typing import Any

from storyoutline.models.document import OutlineDocument
from storyoutline.storage.protocol import DocumentStore


class MemoryDocumentStore(DocumentStore):
    """Store that holds the serialized document in memory.

    Every load returns a fresh document, so unsaved mutations never leak back.
    """

    def __init__(self, initial: dict[str, Any] | OutlineDocument | None = None) -> None:
        if isinstance(initial, OutlineDocument):
            initial = initial.to_json_dict()
        self._snapshot: dict[str, Any] | None = copy.deepcopy(initial)
        self.load_count = 0
        self.save_count = 0

    @property
    def location(self) -> str:
        return "memory"

    @property
    def snapshot(self) -> dict[str, Any] | None:
        """The last saved document in its persisted layout."""
        return copy.deepcopy(self._snapshot)

    def load(self) -> OutlineDocument:
        self.load_count += 1
        if self._snapshot is None:
            document = OutlineDocument()
            self.save(document)
            return document
        return OutlineDocument.model_validate(copy.deepcopy(self._snapshot))

    def save(self, document: OutlineDocument) -> None:
        self.save_count += 1
        self._snapshot = document.to_json_dict()

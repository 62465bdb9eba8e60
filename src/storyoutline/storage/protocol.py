"""Protocol definitions for pluggable document stores."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from storyoutline.models.document import OutlineDocument


class AsyncDocumentStoreMixin:
    """Provides async variants of `load`/`save` by offloading to a worker thread."""

    async def aload(self) -> OutlineDocument:
        """Asynchronously load the whole document."""
        return await asyncio.to_thread(self.load)  # type: ignore[attr-defined]

    async def asave(self, document: OutlineDocument) -> None:
        """Asynchronously persist the whole document."""
        await asyncio.to_thread(self.save, document)  # type: ignore[attr-defined]


class DocumentStore(AsyncDocumentStoreMixin, ABC):
    """Read-all / write-all storage for one outline document.

    Implementations raise `PersistenceFailure` on any storage error. A missing document
    loads as an empty one.
    """

    @abstractmethod
    def load(self) -> OutlineDocument:
        """Load the whole document."""

    @abstractmethod
    def save(self, document: OutlineDocument) -> None:
        """Replace the stored document with ``document``."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Human readable location, used in logs."""

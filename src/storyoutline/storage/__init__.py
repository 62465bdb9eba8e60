"""Document stores for the outline.

Provides pluggable read-all / write-all persistence for the outline document.
"""

from __future__ import annotations

from storyoutline.storage.json_file import JsonFileDocumentStore
from storyoutline.storage.memory import MemoryDocumentStore
from storyoutline.storage.nested_source import load_nested_outline
from storyoutline.storage.protocol import AsyncDocumentStoreMixin, DocumentStore

__all__ = [
    "AsyncDocumentStoreMixin",
    "DocumentStore",
    "JsonFileDocumentStore",
    "MemoryDocumentStore",
    "load_nested_outline",
]

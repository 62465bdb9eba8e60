"""Path-addressed outline store.

`OutlineStore` owns the four node mappings for the duration of one operation. Every public
operation loads the full document, works on it in memory and, for mutations, saves the full
document before returning. Operations issued through the same store on one event loop are
serialized by an `asyncio.Lock` created for that loop; two stores over the same file are still
last-writer-wins.

Structural failures (bad path, missing node, wrong parent type, duplicate chapter index) are
logged, recorded in `diagnostics` and turned into ``None``/``False``/``[]``.
`PersistenceFailure` propagates.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from storyoutline.config import Settings
from storyoutline.errors import (
    RECOVERABLE_ERRORS,
    DuplicateChapterIndex,
    InvalidNodeType,
    InvalidPath,
    NotFound,
    OutlineError,
    ParentMissing,
    PersistenceFailure,
    TypeMismatch,
)
from storyoutline.logging import get_logger, log_exception, operation_context
from storyoutline.migration import flatten_nested
from storyoutline.models.document import OutlineDocument
from storyoutline.models.nested import NestedOutline
from storyoutline.models.nodes import NODE_CLASSES, BaseNode, ChapterNode, VolumeNode
from storyoutline.paths import (
    PARENT_TYPE_BY_TYPE,
    PREFIX_BY_TYPE,
    ROOT,
    GlobalIndex,
    child_path,
    classify,
    depth,
    is_descendant,
    parent_path,
    parse_reference,
    segment_ordinal,
    segments,
)
from storyoutline.storage.json_file import JsonFileDocumentStore
from storyoutline.storage.nested_source import load_nested_outline
from storyoutline.storage.protocol import DocumentStore

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Diagnostic:
    """A recovered failure, kept for callers that want more than a null result."""

    operation: str
    kind: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _coerce_index(value: Any) -> int:
    """Accept ints, integral floats and digit strings as a chapter index."""
    if isinstance(value, bool):
        raise InvalidNodeType("Chapter index must be an integer", index=value)
    if isinstance(value, int):
        index = value
    elif isinstance(value, float) and value.is_integer():
        index = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        index = int(value.strip())
    else:
        raise InvalidNodeType("Chapter index must be an integer", index=value)
    if index < 0:
        raise InvalidNodeType("Chapter index must be non-negative", index=index)
    return index


class OutlineStore:
    """CRUD and query operations over a path-keyed outline document."""

    def __init__(
        self,
        documents: DocumentStore,
        *,
        nested_source: str | Path | None = None,
        default_window_size: int = 2,
        diagnostics_limit: int = 100,
    ) -> None:
        """Initialize the store.

        Args:
            documents: Persistence for the flat document.
            nested_source: Default nested outline file for `migrate_from_nested`.
            default_window_size: Chapters on each side returned by `get_chapter_window`.
            diagnostics_limit: Number of recovered failures kept in `diagnostics`.
        """
        self._documents = documents
        self._nested_source = Path(nested_source) if nested_source is not None else None
        self.default_window_size = default_window_size
        self.diagnostics: deque[Diagnostic] = deque(maxlen=diagnostics_limit)
        self.revision = 0
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> OutlineStore:
        """Build a JSON-file backed store from settings."""
        return cls(
            JsonFileDocumentStore(settings.outline_path),
            nested_source=settings.nested_outline_path,
            default_window_size=settings.default_window_size,
            diagnostics_limit=settings.diagnostics_limit,
        )

    def _loop_lock(self) -> asyncio.Lock:
        """The operation lock for the running event loop, recreated when the loop changes."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    @property
    def last_diagnostic(self) -> Diagnostic | None:
        return self.diagnostics[-1] if self.diagnostics else None

    # --- operation plumbing ---

    async def _run(
        self,
        op: str,
        ref: str | None,
        action: Callable[[OutlineDocument], T],
        *,
        failure: T,
        mutates: bool = False,
    ) -> T:
        with operation_context(op, ref):
            async with self._loop_lock():
                document = await self._documents.aload()
                self.revision = document.revision
                try:
                    result = action(document)
                except RECOVERABLE_ERRORS as e:
                    self._record(op, e)
                    return failure
                if mutates:
                    await self._save(document)
                return result

    async def _save(self, document: OutlineDocument) -> None:
        document.revision += 1
        try:
            await self._documents.asave(document)
        except PersistenceFailure:
            log_exception(logger, "Saving outline failed", location=self._documents.location)
            raise
        self.revision = document.revision

    def _record(self, op: str, error: OutlineError) -> None:
        logger.warning("%s failed: %s", op, error.message, extra={"kind": error.kind, **error.context})
        self.diagnostics.append(
            Diagnostic(operation=op, kind=error.kind, message=error.message, context=dict(error.context))
        )

    # --- resolution helpers (operate on a loaded document) ---

    @staticmethod
    def _chapter_path_by_index(document: OutlineDocument, index: int) -> str | None:
        for path, chapter in document.chapters.items():
            if chapter.index == index:
                return path
        return None

    def _resolve(self, document: OutlineDocument, ref: str) -> str:
        """Turn a chapter index reference into its path; other paths pass through."""
        reference = parse_reference(ref)
        if isinstance(reference, GlobalIndex):
            path = self._chapter_path_by_index(document, reference.index)
            if path is None:
                raise NotFound("Cannot resolve chapter reference", reference=ref)
            return path
        return reference.path

    @staticmethod
    def _lookup(document: OutlineDocument, path: str) -> BaseNode:
        node_type = classify(path)
        if node_type is None:
            raise InvalidPath("Invalid path format", path=path)
        node = document.collection(node_type).get(path)
        if node is None:
            raise NotFound("Node not found", path=path)
        return node

    # --- reference resolution ---

    async def resolve_reference(self, ref: str) -> str | None:
        """Resolve ``"51"``, ``"c51"`` or a chapter path to the canonical chapter path."""

        def action(document: OutlineDocument) -> str:
            reference = parse_reference(ref)
            if isinstance(reference, GlobalIndex):
                return self._resolve(document, ref)
            if classify(reference.path) == "chapter" and reference.path in document.chapters:
                return reference.path
            raise NotFound("Not a known chapter reference", reference=ref)

        return await self._run("resolve_reference", ref, action, failure=None)

    # --- reads ---

    async def get_node(self, ref: str) -> BaseNode | None:
        """Return the node addressed by ``ref`` with its path attached."""

        def action(document: OutlineDocument) -> BaseNode:
            path = self._resolve(document, ref)
            node = self._lookup(document, path).at(path)
            logger.debug("get_node success", extra={"path": path})
            return node

        return await self._run("get_node", ref, action, failure=None)

    async def get_children(self, parent: str) -> list[BaseNode]:
        """Return direct children of ``parent`` (``/`` lists volumes). Order is unspecified."""

        def action(document: OutlineDocument) -> list[BaseNode]:
            target_depth = depth(parent) + 1
            children: list[BaseNode] = []
            for collection in document.collections():
                for path, node in collection.items():
                    if is_descendant(path, parent) and depth(path) == target_depth:
                        children.append(node.at(path))
            logger.debug("get_children success", extra={"parent": parent, "count": len(children)})
            return children

        return await self._run("get_children", parent, action, failure=[])

    async def get_all_chapters_sorted(self) -> list[ChapterNode]:
        """All chapters ordered by their global index."""
        return await self._run("get_all_chapters_sorted", None, self._sorted_chapters, failure=[])

    @staticmethod
    def _sorted_chapters(document: OutlineDocument) -> list[ChapterNode]:
        chapters = [node.at(path) for path, node in document.chapters.items()]
        chapters.sort(key=lambda ch: ch.index)  # type: ignore[attr-defined]
        return chapters  # type: ignore[return-value]

    async def get_chapter_window(self, ref: str, window_size: int | None = None) -> list[ChapterNode]:
        """Chapters within ``window_size`` list positions of ``ref`` in global index order.

        The window is counted in positions of the sorted chapter list, so gaps in the
        index sequence do not widen it. Negative sizes are treated as zero.
        """
        size = self.default_window_size if window_size is None else max(0, int(window_size))

        def action(document: OutlineDocument) -> list[ChapterNode]:
            center = self._resolve(document, ref)
            if classify(center) != "chapter":
                raise TypeMismatch("Path is not a chapter path", path=center)
            chapters = self._sorted_chapters(document)
            position = next((i for i, ch in enumerate(chapters) if ch.path == center), None)
            if position is None:
                raise NotFound("Center chapter not found", path=center)
            window = chapters[max(0, position - size) : position + size + 1]
            logger.debug(
                "get_chapter_window success",
                extra={"center": center, "size": size, "indices": [ch.index for ch in window]},
            )
            return window

        return await self._run("get_chapter_window", ref, action, failure=[])

    async def get_volume_info_by_path(self, path: str) -> VolumeNode | None:
        """Return the volume at ``path``; None when absent or not a volume."""
        return await self._get_typed("get_volume_info_by_path", path, "volume")  # type: ignore[return-value]

    async def get_chapter_outline_by_path(self, ref: str) -> ChapterNode | None:
        """Return the chapter addressed by ``ref``; None when absent or not a chapter."""
        return await self._get_typed("get_chapter_outline_by_path", ref, "chapter")  # type: ignore[return-value]

    async def _get_typed(self, op: str, ref: str, expected: str) -> BaseNode | None:
        def action(document: OutlineDocument) -> BaseNode:
            path = self._resolve(document, ref)
            node = self._lookup(document, path)
            if node.type != expected:  # type: ignore[attr-defined]
                raise TypeMismatch(
                    f"Node is not a {expected}",
                    path=path,
                    actual=node.type,  # type: ignore[attr-defined]
                )
            return node.at(path)

        return await self._run(op, ref, action, failure=None)

    # --- mutations ---

    async def add_node(self, parent: str, data: Mapping[str, Any]) -> str | None:
        """Create a node under ``parent`` and return its path.

        ``data`` must contain ``type`` and ``title``; chapters also need ``index``. Any other
        top-level field is folded into ``metadata``, overriding same-named metadata keys.
        """

        def action(document: OutlineDocument) -> str:
            return self._add(document, parent, data)

        return await self._run("add_node", parent, action, failure=None, mutates=True)

    def _add(self, document: OutlineDocument, parent: str, data: Mapping[str, Any]) -> str:
        payload = dict(data)
        node_type = payload.pop("type", None)
        title = payload.pop("title", None)
        index = payload.pop("index", None)
        metadata = payload.pop("metadata", None)

        if parent != ROOT:
            try:
                self._lookup(document, parent)
            except (InvalidPath, NotFound) as e:
                raise ParentMissing("Parent path does not exist", parent=parent) from e

        if node_type not in PARENT_TYPE_BY_TYPE:
            raise InvalidNodeType("Invalid node type specified", type=node_type)

        expected_parent = PARENT_TYPE_BY_TYPE[node_type]
        actual_parent = "root" if parent == ROOT else classify(parent)
        if actual_parent != expected_parent:
            raise TypeMismatch(
                "Cannot add node type to this parent type",
                type=node_type,
                parent=parent,
                parent_type=actual_parent,
                expected_parent_type=expected_parent,
            )

        if not isinstance(title, str):
            raise InvalidNodeType("Node title is required", type=node_type)
        if metadata is not None and not isinstance(metadata, Mapping):
            raise InvalidNodeType("metadata must be an object", type=node_type)

        prefix = PREFIX_BY_TYPE[node_type]
        fields: dict[str, Any] = {"title": title, "metadata": {**(metadata or {}), **payload}}

        if node_type == "chapter":
            if index is None:
                raise InvalidNodeType("Chapter index is required", parent=parent)
            chapter_index = _coerce_index(index)
            new_path = child_path(parent, prefix, chapter_index)
            existing = self._chapter_path_by_index(document, chapter_index)
            if existing is None and new_path in document.chapters:
                existing = new_path
            if existing is not None:
                raise DuplicateChapterIndex(
                    "Chapter index already in use",
                    index=chapter_index,
                    existing_path=existing,
                    requested_path=new_path,
                )
            fields["index"] = chapter_index
        else:
            new_path = child_path(parent, prefix, self._next_ordinal(document, parent, node_type))

        node = NODE_CLASSES[node_type](**fields)
        document.collection(node_type)[new_path] = node
        logger.info("add_node success", extra={"path": new_path, "type": node_type})
        return new_path

    @staticmethod
    def _next_ordinal(document: OutlineDocument, parent: str, node_type: str) -> int:
        """One past the largest sibling ordinal with this type's prefix (1 when none)."""
        prefix = PREFIX_BY_TYPE[node_type]
        target_depth = depth(parent) + 1
        highest = 0
        for path in document.collection(node_type):
            if not is_descendant(path, parent) or depth(path) != target_depth:
                continue
            ordinal = segment_ordinal(segments(path)[-1], prefix)
            if ordinal is not None and ordinal > highest:
                highest = ordinal
        return highest + 1

    async def update_node(self, ref: str, patch: Mapping[str, Any]) -> bool:
        """Update title and metadata of a node; chapters may also change ``index``.

        ``type`` is immutable and ignored. Changing a chapter's index moves it to
        ``<plot point>/c<new index>``. Remaining fields, and the ``metadata`` object, are
        shallow-merged into the node metadata with top-level fields applied last.
        """

        def action(document: OutlineDocument) -> bool:
            self._update(document, ref, patch)
            return True

        return await self._run("update_node", ref, action, failure=False, mutates=True)

    def _update(self, document: OutlineDocument, ref: str, patch: Mapping[str, Any]) -> str:
        path = self._resolve(document, ref)
        node = self._lookup(document, path)

        changes = dict(patch)
        if "type" in changes:
            ignored = changes.pop("type")
            logger.warning("Node type is immutable; ignoring 'type' in update", extra={"path": path, "type": ignored})
        title = changes.pop("title", None)
        metadata = changes.pop("metadata", None)

        if title is not None and not isinstance(title, str):
            raise InvalidNodeType("Node title must be a string", path=path)
        if metadata is not None and not isinstance(metadata, Mapping):
            raise InvalidNodeType("metadata must be an object", path=path)

        new_path = path
        new_index: int | None = None
        requested_index = changes.pop("index", None) if isinstance(node, ChapterNode) else None
        if requested_index is not None:
            new_index = _coerce_index(requested_index)
            new_path = child_path(parent_path(path), PREFIX_BY_TYPE["chapter"], new_index)
            existing = self._chapter_path_by_index(document, new_index)
            if existing == path:
                existing = None
            if existing is None and new_path != path and new_path in document.chapters:
                existing = new_path
            if existing is not None:
                raise DuplicateChapterIndex(
                    "Chapter index already in use",
                    index=new_index,
                    existing_path=existing,
                    requested_path=new_path,
                )

        if title is not None:
            node.title = title
        node.metadata = {**node.metadata, **(metadata or {}), **changes}

        if isinstance(node, ChapterNode) and new_index is not None:
            node.index = new_index
            if new_path != path:
                del document.chapters[path]
                document.chapters[new_path] = node
                logger.info("Chapter moved after index change", extra={"from": path, "to": new_path})

        logger.info("update_node success", extra={"path": new_path})
        return new_path

    async def delete_node(self, ref: str) -> bool:
        """Delete a node and every node below it."""

        def action(document: OutlineDocument) -> bool:
            self._delete(document, ref)
            return True

        return await self._run("delete_node", ref, action, failure=False, mutates=True)

    def _delete(self, document: OutlineDocument, ref: str) -> int:
        path = self._resolve(document, ref)
        node = self._lookup(document, path)
        del document.collection(node.type)[path]  # type: ignore[attr-defined]
        deleted = 1

        # Linear scan over every collection; fine at outline scale.
        for collection in document.collections():
            for descendant in [p for p in collection if is_descendant(p, path)]:
                del collection[descendant]
                deleted += 1
                logger.debug("Deleted child node", extra={"path": descendant})

        logger.info("delete_node success", extra={"path": path, "total_deleted": deleted})
        return deleted

    # --- migration ---

    async def migrate_from_nested(self, source: NestedOutline | str | Path | None = None) -> bool:
        """Replace the whole document with the flattened form of a nested outline.

        Args:
            source: A validated nested outline, or a YAML/JSON file. Defaults to the
                configured nested outline file.

        Returns:
            True when the flattened document was persisted.
        """
        ref = None if isinstance(source, NestedOutline) or source is None else str(source)
        with operation_context("migrate_from_nested", ref):
            try:
                nested = await asyncio.to_thread(self._nested, source)
            except RECOVERABLE_ERRORS as e:
                self._record("migrate_from_nested", e)
                return False

        def action(document: OutlineDocument) -> bool:
            flat = flatten_nested(nested)
            document.volumes = flat.volumes
            document.acts = flat.acts
            document.plot_points = flat.plot_points
            document.chapters = flat.chapters
            return True

        return await self._run("migrate_from_nested", ref, action, failure=False, mutates=True)

    def _nested(self, source: NestedOutline | str | Path | None) -> NestedOutline:
        if isinstance(source, NestedOutline):
            return source
        location = Path(source) if source is not None else self._nested_source
        if location is None:
            raise NotFound("No nested outline source configured")
        return load_nested_outline(location)

"""Tests for OutlineStore CRUD, resolution and queries."""

from __future__ import annotations

import asyncio

import pytest

from storyoutline.errors import PersistenceFailure
from storyoutline.models.document import OutlineDocument
from storyoutline.models.nodes import ChapterNode, VolumeNode
from storyoutline.storage.memory import MemoryDocumentStore
from storyoutline.store import OutlineStore


def _store() -> tuple[OutlineStore, MemoryDocumentStore]:
    documents = MemoryDocumentStore()
    return OutlineStore(documents), documents


async def _seed(store: OutlineStore) -> None:
    """Two volumes; /v1 has acts a1 (p1, p2) and a2 (p1); chapters 1..6."""

    assert await store.add_node("/", {"type": "volume", "title": "Volume One"}) == "/v1"
    assert await store.add_node("/", {"type": "volume", "title": "Volume Two"}) == "/v2"
    assert await store.add_node("/v1", {"type": "act", "title": "Act One"}) == "/v1/a1"
    assert await store.add_node("/v1", {"type": "act", "title": "Act Two"}) == "/v1/a2"
    assert await store.add_node("/v1/a1", {"type": "plot_point", "title": "Opening"}) == "/v1/a1/p1"
    assert await store.add_node("/v1/a1", {"type": "plot_point", "title": "Turn"}) == "/v1/a1/p2"
    assert await store.add_node("/v1/a2", {"type": "plot_point", "title": "Climb"}) == "/v1/a2/p1"
    for index, parent in [(1, "/v1/a1/p1"), (2, "/v1/a1/p1"), (3, "/v1/a1/p2"), (4, "/v1/a2/p1"), (5, "/v1/a2/p1"), (6, "/v1/a2/p1")]:
        path = await store.add_node(parent, {"type": "chapter", "title": f"Chapter {index}", "index": index})
        assert path == f"{parent}/c{index}"


def test_add_then_get_returns_equal_node() -> None:
    store, _ = _store()

    async def scenario() -> None:
        path = await store.add_node(
            "/",
            {"type": "volume", "title": "Volume One", "metadata": {"conflict": "old", "villain": "Yan"}},
        )
        node = await store.get_node(path)
        assert isinstance(node, VolumeNode)
        assert node.path == "/v1"
        assert node.title == "Volume One"
        assert node.metadata == {"conflict": "old", "villain": "Yan"}

    asyncio.run(scenario())


def test_extra_fields_fold_into_metadata_and_win() -> None:
    store, _ = _store()

    async def scenario() -> None:
        path = await store.add_node(
            "/",
            {"type": "volume", "title": "V", "metadata": {"a": 1, "b": 2}, "b": 3, "c": 4},
        )
        node = await store.get_node(path)
        assert node is not None
        assert node.metadata == {"a": 1, "b": 3, "c": 4}

    asyncio.run(scenario())


def test_chapter_path_uses_global_index() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        path = await store.add_node("/v1/a1/p1", {"type": "chapter", "title": "Far", "index": 42})
        assert path == "/v1/a1/p1/c42"
        chapter = await store.get_node(path)
        assert isinstance(chapter, ChapterNode)
        assert chapter.index == 42

    asyncio.run(scenario())


def test_non_chapter_ordinal_is_max_plus_one() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await store.add_node("/", {"type": "volume", "title": "V"})
        for _ in range(3):
            await store.add_node("/v1", {"type": "act", "title": "A"})
        assert await store.delete_node("/v1/a2")
        assert await store.add_node("/v1", {"type": "act", "title": "New"}) == "/v1/a4"

    asyncio.run(scenario())


def test_act_under_root_is_a_type_mismatch() -> None:
    store, documents = _store()

    async def scenario() -> None:
        assert await store.add_node("/", {"type": "act", "title": "Orphan"}) is None
        assert store.last_diagnostic is not None
        assert store.last_diagnostic.kind == "type_mismatch"
        assert store.last_diagnostic.operation == "add_node"
        assert await store.get_children("/") == []

    asyncio.run(scenario())
    assert documents.snapshot == OutlineDocument().to_json_dict()


@pytest.mark.parametrize(
    ("parent", "data", "kind"),
    [
        ("/v9", {"type": "act", "title": "A"}, "parent_missing"),
        ("/v1/a1/p9", {"type": "chapter", "title": "C", "index": 70}, "parent_missing"),
        ("/v1", {"type": "scene", "title": "S"}, "invalid_node_type"),
        ("/v1/a1/p1", {"type": "chapter", "title": "C"}, "invalid_node_type"),
        ("/v1/a1/p1", {"type": "chapter", "title": "C", "index": "seven"}, "invalid_node_type"),
        ("/v1", {"type": "act"}, "invalid_node_type"),
        ("/v1/a1", {"type": "chapter", "title": "C", "index": 80}, "type_mismatch"),
        ("/v1/a1/p2", {"type": "chapter", "title": "Dup", "index": 1}, "duplicate_chapter_index"),
        ("/v1/a1/p1", {"type": "chapter", "title": "Dup", "index": 1}, "duplicate_chapter_index"),
    ],
)
def test_add_node_failures_return_none(parent: str, data: dict, kind: str) -> None:
    store, documents = _store()

    async def scenario() -> None:
        await _seed(store)
        saves = documents.save_count
        assert await store.add_node(parent, data) is None
        assert store.last_diagnostic is not None
        assert store.last_diagnostic.kind == kind
        assert documents.save_count == saves

    asyncio.run(scenario())


def test_resolve_reference_accepts_all_syntaxes() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        await store.add_node("/v1/a1/p2", {"type": "chapter", "title": "Seven", "index": 7})
        expected = "/v1/a1/p2/c7"
        assert await store.resolve_reference("7") == expected
        assert await store.resolve_reference("c7") == expected
        assert await store.resolve_reference(expected) == expected

        assert await store.resolve_reference("8") is None
        assert await store.resolve_reference("c8") is None
        assert await store.resolve_reference("/v1/a1/p2/c8") is None
        assert await store.resolve_reference("/v1/a1") is None

    asyncio.run(scenario())


def test_get_node_by_chapter_reference() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        by_index = await store.get_node("4")
        by_prefixed = await store.get_node("c4")
        assert by_index is not None and by_prefixed is not None
        assert by_index.path == by_prefixed.path == "/v1/a2/p1/c4"
        assert await store.get_node("99") is None
        assert store.last_diagnostic.kind == "not_found"
        assert await store.get_node("/v1/a1/p1/c7/x1") is None
        assert store.last_diagnostic.kind == "invalid_path"

    asyncio.run(scenario())


def test_get_children_returns_only_direct_children() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        volumes = await store.get_children("/")
        assert sorted(n.path for n in volumes) == ["/v1", "/v2"]
        acts = await store.get_children("/v1")
        assert sorted(n.path for n in acts) == ["/v1/a1", "/v1/a2"]
        chapters = await store.get_children("/v1/a2/p1")
        assert sorted(n.index for n in chapters) == [4, 5, 6]  # type: ignore[attr-defined]
        assert await store.get_children("/v2") == []

    asyncio.run(scenario())


def test_delete_cascades_and_spares_siblings() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        assert await store.delete_node("/v1/a1")
        for gone in ["/v1/a1", "/v1/a1/p1", "/v1/a1/p2", "/v1/a1/p1/c1", "/v1/a1/p2/c3"]:
            assert await store.get_node(gone) is None
        for kept in ["/v1", "/v1/a2", "/v1/a2/p1", "/v1/a2/p1/c4", "/v2"]:
            assert await store.get_node(kept) is not None
        assert [c.index for c in await store.get_all_chapters_sorted()] == [4, 5, 6]

    asyncio.run(scenario())


def test_delete_missing_node_fails() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        assert await store.delete_node("/v1/a7") is False
        assert await store.delete_node("c99") is False
        assert await store.delete_node("5") is True
        assert await store.get_node("c5") is None

    asyncio.run(scenario())


def test_chapters_sorted_by_global_index() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await store.add_node("/", {"type": "volume", "title": "V"})
        await store.add_node("/v1", {"type": "act", "title": "A"})
        await store.add_node("/v1/a1", {"type": "plot_point", "title": "P1"})
        await store.add_node("/v1/a1", {"type": "plot_point", "title": "P2"})
        await store.add_node("/v1/a1/p2", {"type": "chapter", "title": "c9", "index": 9})
        await store.add_node("/v1/a1/p1", {"type": "chapter", "title": "c2", "index": 2})
        await store.add_node("/v1/a1/p2", {"type": "chapter", "title": "c5", "index": 5})
        chapters = await store.get_all_chapters_sorted()
        assert [c.index for c in chapters] == [2, 5, 9]
        assert chapters[0].path == "/v1/a1/p1/c2"

    asyncio.run(scenario())


def test_chapter_window_is_clamped_at_start() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        window = await store.get_chapter_window("1", 2)
        assert [c.index for c in window] == [1, 2, 3]
        window = await store.get_chapter_window("/v1/a2/p1/c6", 2)
        assert [c.index for c in window] == [4, 5, 6]
        window = await store.get_chapter_window("c4", 1)
        assert [c.index for c in window] == [3, 4, 5]

    asyncio.run(scenario())


def test_chapter_window_counts_positions_not_indices() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await store.add_node("/", {"type": "volume", "title": "V"})
        await store.add_node("/v1", {"type": "act", "title": "A"})
        await store.add_node("/v1/a1", {"type": "plot_point", "title": "P"})
        for index in (10, 20, 30, 40, 50):
            await store.add_node("/v1/a1/p1", {"type": "chapter", "title": str(index), "index": index})
        window = await store.get_chapter_window("30", 1)
        assert [c.index for c in window] == [20, 30, 40]

    asyncio.run(scenario())


def test_chapter_window_defaults_and_failures() -> None:
    store, _ = _store()
    store.default_window_size = 1

    async def scenario() -> None:
        await _seed(store)
        assert [c.index for c in await store.get_chapter_window("3")] == [2, 3, 4]
        assert [c.index for c in await store.get_chapter_window("3", -4)] == [3]
        assert await store.get_chapter_window("/v1/a1") == []
        assert store.last_diagnostic.kind == "type_mismatch"
        assert await store.get_chapter_window("77") == []
        assert store.last_diagnostic.kind == "not_found"

    asyncio.run(scenario())


def test_update_merges_metadata_and_ignores_type() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await store.add_node("/", {"type": "volume", "title": "V", "metadata": {"a": 1, "b": 1}})
        ok = await store.update_node(
            "/v1",
            {"type": "chapter", "title": "Renamed", "metadata": {"b": 2, "c": 2}, "c": 3, "d": 4},
        )
        assert ok
        node = await store.get_node("/v1")
        assert isinstance(node, VolumeNode)
        assert node.title == "Renamed"
        assert node.metadata == {"a": 1, "b": 2, "c": 3, "d": 4}

    asyncio.run(scenario())


def test_update_chapter_index_moves_chapter() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        assert await store.update_node("c3", {"index": 30, "mood": "tense"})
        assert await store.get_node("/v1/a1/p2/c3") is None
        moved = await store.get_node("c30")
        assert isinstance(moved, ChapterNode)
        assert moved.path == "/v1/a1/p2/c30"
        assert moved.index == 30
        assert moved.metadata == {"mood": "tense"}
        assert [c.index for c in await store.get_children("/v1/a1/p2")] == [30]  # type: ignore[attr-defined]
        assert [c.index for c in await store.get_all_chapters_sorted()] == [1, 2, 4, 5, 6, 30]

    asyncio.run(scenario())


def test_update_chapter_index_collision_changes_nothing() -> None:
    store, documents = _store()

    async def scenario() -> None:
        await _seed(store)
        before = documents.snapshot
        assert await store.update_node("/v1/a1/p1/c1", {"index": 5, "title": "Clash"}) is False
        assert store.last_diagnostic.kind == "duplicate_chapter_index"
        assert documents.snapshot == before

    asyncio.run(scenario())


def _diverged_documents() -> MemoryDocumentStore:
    """A chapter keyed ``c5`` whose stored index drifted to 6."""

    return MemoryDocumentStore(
        {
            "volumes": {"/v1": {"title": "V"}},
            "acts": {"/v1/a1": {"title": "A"}},
            "plotPoints": {"/v1/a1/p1": {"title": "P"}},
            "chapters": {"/v1/a1/p1/c5": {"title": "Keep me", "index": 6}},
        }
    )


def test_add_chapter_onto_occupied_path_is_rejected() -> None:
    documents = _diverged_documents()
    store = OutlineStore(documents)

    async def scenario() -> None:
        before = documents.snapshot
        result = await store.add_node("/v1/a1/p1", {"type": "chapter", "title": "New", "index": 5})
        assert result is None
        assert store.last_diagnostic.kind == "duplicate_chapter_index"
        assert documents.snapshot == before
        kept = await store.get_node("/v1/a1/p1/c5")
        assert kept is not None and kept.title == "Keep me"

    asyncio.run(scenario())


def test_update_restores_index_matching_own_path() -> None:
    documents = _diverged_documents()
    store = OutlineStore(documents)

    async def scenario() -> None:
        assert await store.update_node("/v1/a1/p1/c5", {"index": 5}) is True
        chapter = await store.get_node("c5")
        assert isinstance(chapter, ChapterNode)
        assert chapter.path == "/v1/a1/p1/c5"
        assert chapter.index == 5
        assert chapter.title == "Keep me"
        assert list(documents.snapshot["chapters"]) == ["/v1/a1/p1/c5"]

    asyncio.run(scenario())


def test_update_missing_node_fails() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        assert await store.update_node("/v3", {"title": "x"}) is False
        assert await store.update_node("c12", {"title": "x"}) is False
        assert store.last_diagnostic.kind == "not_found"

    asyncio.run(scenario())


def test_typed_accessors() -> None:
    store, _ = _store()

    async def scenario() -> None:
        await _seed(store)
        volume = await store.get_volume_info_by_path("/v2")
        assert volume is not None and volume.title == "Volume Two"
        assert await store.get_volume_info_by_path("/v1/a1") is None
        assert store.last_diagnostic.kind == "type_mismatch"

        chapter = await store.get_chapter_outline_by_path("c2")
        assert chapter is not None and chapter.path == "/v1/a1/p1/c2"
        assert await store.get_chapter_outline_by_path("/v1") is None

    asyncio.run(scenario())


def test_mutations_save_and_reads_do_not() -> None:
    store, documents = _store()

    async def scenario() -> None:
        await _seed(store)
        saves = documents.save_count
        revision = store.revision
        await store.get_node("/v1")
        await store.get_children("/")
        await store.get_chapter_window("2")
        assert documents.save_count == saves
        await store.update_node("/v1", {"title": "again"})
        assert documents.save_count == saves + 1
        assert store.revision == revision + 1

    asyncio.run(scenario())


def test_concurrent_adds_through_one_store_do_not_lose_updates() -> None:
    store, _ = _store()

    async def scenario() -> None:
        results = await asyncio.gather(
            *(store.add_node("/", {"type": "volume", "title": f"V{i}"}) for i in range(10))
        )
        assert sorted(results) == sorted(f"/v{i}" for i in range(1, 11))
        assert len(await store.get_children("/")) == 10

    asyncio.run(scenario())


def test_one_store_across_separate_event_loops() -> None:
    store, _ = _store()

    async def burst(start: int) -> list[str | None]:
        return await asyncio.gather(
            *(store.add_node("/", {"type": "volume", "title": f"V{start + i}"}) for i in range(3))
        )

    first = asyncio.run(burst(0))
    second = asyncio.run(burst(3))
    assert sorted(first) == ["/v1", "/v2", "/v3"]
    assert sorted(second) == ["/v4", "/v5", "/v6"]


class _FailingSaveStore(MemoryDocumentStore):
    def __init__(self) -> None:
        super().__init__(OutlineDocument())
        self.fail = False

    def save(self, document: OutlineDocument) -> None:
        if self.fail:
            raise PersistenceFailure("disk full")
        super().save(document)


def test_persistence_failure_propagates() -> None:
    documents = _FailingSaveStore()
    store = OutlineStore(documents)

    async def scenario() -> None:
        assert await store.add_node("/", {"type": "volume", "title": "V"}) == "/v1"
        documents.fail = True
        with pytest.raises(PersistenceFailure):
            await store.add_node("/", {"type": "volume", "title": "Lost"})
        documents.fail = False
        assert [n.path for n in await store.get_children("/")] == ["/v1"]

    asyncio.run(scenario())

"""Tests for the JSON vector store."""

import json
from pathlib import Path

import pytest

from knowdex.config.errors import DimensionMismatchError, InvalidItemError
from knowdex.config.manifest import SCHEMA_VERSION

from .models import IndexedItem, ItemMetadata, SearchFilter
from .store import JsonVectorStore, cosine_similarity


@pytest.fixture
def store(tmp_path: Path) -> JsonVectorStore:
    """Create an empty store backed by a temporary directory."""
    return JsonVectorStore(tmp_path / "index")


def _item(item_id: str, content: str, vector: list[float] | None = None, **meta) -> IndexedItem:
    return IndexedItem(
        id=item_id,
        content=content,
        vector=vector or [],
        metadata=ItemMetadata(**meta),
    )


# --- cosine_similarity ---


def test_cosine_similarity_identical_vectors() -> None:
    """A non-zero vector is maximally similar to itself."""
    assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)


def test_cosine_similarity_zero_and_empty_vectors() -> None:
    """Zero or empty vectors score 0 instead of raising."""
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0
    assert cosine_similarity([], []) == 0.0
    assert cosine_similarity([1.0], []) == 0.0


def test_cosine_similarity_orthogonal_and_opposite() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_similarity_dimension_mismatch() -> None:
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


# --- Construction / loading ---


def test_construction_does_no_io(tmp_path: Path) -> None:
    """Creating a store must not create files or directories."""
    index_dir = tmp_path / "never-created"
    JsonVectorStore(index_dir)
    assert not index_dir.exists()


async def test_load_missing_files_requires_rebuild(store: JsonVectorStore) -> None:
    await store.load()
    assert store.size == 0
    assert store.requires_rebuild is True


async def test_persist_and_reload(tmp_path: Path) -> None:
    """Items survive a flush and a fresh load."""
    store = JsonVectorStore(tmp_path / "index")
    await store.upsert(_item("a", "alpha content", [1.0, 0.0], tags={"x"}))
    await store.upsert(_item("b", "beta content"))

    reloaded = JsonVectorStore(tmp_path / "index")
    await reloaded.load()

    assert reloaded.requires_rebuild is False
    assert await reloaded.list_ids() == ["a", "b"]
    item = await reloaded.get_by_id("a")
    assert item is not None
    assert item.vector == [1.0, 0.0]
    assert item.metadata.tags == {"x"}
    assert reloaded.dimension == 2


async def test_corrupt_item_file_treated_as_empty(tmp_path: Path) -> None:
    store = JsonVectorStore(tmp_path / "index")
    await store.upsert(_item("a", "alpha"))
    (tmp_path / "index" / "vector_index.json").write_text("{not json")

    reloaded = JsonVectorStore(tmp_path / "index")
    await reloaded.load()

    assert reloaded.size == 0
    assert reloaded.requires_rebuild is True


async def test_outdated_schema_is_discarded(tmp_path: Path) -> None:
    """A manifest from another schema version makes the store absent."""
    store = JsonVectorStore(tmp_path / "index")
    await store.upsert(_item("a", "alpha"))

    manifest_path = tmp_path / "index" / "manifest.json"
    data = json.loads(manifest_path.read_text())
    data["schema_version"] = SCHEMA_VERSION + 1
    manifest_path.write_text(json.dumps(data))

    reloaded = JsonVectorStore(tmp_path / "index")
    await reloaded.load()

    assert reloaded.size == 0
    assert reloaded.requires_rebuild is True


async def test_flush_updates_manifest_count(tmp_path: Path) -> None:
    store = JsonVectorStore(tmp_path / "index")
    await store.upsert(_item("a", "alpha"), persist=False)
    await store.upsert(_item("b", "beta"), persist=False)
    assert not (tmp_path / "index" / "manifest.json").exists()

    await store.flush()

    manifest = await store.manifests.read()
    assert manifest is not None
    assert manifest.count == 2


# --- Writes ---


async def test_upsert_requires_id_and_content(store: JsonVectorStore) -> None:
    with pytest.raises(InvalidItemError):
        await store.upsert(IndexedItem(id="", content="text"))
    with pytest.raises(InvalidItemError):
        await store.upsert(IndexedItem(id="a", content=""))


async def test_upsert_dimension_mismatch(store: JsonVectorStore) -> None:
    """The first vector fixes the dimension; later mismatches are rejected."""
    await store.upsert(_item("a", "alpha", [1.0, 0.0, 0.0]), persist=False)

    with pytest.raises(DimensionMismatchError) as exc_info:
        await store.upsert(_item("b", "beta", [1.0, 0.0]), persist=False)

    assert exc_info.value.expected == 3
    assert exc_info.value.actual == 2
    assert await store.get_by_id("b") is None


async def test_upsert_replaces_existing(store: JsonVectorStore) -> None:
    await store.upsert(_item("a", "old"), persist=False)
    await store.upsert(_item("a", "new"), persist=False)

    item = await store.get_by_id("a")
    assert item is not None
    assert item.content == "new"
    assert store.size == 1


async def test_batch_upsert_collects_errors(store: JsonVectorStore) -> None:
    """One bad item does not abort the batch."""
    result = await store.batch_upsert(
        [
            _item("a", "alpha", [1.0, 0.0]),
            _item("b", "beta", [1.0, 0.0, 0.0]),
            _item("c", "gamma"),
        ]
    )

    assert result.upserted == 2
    assert result.failed == 1
    assert "b" in result.errors
    assert await store.list_ids() == ["a", "c"]


async def test_remove_and_clear(store: JsonVectorStore) -> None:
    await store.upsert(_item("a", "alpha"), persist=False)
    await store.upsert(_item("b", "beta"), persist=False)

    assert await store.remove("a") is True
    assert await store.remove("a") is False
    assert await store.list_ids() == ["b"]

    await store.clear()
    assert store.size == 0


async def test_get_by_parent(store: JsonVectorStore) -> None:
    await store.upsert(IndexedItem(id="p_c0", content="one", parent_id="p"), persist=False)
    await store.upsert(IndexedItem(id="p_c1", content="two", parent_id="p"), persist=False)
    await store.upsert(IndexedItem(id="q", content="three"), persist=False)

    children = await store.get_by_parent("p")
    assert [c.id for c in children] == ["p_c0", "p_c1"]


# --- Query ---


async def test_query_top_k_sorted(store: JsonVectorStore) -> None:
    await store.upsert(_item("far", "far", [0.0, 1.0]), persist=False)
    await store.upsert(_item("near", "near", [1.0, 0.1]), persist=False)
    await store.upsert(_item("mid", "mid", [1.0, 1.0]), persist=False)
    await store.upsert(_item("novec", "no vector"), persist=False)

    hits = await store.query([1.0, 0.0], k=2)

    assert [h.id for h in hits] == ["near", "mid"]
    assert hits[0].similarity >= hits[1].similarity


async def test_query_ties_keep_insertion_order(store: JsonVectorStore) -> None:
    for item_id in ("first", "second", "third"):
        await store.upsert(_item(item_id, item_id, [1.0, 1.0]), persist=False)

    hits = await store.query([2.0, 2.0], k=3)
    assert [h.id for h in hits] == ["first", "second", "third"]


async def test_query_empty_vector_returns_nothing(store: JsonVectorStore) -> None:
    await store.upsert(_item("a", "alpha", [1.0, 0.0]), persist=False)
    assert await store.query([], k=5) == []


async def test_query_wrong_dimension_raises(store: JsonVectorStore) -> None:
    await store.upsert(_item("a", "alpha", [1.0, 0.0]), persist=False)
    with pytest.raises(DimensionMismatchError):
        await store.query([1.0, 0.0, 0.0], k=5)


# --- Hybrid search ---


async def test_hybrid_search_keyword_only_when_no_vector(store: JsonVectorStore) -> None:
    """With no query vector the store degrades to keyword scoring."""
    await store.upsert(_item("x", "singleton pattern for shared instance"), persist=False)
    await store.upsert(_item("y", "factory method for object creation"), persist=False)

    hits = await store.hybrid_search([], "singleton shared", top_k=5)

    assert len(hits) >= 1
    assert hits[0].id == "x"
    assert hits[0].keyword_score > 0
    assert all(h.id != "y" for h in hits)


async def test_hybrid_search_blends_vector_and_keyword(store: JsonVectorStore) -> None:
    await store.upsert(_item("a", "network request helper", [1.0, 0.0]), persist=False)
    await store.upsert(_item("b", "singleton helper", [0.0, 1.0]), persist=False)

    hits = await store.hybrid_search([1.0, 0.0], "singleton", top_k=5)
    scores = {h.id: h for h in hits}

    assert scores["a"].score == pytest.approx(0.7)
    assert scores["b"].score == pytest.approx(0.3)
    assert [h.id for h in hits] == ["a", "b"]


async def test_hybrid_search_respects_filter(store: JsonVectorStore) -> None:
    await store.upsert(_item("a", "swift singleton", language="swift"), persist=False)
    await store.upsert(_item("b", "objc singleton", language="objc"), persist=False)

    hits = await store.hybrid_search(
        [], "singleton", top_k=5, search_filter=SearchFilter(language="objc")
    )
    assert [h.id for h in hits] == ["b"]


async def test_search_by_filter_excludes_deprecated(store: JsonVectorStore) -> None:
    await store.upsert(_item("a", "alpha", tags={"ui"}), persist=False)
    await store.upsert(_item("b", "beta", tags={"ui"}, deprecated=True), persist=False)

    items = await store.search_by_filter(SearchFilter(tags=["ui"], include_deprecated=False))
    assert [i.id for i in items] == ["a"]


async def test_get_stats(store: JsonVectorStore) -> None:
    await store.upsert(_item("a", "alpha", [1.0, 0.0]), persist=False)
    await store.upsert(_item("b", "beta"), persist=False)

    stats = await store.get_stats()
    assert stats.count == 2
    assert stats.has_vector_count == 1
    assert stats.dimension == 2

"""Tests for API Routes."""

from collections.abc import Generator
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from knowdex.adapters.embedding_cache import CacheStats
from knowdex.adapters.embeddings import OllamaEmbedder
from knowdex.adapters.vector_store import HybridHit, IndexedItem, ItemMetadata, StoreStats
from knowdex.config.errors import DimensionMismatchError, EmbeddingError, ErrorCode
from knowdex.domains.indexing import IndexRunStats
from knowdex.domains.search import RetrievalFunnel

from .deps import get_embedder, get_embedding_cache, get_funnel, get_pipeline, get_vector_store
from .main import create_app
from .middleware import error_code_to_status


@pytest.fixture
def items() -> list[IndexedItem]:
    updated = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return [
        IndexedItem(
            id="recipe_singleton_md",
            content="Shared instance with a static let.\n// thread safe\nfinal class A {}",
            metadata=ItemMetadata(
                source_type="recipe",
                source_path="recipes/singleton.md",
                section_title="Singleton pattern",
                language="swift",
                category="Pattern",
                tags={"swift", "pattern"},
                updated_at=updated,
            ),
        ),
        IndexedItem(
            id="recipe_network_md",
            content="Build a request with URLSession and decode the response.",
            metadata=ItemMetadata(
                source_type="recipe",
                source_path="recipes/network.md",
                section_title="Network request",
                language="swift",
                updated_at=updated,
            ),
        ),
    ]


@pytest.fixture
def mock_store(items: list[IndexedItem]) -> MagicMock:
    """Create a mock vector store."""
    mock = MagicMock()
    mock.list_items = AsyncMock(return_value=items)
    mock.hybrid_search = AsyncMock(return_value=[])
    mock.get_stats = AsyncMock(return_value=StoreStats(count=2, has_vector_count=0))
    mock.manifests.read = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_cache() -> MagicMock:
    mock = MagicMock()
    mock.stats.return_value = CacheStats(hits=3, misses=1, hit_rate=0.75)
    return mock


@pytest.fixture
def mock_pipeline() -> AsyncMock:
    mock = AsyncMock()
    mock.run.return_value = IndexRunStats(documents=2, scanned=3, upserted=3, full_rebuild=True)
    return mock


@pytest.fixture
def mock_embedder() -> MagicMock:
    mock = MagicMock()
    mock.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return mock


@pytest.fixture
def app(mock_store: MagicMock, mock_cache: MagicMock, mock_pipeline: AsyncMock):
    app = create_app()
    app.dependency_overrides[get_vector_store] = lambda: mock_store
    app.dependency_overrides[get_embedding_cache] = lambda: mock_cache
    app.dependency_overrides[get_pipeline] = lambda: mock_pipeline
    app.dependency_overrides[get_embedder] = lambda: None
    app.dependency_overrides[get_funnel] = lambda: RetrievalFunnel()
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client with mocked dependencies."""
    yield TestClient(app)


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "knowdex"}


def test_api_info(client: TestClient) -> None:
    data = client.get("/api").json()
    assert data["name"] == "Knowdex API"
    assert data["docs"] == "/docs"


def test_search_ranks_stored_items(client: TestClient) -> None:
    response = client.post("/api/search", json={"query": "singleton", "scenario": "lint"})

    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "singleton"
    assert data["scenario"] == "lint"
    assert data["total"] == 1
    top = data["results"][0]
    assert top["id"] == "recipe_singleton_md"
    assert top["source_path"] == "recipes/singleton.md"
    assert top["score"] == top["ranker_score"]
    assert set(top["signals"]) == {
        "relevance",
        "authority",
        "recency",
        "popularity",
        "difficulty",
        "seasonality",
    }
    assert set(top["coarse_signals"]) == {"bm25", "semantic", "quality", "freshness", "popularity"}
    assert [s["name"] for s in data["stages"]] == ["keyword", "semantic", "coarse", "multi_signal"]


def test_search_without_keyword_match_returns_everything(client: TestClient) -> None:
    data = client.post("/api/search", json={"query": "zebra"}).json()

    assert data["total"] == 2
    assert data["scenario"] == "default"
    assert data["stages"][0]["fallback"] is True


def test_search_session_history_adds_context_stage(client: TestClient) -> None:
    response = client.post(
        "/api/search",
        json={
            "query": "request",
            "language": "swift",
            "session_history": [{"content": "decode the response"}],
        },
    )

    data = response.json()
    assert data["stages"][-1]["name"] == "context"
    assert data["results"][0]["score"] == data["results"][0]["context_score"]


def test_search_respects_limit(client: TestClient) -> None:
    data = client.post("/api/search", json={"query": "zebra", "limit": 1}).json()
    assert len(data["results"]) == 1
    assert data["total"] == 2


def test_search_empty_index(client: TestClient, mock_store: MagicMock) -> None:
    mock_store.list_items.return_value = []
    data = client.post("/api/search", json={"query": "singleton"}).json()
    assert data["results"] == []
    assert data["stages"] == []


def test_search_endpoint_empty_query(client: TestClient) -> None:
    response = client.post("/api/search", json={"query": ""})
    assert response.status_code == 422


def test_search_whitespace_query_is_invalid(client: TestClient) -> None:
    response = client.post("/api/search", json={"query": "   "})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "SEARCH_INVALID_QUERY"


def test_search_endpoint_limit_validation(client: TestClient) -> None:
    assert client.post("/api/search", json={"query": "test", "limit": 50}).status_code == 200
    assert client.post("/api/search", json={"query": "test", "limit": 200}).status_code == 422


def test_hybrid_without_embedder_is_keyword_only(
    client: TestClient, mock_store: MagicMock, items: list[IndexedItem]
) -> None:
    mock_store.hybrid_search.return_value = [
        HybridHit(id=items[1].id, score=0.5, keyword_score=0.5, item=items[1])
    ]

    response = client.post("/api/search/hybrid", json={"query": "urlsession request", "top_k": 5})

    assert response.status_code == 200
    data = response.json()
    assert data["keyword_only"] is True
    assert data["results"][0]["source_path"] == "recipes/network.md"
    args = mock_store.hybrid_search.await_args.args
    assert args[0] == []
    assert args[1] == "urlsession request"
    assert args[2] == 5


def test_hybrid_uses_query_embedding(
    app, client: TestClient, mock_store: MagicMock, mock_embedder: MagicMock
) -> None:
    app.dependency_overrides[get_embedder] = lambda: mock_embedder

    data = client.post(
        "/api/search/hybrid",
        json={"query": "singleton", "filter": {"language": "swift"}},
    ).json()

    assert data["keyword_only"] is False
    args = mock_store.hybrid_search.await_args.args
    assert args[0] == [0.1, 0.2, 0.3]
    assert args[3].language == "swift"


def test_hybrid_embedding_failure_falls_back(
    app, client: TestClient, mock_store: MagicMock, mock_embedder: MagicMock
) -> None:
    mock_embedder.embed.side_effect = EmbeddingError("provider offline")
    app.dependency_overrides[get_embedder] = lambda: mock_embedder

    response = client.post("/api/search/hybrid", json={"query": "singleton"})

    assert response.status_code == 200
    assert response.json()["keyword_only"] is True


def test_hybrid_unhealthy_ollama_falls_back(app, client: TestClient, mock_store: MagicMock) -> None:
    """A provider answering with an HTML error page degrades to keyword-only scoring."""
    embedder = OllamaEmbedder(
        dimension=3,
        backoff=0,
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>proxy error</html>")
        ),
    )
    app.dependency_overrides[get_embedder] = lambda: embedder

    response = client.post("/api/search/hybrid", json={"query": "singleton"})

    assert response.status_code == 200
    assert response.json()["keyword_only"] is True
    assert mock_store.hybrid_search.await_args.args[0] == []


def test_hybrid_dimension_mismatch_retries_keyword_only(
    app, client: TestClient, mock_store: MagicMock, mock_embedder: MagicMock
) -> None:
    app.dependency_overrides[get_embedder] = lambda: mock_embedder
    mock_store.hybrid_search.side_effect = [DimensionMismatchError(expected=384, actual=3), []]

    response = client.post("/api/search/hybrid", json={"query": "singleton"})

    assert response.status_code == 200
    assert response.json()["keyword_only"] is True
    assert mock_store.hybrid_search.await_count == 2
    assert mock_store.hybrid_search.await_args.args[0] == []


def test_index_stats(client: TestClient) -> None:
    response = client.get("/api/index/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["store"]["count"] == 2
    assert data["manifest"] is None
    assert data["cache"]["hit_rate"] == 0.75


def test_index_run(client: TestClient, mock_pipeline: AsyncMock) -> None:
    response = client.post("/api/index/run", json={"force": True})

    assert response.status_code == 200
    assert response.json()["upserted"] == 3
    mock_pipeline.run.assert_awaited_once_with(force=True, dry_run=False)


def test_error_middleware_maps_codes(client: TestClient, mock_store: MagicMock) -> None:
    mock_store.list_items.side_effect = EmbeddingError("Provider offline")

    response = client.post(
        "/api/search", json={"query": "singleton"}, headers={"X-Request-ID": "req-1"}
    )

    assert response.status_code == 503
    body = response.json()
    assert body["error"]["code"] == "EMBEDDING_UNAVAILABLE"
    assert body["request_id"] == "req-1"


def test_unhandled_error_is_500(client: TestClient, mock_store: MagicMock) -> None:
    mock_store.list_items.side_effect = RuntimeError("boom")

    response = client.post("/api/search", json={"query": "singleton"})

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"


def test_request_id_header(client: TestClient) -> None:
    response = client.get("/health")
    assert "x-request-id" in response.headers
    assert "x-response-time-ms" in response.headers


def test_404_for_unknown_routes(client: TestClient) -> None:
    assert client.get("/api/nonexistent").status_code == 404


@pytest.mark.parametrize(
    ("code", "status"),
    [
        (ErrorCode.SEARCH_INVALID_QUERY, 400),
        (ErrorCode.EMBEDDING_UNAVAILABLE, 503),
        (ErrorCode.EMBEDDING_TIMEOUT, 504),
        (ErrorCode.STORAGE_WRITE_FAILED, 500),
    ],
)
def test_error_code_to_status(code: ErrorCode, status: int) -> None:
    assert error_code_to_status(code) == status

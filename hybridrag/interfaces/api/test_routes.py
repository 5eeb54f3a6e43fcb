"""Tests for API Routes."""

from collections.abc import Generator
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from hybridrag.config import EmbeddingError, ErrorCode, HybridRAGError
from hybridrag.domains.entities import EntityRef, EntityType
from hybridrag.domains.rag import RAGContextAssembler
from hybridrag.domains.search import Principal, QueryVectorCache, SearchOutcome, SearchResult

from .deps import get_container, get_context_builder, get_principal_directory, get_search_engine
from .main import create_app

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _result(entity_id: int = 1) -> SearchResult:
    return SearchResult(
        entity_ref=EntityRef(entity_type=EntityType.LIST, entity_id=entity_id),
        title="Quarterly Plan",
        snippet="Targets for Q3",
        locator=f"/lists/{entity_id}",
        vector_score=0.9,
        keyword_score=1.0,
        combined_score=1.045,
        updated_at=NOW,
    )


@pytest.fixture
def mock_engine() -> AsyncMock:
    """Create a mock search engine."""
    mock = AsyncMock()
    mock.execute.return_value = SearchOutcome(results=[_result()])
    return mock


@pytest.fixture
def mock_builder() -> AsyncMock:
    """Create a mock context builder returning a real assembled context."""
    mock = AsyncMock()
    mock.build_context.return_value = RAGContextAssembler().assemble("what is due?", [_result()], 100)
    return mock


@pytest.fixture
def mock_directory() -> AsyncMock:
    mock = AsyncMock()
    mock.load.side_effect = lambda principal_id: Principal(id=principal_id)
    return mock


@pytest.fixture
def mock_container() -> SimpleNamespace:
    store = AsyncMock()
    store.get_stats.return_value = {
        "entities": {"list": {"total": 2, "stale": 1, "without_vector": 1}},
        "jobs": {"pending": 1},
    }
    lists = MagicMock(vector_count=1)
    return SimpleNamespace(
        store=store,
        repositories={EntityType.LIST: lists},
        cache=QueryVectorCache(max_size=8),
    )


@pytest.fixture
def client(
    mock_engine: AsyncMock,
    mock_builder: AsyncMock,
    mock_directory: AsyncMock,
    mock_container: SimpleNamespace,
) -> Generator[TestClient, None, None]:
    """Create a test client with mocked dependencies."""
    app = create_app()

    # Override dependencies with mocks
    app.dependency_overrides[get_search_engine] = lambda: mock_engine
    app.dependency_overrides[get_context_builder] = lambda: mock_builder
    app.dependency_overrides[get_principal_directory] = lambda: mock_directory
    app.dependency_overrides[get_container] = lambda: mock_container

    yield TestClient(app)

    app.dependency_overrides.clear()


class TestHealthRoutes:
    """Tests for health endpoints."""

    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "hybridrag"}
        assert "X-Request-ID" in response.headers

    def test_api_info(self, client: TestClient) -> None:
        response = client.get("/api")
        assert response.status_code == 200
        assert response.json()["name"] == "HybridRAG API"

    def test_stats(self, client: TestClient) -> None:
        response = client.get("/api/stats")
        assert response.status_code == 200
        data = response.json()
        assert data["entities"]["list"]["stale"] == 1
        assert data["indexes"] == {"list": 1}
        assert data["query_cache"]["max_size"] == 8


class TestSearchRoutes:
    """Tests for search endpoints."""

    def test_search(self, client: TestClient, mock_engine: AsyncMock) -> None:
        response = client.post(
            "/api/search",
            json={"query": "quarterly", "limit": 5, "entity_types": ["list", "tag"]},
            headers={"X-Principal-ID": "u1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["degraded"] is False
        assert data["results"][0]["id"] == 1
        assert data["results"][0]["source"] == "hybrid"
        assert data["results"][0]["locator"] == "/lists/1"

        query, principal = mock_engine.execute.call_args.args
        assert query.limit == 5
        assert query.entity_types == (EntityType.LIST, EntityType.TAG)
        assert principal.id == "u1"

    def test_search_anonymous(self, client: TestClient, mock_engine, mock_directory) -> None:
        response = client.post("/api/search", json={"query": "quarterly"})

        assert response.status_code == 200
        _, principal = mock_engine.execute.call_args.args
        assert principal.is_anonymous
        mock_directory.load.assert_not_called()

    def test_search_limit_left_to_engine(self, client: TestClient, mock_engine) -> None:
        client.post("/api/search", json={"query": "quarterly"})
        assert mock_engine.execute.call_args.args[0].limit is None

        # Above the default cap: the engine clamps to the configured maximum
        response = client.post("/api/search", json={"query": "quarterly", "limit": 500})
        assert response.status_code == 200
        assert mock_engine.execute.call_args.args[0].limit == 500

    def test_search_reports_degradation(self, client: TestClient, mock_engine) -> None:
        mock_engine.execute.return_value = SearchOutcome(
            results=[_result()], lexical_only=[EntityType.LIST]
        )

        data = client.post("/api/search", json={"query": "quarterly"}).json()

        assert data["degraded"] is True
        assert data["lexical_only"] == ["list"]

    def test_search_blank_query(self, client: TestClient, mock_engine) -> None:
        response = client.post("/api/search", json={"query": "   "})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.SEARCH_INVALID_QUERY.value
        mock_engine.execute.assert_not_called()

    def test_search_validation(self, client: TestClient) -> None:
        assert client.post("/api/search", json={"query": ""}).status_code == 422
        assert client.post("/api/search", json={"query": "x", "limit": 0}).status_code == 422
        assert client.post("/api/search", json={"query": "x", "entity_types": ["document"]}).status_code == 422

    def test_engine_error_maps_to_status(self, client: TestClient, mock_engine) -> None:
        mock_engine.execute.side_effect = HybridRAGError(ErrorCode.STORAGE_READ_FAILED, "disk gone")

        response = client.post("/api/search", json={"query": "quarterly"})

        assert response.status_code == 503
        assert response.json()["error"]["message"] == "disk gone"

    def test_unexpected_error_is_500(self, client: TestClient, mock_engine) -> None:
        mock_engine.execute.side_effect = RuntimeError("boom")

        response = client.post("/api/search", json={"query": "quarterly"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == ErrorCode.INTERNAL_ERROR.value


class TestRAGRoutes:
    """Tests for RAG context endpoints."""

    def test_build_context(self, client: TestClient, mock_builder: AsyncMock) -> None:
        response = client.post(
            "/api/rag/context",
            json={"query": "what is due?", "token_budget": 100, "max_sources": 3},
            headers={"X-Principal-ID": "u1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["context_count"] == 1
        assert data["context_sources"][0]["source_number"] == 1
        assert data["context_sources"][0]["locator"] == "/lists/1"
        assert "User Question: what is due?" in data["prompt"]

        kwargs = mock_builder.build_context.call_args.kwargs
        assert kwargs == {"token_budget": 100, "max_sources": 3}

    def test_build_context_blank_query(self, client: TestClient) -> None:
        response = client.post("/api/rag/context", json={"query": " "})
        assert response.status_code == 400

    def test_build_context_invalid_budget(self, client: TestClient) -> None:
        response = client.post("/api/rag/context", json={"query": "q", "token_budget": 0})
        assert response.status_code == 422

    def test_embedding_outage_maps_to_503(self, client: TestClient, mock_builder) -> None:
        mock_builder.build_context.side_effect = EmbeddingError("down")
        assert client.post("/api/rag/context", json={"query": "q"}).status_code == 503


class TestRateLimit:
    """Tests for per-caller rate limiting."""

    def test_rate_limit_per_principal(self, mock_engine, mock_directory) -> None:
        from .middleware import RateLimitMiddleware

        app = create_app()
        app.add_middleware(RateLimitMiddleware, requests_per_minute=2)
        app.dependency_overrides[get_search_engine] = lambda: mock_engine
        app.dependency_overrides[get_principal_directory] = lambda: mock_directory
        client = TestClient(app)

        statuses = [
            client.post("/api/search", json={"query": "x"}, headers={"X-Principal-ID": "u1"}).status_code
            for _ in range(3)
        ]
        other = client.post("/api/search", json={"query": "x"}, headers={"X-Principal-ID": "u2"})

        assert statuses == [200, 200, 429]
        assert other.status_code == 200
        assert client.get("/health").status_code == 200

    def test_rate_limit_window_resets_and_forgets_old_callers(self) -> None:
        from .middleware import RateLimitMiddleware

        limiter = RateLimitMiddleware(create_app(), requests_per_minute=1)

        assert limiter.consume("principal:u1", minute=100) == 0
        assert limiter.consume("principal:u1", minute=100) is None
        for n in range(50):
            limiter.consume(f"ip:10.0.0.{n}", minute=100)
        assert limiter.tracked_callers == 51

        assert limiter.consume("principal:u1", minute=101) == 0
        assert limiter.tracked_callers == 1

"""HTTP-level tests for the search endpoints and status mapping."""

import pytest
from fastapi.testclient import TestClient

from brand_discovery.config import Settings
from brand_discovery.errors import AuthError, RateLimitError, UpstreamError
from brand_discovery.main import app, get_keepa_client, get_settings
from brand_discovery.models import KeepaProductResponse, KeepaQueryResponse


class StubKeepa:
    def __init__(self, asins=(), products=None, api_key="live-key", error=None):
        self.api_key = api_key
        self.asins = list(asins)
        self.products = products or {}
        self.error = error
        self.product_calls = 0

    def query(self, selection):
        if self.error:
            raise self.error
        return KeepaQueryResponse(asinList=self.asins)

    def product(self, asins):
        self.product_calls += 1
        return KeepaProductResponse.model_validate({"products": self.products})


@pytest.fixture
def use_keepa():
    def install(stub, batch_size=5):
        app.dependency_overrides[get_keepa_client] = lambda: stub
        app.dependency_overrides[get_settings] = lambda: Settings(keepa_key=stub.api_key or "", batch_size=batch_size)
        return TestClient(app)

    yield install
    app.dependency_overrides.clear()


def test_get_search_returns_products(use_keepa):
    stub = StubKeepa(
        asins=["B000123456", "B000654321"],
        products={"B000123456": {"asin": "B000123456", "title": "TableCraft Sauce Cup", "brand": "TableCraft"}},
    )
    client = use_keepa(stub, batch_size=1)

    resp = client.get("/api/search", params={"keyword": "tablecraft"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["keyword"] == "tablecraft"
    assert body["count"] == 1
    assert body["products"] == [
        {"asin": "B000123456", "title": "TableCraft Sauce Cup", "brand": "TableCraft", "manufacturer": "TableCraft"}
    ]


def test_post_search_accepts_json_body(use_keepa):
    stub = StubKeepa(asins=["B0A"], products={"B0A": {"asin": "B0A", "manufacturer": "Acme"}})
    client = use_keepa(stub)

    resp = client.post("/api/search", json={"keyword": "acme"})

    assert resp.status_code == 200
    assert resp.json()["products"][0]["brand"] == "Acme"


def test_no_results_is_success(use_keepa):
    stub = StubKeepa(asins=[])
    client = use_keepa(stub)

    resp = client.get("/api/search", params={"keyword": "zzzz"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 0
    assert body["products"] == []
    assert body["message"] == "No results found for this keyword"
    assert stub.product_calls == 0


@pytest.mark.parametrize("params", [{}, {"keyword": ""}, {"keyword": "   "}])
def test_missing_keyword_is_400(use_keepa, params):
    client = use_keepa(StubKeepa())

    resp = client.get("/api/search", params=params)

    assert resp.status_code == 400
    assert resp.json()["example"] == "/api/search?keyword=tablecraft"


def test_post_without_keyword_is_400(use_keepa):
    client = use_keepa(StubKeepa())

    assert client.post("/api/search", json={}).status_code == 400
    assert client.post("/api/search", content="not json", headers={"Content-Type": "application/json"}).status_code == 400


@pytest.mark.parametrize(
    "error, status",
    [
        (AuthError("Invalid Keepa API key"), 401),
        (RateLimitError("Keepa API rate limit exceeded: Not enough tokens", retry_after_seconds=30), 429),
        (UpstreamError("Keepa API error: boom"), 500),
    ],
)
def test_classified_errors_map_to_status(use_keepa, error, status):
    client = use_keepa(StubKeepa(error=error))

    resp = client.get("/api/search", params={"keyword": "tablecraft"})

    assert resp.status_code == status
    body = resp.json()
    assert body["success"] is False
    assert body["keyword"] == "tablecraft"
    assert body["message"] == str(error)


def test_rate_limit_sets_retry_after(use_keepa):
    client = use_keepa(StubKeepa(error=RateLimitError("slow down", retry_after_seconds=30)))

    resp = client.get("/api/search", params={"keyword": "tablecraft"})

    assert resp.headers["Retry-After"] == "30"
    assert resp.json()["retry_after_seconds"] == 30


def test_placeholder_key_is_configuration_error(use_keepa):
    stub = StubKeepa(asins=["B0A"], api_key="demo-key")
    client = use_keepa(stub)

    resp = client.get("/api/search", params={"keyword": "tablecraft"})

    assert resp.status_code == 500
    assert "KEEPA_KEY" in resp.json()["hint"]
    assert stub.product_calls == 0


def test_health_and_root(use_keepa):
    client = use_keepa(StubKeepa())

    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["keepa_key_configured"] is True
    assert "GET /api/search?keyword=tablecraft" in client.get("/").json()["endpoints"]


def test_cors_preflight(use_keepa):
    client = use_keepa(StubKeepa())

    resp = client.options(
        "/api/search",
        headers={"Origin": "https://example.com", "Access-Control-Request-Method": "POST"},
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] in {"*", "https://example.com"}

"""
Regression tests for issues found during code review.

1. Unique constraint violations must return 409 (not 500)
2. X-Query-Count header must report the actual query count
3. X-Correlation-ID must be echoed or generated, and errors keep the envelope
4. CORS must not set allow_credentials=true with allow_origins=*
"""
import pytest
from httpx import ASGITransport, AsyncClient

from marketplace.main import app
from marketplace.services import catalog_service


# ---------------------------------------------------------------------------
# 1. Unique constraint violations -> 409
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_duplicate_user_returns_409(async_client: AsyncClient):
    """Creating a user with an existing username returns 409, not 500."""
    payload = {"username": "dup_user", "email": "dup1@example.com"}
    resp1 = await async_client.post("/api/v1/users", json=payload)
    assert resp1.status_code == 201

    payload2 = {"username": "dup_user", "email": "dup2@example.com"}
    resp2 = await async_client.post("/api/v1/users", json=payload2)
    assert resp2.status_code == 409
    assert resp2.json()["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_duplicate_email_returns_409(async_client: AsyncClient):
    """Creating a user with an existing email returns 409, not 500."""
    await async_client.post("/api/v1/users", json={
        "username": "emailuser1", "email": "same@example.com",
    })
    resp = await async_client.post("/api/v1/users", json={
        "username": "emailuser2", "email": "same@example.com",
    })
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_update_service_slug_collision_handled(async_client: AsyncClient):
    """Renaming a slug onto another service's slug is a 409, never a 500."""
    await async_client.post("/api/v1/services", json={"name": "First Service"})
    second = (await async_client.post("/api/v1/services", json={"name": "Second Service"})).json()["data"]

    resp = await async_client.patch(f"/api/v1/services/{second['id']}", json={"slug": "first-service"})
    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# 2. X-Query-Count reports actual query count
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_query_count_header_exact_for_service_list(async_client: AsyncClient):
    """
    The service list loads its category with joinedload, so a page is a
    single SELECT regardless of how many rows it holds.
    """
    category = (await async_client.post(
        "/api/v1/services/categories", json={"name": "QC"}
    )).json()["data"]
    for i in range(3):
        await async_client.post("/api/v1/services", json={
            "name": f"QC Service {i}", "categoryId": category["id"],
        })

    resp = await async_client.get("/api/v1/services")
    assert resp.status_code == 200
    count = int(resp.headers["x-query-count"])
    assert count == 1, f"Expected exactly 1 query for service list, got {count}"


@pytest.mark.asyncio
async def test_query_count_header_exact_for_category_detail(async_client: AsyncClient):
    """Category detail issues: SELECT category + SELECT live children = 2 queries."""
    parent = (await async_client.post(
        "/api/v1/services/categories", json={"name": "QC Parent"}
    )).json()["data"]
    await async_client.post("/api/v1/services/categories", json={"name": "QC Child", "parentId": parent["id"]})

    resp = await async_client.get(f"/api/v1/services/categories/{parent['id']}")
    assert resp.status_code == 200
    count = int(resp.headers["x-query-count"])
    assert count == 2, f"Expected exactly 2 queries for category detail, got {count}"


@pytest.mark.asyncio
async def test_response_timing_header(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert float(resp.headers["x-response-time-ms"]) >= 0


# ---------------------------------------------------------------------------
# 3. Correlation id and error envelope
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_correlation_id_is_echoed(async_client: AsyncClient):
    resp = await async_client.get("/health", headers={"X-Correlation-ID": "req-123"})
    assert resp.headers["x-correlation-id"] == "req-123"


@pytest.mark.asyncio
async def test_correlation_id_is_generated(async_client: AsyncClient):
    first = await async_client.get("/health")
    second = await async_client.get("/health")
    assert first.headers["x-correlation-id"]
    assert first.headers["x-correlation-id"] != second.headers["x-correlation-id"]


@pytest.mark.asyncio
async def test_correlation_id_on_error_responses(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/services/404", headers={"X-Correlation-ID": "trace-404"})
    assert resp.status_code == 404
    assert resp.headers["x-correlation-id"] == "trace-404"


@pytest.mark.asyncio
async def test_unhandled_error_uses_error_envelope(monkeypatch):
    """An unexpected exception becomes a 500 in the standard error envelope."""
    async def _explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(catalog_service, "get_service", _explode)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/api/v1/services/1", headers={"X-Correlation-ID": "trace-500"})

    assert resp.status_code == 500
    assert resp.headers["x-correlation-id"] == "trace-500"
    body = resp.json()
    assert body["status"] == "error"
    assert body["code"] == "INTERNAL_ERROR"
    assert body["data"] is None


# ---------------------------------------------------------------------------
# 4. CORS headers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cors_no_credentials_with_wildcard_origin(async_client: AsyncClient):
    """
    When allow_origins=["*"], the response must NOT include
    Access-Control-Allow-Credentials: true, per the CORS specification.
    """
    resp = await async_client.options(
        "/api/v1/services",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    cred_header = resp.headers.get("access-control-allow-credentials", "").lower()
    assert cred_header != "true", (
        "CORS must not combine allow_origins=* with allow_credentials=true"
    )


@pytest.mark.asyncio
async def test_cors_exposes_diagnostic_headers(async_client: AsyncClient):
    resp = await async_client.get("/health", headers={"Origin": "https://example.com"})
    exposed = resp.headers.get("access-control-expose-headers", "")
    assert "X-Correlation-ID" in exposed
    assert "X-Query-Count" in exposed

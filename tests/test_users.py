"""
User endpoint tests: creating users, listing them, and the detail view
that links a user to its seller profile.  The metrics endpoint is
exercised here too because its empty-database shape is simplest to
check before any other entity exists.
"""
import pytest
from httpx import AsyncClient


# ---------------------------------------------------------------------------
# Create user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_user(async_client: AsyncClient):
    """Creating a user with all fields returns 201 and the provided data."""
    resp = await async_client.post("/api/v1/users", json={
        "username": "newuser",
        "email": "newuser@example.com",
        "displayName": "New User",
    })
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "success"
    user = body["data"]
    assert user["username"] == "newuser"
    assert user["email"] == "newuser@example.com"
    assert user["displayName"] == "New User"
    assert "id" in user
    assert "createdAt" in user


@pytest.mark.asyncio
async def test_create_user_minimal_fields(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/users", json={
        "username": "minimal",
        "email": "minimal@example.com",
    })
    assert resp.status_code == 201
    assert resp.json()["data"]["displayName"] is None


@pytest.mark.asyncio
async def test_create_user_missing_username(async_client: AsyncClient):
    """Omitting a required field is a 400 with a per-field error list."""
    resp = await async_client.post("/api/v1/users", json={"email": "nousername@example.com"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "VALIDATION_FAILED"
    assert body["data"] is None
    assert [e["field"] for e in body["errors"]] == ["username"]


@pytest.mark.asyncio
async def test_create_user_invalid_email(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/users", json={"username": "bad", "email": "not-an-email"})
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# List users
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_users_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users")
    assert resp.status_code == 200
    assert resp.json()["data"] == []


@pytest.mark.asyncio
async def test_list_users_newest_first(async_client: AsyncClient):
    for i in range(3):
        await async_client.post("/api/v1/users", json={
            "username": f"listuser{i}",
            "email": f"listuser{i}@example.com",
        })

    users = (await async_client.get("/api/v1/users")).json()["data"]
    assert [u["username"] for u in users] == ["listuser2", "listuser1", "listuser0"]


# ---------------------------------------------------------------------------
# Get user detail
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_user_detail_without_seller(async_client: AsyncClient):
    user_id = (await async_client.post("/api/v1/users", json={
        "username": "buyer", "email": "buyer@example.com",
    })).json()["data"]["id"]

    detail = (await async_client.get(f"/api/v1/users/{user_id}")).json()["data"]
    assert detail["username"] == "buyer"
    assert detail["sellerId"] is None


@pytest.mark.asyncio
async def test_user_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users/99999")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Metrics endpoint
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_metrics_endpoint_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/metrics")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["totalServices"] == 0
    assert data["totalCategories"] == 0
    assert data["totalSellers"] == 0
    assert data["totalPayouts"] == 0
    assert data["pendingPayoutNetAmount"] == 0.0
    assert set(data["cacheInfo"]) == {"hits", "misses", "hitRate"}


@pytest.mark.asyncio
async def test_metrics_ignore_soft_deleted_services(async_client: AsyncClient):
    keep = (await async_client.post("/api/v1/services", json={"name": "Keep"})).json()["data"]
    gone = (await async_client.post("/api/v1/services", json={"name": "Gone"})).json()["data"]
    await async_client.delete(f"/api/v1/services/{gone['id']}")

    data = (await async_client.get("/api/v1/metrics")).json()["data"]
    assert data["totalServices"] == 1
    assert keep["id"] != gone["id"]

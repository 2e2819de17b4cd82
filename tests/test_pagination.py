"""
Cursor pagination tests: the token codec, the keyset walk over ties, and
the page-boundary flags.

Walk tests go through ``catalog_service.get_services`` with rows seeded
directly via the session, so the only variable is the pagination layer.
"""
import base64
import json
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.config import settings
from marketplace.exceptions import ValidationError
from marketplace.models import Service, ServiceStatus
from marketplace.pagination import decode_cursor, encode_cursor
from marketplace.services import catalog_service


async def _seed_services(db: AsyncSession, orders: list[int]) -> list[Service]:
    services = []
    for i, order in enumerate(orders):
        service = Service(
            name=f"Service {i:02d}",
            slug=f"service-{i:02d}",
            order=order,
            status=ServiceStatus.ACTIVE,
        )
        db.add(service)
        services.append(service)
    await db.commit()
    return services


async def _walk(db: AsyncSession, limit: int, **kwargs) -> list[list[dict]]:
    """Follow nextCursor until exhausted; return the pages."""
    pages = []
    cursor = None
    while True:
        page = await catalog_service.get_services(db, cursor=cursor, limit=limit, **kwargs)
        pages.append(page["items"])
        if not page["meta"]["hasNextPage"]:
            return pages
        cursor = page["meta"]["nextCursor"]
        assert len(pages) < 50, "pagination did not terminate"


# ---------------------------------------------------------------------------
# Cursor codec
# ---------------------------------------------------------------------------

def test_cursor_is_base64_json_with_value():
    token = encode_cursor(3)
    payload = json.loads(base64.b64decode(token))
    assert payload == {"value": 3}
    assert decode_cursor(token) == {"value": 3}


def test_cursor_carries_tiebreak_fields():
    created = datetime(2026, 9, 1, 12, 0, tzinfo=timezone.utc)
    decoded = decode_cursor(encode_cursor("alpha", created_at=created, row_id=7))
    assert decoded["value"] == "alpha"
    assert decoded["createdAt"] == created.isoformat()
    assert decoded["id"] == 7


@pytest.mark.parametrize("token", [
    "not base64 at all!",
    base64.b64encode(b"{broken json").decode(),
    base64.b64encode(b"[1, 2, 3]").decode(),
    base64.b64encode(b'{"other": 1}').decode(),
    base64.b64encode(b"\xff\xfe").decode(),
    base64.b64encode(b'{"value": Infinity}').decode(),
    base64.b64encode(b'{"value": NaN}').decode(),
])
def test_malformed_cursor_decodes_to_null_value(token):
    assert decode_cursor(token) == {"value": None}


# ---------------------------------------------------------------------------
# Keyset walk
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("sort_order", ["ASC", "DESC"])
@pytest.mark.parametrize("limit", [1, 2, 3, 7])
async def test_walk_returns_every_row_exactly_once(db_session: AsyncSession, sort_order, limit):
    """Heavy ties on ``order`` must neither skip nor repeat rows."""
    await _seed_services(db_session, [0, 0, 0, 1, 1, 2, 0, 5, 5, 1])

    pages = await _walk(db_session, limit, sort_by="order", sort_order=sort_order)
    ids = [item["id"] for page in pages for item in page]

    assert len(ids) == 10
    assert len(set(ids)) == 10
    assert all(len(page) <= limit for page in pages)

    orders = [item["order"] for page in pages for item in page]
    assert orders == sorted(orders, reverse=(sort_order == "DESC"))


@pytest.mark.asyncio
async def test_walk_by_name(db_session: AsyncSession):
    await _seed_services(db_session, [0] * 5)
    pages = await _walk(db_session, 2, sort_by="name", sort_order="ASC")
    names = [item["name"] for page in pages for item in page]
    assert names == [f"Service {i:02d}" for i in range(5)]


@pytest.mark.asyncio
async def test_value_only_cursor_excludes_boundary(db_session: AsyncSession):
    """A bare ``{"value": v}`` token selects strictly after v."""
    await _seed_services(db_session, [1, 2, 3, 4])
    page = await catalog_service.get_services(
        db_session, cursor=encode_cursor(2), limit=10, sort_by="order"
    )
    assert [item["order"] for item in page["items"]] == [3, 4]
    assert page["meta"]["hasPreviousPage"] is True


@pytest.mark.asyncio
async def test_value_only_cursor_descending(db_session: AsyncSession):
    await _seed_services(db_session, [1, 2, 3, 4])
    page = await catalog_service.get_services(
        db_session, cursor=encode_cursor(3), limit=10, sort_by="order", sort_order="DESC"
    )
    assert [item["order"] for item in page["items"]] == [2, 1]


# ---------------------------------------------------------------------------
# Page flags
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_exactly_limit_rows_has_no_next_page(db_session: AsyncSession):
    await _seed_services(db_session, [0, 1, 2])
    page = await catalog_service.get_services(db_session, limit=3)
    meta = page["meta"]
    assert len(page["items"]) == 3
    assert meta["hasNextPage"] is False
    assert meta["hasPreviousPage"] is False
    assert "nextCursor" not in meta
    assert "previousCursor" not in meta


@pytest.mark.asyncio
async def test_limit_plus_one_rows_has_next_page(db_session: AsyncSession):
    await _seed_services(db_session, [0, 1, 2, 3])
    page = await catalog_service.get_services(db_session, limit=3)
    meta = page["meta"]
    assert len(page["items"]) == 3
    assert meta["hasNextPage"] is True
    assert decode_cursor(meta["nextCursor"])["value"] == 2


@pytest.mark.asyncio
async def test_previous_cursor_echoes_request_cursor(db_session: AsyncSession):
    await _seed_services(db_session, [0, 1, 2])
    first = await catalog_service.get_services(db_session, limit=1)
    cursor = first["meta"]["nextCursor"]
    second = await catalog_service.get_services(db_session, cursor=cursor, limit=1)
    assert second["meta"]["previousCursor"] == cursor
    assert second["meta"]["hasPreviousPage"] is True


@pytest.mark.asyncio
async def test_limit_is_clamped_to_max_page_size(db_session: AsyncSession, monkeypatch):
    monkeypatch.setattr(settings, "MAX_PAGE_SIZE", 2)
    await _seed_services(db_session, [0, 1, 2])
    page = await catalog_service.get_services(db_session, limit=50)
    assert page["meta"]["limit"] == 2
    assert len(page["items"]) == 2


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("cursor", [
    "%%%garbage%%%",
    base64.b64encode(b'{"value": Infinity}').decode(),
    base64.b64encode(b'{"value": 1e400}').decode(),
    base64.b64encode(b'{"value": 99999999999999999999999}').decode(),
    base64.b64encode(b'{"value": 1, "createdAt": "2026-01-01T00:00:00+00:00", "id": 99999999999999999999999}').decode(),
])
async def test_malformed_cursor_serves_first_page(db_session: AsyncSession, cursor):
    await _seed_services(db_session, [0, 1])
    page = await catalog_service.get_services(db_session, cursor=cursor, limit=10, sort_by="order")
    assert [item["order"] for item in page["items"]] == [0, 1]


@pytest.mark.asyncio
async def test_malformed_cursor_rejected_in_strict_mode(db_session: AsyncSession, monkeypatch):
    monkeypatch.setattr(settings, "CURSOR_STRICT", True)
    with pytest.raises(ValidationError):
        await catalog_service.get_services(db_session, cursor="%%%garbage%%%", limit=10)


@pytest.mark.asyncio
async def test_unknown_sort_field_raises(db_session: AsyncSession):
    with pytest.raises(ValidationError) as excinfo:
        await catalog_service.get_services(db_session, sort_by="deletedAt")
    assert "order" in excinfo.value.message


@pytest.mark.asyncio
async def test_unknown_sort_field_returns_400(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/services", params={"sortBy": "password"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["status"] == "error"
    assert body["code"] == "VALIDATION_FAILED"
    assert body["errors"][0]["field"] == "sortBy"


@pytest.mark.asyncio
async def test_invalid_sort_order_returns_400(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/services", params={"sortOrder": "sideways"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_limit_above_ceiling_returns_400(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/services", params={"limit": 1000})
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Over HTTP
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_http_walk_with_next_cursor(async_client: AsyncClient):
    for i in range(5):
        resp = await async_client.post("/api/v1/services", json={"name": f"Walk {i}", "order": i})
        assert resp.status_code == 201

    seen = []
    params = {"limit": 2, "sortBy": "order"}
    while True:
        body = (await async_client.get("/api/v1/services", params=params)).json()
        seen.extend(item["slug"] for item in body["data"])
        if not body["meta"]["hasNextPage"]:
            break
        params["cursor"] = body["meta"]["nextCursor"]

    assert seen == [f"walk-{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_out_of_range_cursor_over_http_serves_first_page(async_client: AsyncClient):
    await async_client.post("/api/v1/services", json={"name": "Range", "order": 1})
    cursor = base64.b64encode(b'{"value": 1e400}').decode()
    resp = await async_client.get("/api/v1/services", params={"cursor": cursor, "sortBy": "order"})
    assert resp.status_code == 200
    assert [item["slug"] for item in resp.json()["data"]] == ["range"]


@pytest.mark.asyncio
async def test_out_of_range_cursor_rejected_in_strict_mode(db_session: AsyncSession, monkeypatch):
    monkeypatch.setattr(settings, "CURSOR_STRICT", True)
    cursor = base64.b64encode(b'{"value": 99999999999999999999999}').decode()
    with pytest.raises(ValidationError):
        await catalog_service.get_services(db_session, cursor=cursor, sort_by="order")

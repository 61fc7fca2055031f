"""
Admin user endpoint tests: listing with search, detail, multipart update
with avatar replacement, deletion, and the metrics endpoint.

The metrics endpoint is tested here because it aggregates across users and
products and is simplest to exercise once user creation is established.
"""
import pytest
from httpx import AsyncClient

from shop_admin.storage import AVATARS
from tests.fakes import MemoryCache, RecordingBlobStore

PNG_BYTES = b"\x89PNG\r\n\x1a\n fake image body"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _register(client: AsyncClient, username: str, email: str, **extra) -> dict:
    resp = await client.post(
        "/api/register",
        data={"username": username, "name": username.title(), "email": email, "password": "secret123"},
        **extra,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# List users
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_users_empty(async_client: AsyncClient, auth_headers: dict):
    resp = await async_client.get("/api/admin/users", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_list_users_newest_first(async_client: AsyncClient, auth_headers: dict):
    first = await _register(async_client, "alice", "alice@example.com")
    second = await _register(async_client, "bobby", "bobby@example.com")

    resp = await async_client.get("/api/admin/users", headers=auth_headers)
    ids = [user["id"] for user in resp.json()]
    assert ids == [second["id"], first["id"]]


@pytest.mark.asyncio
async def test_list_users_search_is_case_insensitive(async_client: AsyncClient, auth_headers: dict):
    await _register(async_client, "alice", "alice@example.com")
    await _register(async_client, "bobby", "bobby@shop.example.com")

    resp = await async_client.get("/api/admin/users", params={"search": "SHOP"}, headers=auth_headers)
    assert [user["username"] for user in resp.json()] == ["bobby"]


@pytest.mark.asyncio
async def test_list_users_search_treats_wildcards_literally(async_client: AsyncClient, auth_headers: dict):
    await _register(async_client, "alice", "alice@example.com")

    resp = await async_client.get("/api/admin/users", params={"search": "%"}, headers=auth_headers)
    assert resp.json() == []


@pytest.mark.asyncio
async def test_list_users_second_read_hits_cache(
    async_client: AsyncClient, auth_headers: dict, cache: MemoryCache
):
    await _register(async_client, "alice", "alice@example.com")

    first = await async_client.get("/api/admin/users", headers=auth_headers)
    second = await async_client.get("/api/admin/users", headers=auth_headers)

    assert first.json() == second.json()
    assert int(first.headers["x-query-count"]) >= 1
    assert second.headers["x-query-count"] == "0"
    assert "users:{}" in cache.store


# ---------------------------------------------------------------------------
# Get user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_user_detail(async_client: AsyncClient, auth_headers: dict):
    created = await _register(async_client, "alice", "alice@example.com")
    resp = await async_client.get(f"/api/admin/users/{created['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_get_user_not_found(async_client: AsyncClient, auth_headers: dict):
    resp = await async_client.get("/api/admin/users/99999", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json() == {"message": "User with ID: 99999 not found.", "errors": []}


# ---------------------------------------------------------------------------
# Update user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_user_fields(async_client: AsyncClient, auth_headers: dict):
    created = await _register(async_client, "alice", "alice@example.com")
    await async_client.get(f"/api/admin/users/{created['id']}", headers=auth_headers)

    resp = await async_client.put(
        f"/api/admin/users/{created['id']}",
        data={"name": "Alice Wonder", "address": '{"city": "Medan"}'},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Alice Wonder"
    assert resp.json()["address"]["city"] == "Medan"

    fresh = await async_client.get(f"/api/admin/users/{created['id']}", headers=auth_headers)
    assert fresh.json()["name"] == "Alice Wonder"


@pytest.mark.asyncio
async def test_update_user_replaces_avatar(
    async_client: AsyncClient, auth_headers: dict, blobs: RecordingBlobStore
):
    created = await _register(
        async_client,
        "alice",
        "alice@example.com",
        files={"profile_picture": ("old.png", PNG_BYTES, "image/png")},
    )
    old_name = created["profile_picture"]

    resp = await async_client.put(
        f"/api/admin/users/{created['id']}",
        files={"profile_picture": ("new.jpg", PNG_BYTES, "image/jpeg")},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    new_name = resp.json()["profile_picture"]

    assert new_name != old_name
    assert blobs.deleted_names == [old_name]
    assert [path.name for path in (blobs.root / AVATARS).iterdir()] == [new_name]


@pytest.mark.asyncio
async def test_update_user_invalid_role_returns_400(async_client: AsyncClient, auth_headers: dict):
    created = await _register(async_client, "alice", "alice@example.com")
    resp = await async_client.put(
        f"/api/admin/users/{created['id']}", data={"role": "superuser"}, headers=auth_headers
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "role"


@pytest.mark.asyncio
async def test_update_missing_user_discards_upload(
    async_client: AsyncClient, auth_headers: dict, blobs: RecordingBlobStore
):
    resp = await async_client.put(
        "/api/admin/users/424242",
        data={"name": "Nobody"},
        files={"profile_picture": ("x.png", PNG_BYTES, "image/png")},
        headers=auth_headers,
    )
    assert resp.status_code == 404
    assert list((blobs.root / AVATARS).iterdir()) == []
    assert len(blobs.deleted) == 1


@pytest.mark.asyncio
async def test_update_user_duplicate_email_returns_409(async_client: AsyncClient, auth_headers: dict):
    await _register(async_client, "alice", "alice@example.com")
    bobby = await _register(async_client, "bobby", "bobby@example.com")

    resp = await async_client.put(
        f"/api/admin/users/{bobby['id']}", data={"email": "ALICE@example.com"}, headers=auth_headers
    )
    assert resp.status_code == 409
    assert resp.json()["errors"] == [{"field": "email", "message": "Email already exists."}]


# ---------------------------------------------------------------------------
# Delete user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_user(async_client: AsyncClient, auth_headers: dict, blobs: RecordingBlobStore):
    created = await _register(
        async_client,
        "alice",
        "alice@example.com",
        files={"profile_picture": ("me.png", PNG_BYTES, "image/png")},
    )
    await async_client.get("/api/admin/users", headers=auth_headers)

    resp = await async_client.delete(f"/api/admin/users/{created['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "User deleted successfully"}
    assert blobs.deleted_names == [created["profile_picture"]]

    listing = await async_client.get("/api/admin/users", headers=auth_headers)
    assert listing.json() == []
    detail = await async_client.get(f"/api/admin/users/{created['id']}", headers=auth_headers)
    assert detail.status_code == 404


@pytest.mark.asyncio
async def test_delete_missing_user_returns_404(async_client: AsyncClient, auth_headers: dict):
    resp = await async_client.delete("/api/admin/users/31337", headers=auth_headers)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_metrics_endpoint(async_client: AsyncClient, auth_headers: dict):
    await _register(async_client, "alice", "alice@example.com")
    await async_client.post(
        "/api/admin/products",
        data={"name": "Canvas Bag", "description": "Tote", "price": "25", "stock": "3", "category": "bags"},
        headers=auth_headers,
    )

    resp = await async_client.get("/api/admin/metrics", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_users"] == 1
    assert data["total_products"] == 1
    assert data["cache_info"]["backend"] == "memory"


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


"""
Regression tests for issues found during code review.

1. Constraint violations must return 409 (not 500), including the race
   where two writers both pass the pre-check and the race where a category
   gains a tutorial while it is being deleted
2. Expired, forged and non-admin tokens are rejected with 401/403
3. X-Query-Count header must report actual query count (not always 0)
4. CORS must not set allow_credentials=true with allow_origins=*
5. Unexpected exceptions surface as a JSON 500, not a dropped connection
6. Cache namespaces are dropped only after the write has committed
"""
import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from electrolab import store
from electrolab.auth import create_access_token
from electrolab.cache import cache
from electrolab.config import settings
from electrolab.main import app
from electrolab.services import content_service


# ---------------------------------------------------------------------------
# 1. Unique constraint violations -> 409
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_racing_category_create_returns_409(admin_client: AsyncClient, monkeypatch):
    """A create that slips past the slug pre-check still returns 409."""
    resp = await admin_client.post("/api/v1/admin/categories", json={"name": "Sensors"})
    assert resp.status_code == 201

    async def stale_lookup(db, slug):
        return None

    monkeypatch.setattr(store, "find_category_by_slug", stale_lookup)
    resp = await admin_client.post("/api/v1/admin/categories", json={"name": "Sensors"})
    assert resp.status_code == 409
    assert resp.json()["field"] == "slug"


@pytest.mark.asyncio
async def test_racing_tutorial_rename_returns_409(admin_client: AsyncClient, monkeypatch):
    cat = (await admin_client.post("/api/v1/admin/categories", json={"name": "Sensors"})).json()
    await admin_client.post("/api/v1/admin/tutorials", json={"title": "DHT22", "category_id": cat["id"]})
    other = (await admin_client.post(
        "/api/v1/admin/tutorials", json={"title": "BME280", "category_id": cat["id"]}
    )).json()

    async def slug_is_free(db, slug, exclude_id=None):
        return None

    monkeypatch.setattr(content_service, "_ensure_tutorial_slug_free", slug_is_free)
    resp = await admin_client.put(f"/api/v1/admin/tutorials/{other['id']}", json={"slug": "dht22"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_category_gaining_tutorial_during_delete_returns_409(
    admin_client: AsyncClient, monkeypatch
):
    """A tutorial inserted after the delete guard ran still blocks the delete."""
    cat = (await admin_client.post("/api/v1/admin/categories", json={"name": "Sensors"})).json()
    resp = await admin_client.post(
        "/api/v1/admin/tutorials", json={"title": "DHT22", "category_id": cat["id"]}
    )
    assert resp.status_code == 201

    async def guard_saw_nothing(db, category_id):
        return False

    monkeypatch.setattr(store, "category_has_tutorials", guard_saw_nothing)
    resp = await admin_client.delete(f"/api/v1/admin/categories/{cat['id']}")
    assert resp.status_code == 409
    assert resp.json() == {"detail": "Category has associated tutorials", "field": "category_id"}

    monkeypatch.undo()
    assert [c["id"] for c in (await admin_client.get("/api/v1/admin/categories")).json()] == [cat["id"]]
    assert (await admin_client.get("/api/v1/admin/tutorials")).json()[0]["category_id"] == cat["id"]


# ---------------------------------------------------------------------------
# 2. Auth boundary
# ---------------------------------------------------------------------------

async def _get_with_token(token: str | None, *, bearer: bool = False):
    transport = ASGITransport(app=app)
    headers = {}
    cookies = {}
    if token and bearer:
        headers["Authorization"] = f"Bearer {token}"
    elif token:
        cookies[settings.AUTH_COOKIE_NAME] = token
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=headers, cookies=cookies
    ) as client:
        return await client.get("/api/v1/admin/categories")


@pytest.mark.asyncio
async def test_missing_token_returns_401():
    resp = await _get_with_token(None)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "No token provided"


@pytest.mark.asyncio
async def test_expired_token_returns_401():
    token = create_access_token("old-admin", expires_in_seconds=-60)
    resp = await _get_with_token(token)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


@pytest.mark.asyncio
async def test_forged_token_returns_401():
    token = jwt.encode({"sub": "mallory", "role": "admin"}, "not-the-key", algorithm="HS256")
    resp = await _get_with_token(token)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


@pytest.mark.asyncio
async def test_non_admin_role_returns_403():
    token = create_access_token("reader", role="viewer")
    resp = await _get_with_token(token)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Admin access required"


@pytest.mark.asyncio
async def test_bearer_header_is_accepted(admin_token: str):
    resp = await _get_with_token(admin_token, bearer=True)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_public_routes_need_no_token(anon_client: AsyncClient):
    assert (await anon_client.get("/api/v1/categories")).status_code == 200
    assert (await anon_client.get("/api/v1/tutorials")).status_code == 200
    assert (await anon_client.get("/health")).json()["status"] == "healthy"


# ---------------------------------------------------------------------------
# 3. X-Query-Count header
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_query_count_header_is_nonzero(admin_client: AsyncClient):
    resp = await admin_client.get("/api/v1/admin/dashboard")
    assert resp.status_code == 200
    assert int(resp.headers["x-query-count"]) > 0
    assert float(resp.headers["x-response-time-ms"]) >= 0


# ---------------------------------------------------------------------------
# 4. CORS
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cors_does_not_allow_credentials_with_wildcard(anon_client: AsyncClient):
    resp = await anon_client.options(
        "/api/v1/tutorials",
        headers={"Origin": "http://evil.example", "Access-Control-Request-Method": "GET"},
    )
    assert resp.headers.get("access-control-allow-origin") == "*"
    assert resp.headers.get("access-control-allow-credentials") != "true"


# ---------------------------------------------------------------------------
# 5. Unexpected errors
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unhandled_error_returns_json_500(monkeypatch):
    async def boom(db):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(content_service, "dashboard_counts", boom)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        cookies={settings.AUTH_COOKIE_NAME: create_access_token("admin")},
    ) as client:
        resp = await client.get("/api/v1/admin/dashboard")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}


# ---------------------------------------------------------------------------
# 6. Cache invalidation happens after the commit, never before
# ---------------------------------------------------------------------------

@pytest.fixture
def write_log(monkeypatch) -> list[str]:
    """Records session commits and cache invalidations in the order they happen."""
    log: list[str] = []
    original_commit = AsyncSession.commit

    async def logged_commit(self):
        log.append("commit")
        await original_commit(self)

    async def logged_invalidate(namespace):
        log.append(f"invalidate:{namespace}")

    monkeypatch.setattr(AsyncSession, "commit", logged_commit)
    monkeypatch.setattr(cache, "invalidate", logged_invalidate)
    return log


@pytest.mark.asyncio
async def test_category_write_invalidates_after_commit(admin_client: AsyncClient, write_log):
    resp = await admin_client.post("/api/v1/admin/categories", json={"name": "Sensors"})
    assert resp.status_code == 201
    assert write_log == ["commit", "invalidate:categories"]


@pytest.mark.asyncio
async def test_page_view_invalidates_after_commit(anon_client: AsyncClient, write_log):
    resp = await anon_client.post(
        "/api/v1/analytics/pageview", json={"page": "/tutorial/blink", "session_id": "s"}
    )
    assert resp.status_code == 201
    assert write_log == ["commit", "invalidate:analytics"]


@pytest.mark.asyncio
async def test_rejected_write_leaves_cache_alone(admin_client: AsyncClient, write_log):
    await admin_client.post("/api/v1/admin/categories", json={"name": "Sensors"})
    write_log.clear()
    resp = await admin_client.post("/api/v1/admin/categories", json={"name": "Sensors"})
    assert resp.status_code == 409
    assert write_log == []

"""
Comment moderation tests.

Covers the admin moderation queue (create, list, approve, delete), the
public submission/threading path, and replies whose parent has been
deleted.
"""
import pytest
from httpx import AsyncClient

ADMIN = "/api/v1/admin/comments"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _published_tutorial(client: AsyncClient, title: str = "Blink", category: str = "Arduino") -> dict:
    cat = await client.post("/api/v1/admin/categories", json={"name": category})
    if cat.status_code == 409:
        category_id = (await client.get("/api/v1/admin/categories")).json()[0]["id"]
    else:
        category_id = cat.json()["id"]
    resp = await client.post(
        "/api/v1/admin/tutorials",
        json={"title": title, "category_id": category_id, "published": True},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _comment(client: AsyncClient, tutorial_id: int, parent_id: int | None = None, **extra) -> dict:
    payload = {
        "tutorial_id": tutorial_id,
        "parent_id": parent_id,
        "author_name": "Grace",
        "author_email": "grace@example.com",
        "content": "Which resistor did you use?",
        **extra,
    }
    resp = await client.post(ADMIN, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_new_comment_starts_pending(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    comment = await _comment(admin_client, tutorial["id"])
    assert comment["approved"] is False
    assert comment["tutorial_id"] == tutorial["id"]
    assert comment["parent_id"] is None


@pytest.mark.asyncio
async def test_admin_can_create_approved(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    comment = await _comment(admin_client, tutorial["id"], approved=True)
    assert comment["approved"] is True


@pytest.mark.asyncio
async def test_comment_on_missing_tutorial_returns_422(admin_client: AsyncClient):
    resp = await admin_client.post(ADMIN, json={
        "tutorial_id": 999, "author_name": "Grace",
        "author_email": "grace@example.com", "content": "Hello",
    })
    assert resp.status_code == 422
    assert resp.json()["field"] == "tutorial_id"


@pytest.mark.asyncio
async def test_comment_requires_content(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    resp = await admin_client.post(ADMIN, json={
        "tutorial_id": tutorial["id"], "author_name": "Grace",
        "author_email": "grace@example.com", "content": "",
    })
    assert resp.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["author_name", "content"])
async def test_whitespace_only_comment_text_returns_422(admin_client: AsyncClient, field):
    tutorial = await _published_tutorial(admin_client)
    payload = {
        "tutorial_id": tutorial["id"], "author_name": "Grace",
        "author_email": "grace@example.com", "content": "Hello",
    }
    payload[field] = "   "
    resp = await admin_client.post(ADMIN, json=payload)
    assert resp.status_code == 422
    assert resp.json()["field"] == field
    assert (await admin_client.get(ADMIN, params={"status": "all"})).json() == []


@pytest.mark.asyncio
async def test_reply_to_other_tutorial_returns_422(admin_client: AsyncClient):
    blink = await _published_tutorial(admin_client, "Blink")
    fade = await _published_tutorial(admin_client, "Fade")
    parent = await _comment(admin_client, blink["id"])
    resp = await admin_client.post(ADMIN, json={
        "tutorial_id": fade["id"], "parent_id": parent["id"], "author_name": "Grace",
        "author_email": "grace@example.com", "content": "Cross-posted reply",
    })
    assert resp.status_code == 422
    assert resp.json()["field"] == "parent_id"


# ---------------------------------------------------------------------------
# Moderation queue
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reply_scenario(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    a = await _comment(admin_client, tutorial["id"])
    b = await _comment(admin_client, tutorial["id"], parent_id=a["id"])

    resp = await admin_client.get(ADMIN, params={"status": "pending"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    by_id = {c["id"]: c for c in body["comments"]}
    assert by_id[a["id"]]["reply_count"] == 1
    assert by_id[b["id"]]["reply_count"] == 0
    assert by_id[b["id"]]["parent_id"] == a["id"]
    assert by_id[a["id"]]["tutorial_title"] == "Blink"
    assert by_id[a["id"]]["tutorial_slug"] == "blink"


@pytest.mark.asyncio
async def test_queue_defaults_to_pending_newest_first(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    first = await _comment(admin_client, tutorial["id"], content="first")
    second = await _comment(admin_client, tutorial["id"], content="second")
    await _comment(admin_client, tutorial["id"], content="approved", approved=True)

    body = (await admin_client.get(ADMIN)).json()
    assert [c["id"] for c in body["comments"]] == [second["id"], first["id"]]


@pytest.mark.asyncio
async def test_status_filters(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    pending = await _comment(admin_client, tutorial["id"])
    approved = await _comment(admin_client, tutorial["id"], approved=True)

    only_pending = (await admin_client.get(ADMIN, params={"status": "pending"})).json()["comments"]
    only_approved = (await admin_client.get(ADMIN, params={"status": "approved"})).json()["comments"]
    everything = (await admin_client.get(ADMIN, params={"status": "all"})).json()["comments"]
    assert [c["id"] for c in only_pending] == [pending["id"]]
    assert [c["id"] for c in only_approved] == [approved["id"]]
    assert {c["id"] for c in everything} == {pending["id"], approved["id"]}

    legacy = (await admin_client.get(ADMIN, params={"approved": "true"})).json()["comments"]
    assert [c["id"] for c in legacy] == [approved["id"]]


@pytest.mark.asyncio
async def test_unknown_status_returns_422(admin_client: AsyncClient):
    resp = await admin_client.get(ADMIN, params={"status": "spam"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_filter_by_tutorial(admin_client: AsyncClient):
    blink = await _published_tutorial(admin_client, "Blink")
    fade = await _published_tutorial(admin_client, "Fade")
    await _comment(admin_client, blink["id"])
    on_fade = await _comment(admin_client, fade["id"])
    body = (await admin_client.get(ADMIN, params={"tutorial_id": fade["id"]})).json()
    assert [c["id"] for c in body["comments"]] == [on_fade["id"]]


# ---------------------------------------------------------------------------
# Approve / delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_approve_moves_comment_between_queues(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    comment = await _comment(admin_client, tutorial["id"])

    resp = await admin_client.patch(f"{ADMIN}/{comment['id']}", json={"action": "approve"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Comment approved successfully"}

    pending = (await admin_client.get(ADMIN, params={"status": "pending"})).json()
    approved = (await admin_client.get(ADMIN, params={"status": "approved"})).json()
    assert pending["total"] == 0
    assert [c["id"] for c in approved["comments"]] == [comment["id"]]


@pytest.mark.asyncio
async def test_approve_twice_is_idempotent(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    comment = await _comment(admin_client, tutorial["id"])
    for _ in range(2):
        resp = await admin_client.patch(f"{ADMIN}/{comment['id']}", json={"action": "approve"})
        assert resp.status_code == 200
    approved = (await admin_client.get(ADMIN, params={"status": "approved"})).json()
    assert approved["total"] == 1


@pytest.mark.asyncio
async def test_invalid_action_returns_400(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    comment = await _comment(admin_client, tutorial["id"])
    resp = await admin_client.patch(f"{ADMIN}/{comment['id']}", json={"action": "reject"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid action"


@pytest.mark.asyncio
async def test_approve_or_delete_missing_returns_404(admin_client: AsyncClient):
    resp = await admin_client.patch(f"{ADMIN}/4242", json={"action": "approve"})
    assert resp.status_code == 404
    resp = await admin_client.delete(f"{ADMIN}/4242")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_pending_and_approved(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    pending = await _comment(admin_client, tutorial["id"])
    approved = await _comment(admin_client, tutorial["id"], approved=True)

    for comment in (pending, approved):
        resp = await admin_client.delete(f"{ADMIN}/{comment['id']}")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Comment deleted successfully"

    assert (await admin_client.get(ADMIN, params={"status": "all"})).json()["total"] == 0


@pytest.mark.asyncio
async def test_deleting_parent_orphans_reply(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    a = await _comment(admin_client, tutorial["id"])
    b = await _comment(admin_client, tutorial["id"], parent_id=a["id"])

    assert (await admin_client.delete(f"{ADMIN}/{a['id']}")).status_code == 200

    body = (await admin_client.get(ADMIN, params={"status": "all"})).json()
    assert body["total"] == 1
    orphan = body["comments"][0]
    assert orphan["id"] == b["id"]
    assert orphan["parent_id"] == a["id"]
    assert orphan["orphaned"] is True


@pytest.mark.asyncio
async def test_deleting_tutorial_removes_comments(admin_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    await _comment(admin_client, tutorial["id"])
    resp = await admin_client.delete(f"/api/v1/admin/tutorials/{tutorial['id']}")
    assert resp.status_code == 204
    assert (await admin_client.get(ADMIN, params={"status": "all"})).json()["total"] == 0


# ---------------------------------------------------------------------------
# Public path
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_public_submission_is_pending(admin_client: AsyncClient, anon_client: AsyncClient):
    await _published_tutorial(admin_client)
    resp = await anon_client.post("/api/v1/tutorials/blink/comments", json={
        "author_name": "Linus", "author_email": "linus@example.com",
        "content": "Worked on my Nano too", "approved": True,
    })
    assert resp.status_code == 201
    assert resp.json()["approved"] is False
    assert (await anon_client.get("/api/v1/tutorials/blink/comments")).json() == []


@pytest.mark.asyncio
async def test_public_submission_on_draft_returns_404(admin_client: AsyncClient, anon_client: AsyncClient):
    cat = (await admin_client.post("/api/v1/admin/categories", json={"name": "Arduino"})).json()
    await admin_client.post(
        "/api/v1/admin/tutorials", json={"title": "Secret", "category_id": cat["id"]}
    )
    resp = await anon_client.post("/api/v1/tutorials/secret/comments", json={
        "author_name": "Linus", "author_email": "linus@example.com", "content": "Hi",
    })
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["author_name", "content"])
async def test_public_whitespace_only_submission_returns_422(
    admin_client: AsyncClient, anon_client: AsyncClient, field
):
    await _published_tutorial(admin_client)
    payload = {"author_name": "Linus", "author_email": "linus@example.com", "content": "Hi"}
    payload[field] = "\t \n"
    resp = await anon_client.post("/api/v1/tutorials/blink/comments", json=payload)
    assert resp.status_code == 422
    assert resp.json()["field"] == field


@pytest.mark.asyncio
async def test_public_thread_shows_approved_only(admin_client: AsyncClient, anon_client: AsyncClient):
    tutorial = await _published_tutorial(admin_client)
    top = await _comment(admin_client, tutorial["id"], content="Top", approved=True)
    reply = await _comment(admin_client, tutorial["id"], parent_id=top["id"], content="Reply", approved=True)
    await _comment(admin_client, tutorial["id"], parent_id=top["id"], content="Unmoderated")

    threads = (await anon_client.get("/api/v1/tutorials/blink/comments")).json()
    assert len(threads) == 1
    assert threads[0]["id"] == top["id"]
    assert [r["id"] for r in threads[0]["replies"]] == [reply["id"]]
    assert "author_email" not in threads[0]


@pytest.mark.asyncio
async def test_comment_routes_require_admin(anon_client: AsyncClient):
    assert (await anon_client.get(ADMIN)).status_code == 401
    assert (await anon_client.patch(f"{ADMIN}/1", json={"action": "approve"})).status_code == 401
    assert (await anon_client.delete(f"{ADMIN}/1")).status_code == 401

"""Tests for administrator endpoints."""

import logging
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models import Bookmark, Comment, Follow, Like, Notification, NotificationReceipt, Post, User
from services import accounts


def make_user_payload(prefix: str) -> dict[str, str | None]:
    suffix = uuid4().hex[:6]
    return {
        "username": f"{prefix}_{suffix}",
        "email": f"{prefix}_{suffix}@example.com",
        "password": "Sup3rSecret!",
    }


async def register_and_login(async_client: AsyncClient, prefix: str) -> tuple[str, dict[str, str]]:
    payload = make_user_payload(prefix)
    register = await async_client.post("/api/v1/auth/register", json=payload)
    login = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": payload["password"]},
    )
    return register.json()["id"], {"Authorization": f"Bearer {login.json()['access_token']}"}


async def register_admin(
    async_client: AsyncClient, db_session: AsyncSession
) -> tuple[str, dict[str, str]]:
    admin_id, headers = await register_and_login(async_client, "admin")
    await db_session.execute(update(User).where(User.id == admin_id).values(is_admin=True))
    await db_session.commit()
    return admin_id, headers


async def count_rows(db_session: AsyncSession, model) -> int:
    return int(await db_session.scalar(select(func.count()).select_from(model)) or 0)


@pytest.mark.asyncio
async def test_broadcast_to_all_reaches_every_user(
    async_client: AsyncClient, db_session: AsyncSession
):
    admin_id, admin_headers = await register_admin(async_client, db_session)
    _, member_headers = await register_and_login(async_client, "member")

    response = await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "announcement", "message": "Scheduled downtime", "recipient_id": "all"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["recipient_class"] == "all"
    assert body["recipient_user_id"] is None
    assert body["recipient_username"] is None
    assert body["sender"]["id"] == admin_id
    assert body["sender"]["username"].startswith("admin_")

    for headers in (admin_headers, member_headers):
        listing = await async_client.get("/api/v1/notifications", headers=headers)
        assert [item["id"] for item in listing.json()] == [body["id"]]


@pytest.mark.asyncio
async def test_broadcast_to_admins_is_hidden_from_members(
    async_client: AsyncClient, db_session: AsyncSession
):
    _, admin_headers = await register_admin(async_client, db_session)
    _, member_headers = await register_and_login(async_client, "member")

    response = await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "alert", "message": "Queue is backed up", "recipient_id": "admins"},
        headers=admin_headers,
    )
    assert response.status_code == 201

    member_listing = await async_client.get("/api/v1/notifications", headers=member_headers)
    assert member_listing.json() == []
    admin_listing = await async_client.get("/api/v1/notifications", headers=admin_headers)
    assert len(admin_listing.json()) == 1


@pytest.mark.asyncio
async def test_broadcast_to_specific_user_includes_usernames(
    async_client: AsyncClient, db_session: AsyncSession
):
    _, admin_headers = await register_admin(async_client, db_session)
    member_id, _ = await register_and_login(async_client, "member")

    response = await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "message", "message": "Please update your bio", "recipient_id": member_id},
        headers=admin_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["recipient_user_id"] == member_id
    assert body["recipient_username"].startswith("member_")


@pytest.mark.asyncio
async def test_admin_may_notify_themselves(async_client: AsyncClient, db_session: AsyncSession):
    admin_id, admin_headers = await register_admin(async_client, db_session)

    response = await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "update", "message": "Note to self", "recipient_id": admin_id},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert await count_rows(db_session, Notification) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "status_code", "kind"),
    [
        ({"type": "announcement", "recipient_id": "all"}, 422, "ValidationFailed"),
        ({"type": "", "message": "Hello", "recipient_id": "all"}, 422, "ValidationFailed"),
        ({"type": "announcement", "message": "Hello"}, 400, "InvalidRecipient"),
        ({"type": "like", "message": "Hello", "recipient_id": "all"}, 422, "ValidationFailed"),
    ],
)
async def test_broadcast_validation(
    async_client: AsyncClient,
    db_session: AsyncSession,
    payload: dict[str, str],
    status_code: int,
    kind: str,
):
    _, admin_headers = await register_admin(async_client, db_session)

    response = await async_client.post(
        "/api/v1/admin/notifications", json=payload, headers=admin_headers
    )
    assert response.status_code == status_code
    assert response.json()["kind"] == kind


@pytest.mark.asyncio
async def test_non_admin_is_denied_everywhere(async_client: AsyncClient):
    _, headers = await register_and_login(async_client, "member")

    requests = [
        ("get", "/api/v1/admin/notifications"),
        ("get", "/api/v1/admin/notifications/stats"),
        ("get", "/api/v1/admin/users"),
        ("get", "/api/v1/admin/posts"),
        ("get", "/api/v1/admin/comments"),
        ("get", "/api/v1/admin/stats"),
        ("delete", "/api/v1/admin/posts/1"),
    ]
    for method, url in requests:
        response = await getattr(async_client, method)(url, headers=headers)
        assert response.status_code == 403
        assert response.json()["kind"] == "Forbidden"


@pytest.mark.asyncio
async def test_list_all_notifications(async_client: AsyncClient, db_session: AsyncSession):
    _, admin_headers = await register_admin(async_client, db_session)
    member_id, member_headers = await register_and_login(async_client, "member")
    other_id, _ = await register_and_login(async_client, "other")

    await async_client.post(f"/api/v1/users/{other_id}/follow", headers=member_headers)
    await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "announcement", "message": "Hi all", "recipient_id": "all"},
        headers=admin_headers,
    )

    response = await async_client.get("/api/v1/admin/notifications", headers=admin_headers)
    assert response.status_code == 200
    items = response.json()
    assert [item["type"] for item in items] == ["announcement", "follow"]
    assert items[1]["sender"]["id"] == member_id
    assert items[1]["recipient_username"].startswith("other_")


@pytest.mark.asyncio
async def test_notification_stats(async_client: AsyncClient, db_session: AsyncSession):
    _, admin_headers = await register_admin(async_client, db_session)
    member_id, member_headers = await register_and_login(async_client, "member")
    other_id, _ = await register_and_login(async_client, "other")

    await async_client.post(f"/api/v1/users/{other_id}/follow", headers=member_headers)
    for recipient in ("all", "admins", member_id):
        await async_client.post(
            "/api/v1/admin/notifications",
            json={"type": "announcement", "message": "Stats", "recipient_id": recipient},
            headers=admin_headers,
        )

    response = await async_client.get("/api/v1/admin/notifications/stats", headers=admin_headers)
    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 4
    assert stats["unread"] == 4
    assert stats["by_type"] == {
        "like": 0,
        "comment": 0,
        "follow": 1,
        "announcement": 3,
        "alert": 0,
        "update": 0,
        "message": 0,
    }
    assert stats["by_recipient"] == {"all": 1, "admins": 1, "specific": 2}


@pytest.mark.asyncio
async def test_admin_mark_read_sets_global_flag(
    async_client: AsyncClient, db_session: AsyncSession
):
    _, admin_headers = await register_admin(async_client, db_session)
    _, member_headers = await register_and_login(async_client, "member")

    created = await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "announcement", "message": "Read me", "recipient_id": "all"},
        headers=admin_headers,
    )
    notification_id = created.json()["id"]

    response = await async_client.put(
        f"/api/v1/admin/notifications/{notification_id}/read", headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["notification"]["read"] is True

    count = await async_client.get("/api/v1/notifications/unread-count", headers=member_headers)
    assert count.json() == {"count": 0}

    missing = await async_client.put(
        "/api/v1/admin/notifications/999999/read", headers=admin_headers
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_admin_mark_all_read_scopes(
    async_client: AsyncClient, db_session: AsyncSession, caplog
):
    _, admin_headers = await register_admin(async_client, db_session)
    member_id, member_headers = await register_and_login(async_client, "member")
    other_id, _ = await register_and_login(async_client, "other")

    await async_client.post(f"/api/v1/users/{member_id}/follow", headers=admin_headers)
    await async_client.post(f"/api/v1/users/{other_id}/follow", headers=member_headers)
    await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "alert", "message": "Admins", "recipient_id": "admins"},
        headers=admin_headers,
    )

    admins_scope = await async_client.put(
        "/api/v1/admin/notifications/read-all",
        json={"scope": "admins"},
        headers=admin_headers,
    )
    assert admins_scope.json() == {
        "detail": "1 notifications marked as read",
        "modified_count": 1,
    }

    with caplog.at_level(logging.WARNING, logger="services.notifications.admin"):
        specific = await async_client.put(
            "/api/v1/admin/notifications/read-all",
            json={"scope": "specific", "user_id": member_id},
            headers=admin_headers,
        )
    assert specific.json()["modified_count"] == 1
    assert any(
        record.getMessage() == "Admin bulk mark-read" and record.levelno == logging.WARNING
        for record in caplog.records
    )

    member_count = await async_client.get(
        "/api/v1/notifications/unread-count", headers=member_headers
    )
    assert member_count.json() == {"count": 0}

    everything = await async_client.put(
        "/api/v1/admin/notifications/read-all",
        json={"scope": "all"},
        headers=admin_headers,
    )
    assert everything.json()["modified_count"] == 1


@pytest.mark.asyncio
async def test_admin_mark_all_read_rejects_bad_scopes(
    async_client: AsyncClient, db_session: AsyncSession
):
    _, admin_headers = await register_admin(async_client, db_session)

    no_user = await async_client.put(
        "/api/v1/admin/notifications/read-all",
        json={"scope": "specific"},
        headers=admin_headers,
    )
    assert no_user.status_code == 422
    assert no_user.json()["kind"] == "ValidationFailed"

    unknown_user = await async_client.put(
        "/api/v1/admin/notifications/read-all",
        json={"scope": "specific", "user_id": str(uuid4())},
        headers=admin_headers,
    )
    assert unknown_user.status_code == 404

    bad_scope = await async_client.put(
        "/api/v1/admin/notifications/read-all",
        json={"scope": "everyone"},
        headers=admin_headers,
    )
    assert bad_scope.status_code == 422


@pytest.mark.asyncio
async def test_admin_delete_notification(async_client: AsyncClient, db_session: AsyncSession):
    _, admin_headers = await register_admin(async_client, db_session)
    _, member_headers = await register_and_login(async_client, "member")

    created = await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "announcement", "message": "Bye", "recipient_id": "all"},
        headers=admin_headers,
    )
    notification_id = created.json()["id"]
    await async_client.put(f"/api/v1/notifications/{notification_id}/read", headers=member_headers)
    assert await count_rows(db_session, NotificationReceipt) == 1

    response = await async_client.delete(
        f"/api/v1/admin/notifications/{notification_id}", headers=admin_headers
    )
    assert response.status_code == 200
    assert await count_rows(db_session, Notification) == 0
    assert await count_rows(db_session, NotificationReceipt) == 0

    again = await async_client.delete(
        f"/api/v1/admin/notifications/{notification_id}", headers=admin_headers
    )
    assert again.status_code == 404


async def _build_victim_world(
    async_client: AsyncClient,
) -> tuple[str, dict[str, str], str, dict[str, str], int]:
    """A victim with posts, comments, likes, follows and bookmarks, plus a bystander."""
    victim_id, victim_headers = await register_and_login(async_client, "victim")
    bystander_id, bystander_headers = await register_and_login(async_client, "bystander")

    victim_post = await async_client.post(
        "/api/v1/posts", json={"title": "Victim", "content": "v"}, headers=victim_headers
    )
    bystander_post = await async_client.post(
        "/api/v1/posts", json={"title": "Bystander", "content": "b"}, headers=bystander_headers
    )
    victim_post_id = victim_post.json()["id"]
    bystander_post_id = bystander_post.json()["id"]

    await async_client.post(f"/api/v1/posts/{bystander_post_id}/likes", headers=victim_headers)
    await async_client.post(
        f"/api/v1/posts/{bystander_post_id}/comments",
        json={"text": "from victim"},
        headers=victim_headers,
    )
    await async_client.post(
        f"/api/v1/posts/{victim_post_id}/comments",
        json={"text": "from bystander"},
        headers=bystander_headers,
    )
    await async_client.post(
        f"/api/v1/posts/{bystander_post_id}/comments",
        json={"text": "own comment"},
        headers=bystander_headers,
    )
    await async_client.post(f"/api/v1/users/{bystander_id}/follow", headers=victim_headers)
    await async_client.post(f"/api/v1/users/{victim_id}/follow", headers=bystander_headers)
    await async_client.post(
        "/api/v1/users/me/bookmarks", json={"post_id": bystander_post_id}, headers=victim_headers
    )
    await async_client.post(
        "/api/v1/users/me/bookmarks", json={"post_id": victim_post_id}, headers=bystander_headers
    )
    return victim_id, victim_headers, bystander_id, bystander_headers, bystander_post_id


@pytest.mark.asyncio
async def test_delete_user_cascades_and_leaves_others_alone(
    async_client: AsyncClient, db_session: AsyncSession
):
    admin_id, admin_headers = await register_admin(async_client, db_session)
    victim_id, _, bystander_id, _, bystander_post_id = await _build_victim_world(async_client)
    broadcast = await async_client.post(
        "/api/v1/admin/notifications",
        json={"type": "announcement", "message": "Still here", "recipient_id": "all"},
        headers=admin_headers,
    )

    response = await async_client.delete(f"/api/v1/admin/users/{victim_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"detail": "User and all associated content removed successfully"}

    assert await db_session.scalar(select(User.id).where(User.id == victim_id)) is None
    assert await db_session.scalar(select(User.id).where(User.id == bystander_id)) == bystander_id

    posts = await db_session.execute(select(Post.id))
    assert list(posts.scalars().all()) == [bystander_post_id]
    comments = await db_session.execute(select(Comment.text))
    assert list(comments.scalars().all()) == ["own comment"]
    assert await count_rows(db_session, Like) == 0
    assert await count_rows(db_session, Follow) == 0
    assert await count_rows(db_session, Bookmark) == 0

    notifications = await db_session.execute(select(Notification.id))
    assert list(notifications.scalars().all()) == [broadcast.json()["id"]]

    missing = await async_client.delete(f"/api/v1/admin/users/{victim_id}", headers=admin_headers)
    assert missing.status_code == 404
    assert await db_session.scalar(select(User.id).where(User.id == admin_id)) == admin_id


@pytest.mark.asyncio
async def test_cannot_delete_admin(async_client: AsyncClient, db_session: AsyncSession):
    admin_id, admin_headers = await register_admin(async_client, db_session)

    response = await async_client.delete(f"/api/v1/admin/users/{admin_id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json() == {"detail": "Cannot delete admin users", "kind": "CannotDeleteAdmin"}


@pytest.mark.asyncio
async def test_failed_deletion_step_reports_partial_failure(
    async_client: AsyncClient, db_session: AsyncSession, monkeypatch
):
    _, admin_headers = await register_admin(async_client, db_session)
    victim_id, _, _, _, _ = await _build_victim_world(async_client)

    async def broken_step(session: AsyncSession, user_id: str) -> None:
        raise RuntimeError("storage went away")

    steps = dict(accounts.USER_DELETION_STEPS)
    steps["graph"] = broken_step
    monkeypatch.setattr(accounts, "USER_DELETION_STEPS", tuple(steps.items()))

    response = await async_client.delete(f"/api/v1/admin/users/{victim_id}", headers=admin_headers)
    assert response.status_code == 500
    assert response.json() == {
        "detail": "Error removing associated content (stopped at graph)",
        "kind": "PartialFailure",
    }

    # Steps before the failure are committed; the account itself survives.
    assert await db_session.scalar(select(User.id).where(User.id == victim_id)) == victim_id
    authored = await db_session.scalar(
        select(func.count()).select_from(Post).where(Post.author_id == victim_id)
    )
    assert authored == 0
    assert await count_rows(db_session, Follow) == 2

    monkeypatch.undo()
    retry = await async_client.delete(f"/api/v1/admin/users/{victim_id}", headers=admin_headers)
    assert retry.status_code == 200
    assert await count_rows(db_session, Follow) == 0


@pytest.mark.asyncio
async def test_admin_moderates_posts_and_comments(
    async_client: AsyncClient, db_session: AsyncSession
):
    _, admin_headers = await register_admin(async_client, db_session)
    _, author_headers = await register_and_login(async_client, "author")

    post = await async_client.post(
        "/api/v1/posts", json={"title": "Spam", "content": "buy now"}, headers=author_headers
    )
    post_id = post.json()["id"]
    comment = await async_client.post(
        f"/api/v1/posts/{post_id}/comments", json={"text": "more spam"}, headers=author_headers
    )
    comment_id = comment.json()["id"]

    removed_comment = await async_client.delete(
        f"/api/v1/admin/comments/{comment_id}", headers=admin_headers
    )
    assert removed_comment.json() == {"detail": "Comment removed"}

    removed_post = await async_client.delete(f"/api/v1/admin/posts/{post_id}", headers=admin_headers)
    assert removed_post.json() == {"detail": "Post and associated comments removed"}
    assert await count_rows(db_session, Post) == 0

    missing = await async_client.delete(f"/api/v1/admin/posts/{post_id}", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_site_stats_and_user_listing(async_client: AsyncClient, db_session: AsyncSession):
    _, admin_headers = await register_admin(async_client, db_session)
    member_id, member_headers = await register_and_login(async_client, "member")
    admin_post = await async_client.post(
        "/api/v1/posts", json={"title": "Hello", "content": "x"}, headers=admin_headers
    )
    await async_client.post(
        f"/api/v1/posts/{admin_post.json()['id']}/comments",
        json={"text": "hi"},
        headers=member_headers,
    )

    stats = await async_client.get("/api/v1/admin/stats", headers=admin_headers)
    assert stats.json() == {"users": 2, "posts": 1, "comments": 1, "notifications": 1}

    users = await async_client.get("/api/v1/admin/users", headers=admin_headers)
    assert users.status_code == 200
    listed = {item["id"]: item["is_admin"] for item in users.json()}
    assert listed[member_id] is False
    assert True in listed.values()


@pytest.mark.asyncio
async def test_content_listings_are_newest_first_with_context(
    async_client: AsyncClient, db_session: AsyncSession
):
    _, admin_headers = await register_admin(async_client, db_session)
    writer_id, writer_headers = await register_and_login(async_client, "writer")
    reader_id, reader_headers = await register_and_login(async_client, "reader")

    older = await async_client.post(
        "/api/v1/posts", json={"title": "Older", "content": "x"}, headers=writer_headers
    )
    newer = await async_client.post(
        "/api/v1/posts", json={"title": "Newer", "content": "y"}, headers=writer_headers
    )
    first = await async_client.post(
        f"/api/v1/posts/{older.json()['id']}/comments",
        json={"text": "first"},
        headers=reader_headers,
    )
    second = await async_client.post(
        f"/api/v1/posts/{newer.json()['id']}/comments",
        json={"text": "second"},
        headers=reader_headers,
    )

    posts = await async_client.get("/api/v1/admin/posts", headers=admin_headers)
    assert posts.status_code == 200
    assert [item["id"] for item in posts.json()] == [newer.json()["id"], older.json()["id"]]
    assert {item["author_id"] for item in posts.json()} == {writer_id}
    assert posts.json()[0]["author_username"].startswith("writer_")

    page = await async_client.get(
        "/api/v1/admin/posts", params={"limit": 1}, headers=admin_headers
    )
    assert [item["id"] for item in page.json()] == [newer.json()["id"]]
    assert page.headers["X-Next-Offset"] == "1"

    comments = await async_client.get("/api/v1/admin/comments", headers=admin_headers)
    assert comments.status_code == 200
    body = comments.json()
    assert [item["id"] for item in body] == [second.json()["id"], first.json()["id"]]
    assert body[0]["post_title"] == "Newer"
    assert body[1]["post_title"] == "Older"
    assert body[0]["author_id"] == reader_id
    assert body[0]["author_username"].startswith("reader_")

"""
tests/test_api_routes.py — HTTP surface
=========================================
Drives the FastAPI app through TestClient against the in-memory engine.
Checks status codes, the ``{"error", "message"}`` body shape, and the
end-to-end moderation flow.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine

REEL = {
    "url": "https://instagram.com/reel/ABC123",
    "platform": "INSTAGRAM",
    "videoId": "ABC123",
}


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _assert_error(resp, status: int, kind: str) -> dict:
    assert resp.status_code == status, resp.text
    body = resp.json()
    assert set(body) == {"error", "message"}
    assert body["error"] == kind
    assert body["message"]
    return body


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
class TestHealth:
    def test_healthy(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert datetime.fromisoformat(body["timestamp"])

    def test_unhealthy_when_database_unreachable(self, client, tmp_path):
        from oiiai.api.deps import get_engine
        from oiiai.api.main import app

        broken = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nope.db'}")
        app.dependency_overrides[get_engine] = lambda: broken

        resp = client.get("/api/health")
        assert resp.status_code == 500
        body = resp.json()
        assert body["status"] == "unhealthy"
        assert body["error"] == "OperationalError"
        assert "timestamp" in body


# ---------------------------------------------------------------------------
# End-to-end moderation flow
# ---------------------------------------------------------------------------
class TestModerationFlow:
    def test_submit_review_discover_vote(self, client, admin_token):
        created = client.post("/api/memes", json=REEL)
        assert created.status_code == 201
        meme = created.json()
        assert meme["status"] == "pending"
        assert meme["votes"] == 0

        assert client.get("/api/memes/discover").json() == []

        duplicate = client.post("/api/memes", json=REEL)
        _assert_error(duplicate, 409, "conflict")

        pending = client.get("/api/admin/memes/pending", headers=_auth(admin_token))
        assert pending.status_code == 200
        assert [m["id"] for m in pending.json()] == [meme["id"]]

        reviewed = client.post(
            f"/api/admin/memes/{meme['id']}/review",
            json={"status": "approved", "adminNotes": "certified spin"},
            headers=_auth(admin_token),
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "approved"
        assert reviewed.json()["reviewed_by"] == "catmod"
        assert reviewed.json()["admin_notes"] == "certified spin"

        listed = client.get("/api/memes/discover", params={"category": "newest"}).json()
        assert [m["id"] for m in listed] == [meme["id"]]

        voted = client.post(f"/api/memes/{meme['id']}/vote", json={"type": "up"})
        assert voted.status_code == 200
        assert voted.json()["votes"] == 1

        assert client.get("/api/admin/memes/pending", headers=_auth(admin_token)).json() == []


# ---------------------------------------------------------------------------
# Public meme endpoints
# ---------------------------------------------------------------------------
class TestPublicMemes:
    def test_submit_with_tags_and_description(self, client):
        resp = client.post(
            "/api/memes",
            json={**REEL, "description": "spinning", "tags": ["Cat", " spin "]},
        )
        assert resp.status_code == 201
        assert resp.json()["tags"] == ["cat", "spin"]
        assert resp.json()["description"] == "spinning"

    @pytest.mark.parametrize("missing", ["url", "platform", "videoId"])
    def test_missing_field_is_400(self, client, missing):
        body = {k: v for k, v in REEL.items() if k != missing}
        resp = client.post("/api/memes", json=body)
        err = _assert_error(resp, 400, "validation_error")
        assert missing in err["message"]

    def test_blank_field_is_400(self, client):
        _assert_error(client.post("/api/memes", json={**REEL, "videoId": "  "}), 400, "validation_error")

    @pytest.mark.parametrize("field,size", [("url", 501), ("videoId", 101)])
    def test_overlong_field_is_400(self, client, field, size):
        resp = client.post("/api/memes", json={**REEL, field: "x" * size})
        err = _assert_error(resp, 400, "validation_error")
        assert field in err["message"]

    def test_unknown_field_is_400(self, client):
        resp = client.post("/api/memes", json={**REEL, "status": "approved"})
        _assert_error(resp, 400, "validation_error")

    def test_unknown_platform_is_400(self, client):
        resp = client.post("/api/memes", json={**REEL, "platform": "YOUTUBE"})
        _assert_error(resp, 400, "validation_error")

    def test_vote_down(self, client, make_meme):
        meme_id = make_meme("v", votes=0)
        resp = client.post(f"/api/memes/{meme_id}/vote", json={"type": "down"})
        assert resp.status_code == 200
        assert resp.json()["votes"] == -1

    def test_vote_invalid_type_is_400(self, client, make_meme):
        meme_id = make_meme("v")
        _assert_error(
            client.post(f"/api/memes/{meme_id}/vote", json={"type": "sideways"}),
            400,
            "validation_error",
        )

    def test_vote_missing_type_is_400(self, client, make_meme):
        meme_id = make_meme("v")
        _assert_error(client.post(f"/api/memes/{meme_id}/vote", json={}), 400, "validation_error")

    def test_vote_unknown_meme_is_404(self, client):
        _assert_error(client.post("/api/memes/9999/vote", json={"type": "up"}), 404, "not_found")

    def test_gallery_lists_approved_newest_first(self, client, make_meme):
        now = datetime.now(UTC)
        old = make_meme("old", created_at=now - timedelta(days=1))
        new = make_meme("new", created_at=now)
        make_meme("hidden", status="pending")

        resp = client.get("/api/memes")
        assert resp.status_code == 200
        assert [m["id"] for m in resp.json()] == [new, old]

    def test_discover_query_parameters(self, client, make_meme):
        now = datetime.now(UTC)
        make_meme("i", platform="INSTAGRAM", votes=1, created_at=now - timedelta(hours=1))
        tiktok = make_meme("t", platform="TIKTOK", votes=9, created_at=now - timedelta(hours=2),
                           tags=["spin"])
        make_meme("old", platform="TIKTOK", votes=99, created_at=now - timedelta(days=40))

        resp = client.get(
            "/api/memes/discover",
            params={"category": "popular", "platform": "tiktok", "dateRange": "month", "search": "spin"},
        )
        assert resp.status_code == 200
        assert [m["id"] for m in resp.json()] == [tiktok]

    def test_discover_limit_above_maximum_is_400(self, client, make_meme, app_config):
        for i in range(app_config.max_page_size + 3):
            make_meme(f"m{i}")
        resp = client.get("/api/memes/discover", params={"limit": app_config.max_page_size + 1})
        err = _assert_error(resp, 400, "validation_error")
        assert str(app_config.max_page_size) in err["message"]
        _assert_error(client.get("/api/memes", params={"limit": 500}), 400, "validation_error")

    def test_discover_limit_at_maximum_is_honoured(self, client, make_meme, app_config):
        for i in range(app_config.max_page_size + 3):
            make_meme(f"m{i}")
        first = client.get("/api/memes/discover", params={"limit": app_config.max_page_size})
        second = client.get(
            "/api/memes/discover", params={"limit": app_config.max_page_size, "page": 2}
        )
        assert len(first.json()) == app_config.max_page_size
        assert len(second.json()) == 3

    def test_discover_default_page_size(self, client, make_meme, app_config):
        for i in range(app_config.discovery_page_size + 2):
            make_meme(f"m{i}")
        first = client.get("/api/memes/discover").json()
        second = client.get("/api/memes/discover", params={"page": 2}).json()
        assert len(first) == app_config.discovery_page_size
        assert len(second) == 2

    def test_discover_page_zero_is_400(self, client):
        _assert_error(client.get("/api/memes/discover", params={"page": 0}), 400, "validation_error")

    def test_trending_tags(self, client, make_meme):
        make_meme("a", tags=["cat", "spin"])
        make_meme("b", tags=["spin"])
        resp = client.get("/api/memes/trending-tags")
        assert resp.status_code == 200
        assert resp.json() == ["spin", "cat"]

    def test_resolve_link(self, client):
        resp = client.get("/api/memes/resolve", params={"url": "https://www.tiktok.com/@cat/video/7231"})
        assert resp.status_code == 200
        assert resp.json() == {"platform": "TIKTOK", "videoId": "7231"}

    def test_resolve_unsupported_host_is_400(self, client):
        resp = client.get("/api/memes/resolve", params={"url": "https://youtube.com/watch?v=1"})
        _assert_error(resp, 400, "validation_error")


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------
class TestAdminAuth:
    def test_login_returns_token(self, client, admin_id, admin_credentials):
        username, password = admin_credentials
        resp = client.post("/api/admin/login", json={"username": username, "password": password})
        assert resp.status_code == 200
        token = resp.json()["token"]

        me = client.get("/api/admin/me", headers=_auth(token))
        assert me.status_code == 200
        assert me.json() == {"id": admin_id, "username": username}

    def test_bad_credentials_are_401(self, client, admin_id, admin_credentials):
        username, _ = admin_credentials
        wrong = client.post("/api/admin/login", json={"username": username, "password": "nope"})
        unknown = client.post("/api/admin/login", json={"username": "ghost", "password": "nope"})
        assert _assert_error(wrong, 401, "unauthorized") == _assert_error(unknown, 401, "unauthorized")

    def test_login_missing_password_is_400(self, client):
        _assert_error(client.post("/api/admin/login", json={"username": "catmod"}), 400, "validation_error")

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Bearer"},
            {"Authorization": "Basic Y2F0bW9kOnNwaW4="},
            {"Authorization": "Bearer not-a-real-token"},
        ],
    )
    def test_protected_routes_reject_missing_or_bad_tokens(self, client, headers):
        resp = client.get("/api/admin/memes/pending", headers=headers)
        _assert_error(resp, 401, "unauthorized")
        assert resp.headers.get("WWW-Authenticate") == "Bearer"

    def test_review_requires_token(self, client, make_meme):
        meme_id = make_meme("m", status="pending")
        resp = client.post(f"/api/admin/memes/{meme_id}/review", json={"status": "approved"})
        _assert_error(resp, 401, "unauthorized")


class TestAdminModeration:
    def test_review_unknown_meme_is_404(self, client, admin_token):
        resp = client.post(
            "/api/admin/memes/9999/review", json={"status": "approved"}, headers=_auth(admin_token)
        )
        _assert_error(resp, 404, "not_found")

    def test_review_invalid_status_is_400(self, client, admin_token, make_meme):
        meme_id = make_meme("m", status="pending")
        resp = client.post(
            f"/api/admin/memes/{meme_id}/review", json={"status": "maybe"}, headers=_auth(admin_token)
        )
        _assert_error(resp, 400, "validation_error")

    def test_admin_submission_is_approved_immediately(self, client, admin_token):
        resp = client.post("/api/admin/memes", json=REEL, headers=_auth(admin_token))
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "approved"
        assert body["reviewed_by"] == "catmod"
        assert [m["id"] for m in client.get("/api/memes/discover").json()] == [body["id"]]

    def test_admin_submission_with_status(self, client, admin_token):
        resp = client.post(
            "/api/admin/memes", json={**REEL, "status": "rejected"}, headers=_auth(admin_token)
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "rejected"

    @pytest.mark.parametrize("field,size", [("url", 501), ("videoId", 101)])
    def test_admin_overlong_field_is_400(self, client, admin_token, field, size):
        resp = client.post(
            "/api/admin/memes", json={**REEL, field: "x" * size}, headers=_auth(admin_token)
        )
        _assert_error(resp, 400, "validation_error")

    def test_admin_duplicate_is_409(self, client, admin_token):
        client.post("/api/memes", json=REEL)
        resp = client.post("/api/admin/memes", json=REEL, headers=_auth(admin_token))
        _assert_error(resp, 409, "conflict")


class TestAdminLogs:
    def test_logs_require_token(self, client):
        _assert_error(client.get("/api/admin/logs"), 401, "unauthorized")

    def test_read_logs_and_change_level(self, client, admin_token):
        resp = client.get("/api/admin/logs", params={"tail": 10}, headers=_auth(admin_token))
        assert resp.status_code == 200
        body = resp.json()
        assert {"entries", "total", "capture_level", "valid_levels"} <= set(body)

        original = body["capture_level"]
        try:
            changed = client.put(
                "/api/admin/logs/level", json={"level": "debug"}, headers=_auth(admin_token)
            )
            assert changed.status_code == 200
            assert changed.json() == {"capture_level": "DEBUG"}
        finally:
            client.put("/api/admin/logs/level", json={"level": original}, headers=_auth(admin_token))

    def test_invalid_level_is_400(self, client, admin_token):
        resp = client.put("/api/admin/logs/level", json={"level": "LOUD"}, headers=_auth(admin_token))
        _assert_error(resp, 400, "validation_error")

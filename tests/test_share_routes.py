"""
Test suite for the share registry HTTP surface

Tests:
- Publish / view - POST /api/share, GET /api/view
- Chat - POST /api/send_message, POST /api/delete_message
- Lock - POST /api/toggle_lock
- Teacher login - POST /api/login
- Health - GET /health
"""
import re

import pytest

from models.register_models import now_ms
from services.share_service import CODE_ALPHABET


def chat_message(msg_id="m1", sender_id="student_1", content="Hello"):
    return {
        "id": msg_id,
        "senderId": sender_id,
        "senderName": "Teacher" if sender_id == "teacher" else "Student",
        "content": content,
        "timestamp": 1700000000000,
        "type": "text",
    }


@pytest.fixture
def shared_code(api, class_payload):
    response = api.post("/api/share", json=class_payload())
    assert response.status_code == 200
    return response.json()["code"]


class TestPublishAndView:
    def test_publish_returns_code_from_alphabet(self, api, class_payload):
        response = api.post("/api/share", json=class_payload())

        assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.text}"
        code = response.json()["code"]
        assert re.fullmatch(f"[{CODE_ALPHABET}]{{6}}", code)
        assert not set("01IO") & set(code)
        print(f"✓ Class shared under code {code}")

    def test_round_trip(self, api, class_payload, shared_code):
        data = api.get("/api/view", params={"code": shared_code}).json()
        sent = class_payload()

        assert data["students"] == sent["students"]
        assert data["attendance"] == sent["attendance"]
        assert data["holidays"] == sent["holidays"]
        assert data["shareCode"] == shared_code
        assert data["messages"] == []
        assert data["isChatLocked"] is False
        assert data["_sharedAt"] > 0

    def test_view_is_case_insensitive(self, api, shared_code):
        response = api.get("/api/view", params={"code": f" {shared_code.lower()} "})
        assert response.status_code == 200

    def test_view_unknown_code(self, api):
        response = api.get("/api/view", params={"code": "ZZZZZZ"})
        assert response.status_code == 404

    def test_view_requires_code(self, api):
        assert api.get("/api/view").status_code == 400

    @pytest.mark.parametrize("body", [{}, {"id": "1"}, {"name": "No id"}, {"id": "", "name": "x"}])
    def test_publish_rejects_invalid_data(self, api, body):
        assert api.post("/api/share", json=body).status_code == 400

    def test_publish_rejects_non_json(self, api):
        response = api.post("/api/share", content=b"not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400

    def test_republish_leaves_ghost_code(self, api, class_payload, shared_code):
        second = api.post("/api/share", json=class_payload(shareCode=shared_code, name="Grade 5-A (renamed)")).json()["code"]

        assert second != shared_code
        ghost = api.get("/api/view", params={"code": shared_code}).json()
        assert ghost["name"] == "Grade 5-A"
        assert api.get("/api/view", params={"code": second}).json()["name"] == "Grade 5-A (renamed)"

    def test_republish_supersedes_when_enabled(self, api, class_payload, shared_code, settings):
        settings.supersede_old_codes = True
        second = api.post("/api/share", json=class_payload(shareCode=shared_code)).json()["code"]

        assert api.get("/api/view", params={"code": shared_code}).status_code == 404
        assert api.get("/api/view", params={"code": second}).status_code == 200

    def test_supersede_ignores_other_class(self, api, class_payload, shared_code, settings):
        settings.supersede_old_codes = True
        api.post("/api/share", json=class_payload(id="other", shareCode=shared_code))

        assert api.get("/api/view", params={"code": shared_code}).status_code == 200

    def test_expired_code_returns_410(self, api, registry, shared_code, settings):
        settings.share_ttl_minutes = 60
        registry._entries[shared_code]["_sharedAt"] = now_ms() - 61 * 60 * 1000

        assert api.get("/api/view", params={"code": shared_code}).status_code == 410
        assert api.get("/api/view", params={"code": shared_code}).status_code == 404

    def test_old_snapshot_is_default_filled(self, api, registry):
        registry._entries["OLD234"] = {
            "id": "9", "name": "Legacy", "students": [], "attendance": {"May": {"1": {"2": None, "3": "P"}}}
        }
        data = api.get("/api/view", params={"code": "OLD234"}).json()

        assert data["holidays"] == {}
        assert data["messages"] == []
        assert data["isChatLocked"] is False
        assert data["schemaVersion"] == 1
        assert data["attendance"] == {"May": {"1": {"3": "P"}}}


class TestSendMessage:
    def test_send_appends(self, api, shared_code):
        response = api.post("/api/send_message", json={"code": shared_code, "message": chat_message()})
        assert response.status_code == 200
        assert response.json() == {"success": True}

        messages = api.get("/api/view", params={"code": shared_code}).json()["messages"]
        assert [m["id"] for m in messages] == ["m1"]

    def test_missing_fields(self, api, shared_code):
        assert api.post("/api/send_message", json={"code": shared_code}).status_code == 400
        assert api.post("/api/send_message", json={"message": chat_message()}).status_code == 400

    def test_unknown_code(self, api):
        response = api.post("/api/send_message", json={"code": "ZZZZZZ", "message": chat_message()})
        assert response.status_code == 404

    def test_locked_chat_refuses_viewers(self, api, shared_code):
        api.post("/api/toggle_lock", json={"code": shared_code, "isLocked": True, "senderId": "teacher"})

        viewer = api.post("/api/send_message", json={"code": shared_code, "message": chat_message()})
        teacher = api.post(
            "/api/send_message", json={"code": shared_code, "message": chat_message("m2", "teacher")}
        )

        assert viewer.status_code == 403
        assert teacher.status_code == 200
        messages = api.get("/api/view", params={"code": shared_code}).json()["messages"]
        assert [m["id"] for m in messages] == ["m2"]


class TestDeleteMessage:
    @pytest.fixture
    def with_message(self, api, shared_code):
        api.post("/api/send_message", json={"code": shared_code, "message": chat_message("m1", "student_1")})
        return shared_code

    @pytest.mark.parametrize("requester", ["teacher", "student_1"])
    def test_allowed_requesters(self, api, with_message, requester):
        response = api.post(
            "/api/delete_message", json={"code": with_message, "messageId": "m1", "senderId": requester}
        )
        assert response.status_code == 200
        assert api.get("/api/view", params={"code": with_message}).json()["messages"] == []

    def test_other_viewer_forbidden(self, api, with_message):
        response = api.post(
            "/api/delete_message", json={"code": with_message, "messageId": "m1", "senderId": "student_2"}
        )
        assert response.status_code == 403
        assert len(api.get("/api/view", params={"code": with_message}).json()["messages"]) == 1

    def test_unknown_message(self, api, with_message):
        response = api.post(
            "/api/delete_message", json={"code": with_message, "messageId": "nope", "senderId": "teacher"}
        )
        assert response.status_code == 404

    def test_unknown_code(self, api):
        response = api.post("/api/delete_message", json={"code": "ZZZZZZ", "messageId": "m1", "senderId": "teacher"})
        assert response.status_code == 404

    def test_missing_fields(self, api, with_message):
        assert api.post("/api/delete_message", json={"code": with_message, "messageId": "m1"}).status_code == 400


class TestToggleLock:
    def test_teacher_can_lock_and_unlock(self, api, shared_code):
        for locked in (True, False):
            response = api.post("/api/toggle_lock", json={"code": shared_code, "isLocked": locked, "senderId": "teacher"})
            assert response.status_code == 200
            assert api.get("/api/view", params={"code": shared_code}).json()["isChatLocked"] is locked

    def test_viewer_forbidden(self, api, shared_code):
        response = api.post("/api/toggle_lock", json={"code": shared_code, "isLocked": True, "senderId": "student_1"})
        assert response.status_code == 403

    def test_unknown_code(self, api):
        response = api.post("/api/toggle_lock", json={"code": "ZZZZZZ", "isLocked": True, "senderId": "teacher"})
        assert response.status_code == 404

    def test_missing_fields(self, api, shared_code):
        response = api.post("/api/toggle_lock", json={"code": shared_code, "senderId": "teacher"})
        assert response.status_code == 400


class TestLoginAndHealth:
    def test_login(self, api):
        assert api.post("/api/login", json={"password": "school123"}).json() == {"success": True}
        assert api.post("/api/login", json={"password": "wrong"}).status_code == 401
        assert api.post("/api/login", json={}).status_code == 400

    def test_health(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

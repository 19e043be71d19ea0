"""HTTP-level tests: envelope, auth guards and the main marketplace flow."""

import logging
from datetime import timedelta

import pytest

from taskhub.db.base import utcnow
from taskhub.models.task import TaskStatus
from taskhub.models.transaction import Transaction, TransactionType
from taskhub.models.user import User
from taskhub.services.effects import EmailEffect, PayoutEffect, PushEffect

from tests.helpers import PASSWORD, auth_headers


class TestEnvelope:
    """Every response carries the success/message/data envelope."""

    @pytest.mark.unit
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"status": "ok"}}

    @pytest.mark.unit
    def test_request_id_is_generated_or_carried_through(self, client, caplog):
        generated = client.get("/api/health")
        assert len(generated.headers["X-Request-Id"]) == 32
        assert float(generated.headers["X-Response-Time-Ms"]) >= 0

        with caplog.at_level(logging.INFO, logger="taskhub.http"):
            carried = client.get("/api/health", headers={"X-Request-Id": "frontend-trace-0042"})
        assert carried.headers["X-Request-Id"] == "frontend-trace-0042"
        assert "[frontend-trace-0042] GET /api/health -> 200" in caplog.text

    @pytest.mark.unit
    def test_unsafe_request_id_is_replaced(self, client):
        response = client.get("/api/health", headers={"X-Request-Id": "bad id with spaces"})
        assert response.headers["X-Request-Id"] != "bad id with spaces"

    @pytest.mark.unit
    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json()["success"] is False

    @pytest.mark.unit
    def test_validation_errors_are_422_with_details(self, client):
        response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "x"})
        body = response.json()
        assert response.status_code == 422
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["errors"]

    @pytest.mark.unit
    def test_missing_token_is_401(self, client):
        response = client.get("/api/tasks/me")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Not authenticated"}

    @pytest.mark.unit
    def test_garbage_token_is_401(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    @pytest.mark.unit
    def test_wrong_role_is_403(self, client, freelancer_a, category):
        response = client.post(
            "/api/tasks",
            headers=auth_headers(freelancer_a),
            json={
                "title": "Freelancers cannot post",
                "description": "This should be refused by the role guard.",
                "budget": 100,
                "deadline": (utcnow() + timedelta(days=3)).isoformat(),
                "category_id": category.id,
            },
        )
        assert response.status_code == 403
        assert response.json()["success"] is False

    @pytest.mark.unit
    def test_suspended_token_is_403(self, client, db, client_user):
        headers = auth_headers(client_user)
        client_user.is_suspended = True
        db.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 403


class TestAuthFlow:

    @pytest.mark.unit
    def test_register_verify_login(self, client, db, dispatcher):
        registered = client.post("/api/auth/register", json={
            "email": "Dana@Example.com",
            "password": PASSWORD,
            "first_name": "Dana",
            "last_name": "Diaz",
            "role": "FREELANCER",
        })
        assert registered.status_code == 201
        assert registered.json()["data"]["is_email_verified"] is False
        assert [e.to for e in dispatcher.of_type(EmailEffect)] == ["dana@example.com"]

        blocked = client.post("/api/auth/login", json={"email": "dana@example.com", "password": PASSWORD})
        assert blocked.status_code == 403

        db.expire_all()
        otp = db.query(User).filter(User.email == "dana@example.com").one().email_verification_otp
        verified = client.post("/api/auth/verify-email", json={"email": "dana@example.com", "otp": otp})
        assert verified.status_code == 200
        assert verified.json()["data"]["is_email_verified"] is True

        login = client.post("/api/auth/login", json={"email": "dana@example.com", "password": PASSWORD})
        assert login.status_code == 200
        tokens = login.json()["data"]
        assert tokens["token_type"] == "bearer"
        assert tokens["user"]["role"] == "FREELANCER"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
        assert me.json()["data"]["email"] == "dana@example.com"

        refreshed = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refreshed.status_code == 200
        assert refreshed.json()["data"]["access_token"]

    @pytest.mark.unit
    def test_register_as_admin_refused(self, client):
        response = client.post("/api/auth/register", json={
            "email": "sneaky@example.com",
            "password": PASSWORD,
            "first_name": "Sneaky",
            "last_name": "Admin",
            "role": "ADMIN",
        })
        assert response.status_code == 400

    @pytest.mark.unit
    def test_forgot_password_answers_the_same_for_unknown_email(self, client, client_user):
        known = client.post("/api/auth/forgot-password", json={"email": client_user.email})
        unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json()["message"] == unknown.json()["message"]

    @pytest.mark.unit
    def test_profile_update(self, client, freelancer_a):
        response = client.patch(
            "/api/users/me",
            headers=auth_headers(freelancer_a),
            json={"bio": "Full-stack developer", "skills": ["python", "react"]},
        )
        assert response.status_code == 200
        profile = response.json()["data"]["profile"]
        assert profile["bio"] == "Full-stack developer"
        assert profile["skills"] == ["python", "react"]


class TestMarketplaceFlow:
    """Post -> bid -> accept -> milestone -> approve, over HTTP."""

    @pytest.mark.unit
    def test_end_to_end(self, client, db, dispatcher, client_user, freelancer_a, freelancer_b, category):
        owner = auth_headers(client_user)
        alice = auth_headers(freelancer_a)
        bob = auth_headers(freelancer_b)

        posted = client.post("/api/tasks", headers=owner, json={
            "title": "Build a booking widget",
            "description": "Embeddable booking widget for a yoga studio site.",
            "budget": 500,
            "deadline": (utcnow() + timedelta(days=10)).isoformat(),
            "skills": ["javascript"],
            "category_id": category.id,
        })
        assert posted.status_code == 201
        task_id = posted.json()["data"]["id"]

        browse = client.get("/api/tasks", params={"q": "booking"})
        assert [t["id"] for t in browse.json()["data"]["tasks"]] == [task_id]

        bid_a = client.post(f"/api/tasks/{task_id}/bids", headers=alice,
                            json={"amount": 450, "proposal": "Done this for three studios."})
        bid_b = client.post(f"/api/tasks/{task_id}/bids", headers=bob,
                            json={"amount": 400, "proposal": "Cheaper and quicker delivery."})
        assert bid_a.status_code == bid_b.status_code == 201

        detail = client.get(f"/api/tasks/{task_id}", headers=alice).json()["data"]
        assert [b["freelancer_id"] for b in detail["bids"]] == [freelancer_a.id]

        accepted = client.post(f"/api/bids/{bid_a.json()['data']['id']}/accept", headers=owner)
        assert accepted.status_code == 200
        again = client.post(f"/api/bids/{bid_b.json()['data']['id']}/accept", headers=owner)
        assert again.status_code == 409
        assert again.json()["success"] is False

        milestones = client.post(f"/api/tasks/{task_id}/milestones", headers=owner, json={"milestones": [
            {"description": "Working prototype", "amount": 200,
             "due_date": (utcnow() + timedelta(days=5)).isoformat()},
        ]})
        assert milestones.status_code == 201
        milestone_id = milestones.json()["data"][0]["id"]

        early = client.post(f"/api/milestones/{milestone_id}/approve", headers=owner)
        assert early.status_code == 409

        submitted = client.post(f"/api/milestones/{milestone_id}/submit", headers=alice)
        assert submitted.json()["data"]["status"] == "SUBMITTED"
        approved = client.post(f"/api/milestones/{milestone_id}/approve", headers=owner)
        assert approved.json()["data"]["status"] == "APPROVED"

        task = client.get(f"/api/tasks/{task_id}", headers=owner).json()["data"]
        assert task["status"] == TaskStatus.IN_REVIEW.value

        ledger = client.get(f"/api/payments/tasks/{task_id}/transactions", headers=alice).json()["data"]
        assert sorted((t["type"], t["amount"]) for t in ledger) == [
            ("ESCROW_RELEASE", 200.0), ("PAYOUT", 180.0), ("PLATFORM_FEE", 20.0),
        ]
        outsider = client.get(f"/api/payments/tasks/{task_id}/transactions", headers=bob)
        assert outsider.status_code == 403

        completed = client.post(f"/api/tasks/{task_id}/complete", headers=owner)
        assert completed.json()["data"]["status"] == "COMPLETED"

        db.expire_all()
        payout = db.query(Transaction).filter(Transaction.type == TransactionType.PAYOUT).one()
        assert [p.transaction_id for p in dispatcher.of_type(PayoutEffect)] == [payout.id]
        notified_rooms = {p.room for p in dispatcher.of_type(PushEffect)}
        assert f"user:{freelancer_b.id}" in notified_rooms

    @pytest.mark.unit
    def test_chat_and_notifications(self, client, dispatcher, make_task, client_user, freelancer_a):
        task = make_task(status=TaskStatus.IN_PROGRESS, freelancer=freelancer_a)

        sent = client.post(
            f"/api/messages/tasks/{task.id}",
            headers=auth_headers(client_user),
            json={"content": "Morning! Any blockers?"},
        )
        assert sent.status_code == 201

        history = client.get(f"/api/messages/tasks/{task.id}", headers=auth_headers(freelancer_a))
        assert [m["content"] for m in history.json()["data"]["messages"]] == ["Morning! Any blockers?"]

        inbox = client.get("/api/notifications", headers=auth_headers(freelancer_a)).json()["data"]
        assert inbox["unread_count"] == 1
        note_id = inbox["notifications"][0]["id"]

        read = client.patch(f"/api/notifications/{note_id}/read", headers=auth_headers(freelancer_a))
        assert read.json()["data"]["is_read"] is True
        foreign = client.patch(f"/api/notifications/{note_id}/read", headers=auth_headers(client_user))
        assert foreign.status_code == 403


class TestAdminAndCategories:

    @pytest.mark.unit
    def test_category_crud_is_admin_only(self, client, admin_user, client_user):
        payload = {"name": "Translation"}
        assert client.post("/api/categories", json=payload, headers=auth_headers(client_user)).status_code == 403

        created = client.post("/api/categories", json=payload, headers=auth_headers(admin_user))
        assert created.status_code == 201
        duplicate = client.post("/api/categories", json=payload, headers=auth_headers(admin_user))
        assert duplicate.status_code == 409

        listed = client.get("/api/categories").json()["data"]
        assert [c["name"] for c in listed] == ["Translation"]

    @pytest.mark.unit
    def test_admin_suspends_user(self, client, admin_user, freelancer_a):
        response = client.patch(
            f"/api/admin/users/{freelancer_a.id}/status",
            headers=auth_headers(admin_user),
            json={"is_suspended": True},
        )
        assert response.status_code == 200
        assert response.json()["data"]["is_suspended"] is True
        assert client.get("/api/auth/me", headers=auth_headers(freelancer_a)).status_code == 403

    @pytest.mark.unit
    def test_admin_routes_refuse_non_admins(self, client, client_user):
        assert client.get("/api/admin/users", headers=auth_headers(client_user)).status_code == 403


class TestUploads:

    @pytest.mark.unit
    def test_rejects_non_image_non_pdf(self, client, client_user):
        response = client.post(
            "/api/uploads/presigned-url",
            headers=auth_headers(client_user),
            json={"file_name": "payload.exe", "content_type": "application/x-msdownload"},
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.unit
    def test_presigned_put_for_image(self, client, client_user):
        response = client.post(
            "/api/uploads/presigned-url",
            headers=auth_headers(client_user),
            json={"file_name": "my avatar.png", "content_type": "image/png", "folder": "avatars"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["object_key"].startswith(f"avatars/{client_user.id}/")
        assert data["object_key"].endswith("-my-avatar.png")
        assert data["upload_url"].startswith("http")


class TestWebSocket:

    @pytest.mark.unit
    def test_ping_pong(self, client, client_user):
        token = auth_headers(client_user)["Authorization"].split()[1]
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.send_json({"event": "ping"})
            assert ws.receive_json() == {"event": "pong", "data": {}}

    @pytest.mark.unit
    def test_outsider_cannot_join_task_room(self, client, make_task, freelancer_b):
        task = make_task()
        token = auth_headers(freelancer_b)["Authorization"].split()[1]
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.send_json({"event": "join_room", "data": {"task_id": task.id}})
            frame = ws.receive_json()
            assert frame["event"] == "chat_error"

    @pytest.mark.unit
    def test_party_joins_task_room(self, client, make_task, client_user, freelancer_a):
        task = make_task(status=TaskStatus.IN_PROGRESS, freelancer=freelancer_a)
        token = auth_headers(freelancer_a)["Authorization"].split()[1]
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.send_json({"event": "join_room", "data": {"task_id": task.id}})
            assert ws.receive_json() == {"event": "joined_room", "data": {"task_id": task.id}}

    @pytest.mark.unit
    def test_malformed_frames_get_chat_error_and_keep_the_socket(self, client, client_user):
        token = auth_headers(client_user)["Authorization"].split()[1]
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.send_text("not json at all")
            assert ws.receive_json()["event"] == "chat_error"

            ws.send_json(["join_room"])
            assert ws.receive_json()["event"] == "chat_error"

            ws.send_json({"event": "join_room", "data": [1]})
            assert ws.receive_json()["event"] == "chat_error"

            ws.send_json({"event": "ping"})
            assert ws.receive_json() == {"event": "pong", "data": {}}

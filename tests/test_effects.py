"""Tests for the effect outbox, its dispatcher and the websocket room registry."""

import asyncio
import logging

import pytest
from fastapi import WebSocketDisconnect

from taskhub.services.effects import EffectDispatcher, EmailEffect, Outbox, PayoutEffect, PushEffect
from taskhub.services.realtime import ConnectionManager, task_room, user_room
from taskhub.tasks.celery_app import build_email


class FakeSocket:
    def __init__(self, fail_with: Exception = None):
        self.sent = []
        self.fail_with = fail_with

    async def send_json(self, data):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(data)


class TestOutbox:

    @pytest.mark.unit
    def test_keeps_effects_in_order(self):
        outbox = Outbox()
        outbox.email("a@example.com", "Hi", "Body")
        outbox.push(user_room(1), "new_notification", {"id": 7})
        outbox.payout(42)

        assert [type(e) for e in outbox] == [EmailEffect, PushEffect, PayoutEffect]
        assert len(outbox) == 3
        assert outbox.of_type(PayoutEffect) == [PayoutEffect(transaction_id=42)]


class TestDispatcher:

    @pytest.mark.unit
    def test_pushes_reach_room_members(self):
        manager = ConnectionManager()
        socket = FakeSocket()
        manager.join(socket, user_room(3))
        outbox = Outbox()
        outbox.push(user_room(3), "new_notification", {"id": 1})

        asyncio.run(EffectDispatcher(manager).dispatch(outbox))

        assert socket.sent == [{"event": "new_notification", "data": {"id": 1}}]

    @pytest.mark.unit
    def test_failed_delivery_is_logged_and_the_rest_still_run(self, caplog):
        manager = ConnectionManager()
        socket = FakeSocket()
        manager.join(socket, user_room(3))

        class Flaky(EffectDispatcher):
            async def deliver(self, effect):
                if isinstance(effect, EmailEffect):
                    raise ConnectionError("broker unreachable")
                await super().deliver(effect)

        outbox = Outbox()
        outbox.email("a@example.com", "Hi", "Body")
        outbox.push(user_room(3), "ping", {})

        with caplog.at_level(logging.ERROR, logger="taskhub.effects"):
            asyncio.run(Flaky(manager).dispatch(outbox))

        assert "Failed to deliver EmailEffect" in caplog.text
        assert socket.sent == [{"event": "ping", "data": {}}]


class TestConnectionManager:

    @pytest.mark.unit
    def test_emit_skips_excluded_socket(self):
        manager = ConnectionManager()
        sender, peer = FakeSocket(), FakeSocket()
        manager.join(sender, task_room(9))
        manager.join(peer, task_room(9))

        delivered = asyncio.run(manager.emit(task_room(9), "typing_start", {"user_id": 1}, exclude=sender))

        assert delivered == 1
        assert sender.sent == []
        assert peer.sent == [{"event": "typing_start", "data": {"user_id": 1}}]

    @pytest.mark.unit
    def test_dead_socket_is_dropped_from_every_room(self):
        manager = ConnectionManager()
        dead, alive = FakeSocket(fail_with=WebSocketDisconnect()), FakeSocket()
        manager.join(dead, task_room(9))
        manager.join(dead, user_room(1))
        manager.join(alive, task_room(9))

        delivered = asyncio.run(manager.emit(task_room(9), "new_message", {"id": 5}))

        assert delivered == 1
        assert manager.members(task_room(9)) == 1
        assert manager.members(user_room(1)) == 0

    @pytest.mark.unit
    def test_join_is_idempotent_and_leave_cleans_up(self):
        manager = ConnectionManager()
        socket = FakeSocket()
        manager.join(socket, task_room(2))
        manager.join(socket, task_room(2))
        assert manager.members(task_room(2)) == 1

        manager.leave(socket, task_room(2))
        assert task_room(2) not in manager.rooms


class TestEmailBuilder:

    @pytest.mark.unit
    def test_headers_and_body(self):
        msg = build_email("dana@example.com", "Verify your email", "Your code is 123456")

        assert msg["To"] == "dana@example.com"
        assert msg["Subject"] == "Verify your email"
        assert "Your code is 123456" in msg.get_content()

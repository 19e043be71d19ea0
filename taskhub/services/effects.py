"""Outbox of side effects collected during a service call.

Services never send email, push to sockets or move money themselves. They
append effects to the request's ``Outbox``; once the database transaction
has committed the router hands the outbox to ``EffectDispatcher``, which
delivers each effect independently. A failed delivery is logged and never
touches the already-committed state.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from fastapi.requests import HTTPConnection

from taskhub.services.realtime import ConnectionManager

logger = logging.getLogger("taskhub.effects")


@dataclass
class EmailEffect:
    to: str
    subject: str
    body: str


@dataclass
class PushEffect:
    room: str
    event: str
    data: Any


@dataclass
class PayoutEffect:
    transaction_id: int


@dataclass
class Outbox:
    """Ordered list of pending effects for one unit of work."""

    effects: List[Any] = field(default_factory=list)

    def email(self, to: str, subject: str, body: str) -> None:
        self.effects.append(EmailEffect(to=to, subject=subject, body=body))

    def push(self, room: str, event: str, data: Any) -> None:
        self.effects.append(PushEffect(room=room, event=event, data=data))

    def payout(self, transaction_id: int) -> None:
        self.effects.append(PayoutEffect(transaction_id=transaction_id))

    def of_type(self, kind: type) -> list:
        return [e for e in self.effects if isinstance(e, kind)]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.effects)

    def __len__(self) -> int:
        return len(self.effects)


class EffectDispatcher:
    """Delivers outbox effects: email and payouts via Celery, pushes via websockets."""

    def __init__(self, realtime: ConnectionManager):
        self.realtime = realtime

    async def dispatch(self, outbox: Outbox) -> None:
        for effect in outbox:
            try:
                await self.deliver(effect)
            except Exception:
                logger.exception("Failed to deliver %s", type(effect).__name__)

    async def deliver(self, effect: Any) -> None:
        if isinstance(effect, PushEffect):
            await self.realtime.emit(effect.room, effect.event, effect.data)
        elif isinstance(effect, EmailEffect):
            from taskhub.tasks.celery_app import send_email
            send_email.delay(effect.to, effect.subject, effect.body)
        elif isinstance(effect, PayoutEffect):
            from taskhub.tasks.celery_app import process_payout
            process_payout.delay(effect.transaction_id)
        else:
            raise TypeError(f"Unknown effect {effect!r}")


def get_outbox() -> Outbox:
    """FastAPI dependency: a fresh outbox per request."""
    return Outbox()


def get_dispatcher(conn: HTTPConnection) -> EffectDispatcher:
    """FastAPI dependency: the dispatcher built at startup."""
    dispatcher: Optional[EffectDispatcher] = getattr(conn.app.state, "dispatcher", None)
    if dispatcher is None:
        raise RuntimeError("EffectDispatcher not configured on app.state")
    return dispatcher

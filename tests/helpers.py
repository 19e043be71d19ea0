"""Test helpers shared across unit tests."""

from typing import Any, Dict, List

from taskhub.core.security import create_access_token, hash_password, token_claims
from taskhub.db.base import utcnow
from taskhub.models.user import Profile, User, UserRole
from taskhub.services.effects import EffectDispatcher
from taskhub.services.realtime import ConnectionManager

PASSWORD = "s3cret-pass"


class FakeCache:
    """In-process stand-in for the Redis cache."""

    def __init__(self):
        self.store: Dict[str, Any] = {}

    def get_json(self, key: str):
        return self.store.get(key)

    def set_json(self, key: str, value: Any, ttl_seconds: int = 600) -> None:
        self.store[key] = value

    def delete(self, key: str) -> None:
        self.store.pop(key, None)

    def health_check(self) -> bool:
        return True


class RecordingDispatcher(EffectDispatcher):
    """Dispatcher that records effects instead of sending them."""

    def __init__(self):
        super().__init__(ConnectionManager())
        self.delivered: List[Any] = []

    async def deliver(self, effect: Any) -> None:
        self.delivered.append(effect)

    def of_type(self, kind: type) -> list:
        return [e for e in self.delivered if isinstance(e, kind)]


def make_user(db, email: str, role: UserRole, verified: bool = True, first_name: str = "Test") -> User:
    user = User(
        email=email,
        hashed_password=hash_password(PASSWORD),
        role=role,
        email_verified_at=utcnow() if verified else None,
    )
    user.profile = Profile(first_name=first_name, last_name="User", skills=[], portfolio_links=[])
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(token_claims(user))}"}

"""Shared fixtures: in-memory SQLite, a wired test app, and marketplace actors."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import taskhub.models  # noqa: E402,F401
from taskhub.core.rate_limiter import limiter  # noqa: E402
from taskhub.db.base import Base, utcnow  # noqa: E402
from taskhub.db.session import get_db  # noqa: E402
from taskhub.main import create_app  # noqa: E402
from taskhub.models.category import Category  # noqa: E402
from taskhub.models.task import Task, TaskStatus  # noqa: E402
from taskhub.models.user import User, UserRole  # noqa: E402
from taskhub.services.effects import Outbox  # noqa: E402

from tests.helpers import FakeCache, RecordingDispatcher, make_user  # noqa: E402


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def app(session_factory, cache, dispatcher):
    limiter.enabled = False
    application = create_app(with_lifespan=False)
    application.state.cache = cache
    application.state.dispatcher = dispatcher

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------
@pytest.fixture
def client_user(db) -> User:
    return make_user(db, "client@example.com", UserRole.CLIENT, first_name="Carla")


@pytest.fixture
def other_client(db) -> User:
    return make_user(db, "other-client@example.com", UserRole.CLIENT, first_name="Otto")


@pytest.fixture
def freelancer_a(db) -> User:
    return make_user(db, "alice@example.com", UserRole.FREELANCER, first_name="Alice")


@pytest.fixture
def freelancer_b(db) -> User:
    return make_user(db, "bob@example.com", UserRole.FREELANCER, first_name="Bob")


@pytest.fixture
def admin_user(db) -> User:
    return make_user(db, "admin@example.com", UserRole.ADMIN, first_name="Ada")


@pytest.fixture
def category(db) -> Category:
    cat = Category(name="Web Development")
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return cat


@pytest.fixture
def make_task(db, client_user, category):
    """Factory for tasks owned by ``client_user`` (or another owner)."""

    def _make(
        budget: float = 500.0,
        status: TaskStatus = TaskStatus.OPEN,
        owner: User = None,
        title: str = "Build a landing page",
        freelancer: User = None,
    ) -> Task:
        task = Task(
            title=title,
            description="A responsive landing page for a product launch.",
            budget=budget,
            deadline=utcnow() + timedelta(days=14),
            skills=["html", "css"],
            category_id=category.id,
            client_id=(owner or client_user).id,
            freelancer_id=freelancer.id if freelancer else None,
            status=status,
        )
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    return _make

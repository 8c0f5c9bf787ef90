"""
Test configuration.

Every test gets its own in-memory SQLite database. The API's get_db dependency
is overridden to hand out sessions bound to it, and rate limiting is switched
off before the application modules are imported.
"""

import os

os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from meetday.database import Base, enable_sqlite_foreign_keys, engine_options, get_db  # noqa: E402
from meetday.main import app  # noqa: E402
from meetday.models import Friendship, FriendshipStatus, User  # noqa: E402

TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def engine():
    engine = create_engine(TEST_DATABASE_URL, **engine_options(TEST_DATABASE_URL))
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Session for arranging data and asserting on it"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(username: str) -> User:
        user = User(username=username)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def befriend(db):
    def _befriend(a: User, b: User, status: FriendshipStatus = FriendshipStatus.ACCEPTED):
        db.add(Friendship(user_id=a.id, friend_id=b.id, status=status))
        db.commit()

    return _befriend


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


@pytest.fixture
def friends(alice, bob, carol, befriend):
    """alice-bob and carol-bob are friends; alice and carol are strangers"""
    befriend(alice, bob)
    befriend(bob, carol)
    return alice, bob, carol


"""Fixtures for users."""

import pytest

from app.models.user import User


def _create_user(db, faker, **overrides) -> User:
    user = User(
        username=overrides.get("username", faker.unique.user_name()),
        avatar_url=overrides.get("avatar_url", faker.image_url()),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def setup_user(db, faker):
    """Create a user for testing."""
    return _create_user(db, faker)


@pytest.fixture(scope="function")
def setup_another_user(db, faker):
    return _create_user(db, faker)


@pytest.fixture(scope="function")
def user_factory(db, faker):
    """Create any number of extra users."""

    def factory(**overrides) -> User:
        return _create_user(db, faker, **overrides)

    return factory


@pytest.fixture
def auth_headers():
    """Bearer headers for testing mode, where the token is the user id."""

    def build(user_id) -> dict:
        return {"Authorization": f"Bearer {user_id}"}

    return build

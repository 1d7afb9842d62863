"""Fixtures for groups and memberships."""

import pytest

from app.services.group_service import GroupService


@pytest.fixture(scope="function")
def setup_group(db, faker, setup_user, setup_another_user, user_factory):
    """
    Group owned by setup_user with setup_another_user and one more member.
    """
    service = GroupService(db)
    group = service.create_group(
        handle=faker.unique.slug(), name=faker.company(), owner_id=setup_user.id
    )
    service.add_member(group.id, setup_another_user.id)
    service.add_member(group.id, user_factory().id)
    return group

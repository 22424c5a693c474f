"""Shared pytest fixtures for planner tests."""

import pytest

from django.conf import settings

from work_packages.factories import (
    AdminUserFactory,
    PriorityFactory,
    ProjectFactory,
    RoleFactory,
    StatusFactory,
    TimeEntryActivityFactory,
    TypeFactory,
    UserFactory,
    WorkPackageFactory,
)

# Use local filesystem storage for tests
settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache before each test."""
    from django.core.cache import cache

    cache.clear()


@pytest.fixture(autouse=True)
def _media_root(settings, tmp_path):
    """Store uploaded attachments in a per-test directory."""
    settings.MEDIA_ROOT = tmp_path / "media"


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def admin_user(db, password):
    return AdminUserFactory(
        username="admin",
        email="admin@example.com",
        password=password,
    )


@pytest.fixture
def user(db, password):
    return UserFactory(
        username="member",
        email="member@example.com",
        password=password,
    )


@pytest.fixture
def role(db):
    return RoleFactory(name="Developer")


@pytest.fixture
def wp_type(db):
    return TypeFactory(name="Task")


@pytest.fixture
def status_new(db):
    return StatusFactory(name="New", is_default=True, position=1)


@pytest.fixture
def status_closed(db):
    return StatusFactory(name="Closed", is_closed=True, position=5)


@pytest.fixture
def priority(db):
    return PriorityFactory(name="Normal", is_default=True)


@pytest.fixture
def activity(db):
    return TimeEntryActivityFactory(name="Development", is_default=True)


@pytest.fixture
def project(db, wp_type):
    return ProjectFactory(
        name="Apollo", identifier="apollo", types=[wp_type]
    )


@pytest.fixture
def member(db, project, user, role):
    return project.add_member(user, [role])


@pytest.fixture
def work_package(db, project, wp_type, status_new, priority, user):
    return WorkPackageFactory(
        project=project,
        type=wp_type,
        status=status_new,
        priority=priority,
        author=user,
        subject="Write the launch checklist",
    )

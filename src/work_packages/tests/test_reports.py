"""Tests for grouped work package counts."""

import pytest

from work_packages.factories import (
    CategoryFactory,
    PriorityFactory,
    ProjectFactory,
    TypeFactory,
    UserFactory,
    VersionFactory,
    WorkPackageFactory,
)
from work_packages.services import reports


@pytest.fixture
def grouped_project(project, wp_type, priority, user, status_new):
    type_2 = TypeFactory(name="Bug")
    project.types.add(type_2)
    user_2 = UserFactory()
    WorkPackageFactory(
        project=project,
        type=wp_type,
        status=status_new,
        priority=priority,
        author=user,
        assigned_to=user,
        fixed_version=VersionFactory(project=project),
        category=CategoryFactory(project=project),
    )
    WorkPackageFactory(
        project=project,
        type=type_2,
        status=status_new,
        priority=PriorityFactory(),
        author=user_2,
        assigned_to=user_2,
        fixed_version=VersionFactory(project=project),
        category=CategoryFactory(project=project),
    )
    return project


@pytest.mark.parametrize(
    "report, key",
    [
        (reports.by_type, "type_id"),
        (reports.by_version, "fixed_version_id"),
        (reports.by_priority, "priority_id"),
        (reports.by_category, "category_id"),
        (reports.by_assigned_to, "assigned_to_id"),
        (reports.by_author, "author_id"),
    ],
)
def test_group_by(grouped_project, report, key):
    groups = report(grouped_project)
    assert len(groups) == 2
    assert sum(group["total"] for group in groups) == 2
    assert all(set(group) == {"status_id", "closed", key, "total"} for group in groups)


def test_group_by_ignores_subprojects(grouped_project):
    subproject = ProjectFactory(parent=grouped_project)
    WorkPackageFactory(project=subproject)
    groups = reports.by_author(grouped_project)
    assert len(groups) == 2
    assert sum(group["total"] for group in groups) == 2


def test_group_by_counts_closed(project, wp_type, status_closed, user):
    for _ in range(3):
        WorkPackageFactory(
            project=project, type=wp_type, status=status_closed, author=user
        )
    (group,) = reports.by_author(project)
    assert group == {
        "status_id": status_closed.pk,
        "closed": True,
        "author_id": user.pk,
        "total": 3,
    }


def test_by_subproject(grouped_project):
    active = ProjectFactory(parent=grouped_project)
    nested = ProjectFactory(parent=active)
    archived = ProjectFactory(parent=grouped_project)
    WorkPackageFactory(project=active)
    WorkPackageFactory(project=nested)
    WorkPackageFactory(project=archived)
    archived.archive()

    groups = reports.by_subproject(grouped_project)
    assert {group["project_id"] for group in groups} == {active.pk, nested.pk}
    assert sum(group["total"] for group in groups) == 2


def test_by_subproject_without_subprojects(project):
    assert reports.by_subproject(project) == []

"""Tests for the work package admin."""

import pytest

from django.urls import reverse

from work_packages.factories import ProjectFactory
from work_packages.models import Project

# ============================================================
# ADMIN TESTS
# ============================================================


@pytest.mark.django_db
class TestChangelists:
    @pytest.mark.parametrize(
        "model",
        [
            "workpackage",
            "timeentry",
            "project",
            "version",
            "role",
            "status",
            "type",
            "priority",
            "timeentryactivity",
            "category",
            "workflow",
            "journal",
        ],
    )
    def test_changelist_renders(self, admin_client, work_package, model):
        url = reverse(f"admin:work_packages_{model}_changelist")
        response = admin_client.get(url)
        assert response.status_code == 200

    def test_work_package_change_view(self, admin_client, work_package):
        url = reverse(
            "admin:work_packages_workpackage_change", args=[work_package.pk]
        )
        response = admin_client.get(url)
        assert response.status_code == 200
        assert work_package.subject.encode() in response.content


@pytest.mark.django_db
class TestProjectActions:
    def test_archive_action(self, admin_client, project):
        child = ProjectFactory(parent=project)
        response = admin_client.post(
            reverse("admin:work_packages_project_changelist"),
            {"action": "archive_projects", "_selected_action": [project.pk]},
            follow=True,
        )
        assert response.status_code == 200
        child.refresh_from_db()
        assert child.status == Project.STATUS_ARCHIVED

    def test_unarchive_action_reports_archived_parent(
        self, admin_client, project
    ):
        child = ProjectFactory(parent=project)
        project.archive()
        response = admin_client.post(
            reverse("admin:work_packages_project_changelist"),
            {"action": "unarchive_projects", "_selected_action": [child.pk]},
            follow=True,
        )
        assert response.status_code == 200
        assert b"parent is archived" in response.content
        child.refresh_from_db()
        assert child.status == Project.STATUS_ARCHIVED


class TestWorkPackageAdmin:
    def test_display_header(self, work_package):
        from work_packages.admin import WorkPackageAdmin
        from work_packages.models import WorkPackage

        admin_instance = WorkPackageAdmin(WorkPackage, None)
        assert admin_instance.display_header(work_package) == (
            work_package.subject,
            f"#{work_package.pk}",
        )

    def test_display_assignee_empty(self, work_package):
        from work_packages.admin import WorkPackageAdmin
        from work_packages.models import WorkPackage

        admin_instance = WorkPackageAdmin(WorkPackage, None)
        assert admin_instance.display_assignee(work_package) is None

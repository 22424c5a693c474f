"""Tests for work package management commands."""

from io import StringIO

import pytest

from django.core.management import call_command

from work_packages.models import Priority, Status, TimeEntryActivity, Type


@pytest.mark.django_db
class TestSeedWorkPackageDefaults:
    def test_seeds_defaults(self):
        out = StringIO()
        call_command("seed_work_package_defaults", stdout=out)
        assert Status.objects.count() == 6
        assert Priority.objects.count() == 5
        assert Type.objects.count() == 3
        assert TimeEntryActivity.objects.count() == 2
        assert Status.default().name == "New"
        assert Priority.default().name == "Normal"
        assert "Created status: New" in out.getvalue()

    def test_idempotent(self):
        call_command("seed_work_package_defaults", stdout=StringIO())
        out = StringIO()
        call_command("seed_work_package_defaults", stdout=out)
        assert Status.objects.count() == 6
        assert "Updated status: Closed" in out.getvalue()

    def test_closed_status_completes_work(self):
        call_command("seed_work_package_defaults", stdout=StringIO())
        closed = Status.objects.get(name="Closed")
        assert closed.is_closed
        assert closed.default_done_ratio == 100

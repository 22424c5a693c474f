"""Tests for the user admin."""

import pytest

from django.contrib.admin.models import CHANGE, LogEntry
from django.urls import reverse

from accounts.forms import CustomUserChangeForm
from work_packages.factories import UserFactory

# ============================================================
# USER ADMIN
# ============================================================


@pytest.mark.django_db
class TestCustomUserAdmin:
    def test_admin_uses_unfold_model_admin(self):
        from unfold.admin import ModelAdmin as UnfoldModelAdmin

        from accounts.admin import CustomUserAdmin

        assert issubclass(CustomUserAdmin, UnfoldModelAdmin)

    def test_changelist_shows_projects(self, admin_client, member, project):
        response = admin_client.get(
            reverse("admin:accounts_customuser_changelist")
        )
        assert response.status_code == 200
        assert project.name.encode() in response.content

    def test_change_view_renders(self, admin_client, user):
        response = admin_client.get(
            reverse("admin:accounts_customuser_change", args=[user.pk])
        )
        assert response.status_code == 200

    def test_lock_users_action(self, admin_client, user):
        admin_client.post(
            reverse("admin:accounts_customuser_changelist"),
            {"action": "lock_users", "_selected_action": [user.pk]},
            follow=True,
        )
        user.refresh_from_db()
        assert not user.is_active
        entry = LogEntry.objects.get(object_id=str(user.pk))
        assert entry.action_flag == CHANGE

    def test_cannot_lock_self(self, admin_client, admin_user):
        response = admin_client.post(
            reverse("admin:accounts_customuser_changelist"),
            {"action": "lock_users", "_selected_action": [admin_user.pk]},
            follow=True,
        )
        admin_user.refresh_from_db()
        assert admin_user.is_active
        assert b"You cannot lock your own account." in response.content

    def test_unlock_users_action(self, admin_client):
        locked = UserFactory(is_active=False)
        admin_client.post(
            reverse("admin:accounts_customuser_changelist"),
            {"action": "unlock_users", "_selected_action": [locked.pk]},
            follow=True,
        )
        locked.refresh_from_db()
        assert locked.is_active


@pytest.mark.django_db
class TestCustomUserChangeForm:
    def _data(self, user, **overrides):
        data = {
            "username": user.username,
            "email": user.email,
            "display_name": "",
            "first_name": "",
            "last_name": "",
            "mail_notification": "all",
        }
        data.update(overrides)
        return data

    def test_email_normalised(self, user):
        form = CustomUserChangeForm(
            data=self._data(user, email="  Member@Example.COM "),
            instance=user,
        )
        assert form.is_valid(), form.errors
        assert form.cleaned_data["email"] == "member@example.com"

    def test_duplicate_email_rejected(self, user):
        other = UserFactory(email="taken@example.com")
        form = CustomUserChangeForm(
            data=self._data(user, email=other.email.upper()),
            instance=user,
        )
        assert not form.is_valid()
        assert "email" in form.errors

"""Tests for the custom user model."""

import pytest

from work_packages.factories import UserFactory, WorkPackageFactory


@pytest.mark.django_db
class TestDisplayName:
    def test_display_name_preferred(self):
        user = UserFactory(display_name="Ada", first_name="Augusta")
        assert user.get_display_name() == "Ada"
        assert str(user) == "Ada"

    def test_full_name_fallback(self):
        user = UserFactory(display_name="", first_name="Ada", last_name="King")
        assert user.get_display_name() == "Ada King"

    def test_username_fallback(self):
        user = UserFactory(display_name="", username="ada")
        assert user.get_display_name() == "ada"

    def test_mail_and_admin(self, admin_user, user):
        assert user.mail == user.email
        assert admin_user.is_admin
        assert not user.is_admin


@pytest.mark.django_db
class TestNotifyAbout:
    @pytest.fixture
    def author(self):
        return UserFactory()

    @pytest.fixture
    def assignee(self):
        return UserFactory()

    @pytest.fixture
    def outsider(self):
        return UserFactory()

    @pytest.fixture
    def wp(self, author, assignee):
        return WorkPackageFactory(author=author, assigned_to=assignee)

    @pytest.mark.parametrize(
        "setting, author_notified, assignee_notified, outsider_notified",
        [
            ("all", True, True, True),
            ("selected", True, True, False),
            ("only_my_events", True, True, False),
            ("only_assigned", False, True, False),
            ("only_owner", True, False, False),
            ("none", False, False, False),
        ],
    )
    def test_settings(
        self,
        wp,
        author,
        assignee,
        outsider,
        setting,
        author_notified,
        assignee_notified,
        outsider_notified,
    ):
        for user in (author, assignee, outsider):
            user.mail_notification = setting
        assert author.notify_about(wp) is author_notified
        assert assignee.notify_about(wp) is assignee_notified
        assert outsider.notify_about(wp) is outsider_notified

"""Custom user model for the planner."""

from django.contrib.auth.models import AbstractUser
from django.db import models


class CustomUser(AbstractUser):
    """Extended user with display name, required email and mail settings."""

    MAIL_NOTIFICATION_CHOICES = [
        ("all", "For any event on all my projects"),
        ("selected", "For any event on the selected projects only"),
        ("only_my_events", "Only for things I watch or I'm involved in"),
        ("only_assigned", "Only for things I am assigned to"),
        ("only_owner", "Only for things I am the owner of"),
        ("none", "No events"),
    ]

    display_name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Human-readable name shown on work packages and journals",
    )
    email = models.EmailField("email address", blank=False, unique=True)
    mail_notification = models.CharField(
        max_length=20,
        choices=MAIL_NOTIFICATION_CHOICES,
        default="only_my_events",
        help_text="Which work package events trigger an email",
    )

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"

    def get_display_name(self):
        """Return display_name if set, otherwise full name or username."""
        if self.display_name:
            return self.display_name
        full = self.get_full_name()
        return full if full else self.username

    def __str__(self):
        return self.get_display_name()

    @property
    def mail(self):
        return self.email

    @property
    def is_admin(self):
        return self.is_superuser

    def roles_for_project(self, project):
        """Return the roles this user holds in ``project``.

        Inactive users and archived projects have no roles.
        """
        if not self.is_active or project is None or not project.is_active:
            return []
        member = (
            project.members.filter(user=self)
            .prefetch_related("roles")
            .first()
        )
        if member is None:
            return []
        return list(member.roles.all())

    def allowed_to(self, permission, project):
        """Check whether the user may perform ``permission`` in ``project``."""
        if not self.is_active or project is None or not project.is_active:
            return False
        if self.is_superuser:
            return True
        return any(
            role.has_permission(permission)
            for role in self.roles_for_project(project)
        )

    def notify_about(self, work_package):
        """Return whether the user wants mail about ``work_package``."""
        involved = (
            work_package.author_id == self.pk
            or work_package.assigned_to_id == self.pk
        )
        if self.mail_notification == "all":
            return True
        if self.mail_notification in ("selected", "only_my_events"):
            return involved
        if self.mail_notification == "only_assigned":
            return work_package.assigned_to_id == self.pk
        if self.mail_notification == "only_owner":
            return work_package.author_id == self.pk
        return False

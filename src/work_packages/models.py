"""Models for projects, workflows and work packages."""

import logging
import mimetypes
import os
from datetime import date

from django.conf import settings
from django.core.exceptions import NON_FIELD_ERRORS, ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import (
    MaxValueValidator,
    MinValueValidator,
    RegexValidator,
)
from django.db import models, transaction
from django.db.models import Max, Q
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver
from django.utils import timezone

from .fields import HoursField

logger = logging.getLogger(__name__)


def _status_sort_key(status):
    return (status.position, status.pk)


class Role(models.Model):
    """A set of permissions a member holds within a project."""

    PERMISSION_CHOICES = [
        ("view_work_packages", "View work packages"),
        ("add_work_packages", "Add work packages"),
        ("edit_work_packages", "Edit work packages"),
        ("move_work_packages", "Move work packages"),
        ("delete_work_packages", "Delete work packages"),
        ("log_time", "Log spent time"),
        ("manage_versions", "Manage versions"),
        ("manage_categories", "Manage categories"),
    ]

    name = models.CharField(max_length=30, unique=True)
    position = models.PositiveIntegerField(default=0)
    assignable = models.BooleanField(
        default=True,
        help_text="Work packages can be assigned to members with this role",
    )
    permissions = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["position", "name"]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        known = {codename for codename, _ in self.PERMISSION_CHOICES}
        unknown = sorted(set(self.permissions or []) - known)
        if unknown:
            raise ValidationError(
                {"permissions": f"Unknown permission(s): {', '.join(unknown)}."}
            )

    def has_permission(self, permission):
        return permission in (self.permissions or [])


class Type(models.Model):
    """Kind of work package (task, bug, feature, milestone...)."""

    name = models.CharField(max_length=255, unique=True)
    position = models.PositiveIntegerField(default=0)
    is_default = models.BooleanField(default=False)
    is_in_roadmap = models.BooleanField(default=True)

    class Meta:
        ordering = ["position", "name"]

    def __str__(self):
        return self.name


class Status(models.Model):
    """Work package status. Transitions between statuses are workflows."""

    name = models.CharField(max_length=30, unique=True)
    is_closed = models.BooleanField(default=False)
    is_default = models.BooleanField(default=False)
    default_done_ratio = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MaxValueValidator(100)],
        help_text="Done ratio applied when done ratios follow the status",
    )
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "name"]
        verbose_name_plural = "statuses"

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        if self.is_default:
            Status.objects.filter(is_default=True).exclude(pk=self.pk).update(
                is_default=False
            )

    @classmethod
    def default(cls):
        return cls.objects.filter(is_default=True).first()

    def new_statuses_allowed_to(self, roles, type, author=False, assignee=False):
        """Return the statuses reachable from this one.

        Filters the outgoing workflows in memory. A transition flagged
        ``author`` is only available to the author, one flagged
        ``assignee`` only to the assignee.
        """
        if not roles or type is None:
            return []
        role_ids = {role.pk for role in roles}
        statuses = {
            workflow.new_status
            for workflow in self.workflows.select_related("new_status")
            if workflow.role_id in role_ids
            and workflow.type_id == type.pk
            and (author or not workflow.author)
            and (assignee or not workflow.assignee)
        }
        return sorted(statuses, key=_status_sort_key)

    def find_new_statuses_allowed_to(
        self, roles, type, author=False, assignee=False
    ):
        """Database-side equivalent of ``new_statuses_allowed_to``."""
        if not roles or type is None:
            return []
        workflows = Workflow.objects.filter(
            old_status=self, type=type, role__in=roles
        )
        if not author:
            workflows = workflows.filter(author=False)
        if not assignee:
            workflows = workflows.filter(assignee=False)
        return list(
            Status.objects.filter(
                pk__in=workflows.values("new_status_id")
            ).order_by("position", "pk")
        )


class Enumeration(models.Model):
    """Ordered list value with a single default entry."""

    name = models.CharField(max_length=30, unique=True)
    position = models.PositiveIntegerField(default=0)
    is_default = models.BooleanField(default=False)
    active = models.BooleanField(default=True)

    class Meta:
        abstract = True
        ordering = ["position", "name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        if self.is_default:
            type(self).objects.filter(is_default=True).exclude(
                pk=self.pk
            ).update(is_default=False)

    @classmethod
    def default(cls):
        return cls.objects.filter(is_default=True, active=True).first()


class Priority(Enumeration):
    class Meta(Enumeration.Meta):
        verbose_name_plural = "priorities"


class TimeEntryActivity(Enumeration):
    class Meta(Enumeration.Meta):
        verbose_name_plural = "time entry activities"


class ProjectManager(models.Manager):
    def active(self):
        return self.filter(status=Project.STATUS_ACTIVE)


class Project(models.Model):
    """A project. Projects nest through ``parent``."""

    STATUS_ACTIVE = 1
    STATUS_ARCHIVED = 9
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_ARCHIVED, "Archived"),
    ]

    name = models.CharField(max_length=255)
    identifier = models.CharField(
        max_length=100,
        unique=True,
        validators=[
            RegexValidator(
                r"^[a-z][a-z0-9_\-]*$",
                "Lowercase letters, digits, dashes and underscores only, "
                "starting with a letter.",
            )
        ],
    )
    description = models.TextField(blank=True)
    parent = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="children",
    )
    status = models.PositiveSmallIntegerField(
        choices=STATUS_CHOICES, default=STATUS_ACTIVE
    )
    is_public = models.BooleanField(default=True)
    types = models.ManyToManyField(Type, blank=True, related_name="projects")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProjectManager()

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="idx_project_status"),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        seen = {self.pk} if self.pk else set()
        current = self.parent
        while current:
            if current.pk in seen:
                raise ValidationError(
                    {"parent": "A project cannot be its own ancestor."}
                )
            seen.add(current.pk)
            current = current.parent

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    @property
    def root(self):
        current = self
        while current.parent_id:
            current = current.parent
        return current

    def ancestors(self):
        """Return ancestors ordered from the root down to the parent."""
        ancestors = []
        current = self.parent
        while current:
            ancestors.insert(0, current)
            current = current.parent
        return ancestors

    def descendants(self):
        """Return all descendant projects using iterative batch queries."""
        if self.pk is None:
            return []
        descendants = []
        current_level = list(self.children.all())
        while current_level:
            descendants.extend(current_level)
            current_ids = [project.pk for project in current_level]
            current_level = list(
                Project.objects.filter(parent_id__in=current_ids)
            )
        return descendants

    def add_member(self, user, roles):
        """Make ``user`` a member holding ``roles`` (a role or a list)."""
        if isinstance(roles, Role):
            roles = [roles]
        member, _ = Member.objects.get_or_create(user=user, project=self)
        member.roles.add(*roles)
        return member

    def shared_versions(self):
        """Versions usable by work packages of this project.

        The project's own versions plus versions of non-archived projects
        shared system-wide, within the same tree, from an ancestor
        (``hierarchy``/``descendants``) or from a descendant
        (``hierarchy``).
        """
        active_projects = ~Q(project__status=self.STATUS_ARCHIVED)
        if self.pk is None:
            return Version.objects.filter(
                active_projects, sharing="system"
            ).select_related("project")

        root = self.root
        tree_ids = [root.pk] + [p.pk for p in root.descendants()]
        ancestor_ids = [p.pk for p in self.ancestors()]
        descendant_ids = [p.pk for p in self.descendants()]

        shared = (
            Q(sharing="system")
            | Q(project_id__in=tree_ids, sharing="tree")
            | Q(
                project_id__in=ancestor_ids,
                sharing__in=["hierarchy", "descendants"],
            )
            | Q(project_id__in=descendant_ids, sharing="hierarchy")
        )
        return Version.objects.filter(
            Q(project=self) | (active_projects & shared)
        ).select_related("project")

    def assignable_users(self):
        """Active users holding an assignable role in this project."""
        from django.contrib.auth import get_user_model

        return (
            get_user_model()
            .objects.filter(
                is_active=True,
                memberships__project=self,
                memberships__roles__assignable=True,
            )
            .distinct()
            .order_by("username")
        )

    def notified_users(self):
        """Members who want mail about every event in this project."""
        members = self.members.select_related("user").filter(
            user__is_active=True
        )
        return [
            member.user
            for member in members
            if member.mail_notification
            or member.user.mail_notification == "all"
        ]

    def recipients(self):
        return [user.email for user in self.notified_users()]

    def archive(self):
        """Archive this project and all of its descendants."""
        ids = [self.pk] + [p.pk for p in self.descendants()]
        with transaction.atomic():
            Project.objects.filter(pk__in=ids).update(
                status=self.STATUS_ARCHIVED, updated_at=timezone.now()
            )
        self.status = self.STATUS_ARCHIVED
        logger.info("Archived project %s and %d subproject(s)",
                    self.identifier, len(ids) - 1)

    def unarchive(self):
        if self.parent_id and not self.parent.is_active:
            raise ValidationError(
                "Cannot unarchive a project whose parent is archived."
            )
        self.status = self.STATUS_ACTIVE
        self.save(update_fields=["status", "updated_at"])


class Member(models.Model):
    """A user's membership in a project."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="members",
    )
    roles = models.ManyToManyField(Role, related_name="members")
    mail_notification = models.BooleanField(
        default=False,
        help_text="Mail every event of this project to the member "
        "(used by the 'selected' notification option)",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "project"],
                name="unique_member_per_project",
            ),
        ]

    def __str__(self):
        return f"{self.user} in {self.project}"


class Category(models.Model):
    """Work package category within a project."""

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="categories",
    )
    name = models.CharField(max_length=255)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_categories",
        help_text="Default assignee of new work packages in this category",
    )

    class Meta:
        verbose_name_plural = "categories"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["project", "name"],
                name="unique_category_per_project",
            ),
        ]

    def __str__(self):
        return self.name


class Version(models.Model):
    """A milestone work packages can be planned for."""

    STATUS_CHOICES = [
        ("open", "Open"),
        ("locked", "Locked"),
        ("closed", "Closed"),
    ]

    # Ordered from the narrowest to the widest scope
    SHARING_CHOICES = [
        ("none", "Not shared"),
        ("descendants", "With subprojects"),
        ("hierarchy", "With project hierarchy"),
        ("tree", "With project tree"),
        ("system", "With all projects"),
    ]

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="versions",
    )
    name = models.CharField(max_length=60)
    description = models.CharField(max_length=255, blank=True)
    effective_date = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default="open"
    )
    sharing = models.CharField(
        max_length=20, choices=SHARING_CHOICES, default="none"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["effective_date", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["project", "name"],
                name="unique_version_per_project",
            ),
        ]

    def __str__(self):
        return f"{self.project} - {self.name}"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_sharing = instance.__dict__.get("sharing")
        return instance

    @property
    def is_open(self):
        return self.status == "open"

    @property
    def is_locked(self):
        return self.status == "locked"

    @property
    def is_closed(self):
        return self.status == "closed"

    def save(self, *args, **kwargs):
        sharing_was = getattr(self, "_loaded_sharing", None)
        super().save(*args, **kwargs)
        if sharing_was and self._sharing_narrowed(sharing_was):
            self._update_work_packages_from_sharing_change()
        self._loaded_sharing = self.sharing

    def _sharing_narrowed(self, sharing_was):
        scopes = [value for value, _ in self.SHARING_CHOICES]
        return scopes.index(self.sharing) < scopes.index(sharing_was)

    def _update_work_packages_from_sharing_change(self):
        """Unplan work packages of projects this version is no longer
        shared with."""
        stale = [
            work_package.pk
            for work_package in self.fixed_work_packages.exclude(
                project_id=self.project_id
            ).select_related("project")
            if not work_package.project.shared_versions()
            .filter(pk=self.pk)
            .exists()
        ]
        if stale:
            WorkPackage.objects.filter(pk__in=stale).update(
                fixed_version=None, updated_at=timezone.now()
            )
            logger.info(
                "Version %s unshared: cleared it from %d work package(s)",
                self.pk,
                len(stale),
            )


class Workflow(models.Model):
    """A permitted status transition for a role and a type."""

    role = models.ForeignKey(
        Role, on_delete=models.CASCADE, related_name="workflows"
    )
    type = models.ForeignKey(
        Type, on_delete=models.CASCADE, related_name="workflows"
    )
    old_status = models.ForeignKey(
        Status, on_delete=models.CASCADE, related_name="workflows"
    )
    new_status = models.ForeignKey(
        Status, on_delete=models.CASCADE, related_name="incoming_workflows"
    )
    author = models.BooleanField(
        default=False,
        help_text="Only available when the user is the author",
    )
    assignee = models.BooleanField(
        default=False,
        help_text="Only available when the user is the assignee",
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=[
                    "role",
                    "type",
                    "old_status",
                    "new_status",
                    "author",
                    "assignee",
                ],
                name="unique_workflow_transition",
            ),
        ]

    def __str__(self):
        return (
            f"{self.type} / {self.role}: {self.old_status} -> "
            f"{self.new_status}"
        )


class WorkPackageManager(models.Manager):
    """Custom manager with the standard work package scopes."""

    def with_related(self):
        return self.select_related(
            "project",
            "type",
            "status",
            "priority",
            "author",
            "assigned_to",
            "fixed_version",
            "category",
        )

    def recently_updated(self):
        return self.order_by("-updated_at", "-pk")

    def on_active_project(self):
        return self.filter(project__status=Project.STATUS_ACTIVE)

    def visible(self, user):
        """Work packages of active projects ``user`` may view."""
        queryset = self.on_active_project()
        if not user.is_active:
            return queryset.none()
        if user.is_superuser:
            return queryset
        project_ids = [
            member.project_id
            for member in user.memberships.prefetch_related("roles")
            if any(
                role.has_permission("view_work_packages")
                for role in member.roles.all()
            )
        ]
        return queryset.filter(project_id__in=project_ids)


class WorkPackage(models.Model):
    """A trackable unit of work within a project."""

    # Attributes whose changes are recorded in journals
    JOURNALED_FIELDS = [
        "project_id",
        "parent_id",
        "type_id",
        "status_id",
        "priority_id",
        "assigned_to_id",
        "fixed_version_id",
        "category_id",
        "subject",
        "description",
        "start_date",
        "due_date",
        "estimated_hours",
        "stored_done_ratio",
    ]

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="work_packages",
    )
    type = models.ForeignKey(
        Type,
        on_delete=models.PROTECT,
        related_name="work_packages",
    )
    status = models.ForeignKey(
        Status,
        on_delete=models.PROTECT,
        related_name="work_packages",
    )
    priority = models.ForeignKey(
        Priority,
        on_delete=models.PROTECT,
        related_name="work_packages",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="authored_work_packages",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_work_packages",
    )
    fixed_version = models.ForeignKey(
        Version,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="fixed_work_packages",
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="work_packages",
    )
    parent = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="children",
    )
    subject = models.CharField(max_length=255)
    description = models.TextField(null=True, blank=True)
    start_date = models.DateField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    stored_done_ratio = models.PositiveSmallIntegerField(
        "done ratio",
        default=0,
        db_column="done_ratio",
        validators=[MaxValueValidator(100)],
    )
    estimated_hours = HoursField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = WorkPackageManager()

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(
                fields=["project", "status"],
                name="idx_wp_project_status",
            ),
            models.Index(fields=["updated_at"], name="idx_wp_updated_at"),
        ]

    def __str__(self):
        return f"{self.type} #{self.pk}: {self.subject}"

    # --- change tracking ---

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_values = dict(zip(field_names, values))
        return instance

    def refresh_from_db(self, *args, **kwargs):
        super().refresh_from_db(*args, **kwargs)
        self._snapshot()

    def _snapshot(self):
        self._loaded_values = {
            field.attname: getattr(self, field.attname)
            for field in self._meta.concrete_fields
        }

    def attribute_was(self, attname):
        """Return the persisted value of ``attname`` (None when new)."""
        return getattr(self, "_loaded_values", {}).get(attname)

    def attribute_changed(self, attname):
        if self._state.adding:
            return getattr(self, attname) is not None
        return getattr(self, attname) != self.attribute_was(attname)

    def changed_attributes(self):
        """Map journaled attributes to ``[old, new]`` since the last load."""
        changes = {}
        for field in self._meta.concrete_fields:
            if field.attname not in self.JOURNALED_FIELDS:
                continue
            old = field.to_python(self.attribute_was(field.attname))
            new = field.to_python(getattr(self, field.attname))
            if old != new:
                key = "done_ratio" if field.name == "stored_done_ratio" else (
                    field.attname
                )
                changes[key] = [old, new]
        return changes

    # --- derived values ---

    @staticmethod
    def use_status_for_done_ratio():
        return settings.WORK_PACKAGE_DONE_RATIO == "issue_status"

    @staticmethod
    def use_field_for_done_ratio():
        return settings.WORK_PACKAGE_DONE_RATIO == "issue_field"

    @property
    def done_ratio(self):
        if (
            self.use_status_for_done_ratio()
            and self.status_id
            and self.status.default_done_ratio is not None
        ):
            return self.status.default_done_ratio
        return self.stored_done_ratio

    @done_ratio.setter
    def done_ratio(self, value):
        self.stored_done_ratio = value

    def update_done_ratio_from_status(self):
        """Copy the status default done ratio when ratios follow statuses."""
        if (
            self.use_status_for_done_ratio()
            and self.status_id
            and self.status.default_done_ratio is not None
        ):
            self.stored_done_ratio = self.status.default_done_ratio

    @property
    def duration(self):
        """Number of days from start to due date, both included."""
        if not (self.start_date or self.due_date):
            return None
        start = self.start_date or self.due_date
        due = self.due_date or self.start_date
        return (due - start).days + 1

    @property
    def is_closed(self):
        return bool(self.status_id and self.status.is_closed)

    def _status_was(self):
        status_id = self.attribute_was("status_id")
        if status_id is None:
            return None
        return Status.objects.filter(pk=status_id).first()

    def reopened(self):
        """True when a saved, closed work package is being set open."""
        if self._state.adding or not self.attribute_changed("status_id"):
            return False
        status_was = self._status_was()
        return bool(status_was and status_was.is_closed and not self.is_closed)

    def closing(self):
        """True when the work package is being closed."""
        if self._state.adding:
            return self.is_closed
        if not self.attribute_changed("status_id"):
            return False
        status_was = self._status_was()
        return bool(status_was and not status_was.is_closed and self.is_closed)

    def descendant_ids(self):
        if self.pk is None:
            return []
        ids = []
        current_ids = list(self.children.values_list("pk", flat=True))
        while current_ids:
            ids.extend(current_ids)
            current_ids = list(
                WorkPackage.objects.filter(
                    parent_id__in=current_ids
                ).values_list("pk", flat=True)
            )
        return ids

    # --- assignment helpers ---

    def assignable_users(self):
        return list(self.project.assignable_users())

    def assignable_versions(self):
        """Open versions shared with the project, plus the persisted one."""
        versions = []
        if self.project_id:
            versions = list(self.project.shared_versions().filter(status="open"))
        version_was = self.attribute_was("fixed_version_id")
        if version_was:
            current = Version.objects.filter(pk=version_was).first()
            if current and current not in versions:
                versions.append(current)
        return sorted(
            versions,
            key=lambda v: (v.effective_date or date.max, v.name),
        )

    # --- validation ---

    def clean(self):
        super().clean()
        errors = {}

        if (
            self.project_id
            and self.type_id
            and (
                self.attribute_changed("type_id")
                or self.attribute_changed("project_id")
            )
            and not self.project.types.filter(pk=self.type_id).exists()
        ):
            errors["type"] = "Type is not enabled in this project."

        if self.start_date and self.due_date and self.due_date < self.start_date:
            errors["due_date"] = "Due date must be on or after the start date."

        if (
            self.category_id
            and self.project_id
            and self.category.project_id != self.project_id
        ):
            errors["category"] = "Category does not belong to this project."

        if self.parent_id:
            if self.pk and (
                self.parent_id == self.pk
                or self.parent_id in self.descendant_ids()
            ):
                errors["parent"] = "A work package cannot be its own ancestor."
            elif self.parent.project_id != self.project_id:
                errors["parent"] = "Parent must belong to the same project."

        if self.fixed_version_id:
            version = next(
                (
                    v
                    for v in self.assignable_versions()
                    if v.pk == self.fixed_version_id
                ),
                None,
            )
            if version is None:
                errors["fixed_version"] = (
                    "Version is not open or not shared with this project."
                )
            elif self.reopened() and version.is_closed:
                errors[NON_FIELD_ERRORS] = (
                    "A work package assigned to a closed version cannot "
                    "be reopened."
                )

        if errors:
            raise ValidationError(errors)

    # --- persistence ---

    def init_journal(self, user, notes=""):
        """Record the changes of the next save under ``user``."""
        self.current_journal = Journal(
            work_package=self, user=user, notes=notes or ""
        )
        return self.current_journal

    def save(self, *args, **kwargs):
        is_new = self._state.adding
        if is_new and self.category_id and not self.assigned_to_id:
            self.assigned_to_id = self.category.assigned_to_id
        self.update_done_ratio_from_status()

        journal = getattr(self, "current_journal", None)
        changes = {} if is_new or journal is None else self.changed_attributes()

        super().save(*args, **kwargs)

        if journal is not None:
            self.current_journal = None
            if changes or journal.notes:
                last_version = self.journals.aggregate(v=Max("version"))["v"]
                journal.version = (last_version or 0) + 1
                journal.changed_data = changes
                journal.save()
        self._snapshot()

    def add_time_entry(self, **attributes):
        """Return an unsaved time entry booked on this work package."""
        return TimeEntry(project=self.project, work_package=self, **attributes)

    # --- permissions and notifications ---

    def new_statuses_allowed_to(self, user, include_default=False):
        """Statuses ``user`` may move this work package to.

        Always contains the current (persisted) status.
        """
        if self._state.adding:
            current_id = self.status_id
            assignee_id = self.assigned_to_id
        else:
            current_id = self.attribute_was("status_id")
            assignee_id = self.attribute_was("assigned_to_id")
        if not current_id:
            return []

        current = Status.objects.get(pk=current_id)
        statuses = current.find_new_statuses_allowed_to(
            user.roles_for_project(self.project),
            self.type,
            author=self.author_id == user.pk,
            assignee=assignee_id == user.pk,
        )
        statuses.append(current)
        if include_default:
            default = Status.default()
            if default:
                statuses.append(default)
        return sorted(set(statuses), key=_status_sort_key)

    def is_visible_to(self, user):
        return user.allowed_to("view_work_packages", self.project)

    def recipients(self):
        """Email addresses to notify about this work package."""
        notified = list(self.project.notified_users())
        for user in (self.author, self.assigned_to):
            if user is not None and user.is_active and user.notify_about(self):
                notified.append(user)

        seen = set()
        emails = []
        for user in notified:
            if user.pk in seen:
                continue
            seen.add(user.pk)
            if self.is_visible_to(user):
                emails.append(user.email)
        return emails


class TimeEntry(models.Model):
    """Time spent on a project, optionally on one of its work packages."""

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="time_entries",
    )
    work_package = models.ForeignKey(
        WorkPackage,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="time_entries",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="time_entries",
    )
    activity = models.ForeignKey(
        TimeEntryActivity,
        on_delete=models.PROTECT,
        related_name="time_entries",
    )
    hours = HoursField(validators=[MinValueValidator(0), MaxValueValidator(999)])
    comments = models.CharField(max_length=255, blank=True)
    spent_on = models.DateField(default=timezone.localdate)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-spent_on", "-created_at"]
        verbose_name_plural = "time entries"

    def __str__(self):
        return f"{self.hours}h on {self.spent_on} by {self.user}"

    def clean(self):
        super().clean()
        if (
            self.work_package_id
            and self.project_id
            and self.work_package.project_id != self.project_id
        ):
            raise ValidationError(
                {"work_package": "Work package belongs to another project."}
            )
        if self.activity_id and not self.activity.active:
            raise ValidationError({"activity": "Activity is inactive."})


class Journal(models.Model):
    """Audit trail entry: notes and attribute changes of one update."""

    work_package = models.ForeignKey(
        WorkPackage,
        on_delete=models.CASCADE,
        related_name="journals",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="journals",
    )
    version = models.PositiveIntegerField(default=1)
    notes = models.TextField(blank=True)
    changed_data = models.JSONField(
        default=dict, blank=True, encoder=DjangoJSONEncoder
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["version"]
        constraints = [
            models.UniqueConstraint(
                fields=["work_package", "version"],
                name="unique_journal_version",
            ),
        ]

    def __str__(self):
        return f"{self.work_package_id} v{self.version}"

    @property
    def details(self):
        """List of ``(attribute, old, new)`` tuples."""
        return [
            (attribute, values[0], values[1])
            for attribute, values in sorted(self.changed_data.items())
        ]


class Attachment(models.Model):
    """A file attached to a work package."""

    container = models.ForeignKey(
        WorkPackage,
        on_delete=models.CASCADE,
        related_name="attachments",
    )
    file = models.FileField(upload_to="attachments/%Y/%m/")
    filename = models.CharField(max_length=255)
    filesize = models.PositiveBigIntegerField(default=0)
    content_type = models.CharField(max_length=255, blank=True)
    description = models.CharField(max_length=255, blank=True)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="attachments",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return self.filename

    def clean(self):
        super().clean()
        max_size = settings.ATTACHMENT_MAX_SIZE_KB * 1024
        if self.filesize > max_size:
            raise ValidationError(
                {
                    "file": f"File is larger than "
                    f"{settings.ATTACHMENT_MAX_SIZE_KB} KB."
                }
            )

    @classmethod
    def attach_files(cls, container, raw_attachments, author=None):
        """Save uploaded files on ``container``.

        ``raw_attachments`` is a list of ``{"file": ..., "description":
        ...}`` dicts. Returns ``{"files": [...], "unsaved": [...]}``.
        """
        result = {"files": [], "unsaved": []}
        for raw in raw_attachments or []:
            upload = raw.get("file")
            if not upload:
                continue
            name = os.path.basename(upload.name)
            attachment = cls(
                container=container,
                file=upload,
                filename=name,
                filesize=upload.size or 0,
                content_type=getattr(upload, "content_type", "")
                or mimetypes.guess_type(name)[0]
                or "application/octet-stream",
                description=raw.get("description", ""),
                author=author,
            )
            try:
                attachment.full_clean()
            except ValidationError as e:
                logger.warning(
                    "Attachment %s on work package %s not saved: %s",
                    name,
                    container.pk,
                    "; ".join(e.messages),
                )
                result["unsaved"].append(attachment)
                continue
            attachment.save()
            result["files"].append(attachment)
        return result


@receiver(post_delete, sender=Attachment)
def delete_attachment_file(sender, instance, **kwargs):
    """Remove the stored file once its attachment row is gone."""
    if instance.file:
        instance.file.delete(save=False)


@receiver(post_save, sender=WorkPackage)
def queue_work_package_added_notification(sender, instance, created, **kwargs):
    if not created or kwargs.get("raw"):
        return
    from .services.notifications import deliver_work_package_added

    work_package_id = instance.pk
    transaction.on_commit(lambda: deliver_work_package_added(work_package_id))


@receiver(post_save, sender=Journal)
def queue_work_package_updated_notification(sender, instance, created, **kwargs):
    if not created or kwargs.get("raw"):
        return
    from .services.notifications import deliver_work_package_updated

    journal_id = instance.pk
    transaction.on_commit(lambda: deliver_work_package_updated(journal_id))

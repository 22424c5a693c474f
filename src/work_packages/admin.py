"""Admin configuration for work_packages app using django-unfold."""

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display

from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from .models import (
    Attachment,
    Category,
    Journal,
    Member,
    Priority,
    Project,
    Role,
    Status,
    TimeEntry,
    TimeEntryActivity,
    Type,
    Version,
    Workflow,
    WorkPackage,
)


class MemberInline(TabularInline):
    model = Member
    extra = 0
    fields = ["user", "roles", "mail_notification"]
    autocomplete_fields = ["user"]


class CategoryInline(TabularInline):
    model = Category
    extra = 0
    fields = ["name", "assigned_to"]


class VersionInline(TabularInline):
    model = Version
    extra = 0
    fields = ["name", "effective_date", "status", "sharing"]


class TimeEntryInline(TabularInline):
    model = TimeEntry
    extra = 0
    fields = ["spent_on", "user", "activity", "hours", "comments"]


class JournalInline(TabularInline):
    model = Journal
    extra = 0
    fields = ["version", "user", "notes", "changed_data", "created_at"]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class AttachmentInline(TabularInline):
    model = Attachment
    extra = 0
    fields = ["file", "filename", "filesize", "description", "author"]
    readonly_fields = ["filename", "filesize"]


@admin.register(Project)
class ProjectAdmin(ModelAdmin):
    list_display = [
        "display_header",
        "parent",
        "display_status",
        "display_public",
        "display_work_package_count",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        "is_public",
        ("parent", RelatedDropdownFilter),
    ]
    list_filter_submit = True
    search_fields = ["name", "identifier", "description"]
    filter_horizontal = ["types"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [MemberInline, CategoryInline, VersionInline]
    actions = ["archive_projects", "unarchive_projects"]

    @display(description="Project", header=True, ordering="name")
    def display_header(self, obj):
        return obj.name, obj.identifier

    @display(
        description="Status",
        label={"Active": "success", "Archived": "warning"},
    )
    def display_status(self, obj):
        return obj.get_status_display()

    @display(description="Public", boolean=True)
    def display_public(self, obj):
        return obj.is_public

    @display(description="Work packages")
    def display_work_package_count(self, obj):
        return obj.work_packages.count()

    @action(description="Archive projects")
    def archive_projects(self, request, queryset):
        for project in queryset:
            project.archive()
        messages.success(request, f"{queryset.count()} project(s) archived.")

    @action(description="Unarchive projects")
    def unarchive_projects(self, request, queryset):
        count = 0
        for project in queryset:
            try:
                project.unarchive()
            except ValidationError as e:
                messages.error(request, f"{project}: {'; '.join(e.messages)}")
                continue
            count += 1
        messages.success(request, f"{count} project(s) unarchived.")


@admin.register(Role)
class RoleAdmin(ModelAdmin):
    list_display = ["name", "position", "display_assignable", "permissions"]
    search_fields = ["name"]

    @display(description="Assignable", boolean=True)
    def display_assignable(self, obj):
        return obj.assignable


@admin.register(Type)
class TypeAdmin(ModelAdmin):
    list_display = ["name", "position", "display_default", "is_in_roadmap"]
    search_fields = ["name"]

    @display(description="Default", boolean=True)
    def display_default(self, obj):
        return obj.is_default


@admin.register(Status)
class StatusAdmin(ModelAdmin):
    list_display = [
        "name",
        "position",
        "display_closed",
        "display_default",
        "default_done_ratio",
    ]
    list_filter = ["is_closed"]
    search_fields = ["name"]

    @display(description="Closed", boolean=True)
    def display_closed(self, obj):
        return obj.is_closed

    @display(description="Default", boolean=True)
    def display_default(self, obj):
        return obj.is_default


@admin.register(Priority)
class PriorityAdmin(ModelAdmin):
    list_display = ["name", "position", "is_default", "active"]
    search_fields = ["name"]


@admin.register(TimeEntryActivity)
class TimeEntryActivityAdmin(ModelAdmin):
    list_display = ["name", "position", "is_default", "active"]
    search_fields = ["name"]


@admin.register(Category)
class CategoryAdmin(ModelAdmin):
    list_display = ["name", "project", "assigned_to"]
    list_filter = [("project", RelatedDropdownFilter)]
    search_fields = ["name"]
    autocomplete_fields = ["project", "assigned_to"]


@admin.register(Version)
class VersionAdmin(ModelAdmin):
    list_display = [
        "name",
        "project",
        "effective_date",
        "display_status",
        "sharing",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("sharing", ChoicesDropdownFilter),
        ("project", RelatedDropdownFilter),
    ]
    search_fields = ["name", "description"]
    autocomplete_fields = ["project"]

    @display(
        description="Status",
        label={"open": "success", "locked": "warning", "closed": "default"},
    )
    def display_status(self, obj):
        return obj.status


@admin.register(Workflow)
class WorkflowAdmin(ModelAdmin):
    list_display = [
        "type",
        "role",
        "old_status",
        "new_status",
        "author",
        "assignee",
    ]
    list_filter = [
        ("type", RelatedDropdownFilter),
        ("role", RelatedDropdownFilter),
        ("old_status", RelatedDropdownFilter),
    ]
    list_filter_submit = True


@admin.register(WorkPackage)
class WorkPackageAdmin(ModelAdmin):
    list_display = [
        "display_header",
        "project",
        "type",
        "display_status",
        "priority",
        "display_assignee",
        "fixed_version",
        "updated_at",
    ]
    list_filter = [
        ("project", RelatedDropdownFilter),
        ("type", RelatedDropdownFilter),
        ("status", RelatedDropdownFilter),
        ("priority", RelatedDropdownFilter),
        ("fixed_version", RelatedDropdownFilter),
    ]
    list_filter_submit = True
    search_fields = ["subject", "description"]
    readonly_fields = ["created_at", "updated_at"]
    autocomplete_fields = ["project", "author", "assigned_to", "parent"]
    inlines = [TimeEntryInline, AttachmentInline, JournalInline]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "project",
                    "type",
                    "subject",
                    "description",
                    "status",
                    "priority",
                    "parent",
                )
            },
        ),
        (
            "Planning",
            {
                "fields": (
                    "assigned_to",
                    "category",
                    "fixed_version",
                    "start_date",
                    "due_date",
                    "estimated_hours",
                    "stored_done_ratio",
                ),
                "classes": ["tab"],
            },
        ),
        (
            "Tracking",
            {
                "fields": ("author", "created_at", "updated_at"),
                "classes": ["tab"],
            },
        ),
    )

    def get_queryset(self, request):
        return WorkPackage.objects.with_related()

    @display(description="Work package", header=True, ordering="subject")
    def display_header(self, obj):
        return obj.subject, f"#{obj.pk}"

    @display(description="Status")
    def display_status(self, obj):
        return obj.status.name

    @display(description="Assignee", empty_value="-")
    def display_assignee(self, obj):
        if obj.assigned_to:
            return obj.assigned_to.get_display_name()
        return None

    def save_model(self, request, obj, form, change):
        """Journal changes made through the admin."""
        if change:
            obj.init_journal(request.user)
        super().save_model(request, obj, form, change)


@admin.register(TimeEntry)
class TimeEntryAdmin(ModelAdmin):
    list_display = [
        "spent_on",
        "user",
        "project",
        "work_package",
        "activity",
        "hours",
    ]
    list_filter = [
        ("project", RelatedDropdownFilter),
        ("activity", RelatedDropdownFilter),
    ]
    search_fields = ["comments"]
    autocomplete_fields = ["project", "work_package", "user"]
    date_hierarchy = "spent_on"


@admin.register(Journal)
class JournalAdmin(ModelAdmin):
    list_display = ["work_package", "version", "user", "created_at"]
    search_fields = ["notes"]
    readonly_fields = [
        "work_package",
        "version",
        "user",
        "notes",
        "changed_data",
        "created_at",
    ]

    def has_add_permission(self, request):
        return False

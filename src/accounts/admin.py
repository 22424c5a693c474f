"""Admin configuration for accounts app."""

from unfold.admin import ModelAdmin
from unfold.decorators import action, display

from django.contrib import admin, messages
from django.contrib.admin.models import CHANGE, LogEntry
from django.contrib.auth.admin import UserAdmin
from django.contrib.contenttypes.models import ContentType

from .forms import CustomUserChangeForm, CustomUserCreationForm
from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin, ModelAdmin):
    add_form = CustomUserCreationForm
    form = CustomUserChangeForm
    model = CustomUser
    list_display = [
        "display_user",
        "email",
        "mail_notification",
        "display_projects",
        "display_admin",
        "display_active",
    ]
    list_filter = [
        "is_active",
        "is_staff",
        "is_superuser",
        "mail_notification",
    ]
    search_fields = [
        "username",
        "email",
        "display_name",
        "first_name",
        "last_name",
    ]
    filter_horizontal = ["groups", "user_permissions"]
    fieldsets = (
        (
            "Profile",
            {
                "classes": ["tab"],
                "fields": (
                    "username",
                    "password",
                    "display_name",
                    "first_name",
                    "last_name",
                    "email",
                    "mail_notification",
                ),
            },
        ),
        (
            "Permissions",
            {
                "classes": ["tab"],
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                ),
            },
        ),
        (
            "Activity",
            {
                "classes": ["tab"],
                "fields": ("last_login", "date_joined"),
            },
        ),
    )
    readonly_fields = ["last_login", "date_joined"]
    add_fieldsets = UserAdmin.add_fieldsets + (
        (
            "Additional Info",
            {"fields": ("email", "display_name", "mail_notification")},
        ),
    )
    actions = ["lock_users", "unlock_users"]

    @display(description="User", header=True, ordering="username")
    def display_user(self, obj):
        return obj.get_display_name(), obj.username

    @display(description="Projects")
    def display_projects(self, obj):
        projects = [m.project.name for m in obj.memberships.all()]
        return ", ".join(projects) or "-"

    @display(description="Admin", boolean=True)
    def display_admin(self, obj):
        return obj.is_superuser

    @display(description="Active", boolean=True)
    def display_active(self, obj):
        return obj.is_active

    def get_queryset(self, request):
        return (
            super()
            .get_queryset(request)
            .prefetch_related("memberships__project")
        )

    def _log_change(self, request, user, message):
        """Create a LogEntry for a bulk action change."""
        ct = ContentType.objects.get_for_model(user)
        LogEntry.objects.create(
            user_id=request.user.pk,
            content_type_id=ct.pk,
            object_id=str(user.pk),
            object_repr=str(user),
            action_flag=CHANGE,
            change_message=message,
        )

    def _set_active(self, request, queryset, active):
        count = 0
        for user in queryset:
            if user.pk == request.user.pk and not active:
                messages.error(request, "You cannot lock your own account.")
                continue
            user.is_active = active
            user.save(update_fields=["is_active"])
            self._log_change(
                request,
                user,
                f"Set is_active to {active} via bulk action",
            )
            count += 1
        messages.success(request, f"{count} user(s) updated.")

    @action(description="Lock users")
    def lock_users(self, request, queryset):
        self._set_active(request, queryset, False)

    @action(description="Unlock users")
    def unlock_users(self, request, queryset):
        self._set_active(request, queryset, True)

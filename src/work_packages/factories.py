"""Factory Boy factories for planner test data generation."""

import factory
from factory.django import DjangoModelFactory


class UserFactory(DjangoModelFactory):
    """Factory for CustomUser model."""

    class Meta:
        model = "accounts.CustomUser"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    display_name = factory.Faker("name")
    mail_notification = "all"
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class AdminUserFactory(UserFactory):
    is_staff = True
    is_superuser = True


class TypeFactory(DjangoModelFactory):
    """Factory for Type model."""

    class Meta:
        model = "work_packages.Type"
        django_get_or_create = ("name",)

    name = factory.Sequence(lambda n: f"Type {n}")
    position = factory.Sequence(lambda n: n)


class StatusFactory(DjangoModelFactory):
    """Factory for Status model."""

    class Meta:
        model = "work_packages.Status"

    name = factory.Sequence(lambda n: f"Status {n}")
    position = factory.Sequence(lambda n: n)
    is_closed = False
    is_default = False


class PriorityFactory(DjangoModelFactory):
    class Meta:
        model = "work_packages.Priority"

    name = factory.Sequence(lambda n: f"Priority {n}")
    position = factory.Sequence(lambda n: n)


class TimeEntryActivityFactory(DjangoModelFactory):
    class Meta:
        model = "work_packages.TimeEntryActivity"

    name = factory.Sequence(lambda n: f"Activity {n}")
    position = factory.Sequence(lambda n: n)


class RoleFactory(DjangoModelFactory):
    """Factory for Role model. Grants every permission by default."""

    class Meta:
        model = "work_packages.Role"

    name = factory.Sequence(lambda n: f"Role {n}")
    position = factory.Sequence(lambda n: n)
    assignable = True
    permissions = factory.LazyFunction(
        lambda: [
            "view_work_packages",
            "add_work_packages",
            "edit_work_packages",
            "move_work_packages",
            "log_time",
        ]
    )


class ProjectFactory(DjangoModelFactory):
    """Factory for Project model.

    Pass ``types=[...]`` to enable types on the new project.
    """

    class Meta:
        model = "work_packages.Project"
        skip_postgeneration_save = True

    name = factory.Sequence(lambda n: f"Project {n}")
    identifier = factory.Sequence(lambda n: f"project-{n}")
    description = factory.Faker("sentence")

    @factory.post_generation
    def types(self, create, extracted, **kwargs):
        if create and extracted:
            self.types.add(*extracted)


class MemberFactory(DjangoModelFactory):
    """Factory for Member model. Pass ``roles=[...]``."""

    class Meta:
        model = "work_packages.Member"
        skip_postgeneration_save = True

    user = factory.SubFactory(UserFactory)
    project = factory.SubFactory(ProjectFactory)

    @factory.post_generation
    def roles(self, create, extracted, **kwargs):
        if not create:
            return
        self.roles.add(*(extracted or [RoleFactory()]))


class CategoryFactory(DjangoModelFactory):
    class Meta:
        model = "work_packages.Category"

    project = factory.SubFactory(ProjectFactory)
    name = factory.Sequence(lambda n: f"Category {n}")


class VersionFactory(DjangoModelFactory):
    class Meta:
        model = "work_packages.Version"

    project = factory.SubFactory(ProjectFactory)
    name = factory.Sequence(lambda n: f"Version {n}")
    status = "open"
    sharing = "none"


class WorkflowFactory(DjangoModelFactory):
    class Meta:
        model = "work_packages.Workflow"

    role = factory.SubFactory(RoleFactory)
    type = factory.SubFactory(TypeFactory)
    old_status = factory.SubFactory(StatusFactory)
    new_status = factory.SubFactory(StatusFactory)


class WorkPackageFactory(DjangoModelFactory):
    """Factory for WorkPackage model.

    The work package's type is enabled on its project, so the built
    object passes validation.
    """

    class Meta:
        model = "work_packages.WorkPackage"
        skip_postgeneration_save = True

    project = factory.SubFactory(ProjectFactory)
    type = factory.SubFactory(TypeFactory)
    status = factory.SubFactory(StatusFactory)
    priority = factory.SubFactory(PriorityFactory)
    author = factory.SubFactory(UserFactory)
    subject = factory.Sequence(lambda n: f"Work package {n}")
    description = factory.Faker("paragraph")

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        project = kwargs.get("project")
        work_package_type = kwargs.get("type")
        if project is not None and work_package_type is not None:
            project.types.add(work_package_type)
        return super()._create(model_class, *args, **kwargs)


class TimeEntryFactory(DjangoModelFactory):
    class Meta:
        model = "work_packages.TimeEntry"

    work_package = factory.SubFactory(WorkPackageFactory)
    project = factory.SelfAttribute("work_package.project")
    user = factory.SubFactory(UserFactory)
    activity = factory.SubFactory(TimeEntryActivityFactory)
    hours = 1.0


class JournalFactory(DjangoModelFactory):
    class Meta:
        model = "work_packages.Journal"

    work_package = factory.SubFactory(WorkPackageFactory)
    user = factory.SubFactory(UserFactory)
    version = factory.Sequence(lambda n: n + 1)
    notes = factory.Faker("sentence")


class AttachmentFactory(DjangoModelFactory):
    class Meta:
        model = "work_packages.Attachment"

    container = factory.SubFactory(WorkPackageFactory)
    file = factory.django.FileField(filename="notes.txt", data=b"some notes")
    filename = "notes.txt"
    filesize = 10
    content_type = "text/plain"
    author = factory.SubFactory(UserFactory)

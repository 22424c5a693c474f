"""Moving and copying work packages between projects."""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from ..models import Project, TimeEntry, Type, WorkPackage

logger = logging.getLogger(__name__)

# Fields not carried over when a work package is copied
COPY_EXCLUDED_FIELDS = {"id", "parent", "author", "created_at", "updated_at"}


def allowed_target_projects_on_move(user):
    """Return the active projects ``user`` may move work packages to."""
    projects = Project.objects.active()
    if user.is_superuser:
        return projects
    project_ids = [
        member.project_id
        for member in user.memberships.prefetch_related("roles")
        if any(
            role.has_permission("move_work_packages")
            for role in member.roles.all()
        )
    ]
    return projects.filter(pk__in=project_ids)


def _copy_of(work_package: WorkPackage, user) -> WorkPackage:
    values = {
        field.attname: getattr(work_package, field.attname)
        for field in work_package._meta.concrete_fields
        if field.name not in COPY_EXCLUDED_FIELDS
    }
    copy = WorkPackage(**values)
    copy.author = user or work_package.author
    return copy


def _reconcile_with_project(work_package: WorkPackage, new_project: Project):
    """Adjust project-bound references before changing the project."""
    if work_package.category_id:
        work_package.category = new_project.categories.filter(
            name=work_package.category.name
        ).first()

    if (
        work_package.fixed_version_id
        and not new_project.shared_versions()
        .filter(pk=work_package.fixed_version_id)
        .exists()
    ):
        work_package.fixed_version = None

    if work_package.parent_id and work_package.parent.project_id != new_project.pk:
        work_package.parent = None

    work_package.project = new_project


def _apply_attributes(work_package: WorkPackage, attributes):
    for name, value in (attributes or {}).items():
        if value in (None, ""):
            continue
        setattr(work_package, name, value)


def _move(work_package, new_project, new_type, attributes, user):
    if new_project.pk != work_package.project_id:
        _reconcile_with_project(work_package, new_project)
    if new_type is not None:
        work_package.type = new_type
    _apply_attributes(work_package, attributes)
    if user is not None:
        work_package.init_journal(user)

    work_package.full_clean()
    work_package.save()

    TimeEntry.objects.filter(work_package=work_package).update(
        project=new_project
    )
    for child in work_package.children.all():
        child.parent = work_package
        _move(child, new_project, None, None, user)


def _state_of(work_package):
    return (
        dict(work_package.__dict__),
        dict(getattr(work_package, "_loaded_values", {})),
        dict(work_package._state.fields_cache),
    )


def _restore(work_package, state):
    values, loaded_values, fields_cache = state
    work_package.__dict__.update(values)
    work_package._loaded_values = loaded_values
    work_package._state.fields_cache = fields_cache
    work_package.current_journal = None


def move_to_project(
    work_package: WorkPackage,
    new_project: Project,
    new_type: Type | None = None,
    attributes: dict | None = None,
    copy: bool = False,
    user=None,
) -> WorkPackage:
    """Move (or copy) ``work_package`` to ``new_project``.

    The category is swapped for the target category of the same name, the
    version kept only when shared with the target and the parent dropped
    when it lives in another project. A move carries time entries and
    children along; a copy leaves the source untouched.

    Returns the moved work package or the new copy.
    Raises ValidationError (and changes nothing) if the result is invalid,
    e.g. because the type is not enabled in ``new_project``.
    """
    if copy:
        target = _copy_of(work_package, user)
        with transaction.atomic():
            if new_project.pk != target.project_id:
                _reconcile_with_project(target, new_project)
            if new_type is not None:
                target.type = new_type
            _apply_attributes(target, attributes)
            target.full_clean()
            target.save()
        logger.info(
            "Copied work package %s to project %s as %s",
            work_package.pk,
            new_project.identifier,
            target.pk,
        )
        return target

    state = _state_of(work_package)
    old_project_id = work_package.project_id
    try:
        with transaction.atomic():
            _move(work_package, new_project, new_type, attributes, user)
    except ValidationError:
        _restore(work_package, state)
        logger.info(
            "Work package %s could not be moved to project %s",
            work_package.pk,
            new_project.identifier,
        )
        raise

    logger.info(
        "Moved work package %s from project %s to %s",
        work_package.pk,
        old_project_id,
        new_project.identifier,
    )
    return work_package

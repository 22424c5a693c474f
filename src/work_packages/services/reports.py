"""Work package counts grouped by status and one other attribute."""

from django.db.models import Count, F

from ..models import Project, WorkPackage


def _count_by(work_packages, field: str) -> list[dict]:
    """Return ``{"status_id", "closed", "<field>_id", "total"}`` rows."""
    key = f"{field}_id"
    rows = (
        work_packages.values("status_id", key)
        .annotate(closed=F("status__is_closed"), total=Count("pk"))
        .order_by("status_id", key)
    )
    return [
        {
            "status_id": row["status_id"],
            "closed": row["closed"],
            key: row[key],
            "total": row["total"],
        }
        for row in rows
    ]


def _project_work_packages(project: Project):
    return WorkPackage.objects.filter(project=project)


def by_type(project: Project) -> list[dict]:
    return _count_by(_project_work_packages(project), "type")


def by_version(project: Project) -> list[dict]:
    return _count_by(_project_work_packages(project), "fixed_version")


def by_priority(project: Project) -> list[dict]:
    return _count_by(_project_work_packages(project), "priority")


def by_category(project: Project) -> list[dict]:
    return _count_by(_project_work_packages(project), "category")


def by_assigned_to(project: Project) -> list[dict]:
    return _count_by(_project_work_packages(project), "assigned_to")


def by_author(project: Project) -> list[dict]:
    return _count_by(_project_work_packages(project), "author")


def by_subproject(project: Project) -> list[dict]:
    """Group the work packages of active subprojects by project.

    The project's own work packages are not included.
    """
    subproject_ids = [
        subproject.pk
        for subproject in project.descendants()
        if subproject.is_active
    ]
    if not subproject_ids:
        return []
    return _count_by(
        WorkPackage.objects.filter(project_id__in=subproject_ids), "project"
    )

"""Work package status transitions and workflow maintenance."""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from ..models import Role, Status, Type, Workflow, WorkPackage

logger = logging.getLogger(__name__)


def validate_transition(
    work_package: WorkPackage, user, new_status: Status
) -> None:
    """Validate and raise if ``user`` may not set ``new_status``.

    Raises ValidationError if the transition is invalid.
    """
    allowed = work_package.new_statuses_allowed_to(user)
    if new_status in allowed:
        return

    current = Status.objects.filter(
        pk=work_package.attribute_was("status_id") or work_package.status_id
    ).first()
    raise ValidationError(
        {
            "status": f"Cannot transition from '{current}' to "
            f"'{new_status}'. Allowed transitions: "
            f"{', '.join(s.name for s in allowed) or 'none'}."
        }
    )


def transition_work_package(
    work_package: WorkPackage, user, new_status: Status, notes: str = ""
) -> WorkPackage:
    """Validate and perform a status transition, recording a journal.

    Returns the updated (saved) work package.
    Raises ValidationError if the transition is not allowed.
    """
    validate_transition(work_package, user, new_status)
    work_package.status = new_status
    work_package.init_journal(user, notes)
    work_package.full_clean()
    work_package.save()
    logger.info(
        "Work package %s moved to status '%s' by %s",
        work_package.pk,
        new_status,
        user,
    )
    return work_package


def copy_workflows(
    source_type: Type | None,
    source_role: Role | None,
    target_types,
    target_roles,
) -> int:
    """Replace the transitions of every target type/role pair with the
    source's.

    Either source may be omitted, in which case the target type (or role)
    of each pair is used as its own source. Pairs identical to the source
    are skipped. Returns the number of workflows created.
    """
    if source_type is None and source_role is None:
        raise ValueError("A source type or a source role is required.")

    target_types = list(target_types)
    target_roles = list(target_roles)
    created = 0
    with transaction.atomic():
        for target_type in target_types:
            for target_role in target_roles:
                from_type = source_type or target_type
                from_role = source_role or target_role
                if from_type == target_type and from_role == target_role:
                    continue
                Workflow.objects.filter(
                    type=target_type, role=target_role
                ).delete()
                copies = [
                    Workflow(
                        type=target_type,
                        role=target_role,
                        old_status_id=workflow.old_status_id,
                        new_status_id=workflow.new_status_id,
                        author=workflow.author,
                        assignee=workflow.assignee,
                    )
                    for workflow in Workflow.objects.filter(
                        type=from_type, role=from_role
                    )
                ]
                Workflow.objects.bulk_create(copies)
                created += len(copies)

    logger.info(
        "Copied workflows to %d type(s) x %d role(s): %d transition(s)",
        len(target_types),
        len(target_roles),
        created,
    )
    return created

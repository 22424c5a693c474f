"""Updating a work package together with notes, spent time and files."""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import Attachment, Status, WorkPackage
from .workflow import validate_transition

logger = logging.getLogger(__name__)

UPDATABLE_ATTRIBUTES = {
    "subject",
    "description",
    "type",
    "type_id",
    "status",
    "status_id",
    "priority",
    "priority_id",
    "assigned_to",
    "assigned_to_id",
    "category",
    "category_id",
    "fixed_version",
    "fixed_version_id",
    "parent",
    "parent_id",
    "start_date",
    "due_date",
    "estimated_hours",
    "done_ratio",
}

TIME_ENTRY_ATTRIBUTES = {"hours", "activity", "activity_id", "comments", "spent_on"}


def _build_time_entry(work_package, user, attributes):
    """Return an unsaved time entry, or None if every attribute is blank."""
    attributes = {
        name: value
        for name, value in (attributes or {}).items()
        if name in TIME_ENTRY_ATTRIBUTES
    }
    if all(value in (None, "") for value in attributes.values()):
        return None
    attributes = {k: v for k, v in attributes.items() if v not in (None, "")}
    attributes.setdefault("spent_on", timezone.localdate())
    return work_package.add_time_entry(user=user, **attributes)


def _transition_errors(work_package, user):
    """Workflow errors for a status change, keyed by field."""
    status_was = work_package.attribute_was("status_id")
    if work_package._state.adding or str(work_package.status_id) == str(
        status_was
    ):
        return {}
    try:
        new_status = Status.objects.filter(pk=work_package.status_id).first()
    except (TypeError, ValueError):
        # full_clean reports the malformed id
        return {}
    if new_status is None:
        return {}
    try:
        validate_transition(work_package, user, new_status)
    except ValidationError as e:
        return dict(e.message_dict)
    return {}


def update_by(work_package: WorkPackage, user, attributes: dict) -> WorkPackage:
    """Apply ``attributes`` to ``work_package`` on behalf of ``user``.

    Recognised extra keys:
      - ``notes``: journal notes for this change
      - ``time_entry``: dict of time entry attributes booked for ``user``
      - ``attachments``: raw uploads, attached once the save succeeded

    Returns the saved work package.
    Raises ValidationError if the work package or the time entry is
    invalid; nothing is persisted in that case and the unsaved time entry
    is left on ``work_package.current_time_entry``.
    """
    attributes = dict(attributes or {})
    notes = attributes.pop("notes", "") or ""
    raw_attachments = attributes.pop("attachments", None)
    time_entry = _build_time_entry(
        work_package, user, attributes.pop("time_entry", None)
    )
    work_package.current_time_entry = time_entry

    for name, value in attributes.items():
        if name not in UPDATABLE_ATTRIBUTES:
            logger.debug("Ignoring non-updatable attribute '%s'", name)
            continue
        setattr(work_package, name, value)

    work_package.init_journal(user, notes)

    errors = _transition_errors(work_package, user)
    try:
        work_package.full_clean()
    except ValidationError as e:
        for field, messages in e.message_dict.items():
            errors.setdefault(field, []).extend(messages)
    if time_entry is not None:
        try:
            time_entry.full_clean()
        except ValidationError as e:
            errors.setdefault("time_entry", []).extend(e.messages)
    if errors:
        work_package.current_journal = None
        raise ValidationError(errors)

    with transaction.atomic():
        work_package.save()
        if time_entry is not None:
            time_entry.save()

    if raw_attachments is not None:
        Attachment.attach_files(work_package, raw_attachments, author=user)

    logger.info("Work package %s updated by %s", work_package.pk, user)
    return work_package


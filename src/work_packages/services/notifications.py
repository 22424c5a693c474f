"""E-mail notifications for work package events."""

import logging

from django.conf import settings

from accounts.email import send_branded_email

from ..models import Journal, WorkPackage

logger = logging.getLogger(__name__)


def notified_event(event: str) -> bool:
    return event in settings.WORK_PACKAGE_NOTIFIED_EVENTS


def _headers(work_package: WorkPackage) -> dict:
    return {
        "X-Planner-Project": work_package.project.identifier,
        "X-Planner-Work-Package-Id": str(work_package.pk),
        "X-Planner-Work-Package-Author": work_package.author.username,
        "X-Planner-Work-Package-Assignee": (
            work_package.assigned_to.username
            if work_package.assigned_to
            else ""
        ),
    }


def _subject(work_package: WorkPackage) -> str:
    return (
        f"[{work_package.project.name} - {work_package.type.name} "
        f"#{work_package.pk}] ({work_package.status.name}) "
        f"{work_package.subject}"
    )


def deliver_work_package_added(work_package_id: int) -> bool:
    """Mail the recipients of a newly created work package.

    Returns True if an e-mail was queued.
    """
    if not notified_event("work_package_added"):
        return False
    work_package = (
        WorkPackage.objects.with_related().filter(pk=work_package_id).first()
    )
    if work_package is None:
        return False

    recipients = work_package.recipients()
    if not recipients:
        logger.info(
            "No recipients for new work package %s", work_package_id
        )
        return False

    send_branded_email(
        template_name="work_package_added",
        context={"work_package": work_package},
        subject=_subject(work_package),
        recipient=recipients,
        headers=_headers(work_package),
    )
    logger.info(
        "Notified %d recipient(s) of new work package %s",
        len(recipients),
        work_package_id,
    )
    return True


def deliver_work_package_updated(journal_id: int) -> bool:
    """Mail the recipients of a work package about a recorded journal.

    Returns True if an e-mail was queued.
    """
    if not notified_event("work_package_updated"):
        return False
    journal = (
        Journal.objects.select_related("work_package", "user")
        .filter(pk=journal_id)
        .first()
    )
    if journal is None:
        return False

    work_package = journal.work_package
    recipients = work_package.recipients()
    if not recipients:
        logger.info(
            "No recipients for update of work package %s",
            work_package.pk,
        )
        return False

    send_branded_email(
        template_name="work_package_updated",
        context={
            "work_package": work_package,
            "journal": journal,
            "details": journal.details,
        },
        subject=_subject(work_package),
        recipient=recipients,
        headers=_headers(work_package),
    )
    logger.info(
        "Notified %d recipient(s) of update %s on work package %s",
        len(recipients),
        journal.version,
        work_package.pk,
    )
    return True

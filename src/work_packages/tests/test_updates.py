"""Tests for updating work packages with notes, spent time and files."""

from datetime import date
from unittest.mock import patch

import pytest

from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile

from work_packages.factories import WorkflowFactory
from work_packages.models import Attachment, TimeEntry
from work_packages.services.updates import update_by


class TestUpdateBy:
    def test_empty_update(self, work_package, user):
        assert update_by(work_package, user, {}) == work_package
        assert not work_package.journals.exists()

    def test_sets_values(self, work_package, user):
        update_by(work_package, user, {"subject": "New subject"})
        work_package.refresh_from_db()
        assert work_package.subject == "New subject"

    def test_journal_notes(self, work_package, user):
        update_by(work_package, user, {"notes": "blubs"})
        assert work_package.journals.last().notes == "blubs"
        assert work_package.journals.last().user == user

    def test_ignores_non_updatable_attributes(self, work_package, user):
        author = work_package.author
        update_by(work_package, user, {"author_id": 0, "subject": "Kept"})
        work_package.refresh_from_db()
        assert work_package.author == author
        assert work_package.subject == "Kept"

    def test_invalid_update_raises(self, work_package, user):
        with pytest.raises(ValidationError) as exc:
            update_by(work_package, user, {"subject": ""})
        assert "subject" in exc.value.message_dict
        assert not work_package.journals.exists()

    def test_string_values_converted(self, work_package, user):
        update_by(
            work_package,
            user,
            {"start_date": "2024-03-01", "estimated_hours": "2h"},
        )
        work_package.refresh_from_db()
        assert work_package.start_date == date(2024, 3, 1)
        assert work_package.estimated_hours == 2.0


class TestUpdateByAttachments:
    def test_attaches_files(self, work_package, user):
        raw_attachments = [{"file": object()}]
        with patch.object(Attachment, "attach_files") as attach_files:
            update_by(work_package, user, {"attachments": raw_attachments})
        attach_files.assert_called_once_with(
            work_package, raw_attachments, author=user
        )

    def test_only_attaches_after_successful_save(self, work_package, user):
        raw_attachments = [{"file": object()}]
        with patch.object(Attachment, "attach_files") as attach_files:
            with pytest.raises(ValidationError):
                update_by(
                    work_package,
                    user,
                    {"subject": "", "attachments": raw_attachments},
                )
        attach_files.assert_not_called()

    def test_real_upload(self, work_package, user):
        upload = SimpleUploadedFile(
            "notes.txt", b"hello", content_type="text/plain"
        )
        update_by(
            work_package,
            user,
            {"attachments": [{"file": upload, "description": "Notes"}]},
        )
        attachment = work_package.attachments.get()
        assert attachment.filename == "notes.txt"
        assert attachment.filesize == 5
        assert attachment.description == "Notes"
        assert attachment.author == user


class TestUpdateByTimeEntry:
    def test_adds_time_entry(self, work_package, user, activity):
        update_by(
            work_package,
            user,
            {
                "time_entry": {
                    "hours": "5",
                    "activity_id": str(activity.pk),
                    "comments": "blubs",
                }
            },
        )
        entry = work_package.time_entries.get()
        assert entry.pk is not None
        assert entry.work_package == work_package
        assert entry.user == user
        assert entry.project == work_package.project
        assert entry.spent_on == date.today()
        assert entry.hours == 5.0

    def test_time_entry_not_persisted_when_update_fails(
        self, work_package, user, activity
    ):
        with pytest.raises(ValidationError):
            update_by(
                work_package,
                user,
                {
                    "subject": "",
                    "time_entry": {
                        "hours": "5",
                        "activity_id": str(activity.pk),
                        "comments": "blubs",
                    },
                },
            )
        assert not TimeEntry.objects.exists()
        entry = work_package.current_time_entry
        assert entry is not None
        assert entry.pk is None

    def test_blank_time_entry_ignored(self, work_package, user):
        update_by(
            work_package,
            user,
            {"time_entry": {"hours": "", "activity_id": "", "comments": ""}},
        )
        assert not work_package.time_entries.exists()

    def test_invalid_time_entry_blocks_update(self, work_package, user):
        with pytest.raises(ValidationError) as exc:
            update_by(
                work_package,
                user,
                {"subject": "Renamed", "time_entry": {"hours": "lots"}},
            )
        assert "time_entry" in exc.value.message_dict
        work_package.refresh_from_db()
        assert work_package.subject == "Write the launch checklist"


class TestAttachFiles:
    def test_returns_saved_and_unsaved(self, settings, work_package, user):
        settings.ATTACHMENT_MAX_SIZE_KB = 1
        small = SimpleUploadedFile("small.txt", b"x" * 10)
        large = SimpleUploadedFile("large.bin", b"x" * 2048)
        result = Attachment.attach_files(
            work_package,
            [{"file": small}, {"file": large}, {"file": None}],
            author=user,
        )
        assert [a.filename for a in result["files"]] == ["small.txt"]
        assert [a.filename for a in result["unsaved"]] == ["large.bin"]
        assert work_package.attachments.count() == 1

    def test_guesses_content_type(self, work_package):
        upload = SimpleUploadedFile("plan.pdf", b"%PDF-1.4", content_type="")
        result = Attachment.attach_files(work_package, [{"file": upload}])
        assert result["files"][0].content_type == "application/pdf"

    def test_file_removed_with_attachment(self, work_package):
        upload = SimpleUploadedFile("gone.txt", b"bye")
        attachment = Attachment.attach_files(
            work_package, [{"file": upload}]
        )["files"][0]
        storage = attachment.file.storage
        name = attachment.file.name
        assert storage.exists(name)
        attachment.delete()
        assert not storage.exists(name)


class TestUpdateByStatus:
    def test_status_change_outside_workflow_rejected(
        self, work_package, user, member, status_new, status_closed
    ):
        with pytest.raises(ValidationError) as exc:
            update_by(
                work_package, user, {"status_id": str(status_closed.pk)}
            )
        assert "Allowed transitions" in exc.value.message_dict["status"][0]
        work_package.refresh_from_db()
        assert work_package.status == status_new
        assert not work_package.journals.exists()

    def test_status_change_allowed_by_workflow(
        self,
        work_package,
        user,
        member,
        role,
        wp_type,
        status_new,
        status_closed,
    ):
        WorkflowFactory(
            role=role,
            type=wp_type,
            old_status=status_new,
            new_status=status_closed,
        )
        update_by(work_package, user, {"status": status_closed, "notes": "Done"})
        work_package.refresh_from_db()
        assert work_package.status == status_closed
        assert work_package.journals.last().changed_data["status_id"] == [
            status_new.pk,
            status_closed.pk,
        ]

    def test_unchanged_status_needs_no_workflow(
        self, work_package, user, status_new
    ):
        update_by(
            work_package,
            user,
            {"status_id": str(status_new.pk), "subject": "Same status"},
        )
        work_package.refresh_from_db()
        assert work_package.subject == "Same status"

"""Tests for status transitions and workflow maintenance."""

import pytest

from django.core.exceptions import ValidationError

from work_packages.factories import (
    ProjectFactory,
    RoleFactory,
    StatusFactory,
    TypeFactory,
    UserFactory,
    WorkflowFactory,
    WorkPackageFactory,
)
from work_packages.models import Workflow


@pytest.fixture
def wf_role(db):
    return RoleFactory()


@pytest.fixture
def wf_type(db):
    return TypeFactory()


@pytest.fixture
def statuses(db):
    return [StatusFactory(position=i) for i in range(1, 6)]


@pytest.fixture
def wf_user(db):
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def wf_project(wf_type, wf_role, wf_user):
    project = ProjectFactory(types=[wf_type])
    project.add_member(wf_user, wf_role)
    return project


@pytest.fixture
def workflows(wf_role, wf_type, statuses):
    """From statuses[0]: plain, author-only, assignee-only and both."""
    flags = [(False, False), (True, False), (False, True), (True, True)]
    return [
        WorkflowFactory(
            role=wf_role,
            type=wf_type,
            old_status=statuses[0],
            new_status=statuses[i + 1],
            author=author,
            assignee=assignee,
        )
        for i, (author, assignee) in enumerate(flags)
    ]


def _work_package(project, wf_type, status, **kwargs):
    return WorkPackageFactory(
        project=project, type=wf_type, status=status, **kwargs
    )


class TestStatusNewStatusesAllowedTo:
    @pytest.mark.parametrize(
        "author, assignee, expected",
        [
            (False, False, [1]),
            (True, False, [1, 2]),
            (False, True, [1, 3]),
            (True, True, [1, 2, 3, 4]),
        ],
    )
    def test_respects_author_and_assignee_flags(
        self, workflows, wf_role, wf_type, statuses, author, assignee, expected
    ):
        status = statuses[0]
        wanted = [statuses[i] for i in expected]
        assert (
            status.new_statuses_allowed_to([wf_role], wf_type, author, assignee)
            == wanted
        )
        assert (
            status.find_new_statuses_allowed_to(
                [wf_role], wf_type, author, assignee
            )
            == wanted
        )

    def test_no_roles(self, workflows, wf_type, statuses):
        assert statuses[0].new_statuses_allowed_to([], wf_type) == []
        assert statuses[0].find_new_statuses_allowed_to([], wf_type) == []

    def test_other_type(self, workflows, wf_role, statuses):
        other_type = TypeFactory()
        assert statuses[0].new_statuses_allowed_to([wf_role], other_type) == []

    def test_duplicate_transitions_listed_once(
        self, workflows, wf_role, wf_type, statuses
    ):
        second_role = RoleFactory()
        WorkflowFactory(
            role=second_role,
            type=wf_type,
            old_status=statuses[0],
            new_status=statuses[1],
        )
        roles = [wf_role, second_role]
        assert statuses[0].new_statuses_allowed_to(roles, wf_type) == [
            statuses[1]
        ]
        assert statuses[0].find_new_statuses_allowed_to(roles, wf_type) == [
            statuses[1]
        ]


class TestWorkPackageNewStatusesAllowedTo:
    def test_without_author_and_assignee(
        self, workflows, wf_project, wf_type, statuses, wf_user, other_user
    ):
        wp = _work_package(wf_project, wf_type, statuses[0], author=other_user)
        assert wp.new_statuses_allowed_to(wf_user) == statuses[:2]

    def test_as_author(self, workflows, wf_project, wf_type, statuses, wf_user):
        wp = _work_package(wf_project, wf_type, statuses[0], author=wf_user)
        assert wp.new_statuses_allowed_to(wf_user) == statuses[:3]

    def test_as_assignee(
        self, workflows, wf_project, wf_type, statuses, wf_user, other_user
    ):
        wp = _work_package(
            wf_project,
            wf_type,
            statuses[0],
            author=other_user,
            assigned_to=wf_user,
        )
        assert wp.new_statuses_allowed_to(wf_user) == [
            statuses[0],
            statuses[1],
            statuses[3],
        ]

    def test_as_author_and_assignee(
        self, workflows, wf_project, wf_type, statuses, wf_user
    ):
        wp = _work_package(
            wf_project,
            wf_type,
            statuses[0],
            author=wf_user,
            assigned_to=wf_user,
        )
        assert wp.new_statuses_allowed_to(wf_user) == statuses

    def test_uses_persisted_status_and_assignee(
        self, workflows, wf_project, wf_type, statuses, wf_user, other_user
    ):
        wp = _work_package(wf_project, wf_type, statuses[0], author=other_user)
        wp.status = statuses[4]
        wp.assigned_to = wf_user
        assert wp.new_statuses_allowed_to(wf_user) == statuses[:2]

    def test_include_default(
        self, workflows, wf_project, wf_type, statuses, wf_user, other_user
    ):
        default = StatusFactory(is_default=True, position=10)
        wp = _work_package(wf_project, wf_type, statuses[0], author=other_user)
        assert wp.new_statuses_allowed_to(wf_user, include_default=True) == [
            statuses[0],
            statuses[1],
            default,
        ]

    def test_non_member_keeps_current_status(
        self, workflows, wf_project, wf_type, statuses, other_user
    ):
        wp = _work_package(wf_project, wf_type, statuses[0], author=other_user)
        assert wp.new_statuses_allowed_to(UserFactory()) == [statuses[0]]


class TestTransitionService:
    def test_validate_transition_allowed(
        self, workflows, wf_project, wf_type, statuses, wf_user, other_user
    ):
        from work_packages.services.workflow import validate_transition

        wp = _work_package(wf_project, wf_type, statuses[0], author=other_user)
        validate_transition(wp, wf_user, statuses[1])  # Should not raise

    def test_validate_transition_rejected(
        self, workflows, wf_project, wf_type, statuses, wf_user, other_user
    ):
        from work_packages.services.workflow import validate_transition

        wp = _work_package(wf_project, wf_type, statuses[0], author=other_user)
        with pytest.raises(ValidationError, match="Allowed transitions"):
            validate_transition(wp, wf_user, statuses[2])

    def test_transition_work_package_journals(
        self, workflows, wf_project, wf_type, statuses, wf_user, other_user
    ):
        from work_packages.services.workflow import transition_work_package

        wp = _work_package(wf_project, wf_type, statuses[0], author=other_user)
        transition_work_package(wp, wf_user, statuses[1], notes="Started")
        wp.refresh_from_db()
        assert wp.status == statuses[1]
        journal = wp.journals.get()
        assert journal.user == wf_user
        assert journal.notes == "Started"
        assert journal.changed_data["status_id"] == [
            statuses[0].pk,
            statuses[1].pk,
        ]


class TestCopyWorkflows:
    def test_copies_source_transitions(self, workflows, wf_role, wf_type):
        from work_packages.services.workflow import copy_workflows

        target_type = TypeFactory()
        created = copy_workflows(wf_type, wf_role, [target_type], [wf_role])
        assert created == 4
        copied = Workflow.objects.filter(type=target_type, role=wf_role)
        assert {(w.author, w.assignee) for w in copied} == {
            (False, False),
            (True, False),
            (False, True),
            (True, True),
        }

    def test_replaces_existing_target_transitions(
        self, workflows, wf_role, wf_type, statuses
    ):
        from work_packages.services.workflow import copy_workflows

        target_role = RoleFactory()
        WorkflowFactory(
            role=target_role,
            type=wf_type,
            old_status=statuses[3],
            new_status=statuses[4],
        )
        copy_workflows(None, wf_role, [wf_type], [target_role])
        copied = Workflow.objects.filter(type=wf_type, role=target_role)
        assert copied.count() == 4
        assert not copied.filter(old_status=statuses[3]).exists()

    def test_skips_source_pair(self, workflows, wf_role, wf_type):
        from work_packages.services.workflow import copy_workflows

        assert copy_workflows(wf_type, wf_role, [wf_type], [wf_role]) == 0
        assert Workflow.objects.filter(type=wf_type, role=wf_role).count() == 4

    def test_requires_a_source(self, db):
        from work_packages.services.workflow import copy_workflows

        with pytest.raises(ValueError):
            copy_workflows(None, None, [], [])

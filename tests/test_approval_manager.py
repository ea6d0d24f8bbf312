"""
Unit tests for the join request approval workflow.
"""

from datetime import timedelta

import pytest

from core.exceptions import (
    ClassNotFoundError,
    InvalidActionError,
    NoPendingApplicationError,
    PermissionDeniedError,
)
from models.class_membership import JoinStatus
from utils.approval_manager import ApprovalManager
from utils.membership_manager import MembershipManager
from utils.notifier import EventKind
from utils.permission_checker import PermissionChecker


@pytest.fixture
def approvals(test_db, audit, notifier):
    return ApprovalManager(test_db, audit, notifier)


def _apply(test_db, user, class_model, reason=None):
    return MembershipManager(test_db).apply_to_join(user.id, class_model.id, reason)


class TestProcessApproval:
    def test_approve_sets_member_fields(self, test_db, approvals, make_class, make_user, owner, audit, notifier):
        class_model = make_class()
        bob = make_user("bob")
        _apply(test_db, bob, class_model)

        membership = approvals.process_approval(class_model.id, bob.id, "APPROVE", owner.id)

        assert membership.status == JoinStatus.APPROVED.value
        assert membership.approved_by == owner.id
        assert membership.approved_at is not None
        assert membership.joined_at is not None
        assert PermissionChecker(test_db).is_member(bob.id, class_model.id)
        assert audit.entries[-1]["action"] == "APPROVAL_PROCESS"
        assert notifier.sent[-1][:2] == (EventKind.APPLICATION_APPROVED, bob.id)

    def test_reject(self, test_db, approvals, make_class, make_user, owner, notifier):
        class_model = make_class()
        bob = make_user("bob")
        _apply(test_db, bob, class_model)

        membership = approvals.process_approval(class_model.id, bob.id, "reject", owner.id)

        assert membership.status == JoinStatus.REJECTED.value
        assert membership.joined_at is None
        assert membership.approved_by == owner.id
        assert notifier.sent[-1][0] == EventKind.APPLICATION_REJECTED

    def test_admin_can_approve(self, test_db, approvals, make_class, make_user, add_member):
        class_model = make_class()
        admin = make_user("admin")
        bob = make_user("bob")
        add_member(class_model, admin, role="ADMIN")
        _apply(test_db, bob, class_model)

        membership = approvals.process_approval(class_model.id, bob.id, "APPROVE", admin.id)
        assert membership.approved_by == admin.id

    def test_member_cannot_approve(self, test_db, approvals, make_class, make_user, add_member):
        class_model = make_class()
        member = make_user("member")
        bob = make_user("bob")
        add_member(class_model, member)
        _apply(test_db, bob, class_model)

        with pytest.raises(PermissionDeniedError):
            approvals.process_approval(class_model.id, bob.id, "APPROVE", member.id)

    def test_missing_class(self, approvals, owner):
        with pytest.raises(ClassNotFoundError):
            approvals.process_approval(404, 1, "APPROVE", owner.id)

    def test_no_pending_application(self, approvals, make_class, make_user, owner):
        class_model = make_class()
        bob = make_user("bob")
        with pytest.raises(NoPendingApplicationError):
            approvals.process_approval(class_model.id, bob.id, "APPROVE", owner.id)

    def test_already_processed_cannot_be_processed_again(self, test_db, approvals, make_class, make_user, owner):
        class_model = make_class()
        bob = make_user("bob")
        _apply(test_db, bob, class_model)
        approvals.process_approval(class_model.id, bob.id, "APPROVE", owner.id)

        with pytest.raises(NoPendingApplicationError):
            approvals.process_approval(class_model.id, bob.id, "REJECT", owner.id)

    def test_unknown_action_writes_nothing(self, test_db, approvals, make_class, make_user, owner):
        class_model = make_class()
        bob = make_user("bob")
        _apply(test_db, bob, class_model)

        with pytest.raises(InvalidActionError):
            approvals.process_approval(class_model.id, bob.id, "MAYBE", owner.id)

        membership = MembershipManager(test_db).get_membership(bob.id, class_model.id)
        assert membership.status == JoinStatus.PENDING.value
        assert membership.approved_by is None


class TestListPending:
    def test_class_listing_oldest_first(self, test_db, approvals, make_class, make_user, owner):
        class_model = make_class()
        bob = make_user("bob")
        carol = make_user("carol")
        first = _apply(test_db, bob, class_model, "first")
        second = _apply(test_db, carol, class_model, "second")
        second.created_at = first.created_at + timedelta(seconds=5)
        test_db.commit()

        page = approvals.list_pending_for_class(class_model.id, owner.id, 0, 20)

        assert page.total == 2
        assert [item.username for item in page.items] == ["bob", "carol"]
        assert page.items[0].join_reason == "first"

    def test_class_listing_requires_manager(self, test_db, approvals, make_class, make_user, add_member):
        class_model = make_class()
        member = make_user("member")
        add_member(class_model, member)

        with pytest.raises(PermissionDeniedError):
            approvals.list_pending_for_class(class_model.id, member.id)
        with pytest.raises(ClassNotFoundError):
            approvals.list_pending_for_class(999, member.id)

    def test_class_listing_paginates(self, test_db, approvals, make_class, make_user, owner):
        class_model = make_class()
        for name in ("u1", "u2", "u3"):
            _apply(test_db, make_user(name), class_model)

        page = approvals.list_pending_for_class(class_model.id, owner.id, 1, 2)

        assert page.total == 3
        assert page.total_pages == 2
        assert len(page.items) == 1

    def test_global_listing_covers_managed_classes_only(self, test_db, approvals, make_class, make_user, add_member, owner):
        algorithms = make_class("Algorithms")
        databases = make_class("Databases")
        other_owner = make_user("dave")
        foreign = make_class("Compilers", created_by=other_owner)
        admin = make_user("admin")
        add_member(databases, admin, role="ADMIN")

        bob = make_user("bob")
        carol = make_user("carol")
        old = _apply(test_db, bob, algorithms)
        new = _apply(test_db, carol, databases)
        _apply(test_db, bob, foreign)
        new.created_at = old.created_at + timedelta(seconds=5)
        test_db.commit()

        page = approvals.list_pending_across_managed_classes(owner.id)
        assert page.total == 2
        assert [(item.class_info.name, item.applicant.username) for item in page.items] == [
            ("Databases", "carol"),
            ("Algorithms", "bob"),
        ]

        admin_page = approvals.list_pending_across_managed_classes(admin.id)
        assert [item.class_info.id for item in admin_page.items] == [databases.id]

    def test_global_listing_empty_for_plain_member(self, test_db, approvals, make_class, make_user, add_member):
        class_model = make_class()
        member = make_user("member")
        add_member(class_model, member)
        _apply(test_db, make_user("bob"), class_model)

        page = approvals.list_pending_across_managed_classes(member.id)
        assert page.total == 0
        assert page.items == []

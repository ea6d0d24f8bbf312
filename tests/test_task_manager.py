"""
Unit tests for TaskManager.
"""

from datetime import datetime, timedelta

import pytest

from core.exceptions import (
    ClassNotFoundError,
    PermissionDeniedError,
    TaskNotAccessibleError,
    TaskNotFoundError,
)
from models.task import TaskModel
from models.task_overlay import TaskStatus
from schemas.task import TaskCreateRequest
from utils.sync_manager import SyncManager
from utils.task_manager import TaskManager
from utils.time_utils import utc_now


@pytest.fixture
def manager(test_db, audit):
    return TaskManager(test_db, audit)


def _data(title, deadline, course="Algorithms"):
    return TaskCreateRequest(title=title, course_name=course, deadline=deadline)


class TestCreateTasks:
    def test_personal_task(self, manager, make_user, deadline, audit):
        bob = make_user("bob")

        view = manager.create_personal_task(bob.id, _data("Read paper", deadline))

        assert view.task_type == "PERSONAL"
        assert view.class_id is None
        assert view.creator_name == "Bob"
        assert view.personal_status == TaskStatus.TODO
        assert audit.actions() == ["TASK_CREATE_PERSONAL"]

    def test_class_task_by_manager(self, manager, make_class, owner, deadline):
        class_model = make_class()

        view = manager.create_class_task(owner.id, class_model.id, _data("Lab 1", deadline))

        assert view.task_type == "CLASS"
        assert view.class_id == class_model.id
        assert view.class_name == "Algorithms"

    def test_class_task_requires_manager(self, manager, make_class, make_user, add_member, deadline):
        class_model = make_class()
        bob = make_user("bob")
        add_member(class_model, bob)

        with pytest.raises(PermissionDeniedError):
            manager.create_class_task(bob.id, class_model.id, _data("Lab 1", deadline))
        with pytest.raises(ClassNotFoundError):
            manager.create_class_task(bob.id, 999, _data("Lab 1", deadline))

    def test_blank_title_is_rejected(self, deadline):
        with pytest.raises(ValueError):
            _data("   ", deadline)


class TestReadTasks:
    def test_detail_errors(self, manager, make_user, deadline):
        bob = make_user("bob")
        carol = make_user("carol")
        view = manager.create_personal_task(bob.id, _data("Mine", deadline))

        with pytest.raises(TaskNotFoundError):
            manager.get_task_detail(bob.id, 999)
        with pytest.raises(TaskNotAccessibleError):
            manager.get_task_detail(carol.id, view.id)

        manager.delete_task(bob.id, view.id)
        with pytest.raises(TaskNotFoundError):
            manager.get_task_detail(bob.id, view.id)

    def test_detail_merges_overlay(self, manager, make_class, make_user, add_member, owner, deadline):
        class_model = make_class()
        bob = make_user("bob")
        add_member(class_model, bob)
        view = manager.create_class_task(owner.id, class_model.id, _data("Lab 1", deadline))

        manager.update_task_status(bob.id, view.id, TaskStatus.IN_PROGRESS, personal_notes="half done")

        bob_view = manager.get_task_detail(bob.id, view.id)
        owner_view = manager.get_task_detail(owner.id, view.id)
        assert bob_view.personal_status == TaskStatus.IN_PROGRESS
        assert bob_view.personal_notes == "half done"
        assert owner_view.personal_status == TaskStatus.TODO

    def test_class_list_ordered_by_deadline(self, manager, make_class, owner, deadline):
        class_model = make_class()
        manager.create_class_task(owner.id, class_model.id, _data("Later", deadline + timedelta(days=2)))
        manager.create_class_task(owner.id, class_model.id, _data("Sooner", deadline))

        page = manager.list_class_tasks(owner.id, class_model.id)

        assert page.total == 2
        assert [item.title for item in page.items] == ["Sooner", "Later"]

    def test_class_list_requires_membership(self, manager, make_class, make_user):
        class_model = make_class()
        outsider = make_user("outsider")
        with pytest.raises(PermissionDeniedError):
            manager.list_class_tasks(outsider.id, class_model.id)
        with pytest.raises(ClassNotFoundError):
            manager.list_class_tasks(outsider.id, 999)

    def test_personal_list_is_private(self, manager, make_user, deadline):
        bob = make_user("bob")
        carol = make_user("carol")
        manager.create_personal_task(bob.id, _data("Bob's", deadline))
        manager.create_personal_task(carol.id, _data("Carol's", deadline))

        page = manager.list_personal_tasks(bob.id)
        assert [item.title for item in page.items] == ["Bob's"]


class TestCalendar:
    def test_month_contains_personal_and_synced_class_tasks(
        self, test_db, manager, make_class, make_user, add_member, owner
    ):
        class_model = make_class()
        bob = make_user("bob")
        add_member(class_model, bob)

        manager.create_personal_task(bob.id, _data("Essay", datetime(2030, 5, 20)))
        synced = manager.create_class_task(owner.id, class_model.id, _data("Lab", datetime(2030, 5, 10)))
        manager.create_class_task(owner.id, class_model.id, _data("Next month", datetime(2030, 6, 10)))
        test_db.query(TaskModel).update({TaskModel.created_at: datetime(2020, 1, 1)})
        test_db.commit()
        SyncManager(test_db).sync_class_tasks(bob.id, class_model.id, "day")

        # Creation times were moved back, so nothing synced yet
        assert [item.title for item in manager.calendar_tasks(bob.id, 2030, 5)] == ["Essay"]

        manager.update_task_status(bob.id, synced.id, TaskStatus.TODO)
        items = manager.calendar_tasks(bob.id, 2030, 5)

        assert [item.title for item in items] == ["Lab", "Essay"]
        assert items[0].class_name == "Algorithms"
        assert manager.calendar_tasks(bob.id, 2030, 7) == []

    def test_calendar_includes_tasks_created_in_month(self, manager, make_user):
        bob = make_user("bob")
        now = utc_now()
        manager.create_personal_task(bob.id, _data("Far away", now + timedelta(days=800)))

        items = manager.calendar_tasks(bob.id, now.year, now.month)
        assert [item.title for item in items] == ["Far away"]

    def test_december_boundary(self, manager, make_user):
        bob = make_user("bob")
        manager.create_personal_task(bob.id, _data("New year's eve", datetime(2031, 12, 31, 23, 0)))

        assert len(manager.calendar_tasks(bob.id, 2031, 12)) == 1
        assert manager.calendar_tasks(bob.id, 2032, 1) == []


class TestEditTasks:
    def test_admin_edits_class_task(self, manager, make_class, make_user, add_member, owner, deadline):
        class_model = make_class()
        admin = make_user("admin")
        add_member(class_model, admin, role="ADMIN")
        view = manager.create_class_task(owner.id, class_model.id, _data("Lab 1", deadline))

        updated = manager.update_task(admin.id, view.id, _data("Lab 1 (revised)", deadline))

        assert updated.title == "Lab 1 (revised)"

    def test_member_cannot_edit_or_delete(self, manager, make_class, make_user, add_member, owner, deadline):
        class_model = make_class()
        bob = make_user("bob")
        add_member(class_model, bob)
        view = manager.create_class_task(owner.id, class_model.id, _data("Lab 1", deadline))

        with pytest.raises(PermissionDeniedError):
            manager.update_task(bob.id, view.id, _data("Hacked", deadline))
        with pytest.raises(PermissionDeniedError):
            manager.delete_task(bob.id, view.id)

    def test_soft_delete_hides_task(self, test_db, manager, make_class, owner, deadline, audit):
        class_model = make_class()
        view = manager.create_class_task(owner.id, class_model.id, _data("Lab 1", deadline))

        manager.delete_task(owner.id, view.id)

        assert test_db.get(TaskModel, view.id).is_deleted is True
        assert manager.list_class_tasks(owner.id, class_model.id).total == 0
        assert audit.actions()[-1] == "TASK_DELETE"

    def test_status_requires_access(self, manager, make_class, make_user, owner, deadline):
        class_model = make_class()
        outsider = make_user("outsider")
        view = manager.create_class_task(owner.id, class_model.id, _data("Lab 1", deadline))

        with pytest.raises(TaskNotAccessibleError):
            manager.update_task_status(outsider.id, view.id, TaskStatus.DONE)

    def test_status_update_is_personal(self, manager, make_class, make_user, add_member, owner, deadline, audit):
        class_model = make_class()
        bob = make_user("bob")
        add_member(class_model, bob)
        view = manager.create_class_task(owner.id, class_model.id, _data("Lab 1", deadline))

        result = manager.update_task_status(bob.id, view.id, TaskStatus.DONE)

        assert result.personal_status == TaskStatus.DONE
        assert result.completed_at is not None
        assert result.title == "Lab 1"
        assert audit.entries[-1]["details"] == {"status": "DONE"}

"""
Unit tests for smart sync.
"""

from datetime import datetime, timedelta

import pytest

from core.exceptions import ClassNotFoundError, InvalidRangeError
from models.task import TaskModel
from models.task_overlay import TaskOverlayModel, TaskStatus
from schemas.task import TaskCreateRequest
from utils.sync_manager import SyncManager, resolve_range_start
from utils.task_manager import TaskManager
from utils.task_overlay_store import TaskOverlayStore
from utils.time_utils import utc_now


@pytest.fixture
def sync(test_db, audit):
    return SyncManager(test_db, audit)


@pytest.fixture
def classroom(make_class, make_user, add_member):
    class_model = make_class()
    bob = make_user("bob")
    add_member(class_model, bob)
    return class_model, bob


def _publish(test_db, class_model, deadline, title="Homework", created_at=None):
    view = TaskManager(test_db).create_class_task(
        class_model.owner_id,
        class_model.id,
        TaskCreateRequest(title=title, course_name="Algorithms", deadline=deadline),
    )
    task = test_db.get(TaskModel, view.id)
    if created_at is not None:
        task.created_at = created_at
        test_db.commit()
    return task


class TestResolveRange:
    NOW = datetime(2024, 3, 31, 12, 0, 0)

    @pytest.mark.parametrize(
        "keyword, expected",
        [
            ("day", datetime(2024, 3, 30, 12, 0, 0)),
            ("WEEK", datetime(2024, 3, 24, 12, 0, 0)),
            ("month", datetime(2024, 2, 29, 12, 0, 0)),
            ("Semester", datetime(2023, 9, 30, 12, 0, 0)),
            ("year", datetime(2023, 3, 31, 12, 0, 0)),
        ],
    )
    def test_keywords(self, keyword, expected):
        assert resolve_range_start(keyword, self.NOW) == expected

    @pytest.mark.parametrize("keyword", ["fortnight", "", "days"])
    def test_unknown_keyword(self, keyword):
        with pytest.raises(InvalidRangeError):
            resolve_range_start(keyword, self.NOW)


class TestSyncClassTasks:
    def test_sync_creates_todo_overlays_with_task_deadline(self, test_db, sync, classroom, deadline, audit):
        class_model, bob = classroom
        task = _publish(test_db, class_model, deadline)

        result = sync.sync_class_tasks(bob.id, class_model.id, "day")

        assert result.synced_count == 1
        assert result.total_found == 1
        assert result.sync_range == "day"
        overlay = TaskOverlayStore(test_db).get_overlay(bob.id, task.id)
        assert overlay.status == TaskStatus.TODO.value
        assert overlay.personal_deadline == deadline
        assert audit.entries[-1]["action"] == "TASK_SYNC"

    def test_sync_is_idempotent(self, test_db, sync, classroom, deadline):
        class_model, bob = classroom
        _publish(test_db, class_model, deadline, "One")
        _publish(test_db, class_model, deadline, "Two")

        first = sync.sync_class_tasks(bob.id, class_model.id, "week")
        second = sync.sync_class_tasks(bob.id, class_model.id, "week")

        assert first.synced_count == 2
        assert second.synced_count == 0
        assert second.total_found == first.total_found == 2
        assert test_db.query(TaskOverlayModel).filter(TaskOverlayModel.user_id == bob.id).count() == 2

    def test_sync_keeps_existing_overlays(self, test_db, sync, classroom, deadline):
        class_model, bob = classroom
        task = _publish(test_db, class_model, deadline)
        TaskOverlayStore(test_db).record_status(bob.id, task, TaskStatus.DONE)

        result = sync.sync_class_tasks(bob.id, class_model.id, "day")

        assert result.synced_count == 0
        assert result.total_found == 1
        assert TaskOverlayStore(test_db).get_overlay(bob.id, task.id).status == "DONE"

    def test_range_filters_by_creation_time(self, test_db, sync, classroom, deadline):
        class_model, bob = classroom
        _publish(test_db, class_model, deadline, "Old", created_at=utc_now() - timedelta(days=10))
        _publish(test_db, class_model, deadline, "New")

        result = sync.sync_class_tasks(bob.id, class_model.id, "week")

        assert result.total_found == 1
        assert result.synced_count == 1
        assert sync.sync_class_tasks(bob.id, class_model.id, "month").synced_count == 1

    def test_deleted_tasks_are_skipped(self, test_db, sync, classroom, deadline):
        class_model, bob = classroom
        task = _publish(test_db, class_model, deadline)
        TaskManager(test_db).delete_task(class_model.owner_id, task.id)

        result = sync.sync_class_tasks(bob.id, class_model.id, "day")
        assert result.total_found == 0
        assert result.synced_count == 0

    def test_other_classes_are_not_synced(self, test_db, sync, classroom, make_class, deadline):
        class_model, bob = classroom
        other = make_class("Databases")
        _publish(test_db, other, deadline)

        result = sync.sync_class_tasks(bob.id, class_model.id, "year")
        assert result.total_found == 0

    def test_invalid_range_and_missing_class(self, sync, classroom):
        class_model, bob = classroom
        with pytest.raises(InvalidRangeError):
            sync.sync_class_tasks(bob.id, class_model.id, "decade")
        with pytest.raises(ClassNotFoundError):
            sync.sync_class_tasks(bob.id, 999, "day")

    def test_failed_insert_rolls_back_everything(self, test_db, sync, classroom, deadline, monkeypatch):
        class_model, bob = classroom
        _publish(test_db, class_model, deadline, "One")
        _publish(test_db, class_model, deadline, "Two")

        def failing_commit():
            raise RuntimeError("disk full")

        monkeypatch.setattr(test_db, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            sync.sync_class_tasks(bob.id, class_model.id, "day")
        monkeypatch.undo()

        assert test_db.query(TaskOverlayModel).count() == 0

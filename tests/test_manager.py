"""Tests for the task manager."""

import json

import pytest

from qtask import (
    MemoryStore,
    NotFoundError,
    TaskFilter,
    TaskImportError,
    TaskManager,
    ValidationError,
)
from qtask.manager import DEFAULT_STORAGE_KEY


def titles(tasks):
    return [task.title for task in tasks]


class TestCrud:
    """Tests for adding, updating and removing tasks."""

    def test_add_task(self, manager):
        """Test adding a task appends and returns it."""
        task = manager.add_task("  First  ", "desc", "high", "Work")
        assert task.title == "First"
        assert manager.get_all_tasks() == [task]
        assert manager.get_task_by_id(task.id) is task

    def test_add_task_invalid_title(self, manager):
        """Test that an invalid title fails with context and adds nothing."""
        with pytest.raises(ValidationError, match="Failed to create task"):
            manager.add_task("   ")
        assert len(manager) == 0

    def test_same_title_gets_distinct_ids(self, manager):
        """Test that look-alike tasks stay distinct."""
        a = manager.add_task("Same")
        b = manager.add_task("Same")
        assert a.id != b.id
        assert manager.validate().is_valid

    def test_update_task(self, manager):
        """Test a partial update through the manager."""
        task = manager.add_task("Old", priority="low")
        manager.update_task(task.id, {"title": "New"}, category="Health")
        assert task.title == "New"
        assert task.priority == "low"
        assert task.category == "Health"

    def test_update_unknown_task(self, manager):
        """Test updating an unknown id."""
        with pytest.raises(NotFoundError):
            manager.update_task("missing", {"title": "x"})

    def test_update_invalid_title(self, manager):
        """Test that a bad title is reported and nothing changes."""
        task = manager.add_task("Keep")
        with pytest.raises(ValidationError, match="Failed to update task"):
            manager.update_task(task.id, {"title": ""})
        assert task.title == "Keep"

    def test_delete_task(self, manager):
        """Test deleting returns the removed task."""
        keep = manager.add_task("Keep")
        drop = manager.add_task("Drop")
        assert manager.delete_task(drop.id) is drop
        assert manager.get_all_tasks() == [keep]

    def test_delete_unknown_task(self, sample_manager):
        """Test deleting an unknown id leaves the collection unchanged."""
        before = sample_manager.get_all_tasks()
        with pytest.raises(NotFoundError) as excinfo:
            sample_manager.delete_task("task_does_not_exist")
        assert excinfo.value.task_id == "task_does_not_exist"
        assert sample_manager.get_all_tasks() == before

    def test_completion_operations(self, manager):
        """Test toggle, complete and uncomplete."""
        task = manager.add_task("Flip")
        manager.toggle_task_completion(task.id)
        assert task.completed
        manager.uncomplete_task(task.id)
        assert not task.completed
        assert task.completed_at is None
        manager.complete_task(task.id)
        assert task.completed
        assert task.completed_at is not None

    @pytest.mark.parametrize("method", [
        "toggle_task_completion", "complete_task", "uncomplete_task", "duplicate_task",
    ])
    def test_unknown_id_operations(self, manager, method):
        """Test every id-based operation rejects unknown ids."""
        with pytest.raises(NotFoundError):
            getattr(manager, method)("nope")

    def test_duplicate_task(self, manager):
        """Test duplication resets lifecycle fields."""
        original = manager.add_task("Original", "Body", "high", "Work")
        manager.complete_task(original.id)

        copy = manager.duplicate_task(original.id)

        assert copy.id != original.id
        assert copy.title == "Original (Copy)"
        assert copy.description == "Body"
        assert copy.priority == "high"
        assert copy.category == "Work"
        assert not copy.completed
        assert copy.completed_at is None
        assert copy.created_at >= original.created_at
        assert manager.get_all_tasks()[-1] is copy
        assert original.completed

    def test_duplicate_long_title_stays_valid(self, manager):
        """Test that copying a 100 character title keeps it within limits."""
        original = manager.add_task("x" * 100)
        copy = manager.duplicate_task(original.id)
        assert len(copy.title) <= 100
        assert copy.title.endswith(" (Copy)")
        assert copy.validate().is_valid

    def test_get_all_tasks_is_a_copy(self, manager):
        """Test that the returned list cannot change the collection."""
        manager.add_task("One")
        tasks = manager.get_all_tasks()
        tasks.clear()
        assert len(manager) == 1

    def test_clear_completed(self, sample_manager):
        """Test clearing only completed tasks."""
        assert sample_manager.clear_completed_tasks() == 1
        assert len(sample_manager) == 2
        assert "Buy groceries" not in titles(sample_manager.get_all_tasks())

    def test_clear_all(self, sample_manager):
        """Test clearing everything returns the prior count."""
        assert sample_manager.clear_all_tasks() == 3
        assert len(sample_manager) == 0


class TestQueries:
    """Tests for filtering, sorting and searching."""

    def test_filter_by_status(self, sample_manager):
        """Test status filters."""
        assert titles(sample_manager.get_filtered_tasks({"status": "completed"})) == ["Buy groceries"]
        assert len(sample_manager.get_filtered_tasks({"status": "pending"})) == 2

    def test_filter_with_search(self, sample_manager):
        """Test that search text is part of the filter."""
        found = sample_manager.get_filtered_tasks(TaskFilter(search="milk"))
        assert titles(found) == ["Buy groceries"]

    def test_empty_filter_returns_everything(self, sample_manager):
        """Test that no constraints keeps insertion order."""
        assert titles(sample_manager.get_filtered_tasks()) == [
            "Write report", "Buy groceries", "Read a book",
        ]

    def test_sorted_by_created_default(self, sample_manager):
        """Test that the default order lists newest first."""
        assert titles(sample_manager.get_sorted_tasks()) == [
            "Read a book", "Buy groceries", "Write report",
        ]

    def test_sorted_by_created_asc(self, sample_manager):
        """Test that asc reverses the raw comparison."""
        assert titles(sample_manager.get_sorted_tasks("created", "asc")) == [
            "Write report", "Buy groceries", "Read a book",
        ]

    def test_sorted_by_priority(self, sample_manager):
        """Test that desc keeps the raw comparison (high first)."""
        assert titles(sample_manager.get_sorted_tasks("priority", "desc")) == [
            "Write report", "Buy groceries", "Read a book",
        ]
        assert titles(sample_manager.get_sorted_tasks("priority", "asc")) == [
            "Read a book", "Buy groceries", "Write report",
        ]

    def test_filtered_and_sorted_by_title(self, sample_manager):
        """Test filter-then-sort with the title key."""
        sample_manager.add_task("Call mom", category="Personal")
        result = sample_manager.get_filtered_and_sorted_tasks({"status": "pending"}, "title", "asc")

        assert all(not task.completed for task in result)
        assert titles(result) == ["Write report", "Read a book", "Call mom"]

        raw = sample_manager.get_filtered_and_sorted_tasks({"status": "pending"}, "title", "desc")
        assert titles(raw) == ["Call mom", "Read a book", "Write report"]

    def test_sorted_by_completed_is_stable(self, sample_manager):
        """Test that ties keep their base order."""
        result = sample_manager.get_sorted_tasks("completed", "desc")
        assert titles(result) == ["Write report", "Read a book", "Buy groceries"]

    def test_search(self, sample_manager):
        """Test search by text."""
        assert titles(sample_manager.search_tasks("REPORT")) == ["Write report"]
        assert titles(sample_manager.search_tasks("education")) == ["Read a book"]
        assert len(sample_manager.search_tasks("  ")) == 3
        assert sample_manager.search_tasks("zzz") == []

    def test_bucket_helpers(self, sample_manager):
        """Test the convenience queries."""
        assert titles(sample_manager.get_tasks_by_category("Work")) == ["Write report"]
        assert titles(sample_manager.get_tasks_by_priority("low")) == ["Read a book"]
        assert titles(sample_manager.get_completed_tasks()) == ["Buy groceries"]
        assert len(sample_manager.get_pending_tasks()) == 2

    def test_categories(self, sample_manager):
        """Test distinct categories are sorted."""
        sample_manager.add_task("Another work item", category="Work")
        assert sample_manager.get_categories() == ["Education", "Personal", "Work"]

    def test_contains_and_iter(self, sample_manager):
        """Test container protocol helpers."""
        first = sample_manager.get_all_tasks()[0]
        assert first.id in sample_manager
        assert "nope" not in sample_manager
        assert list(sample_manager) == sample_manager.get_all_tasks()


class TestStatistics:
    """Tests for statistics."""

    def test_statistics_scenario(self, sample_manager):
        """Test the three task scenario."""
        stats = sample_manager.get_statistics()
        assert stats.total == 3
        assert stats.completed == 1
        assert stats.pending == 2
        assert stats.completion_rate == 33
        assert stats.priority == {"high": 1, "medium": 1, "low": 1}
        assert stats.categories == {"Work": 1, "Personal": 1, "Education": 1}

    def test_statistics_empty(self, manager):
        """Test that an empty list has a zero completion rate."""
        stats = manager.get_statistics()
        assert stats.total == 0
        assert stats.completion_rate == 0
        assert stats.categories == {}

    def test_completion_rate_rounds_half_up(self, manager):
        """Test 1 of 8 completed rounds 12.5 up to 13."""
        tasks = [manager.add_task(f"Task {i}") for i in range(8)]
        manager.complete_task(tasks[0].id)
        assert manager.get_statistics().completion_rate == 13

    def test_statistics_to_dict(self, sample_manager):
        """Test the plain dict form."""
        data = sample_manager.get_statistics().to_dict()
        assert data["completionRate"] == 33
        assert data["priority"]["high"] == 1


class TestObservers:
    """Tests for change notification."""

    def test_notifications(self, manager):
        """Test that each mutation reports its action."""
        events = []
        manager.subscribe(lambda action, task, tasks: events.append((action, task, len(tasks))))

        task = manager.add_task("Watch me")
        manager.update_task(task.id, {"priority": "high"})
        manager.toggle_task_completion(task.id)
        manager.uncomplete_task(task.id)
        manager.complete_task(task.id)
        copy = manager.duplicate_task(task.id)
        manager.delete_task(copy.id)
        manager.clear_completed_tasks()
        manager.clear_all_tasks()

        assert [event[0] for event in events] == [
            "add", "update", "toggle", "uncomplete", "complete",
            "duplicate", "delete", "clear_completed", "clear_all",
        ]
        assert events[0][1] is task
        assert events[5][1] is copy
        assert events[6][1] is copy
        assert events[7][1] is None
        # Observers see the state after the change
        assert events[0][2] == 1
        assert events[5][2] == 2
        assert events[6][2] == 1

    def test_observer_sees_persisted_state(self, manager, store):
        """Test that saving happens before notification."""
        seen = []
        manager.subscribe(lambda action, task, tasks: seen.append(store.get_item(DEFAULT_STORAGE_KEY)))
        task = manager.add_task("Saved first")
        assert task.id in seen[0]

    def test_failing_observer_is_isolated(self, manager):
        """Test that one broken observer does not block others or the caller."""
        calls = []

        def broken(action, task, tasks):
            raise RuntimeError("boom")

        manager.subscribe(broken)
        manager.subscribe(lambda action, task, tasks: calls.append(action))

        task = manager.add_task("Still works")
        assert calls == ["add"]
        assert manager.get_task_by_id(task.id) is task

    def test_unsubscribe(self, manager):
        """Test removing an observer by identity."""
        calls = []

        def observer(action, task, tasks):
            calls.append(action)

        manager.add_observer(observer)
        manager.add_task("One")
        manager.remove_observer(observer)
        manager.add_task("Two")
        assert calls == ["add"]

    def test_snapshot_is_not_live(self, manager):
        """Test that observers cannot change the collection through the list."""
        manager.subscribe(lambda action, task, tasks: tasks.clear())
        manager.add_task("Survives")
        assert len(manager) == 1


class TestPersistence:
    """Tests for saving and loading."""

    def test_save_and_reload(self, store):
        """Test that a new manager sees saved tasks."""
        first = TaskManager(store=store)
        task = first.add_task("Persist me", "body", "high", "Health")
        first.complete_task(task.id)

        second = TaskManager(store=store)
        restored = second.get_task_by_id(task.id)
        assert restored is not None
        assert restored.title == "Persist me"
        assert restored.completed
        assert restored.completed_at == task.completed_at
        assert second.load_error is None

    def test_missing_key_is_empty(self):
        """Test that an empty store means no tasks."""
        manager = TaskManager(store=MemoryStore())
        assert len(manager) == 0
        assert manager.load_error is None

    def test_custom_storage_key(self, store):
        """Test that the namespace key is configurable."""
        manager = TaskManager(store=store, storage_key="other")
        manager.add_task("Namespaced")
        assert store.has_item("other")
        assert not store.has_item(DEFAULT_STORAGE_KEY)

    @pytest.mark.parametrize("raw", [
        "{not json",
        json.dumps({"tasks": []}),
        json.dumps([{"title": ""}]),
        json.dumps([{"title": "x", "createdAt": "9999-12-31T23:59:59-01:00"}]),
    ])
    def test_corrupt_data_falls_back_to_empty(self, raw):
        """Test that corrupt saved data does not crash construction."""
        manager = TaskManager(store=MemoryStore({DEFAULT_STORAGE_KEY: raw}))
        assert len(manager) == 0
        assert manager.load_error is not None

    def test_save_failure_is_swallowed(self, caplog):
        """Test that a failing store does not fail the operation."""
        from qtask.errors import PersistenceError

        class BrokenStore(MemoryStore):
            def set_item(self, key, value):
                raise PersistenceError("disk full")

        manager = TaskManager(store=BrokenStore())
        task = manager.add_task("In memory only")
        assert manager.get_task_by_id(task.id) is task
        assert manager.save_tasks() is False
        assert "Failed to save tasks" in caplog.text


class TestImportExport:
    """Tests for import and export."""

    def test_export_is_pretty_json(self, sample_manager):
        """Test the export format."""
        exported = sample_manager.export_tasks()
        data = json.loads(exported)
        assert len(data) == 3
        assert data[0]["title"] == "Write report"
        assert "\n  " in exported

    def test_import_appends(self, sample_manager):
        """Test that import adds to existing tasks."""
        payload = json.dumps([
            {"title": "Imported one", "priority": "high"},
            {"title": "Imported two", "category": "Health", "completed": True},
        ])
        events = []
        sample_manager.subscribe(lambda action, task, tasks: events.append((action, task)))

        assert sample_manager.import_tasks(payload) == 2
        assert len(sample_manager) == 5
        assert events == [("import", None)]

    def test_export_import_round_trip(self, sample_manager):
        """Test importing an export into an empty manager."""
        target = TaskManager(store=MemoryStore())
        target.import_tasks(sample_manager.export_tasks())

        for original in sample_manager.get_all_tasks():
            copy = target.get_task_by_id(original.id)
            assert copy is not None
            assert copy.to_dict() == original.to_dict()

    def test_import_same_export_twice_keeps_ids_unique(self, sample_manager):
        """Test that colliding ids are replaced."""
        sample_manager.import_tasks(sample_manager.export_tasks())
        assert len(sample_manager) == 6
        assert sample_manager.validate().is_valid

    def test_import_malformed_record_is_all_or_nothing(self, sample_manager):
        """Test that one bad record aborts the whole import."""
        before = [task.to_dict() for task in sample_manager.get_all_tasks()]
        payload = json.dumps([{"title": "Good"}, {"title": "   "}])

        with pytest.raises(TaskImportError):
            sample_manager.import_tasks(payload)

        assert [task.to_dict() for task in sample_manager.get_all_tasks()] == before

    @pytest.mark.parametrize("payload", [
        "not json",
        "{}",
        "42",
        json.dumps(["string"]),
        json.dumps([{"title": "x", "createdAt": "0001-01-01T00:00:00+01:00"}]),
    ])
    def test_import_bad_shape(self, manager, payload):
        """Test that payloads of the wrong shape fail."""
        with pytest.raises(TaskImportError):
            manager.import_tasks(payload)
        assert len(manager) == 0


class TestValidationAndInfo:
    """Tests for collection validation and info."""

    def test_validate_reports_duplicates_and_task_errors(self, sample_manager):
        """Test aggregated errors with 1-based positions."""
        tasks = sample_manager.get_all_tasks()
        tasks[2].id = tasks[0].id
        tasks[1].description = "x" * 501

        result = sample_manager.validate()
        assert not result.is_valid
        assert f"Duplicate task ID found: {tasks[0].id}" in result.errors
        assert "Task 2: Description cannot exceed 500 characters" in result.errors

    def test_info(self, sample_manager):
        """Test the info summary."""
        info = sample_manager.get_info()
        assert info["totalTasks"] == 3
        assert info["isValid"]
        assert info["lastSaved"] == "Available"
        assert info["categories"] == ["Education", "Personal", "Work"]
        assert info["statistics"]["completionRate"] == 33

    def test_info_not_saved(self, manager):
        """Test info before anything was saved."""
        assert manager.get_info()["lastSaved"] == "Not saved"

    def test_str(self, sample_manager):
        """Test the text summary."""
        text = str(sample_manager)
        assert "Write report" in text
        assert "3 tasks (1 completed, 2 pending)" in text

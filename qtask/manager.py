"""Task manager: owns the task collection, persistence and change notification."""

import json
import logging
import math
from functools import cmp_to_key
from typing import Any, Iterator, Mapping, Optional, Sequence, Union

from qtask.errors import NotFoundError, PersistenceError, TaskImportError, ValidationError
from qtask.models import (
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY,
    TITLE_MAX_LENGTH,
    TaskFilter,
    TaskStatistics,
    ValidationResult,
)
from qtask.observers import Observer, ObserverRegistry
from qtask.storage import KeyValueStore, MemoryStore
from qtask.task import Task, generate_id, utcnow

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "qtask_manager_tasks"
COPY_SUFFIX = " (Copy)"

Filters = Union[TaskFilter, Mapping[str, Any], None]


def sort_tasks(tasks: Sequence[Task], sort_by: str = "created", order: str = "desc") -> list[Task]:
    """Return a sorted copy of the tasks.

    'desc' uses Task.compare_to as is and any other order negates it, so
    with the default 'created' key 'desc' lists the newest task first.
    For 'title' the raw comparison is A to Z, so 'asc' lists titles Z to A
    and 'desc' lists them A to Z.
    Ties keep their original relative order.
    """
    if order == "desc":
        key = cmp_to_key(lambda a, b: a.compare_to(b, sort_by))
    else:
        key = cmp_to_key(lambda a, b: -a.compare_to(b, sort_by))
    return sorted(tasks, key=key)


class TaskManager:
    """Manages all task operations: CRUD, filtering, sorting and persistence.

    Every mutating method saves the collection and then notifies observers
    before returning. Task objects handed out are the live instances; treat
    them as read-only and change them through the manager.

    Attributes:
        store: Durable key-value store holding the serialized tasks.
        storage_key: Key the task list is stored under.
        load_error: Error from the last load, or None if it succeeded.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
    ):
        """Initialize the manager and load any saved tasks.

        Args:
            store: Where tasks are persisted (defaults to an in-memory store).
            storage_key: Key the task list is stored under.
        """
        self.store = store if store is not None else MemoryStore()
        self.storage_key = storage_key
        self.load_error: Optional[PersistenceError] = None
        self._tasks: list[Task] = []
        self._observers = ObserverRegistry()
        self.load_tasks()

    # ---- observers ----

    def subscribe(self, callback: Observer) -> None:
        """Register a callback invoked as callback(action, task, tasks)."""
        self._observers.subscribe(callback)

    def unsubscribe(self, callback: Observer) -> None:
        """Remove a previously registered callback."""
        self._observers.unsubscribe(callback)

    add_observer = subscribe
    remove_observer = unsubscribe

    def notify_observers(self, action: str, task: Optional[Task] = None) -> None:
        self._observers.notify(action, task, self._tasks)

    # ---- mutations ----

    def add_task(
        self,
        title: str,
        description: str = "",
        priority: str = DEFAULT_PRIORITY,
        category: str = DEFAULT_CATEGORY,
    ) -> Task:
        """Create a task and append it to the collection.

        Raises:
            ValidationError: If the title is invalid.
        """
        try:
            task = Task(title, description, priority, category)
        except ValidationError as e:
            raise ValidationError(f"Failed to create task: {e}") from e

        self._tasks.append(task)
        self.save_tasks()
        self.notify_observers("add", task)
        logger.debug("Added task id=%s", task.id)
        return task

    def update_task(
        self,
        task_id: str,
        updates: Optional[Mapping[str, Any]] = None,
        **fields: Any,
    ) -> Task:
        """Apply a partial update to a task.

        Raises:
            NotFoundError: If no task has this id.
            ValidationError: If the new title is invalid.
        """
        task = self._require(task_id)
        try:
            task.update(updates, **fields)
        except ValidationError as e:
            raise ValidationError(f"Failed to update task: {e}") from e

        self.save_tasks()
        self.notify_observers("update", task)
        return task

    def delete_task(self, task_id: str) -> Task:
        """Remove a task and return it.

        Raises:
            NotFoundError: If no task has this id.
        """
        index = self._index_of(task_id)
        if index is None:
            raise NotFoundError(task_id)

        deleted = self._tasks.pop(index)
        self.save_tasks()
        self.notify_observers("delete", deleted)
        logger.debug("Deleted task id=%s", task_id)
        return deleted

    def toggle_task_completion(self, task_id: str) -> Task:
        task = self._require(task_id)
        task.toggle_completion()
        self.save_tasks()
        self.notify_observers("toggle", task)
        return task

    def complete_task(self, task_id: str) -> Task:
        task = self._require(task_id)
        task.mark_completed()
        self.save_tasks()
        self.notify_observers("complete", task)
        return task

    def uncomplete_task(self, task_id: str) -> Task:
        task = self._require(task_id)
        task.mark_pending()
        self.save_tasks()
        self.notify_observers("uncomplete", task)
        return task

    def duplicate_task(self, task_id: str) -> Task:
        """Append a pending copy of a task with a new id and ' (Copy)' title.

        Raises:
            NotFoundError: If no task has this id.
        """
        original = self._require(task_id)

        duplicate = original.clone()
        duplicate.id = self._fresh_id()
        room = TITLE_MAX_LENGTH - len(COPY_SUFFIX)
        duplicate.title = f"{original.title[:room].rstrip()}{COPY_SUFFIX}"
        duplicate.completed = False
        duplicate.completed_at = None
        now = utcnow()
        duplicate.created_at = now
        duplicate.updated_at = now

        self._tasks.append(duplicate)
        self.save_tasks()
        self.notify_observers("duplicate", duplicate)
        return duplicate

    def clear_completed_tasks(self) -> int:
        """Remove every completed task. Returns how many were removed."""
        remaining = [task for task in self._tasks if not task.completed]
        cleared = len(self._tasks) - len(remaining)
        self._tasks = remaining
        self.save_tasks()
        self.notify_observers("clear_completed", None)
        return cleared

    def clear_all_tasks(self) -> int:
        """Remove every task. Returns how many there were."""
        cleared = len(self._tasks)
        self._tasks = []
        self.save_tasks()
        self.notify_observers("clear_all", None)
        return cleared

    # ---- queries ----

    def get_task_by_id(self, task_id: str) -> Optional[Task]:
        index = self._index_of(task_id)
        return None if index is None else self._tasks[index]

    def get_all_tasks(self) -> list[Task]:
        return self._tasks.copy()

    def get_filtered_tasks(self, filters: Filters = None) -> list[Task]:
        """Get tasks matching the search text and every set filter field."""
        criteria = TaskFilter.from_mapping(filters)
        return [
            task for task in self._tasks
            if (not criteria.search or task.matches_search(criteria.search))
            and task.matches_filters(criteria)
        ]

    def get_sorted_tasks(self, sort_by: str = "created", order: str = "desc") -> list[Task]:
        return sort_tasks(self._tasks, sort_by, order)

    def get_filtered_and_sorted_tasks(
        self,
        filters: Filters = None,
        sort_by: str = "created",
        order: str = "desc",
    ) -> list[Task]:
        """Filter first, then sort the result."""
        return sort_tasks(self.get_filtered_tasks(filters), sort_by, order)

    def get_tasks_by_category(self, category: str) -> list[Task]:
        return [task for task in self._tasks if task.category == category]

    def get_tasks_by_priority(self, priority: str) -> list[Task]:
        return [task for task in self._tasks if task.priority == priority]

    def get_completed_tasks(self) -> list[Task]:
        return [task for task in self._tasks if task.completed]

    def get_pending_tasks(self) -> list[Task]:
        return [task for task in self._tasks if not task.completed]

    def search_tasks(self, query: Optional[str]) -> list[Task]:
        if not query or not query.strip():
            return self.get_all_tasks()
        return [task for task in self._tasks if task.matches_search(query)]

    def get_statistics(self) -> TaskStatistics:
        """Compute counts, completion rate and per-priority/category buckets."""
        total = len(self._tasks)
        completed = sum(1 for task in self._tasks if task.completed)

        stats = TaskStatistics(total=total, completed=completed, pending=total - completed)
        if total:
            # Round half up
            stats.completion_rate = int(math.floor(completed / total * 100 + 0.5))

        for task in self._tasks:
            if task.priority in stats.priority:
                stats.priority[task.priority] += 1
            stats.categories[task.category] = stats.categories.get(task.category, 0) + 1
        return stats

    def get_categories(self) -> list[str]:
        return sorted({task.category for task in self._tasks})

    # ---- import / export ----

    def export_tasks(self) -> str:
        """Serialize every task to pretty-printed JSON."""
        return json.dumps([task.to_dict() for task in self._tasks], indent=2, ensure_ascii=False)

    def import_tasks(self, json_data: Union[str, bytes]) -> int:
        """Append tasks from a JSON array of task records.

        Either every record is imported or none is.

        Returns:
            Number of tasks imported.

        Raises:
            TaskImportError: If the payload is not valid JSON or any record is malformed.
        """
        try:
            records = json.loads(json_data)
        except (TypeError, ValueError) as e:
            raise TaskImportError(f"Failed to import tasks: {e}") from e
        return self.import_records(records)

    def import_records(self, records: Any) -> int:
        """Append tasks from already-parsed records, all or nothing.

        Records without an id, or whose id is already in use, get a new id.

        Raises:
            TaskImportError: If records is not a list or any record is malformed.
        """
        if not isinstance(records, list):
            raise TaskImportError(
                "Failed to import tasks: expected a list of task records, "
                f"got {type(records).__name__}"
            )

        taken = {task.id for task in self._tasks}
        imported: list[Task] = []
        for index, record in enumerate(records, 1):
            try:
                task = Task.from_dict(record)
            except ValidationError as e:
                raise TaskImportError(f"Failed to import tasks: record {index}: {e}") from e
            if task.id in taken:
                task.id = self._fresh_id(taken)
            taken.add(task.id)
            imported.append(task)

        self._tasks.extend(imported)
        self.save_tasks()
        self.notify_observers("import", None)
        logger.info("Imported %d task(s)", len(imported))
        return len(imported)

    # ---- persistence ----

    def save_tasks(self) -> bool:
        """Write the task list to the store.

        Failures are logged and swallowed; the in-memory list stays
        authoritative.

        Returns:
            True if the write succeeded.
        """
        try:
            payload = json.dumps([task.to_dict() for task in self._tasks], ensure_ascii=False)
            self.store.set_item(self.storage_key, payload)
        except (PersistenceError, OSError, TypeError, ValueError):
            logger.exception("Failed to save tasks under key %r", self.storage_key)
            return False
        logger.debug("Saved %d task(s) under key %r", len(self._tasks), self.storage_key)
        return True

    def load_tasks(self) -> None:
        """Replace the in-memory list with the saved one.

        A missing key means an empty collection. Unreadable or corrupt data
        is logged, kept in load_error, and also yields an empty collection.
        """
        self.load_error = None
        try:
            raw = self.store.get_item(self.storage_key)
            if raw is None:
                self._tasks = []
                return
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError("saved tasks are not a list")
            self._tasks = [Task.from_dict(record) for record in records]
        except (PersistenceError, ValueError, ValidationError) as e:
            logger.error("Failed to load tasks under key %r: %s", self.storage_key, e)
            if isinstance(e, PersistenceError):
                self.load_error = e
            else:
                self.load_error = PersistenceError(f"Failed to load tasks: {e}")
            self._tasks = []
            return
        logger.debug("Loaded %d task(s) under key %r", len(self._tasks), self.storage_key)

    # ---- validation / info ----

    def validate(self) -> ValidationResult:
        """Check for duplicate ids and validate each task, collecting all errors."""
        result = ValidationResult()
        seen: set[str] = set()

        for index, task in enumerate(self._tasks, 1):
            if task.id in seen:
                result.errors.append(f"Duplicate task ID found: {task.id}")
            else:
                seen.add(task.id)

            task_result = task.validate()
            if not task_result.is_valid:
                result.errors.append(f"Task {index}: {', '.join(task_result.errors)}")

        return result

    def get_info(self) -> dict:
        """Summary of the manager state."""
        from qtask import __version__

        stats = self.get_statistics()
        try:
            saved = self.store.has_item(self.storage_key)
        except PersistenceError:
            saved = False

        return {
            "version": __version__,
            "totalTasks": stats.total,
            "isValid": self.validate().is_valid,
            "categories": self.get_categories(),
            "lastSaved": "Available" if saved else "Not saved",
            "statistics": stats.to_dict(),
        }

    # ---- helpers ----

    def _index_of(self, task_id: str) -> Optional[int]:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    def _require(self, task_id: str) -> Task:
        task = self.get_task_by_id(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def _fresh_id(self, taken: Optional[set[str]] = None) -> str:
        if taken is None:
            taken = {task.id for task in self._tasks}
        new_id = generate_id()
        while new_id in taken:
            new_id = generate_id()
        return new_id

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.copy())

    def __contains__(self, task_id: object) -> bool:
        return any(task.id == task_id for task in self._tasks)

    def __str__(self) -> str:
        """Return a string representation of the task list."""
        lines = ["=== Tasks ==="]
        if not self._tasks:
            lines.append("No tasks yet.")
        else:
            for i, task in enumerate(self._tasks, 1):
                lines.append(f"{i}. {task}")
        lines.append(f"\nTotal: {len(self._tasks)} tasks "
                     f"({len(self.get_completed_tasks())} completed, "
                     f"{len(self.get_pending_tasks())} pending)")
        return "\n".join(lines)

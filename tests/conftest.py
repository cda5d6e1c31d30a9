"""Shared fixtures for the task list tests."""

from datetime import datetime, timedelta, timezone

import pytest

from qtask import MemoryStore, TaskManager


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def manager(store: MemoryStore) -> TaskManager:
    return TaskManager(store=store)


@pytest.fixture()
def sample_manager(manager: TaskManager) -> TaskManager:
    """Three tasks: high/pending, medium/completed, low/pending.

    Creation times are spread one hour apart in insertion order so that
    ordering by 'created' is deterministic.
    """
    high = manager.add_task("Write report", "Quarterly numbers", "high", "Work")
    medium = manager.add_task("Buy groceries", "Milk and bread", "medium", "Personal")
    low = manager.add_task("Read a book", "", "low", "Education")
    manager.complete_task(medium.id)

    base = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    for offset, task in enumerate((high, medium, low)):
        task.created_at = base + timedelta(hours=offset)
        task.updated_at = max(task.updated_at, task.created_at)
    return manager

"""Local task list manager."""

__version__ = "1.0.0"

from qtask.errors import (
    NotFoundError,
    PersistenceError,
    TaskError,
    TaskImportError,
    ValidationError,
)
from qtask.manager import TaskManager
from qtask.models import TaskFilter, TaskStatistics, ValidationResult
from qtask.observers import ObserverRegistry
from qtask.storage import JsonFileStore, MemoryStore
from qtask.task import Task

__all__ = [
    "JsonFileStore",
    "MemoryStore",
    "NotFoundError",
    "ObserverRegistry",
    "PersistenceError",
    "Task",
    "TaskError",
    "TaskFilter",
    "TaskImportError",
    "TaskManager",
    "TaskStatistics",
    "ValidationError",
    "ValidationResult",
]

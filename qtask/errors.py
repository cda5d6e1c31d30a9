"""Error types raised by the task list."""

from typing import Optional


class TaskError(Exception):
    """Base class for all task list errors."""


class ValidationError(TaskError):
    """A hard field constraint was violated (for example an empty title)."""


class NotFoundError(TaskError):
    """An operation referenced a task id that is not in the collection.

    Attributes:
        task_id: The id that could not be found.
    """

    def __init__(self, task_id: Optional[str] = None, message: str = "Task not found"):
        super().__init__(message)
        self.task_id = task_id


class PersistenceError(TaskError):
    """Reading from or writing to the durable store failed."""


class TaskImportError(TaskError):
    """An import payload could not be parsed or had the wrong shape."""

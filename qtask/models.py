"""Data models shared by the task entity and the task manager."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


PRIORITIES = ("low", "medium", "high")
CATEGORIES = ("Personal", "Work", "Urgent", "Education", "Health")
STATUSES = ("completed", "pending")
SORT_KEYS = ("priority", "title", "category", "completed", "created")
SORT_ORDERS = ("asc", "desc")

DEFAULT_PRIORITY = "medium"
DEFAULT_CATEGORY = "Personal"

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

# Lower rank sorts first
PRIORITY_RANKS = {"high": 1, "medium": 2, "low": 3}

PRIORITY_EMOJIS = {
    "high": "🔴",
    "medium": "🟡",
    "low": "🟢",
}

CATEGORY_EMOJIS = {
    "Personal": "👤",
    "Work": "💼",
    "Urgent": "🚨",
    "Education": "📚",
    "Health": "🏥",
}

# Actions broadcast to observers
ACTIONS = (
    "add",
    "update",
    "delete",
    "toggle",
    "complete",
    "uncomplete",
    "duplicate",
    "clear_completed",
    "clear_all",
    "import",
)


@dataclass
class TaskFilter:
    """Optional-field query narrowing a set of tasks.

    Empty or missing fields impose no constraint.

    Attributes:
        category: Only tasks in this category
        priority: Only tasks with this priority
        status: 'completed' or 'pending'
        search: Case-insensitive text matched against title, description and category
    """

    category: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    search: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "TaskFilter":
        """Build a filter from a plain dict, ignoring unknown keys."""
        if data is None:
            return cls()
        if isinstance(data, TaskFilter):
            return data
        return cls(
            category=data.get("category") or None,
            priority=data.get("priority") or None,
            status=data.get("status") or None,
            search=data.get("search") or None,
        )

    def is_empty(self) -> bool:
        return not (self.category or self.priority or self.status or self.search)


@dataclass
class ValidationResult:
    """Outcome of a non-throwing validation pass.

    Attributes:
        errors: Every violation found, in the order checked
    """

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"isValid": self.is_valid, "errors": list(self.errors)}


@dataclass
class TaskStatistics:
    """Aggregate counts over a task collection.

    Attributes:
        total: Number of tasks
        completed: Number of completed tasks
        pending: total - completed
        completion_rate: Whole percentage of completed tasks (0 when empty)
        priority: Count per priority bucket (high, medium, low)
        categories: Count per category present in the collection
    """

    total: int = 0
    completed: int = 0
    pending: int = 0
    completion_rate: int = 0
    priority: dict[str, int] = field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0}
    )
    categories: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "pending": self.pending,
            "completionRate": self.completion_rate,
            "priority": dict(self.priority),
            "categories": dict(self.categories),
        }

"""Task entity for the task list."""

import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Union

from qtask.errors import ValidationError
from qtask.models import (
    CATEGORIES,
    CATEGORY_EMOJIS,
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY,
    DESCRIPTION_MAX_LENGTH,
    PRIORITIES,
    PRIORITY_EMOJIS,
    PRIORITY_RANKS,
    TITLE_MAX_LENGTH,
    TaskFilter,
    ValidationResult,
)


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """Generate a collision-resistant task id."""
    return f"task_{uuid.uuid4().hex}"


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string ending in 'Z'."""
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Naive values are taken to be UTC.

    Raises:
        ValidationError: If the value is not a valid timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value!r}") from e
    else:
        raise ValidationError(f"Invalid timestamp: {value!r}")

    try:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError) as e:
        # Offsets at the edges of the datetime range cannot be converted
        raise ValidationError(f"Invalid timestamp: {value!r}") from e


TRUTHY = {"1", "true", "yes", "y", "x", "✓", "done", "completed"}


def parse_bool(value: Any) -> bool:
    """Read a flag from JSON or a spreadsheet cell; strings like "false" are False."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in TRUTHY


def _collate(a: str, b: str) -> int:
    # Case-insensitive first, exact string breaks ties
    key_a = (a.casefold(), a)
    key_b = (b.casefold(), b)
    return (key_a > key_b) - (key_a < key_b)


class Task:
    """Represents a single to-do item.

    Attributes:
        id: Opaque unique identifier.
        title: Trimmed, non-empty title of at most 100 characters.
        description: Free text description.
        priority: One of 'low', 'medium', 'high'.
        category: One of 'Personal', 'Work', 'Urgent', 'Education', 'Health'.
        completed: Whether the task is completed.
        created_at: When the task was created.
        updated_at: When the task was last changed.
        completed_at: When the task was completed (None while pending).
    """

    def __init__(
        self,
        title: str,
        description: str = "",
        priority: str = DEFAULT_PRIORITY,
        category: str = DEFAULT_CATEGORY,
    ):
        """Initialize a new task.

        Args:
            title: The title of the task.
            description: Optional description of the task.
            priority: Task priority; unknown values fall back to 'medium'.
            category: Task category; unknown values fall back to 'Personal'.

        Raises:
            ValidationError: If the title is empty or too long.
        """
        self.id = generate_id()
        self.title = self.validate_title(title)
        self.description = self._clean_description(description)
        self.priority = self.validate_priority(priority)
        self.category = self.validate_category(category)
        self.completed = False
        now = utcnow()
        self.created_at = now
        self.updated_at = now
        self.completed_at: Optional[datetime] = None

    # ---- field rules ----

    @staticmethod
    def validate_title(title: Any) -> str:
        """Return the trimmed title.

        Raises:
            ValidationError: If the title is missing, blank, or longer than 100 characters.
        """
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Task title is required and cannot be empty")
        title = title.strip()
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Task title cannot exceed {TITLE_MAX_LENGTH} characters"
            )
        return title

    @staticmethod
    def validate_priority(priority: Any) -> str:
        """Return the priority, or 'medium' if it is not a known value."""
        if priority not in PRIORITIES:
            return DEFAULT_PRIORITY
        return priority

    @staticmethod
    def validate_category(category: Any) -> str:
        """Return the category, or 'Personal' if it is not a known value."""
        if category not in CATEGORIES:
            return DEFAULT_CATEGORY
        return category

    @staticmethod
    def _clean_description(description: Any) -> str:
        if description is None:
            return ""
        return str(description)

    # ---- mutation ----

    def update(self, updates: Optional[Mapping[str, Any]] = None, **fields: Any) -> "Task":
        """Apply a partial update.

        Only title, description, priority and category are updatable; other
        keys are ignored. The title is validated before anything changes, so a
        failed update leaves the task untouched.

        Args:
            updates: Mapping of field names to new values.
            **fields: Field values given as keyword arguments.

        Returns:
            This task, for chaining.

        Raises:
            ValidationError: If a new title is invalid.
        """
        changes = dict(updates or {})
        changes.update(fields)

        new_title = self.validate_title(changes["title"]) if "title" in changes else None

        if new_title is not None:
            self.title = new_title
        if "description" in changes:
            self.description = self._clean_description(changes["description"])
        if "priority" in changes:
            self.priority = self.validate_priority(changes["priority"])
        if "category" in changes:
            self.category = self.validate_category(changes["category"])

        self._touch()
        return self

    def mark_completed(self) -> "Task":
        """Mark the task as completed. Does nothing if already completed."""
        if not self.completed:
            now = self._touch()
            self.completed = True
            self.completed_at = now
        return self

    def mark_pending(self) -> "Task":
        """Mark the task as not completed. Does nothing if already pending."""
        if self.completed:
            self._touch()
            self.completed = False
            self.completed_at = None
        return self

    def toggle_completion(self) -> "Task":
        """Flip the completion state."""
        if self.completed:
            return self.mark_pending()
        return self.mark_completed()

    def _touch(self) -> datetime:
        now = utcnow()
        self.updated_at = max(now, self.created_at)
        return self.updated_at

    # ---- matching ----

    def matches_search(self, query: Optional[str]) -> bool:
        """Check whether the query appears in the title, description or category."""
        if not query or not query.strip():
            return True

        term = query.strip().lower()
        return (
            term in self.title.lower()
            or term in self.description.lower()
            or term in self.category.lower()
        )

    def matches_filters(self, filters: Union[TaskFilter, Mapping[str, Any], None]) -> bool:
        """Check whether the task satisfies every set filter field.

        Only category, priority and status are considered here; the manager
        applies the search text separately.
        """
        criteria = TaskFilter.from_mapping(filters)

        if criteria.category and self.category != criteria.category:
            return False
        if criteria.priority and self.priority != criteria.priority:
            return False
        if criteria.status == "completed" and not self.completed:
            return False
        if criteria.status == "pending" and self.completed:
            return False
        return True

    # ---- derived values ----

    def priority_rank(self) -> int:
        """Priority as a number for sorting (1=high, 2=medium, 3=low)."""
        return PRIORITY_RANKS.get(self.priority, 2)

    def age_in_days(self, now: Optional[datetime] = None) -> int:
        """Whole days since creation, rounded up."""
        now = now or utcnow()
        elapsed = abs((now - self.created_at).total_seconds())
        return math.ceil(elapsed / timedelta(days=1).total_seconds())

    @staticmethod
    def format_date(value: Optional[datetime]) -> str:
        """Format a datetime for display, e.g. 'Jan 5, 2024, 03:04 PM'."""
        if value is None:
            return ""
        local = value.astimezone()
        return f"{local:%b} {local.day}, {local.year}, {local:%I:%M %p}"

    def formatted_created_date(self) -> str:
        return self.format_date(self.created_at)

    def formatted_completed_date(self) -> str:
        return self.format_date(self.completed_at) if self.completed_at else ""

    def relative_time(self, value: Optional[datetime], now: Optional[datetime] = None) -> str:
        """Describe how long ago a timestamp was, e.g. '2 hours ago'.

        Anything a week or older is shown as an absolute date.
        """
        if value is None:
            return ""

        now = now or utcnow()
        diff_mins = math.floor((now - value).total_seconds() / 60)
        diff_hours = math.floor(diff_mins / 60)
        diff_days = math.floor(diff_hours / 24)

        if diff_mins < 1:
            return "Just now"
        if diff_mins < 60:
            return f"{diff_mins} minute{'s' if diff_mins > 1 else ''} ago"
        if diff_hours < 24:
            return f"{diff_hours} hour{'s' if diff_hours > 1 else ''} ago"
        if diff_days < 7:
            return f"{diff_days} day{'s' if diff_days > 1 else ''} ago"
        return self.format_date(value)

    def relative_created_time(self, now: Optional[datetime] = None) -> str:
        return self.relative_time(self.created_at, now)

    def is_high_priority(self) -> bool:
        return self.priority == "high"

    def is_overdue(self) -> bool:
        """Always False: tasks have no due date."""
        return False

    def summary(self) -> str:
        """One-line summary of the task."""
        status = "Completed" if self.completed else "Pending"
        return f"{self.title} - {status} ({self.priority} priority, {self.age_in_days()} days old)"

    def priority_class(self) -> str:
        return f"priority-{self.priority}"

    def priority_emoji(self) -> str:
        return PRIORITY_EMOJIS.get(self.priority, "⚪")

    def category_emoji(self) -> str:
        return CATEGORY_EMOJIS.get(self.category, "📝")

    # ---- ordering ----

    def compare_to(self, other: "Task", sort_by: str = "created") -> int:
        """Compare with another task for sorting.

        Args:
            other: The task to compare with.
            sort_by: One of 'priority', 'title', 'category', 'completed',
                'created'. Unknown keys behave like 'created'.

        Returns:
            Negative, zero or positive, like a classic cmp function.
        """
        if sort_by == "priority":
            return self.priority_rank() - other.priority_rank()
        if sort_by == "title":
            return _collate(self.title, other.title)
        if sort_by == "category":
            return _collate(self.category, other.category)
        if sort_by == "completed":
            if self.completed == other.completed:
                return 0
            return 1 if self.completed else -1

        # Newest first
        delta = (other.created_at - self.created_at).total_seconds()
        return (delta > 0) - (delta < 0)

    # ---- serialization ----

    def to_dict(self) -> dict:
        """Convert the task to a plain record for storage."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "completed": self.completed,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "completedAt": format_timestamp(self.completed_at) if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        """Create a task from a plain record.

        The id and timestamps from the record replace the ones assigned by
        the constructor. Unknown keys are ignored.

        Raises:
            ValidationError: If the record is not a mapping, the title is
                invalid, or a timestamp cannot be parsed.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Task record must be an object, got {type(data).__name__}")

        task = cls(
            data.get("title"),
            data.get("description", ""),
            data.get("priority", DEFAULT_PRIORITY),
            data.get("category", DEFAULT_CATEGORY),
        )

        if data.get("id"):
            task.id = str(data["id"])
        task.completed = parse_bool(data.get("completed", False))

        if data.get("createdAt"):
            task.created_at = parse_timestamp(data["createdAt"])
        if data.get("updatedAt"):
            task.updated_at = parse_timestamp(data["updatedAt"])
        else:
            task.updated_at = task.created_at
        task.updated_at = max(task.updated_at, task.created_at)

        completed_at = data.get("completedAt")
        if not task.completed:
            task.completed_at = None
        elif completed_at:
            task.completed_at = parse_timestamp(completed_at)
        else:
            task.completed_at = task.updated_at
        return task

    def clone(self) -> "Task":
        """Independent copy of the task. The copy keeps the same id."""
        return Task.from_dict(self.to_dict())

    def validate(self) -> ValidationResult:
        """Check the task without raising, collecting every problem found."""
        result = ValidationResult()

        try:
            self.validate_title(self.title)
        except ValidationError as e:
            result.errors.append(str(e))

        if self.description and len(self.description) > DESCRIPTION_MAX_LENGTH:
            result.errors.append(
                f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
            )

        return result

    def __str__(self) -> str:
        """Return a string representation of the task."""
        status = "✓" if self.completed else " "
        return f"[{status}] {self.title}"

    def __repr__(self) -> str:
        """Return a detailed representation of the task."""
        return f"Task(id='{self.id}', title='{self.title}', completed={self.completed})"

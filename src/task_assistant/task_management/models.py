"""Data models for task management functionality."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from .config import DEFAULT_FOLDER
from .date_parser import is_valid_date, is_valid_time
from .exceptions import TaskManagementError

logger = logging.getLogger(__name__)


class TaskPriority(str, Enum):
    """Task priority enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DefaultTiming(str, Enum):
    """Policy used to fill in a due date and time the user did not give."""

    MANUAL = "manual"
    SMART = "smart"
    END_OF_TODAY = "end_of_today"
    TOMORROW_MORNING = "tomorrow_morning"
    NEXT_BUSINESS_DAY = "next_business_day"


class OperationType(str, Enum):
    """Coarse intent of a user request."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class ActionType(str, Enum):
    """Tag of an extracted action."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    CREATE_FOLDER = "create_folder"
    DELETE_FOLDER = "delete_folder"


# Wire (camelCase) and persisted (snake_case) names of mutable task fields
CHANGE_FIELD_ALIASES = {
    "task": "text",
    "text": "text",
    "dueDate": "due_date",
    "due_date": "due_date",
    "dueTime": "due_time",
    "due_time": "due_time",
    "folder": "folder",
    "priority": "priority",
    "completed": "completed",
}
WIRE_FIELD_NAMES = {
    "text": "task",
    "due_date": "dueDate",
    "due_time": "dueTime",
    "folder": "folder",
    "priority": "priority",
    "completed": "completed",
}


@dataclass
class Task:
    """
    Represents a task item.

    due_date and due_time are independent: either may be absent, and each
    must hold its own format when present.
    """

    id: str
    text: str
    folder: str = DEFAULT_FOLDER
    due_date: str | None = None
    due_time: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    completed: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("Task text must not be empty")
        if self.due_date is not None and not is_valid_date(self.due_date):
            raise ValueError(f"Invalid due date '{self.due_date}', expected YYYY-MM-DD")
        if self.due_time is not None and not is_valid_time(self.due_time):
            raise ValueError(f"Invalid due time '{self.due_time}', expected HH:MM")
        self.priority = TaskPriority(self.priority)

    @property
    def due_at(self) -> datetime | None:
        """Combined due instant, available only when both fields are set."""
        if self.due_date is None or self.due_time is None:
            return None
        return datetime.fromisoformat(f"{self.due_date}T{self.due_time}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize the task using camelCase wire names."""
        return {
            "id": self.id,
            "text": self.text,
            "folder": self.folder,
            "dueDate": self.due_date,
            "dueTime": self.due_time,
            "priority": self.priority.value,
            "completed": self.completed,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    # PostgREST may return a trailing Z
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def task_from_record(record: Mapping[str, Any]) -> Task:
    """
    Convert a persisted snake_case record into a Task.

    Args:
        record: Row or JSON object with snake_case field names

    Returns:
        Task object
    """
    due_time = record.get("due_time") or None
    return Task(
        id=str(record["id"]),
        text=record["text"],
        folder=record.get("folder") or DEFAULT_FOLDER,
        due_date=record.get("due_date") or None,
        # time columns may carry seconds
        due_time=str(due_time)[:5] if due_time else None,
        priority=TaskPriority(record.get("priority") or TaskPriority.MEDIUM.value),
        completed=bool(record.get("completed")),
        created_at=_parse_timestamp(record.get("created_at")) or datetime.now(),
        updated_at=_parse_timestamp(record.get("updated_at")),
    )


def task_to_record(task: Task) -> dict[str, Any]:
    """Convert a Task into its persisted snake_case form."""
    return {
        "id": task.id,
        "text": task.text,
        "folder": task.folder,
        "due_date": task.due_date,
        "due_time": task.due_time,
        "priority": task.priority.value,
        "completed": task.completed,
        "created_at": task.created_at.isoformat(),
        "updated_at": task.updated_at.isoformat() if task.updated_at else None,
    }


@dataclass
class CreateTaskAction:
    """Create a new task."""

    action_type: ClassVar[ActionType] = ActionType.CREATE

    task: str
    folder: str = DEFAULT_FOLDER
    due_date: str | None = None
    due_time: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action_type.value,
            "task": self.task,
            "folder": self.folder,
            "dueDate": self.due_date,
            "dueTime": self.due_time,
            "priority": self.priority.value,
        }


@dataclass
class ModifyTaskAction:
    """Patch fields of an existing task. Change keys use snake_case names."""

    action_type: ClassVar[ActionType] = ActionType.MODIFY

    task_id: str
    changes: dict[str, Any]
    matched_task: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action_type.value,
            "taskId": self.task_id,
            "matchedTask": self.matched_task,
            "changes": {
                WIRE_FIELD_NAMES.get(key, key): (
                    value.value if isinstance(value, Enum) else value
                )
                for key, value in self.changes.items()
            },
        }


@dataclass
class DeleteTaskAction:
    """Delete an existing task."""

    action_type: ClassVar[ActionType] = ActionType.DELETE

    task_id: str
    matched_task: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action_type.value,
            "taskId": self.task_id,
            "matchedTask": self.matched_task,
        }


@dataclass
class CreateFolderAction:
    """Create a folder."""

    action_type: ClassVar[ActionType] = ActionType.CREATE_FOLDER

    folder_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action_type.value, "folderName": self.folder_name}


@dataclass
class DeleteFolderAction:
    """Delete a folder, moving its tasks to the default folder."""

    action_type: ClassVar[ActionType] = ActionType.DELETE_FOLDER

    folder_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action_type.value, "folderName": self.folder_name}


Action = (
    CreateTaskAction
    | ModifyTaskAction
    | DeleteTaskAction
    | CreateFolderAction
    | DeleteFolderAction
)


@dataclass
class SmartDefaults:
    """Inferred due date and time with a human-readable reason."""

    due_date: str | None
    due_time: str | None
    reason: str


@dataclass
class UserSettings:
    """Per-user settings that drive action application."""

    notifications: bool = True
    default_timing: DefaultTiming = DefaultTiming.TOMORROW_MORNING

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "UserSettings":
        """Build settings from a persisted snake_case record."""
        timing = record.get("default_timing") or DefaultTiming.TOMORROW_MORNING.value
        try:
            default_timing = DefaultTiming(timing)
        except ValueError:
            logger.warning(
                f"Unknown default timing '{timing}', using tomorrow_morning"
            )
            default_timing = DefaultTiming.TOMORROW_MORNING
        notifications = record.get("notifications")
        return cls(
            notifications=True if notifications is None else bool(notifications),
            default_timing=default_timing,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "notifications": self.notifications,
            "default_timing": self.default_timing.value,
        }


@dataclass
class AppliedResult:
    """Outcome of applying one action."""

    action: Action
    success: bool
    task: Task | None = None
    error: TaskManagementError | None = None

    @property
    def error_type(self) -> str | None:
        return type(self.error).__name__ if self.error else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.to_dict(),
            "success": self.success,
            "task": self.task.to_dict() if self.task else None,
            "error": str(self.error) if self.error else None,
            "error_type": self.error_type,
        }


@dataclass
class AssistantResult:
    """Result of processing one natural-language request."""

    operation: OperationType
    actions: list[Action] = field(default_factory=list)
    results: list[AppliedResult] = field(default_factory=list)
    processing_time: float = 0.0

    @property
    def applied_count(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if not result.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation.value,
            "applied": self.applied_count,
            "failed": self.failed_count,
            "results": [result.to_dict() for result in self.results],
            "processing_time": round(self.processing_time, 3),
        }

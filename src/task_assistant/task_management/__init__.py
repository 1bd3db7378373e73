"""Task management module for turning natural language into task actions."""

from .assistant_service import TaskAssistantService, create_assistant_service
from .models import (
    AppliedResult,
    AssistantResult,
    DefaultTiming,
    OperationType,
    Task,
    TaskPriority,
    UserSettings,
)

__all__ = [
    "Task",
    "TaskPriority",
    "DefaultTiming",
    "OperationType",
    "UserSettings",
    "AppliedResult",
    "AssistantResult",
    "TaskAssistantService",
    "create_assistant_service",
]

"""Abstract interfaces for the task assistant's collaborators."""

from abc import ABC, abstractmethod
from typing import Any

from .models import Task, UserSettings


class CompletionEngine(ABC):
    """Abstract interface for a text completion engine."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """
        Send a single prompt and return the generated text.

        Args:
            prompt: Full extraction prompt

        Returns:
            Raw text produced by the engine

        Raises:
            EngineUnavailableError: If the engine cannot be reached
            ExtractionTimeoutError: If the engine reports a timeout
            MalformedResponseError: If the response envelope is not understood
        """
        pass

    async def close(self) -> None:
        """Release any connection resources held by the engine."""
        return None


class TaskStore(ABC):
    """
    Abstract interface for per-user task, folder and settings storage.

    Implementations persist snake_case records and map them to Task objects
    at this boundary.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the store for use (connect, create schema, seed defaults).

        Raises:
            DatabaseError: If the store cannot be prepared
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections held by the store."""
        pass

    @abstractmethod
    async def list_tasks(self, folder: str | None = None) -> list[Task]:
        """
        List tasks, optionally limited to one folder.

        Args:
            folder: Folder name filter; None or "All Tasks" means no filter

        Returns:
            Tasks of the user
        """
        pass

    @abstractmethod
    async def get_task(self, task_id: str) -> Task:
        """
        Get a task by ID.

        Args:
            task_id: Task ID

        Returns:
            Task object

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        pass

    @abstractmethod
    async def create_task(
        self,
        text: str,
        folder: str,
        due_date: str | None = None,
        due_time: str | None = None,
        priority: str = "medium",
    ) -> Task:
        """
        Persist a new task. The store owns ID and creation timestamp.

        Args:
            text: Task text
            folder: Folder name
            due_date: Due date (YYYY-MM-DD)
            due_time: Due time (HH:MM)
            priority: Priority value

        Returns:
            The created task

        Raises:
            DatabaseError: If persisting fails
        """
        pass

    @abstractmethod
    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        """
        Patch fields of a task.

        Args:
            task_id: Task ID
            changes: snake_case field names mapped to new values

        Returns:
            The updated task

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        pass

    @abstractmethod
    async def delete_task(self, task_id: str) -> None:
        """
        Delete a task.

        Args:
            task_id: Task ID

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        pass

    @abstractmethod
    async def list_folders(self) -> list[str]:
        """
        List the user's folder names in creation order.

        The default folders are always included. The virtual "All Tasks"
        folder never is.
        """
        pass

    @abstractmethod
    async def create_folder(self, name: str) -> None:
        """
        Store a new folder name.

        Raises:
            DuplicateFolderError: If the name already exists
        """
        pass

    @abstractmethod
    async def delete_folder(self, name: str, reassign_to: str) -> int:
        """
        Remove a folder and move its tasks to another folder.

        Args:
            name: Folder to remove
            reassign_to: Folder that receives the member tasks

        Returns:
            Number of tasks moved

        Raises:
            FolderNotFoundError: If the folder does not exist
        """
        pass

    @abstractmethod
    async def get_settings(self) -> UserSettings:
        """Get the user's settings, creating defaults when none are stored."""
        pass

    @abstractmethod
    async def update_settings(self, settings: UserSettings) -> UserSettings:
        """Replace the user's settings."""
        pass


class Notifier(ABC):
    """
    Abstract interface for task reminders.

    Calls are fire-and-forget: callers neither await nor inspect results.
    """

    @abstractmethod
    def schedule_notification(self, task: Task) -> None:
        """Schedule reminders for a task that has both a due date and time."""
        pass

    @abstractmethod
    def cancel_scheduled_notification(self, task_id: str) -> None:
        """Cancel any reminders scheduled for a task."""
        pass

    @abstractmethod
    def clear_all_scheduled(self) -> None:
        """Cancel every scheduled reminder."""
        pass

"""Application of extracted actions to the task store."""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from .config import DEFAULT_FOLDER, PROTECTED_FOLDERS
from .date_parser import is_valid_date, is_valid_time
from .default_selector import get_smart_defaults, should_apply_defaults
from .exceptions import (
    DuplicateFolderError,
    FolderNotFoundError,
    InvalidChangeError,
    ProtectedFolderError,
    TaskManagementError,
)
from .folder_detector import find_folder
from .interfaces import Notifier, TaskStore
from .models import (
    Action,
    AppliedResult,
    CreateFolderAction,
    CreateTaskAction,
    DefaultTiming,
    DeleteFolderAction,
    DeleteTaskAction,
    ModifyTaskAction,
    Task,
    TaskPriority,
)

logger = logging.getLogger(__name__)


class ActionApplier:
    """
    Applies actions to a task store, one at a time and in order.

    A failing action is reported in its own result and never stops the
    actions after it.
    """

    def __init__(
        self,
        store: TaskStore,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the applier.

        Args:
            store: Task store that receives the changes
            notifier: Reminder scheduler; None disables reminders
            clock: Source of the reference instant for smart defaults
        """
        self._store = store
        self._notifier = notifier
        self._clock = clock

    async def apply(
        self,
        actions: Sequence[Action],
        default_timing: DefaultTiming | str = DefaultTiming.TOMORROW_MORNING,
        notifications_enabled: bool = True,
    ) -> list[AppliedResult]:
        """
        Apply actions strictly in list order.

        Args:
            actions: Actions to apply
            default_timing: Policy for tasks created without a date or time
            notifications_enabled: Whether reminders are scheduled

        Returns:
            One result per action, in the same order
        """
        results: list[AppliedResult] = []
        reminders = notifications_enabled and self._notifier is not None

        for action in actions:
            try:
                task = await self._apply_one(action, default_timing, reminders)
            except TaskManagementError as e:
                logger.warning(f"❌ {action.action_type.value} failed: {e}")
                results.append(AppliedResult(action=action, success=False, error=e))
                continue

            logger.info(f"✅ {action.action_type.value} applied")
            results.append(AppliedResult(action=action, success=True, task=task))

        return results

    async def _apply_one(
        self, action: Action, default_timing: DefaultTiming | str, reminders: bool
    ) -> Task | None:
        if isinstance(action, CreateTaskAction):
            return await self._create_task(action, default_timing, reminders)
        if isinstance(action, ModifyTaskAction):
            return await self._modify_task(action, reminders)
        if isinstance(action, DeleteTaskAction):
            return await self._delete_task(action)
        if isinstance(action, CreateFolderAction):
            await self._create_folder(action)
            return None
        if isinstance(action, DeleteFolderAction):
            await self._delete_folder(action)
            return None
        raise InvalidChangeError(f"Unsupported action: {action!r}")

    async def _resolve_folder(self, name: str | None) -> str:
        if not name:
            return DEFAULT_FOLDER
        folder = find_folder(name, await self._store.list_folders())
        if folder is None:
            raise FolderNotFoundError(f"Folder '{name}' does not exist")
        return folder

    async def _create_task(
        self, action: CreateTaskAction, default_timing: DefaultTiming | str, reminders: bool
    ) -> Task:
        if not action.task or not action.task.strip():
            raise InvalidChangeError("Task text must not be empty")

        due_date, due_time = action.due_date, action.due_time
        if should_apply_defaults(due_date, due_time):
            defaults = get_smart_defaults(action.task, default_timing, self._clock())
            due_date, due_time = defaults.due_date, defaults.due_time
            if defaults.due_date:
                logger.debug(f"Applied default timing to '{action.task}': {defaults.reason}")
        self._validate_due(due_date, due_time)

        folder = await self._resolve_folder(action.folder)
        task = await self._store.create_task(
            text=action.task,
            folder=folder,
            due_date=due_date,
            due_time=due_time,
            priority=TaskPriority(action.priority).value,
        )

        if reminders and task.due_date and task.due_time:
            self._notifier.schedule_notification(task)  # type: ignore[union-attr]
        return task

    async def _modify_task(self, action: ModifyTaskAction, reminders: bool) -> Task:
        # Raises TaskNotFoundError before anything is changed
        current = await self._store.get_task(action.task_id)
        changes = await self._validate_changes(action.changes)
        if not changes:
            raise InvalidChangeError(f"No changes given for task {action.task_id}")

        updated = await self._store.update_task(action.task_id, changes)

        if self._notifier is not None:
            if updated.completed and not current.completed:
                self._notifier.cancel_scheduled_notification(updated.id)
            elif "due_date" in changes or "due_time" in changes:
                self._notifier.cancel_scheduled_notification(updated.id)
                if (
                    reminders
                    and updated.due_date
                    and updated.due_time
                    and not updated.completed
                ):
                    self._notifier.schedule_notification(updated)
        return updated

    async def _delete_task(self, action: DeleteTaskAction) -> Task:
        task = await self._store.get_task(action.task_id)
        await self._store.delete_task(action.task_id)
        if self._notifier is not None:
            self._notifier.cancel_scheduled_notification(action.task_id)
        return task

    async def _create_folder(self, action: CreateFolderAction) -> None:
        name = (action.folder_name or "").strip()
        if not name:
            raise InvalidChangeError("Folder name must not be empty")

        existing = await self._store.list_folders()
        if find_folder(name, [*existing, *PROTECTED_FOLDERS]):
            raise DuplicateFolderError(f"Folder '{name}' already exists")
        await self._store.create_folder(name)

    async def _delete_folder(self, action: DeleteFolderAction) -> None:
        name = (action.folder_name or "").strip()
        if find_folder(name, PROTECTED_FOLDERS):
            raise ProtectedFolderError(f"Cannot delete default folder '{name}'")

        folder = find_folder(name, await self._store.list_folders())
        if folder is None:
            raise FolderNotFoundError(f"Folder '{name}' not found")

        moved = await self._store.delete_folder(folder, reassign_to=DEFAULT_FOLDER)
        logger.info(f"Deleted folder '{folder}', moved {moved} task(s) to {DEFAULT_FOLDER}")

    @staticmethod
    def _validate_due(due_date: str | None, due_time: str | None) -> None:
        if due_date is not None and not is_valid_date(due_date):
            raise InvalidChangeError(f"Invalid due date '{due_date}', expected YYYY-MM-DD")
        if due_time is not None and not is_valid_time(due_time):
            raise InvalidChangeError(f"Invalid due time '{due_time}', expected HH:MM")

    async def _validate_changes(self, changes: dict[str, Any]) -> dict[str, Any]:
        validated = dict(changes)
        self._validate_due(validated.get("due_date"), validated.get("due_time"))

        if "text" in validated:
            text = validated["text"]
            if not isinstance(text, str) or not text.strip():
                raise InvalidChangeError("Task text must not be empty")
            validated["text"] = text.strip()

        if "priority" in validated:
            try:
                validated["priority"] = TaskPriority(validated["priority"]).value
            except ValueError as e:
                raise InvalidChangeError(
                    f"Invalid priority '{validated['priority']}'"
                ) from e

        if "folder" in validated:
            validated["folder"] = await self._resolve_folder(validated["folder"])

        if "completed" in validated:
            validated["completed"] = bool(validated["completed"])

        return validated

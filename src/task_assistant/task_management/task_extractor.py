"""Action extraction from natural-language requests."""

import asyncio
import json
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from ..logging_utils import get_logger
from .config import DEFAULT_EXTRACTION_TIMEOUT
from .date_parser import (
    is_valid_date,
    is_valid_time,
    resolve_date,
    resolve_relative,
    resolve_time,
    split_datetime,
)
from .exceptions import (
    EmptyInputError,
    ExtractionTimeoutError,
    MalformedResponseError,
    NoActionsExtractedError,
)
from .folder_detector import detect_folder, find_folder
from .interfaces import CompletionEngine
from .models import (
    CHANGE_FIELD_ALIASES,
    Action,
    ActionType,
    CreateFolderAction,
    CreateTaskAction,
    DefaultTiming,
    DeleteFolderAction,
    DeleteTaskAction,
    ModifyTaskAction,
    Task,
    TaskPriority,
)
from .prompts import build_extraction_prompt

logger = get_logger(__name__)

_decoder = json.JSONDecoder()


def find_json_array(text: str) -> list[Any]:
    """
    Locate the first well-formed JSON array in free text.

    Engines often wrap the array in commentary or code fences, so every "["
    is tried as a starting point until one decodes to a list.

    Args:
        text: Raw engine output

    Returns:
        Decoded list

    Raises:
        MalformedResponseError: If no JSON array can be decoded
    """
    start = text.find("[")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            return value
        start = text.find("[", start + 1)

    raise MalformedResponseError(
        "Could not understand the response from the task extraction service. "
        "Please try rephrasing your input."
    )


def _clean(value: Any) -> Any:
    """Map engine placeholders ("null", "", "none") to None and trim strings."""
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or stripped.lower() in ("null", "none", "undefined"):
            return None
        return stripped
    return value


class TaskExtractor:
    """Turns free text into a validated list of actions via a completion engine."""

    def __init__(
        self,
        engine: CompletionEngine,
        timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the extractor.

        Args:
            engine: Completion engine that answers the prompt
            timeout: Upper bound for the single engine call, in seconds
            clock: Source of the reference instant
        """
        self._engine = engine
        self.timeout = timeout
        self._clock = clock

    async def extract(
        self,
        text: str,
        default_timing: DefaultTiming | str = DefaultTiming.TOMORROW_MORNING,
        existing_tasks: Sequence[Task] = (),
        existing_folders: Sequence[str] = (),
    ) -> list[Action]:
        """
        Extract actions from a request.

        Args:
            text: Raw user input
            default_timing: User's default timing policy, described in the prompt
            existing_tasks: Tasks the request may refer to
            existing_folders: Folder names of the user

        Returns:
            Non-empty ordered list of actions

        Raises:
            EmptyInputError: If text is blank
            EngineUnavailableError: If the engine cannot be reached
            ExtractionTimeoutError: If the engine call exceeds the timeout
            MalformedResponseError: If no JSON array is found in the response
            NoActionsExtractedError: If no valid action survives normalization
        """
        if not text or not text.strip():
            raise EmptyInputError("Please enter a task description.")

        now = self._clock()
        prompt = build_extraction_prompt(
            text, now, default_timing, existing_tasks, existing_folders
        )
        logger.trace(f"Extraction prompt:\n{prompt}")

        start_time = time.time()
        try:
            raw = await asyncio.wait_for(self._engine.complete(prompt), self.timeout)
        except TimeoutError as e:
            logger.error(f"Extraction timed out after {self.timeout:.0f}s")
            raise ExtractionTimeoutError(
                f"The task extraction service did not answer within "
                f"{self.timeout:.0f} seconds. Please try again."
            ) from e

        logger.trace(f"Raw engine response: {raw}")
        entries = find_json_array(raw)

        actions = self._normalize(entries, now, list(existing_folders))
        logger.info(
            f"Extracted {len(actions)} action(s) from {len(entries)} entries "
            f"in {time.time() - start_time:.3f}s"
        )

        if not actions:
            raise NoActionsExtractedError(
                "No matching tasks or actions were found for that request. "
                "Please try rephrasing your input."
            )
        return actions

    def _normalize(
        self,
        entries: list[Any],
        now: datetime,
        folders: list[str],
    ) -> list[Action]:
        """Validate and back-fill every entry, dropping the unusable ones."""
        actions: list[Action] = []
        # Folders created earlier in this batch are valid targets later in it
        available = list(folders)

        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                logger.warning(f"Dropping entry {index}: not an object ({entry!r})")
                continue

            tag = _clean(entry.get("action"))
            if tag is None and isinstance(entry.get("task"), str):
                logger.debug(f"Upgrading legacy entry {index} to a create action")
                tag = ActionType.CREATE.value

            try:
                action_type = ActionType(str(tag).lower())
            except ValueError:
                logger.warning(f"Dropping entry {index}: unknown action '{tag}'")
                continue

            action = self._build_action(action_type, entry, now, available)
            if action is None:
                logger.warning(f"Dropping entry {index}: incomplete {action_type.value}")
                continue

            if isinstance(action, CreateFolderAction) and not find_folder(
                action.folder_name, available
            ):
                available.append(action.folder_name)

            actions.append(action)

        return actions

    def _build_action(
        self,
        action_type: ActionType,
        entry: dict[str, Any],
        now: datetime,
        folders: list[str],
    ) -> Action | None:
        if action_type is ActionType.CREATE:
            text = _clean(entry.get("task")) or _clean(entry.get("text"))
            if not isinstance(text, str):
                return None
            due_date, due_time = self._normalize_due(
                _clean(entry.get("dueDate", entry.get("due_date"))),
                _clean(entry.get("dueTime", entry.get("due_time"))),
                now,
            )
            folder = find_folder(_clean(entry.get("folder")), folders) or detect_folder(
                text, folders
            )
            return CreateTaskAction(
                task=text,
                folder=folder,
                due_date=due_date,
                due_time=due_time,
                priority=self._normalize_priority(entry.get("priority")),
            )

        if action_type is ActionType.MODIFY:
            task_id = _clean(entry.get("taskId", entry.get("task_id")))
            changes = self._normalize_changes(entry.get("changes"), now, folders)
            if task_id is None or not changes:
                return None
            return ModifyTaskAction(
                task_id=str(task_id),
                changes=changes,
                matched_task=_clean(entry.get("matchedTask")),
            )

        if action_type is ActionType.DELETE:
            task_id = _clean(entry.get("taskId", entry.get("task_id")))
            if task_id is None:
                return None
            return DeleteTaskAction(
                task_id=str(task_id), matched_task=_clean(entry.get("matchedTask"))
            )

        name = _clean(entry.get("folderName", entry.get("folder_name")))
        if not isinstance(name, str):
            return None
        if action_type is ActionType.CREATE_FOLDER:
            return CreateFolderAction(folder_name=name)
        return DeleteFolderAction(folder_name=find_folder(name, folders) or name)

    def _normalize_changes(
        self, raw: Any, now: datetime, folders: list[str]
    ) -> dict[str, Any]:
        if not isinstance(raw, dict):
            return {}

        changes: dict[str, Any] = {}
        for key, value in raw.items():
            field_name = CHANGE_FIELD_ALIASES.get(key)
            if field_name is None:
                logger.debug(f"Ignoring unknown change field '{key}'")
                continue
            changes[field_name] = _clean(value)

        if "due_date" in changes or "due_time" in changes:
            due_date, due_time = self._normalize_due(
                changes.get("due_date"), changes.get("due_time"), now
            )
            if "due_date" in changes or due_date is not None:
                changes["due_date"] = due_date
            if "due_time" in changes or due_time is not None:
                changes["due_time"] = due_time

        if changes.get("text") is None:
            changes.pop("text", None)
        folder = changes.pop("folder", None)
        if folder is not None:
            changes["folder"] = find_folder(folder, folders) or folder
        if "priority" in changes:
            priority = changes.pop("priority")
            try:
                changes["priority"] = TaskPriority(str(priority).strip().lower())
            except ValueError:
                logger.warning(f"Ignoring invalid priority change '{priority}'")
        if "completed" in changes:
            completed = changes.pop("completed")
            if isinstance(completed, str):
                completed = {"true": True, "false": False}.get(completed.lower())
            if isinstance(completed, bool):
                changes["completed"] = completed
            else:
                logger.warning(f"Ignoring invalid completed change '{completed}'")

        return changes

    def _normalize_due(
        self, due_date: Any, due_time: Any, now: datetime
    ) -> tuple[str | None, str | None]:
        """Split combined datetimes and resolve leftover phrases."""
        combined = split_datetime(due_date) if isinstance(due_date, str) else None
        if combined:
            logger.warning(f"Splitting combined datetime '{due_date}' in dueDate")
            due_date = combined[0]
            if due_time is None:
                due_time = combined[1]

        combined = split_datetime(due_time) if isinstance(due_time, str) else None
        if combined:
            logger.warning(f"Splitting combined datetime '{due_time}' in dueTime")
            due_time = combined[1]
            if due_date is None:
                due_date = combined[0]

        if isinstance(due_date, str) and not is_valid_date(due_date):
            relative = resolve_relative(due_date, now)
            if relative and due_time is None:
                due_time = relative.time
            resolved = relative.date if relative else resolve_date(due_date, now)
            if resolved is None:
                logger.warning(f"Discarding unparseable due date '{due_date}'")
            due_date = resolved
        elif not isinstance(due_date, str):
            due_date = None

        if isinstance(due_time, str) and not is_valid_time(due_time):
            resolved_time = resolve_time(due_time)
            if resolved_time is None:
                logger.warning(f"Discarding unparseable due time '{due_time}'")
            due_time = resolved_time
        elif not isinstance(due_time, str):
            due_time = None

        return due_date, due_time

    @staticmethod
    def _normalize_priority(value: Any) -> TaskPriority:
        if isinstance(value, str):
            try:
                return TaskPriority(value.strip().lower())
            except ValueError:
                logger.warning(f"Invalid priority '{value}', defaulting to medium")
        return TaskPriority.MEDIUM

    async def close(self) -> None:
        """Release the completion engine's resources."""
        await self._engine.close()

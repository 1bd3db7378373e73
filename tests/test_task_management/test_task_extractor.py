"""Tests for action extraction."""

import asyncio
import json
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from task_assistant.task_management.config import DEFAULT_FOLDERS
from task_assistant.task_management.exceptions import (
    EmptyInputError,
    EngineUnavailableError,
    ExtractionTimeoutError,
    MalformedResponseError,
    NoActionsExtractedError,
)
from task_assistant.task_management.interfaces import CompletionEngine
from task_assistant.task_management.models import (
    CreateFolderAction,
    CreateTaskAction,
    DeleteFolderAction,
    DeleteTaskAction,
    ModifyTaskAction,
    Task,
    TaskPriority,
)
from task_assistant.task_management.task_extractor import TaskExtractor, find_json_array

# Friday
NOW = datetime(2025, 12, 5, 14, 7)


def make_engine(response: str | list) -> AsyncMock:
    """Create a mock completion engine answering with the given text or entries."""
    engine = AsyncMock(spec=CompletionEngine)
    engine.complete.return_value = (
        response if isinstance(response, str) else json.dumps(response)
    )
    return engine


def make_extractor(engine: AsyncMock, timeout: float = 5.0) -> TaskExtractor:
    return TaskExtractor(engine, timeout=timeout, clock=lambda: NOW)


@pytest.mark.unit
class TestFindJsonArray:
    """Test cases for locating the action array in engine output."""

    def test_bare_array(self) -> None:
        """Test a response that is only the array."""
        assert find_json_array('[{"action": "create"}]') == [{"action": "create"}]

    def test_array_wrapped_in_prose_and_fences(self) -> None:
        """Test an array surrounded by commentary and a code fence."""
        text = 'Sure! Here you go:\n```json\n[{"action": "delete", "taskId": "a"}]\n```'

        assert find_json_array(text) == [{"action": "delete", "taskId": "a"}]

    def test_nested_arrays(self) -> None:
        """Test an array whose elements contain arrays."""
        text = 'Result: [{"action": "create", "task": "Pack", "tags": ["a", ["b"]]}] done'

        assert find_json_array(text)[0]["tags"] == ["a", ["b"]]

    def test_skips_bracketed_prose(self) -> None:
        """Test that a non-JSON bracket before the array is skipped."""
        text = 'Note [see below]: [{"action": "create", "task": "x"}]'

        assert find_json_array(text) == [{"action": "create", "task": "x"}]

    def test_no_array_raises(self) -> None:
        """Test that text without an array is malformed."""
        with pytest.raises(MalformedResponseError):
            find_json_array("I cannot help with that.")


@pytest.mark.unit
class TestExtract:
    """Test cases for TaskExtractor.extract."""

    @pytest.mark.asyncio
    async def test_create_action(self) -> None:
        """Test a plain create action."""
        engine = make_engine(
            [
                {
                    "action": "create",
                    "task": "Buy milk",
                    "dueDate": None,
                    "dueTime": None,
                    "folder": "Shopping",
                    "priority": "medium",
                }
            ]
        )

        actions = await make_extractor(engine).extract(
            "buy milk", existing_folders=DEFAULT_FOLDERS
        )

        assert actions == [
            CreateTaskAction(task="Buy milk", folder="Shopping", due_date=None, due_time=None)
        ]
        engine.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_blank_input_never_calls_engine(self) -> None:
        """Test that blank input fails before the engine is called."""
        engine = make_engine("[]")

        with pytest.raises(EmptyInputError):
            await make_extractor(engine).extract("   ")

        engine.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_array_raises_no_actions(self) -> None:
        """Test that an empty action list is reported."""
        with pytest.raises(NoActionsExtractedError):
            await make_extractor(make_engine("[]")).extract("delete all tasks on Monday")

    @pytest.mark.asyncio
    async def test_no_array_raises_malformed(self) -> None:
        """Test that a response without an array is malformed."""
        with pytest.raises(MalformedResponseError):
            await make_extractor(make_engine("Sorry, no idea.")).extract("buy milk")

    @pytest.mark.asyncio
    async def test_engine_errors_propagate(self) -> None:
        """Test that engine failures are not swallowed."""
        engine = make_engine("[]")
        engine.complete.side_effect = EngineUnavailableError("down")

        with pytest.raises(EngineUnavailableError):
            await make_extractor(engine).extract("buy milk")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test that a slow engine call is cut off."""

        async def slow_complete(prompt: str) -> str:
            await asyncio.sleep(5)
            return "[]"

        engine = make_engine("[]")
        engine.complete.side_effect = slow_complete

        with pytest.raises(ExtractionTimeoutError):
            await make_extractor(engine, timeout=0.05).extract("buy milk")

    @pytest.mark.asyncio
    async def test_prompt_includes_context(self) -> None:
        """Test that existing tasks and folders reach the prompt."""
        engine = make_engine([{"action": "delete", "taskId": "abc"}])
        task = Task(id="abc", text="Dentist", created_at=NOW)

        await make_extractor(engine).extract(
            "delete the dentist", existing_tasks=[task], existing_folders=["Work"]
        )

        prompt = engine.complete.call_args[0][0]
        assert 'id=abc | "Dentist"' in prompt
        assert "Existing folders:\nWork" in prompt


@pytest.mark.unit
class TestNormalization:
    """Test cases for entry validation and back-filling."""

    @pytest.mark.asyncio
    async def test_combined_datetime_is_split(self) -> None:
        """Test a dueDate carrying a time is split into both fields."""
        engine = make_engine(
            [{"action": "create", "task": "Standup", "dueDate": "2025-12-10T09:00"}]
        )

        [action] = await make_extractor(engine).extract("standup dec 10 9am")

        assert action.due_date == "2025-12-10"
        assert action.due_time == "09:00"

    @pytest.mark.asyncio
    async def test_combined_datetime_in_due_time(self) -> None:
        """Test a dueTime carrying a date is split too."""
        engine = make_engine(
            [{"action": "create", "task": "Standup", "dueTime": "2025-12-10 09:30:00"}]
        )

        [action] = await make_extractor(engine).extract("standup")

        assert (action.due_date, action.due_time) == ("2025-12-10", "09:30")

    @pytest.mark.asyncio
    async def test_relative_phrase_uses_reference_instant(self) -> None:
        """Test 'in 10 minutes' from 14:07 resolves to 14:17."""
        engine = make_engine(
            [{"action": "create", "task": "Check oven", "dueDate": "in 10 minutes"}]
        )

        [action] = await make_extractor(engine).extract("check oven in 10 minutes")

        assert (action.due_date, action.due_time) == ("2025-12-05", "14:17")

    @pytest.mark.asyncio
    async def test_natural_phrases_are_resolved(self) -> None:
        """Test phrases left in the due fields are resolved."""
        engine = make_engine(
            [
                {
                    "action": "create",
                    "task": "Call mom",
                    "dueDate": "tomorrow",
                    "dueTime": "3pm",
                }
            ]
        )

        [action] = await make_extractor(engine).extract("call mom tomorrow 3pm")

        assert (action.due_date, action.due_time) == ("2025-12-06", "15:00")

    @pytest.mark.asyncio
    async def test_unparseable_values_are_dropped(self) -> None:
        """Test placeholder and nonsense due values become None."""
        engine = make_engine(
            [
                {
                    "action": "create",
                    "task": "Read book",
                    "dueDate": "someday",
                    "dueTime": "null",
                    "priority": "critical",
                }
            ]
        )

        [action] = await make_extractor(engine).extract("read a book someday")

        assert action.due_date is None
        assert action.due_time is None
        assert action.priority is TaskPriority.MEDIUM

    @pytest.mark.asyncio
    async def test_legacy_entry_without_action_is_create(self) -> None:
        """Test that an entry with only task text becomes a create action."""
        engine = make_engine([{"task": "Call mom", "priority": "HIGH"}])

        [action] = await make_extractor(engine).extract("call mom")

        assert isinstance(action, CreateTaskAction)
        assert action.priority is TaskPriority.HIGH

    @pytest.mark.asyncio
    async def test_invalid_entries_are_dropped(self) -> None:
        """Test unknown tags, non-objects and incomplete entries are skipped."""
        engine = make_engine(
            [
                "just a string",
                {"action": "explode"},
                {"action": "delete"},
                {"action": "modify", "taskId": "t1", "changes": {}},
                {"action": "create", "task": "Keep me"},
            ]
        )

        actions = await make_extractor(engine).extract("keep me")

        assert len(actions) == 1
        assert actions[0].task == "Keep me"

    @pytest.mark.asyncio
    async def test_modify_changes_are_normalized(self) -> None:
        """Test alias mapping and value normalization of changes."""
        engine = make_engine(
            [
                {
                    "action": "modify",
                    "taskId": "t1",
                    "matchedTask": "Dentist",
                    "changes": {
                        "dueTime": "5pm",
                        "priority": "High",
                        "completed": "true",
                        "folder": "work",
                        "color": "red",
                    },
                }
            ]
        )

        [action] = await make_extractor(engine).extract(
            "move dentist to 5pm", existing_folders=DEFAULT_FOLDERS
        )

        assert isinstance(action, ModifyTaskAction)
        assert action.matched_task == "Dentist"
        assert action.changes == {
            "due_time": "17:00",
            "priority": TaskPriority.HIGH,
            "completed": True,
            "folder": "Work",
        }

    @pytest.mark.asyncio
    async def test_invalid_change_values_are_dropped_not_coerced(self) -> None:
        """Test unknown priority and completed values never become changes."""
        engine = make_engine(
            [
                {"action": "modify", "taskId": "t1", "changes": {"priority": "urgent"}},
                {"action": "modify", "taskId": "t2", "changes": {"completed": "maybe"}},
                {
                    "action": "modify",
                    "taskId": "t3",
                    "changes": {"priority": "urgent", "completed": False, "dueTime": "9am"},
                },
            ]
        )

        [action] = await make_extractor(engine).extract("bump the report")

        assert action.task_id == "t3"
        assert action.changes == {"completed": False, "due_time": "09:00"}

    @pytest.mark.asyncio
    async def test_invalid_priority_change_keeps_stored_priority(self) -> None:
        """Test an unknown priority does not reset a high task to medium."""
        from unittest.mock import MagicMock

        from task_assistant.task_management.action_applier import ActionApplier
        from task_assistant.task_management.database import TaskDatabase
        from task_assistant.task_management.interfaces import Notifier

        db = TaskDatabase(":memory:")
        await db.initialize()
        task = await db.create_task("Report", "Work", priority="high")
        engine = make_engine(
            [
                {"action": "modify", "taskId": task.id, "changes": {"priority": "urgent"}},
                {"action": "create", "task": "Buy milk"},
            ]
        )

        actions = await make_extractor(engine).extract("make the report urgent")
        await ActionApplier(db, MagicMock(spec=Notifier)).apply(actions)

        assert (await db.get_task(task.id)).priority is TaskPriority.HIGH
        await db.close()

    @pytest.mark.asyncio
    async def test_folder_created_in_same_batch_is_a_valid_target(self) -> None:
        """Test a create into a folder created earlier in the batch."""
        engine = make_engine(
            [
                {"action": "create_folder", "folderName": "Travel"},
                {"action": "create", "task": "Book flights", "folder": "travel"},
            ]
        )

        actions = await make_extractor(engine).extract(
            "create a travel folder and add book flights",
            existing_folders=DEFAULT_FOLDERS,
        )

        assert actions[0] == CreateFolderAction(folder_name="Travel")
        assert actions[1].folder == "Travel"

    @pytest.mark.asyncio
    async def test_unknown_folder_falls_back_to_inference(self) -> None:
        """Test an unknown folder on a create is replaced by the inferred one."""
        engine = make_engine([{"action": "create", "task": "Buy eggs", "folder": "Food"}])

        [action] = await make_extractor(engine).extract(
            "buy eggs", existing_folders=DEFAULT_FOLDERS
        )

        assert action.folder == "Shopping"

    @pytest.mark.asyncio
    async def test_delete_and_delete_folder(self) -> None:
        """Test delete actions keep their ids and canonical folder names."""
        engine = make_engine(
            [
                {"action": "delete", "taskId": 7, "matchedTask": "Gym"},
                {"action": "delete_folder", "folderName": "travel"},
            ]
        )

        actions = await make_extractor(engine).extract(
            "delete the gym task and the travel folder",
            existing_folders=[*DEFAULT_FOLDERS, "Travel"],
        )

        assert actions == [
            DeleteTaskAction(task_id="7", matched_task="Gym"),
            DeleteFolderAction(folder_name="Travel"),
        ]

"""Tests for the task assistant service."""

import asyncio
import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from task_assistant.task_management.action_applier import ActionApplier
from task_assistant.task_management.assistant_service import (
    TaskAssistantService,
    build_engine,
    build_store,
    create_assistant_service,
)
from task_assistant.task_management.completion import (
    HttpCompletionEngine,
    OllamaCompletionEngine,
)
from task_assistant.task_management.database import TaskDatabase
from task_assistant.task_management.exceptions import (
    EmptyInputError,
    ExtractionInProgressError,
    MalformedResponseError,
    ProtectedFolderError,
)
from task_assistant.task_management.interfaces import CompletionEngine, Notifier
from task_assistant.task_management.models import (
    DefaultTiming,
    OperationType,
    UserSettings,
)
from task_assistant.task_management.notification_scheduler import NotificationScheduler
from task_assistant.task_management.rest_store import RestTaskStore
from task_assistant.task_management.task_extractor import TaskExtractor

# Friday
NOW = datetime(2025, 12, 5, 10, 0)


async def make_service(
    response: str | list = "[]",
) -> tuple[TaskAssistantService, TaskDatabase, AsyncMock]:
    """Create a service over an in-memory database and a mock engine."""
    db = TaskDatabase(":memory:")
    await db.initialize()
    engine = AsyncMock(spec=CompletionEngine)
    engine.complete.return_value = (
        response if isinstance(response, str) else json.dumps(response)
    )
    notifier = MagicMock(spec=Notifier)
    service = TaskAssistantService(
        TaskExtractor(engine, clock=lambda: NOW),
        ActionApplier(db, notifier, clock=lambda: NOW),
        db,
        notifier,
    )
    return service, db, engine


@pytest.mark.integration
class TestProcessText:
    """End-to-end scenarios through extraction and application."""

    @pytest.mark.asyncio
    async def test_buy_milk_uses_default_timing(self) -> None:
        """Test 'Buy milk' becomes a Shopping task due tomorrow at 09:00."""
        service, db, _ = await make_service(
            [{"action": "create", "task": "Buy milk", "dueDate": None, "dueTime": None}]
        )

        result = await service.process_text("Buy milk")

        assert result.operation is OperationType.CREATE
        assert result.applied_count == 1
        [task] = await db.list_tasks()
        assert task.text == "Buy milk"
        assert task.folder == "Shopping"
        assert (task.due_date, task.due_time) == ("2025-12-06", "09:00")
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_delete_embedded_in_prose(self) -> None:
        """Test an action array wrapped in commentary still applies."""
        service, db, engine = await make_service()
        task = await db.create_task("Dentist appointment", "Personal")
        engine.complete.return_value = (
            "Sure, here is what I found:\n"
            f'[{{"action": "delete", "taskId": "{task.id}", "matchedTask": "Dentist"}}]'
            "\nLet me know if you need anything else."
        )

        result = await service.process_text("delete the dentist task")

        assert result.operation is OperationType.DELETE
        assert result.results[0].success
        assert await db.list_tasks() == []
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_protected_folder_delete_is_reported(self) -> None:
        """Test deleting Work reports ProtectedFolderError and changes nothing."""
        service, db, _ = await make_service(
            [{"action": "delete_folder", "folderName": "Work"}]
        )

        result = await service.process_text("delete the work folder")

        assert result.failed_count == 1
        assert isinstance(result.results[0].error, ProtectedFolderError)
        assert "Work" in await db.list_folders()
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_malformed_response_changes_nothing(self) -> None:
        """Test extraction failure aborts the request before any mutation."""
        service, db, _ = await make_service("I am not sure what you mean.")

        with pytest.raises(MalformedResponseError):
            await service.process_text("buy milk")

        assert await db.list_tasks() == []
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_settings_drive_application(self) -> None:
        """Test stored manual timing leaves new tasks undated."""
        service, db, _ = await make_service([{"action": "create", "task": "Read book"}])
        await db.update_settings(UserSettings(default_timing=DefaultTiming.MANUAL))

        await service.process_text("read a book")

        [task] = await db.list_tasks()
        assert task.due_date is None
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_create_request_gets_no_task_context(self) -> None:
        """Test existing tasks are not shown for a create request."""
        service, db, engine = await make_service([{"action": "create", "task": "Eggs"}])
        await db.create_task("Secret plans", "Personal")

        await service.process_text("buy eggs")

        prompt = engine.complete.call_args[0][0]
        assert "Secret plans" not in prompt
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_blank_input(self) -> None:
        """Test blank input is rejected without calling the engine."""
        service, _, engine = await make_service()

        with pytest.raises(EmptyInputError):
            await service.process_text("  ")

        engine.complete.assert_not_called()
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_second_request_while_busy_is_rejected(self) -> None:
        """Test only one request is in flight at a time."""
        service, _, engine = await make_service()
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_complete(prompt: str) -> str:
            started.set()
            await release.wait()
            return '[{"action": "create", "task": "Buy milk"}]'

        engine.complete.side_effect = slow_complete

        first = asyncio.create_task(service.process_text("buy milk"))
        await started.wait()

        assert service.busy
        with pytest.raises(ExtractionInProgressError):
            await service.process_text("buy eggs")

        release.set()
        result = await first
        assert result.applied_count == 1
        assert not service.busy
        await service.shutdown()


@pytest.mark.integration
class TestPreviewAndApply:
    """Test cases for the two-step preview flow."""

    @pytest.mark.asyncio
    async def test_preview_does_not_mutate(self) -> None:
        """Test preview returns actions and leaves the store untouched."""
        service, db, _ = await make_service([{"action": "create", "task": "Buy milk"}])

        actions = await service.preview("buy milk")

        assert actions[0].task == "Buy milk"
        assert await db.list_tasks() == []

        results = await service.apply_actions(actions)

        assert results[0].success
        assert len(await db.list_tasks()) == 1
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_releases_collaborators(self) -> None:
        """Test shutdown clears reminders and closes the engine."""
        service, _, engine = await make_service()

        await service.shutdown()

        service._notifier.clear_all_scheduled.assert_called_once()
        engine.close.assert_awaited_once()


@pytest.mark.unit
class TestBuilders:
    """Test cases for the service factory helpers."""

    @pytest.mark.asyncio
    async def test_create_assistant_service(self) -> None:
        """Test the factory initializes the store and adds a scheduler."""
        engine = AsyncMock(spec=CompletionEngine)
        service = await create_assistant_service(TaskDatabase(":memory:"), engine, timeout=3)

        assert isinstance(service._notifier, NotificationScheduler)
        assert service._extractor.timeout == 3
        assert await service.store.list_folders() == ["Work", "Personal", "Shopping"]
        await service.shutdown()

    def test_build_store_prefers_rest_when_configured(self) -> None:
        """Test the REST store is chosen when URL and key are set."""
        store = build_store(rest_url="https://x.test", rest_key="key", user_id="u1")

        assert isinstance(store, RestTaskStore)
        assert store.user_id == "u1"

    def test_build_store_sqlite(self, tmp_path) -> None:
        """Test the SQLite store is created with its parent directory."""
        path = tmp_path / "nested" / "tasks.db"

        store = build_store(db_path=str(path), rest_url=None, rest_key=None)

        assert isinstance(store, TaskDatabase)
        assert path.parent.is_dir()

    def test_build_engine(self) -> None:
        """Test engine selection by kind."""
        assert isinstance(build_engine("http", url="http://x.test"), HttpCompletionEngine)
        assert isinstance(build_engine("ollama"), OllamaCompletionEngine)
        with pytest.raises(ValueError):
            build_engine("telepathy")

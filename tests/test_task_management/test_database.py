"""Tests for database layer functionality."""

import asyncio
from pathlib import Path

import pytest

from task_assistant.task_management.config import DEFAULT_FOLDERS, SCHEMA_VERSION
from task_assistant.task_management.database import TaskDatabase
from task_assistant.task_management.exceptions import (
    DatabaseError,
    DuplicateFolderError,
    FolderNotFoundError,
    SchemaError,
    TaskNotFoundError,
)
from task_assistant.task_management.models import DefaultTiming, TaskPriority, UserSettings


@pytest.mark.unit
class TestDatabaseSchemaCreation:
    """Test cases for database schema creation and initialization."""

    @pytest.mark.asyncio
    async def test_schema_creation_creates_tables(self) -> None:
        """Test that schema creation creates the tasks, folders and settings tables."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        async with db._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            )
            tables = [row[0] for row in await cursor.fetchall()]

        assert {"tasks", "folders", "settings", "schema_version"} <= set(tables)
        await db.close()

    @pytest.mark.asyncio
    async def test_schema_creation_creates_indexes(self) -> None:
        """Test that schema creation creates required indexes."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        async with db._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='index' AND name LIKE 'idx_%'"
            )
            index_names = [row[0] for row in await cursor.fetchall()]

        assert "idx_tasks_user_folder" in index_names
        assert "idx_tasks_due_date" in index_names
        await db.close()

    @pytest.mark.asyncio
    async def test_schema_version_tracking(self) -> None:
        """Test that schema version is tracked."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        assert await db.get_schema_version() == SCHEMA_VERSION
        await db.close()

    @pytest.mark.asyncio
    async def test_newer_schema_is_rejected(self) -> None:
        """Test that a database written by a newer version is refused."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        async with db._get_connection() as conn:
            await conn.execute("INSERT INTO schema_version (version) VALUES (99)")
            await conn.commit()

        with pytest.raises(SchemaError):
            await db.initialize()
        await db.close()

    @pytest.mark.asyncio
    async def test_default_folders_are_seeded_once(self) -> None:
        """Test reserved folders exist and re-initializing does not duplicate them."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        await db.initialize()

        assert await db.list_folders() == list(DEFAULT_FOLDERS)
        await db.close()

    @pytest.mark.asyncio
    async def test_operations_before_initialize_fail(self) -> None:
        """Test that using an uninitialized database raises DatabaseError."""
        db = TaskDatabase(":memory:")

        with pytest.raises(DatabaseError):
            await db.list_tasks()


@pytest.mark.unit
class TestTaskCrud:
    """Test cases for task persistence."""

    @pytest.mark.asyncio
    async def test_create_and_get_task(self) -> None:
        """Test that a created task can be read back."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        task = await db.create_task(
            "  Buy milk ", "Shopping", due_date="2025-12-06", due_time="09:00"
        )
        stored = await db.get_task(task.id)

        assert stored.text == "Buy milk"
        assert stored.folder == "Shopping"
        assert (stored.due_date, stored.due_time) == ("2025-12-06", "09:00")
        assert stored.priority is TaskPriority.MEDIUM
        assert stored.completed is False
        assert stored.created_at == task.created_at
        await db.close()

    @pytest.mark.asyncio
    async def test_create_invalid_task_raises(self) -> None:
        """Test that invalid task data is rejected."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        with pytest.raises(DatabaseError):
            await db.create_task("   ", "Personal")
        with pytest.raises(DatabaseError):
            await db.create_task("x", "Personal", due_date="tomorrow")
        await db.close()

    @pytest.mark.asyncio
    async def test_get_missing_task_raises(self) -> None:
        """Test reading an unknown ID."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        with pytest.raises(TaskNotFoundError):
            await db.get_task("missing")
        await db.close()

    @pytest.mark.asyncio
    async def test_list_tasks_newest_first_and_by_folder(self) -> None:
        """Test ordering and folder filtering, including All Tasks."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        first = await db.create_task("Buy milk", "Shopping")
        await asyncio.sleep(0.01)
        second = await db.create_task("Write report", "Work")

        assert [t.id for t in await db.list_tasks()] == [second.id, first.id]
        assert [t.id for t in await db.list_tasks("All Tasks")] == [second.id, first.id]
        assert [t.id for t in await db.list_tasks("shopping")] == [first.id]
        await db.close()

    @pytest.mark.asyncio
    async def test_update_task(self) -> None:
        """Test patching fields refreshes updated_at."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        task = await db.create_task("Dentist", "Personal")

        updated = await db.update_task(
            task.id, {"due_time": "17:00", "priority": "high", "completed": True}
        )
        stored = await db.get_task(task.id)

        assert updated.due_time == "17:00"
        assert stored.priority is TaskPriority.HIGH
        assert stored.completed is True
        assert stored.updated_at is not None
        assert stored.created_at == task.created_at
        await db.close()

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields_and_bad_values(self) -> None:
        """Test invalid patches."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        task = await db.create_task("Dentist", "Personal")

        with pytest.raises(DatabaseError):
            await db.update_task(task.id, {"id": "other"})
        with pytest.raises(DatabaseError):
            await db.update_task(task.id, {"due_date": "2025-02-30"})
        with pytest.raises(TaskNotFoundError):
            await db.update_task("missing", {"text": "x"})
        await db.close()

    @pytest.mark.asyncio
    async def test_delete_task(self) -> None:
        """Test deleting a task."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        task = await db.create_task("Dentist", "Personal")

        await db.delete_task(task.id)

        assert await db.list_tasks() == []
        with pytest.raises(TaskNotFoundError):
            await db.delete_task(task.id)
        await db.close()

    @pytest.mark.asyncio
    async def test_malformed_row_raises_database_error(self) -> None:
        """Test a row with an unknown priority is reported as a store error."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        task = await db.create_task("Dentist", "Personal")
        async with db._get_connection() as conn:
            await conn.execute(
                "UPDATE tasks SET priority = 'urgent' WHERE id = ?", (task.id,)
            )

        with pytest.raises(DatabaseError, match="Malformed"):
            await db.get_task(task.id)
        await db.close()

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, tmp_path: Path) -> None:
        """Test that two users sharing a file never see each other's tasks."""
        path = str(tmp_path / "tasks.db")
        alice = TaskDatabase(path, user_id="alice")
        bob = TaskDatabase(path, user_id="bob")
        await alice.initialize()
        await bob.initialize()

        task = await alice.create_task("Alice task", "Personal")

        assert await bob.list_tasks() == []
        with pytest.raises(TaskNotFoundError):
            await bob.get_task(task.id)
        assert await bob.list_folders() == list(DEFAULT_FOLDERS)
        await alice.close()
        await bob.close()


@pytest.mark.unit
class TestFoldersAndSettings:
    """Test cases for folders and settings."""

    @pytest.mark.asyncio
    async def test_create_folder_and_duplicates(self) -> None:
        """Test folder creation with case-insensitive uniqueness."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        await db.create_folder("Travel")

        assert await db.list_folders() == [*DEFAULT_FOLDERS, "Travel"]
        with pytest.raises(DuplicateFolderError):
            await db.create_folder("travel")
        await db.close()

    @pytest.mark.asyncio
    async def test_delete_folder_reassigns_tasks(self) -> None:
        """Test that a deleted folder's tasks move to the given folder."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        await db.create_folder("Travel")
        await db.create_task("Book flights", "Travel")
        await db.create_task("Pack bags", "Travel")
        await db.create_task("Buy milk", "Shopping")

        moved = await db.delete_folder("Travel", reassign_to="Personal")

        assert moved == 2
        assert "Travel" not in await db.list_folders()
        assert len(await db.list_tasks("Personal")) == 2
        assert len(await db.list_tasks("Shopping")) == 1
        await db.close()

    @pytest.mark.asyncio
    async def test_delete_unknown_folder(self) -> None:
        """Test deleting a folder that does not exist."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        with pytest.raises(FolderNotFoundError):
            await db.delete_folder("Garden", reassign_to="Personal")
        await db.close()

    @pytest.mark.asyncio
    async def test_settings_default_and_update(self) -> None:
        """Test default settings are created and updates persist."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        assert await db.get_settings() == UserSettings()

        await db.update_settings(
            UserSettings(notifications=False, default_timing=DefaultTiming.SMART)
        )
        settings = await db.get_settings()

        assert settings.notifications is False
        assert settings.default_timing is DefaultTiming.SMART
        await db.close()

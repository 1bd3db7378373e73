"""Database layer for task management using SQLite."""

import dataclasses
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from uuid import uuid4

import aiosqlite

from .config import (
    ALL_TASKS_FOLDER,
    DEFAULT_FOLDERS,
    DEFAULT_USER_ID,
    DEFAULT_WAL_MODE,
    SCHEMA_VERSION,
)
from .exceptions import (
    DatabaseError,
    DuplicateFolderError,
    FolderNotFoundError,
    SchemaError,
    TaskNotFoundError,
)
from .interfaces import TaskStore
from .models import Task, TaskPriority, UserSettings, task_from_record

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"text", "folder", "due_date", "due_time", "priority", "completed"}
)


class TaskDatabase(TaskStore):
    """SQLite storage for one user's tasks, folders and settings."""

    def __init__(
        self,
        db_path: str,
        user_id: str = DEFAULT_USER_ID,
        wal_mode: bool = DEFAULT_WAL_MODE,
    ) -> None:
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file (use ":memory:" for in-memory)
            user_id: Opaque identifier every row is scoped to
            wal_mode: Enable WAL mode for concurrent access
        """
        self.db_path = db_path
        self.user_id = user_id
        self.wal_mode = wal_mode
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Initialize database schema, connection and default folders."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row

            # Enable WAL mode for concurrent access (not supported in :memory:)
            if self.wal_mode and self.db_path != ":memory:":
                await self._connection.execute("PRAGMA journal_mode=WAL")

        await self._create_schema()
        await self._seed_default_folders()

    async def _create_schema(self) -> None:
        """Create database schema with tables and indexes."""
        async with self._get_connection() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

            cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
            result = await cursor.fetchone()
            current_version = result[0] or 0

            if current_version > SCHEMA_VERSION:
                raise SchemaError(
                    f"Database schema version {current_version} is newer than "
                    f"supported version {SCHEMA_VERSION}"
                )
            if current_version < SCHEMA_VERSION:
                await self._apply_migrations(conn, current_version)

            await conn.commit()

    async def _apply_migrations(
        self, conn: aiosqlite.Connection, from_version: int
    ) -> None:
        """
        Apply database migrations.

        Args:
            conn: Database connection
            from_version: Current schema version
        """
        if from_version < 1:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    text TEXT NOT NULL,
                    folder TEXT NOT NULL,
                    due_date TEXT,
                    due_time TEXT,
                    priority TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP
                )
                """
            )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_user_folder ON tasks(user_id, folder)"
            )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(due_date)"
            )

            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS folders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL COLLATE NOCASE,
                    created_at TIMESTAMP NOT NULL,
                    UNIQUE (user_id, name)
                )
                """
            )

            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    user_id TEXT PRIMARY KEY,
                    notifications INTEGER NOT NULL DEFAULT 1,
                    default_timing TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )

            await conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            logger.debug(f"Applied schema migration to version {SCHEMA_VERSION}")

    async def _seed_default_folders(self) -> None:
        """Make sure the reserved folders exist for the user."""
        async with self._get_connection() as conn:
            for name in DEFAULT_FOLDERS:
                await conn.execute(
                    """
                    INSERT OR IGNORE INTO folders (user_id, name, created_at)
                    VALUES (?, ?, ?)
                    """,
                    (self.user_id, name, datetime.now().isoformat()),
                )
            await conn.commit()

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Get database connection context manager.

        Yields:
            Database connection

        Raises:
            DatabaseError: If connection is not initialized
        """
        if self._connection is None:
            raise DatabaseError("Database not initialized")
        yield self._connection

    async def get_schema_version(self) -> int:
        """
        Get current schema version.

        Returns:
            Schema version number
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
            result = await cursor.fetchone()
            return result[0] or 0

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def list_tasks(self, folder: str | None = None) -> list[Task]:
        """
        List tasks newest first, optionally limited to one folder.

        Args:
            folder: Folder filter; None or "All Tasks" lists every task

        Returns:
            List of tasks
        """
        query = "SELECT * FROM tasks WHERE user_id = ?"
        params: list[Any] = [self.user_id]

        if folder is not None and folder != ALL_TASKS_FOLDER:
            query += " AND folder = ? COLLATE NOCASE"
            params.append(folder)

        query += " ORDER BY created_at DESC"

        async with self._get_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_task(row) for row in rows]

    async def get_task(self, task_id: str) -> Task:
        """
        Get a task by ID.

        Args:
            task_id: Task ID

        Returns:
            Task object

        Raises:
            TaskNotFoundError: If task not found
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND user_id = ?",
                (str(task_id), self.user_id),
            )
            row = await cursor.fetchone()

            if row is None:
                raise TaskNotFoundError(f"Task with ID {task_id} not found")

            return self._row_to_task(row)

    async def create_task(
        self,
        text: str,
        folder: str,
        due_date: str | None = None,
        due_time: str | None = None,
        priority: str = TaskPriority.MEDIUM.value,
    ) -> Task:
        """
        Insert a new task.

        Args:
            text: Task text
            folder: Folder name
            due_date: Due date (YYYY-MM-DD)
            due_time: Due time (HH:MM)
            priority: Priority value

        Returns:
            The created task

        Raises:
            DatabaseError: If the task is invalid or insertion fails
        """
        try:
            task = Task(
                id=str(uuid4()),
                text=text.strip(),
                folder=folder,
                due_date=due_date,
                due_time=due_time,
                priority=TaskPriority(priority),
                created_at=datetime.now(),
            )
        except ValueError as e:
            raise DatabaseError(f"Invalid task: {e}") from e

        try:
            async with self._get_connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO tasks (
                        id, user_id, text, folder, due_date, due_time,
                        priority, completed, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task.id,
                        self.user_id,
                        task.text,
                        task.folder,
                        task.due_date,
                        task.due_time,
                        task.priority.value,
                        int(task.completed),
                        task.created_at.isoformat(),
                        None,
                    ),
                )
                await conn.commit()
        except aiosqlite.IntegrityError as e:
            raise DatabaseError(f"Task with ID {task.id} already exists") from e
        except aiosqlite.Error as e:
            raise DatabaseError(f"Failed to insert task: {e}") from e

        return task

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        """
        Update task fields.

        Args:
            task_id: Task ID
            changes: snake_case field names and values to update

        Returns:
            The updated task

        Raises:
            TaskNotFoundError: If task not found
            DatabaseError: If a field is unknown or a value is invalid
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise DatabaseError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        current_task = await self.get_task(task_id)
        try:
            updated = dataclasses.replace(
                current_task, **changes, updated_at=datetime.now()
            )
        except ValueError as e:
            raise DatabaseError(f"Invalid update for task {task_id}: {e}") from e

        async with self._get_connection() as conn:
            await conn.execute(
                """
                UPDATE tasks
                SET text = ?, folder = ?, due_date = ?, due_time = ?,
                    priority = ?, completed = ?, updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    updated.text,
                    updated.folder,
                    updated.due_date,
                    updated.due_time,
                    updated.priority.value,
                    int(updated.completed),
                    updated.updated_at.isoformat() if updated.updated_at else None,
                    updated.id,
                    self.user_id,
                ),
            )
            await conn.commit()

        return updated

    async def delete_task(self, task_id: str) -> None:
        """
        Delete a task.

        Args:
            task_id: Task ID

        Raises:
            TaskNotFoundError: If task not found
        """
        await self.get_task(task_id)

        async with self._get_connection() as conn:
            await conn.execute(
                "DELETE FROM tasks WHERE id = ? AND user_id = ?",
                (str(task_id), self.user_id),
            )
            await conn.commit()

    async def list_folders(self) -> list[str]:
        """List folder names in creation order."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT name FROM folders WHERE user_id = ? ORDER BY id ASC",
                (self.user_id,),
            )
            return [row["name"] for row in await cursor.fetchall()]

    async def create_folder(self, name: str) -> None:
        """
        Insert a folder.

        Raises:
            DuplicateFolderError: If the name already exists (ignoring case)
        """
        try:
            async with self._get_connection() as conn:
                await conn.execute(
                    "INSERT INTO folders (user_id, name, created_at) VALUES (?, ?, ?)",
                    (self.user_id, name, datetime.now().isoformat()),
                )
                await conn.commit()
        except aiosqlite.IntegrityError as e:
            raise DuplicateFolderError(f"Folder '{name}' already exists") from e

    async def delete_folder(self, name: str, reassign_to: str) -> int:
        """
        Delete a folder after moving its tasks.

        Args:
            name: Folder to delete
            reassign_to: Folder receiving the member tasks

        Returns:
            Number of tasks moved

        Raises:
            FolderNotFoundError: If the folder does not exist
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT name FROM folders WHERE user_id = ? AND name = ?",
                (self.user_id, name),
            )
            row = await cursor.fetchone()
            if row is None:
                raise FolderNotFoundError(f"Folder '{name}' not found")

            cursor = await conn.execute(
                """
                UPDATE tasks SET folder = ?, updated_at = ?
                WHERE user_id = ? AND folder = ? COLLATE NOCASE
                """,
                (reassign_to, datetime.now().isoformat(), self.user_id, row["name"]),
            )
            moved = cursor.rowcount
            await conn.execute(
                "DELETE FROM folders WHERE user_id = ? AND name = ?",
                (self.user_id, row["name"]),
            )
            await conn.commit()

        return moved

    async def get_settings(self) -> UserSettings:
        """Get user settings, storing defaults on first access."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM settings WHERE user_id = ?", (self.user_id,)
            )
            row = await cursor.fetchone()

        if row is None:
            return await self.update_settings(UserSettings())
        return UserSettings.from_record(dict(row))

    async def update_settings(self, settings: UserSettings) -> UserSettings:
        """Store user settings."""
        async with self._get_connection() as conn:
            await conn.execute(
                """
                INSERT OR REPLACE INTO settings (
                    user_id, notifications, default_timing, updated_at
                ) VALUES (?, ?, ?, ?)
                """,
                (
                    self.user_id,
                    int(settings.notifications),
                    settings.default_timing.value,
                    datetime.now().isoformat(),
                ),
            )
            await conn.commit()
        return settings

    def _row_to_task(self, row: aiosqlite.Row) -> Task:
        """
        Convert database row to Task object.

        Args:
            row: Database row

        Returns:
            Task object
        """
        try:
            return task_from_record(dict(row))
        except (KeyError, ValueError) as e:
            raise DatabaseError(f"Malformed task row: {e}") from e

"""Task storage on a PostgREST-style REST row store."""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from .config import (
    ALL_TASKS_FOLDER,
    DEFAULT_FOLDERS,
    DEFAULT_REST_TIMEOUT,
    DEFAULT_USER_ID,
)
from .database import UPDATABLE_FIELDS
from .exceptions import (
    DatabaseError,
    DuplicateFolderError,
    FolderNotFoundError,
    TaskNotFoundError,
)
from .interfaces import TaskStore
from .models import Task, TaskPriority, UserSettings, task_from_record

logger = logging.getLogger(__name__)

# PostgreSQL unique_violation
UNIQUE_VIOLATION = "23505"


class RestTaskStore(TaskStore):
    """
    Task store backed by REST endpoints over ``tasks``, ``folders`` and
    ``settings`` tables, filtered by ``user_id``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user_id: str = DEFAULT_USER_ID,
        access_token: str | None = None,
        timeout: float = DEFAULT_REST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize REST store.

        Args:
            base_url: Service root, e.g. "https://project.supabase.co"
            api_key: API key sent in the ``apikey`` header
            user_id: Opaque identifier every row is scoped to
            access_token: Bearer token (defaults to the API key)
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def initialize(self) -> None:
        """Nothing to prepare; the remote schema is managed elsewhere."""
        logger.debug(f"REST store ready at {self.base_url} for user {self.user_id}")

    async def close(self) -> None:
        """Close the HTTP client if the store created it."""
        if self._owns_client:
            await self._client.aclose()

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str],
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                self._url(table),
                params=params,
                json=json,
                headers={**self._headers, **(headers or {})},
            )
        except httpx.HTTPError as e:
            raise DatabaseError(f"Task store unreachable: {e}") from e
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_error:
            raise DatabaseError(
                f"Failed to {action}: HTTP {response.status_code} {response.text[:200]}"
            )

    async def list_tasks(self, folder: str | None = None) -> list[Task]:
        """List tasks newest first, optionally limited to one folder."""
        params = {
            "user_id": f"eq.{self.user_id}",
            "select": "*",
            "order": "created_at.desc",
        }
        if folder is not None and folder != ALL_TASKS_FOLDER:
            params["folder"] = f"eq.{folder}"

        response = await self._request("GET", "tasks", params)
        self._raise_for_status(response, "list tasks")
        return [self._to_task(record) for record in self._json(response)]

    async def get_task(self, task_id: str) -> Task:
        """Get a task by ID."""
        response = await self._request(
            "GET",
            "tasks",
            {"id": f"eq.{task_id}", "user_id": f"eq.{self.user_id}", "select": "*"},
        )
        self._raise_for_status(response, "get task")
        records = self._json(response)
        if not records:
            raise TaskNotFoundError(f"Task with ID {task_id} not found")
        return self._to_task(records[0])

    async def create_task(
        self,
        text: str,
        folder: str,
        due_date: str | None = None,
        due_time: str | None = None,
        priority: str = TaskPriority.MEDIUM.value,
    ) -> Task:
        """Insert a task; the row store assigns ID and creation time."""
        record = {
            "user_id": self.user_id,
            "text": text.strip(),
            "folder": folder,
            "due_date": due_date,
            "due_time": due_time,
            "priority": TaskPriority(priority).value,
            "completed": False,
        }
        response = await self._request(
            "POST",
            "tasks",
            {"select": "*"},
            json=record,
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_status(response, "create task")
        return self._to_task(self._single(self._json(response)))

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        """Patch task fields."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise DatabaseError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        payload = {
            key: value.value if isinstance(value, TaskPriority) else value
            for key, value in changes.items()
        }
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()

        response = await self._request(
            "PATCH",
            "tasks",
            {"id": f"eq.{task_id}", "user_id": f"eq.{self.user_id}", "select": "*"},
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_status(response, "update task")
        records = self._json(response)
        if not records:
            raise TaskNotFoundError(f"Task with ID {task_id} not found")
        return self._to_task(records[0])

    async def delete_task(self, task_id: str) -> None:
        """Delete a task."""
        response = await self._request(
            "DELETE",
            "tasks",
            {"id": f"eq.{task_id}", "user_id": f"eq.{self.user_id}"},
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_status(response, "delete task")
        if not self._json(response):
            raise TaskNotFoundError(f"Task with ID {task_id} not found")

    async def list_folders(self) -> list[str]:
        """List the default folders followed by stored folders in creation order."""
        stored = await self._stored_folders()
        stored_keys = {name.lower() for name in stored}
        defaults = [name for name in DEFAULT_FOLDERS if name.lower() not in stored_keys]
        return [*defaults, *stored]

    async def _stored_folders(self) -> list[str]:
        response = await self._request(
            "GET",
            "folders",
            {
                "user_id": f"eq.{self.user_id}",
                "select": "name",
                "order": "created_at.asc",
            },
        )
        self._raise_for_status(response, "list folders")
        return [record["name"] for record in self._json(response)]

    async def create_folder(self, name: str) -> None:
        """Insert a folder."""
        response = await self._request(
            "POST", "folders", {}, json={"user_id": self.user_id, "name": name}
        )
        if response.status_code == httpx.codes.CONFLICT or (
            response.is_error and UNIQUE_VIOLATION in response.text
        ):
            raise DuplicateFolderError(f"Folder '{name}' already exists")
        self._raise_for_status(response, "create folder")

    async def delete_folder(self, name: str, reassign_to: str) -> int:
        """Move a folder's tasks, then delete the folder."""
        if name not in await self._stored_folders():
            raise FolderNotFoundError(f"Folder '{name}' not found")

        response = await self._request(
            "PATCH",
            "tasks",
            {"user_id": f"eq.{self.user_id}", "folder": f"eq.{name}", "select": "id"},
            json={
                "folder": reassign_to,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_status(response, "reassign folder tasks")
        moved = len(self._json(response))

        response = await self._request(
            "DELETE",
            "folders",
            {"user_id": f"eq.{self.user_id}", "name": f"eq.{name}"},
        )
        self._raise_for_status(response, "delete folder")
        return moved

    async def get_settings(self) -> UserSettings:
        """Get settings, creating the default record when none exists."""
        response = await self._request(
            "GET",
            "settings",
            {"user_id": f"eq.{self.user_id}", "select": "*"},
            headers={"Accept": "application/vnd.pgrst.object+json"},
        )
        # No row: 406 from object mode, 404 from some gateways
        if response.status_code in (httpx.codes.NOT_ACCEPTABLE, httpx.codes.NOT_FOUND):
            logger.info(f"No settings stored for user {self.user_id}, creating defaults")
            return await self.update_settings(UserSettings())
        self._raise_for_status(response, "get settings")
        return UserSettings.from_record(self._json(response))

    async def update_settings(self, settings: UserSettings) -> UserSettings:
        """Upsert the settings record."""
        response = await self._request(
            "POST",
            "settings",
            {"on_conflict": "user_id"},
            json={"user_id": self.user_id, **settings.to_record()},
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        self._raise_for_status(response, "save settings")
        return settings

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DatabaseError(
                f"Task store returned a non-JSON body: {response.text[:200]}"
            ) from e

    @staticmethod
    def _to_task(record: Any) -> Task:
        try:
            return task_from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            raise DatabaseError(f"Malformed task record from task store: {e}") from e

    @staticmethod
    def _single(payload: Any) -> dict[str, Any]:
        if isinstance(payload, list):
            if not payload:
                raise DatabaseError("Task store returned no record")
            return payload[0]
        return payload

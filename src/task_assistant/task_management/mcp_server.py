"""MCP Server for the task assistant using FastMCP."""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from fastmcp import FastMCP

from .assistant_service import (
    TaskAssistantService,
    build_engine,
    build_store,
    create_assistant_service,
)
from .config import (
    DEFAULT_FOLDER,
    DEFAULT_MCP_HOST,
    DEFAULT_MCP_PORT,
    DEFAULT_MCP_SERVER_NAME,
)
from .date_parser import extract_date_from_text, resolve_date, resolve_time
from .exceptions import TaskManagementError
from .folder_detector import detect_folder
from .models import (
    CreateFolderAction,
    CreateTaskAction,
    DefaultTiming,
    DeleteFolderAction,
    DeleteTaskAction,
    ModifyTaskAction,
    TaskPriority,
    UserSettings,
)

logger = logging.getLogger(__name__)

# Create FastMCP server instance
mcp = FastMCP(DEFAULT_MCP_SERVER_NAME)

# Global service (created lazily inside the server's event loop)
_service: TaskAssistantService | None = None
_service_factory: Callable[[], Awaitable[TaskAssistantService]] | None = None
_service_lock = asyncio.Lock()


def get_assistant_service() -> TaskAssistantService:
    """Get the global assistant service instance."""
    if _service is None:
        raise RuntimeError("Task assistant service not initialized")
    return _service


def set_assistant_service(service: TaskAssistantService | None) -> None:
    """Set the global assistant service instance (for testing)."""
    global _service
    _service = service


def set_service_factory(
    factory: Callable[[], Awaitable[TaskAssistantService]] | None,
) -> None:
    """Set the coroutine factory used to create the service on first use."""
    global _service_factory, _service_lock
    _service_factory = factory
    _service_lock = asyncio.Lock()


async def _ensure_service() -> TaskAssistantService:
    global _service
    if _service is None and _service_factory is not None:
        async with _service_lock:
            # Another tool call may have built it while this one waited
            if _service is None:
                _service = await _service_factory()
    return get_assistant_service()


def _error(e: Exception) -> dict[str, Any]:
    return {"success": False, "error": str(e), "error_type": type(e).__name__}


async def _process_input_impl(text: str) -> dict[str, Any]:
    """Implementation of process_input tool."""
    try:
        service = await _ensure_service()
        result = await service.process_text(text)
        return {"success": True, **result.to_dict()}

    except TaskManagementError as e:
        logger.warning(f"Request not processed: {e}")
        return _error(e)
    except Exception as e:
        logger.error(f"Error processing input: {e}")
        return _error(e)


async def _preview_actions_impl(text: str) -> dict[str, Any]:
    """Implementation of preview_actions tool."""
    try:
        service = await _ensure_service()
        actions = await service.preview(text)
        return {"success": True, "actions": [action.to_dict() for action in actions]}

    except TaskManagementError as e:
        logger.warning(f"Preview failed: {e}")
        return _error(e)
    except Exception as e:
        logger.error(f"Error previewing actions: {e}")
        return _error(e)


async def _list_tasks_impl(
    folder: str | None = None, include_completed: bool = True
) -> dict[str, Any]:
    """Implementation of list_tasks tool."""
    try:
        service = await _ensure_service()
        tasks = await service.store.list_tasks(folder=folder)
        if not include_completed:
            tasks = [task for task in tasks if not task.completed]
        return {"success": True, "tasks": [task.to_dict() for task in tasks]}

    except Exception as e:
        logger.error(f"Error listing tasks: {e}")
        return _error(e)


async def _add_task_impl(
    text: str,
    folder: str | None = None,
    due_date: str | None = None,
    due_time: str | None = None,
    priority: str = "medium",
) -> dict[str, Any]:
    """
    Add a task directly, without the completion engine.

    Date and time phrases inside the text ("tomorrow at 3pm") are resolved
    when no explicit due date or time is given.
    """
    try:
        service = await _ensure_service()

        try:
            task_priority = TaskPriority(priority)
        except ValueError:
            return {"success": False, "error": f"Invalid priority: {priority}"}

        now = datetime.now()
        task_text = text
        if due_date:
            parsed_date = resolve_date(due_date, now)
            if parsed_date is None:
                return {"success": False, "error": f"Invalid date: {due_date}"}
            due_date = parsed_date
        if due_time:
            parsed_time = resolve_time(due_time)
            if parsed_time is None:
                return {"success": False, "error": f"Invalid time: {due_time}"}
            due_time = parsed_time
        if not due_date and not due_time:
            extraction = extract_date_from_text(text, now)
            task_text, due_date, due_time = extraction

        if not task_text or not task_text.strip():
            return {"success": False, "error": "Task text must not be empty"}

        folders = await service.store.list_folders()
        action = CreateTaskAction(
            task=task_text.strip(),
            folder=folder or detect_folder(task_text, folders),
            due_date=due_date,
            due_time=due_time,
            priority=task_priority,
        )
        result = (await service.apply_actions([action]))[0]
        return result.to_dict()

    except Exception as e:
        logger.error(f"Error adding task: {e}")
        return _error(e)


async def _complete_task_impl(task_id: str, completed: bool = True) -> dict[str, Any]:
    """Implementation of complete_task tool."""
    try:
        service = await _ensure_service()
        action = ModifyTaskAction(task_id=task_id, changes={"completed": completed})
        result = (await service.apply_actions([action]))[0]
        return result.to_dict()

    except Exception as e:
        logger.error(f"Error completing task: {e}")
        return _error(e)


async def _delete_task_impl(task_id: str) -> dict[str, Any]:
    """Implementation of delete_task tool."""
    try:
        service = await _ensure_service()
        result = (await service.apply_actions([DeleteTaskAction(task_id=task_id)]))[0]
        return result.to_dict()

    except Exception as e:
        logger.error(f"Error deleting task: {e}")
        return _error(e)


async def _list_folders_impl() -> dict[str, Any]:
    """Implementation of list_folders tool."""
    try:
        service = await _ensure_service()
        return {"success": True, "folders": await service.store.list_folders()}

    except Exception as e:
        logger.error(f"Error listing folders: {e}")
        return _error(e)


async def _create_folder_impl(name: str) -> dict[str, Any]:
    """Implementation of create_folder tool."""
    try:
        service = await _ensure_service()
        result = (await service.apply_actions([CreateFolderAction(folder_name=name)]))[0]
        return result.to_dict()

    except Exception as e:
        logger.error(f"Error creating folder: {e}")
        return _error(e)


async def _delete_folder_impl(name: str) -> dict[str, Any]:
    """Implementation of delete_folder tool."""
    try:
        service = await _ensure_service()
        result = (await service.apply_actions([DeleteFolderAction(folder_name=name)]))[0]
        return result.to_dict()

    except Exception as e:
        logger.error(f"Error deleting folder: {e}")
        return _error(e)


async def _get_settings_impl() -> dict[str, Any]:
    """Implementation of get_settings tool."""
    try:
        service = await _ensure_service()
        settings = await service.store.get_settings()
        return {"success": True, "settings": settings.to_record()}

    except Exception as e:
        logger.error(f"Error getting settings: {e}")
        return _error(e)


async def _update_settings_impl(
    notifications: bool | None = None, default_timing: str | None = None
) -> dict[str, Any]:
    """Implementation of update_settings tool."""
    try:
        service = await _ensure_service()
        current = await service.store.get_settings()

        timing = current.default_timing
        if default_timing is not None:
            try:
                timing = DefaultTiming(default_timing)
            except ValueError:
                return {
                    "success": False,
                    "error": f"Invalid default timing: {default_timing}",
                }

        settings = await service.store.update_settings(
            UserSettings(
                notifications=(
                    current.notifications if notifications is None else notifications
                ),
                default_timing=timing,
            )
        )
        return {"success": True, "settings": settings.to_record()}

    except Exception as e:
        logger.error(f"Error updating settings: {e}")
        return _error(e)


# FastMCP decorated wrappers (for actual MCP server)
@mcp.tool()
async def process_input(text: str) -> dict[str, Any]:
    """
    Turn a natural-language request into task actions and apply them.

    Args:
        text: Request such as "buy milk tomorrow" or "delete my dentist task"

    Returns:
        Dictionary with per-action results
    """
    return await _process_input_impl(text=text)


@mcp.tool()
async def preview_actions(text: str) -> dict[str, Any]:
    """
    Show the actions a request would produce without applying them.

    Args:
        text: Natural-language request

    Returns:
        Dictionary with the extracted actions
    """
    return await _preview_actions_impl(text=text)


@mcp.tool()
async def list_tasks(
    folder: str | None = None, include_completed: bool = True
) -> dict[str, Any]:
    """
    List tasks, newest first.

    Args:
        folder: Only tasks in this folder ("All Tasks" or omitted for all)
        include_completed: Whether completed tasks are included

    Returns:
        Dictionary with tasks list
    """
    return await _list_tasks_impl(folder=folder, include_completed=include_completed)


@mcp.tool()
async def add_task(
    text: str,
    folder: str | None = None,
    due_date: str | None = None,
    due_time: str | None = None,
    priority: str = "medium",
) -> dict[str, Any]:
    """
    Add a task directly.

    Args:
        text: Task text; "tomorrow at 3pm" style phrases are resolved
        folder: Folder name (inferred from the text when omitted)
        due_date: Due date, "YYYY-MM-DD" or a phrase such as "next friday"
        due_time: Due time, "HH:MM" or a phrase such as "3pm"
        priority: Task priority (low, medium, high)

    Returns:
        Dictionary with the created task and success status
    """
    return await _add_task_impl(
        text=text,
        folder=folder,
        due_date=due_date,
        due_time=due_time,
        priority=priority,
    )


@mcp.tool()
async def complete_task(task_id: str, completed: bool = True) -> dict[str, Any]:
    """
    Mark a task as completed (or reopen it).

    Args:
        task_id: Task ID
        completed: New completion state

    Returns:
        Dictionary with the updated task and success status
    """
    return await _complete_task_impl(task_id=task_id, completed=completed)


@mcp.tool()
async def delete_task(task_id: str) -> dict[str, Any]:
    """
    Delete a task.

    Args:
        task_id: Task ID

    Returns:
        Dictionary with success status
    """
    return await _delete_task_impl(task_id=task_id)


@mcp.tool()
async def list_folders() -> dict[str, Any]:
    """
    List folder names.

    Returns:
        Dictionary with folder names
    """
    return await _list_folders_impl()


@mcp.tool()
async def create_folder(name: str) -> dict[str, Any]:
    """
    Create a folder.

    Args:
        name: Folder name

    Returns:
        Dictionary with success status
    """
    return await _create_folder_impl(name=name)


@mcp.tool()
async def delete_folder(name: str) -> dict[str, Any]:
    """
    Delete a folder and move its tasks to the default folder.

    Args:
        name: Folder name (Work, Personal and Shopping cannot be deleted)

    Returns:
        Dictionary with success status
    """
    return await _delete_folder_impl(name=name)


@mcp.tool()
async def get_settings() -> dict[str, Any]:
    """
    Get notification and default timing settings.

    Returns:
        Dictionary with settings
    """
    return await _get_settings_impl()


@mcp.tool()
async def update_settings(
    notifications: bool | None = None, default_timing: str | None = None
) -> dict[str, Any]:
    """
    Update settings.

    Args:
        notifications: Enable or disable reminders
        default_timing: manual, smart, end_of_today, tomorrow_morning or
            next_business_day

    Returns:
        Dictionary with the stored settings
    """
    return await _update_settings_impl(
        notifications=notifications, default_timing=default_timing
    )


async def _default_service() -> TaskAssistantService:
    service = await create_assistant_service(build_store(), build_engine())
    logger.info(f"MCP Server initialized, tasks default to folder '{DEFAULT_FOLDER}'")
    return service


def cli_entry() -> None:
    """CLI entry point for the MCP server."""
    transport_type = "stdio"
    if len(sys.argv) > 1 and sys.argv[1] in ("stdio", "sse", "http"):
        transport_type = "sse" if sys.argv[1] == "http" else sys.argv[1]

    # The service is built on the first tool call, inside FastMCP's event loop
    set_service_factory(_default_service)
    logger.info(f"Starting MCP server (transport={transport_type})")

    if transport_type == "stdio":
        mcp.run(transport="stdio")
    else:
        logger.info(f"Server will listen on http://{DEFAULT_MCP_HOST}:{DEFAULT_MCP_PORT}")
        mcp.run(transport="sse", host=DEFAULT_MCP_HOST, port=DEFAULT_MCP_PORT)


if __name__ == "__main__":
    cli_entry()

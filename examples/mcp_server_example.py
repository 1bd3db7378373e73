"""Example demonstrating the MCP tools without a running completion backend."""

import asyncio
import json
import logging

from task_assistant.task_management.assistant_service import create_assistant_service
from task_assistant.task_management.database import TaskDatabase
from task_assistant.task_management.interfaces import CompletionEngine
from task_assistant.task_management.mcp_server import (
    _add_task_impl,
    _delete_folder_impl,
    _list_folders_impl,
    _list_tasks_impl,
    _preview_actions_impl,
    _process_input_impl,
    set_assistant_service,
)

logging.basicConfig(level=logging.INFO)


class ScriptedEngine(CompletionEngine):
    """Completion engine that answers every prompt with a fixed reply."""

    def __init__(self, reply: list[dict]) -> None:
        self.reply = reply

    async def complete(self, prompt: str) -> str:
        return "Here are the actions:\n" + json.dumps(self.reply)


async def main() -> None:
    """Demonstrate MCP tool functionality."""
    engine = ScriptedEngine(
        [
            {"action": "create_folder", "folderName": "Travel"},
            {"action": "create", "task": "Book flights", "folder": "Travel"},
            {"action": "create", "task": "Buy sunscreen", "dueDate": "this weekend"},
        ]
    )
    service = await create_assistant_service(TaskDatabase(":memory:"), engine)
    set_assistant_service(service)

    # Example 1: Preview what a request would do
    print("=== Previewing a request ===")
    result = await _preview_actions_impl("make a travel folder with flights and sunscreen")
    print(f"Preview: {result['actions']}")
    print()

    # Example 2: Apply the same request
    print("=== Processing a request ===")
    result = await _process_input_impl("make a travel folder with flights and sunscreen")
    print(f"Applied {result['applied']} of {len(result['results'])} action(s)")
    print()

    # Example 3: Add a task directly
    print("=== Adding a task directly ===")
    result = await _add_task_impl("Call mom tomorrow at 3pm")
    print(f"Add task result: {result['task']}")
    print()

    # Example 4: List tasks and folders
    print("=== Listing tasks ===")
    result = await _list_tasks_impl()
    for task in result["tasks"]:
        print(f"  {task['text']} ({task['folder']}) due {task['dueDate']} {task['dueTime']}")
    print(f"Folders: {(await _list_folders_impl())['folders']}")
    print()

    # Example 5: Default folders are protected
    print("=== Deleting the Work folder ===")
    result = await _delete_folder_impl("Work")
    print(f"Delete result: {result['error']} ({result['error_type']})")
    print()

    # Cleanup
    await service.shutdown()
    set_assistant_service(None)


if __name__ == "__main__":
    asyncio.run(main())

"""Command-line interface for the task assistant."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from .logging_utils import configure_logging
from .task_management.assistant_service import (
    TaskAssistantService,
    build_engine,
    build_store,
    create_assistant_service,
)
from .task_management.config import (
    ALL_TASKS_FOLDER,
    DEFAULT_COMPLETION_URL,
    DEFAULT_DATABASE_PATH,
    DEFAULT_EXTRACTION_TIMEOUT,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_USER_ID,
)
from .task_management.date_parser import extract_date_from_text
from .task_management.exceptions import ExtractionError, TaskManagementError
from .task_management.folder_detector import detect_folder
from .task_management.models import (
    Action,
    AppliedResult,
    CreateTaskAction,
    DefaultTiming,
    Task,
    UserSettings,
)

logger = logging.getLogger(__name__)


def format_task(task: Task) -> str:
    """Format a task as a single line."""
    mark = "✔" if task.completed else " "
    due = " ".join(part for part in (task.due_date, task.due_time) if part)
    line = f"[{mark}] {task.text} ({task.folder}, {task.priority.value})"
    if due:
        line += f" due {due}"
    return f"{line}  #{task.id}"


def print_result(result: AppliedResult) -> None:
    """Print the outcome of one applied action."""
    action = result.action.action_type.value
    if result.success:
        detail = format_task(result.task) if result.task else ""
        print(f"✅ {action} {detail}".rstrip())
    else:
        print(f"❌ {action} failed: {result.error} ({result.error_type})")


def print_actions(actions: list[Action]) -> None:
    """Print previewed actions without applying them."""
    print(f"👀 {len(actions)} action(s) would be applied:")
    for index, action in enumerate(actions, 1):
        fields = ", ".join(
            f"{key}={value}"
            for key, value in action.to_dict().items()
            if key != "action" and value is not None
        )
        print(f"  {index}. {action.action_type.value}: {fields}")


async def add_task_directly(service: TaskAssistantService, text: str) -> list[AppliedResult]:
    """
    Create a task from text without the completion engine.

    Date and time phrases in the text become the due fields.

    Args:
        service: Assistant service
        text: Task text such as "Call mom tomorrow at 3pm"

    Returns:
        Single-element list with the applied result
    """
    task_text, due_date, due_time = extract_date_from_text(text, datetime.now())
    folders = await service.store.list_folders()
    action = CreateTaskAction(
        task=task_text or text.strip(),
        folder=detect_folder(task_text or text, folders),
        due_date=due_date,
        due_time=due_time,
    )
    return await service.apply_actions([action])


async def list_tasks(service: TaskAssistantService, folder: str) -> None:
    """Print tasks, newest first."""
    tasks = await service.store.list_tasks(folder=folder)
    if not tasks:
        print("📭 No tasks.")
        return
    print(f"📋 {len(tasks)} task(s) in {folder}:")
    for task in tasks:
        print(f"  {format_task(task)}")


async def main(args: argparse.Namespace) -> int:
    """
    Run one CLI command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Process exit status
    """
    store = build_store(db_path=args.db, user_id=args.user)
    engine = build_engine(
        kind=args.engine,
        url=args.completion_url,
        model=args.model,
        timeout=args.timeout,
    )
    service = await create_assistant_service(store, engine, timeout=args.timeout)

    try:
        if args.timing:
            settings = await store.get_settings()
            await store.update_settings(
                UserSettings(
                    notifications=settings.notifications,
                    default_timing=DefaultTiming(args.timing),
                )
            )
            print(f"⚙️  Default timing set to {args.timing}")

        if args.list is not None:
            await list_tasks(service, args.list)
            return 0

        if not args.text:
            if not args.timing:
                print("❌ Please enter a task description.")
                return 1
            return 0

        text = " ".join(args.text)

        if args.add:
            results = await add_task_directly(service, text)
        elif args.preview:
            print_actions(await service.preview(text))
            return 0
        else:
            result = await service.process_text(text)
            results = result.results

        for applied in results:
            print_result(applied)
        return 0 if all(applied.success for applied in results) else 2

    except ExtractionError as e:
        print(f"❌ {e}")
        return 1
    except TaskManagementError as e:
        print(f"❌ {e} ({type(e).__name__})")
        return 1
    finally:
        await service.shutdown()


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Task Assistant CLI - Manage to-do tasks with natural language",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  task-assistant buy milk tomorrow                     # Extract and apply
  task-assistant --preview move the dentist task to friday
  task-assistant --add call mom tomorrow at 3pm        # Create without the engine
  task-assistant --list                                # Show all tasks
  task-assistant --list Work                           # Show one folder
  task-assistant --timing smart                        # Change default timing
  task-assistant --engine ollama --model llama3.2:3b finish report by eow
  task-assistant -v delete the grocery task            # Verbose logging
        """,
    )

    parser.add_argument(
        "text",
        nargs="*",
        help="Natural-language request, e.g. 'buy milk tomorrow'",
    )

    parser.add_argument(
        "--preview",
        action="store_true",
        help="Show the extracted actions without applying them",
    )

    parser.add_argument(
        "--add",
        action="store_true",
        help="Create the text as a task directly, resolving date phrases locally",
    )

    parser.add_argument(
        "--list",
        nargs="?",
        const=ALL_TASKS_FOLDER,
        default=None,
        metavar="FOLDER",
        help="List tasks (optionally of one folder) and exit",
    )

    parser.add_argument(
        "--timing",
        choices=[timing.value for timing in DefaultTiming],
        default=None,
        help="Store a new default timing policy for tasks without a due date",
    )

    parser.add_argument(
        "--engine",
        choices=["http", "ollama"],
        default="http",
        help="Completion engine (default: http)",
    )

    parser.add_argument(
        "--completion-url",
        type=str,
        default=DEFAULT_COMPLETION_URL,
        metavar="URL",
        help=f"Extraction endpoint for the http engine (default: {DEFAULT_COMPLETION_URL})",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=DEFAULT_OLLAMA_MODEL,
        help=f"Model for the ollama engine (default: {DEFAULT_OLLAMA_MODEL})",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_EXTRACTION_TIMEOUT,
        metavar="SECONDS",
        help=f"Extraction timeout in seconds (default: {DEFAULT_EXTRACTION_TIMEOUT:g})",
    )

    parser.add_argument(
        "--db",
        type=str,
        default=DEFAULT_DATABASE_PATH,
        metavar="PATH",
        help=f"SQLite database path (default: {DEFAULT_DATABASE_PATH})",
    )

    parser.add_argument(
        "--user",
        type=str,
        default=DEFAULT_USER_ID,
        help=f"User ID all tasks are scoped to (default: {DEFAULT_USER_ID})",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging and debug information",
    )

    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable trace logging (includes prompts and raw engine responses)",
    )

    return parser


def handle_arguments(args: argparse.Namespace) -> bool:
    """
    Handle parsed command-line arguments.

    Args:
        args: Parsed arguments from argparse

    Returns:
        True if execution should continue, False for invalid combinations
    """
    configure_logging(verbose=args.verbose, trace=args.trace)

    if args.add and args.preview:
        print("❌ --add and --preview cannot be combined.")
        return False
    if args.timeout <= 0:
        print("❌ --timeout must be positive.")
        return False
    return True


def cli_entry_with_args() -> None:
    """CLI entry point with argument parsing."""
    parser = create_argument_parser()

    try:
        args = parser.parse_args()

        if not handle_arguments(args):
            sys.exit(1)

        sys.exit(asyncio.run(main(args)))

    except KeyboardInterrupt:
        pass  # Graceful shutdown
    except SystemExit:
        # Re-raise SystemExit (from argparse help, etc.)
        raise
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli_entry_with_args()

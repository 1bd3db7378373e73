"""Extraction prompt construction."""

from collections.abc import Sequence
from datetime import datetime, timedelta

from .config import ALL_TASKS_FOLDER, MAX_INPUT_CHARS
from .date_parser import MONDAY, next_weekday
from .models import DefaultTiming, Task

# Placeholders: {now_date}, {day_name}, {now_time}, {anchors}, {timing_hint},
# {folders}, {tasks}, {tomorrow}, {text}
EXTRACTION_PROMPT_TEMPLATE = """You turn to-do requests into JSON actions.

Current date: {now_date} ({day_name})
Current time: {now_time}

Time references (already computed, copy them exactly):
{anchors}

Default timing: {timing_hint}

Existing folders:
{folders}

Existing tasks (newest first, position 0 is the most recently added):
{tasks}

Output ONLY a JSON array. Each element is one of:
{{"action": "create", "task": "text", "dueDate": "YYYY-MM-DD or null", "dueTime": "HH:MM or null", "folder": "name", "priority": "low/medium/high"}}
{{"action": "modify", "taskId": "id", "matchedTask": "text of that task", "changes": {{"dueDate": "YYYY-MM-DD", "dueTime": "HH:MM", "task": "new text", "folder": "name", "priority": "low/medium/high", "completed": true}}}}
{{"action": "delete", "taskId": "id", "matchedTask": "text of that task"}}
{{"action": "create_folder", "folderName": "name"}}
{{"action": "delete_folder", "folderName": "name"}}

Rules:
- Task text: keep the details (names, places, quantities), drop filler words ("um", "please", "I need to", "remind me to") and drop the date and time words.
- Merge fragments that belong to one task; split clearly separate tasks into separate actions.
- Folder: a folder the user names explicitly wins; otherwise shopping words go to "Shopping", work words (meeting, email, report, project, client) go to "Work"; otherwise "Personal".
- If the user asks for a folder that does not exist, emit create_folder first, then the tasks that use it.
- dueDate is ONLY a date (YYYY-MM-DD). dueTime is ONLY a time (HH:MM, 24-hour). Never put both in one field. Use null when not given.
- "in N minutes/hours" means the current time plus exactly that offset.
- modify and delete must use a taskId from the existing tasks. Include only the fields that change in "changes".
- "last added", "that one", "the previous task" refer to position 0.
- Bulk requests ("delete all tasks on Monday") produce one action per matching task. If nothing matches, output [].
- Do not delete the folders "Work", "Personal" or "Shopping".

Examples:
Input: "buy milk and eggs tomorrow"
Output: [{{"action": "create", "task": "Buy milk and eggs", "dueDate": "{tomorrow}", "dueTime": null, "folder": "Shopping", "priority": "medium"}}]

Input: "um call the client about the report at 3pm and pick up dry cleaning"
Output: [{{"action": "create", "task": "Call the client about the report", "dueDate": null, "dueTime": "15:00", "folder": "Work", "priority": "medium"}}, {{"action": "create", "task": "Pick up dry cleaning", "dueDate": null, "dueTime": null, "folder": "Personal", "priority": "medium"}}]

Input: "move my last task to 5pm"
Output: [{{"action": "modify", "taskId": "<id at position 0>", "matchedTask": "<its text>", "changes": {{"dueTime": "17:00"}}}}]

Input: "create a Travel folder and add book flights to it"
Output: [{{"action": "create_folder", "folderName": "Travel"}}, {{"action": "create", "task": "Book flights", "dueDate": null, "dueTime": null, "folder": "Travel", "priority": "medium"}}]

User input:
"{text}"
"""

TIMING_HINTS = {
    DefaultTiming.MANUAL: "leave dueDate and dueTime null unless the user gives them",
    DefaultTiming.SMART: "leave dueDate and dueTime null unless the user gives them; smart defaults are applied later",
    DefaultTiming.END_OF_TODAY: "leave dueDate and dueTime null unless the user gives them; undated tasks default to today 23:59",
    DefaultTiming.TOMORROW_MORNING: "leave dueDate and dueTime null unless the user gives them; undated tasks default to tomorrow 09:00",
    DefaultTiming.NEXT_BUSINESS_DAY: "leave dueDate and dueTime null unless the user gives them; undated tasks default to the next business day 09:00",
}


def sanitize_input(text: str) -> str:
    """Flatten and truncate user input before embedding it in the prompt."""
    flattened = " ".join(text.split())
    return flattened.replace('"', "'")[:MAX_INPUT_CHARS]


def _format_anchors(now: datetime) -> str:
    in_10 = now + timedelta(minutes=10)
    in_30 = now + timedelta(minutes=30)
    in_60 = now + timedelta(hours=1)
    tomorrow = now.date() + timedelta(days=1)
    monday = next_weekday(now.date(), MONDAY)
    lines = [
        f'- "in 10 minutes" = dueDate {in_10:%Y-%m-%d}, dueTime {in_10:%H:%M}',
        f'- "in 30 minutes" = dueDate {in_30:%Y-%m-%d}, dueTime {in_30:%H:%M}',
        f'- "in 1 hour" = dueDate {in_60:%Y-%m-%d}, dueTime {in_60:%H:%M}',
        f'- "today" = {now:%Y-%m-%d}',
        f'- "tomorrow" = {tomorrow.isoformat()}',
        f'- "this evening" = dueDate {now:%Y-%m-%d}, dueTime 18:00',
        f'- "tomorrow morning" = dueDate {tomorrow.isoformat()}, dueTime 09:00',
        f'- "next Monday" = {monday.isoformat()}',
    ]
    return "\n".join(lines)


def _format_task(position: int, task: Task) -> str:
    due = " ".join(part for part in (task.due_date, task.due_time) if part) or "no due date"
    status = "done" if task.completed else "open"
    return (
        f'{position}. id={task.id} | "{task.text}" | folder={task.folder} '
        f"| due={due} | {status}"
    )


def build_extraction_prompt(
    text: str,
    now: datetime,
    default_timing: DefaultTiming | str,
    existing_tasks: Sequence[Task],
    existing_folders: Sequence[str],
) -> str:
    """
    Build the extraction prompt for one request.

    Args:
        text: Raw user input
        now: Reference instant for every computed date in the prompt
        default_timing: User's default timing policy
        existing_tasks: Tasks the engine may reference
        existing_folders: Folder names of the user

    Returns:
        Prompt string
    """
    ordered = sorted(existing_tasks, key=lambda task: task.created_at, reverse=True)
    tasks_block = (
        "\n".join(_format_task(i, task) for i, task in enumerate(ordered))
        or "(none)"
    )
    folders = [folder for folder in existing_folders if folder != ALL_TASKS_FOLDER]
    folders_block = ", ".join(folders) or "(none)"

    try:
        timing_hint = TIMING_HINTS[DefaultTiming(default_timing)]
    except ValueError:
        timing_hint = TIMING_HINTS[DefaultTiming.TOMORROW_MORNING]

    return EXTRACTION_PROMPT_TEMPLATE.format(
        now_date=now.strftime("%Y-%m-%d"),
        day_name=now.strftime("%A"),
        now_time=now.strftime("%H:%M"),
        anchors=_format_anchors(now),
        timing_hint=timing_hint,
        folders=folders_block,
        tasks=tasks_block,
        tomorrow=(now.date() + timedelta(days=1)).isoformat(),
        text=sanitize_input(text),
    )

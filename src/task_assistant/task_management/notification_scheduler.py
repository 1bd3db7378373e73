"""Reminder scheduling on the asyncio event loop."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from .config import EARLY_WARNING_MINUTES, NOTIFICATION_LOOKAHEAD_HOURS
from .interfaces import Notifier
from .models import Task

logger = logging.getLogger(__name__)

DUE_SOON = "due_soon"
TASK_STARTING = "task_starting"

NotifyCallback = Callable[[Task, str], None]


def log_notification(task: Task, kind: str) -> None:
    """Default delivery: write the reminder to the log."""
    if kind == DUE_SOON:
        logger.info(f"🔔 '{task.text}' is due in {EARLY_WARNING_MINUTES} minutes")
    else:
        logger.info(f"⏰ '{task.text}' is due now")


class NotificationScheduler(Notifier):
    """
    Owns the reminder timers of every task.

    Each task with a due date and time gets up to two timers: an early warning
    shortly before the due instant and one at the due instant. Only reminders
    that fall within the lookahead window are scheduled.
    """

    def __init__(
        self,
        on_notify: NotifyCallback = log_notification,
        early_warning: timedelta = timedelta(minutes=EARLY_WARNING_MINUTES),
        lookahead: timedelta = timedelta(hours=NOTIFICATION_LOOKAHEAD_HOURS),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            on_notify: Called with (task, kind) when a reminder fires
            early_warning: How long before the due instant the warning fires
            lookahead: Reminders further out than this are not scheduled
            clock: Source of the current time
        """
        self._on_notify = on_notify
        self._early_warning = early_warning
        self._lookahead = lookahead
        self._clock = clock
        self._timers: dict[str, list[asyncio.TimerHandle]] = {}

    @property
    def scheduled_count(self) -> int:
        """Number of tasks with pending reminders."""
        return len(self._timers)

    def is_scheduled(self, task_id: str) -> bool:
        return task_id in self._timers

    def schedule_notification(self, task: Task, now: datetime | None = None) -> None:
        """
        Schedule reminders for a task, replacing any it already has.

        Args:
            task: Task with both due date and due time
            now: Reference instant (defaults to the scheduler clock)
        """
        self.cancel_scheduled_notification(task.id)

        due_at = task.due_at
        if due_at is None or task.completed:
            logger.debug(f"No reminder for task {task.id}: no due instant or completed")
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, reminder for task {task.id} skipped")
            return

        reference = now or self._clock()
        handles: list[asyncio.TimerHandle] = []
        for kind, fire_at in (
            (DUE_SOON, due_at - self._early_warning),
            (TASK_STARTING, due_at),
        ):
            delay = fire_at - reference
            if timedelta(0) < delay <= self._lookahead:
                handle = loop.call_later(
                    delay.total_seconds(), self._fire, task, kind
                )
                handles.append(handle)

        if handles:
            self._timers[task.id] = handles
            logger.debug(f"Scheduled {len(handles)} reminder(s) for task {task.id}")

    def _fire(self, task: Task, kind: str) -> None:
        loop_time = asyncio.get_running_loop().time()
        remaining = [
            handle for handle in self._timers.get(task.id, []) if handle.when() > loop_time
        ]
        if remaining:
            self._timers[task.id] = remaining
        else:
            self._timers.pop(task.id, None)

        try:
            self._on_notify(task, kind)
        except Exception as e:
            logger.error(f"Reminder delivery failed for task {task.id}: {e}")

    def cancel_scheduled_notification(self, task_id: str) -> None:
        """Cancel all reminders of a task."""
        for handle in self._timers.pop(task_id, []):
            handle.cancel()

    def clear_all_scheduled(self) -> None:
        """Cancel every reminder."""
        for task_id in list(self._timers):
            self.cancel_scheduled_notification(task_id)
        logger.debug("Cleared all scheduled reminders")

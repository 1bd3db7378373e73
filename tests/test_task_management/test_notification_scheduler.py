"""Tests for reminder scheduling."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest

from task_assistant.task_management.models import Task
from task_assistant.task_management.notification_scheduler import (
    DUE_SOON,
    TASK_STARTING,
    NotificationScheduler,
)


def task_due_at(due: datetime, task_id: str = "t1", completed: bool = False) -> Task:
    """Create a task due at the given minute."""
    return Task(
        id=task_id,
        text="Call mom",
        due_date=due.strftime("%Y-%m-%d"),
        due_time=due.strftime("%H:%M"),
        completed=completed,
    )


DUE = datetime(2025, 12, 5, 15, 0)


@pytest.mark.unit
class TestScheduling:
    """Test cases for scheduling and cancelling reminders."""

    @pytest.mark.asyncio
    async def test_schedules_warning_and_due_reminders(self) -> None:
        """Test both reminders are scheduled within the lookahead window."""
        scheduler = NotificationScheduler()

        scheduler.schedule_notification(task_due_at(DUE), now=DUE - timedelta(hours=1))

        assert scheduler.is_scheduled("t1")
        assert len(scheduler._timers["t1"]) == 2
        scheduler.clear_all_scheduled()

    @pytest.mark.asyncio
    async def test_only_due_reminder_when_warning_has_passed(self) -> None:
        """Test the early warning is skipped when already in the past."""
        scheduler = NotificationScheduler()

        scheduler.schedule_notification(task_due_at(DUE), now=DUE - timedelta(minutes=2))

        assert len(scheduler._timers["t1"]) == 1
        scheduler.clear_all_scheduled()

    @pytest.mark.asyncio
    async def test_skips_completed_undated_past_and_distant_tasks(self) -> None:
        """Test tasks that should not get reminders."""
        scheduler = NotificationScheduler()
        now = DUE - timedelta(hours=1)

        scheduler.schedule_notification(task_due_at(DUE, "done", completed=True), now=now)
        scheduler.schedule_notification(Task(id="undated", text="x"), now=now)
        scheduler.schedule_notification(
            Task(id="date-only", text="x", due_date="2025-12-05"), now=now
        )
        scheduler.schedule_notification(task_due_at(DUE - timedelta(hours=2), "past"), now=now)
        scheduler.schedule_notification(task_due_at(DUE + timedelta(days=2), "far"), now=now)

        assert scheduler.scheduled_count == 0

    @pytest.mark.asyncio
    async def test_rescheduling_replaces_existing_timers(self) -> None:
        """Test a second schedule call cancels the first timers."""
        scheduler = NotificationScheduler()
        now = DUE - timedelta(hours=1)
        scheduler.schedule_notification(task_due_at(DUE), now=now)
        first = list(scheduler._timers["t1"])

        scheduler.schedule_notification(task_due_at(DUE + timedelta(minutes=30)), now=now)

        assert all(handle.cancelled() for handle in first)
        assert scheduler.scheduled_count == 1
        scheduler.clear_all_scheduled()

    @pytest.mark.asyncio
    async def test_cancel_and_clear(self) -> None:
        """Test cancelling one task and clearing all."""
        scheduler = NotificationScheduler()
        now = DUE - timedelta(hours=1)
        scheduler.schedule_notification(task_due_at(DUE, "a"), now=now)
        scheduler.schedule_notification(task_due_at(DUE, "b"), now=now)

        scheduler.cancel_scheduled_notification("a")
        assert not scheduler.is_scheduled("a")
        assert scheduler.is_scheduled("b")

        scheduler.clear_all_scheduled()
        assert scheduler.scheduled_count == 0

    def test_without_running_loop_nothing_is_scheduled(self) -> None:
        """Test scheduling outside an event loop is skipped, not raised."""
        scheduler = NotificationScheduler()

        scheduler.schedule_notification(task_due_at(DUE), now=DUE - timedelta(hours=1))

        assert scheduler.scheduled_count == 0

    def test_cancel_unknown_task_is_noop(self) -> None:
        """Test cancelling a task without reminders."""
        NotificationScheduler().cancel_scheduled_notification("missing")


@pytest.mark.unit
class TestFiring:
    """Test cases for reminder delivery."""

    @pytest.mark.asyncio
    async def test_due_reminder_fires_callback(self) -> None:
        """Test the callback receives the task and reminder kind."""
        on_notify = Mock()
        scheduler = NotificationScheduler(on_notify=on_notify)
        task = task_due_at(DUE)

        scheduler.schedule_notification(task, now=DUE - timedelta(seconds=0.05))
        await asyncio.sleep(0.2)

        on_notify.assert_called_once_with(task, TASK_STARTING)
        assert scheduler.scheduled_count == 0

    @pytest.mark.asyncio
    async def test_early_warning_fires_first(self) -> None:
        """Test the warning fires before the due reminder."""
        on_notify = Mock()
        scheduler = NotificationScheduler(
            on_notify=on_notify, early_warning=timedelta(seconds=0.4)
        )
        task = task_due_at(DUE)

        scheduler.schedule_notification(task, now=DUE - timedelta(seconds=0.5))
        await asyncio.sleep(0.25)

        on_notify.assert_called_once_with(task, DUE_SOON)
        assert scheduler.is_scheduled("t1")
        scheduler.clear_all_scheduled()

    @pytest.mark.asyncio
    async def test_callback_errors_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a failing callback does not break the loop."""
        scheduler = NotificationScheduler(on_notify=Mock(side_effect=RuntimeError("boom")))

        scheduler.schedule_notification(task_due_at(DUE), now=DUE - timedelta(seconds=0.05))
        await asyncio.sleep(0.2)

        assert "boom" in caplog.text

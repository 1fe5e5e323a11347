"""Pre-session reminders as cancellable one-shot timers.

Timers live on the event loop of the process that scheduled them; they are not
persisted and vanish on restart. Each timer is tracked under the
``(session_id, connection_id)`` that asked for it so leaving, ending the
session, or rescheduling/cancelling it in the database can drop stale
reminders.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable
    from collections.abc import Callable
    from datetime import datetime

logger = logging.getLogger(__name__)

REMINDER_OFFSETS: tuple[tuple[timedelta, str], ...] = (
    (timedelta(minutes=15), "15 minutes"),
    (timedelta(minutes=5), "5 minutes"),
    (timedelta(minutes=1), "1 minute"),
)

# Strong references to reminder callbacks that are currently running.
_inflight: set[asyncio.Future] = set()


@dataclass(frozen=True)
class PlannedReminder:
    offset: timedelta
    label: str
    delay: float


def reminder_plan(scheduled_at: datetime, now: datetime) -> list[PlannedReminder]:
    """Return the reminders still ahead of ``now``.

    An offset is kept only when the session starts strictly more than that
    offset from now; offsets already passed are dropped, never fired late.
    """

    time_until = scheduled_at - now
    return [
        PlannedReminder(
            offset=offset,
            label=label,
            delay=(time_until - offset).total_seconds(),
        )
        for offset, label in REMINDER_OFFSETS
        if time_until > offset
    ]


def _current_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ScheduledTask:
    """One timer that runs an async callback once unless cancelled first."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        on_fire: Callable[[ScheduledTask], None] | None = None,
    ) -> None:
        self._loop = loop
        self._callback = callback
        self._on_fire = on_fire
        self._cancelled = False
        self._fired = False
        self._handle = loop.call_later(max(delay, 0.0), self._fire)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._fired

    def cancel(self) -> bool:
        """Stop the timer. Returns False if it already fired or was cancelled.

        Safe to call from threads other than the timer's event loop.
        """

        if self._fired or self._cancelled:
            return False
        self._cancelled = True
        if self._loop.is_closed():
            return True
        if _current_loop() is self._loop:
            self._handle.cancel()
        else:
            self._loop.call_soon_threadsafe(self._handle.cancel)
        return True

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._fired = True
        if self._on_fire is not None:
            self._on_fire(self)
        future = asyncio.ensure_future(self._run(), loop=self._loop)
        _inflight.add(future)
        future.add_done_callback(_inflight.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("Scheduled reminder callback failed")


class ReminderScheduler:
    """Registry of pending reminder timers keyed by session and connection."""

    def __init__(self) -> None:
        self._tasks: dict[tuple[str, str], list[ScheduledTask]] = {}
        # Django signal handlers cancel from worker threads.
        self._lock = threading.Lock()

    def schedule(
        self,
        session_id: str,
        connection_id: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> ScheduledTask:
        """Run ``callback`` after ``delay`` seconds on the running event loop."""

        key = (session_id, connection_id)
        task = ScheduledTask(
            asyncio.get_running_loop(),
            delay,
            callback,
            on_fire=lambda fired: self._forget(key, fired),
        )
        with self._lock:
            self._tasks.setdefault(key, []).append(task)
        return task

    def cancel(self, session_id: str, connection_id: str) -> int:
        with self._lock:
            tasks = self._tasks.pop((session_id, connection_id), [])
        return self._cancel_all(tasks)

    def cancel_connection(self, connection_id: str) -> int:
        with self._lock:
            keys = [key for key in self._tasks if key[1] == connection_id]
            tasks = [task for key in keys for task in self._tasks.pop(key)]
        return self._cancel_all(tasks)

    def cancel_session(self, session_id: str) -> int:
        with self._lock:
            keys = [key for key in self._tasks if key[0] == session_id]
            tasks = [task for key in keys for task in self._tasks.pop(key)]
        return self._cancel_all(tasks)

    def pending(
        self,
        session_id: str | None = None,
        connection_id: str | None = None,
    ) -> list[ScheduledTask]:
        with self._lock:
            return [
                task
                for (sess, conn), tasks in self._tasks.items()
                if (session_id is None or sess == session_id)
                and (connection_id is None or conn == connection_id)
                for task in tasks
            ]

    def _forget(self, key: tuple[str, str], task: ScheduledTask) -> None:
        with self._lock:
            tasks = self._tasks.get(key)
            if not tasks:
                return
            if task in tasks:
                tasks.remove(task)
            if not tasks:
                del self._tasks[key]

    @staticmethod
    def _cancel_all(tasks: list[ScheduledTask]) -> int:
        return sum(1 for task in tasks if task.cancel())


reminder_scheduler = ReminderScheduler()

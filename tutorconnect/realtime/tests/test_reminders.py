import asyncio
from datetime import timedelta
from unittest import mock

from tutorconnect.realtime.reminders import ReminderScheduler
from tutorconnect.realtime.reminders import reminder_plan

from .fakes import NOW


def test_plan_keeps_offsets_strictly_ahead():
    plan = reminder_plan(NOW + timedelta(minutes=10), NOW)

    assert [r.label for r in plan] == ["5 minutes", "1 minute"]
    assert [r.delay for r in plan] == [300.0, 540.0]


def test_plan_all_offsets_for_distant_session():
    plan = reminder_plan(NOW + timedelta(hours=2), NOW)

    assert [r.label for r in plan] == ["15 minutes", "5 minutes", "1 minute"]
    assert plan[0].delay == timedelta(minutes=105).total_seconds()


def test_plan_boundary_and_past_sessions():
    # Exactly 15 minutes out: the 15 minute reminder is not sent.
    assert [r.label for r in reminder_plan(NOW + timedelta(minutes=15), NOW)] == [
        "5 minutes",
        "1 minute",
    ]
    assert reminder_plan(NOW + timedelta(seconds=30), NOW) == []
    assert reminder_plan(NOW - timedelta(hours=1), NOW) == []


def test_scheduled_callback_fires_once():
    fired = []

    async def scenario():
        scheduler = ReminderScheduler()

        async def callback():
            fired.append("ping")

        task = scheduler.schedule("7", "sid-a", 0.01, callback)
        assert len(scheduler.pending("7")) == 1
        await asyncio.sleep(0.05)
        return scheduler, task

    scheduler, task = asyncio.run(scenario())

    assert fired == ["ping"]
    assert task.done
    assert scheduler.pending() == []


def test_cancelled_callbacks_never_fire():
    fired = []

    async def scenario():
        scheduler = ReminderScheduler()

        async def callback():
            fired.append("ping")

        scheduler.schedule("7", "sid-a", 0.01, callback)
        scheduler.schedule("7", "sid-b", 0.01, callback)
        scheduler.schedule("8", "sid-a", 0.01, callback)
        dropped_connection = scheduler.cancel_connection("sid-a")
        dropped_session = scheduler.cancel_session("7")
        await asyncio.sleep(0.05)
        return dropped_connection, dropped_session, scheduler

    dropped_connection, dropped_session, scheduler = asyncio.run(scenario())

    assert dropped_connection == 2
    assert dropped_session == 1
    assert fired == []
    assert scheduler.pending() == []


def test_cancel_is_idempotent():
    async def scenario():
        scheduler = ReminderScheduler()

        async def callback():
            return None

        task = scheduler.schedule("7", "sid-a", 60, callback)
        assert task.cancel() is True
        assert task.cancel() is False
        return scheduler.cancel("7", "sid-a")

    # Already cancelled directly, so the registry has nothing left to stop.
    assert asyncio.run(scenario()) == 0


def test_failing_callback_is_logged_not_raised():
    async def scenario():
        scheduler = ReminderScheduler()

        async def callback():
            msg = "socket gone"
            raise RuntimeError(msg)

        scheduler.schedule("7", "sid-a", 0, callback)
        await asyncio.sleep(0.02)

    with mock.patch("tutorconnect.realtime.reminders.logger") as logger:
        asyncio.run(scenario())

    logger.exception.assert_called_once_with("Scheduled reminder callback failed")

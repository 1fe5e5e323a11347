from datetime import timedelta
from unittest import mock

import pytest

from tests.factories import create_session
from tutorconnect.tutoring.models import TutoringSession

pytestmark = pytest.mark.django_db

SCHEDULER = "tutorconnect.tutoring.signals.reminder_scheduler"
RELAY = "tutorconnect.realtime.socketio.relay"


def test_creating_a_session_leaves_reminders_alone():
    with mock.patch(SCHEDULER) as scheduler:
        create_session()

    scheduler.cancel_session.assert_not_called()


def test_rescheduling_cancels_pending_reminders():
    session = create_session()

    with mock.patch(SCHEDULER) as scheduler:
        session.scheduled_at += timedelta(hours=1)
        session.save()

    scheduler.cancel_session.assert_called_once_with(str(session.pk))


def test_cancelling_cancels_pending_reminders():
    session = create_session()

    with mock.patch(SCHEDULER) as scheduler:
        session.status = TutoringSession.Status.CANCELLED
        session.save()
        # Saving again while already cancelled is not a new cancellation.
        session.title = "Renamed"
        session.save()

    scheduler.cancel_session.assert_called_once_with(str(session.pk))


def test_unrelated_edits_keep_reminders():
    session = create_session()

    with mock.patch(SCHEDULER) as scheduler:
        session.title = "Renamed"
        session.save()

    scheduler.cancel_session.assert_not_called()


def test_rescheduling_rearms_reminders_after_commit(django_capture_on_commit_callbacks):
    session = create_session()

    with mock.patch(SCHEDULER), mock.patch(RELAY) as relay:
        with django_capture_on_commit_callbacks(execute=True):
            session.scheduled_at += timedelta(hours=1)
            session.save()

    [call] = relay.rearm_reminders.call_args_list
    ownership = call.args[0]
    assert ownership.session_id == str(session.pk)
    assert ownership.scheduled_at == session.scheduled_at


def test_cancelling_does_not_rearm_reminders(django_capture_on_commit_callbacks):
    session = create_session()

    with mock.patch(SCHEDULER), mock.patch(RELAY) as relay:
        with django_capture_on_commit_callbacks(execute=True):
            session.status = TutoringSession.Status.CANCELLED
            session.save()

    relay.rearm_reminders.assert_not_called()

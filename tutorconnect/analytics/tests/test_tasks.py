from unittest import mock

import pytest

from tutorconnect.analytics.tasks import broadcast_overview_task

pytestmark = pytest.mark.django_db

MANAGER = "tutorconnect.analytics.tasks.socketio.RedisManager"


def test_broadcast_skipped_without_message_queue(settings):
    settings.SOCKETIO_REDIS_URL = ""

    with mock.patch(MANAGER) as manager_cls:
        result = broadcast_overview_task()

    assert result == {"status": "skipped"}
    manager_cls.assert_not_called()


def test_broadcast_publishes_overview_to_default_room(settings):
    settings.SOCKETIO_REDIS_URL = "redis://queue:6379/1"

    with mock.patch(MANAGER) as manager_cls:
        result = broadcast_overview_task()

    assert result == {"status": "sent", "room": "main-analytics"}
    manager_cls.assert_called_once_with("redis://queue:6379/1", write_only=True)
    event, payload = manager_cls.return_value.emit.call_args.args
    assert event == "analytics-broadcast"
    assert payload["type"] == "overview"
    assert payload["triggeredBy"] == "system"
    assert "totalUsers" in payload["data"]
    assert manager_cls.return_value.emit.call_args.kwargs == {
        "room": "analytics_main-analytics",
    }


def test_broadcast_to_named_room(settings):
    settings.SOCKETIO_REDIS_URL = "redis://queue:6379/1"

    with mock.patch(MANAGER) as manager_cls:
        result = broadcast_overview_task("Ops Board")

    assert result["room"] == "Ops Board"
    assert manager_cls.return_value.emit.call_args.kwargs["room"] == (
        "analytics_ops_board"
    )

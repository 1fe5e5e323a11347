import logging

import socketio
from celery import shared_task
from django.conf import settings

from tutorconnect.analytics.aggregates import overview_snapshot
from tutorconnect.realtime.events.analytics import build_analytics_broadcast
from tutorconnect.realtime.relay import room_for_analytics

logger = logging.getLogger(__name__)


@shared_task(name="analytics.broadcast_overview")
def broadcast_overview_task(room_name: str | None = None) -> dict:
    """Push a fresh overview snapshot to an analytics room.

    Publishes through the Socket.IO Redis queue, so it only works when the
    ASGI workers share ``SOCKETIO_REDIS_URL`` with this worker.
    """

    url = getattr(settings, "SOCKETIO_REDIS_URL", "")
    if not url:
        logger.info("SOCKETIO_REDIS_URL not configured, skipping overview broadcast")
        return {"status": "skipped"}

    room_name = room_name or settings.REALTIME_DEFAULT_ANALYTICS_ROOM
    snapshot = overview_snapshot()
    manager = socketio.RedisManager(url, write_only=True)
    manager.emit(
        "analytics-broadcast",
        build_analytics_broadcast("overview", snapshot, triggered_by="system"),
        room=room_for_analytics(room_name),
    )
    logger.info("Broadcast overview snapshot to analytics room %s", room_name)
    return {"status": "sent", "room": room_name}

"""Live session relay.

``SessionRelay`` holds the realtime semantics: who may join which room, how
WebRTC signaling is addressed, which events fan out to whom, and when
reminders fire. It is transport-agnostic; ``tutorconnect.realtime.socketio``
binds it to the Socket.IO server, and tests bind it to a recording fake.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import Any
from typing import Protocol

from django.utils import timezone

from tutorconnect.realtime.events import sessions as session_events
from tutorconnect.realtime.events.analytics import build_analytics_broadcast
from tutorconnect.realtime.events.analytics import build_analytics_update

from .exceptions import AccessDenied
from .exceptions import InvalidPayload
from .exceptions import NotParticipant
from .exceptions import RealtimeError
from .reminders import reminder_plan
from .rooms import Participant
from .serializers import AnalyticsRequestSerializer
from .serializers import AnswerSerializer
from .serializers import ChatMessageSerializer
from .serializers import FileRemoveSerializer
from .serializers import FileShareSerializer
from .serializers import IceCandidateSerializer
from .serializers import JoinAnalyticsSerializer
from .serializers import JoinSessionSerializer
from .serializers import OfferSerializer
from .serializers import SessionEventSerializer
from .serializers import WhiteboardUpdateSerializer
from .serializers import validate_payload

if TYPE_CHECKING:
    from collections.abc import Awaitable
    from collections.abc import Callable
    from collections.abc import Iterable
    from datetime import datetime

    from tutorconnect.tutoring.services import SessionOwnership

    from .reminders import PlannedReminder
    from .reminders import ReminderScheduler
    from .rooms import RoomStore

    OwnershipLookup = Callable[[str], Awaitable[SessionOwnership | None]]
    SnapshotProvider = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]

logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"

# event -> (payload serializer, field forwarded to the target)
SIGNAL_KINDS = {
    "offer": (OfferSerializer, "offer"),
    "answer": (AnswerSerializer, "answer"),
    "ice-candidate": (IceCandidateSerializer, "candidate"),
}


def _normalize_room_suffix(value: str) -> str:
    return "_".join(value.strip().lower().split())


def room_for_session(session_key: str) -> str:
    return f"session_{session_key}"


def room_for_analytics(room_name: str) -> str:
    return f"analytics_{_normalize_room_suffix(room_name)}"


def session_key(session_id: str) -> str:
    """Canonical registry key for a session id sent by a client."""

    value = str(session_id).strip()
    return str(int(value)) if value.isdigit() else value


@dataclass(frozen=True)
class RealtimeIdentity:
    """Who an authenticated connection belongs to."""

    user_id: str
    role: str
    is_staff: bool = False

    @property
    def is_admin(self) -> bool:
        return self.is_staff or self.role == ADMIN_ROLE


class EventServer(Protocol):
    """The slice of ``socketio.AsyncServer`` the relay relies on."""

    async def emit(
        self,
        event: str,
        data: Any = None,
        to: str | None = None,
        room: str | None = None,
        skip_sid: str | None = None,
        **kwargs: Any,
    ) -> None: ...

    async def enter_room(self, sid: str, room: str, namespace: str | None = None): ...

    async def leave_room(self, sid: str, room: str, namespace: str | None = None): ...

    async def close_room(self, room: str, namespace: str | None = None): ...


def reports_errors(fallback: str | None):
    """Turn handler failures into one ``error`` event for the calling connection.

    ``RealtimeError`` carries its own client-facing message. Anything else is
    logged with its traceback and reported as ``fallback``; with no fallback
    (disconnect) it is only logged.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, sid, *args, **kwargs):
            try:
                return await func(self, sid, *args, **kwargs)
            except RealtimeError as exc:
                logger.info("%s rejected for %s: %s", func.__name__, sid, exc.message)
                await self.server.emit("error", {"message": exc.message}, to=sid)
            except Exception:
                logger.exception("%s failed for %s", func.__name__, sid)
                if fallback is not None:
                    await self.server.emit("error", {"message": fallback}, to=sid)
            return None

        return wrapper

    return decorator


class SessionRelay:
    def __init__(  # noqa: PLR0913
        self,
        server: EventServer,
        *,
        ownership_lookup: OwnershipLookup,
        snapshot_provider: SnapshotProvider,
        session_rooms: RoomStore,
        analytics_rooms: RoomStore,
        reminders: ReminderScheduler,
        snapshot_types: Iterable[str] = (),
        clock: Callable[[], datetime] = timezone.now,
        is_connected: Callable[[str], bool] = lambda sid: True,
    ) -> None:
        self.server = server
        self.session_rooms = session_rooms
        self.analytics_rooms = analytics_rooms
        self.reminders = reminders
        self._ownership_lookup = ownership_lookup
        self._snapshot_provider = snapshot_provider
        self._snapshot_types = frozenset(snapshot_types)
        self._clock = clock
        self._is_connected = is_connected
        # analytics entries are keyed by connection; connection -> user id
        self._analytics_users: dict[str, str] = {}
        # loop serving the joins, for reminders re-armed from other threads
        self._loop: asyncio.AbstractEventLoop | None = None

    # Connection lifecycle
    # ------------------------------------------------------------------

    async def welcome(self, sid: str) -> None:
        await self.server.emit(
            "message", session_events.build_welcome_payload(), to=sid
        )

    @reports_errors(fallback=None)
    async def disconnect(self, sid: str) -> None:
        """Drop the connection from every registry and cancel its reminders."""

        for room_key, participant in self.session_rooms.leave(sid):
            await self.server.emit(
                "user-left",
                session_events.build_presence_payload(participant),
                room=room_for_session(room_key),
                skip_sid=sid,
            )
            logger.info(
                "User %s (%s) left session %s",
                participant.display_name,
                participant.user_id,
                room_key,
            )
        self.analytics_rooms.leave(sid)
        self._analytics_users.pop(sid, None)
        self.reminders.cancel_connection(sid)

    # Session rooms
    # ------------------------------------------------------------------

    @reports_errors(fallback="Failed to join session")
    async def join_session(
        self,
        sid: str,
        data: Any,
        identity: RealtimeIdentity | None = None,
    ) -> Participant | None:
        payload = validate_payload(JoinSessionSerializer, data, "join-session")
        user_id = payload["userId"]
        if identity is not None and identity.user_id != user_id:
            msg = "Access denied to this session"
            raise AccessDenied(msg)

        ownership = await self._ownership_lookup(payload["sessionId"])
        if ownership is None or not ownership.includes(user_id):
            msg = "Access denied to this session"
            raise AccessDenied(msg)
        if not self._is_connected(sid):
            logger.info(
                "Dropping join of session %s: %s disconnected during lookup",
                ownership.session_id,
                sid,
            )
            return None

        self._loop = asyncio.get_running_loop()
        room_key = ownership.session_id
        room = room_for_session(room_key)
        participant = Participant(
            user_id=user_id,
            display_name=payload["userName"] or user_id,
            connection_id=sid,
        )

        # Registry and timers change before the next await, so a disconnect
        # handled after this point always finds what it has to clean up.
        previous = self.session_rooms.join(room_key, participant)
        self.schedule_reminders(sid, ownership)
        if (
            previous is not None
            and previous.connection_id != sid
            and not self.session_rooms.is_member(room_key, previous.connection_id)
        ):
            self.reminders.cancel(room_key, previous.connection_id)
            await self.server.leave_room(previous.connection_id, room)
        await self.server.enter_room(sid, room)

        await self.server.emit(
            "user-joined",
            session_events.build_presence_payload(participant),
            room=room,
            skip_sid=sid,
        )
        await self.server.emit(
            "room-users",
            session_events.build_room_users_payload(
                self.session_rooms.list_others(room_key, user_id)
            ),
            to=sid,
        )

        logger.info(
            "User %s (%s) joined session %s",
            participant.display_name,
            user_id,
            room_key,
        )
        return participant

    def schedule_reminders(
        self, sid: str, ownership: SessionOwnership
    ) -> list[PlannedReminder]:
        """(Re)arm the reminders still ahead for this connection."""

        self.reminders.cancel(ownership.session_id, sid)
        if ownership.is_cancelled:
            return []

        plan = reminder_plan(ownership.scheduled_at, self._clock())
        for reminder in plan:
            payload = session_events.build_reminder_payload(
                ownership.session_id, ownership.subject, reminder.label
            )
            self.reminders.schedule(
                ownership.session_id,
                sid,
                reminder.delay,
                functools.partial(self.server.emit, "session-reminder", payload, to=sid),
            )
        return plan

    def rearm_reminders(self, ownership: SessionOwnership) -> bool:
        """Re-plan reminders for everyone connected to a rescheduled session.

        Callable from any thread; the work is handed to the loop that served
        the joins. Returns False when this process has served no join yet.
        """

        loop = self._loop
        if loop is None or loop.is_closed():
            return False
        loop.call_soon_threadsafe(self._rearm, ownership)
        return True

    def _rearm(self, ownership: SessionOwnership) -> None:
        participants = self.session_rooms.participants(ownership.session_id)
        for participant in participants:
            self.schedule_reminders(participant.connection_id, ownership)
        if participants:
            logger.info(
                "Re-armed reminders for session %s (%s connections)",
                ownership.session_id,
                len(participants),
            )

    @reports_errors(fallback="Failed to end session")
    async def end_session(self, sid: str, data: Any) -> list[Participant] | None:
        payload = validate_payload(SessionEventSerializer, data, "end-session")
        room_key = self._require_participant(sid, payload["sessionId"])
        room = room_for_session(room_key)

        await self.server.emit("session-ended", room=room)
        participants = self.session_rooms.remove_room(room_key)
        for participant in participants:
            await self.server.emit(
                "notification",
                session_events.build_session_ended_notification(room_key),
                to=participant.connection_id,
            )
        cancelled = self.reminders.cancel_session(room_key)
        await self.server.close_room(room)

        logger.info(
            "Session %s ended by %s (%s participants, %s reminders cancelled)",
            room_key,
            sid,
            len(participants),
            cancelled,
        )
        return participants

    def _require_participant(self, sid: str, session_id: str) -> str:
        room_key = session_key(session_id)
        if not self.session_rooms.is_member(room_key, sid):
            raise NotParticipant
        return room_key

    # Signaling
    # ------------------------------------------------------------------

    @reports_errors(fallback="Failed to relay signal")
    async def relay_signal(self, sid: str, kind: str, data: Any) -> bool:
        """Forward an offer/answer/ICE candidate to the named user.

        Unknown targets are dropped without telling the sender.
        """

        serializer_class, field = SIGNAL_KINDS[kind]
        payload = validate_payload(serializer_class, data, kind)
        target = self.session_rooms.find(payload["to"])
        if target is None:
            logger.debug(
                "Dropping %s from %s: user %s is not in any session",
                kind,
                sid,
                payload["to"],
            )
            return False

        if kind == "offer":
            body = {"offer": payload[field], "from": sid}
        else:
            body = payload[field]
        await self.server.emit(kind, body, to=target.connection_id)
        return True

    # Session broadcasts
    # ------------------------------------------------------------------

    @reports_errors(fallback="Failed to send message")
    async def chat_message(self, sid: str, data: Any) -> None:
        payload = validate_payload(ChatMessageSerializer, data, "chat-message")
        room_key = self._require_participant(sid, payload["sessionId"])
        message = payload["message"]

        await self.server.emit(
            "chat-message", message, room=room_for_session(room_key), skip_sid=sid
        )
        notification = session_events.build_new_message_payload(room_key, message)
        sender_id = str(message.get("senderId", ""))
        for participant in self.session_rooms.list_others(room_key, sender_id):
            await self.server.emit(
                "new-message", notification, to=participant.connection_id
            )

    @reports_errors(fallback="Failed to share file")
    async def file_share(self, sid: str, data: Any) -> None:
        payload = validate_payload(FileShareSerializer, data, "file-share")
        room_key = self._require_participant(sid, payload["sessionId"])
        file_data = payload["fileData"]

        await self.server.emit(
            "file-shared", file_data, room=room_for_session(room_key), skip_sid=sid
        )
        notification = session_events.build_file_shared_notification(
            room_key, file_data
        )
        uploader_id = str(file_data.get("uploadedBy", ""))
        for participant in self.session_rooms.list_others(room_key, uploader_id):
            await self.server.emit(
                "file-shared-notification",
                notification,
                to=participant.connection_id,
            )

    @reports_errors(fallback="Failed to remove file")
    async def file_remove(self, sid: str, data: Any) -> None:
        payload = validate_payload(FileRemoveSerializer, data, "file-remove")
        room_key = self._require_participant(sid, payload["sessionId"])
        await self.server.emit(
            "file-removed",
            payload["fileId"],
            room=room_for_session(room_key),
            skip_sid=sid,
        )

    @reports_errors(fallback="Failed to update whiteboard")
    async def whiteboard_update(self, sid: str, data: Any) -> None:
        payload = validate_payload(
            WhiteboardUpdateSerializer, data, "whiteboard-update"
        )
        room_key = self._require_participant(sid, payload["sessionId"])
        await self.server.emit(
            "whiteboard-updated",
            payload["update"],
            room=room_for_session(room_key),
            skip_sid=sid,
        )

    # Analytics feeds
    # ------------------------------------------------------------------

    @reports_errors(fallback="Failed to join analytics room")
    async def join_analytics(
        self,
        sid: str,
        data: Any,
        identity: RealtimeIdentity | None = None,
    ) -> int | None:
        payload = validate_payload(JoinAnalyticsSerializer, data, "join-analytics")
        if identity is not None:
            allowed = identity.is_admin
            user_id, role = identity.user_id, identity.role
        else:
            allowed = payload["userRole"] == ADMIN_ROLE
            user_id, role = payload["userId"] or sid, payload["userRole"]
        if not allowed:
            msg = "Access denied to analytics"
            raise AccessDenied(msg)

        room_name = payload["roomName"]
        # One entry per connection: an admin with two tabs holds two entries.
        self.analytics_rooms.join(
            room_name,
            Participant(user_id=sid, display_name=role, connection_id=sid),
        )
        self._analytics_users[sid] = user_id
        await self.server.enter_room(sid, room_for_analytics(room_name))
        user_count = len(
            {
                self._analytics_users.get(entry.connection_id, entry.connection_id)
                for entry in self.analytics_rooms.participants(room_name)
            }
        )
        await self.server.emit(
            "analytics-joined",
            {"roomName": room_name, "userCount": user_count},
            to=sid,
        )
        logger.info("User %s joined analytics room %s", user_id, room_name)
        return user_count

    @reports_errors(fallback="Failed to fetch analytics update")
    async def request_analytics_update(self, sid: str, data: Any) -> dict | None:
        rooms = self.analytics_rooms.rooms_for(sid)
        if not rooms:
            msg = "Access denied to analytics"
            raise AccessDenied(msg)

        payload = validate_payload(
            AnalyticsRequestSerializer, data, "request-analytics-update"
        )
        kind = payload["type"]
        if kind not in self._snapshot_types:
            msg = "Invalid analytics type"
            raise InvalidPayload(msg)

        snapshot = await self._snapshot_provider(kind, payload["filters"])
        await self.server.emit(
            "analytics-update", build_analytics_update(kind, snapshot), to=sid
        )
        broadcast = build_analytics_broadcast(kind, snapshot, triggered_by=sid)
        for room_name in rooms:
            await self.server.emit(
                "analytics-broadcast",
                broadcast,
                room=room_for_analytics(room_name),
                skip_sid=sid,
            )
        return snapshot

    def stats(self) -> dict[str, int]:
        return {
            "session_rooms": self.session_rooms.room_count(),
            "analytics_rooms": self.analytics_rooms.room_count(),
            "pending_reminders": len(self.reminders.pending()),
        }

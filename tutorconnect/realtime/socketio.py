"""Socket.IO server for live tutoring sessions and admin analytics feeds.

Frontend convention:
- Socket.IO path: ``/ws/realtime/`` (``settings.SOCKETIO_PATH``)
- Auth: ``query.token`` or ``auth.token`` (JWT access token)

Handlers only unpack the connection identity and delegate to ``relay``; room
bookkeeping and fan-out rules live in ``tutorconnect.realtime.relay``.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import parse_qs

import socketio
from channels.db import database_sync_to_async
from django.conf import settings
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

from tutorconnect.analytics.aggregates import SNAPSHOT_TYPES
from tutorconnect.analytics.aggregates import compute_snapshot
from tutorconnect.tutoring.services import find_session_ownership

from .reminders import reminder_scheduler
from .relay import RealtimeIdentity
from .relay import SessionRelay
from .rooms import InMemoryRoomStore

logger = logging.getLogger(__name__)


def _cors_allowed_origins() -> str | list[str]:
    origins = list(settings.REALTIME_CORS_ALLOWED_ORIGINS)
    return "*" if "*" in origins else origins


def _client_manager() -> socketio.AsyncManager | None:
    url = getattr(settings, "SOCKETIO_REDIS_URL", "")
    if not url:
        return None
    return socketio.AsyncRedisManager(url)


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=_cors_allowed_origins(),
    client_manager=_client_manager(),
    logger=False,
    engineio_logger=False,
)

relay = SessionRelay(
    sio,
    ownership_lookup=database_sync_to_async(find_session_ownership),
    snapshot_provider=database_sync_to_async(compute_snapshot),
    session_rooms=InMemoryRoomStore(),
    analytics_rooms=InMemoryRoomStore(),
    reminders=reminder_scheduler,
    snapshot_types=SNAPSHOT_TYPES,
    is_connected=lambda sid: sio.manager.is_connected(sid, "/"),
)


@database_sync_to_async
def _get_identity_from_access_token(token: str) -> RealtimeIdentity:
    jwt_auth = JWTAuthentication()
    validated = jwt_auth.get_validated_token(token)
    user = jwt_auth.get_user(validated)
    return RealtimeIdentity(
        user_id=str(user.pk),
        role=getattr(user, "role", ""),
        is_staff=bool(user.is_staff or user.is_superuser),
    )


def _extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Extract JWT token from Socket.IO environ/auth.

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    # Allow `auth: { token }` as fallback.
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    return None


async def authenticate(
    environ: dict[str, Any],
    auth: Any | None,
) -> RealtimeIdentity | None:
    """Resolve the connecting user, or refuse the connection.

    Without ``REALTIME_REQUIRE_AUTH`` a missing token is allowed and the
    connection stays anonymous; a token that is present must still be valid.
    """

    token = _extract_token(environ, auth)
    if not token:
        if settings.REALTIME_REQUIRE_AUTH:
            msg = "unauthorized"
            raise socketio.exceptions.ConnectionRefusedError(msg)
        return None

    try:
        return await _get_identity_from_access_token(token)
    except (TokenError, AuthenticationFailed) as exc:  # InvalidToken, inactive user
        msg = "jwt_expired" if "expired" in str(exc).lower() else "unauthorized"
        raise socketio.exceptions.ConnectionRefusedError(msg) from exc
    except Exception as exc:
        logger.exception("Socket.IO connect error")
        msg = "server_error"
        raise socketio.exceptions.ConnectionRefusedError(msg) from exc


async def _identity(sid: str) -> RealtimeIdentity | None:
    session = await sio.get_session(sid)
    if not isinstance(session, dict) or not session.get("user_id"):
        return None
    return RealtimeIdentity(
        user_id=session["user_id"],
        role=session.get("role", ""),
        is_staff=session.get("is_staff", False),
    )


@sio.event
async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
    identity = await authenticate(environ, auth)
    if identity is not None:
        await sio.save_session(
            sid,
            {
                "user_id": identity.user_id,
                "role": identity.role,
                "is_staff": identity.is_staff,
            },
        )
    logger.info(
        "Socket %s connected as %s",
        sid,
        identity.user_id if identity else "anonymous",
    )
    await relay.welcome(sid)


@sio.event
async def disconnect(sid: str, reason: Any = None):
    logger.info("Socket %s disconnected (%s)", sid, reason)
    await relay.disconnect(sid)


@sio.on("join-session")
async def join_session(sid: str, data: Any):
    await relay.join_session(sid, data, await _identity(sid))


@sio.on("end-session")
async def end_session(sid: str, data: Any):
    await relay.end_session(sid, data)


@sio.on("offer")
async def offer(sid: str, data: Any):
    await relay.relay_signal(sid, "offer", data)


@sio.on("answer")
async def answer(sid: str, data: Any):
    await relay.relay_signal(sid, "answer", data)


@sio.on("ice-candidate")
async def ice_candidate(sid: str, data: Any):
    await relay.relay_signal(sid, "ice-candidate", data)


@sio.on("chat-message")
async def chat_message(sid: str, data: Any):
    await relay.chat_message(sid, data)


@sio.on("file-share")
async def file_share(sid: str, data: Any):
    await relay.file_share(sid, data)


@sio.on("file-remove")
async def file_remove(sid: str, data: Any):
    await relay.file_remove(sid, data)


@sio.on("whiteboard-update")
async def whiteboard_update(sid: str, data: Any):
    await relay.whiteboard_update(sid, data)


@sio.on("join-analytics")
async def join_analytics(sid: str, data: Any = None):
    await relay.join_analytics(sid, data or {}, await _identity(sid))


@sio.on("request-analytics-update")
async def request_analytics_update(sid: str, data: Any):
    await relay.request_analytics_update(sid, data)


from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from django.utils import timezone

if TYPE_CHECKING:
    from tutorconnect.realtime.rooms import Participant


def _now_iso() -> str:
    return timezone.now().isoformat()


def build_welcome_payload() -> dict[str, Any]:
    return {
        "text": "Welcome to TutorConnect live sessions!",
        "senderId": "system",
        "timestamp": _now_iso(),
    }


def build_presence_payload(participant: Participant) -> dict[str, Any]:
    """Body of ``user-joined`` / ``user-left``."""

    return {"userId": participant.user_id, "userName": participant.display_name}


def build_room_users_payload(others: list[Participant]) -> dict[str, Any]:
    return {"users": [participant.as_payload() for participant in others]}


def build_reminder_payload(session_id: str, subject: str, label: str) -> dict[str, Any]:
    return {"sessionId": session_id, "subject": subject, "time": label}


def build_new_message_payload(session_id: str, message: dict[str, Any]) -> dict[str, Any]:
    return {
        "sessionId": session_id,
        "senderName": message.get("senderName"),
        "message": message.get("content"),
    }


def build_file_shared_notification(
    session_id: str, file_data: dict[str, Any]
) -> dict[str, Any]:
    return {
        "sessionId": session_id,
        "fileName": file_data.get("name"),
        "sharedBy": file_data.get("uploadedByName"),
    }


def build_session_ended_notification(session_id: str) -> dict[str, Any]:
    now = timezone.now()
    return {
        "id": f"ended-{session_id}-{int(now.timestamp() * 1000)}",
        "type": "SESSION_ENDED",
        "title": "Session Ended",
        "message": "The tutoring session has ended",
        "timestamp": now.isoformat(),
        "read": False,
    }

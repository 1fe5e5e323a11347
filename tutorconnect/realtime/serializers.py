"""Validation for inbound Socket.IO event payloads.

Field names follow the browser client's camelCase contract.
"""

from __future__ import annotations

from typing import Any

from django.conf import settings
from rest_framework import serializers

from .exceptions import InvalidPayload


class SessionEventSerializer(serializers.Serializer):
    sessionId = serializers.CharField(max_length=64)  # noqa: N815


class JoinSessionSerializer(SessionEventSerializer):
    userId = serializers.CharField(max_length=64)  # noqa: N815
    userName = serializers.CharField(  # noqa: N815
        max_length=255, required=False, allow_blank=True, default=""
    )


class JoinAnalyticsSerializer(serializers.Serializer):
    roomName = serializers.CharField(  # noqa: N815
        max_length=100, required=False, allow_blank=True
    )
    userId = serializers.CharField(  # noqa: N815
        max_length=64, required=False, allow_blank=True, default=""
    )
    userRole = serializers.CharField(  # noqa: N815
        max_length=32, required=False, allow_blank=True, default=""
    )

    def validate_roomName(self, value: str) -> str:  # noqa: N802
        return value.strip() or settings.REALTIME_DEFAULT_ANALYTICS_ROOM

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        attrs.setdefault("roomName", settings.REALTIME_DEFAULT_ANALYTICS_ROOM)
        return attrs


class AnalyticsRequestSerializer(serializers.Serializer):
    type = serializers.CharField(max_length=32)
    filters = serializers.DictField(required=False, default=dict)


class SignalSerializer(serializers.Serializer):
    to = serializers.CharField(max_length=64)


class OfferSerializer(SignalSerializer):
    offer = serializers.JSONField()


class AnswerSerializer(SignalSerializer):
    answer = serializers.JSONField()


class IceCandidateSerializer(SignalSerializer):
    candidate = serializers.JSONField()


class ChatMessageSerializer(SessionEventSerializer):
    message = serializers.DictField()


class FileShareSerializer(SessionEventSerializer):
    fileData = serializers.DictField()  # noqa: N815


class FileRemoveSerializer(SessionEventSerializer):
    fileId = serializers.CharField(max_length=255)  # noqa: N815


class WhiteboardUpdateSerializer(SessionEventSerializer):
    update = serializers.JSONField()


def validate_payload(
    serializer_class: type[serializers.Serializer],
    data: Any,
    event: str,
) -> dict[str, Any]:
    """Return validated data or raise ``InvalidPayload`` naming the event."""

    if not isinstance(data, dict):
        msg = f"Invalid {event} payload"
        raise InvalidPayload(msg)
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        msg = f"Invalid {event} payload"
        raise InvalidPayload(msg)
    return dict(serializer.validated_data)

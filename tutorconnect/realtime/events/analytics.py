from __future__ import annotations

from typing import Any

from django.utils import timezone


def build_analytics_update(kind: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"type": kind, "data": data, "timestamp": timezone.now().isoformat()}


def build_analytics_broadcast(
    kind: str,
    data: dict[str, Any],
    triggered_by: str,
) -> dict[str, Any]:
    payload = build_analytics_update(kind, data)
    payload["triggeredBy"] = triggered_by
    return payload

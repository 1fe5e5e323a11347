"""drf-spectacular post-processing: group the REST endpoints by feature.

The Socket.IO events are not part of the OpenAPI document; only the analytics
snapshots and the JWT endpoints that also authenticate sockets are.
"""

from __future__ import annotations

from typing import Any

_HTTP_METHODS = {"get", "post", "put", "patch", "delete", "options", "head"}


PATTERN_TAGS = [
    ("/api/v1/analytics", "Analytics"),
    ("/api/v1/auth/jwt", "JWT Authentication"),
]

ALL_TAGS = [t for _, t in PATTERN_TAGS]


def assign_group_tag(path: str) -> str | None:
    """Return the first matching tag name for a given path."""
    for prefix, tag in PATTERN_TAGS:
        if path.startswith(prefix):
            return tag
    return None


def group_tags(result: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
    """Tag each operation under a ``PATTERN_TAGS`` prefix with that one group."""
    paths = result.get("paths", {})
    for path, path_item in paths.items():  # type: ignore[assignment]
        tag = assign_group_tag(path)
        if not tag:
            continue
        for method, op_obj in path_item.items():
            if method.lower() not in _HTTP_METHODS:
                continue
            if not isinstance(op_obj, dict):
                continue
            op_obj["tags"] = [tag]

    existing = {t.get("name") for t in result.get("tags", [])}
    tag_list = result.setdefault("tags", [])
    for tag in ALL_TAGS:
        if tag not in existing:
            tag_list.append({"name": tag})
    return result

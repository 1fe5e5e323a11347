"""Process-local room registries for live tutoring sessions and analytics feeds.

A room maps a key (session id, analytics room name) to the participants that
joined it over Socket.IO. The relay only talks to the ``RoomStore`` protocol so
a shared backend can replace ``InMemoryRoomStore`` without touching call sites.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Participant:
    user_id: str
    display_name: str
    connection_id: str

    def as_payload(self) -> dict[str, str]:
        return {
            "userId": self.user_id,
            "userName": self.display_name,
            "socketId": self.connection_id,
        }


class RoomStore(Protocol):
    def join(self, room_key: str, participant: Participant) -> Participant | None: ...

    def leave(self, connection_id: str) -> list[tuple[str, Participant]]: ...

    def remove_room(self, room_key: str) -> list[Participant]: ...

    def participants(self, room_key: str) -> list[Participant]: ...

    def list_others(
        self, room_key: str, excluding_user_id: str
    ) -> list[Participant]: ...

    def find(self, user_id: str) -> Participant | None: ...

    def rooms_for(self, connection_id: str) -> list[str]: ...

    def is_member(self, room_key: str, connection_id: str) -> bool: ...

    def has_room(self, room_key: str) -> bool: ...

    def room_count(self) -> int: ...


class InMemoryRoomStore:
    """Dict-backed ``RoomStore`` for a single process.

    Invariants:
    - a user id appears at most once per room (re-joining replaces the entry);
    - a room key exists only while it has at least one participant.

    All mutations are synchronous, so handlers running on one event loop never
    interleave inside them.
    """

    def __init__(self) -> None:
        # room_key -> user_id -> participant (insertion ordered)
        self._rooms: dict[str, dict[str, Participant]] = {}
        # user_id -> room keys, for signaling target resolution
        self._user_rooms: dict[str, dict[str, None]] = {}
        # connection_id -> room keys, for disconnect cleanup
        self._connection_rooms: dict[str, dict[str, None]] = {}

    def join(self, room_key: str, participant: Participant) -> Participant | None:
        """Insert or replace ``participant`` in ``room_key``.

        Returns the entry it replaced, if the user was already in the room.
        """

        members = self._rooms.setdefault(room_key, {})
        previous = members.get(participant.user_id)
        members[participant.user_id] = participant
        if previous is not None and not any(
            member.connection_id == previous.connection_id
            for member in members.values()
        ):
            self._unindex_connection(previous.connection_id, room_key)
        self._user_rooms.setdefault(participant.user_id, {})[room_key] = None
        self._connection_rooms.setdefault(participant.connection_id, {})[
            room_key
        ] = None
        return previous

    def leave(self, connection_id: str) -> list[tuple[str, Participant]]:
        """Remove every entry held by ``connection_id``.

        Returns ``(room_key, participant)`` pairs for what was removed.
        """

        removed: list[tuple[str, Participant]] = []
        for room_key in list(self._connection_rooms.pop(connection_id, {})):
            members = self._rooms.get(room_key, {})
            for user_id, participant in list(members.items()):
                if participant.connection_id != connection_id:
                    continue
                del members[user_id]
                self._unindex_user(user_id, room_key)
                removed.append((room_key, participant))
            if not members:
                self._rooms.pop(room_key, None)
        return removed

    def remove_room(self, room_key: str) -> list[Participant]:
        members = self._rooms.pop(room_key, {})
        for participant in members.values():
            self._unindex_user(participant.user_id, room_key)
            self._unindex_connection(participant.connection_id, room_key)
        return list(members.values())

    def participants(self, room_key: str) -> list[Participant]:
        return list(self._rooms.get(room_key, {}).values())

    def list_others(self, room_key: str, excluding_user_id: str) -> list[Participant]:
        return [
            participant
            for participant in self.participants(room_key)
            if participant.user_id != excluding_user_id
        ]

    def find(self, user_id: str) -> Participant | None:
        """Resolve a user to the participant entry of the first room they joined."""

        for room_key in self._user_rooms.get(user_id, {}):
            participant = self._rooms.get(room_key, {}).get(user_id)
            if participant is not None:
                return participant
        return None

    def rooms_for(self, connection_id: str) -> list[str]:
        return list(self._connection_rooms.get(connection_id, {}))

    def is_member(self, room_key: str, connection_id: str) -> bool:
        return room_key in self._connection_rooms.get(connection_id, {})

    def has_room(self, room_key: str) -> bool:
        return room_key in self._rooms

    def room_count(self) -> int:
        return len(self._rooms)

    def _unindex_user(self, user_id: str, room_key: str) -> None:
        rooms = self._user_rooms.get(user_id)
        if rooms is None:
            return
        rooms.pop(room_key, None)
        if not rooms:
            del self._user_rooms[user_id]

    def _unindex_connection(self, connection_id: str, room_key: str) -> None:
        rooms = self._connection_rooms.get(connection_id)
        if rooms is None:
            return
        rooms.pop(room_key, None)
        if not rooms:
            del self._connection_rooms[connection_id]

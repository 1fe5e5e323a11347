import random

import pytest

from tutorconnect.realtime.rooms import InMemoryRoomStore
from tutorconnect.realtime.rooms import Participant


def _p(user_id, sid, name=None):
    return Participant(
        user_id=user_id,
        display_name=name or f"User {user_id}",
        connection_id=sid,
    )


def test_join_lists_others_and_find():
    store = InMemoryRoomStore()
    store.join("7", _p("1", "sid-a"))
    store.join("7", _p("2", "sid-b"))

    assert [p.user_id for p in store.list_others("7", "1")] == ["2"]
    assert store.find("2").connection_id == "sid-b"
    assert store.find("99") is None
    assert store.is_member("7", "sid-a")
    assert store.rooms_for("sid-b") == ["7"]


def test_rejoin_replaces_entry_instead_of_duplicating():
    store = InMemoryRoomStore()
    store.join("7", _p("1", "sid-a"))
    previous = store.join("7", _p("1", "sid-new"))

    assert previous.connection_id == "sid-a"
    assert len(store.participants("7")) == 1
    assert store.find("1").connection_id == "sid-new"
    # The old connection no longer owns the entry.
    assert not store.is_member("7", "sid-a")
    assert store.leave("sid-a") == []


def test_leave_removes_entries_and_empty_rooms():
    store = InMemoryRoomStore()
    store.join("7", _p("1", "sid-a"))
    store.join("8", _p("1", "sid-a"))
    store.join("8", _p("2", "sid-b"))

    removed = store.leave("sid-a")

    assert sorted(room for room, _ in removed) == ["7", "8"]
    assert not store.has_room("7")
    assert store.has_room("8")
    assert store.find("1") is None
    assert store.room_count() == 1


def test_remove_room_returns_participants_and_clears_indexes():
    store = InMemoryRoomStore()
    store.join("7", _p("1", "sid-a"))
    store.join("7", _p("2", "sid-b"))

    removed = store.remove_room("7")

    assert {p.user_id for p in removed} == {"1", "2"}
    assert not store.has_room("7")
    assert store.find("1") is None
    assert store.rooms_for("sid-b") == []
    assert store.remove_room("7") == []


def test_find_uses_first_room_joined():
    store = InMemoryRoomStore()
    store.join("7", _p("1", "sid-a"))
    store.join("8", _p("1", "sid-other"))

    assert store.find("1").connection_id == "sid-a"


def test_participant_payload_uses_client_field_names():
    assert _p("1", "sid-a", "Ada").as_payload() == {
        "userId": "1",
        "userName": "Ada",
        "socketId": "sid-a",
    }


def _assert_matches(store, expected, rooms, sids):
    for room in rooms:
        members = expected.get(room, {})
        actual = {p.user_id: p.connection_id for p in store.participants(room)}
        assert actual == members
        assert store.has_room(room) == bool(members)
    assert store.room_count() == sum(1 for members in expected.values() if members)
    for sid in sids:
        held = {room for room, members in expected.items() if sid in members.values()}
        assert set(store.rooms_for(sid)) == held
        for room in rooms:
            assert store.is_member(room, sid) == (room in held)


@pytest.mark.parametrize("seed", range(20))
def test_random_join_leave_sequences_keep_rooms_consistent(seed):
    rng = random.Random(seed)
    rooms, users, sids = ["7", "8", "9"], ["1", "2", "3", "4"], ["a", "b", "c", "d", "e"]
    store = InMemoryRoomStore()
    expected: dict[str, dict[str, str]] = {}

    for _ in range(200):
        action = rng.random()
        if action < 0.6:
            room, user, sid = rng.choice(rooms), rng.choice(users), rng.choice(sids)
            previous = store.join(room, _p(user, sid))
            old_sid = expected.get(room, {}).get(user)
            assert (previous.connection_id if previous else None) == old_sid
            expected.setdefault(room, {})[user] = sid
        elif action < 0.95:
            sid = rng.choice(sids)
            removed = {(room, p.user_id) for room, p in store.leave(sid)}
            assert removed == {
                (room, user)
                for room, members in expected.items()
                for user, held_by in members.items()
                if held_by == sid
            }
            for members in expected.values():
                for user in [u for u, held_by in members.items() if held_by == sid]:
                    del members[user]
        else:
            room = rng.choice(rooms)
            removed = {p.user_id for p in store.remove_room(room)}
            assert removed == set(expected.pop(room, {}))

        _assert_matches(store, expected, rooms, sids)
        for user in users:
            held = {members[user] for members in expected.values() if user in members}
            found = store.find(user)
            assert (found.connection_id if found else None) in (held or {None})

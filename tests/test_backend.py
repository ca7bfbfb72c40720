"""Tests for the in-memory room store"""
import pytest

from backend import RoomStore
from errors import RoomNotFound


@pytest.fixture
def store():
    return RoomStore()


class TestRoomLifecycle:
    def test_create_and_delete(self, store):
        room = store.create_room("r1")
        assert room.buffer == ""
        assert room.buffer_language is None
        assert "r1" in store
        assert store.delete_room("r1") is True
        assert "r1" not in store
        assert store.delete_room("r1") is False

    def test_create_twice_is_an_error(self, store):
        store.create_room("r1")
        with pytest.raises(ValueError):
            store.create_room("r1")

    def test_require_room_raises_for_missing_room(self, store):
        with pytest.raises(RoomNotFound) as exc_info:
            store.require_room("nope", "c1")
        assert exc_info.value.connection_id == "c1"

    def test_independent_store_instances(self):
        first, second = RoomStore(), RoomStore()
        first.create_room("r1")
        assert "r1" not in second


class TestMembers:
    def test_identity_is_not_the_connection_id(self, store):
        store.create_room("r1")
        member = store.add_member("r1", "alice", "c1")
        assert member.identity != "c1"
        assert member.connection_ids == {"c1"}

    def test_member_named_is_case_insensitive(self, store):
        store.create_room("r1")
        member = store.add_member("r1", "Alice", "c1")
        assert store.get_room("r1").member_named("aLICE") is member
        assert store.display_names("r1") == {"alice"}

    def test_detach_keeps_record_while_connections_remain(self, store):
        store.create_room("r1")
        member = store.add_member("r1", "dave", "d1")
        store.attach_connection("r1", member.identity, "d2")

        record, removed = store.detach_connection("r1", "d1")
        assert record is member and removed is False
        assert member.connection_ids == {"d2"}

        record, removed = store.detach_connection("r1", "d2")
        assert record is member and removed is True
        assert store.get_room("r1").members == {}

    def test_detach_unknown_connection(self, store):
        assert store.detach_connection("missing", "c1") == (None, False)
        store.create_room("r1")
        assert store.detach_connection("r1", "c1") == (None, False)

    def test_connection_ids_spans_all_members(self, store):
        store.create_room("r1")
        store.add_member("r1", "alice", "a1")
        bob = store.add_member("r1", "bob", "b1")
        store.attach_connection("r1", bob.identity, "b2")
        assert store.get_room("r1").connection_ids == {"a1", "b1", "b2"}


class TestBufferAndSignaling:
    def test_set_buffer_keeps_language_when_not_given(self, store):
        store.create_room("r1")
        store.set_buffer("r1", "print(1)", "python")
        room = store.set_buffer("r1", "print(2)")
        assert room.buffer == "print(2)"
        assert room.buffer_language == "python"

    def test_set_signaling_id(self, store):
        store.create_room("r1")
        member = store.add_member("r1", "alice", "c1")
        assert store.set_signaling_id("r1", "c1", "peer-1") is member
        assert member.signaling_id == "peer-1"
        assert store.set_signaling_id("r1", "c2", "peer-2") is None

    def test_rename_member(self, store):
        store.create_room("r1")
        member = store.add_member("r1", "alice", "c1")
        store.rename_member("r1", member.identity, "Alicia")
        assert store.display_names("r1") == {"alicia"}

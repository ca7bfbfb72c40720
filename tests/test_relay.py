"""Tests for buffer sync, chat relay and signaling relay"""
import pytest

from errors import RoomNotFound
from tests.conftest import member_names


@pytest.fixture
def room_of_three(coordinator, connect):
    sinks = {}
    for connection_id, name in [("A", "alice"), ("B", "bob"), ("C", "carol")]:
        sinks[connection_id] = connect(connection_id)
        coordinator.join(connection_id, name, "r1")
    for sink in sinks.values():
        sink.clear()
    return sinks


class TestBufferSync:
    def test_edit_goes_to_everyone_but_the_sender(self, coordinator, room_of_three):
        coordinator.relay.sync_buffer("A", "x = 1", "python")

        assert room_of_three["A"].messages == []
        for connection_id in ("B", "C"):
            assert room_of_three[connection_id].messages == [
                {"type": "buffer-sync", "text": "x = 1", "language": "python"}
            ]
        room = coordinator.store.get_room("r1")
        assert room.buffer == "x = 1"
        assert room.buffer_language == "python"

    def test_last_writer_wins(self, coordinator, room_of_three):
        coordinator.relay.sync_buffer("A", "first")
        coordinator.relay.sync_buffer("B", "second")

        assert coordinator.store.get_room("r1").buffer == "second"
        assert room_of_three["A"].last("buffer-sync")["text"] == "second"
        assert room_of_three["C"].last("buffer-sync")["text"] == "second"
        assert room_of_three["B"].last("buffer-sync")["text"] == "first"

    def test_edit_does_not_leak_into_other_rooms(self, coordinator, connect, room_of_three):
        other = connect("Z")
        coordinator.join("Z", "zed", "r2")
        other.clear()
        coordinator.relay.sync_buffer("A", "x = 1")
        assert other.messages == []
        assert coordinator.store.get_room("r2").buffer == ""

    def test_edit_from_unregistered_connection(self, coordinator, connect):
        connect("A")
        with pytest.raises(RoomNotFound):
            coordinator.relay.sync_buffer("A", "x = 1")


class TestChatRelay:
    def test_sender_is_stamped_server_side(self, coordinator, room_of_three):
        message = coordinator.relay.relay_chat("A", "hello", message_id="m1", timestamp="2024-01-01T00:00:00")

        assert message.sender_display_name == "alice"
        assert message.sender_connection_id == "A"
        broadcast = room_of_three["B"].last("chat-broadcast")["message"]
        assert broadcast == {
            "id": "m1",
            "text": "hello",
            "senderConnectionId": "A",
            "senderDisplayName": "alice",
            "timestamp": "2024-01-01T00:00:00",
        }

    def test_chat_is_not_echoed(self, coordinator, room_of_three):
        coordinator.relay.relay_chat("A", "hello")
        assert room_of_three["A"].messages == []
        assert len(room_of_three["C"].of_type("chat-broadcast")) == 1

    def test_chat_defaults_id_and_timestamp(self, coordinator, room_of_three):
        message = coordinator.relay.relay_chat("B", "hi")
        assert message.id
        assert message.timestamp

    def test_chat_from_unregistered_connection(self, coordinator, connect):
        connect("A")
        with pytest.raises(RoomNotFound):
            coordinator.relay.relay_chat("A", "hello")


class TestSignalingRelay:
    def test_signaling_id_is_stored_and_rebroadcast(self, coordinator, room_of_three):
        member = coordinator.relay.announce_signaling("B", "peer-b")

        assert member.signaling_id == "peer-b"
        for sink in room_of_three.values():
            members = sink.last("member-list")["members"]
            assert member_names(sink.last("member-list")) == ["alice", "bob", "carol"]
            assert members[1]["signalingId"] == "peer-b"
            assert members[0]["signalingId"] is None

    def test_signaling_from_unregistered_connection(self, coordinator, connect):
        connect("A")
        with pytest.raises(RoomNotFound):
            coordinator.relay.announce_signaling("A", "peer-a")

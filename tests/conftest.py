"""Shared fixtures for room coordination tests."""

from __future__ import annotations

from typing import List

import pytest

from service import RoomCoordinator


class RecordingSink:
    """Stands in for a WebSocket connection and keeps every message sent to it."""

    def __init__(self) -> None:
        self.messages: List[dict] = []

    def send(self, message: dict) -> None:
        self.messages.append(message)

    def of_type(self, event_type: str) -> List[dict]:
        return [m for m in self.messages if m["type"] == event_type]

    def last(self, event_type: str) -> dict:
        matching = self.of_type(event_type)
        assert matching, f"no {event_type} message received"
        return matching[-1]

    def types(self) -> List[str]:
        return [m["type"] for m in self.messages]

    def clear(self) -> None:
        self.messages.clear()


def member_names(member_list_message: dict) -> List[str]:
    return [m["displayName"] for m in member_list_message["members"]]


@pytest.fixture
def coordinator() -> RoomCoordinator:
    """Coordinator with the periodic presence refresh disabled."""
    return RoomCoordinator(presence_interval=0)


@pytest.fixture
def connect(coordinator):
    """Attach a recording sink under the given connection id."""

    def _connect(connection_id: str) -> RecordingSink:
        sink = RecordingSink()
        coordinator.connect(connection_id, sink)
        return sink

    return _connect

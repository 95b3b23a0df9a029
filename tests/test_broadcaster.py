"""Tests for the topic-based WebSocket broadcaster."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.zoom_helper.meetings.realtime.broadcaster import INDEX_TOPIC, Broadcaster


def _socket(fail: bool = False) -> MagicMock:
    ws = MagicMock()
    ws.send_json = AsyncMock(side_effect=RuntimeError("closed") if fail else None)
    return ws


class TestRooms:
    def test_join_and_leave(self):
        hub = Broadcaster()
        ws = _socket()

        hub.join("meeting_1", ws)
        assert hub.subscriber_count("meeting_1") == 1

        hub.leave("meeting_1", ws)
        assert hub.subscriber_count("meeting_1") == 0

    def test_leave_unknown_room_is_noop(self):
        hub = Broadcaster()
        hub.leave("meeting_9", _socket())
        assert hub.subscriber_count("meeting_9") == 0

    def test_disconnect_removes_from_all_rooms(self):
        hub = Broadcaster()
        ws = _socket()
        hub.join(INDEX_TOPIC, ws)
        hub.join("meeting_1", ws)

        hub.disconnect(ws)

        assert hub.subscriber_count(INDEX_TOPIC) == 0
        assert hub.subscriber_count("meeting_1") == 0


class TestPublish:
    @pytest.mark.asyncio
    async def test_sends_event_envelope_to_topic_members(self):
        hub = Broadcaster()
        watcher, other = _socket(), _socket()
        hub.join("meeting_1", watcher)
        hub.join("meeting_2", other)

        delivered = await hub.publish("meeting_1", "newTranscript", {"id": 5})

        assert delivered == 1
        watcher.send_json.assert_awaited_once_with({"event": "newTranscript", "data": {"id": 5}})
        other.send_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_subscribers(self):
        hub = Broadcaster()
        assert await hub.publish("meeting_1", "newTranscript", {}) == 0

    @pytest.mark.asyncio
    async def test_failing_socket_dropped_without_raising(self):
        hub = Broadcaster()
        good, bad = _socket(), _socket(fail=True)
        hub.join(INDEX_TOPIC, good)
        hub.join(INDEX_TOPIC, bad)
        hub.join("meeting_1", bad)

        delivered = await hub.publish(INDEX_TOPIC, "meetingUpdated", {"id": 1})

        assert delivered == 1
        assert hub.subscriber_count(INDEX_TOPIC) == 1
        assert hub.subscriber_count("meeting_1") == 0

    @pytest.mark.asyncio
    async def test_publish_message_maps_type_and_payload(self):
        hub = Broadcaster()
        ws = _socket()
        hub.join("meeting_3", ws)

        await hub.publish_message(
            "meeting_3", {"type": "salesAnalysis", "payload": {"metrics": ["uptime"]}}
        )

        ws.send_json.assert_awaited_once_with(
            {"event": "salesAnalysis", "data": {"metrics": ["uptime"]}}
        )

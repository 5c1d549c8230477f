import json
from unittest.mock import Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ridehail.pubsub import (
    CHANNEL_NOTIFICATIONS,
    CHANNEL_RIDE_UPDATES,
    EventBuffer,
    NotificationMessage,
    NullPublisher,
)
from ridehail.redis_client import RedisPublisher
from ridehail.settings import RedisSettings
from tests.factories import RecordingPublisher


def _notification(recipient: str = "p1") -> NotificationMessage:
    return NotificationMessage(
        notification_id="n1",
        type="ride_accepted",
        ride_id="r1",
        message="A driver accepted your ride",
        recipients=[recipient],
        timestamp="2026-01-01T00:00:00+00:00",
    )


@pytest.mark.unit
class TestRedisPublisher:
    def test_publishes_json(self):
        client = Mock()
        publisher = RedisPublisher(RedisSettings(), client=client)

        publisher.publish_sync(CHANNEL_RIDE_UPDATES, {"ride_id": "r1", "fare": 6.03})

        channel, raw = client.publish.call_args.args
        assert channel == CHANNEL_RIDE_UPDATES
        assert json.loads(raw) == {"ride_id": "r1", "fare": 6.03}

    def test_rejects_unknown_channel(self):
        publisher = RedisPublisher(RedisSettings(), client=Mock())
        with pytest.raises(ValueError, match="not a valid channel"):
            publisher.publish_sync("surge-updates", {})

    def test_redis_outage_is_swallowed(self):
        client = Mock()
        client.publish.side_effect = RedisConnectionError("connection refused")
        publisher = RedisPublisher(RedisSettings(), client=client)

        publisher.publish_sync(CHANNEL_NOTIFICATIONS, {"notification_id": "n1"})

        client.publish.assert_called_once()


@pytest.mark.unit
class TestEventBuffer:
    def test_nothing_sent_until_publish_all(self):
        publisher = RecordingPublisher()
        events = EventBuffer(publisher)

        events.add(CHANNEL_NOTIFICATIONS, _notification())
        assert len(events) == 1
        assert publisher.messages == []

        events.publish_all()
        assert publisher.on(CHANNEL_NOTIFICATIONS)[0]["recipients"] == ["p1"]
        assert len(events) == 0

    def test_failing_publisher_does_not_stop_the_rest(self):
        publisher = Mock()
        publisher.publish_sync.side_effect = [RuntimeError("redis down"), None]
        events = EventBuffer(publisher)
        events.add(CHANNEL_NOTIFICATIONS, _notification("p1"))
        events.add(CHANNEL_NOTIFICATIONS, _notification("p2"))

        events.publish_all()

        assert publisher.publish_sync.call_count == 2
        assert publisher.publish_sync.call_args.args[1]["recipients"] == ["p2"]

    def test_null_publisher_accepts_everything(self):
        events = EventBuffer(NullPublisher())
        events.add(CHANNEL_NOTIFICATIONS, _notification())
        events.publish_all()
        assert len(events) == 0

import json
import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from shared.types import TABLE_APPS, TABLE_DEVELOPERS, ChangeEventType
from storefront.changes import ChangeEvent, InMemoryChangeFeed, RedisChangeFeed


class InMemoryChangeFeedTests(unittest.TestCase):
    def test_since_filters_by_cursor_and_table(self):
        feed = InMemoryChangeFeed()
        first = feed.publish(TABLE_APPS, ChangeEventType.INSERT, "a1", {"id": "a1"})
        feed.publish(TABLE_DEVELOPERS, ChangeEventType.UPDATE, "d1")
        third = feed.publish(TABLE_APPS, "DELETE", "a1")

        self.assertEqual(first.sequence, 1)
        self.assertEqual(third.event_type, ChangeEventType.DELETE)
        self.assertEqual(feed.latest_sequence(), 3)
        self.assertEqual([e.sequence for e in feed.since(0, tables=[TABLE_APPS])], [1, 3])
        self.assertEqual([e.sequence for e in feed.since(1)], [2, 3])
        self.assertEqual(len(feed.since(0, limit=2)), 2)

    def test_keeps_most_recent_events(self):
        feed = InMemoryChangeFeed(max_events=2)
        for i in range(5):
            feed.publish(TABLE_APPS, ChangeEventType.UPDATE, f"a{i}")
        self.assertEqual([e.record_id for e in feed.since(0)], ["a3", "a4"])
        self.assertEqual(feed.latest_sequence(), 5)


class RedisChangeFeedTests(unittest.TestCase):
    @patch("storefront.changes.redis.Redis.from_url")
    def test_publish_runs_one_script(self, mock_from_url):
        client = MagicMock()
        script = client.register_script.return_value
        script.return_value = 7
        mock_from_url.return_value = client

        feed = RedisChangeFeed(url="redis://localhost:6379/0", key="changes", max_events=50)
        event = feed.publish(TABLE_APPS, ChangeEventType.INSERT, "a1", {"id": "a1", "tags": []})

        self.assertEqual(event.sequence, 7)
        script.assert_called_once()
        kwargs = script.call_args.kwargs
        self.assertEqual(kwargs["keys"], ["changes", "changes:seq"])
        self.assertIs(kwargs["client"], client)
        payload, max_events = kwargs["args"]
        self.assertEqual(max_events, 50)
        decoded = json.loads(payload)
        self.assertNotIn("sequence", decoded)
        self.assertEqual(decoded["record"], {"id": "a1", "tags": []})
        client.incr.assert_not_called()
        client.pipeline.assert_not_called()

    def test_stored_event_decodes_with_script_sequence(self):
        payload = json.dumps(
            {"table": TABLE_APPS, "event_type": "UPDATE", "record_id": "a1", "record": None}
        )
        # Same splice the publish script performs.
        stored = '{"sequence": 12, ' + payload[1:]
        event = ChangeEvent.from_dict(json.loads(stored))
        self.assertEqual(event.sequence, 12)
        self.assertEqual(event.record_id, "a1")

    @patch("storefront.changes.redis.Redis.from_url")
    def test_since_decodes_events(self, mock_from_url):
        client = MagicMock()
        client.lrange.return_value = [
            json.dumps(
                ChangeEvent(
                    sequence=i,
                    table=TABLE_APPS if i % 2 else TABLE_DEVELOPERS,
                    event_type=ChangeEventType.UPDATE,
                    record_id=f"r{i}",
                ).as_dict()
            )
            for i in (1, 2, 3)
        ]
        client.get.return_value = b"3"
        mock_from_url.return_value = client

        feed = RedisChangeFeed(url="redis://localhost:6379/0")
        events = feed.since(1, tables=[TABLE_APPS])
        self.assertEqual([e.record_id for e in events], ["r3"])
        self.assertEqual(feed.latest_sequence(), 3)

    @patch("storefront.changes.redis.Redis.from_url")
    def test_since_reconnects_after_connection_error(self, mock_from_url):
        broken = MagicMock()
        broken.lrange.side_effect = redis_exceptions.ConnectionError("gone")
        fresh = MagicMock()
        mock_from_url.side_effect = [broken, fresh]

        feed = RedisChangeFeed(url="redis://localhost:6379/0")
        self.assertEqual(feed.since(0), [])
        self.assertIs(feed.client, fresh)


if __name__ == "__main__":
    unittest.main()

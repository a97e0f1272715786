import unittest
from unittest.mock import MagicMock

from console.client import ApiError
from console.stores import AppsStore, DevelopersStore, StatsTracker


def _apps():
    return [
        {"id": "a1", "name": "Notes", "status": "pending", "icon_url": "https://cdn/a1.png"},
        {"id": "a2", "name": "Maps", "status": "approved", "downloads": 40, "rating": 4.0},
    ]


class AppsStoreTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.client.list_all_apps.side_effect = lambda *args, **kwargs: _apps()
        self.store = AppsStore(self.client)
        self.store.load()

    def test_load_normalizes_icons(self):
        self.assertFalse(self.store.is_loading)
        self.assertEqual(self.store.get("a1")["icon"], "https://cdn/a1.png")
        self.assertEqual(self.store.get("a2")["icon"], "📱")
        self.assertEqual([a["id"] for a in self.store.pending_apps], ["a1"])

    def test_approve_merges_server_record(self):
        self.client.update_app_status.return_value = {
            "id": "a1",
            "status": "approved",
            "updated_at": 123.0,
        }
        self.store.approve("a1")
        self.client.update_app_status.assert_called_once_with("a1", "approved")
        self.assertEqual(self.store.get("a1")["status"], "approved")
        self.assertEqual(self.store.get("a1")["updated_at"], 123.0)
        self.assertEqual(self.store.pending_apps, [])

    def test_failed_update_rolls_back_and_reraises(self):
        seen = {}

        def fail(app_id, status):
            seen["status"] = self.store.get(app_id)["status"]
            raise ApiError(500, "boom")

        self.client.update_app_status.side_effect = fail
        with self.assertLogs("console.stores", level="WARNING"):
            with self.assertRaises(ApiError):
                self.store.reject("a1")

        self.assertEqual(seen["status"], "rejected")
        self.assertEqual(self.store.get("a1")["status"], "pending")
        self.assertEqual(self.client.list_all_apps.call_count, 2)

    def test_fetch_error_is_recorded(self):
        self.client.list_all_apps.side_effect = ApiError(503, "Service unavailable")
        with self.assertLogs("console.stores", level="ERROR"):
            self.assertEqual(self.store.refresh(), [])
        self.assertEqual(self.store.error, "Service unavailable")
        self.assertFalse(self.store.is_refreshing)


class DevelopersStoreTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.client.list_developers.return_value = [
            {"id": "d1", "status": "rejected", "rejection_reason": "Missing ID"},
            {"id": "d2", "status": "pending"},
        ]
        self.store = DevelopersStore(self.client)
        self.store.load()

    def test_missing_reason_keeps_previous(self):
        self.client.update_developer_status.return_value = None
        self.store.update_status("d1", "pending")
        self.client.update_developer_status.assert_called_once_with("d1", "pending", None)
        self.assertEqual(self.store.get("d1")["rejection_reason"], "Missing ID")
        self.assertEqual(self.store.get("d1")["status"], "pending")

    def test_reason_is_sent(self):
        self.client.update_developer_status.return_value = None
        self.store.update_status("d2", "rejected", reason="Incomplete profile")
        self.client.update_developer_status.assert_called_once_with(
            "d2", "rejected", "Incomplete profile"
        )
        self.assertEqual(self.store.get("d2")["rejection_reason"], "Incomplete profile")
        self.assertEqual([d["id"] for d in self.store.pending_developers], [])


class StatsTrackerTests(unittest.TestCase):
    def test_uses_summary_endpoint(self):
        client = MagicMock()
        client.stats_summary.return_value = {"total_apps": 3, "total_developers": 2}
        tracker = StatsTracker(client)
        summary = tracker.refresh()
        self.assertEqual(summary.total_apps, 3)
        self.assertTrue(tracker.is_live)
        self.assertIsNotNone(tracker.last_updated)
        client.list_all_apps.assert_not_called()

    def test_ignores_unknown_summary_fields(self):
        client = MagicMock()
        client.stats_summary.return_value = {"total_apps": 4, "revenue": 120}
        tracker = StatsTracker(client)
        summary = tracker.refresh()
        self.assertEqual(summary.total_apps, 4)
        self.assertFalse(hasattr(summary, "revenue"))
        self.assertTrue(tracker.is_live)

    def test_falls_back_to_listings(self):
        client = MagicMock()
        client.stats_summary.side_effect = ApiError(404, "Not Found")
        client.list_developers.return_value = [{"status": "pending"}, {"status": "approved"}]
        client.list_all_apps.return_value = _apps()
        tracker = StatsTracker(client)
        with self.assertLogs("console.stores", level="WARNING"):
            summary = tracker.refresh()
        self.assertEqual(summary.total_developers, 2)
        self.assertEqual(summary.pending_developers, 1)
        self.assertEqual(summary.approved_apps, 1)
        self.assertEqual(summary.total_downloads, 40)
        self.assertEqual(summary.top_apps[0]["id"], "a2")
        self.assertTrue(tracker.is_live)

    def test_records_error_when_everything_fails(self):
        client = MagicMock()
        client.stats_summary.side_effect = ApiError(500, "down")
        client.list_developers.side_effect = ApiError(500, "still down")
        tracker = StatsTracker(client)
        with self.assertLogs("console.stores", level="WARNING"):
            tracker.refresh()
        self.assertEqual(tracker.error, "still down")
        self.assertFalse(tracker.is_live)
        self.assertIsNone(tracker.last_updated)


if __name__ == "__main__":
    unittest.main()

import io
import unittest
import zipfile

from shared.types import BUCKET_APP_FILES, TABLE_APPS, ScanJobStatus
from storefront.changes import InMemoryChangeFeed
from storefront.config import Settings
from storefront.db import AppRecord, InMemoryDbClient
from storefront.storage import InMemoryStorageClient
from storefront.worker import process_next


def _release_bytes(*entries: str) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for entry in entries:
            archive.writestr(entry, b"x")
    return buf.getvalue()


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.feed = InMemoryChangeFeed()
        self.settings = Settings(use_in_memory_backends=True)

    def _app(self, apk_storage_path=None) -> AppRecord:
        return self.db.create_app(
            AppRecord(
                developer_id="dev-1",
                name="Puzzle",
                description="A puzzle game",
                short_description="Puzzle",
                category_id="games",
                apk_storage_path=apk_storage_path,
            )
        )

    def _process(self) -> bool:
        return process_next(
            db=self.db, storage=self.storage, feed=self.feed, settings=self.settings
        )

    def test_process_once_stores_scan_report(self):
        path = "releases/puzzle.apk"
        self.storage.upload_bytes(
            BUCKET_APP_FILES,
            path,
            _release_bytes("AndroidManifest.xml", "com/unity3d/ads/UnityAds.class"),
        )
        app = self._app(apk_storage_path=path)
        job = self.db.create_scan_job(app.app_id)

        self.assertTrue(self._process())

        self.assertEqual(self.db.get_scan_job(job.job_id).status, ScanJobStatus.DONE)
        updated = self.db.get_app(app.app_id)
        self.assertTrue(updated.contains_ads)
        self.assertFalse(updated.in_app_purchases)
        self.assertEqual(updated.scan_report["ad_networks"], ["Unity Ads"])
        self.assertEqual(updated.scan_report["risk_level"], "clean")

        events = self.feed.since(0, tables=[TABLE_APPS])
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].record_id, app.app_id)

    def test_missing_release_marks_job_error(self):
        app = self._app(apk_storage_path="releases/missing.apk")
        job = self.db.create_scan_job(app.app_id)

        self.assertTrue(self._process())

        failed = self.db.get_scan_job(job.job_id)
        self.assertEqual(failed.status, ScanJobStatus.ERROR)
        self.assertIn("missing.apk", failed.error)
        self.assertIsNone(self.db.get_app(app.app_id).scan_report)
        self.assertEqual(self.feed.since(0), [])

    def test_process_once_no_jobs(self):
        self.assertFalse(self._process())


if __name__ == "__main__":
    unittest.main()

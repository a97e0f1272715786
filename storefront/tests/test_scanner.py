import hashlib
import io
import unittest
import zipfile

from shared.types import RiskLevel
from storefront.db import AppRecord, InMemoryDbClient
from storefront.scanner import check_clone, scan_release


def _archive(*entries: str) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for entry in entries:
            archive.writestr(entry, b"")
    return buf.getvalue()


class ScanReleaseTests(unittest.TestCase):
    def test_detects_ads_and_billing(self):
        data = _archive(
            "AndroidManifest.xml",
            "com/google/android/gms/ads/AdView.class",
            "com/android/vending/billing/IInAppBillingService.class",
        )
        report = scan_release("shop.apk", data)

        self.assertEqual(report.risk_level, RiskLevel.CLEAN)
        self.assertEqual(report.ad_networks, ["Google AdMob"])
        self.assertIn("Google Play Billing", report.iap_sdks)
        self.assertTrue(report.contains_ads)
        self.assertTrue(report.in_app_purchases)
        self.assertEqual(report.entry_count, 3)
        self.assertEqual(report.sha256, hashlib.sha256(data).hexdigest())

    def test_plain_archive_is_clean(self):
        report = scan_release("notes.apk", _archive("AndroidManifest.xml"))
        self.assertEqual(report.risk_level, RiskLevel.CLEAN)
        self.assertFalse(report.contains_ads)
        self.assertEqual(report.as_dict()["ad_networks"], [])

    def test_unreadable_archive_is_suspicious(self):
        report = scan_release("broken.apk", b"not a zip file")
        self.assertEqual(report.risk_level, RiskLevel.SUSPICIOUS)
        self.assertEqual(report.entry_count, 0)

    def test_blocked_hash_is_malicious(self):
        data = _archive("AndroidManifest.xml")
        digest = hashlib.sha256(data).hexdigest().upper()
        report = scan_release("bad.apk", data, blocked_hashes=[digest])
        self.assertEqual(report.risk_level, RiskLevel.MALICIOUS)


class CloneCheckTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.create_app(
            AppRecord(
                developer_id="dev-a",
                name="Maps",
                description="Maps",
                short_description="Maps",
                category_id="tools",
                package_name="com.example.maps",
            )
        )

    def test_other_developer_is_clone(self):
        result = check_clone(self.db, " com.example.maps ", developer_id="dev-b")
        self.assertTrue(result.is_clone)
        self.assertEqual(result.package_name, "com.example.maps")
        self.assertEqual(len(result.matches), 1)

    def test_same_developer_is_not_clone(self):
        result = check_clone(self.db, "com.example.maps", developer_id="dev-a")
        self.assertFalse(result.is_clone)
        self.assertEqual(result.matches, [])

    def test_unknown_package(self):
        self.assertFalse(check_clone(self.db, "com.example.other").is_clone)


if __name__ == "__main__":
    unittest.main()

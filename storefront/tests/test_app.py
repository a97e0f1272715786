import io
import json
import unittest
import zipfile
from unittest.mock import patch

from fastapi.testclient import TestClient
from fastapi.concurrency import run_in_threadpool

from shared.types import DEFAULT_CATEGORIES
from storefront.app import create_app
from storefront.changes import InMemoryChangeFeed
from storefront.config import Settings, get_settings
from storefront.db import InMemoryDbClient, seed_categories
from storefront.dependencies import (
    get_change_feed,
    get_db_client,
    get_storage_client,
)
from storefront.storage import InMemoryStorageClient

ADMIN_TOKEN = "admin-token"
PNG_BYTES = b"\x89PNG\r\n\x1a\n fake image"


def release_bytes(*entries: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("AndroidManifest.xml", "<manifest/>")
        for entry in entries:
            archive.writestr(entry, "x")
    return buffer.getvalue()


def wizard_payload(**overrides) -> dict:
    payload = {
        "store_listing": {
            "name": "Pocket Notes",
            "short_description": "Notes in your pocket",
            "description": "Write, tag and search notes offline.",
            "category_id": "productivity",
            "tags": ["notes"],
        },
        "graphics": {},
        "monetization": {"privacy_policy_url": "https://example.com/privacy"},
        "release": {"release_notes": "First release"},
    }
    payload.update(overrides)
    return payload


class StorefrontApiTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.feed = InMemoryChangeFeed()
        self.settings = Settings(
            use_in_memory_backends=True,
            admin_emails=["admin@example.com"],
            admin_api_token=ADMIN_TOKEN,
        )
        seed_categories(self.db, DEFAULT_CATEGORIES)

        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_storage_client] = lambda: self.storage
        app.dependency_overrides[get_change_feed] = lambda: self.feed
        app.dependency_overrides[get_settings] = lambda: self.settings
        self.client = TestClient(app)

    # Helpers

    def _headers(self, token):
        return {"Authorization": f"Bearer {token}"}

    def _admin(self):
        return self._headers(ADMIN_TOKEN)

    def _register(self, email="dev@example.com", password="secret123"):
        response = self.client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": "Dev"},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["token"]

    def _developer(self, email="dev@example.com", approve=True):
        token = self._register(email)
        response = self.client.post(
            "/api/developers/register",
            json={
                "developer_type": "individual",
                "developer_name": f"Studio {email}",
                "country": "India",
                "phone": "+91 90000 00000",
            },
            headers=self._headers(token),
        )
        self.assertEqual(response.status_code, 201, response.text)
        developer_id = response.json()["id"]
        if approve:
            response = self.client.post(
                "/api/developers/update-status",
                json={"developerId": developer_id, "status": "approved"},
                headers=self._admin(),
            )
            self.assertEqual(response.status_code, 200, response.text)
        return token, developer_id

    def _upload(self, token, payload=None, package_name=None, release=None):
        files = [
            ("phone_screenshots", ("one.png", PNG_BYTES, "image/png")),
            ("phone_screenshots", ("two.png", PNG_BYTES, "image/png")),
            ("icon", ("icon.png", PNG_BYTES, "image/png")),
            ("release", ("notes.apk", release or release_bytes(), "application/octet-stream")),
        ]
        data = {"wizard": json.dumps(payload or wizard_payload())}
        if package_name:
            data["package_name"] = package_name
        return self.client.post(
            "/api/apps/upload", data=data, files=files, headers=self._headers(token)
        )

    def _published_app(self):
        token, _ = self._developer()
        response = self._upload(token)
        self.assertEqual(response.status_code, 201, response.text)
        app_id = response.json()["app"]["id"]
        response = self.client.post(
            "/api/apps/update-status",
            json={"appId": app_id, "status": "approved"},
            headers=self._admin(),
        )
        self.assertEqual(response.status_code, 200, response.text)
        return token, app_id

    # Tests

    def test_register_login_and_me(self):
        self._register("user@example.com")
        response = self.client.post(
            "/api/auth/login",
            json={"email": "USER@example.com", "password": "secret123"},
        )
        self.assertEqual(response.status_code, 200)
        token = response.json()["token"]

        me = self.client.get("/api/auth/me", headers=self._headers(token))
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["user"]["email"], "user@example.com")
        self.assertFalse(me.json()["is_admin"])

        bad = self.client.post(
            "/api/auth/login",
            json={"email": "user@example.com", "password": "wrong-password"},
        )
        self.assertEqual(bad.status_code, 401)

        self.client.post("/api/auth/logout", headers=self._headers(token))
        self.assertEqual(
            self.client.get("/api/auth/me", headers=self._headers(token)).status_code,
            401,
        )

    def test_duplicate_registration_conflicts(self):
        self._register("user@example.com")
        response = self.client.post(
            "/api/auth/register",
            json={"email": "user@example.com", "password": "secret123"},
        )
        self.assertEqual(response.status_code, 409)

    def test_admin_routes_require_admin(self):
        self.assertEqual(self.client.get("/api/apps/all").status_code, 401)
        token = self._register("user@example.com")
        response = self.client.get("/api/apps/all", headers=self._headers(token))
        self.assertEqual(response.status_code, 403)
        admin_user = self._register("admin@example.com")
        response = self.client.get("/api/apps/all", headers=self._headers(admin_user))
        self.assertEqual(response.status_code, 200)

    def test_non_ascii_bearer_token_is_unauthorized(self):
        response = self.client.get(
            "/api/auth/me",
            headers={"Authorization": "Bearer café".encode("latin-1")},
        )
        self.assertEqual(response.status_code, 401)

    def test_same_named_screenshots_are_stored_separately(self):
        token, _ = self._developer()
        files = [
            ("phone_screenshots", ("screenshot.png", PNG_BYTES + b"1", "image/png")),
            ("phone_screenshots", ("screenshot.png", PNG_BYTES + b"2", "image/png")),
        ]
        response = self.client.post(
            "/api/apps/upload",
            data={"wizard": json.dumps(wizard_payload())},
            files=files,
            headers=self._headers(token),
        )
        self.assertEqual(response.status_code, 201, response.text)
        screenshots = response.json()["app"]["screenshots"]
        self.assertEqual(len(set(screenshots)), 2)
        stored = sorted(
            data
            for (bucket, _), data in self.storage.stored_objects.items()
            if bucket == "app-screenshots"
        )
        self.assertEqual(stored, [PNG_BYTES + b"1", PNG_BYTES + b"2"])

    def test_unapproved_developer_cannot_upload(self):
        token, developer_id = self._developer(approve=False)
        response = self._upload(token)
        self.assertEqual(response.status_code, 403)

        me = self.client.get("/api/developers/me", headers=self._headers(token))
        self.assertEqual(me.json()["status"], "pending")
        self.assertEqual(me.json()["pipeline"]["progress_percent"], 0.5)

        response = self.client.post(
            "/api/developers/update-status",
            json={"developerId": developer_id, "status": "rejected", "reason": "Incomplete"},
            headers=self._admin(),
        )
        self.assertEqual(response.json()["rejection_reason"], "Incomplete")
        response = self.client.post(
            "/api/developers/update-status",
            json={"developerId": developer_id, "status": "approved"},
            headers=self._admin(),
        )
        self.assertEqual(response.json()["status"], "approved")
        self.assertEqual(response.json()["rejection_reason"], "Incomplete")

    def test_upload_review_and_publish(self):
        token, developer_id = self._developer()
        response = self._upload(token)
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        app = body["app"]
        self.assertEqual(app["status"], "pending")
        self.assertEqual(app["developer_id"], developer_id)
        self.assertEqual(len(app["screenshots"]), 2)
        self.assertTrue(app["icon_url"].startswith("https://example.test/storage/app-icons/"))
        self.assertNotIn("apk_storage_path", app)
        self.assertIsNotNone(body["scan_job_id"])

        self.assertEqual(self.client.get("/api/apps").json(), [])
        self.assertEqual(self.client.get(f"/api/apps/{app['id']}").status_code, 404)
        owner_view = self.client.get(
            f"/api/apps/{app['id']}", headers=self._headers(token)
        )
        self.assertEqual(owner_view.status_code, 200)

        mine = self.client.get("/api/developers/me/apps", headers=self._headers(token))
        self.assertEqual(mine.json()[0]["pipeline"]["stages"][0]["state"], "current")

        pending = self.client.get("/api/apps/admin/pending", headers=self._admin())
        self.assertEqual([a["id"] for a in pending.json()], [app["id"]])

        response = self.client.post(
            "/api/apps/update-status",
            json={"appId": app["id"], "status": "approved"},
            headers=self._admin(),
        )
        self.assertEqual(response.json()["status"], "approved")
        listed = self.client.get("/api/apps").json()
        self.assertEqual([a["id"] for a in listed], [app["id"]])
        pipeline = self.client.get(f"/api/apps/{app['id']}/pipeline").json()
        self.assertEqual(pipeline["progress_percent"], 1.0)

    def test_upload_validation_reports_step(self):
        token, _ = self._developer()
        payload = wizard_payload(monetization={"privacy_policy_url": ""})
        response = self._upload(token, payload)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["step"], 3)
        self.assertEqual(response.json()["detail"], "Privacy policy URL is required")

    def test_wizard_validate_endpoint(self):
        response = self.client.post(
            "/api/apps/wizard/validate",
            json=wizard_payload(graphics={"phone_screenshots": ["one.png"]}),
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["valid"])
        self.assertEqual(body["step"], 2)
        self.assertEqual(body["error"], "At least 2 phone screenshots are required")

    def test_invalid_status_transition(self):
        _, app_id = self._published_app()
        response = self.client.post(
            "/api/apps/update-status",
            json={"appId": app_id, "status": "pending"},
            headers=self._admin(),
        )
        self.assertEqual(response.status_code, 409)

    def test_reviews_update_rating(self):
        _, app_id = self._published_app()
        for email, rating in (("a@example.com", 5), ("b@example.com", 4)):
            token = self._register(email)
            response = self.client.post(
                f"/api/apps/{app_id}/reviews",
                json={"rating": rating, "comment": "ok"},
                headers=self._headers(token),
            )
            self.assertEqual(response.status_code, 201, response.text)

        app = self.client.get(f"/api/apps/{app_id}").json()
        self.assertEqual(app["rating"], 4.5)
        self.assertEqual(app["review_count"], 2)
        self.assertEqual(len(self.client.get(f"/api/apps/{app_id}/reviews").json()), 2)

        token = self._register("c@example.com")
        response = self.client.post(
            f"/api/apps/{app_id}/reviews",
            json={"rating": 6},
            headers=self._headers(token),
        )
        self.assertEqual(response.status_code, 422)

        reviews = self.client.get("/api/admin/reviews", headers=self._admin()).json()
        self.client.delete(f"/api/admin/reviews/{reviews[0]['id']}", headers=self._admin())
        app = self.client.get(f"/api/apps/{app_id}").json()
        self.assertEqual(app["review_count"], 1)

    def test_download_counts(self):
        _, app_id = self._published_app()
        self.client.post(f"/api/apps/{app_id}/download")
        response = self.client.post(f"/api/apps/{app_id}/download")
        self.assertEqual(response.json()["downloads"], 2)

    def test_owner_and_admin_edits(self):
        token, app_id = self._published_app()
        response = self.client.patch(
            f"/api/apps/{app_id}",
            json={"name": "  Pocket Notes Pro "},
            headers=self._headers(token),
        )
        self.assertEqual(response.json()["name"], "Pocket Notes Pro")

        other, _ = self._developer("other@example.com")
        response = self.client.patch(
            f"/api/apps/{app_id}", json={"name": "Stolen"}, headers=self._headers(other)
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.patch(
            f"/api/admin/apps/{app_id}",
            json={"featured": True, "trending": True},
            headers=self._admin(),
        )
        self.assertTrue(response.json()["featured"])
        featured = self.client.get("/api/apps/featured").json()
        self.assertEqual([a["id"] for a in featured], [app_id])

    def test_quick_upload_scans_release(self):
        token, _ = self._developer()
        release = release_bytes("com/google/android/gms/ads/AdView.class")
        response = self.client.post(
            "/api/apps/quick-upload",
            data={"name": "Ad Game"},
            files=[("file", ("adgame.apk", release, "application/octet-stream"))],
            headers=self._headers(token),
        )
        self.assertEqual(response.status_code, 201, response.text)
        app = response.json()["app"]
        self.assertTrue(app["contains_ads"])
        self.assertFalse(app["in_app_purchases"])
        self.assertEqual(app["category_id"], "tools")
        self.assertEqual(app["tags"], ["ad game", "tools", "android", "mobile"])
        self.assertTrue(app["description"].startswith("Ad Game is a powerful"))
        self.assertEqual(app["scan_report"]["ad_networks"], ["Google AdMob"])

    def test_clone_check(self):
        token, _ = self._developer()
        response = self._upload(token, package_name="com.example.notes")
        self.assertEqual(response.status_code, 201, response.text)

        other, _ = self._developer("other@example.com")
        check = self.client.post(
            "/api/clone-check",
            json={"packageName": "com.example.notes"},
            headers=self._headers(other),
        )
        self.assertTrue(check.json()["is_clone"])
        response = self._upload(other, package_name="com.example.notes")
        self.assertEqual(response.status_code, 409)

    def test_categories_with_counts_and_admin_management(self):
        self._published_app()
        categories = {c["id"]: c for c in self.client.get("/api/categories").json()}
        self.assertEqual(len(categories), len(DEFAULT_CATEGORIES))
        self.assertEqual(categories["productivity"]["app_count"], 1)

        response = self.client.post(
            "/api/admin/categories",
            json={"id": "travel", "name": "Travel", "icon": "✈️"},
            headers=self._admin(),
        )
        self.assertEqual(response.status_code, 201)
        response = self.client.delete("/api/admin/categories/travel", headers=self._admin())
        self.assertEqual(response.json()["status"], "ok")
        response = self.client.delete("/api/admin/categories/travel", headers=self._admin())
        self.assertEqual(response.status_code, 404)

    def test_stats_summary(self):
        self._published_app()
        self._developer("pending@example.com", approve=False)
        summary = self.client.get("/api/admin/stats/summary", headers=self._admin()).json()
        self.assertEqual(summary["total_developers"], 2)
        self.assertEqual(summary["pending_developers"], 1)
        self.assertEqual(summary["approved_apps"], 1)
        self.assertEqual(len(summary["top_apps"]), 1)

    def test_changes_poll_and_stream(self):
        _, app_id = self._published_app()
        response = self.client.get(
            "/api/changes", params={"tables": "apps"}, headers=self._admin()
        )
        body = response.json()
        sequences = [event["sequence"] for event in body["events"]]
        self.assertEqual(sequences, sorted(sequences))
        self.assertTrue(all(e["table"] == "apps" for e in body["events"]))
        self.assertEqual(body["events"][-1]["record"]["status"], "approved")

        again = self.client.get(
            "/api/changes", params={"cursor": body["cursor"]}, headers=self._admin()
        )
        self.assertEqual(again.json()["events"], [])

        stream = self.client.get(
            "/api/changes/stream",
            params={"cursor": 0, "timeout": 0},
            headers=self._admin(),
        )
        self.assertEqual(stream.status_code, 200)
        self.assertIn("event: change", stream.text)
        self.assertIn(app_id, stream.text)

    def test_stream_reads_feed_in_threadpool(self):
        self._published_app()
        with patch(
            "storefront.routes.changes.run_in_threadpool", wraps=run_in_threadpool
        ) as offload:
            stream = self.client.get(
                "/api/changes/stream",
                params={"timeout": 0},
                headers=self._admin(),
            )
        self.assertEqual(stream.status_code, 200)
        offloaded = [call.args[0] for call in offload.call_args_list]
        self.assertIn(self.feed.latest_sequence, offloaded)
        self.assertEqual(offloaded[-1].__name__, "_visible_since")
        self.assertNotIn("event: change", stream.text)

    def test_revoked_app_reaches_public_watchers_redacted(self):
        _, app_id = self._published_app()
        viewer = self._register("viewer@example.com")
        response = self.client.post(
            "/api/apps/update-status",
            json={"appId": app_id, "status": "rejected"},
            headers=self._admin(),
        )
        self.assertEqual(response.status_code, 200, response.text)

        events = self.client.get(
            "/api/changes", params={"tables": "apps"}, headers=self._headers(viewer)
        ).json()["events"]
        self.assertEqual([e["event_type"] for e in events], ["UPDATE", "UPDATE"])
        self.assertEqual(events[0]["record"]["status"], "approved")
        self.assertEqual(events[-1]["record"], {"id": app_id, "status": "rejected"})

    def test_changes_hide_other_developers(self):
        self._developer("a@example.com", approve=False)
        token, developer_id = self._developer("b@example.com", approve=False)
        events = self.client.get("/api/changes", headers=self._headers(token)).json()["events"]
        self.assertTrue(events)
        self.assertTrue(all(e["record_id"] == developer_id for e in events))

    def test_sign_url_uses_storage_client(self):
        token = self._register()
        response = self.client.get(
            "/api/sign-url",
            params={"bucket": "app-files", "path": "releases/app.apk"},
            headers=self._headers(token),
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("app-files/releases/app.apk", response.json()["url"])


if __name__ == "__main__":
    unittest.main()

# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import unittest

from shared.wizard import (
    GRAPHICS,
    LAST_STEP,
    MAX_SCREENSHOTS,
    MAX_TAGS,
    MONETIZATION,
    RELEASE,
    STORE_LISTING,
    GraphicsData,
    MonetizationData,
    ReleaseData,
    StoreListingData,
    UploadWizard,
    accept_release_file,
    validate_monetization,
    validate_store_listing,
)


def complete_wizard() -> UploadWizard:
    return UploadWizard(
        store_listing=StoreListingData(
            name="Pocket Notes",
            short_description="Notes in your pocket",
            description="Write, tag and search notes offline.",
            category_id="productivity",
            tags=["Notes", "offline"],
        ),
        graphics=GraphicsData(phone_screenshots=["a.png", "b.png"]),
        monetization=MonetizationData(privacy_policy_url="https://example.com/p"),
        release=ReleaseData(release_notes="First release"),
    )


class StoreListingTest(unittest.TestCase):

    def test_fields_are_clipped(self):
        data = StoreListingData(name="x" * 50, short_description="y" * 100)
        self.assertEqual(len(data.name), 30)
        self.assertEqual(len(data.short_description), 80)

    def test_tags_are_normalized_and_capped(self):
        data = StoreListingData()
        self.assertTrue(data.add_tag("  Games "))
        self.assertFalse(data.add_tag("games"))
        self.assertFalse(data.add_tag("   "))
        for i in range(20):
            data.add_tag(f"tag{i}")
        self.assertEqual(len(data.tags), MAX_TAGS)
        self.assertEqual(data.tags[0], "games")
        data.remove_tag("games")
        self.assertNotIn("games", data.tags)

    def test_validation_messages_in_order(self):
        data = StoreListingData()
        self.assertEqual(validate_store_listing(data), "App name is required")
        data.name = "App"
        self.assertEqual(validate_store_listing(data), "Short description is required")
        data.short_description = "Short"
        self.assertEqual(validate_store_listing(data), "Full description is required")
        data.description = "Long"
        self.assertEqual(validate_store_listing(data), "Category is required")
        data.category_id = "tools"
        self.assertIsNone(validate_store_listing(data))


class GraphicsTest(unittest.TestCase):

    def test_screenshot_limit(self):
        graphics = GraphicsData()
        for i in range(MAX_SCREENSHOTS):
            graphics.add_screenshot(f"{i}.png")
        with self.assertRaisesRegex(ValueError, "Maximum Reached"):
            graphics.add_screenshot("extra.png")
        graphics.add_screenshot("tablet.png", tablet=True)
        self.assertEqual(len(graphics.tablet_screenshots), 1)

    def test_remove_screenshot_ignores_bad_index(self):
        graphics = GraphicsData(phone_screenshots=["a.png"])
        graphics.remove_screenshot(5)
        graphics.remove_screenshot(0)
        self.assertEqual(graphics.phone_screenshots, [])


class MonetizationTest(unittest.TestCase):

    def test_paid_requires_minimum_price(self):
        data = MonetizationData(is_paid=True, privacy_policy_url="https://x.test")
        self.assertEqual(validate_monetization(data), "Price must be at least ₹10")
        data.price = "9.99"
        self.assertEqual(validate_monetization(data), "Price must be at least ₹10")
        data.price = "abc"
        self.assertEqual(validate_monetization(data), "Price must be at least ₹10")
        data.price = "10"
        self.assertIsNone(validate_monetization(data))

    def test_privacy_policy_required_first(self):
        data = MonetizationData(is_paid=True)
        self.assertEqual(validate_monetization(data), "Privacy policy URL is required")


class ReleaseTest(unittest.TestCase):

    def test_accepts_apk_and_aab_only(self):
        release = ReleaseData()
        accept_release_file(release, "app.AAB", 5 * 1024 * 1024)
        self.assertEqual(release.file_name, "app.AAB")
        self.assertEqual(release.file_size, "5.0 MB")
        with self.assertRaisesRegex(ValueError, "APK or AAB"):
            accept_release_file(release, "app.zip", 10)


class UploadWizardTest(unittest.TestCase):

    def test_go_next_blocks_on_invalid_step(self):
        wizard = UploadWizard()
        self.assertEqual(wizard.go_next(), "App name is required")
        self.assertEqual(wizard.current_step, STORE_LISTING)

    def test_walks_through_steps(self):
        wizard = complete_wizard()
        for expected in (GRAPHICS, MONETIZATION, RELEASE, LAST_STEP):
            self.assertIsNone(wizard.go_next())
            self.assertEqual(wizard.current_step, expected)
        wizard.go_prev()
        self.assertEqual(wizard.current_step, MONETIZATION)

    def test_first_error_reports_step(self):
        wizard = complete_wizard()
        wizard.graphics.phone_screenshots = ["only-one.png"]
        self.assertEqual(
            wizard.first_error(),
            (GRAPHICS, "At least 2 phone screenshots are required"),
        )
        self.assertFalse(wizard.is_all_valid)

    def test_to_submission(self):
        wizard = complete_wizard()
        wizard.monetization.is_paid = True
        wizard.monetization.price = "49"
        submission = wizard.to_submission()
        self.assertTrue(wizard.is_all_valid)
        self.assertEqual(submission["price"], 49.0)
        self.assertEqual(submission["tags"], ["notes", "offline"])
        self.assertEqual(submission["version"], "1.0.0")
        self.assertEqual(submission["size"], "N/A")


if __name__ == "__main__":
    unittest.main()

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

"""
Four step app upload wizard: Store Listing, Graphics, Monetization, Release.

The same validation runs in the console before moving between steps and in
the service before an upload is accepted.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from shared.types import (
    DEFAULT_VERSION,
    RELEASE_EXTENSIONS,
    UNKNOWN_SIZE,
    format_size_mb,
)

STORE_LISTING = 1
GRAPHICS = 2
MONETIZATION = 3
RELEASE = 4


@dataclass(frozen=True)
class WizardStep:
    id: int
    label: str
    description: str


STEPS: List[WizardStep] = [
    WizardStep(STORE_LISTING, "Store Listing", "App details"),
    WizardStep(GRAPHICS, "Graphics", "Visual assets"),
    WizardStep(MONETIZATION, "Monetization", "Pricing & policy"),
    WizardStep(RELEASE, "Release", "Upload & submit"),
]
FIRST_STEP = STEPS[0].id
LAST_STEP = STEPS[-1].id

NAME_MAX_LENGTH = 30
SHORT_DESCRIPTION_MAX_LENGTH = 80
DESCRIPTION_MAX_LENGTH = 4000
MAX_TAGS = 10
MIN_PHONE_SCREENSHOTS = 2
MAX_SCREENSHOTS = 8
MIN_PRICE = 10


@dataclass
class StoreListingData:
    name: str = ""
    short_description: str = ""
    description: str = ""
    category_id: str = ""
    tags: List[str] = field(default_factory=list)
    contact_email: str = ""
    contact_website: str = ""

    def __post_init__(self):
        self.name = (self.name or "")[:NAME_MAX_LENGTH]
        self.short_description = (self.short_description or "")[
            :SHORT_DESCRIPTION_MAX_LENGTH
        ]
        self.description = (self.description or "")[:DESCRIPTION_MAX_LENGTH]
        tags = list(self.tags or [])
        self.tags = []
        for tag in tags:
            self.add_tag(tag)

    def add_tag(self, raw: str) -> bool:
        tag = (raw or "").strip().lower()
        if not tag or tag in self.tags or len(self.tags) >= MAX_TAGS:
            return False
        self.tags.append(tag)
        return True

    def remove_tag(self, tag: str) -> None:
        self.tags = [t for t in self.tags if t != tag]


@dataclass
class GraphicsData:
    """Holds asset references (file names or storage paths) for each slot."""

    icon: Optional[str] = None
    feature_graphic: Optional[str] = None
    phone_screenshots: List[str] = field(default_factory=list)
    tablet_screenshots: List[str] = field(default_factory=list)

    def add_screenshot(self, ref: str, *, tablet: bool = False) -> None:
        target = self.tablet_screenshots if tablet else self.phone_screenshots
        if len(target) >= MAX_SCREENSHOTS:
            raise ValueError("Maximum Reached")
        target.append(ref)

    def remove_screenshot(self, index: int, *, tablet: bool = False) -> None:
        target = self.tablet_screenshots if tablet else self.phone_screenshots
        if 0 <= index < len(target):
            del target[index]


@dataclass
class MonetizationData:
    is_paid: bool = False
    price: str = ""
    contains_ads: bool = False
    in_app_purchases: bool = False
    privacy_policy_url: str = ""

    def price_value(self) -> Optional[float]:
        try:
            return float(self.price)
        except (TypeError, ValueError):
            return None


@dataclass
class ReleaseData:
    file_name: Optional[str] = None
    file_size: str = ""
    release_notes: str = ""


def is_release_file(file_name: str) -> bool:
    return (file_name or "").lower().endswith(RELEASE_EXTENSIONS)


def accept_release_file(release: ReleaseData, file_name: str, size_bytes: int) -> ReleaseData:
    if not is_release_file(file_name):
        raise ValueError("Please upload an APK or AAB file.")
    release.file_name = file_name
    release.file_size = format_size_mb(size_bytes)
    return release


def validate_store_listing(data: StoreListingData) -> Optional[str]:
    if not data.name.strip():
        return "App name is required"
    if not data.short_description.strip():
        return "Short description is required"
    if not data.description.strip():
        return "Full description is required"
    if not data.category_id:
        return "Category is required"
    return None


def validate_graphics(data: GraphicsData) -> Optional[str]:
    if len(data.phone_screenshots) < MIN_PHONE_SCREENSHOTS:
        return "At least 2 phone screenshots are required"
    return None


def validate_monetization(data: MonetizationData) -> Optional[str]:
    if not data.privacy_policy_url.strip():
        return "Privacy policy URL is required"
    if data.is_paid:
        price = data.price_value()
        if not data.price or price is None or price < MIN_PRICE:
            return "Price must be at least ₹10"
    return None


def validate_release(data: ReleaseData) -> Optional[str]:
    if not data.release_notes.strip():
        return "Release notes are required"
    return None


@dataclass
class UploadWizard:
    store_listing: StoreListingData = field(default_factory=StoreListingData)
    graphics: GraphicsData = field(default_factory=GraphicsData)
    monetization: MonetizationData = field(default_factory=MonetizationData)
    release: ReleaseData = field(default_factory=ReleaseData)
    current_step: int = FIRST_STEP

    def validate_step(self, step: int) -> Optional[str]:
        if step == STORE_LISTING:
            return validate_store_listing(self.store_listing)
        if step == GRAPHICS:
            return validate_graphics(self.graphics)
        if step == MONETIZATION:
            return validate_monetization(self.monetization)
        if step == RELEASE:
            return validate_release(self.release)
        return None

    def first_error(self) -> Optional[Tuple[int, str]]:
        for step in STEPS:
            error = self.validate_step(step.id)
            if error:
                return step.id, error
        return None

    @property
    def is_all_valid(self) -> bool:
        return self.first_error() is None

    def go_next(self) -> Optional[str]:
        """Advance one step. Returns the blocking error and stays put if invalid."""
        error = self.validate_step(self.current_step)
        if error:
            return error
        self.current_step = min(self.current_step + 1, LAST_STEP)
        return None

    def go_prev(self) -> None:
        self.current_step = max(self.current_step - 1, FIRST_STEP)

    def to_submission(self) -> dict:
        listing = self.store_listing
        money = self.monetization
        return {
            "name": listing.name,
            "short_description": listing.short_description,
            "description": listing.description,
            "category_id": listing.category_id,
            "tags": list(listing.tags),
            "contact_email": listing.contact_email,
            "contact_website": listing.contact_website,
            "version": DEFAULT_VERSION,
            "size": self.release.file_size or UNKNOWN_SIZE,
            "is_paid": money.is_paid,
            "price": money.price_value() if money.is_paid else None,
            "contains_ads": money.contains_ads,
            "in_app_purchases": money.in_app_purchases,
            "privacy_policy_url": money.privacy_policy_url,
            "release_notes": self.release.release_notes,
        }


def validate_all(
    store_listing: StoreListingData,
    graphics: GraphicsData,
    monetization: MonetizationData,
    release: ReleaseData,
) -> Optional[Tuple[int, str]]:
    return UploadWizard(
        store_listing=store_listing,
        graphics=graphics,
        monetization=monetization,
        release=release,
    ).first_error()

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

from dataclasses import dataclass
from enum import StrEnum
from typing import List


class AppStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeveloperStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeveloperType(StrEnum):
    INDIVIDUAL = "individual"
    COMPANY = "company"


class RiskLevel(StrEnum):
    CLEAN = "clean"
    SUSPICIOUS = "suspicious"
    MALICIOUS = "malicious"


class ChangeEventType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ScanJobStatus(StrEnum):
    WAITING = "waiting"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


# Storage buckets
BUCKET_APP_ICONS = "app-icons"
BUCKET_APP_SCREENSHOTS = "app-screenshots"
BUCKET_APP_FILES = "app-files"
STORAGE_BUCKETS = (BUCKET_APP_ICONS, BUCKET_APP_SCREENSHOTS, BUCKET_APP_FILES)

# Change feed tables
TABLE_APPS = "apps"
TABLE_DEVELOPERS = "developers"
TABLE_CATEGORIES = "categories"
TABLE_REVIEWS = "reviews"

DEFAULT_ICON = "📱"
DEFAULT_VERSION = "1.0.0"
UNKNOWN_SIZE = "N/A"

RELEASE_EXTENSIONS = (".apk", ".aab")

COUNTRIES = [
    "United States",
    "United Kingdom",
    "Canada",
    "Germany",
    "France",
    "India",
    "Japan",
    "Australia",
    "Brazil",
    "Netherlands",
    "Other",
]


@dataclass(frozen=True)
class CategorySeed:
    id: str
    name: str
    icon: str
    description: str


DEFAULT_CATEGORIES: List[CategorySeed] = [
    CategorySeed("games", "Games", "🎮", "Play the best mobile games"),
    CategorySeed("social", "Social", "💬", "Connect with friends"),
    CategorySeed("productivity", "Productivity", "📊", "Get things done"),
    CategorySeed("entertainment", "Entertainment", "🎬", "Movies, music & more"),
    CategorySeed("education", "Education", "📚", "Learn something new"),
    CategorySeed("finance", "Finance", "💰", "Manage your money"),
    CategorySeed("health", "Health & Fitness", "💪", "Stay healthy"),
    CategorySeed("tools", "Tools", "🔧", "Useful utilities"),
]


def format_size_mb(size_bytes: int) -> str:
    """Human readable release size, e.g. "12.3 MB"."""
    return f"{size_bytes / (1024 * 1024):.1f} MB"

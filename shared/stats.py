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
Admin dashboard summary computed from developer and app rows.

Rows are the serialized records returned by the API, so the console can
rebuild the summary from plain listings when the summary endpoint fails.
"""

from dataclasses import asdict, dataclass, field
from typing import Iterable, List

from shared.types import AppStatus, DeveloperStatus

TOP_APPS_LIMIT = 5


@dataclass
class StatsSummary:
    total_developers: int = 0
    pending_developers: int = 0
    approved_developers: int = 0
    total_apps: int = 0
    pending_apps: int = 0
    approved_apps: int = 0
    total_downloads: int = 0
    avg_rating: float = 0.0
    top_apps: List[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


def summarize(developers: Iterable[dict], apps: Iterable[dict]) -> StatsSummary:
    developers = list(developers)
    apps = list(apps)
    rated = [app.get("rating") or 0 for app in apps if (app.get("rating") or 0) > 0]
    top = sorted(
        (app for app in apps if app.get("status") == AppStatus.APPROVED),
        key=lambda a: a.get("downloads") or 0,
        reverse=True,
    )[:TOP_APPS_LIMIT]
    return StatsSummary(
        total_developers=len(developers),
        pending_developers=sum(
            1 for d in developers if d.get("status") == DeveloperStatus.PENDING
        ),
        approved_developers=sum(
            1 for d in developers if d.get("status") == DeveloperStatus.APPROVED
        ),
        total_apps=len(apps),
        pending_apps=sum(1 for a in apps if a.get("status") == AppStatus.PENDING),
        approved_apps=sum(1 for a in apps if a.get("status") == AppStatus.APPROVED),
        total_downloads=sum(a.get("downloads") or 0 for a in apps),
        avg_rating=round(sum(rated) / len(rated), 1) if rated else 0.0,
        top_apps=[
            {
                "id": a.get("id"),
                "name": a.get("name"),
                "downloads": a.get("downloads") or 0,
                "rating": a.get("rating") or 0,
            }
            for a in top
        ],
    )

"""
Admin dashboard summary.
"""

from __future__ import annotations

from shared.stats import StatsSummary, summarize
from storefront.db import DbClient


def get_summary(db: DbClient) -> StatsSummary:
    return summarize(
        (developer.as_dict() for developer in db.list_developers()),
        (app.as_dict() for app in db.list_apps()),
    )

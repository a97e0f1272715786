"""
Client-side collections with optimistic status updates.

A status change is applied to the local copy first, then sent to the API.
If the call fails the collection is refetched from the server, which rolls
the local change back, and the error is re-raised to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import fields
from typing import List, Optional

from console.client import ApiError, StorefrontClient
from shared.stats import StatsSummary, summarize
from shared.types import DEFAULT_ICON, AppStatus, DeveloperStatus

logger = logging.getLogger(__name__)


class OptimisticStore:
    """Base class; subclasses provide `fetch` and `send_status`."""

    name = "items"

    def __init__(self, client: StorefrontClient):
        self.client = client
        self.items: List[dict] = []
        self.is_loading = False
        self.is_refreshing = False
        self.error: Optional[str] = None

    def fetch(self) -> List[dict]:
        raise NotImplementedError

    def send_status(self, item_id: str, status: str, **extra) -> Optional[dict]:
        raise NotImplementedError

    def _fetch_safely(self) -> List[dict]:
        try:
            items = self.fetch()
        except ApiError as exc:
            logger.error("Error fetching %s: %s", self.name, exc.message)
            self.error = exc.message or f"Failed to fetch {self.name}"
            return []
        self.error = None
        return items

    def load(self) -> List[dict]:
        self.is_loading = True
        try:
            self.items = self._fetch_safely()
        finally:
            self.is_loading = False
        return self.items

    def refresh(self) -> List[dict]:
        self.is_refreshing = True
        try:
            self.items = self._fetch_safely()
        finally:
            self.is_refreshing = False
        return self.items

    def get(self, item_id: str) -> Optional[dict]:
        return next((item for item in self.items if item.get("id") == item_id), None)

    def _apply_local(self, item_id: str, status: str, extra: dict) -> None:
        now = time.time()
        self.items = [
            {**item, "status": status, "updated_at": now, **extra}
            if item.get("id") == item_id
            else item
            for item in self.items
        ]

    def update_status(self, item_id: str, status: str, **extra) -> Optional[dict]:
        self._apply_local(item_id, status, extra)
        try:
            record = self.send_status(item_id, status, **extra)
        except Exception:
            logger.warning("Rolling back %s status change for %s", self.name, item_id)
            self.refresh()
            raise
        if isinstance(record, dict) and record.get("id") == item_id:
            self.items = [record if i.get("id") == item_id else i for i in self.items]
        return record


def _normalize_app(app: dict) -> dict:
    return {**app, "icon": app.get("icon") or app.get("icon_url") or DEFAULT_ICON}


class AppsStore(OptimisticStore):
    name = "apps"

    def fetch(self) -> List[dict]:
        return [_normalize_app(app) for app in self.client.list_all_apps()]

    def send_status(self, item_id: str, status: str, **extra) -> Optional[dict]:
        record = self.client.update_app_status(item_id, str(status))
        return _normalize_app(record) if isinstance(record, dict) else record

    @property
    def pending_apps(self) -> List[dict]:
        return [app for app in self.items if app.get("status") == AppStatus.PENDING]

    def approve(self, app_id: str) -> Optional[dict]:
        return self.update_status(app_id, AppStatus.APPROVED)

    def reject(self, app_id: str) -> Optional[dict]:
        return self.update_status(app_id, AppStatus.REJECTED)


class DevelopersStore(OptimisticStore):
    name = "developers"

    def fetch(self) -> List[dict]:
        return self.client.list_developers()

    def send_status(self, item_id: str, status: str, **extra) -> Optional[dict]:
        return self.client.update_developer_status(
            item_id, str(status), extra.get("rejection_reason")
        )

    def update_status(
        self, item_id: str, status: str, reason: Optional[str] = None
    ) -> Optional[dict]:
        """A missing reason leaves the previous rejection reason in place."""
        extra = {"rejection_reason": reason} if reason else {}
        return super().update_status(item_id, status, **extra)

    @property
    def pending_developers(self) -> List[dict]:
        return [d for d in self.items if d.get("status") == DeveloperStatus.PENDING]


class StatsTracker:
    """
    Dashboard summary. Falls back to computing the summary from the developer
    and app listings when the summary endpoint is unavailable.
    """

    name = "stats"

    def __init__(self, client: StorefrontClient):
        self.client = client
        self.summary = StatsSummary()
        self.is_live = False
        self.last_updated: Optional[float] = None
        self.error: Optional[str] = None

    def refresh(self) -> StatsSummary:
        try:
            payload = self.client.stats_summary() or {}
            known = {f.name for f in fields(StatsSummary)}
            self.summary = StatsSummary(
                **{key: value for key, value in payload.items() if key in known}
            )
            self.is_live = True
        except ApiError as exc:
            logger.warning("Stats summary unavailable (%s), computing locally", exc.message)
            try:
                self.summary = summarize(
                    self.client.list_developers(), self.client.list_all_apps()
                )
            except ApiError as fallback_exc:
                logger.error("Error fetching stats: %s", fallback_exc.message)
                self.error = fallback_exc.message
                self.is_live = False
                return self.summary
            self.is_live = True
        self.error = None
        self.last_updated = time.time()
        return self.summary

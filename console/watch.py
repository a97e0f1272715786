"""
Polls the change feed and refreshes the stores subscribed to each table.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from console.client import ApiError, StorefrontClient

logger = logging.getLogger(__name__)


class ChangeWatcher:
    def __init__(self, client: StorefrontClient, cursor: int = 0, limit: int = 100):
        self.client = client
        self.cursor = cursor
        self.limit = limit
        self.subscriptions: Dict[str, List[object]] = {}

    def subscribe(self, table: str, store) -> None:
        """`store` is anything with a `refresh()` method."""
        self.subscriptions.setdefault(table, []).append(store)

    def poll_once(self) -> List[dict]:
        response = self.client.changes(
            self.cursor, tables=list(self.subscriptions) or None, limit=self.limit
        )
        events = response.get("events") or []
        self.cursor = response.get("cursor", self.cursor)

        refreshed = set()
        for event in events:
            for store in self.subscriptions.get(event.get("table"), []):
                if id(store) in refreshed:
                    continue
                refreshed.add(id(store))
                store.refresh()
        if events:
            logger.info("Applied %d change events (cursor=%d)", len(events), self.cursor)
        return events

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        interval: float = 2.0,
    ) -> None:
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            try:
                self.poll_once()
            except ApiError as exc:
                logger.warning("Change poll failed: %s", exc.message)
            stop_event.wait(interval)

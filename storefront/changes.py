"""
Change feed for row-level INSERT/UPDATE/DELETE events.

Consoles poll (or stream) the feed from a cursor and refresh the tables they
care about. Supports an in-memory feed for tests/local runs and a
Redis-backed feed shared between service processes.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from shared.types import ChangeEventType


@dataclass
class ChangeEvent:
    sequence: int
    table: str
    event_type: ChangeEventType
    record_id: str
    record: Optional[dict] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "table": self.table,
            "event_type": str(self.event_type),
            "record_id": self.record_id,
            "record": self.record,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        return cls(
            sequence=int(data["sequence"]),
            table=data["table"],
            event_type=ChangeEventType(data["event_type"]),
            record_id=data["record_id"],
            record=data.get("record"),
            created_at=float(data.get("created_at") or 0.0),
        )


class ChangeFeed(Protocol):
    """Publish/replay interface; sequences strictly increase per feed."""

    def publish(
        self,
        table: str,
        event_type: ChangeEventType,
        record_id: str,
        record: Optional[dict] = None,
    ) -> ChangeEvent:
        ...

    def since(
        self,
        cursor: int = 0,
        tables: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> List[ChangeEvent]:
        ...

    def latest_sequence(self) -> int:
        ...


def _select(
    events: Iterable[ChangeEvent],
    cursor: int,
    tables: Optional[Iterable[str]],
    limit: int,
) -> List[ChangeEvent]:
    wanted = set(tables) if tables else None
    selected: List[ChangeEvent] = []
    for event in events:
        if event.sequence <= cursor:
            continue
        if wanted is not None and event.table not in wanted:
            continue
        selected.append(event)
        if len(selected) >= limit:
            break
    return selected


@dataclass
class InMemoryChangeFeed:
    """Bounded list of events kept in process memory."""

    max_events: int = 1000
    events: List[ChangeEvent] = field(default_factory=list)
    _sequence: int = 0

    def publish(
        self,
        table: str,
        event_type: ChangeEventType,
        record_id: str,
        record: Optional[dict] = None,
    ) -> ChangeEvent:
        self._sequence += 1
        event = ChangeEvent(
            sequence=self._sequence,
            table=table,
            event_type=ChangeEventType(event_type),
            record_id=record_id,
            record=record,
        )
        self.events.append(event)
        if len(self.events) > self.max_events:
            del self.events[: len(self.events) - self.max_events]
        return event

    def since(
        self,
        cursor: int = 0,
        tables: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> List[ChangeEvent]:
        return _select(self.events, cursor, tables, limit)

    def latest_sequence(self) -> int:
        return self._sequence


# KEYS: event list, sequence counter. ARGV: event JSON object without its
# sequence, max events.
_PUBLISH_SCRIPT = """
local sequence = redis.call("INCR", KEYS[2])
local event = '{"sequence": ' .. sequence .. ', ' .. string.sub(ARGV[1], 2)
redis.call("RPUSH", KEYS[1], event)
redis.call("LTRIM", KEYS[1], -tonumber(ARGV[2]), -1)
return sequence
"""


@dataclass
class RedisChangeFeed:
    """
    Redis-backed feed. The sequence INCR and the RPUSH/LTRIM of the event run
    in one Lua script, so the log is always in sequence order.
    """

    url: str
    key: str = "storefront:changes"
    max_events: int = 1000

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)
        self._publish_script = self.client.register_script(_PUBLISH_SCRIPT)

    @property
    def _sequence_key(self) -> str:
        return f"{self.key}:seq"

    def publish(
        self,
        table: str,
        event_type: ChangeEventType,
        record_id: str,
        record: Optional[dict] = None,
    ) -> ChangeEvent:
        event = ChangeEvent(
            sequence=0,
            table=table,
            event_type=ChangeEventType(event_type),
            record_id=record_id,
            record=record,
        )
        payload = event.as_dict()
        payload.pop("sequence")
        event.sequence = int(
            self._publish_script(
                keys=[self.key, self._sequence_key],
                args=[json.dumps(payload, default=str), self.max_events],
                client=self.client,
            )
        )
        return event

    def since(
        self,
        cursor: int = 0,
        tables: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> List[ChangeEvent]:
        try:
            raw_events = self.client.lrange(self.key, 0, -1)
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and report no events.
            self.client = redis.Redis.from_url(self.url)
            return []
        events = [ChangeEvent.from_dict(json.loads(raw)) for raw in raw_events]
        return _select(events, cursor, tables, limit)

    def latest_sequence(self) -> int:
        value = self.client.get(self._sequence_key)
        return int(value) if value else 0

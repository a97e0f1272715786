"""
Change feed routes: cursor polling and a server-sent event stream.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import replace
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from fastapi.concurrency import run_in_threadpool

from shared.types import (
    TABLE_APPS,
    TABLE_CATEGORIES,
    TABLE_DEVELOPERS,
    AppStatus,
    ChangeEventType,
)
from storefront.auth import Principal
from storefront.changes import ChangeEvent, ChangeFeed
from storefront.dependencies import get_change_feed, get_current_principal
from storefront.routes.common import developer_id_of
from storefront.schemas import ChangesResponse

router = APIRouter(prefix="/changes", tags=["changes"])

STREAM_POLL_SECONDS = 1.0


def is_visible(event: ChangeEvent, principal: Principal) -> bool:
    """Admins see every event; other callers see public rows and their own."""
    if principal.is_admin or event.table == TABLE_CATEGORIES:
        return True
    developer_id = developer_id_of(principal)
    if event.table == TABLE_DEVELOPERS:
        return developer_id is not None and event.record_id == developer_id
    if event.table == TABLE_APPS:
        record = event.record or {}
        if developer_id and record.get("developer_id") == developer_id:
            return True
        return record.get("status") == AppStatus.APPROVED
    return True


def _redacted(event: ChangeEvent) -> ChangeEvent:
    status = (event.record or {}).get("status")
    return replace(event, record={"id": event.record_id, "status": status})


def visible_events(
    events: List[ChangeEvent], principal: Principal
) -> List[ChangeEvent]:
    """
    Filter events for a caller. App updates and deletes the caller may not
    read in full still arrive as `{id, status}`, so a revoked app drops out
    of public listings.
    """
    visible = []
    for event in events:
        if is_visible(event, principal):
            visible.append(event)
        elif event.table == TABLE_APPS and event.event_type != ChangeEventType.INSERT:
            visible.append(_redacted(event))
    return visible


def _visible_since(
    feed: ChangeFeed,
    principal: Principal,
    cursor: int,
    tables: Optional[List[str]],
    limit: int,
) -> tuple[List[ChangeEvent], int]:
    events = feed.since(cursor, tables=tables, limit=limit)
    if events:
        cursor = events[-1].sequence
    return visible_events(events, principal), cursor


def _sse(event: ChangeEvent) -> str:
    return f"id: {event.sequence}\nevent: change\ndata: {json.dumps(event.as_dict())}\n\n"


@router.get("", response_model=ChangesResponse)
def poll_changes(
    cursor: int = Query(0, ge=0),
    tables: Optional[List[str]] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    feed: ChangeFeed = Depends(get_change_feed),
    principal: Principal = Depends(get_current_principal),
):
    events, next_cursor = _visible_since(feed, principal, cursor, tables, limit)
    return ChangesResponse(events=[e.as_dict() for e in events], cursor=next_cursor)


@router.get("/stream")
async def stream_changes(
    request: Request,
    cursor: Optional[int] = Query(None, ge=0),
    tables: Optional[List[str]] = Query(None),
    timeout: float = Query(30.0, ge=0, le=300),
    feed: ChangeFeed = Depends(get_change_feed),
    principal: Principal = Depends(get_current_principal),
):
    """
    Stream events after `cursor` (or from now when omitted) until `timeout`
    seconds pass or the client disconnects. Clients reconnect with the last
    event id as the new cursor.
    """
    if cursor is None:
        cursor = await run_in_threadpool(feed.latest_sequence)
    start = cursor

    async def event_generator():
        position = start
        deadline = time.monotonic() + timeout
        yield f": connected {position}\n\n"
        while True:
            events, position = await run_in_threadpool(
                _visible_since, feed, principal, position, tables, 100
            )
            for event in events:
                yield _sse(event)
            if time.monotonic() >= deadline or await request.is_disconnected():
                break
            await asyncio.sleep(STREAM_POLL_SECONDS)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

"""
Developer program: registration and admin review of developer accounts.
"""

from __future__ import annotations

import logging
from typing import Optional

from shared.pipeline import check_transition
from shared.types import (
    COUNTRIES,
    TABLE_DEVELOPERS,
    ChangeEventType,
    DeveloperStatus,
    DeveloperType,
)
from storefront.changes import ChangeFeed
from storefront.db import DbClient, DeveloperRecord, UserRecord
from storefront.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)


def register_developer(
    db: DbClient,
    feed: ChangeFeed,
    user: UserRecord,
    *,
    developer_type: DeveloperType,
    developer_name: str,
    country: str,
    phone: str,
    full_name: Optional[str] = None,
    website: Optional[str] = None,
    bio: Optional[str] = None,
) -> DeveloperRecord:
    if db.get_developer_by_user(user.user_id):
        raise ConflictError("Developer profile already exists")
    developer_name = (developer_name or "").strip()
    country = (country or "").strip()
    phone = (phone or "").strip()
    if not developer_name or not country or not phone:
        raise ValidationFailedError("Please fill in all required fields")
    if country not in COUNTRIES:
        raise ValidationFailedError(f"Unsupported country: {country}")

    developer = db.create_developer(
        DeveloperRecord(
            user_id=user.user_id,
            full_name=(full_name or "").strip() or user.name,
            email=user.email,
            developer_type=DeveloperType(developer_type),
            developer_name=developer_name,
            country=country,
            phone=phone,
            website=(website or "").strip() or None,
            bio=(bio or "").strip() or None,
        )
    )
    logger.info("Developer application %s submitted by %s", developer.developer_id, user.user_id)
    feed.publish(
        TABLE_DEVELOPERS,
        ChangeEventType.INSERT,
        developer.developer_id,
        developer.as_dict(),
    )
    return developer


def set_developer_status(
    db: DbClient,
    feed: ChangeFeed,
    developer_id: str,
    status: DeveloperStatus,
    reason: Optional[str] = None,
) -> DeveloperRecord:
    """Approve or reject a developer. A missing reason keeps the previous one."""
    developer = db.get_developer(developer_id)
    if not developer:
        raise NotFoundError("Developer not found")
    try:
        check_transition(developer.status, status)
    except ValueError as exc:
        raise InvalidTransitionError(str(exc)) from exc

    changes = {"status": DeveloperStatus(status)}
    reason = (reason or "").strip()
    if reason:
        changes["rejection_reason"] = reason
    updated = db.update_developer(developer_id, **changes)
    logger.info("Developer %s status %s -> %s", developer_id, developer.status, status)
    feed.publish(
        TABLE_DEVELOPERS, ChangeEventType.UPDATE, developer_id, updated.as_dict()
    )
    return updated

"""
Public storefront queries, review aggregation and the developer/admin
write paths for app listings.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from shared.pipeline import check_transition
from shared.types import (
    TABLE_APPS,
    TABLE_CATEGORIES,
    TABLE_REVIEWS,
    AppStatus,
    ChangeEventType,
)
from storefront.changes import ChangeFeed
from storefront.db import AppRecord, CategoryRecord, DbClient, ReviewRecord
from storefront.errors import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

SORT_POPULAR = "popular"
SORT_RATING = "rating"
SORT_NEWEST = "newest"
SORT_NAME = "name"
SORT_OPTIONS = (SORT_POPULAR, SORT_RATING, SORT_NEWEST, SORT_NAME)

MIN_RATING = 1
MAX_RATING = 5

# Fields a developer may edit on their own listing.
DEVELOPER_EDITABLE_FIELDS = {
    "name",
    "short_description",
    "description",
    "category_id",
    "version",
    "icon_url",
    "screenshots",
}
# Admins may additionally change monetization, placement and status.
ADMIN_EDITABLE_FIELDS = DEVELOPER_EDITABLE_FIELDS | {
    "is_paid",
    "price",
    "contains_ads",
    "in_app_purchases",
    "featured",
    "trending",
    "status",
}


def approved_apps(db: DbClient) -> List[AppRecord]:
    return db.list_apps(status=AppStatus.APPROVED)


def search_apps(apps: List[AppRecord], query: str) -> List[AppRecord]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(apps)
    return [
        app
        for app in apps
        if needle in app.name.lower()
        or needle in app.description.lower()
        or needle in app.category_id.lower()
    ]


def sort_apps(apps: List[AppRecord], sort_by: str) -> List[AppRecord]:
    if sort_by == SORT_POPULAR:
        return sorted(apps, key=lambda a: a.downloads, reverse=True)
    if sort_by == SORT_RATING:
        return sorted(apps, key=lambda a: a.rating, reverse=True)
    if sort_by == SORT_NEWEST:
        return sorted(apps, key=lambda a: a.created_at, reverse=True)
    if sort_by == SORT_NAME:
        return sorted(apps, key=lambda a: a.name.lower())
    raise ValidationFailedError(f"Unknown sort option: {sort_by}")


def browse(
    db: DbClient,
    *,
    query: Optional[str] = None,
    category_id: Optional[str] = None,
    sort_by: str = SORT_POPULAR,
) -> List[AppRecord]:
    """Approved apps filtered by search text and category, then sorted."""
    apps = approved_apps(db)
    if query:
        apps = search_apps(apps, query)
    if category_id and category_id != "all":
        apps = [app for app in apps if app.category_id == category_id]
    return sort_apps(apps, sort_by)


def featured_apps(db: DbClient) -> List[AppRecord]:
    return [app for app in approved_apps(db) if app.featured]


def trending_apps(db: DbClient) -> List[AppRecord]:
    return [app for app in approved_apps(db) if app.trending]


def categories_with_counts(db: DbClient) -> List[tuple[CategoryRecord, int]]:
    counts: dict[str, int] = {}
    for app in approved_apps(db):
        counts[app.category_id] = counts.get(app.category_id, 0) + 1
    return [(c, counts.get(c.category_id, 0)) for c in db.list_categories()]


def get_visible_app(
    db: DbClient,
    app_id: str,
    *,
    viewer_developer_id: Optional[str] = None,
    is_admin: bool = False,
) -> AppRecord:
    """Approved apps are public; unpublished ones are visible to their owner and admins."""
    app = db.get_app(app_id)
    if not app:
        raise NotFoundError("App not found")
    if app.status == AppStatus.APPROVED or is_admin:
        return app
    if viewer_developer_id and app.developer_id == viewer_developer_id:
        return app
    raise NotFoundError("App not found")


def record_download(db: DbClient, feed: ChangeFeed, app_id: str) -> AppRecord:
    app = db.get_app(app_id)
    if not app or app.status != AppStatus.APPROVED:
        raise NotFoundError("App not found")
    updated = db.update_app(
        app_id, downloads=app.downloads + 1, updated_at=app.updated_at
    )
    feed.publish(TABLE_APPS, ChangeEventType.UPDATE, app_id, updated.as_dict())
    return updated


def _refresh_rating(db: DbClient, app_id: str) -> Optional[AppRecord]:
    reviews = db.list_reviews(app_id)
    if reviews:
        rating = round(sum(r.rating for r in reviews) / len(reviews), 1)
    else:
        rating = 0.0
    return db.update_app(app_id, rating=rating, review_count=len(reviews))


def add_review(
    db: DbClient,
    feed: ChangeFeed,
    *,
    app_id: str,
    user_id: str,
    rating: int,
    comment: Optional[str] = None,
) -> ReviewRecord:
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationFailedError("Rating must be between 1 and 5")
    app = db.get_app(app_id)
    if not app or app.status != AppStatus.APPROVED:
        raise NotFoundError("App not found")
    review = db.save_review(
        ReviewRecord(
            app_id=app_id,
            user_id=user_id,
            rating=rating,
            comment=(comment or "").strip() or None,
        )
    )
    updated = _refresh_rating(db, app_id)
    feed.publish(TABLE_REVIEWS, ChangeEventType.INSERT, review.review_id, review.as_dict())
    if updated:
        feed.publish(TABLE_APPS, ChangeEventType.UPDATE, app_id, updated.as_dict())
    return review


def remove_review(db: DbClient, feed: ChangeFeed, review_id: str) -> None:
    review = db.get_review(review_id)
    if not review or not db.delete_review(review_id):
        raise NotFoundError("Review not found")
    updated = _refresh_rating(db, review.app_id)
    feed.publish(TABLE_REVIEWS, ChangeEventType.DELETE, review_id, None)
    if updated:
        feed.publish(TABLE_APPS, ChangeEventType.UPDATE, review.app_id, updated.as_dict())


def set_app_status(
    db: DbClient, feed: ChangeFeed, app_id: str, status: AppStatus
) -> AppRecord:
    app = db.get_app(app_id)
    if not app:
        raise NotFoundError("App not found")
    try:
        check_transition(app.status, status)
    except ValueError as exc:
        raise InvalidTransitionError(str(exc)) from exc
    if app.status == status:
        return app
    updated = db.update_app(app_id, status=AppStatus(status))
    logger.info("App %s status %s -> %s", app_id, app.status, status)
    feed.publish(TABLE_APPS, ChangeEventType.UPDATE, app_id, updated.as_dict())
    return updated


def edit_app(
    db: DbClient,
    feed: ChangeFeed,
    app_id: str,
    changes: dict,
    *,
    editor_developer_id: Optional[str] = None,
    as_admin: bool = False,
) -> AppRecord:
    """
    Apply a listing edit. Developers may edit their own listing details; admins
    may also change monetization, featured/trending placement and status.
    """
    app = db.get_app(app_id)
    if not app:
        raise NotFoundError("App not found")
    if not as_admin and app.developer_id != editor_developer_id:
        raise PermissionDeniedError("You can only edit your own apps")

    allowed = ADMIN_EDITABLE_FIELDS if as_admin else DEVELOPER_EDITABLE_FIELDS
    forbidden = set(changes) - allowed
    if forbidden:
        raise PermissionDeniedError(f"Fields not editable: {sorted(forbidden)}")

    changes = dict(changes)
    for key in ("name", "short_description", "description", "version"):
        if key in changes and changes[key] is not None:
            changes[key] = changes[key].strip()
    if "name" in changes and not changes["name"]:
        raise ValidationFailedError("App name is required")
    if "category_id" in changes and not db.get_category(changes["category_id"]):
        raise ValidationFailedError("Category is required")
    if "icon_url" in changes:
        changes["icon_url"] = (changes["icon_url"] or "").strip() or app.icon_url
    if "is_paid" in changes and not changes["is_paid"]:
        changes["price"] = None
    if "status" in changes:
        target = AppStatus(changes["status"])
        try:
            check_transition(app.status, target)
        except ValueError as exc:
            raise InvalidTransitionError(str(exc)) from exc
        changes["status"] = target

    updated = db.update_app(app_id, **changes)
    feed.publish(TABLE_APPS, ChangeEventType.UPDATE, app_id, updated.as_dict())
    return updated


def save_category(
    db: DbClient,
    feed: ChangeFeed,
    *,
    category_id: str,
    name: str,
    icon: str = "",
    description: str = "",
) -> CategoryRecord:
    category_id = (category_id or "").strip().lower()
    name = (name or "").strip()
    if not category_id or not name:
        raise ValidationFailedError("Category id and name are required")
    existed = db.get_category(category_id) is not None
    category = db.upsert_category(
        CategoryRecord(
            category_id=category_id,
            name=name,
            icon=(icon or "").strip(),
            description=(description or "").strip(),
        )
    )
    feed.publish(
        TABLE_CATEGORIES,
        ChangeEventType.UPDATE if existed else ChangeEventType.INSERT,
        category_id,
        category.as_dict(),
    )
    return category


def remove_category(db: DbClient, feed: ChangeFeed, category_id: str) -> None:
    if not db.delete_category(category_id):
        raise NotFoundError("Category not found")
    feed.publish(TABLE_CATEGORIES, ChangeEventType.DELETE, category_id, None)

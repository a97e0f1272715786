"""
Admin console routes: dashboard stats, categories, review moderation and
full listing edits.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from storefront import catalog, stats
from storefront.auth import Principal
from storefront.changes import ChangeFeed
from storefront.db import DbClient
from storefront.dependencies import get_change_feed, get_db_client, require_admin
from storefront.schemas import AdminAppEditRequest, CategoryRequest, StatusResponse

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats/summary")
def stats_summary(
    db: DbClient = Depends(get_db_client),
    _: Principal = Depends(require_admin),
):
    return stats.get_summary(db).as_dict()


@router.post("/categories", status_code=201)
def save_category(
    payload: CategoryRequest,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    _: Principal = Depends(require_admin),
):
    category = catalog.save_category(
        db,
        feed,
        category_id=payload.id,
        name=payload.name,
        icon=payload.icon,
        description=payload.description,
    )
    return category.as_dict()


@router.delete("/categories/{category_id}", response_model=StatusResponse)
def delete_category(
    category_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    _: Principal = Depends(require_admin),
):
    catalog.remove_category(db, feed, category_id)
    return StatusResponse(status="ok")


@router.get("/reviews")
def list_reviews(
    app_id: Optional[str] = Query(None),
    db: DbClient = Depends(get_db_client),
    _: Principal = Depends(require_admin),
):
    return [review.as_dict() for review in db.list_reviews(app_id)]


@router.delete("/reviews/{review_id}", response_model=StatusResponse)
def delete_review(
    review_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    _: Principal = Depends(require_admin),
):
    catalog.remove_review(db, feed, review_id)
    return StatusResponse(status="ok")


@router.patch("/apps/{app_id}")
def edit_app(
    app_id: str,
    payload: AdminAppEditRequest,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    _: Principal = Depends(require_admin),
):
    app = catalog.edit_app(
        db, feed, app_id, payload.model_dump(exclude_unset=True), as_admin=True
    )
    return app.as_dict()

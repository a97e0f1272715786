"""
Public storefront routes: categories, browsing, app details, downloads and
reviews.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from shared.pipeline import build_pipeline
from storefront import catalog
from storefront.auth import Principal
from storefront.changes import ChangeFeed
from storefront.db import DbClient
from storefront.dependencies import (
    get_change_feed,
    get_current_user_principal,
    get_db_client,
    get_optional_principal,
)
from storefront.routes.common import developer_id_of
from storefront.schemas import ReviewRequest

router = APIRouter(tags=["catalog"])


@router.get("/categories")
def list_categories(db: DbClient = Depends(get_db_client)):
    return [
        {**category.as_dict(), "app_count": count}
        for category, count in catalog.categories_with_counts(db)
    ]


@router.get("/apps")
def list_apps(
    search: Optional[str] = Query(None, max_length=200),
    category: Optional[str] = Query(None),
    sort: str = Query(catalog.SORT_POPULAR, pattern="^(popular|rating|newest|name)$"),
    db: DbClient = Depends(get_db_client),
):
    apps = catalog.browse(db, query=search, category_id=category, sort_by=sort)
    return [app.as_dict() for app in apps]


@router.get("/apps/featured")
def featured(db: DbClient = Depends(get_db_client)):
    return [app.as_dict() for app in catalog.featured_apps(db)]


@router.get("/apps/trending")
def trending(db: DbClient = Depends(get_db_client)):
    return [app.as_dict() for app in catalog.trending_apps(db)]


@router.get("/apps/{app_id}")
def get_app(
    app_id: str,
    db: DbClient = Depends(get_db_client),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    app = catalog.get_visible_app(
        db,
        app_id,
        viewer_developer_id=developer_id_of(principal),
        is_admin=bool(principal and principal.is_admin),
    )
    return app.as_dict()


@router.get("/apps/{app_id}/pipeline")
def get_app_pipeline(
    app_id: str,
    db: DbClient = Depends(get_db_client),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    app = catalog.get_visible_app(
        db,
        app_id,
        viewer_developer_id=developer_id_of(principal),
        is_admin=bool(principal and principal.is_admin),
    )
    return build_pipeline(app.status, app.updated_at).as_dict()


@router.post("/apps/{app_id}/download")
def download(
    app_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    app = catalog.record_download(db, feed, app_id)
    return {"id": app.app_id, "downloads": app.downloads, "apk_url": app.apk_url}


@router.get("/apps/{app_id}/reviews")
def list_reviews(app_id: str, db: DbClient = Depends(get_db_client)):
    catalog.get_visible_app(db, app_id)
    return [review.as_dict() for review in db.list_reviews(app_id)]


@router.post("/apps/{app_id}/reviews", status_code=201)
def post_review(
    app_id: str,
    payload: ReviewRequest,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    principal: Principal = Depends(get_current_user_principal),
):
    review = catalog.add_review(
        db,
        feed,
        app_id=app_id,
        user_id=principal.user_id,
        rating=payload.rating,
        comment=payload.comment,
    )
    return review.as_dict()

"""
Developer program routes.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from shared.pipeline import build_pipeline
from shared.types import DeveloperStatus
from storefront import developers
from storefront.auth import Principal
from storefront.changes import ChangeFeed
from storefront.db import DbClient
from storefront.dependencies import (
    get_change_feed,
    get_current_user_principal,
    get_db_client,
    require_admin,
)
from storefront.errors import NotFoundError
from storefront.routes.common import app_with_pipeline
from storefront.schemas import DeveloperRegisterRequest, DeveloperStatusUpdate

router = APIRouter(prefix="/developers", tags=["developers"])


def _with_pipeline(developer) -> dict:
    payload = developer.as_dict()
    payload["pipeline"] = build_pipeline(
        developer.status, developer.updated_at
    ).as_dict()
    return payload


@router.post("/register", status_code=201)
def register(
    payload: DeveloperRegisterRequest,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    principal: Principal = Depends(get_current_user_principal),
):
    developer = developers.register_developer(
        db,
        feed,
        principal.user,
        developer_type=payload.developer_type,
        developer_name=payload.developer_name,
        country=payload.country,
        phone=payload.phone,
        full_name=payload.full_name,
        website=payload.website,
        bio=payload.bio,
    )
    return _with_pipeline(developer)


@router.get("/me")
def me(principal: Principal = Depends(get_current_user_principal)):
    if principal.developer is None:
        raise NotFoundError("Developer profile not found.")
    return _with_pipeline(principal.developer)


@router.get("/me/apps")
def my_apps(
    db: DbClient = Depends(get_db_client),
    principal: Principal = Depends(get_current_user_principal),
):
    if principal.developer is None:
        raise NotFoundError("Developer profile not found.")
    apps = db.list_apps(developer_id=principal.developer.developer_id)
    return [app_with_pipeline(app) for app in apps]


@router.get("/all")
def list_developers(
    status: Optional[DeveloperStatus] = Query(None),
    db: DbClient = Depends(get_db_client),
    _: Principal = Depends(require_admin),
):
    return [developer.as_dict() for developer in db.list_developers(status=status)]


@router.post("/update-status")
def update_status(
    payload: DeveloperStatusUpdate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    _: Principal = Depends(require_admin),
):
    developer = developers.set_developer_status(
        db, feed, payload.developer_id, payload.status, payload.reason
    )
    return developer.as_dict()

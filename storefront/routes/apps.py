"""
Developer submission routes and the admin review queue for apps.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import ValidationError

from shared.types import AppStatus
from shared.wizard import STEPS
from storefront import catalog, uploads
from storefront.auth import Principal
from storefront.changes import ChangeFeed
from storefront.config import Settings, get_settings
from storefront.db import DbClient
from storefront.dependencies import (
    get_change_feed,
    get_current_principal,
    get_current_user_principal,
    get_db_client,
    get_storage_client,
    require_admin,
    require_approved_developer,
)
from storefront.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from storefront.routes.common import (
    developer_id_of,
    read_upload,
    read_uploads,
)
from storefront.scanner import check_clone, scan_release
from storefront.schemas import (
    AppEditRequest,
    AppStatusUpdate,
    CloneCheckRequest,
    CloneCheckResponse,
    ScanJobResponse,
    UploadResponse,
    WizardPayload,
    WizardValidationResponse,
)
from storefront.storage import StorageClient

router = APIRouter(tags=["apps"])


@router.post("/apps/wizard/validate", response_model=WizardValidationResponse)
def validate_wizard(payload: WizardPayload):
    wizard = payload.to_wizard()
    errors = {}
    for step in STEPS:
        error = wizard.validate_step(step.id)
        if error:
            errors[step.id] = error
    failure = wizard.first_error()
    return WizardValidationResponse(
        valid=failure is None,
        step=failure[0] if failure else None,
        error=failure[1] if failure else None,
        errors=errors,
    )


@router.post("/apps/upload", response_model=UploadResponse, status_code=201)
async def upload_app(
    wizard: str = Form(...),
    package_name: Optional[str] = Form(None),
    icon: Optional[UploadFile] = File(None),
    feature_graphic: Optional[UploadFile] = File(None),
    phone_screenshots: Optional[List[UploadFile]] = File(None),
    tablet_screenshots: Optional[List[UploadFile]] = File(None),
    release: Optional[UploadFile] = File(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_approved_developer),
):
    """
    Multipart submission: `wizard` carries the JSON wizard state, files carry
    the listing assets and the release.
    """
    try:
        payload = WizardPayload.model_validate_json(wizard)
    except ValidationError as exc:
        raise ValidationFailedError(
            f"Invalid wizard payload: {exc.errors()[0]['msg']}"
        ) from exc

    app, job = uploads.submit_wizard(
        db,
        storage,
        feed,
        settings,
        principal.developer,
        payload.to_wizard(),
        icon=await read_upload(icon),
        feature_graphic=await read_upload(feature_graphic),
        phone_screenshots=await read_uploads(phone_screenshots),
        tablet_screenshots=await read_uploads(tablet_screenshots),
        release=await read_upload(release),
        package_name=package_name,
    )
    return UploadResponse(app=app.as_dict(), scan_job_id=job.job_id if job else None)


@router.post("/apps/quick-upload", response_model=UploadResponse, status_code=201)
async def quick_upload(
    name: str = Form(...),
    file: UploadFile = File(...),
    category_id: Optional[str] = Form(None),
    package_name: Optional[str] = Form(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_approved_developer),
):
    app = uploads.quick_upload(
        db,
        storage,
        feed,
        settings,
        principal.developer,
        name=name,
        release=await read_upload(file),
        category_id=category_id,
        package_name=package_name,
    )
    return UploadResponse(app=app.as_dict())


@router.get("/apps/all")
def list_all_apps(
    status: Optional[AppStatus] = Query(None),
    db: DbClient = Depends(get_db_client),
    _: Principal = Depends(require_admin),
):
    return [app.as_dict() for app in db.list_apps(status=status)]


@router.get("/apps/admin/pending")
def list_pending_apps(
    db: DbClient = Depends(get_db_client),
    _: Principal = Depends(require_admin),
):
    return [app.as_dict() for app in db.list_apps(status=AppStatus.PENDING)]


@router.post("/apps/update-status")
def update_app_status(
    payload: AppStatusUpdate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    _: Principal = Depends(require_admin),
):
    app = catalog.set_app_status(db, feed, payload.app_id, payload.status)
    return app.as_dict()


@router.patch("/apps/{app_id}")
def edit_own_app(
    app_id: str,
    payload: AppEditRequest,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    principal: Principal = Depends(get_current_user_principal),
):
    if principal.developer is None:
        raise PermissionDeniedError("Developer profile not found.")
    app = catalog.edit_app(
        db,
        feed,
        app_id,
        payload.model_dump(exclude_unset=True),
        editor_developer_id=principal.developer.developer_id,
    )
    return app.as_dict()


@router.post("/apps/{app_id}/icon")
async def replace_icon(
    app_id: str,
    file: UploadFile = File(...),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_current_principal),
):
    upload = await read_upload(file)
    if upload is None:
        raise ValidationFailedError("An image file is required")
    app = uploads.replace_icon(
        db,
        storage,
        feed,
        settings,
        app_id,
        upload,
        developer_id=developer_id_of(principal),
        as_admin=principal.is_admin,
    )
    return app.as_dict()


@router.post("/apps/{app_id}/screenshots")
async def add_screenshots(
    app_id: str,
    files: List[UploadFile] = File(...),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_current_principal),
):
    app = uploads.add_screenshots(
        db,
        storage,
        feed,
        settings,
        app_id,
        await read_uploads(files),
        developer_id=developer_id_of(principal),
        as_admin=principal.is_admin,
    )
    return app.as_dict()


@router.post("/clone-check", response_model=CloneCheckResponse)
def clone_check(
    payload: CloneCheckRequest,
    db: DbClient = Depends(get_db_client),
    principal: Principal = Depends(get_current_principal),
):
    result = check_clone(db, payload.package_name, developer_id_of(principal))
    return CloneCheckResponse(**result.as_dict())


@router.post("/virus-scan")
async def virus_scan(
    file: UploadFile = File(...),
    settings: Settings = Depends(get_settings),
    _: Principal = Depends(get_current_principal),
):
    upload = await read_upload(file)
    if upload is None:
        raise ValidationFailedError("Please upload an APK or AAB file.")
    report = scan_release(upload.filename, upload.data, settings.blocked_release_hashes)
    return report.as_dict()


@router.get("/scan-jobs/{job_id}", response_model=ScanJobResponse)
def scan_job_status(
    job_id: str,
    db: DbClient = Depends(get_db_client),
    principal: Principal = Depends(get_current_principal),
):
    job = db.get_scan_job(job_id)
    if not job:
        raise NotFoundError("Scan job not found")
    if not principal.is_admin:
        app = db.get_app(job.app_id)
        if not app or app.developer_id != developer_id_of(principal):
            raise NotFoundError("Scan job not found")
    return ScanJobResponse(**job.as_dict())

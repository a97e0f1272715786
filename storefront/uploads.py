"""
App submission: the wizard upload, the quick upload and listing asset uploads.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from shared.types import (
    BUCKET_APP_FILES,
    BUCKET_APP_ICONS,
    BUCKET_APP_SCREENSHOTS,
    DEFAULT_VERSION,
    TABLE_APPS,
    ChangeEventType,
    UNKNOWN_SIZE,
    format_size_mb,
)
from shared.wizard import (
    MAX_SCREENSHOTS,
    RELEASE,
    SHORT_DESCRIPTION_MAX_LENGTH,
    STORE_LISTING,
    GRAPHICS,
    GraphicsData,
    UploadWizard,
    accept_release_file,
    is_release_file,
)
from storefront.changes import ChangeFeed
from storefront.config import Settings
from storefront.db import AppRecord, DbClient, DeveloperRecord, ScanJobRecord
from storefront.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from storefront.images import compress_image
from storefront.scanner import check_clone, scan_release
from storefront.storage import StorageClient, unique_object_name

logger = logging.getLogger(__name__)

QUICK_UPLOAD_DEFAULT_CATEGORY = "tools"


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _store_image(
    storage: StorageClient,
    settings: Settings,
    bucket: str,
    path_for,
    upload: UploadedFile,
) -> str:
    image = compress_image(
        upload.data,
        upload.content_type,
        upload.filename,
        max_bytes=settings.image_max_bytes,
        max_dimension=settings.image_max_dimension,
        quality=settings.image_quality,
    )
    path = path_for(image.filename)
    storage.upload_bytes(bucket, path, image.data, image.content_type)
    return storage.public_url(bucket, path)


def _store_release(storage: StorageClient, upload: UploadedFile) -> Tuple[str, str]:
    path = unique_object_name("releases", upload.filename)
    storage.upload_bytes(
        BUCKET_APP_FILES,
        path,
        upload.data,
        upload.content_type or "application/vnd.android.package-archive",
    )
    return path, storage.public_url(BUCKET_APP_FILES, path)


def _check_package(db: DbClient, package_name: Optional[str], developer_id: str) -> Optional[str]:
    package_name = (package_name or "").strip() or None
    if package_name and check_clone(db, package_name, developer_id).is_clone:
        raise ConflictError("Package name is already registered by another developer")
    return package_name


def submit_wizard(
    db: DbClient,
    storage: StorageClient,
    feed: ChangeFeed,
    settings: Settings,
    developer: DeveloperRecord,
    wizard: UploadWizard,
    *,
    icon: Optional[UploadedFile] = None,
    feature_graphic: Optional[UploadedFile] = None,
    phone_screenshots: Sequence[UploadedFile] = (),
    tablet_screenshots: Sequence[UploadedFile] = (),
    release: Optional[UploadedFile] = None,
    package_name: Optional[str] = None,
) -> Tuple[AppRecord, Optional[ScanJobRecord]]:
    """
    Validate every wizard step, upload the assets and create a pending listing.

    When a release file is attached a scan job is queued for the worker.
    """
    wizard.graphics = GraphicsData(
        icon=icon.filename if icon else None,
        feature_graphic=feature_graphic.filename if feature_graphic else None,
    )
    try:
        for shot in phone_screenshots:
            wizard.graphics.add_screenshot(shot.filename)
        for shot in tablet_screenshots:
            wizard.graphics.add_screenshot(shot.filename, tablet=True)
    except ValueError as exc:
        raise ValidationFailedError(str(exc), step=GRAPHICS) from exc

    if release is not None:
        try:
            accept_release_file(wizard.release, release.filename, release.size)
        except ValueError as exc:
            raise ValidationFailedError(str(exc), step=RELEASE) from exc

    failure = wizard.first_error()
    if failure:
        step, message = failure
        raise ValidationFailedError(message, step=step)
    if not db.get_category(wizard.store_listing.category_id):
        raise ValidationFailedError("Category is required", step=STORE_LISTING)
    package_name = _check_package(db, package_name, developer.developer_id)

    submission = wizard.to_submission()
    icon_url = None
    if icon is not None:
        icon_url = _store_image(
            storage,
            settings,
            BUCKET_APP_ICONS,
            lambda name: unique_object_name("icons", name),
            icon,
        )
    feature_url = None
    if feature_graphic is not None:
        feature_url = _store_image(
            storage,
            settings,
            BUCKET_APP_SCREENSHOTS,
            lambda name: unique_object_name("feature", name),
            feature_graphic,
        )
    screenshots = [
        _store_image(
            storage,
            settings,
            BUCKET_APP_SCREENSHOTS,
            lambda name: unique_object_name("screenshots", name),
            shot,
        )
        for shot in phone_screenshots
    ]
    tablet = [
        _store_image(
            storage,
            settings,
            BUCKET_APP_SCREENSHOTS,
            lambda name: unique_object_name("screenshots/tablet", name),
            shot,
        )
        for shot in tablet_screenshots
    ]
    apk_path = apk_url = None
    if release is not None:
        apk_path, apk_url = _store_release(storage, release)

    record = AppRecord(
        developer_id=developer.developer_id,
        developer_name=developer.developer_name,
        name=submission["name"].strip(),
        description=submission["description"].strip(),
        short_description=submission["short_description"].strip(),
        category_id=submission["category_id"],
        screenshots=screenshots,
        tablet_screenshots=tablet,
        feature_graphic_url=feature_url,
        tags=submission["tags"],
        version=submission["version"],
        size=submission["size"],
        is_paid=submission["is_paid"],
        price=submission["price"],
        contains_ads=submission["contains_ads"],
        in_app_purchases=submission["in_app_purchases"],
        privacy_policy_url=submission["privacy_policy_url"].strip(),
        contact_email=submission["contact_email"].strip() or None,
        contact_website=submission["contact_website"].strip() or None,
        release_notes=submission["release_notes"].strip(),
        apk_url=apk_url,
        apk_storage_path=apk_path,
        package_name=package_name,
    )
    if icon_url:
        record.icon_url = icon_url
    app = db.create_app(record)
    job = db.create_scan_job(app.app_id) if apk_path else None
    logger.info(
        "App %s submitted by developer %s (scan job: %s)",
        app.app_id,
        developer.developer_id,
        job.job_id if job else None,
    )
    feed.publish(TABLE_APPS, ChangeEventType.INSERT, app.app_id, app.as_dict())
    return app, job


def default_description(name: str) -> str:
    return (
        f"{name} is a powerful mobile application designed to enhance your "
        "daily productivity and streamline your workflow."
    )


def quick_upload(
    db: DbClient,
    storage: StorageClient,
    feed: ChangeFeed,
    settings: Settings,
    developer: DeveloperRecord,
    *,
    name: str,
    release: UploadedFile,
    category_id: Optional[str] = None,
    package_name: Optional[str] = None,
) -> AppRecord:
    """
    Submit an app from just a name and a release file. The release is scanned
    inline and the scan drives the ads / in-app purchase flags.
    """
    name = (name or "").strip()
    if not name or release is None:
        raise ValidationFailedError("Please enter app name and upload a file.")
    if not is_release_file(release.filename):
        raise ValidationFailedError("Please upload an APK or AAB file.")
    category_id = category_id or QUICK_UPLOAD_DEFAULT_CATEGORY
    if not db.get_category(category_id):
        raise ValidationFailedError("Category is required")
    package_name = _check_package(db, package_name, developer.developer_id)

    report = scan_release(
        release.filename, release.data, settings.blocked_release_hashes
    )
    apk_path, apk_url = _store_release(storage, release)
    description = default_description(name)
    app = db.create_app(
        AppRecord(
            developer_id=developer.developer_id,
            developer_name=developer.developer_name,
            name=name[:30],
            description=description,
            short_description=description[:SHORT_DESCRIPTION_MAX_LENGTH],
            category_id=category_id,
            tags=[name.lower(), category_id, "android", "mobile"],
            version=DEFAULT_VERSION,
            size=format_size_mb(release.size) if release.size else UNKNOWN_SIZE,
            contains_ads=report.contains_ads,
            in_app_purchases=report.in_app_purchases,
            apk_url=apk_url,
            apk_storage_path=apk_path,
            package_name=package_name,
            scan_report=report.as_dict(),
        )
    )
    logger.info("Quick upload %s by developer %s", app.app_id, developer.developer_id)
    feed.publish(TABLE_APPS, ChangeEventType.INSERT, app.app_id, app.as_dict())
    return app


def _ensure_owner(app: Optional[AppRecord], developer_id: Optional[str], as_admin: bool) -> AppRecord:
    if app is None:
        raise NotFoundError("App not found")
    if not as_admin and app.developer_id != developer_id:
        raise PermissionDeniedError("You can only edit your own apps")
    return app


def _extension(filename: str) -> str:
    _, ext = os.path.splitext(filename or "")
    return ext.lstrip(".").lower() or "png"


def replace_icon(
    db: DbClient,
    storage: StorageClient,
    feed: ChangeFeed,
    settings: Settings,
    app_id: str,
    upload: UploadedFile,
    *,
    developer_id: Optional[str] = None,
    as_admin: bool = False,
) -> AppRecord:
    app = _ensure_owner(db.get_app(app_id), developer_id, as_admin)
    url = _store_image(
        storage,
        settings,
        BUCKET_APP_ICONS,
        lambda name: f"{app.app_id}/icon_{int(time.time() * 1000)}.{_extension(name)}",
        upload,
    )
    updated = db.update_app(app.app_id, icon_url=url)
    feed.publish(TABLE_APPS, ChangeEventType.UPDATE, app.app_id, updated.as_dict())
    return updated


def add_screenshots(
    db: DbClient,
    storage: StorageClient,
    feed: ChangeFeed,
    settings: Settings,
    app_id: str,
    uploads: Sequence[UploadedFile],
    *,
    developer_id: Optional[str] = None,
    as_admin: bool = False,
) -> AppRecord:
    app = _ensure_owner(db.get_app(app_id), developer_id, as_admin)
    if len(app.screenshots) + len(uploads) > MAX_SCREENSHOTS:
        raise ValidationFailedError("Maximum Reached")
    urls: List[str] = []
    for index, upload in enumerate(uploads):
        urls.append(
            _store_image(
                storage,
                settings,
                BUCKET_APP_SCREENSHOTS,
                lambda name, i=index: (
                    f"{app.app_id}/ss_{int(time.time() * 1000)}_{i}.{_extension(name)}"
                ),
                upload,
            )
        )
    updated = db.update_app(app.app_id, screenshots=list(app.screenshots) + urls)
    feed.publish(TABLE_APPS, ChangeEventType.UPDATE, app.app_id, updated.as_dict())
    return updated

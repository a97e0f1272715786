"""
Release scan worker.

Claims waiting scan jobs, scans the uploaded release and stores the report
on the app listing.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from shared.types import BUCKET_APP_FILES, TABLE_APPS, ChangeEventType, ScanJobStatus
from storefront.changes import ChangeFeed
from storefront.config import Settings, get_settings
from storefront.db import DbClient, ScanJobRecord
from storefront.dependencies import get_change_feed, get_db_client, get_storage_client
from storefront.scanner import scan_release
from storefront.storage import StorageClient

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

STALE_LOCK_SECONDS = 900


def process_job(
    job: ScanJobRecord,
    db: DbClient,
    storage: StorageClient,
    feed: ChangeFeed,
    settings: Settings,
) -> None:
    """
    Scan the release behind one job. Failures mark the job `error` and leave
    the app untouched.
    """
    app = db.get_app(job.app_id)
    try:
        if not app:
            raise LookupError(f"App {job.app_id} no longer exists")
        if not app.apk_storage_path:
            raise LookupError(f"App {app.app_id} has no uploaded release")
        data = storage.get_bytes(BUCKET_APP_FILES, app.apk_storage_path)
        report = scan_release(
            app.apk_storage_path, data, settings.blocked_release_hashes
        )
    except Exception as exc:
        logger.exception("Scan job %s failed", job.job_id)
        db.update_scan_job(job.job_id, status=ScanJobStatus.ERROR, error=str(exc))
        return

    updated = db.update_app(
        app.app_id,
        scan_report=report.as_dict(),
        contains_ads=app.contains_ads or report.contains_ads,
        in_app_purchases=app.in_app_purchases or report.in_app_purchases,
    )
    db.update_scan_job(job.job_id, status=ScanJobStatus.DONE)
    logger.info(
        "Scan job %s done for app %s (risk=%s)", job.job_id, app.app_id, report.risk_level
    )
    feed.publish(TABLE_APPS, ChangeEventType.UPDATE, app.app_id, updated.as_dict())


def process_next(
    *,
    db: Optional[DbClient] = None,
    storage: Optional[StorageClient] = None,
    feed: Optional[ChangeFeed] = None,
    settings: Optional[Settings] = None,
) -> bool:
    """
    Claim and process one waiting scan job. Returns True if a job was processed.
    """
    db = db or get_db_client()
    storage = storage or get_storage_client()
    feed = feed or get_change_feed()
    settings = settings or get_settings()

    job = db.claim_next_waiting_scan()
    if not job:
        return False
    process_job(job, db, storage, feed, settings)
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Polling loop intended to run under systemd/supervisor.
    """
    db = get_db_client()
    storage = get_storage_client()
    feed = get_change_feed()
    settings = get_settings()
    while True:
        try:
            requeued = db.requeue_stale_scans(lock_timeout_seconds=STALE_LOCK_SECONDS)
            if requeued:
                logger.info("Requeued %d stale scan jobs", requeued)
        except Exception:
            logger.exception("Failed to requeue stale scan jobs")
        processed = process_next(db=db, storage=storage, feed=feed, settings=settings)
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    run_loop()

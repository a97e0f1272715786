"""
Helpers shared by the route modules.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import UploadFile

from shared.pipeline import build_pipeline
from storefront.auth import Principal
from storefront.db import AppRecord
from storefront.uploads import UploadedFile


def developer_id_of(principal: Optional[Principal]) -> Optional[str]:
    if principal is None or principal.developer is None:
        return None
    return principal.developer.developer_id


def app_with_pipeline(app: AppRecord) -> dict:
    payload = app.as_dict()
    payload["pipeline"] = build_pipeline(app.status, app.updated_at).as_dict()
    return payload


async def read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    if file is None or not file.filename:
        return None
    data = await file.read()
    return UploadedFile(
        filename=file.filename,
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )


async def read_uploads(files: Optional[List[UploadFile]]) -> List[UploadedFile]:
    uploads = []
    for file in files or []:
        upload = await read_upload(file)
        if upload is not None:
            uploads.append(upload)
    return uploads

"""
Signed URLs for direct object access.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from shared.types import STORAGE_BUCKETS
from storefront.auth import Principal
from storefront.dependencies import get_current_principal, get_storage_client
from storefront.schemas import SignUrlResponse
from storefront.storage import StorageClient

router = APIRouter(tags=["storage"])


@router.get("/sign-url", response_model=SignUrlResponse)
def sign_url(
    bucket: str = Query(..., pattern="^(" + "|".join(STORAGE_BUCKETS) + ")$"),
    path: str = Query(..., description="Object path in the bucket"),
    op: str = Query("get", pattern="^(get|put)$"),
    expires_in: int = Query(3600, ge=60, le=86400),
    storage: StorageClient = Depends(get_storage_client),
    _: Principal = Depends(get_current_principal),
):
    if op == "get":
        url = storage.presign_get(bucket, path, expires_in=expires_in)
    else:
        url = storage.presign_put(bucket, path, expires_in=expires_in)
    return SignUrlResponse(url=url)

"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from storefront.auth import Principal, resolve_principal
from storefront.changes import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed
from storefront.config import Settings, get_settings
from storefront.db import DbClient, InMemoryDbClient, PostgresDbClient
from storefront.errors import AuthenticationError, PermissionDeniedError
from storefront.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_change_feed: ChangeFeed | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_endpoint:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            bucket_prefix=settings.s3_bucket_prefix or "",
            public_base_url=settings.storage_public_base_url,
        )
    return _storage_client


def get_change_feed() -> ChangeFeed:
    """
    Return a singleton change feed shared by every route that mutates data.
    """
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _change_feed = RedisChangeFeed(
            url=settings.redis_url,
            key=settings.redis_changes_key,
            max_events=settings.change_feed_max_events,
        )
    else:
        _change_feed = InMemoryChangeFeed(max_events=settings.change_feed_max_events)
    return _change_feed


def reset_clients() -> None:
    """Drop cached clients (tests and scripts that swap settings)."""
    global _db_client, _storage_client, _change_feed
    _db_client = None
    _storage_client = None
    _change_feed = None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_optional_principal(
    authorization: Optional[str] = Header(default=None),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> Optional[Principal]:
    token = bearer_token(authorization)
    if not token:
        return None
    return resolve_principal(
        db,
        token,
        admin_emails=settings.admin_emails,
        admin_api_token=settings.admin_api_token,
    )


def get_current_principal(
    principal: Optional[Principal] = Depends(get_optional_principal),
) -> Principal:
    if principal is None:
        raise AuthenticationError("Authentication required")
    return principal


def get_current_user_principal(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """A signed-in end user (the static service token has no user account)."""
    if principal.user is None:
        raise PermissionDeniedError("A user account is required")
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise PermissionDeniedError("Admin access required")
    return principal


def require_approved_developer(
    principal: Principal = Depends(get_current_user_principal),
) -> Principal:
    if principal.developer is None:
        raise PermissionDeniedError("Developer profile not found.")
    if not principal.is_developer_approved:
        raise PermissionDeniedError("Developer account is not approved yet")
    return principal

"""
User accounts, bearer sessions and role resolution.
"""

from __future__ import annotations

import hmac
import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from storefront.db import DbClient, DeveloperRecord, SessionRecord, UserRecord
from storefront.errors import (
    AuthenticationError,
    ConflictError,
    ValidationFailedError,
)
from shared.types import DeveloperStatus

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
SERVICE_ADMIN_ID = "service-admin"


@dataclass
class Principal:
    """The caller behind a bearer token."""

    user: Optional[UserRecord]
    is_admin: bool = False
    developer: Optional[DeveloperRecord] = None

    @property
    def user_id(self) -> str:
        return self.user.user_id if self.user else SERVICE_ADMIN_ID

    @property
    def is_developer_approved(self) -> bool:
        return bool(
            self.developer and self.developer.status == DeveloperStatus.APPROVED
        )


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_admin_email(email: Optional[str], admin_emails: Iterable[str]) -> bool:
    if not email:
        return False
    return normalize_email(email) in {normalize_email(e) for e in admin_emails}


def register_user(db: DbClient, email: str, password: str, name: str) -> UserRecord:
    email = normalize_email(email)
    if "@" not in email:
        raise ValidationFailedError("A valid email is required")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationFailedError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if db.get_user_by_email(email):
        raise ConflictError("An account with this email already exists")
    display_name = (name or "").strip() or email.split("@")[0]
    user = db.create_user(email, display_name, generate_password_hash(password))
    logger.info("Registered user %s", user.user_id)
    return user


def login(
    db: DbClient, email: str, password: str, ttl_seconds: float
) -> tuple[UserRecord, SessionRecord]:
    user = db.get_user_by_email(normalize_email(email))
    if not user or not check_password_hash(user.password_hash, password or ""):
        raise AuthenticationError("Invalid email or password")
    session = db.create_session(user.user_id, ttl_seconds)
    return user, session


def logout(db: DbClient, token: str) -> None:
    db.delete_session(token)


def resolve_principal(
    db: DbClient,
    token: str,
    *,
    admin_emails: Iterable[str] = (),
    admin_api_token: Optional[str] = None,
) -> Principal:
    """Turn a bearer token into a Principal, raising AuthenticationError when invalid."""
    if admin_api_token and hmac.compare_digest(
        token.encode("utf-8"), admin_api_token.encode("utf-8")
    ):
        return Principal(user=None, is_admin=True)

    session = db.get_session(token)
    if not session:
        raise AuthenticationError("Invalid or expired session")
    if session.is_expired(time.time()):
        db.delete_session(token)
        raise AuthenticationError("Invalid or expired session")

    user = db.get_user(session.user_id)
    if not user:
        db.delete_session(token)
        raise AuthenticationError("Invalid or expired session")

    return Principal(
        user=user,
        is_admin=is_admin_email(user.email, admin_emails),
        developer=db.get_developer_by_user(user.user_id),
    )

"""
Account routes: register, login, logout and the current caller.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header

from storefront import auth
from storefront.auth import Principal
from storefront.config import Settings, get_settings
from storefront.db import DbClient, SessionRecord, UserRecord
from storefront.dependencies import (
    bearer_token,
    get_current_principal,
    get_db_client,
)
from storefront.errors import AuthenticationError
from storefront.schemas import (
    LoginRequest,
    MeResponse,
    RegisterRequest,
    SessionResponse,
    StatusResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_response(
    db: DbClient, settings: Settings, user: UserRecord, session: SessionRecord
) -> SessionResponse:
    developer = db.get_developer_by_user(user.user_id)
    return SessionResponse(
        token=session.token,
        expires_at=session.expires_at,
        user=user.as_dict(),
        is_admin=auth.is_admin_email(user.email, settings.admin_emails),
        developer=developer.as_dict() if developer else None,
    )


@router.post("/register", response_model=SessionResponse, status_code=201)
def register(
    payload: RegisterRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    auth.register_user(db, payload.email, payload.password, payload.name)
    user, session = auth.login(
        db, payload.email, payload.password, settings.session_ttl_seconds
    )
    return _session_response(db, settings, user, session)


@router.post("/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    user, session = auth.login(
        db, payload.email, payload.password, settings.session_ttl_seconds
    )
    return _session_response(db, settings, user, session)


@router.post("/logout", response_model=StatusResponse)
def logout(
    authorization: Optional[str] = Header(default=None),
    db: DbClient = Depends(get_db_client),
):
    token = bearer_token(authorization)
    if not token:
        raise AuthenticationError("Authentication required")
    auth.logout(db, token)
    return StatusResponse(status="ok")


@router.get("/me", response_model=MeResponse)
def me(principal: Principal = Depends(get_current_principal)):
    return MeResponse(
        user=principal.user.as_dict() if principal.user else None,
        is_admin=principal.is_admin,
        developer=principal.developer.as_dict() if principal.developer else None,
    )

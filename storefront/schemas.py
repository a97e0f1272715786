"""
Pydantic schemas for the storefront API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.types import AppStatus, DeveloperStatus, DeveloperType
from shared.wizard import (
    GraphicsData,
    MonetizationData,
    ReleaseData,
    StoreListingData,
    UploadWizard,
)


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str
    name: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    token: str
    expires_at: float
    user: dict
    is_admin: bool
    developer: Optional[dict] = None


class MeResponse(BaseModel):
    user: Optional[dict] = None
    is_admin: bool
    developer: Optional[dict] = None


class StatusResponse(BaseModel):
    status: Literal["ok"]


class DeveloperRegisterRequest(BaseModel):
    developer_type: DeveloperType
    developer_name: str = Field(..., max_length=100)
    country: str
    phone: str
    full_name: Optional[str] = None
    website: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=1000)


class DeveloperStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    developer_id: str = Field(..., alias="developerId")
    status: DeveloperStatus
    reason: Optional[str] = None


class AppStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    app_id: str = Field(..., alias="appId")
    status: AppStatus


class AppEditRequest(BaseModel):
    name: Optional[str] = None
    short_description: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    version: Optional[str] = None
    icon_url: Optional[str] = None
    screenshots: Optional[list[str]] = None


class AdminAppEditRequest(AppEditRequest):
    is_paid: Optional[bool] = None
    price: Optional[float] = None
    contains_ads: Optional[bool] = None
    in_app_purchases: Optional[bool] = None
    featured: Optional[bool] = None
    trending: Optional[bool] = None
    status: Optional[AppStatus] = None


class ReviewRequest(BaseModel):
    rating: int
    comment: Optional[str] = Field(default=None, max_length=2000)


class CategoryRequest(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str
    icon: str = ""
    description: str = ""


class StoreListingPayload(BaseModel):
    name: str = ""
    short_description: str = ""
    description: str = ""
    category_id: str = ""
    tags: list[str] = Field(default_factory=list)
    contact_email: str = ""
    contact_website: str = ""


class GraphicsPayload(BaseModel):
    """Asset references for validation only; uploads carry the real files."""

    icon: Optional[str] = None
    feature_graphic: Optional[str] = None
    phone_screenshots: list[str] = Field(default_factory=list)
    tablet_screenshots: list[str] = Field(default_factory=list)


class MonetizationPayload(BaseModel):
    is_paid: bool = False
    price: str = ""
    contains_ads: bool = False
    in_app_purchases: bool = False
    privacy_policy_url: str = ""


class ReleasePayload(BaseModel):
    file_name: Optional[str] = None
    file_size: str = ""
    release_notes: str = ""


class WizardPayload(BaseModel):
    store_listing: StoreListingPayload = Field(default_factory=StoreListingPayload)
    graphics: GraphicsPayload = Field(default_factory=GraphicsPayload)
    monetization: MonetizationPayload = Field(default_factory=MonetizationPayload)
    release: ReleasePayload = Field(default_factory=ReleasePayload)

    def to_wizard(self) -> UploadWizard:
        return UploadWizard(
            store_listing=StoreListingData(**self.store_listing.model_dump()),
            graphics=GraphicsData(**self.graphics.model_dump()),
            monetization=MonetizationData(**self.monetization.model_dump()),
            release=ReleaseData(**self.release.model_dump()),
        )


class WizardValidationResponse(BaseModel):
    valid: bool
    step: Optional[int] = None
    error: Optional[str] = None
    errors: dict[int, str] = Field(default_factory=dict)


class UploadResponse(BaseModel):
    app: dict
    scan_job_id: Optional[str] = None


class CloneCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package_name: str = Field(..., alias="packageName", min_length=1)


class CloneCheckResponse(BaseModel):
    package_name: str
    is_clone: bool
    matches: list[str]


class ScanJobResponse(BaseModel):
    job_id: str
    app_id: str
    status: str
    error: Optional[str] = None
    created_at: float
    updated_at: float


class ChangesResponse(BaseModel):
    events: list[dict]
    cursor: int


class SignUrlResponse(BaseModel):
    url: str

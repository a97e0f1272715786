"""
HTTP client for the storefront API used by the developer and admin console.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
DEFAULT_API_PREFIX = "/api"

# (filename, data, content_type) as accepted by requests' `files=`.
FileTuple = Tuple[str, bytes, str]


class ApiError(Exception):
    def __init__(
        self,
        status_code: Optional[int],
        message: str,
        step: Optional[int] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.step = step


def _error_message(response: requests.Response) -> Tuple[str, Optional[int]]:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "An error occurred", None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, list) and detail:
            detail = detail[0].get("msg") if isinstance(detail[0], dict) else detail[0]
        return str(detail or "An error occurred"), body.get("step")
    return str(body), None


class StorefrontClient:
    """
    Thin wrapper over the REST API. Every call raises ApiError on failure and
    logs it as `[API Error] <METHOD> <url> - <message>`.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        api_prefix: str = DEFAULT_API_PREFIX,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.api_prefix}{path}"

    def request(self, method: str, path: str, **kwargs):
        url = self._url(path)
        headers = dict(kwargs.pop("headers", None) or {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.error("[API Error] %s %s - %s", method, url, exc)
            raise ApiError(None, str(exc)) from exc

        if not response.ok:
            message, step = _error_message(response)
            logger.error("[API Error] %s %s - %s", method, url, message)
            raise ApiError(response.status_code, message, step)
        if not response.content:
            return None
        return response.json()

    def get(self, path: str, params: Optional[dict] = None):
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Optional[dict] = None, **kwargs):
        if payload is not None:
            kwargs["json"] = payload
        return self.request("POST", path, **kwargs)

    def patch(self, path: str, payload: dict):
        return self.request("PATCH", path, json=payload)

    def delete(self, path: str):
        return self.request("DELETE", path)

    # Auth

    def register(self, email: str, password: str, name: str = "") -> dict:
        session = self.post(
            "/auth/register", {"email": email, "password": password, "name": name}
        )
        self.token = session["token"]
        return session

    def login(self, email: str, password: str) -> dict:
        session = self.post("/auth/login", {"email": email, "password": password})
        self.token = session["token"]
        return session

    def logout(self) -> None:
        self.post("/auth/logout")
        self.token = None

    def me(self) -> dict:
        return self.get("/auth/me")

    # Storefront

    def categories(self) -> List[dict]:
        return self.get("/categories")

    def list_apps(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        sort: str = "popular",
    ) -> List[dict]:
        params = {"sort": sort}
        if search:
            params["search"] = search
        if category:
            params["category"] = category
        return self.get("/apps", params)

    def featured_apps(self) -> List[dict]:
        return self.get("/apps/featured")

    def trending_apps(self) -> List[dict]:
        return self.get("/apps/trending")

    def get_app(self, app_id: str) -> dict:
        return self.get(f"/apps/{app_id}")

    def app_pipeline(self, app_id: str) -> dict:
        return self.get(f"/apps/{app_id}/pipeline")

    def download(self, app_id: str) -> dict:
        return self.post(f"/apps/{app_id}/download")

    def reviews(self, app_id: str) -> List[dict]:
        return self.get(f"/apps/{app_id}/reviews")

    def add_review(self, app_id: str, rating: int, comment: Optional[str] = None) -> dict:
        return self.post(f"/apps/{app_id}/reviews", {"rating": rating, "comment": comment})

    # Developers

    def register_developer(self, **fields) -> dict:
        return self.post("/developers/register", fields)

    def my_developer(self) -> dict:
        return self.get("/developers/me")

    def my_apps(self) -> List[dict]:
        return self.get("/developers/me/apps")

    def list_developers(self, status: Optional[str] = None) -> List[dict]:
        return self.get("/developers/all", {"status": status} if status else None)

    def update_developer_status(
        self, developer_id: str, status: str, reason: Optional[str] = None
    ) -> dict:
        return self.post(
            "/developers/update-status",
            {"developerId": developer_id, "status": status, "reason": reason},
        )

    # Apps

    def validate_wizard(self, wizard: dict) -> dict:
        return self.post("/apps/wizard/validate", wizard)

    def upload_app(
        self,
        wizard: dict,
        *,
        icon: Optional[FileTuple] = None,
        feature_graphic: Optional[FileTuple] = None,
        phone_screenshots: Sequence[FileTuple] = (),
        tablet_screenshots: Sequence[FileTuple] = (),
        release: Optional[FileTuple] = None,
        package_name: Optional[str] = None,
    ) -> dict:
        files = []
        if icon:
            files.append(("icon", icon))
        if feature_graphic:
            files.append(("feature_graphic", feature_graphic))
        files.extend(("phone_screenshots", shot) for shot in phone_screenshots)
        files.extend(("tablet_screenshots", shot) for shot in tablet_screenshots)
        if release:
            files.append(("release", release))
        data = {"wizard": json.dumps(wizard)}
        if package_name:
            data["package_name"] = package_name
        return self.post("/apps/upload", data=data, files=files)

    def quick_upload(
        self,
        name: str,
        release: FileTuple,
        category_id: Optional[str] = None,
        package_name: Optional[str] = None,
    ) -> dict:
        data = {"name": name}
        if category_id:
            data["category_id"] = category_id
        if package_name:
            data["package_name"] = package_name
        return self.post("/apps/quick-upload", data=data, files=[("file", release)])

    def edit_app(self, app_id: str, **changes) -> dict:
        return self.patch(f"/apps/{app_id}", changes)

    def replace_icon(self, app_id: str, icon: FileTuple) -> dict:
        return self.post(f"/apps/{app_id}/icon", files=[("file", icon)])

    def add_screenshots(self, app_id: str, shots: Iterable[FileTuple]) -> dict:
        return self.post(
            f"/apps/{app_id}/screenshots", files=[("files", shot) for shot in shots]
        )

    def list_all_apps(self, status: Optional[str] = None) -> List[dict]:
        return self.get("/apps/all", {"status": status} if status else None)

    def pending_apps(self) -> List[dict]:
        return self.get("/apps/admin/pending")

    def update_app_status(self, app_id: str, status: str) -> dict:
        return self.post("/apps/update-status", {"appId": app_id, "status": status})

    def clone_check(self, package_name: str) -> dict:
        return self.post("/clone-check", {"packageName": package_name})

    def virus_scan(self, release: FileTuple) -> dict:
        return self.post("/virus-scan", files=[("file", release)])

    def scan_job(self, job_id: str) -> dict:
        return self.get(f"/scan-jobs/{job_id}")

    # Admin

    def stats_summary(self) -> dict:
        return self.get("/admin/stats/summary")

    def admin_edit_app(self, app_id: str, **changes) -> dict:
        return self.patch(f"/admin/apps/{app_id}", changes)

    def save_category(
        self, category_id: str, name: str, icon: str = "", description: str = ""
    ) -> dict:
        return self.post(
            "/admin/categories",
            {"id": category_id, "name": name, "icon": icon, "description": description},
        )

    def delete_category(self, category_id: str) -> None:
        self.delete(f"/admin/categories/{category_id}")

    def admin_reviews(self, app_id: Optional[str] = None) -> List[dict]:
        return self.get("/admin/reviews", {"app_id": app_id} if app_id else None)

    def delete_review(self, review_id: str) -> None:
        self.delete(f"/admin/reviews/{review_id}")

    # Storage and changes

    def sign_url(
        self, bucket: str, path: str, op: str = "get", expires_in: int = 3600
    ) -> str:
        response = self.get(
            "/sign-url",
            {"bucket": bucket, "path": path, "op": op, "expires_in": expires_in},
        )
        return response["url"]

    def changes(
        self,
        cursor: int = 0,
        tables: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> dict:
        params: dict = {"cursor": cursor, "limit": limit}
        if tables:
            params["tables"] = list(tables)
        return self.get("/changes", params)

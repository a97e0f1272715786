"""
Domain errors raised below the HTTP layer.

`storefront.app` maps each class onto a status code so routes and services
can raise them without knowing about FastAPI.
"""

from __future__ import annotations

from typing import Optional


class StorefrontError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict:
        return {"detail": self.message}


class NotFoundError(StorefrontError):
    status_code = 404


class PermissionDeniedError(StorefrontError):
    status_code = 403


class AuthenticationError(StorefrontError):
    status_code = 401


class ConflictError(StorefrontError):
    status_code = 409


class InvalidTransitionError(StorefrontError):
    status_code = 409


class ValidationFailedError(StorefrontError):
    """A submission failed validation; `step` names the wizard step when known."""

    status_code = 422

    def __init__(self, message: str, step: Optional[int] = None):
        super().__init__(message)
        self.step = step

    def as_dict(self) -> dict:
        payload = super().as_dict()
        if self.step is not None:
            payload["step"] = self.step
        return payload

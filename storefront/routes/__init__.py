"""
HTTP routes for the storefront API.
"""

from fastapi import APIRouter

from storefront.routes import admin, apps, auth, catalog, changes, developers, storage

router = APIRouter()
# Apps before catalog so fixed /apps/... paths win over /apps/{app_id}.
router.include_router(auth.router)
router.include_router(apps.router)
router.include_router(catalog.router)
router.include_router(developers.router)
router.include_router(admin.router)
router.include_router(changes.router)
router.include_router(storage.router)

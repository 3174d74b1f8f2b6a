"""
API v1 routes.
"""

from fastapi import APIRouter

from paperflow.api.v1 import admin, auth, files, notifications, reviews

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(files.router, prefix="/files", tags=["Files"])
router.include_router(reviews.router, tags=["Reviews"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(admin.router, prefix="/admin", tags=["Administration"])

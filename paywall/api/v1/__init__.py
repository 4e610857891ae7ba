"""API v1 routes."""

from fastapi import APIRouter

from paywall.api.v1 import admin, auth, health, subscriptions, webhooks

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(subscriptions.router, prefix="/subscription", tags=["subscriptions"])
router.include_router(webhooks.router, prefix="/stripe", tags=["stripe"], include_in_schema=False)
router.include_router(admin.router, prefix="/admin", tags=["admin"])

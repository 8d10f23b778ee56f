"""API v1 router: administrative JSON endpoints under /api/v1 prefix."""

from fastapi import APIRouter

from .contacts.routes import admin_router as contacts_admin_router

api_v1_router = APIRouter(prefix="/api/v1", tags=["api-v1"])

api_v1_router.include_router(contacts_admin_router)

"""Main API router combining all v1 route modules under ``/api/v1``.

Includes:
    * Public: complaints (submit, track), screening preview, polls, health
    * Admin: complaint triage and poll closing
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import admin, complaints, health, polls, screening

api_router = APIRouter(prefix="/api/v1")

# -- Public sub-routers ----------------------------------------------------
api_router.include_router(complaints.router)
api_router.include_router(screening.router)
api_router.include_router(polls.router)
api_router.include_router(health.router)

# -- Admin sub-routers -----------------------------------------------------
api_router.include_router(admin.router)

"""API routers for the GigPay backend."""
from fastapi import APIRouter

from . import dashboard, gigs, health, milestones, profiles, release, transactions


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(profiles.router)
    api_router.include_router(gigs.router)
    api_router.include_router(milestones.router)
    api_router.include_router(transactions.router)
    api_router.include_router(release.router)
    api_router.include_router(dashboard.router)
    return api_router

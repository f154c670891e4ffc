"""API router aggregating all route modules."""

from fastapi import APIRouter

from varspeed.api.elections import router as elections_router

router = APIRouter()

# Include all sub-routers
router.include_router(elections_router, tags=["Elections"])

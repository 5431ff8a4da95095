"""API v1 router."""

from fastapi import APIRouter

from dandi.api.v1.keys import router as keys_router
from dandi.api.v1.summarizer import router as summarizer_router

router = APIRouter()

# Include sub-routers
router.include_router(keys_router, prefix="/keys", tags=["keys"])
router.include_router(summarizer_router, prefix="/github-summarizer", tags=["github-summarizer"])

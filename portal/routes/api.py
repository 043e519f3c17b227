from fastapi import APIRouter

from portal.ideas.router import router as ideas_router
from portal.review.router import router as review_router
from portal.scoring.router import router as scoring_router
from portal.portal_settings.router import router as settings_router

api_router = APIRouter()

api_router.include_router(ideas_router)
api_router.include_router(review_router)
api_router.include_router(scoring_router)
api_router.include_router(settings_router)

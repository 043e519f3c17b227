from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.database import get_db
from portal.auth.models import User
from portal.auth.dependencies import require_admin
from portal.portal_settings.schemas import BlindReviewResponse, BlindReviewUpdate
from portal.portal_settings.service import PortalSettingsService

router = APIRouter(prefix="/admin/settings", tags=["settings"])


@router.get("/blind-review", response_model=BlindReviewResponse)
async def get_blind_review(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await PortalSettingsService(db).get_blind_review()


@router.put("/blind-review", response_model=BlindReviewResponse)
async def set_blind_review(
    payload: BlindReviewUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await PortalSettingsService(db).set_blind_review(payload.enabled, current_user.id)

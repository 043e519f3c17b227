from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.database import get_db
from portal.auth.models import User, UserRole
from portal.auth.dependencies import get_current_active_user, require_reviewer
from portal.core.errors import ForbiddenError
from portal.ideas.service import IdeaService
from portal.scoring.schemas import IdeaScoresResponse, ScoreResponse, ScoreSubmission
from portal.scoring.service import ScoreService

router = APIRouter(prefix="/ideas", tags=["scoring"])


@router.put("/{idea_id}/score", response_model=ScoreResponse)
async def submit_score(
    idea_id: UUID,
    payload: ScoreSubmission,
    current_user: User = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db),
):
    service = ScoreService(db)
    eligibility = await service.check_eligibility(idea_id, current_user.id)
    eligibility.raise_if_ineligible()
    return await service.upsert(idea_id, current_user.id, payload.score, payload.comment)


@router.get("/{idea_id}/scores", response_model=IdeaScoresResponse)
async def list_scores(
    idea_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    idea = await IdeaService(db).get_visible_idea(idea_id, current_user)
    if current_user.role not in (UserRole.ADMIN, UserRole.EVALUATOR) and idea.user_id != current_user.id:
        raise ForbiddenError()
    return await ScoreService(db).scores_for_viewer(idea, current_user)

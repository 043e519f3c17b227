import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.auth.models import User, UserRole
from portal.core.errors import ForbiddenError, InvalidTransitionError, NotFoundError, PortalError
from portal.ideas.models import Idea, IdeaStatus, VALID_STATUS_TRANSITIONS
from portal.ideas.schemas import IdeaCreate, StatusUpdate
from portal.portal_settings.service import PortalSettingsService
from portal.review.state_machine import BindingResult, StageStateService
from portal.review.visibility import anonymize_idea_list, anonymize_idea_response, should_anonymize
from portal.scoring.service import ScoreService
from portal.shared.models import utcnow

logger = logging.getLogger(__name__)

REVIEWER_ROLES = (UserRole.ADMIN, UserRole.EVALUATOR)


def idea_to_dict(idea: Idea, submitter_display_name: Optional[str] = None) -> dict:
    return {
        "id": idea.id,
        "user_id": str(idea.user_id),
        "title": idea.title,
        "description": idea.description,
        "category": idea.category,
        "status": idea.status,
        "evaluator_comment": idea.evaluator_comment,
        "created_at": idea.created_at,
        "updated_at": idea.updated_at,
        "submitter_display_name": submitter_display_name,
    }


def _owner_name(idea: Idea) -> Optional[str]:
    return idea.owner.display_name if idea.owner else None


class IdeaService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_idea(self, idea_id: UUID) -> Optional[Idea]:
        return await self.db.get(Idea, idea_id, options=[selectinload(Idea.owner)], populate_existing=True)

    async def get_visible_idea(self, idea_id: UUID, viewer: User) -> Idea:
        """Deleted ideas and other users' drafts are reported as missing, not forbidden."""
        idea = await self.get_idea(idea_id)
        if idea is None or idea.is_deleted:
            raise NotFoundError("Idea not found")
        if idea.status == IdeaStatus.DRAFT and idea.user_id != viewer.id:
            raise NotFoundError("Idea not found")
        return idea

    async def _get_own_draft(self, idea_id: UUID, owner: User, action: str) -> Idea:
        idea = await self.get_idea(idea_id)
        if idea is None or idea.is_deleted or idea.user_id != owner.id:
            raise NotFoundError("Draft not found")
        if idea.status != IdeaStatus.DRAFT:
            raise ForbiddenError(f"Only drafts can be {action}")
        return idea

    async def create_draft(self, idea_in: IdeaCreate, owner: User) -> Idea:
        idea = Idea(
            **idea_in.model_dump(),
            user_id=owner.id,
            status=IdeaStatus.DRAFT,
        )
        self.db.add(idea)
        await self.db.commit()
        await self.db.refresh(idea)
        return idea

    async def delete_draft(self, idea_id: UUID, owner: User) -> None:
        idea = await self._get_own_draft(idea_id, owner, "deleted")
        idea.deleted_at = utcnow()
        await self.db.commit()

    async def submit_draft(self, idea_id: UUID, owner: User) -> Tuple[Idea, Optional[BindingResult]]:
        """Submit a draft, then try to bind it to the active review workflow.

        Binding is best-effort: the submission stands whatever the binding outcome.
        """
        idea = await self._get_own_draft(idea_id, owner, "submitted")
        idea_id, owner_id = idea.id, owner.id
        idea.status = IdeaStatus.SUBMITTED
        await self.db.commit()

        binding = None
        try:
            binding = await StageStateService(self.db).bind_to_active_workflow(idea_id, owner_id)
        except (PortalError, SQLAlchemyError) as e:
            logger.warning(f"Idea {idea_id} submitted without staged review: {e}")

        await self.db.refresh(idea)
        return idea, binding

    async def list_for_viewer(self, viewer: User) -> List[dict]:
        query = select(Idea).where(Idea.deleted_at.is_(None))
        if viewer.role in REVIEWER_ROLES:
            query = query.where(or_(Idea.status != IdeaStatus.DRAFT, Idea.user_id == viewer.id))
        else:
            query = query.where(Idea.user_id == viewer.id)
        result = await self.db.execute(
            query.options(selectinload(Idea.owner))
            .order_by(Idea.created_at.desc())
            .execution_options(populate_existing=True)
        )
        ideas = list(result.scalars().all())

        idea_ids = [idea.id for idea in ideas]
        terminal_outcomes = await StageStateService(self.db).terminal_outcomes_for(idea_ids)
        aggregates = await ScoreService(self.db).aggregate_many(idea_ids)
        blind_review = await PortalSettingsService(self.db).get_blind_review()

        items = anonymize_idea_list(
            [idea_to_dict(idea, _owner_name(idea)) for idea in ideas],
            viewer.role,
            str(viewer.id),
            blind_review.enabled,
            terminal_outcomes,
        )
        for item in items:
            aggregate = aggregates[item["id"]]
            item["avg_score"] = aggregate.avg_score
            item["score_count"] = aggregate.score_count
        return items

    async def detail_for_viewer(self, idea_id: UUID, viewer: User) -> dict:
        idea = await self.get_visible_idea(idea_id, viewer)
        state = await StageStateService(self.db).get_state(idea.id)
        blind_review = await PortalSettingsService(self.db).get_blind_review()
        mask = should_anonymize(
            viewer_role=viewer.role,
            viewer_id=str(viewer.id),
            idea_owner_id=str(idea.user_id),
            terminal_outcome=state.terminal_outcome if state else None,
            blind_review_enabled=blind_review.enabled,
        )
        return anonymize_idea_response(idea_to_dict(idea, _owner_name(idea)), mask)

    async def update_legacy_status(self, idea_id: UUID, status_in: StatusUpdate) -> Idea:
        """Status changes for ideas outside staged review. Bound ideas move only through stage transitions."""
        idea = await self.get_idea(idea_id)
        if idea is None or idea.is_deleted:
            raise NotFoundError("Idea not found")

        if await StageStateService(self.db).get_state(idea.id) is not None:
            raise InvalidTransitionError(message="Idea is in staged review; use stage transitions")

        new_status = IdeaStatus(status_in.status)
        if new_status not in VALID_STATUS_TRANSITIONS.get(idea.status, []):
            raise InvalidTransitionError(
                message=f"Invalid transition from '{idea.status.value}' to '{new_status.value}'"
            )

        idea.status = new_status
        if status_in.evaluator_comment is not None:
            idea.evaluator_comment = status_in.evaluator_comment
        await self.db.commit()
        await self.db.refresh(idea)
        return idea

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.review.models import ReviewAction, ReviewStageEvent


class StageEventLog:
    """Append-only audit trail of stage transitions. Rows are never updated or deleted."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        *,
        idea_id: UUID,
        workflow_id: UUID,
        from_stage_id: Optional[UUID],
        to_stage_id: UUID,
        action: ReviewAction,
        actor_id: UUID,
        evaluator_comment: Optional[str] = None,
    ) -> ReviewStageEvent:
        event = ReviewStageEvent(
            idea_id=idea_id,
            workflow_id=workflow_id,
            from_stage_id=from_stage_id,
            to_stage_id=to_stage_id,
            action=action,
            evaluator_comment=evaluator_comment,
            actor_id=actor_id,
        )
        self.db.add(event)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        await self.db.refresh(event)
        return event

    async def list_for_idea(self, idea_id: UUID) -> List[ReviewStageEvent]:
        result = await self.db.execute(
            select(ReviewStageEvent)
            .where(ReviewStageEvent.idea_id == idea_id)
            .order_by(ReviewStageEvent.occurred_at.asc())
        )
        return list(result.scalars().all())

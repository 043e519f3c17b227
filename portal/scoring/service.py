import math
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.auth.models import User
from portal.core.errors import ForbiddenError, NotFoundError, PortalError, ValidationFailedError
from portal.database import dialect_insert
from portal.ideas.models import Idea, IdeaStatus
from portal.portal_settings.service import PortalSettingsService
from portal.review.models import IdeaStageState
from portal.review.state_machine import StageStateService
from portal.review.visibility import anonymize_score_entry, should_mask_evaluator
from portal.scoring.models import IdeaScore
from portal.shared.models import utcnow


@dataclass(frozen=True)
class ScoringEligibility:
    eligible: bool
    reason: Optional[str] = None
    # HTTP status to answer with when not eligible.
    status: Optional[int] = None

    def raise_if_ineligible(self) -> None:
        if self.eligible:
            return
        error_cls = {404: NotFoundError, 403: ForbiddenError, 400: ValidationFailedError}.get(self.status, PortalError)
        raise error_cls(self.reason)


@dataclass(frozen=True)
class ScoreAggregate:
    avg_score: Optional[float]
    score_count: int


def round_average(scores: Sequence[int]) -> ScoreAggregate:
    """Average to one decimal place, rounding halves up (4.25 -> 4.3)."""
    if not scores:
        return ScoreAggregate(avg_score=None, score_count=0)
    average = sum(scores) / len(scores)
    return ScoreAggregate(avg_score=math.floor(average * 10 + 0.5) / 10, score_count=len(scores))


class ScoreService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_eligibility(self, idea_id: UUID, evaluator_id: UUID) -> ScoringEligibility:
        """Fail closed. Ideas that predate staged review fall back to the legacy status column."""
        idea = await self.db.get(Idea, idea_id, populate_existing=True)
        if idea is None or idea.is_deleted:
            return ScoringEligibility(False, "Idea not found", 404)

        state = await self.db.get(IdeaStageState, idea_id, populate_existing=True)
        if state is None:
            if idea.status == IdeaStatus.UNDER_REVIEW:
                return ScoringEligibility(True)
            return ScoringEligibility(False, "Idea is not under review", 400)

        if state.terminal_outcome is not None:
            return ScoringEligibility(False, "Idea has reached a terminal outcome", 403)
        return ScoringEligibility(True)

    async def upsert(self, idea_id: UUID, evaluator_id: UUID, score: int, comment: Optional[str] = None) -> IdeaScore:
        now = utcnow()
        stmt = dialect_insert(self.db, IdeaScore).values(
            id=uuid.uuid4(),
            idea_id=idea_id,
            evaluator_id=evaluator_id,
            score=score,
            comment=comment,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["idea_id", "evaluator_id"],
            set_={
                "score": stmt.excluded.score,
                "comment": stmt.excluded.comment,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        result = await self.db.execute(
            select(IdeaScore)
            .where(IdeaScore.idea_id == idea_id, IdeaScore.evaluator_id == evaluator_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_for_idea(self, idea_id: UUID) -> List[IdeaScore]:
        result = await self.db.execute(
            select(IdeaScore)
            .where(IdeaScore.idea_id == idea_id)
            .options(selectinload(IdeaScore.evaluator))
            .order_by(IdeaScore.created_at.desc())
        )
        return list(result.scalars().all())

    async def aggregate(self, idea_id: UUID) -> ScoreAggregate:
        result = await self.db.execute(select(IdeaScore.score).where(IdeaScore.idea_id == idea_id))
        return round_average(list(result.scalars().all()))

    async def aggregate_many(self, idea_ids: Iterable[UUID]) -> Dict[UUID, ScoreAggregate]:
        idea_ids = list(idea_ids)
        if not idea_ids:
            return {}
        result = await self.db.execute(
            select(IdeaScore.idea_id, IdeaScore.score).where(IdeaScore.idea_id.in_(idea_ids))
        )
        grouped: Dict[UUID, List[int]] = {idea_id: [] for idea_id in idea_ids}
        for idea_id, score in result.all():
            grouped[idea_id].append(score)
        return {idea_id: round_average(scores) for idea_id, scores in grouped.items()}

    async def scores_for_viewer(self, idea: Idea, viewer: User) -> dict:
        """Scores plus aggregate for one idea, with evaluator identities masked per entry."""
        scores = await self.list_for_idea(idea.id)
        aggregate = await self.aggregate(idea.id)

        blind_review = await PortalSettingsService(self.db).get_blind_review()
        state = await StageStateService(self.db).get_state(idea.id)
        terminal_outcome = state.terminal_outcome if state else None

        viewer_id = str(viewer.id)
        entries = []
        my_score = None
        for score in scores:
            evaluator_id = str(score.evaluator_id)
            entry = {
                "id": score.id,
                "evaluator_id": evaluator_id,
                "evaluator_display_name": score.evaluator.display_name if score.evaluator else "Unknown",
                "score": score.score,
                "comment": score.comment,
                "created_at": score.created_at,
                "updated_at": score.updated_at,
            }
            mask = should_mask_evaluator(
                viewer_role=viewer.role,
                viewer_id=viewer_id,
                evaluator_id=evaluator_id,
                terminal_outcome=terminal_outcome,
                blind_review_enabled=blind_review.enabled,
            )
            entries.append(anonymize_score_entry(entry, mask))
            if evaluator_id == viewer_id:
                my_score = {
                    "id": score.id,
                    "score": score.score,
                    "comment": score.comment,
                    "updated_at": score.updated_at,
                }

        return {
            "idea_id": idea.id,
            "aggregate": {"avg_score": aggregate.avg_score, "score_count": aggregate.score_count},
            "scores": entries,
            "my_score": my_score,
        }

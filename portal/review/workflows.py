import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.review.models import ReviewStage, ReviewWorkflow
from portal.shared.models import utcnow

logger = logging.getLogger(__name__)


class WorkflowStore:
    """Versioned review workflow definitions. Exactly one version is active at a time."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_stages(self):
        return (
            select(ReviewWorkflow)
            .options(selectinload(ReviewWorkflow.stages))
            .execution_options(populate_existing=True)
        )

    async def get_active(self) -> Optional[ReviewWorkflow]:
        result = await self.db.execute(self._with_stages().where(ReviewWorkflow.is_active.is_(True)))
        return result.scalars().first()

    async def get_by_id(self, workflow_id: UUID) -> Optional[ReviewWorkflow]:
        """Load any version, including inactive ones still bound to ideas."""
        result = await self.db.execute(self._with_stages().where(ReviewWorkflow.id == workflow_id))
        return result.scalars().first()

    async def next_version(self) -> int:
        result = await self.db.execute(select(func.max(ReviewWorkflow.version)))
        return (result.scalar() or 0) + 1

    async def create_and_activate(self, stage_names: Sequence[str], created_by: UUID) -> ReviewWorkflow:
        """Create a new workflow version from already-validated stage names and activate it.

        Deactivating the previous version, inserting the new one and inserting its
        stages commit together; on any failure the previous version stays active.
        """
        try:
            version = await self.next_version()
            await self.db.execute(
                update(ReviewWorkflow)
                .where(ReviewWorkflow.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            workflow = ReviewWorkflow(
                version=version,
                is_active=True,
                created_by=created_by,
                activated_at=utcnow(),
            )
            workflow.stages = [
                ReviewStage(name=name, position=position)
                for position, name in enumerate(stage_names, start=1)
            ]
            self.db.add(workflow)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.info(f"Activated review workflow v{version} with {len(stage_names)} stages")
        return await self.get_by_id(workflow.id)

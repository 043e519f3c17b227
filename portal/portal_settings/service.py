from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.database import dialect_insert
from portal.portal_settings.models import BLIND_REVIEW_KEY, PortalSetting
from portal.shared.models import utcnow


@dataclass(frozen=True)
class BlindReviewSetting:
    enabled: bool
    updated_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None


class PortalSettingsService:
    """Reads always go to the store; the flag is never cached in-process."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self, key: str) -> Optional[PortalSetting]:
        result = await self.db.execute(
            select(PortalSetting)
            .where(PortalSetting.key == key)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_blind_review(self) -> BlindReviewSetting:
        row = await self._get_row(BLIND_REVIEW_KEY)
        if row is None:
            return BlindReviewSetting(enabled=False)
        return BlindReviewSetting(
            enabled=row.value is True,
            updated_by=row.updated_by,
            updated_at=row.updated_at,
        )

    async def set_blind_review(self, enabled: bool, user_id: UUID) -> BlindReviewSetting:
        now = utcnow()
        stmt = dialect_insert(self.db, PortalSetting).values(
            key=BLIND_REVIEW_KEY,
            value=enabled,
            updated_by=user_id,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value, "updated_by": stmt.excluded.updated_by, "updated_at": stmt.excluded.updated_at},
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return await self.get_blind_review()

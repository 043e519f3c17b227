from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.auth import models, security

class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[models.User]:
        result = await self.db.execute(select(models.User).where(models.User.email == email))
        return result.scalars().first()

    async def authenticate_user(self, email: str, password: str) -> Optional[models.User]:
        user = await self.get_user_by_email(email)
        if not user:
            return None
        if not security.verify_password(password, user.hashed_password):
            return None
        return user

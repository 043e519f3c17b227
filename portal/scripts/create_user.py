import argparse
import asyncio

from portal.database import AsyncSessionLocal
from portal.auth.models import User, UserRole
# Import all models so SQLAlchemy can resolve all forward references
from portal.ideas.models import Idea
from portal.auth.security import get_password_hash
from sqlalchemy import select

async def create_user(email: str, password: str, full_name: str, role: UserRole):
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalars().first()
        if not user:
            user = User(
                email=email,
                hashed_password=get_password_hash(password),
                full_name=full_name,
                role=role,
                is_active=True,
            )
            session.add(user)
            print(f"Created User: {email} ({role.value})")
        else:
            # Update password and role just in case
            user.hashed_password = get_password_hash(password)
            user.role = role
            print(f"Updated User: {email} ({role.value})")

        await session.commit()
        print("Done!")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or update a portal user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--name", default="")
    parser.add_argument("--role", choices=[r.value for r in UserRole], default=UserRole.SUBMITTER.value)
    args = parser.parse_args()
    asyncio.run(create_user(args.email, args.password, args.name or None, UserRole(args.role)))

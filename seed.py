import asyncio
from sqlalchemy import select

from portal.database import AsyncSessionLocal
from portal.auth.models import User, UserRole
from portal.auth.security import get_password_hash
from portal.ideas.models import Idea  # registers the User.ideas target
from portal.review.validation import validate_workflow_stages
from portal.review.workflows import WorkflowStore

DEMO_USERS = [
    ("admin@example.com", "Portal Admin", UserRole.ADMIN),
    ("evaluator@example.com", "Eva Luator", UserRole.EVALUATOR),
    ("submitter@example.com", "Sam Mitter", UserRole.SUBMITTER),
]

DEFAULT_STAGES = ["Screening", "Technical Review", "Final Decision"]


async def seed_data():
    async with AsyncSessionLocal() as session:
        admin = None
        for email, full_name, role in DEMO_USERS:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalars().first()
            if not user:
                user = User(
                    email=email,
                    hashed_password=get_password_hash("password123"),
                    full_name=full_name,
                    role=role,
                )
                session.add(user)
                print(f"Created User: {email}")
            if role == UserRole.ADMIN:
                admin = user
        await session.commit()

        store = WorkflowStore(session)
        if await store.get_active() is None:
            workflow = await store.create_and_activate(validate_workflow_stages(DEFAULT_STAGES), admin.id)
            print(f"Activated workflow v{workflow.version}: {', '.join(s.name for s in workflow.stages)}")
        else:
            print("Active workflow exists, leaving it in place")

        print("Data seeded successfully!")

if __name__ == "__main__":
    asyncio.run(seed_data())

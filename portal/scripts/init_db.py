import asyncio
from portal.database import engine, Base

# Import all models to ensure they are registered in Base.metadata
from portal.auth.models import User
from portal.ideas.models import Idea
from portal.review.models import ReviewWorkflow, ReviewStage, IdeaStageState, ReviewStageEvent
from portal.scoring.models import IdeaScore
from portal.portal_settings.models import PortalSetting

async def init_models():
    async with engine.begin() as conn:
        # await conn.run_sync(Base.metadata.drop_all) # Optional: Reset DB
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created.")

if __name__ == "__main__":
    asyncio.run(init_models())

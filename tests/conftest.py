import os

# Point settings at SQLite before any portal module builds the engine.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest_asyncio
from dataclasses import dataclass
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from typing import AsyncGenerator, List, Optional
from uuid import UUID, uuid4

from portal.main import app
from portal.database import get_db, Base
from portal.auth.models import User, UserRole
from portal.auth.security import create_access_token
from portal.ideas.models import Idea, IdeaStatus
# Import all models so create_all sees every table
from portal.review.models import ReviewWorkflow, ReviewStage, IdeaStageState, ReviewStageEvent
from portal.review.workflows import WorkflowStore
from portal.scoring.models import IdeaScore
from portal.portal_settings.models import PortalSetting

DEFAULT_STAGES = ["Screening", "Technical", "Final"]


@dataclass(frozen=True)
class TestUser:
    """Plain snapshot of a user row, safe to read after the session rolls back."""
    __test__ = False

    id: UUID
    email: str
    role: UserRole
    full_name: str

    @property
    def headers(self) -> dict:
        token = create_access_token(data={"sub": self.email})
        return {"Authorization": f"Bearer {token}"}


@dataclass(frozen=True)
class TestWorkflow:
    __test__ = False

    id: UUID
    version: int
    stage_ids: List[UUID]


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh in-memory database and session for each test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestingSessionLocal = sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with TestingSessionLocal() as session:
        yield session

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Client for testing API endpoints."""
    # Override the get_db dependency to use our test session
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def create_user(
    db: AsyncSession,
    role: UserRole = UserRole.SUBMITTER,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    hashed_password: Optional[str] = None,
) -> TestUser:
    email = email or f"{role.value}_{uuid4().hex[:8]}@example.com"
    full_name = full_name or f"{role.value.title()} {email.split('@')[0]}"
    user = User(
        id=uuid4(),
        email=email,
        full_name=full_name,
        role=role,
        hashed_password=hashed_password,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return TestUser(id=user.id, email=email, role=role, full_name=full_name)


async def create_idea(
    db: AsyncSession,
    owner: TestUser,
    status: IdeaStatus = IdeaStatus.SUBMITTED,
    title: str = "Automate expense approvals",
) -> UUID:
    idea = Idea(
        id=uuid4(),
        user_id=owner.id,
        title=title,
        description="Route small expenses straight to payment.",
        category="Process Improvement",
        status=status,
    )
    db.add(idea)
    await db.commit()
    return idea.id


async def create_workflow(db: AsyncSession, created_by: TestUser, stages: Optional[List[str]] = None) -> TestWorkflow:
    workflow = await WorkflowStore(db).create_and_activate(stages or DEFAULT_STAGES, created_by.id)
    return TestWorkflow(
        id=workflow.id,
        version=workflow.version,
        stage_ids=[stage.id for stage in workflow.stages],
    )


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> TestUser:
    return await create_user(db_session, UserRole.ADMIN, full_name="Ada Admin")


@pytest_asyncio.fixture
async def evaluator(db_session: AsyncSession) -> TestUser:
    return await create_user(db_session, UserRole.EVALUATOR, full_name="Evan Evaluator")


@pytest_asyncio.fixture
async def submitter(db_session: AsyncSession) -> TestUser:
    return await create_user(db_session, UserRole.SUBMITTER, full_name="Sally Submitter")


@pytest_asyncio.fixture
async def workflow(db_session: AsyncSession, admin: TestUser) -> TestWorkflow:
    return await create_workflow(db_session, admin)

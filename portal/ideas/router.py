from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.database import get_db
from portal.auth.models import User
from portal.auth.dependencies import get_current_active_user, require_admin
from portal.ideas.schemas import IdeaCreate, IdeaListItem, IdeaResponse, IdeaSubmitResponse, StatusUpdate
from portal.ideas.service import IdeaService, idea_to_dict

router = APIRouter(tags=["ideas"])


@router.post("/drafts", response_model=IdeaResponse, status_code=status.HTTP_201_CREATED)
async def create_draft(
    idea: IdeaCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    created = await IdeaService(db).create_draft(idea, current_user)
    return idea_to_dict(created, current_user.display_name)


@router.delete("/drafts/{idea_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_draft(
    idea_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    await IdeaService(db).delete_draft(idea_id, current_user)


@router.post("/drafts/{idea_id}/submit", response_model=IdeaSubmitResponse)
async def submit_draft(
    idea_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    display_name = current_user.display_name
    idea, binding = await IdeaService(db).submit_draft(idea_id, current_user)
    return {**idea_to_dict(idea, display_name), "review_bound": binding is not None}


@router.get("/ideas", response_model=List[IdeaListItem])
async def list_ideas(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await IdeaService(db).list_for_viewer(current_user)


@router.get("/ideas/{idea_id}", response_model=IdeaResponse)
async def get_idea(
    idea_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await IdeaService(db).detail_for_viewer(idea_id, current_user)


@router.patch("/admin/ideas/{idea_id}/status", response_model=IdeaResponse)
async def update_idea_status(
    idea_id: UUID,
    status_in: StatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    idea = await IdeaService(db).update_legacy_status(idea_id, status_in)
    return idea_to_dict(idea)

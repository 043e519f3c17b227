from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.database import get_db
from portal.auth.models import User, UserRole
from portal.auth.dependencies import get_current_active_user, require_admin, require_reviewer
from portal.core.errors import ForbiddenError, NotFoundError, StorageError
from portal.ideas.service import IdeaService
from portal.review.models import ReviewWorkflow
from portal.review.schemas import StageStateResponse, TransitionRequest, TransitionResponse, WorkflowInput, WorkflowResponse
from portal.review.state_machine import StageStateService
from portal.review.validation import validate_workflow_stages
from portal.review.visibility import UNKNOWN_STAGE_NAME, full_events, shape_progress_by_role
from portal.review.workflows import WorkflowStore

router = APIRouter(tags=["review"])


def _stage_name(workflow: ReviewWorkflow, stage_id: UUID) -> str:
    for stage in workflow.stages:
        if stage.id == stage_id:
            return stage.name
    return UNKNOWN_STAGE_NAME


async def _require_idea(db: AsyncSession, idea_id: UUID):
    idea = await IdeaService(db).get_idea(idea_id)
    if idea is None or idea.is_deleted:
        raise NotFoundError("Idea not found")
    return idea


# ---------------------------------------------------------------------------
# Workflow definition
# ---------------------------------------------------------------------------

@router.get("/admin/review/workflow", response_model=WorkflowResponse)
async def get_active_workflow(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    workflow = await WorkflowStore(db).get_active()
    if workflow is None:
        raise NotFoundError("No active workflow")
    return workflow


@router.put("/admin/review/workflow", response_model=WorkflowResponse)
async def replace_workflow(
    payload: WorkflowInput,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Validate the proposed stages, then create and activate them as the next version."""
    names = validate_workflow_stages([stage.name for stage in payload.stages])
    return await WorkflowStore(db).create_and_activate(names, current_user.id)


# ---------------------------------------------------------------------------
# Stage state
# ---------------------------------------------------------------------------

@router.get("/admin/review/ideas/{idea_id}/stage", response_model=StageStateResponse)
async def get_stage_state(
    idea_id: UUID,
    current_user: User = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db),
):
    await _require_idea(db, idea_id)
    service = StageStateService(db)
    found = await service.get_state_with_events(idea_id)
    if found is None:
        raise NotFoundError("Stage state not found")

    workflow = await service.workflows.get_by_id(found.state.workflow_id)
    if workflow is None:
        raise StorageError("Failed to load workflow")

    state = found.state
    return StageStateResponse(
        idea_id=state.idea_id,
        workflow_id=state.workflow_id,
        current_stage_id=state.current_stage_id,
        current_stage_name=_stage_name(workflow, state.current_stage_id),
        state_version=state.state_version,
        terminal_outcome=state.terminal_outcome,
        updated_at=state.updated_at,
        events=full_events(found.events, workflow.stages),
    )


@router.post("/admin/review/ideas/{idea_id}/transition", response_model=TransitionResponse)
async def transition_idea(
    idea_id: UUID,
    payload: TransitionRequest,
    current_user: User = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db),
):
    actor_id = current_user.id
    await _require_idea(db, idea_id)
    result = await StageStateService(db).transition(
        idea_id,
        payload.action,
        payload.expected_state_version,
        actor_id,
        payload.comment,
    )
    state = result.state
    return TransitionResponse(
        idea_id=state.idea_id,
        workflow_id=state.workflow_id,
        current_stage_id=state.current_stage_id,
        current_stage_name=_stage_name(result.workflow, state.current_stage_id),
        state_version=state.state_version,
        terminal_outcome=state.terminal_outcome,
        updated_at=state.updated_at,
        audit_trail_complete=result.audit_recorded,
    )


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

@router.get("/ideas/{idea_id}/review-progress")
async def get_review_progress(
    idea_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Admins and evaluators see the full timeline; the owner sees a stripped one until a terminal outcome."""
    idea = await IdeaService(db).get_visible_idea(idea_id, current_user)
    if current_user.role in (UserRole.ADMIN, UserRole.EVALUATOR):
        role = current_user.role
    elif idea.user_id == current_user.id:
        role = UserRole.SUBMITTER
    else:
        raise ForbiddenError()

    service = StageStateService(db)
    found = await service.get_state_with_events(idea_id)
    if found is None:
        raise NotFoundError("Review progress not found")

    workflow = await service.workflows.get_by_id(found.state.workflow_id)
    if workflow is None:
        raise StorageError("Failed to load workflow")

    state = found.state
    return shape_progress_by_role(
        role,
        idea_id,
        _stage_name(workflow, state.current_stage_id),
        state.updated_at,
        state.terminal_outcome,
        state.state_version,
        found.events,
        workflow.stages,
    )

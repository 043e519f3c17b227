"""Per-idea review position with optimistic concurrency.

States are the stages of the workflow an idea is bound to, crossed with a
terminal flag. ``state_version`` increases by exactly one per accepted write,
and every write is conditioned on the version the caller last saw.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.errors import (
    ConflictError,
    InvalidTransitionError,
    NoActiveWorkflowError,
    NotFoundError,
    StorageError,
)
from portal.ideas.models import Idea, IdeaStatus
from portal.review.events import StageEventLog
from portal.review.models import (
    IdeaStageState,
    ReviewAction,
    ReviewStage,
    ReviewStageEvent,
    ReviewWorkflow,
    TerminalOutcome,
)
from portal.review.workflows import WorkflowStore
from portal.shared.models import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionTarget:
    stage_id: UUID
    terminal_outcome: Optional[TerminalOutcome]


@dataclass
class TransitionResult:
    state: IdeaStageState
    workflow: ReviewWorkflow
    # None when the state write committed but the audit append failed.
    event: Optional[ReviewStageEvent]

    @property
    def audit_recorded(self) -> bool:
        return self.event is not None


@dataclass
class BindingResult:
    state: IdeaStageState
    event: ReviewStageEvent


@dataclass
class StageStateWithEvents:
    state: IdeaStageState
    events: List[ReviewStageEvent]


def resolve_transition(
    stages: Sequence[ReviewStage],
    current_stage_id: UUID,
    action: ReviewAction,
) -> TransitionTarget:
    """Resolve where ``action`` moves an idea sitting at ``current_stage_id``.

    ``stages`` must be ordered by position. ``return`` only steps back one stage.
    """
    stage_ids = [stage.id for stage in stages]
    try:
        index = stage_ids.index(current_stage_id)
    except ValueError:
        raise InvalidTransitionError(message="Current stage not found in workflow")

    action = ReviewAction(action)
    if action is ReviewAction.ADVANCE:
        if index >= len(stage_ids) - 1:
            raise InvalidTransitionError(message="Already at last stage; use terminal action")
        return TransitionTarget(stage_ids[index + 1], None)
    if action is ReviewAction.RETURN:
        if index == 0:
            raise InvalidTransitionError(message="Cannot return from first stage")
        return TransitionTarget(stage_ids[index - 1], None)
    if action is ReviewAction.HOLD:
        return TransitionTarget(current_stage_id, None)
    if action is ReviewAction.TERMINAL_ACCEPT:
        return TransitionTarget(current_stage_id, TerminalOutcome.ACCEPTED)
    if action is ReviewAction.TERMINAL_REJECT:
        return TransitionTarget(current_stage_id, TerminalOutcome.REJECTED)
    raise InvalidTransitionError(message=f"Unsupported action: {action.value}")


class StageStateService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.workflows = WorkflowStore(db)
        self.events = StageEventLog(db)

    async def get_state(self, idea_id: UUID) -> Optional[IdeaStageState]:
        return await self.db.get(IdeaStageState, idea_id, populate_existing=True)

    async def get_state_with_events(self, idea_id: UUID) -> Optional[StageStateWithEvents]:
        state = await self.get_state(idea_id)
        if state is None:
            return None
        events = await self.events.list_for_idea(idea_id)
        return StageStateWithEvents(state=state, events=events)

    async def terminal_outcomes_for(self, idea_ids: Iterable[UUID]) -> Dict[UUID, Optional[TerminalOutcome]]:
        """Batch lookup used by listings; ideas never bound to a workflow are absent."""
        idea_ids = list(idea_ids)
        if not idea_ids:
            return {}
        result = await self.db.execute(
            select(IdeaStageState.idea_id, IdeaStageState.terminal_outcome)
            .where(IdeaStageState.idea_id.in_(idea_ids))
        )
        return {idea_id: outcome for idea_id, outcome in result.all()}

    async def compare_and_swap(
        self,
        idea_id: UUID,
        expected_version: int,
        *,
        current_stage_id: UUID,
        terminal_outcome: Optional[TerminalOutcome],
        updated_by: UUID,
    ) -> bool:
        """Write the new state only if the stored version still equals ``expected_version``.

        Returns False when another writer got there first (zero rows matched).
        """
        stmt = (
            update(IdeaStageState)
            .where(
                IdeaStageState.idea_id == idea_id,
                IdeaStageState.state_version == expected_version,
            )
            .values(
                current_stage_id=current_stage_id,
                terminal_outcome=terminal_outcome,
                updated_by=updated_by,
                updated_at=utcnow(),
                state_version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            if result.rowcount == 0:
                await self.db.rollback()
                return False
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return True

    async def transition(
        self,
        idea_id: UUID,
        action: ReviewAction,
        expected_state_version: int,
        actor_id: UUID,
        comment: Optional[str] = None,
    ) -> TransitionResult:
        action = ReviewAction(action)
        state = await self.get_state(idea_id)
        if state is None:
            raise NotFoundError("Idea not found")

        if state.state_version != expected_state_version:
            logger.info(
                "Stale transition for idea %s: expected v%s, current v%s",
                idea_id, expected_state_version, state.state_version,
            )
            raise ConflictError()

        if state.is_terminal:
            raise InvalidTransitionError(message="Idea has already reached a terminal outcome")

        workflow = await self.workflows.get_by_id(state.workflow_id)
        if workflow is None:
            raise StorageError("Failed to load workflow")

        target = resolve_transition(workflow.stages, state.current_stage_id, action)
        from_stage_id = state.current_stage_id
        workflow_id = workflow.id

        won = await self.compare_and_swap(
            idea_id,
            expected_state_version,
            current_stage_id=target.stage_id,
            terminal_outcome=target.terminal_outcome,
            updated_by=actor_id,
        )
        if not won:
            logger.info("Lost concurrent transition race for idea %s at v%s", idea_id, expected_state_version)
            raise ConflictError()

        new_version = expected_state_version + 1
        logger.info(
            "Idea %s %s -> v%s (terminal=%s)",
            idea_id, action.value, new_version, target.terminal_outcome,
        )

        event = None
        try:
            event = await self.events.append(
                idea_id=idea_id,
                workflow_id=workflow_id,
                from_stage_id=from_stage_id,
                to_stage_id=target.stage_id,
                action=action,
                evaluator_comment=comment,
                actor_id=actor_id,
            )
        except SQLAlchemyError:
            # The state write is already committed; report the gap instead of rolling back.
            logger.error(
                "Idea %s moved to v%s but its stage event was not recorded",
                idea_id, new_version, exc_info=True,
            )

        if target.terminal_outcome is not None:
            await self._sync_idea_status(idea_id, target.terminal_outcome)

        # A rollback above expires loaded rows, so reload what the caller reads.
        if event is not None:
            await self.db.refresh(event)
        return TransitionResult(
            state=await self.get_state(idea_id),
            workflow=await self.workflows.get_by_id(workflow_id),
            event=event,
        )

    async def _sync_idea_status(self, idea_id: UUID, outcome: TerminalOutcome) -> None:
        status = IdeaStatus.ACCEPTED if outcome is TerminalOutcome.ACCEPTED else IdeaStatus.REJECTED
        try:
            await self.db.execute(
                update(Idea)
                .where(Idea.id == idea_id)
                .values(status=status, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error("Failed to sync idea %s status to %s", idea_id, status.value, exc_info=True)

    async def bind_to_active_workflow(self, idea_id: UUID, actor_id: UUID) -> BindingResult:
        """Place an idea at the first stage of the active workflow and record the entry event."""
        workflow = await self.workflows.get_active()
        if workflow is None:
            raise NoActiveWorkflowError()
        if not workflow.stages:
            raise NoActiveWorkflowError("Active workflow has no stages")

        first_stage = workflow.stages[0]
        state = IdeaStageState(
            idea_id=idea_id,
            workflow_id=workflow.id,
            current_stage_id=first_stage.id,
            state_version=1,
            updated_by=actor_id,
        )
        self.db.add(state)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        event = await self.events.append(
            idea_id=idea_id,
            workflow_id=workflow.id,
            from_stage_id=None,
            to_stage_id=first_stage.id,
            action=ReviewAction.ADVANCE,
            actor_id=actor_id,
        )
        return BindingResult(state=state, event=event)

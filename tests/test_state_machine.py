import pytest
import pytest_asyncio
from uuid import uuid4
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.errors import ConflictError, InvalidTransitionError, NoActiveWorkflowError, NotFoundError
from portal.ideas.models import Idea, IdeaStatus
from portal.review.models import ReviewAction, ReviewStage, TerminalOutcome
from portal.review.state_machine import StageStateService, resolve_transition

from conftest import create_idea, create_user, create_workflow


def make_stages(*names):
    return [ReviewStage(id=uuid4(), name=name, position=i) for i, name in enumerate(names, start=1)]


# ---------------------------------------------------------------------------
# Pure transition table
# ---------------------------------------------------------------------------

def test_advance_moves_to_next_stage():
    stages = make_stages("Screening", "Technical", "Final")
    target = resolve_transition(stages, stages[0].id, ReviewAction.ADVANCE)
    assert target.stage_id == stages[1].id
    assert target.terminal_outcome is None


def test_advance_from_last_stage_is_invalid():
    stages = make_stages("Screening", "Technical", "Final")
    with pytest.raises(InvalidTransitionError) as exc:
        resolve_transition(stages, stages[-1].id, ReviewAction.ADVANCE)
    assert exc.value.message == "Already at last stage; use terminal action"


def test_return_steps_back_exactly_one_stage():
    stages = make_stages("Screening", "Technical", "Final")
    target = resolve_transition(stages, stages[2].id, ReviewAction.RETURN)
    assert target.stage_id == stages[1].id


def test_return_from_first_stage_is_invalid():
    stages = make_stages("Screening", "Technical", "Final")
    with pytest.raises(InvalidTransitionError) as exc:
        resolve_transition(stages, stages[0].id, ReviewAction.RETURN)
    assert exc.value.message == "Cannot return from first stage"


def test_hold_keeps_stage():
    stages = make_stages("Screening", "Technical", "Final")
    target = resolve_transition(stages, stages[1].id, ReviewAction.HOLD)
    assert target.stage_id == stages[1].id
    assert target.terminal_outcome is None


@pytest.mark.parametrize("action,outcome", [
    (ReviewAction.TERMINAL_ACCEPT, TerminalOutcome.ACCEPTED),
    (ReviewAction.TERMINAL_REJECT, TerminalOutcome.REJECTED),
])
@pytest.mark.parametrize("stage_index", [0, 1, 2])
def test_terminal_actions_allowed_at_any_stage(action, outcome, stage_index):
    stages = make_stages("Screening", "Technical", "Final")
    target = resolve_transition(stages, stages[stage_index].id, action)
    assert target.stage_id == stages[stage_index].id
    assert target.terminal_outcome == outcome


def test_unknown_current_stage_is_invalid():
    stages = make_stages("Screening", "Technical", "Final")
    with pytest.raises(InvalidTransitionError) as exc:
        resolve_transition(stages, uuid4(), ReviewAction.ADVANCE)
    assert exc.value.message == "Current stage not found in workflow"


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_bind_places_idea_at_first_stage(db_session: AsyncSession, admin, submitter, workflow):
    idea_id = await create_idea(db_session, submitter)
    service = StageStateService(db_session)

    binding = await service.bind_to_active_workflow(idea_id, submitter.id)

    assert binding.state.current_stage_id == workflow.stage_ids[0]
    assert binding.state.state_version == 1
    assert binding.state.terminal_outcome is None
    assert binding.event.from_stage_id is None
    assert binding.event.to_stage_id == workflow.stage_ids[0]
    assert binding.event.action == ReviewAction.ADVANCE

    found = await service.get_state_with_events(idea_id)
    assert len(found.events) == 1


@pytest.mark.asyncio
async def test_bind_without_active_workflow(db_session: AsyncSession, submitter):
    idea_id = await create_idea(db_session, submitter)
    with pytest.raises(NoActiveWorkflowError):
        await StageStateService(db_session).bind_to_active_workflow(idea_id, submitter.id)
    assert await StageStateService(db_session).get_state(idea_id) is None


# ---------------------------------------------------------------------------
# Versioned transitions
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def bound_idea(db_session: AsyncSession, admin, submitter, workflow):
    idea_id = await create_idea(db_session, submitter)
    await StageStateService(db_session).bind_to_active_workflow(idea_id, submitter.id)
    return idea_id


@pytest.mark.asyncio
async def test_versions_increase_by_one_per_transition(db_session: AsyncSession, evaluator, workflow, bound_idea):
    service = StageStateService(db_session)
    actions = [ReviewAction.ADVANCE, ReviewAction.HOLD, ReviewAction.RETURN, ReviewAction.ADVANCE, ReviewAction.ADVANCE]

    version = 1
    for action in actions:
        result = await service.transition(bound_idea, action, version, evaluator.id)
        assert result.state.state_version == version + 1
        assert result.audit_recorded
        version += 1

    state = await service.get_state(bound_idea)
    assert state.state_version == 1 + len(actions)
    assert state.current_stage_id == workflow.stage_ids[2]

    found = await service.get_state_with_events(bound_idea)
    assert len(found.events) == 1 + len(actions)
    assert [e.action for e in found.events[1:]] == actions


@pytest.mark.asyncio
async def test_hold_writes_its_own_event(db_session: AsyncSession, evaluator, workflow, bound_idea):
    service = StageStateService(db_session)
    await service.transition(bound_idea, ReviewAction.HOLD, 1, evaluator.id, "Waiting on finance")
    result = await service.transition(bound_idea, ReviewAction.HOLD, 2, evaluator.id)

    assert result.state.state_version == 3
    assert result.state.current_stage_id == workflow.stage_ids[0]
    found = await service.get_state_with_events(bound_idea)
    holds = [e for e in found.events if e.action == ReviewAction.HOLD]
    assert len(holds) == 2
    assert holds[0].evaluator_comment == "Waiting on finance"


@pytest.mark.asyncio
async def test_stale_version_conflicts_and_leaves_state(db_session: AsyncSession, evaluator, workflow, bound_idea):
    service = StageStateService(db_session)
    await service.transition(bound_idea, ReviewAction.ADVANCE, 1, evaluator.id)

    with pytest.raises(ConflictError) as exc:
        await service.transition(bound_idea, ReviewAction.ADVANCE, 1, evaluator.id)
    assert exc.value.to_body() == {"error": "Conflict", "message": "State changed, refresh and retry"}

    state = await service.get_state(bound_idea)
    assert state.state_version == 2
    assert state.current_stage_id == workflow.stage_ids[1]


@pytest.mark.asyncio
async def test_only_one_writer_wins_for_a_version(db_session: AsyncSession, evaluator, workflow, bound_idea):
    service = StageStateService(db_session)

    first = await service.compare_and_swap(
        bound_idea, 1,
        current_stage_id=workflow.stage_ids[1], terminal_outcome=None, updated_by=evaluator.id,
    )
    second = await service.compare_and_swap(
        bound_idea, 1,
        current_stage_id=workflow.stage_ids[0], terminal_outcome=TerminalOutcome.REJECTED, updated_by=evaluator.id,
    )

    assert first is True
    assert second is False
    state = await service.get_state(bound_idea)
    assert state.state_version == 2
    assert state.current_stage_id == workflow.stage_ids[1]
    assert state.terminal_outcome is None


@pytest.mark.asyncio
async def test_lost_race_after_version_check_conflicts(db_session: AsyncSession, evaluator, bound_idea, monkeypatch):
    service = StageStateService(db_session)

    async def lose(*args, **kwargs):
        return False

    monkeypatch.setattr(service, "compare_and_swap", lose)
    with pytest.raises(ConflictError):
        await service.transition(bound_idea, ReviewAction.ADVANCE, 1, evaluator.id)

    found = await StageStateService(db_session).get_state_with_events(bound_idea)
    assert found.state.state_version == 1
    assert len(found.events) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("action", list(ReviewAction))
async def test_terminal_state_rejects_every_action(db_session: AsyncSession, evaluator, bound_idea, action):
    service = StageStateService(db_session)
    await service.transition(bound_idea, ReviewAction.TERMINAL_ACCEPT, 1, evaluator.id)

    with pytest.raises(InvalidTransitionError) as exc:
        await service.transition(bound_idea, action, 2, evaluator.id)
    assert exc.value.message == "Idea has already reached a terminal outcome"

    state = await service.get_state(bound_idea)
    assert state.state_version == 2
    assert state.terminal_outcome == TerminalOutcome.ACCEPTED


@pytest.mark.asyncio
async def test_terminal_outcome_syncs_idea_status(db_session: AsyncSession, evaluator, bound_idea):
    await StageStateService(db_session).transition(bound_idea, ReviewAction.TERMINAL_REJECT, 1, evaluator.id)
    idea = await db_session.get(Idea, bound_idea, populate_existing=True)
    assert idea.status == IdeaStatus.REJECTED


@pytest.mark.asyncio
async def test_transition_uses_bound_workflow_after_replacement(db_session: AsyncSession, admin, evaluator, workflow, bound_idea):
    await create_workflow(db_session, admin, ["Intake", "Pilot", "Rollout", "Review"])

    result = await StageStateService(db_session).transition(bound_idea, ReviewAction.ADVANCE, 1, evaluator.id)

    assert result.workflow.id == workflow.id
    assert result.state.current_stage_id == workflow.stage_ids[1]


@pytest.mark.asyncio
async def test_missing_event_is_reported_not_rolled_back(db_session: AsyncSession, evaluator, workflow, bound_idea, monkeypatch):
    from sqlalchemy.exc import OperationalError

    service = StageStateService(db_session)

    async def broken_append(**kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(service.events, "append", broken_append)
    result = await service.transition(bound_idea, ReviewAction.ADVANCE, 1, evaluator.id)

    assert result.audit_recorded is False
    assert result.state.state_version == 2
    assert result.state.current_stage_id == workflow.stage_ids[1]


@pytest.mark.asyncio
async def test_transition_on_unbound_idea_is_not_found(db_session: AsyncSession, evaluator):
    owner = await create_user(db_session)
    idea_id = await create_idea(db_session, owner)
    with pytest.raises(NotFoundError):
        await StageStateService(db_session).transition(idea_id, ReviewAction.ADVANCE, 1, evaluator.id)

"""Blind-review masking and role-dependent shaping of review data.

Every decision is made per viewer and per item: self-view and terminal
exemptions belong to a single idea or score, never to the viewer globally.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union
from uuid import UUID

from portal.auth.models import UserRole
from portal.review.models import ReviewStage, ReviewStageEvent, TerminalOutcome
from portal.review.schemas import FullEvent, FullProgress, SubmitterEvent, SubmitterProgress

ANONYMOUS_ID = "anonymous"
ANONYMOUS_SUBMITTER_NAME = "Anonymous Submitter"
ANONYMOUS_EVALUATOR_NAME = "Anonymous Evaluator"
UNKNOWN_STAGE_NAME = "Unknown"


# ---------------------------------------------------------------------------
# Idea ownership
# ---------------------------------------------------------------------------

def should_anonymize(
    *,
    viewer_role: UserRole,
    viewer_id: str,
    idea_owner_id: str,
    terminal_outcome: Optional[TerminalOutcome],
    blind_review_enabled: bool,
) -> bool:
    """Mask the submitter unless blind review is off, the viewer is an admin,
    the viewer owns the idea, or the idea already has a terminal outcome."""
    if not blind_review_enabled:
        return False
    if viewer_role == UserRole.ADMIN:
        return False
    if viewer_id == idea_owner_id:
        return False
    if terminal_outcome is not None:
        return False
    return True


def anonymize_idea_response(idea: Dict[str, Any], mask: bool) -> Dict[str, Any]:
    if not mask:
        return idea
    return {
        **idea,
        "user_id": ANONYMOUS_ID,
        "submitter_display_name": ANONYMOUS_SUBMITTER_NAME,
    }


def anonymize_idea_list(
    ideas: Iterable[Dict[str, Any]],
    viewer_role: UserRole,
    viewer_id: str,
    blind_review_enabled: bool,
    terminal_outcomes: Optional[Mapping[UUID, Optional[TerminalOutcome]]] = None,
) -> List[Dict[str, Any]]:
    terminal_outcomes = terminal_outcomes or {}
    shaped = []
    for idea in ideas:
        mask = should_anonymize(
            viewer_role=viewer_role,
            viewer_id=viewer_id,
            idea_owner_id=idea["user_id"],
            terminal_outcome=terminal_outcomes.get(idea["id"]),
            blind_review_enabled=blind_review_enabled,
        )
        shaped.append(anonymize_idea_response(idea, mask))
    return shaped


# ---------------------------------------------------------------------------
# Evaluator identity on scores
# ---------------------------------------------------------------------------

def should_mask_evaluator(
    *,
    viewer_role: UserRole,
    viewer_id: str,
    evaluator_id: str,
    terminal_outcome: Optional[TerminalOutcome],
    blind_review_enabled: bool,
) -> bool:
    if not blind_review_enabled:
        return False
    if viewer_role == UserRole.ADMIN:
        return False
    if viewer_id == evaluator_id:
        return False
    if terminal_outcome is not None:
        return False
    return True


def anonymize_score_entry(entry: Dict[str, Any], mask: bool) -> Dict[str, Any]:
    """Replace evaluator identity only; score, comment and timestamps are untouched."""
    if not mask:
        return entry
    return {
        **entry,
        "evaluator_id": ANONYMOUS_ID,
        "evaluator_display_name": ANONYMOUS_EVALUATOR_NAME,
    }


# ---------------------------------------------------------------------------
# Review progress
# ---------------------------------------------------------------------------

def _stage_names(stages: Sequence[ReviewStage]) -> Dict[UUID, str]:
    return {stage.id: stage.name for stage in stages}


def shape_submitter_progress(
    idea_id: UUID,
    current_stage_name: str,
    updated_at,
    events: Sequence[ReviewStageEvent],
    stages: Sequence[ReviewStage],
) -> SubmitterProgress:
    names = _stage_names(stages)
    return SubmitterProgress(
        idea_id=idea_id,
        current_stage=current_stage_name,
        current_stage_updated_at=updated_at,
        events=[
            SubmitterEvent(
                to_stage=names.get(event.to_stage_id, UNKNOWN_STAGE_NAME),
                occurred_at=event.occurred_at,
            )
            for event in events
        ],
    )


def shape_full_progress(
    idea_id: UUID,
    current_stage_name: str,
    updated_at,
    terminal_outcome: Optional[TerminalOutcome],
    state_version: int,
    events: Sequence[ReviewStageEvent],
    stages: Sequence[ReviewStage],
) -> FullProgress:
    return FullProgress(
        idea_id=idea_id,
        current_stage=current_stage_name,
        current_stage_updated_at=updated_at,
        terminal_outcome=terminal_outcome,
        state_version=state_version,
        events=full_events(events, stages),
    )


def full_events(events: Sequence[ReviewStageEvent], stages: Sequence[ReviewStage]) -> List[FullEvent]:
    names = _stage_names(stages)
    return [
        FullEvent(
            id=event.id,
            from_stage=names.get(event.from_stage_id, UNKNOWN_STAGE_NAME) if event.from_stage_id else None,
            to_stage=names.get(event.to_stage_id, UNKNOWN_STAGE_NAME),
            action=event.action,
            evaluator_comment=event.evaluator_comment,
            actor_id=event.actor_id,
            occurred_at=event.occurred_at,
        )
        for event in events
    ]


def shape_progress_by_role(
    role: UserRole,
    idea_id: UUID,
    current_stage_name: str,
    updated_at,
    terminal_outcome: Optional[TerminalOutcome],
    state_version: int,
    events: Sequence[ReviewStageEvent],
    stages: Sequence[ReviewStage],
) -> Union[SubmitterProgress, FullProgress]:
    """Admins and evaluators always get full detail. Submitters get the stripped
    timeline until the idea reaches a terminal outcome."""
    role = UserRole(role)
    if role in (UserRole.ADMIN, UserRole.EVALUATOR):
        full = True
    elif role == UserRole.SUBMITTER:
        full = terminal_outcome is not None
    else:
        raise ValueError(f"Unhandled role: {role!r}")

    if full:
        return shape_full_progress(
            idea_id, current_stage_name, updated_at, terminal_outcome, state_version, events, stages
        )
    return shape_submitter_progress(idea_id, current_stage_name, updated_at, events, stages)

from datetime import datetime
from uuid import UUID
from typing import Annotated, List, Optional
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from portal.review.models import ReviewAction, TerminalOutcome
from portal.shared.schemas import CamelModel


# ---------------------------------------------------------------------------
# Workflow definition
# ---------------------------------------------------------------------------

class StageInput(BaseModel):
    name: str


class WorkflowInput(BaseModel):
    stages: List[StageInput]


class StageResponse(BaseModel):
    id: UUID
    workflow_id: UUID
    name: str
    position: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkflowResponse(BaseModel):
    id: UUID
    version: int
    is_active: bool
    created_by: UUID
    created_at: datetime
    activated_at: Optional[datetime] = None
    stages: List[StageResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

class TransitionRequest(CamelModel):
    action: ReviewAction
    expected_state_version: Annotated[int, Field(strict=True, gt=0)]
    comment: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=1000)]] = None


class TransitionResponse(CamelModel):
    idea_id: UUID
    workflow_id: UUID
    current_stage_id: UUID
    current_stage_name: str
    state_version: int
    terminal_outcome: Optional[TerminalOutcome] = None
    updated_at: datetime
    # False when the state moved but its audit event could not be written.
    audit_trail_complete: bool = True


# ---------------------------------------------------------------------------
# Timelines
# ---------------------------------------------------------------------------

class SubmitterEvent(CamelModel):
    to_stage: str
    occurred_at: datetime


class FullEvent(CamelModel):
    id: UUID
    from_stage: Optional[str] = None
    to_stage: str
    action: ReviewAction
    evaluator_comment: Optional[str] = None
    actor_id: UUID
    occurred_at: datetime


class SubmitterProgress(CamelModel):
    idea_id: UUID
    current_stage: str
    current_stage_updated_at: datetime
    events: List[SubmitterEvent]


class FullProgress(CamelModel):
    idea_id: UUID
    current_stage: str
    current_stage_updated_at: datetime
    terminal_outcome: Optional[TerminalOutcome] = None
    state_version: int
    events: List[FullEvent]


class StageStateResponse(CamelModel):
    idea_id: UUID
    workflow_id: UUID
    current_stage_id: UUID
    current_stage_name: str
    state_version: int
    terminal_outcome: Optional[TerminalOutcome] = None
    updated_at: datetime
    events: List[FullEvent]

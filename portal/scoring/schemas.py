from datetime import datetime
from uuid import UUID
from typing import Annotated, List, Optional
from pydantic import Field, StringConstraints

from portal.shared.schemas import CamelModel


class ScoreSubmission(CamelModel):
    score: Annotated[int, Field(strict=True, ge=1, le=5)]
    comment: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]] = None


class ScoreResponse(CamelModel):
    id: UUID
    idea_id: UUID
    evaluator_id: UUID
    score: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ScoreAggregateResponse(CamelModel):
    avg_score: Optional[float] = None
    score_count: int = 0


class ScoreEntry(CamelModel):
    id: UUID
    # "anonymous" when blind review hides the evaluator.
    evaluator_id: str
    evaluator_display_name: str
    score: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MyScore(CamelModel):
    id: UUID
    score: int
    comment: Optional[str] = None
    updated_at: datetime


class IdeaScoresResponse(CamelModel):
    idea_id: UUID
    aggregate: ScoreAggregateResponse
    scores: List[ScoreEntry]
    my_score: Optional[MyScore] = None

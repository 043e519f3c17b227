from datetime import datetime
from uuid import UUID
from typing import Annotated, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

from portal.ideas.models import IDEA_CATEGORIES, IdeaStatus

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=5000)]


class IdeaCreate(BaseModel):
    title: Title
    description: Description
    category: str

    @field_validator("category")
    @classmethod
    def category_must_be_known(cls, value: str) -> str:
        if value not in IDEA_CATEGORIES:
            raise ValueError(f"Category must be one of: {', '.join(IDEA_CATEGORIES)}")
        return value


class IdeaResponse(BaseModel):
    """Idea as returned to a viewer. ``user_id`` is a string so it can carry the anonymous sentinel."""
    id: UUID
    user_id: str
    title: str
    description: str
    category: str
    status: IdeaStatus
    evaluator_comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    submitter_display_name: Optional[str] = None


class IdeaListItem(IdeaResponse):
    avg_score: Optional[float] = None
    score_count: int = 0


class StatusUpdate(BaseModel):
    status: Literal["under_review", "accepted", "rejected"]
    evaluator_comment: Optional[str] = Field(default=None, alias="evaluatorComment")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def rejection_needs_comment(self):
        if self.status == "rejected" and len(self.evaluator_comment or "") < 10:
            raise ValueError("Rejection comment must be at least 10 characters")
        return self


class IdeaSubmitResponse(IdeaResponse):
    # False when no active workflow could take the idea; legacy status review still applies.
    review_bound: bool = False
